import pytest
from pydantic import ValidationError

from agent_runner.models import Agent, AgentRun, ContentChunk, Message, ToolChunk


def test_agent_defaults_to_one_empty_step():
    agent = Agent()
    assert len(agent.steps) == 1
    assert agent.steps[0].tools == []
    assert agent.source == "local"


def test_agent_requires_a_step():
    with pytest.raises(ValidationError):
        Agent(steps=[])


def test_agent_duplicate_gets_new_identity():
    agent = Agent(name="Writer", last_run_id="r1")
    copy = agent.duplicate()

    assert copy.id != agent.id
    assert copy.name == "Writer - Copy"
    assert copy.last_run_id is None
    copy.steps[0].prompt = "changed"
    assert agent.steps[0].prompt is None


def test_run_terminal_states_are_final():
    run = AgentRun(agent_id="a", trigger="manual")
    assert run.set_status("canceled") is True
    assert run.set_status("success") is False
    assert run.set_status("error", error="late") is False
    assert run.status == "canceled"
    assert run.error is None
    assert run.is_terminal


def test_message_streaming_helpers():
    message = Message(role="assistant")
    message.set_status("Working")
    message.append_text(ContentChunk(text="Hel"))
    assert message.transient is True
    message.append_text(ContentChunk(text="lo  ", done=True))

    assert message.content == "Hello  "
    assert message.content_for_model == "Hello"
    assert message.transient is False
    assert message.status is None


def test_message_tool_calls_are_upserted():
    message = Message(role="assistant")
    message.add_tool_call(ToolChunk(id="1", name="search", params={"query": "x"}))
    message.add_tool_call(ToolChunk(id="1", name="search", done=True, result="found"))

    assert len(message.tool_calls) == 1
    assert message.tool_calls[0].done is True
    assert message.tool_calls[0].params == {"query": "x"}
    assert message.tool_calls[0].result == "found"
