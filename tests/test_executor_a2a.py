import threading
from unittest.mock import patch

import pytest

from agent_runner.agent_utils import create_agent_executor, is_agent_conversation
from agent_runner.chat import Chat
from agent_runner.config import Configuration
from agent_runner.executor_a2a import A2AExecutor, artifact_block
from agent_runner.executor_base import ExecutorOpts
from agent_runner.executor_workflow import WorkflowExecutor
from agent_runner.i18n import t
from agent_runner.models import A2AContext, Agent, ArtifactChunk, ContentChunk, Message, StatusChunk
from agent_runner.store import AgentStore


@pytest.fixture
def agent():
    return Agent(source="a2a", name="Remote", instructions="http://remote.test")


@pytest.fixture
def executor(agent, tmp_path):
    return A2AExecutor(Configuration(), "ws", agent, store=AgentStore(tmp_path))


def _stream(*chunks):
    return (c for c in chunks)

# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

@patch("agent_runner.executor_a2a.A2AClient")
def test_remote_run_with_artifact(mock_client_cls, executor):
    mock_client_cls.return_value.execute.return_value = _stream(
        StatusChunk(task_id="task-1", context_id="ctx-1", status="Thinking"),
        ContentChunk(text="Here is "),
        ContentChunk(text="the report."),
        ArtifactChunk(name="report.md", content="# Report"),
        ContentChunk(text="", done=True),
    )

    run = executor.run("manual", "Write a report")

    assert run.status == "success"
    assert [m.role for m in run.messages] == ["system", "user", "assistant"]
    answer = run.messages[-1]
    assert answer.content == "Here is the report." + artifact_block("report.md", "# Report")
    assert '<artifact title="report.md">\n```\n# Report\n```\n</artifact>' in answer.content
    assert len(answer.attachments) == 1
    assert answer.attachments[0].title == "report.md"
    assert answer.attachments[0].mime_type == "text/plain"
    assert answer.a2a_context == A2AContext(current_task_id="task-1", current_context_id="ctx-1")
    mock_client_cls.assert_called_once_with("http://remote.test")
    mock_client_cls.return_value.execute.assert_called_once_with("Write a report", None)


@patch("agent_runner.executor_a2a.A2AClient")
def test_final_status_clears_context(mock_client_cls, executor):
    mock_client_cls.return_value.execute.return_value = _stream(
        StatusChunk(task_id="task-1", context_id="ctx-1"),
        ContentChunk(text="Done."),
        StatusChunk(),
        ContentChunk(text="", done=True),
    )

    run = executor.run("manual", "hi")
    assert run.messages[-1].a2a_context is None


@patch("agent_runner.executor_a2a.A2AClient")
def test_conversation_context_is_forwarded(mock_client_cls, executor):
    mock_client_cls.return_value.execute.return_value = _stream(ContentChunk(text="ok", done=True))
    context = A2AContext(current_task_id="task-1", current_context_id="ctx-1")

    executor.run("manual", "follow up", ExecutorOpts(a2a_context=context))

    mock_client_cls.return_value.execute.assert_called_once_with("follow up", context)


@patch("agent_runner.executor_a2a.A2AClient")
def test_abort_before_start(mock_client_cls, executor):
    abort = threading.Event()
    abort.set()

    run = executor.run("manual", "hi", ExecutorOpts(abort_signal=abort))

    assert run.status == "canceled"
    mock_client_cls.assert_not_called()


@patch("agent_runner.executor_a2a.A2AClient")
def test_blank_prompt_is_never_sent(mock_client_cls, executor, agent):
    events = []

    assert executor.run("manual", None, ExecutorOpts(run_id="r1"), generation_callback=events.append) is None
    assert executor.run("manual", "  \n", ExecutorOpts(ephemeral=True)) is None

    mock_client_cls.assert_not_called()
    persisted = executor.store.load_run(agent.id, "r1")
    assert persisted.status == "error"
    assert persisted.error == t("generator.errors.emptyPrompt", step=1)
    assert events == ["generation_done"]


@patch("agent_runner.executor_a2a.A2AClient")
def test_generation_done_fires_when_canceled_early(mock_client_cls, executor):
    abort = threading.Event()
    abort.set()
    events = []

    executor.run("manual", "hi", ExecutorOpts(abort_signal=abort), generation_callback=events.append)

    assert events == ["generation_done"]


@patch("agent_runner.executor_a2a.A2AClient")
def test_abort_while_streaming(mock_client_cls, executor):
    abort = threading.Event()

    def chunks():
        yield ContentChunk(text="partial")
        abort.set()
        yield ContentChunk(text=" never")

    mock_client_cls.return_value.execute.return_value = chunks()

    run = executor.run("manual", "hi", ExecutorOpts(abort_signal=abort))

    assert run.status == "canceled"
    assert run.messages[-1].content == "partial"


@patch("agent_runner.executor_a2a.A2AClient")
def test_remote_failure_marks_run_error(mock_client_cls, executor):
    def chunks():
        yield ContentChunk(text="Working")
        raise ConnectionError("remote went away")

    mock_client_cls.return_value.execute.return_value = chunks()
    events = []

    run = executor.run("manual", "hi", generation_callback=events.append)

    assert run.status == "error"
    assert run.error == "remote went away"
    assert run.messages[-1].content == "Working" + t("generator.errors.cannotContinue")
    assert events == ["before_generation", "generation_done"]


@patch("agent_runner.executor_a2a.A2AClient")
def test_chat_receives_response_message(mock_client_cls, executor, agent):
    mock_client_cls.return_value.execute.return_value = _stream(ContentChunk(text="hello", done=True))
    chat = Chat()
    forwarded = []

    run = executor.run("manual", "hi", ExecutorOpts(chat=chat, callback=forwarded.append))

    assert [m.role for m in chat.messages] == ["user", "assistant"]
    assert chat.messages[-1] is run.messages[-1]
    assert chat.messages[-1].agent_id == agent.id
    assert chat.messages[-1].content == "hello"
    assert len(forwarded) == 1

# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def test_factory_selects_executor_by_source(agent, tmp_path):
    config = Configuration(agents_dir=tmp_path)
    assert isinstance(create_agent_executor(config, "ws", agent), A2AExecutor)
    assert isinstance(create_agent_executor(config, "ws", Agent()), WorkflowExecutor)


def test_is_agent_conversation(agent):
    local = Agent(name="Local")
    chat = Chat()
    assert is_agent_conversation(chat, [agent, local]) is None

    chat.add_message(Message(role="assistant", agent_id=local.id))
    assert is_agent_conversation(chat, [agent, local]) is None

    chat.add_message(Message(role="assistant", agent_id=agent.id))
    assert is_agent_conversation(chat, [agent, local]) is agent
    assert is_agent_conversation(chat, [local]) is None
