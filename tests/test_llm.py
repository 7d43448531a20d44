from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from agent_runner.config import Configuration, EngineConfig, LlmConfig
from agent_runner.llm import (
    EngineNotFoundError,
    GenerationOpts,
    LlmEngine,
    LlmManager,
    StreamingNotSupportedError,
    ToolNotFoundError,
)
from agent_runner.models import ContentChunk, ToolChunk
from agent_runner.schema import process_structure
from agent_runner.tools import Plugin


class EchoPlugin(Plugin):
    name = "echo"

    def execute(self, tool_name, params):
        return {"echoed": params.get("message")}


class FakeStream:
    def __init__(self, events):
        self.events = events

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def __iter__(self):
        return iter(self.events)


def _delta(content=None, tool_calls=None):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))])


def _tool_delta(index, id=None, name=None, arguments=None):
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


def _completion(content=None, tool_calls=None):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls))])


def _bad_request(message):
    request = httpx.Request("POST", "http://llm.test/chat/completions")
    response = httpx.Response(400, request=request)
    return openai.BadRequestError(message, response=response, body=None)

# ---------------------------------------------------------------------------
# Streaming generation
# ---------------------------------------------------------------------------

def test_streaming_yields_content_then_done():
    client = MagicMock()
    client.chat.completions.create.return_value = FakeStream([_delta("Hel"), _delta("lo")])
    engine = LlmEngine("test", client)

    chunks = list(engine.generate("m", [{"role": "user", "content": "hi"}], GenerationOpts()))

    assert [c.text for c in chunks] == ["Hel", "lo", ""]
    assert chunks[-1].done is True
    assert client.chat.completions.create.call_args.kwargs["stream"] is True


def test_streaming_executes_tool_calls_and_continues():
    client = MagicMock()
    client.chat.completions.create.side_effect = [
        FakeStream([
            _delta(tool_calls=[_tool_delta(0, id="call_1", name="echo", arguments='{"mess')]),
            _delta(tool_calls=[_tool_delta(0, arguments='age": "ping"}')]),
        ]),
        FakeStream([_delta("pong")]),
    ]
    engine = LlmEngine("test", client)
    engine.add_plugin(EchoPlugin())

    chunks = list(engine.generate("m", [{"role": "user", "content": "hi"}], GenerationOpts()))
    tool_chunks = [c for c in chunks if isinstance(c, ToolChunk)]

    assert [c.done for c in tool_chunks] == [False, True]
    assert tool_chunks[1].params == {"message": "ping"}
    assert tool_chunks[1].result == {"echoed": "ping"}
    assert isinstance(chunks[-1], ContentChunk) and chunks[-1].done

    followup = client.chat.completions.create.call_args_list[1].kwargs["messages"]
    assert followup[-2]["tool_calls"][0]["function"]["name"] == "echo"
    assert followup[-1] == {"role": "tool", "tool_call_id": "call_1", "content": '{"echoed": "ping"}'}


def test_streaming_rejection_raises_streaming_not_supported():
    client = MagicMock()
    client.chat.completions.create.side_effect = _bad_request("Streaming is not supported for this model")
    engine = LlmEngine("test", client)

    with pytest.raises(StreamingNotSupportedError):
        list(engine.generate("m", [], GenerationOpts()))


def test_other_bad_requests_propagate():
    client = MagicMock()
    client.chat.completions.create.side_effect = _bad_request("invalid temperature")
    engine = LlmEngine("test", client)

    with pytest.raises(openai.BadRequestError):
        list(engine.generate("m", [], GenerationOpts()))

# ---------------------------------------------------------------------------
# Blocking generation and requests
# ---------------------------------------------------------------------------

def test_blocking_generation():
    client = MagicMock()
    client.chat.completions.create.return_value = _completion("answer")
    engine = LlmEngine("test", client)

    chunks = list(engine.generate("m", [], GenerationOpts(streaming=False)))

    assert [c.text for c in chunks] == ["answer", ""]
    assert "stream" not in client.chat.completions.create.call_args.kwargs


def test_request_carries_tools_schema_and_model_opts():
    engine = LlmEngine("test", MagicMock())
    engine.add_plugin(EchoPlugin())
    opts = GenerationOpts(
        structured_output=process_structure("response", {"answer": "string"}),
        model_opts={"temperature": 0.2},
    )

    request = engine._request("m", [], engine.get_tools(), opts)

    assert request["tools"][0]["function"]["name"] == "echo"
    assert request["response_format"]["json_schema"]["name"] == "response"
    assert request["temperature"] == 0.2


def test_unknown_tool_raises():
    with pytest.raises(ToolNotFoundError):
        LlmEngine("test", MagicMock()).call_tool("missing", {})

# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

def test_manager_model_defaults():
    config = Configuration(
        llm=LlmConfig(engine="openrouter", model="default-model"),
        engines={"openai": EngineConfig(base_url="http://openai.test", default_model="gpt-test")},
    )
    manager = LlmManager(config)

    assert manager.get_chat_engine_model() == ("openrouter", "default-model")
    assert manager.get_chat_model("openai") == "gpt-test"
    assert manager.get_chat_model("openai", "explicit") == "explicit"
    assert manager.get_chat_model("unknown") == "default-model"


def test_manager_ignites_configured_engines_only(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    config = Configuration(engines={"local": EngineConfig(base_url="http://localhost:1234/v1")})
    manager = LlmManager(config)

    engine = manager.ignite_engine("local")
    assert engine.name == "local"
    assert engine.plugins == []
    assert str(engine.client.base_url).startswith("http://localhost:1234/v1")
    assert engine.client.api_key == "none"

    with pytest.raises(EngineNotFoundError):
        manager.ignite_engine("missing")
