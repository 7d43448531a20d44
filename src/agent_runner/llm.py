# llm.py
# OpenAI-compatible engines with attachable tool plugins.
#
# An LlmEngine turns one conversation into a stream of chunks. Tool calls
# requested by the model are executed against the attached plugins and fed
# back until the model produces a final answer.

import json
import threading
from typing import Any, Iterator

import openai
from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field

from agent_runner.config import Configuration
from agent_runner.models import ContentChunk, LlmChunk, ToolChunk
from agent_runner.schema import StructuredOutput
from agent_runner.tools import Plugin

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StreamingNotSupportedError(Exception):
    """Raised when an endpoint or model rejects a streaming request."""


class EngineNotFoundError(Exception):
    """Raised when no endpoint is configured for the requested engine."""


class ToolNotFoundError(Exception):
    """Raised when the model calls a tool no attached plugin provides."""


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class GenerationOpts(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    engine: str = ""
    model: str = ""
    streaming: bool = True
    structured_output: StructuredOutput | None = None
    model_opts: dict = Field(default_factory=dict, description="Provider tuning fields (temperature, top_p, ...).")
    abort_signal: threading.Event | None = None


def _is_streaming_error(exc: Exception) -> bool:
    message = str(exc).lower()
    return "stream" in message and any(
        marker in message for marker in ("not supported", "unsupported", "does not support", "not available")
    )


def _tool_result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class LlmEngine:
    """One OpenAI-compatible endpoint plus the plugins attached for a step."""

    def __init__(self, name: str, client: OpenAI) -> None:
        self.name = name
        self.client = client
        self.plugins: list[Plugin] = []

    def add_plugin(self, plugin: Plugin) -> None:
        self.plugins.append(plugin)

    def clear_plugins(self) -> None:
        self.plugins = []

    def get_tools(self) -> list[dict]:
        tools: list[dict] = []
        for plugin in self.plugins:
            tools.extend(plugin.get_enabled_tools())
        return tools

    def call_tool(self, name: str, params: dict) -> Any:
        for plugin in self.plugins:
            if plugin.handles_tool(name):
                return plugin.execute(name, params)
        raise ToolNotFoundError(f"Tool '{name}' is not provided by any attached plugin.")

    # ------------------------------------------------------------------
    # Low-level calls
    # ------------------------------------------------------------------

    def _request(self, model: str, messages: list[dict], tools: list[dict], opts: GenerationOpts) -> dict:
        request: dict[str, Any] = {"model": model, "messages": messages}
        if tools:
            request["tools"] = tools
        if opts.structured_output is not None:
            request["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": opts.structured_output.name,
                    "schema": opts.structured_output.json_schema(),
                },
            }
        request.update(opts.model_opts)
        return request

    def _stream(self, request: dict) -> Iterator[LlmChunk]:
        try:
            stream = self.client.chat.completions.create(stream=True, **request)
        except openai.BadRequestError as exc:
            if _is_streaming_error(exc):
                raise StreamingNotSupportedError(str(exc)) from exc
            raise

        content = ""
        calls: dict[int, dict] = {}
        with stream:
            for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta
                if delta.content:
                    content += delta.content
                    yield ContentChunk(text=delta.content)
                for call in delta.tool_calls or []:
                    entry = calls.setdefault(call.index, {"id": "", "name": "", "arguments": ""})
                    if call.id:
                        entry["id"] = call.id
                    if call.function is not None:
                        entry["name"] += call.function.name or ""
                        entry["arguments"] += call.function.arguments or ""

        return content, [calls[index] for index in sorted(calls)]

    def _complete(self, request: dict) -> Iterator[LlmChunk]:
        response = self.client.chat.completions.create(**request)
        message = response.choices[0].message
        if message.content:
            yield ContentChunk(text=message.content)
        calls = [
            {"id": call.id, "name": call.function.name, "arguments": call.function.arguments}
            for call in message.tool_calls or []
        ]
        return message.content or "", calls

    def complete(self, model: str, messages: list[dict]) -> str:
        """Single non-streaming answer, no tools."""
        response = self.client.chat.completions.create(model=model, messages=messages)
        return (response.choices[0].message.content or "").strip()

    # ------------------------------------------------------------------
    # Generation loop
    # ------------------------------------------------------------------

    def generate(self, model: str, messages: list[dict], opts: GenerationOpts) -> Iterator[LlmChunk]:
        """
        Stream the answer to `messages`.

        Yields content chunks, a running and a done ToolChunk per tool call,
        and a final done ContentChunk.
        """
        thread = list(messages)
        tools = self.get_tools()

        while True:
            request = self._request(model, thread, tools, opts)
            if opts.streaming:
                content, calls = yield from self._stream(request)
            else:
                content, calls = yield from self._complete(request)

            if not calls:
                yield ContentChunk(text="", done=True)
                return

            thread.append(
                {
                    "role": "assistant",
                    "content": content or None,
                    "tool_calls": [
                        {
                            "id": call["id"],
                            "type": "function",
                            "function": {"name": call["name"], "arguments": call["arguments"] or "{}"},
                        }
                        for call in calls
                    ],
                }
            )

            for call in calls:
                params = json.loads(call["arguments"] or "{}", strict=False)
                yield ToolChunk(id=call["id"], name=call["name"], status="running", params=params)
                result = self.call_tool(call["name"], params)
                yield ToolChunk(id=call["id"], name=call["name"], status="done", done=True, params=params, result=result)
                thread.append({"role": "tool", "tool_call_id": call["id"], "content": _tool_result_text(result)})


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class LlmManager:
    """Resolves engine/model defaults and creates engines."""

    def __init__(self, config: Configuration) -> None:
        self.config = config

    def get_chat_engine_model(self) -> tuple[str, str]:
        return self.config.llm.engine, self.config.llm.model

    def get_chat_model(self, engine: str, model: str | None = None) -> str:
        if model:
            return model
        settings = self.config.engines.get(engine)
        if settings is not None and settings.default_model:
            return settings.default_model
        return self.config.llm.model

    def ignite_engine(self, engine: str) -> LlmEngine:
        settings = self.config.engines.get(engine)
        if settings is None:
            raise EngineNotFoundError(f"No endpoint configured for engine '{engine}'.")
        # the client refuses an empty key, keyless local servers take any value
        client = OpenAI(base_url=settings.base_url, api_key=settings.api_key or "none")
        return LlmEngine(engine, client)
