# generator.py
# The generation capability used by executors.
#
# generate() streams one answer into the last message of a conversation and
# reports how it went. Provider failures become readable assistant text and
# an "error" result; only unexpected failures (a crashing tool, a bug) raise.

import re
from datetime import datetime
from typing import Callable, Literal

import openai

from agent_runner import display
from agent_runner.config import Configuration
from agent_runner.i18n import i18n_instructions, t
from agent_runner.llm import GenerationOpts, LlmEngine, StreamingNotSupportedError
from agent_runner.models import ContentChunk, LlmChunk, Message, ToolChunk

GenerationResult = Literal["success", "streaming_not_supported", "error", "stopped"]
GenerationEvent = Literal["before_generation", "before_title", "generation_done"]
GenerationCallback = Callable[[GenerationEvent], None]
ChunkCallback = Callable[[LlmChunk], None]

_DATE_RE = re.compile(r"Current date and time is [^.]+")


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M")


class Generator:
    add_date_and_time = True

    def __init__(self, config: Configuration) -> None:
        self.config = config

    # ------------------------------------------------------------------
    # System instructions
    # ------------------------------------------------------------------

    def get_system_instructions(self, instructions: str | None = None) -> str:
        instr = instructions or i18n_instructions(self.config, "instructions.default")
        if self.add_date_and_time:
            instr += f" Current date and time is {_now()}."
        return instr

    def patch_system_instructions(self, instructions: str) -> str:
        return _DATE_RE.sub(f"Current date and time is {_now()}", instructions)

    def _conversation(self, messages: list[Message]) -> list[dict]:
        system, *rest = messages
        conversation = [{"role": "system", "content": self.patch_system_instructions(system.content)}]
        conversation.extend({"role": m.role, "content": m.content} for m in rest)
        return conversation

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        llm: LlmEngine,
        messages: list[Message],
        opts: GenerationOpts,
        callback: ChunkCallback | None = None,
    ) -> GenerationResult:
        """
        Generate the answer to messages[:-1] into messages[-1].

        messages[0] must be the system message.
        """
        response = messages[-1]
        conversation = self._conversation(messages[:-1])
        stream = llm.generate(opts.model, conversation, opts)

        try:
            for chunk in stream:
                if opts.abort_signal is not None and opts.abort_signal.is_set():
                    stream.close()
                    response.append_text(ContentChunk(text="", done=True))
                    return "stopped"
                if isinstance(chunk, ToolChunk):
                    response.add_tool_call(chunk)
                elif isinstance(chunk, ContentChunk):
                    response.append_text(chunk)
                if callback is not None:
                    callback(chunk)
        except StreamingNotSupportedError:
            return "streaming_not_supported"
        except openai.APIError as exc:
            display.generation_error(opts.engine, opts.model, str(exc))
            if self._is_tools_error(exc) and llm.plugins:
                llm.clear_plugins()
                return self.generate(llm, messages, opts, callback)
            self._report_error(response, exc)
            return "error"

        return "success"

    @staticmethod
    def _is_tools_error(exc: openai.APIError) -> bool:
        status = getattr(exc, "status_code", None)
        message = str(exc).lower()
        return status in (400, 404) and any(m in message for m in ("function call", "tools", "tool use"))

    @staticmethod
    def _report_error(response: Message, exc: openai.APIError) -> None:
        status = getattr(exc, "status_code", None)
        message = str(exc).lower()

        if status == 401 or "401" in message or "apikey" in message or "api key" in message:
            response.set_text(t("generator.errors.apiKey"))
        elif status in (400, 402) and ("credit" in message or "balance" in message):
            response.set_text(t("generator.errors.outOfCredits"))
        elif status == 400 and ("context length" in message or "too long" in message):
            response.set_text(t("generator.errors.contextTooLong"))
        elif status == 429 and any(m in message for m in ("resource", "quota", "too many")):
            response.set_text(t("generator.errors.rateLimit"))
        elif response.content == "":
            response.set_text(t("generator.errors.noText"))
        else:
            response.append_text(ContentChunk(text=t("generator.errors.cannotContinue"), done=True))

    # ------------------------------------------------------------------
    # Titling
    # ------------------------------------------------------------------

    def get_title(self, llm: LlmEngine, model: str, messages: list[Message]) -> str:
        conversation = [
            {"role": m.role, "content": m.content}
            for m in messages
            if m.role != "system" and m.content
        ]
        conversation.append({"role": "user", "content": i18n_instructions(self.config, "instructions.title")})
        title = llm.complete(model, conversation)
        return title.strip().strip('"').rstrip(".")
