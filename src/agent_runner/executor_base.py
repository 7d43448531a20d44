# executor_base.py
# Run bookkeeping shared by every executor: run creation, persistence,
# cancellation and terminal transitions.

import threading
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

from agent_runner import display
from agent_runner.chat import Chat
from agent_runner.config import Configuration
from agent_runner.docrepo import DocRepo
from agent_runner.generator import GenerationCallback, GenerationResult, Generator
from agent_runner.i18n import t
from agent_runner.models import A2AContext, Agent, AgentRun, AgentRunTrigger, ContentChunk, LlmChunk
from agent_runner.store import AgentStore


class ExecutorOpts(BaseModel):
    """Per-run options supplied by the trigger."""

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    run_id: str | None = None
    ephemeral: bool = Field(default=False, description="Do not persist the run.")
    abort_signal: threading.Event | None = None
    chat: Chat | None = None
    engine: str | None = None
    model: str | None = None
    streaming: bool | None = None
    agents: list[Agent] = Field(default_factory=list, description="Extra agents usable as sub-agents.")
    callback: Callable[[LlmChunk], None] | None = None
    a2a_context: A2AContext | None = None


class AgentExecutorBase:
    def __init__(
        self,
        config: Configuration,
        workspace_id: str,
        agent: Agent,
        store: AgentStore | None = None,
        docrepo: DocRepo | None = None,
    ) -> None:
        self.config = config
        self.workspace_id = workspace_id
        self.agent = agent
        self.store = store if store is not None else AgentStore(config.agents_dir)
        self.docrepo = docrepo
        self.generator = Generator(config)

    def run(
        self,
        trigger: AgentRunTrigger,
        prompt: str | None = None,
        opts: ExecutorOpts | None = None,
        generation_callback: GenerationCallback | None = None,
    ) -> AgentRun | None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def create_run(self, trigger: AgentRunTrigger, prompt: str | None, opts: ExecutorOpts) -> AgentRun:
        run = AgentRun(agent_id=self.agent.id, trigger=trigger, prompt=prompt)
        if opts.run_id:
            run.id = opts.run_id
        return run

    def save_run(self, run: AgentRun, opts: ExecutorOpts) -> None:
        if not opts.ephemeral:
            self.store.save_run(run)

    def check_abort(self, run: AgentRun, opts: ExecutorOpts) -> bool:
        """
        Cancel the run if its abort signal is set.

        Returns True when the caller must stop.
        """
        if opts.abort_signal is None or not opts.abort_signal.is_set():
            return False
        if run.set_status("canceled"):
            self.save_run(run, opts)
            if opts.chat is not None and opts.chat.last_message() is not None:
                opts.chat.last_message().append_text(ContentChunk(text="", done=True))
            display.run_canceled(run)
        return True

    def finish_run(self, run: AgentRun, rc: GenerationResult, opts: ExecutorOpts) -> None:
        if self.check_abort(run, opts):
            return
        if rc == "success":
            run.set_status("success")
            self.save_run(run, opts)
            display.run_completed(run)
        elif rc == "stopped":
            run.set_status("canceled")
            self.save_run(run, opts)
            display.run_canceled(run)
        else:
            run.set_status("error", error=t("generator.errors.generationFailed"))
            self.save_run(run, opts)
            display.run_failed(run)

    def reject_empty_prompt(self, run: AgentRun, step: int, opts: ExecutorOpts) -> None:
        """End the run in error because step `step` (1-based) has nothing to send."""
        reason = t("generator.errors.emptyPrompt", step=step)
        run.set_status("error", error=reason)
        self.save_run(run, opts)
        display.halt(reason)

    def fail_run(self, run: AgentRun, exc: Exception, opts: ExecutorOpts) -> None:
        """Record an unexpected failure. Earlier steps are kept as they are."""
        if self.check_abort(run, opts):
            return
        if run.messages:
            run.messages[-1].append_text(ContentChunk(text=t("generator.errors.cannotContinue"), done=True))
        run.set_status("error", error=str(exc))
        self.save_run(run, opts)
        display.run_failed(run)
