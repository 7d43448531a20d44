# executor_workflow.py
# Local multi-step execution of an agent.
#
# Control flow per step:
#   abort check → prompt resolution (output chaining) → knowledge base
#   → structured output → engine/model → tools → messages → generation
#   (one non-streaming retry) → output recorded for later steps
#
# Any unexpected exception is handled once, at the top of run(), so the
# locale override is always restored and the run always persisted.

from agent_runner import display
from agent_runner.agent_plugin import AgentPlugin
from agent_runner.chat import Chat
from agent_runner.config import Configuration
from agent_runner.docrepo import DocRepo, render_context
from agent_runner.executor_base import AgentExecutorBase, ExecutorOpts
from agent_runner.generator import GenerationCallback, GenerationResult
from agent_runner.i18n import i18n_instructions, llm_locale, t
from agent_runner.llm import GenerationOpts, LlmEngine, LlmManager
from agent_runner.models import Agent, AgentRun, AgentRunTrigger, AgentStep, LlmChunk, Message, ToolCall, ToolChunk
from agent_runner.prompt import output_variable, replace_prompt_inputs
from agent_runner.schema import StructuredOutput, process_json_schema, process_structure
from agent_runner.store import AgentStore
from agent_runner.tools import AVAILABLE_PLUGINS, MultiToolPlugin, resolve_step_tools

STRUCTURED_OUTPUT_NAME = "response"


class WorkflowExecutor(AgentExecutorBase):
    """Runs an agent's steps one after the other against a local engine."""

    def __init__(
        self,
        config: Configuration,
        workspace_id: str,
        agent: Agent,
        store: AgentStore | None = None,
        docrepo: DocRepo | None = None,
        llm_manager: LlmManager | None = None,
    ) -> None:
        super().__init__(config, workspace_id, agent, store, docrepo)
        self.llm_manager = llm_manager or LlmManager(config)
        self.llm: LlmEngine | None = None

    # ------------------------------------------------------------------
    # Step preparation
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_step_prompt(step_idx: int, step: AgentStep, prompt: str | None, outputs: list[str]) -> str:
        """
        The first step uses the caller prompt when there is one. Later steps
        fill their template with {{output.N}} from the steps before them.
        """
        if step_idx == 0:
            return (prompt or "").strip() or (step.prompt or "")
        values = {output_variable(index): output for index, output in enumerate(outputs)}
        return replace_prompt_inputs(step.prompt or "", values)

    def _add_docrepo_context(self, step: AgentStep, step_prompt: str) -> str:
        if self.docrepo is None:
            display.docrepo_unavailable(step.docrepo)
            return step_prompt
        sources = self.docrepo.query(step.docrepo, step_prompt)
        display.docrepo_queried(step.docrepo, len(sources))
        if not sources:
            return step_prompt
        instructions = i18n_instructions(self.config, "instructions.agent.docquery")
        return f"{step_prompt}\n\n{instructions.replace('{context}', render_context(sources))}"

    @staticmethod
    def _structured_output(step: AgentStep) -> StructuredOutput | None:
        if step.structured_output is not None:
            return process_structure(STRUCTURED_OUTPUT_NAME, step.structured_output)
        return process_json_schema(STRUCTURED_OUTPUT_NAME, step.json_schema)

    def _resolve_engine_model(self, step: AgentStep, opts: ExecutorOpts) -> tuple[str, str]:
        default_engine, default_model = self.llm_manager.get_chat_engine_model()
        engine = step.engine or self.agent.engine or opts.engine or default_engine
        model = step.model or self.agent.model or opts.model
        if not model and engine == default_engine:
            model = default_model
        return engine, self.llm_manager.get_chat_model(engine, model)

    def _attach_tools(self, step: AgentStep, opts: ExecutorOpts, engine: str, model: str) -> None:
        attached = resolve_step_tools(self.llm, step, AVAILABLE_PLUGINS, self.config.plugins, self.workspace_id)

        if step.agents:
            agents = [*self.store.load_agents(), *opts.agents]
            for agent_id in step.agents:
                agent = next((a for a in agents if a.id == agent_id), None)
                if agent is None:
                    continue
                plugin = AgentPlugin(
                    self.config,
                    self.workspace_id,
                    agent,
                    agent.engine or engine,
                    agent.model or model,
                    store=self.store,
                    docrepo=self.docrepo,
                    abort_signal=opts.abort_signal,
                )
                self.llm.add_plugin(plugin)
                attached.append(plugin)

        names: list[str] = []
        for plugin in attached:
            if isinstance(plugin, MultiToolPlugin):
                names.extend(plugin.enabled_tool_names())
            else:
                names.append(plugin.get_name())
        display.tools_configured(names)

    def _mirror_to_chat(self, chat: Chat, run: AgentRun, user_message: Message, provide_status: bool) -> None:
        # the chat keeps default instructions so the user can continue the conversation
        if not chat.messages:
            chat.add_message(Message(role="system", content=self.generator.get_system_instructions()))
        chat.add_message(user_message)
        response = Message(role="assistant", agent_id=self.agent.id, agent_run_id=run.id)
        if provide_status:
            response.set_status(t("chat.agent.status.starting"))
        chat.add_message(response)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _prompt(self, run: AgentRun, gen_opts: GenerationOpts, opts: ExecutorOpts) -> GenerationResult:
        display.generation_started(gen_opts.engine, gen_opts.model, gen_opts.streaming)

        def on_chunk(chunk: LlmChunk) -> None:
            if isinstance(chunk, ToolChunk) and chunk.done:
                run.tool_calls.append(
                    ToolCall(id=chunk.id, name=chunk.name, done=chunk.done, params=chunk.params, result=chunk.result)
                )
                display.tool_call(chunk)
            if opts.callback is not None:
                opts.callback(chunk)

        return self.generator.generate(
            self.llm,
            [
                run.messages[0],   # instructions
                run.messages[-2],  # user message
                run.messages[-1],  # assistant message
            ],
            gen_opts,
            on_chunk,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(
        self,
        trigger: AgentRunTrigger,
        prompt: str | None = None,
        opts: ExecutorOpts | None = None,
        generation_callback: GenerationCallback | None = None,
    ) -> AgentRun | None:
        """
        Execute every step of the agent.

        Returns the run record in its terminal state, or None when a step
        prompt resolves to nothing. That run still ends in error. Every run
        ends with a generation_done callback.
        """
        opts = opts or ExecutorOpts()
        run = self.create_run(trigger, prompt, opts)
        outputs: list[str] = []
        display.run_started(self.agent, run)

        try:
            run.messages.append(
                Message(role="system", content=self.generator.get_system_instructions(self.agent.instructions))
            )
            self.save_run(run, opts)

            with llm_locale(self.config, self.agent.locale):
                rc: GenerationResult = "error"
                total = len(self.agent.steps)
                model = ""

                for step_idx, step in enumerate(self.agent.steps):
                    if self.check_abort(run, opts):
                        return run

                    step_prompt = self.resolve_step_prompt(step_idx, step, prompt, outputs)
                    if not step_prompt.strip():
                        self.reject_empty_prompt(run, step_idx + 1, opts)
                        return None

                    display.step_started(step_idx, total, step.description)

                    if step.docrepo:
                        if self.check_abort(run, opts):
                            return run
                        step_prompt = self._add_docrepo_context(step, step_prompt)

                    structured_output = self._structured_output(step)
                    if step.json_schema:
                        instructions = i18n_instructions(self.config, "instructions.agent.structuredOutput")
                        step_prompt += f"\n\n{instructions.replace('{jsonSchema}', step.json_schema)}"

                    engine, model = self._resolve_engine_model(step, opts)
                    streaming = opts.streaming if opts.streaming is not None else not self.agent.disable_streaming
                    gen_opts = GenerationOpts(
                        engine=engine,
                        model=model,
                        streaming=streaming,
                        structured_output=structured_output,
                        model_opts=dict(self.agent.model_opts),
                        abort_signal=opts.abort_signal,
                    )
                    self.llm = self.llm_manager.ignite_engine(engine)

                    if opts.chat is not None and step_idx == 0:
                        opts.chat.set_engine_model(engine, model)
                        opts.chat.locale = self.agent.locale or opts.chat.locale
                        opts.chat.model_opts = self.agent.model_opts or None

                    if self.check_abort(run, opts):
                        return run
                    self._attach_tools(step, opts, engine, model)

                    provide_status = total > 1 or bool((step.description or "").strip())

                    user_message = Message(role="user", content=step_prompt, engine=engine, model=model)
                    run.messages.append(user_message)

                    response_message = None
                    if opts.chat is not None:
                        if step_idx == 0:
                            self._mirror_to_chat(opts.chat, run, user_message, provide_status)
                        response_message = opts.chat.last_message()

                    # the chat's response message receives the last step's answer
                    if response_message is not None and step_idx == total - 1:
                        assistant_message = response_message
                    else:
                        assistant_message = Message(role="assistant")
                    assistant_message.engine = engine
                    assistant_message.model = model
                    run.messages.append(assistant_message)

                    if generation_callback is not None:
                        generation_callback("before_generation")
                    self.save_run(run, opts)

                    if response_message is not None and provide_status:
                        response_message.set_status(
                            (step.description or "").strip()
                            or t("chat.agent.status.inProgress", step=step_idx + 1, steps=total)
                        )

                    rc = self._prompt(run, gen_opts, opts)
                    if rc == "streaming_not_supported":
                        display.streaming_fallback(engine, model)
                        rc = self._prompt(run, gen_opts.model_copy(update={"streaming": False}), opts)

                    if rc != "success":
                        break

                    outputs.append(assistant_message.content_for_model)

                if rc == "success" and opts.chat is not None and not opts.chat.has_title():
                    if self.check_abort(run, opts):
                        return run
                    if generation_callback is not None:
                        generation_callback("before_title")
                    opts.chat.title = self.generator.get_title(self.llm, model, opts.chat.messages)

            self.finish_run(run, rc, opts)

        except Exception as exc:
            self.fail_run(run, exc, opts)

        finally:
            if generation_callback is not None:
                generation_callback("generation_done")

        return run
