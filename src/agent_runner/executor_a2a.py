# executor_a2a.py
# Delegates a run to a remote A2A agent. agent.instructions holds its base URL.

from agent_runner import display
from agent_runner.a2a_client import A2AClient
from agent_runner.executor_base import AgentExecutorBase, ExecutorOpts
from agent_runner.generator import GenerationCallback, GenerationResult
from agent_runner.models import (
    A2AContext,
    AgentRun,
    AgentRunTrigger,
    ArtifactChunk,
    Attachment,
    ContentChunk,
    Message,
    StatusChunk,
)


def artifact_block(name: str, content: str) -> str:
    return f'\n\n<artifact title="{name}">\n```\n{content}\n```\n</artifact>\n\n'


class A2AExecutor(AgentExecutorBase):
    def run(
        self,
        trigger: AgentRunTrigger,
        prompt: str | None = None,
        opts: ExecutorOpts | None = None,
        generation_callback: GenerationCallback | None = None,
    ) -> AgentRun | None:
        opts = opts or ExecutorOpts()
        run = self.create_run(trigger, prompt, opts)
        display.run_started(self.agent, run)

        try:
            run.messages.append(Message(role="system", content=""))
            self.save_run(run, opts)

            if self.check_abort(run, opts):
                return run

            if not (prompt or "").strip():
                self.reject_empty_prompt(run, 1, opts)
                return None

            user_message = Message(role="user", content=prompt or "")
            run.messages.append(user_message)

            if opts.chat is not None:
                opts.chat.add_message(user_message)
                opts.chat.add_message(Message(role="assistant", agent_id=self.agent.id, agent_run_id=run.id))
                assistant_message = opts.chat.last_message()
            else:
                assistant_message = Message(role="assistant")
            run.messages.append(assistant_message)

            if generation_callback is not None:
                generation_callback("before_generation")
            self.save_run(run, opts)

            rc = self._execute(run, opts)
            self.finish_run(run, rc, opts)

        except Exception as exc:
            self.fail_run(run, exc, opts)

        finally:
            if generation_callback is not None:
                generation_callback("generation_done")

        return run

    def _execute(self, run: AgentRun, opts: ExecutorOpts) -> GenerationResult:
        client = A2AClient(self.agent.instructions)
        prompt = next((m.content for m in run.messages if m.role == "user"), "")
        stream = client.execute(prompt, opts.a2a_context)

        for chunk in stream:
            if opts.abort_signal is not None and opts.abort_signal.is_set():
                stream.close()
                return "stopped"

            message = run.messages[-1]

            if isinstance(chunk, ContentChunk):
                message.append_text(chunk)
                if opts.callback is not None:
                    opts.callback(chunk)

            elif isinstance(chunk, StatusChunk):
                if chunk.task_id:
                    message.a2a_context = A2AContext(
                        current_task_id=chunk.task_id, current_context_id=chunk.context_id
                    )
                else:
                    message.a2a_context = None
                if chunk.status:
                    message.set_status(chunk.status)
                display.a2a_event(chunk)

            elif isinstance(chunk, ArtifactChunk):
                text_chunk = ContentChunk(text=artifact_block(chunk.name, chunk.content), done=False)
                message.append_text(text_chunk)
                message.attach(Attachment(title=chunk.name, content=chunk.content))
                display.a2a_event(chunk)
                if opts.callback is not None:
                    opts.callback(text_chunk)

        return "success"
