# agent_utils.py
# Executor selection and small agent lookups.

from typing import Protocol

from agent_runner.chat import Chat
from agent_runner.config import Configuration
from agent_runner.executor_a2a import A2AExecutor
from agent_runner.executor_base import ExecutorOpts
from agent_runner.executor_workflow import WorkflowExecutor
from agent_runner.generator import GenerationCallback
from agent_runner.models import Agent, AgentRun, AgentRunTrigger


class AgentExecutor(Protocol):
    def run(
        self,
        trigger: AgentRunTrigger,
        prompt: str | None = None,
        opts: ExecutorOpts | None = None,
        generation_callback: GenerationCallback | None = None,
    ) -> AgentRun | None: ...


def create_agent_executor(config: Configuration, workspace_id: str, agent: Agent, **kwargs) -> AgentExecutor:
    """Remote agents run through A2A, everything else as a local workflow."""
    if agent.source == "a2a":
        return A2AExecutor(config, workspace_id, agent, **kwargs)
    return WorkflowExecutor(config, workspace_id, agent, **kwargs)


def is_agent_conversation(chat: Chat, agents: list[Agent]) -> Agent | None:
    """
    Return the A2A agent that answered the chat's last message.

    Remote agents keep a conversation going through their task context,
    so follow-up prompts should go back to them.
    """
    message = chat.last_message()
    if message is None or not message.agent_id:
        return None
    agent = next((a for a in agents if a.id == message.agent_id), None)
    if agent is not None and agent.source == "a2a":
        return agent
    return None
