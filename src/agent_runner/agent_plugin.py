# agent_plugin.py
# Exposes another agent to the model as a tool.

import re
import threading
from typing import Any

from agent_runner.config import Configuration
from agent_runner.docrepo import DocRepo
from agent_runner.executor_base import ExecutorOpts
from agent_runner.models import Agent
from agent_runner.prompt import extract_prompt_inputs, replace_prompt_inputs
from agent_runner.store import AgentStore
from agent_runner.tools import Plugin


def _tool_name(agent: Agent) -> str:
    slug = re.sub(r"[^a-zA-Z0-9_-]+", "_", (agent.name or agent.id).strip()).strip("_").lower()
    return f"agent_{slug or agent.id}"[:64]


class AgentPlugin(Plugin):
    """
    Runs a sub-agent as a nested "workflow" run.

    The tool parameters are the caller inputs of the sub-agent's first step
    template, or a single free-form prompt when it declares none.
    """

    def __init__(
        self,
        config: Configuration,
        workspace_id: str,
        agent: Agent,
        engine: str | None,
        model: str | None,
        store: AgentStore | None = None,
        docrepo: DocRepo | None = None,
        abort_signal: threading.Event | None = None,
    ) -> None:
        super().__init__({}, workspace_id)
        self.app_config = config
        self.agent = agent
        self.engine = engine
        self.model = model
        self.store = store
        self.docrepo = docrepo
        self.abort_signal = abort_signal
        self.inputs = extract_prompt_inputs(agent.steps[0].prompt or "", remove_system_inputs=True)

    def get_name(self) -> str:
        return _tool_name(self.agent)

    def get_tools(self) -> list[dict]:
        if self.inputs:
            properties = {
                i.name: {"type": "string", "description": i.description or i.name} for i in self.inputs
            }
            required = [i.name for i in self.inputs if i.default_value is None]
        else:
            properties = {"prompt": {"type": "string", "description": "Request for the agent."}}
            required = ["prompt"]
        return [
            {
                "type": "function",
                "function": {
                    "name": self.get_name(),
                    "description": self.agent.description or f"Run the {self.agent.name} agent.",
                    "parameters": {"type": "object", "properties": properties, "required": required},
                },
            }
        ]

    def build_prompt(self, params: dict) -> str:
        if not self.inputs:
            return str(params.get("prompt", ""))
        values = {i.name: params.get(i.name, i.default_value or "") for i in self.inputs}
        return replace_prompt_inputs(self.agent.steps[0].prompt or "", values)

    def execute(self, tool_name: str, params: dict) -> Any:
        from agent_runner.agent_utils import create_agent_executor

        executor = create_agent_executor(
            self.app_config, self.workspace_id, self.agent, store=self.store, docrepo=self.docrepo
        )
        run = executor.run(
            "workflow",
            self.build_prompt(params),
            ExecutorOpts(engine=self.engine, model=self.model, abort_signal=self.abort_signal),
        )
        if run is None:
            return {"success": False, "error": "The agent received an empty prompt."}

        answer = run.messages[-1].content_for_model if run.messages else ""
        return {
            "success": run.status == "success",
            "status": run.status,
            "run_id": run.id,
            "content": answer,
            "error": run.error,
        }
