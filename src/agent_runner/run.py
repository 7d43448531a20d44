# run.py
# Entry point. Config and wiring only, no logic lives here.
#
#   agent-runner agents/researcher.json "Summarize the latest release notes"
#
# Engines are OpenAI-compatible endpoints; see config.py for the variables.

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from agent_runner import display
from agent_runner.agent_utils import create_agent_executor
from agent_runner.config import load_config
from agent_runner.models import Agent
from agent_runner.store import AgentStore

WORKSPACE_ID = "default"


def main() -> None:
    parser = argparse.ArgumentParser(prog="agent-runner", description="Run an agent definition once.")
    parser.add_argument("agent_file", type=Path, help="Agent definition (JSON).")
    parser.add_argument("prompt", nargs="?", default=None, help="Prompt for the first step.")
    args = parser.parse_args()

    config = load_config()
    try:
        agent = Agent.model_validate_json(args.agent_file.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        display.halt(f"Cannot load {args.agent_file}: {exc}")
        sys.exit(1)

    display.banner(agent)
    executor = create_agent_executor(config, WORKSPACE_ID, agent, store=AgentStore(config.agents_dir))
    run = executor.run("manual", args.prompt)

    if run is None:
        sys.exit(1)
    if run.status != "success":
        sys.exit(2)
    display.final_result(run.messages[-1].content_for_model)


if __name__ == "__main__":
    main()
