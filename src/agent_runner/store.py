# store.py
# JSON file persistence for agents and their runs.
#
# Layout:
#   <agents_dir>/<agent_id>.json
#   <agents_dir>/<agent_id>/<run_id>.json
#
# Run files are replaced atomically so a viewer never reads a partial write.

import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from agent_runner import display
from agent_runner.models import Agent, AgentRun


class RunStore(Protocol):
    def save_run(self, run: AgentRun) -> None: ...

    def load_run(self, agent_id: str, run_id: str) -> AgentRun | None: ...


class AgentStore:
    """Agents and runs of one workspace."""

    def __init__(self, agents_dir: Path | str) -> None:
        self.agents_dir = Path(agents_dir)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _write(self, path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def load_agents(self) -> list[Agent]:
        if not self.agents_dir.is_dir():
            return []
        agents: list[Agent] = []
        for path in sorted(self.agents_dir.glob("*.json")):
            try:
                agents.append(Agent.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as exc:
                display.store_read_error(path, str(exc))
        return agents

    def save_agent(self, agent: Agent) -> None:
        self._write(self.agents_dir / f"{agent.id}.json", agent.model_dump_json(indent=2))

    def delete_agent(self, agent_id: str) -> bool:
        path = self.agents_dir / f"{agent_id}.json"
        if not path.exists():
            return False
        path.unlink()
        self.delete_runs(agent_id)
        return True

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def save_run(self, run: AgentRun) -> None:
        self._write(self.agents_dir / run.agent_id / f"{run.id}.json", run.model_dump_json(indent=2))

    def load_run(self, agent_id: str, run_id: str) -> AgentRun | None:
        path = self.agents_dir / agent_id / f"{run_id}.json"
        try:
            return AgentRun.model_validate_json(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as exc:
            display.store_read_error(path, str(exc))
            return None

    def list_runs(self, agent_id: str) -> list[AgentRun]:
        """Runs of an agent, oldest first."""
        runs_dir = self.agents_dir / agent_id
        if not runs_dir.is_dir():
            return []
        runs: list[AgentRun] = []
        for path in runs_dir.glob("*.json"):
            try:
                runs.append(AgentRun.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, ValidationError) as exc:
                display.store_read_error(path, str(exc))
        return sorted(runs, key=lambda run: run.created_at)

    def delete_run(self, agent_id: str, run_id: str) -> bool:
        path = self.agents_dir / agent_id / f"{run_id}.json"
        if not path.exists():
            return False
        path.unlink()
        return True

    def delete_runs(self, agent_id: str) -> None:
        shutil.rmtree(self.agents_dir / agent_id, ignore_errors=True)
