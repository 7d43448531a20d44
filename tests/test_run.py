import sys
from unittest.mock import patch

import pytest

from agent_runner import run as cli
from agent_runner.models import Agent, AgentRun, AgentStep, Message


@pytest.fixture
def agent_file(tmp_path):
    path = tmp_path / "agent.json"
    path.write_text(Agent(name="CLI", steps=[AgentStep(prompt="hello")]).model_dump_json(), encoding="utf-8")
    return path


@patch("agent_runner.run.display")
@patch("agent_runner.run.create_agent_executor")
def test_main_runs_agent_and_prints_result(mock_create, mock_display, agent_file, monkeypatch):
    run = AgentRun(agent_id="a", trigger="manual", status="success")
    run.messages.append(Message(role="assistant", content="Hi there"))
    mock_create.return_value.run.return_value = run
    monkeypatch.setattr(sys, "argv", ["agent-runner", str(agent_file), "Greet me"])

    cli.main()

    mock_create.return_value.run.assert_called_once_with("manual", "Greet me")
    mock_display.final_result.assert_called_once_with("Hi there")


@patch("agent_runner.run.display")
@patch("agent_runner.run.create_agent_executor")
def test_main_exits_on_failed_run(mock_create, mock_display, agent_file, monkeypatch):
    mock_create.return_value.run.return_value = AgentRun(agent_id="a", trigger="manual", status="error")
    monkeypatch.setattr(sys, "argv", ["agent-runner", str(agent_file)])

    with pytest.raises(SystemExit) as exc:
        cli.main()

    assert exc.value.code == 2
    mock_display.final_result.assert_not_called()


@patch("agent_runner.run.display")
def test_main_rejects_invalid_agent_file(mock_display, tmp_path, monkeypatch):
    path = tmp_path / "bad.json"
    path.write_text('{"steps": []}', encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["agent-runner", str(path)])

    with pytest.raises(SystemExit) as exc:
        cli.main()

    assert exc.value.code == 1
    mock_display.halt.assert_called_once()
