from unittest.mock import patch

from agent_runner.docrepo import InMemoryDocRepo, render_context
from agent_runner.models import Agent, AgentRun, Message
from agent_runner.store import AgentStore

# ---------------------------------------------------------------------------
# Agent store
# ---------------------------------------------------------------------------

def test_agents_round_trip(tmp_path):
    store = AgentStore(tmp_path / "agents")
    assert store.load_agents() == []

    agent = Agent(name="Writer")
    store.save_agent(agent)

    loaded = store.load_agents()
    assert [a.id for a in loaded] == [agent.id]
    assert loaded[0].name == "Writer"


@patch("agent_runner.store.display")
def test_unreadable_agent_files_are_skipped(mock_display, tmp_path):
    store = AgentStore(tmp_path)
    store.save_agent(Agent(name="Good"))
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    assert [a.name for a in store.load_agents()] == ["Good"]
    mock_display.store_read_error.assert_called_once()


def test_runs_are_saved_atomically_and_listed_oldest_first(tmp_path):
    store = AgentStore(tmp_path)
    first = AgentRun(agent_id="a1", trigger="manual", created_at=1)
    second = AgentRun(agent_id="a1", trigger="schedule", created_at=2)
    second.messages.append(Message(role="user", content="hi"))

    store.save_run(second)
    store.save_run(first)
    first.set_status("success")
    store.save_run(first)

    assert [r.id for r in store.list_runs("a1")] == [first.id, second.id]
    assert store.load_run("a1", first.id).status == "success"
    assert store.load_run("a1", second.id).messages[0].content == "hi"
    assert not list((tmp_path / "a1").glob("*.tmp"))


def test_missing_runs(tmp_path):
    store = AgentStore(tmp_path)
    assert store.load_run("a1", "nope") is None
    assert store.list_runs("a1") == []
    assert store.delete_run("a1", "nope") is False


def test_delete_run_and_agent(tmp_path):
    store = AgentStore(tmp_path)
    agent = Agent()
    store.save_agent(agent)
    runs = [AgentRun(agent_id=agent.id, trigger="manual") for _ in range(2)]
    for run in runs:
        store.save_run(run)

    assert store.delete_run(agent.id, runs[0].id) is True
    assert [r.id for r in store.list_runs(agent.id)] == [runs[1].id]

    assert store.delete_agent(agent.id) is True
    assert store.load_agents() == []
    assert store.list_runs(agent.id) == []
    assert store.delete_agent(agent.id) is False

# ---------------------------------------------------------------------------
# Document repository
# ---------------------------------------------------------------------------

def test_docrepo_ranks_by_overlap():
    repo = InMemoryDocRepo(max_results=2)
    repo.add_document("kb", "Python packaging uses pyproject files.", source="guide")
    repo.add_document("kb", "Cats sleep a lot.")
    repo.add_document("kb", "Packaging Python wheels and pyproject metadata explained.")
    repo.add_document("other", "Python packaging elsewhere.")

    items = repo.query("kb", "python packaging pyproject metadata")

    assert len(items) == 2
    assert items[0].content.startswith("Packaging Python wheels")
    assert items[1].metadata == {"source": "guide"}
    assert render_context(items).count("\n\n") == 1


def test_docrepo_unknown_repo_or_empty_query():
    repo = InMemoryDocRepo()
    repo.add_document("kb", "content here")
    assert repo.query("missing", "content") == []
    assert repo.query("kb", "a") == []
