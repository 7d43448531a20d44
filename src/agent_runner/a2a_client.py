# a2a_client.py
# Streaming client for remote agents speaking the A2A protocol.
#
# A single JSON-RPC "message/stream" request is sent; the server answers with
# server-sent events whose payloads are task, status-update, artifact-update
# or message objects. They are turned into the chunk types executors consume.

import json
from contextlib import contextmanager
from typing import Iterator

import httpx

from agent_runner import display
from agent_runner.models import A2AContext, Agent, AgentStep, ArtifactChunk, ContentChunk, LlmChunk, StatusChunk, new_id


class A2AError(Exception):
    """The remote agent answered with a JSON-RPC error."""


class A2AClient:
    def __init__(self, base_url: str, http_client: httpx.Client | None = None, timeout: float = 60.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client
        self.timeout = timeout

    @contextmanager
    def _session(self) -> Iterator[httpx.Client]:
        if self.http_client is not None:
            yield self.http_client
            return
        with httpx.Client(timeout=self.timeout) as client:
            yield client

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def get_agent(self) -> Agent | None:
        """Build a local agent definition from the remote agent card."""
        try:
            with self._session() as client:
                response = client.get(f"{self.base_url}/.well-known/agent.json")
                response.raise_for_status()
                card = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            display.a2a_error(self.base_url, str(exc))
            return None

        return Agent(
            source="a2a",
            name=card.get("name", ""),
            description=card.get("description", ""),
            instructions=self.base_url,
            steps=[AgentStep(prompt="", description="", tools=[], agents=[])],
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, prompt: str, context: A2AContext | None = None) -> Iterator[LlmChunk]:
        """
        Send prompt to the remote agent and yield chunks as events arrive.

        context carries the task and context ids of an ongoing conversation.
        The stream always ends with a done content chunk.
        """
        task_id = context.current_task_id if context else None
        context_id = context.current_context_id if context else None
        artifacts: dict[str, dict] = {}

        message = {
            "messageId": new_id(),
            "kind": "message",
            "role": "user",
            "parts": [{"kind": "text", "text": prompt}],
        }
        if task_id:
            message["taskId"] = task_id
        if context_id:
            message["contextId"] = context_id

        payload = {
            "jsonrpc": "2.0",
            "id": new_id(),
            "method": "message/stream",
            "params": {"message": message},
        }

        display.a2a_started(self.base_url)

        with self._session() as client:
            with client.stream(
                "POST", self.base_url, json=payload, headers={"Accept": "text/event-stream"}
            ) as response:
                response.raise_for_status()
                for event in self._events(response):
                    kind = event.get("kind")

                    if kind == "task":
                        task_id = event.get("id")
                        context_id = event.get("contextId")
                        yield StatusChunk(task_id=task_id, context_id=context_id)

                    elif kind == "status-update":
                        if (event.get("taskId") and event["taskId"] != task_id) or (
                            event.get("contextId") and event["contextId"] != context_id
                        ):
                            task_id = event.get("taskId") or task_id
                            context_id = event.get("contextId") or context_id
                            yield StatusChunk(task_id=task_id, context_id=context_id)

                        status = event.get("status") or {}
                        text = _first_text(status.get("message"))
                        if text is not None:
                            if status.get("state") == "working":
                                yield StatusChunk(task_id=task_id, context_id=context_id, status=text)
                            else:
                                yield ContentChunk(text=text, done=False)

                        if status.get("state") != "input-required" and event.get("final"):
                            task_id = context_id = None
                            yield StatusChunk()

                    elif kind == "artifact-update":
                        artifact = event.get("artifact") or {}
                        artifact_id = artifact.get("artifactId", "")
                        entry = artifacts.setdefault(
                            artifact_id, {"name": artifact.get("name") or f"Artifact {artifact_id}", "content": ""}
                        )
                        for part in artifact.get("parts", []):
                            if part.get("kind") == "text":
                                entry["content"] += part.get("text", "")
                            elif part.get("kind") == "file":
                                file_name = (part.get("file") or {}).get("name", "")
                                entry["content"] += f"File: {file_name}"
                        if event.get("lastChunk") and entry["content"]:
                            yield ArtifactChunk(name=entry["name"], content=entry["content"])

                    elif kind == "message":
                        if (event.get("taskId") and event["taskId"] != task_id) or (
                            event.get("contextId") and event["contextId"] != context_id
                        ):
                            task_id = event.get("taskId") or task_id
                            context_id = event.get("contextId") or context_id
                            yield StatusChunk(task_id=task_id, context_id=context_id)
                        text = _all_text(event)
                        if text:
                            yield ContentChunk(text=text, done=False)

        yield ContentChunk(text="", done=True)

    @staticmethod
    def _events(response: httpx.Response) -> Iterator[dict]:
        """Parse server-sent events into JSON-RPC results."""
        data: list[str] = []
        for line in response.iter_lines():
            if line.startswith("data:"):
                data.append(line[5:].strip())
            elif not line.strip() and data:
                yield _unwrap("\n".join(data))
                data = []
        if data:
            yield _unwrap("\n".join(data))


def _unwrap(data: str) -> dict:
    envelope = json.loads(data)
    error = envelope.get("error")
    if error:
        raise A2AError(f"{error.get('code', '')} {error.get('message', 'remote agent error')}".strip())
    return envelope.get("result", envelope)


def _first_text(message: dict | None) -> str | None:
    if not message:
        return None
    parts = message.get("parts") or []
    if parts and parts[0].get("kind") == "text":
        return parts[0].get("text", "")
    return None


def _all_text(message: dict) -> str:
    return "".join(p.get("text", "") for p in message.get("parts", []) if p.get("kind") == "text")
