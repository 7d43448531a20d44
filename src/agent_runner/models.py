# models.py
# Data contracts for agent definitions, run records and generation chunks.
# Only small mutation helpers on Message and AgentRun live here.

import time
import uuid
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

AgentSource = Literal["local", "a2a"]
AgentType = Literal["runnable", "support"]
AgentRunTrigger = Literal["manual", "schedule", "webhook", "workflow"]
AgentRunStatus = Literal["running", "success", "canceled", "error"]
MessageRole = Literal["system", "user", "assistant"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"success", "canceled", "error"})


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------


class ContentChunk(BaseModel):
    type: Literal["content"] = "content"
    text: str | None = ""
    done: bool = False


class ToolChunk(BaseModel):
    type: Literal["tool"] = "tool"
    id: str
    name: str
    status: str = ""
    done: bool = False
    params: dict = Field(default_factory=dict)
    result: Any = None


class StatusChunk(BaseModel):
    """Remote task bookkeeping. No ids means the remote task is over."""

    type: Literal["status"] = "status"
    task_id: str | None = None
    context_id: str | None = None
    status: str | None = None


class ArtifactChunk(BaseModel):
    type: Literal["artifact"] = "artifact"
    name: str
    content: str


LlmChunk = Union[ContentChunk, ToolChunk, StatusChunk, ArtifactChunk]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Attachment(BaseModel):
    title: str
    mime_type: str = "text/plain"
    content: str = ""


class ToolCall(BaseModel):
    """Append-only log entry for one completed tool invocation."""

    id: str
    name: str
    done: bool = True
    params: dict = Field(default_factory=dict)
    result: Any = None


class A2AContext(BaseModel):
    current_task_id: str | None = None
    current_context_id: str | None = None


class Message(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=new_id)
    created_at: int = Field(default_factory=now_ms)
    role: MessageRole
    content: str = ""
    engine: str | None = None
    model: str | None = None
    status: str | None = None
    transient: bool = False
    agent_id: str | None = None
    agent_run_id: str | None = None
    a2a_context: A2AContext | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def content_for_model(self) -> str:
        """Content as it should be fed back into a later prompt."""
        return self.content.strip()

    def set_text(self, text: str) -> None:
        self.content = text
        self.transient = False
        self.status = None

    def append_text(self, chunk: ContentChunk) -> None:
        if chunk.text:
            self.content += chunk.text
        self.transient = not chunk.done
        if chunk.done:
            self.status = None

    def set_status(self, status: str | None) -> None:
        self.status = status
        self.transient = True

    def add_tool_call(self, chunk: ToolChunk) -> None:
        for call in self.tool_calls:
            if call.id == chunk.id:
                call.done = chunk.done
                call.params = chunk.params or call.params
                call.result = chunk.result
                return
        self.tool_calls.append(
            ToolCall(id=chunk.id, name=chunk.name, done=chunk.done, params=chunk.params, result=chunk.result)
        )

    def attach(self, attachment: Attachment) -> None:
        self.attachments.append(attachment)


# ---------------------------------------------------------------------------
# Agent definition
# ---------------------------------------------------------------------------


class AgentStep(BaseModel):
    """One unit of an agent workflow: one user/assistant exchange."""

    prompt: str | None = None
    description: str | None = None
    tools: list[str] | None = Field(
        default_factory=list,
        description="None enables every tool, [] none, otherwise an allow-list of tool names.",
    )
    agents: list[str] = Field(default_factory=list, description="Sub-agent ids exposed as tools.")
    docrepo: str | None = None
    json_schema: str | None = None
    structured_output: dict | None = None
    engine: str | None = None
    model: str | None = None


class Agent(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=new_id)
    source: AgentSource = "local"
    type: AgentType = "runnable"
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    last_run_id: str | None = None
    name: str = ""
    description: str = ""
    engine: str | None = None
    model: str | None = None
    model_opts: dict = Field(default_factory=dict)
    disable_streaming: bool = False
    locale: str = ""
    instructions: str = Field(default="", description="System prompt, or the base URL of an a2a agent.")
    parameters: list[dict] = Field(default_factory=list)
    steps: list[AgentStep] = Field(default_factory=lambda: [AgentStep()], min_length=1)
    schedule: str | None = None
    webhook_token: str | None = None
    invocation_values: dict[str, str] = Field(default_factory=dict)

    def duplicate(self, name_suffix: str = "Copy") -> "Agent":
        duplicated = self.model_copy(deep=True)
        duplicated.id = new_id()
        duplicated.created_at = duplicated.updated_at = now_ms()
        duplicated.last_run_id = None
        duplicated.name = f"{self.name} - {name_suffix}"
        return duplicated


# ---------------------------------------------------------------------------
# Run record
# ---------------------------------------------------------------------------


class AgentRun(BaseModel):
    """Mutable, persisted state of one agent execution."""

    id: str = Field(default_factory=new_id)
    agent_id: str
    trigger: AgentRunTrigger
    status: AgentRunStatus = "running"
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    prompt: str | None = None
    error: str | None = None
    messages: list[Message] = Field(default_factory=list)
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def set_status(self, status: AgentRunStatus, error: str | None = None) -> bool:
        """Transition the run. Terminal states never change again."""
        if self.is_terminal:
            return False
        self.status = status
        if error is not None:
            self.error = error
        self.updated_at = now_ms()
        return True
