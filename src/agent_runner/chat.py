# chat.py
# A live conversation view that executors mirror a run into.
#
# Messages are shared by reference with the run record, so text appended by
# an executor is immediately visible to whoever holds the chat.

from pydantic import BaseModel, ConfigDict, Field

from agent_runner.models import Message, new_id


class Chat(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=new_id)
    title: str | None = None
    engine: str | None = None
    model: str | None = None
    locale: str | None = None
    model_opts: dict | None = None
    messages: list[Message] = Field(default_factory=list)

    def add_message(self, message: Message) -> None:
        self.messages.append(message)

    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def has_title(self) -> bool:
        return bool(self.title and self.title.strip())

    def set_engine_model(self, engine: str, model: str) -> None:
        self.engine = engine
        self.model = model
