"""Chat message model shared by the orchestrator, the UI feed and persistence."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..llm import ChatMessage
from ..memory import Sender, StoredMessage

ERROR_REPLY_TEXT = (
    "I'm having trouble connecting right now. "
    "Please check your internet connection and try again."
)

CHAT_DISABLED_TEXT = (
    "Chat is not available because the AI tutor is not configured. "
    "Ask your teacher to set up the API key."
)


def new_message_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A message in a tutor conversation.

    Messages are frozen. A streaming reply is represented by a sequence of
    provisional messages sharing one id, each replacing the previous one in
    the history, and finally by a message with ``is_streaming=False``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    character_id: str
    is_streaming: bool = False
    is_error: bool = False
    context: str | None = Field(default=None, description="Location tag: 'home', 'lesson', 'greeting', ...")

    @classmethod
    def user(cls, content: str, character_id: str, context: str | None = None) -> "Message":
        return cls(role=Role.USER, content=content, character_id=character_id, context=context)

    @classmethod
    def assistant(
        cls,
        content: str,
        character_id: str,
        context: str | None = None,
        is_streaming: bool = False,
        is_error: bool = False,
        id: str | None = None,
    ) -> "Message":
        fields = {}
        if id is not None:
            fields["id"] = id
        return cls(
            role=Role.ASSISTANT,
            content=content,
            character_id=character_id,
            context=context,
            is_streaming=is_streaming,
            is_error=is_error,
            **fields,
        )

    @property
    def is_user(self) -> bool:
        return self.role == Role.USER

    def to_api_format(self) -> ChatMessage:
        return ChatMessage(role=self.role.value, content=self.content)

    def to_record(self) -> StoredMessage:
        """Convert to a persistence record. Only finished messages are stored."""
        return StoredMessage(
            id=self.id,
            sender=Sender.USER if self.is_user else Sender.AI,
            text=self.content,
            timestamp=self.timestamp,
            character_id=self.character_id,
            context=self.context,
        )

    @classmethod
    def from_record(cls, record: StoredMessage) -> "Message":
        return cls(
            id=record.id,
            role=Role.USER if record.sender == Sender.USER else Role.ASSISTANT,
            content=record.text,
            timestamp=record.timestamp,
            character_id=record.character_id,
            context=record.context,
        )

    def __str__(self) -> str:
        preview = self.content[:50]
        return f"Message(role={self.role.value}, character={self.character_id}, content={preview!r})"
