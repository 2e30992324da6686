"""Data models for persisted chat history.

These models define the stored record format, independent of the
storage backend used.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Retention limits for persisted history
MAX_PERSISTED_RECORDS = 400
MAX_PERSISTED_PER_CHARACTER = 100


class Sender(str, Enum):
    """Who wrote a stored message."""

    USER = "user"
    AI = "ai"


class StoredMessage(BaseModel):
    """One persisted chat message.

    Mirrors a finished in-memory message; streaming and error messages are
    never stored.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Message id, shared with the in-memory message")
    sender: Sender
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    character_id: str = Field(description="Tutor whose history this message belongs to")
    context: str | None = Field(default=None, description="Location tag such as 'home' or 'greeting'")
