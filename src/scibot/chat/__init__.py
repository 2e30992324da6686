"""Tutor chat: conversation state, streaming replies and snapshot feed."""

from .broadcast import Snapshot, SnapshotBroadcaster, Subscription
from .greetings import build_greeting, personalized_greeting, progress_greeting, return_greeting
from .models import CHAT_DISABLED_TEXT, ERROR_REPLY_TEXT, Message, Role
from .orchestrator import (
    API_HISTORY_WINDOW,
    MAX_IN_MEMORY_MESSAGES,
    ChatOrchestrator,
    ConversationStore,
)

__all__ = [
    "API_HISTORY_WINDOW",
    "CHAT_DISABLED_TEXT",
    "ChatOrchestrator",
    "ConversationStore",
    "ERROR_REPLY_TEXT",
    "MAX_IN_MEMORY_MESSAGES",
    "Message",
    "Role",
    "Snapshot",
    "SnapshotBroadcaster",
    "Subscription",
    "build_greeting",
    "personalized_greeting",
    "progress_greeting",
    "return_greeting",
]
