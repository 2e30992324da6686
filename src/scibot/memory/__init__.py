"""Chat history persistence for scibot.

Stores finished chat messages per tutor character with FIFO retention.
"""

from .base import HistoryStore
from .factory import create_history_store
from .models import MAX_PERSISTED_PER_CHARACTER, MAX_PERSISTED_RECORDS, Sender, StoredMessage

__all__ = [
    "HistoryStore",
    "MAX_PERSISTED_PER_CHARACTER",
    "MAX_PERSISTED_RECORDS",
    "Sender",
    "StoredMessage",
    "create_history_store",
]
