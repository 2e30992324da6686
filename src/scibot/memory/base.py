"""Abstract base class for chat history storage backends.

This module defines the interface for persisted chat history.
The abstraction hides:
- Storage format (SQLite, in-memory)
- Retention policy enforcement
- Connection management and corruption recovery
"""

from abc import ABC, abstractmethod

from .models import MAX_PERSISTED_PER_CHARACTER, MAX_PERSISTED_RECORDS, StoredMessage


class HistoryStore(ABC):
    """Abstract chat history backend.

    Records are kept in insertion order. ``append`` enforces two FIFO caps:
    ``per_character_limit`` records per character and ``max_records``
    overall; the oldest records are evicted first.
    """

    def __init__(
        self,
        max_records: int = MAX_PERSISTED_RECORDS,
        per_character_limit: int = MAX_PERSISTED_PER_CHARACTER,
    ):
        self._max_records = max_records
        self._per_character_limit = per_character_limit

    @property
    def max_records(self) -> int:
        return self._max_records

    @property
    def per_character_limit(self) -> int:
        return self._per_character_limit

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the storage backend."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the storage backend gracefully."""

    @abstractmethod
    async def append(self, record: StoredMessage) -> None:
        """Store a record, replacing any record with the same id in place."""

    @abstractmethod
    async def load(self, character_id: str, limit: int | None = None) -> list[StoredMessage]:
        """Load a character's records, oldest first.

        Args:
            character_id: Character whose history to load
            limit: Return only the newest ``limit`` records
        """

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        """Delete one record by id (missing ids are ignored)."""

    @abstractmethod
    async def delete_character(self, character_id: str) -> int:
        """Delete every record of a character. Returns the number deleted."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete all records."""

    @abstractmethod
    async def count(self, character_id: str | None = None) -> int:
        """Count records, optionally for one character."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def __aenter__(self) -> "HistoryStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
