"""In-memory chat history backend.

Simple list-based storage for session-only history.
Data is lost when the application exits.
"""

from .base import HistoryStore
from .models import StoredMessage


class InMemoryHistoryStore(HistoryStore):
    """In-memory history store (session-only).

    Suitable for single-session use or testing.
    """

    def __init__(self, **limits: int):
        super().__init__(**limits)
        self._records: list[StoredMessage] = []

    async def connect(self) -> None:
        """Initialize memory (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close memory (no-op for in-memory)."""
        pass

    async def append(self, record: StoredMessage) -> None:
        for i, existing in enumerate(self._records):
            if existing.id == record.id:
                self._records[i] = record
                return

        self._records.append(record)
        self._evict(record.character_id)

    def _evict(self, character_id: str) -> None:
        own = [r for r in self._records if r.character_id == character_id]
        overflow = len(own) - self._per_character_limit
        if overflow > 0:
            stale = {r.id for r in own[:overflow]}
            self._records = [r for r in self._records if r.id not in stale]

        overflow = len(self._records) - self._max_records
        if overflow > 0:
            del self._records[:overflow]

    async def load(self, character_id: str, limit: int | None = None) -> list[StoredMessage]:
        records = [r for r in self._records if r.character_id == character_id]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    async def delete(self, record_id: str) -> None:
        self._records = [r for r in self._records if r.id != record_id]

    async def delete_character(self, character_id: str) -> int:
        before = len(self._records)
        self._records = [r for r in self._records if r.character_id != character_id]
        return before - len(self._records)

    async def clear(self) -> None:
        self._records.clear()

    async def count(self, character_id: str | None = None) -> int:
        if character_id is None:
            return len(self._records)
        return sum(1 for r in self._records if r.character_id == character_id)

    @property
    def backend_type(self) -> str:
        return "memory"
