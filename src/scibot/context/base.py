"""Abstract context resolver.

The chat orchestrator asks a resolver where the student is before every
send. Implementations hide where lessons and progress come from.
"""

from abc import ABC, abstractmethod

from .models import ChatContext


class ContextResolver(ABC):
    """Computes the student's current location and progress."""

    @abstractmethod
    async def current_context(self) -> ChatContext:
        """Context when no lesson is open (home screen)."""

    @abstractmethod
    async def lesson_context(self, lesson_id: str) -> ChatContext:
        """Context inside a lesson. Unknown lessons fall back to current_context()."""

    @abstractmethod
    async def module_context(self, lesson_id: str, module_index: int) -> ChatContext:
        """Context inside a lesson module. Unknown lessons or modules fall back to current_context()."""


def milestone_for(progress_percentage: int) -> str | None:
    """Milestone tag for celebration messages, if the percentage is one."""
    if progress_percentage in (25, 50, 75, 100):
        return f"milestone_{progress_percentage}"
    return None
