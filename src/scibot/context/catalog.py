"""Context resolver backed by a lesson catalog and a progress tracker."""

from collections.abc import Iterable

from .base import ContextResolver
from .models import ChatContext, Lesson

DEFAULT_TOTAL_LESSONS = 8


class LessonCatalog:
    """Lookup table of lessons by id."""

    def __init__(self, lessons: Iterable[Lesson] = ()):
        self._lessons: dict[str, Lesson] = {lesson.id: lesson for lesson in lessons}

    def get(self, lesson_id: str) -> Lesson | None:
        return self._lessons.get(lesson_id)

    def add(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    def __len__(self) -> int:
        return len(self._lessons)


class ProgressTracker:
    """Completed modules per lesson."""

    def __init__(self, catalog: LessonCatalog):
        self._catalog = catalog
        self._completed: dict[str, set[str]] = {}

    def mark_module_completed(self, lesson_id: str, module_id: str) -> None:
        self._completed.setdefault(lesson_id, set()).add(module_id)

    def completion_percentage(self, lesson_id: str) -> float:
        """Fraction (0.0-1.0) of the lesson's modules completed."""
        lesson = self._catalog.get(lesson_id)
        if lesson is None or not lesson.modules:
            return 0.0
        done = self._completed.get(lesson_id, set())
        completed = sum(1 for m in lesson.modules if m.id in done)
        return completed / len(lesson.modules)

    def is_lesson_completed(self, lesson_id: str) -> bool:
        lesson = self._catalog.get(lesson_id)
        return lesson is not None and bool(lesson.modules) and self.completion_percentage(lesson_id) >= 1.0

    def completed_lessons_count(self) -> int:
        return sum(1 for lesson_id in self._completed if self.is_lesson_completed(lesson_id))


class CatalogContextResolver(ContextResolver):
    """Resolves chat context from in-process lesson and progress data."""

    def __init__(
        self,
        catalog: LessonCatalog,
        progress: ProgressTracker,
        total_lessons: int = DEFAULT_TOTAL_LESSONS,
    ):
        self._catalog = catalog
        self._progress = progress
        self._total_lessons = total_lessons

    def _overall(self) -> tuple[int, int]:
        completed = self._progress.completed_lessons_count()
        if self._total_lessons <= 0:
            return completed, 0
        return completed, round(completed / self._total_lessons * 100)

    async def current_context(self) -> ChatContext:
        completed, percentage = self._overall()
        return ChatContext(
            location="home",
            completed_lessons=completed,
            total_lessons=self._total_lessons,
            progress_percentage=percentage,
        )

    async def lesson_context(self, lesson_id: str) -> ChatContext:
        lesson = self._catalog.get(lesson_id)
        if lesson is None:
            return await self.current_context()

        completed, percentage = self._overall()
        return ChatContext(
            location="lesson",
            current_topic=lesson.topic_id,
            current_lesson=lesson.title,
            completed_lessons=completed,
            total_lessons=self._total_lessons,
            progress_percentage=percentage,
            lesson_progress=self._progress.completion_percentage(lesson_id),
        )

    async def module_context(self, lesson_id: str, module_index: int) -> ChatContext:
        lesson = self._catalog.get(lesson_id)
        if lesson is None or not 0 <= module_index < len(lesson.modules):
            return await self.current_context()

        module = lesson.modules[module_index]
        completed, percentage = self._overall()
        return ChatContext(
            location="module",
            current_topic=lesson.topic_id,
            current_lesson=lesson.title,
            current_module=module.title,
            current_module_type=module.type,
            completed_lessons=completed,
            total_lessons=self._total_lessons,
            progress_percentage=percentage,
            lesson_progress=self._progress.completion_percentage(lesson_id),
            module_index=module_index,
            total_modules=len(lesson.modules),
        )
