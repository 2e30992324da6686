"""Data models describing where the student is and how far along they are."""

from pydantic import BaseModel, ConfigDict, Field


class LessonModule(BaseModel):
    """One module (page) of a lesson."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    type: str = Field(default="text", description="Module kind, e.g. 'text', 'video', 'quiz'")


class Lesson(BaseModel):
    """A lesson belonging to a topic."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    topic_id: str
    modules: tuple[LessonModule, ...] = ()


class ChatContext(BaseModel):
    """Snapshot of the student's location and progress for prompt building."""

    model_config = ConfigDict(frozen=True)

    location: str = Field(description="'home', 'lesson' or 'module'")
    current_topic: str | None = None
    current_lesson: str | None = None
    current_module: str | None = None
    current_module_type: str | None = None
    completed_lessons: int = 0
    total_lessons: int = 0
    progress_percentage: int = 0
    lesson_progress: float | None = Field(default=None, description="0.0-1.0 for the current lesson")
    module_index: int | None = None
    total_modules: int | None = None

    def to_prompt_context(self) -> str:
        """Render the context as the text block embedded in system prompts."""
        lines = [f"User is currently: {self.location}"]

        if self.current_topic is not None:
            lines.append(f"Topic: {self.current_topic}")
        if self.current_lesson is not None:
            lines.append(f"Lesson: {self.current_lesson}")
        if self.current_module is not None:
            lines.append(f"Module: {self.current_module} ({self.current_module_type})")
            if self.module_index is not None and self.total_modules is not None:
                lines.append(f"Part {self.module_index + 1} of {self.total_modules}")

        lines.append(
            f"Progress: {self.completed_lessons}/{self.total_lessons} lessons "
            f"({self.progress_percentage}%)"
        )

        if self.lesson_progress is not None:
            lines.append(f"Current lesson progress: {int(self.lesson_progress * 100)}%")

        return "\n".join(lines) + "\n"
