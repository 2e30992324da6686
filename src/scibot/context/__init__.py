"""Student location and progress context for tutor prompts."""

from .base import ContextResolver, milestone_for
from .catalog import CatalogContextResolver, LessonCatalog, ProgressTracker
from .models import ChatContext, Lesson, LessonModule

__all__ = [
    "CatalogContextResolver",
    "ChatContext",
    "ContextResolver",
    "Lesson",
    "LessonCatalog",
    "LessonModule",
    "ProgressTracker",
    "milestone_for",
]
