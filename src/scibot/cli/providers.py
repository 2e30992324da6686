"""Provider factory functions for CLI.

Centralizes creation of settings, completion client, history store and
orchestrator from environment variables.
Hides configuration details from command implementations.
"""

import logging
import os

from rich.console import Console

from ..chat import ChatOrchestrator
from ..config import ChatSettings, ConfigurationError, load_chat_settings
from ..context import CatalogContextResolver, Lesson, LessonCatalog, LessonModule, ProgressTracker
from ..llm import CompletionClient, create_completion_client
from ..memory import HistoryStore, create_history_store

logger = logging.getLogger(__name__)

# Default console for output
_console = Console()


def _lesson(lesson_id: str, title: str, topic_id: str, modules: list[tuple[str, str]]) -> Lesson:
    return Lesson(
        id=lesson_id,
        title=title,
        topic_id=topic_id,
        modules=tuple(
            LessonModule(id=f"{lesson_id}_m{i + 1}", title=module_title, type=module_type)
            for i, (module_title, module_type) in enumerate(modules)
        ),
    )


DEFAULT_LESSONS = (
    _lesson("lesson_circulation_1", "The Circulatory System", "topic_body_systems", [
        ("Parts of the Heart", "text"), ("Blood Vessels", "video"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_circulation_2", "Gas Exchange", "topic_body_systems", [
        ("The Respiratory System", "text"), ("Alveoli at Work", "video"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_circulation_3", "Keeping the Heart Healthy", "topic_body_systems", [
        ("Lifestyle and Circulation", "text"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_heredity_1", "Mendelian Inheritance", "topic_heredity", [
        ("Mendel's Pea Plants", "text"), ("Punnett Squares", "interactive"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_heredity_2", "Non-Mendelian Inheritance", "topic_heredity", [
        ("Incomplete Dominance", "text"), ("Codominance", "text"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_heredity_3", "DNA and Variation", "topic_heredity", [
        ("Structure of DNA", "text"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_energy_1", "Photosynthesis and Respiration", "topic_energy", [
        ("Capturing Light Energy", "text"), ("Releasing Energy", "video"), ("Check Your Understanding", "quiz"),
    ]),
    _lesson("lesson_energy_2", "Energy Flow in Ecosystems", "topic_energy", [
        ("Food Chains and Webs", "text"), ("Energy Pyramids", "interactive"), ("Check Your Understanding", "quiz"),
    ]),
)


def get_settings(console: Console | None = None) -> ChatSettings | None:
    """Load chat settings, reporting configuration problems once.

    Returns:
        ChatSettings, or None if chat is not configured
    """
    con = console or _console
    try:
        return load_chat_settings()
    except ConfigurationError as e:
        logger.warning("Chat disabled: %s", e)
        con.print(f"[yellow]Warning: {e} Chat features disabled.[/yellow]")
        return None


def get_client(settings: ChatSettings | None) -> CompletionClient | None:
    """Create the completion client, or None when chat is disabled."""
    if settings is None:
        return None
    return create_completion_client(settings.provider, **settings.client_config())


def get_history_store(settings: ChatSettings | None) -> HistoryStore:
    """Create the SQLite history store.

    Environment variables:
        SCIBOT_HISTORY_DB: Database path (default: ./scibot_history.db)
    """
    if settings is None:
        path = os.getenv("SCIBOT_HISTORY_DB", "./scibot_history.db")
    else:
        path = settings.history_db
    return create_history_store("sqlite", path=path)


def get_context_resolver() -> CatalogContextResolver:
    catalog = LessonCatalog(DEFAULT_LESSONS)
    return CatalogContextResolver(catalog, ProgressTracker(catalog))


def build_orchestrator(
    client: CompletionClient | None,
    history_store: HistoryStore,
    character_id: str = "aristotle",
) -> ChatOrchestrator:
    return ChatOrchestrator(
        client,
        get_context_resolver(),
        history_store=history_store,
        initial_character=character_id,
    )
