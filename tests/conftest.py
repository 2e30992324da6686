"""Pytest configuration and shared fixtures."""
import asyncio
import os
from typing import Any

import pytest

from scibot.context import CatalogContextResolver, Lesson, LessonCatalog, LessonModule, ProgressTracker
from scibot.llm import ChatMessage, CompletionClient, LLMResponse, StreamingResponse
from scibot.memory.in_memory import InMemoryHistoryStore

CONFIG_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_TEMPERATURE",
    "OPENAI_MAX_TOKENS",
    "OPENAI_BASE_URL",
    "SCIBOT_LLM_PROVIDER",
    "SCIBOT_REQUEST_TIMEOUT",
    "SCIBOT_IDLE_TIMEOUT",
    "SCIBOT_HISTORY_DB",
    "SCIBOT_LOG_LEVEL",
)


class FakeCompletionClient(CompletionClient):
    """Scripted completion client.

    Each script is used for one streaming call (the last one repeats):
    a list of fragments, optionally containing an exception to raise
    mid-stream or HANG to stall forever, or an exception instance to
    raise when the stream is opened.
    """

    HANG = object()

    def __init__(self, *scripts: Any, idle_timeout: float | None = None):
        self.scripts = list(scripts) or [["Mitosis ", "is cell ", "division."]]
        self.idle_timeout = idle_timeout
        self.requests: list[list[ChatMessage]] = []
        self.max_tokens: list[int | None] = []
        self.streams: list[StreamingResponse] = []
        self.closed = False

    @property
    def model(self) -> str:
        return "fake-model"

    def _next_script(self) -> Any:
        if len(self.scripts) > 1:
            return self.scripts.pop(0)
        return self.scripts[0]

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        self.requests.append(list(messages))
        script = self._next_script()
        if isinstance(script, Exception):
            raise script
        return LLMResponse(content="".join(script), model=self.model)

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        self.requests.append(list(messages))
        self.max_tokens.append(max_tokens)
        script = self._next_script()
        if isinstance(script, Exception):
            raise script
        stream = StreamingResponse(self._generate(script), idle_timeout=self.idle_timeout)
        self.streams.append(stream)
        return stream

    async def _generate(self, script: list[Any]):
        for item in script:
            if isinstance(item, Exception):
                raise item
            if item is self.HANG:
                await asyncio.sleep(3600)
            # Give other tasks a chance to run between fragments
            await asyncio.sleep(0)
            yield item

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "openai": os.getenv("OPENAI_API_KEY"),
    }


@pytest.fixture
def clean_env(monkeypatch):
    """Remove chat configuration variables for the duration of a test.

    Each variable is set before being deleted so monkeypatch restores the
    original state even for variables that a loaded .env file adds.
    """
    for name in CONFIG_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def fake_client_class():
    """Return the scripted fake completion client class."""
    return FakeCompletionClient


@pytest.fixture
def fake_client():
    """Fake client that streams 'Mitosis is cell division.' in three fragments."""
    return FakeCompletionClient()


@pytest.fixture
def sample_lessons():
    """Return a small lesson catalog fixture."""
    return [
        Lesson(
            id="lesson_heredity_1",
            title="Mendelian Inheritance",
            topic_id="topic_heredity",
            modules=(
                LessonModule(id="m1", title="Mendel's Pea Plants", type="text"),
                LessonModule(id="m2", title="Punnett Squares", type="interactive"),
                LessonModule(id="m3", title="Check Your Understanding", type="quiz"),
            ),
        ),
        Lesson(
            id="lesson_energy_1",
            title="Photosynthesis and Respiration",
            topic_id="topic_energy",
            modules=(
                LessonModule(id="e1", title="Capturing Light Energy", type="text"),
                LessonModule(id="e2", title="Releasing Energy", type="video"),
            ),
        ),
    ]


@pytest.fixture
def catalog(sample_lessons):
    return LessonCatalog(sample_lessons)


@pytest.fixture
def progress(catalog):
    return ProgressTracker(catalog)


@pytest.fixture
def context_resolver(catalog, progress):
    """Context resolver over the sample catalog with 8 lessons in total."""
    return CatalogContextResolver(catalog, progress, total_lessons=8)


@pytest.fixture
def history_store():
    """Return an in-memory history store."""
    return InMemoryHistoryStore()
