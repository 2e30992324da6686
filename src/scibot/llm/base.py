from abc import ABC, abstractmethod
from typing import Any

from .models import ChatMessage, LLMResponse, StreamingResponse


class CompletionClient(ABC):
    """Abstract base class for chat-completion clients.

    This module hides the design decision of how the tutor talks to the
    language model. Implementations must handle:
    - API client setup and authentication
    - Request/response format conversion
    - Per-call and idle-gap timeouts
    - Mapping transport failures to CompletionError

    Supports async context manager protocol for proper resource cleanup:
        async with client:
            response = await client.chat_completion(messages)
    """

    @property
    @abstractmethod
    def model(self) -> str:
        """Default model name used for requests."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a single-shot chat completion.

        Args:
            messages: List of chat messages forming the conversation
            temperature: Sampling temperature (None uses the client default)
            max_tokens: Maximum tokens to generate (None uses the client default)
            **kwargs: Provider-specific parameters

        Returns:
            LLMResponse containing generated content and metadata

        Raises:
            CompletionTimeoutError: If the request exceeds its timeout
            CompletionError: On transport, status or payload errors
        """

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Generate a streaming chat completion.

        Args:
            messages: List of chat messages forming the conversation
            temperature: Sampling temperature (None uses the client default)
            max_tokens: Maximum tokens to generate (None uses the client default)
            **kwargs: Provider-specific parameters

        Returns:
            StreamingResponse that yields text fragments. Iteration raises
            CompletionTimeoutError or CompletionError on failure.
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def __aenter__(self) -> "CompletionClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
