import asyncio
from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import CompletionTimeoutError


class StreamingResponse:
    """Wrapper for streaming LLM responses with an idle-gap timeout.

    Acts as an async iterator for text chunks. Each wait for the next chunk
    is bounded by ``idle_timeout``; when it expires the underlying stream is
    closed and ``CompletionTimeoutError`` is raised.

    Usage:
        stream = await client.chat_completion_stream(messages)
        try:
            async for chunk in stream:
                print(chunk, end="")
        finally:
            await stream.aclose()
    """

    def __init__(self, async_iter: AsyncIterator[str], idle_timeout: float | None = None):
        """Initialize with an async iterator of text chunks.

        Args:
            async_iter: Async iterator yielding text chunks
            idle_timeout: Max seconds to wait for each chunk (None disables)
        """
        self._iter = async_iter
        self._idle_timeout = idle_timeout
        self._usage: dict[str, Any] | None = None
        self._closed = False

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage

    @property
    def closed(self) -> bool:
        return self._closed

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by provider at end of stream)."""
        self._usage = usage

    def __aiter__(self) -> "StreamingResponse":
        return self

    async def __anext__(self) -> str:
        """Get next chunk from the underlying iterator."""
        if self._closed:
            raise StopAsyncIteration
        try:
            if self._idle_timeout is None:
                return await self._iter.__anext__()
            return await asyncio.wait_for(self._iter.__anext__(), self._idle_timeout)
        except asyncio.TimeoutError as e:
            await self.aclose()
            raise CompletionTimeoutError(
                f"No stream data received for {self._idle_timeout}s"
            ) from e

    async def aclose(self) -> None:
        """Close the underlying stream, releasing its connection."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._iter, "aclose", None)
        if aclose is not None:
            await aclose()


class ChatMessage(BaseModel):
    """Represents a chat message in a completion request."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description="Role of the message sender: 'user', 'assistant', or 'system'")
    content: str = Field(description="Content of the message")


class LLMResponse(BaseModel):
    """Response from a single-shot completion."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Generated text content")
    model: str = Field(description="Model that generated the response")
    usage: dict[str, int] | None = Field(
        default=None,
        description="Token usage information"
    )
