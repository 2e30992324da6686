import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import openai
from openai import AsyncOpenAI

from ..base import CompletionClient
from ..errors import CompletionError, CompletionTimeoutError
from ..models import ChatMessage, LLMResponse, StreamingResponse

logger = logging.getLogger(__name__)


class OpenAIProvider(CompletionClient):
    """OpenAI chat-completions client built on the official SDK.

    Hidden design decisions:
    - OpenAI API client initialization
    - Message format conversion
    - Mapping SDK errors to CompletionError / CompletionTimeoutError
    - Request timeout and idle-gap timeout enforcement
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4-turbo-preview",
        base_url: str | None = None,
        organization: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        request_timeout: float = 30.0,
        idle_timeout: float | None = 15.0,
        **client_kwargs: Any
    ):
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Default model to use
            base_url: Optional custom API base URL
            organization: Optional organization ID
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens per reply
            request_timeout: Seconds allowed for one request
            idle_timeout: Seconds allowed between streamed fragments
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._request_timeout = request_timeout
        self._idle_timeout = idle_timeout
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            timeout=request_timeout,
            **client_kwargs
        )

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    def _request_params(
        self,
        messages: list[ChatMessage],
        temperature: float | None,
        max_tokens: int | None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "temperature": self._temperature if temperature is None else temperature,
            "max_tokens": self._max_tokens if max_tokens is None else max_tokens,
            **kwargs,
        }

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Generate a chat completion using OpenAI.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional OpenAI-specific parameters

        Returns:
            LLMResponse with generated content
        """
        request_params = self._request_params(messages, temperature, max_tokens, **kwargs)

        try:
            completion = await asyncio.wait_for(
                self._client.chat.completions.create(**request_params),
                self._request_timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise CompletionTimeoutError(
                f"Chat completion timed out after {self._request_timeout}s"
            ) from e
        except openai.APIError as e:
            raise CompletionError(f"Failed to get chat completion: {e}") from e

        if not completion.choices:
            raise CompletionError("Chat completion returned no choices")

        usage = None
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens
            }

        return LLMResponse(
            content=completion.choices[0].message.content or "",
            model=completion.model,
            usage=usage
        )

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Generate a streaming chat completion using OpenAI.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Additional OpenAI-specific parameters

        Returns:
            StreamingResponse that yields text chunks and captures usage info
        """
        request_params = self._request_params(messages, temperature, max_tokens, **kwargs)
        response = StreamingResponse(
            self._chat_stream_generator(request_params, lambda usage: response.set_usage(usage)),
            idle_timeout=self._idle_timeout,
        )
        return response

    async def _chat_stream_generator(
        self,
        request_params: dict[str, Any],
        on_usage: Callable[[dict[str, int]], None],
    ) -> AsyncIterator[str]:
        """Internal generator for Chat Completions streaming with usage capture."""
        try:
            stream = await self._client.chat.completions.create(
                **request_params,
                stream=True,
                stream_options={"include_usage": True},
            )
        except openai.APITimeoutError as e:
            raise CompletionTimeoutError("Timed out opening chat completion stream") from e
        except openai.APIError as e:
            raise CompletionError(f"Failed to stream chat: {e}") from e

        try:
            async for chunk in stream:
                if chunk.usage is not None:
                    on_usage({
                        "prompt_tokens": chunk.usage.prompt_tokens,
                        "completion_tokens": chunk.usage.completion_tokens,
                        "total_tokens": chunk.usage.total_tokens,
                    })
                # Chunks without text (role headers, usage-only) are skipped
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except openai.APITimeoutError as e:
            raise CompletionTimeoutError("Chat completion stream stalled") from e
        except openai.APIError as e:
            raise CompletionError(f"Failed to stream chat: {e}") from e
        finally:
            logger.debug("Closing OpenAI completion stream")
            await stream.close()

    async def close(self) -> None:
        """Close the OpenAI client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
