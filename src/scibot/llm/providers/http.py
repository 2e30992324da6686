"""Raw HTTP client for OpenAI-compatible chat-completions endpoints.

Talks to ``POST {base_url}/chat/completions`` directly with httpx and parses
the server-sent-event stream itself:

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

Frames that are not valid JSON or carry no string ``delta.content`` are
skipped without aborting the stream.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ..base import CompletionClient
from ..errors import CompletionError, CompletionTimeoutError
from ..models import ChatMessage, LLMResponse, StreamingResponse

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


def extract_delta(data: str) -> str | None:
    """Return the text fragment carried by one ``data:`` payload.

    Returns None for malformed or empty frames.
    """
    try:
        payload = json.loads(data)
        content = payload["choices"][0]["delta"].get("content")
    except (ValueError, KeyError, IndexError, TypeError, AttributeError):
        logger.debug("Skipping malformed stream frame: %.80s", data)
        return None
    if not isinstance(content, str) or not content:
        return None
    return content


class HTTPStreamProvider(CompletionClient):
    """Chat-completions client over plain httpx.

    Hidden design decisions:
    - Wire format of the request body and the SSE response
    - Bearer-token authentication
    - Connect/read timeouts and idle-gap timeout
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4-turbo-preview",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.7,
        max_tokens: int = 500,
        request_timeout: float = 30.0,
        idle_timeout: float | None = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP provider.

        Args:
            api_key: API key sent as a bearer token
            model: Default model to use
            base_url: API root; requests go to ``{base_url}/chat/completions``
            temperature: Default sampling temperature
            max_tokens: Default maximum tokens per reply
            request_timeout: Seconds allowed for connect and each read
            idle_timeout: Seconds allowed between streamed fragments
            transport: Optional httpx transport (used by tests)
        """
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._request_timeout = request_timeout
        self._idle_timeout = idle_timeout
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(request_timeout),
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._model

    def _build_body(
        self,
        messages: list[ChatMessage],
        temperature: float | None,
        max_tokens: int | None,
        stream: bool,
        **kwargs: Any,
    ) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
            "temperature": self._temperature if temperature is None else temperature,
            "max_tokens": self._max_tokens if max_tokens is None else max_tokens,
            "stream": stream,
            **kwargs,
        }

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        body = self._build_body(messages, temperature, max_tokens, stream=False, **kwargs)

        try:
            resp = await asyncio.wait_for(
                self._client.post("/chat/completions", json=body),
                self._request_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise CompletionTimeoutError(
                f"Chat completion timed out after {self._request_timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise CompletionError(f"Failed to get chat completion: {e}") from e

        if resp.status_code != 200:
            raise CompletionError(f"Chat completion API error: {resp.status_code} - {resp.text}")

        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError("Unexpected response format from chat completion API") from e

        return LLMResponse(
            content=content or "",
            model=data.get("model", self._model),
            usage=data.get("usage"),
        )

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        body = self._build_body(messages, temperature, max_tokens, stream=True, **kwargs)
        return StreamingResponse(self._stream_generator(body), idle_timeout=self._idle_timeout)

    async def _stream_generator(self, body: dict[str, Any]) -> AsyncIterator[str]:
        """Yield fragments until the [DONE] sentinel or connection close."""
        try:
            async with self._client.stream("POST", "/chat/completions", json=body) as response:
                if response.status_code != 200:
                    error_body = (await response.aread()).decode("utf-8", errors="replace")
                    raise CompletionError(
                        f"Chat completion API error: {response.status_code} - {error_body}"
                    )

                async for line in response.aiter_lines():
                    if not line.startswith(DATA_PREFIX):
                        continue
                    data = line[len(DATA_PREFIX):].strip()
                    if data == DONE_SENTINEL:
                        break
                    fragment = extract_delta(data)
                    if fragment:
                        yield fragment
        except httpx.TimeoutException as e:
            raise CompletionTimeoutError("Chat completion stream timed out") from e
        except httpx.HTTPError as e:
            raise CompletionError(f"Failed to stream chat: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
