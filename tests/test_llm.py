"""Unit tests for the completion client layer."""
import asyncio
import json
import os

import httpx
import pytest
from hypothesis import given
from hypothesis import strategies as st

from scibot.llm import (
    ChatMessage,
    CompletionClient,
    CompletionError,
    CompletionTimeoutError,
    HTTPStreamProvider,
    OpenAIProvider,
    StreamingResponse,
    create_completion_client,
)
from scibot.llm.providers.http import extract_delta


def sse_body(*fragments: str, done: bool = True, extra_lines: tuple[str, ...] = ()) -> bytes:
    """Build a server-sent-event body carrying the given fragments."""
    lines = list(extra_lines)
    for fragment in fragments:
        payload = {"choices": [{"delta": {"content": fragment}}]}
        lines.append(f"data: {json.dumps(payload)}")
        lines.append("")
    if done:
        lines.append("data: [DONE]")
        lines.append("")
    return "\n".join(lines).encode()


def make_provider(handler, **kwargs) -> HTTPStreamProvider:
    return HTTPStreamProvider(
        api_key="sk-test",
        model="gpt-test",
        base_url="https://llm.example/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def collect(stream: StreamingResponse) -> list[str]:
    fragments = []
    try:
        async for fragment in stream:
            fragments.append(fragment)
    finally:
        await stream.aclose()
    return fragments


class TestCompletionClient:
    """Tests for CompletionClient interface."""

    def test_completion_client_is_abstract(self):
        """Test that CompletionClient cannot be instantiated directly."""
        with pytest.raises(TypeError):
            CompletionClient()  # type: ignore


class TestFactory:
    """Tests for create_completion_client."""

    def test_create_openai_provider(self):
        """Test creating the SDK-backed provider."""
        client = create_completion_client("openai", api_key="sk-test", model="gpt-4o-mini")

        assert isinstance(client, OpenAIProvider)
        assert client.model == "gpt-4o-mini"

    def test_create_http_provider_case_insensitive(self):
        """Test provider names are matched case-insensitively."""
        client = create_completion_client("HTTP", api_key="sk-test")

        assert isinstance(client, HTTPStreamProvider)
        assert client.model == "gpt-4-turbo-preview"

    def test_missing_api_key_raises_type_error(self):
        """Test that api_key is required."""
        with pytest.raises(TypeError, match="api_key"):
            create_completion_client("openai")

    def test_unknown_provider_raises_value_error(self):
        """Test that unsupported providers are rejected."""
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_completion_client("carrier-pigeon", api_key="sk-test")


class TestExtractDelta:
    """Tests for SSE payload parsing."""

    def test_extracts_content(self):
        """Test a well-formed delta frame."""
        assert extract_delta('{"choices": [{"delta": {"content": "Hel"}}]}') == "Hel"

    @pytest.mark.parametrize("data", [
        "not json",
        "{}",
        '{"choices": []}',
        '{"choices": [{"delta": {}}]}',
        '{"choices": [{"delta": {"content": null}}]}',
        '{"choices": [{"delta": {"content": 42}}]}',
        '{"choices": [{"delta": {"content": ""}}]}',
        '[1, 2, 3]',
    ])
    def test_malformed_frames_return_none(self, data: str):
        """Test that malformed or empty frames are skipped."""
        assert extract_delta(data) is None

    @given(st.text())
    def test_never_raises(self, data: str):
        """Property test: arbitrary payloads never raise."""
        result = extract_delta(data)
        assert result is None or isinstance(result, str)


class TestHTTPStreamProvider:
    """Tests for the raw SSE provider against a mock transport."""

    async def test_streams_fragments_until_done(self):
        """Test fragments are yielded in order and [DONE] ends the stream."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=sse_body("Mito", "sis ", "splits cells."))

        provider = make_provider(handler)
        stream = await provider.chat_completion_stream(
            [ChatMessage(role="user", content="What is mitosis?")]
        )

        assert await collect(stream) == ["Mito", "sis ", "splits cells."]
        assert stream.closed

        request = requests[0]
        assert request.url.path == "/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "gpt-test"
        assert body["stream"] is True
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 500
        assert body["messages"] == [{"role": "user", "content": "What is mitosis?"}]

        await provider.close()

    async def test_skips_malformed_and_non_data_lines(self):
        """Test that malformed frames and comments do not abort the stream."""
        body = sse_body(
            "A", "B",
            extra_lines=(": keep-alive", "data: {broken", "event: ping", ""),
        )
        provider = make_provider(lambda request: httpx.Response(200, content=body))

        stream = await provider.chat_completion_stream([ChatMessage(role="user", content="hi")])

        assert await collect(stream) == ["A", "B"]
        await provider.close()

    async def test_stream_ends_without_done_sentinel(self):
        """Test that connection close also ends the stream."""
        provider = make_provider(
            lambda request: httpx.Response(200, content=sse_body("only", done=False))
        )

        stream = await provider.chat_completion_stream([ChatMessage(role="user", content="hi")])

        assert await collect(stream) == ["only"]
        await provider.close()

    async def test_overrides_are_sent(self):
        """Test per-call temperature and max_tokens override the defaults."""
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, content=sse_body("ok"))

        provider = make_provider(handler, temperature=0.2, max_tokens=100)
        stream = await provider.chat_completion_stream(
            [ChatMessage(role="user", content="hi")], max_tokens=1000
        )
        await collect(stream)

        assert bodies[0]["temperature"] == 0.2
        assert bodies[0]["max_tokens"] == 1000
        await provider.close()

    async def test_non_200_stream_raises_completion_error(self):
        """Test that an error status is surfaced with status and body."""
        provider = make_provider(
            lambda request: httpx.Response(401, content=b'{"error": "invalid key"}')
        )
        stream = await provider.chat_completion_stream([ChatMessage(role="user", content="hi")])

        with pytest.raises(CompletionError, match="401 - .*invalid key"):
            await collect(stream)
        await provider.close()

    async def test_transport_timeout_raises_timeout_error(self):
        """Test that httpx timeouts map to CompletionTimeoutError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        provider = make_provider(handler)
        stream = await provider.chat_completion_stream([ChatMessage(role="user", content="hi")])

        with pytest.raises(CompletionTimeoutError):
            await collect(stream)
        await provider.close()

    async def test_connection_error_raises_completion_error(self):
        """Test that transport failures map to CompletionError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        provider = make_provider(handler)
        stream = await provider.chat_completion_stream([ChatMessage(role="user", content="hi")])

        with pytest.raises(CompletionError):
            await collect(stream)
        await provider.close()

    async def test_chat_completion_non_streaming(self):
        """Test single-shot completion parsing."""
        payload = {
            "model": "gpt-test-0125",
            "choices": [{"message": {"role": "assistant", "content": "Cells divide."}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 3, "total_tokens": 13},
        }
        provider = make_provider(lambda request: httpx.Response(200, json=payload))

        response = await provider.chat_completion([ChatMessage(role="user", content="hi")])

        assert response.content == "Cells divide."
        assert response.model == "gpt-test-0125"
        assert response.usage["total_tokens"] == 13
        await provider.close()

    async def test_chat_completion_bounded_by_request_timeout(self):
        """Test a stalled single-shot response is cut off after request_timeout."""
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(3)
            return httpx.Response(200, json={})

        provider = make_provider(handler, request_timeout=0.2)

        with pytest.raises(CompletionTimeoutError, match="0.2s"):
            await asyncio.wait_for(
                provider.chat_completion([ChatMessage(role="user", content="hi")]), 2
            )
        await provider.close()

    async def test_chat_completion_error_status(self):
        """Test single-shot completion error status."""
        provider = make_provider(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(CompletionError, match="500 - boom"):
            await provider.chat_completion([ChatMessage(role="user", content="hi")])
        await provider.close()

    async def test_chat_completion_unexpected_format(self):
        """Test that an unexpected body raises CompletionError."""
        provider = make_provider(lambda request: httpx.Response(200, json={"nope": True}))

        with pytest.raises(CompletionError, match="Unexpected response format"):
            await provider.chat_completion([ChatMessage(role="user", content="hi")])
        await provider.close()


class TestStreamingResponse:
    """Tests for the streaming wrapper."""

    async def test_iterates_fragments(self):
        """Test plain iteration over an async generator."""
        async def gen():
            yield "a"
            yield "b"

        assert await collect(StreamingResponse(gen())) == ["a", "b"]

    async def test_idle_timeout_raises_and_closes(self):
        """Test that a stalled stream raises CompletionTimeoutError and is closed."""
        async def gen():
            yield "first"
            await asyncio.sleep(3600)
            yield "never"

        stream = StreamingResponse(gen(), idle_timeout=0.05)

        assert await stream.__anext__() == "first"
        with pytest.raises(CompletionTimeoutError):
            await stream.__anext__()
        assert stream.closed

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    async def test_aclose_runs_generator_cleanup(self):
        """Test that closing early runs the source generator's finally block."""
        cleaned = []

        async def gen():
            try:
                yield "a"
                yield "b"
            finally:
                cleaned.append(True)

        stream = StreamingResponse(gen())
        assert await stream.__anext__() == "a"
        await stream.aclose()
        await stream.aclose()

        assert cleaned == [True]
        assert stream.closed

    def test_usage_is_set_by_provider(self):
        """Test usage bookkeeping."""
        async def gen():
            yield "a"

        stream = StreamingResponse(gen())
        assert stream.usage is None
        stream.set_usage({"total_tokens": 5})
        assert stream.usage == {"total_tokens": 5}


class TestChatMessage:
    """Tests for ChatMessage model."""

    def test_chat_message_is_frozen(self):
        """Test that messages cannot be mutated."""
        message = ChatMessage(role="user", content="hi")
        with pytest.raises(ValueError):
            message.content = "changed"  # type: ignore


@pytest.mark.integration
class TestOpenAIProviderIntegration:
    """Integration tests against the real API (skipped without a key)."""

    @pytest.fixture
    def provider(self, api_keys):
        key = api_keys["openai"]
        if not key or key == "your_api_key_here":
            pytest.skip("OPENAI_API_KEY not set")
        return OpenAIProvider(api_key=key, model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"), max_tokens=20)

    async def test_stream_short_reply(self, provider):
        """Test that a short reply streams at least one fragment."""
        stream = await provider.chat_completion_stream(
            [ChatMessage(role="user", content="Say the word 'cell'.")]
        )
        fragments = await collect(stream)

        assert "".join(fragments).strip()
        await provider.close()
