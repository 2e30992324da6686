from .base import CompletionClient
from .errors import CompletionError, CompletionTimeoutError
from .factory import create_completion_client
from .models import ChatMessage, LLMResponse, StreamingResponse
from .providers import HTTPStreamProvider, OpenAIProvider

__all__ = [
    "CompletionClient",
    "CompletionError",
    "CompletionTimeoutError",
    "create_completion_client",
    "ChatMessage",
    "LLMResponse",
    "StreamingResponse",
    "HTTPStreamProvider",
    "OpenAIProvider",
]
