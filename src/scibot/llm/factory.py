from typing import Any

from .base import CompletionClient
from .providers import HTTPStreamProvider, OpenAIProvider


def create_completion_client(provider: str, **config: Any) -> CompletionClient:
    """Create a completion client instance.

    This factory function hides the instantiation logic for different clients.

    Args:
        provider: Client type ('openai' or 'http')
        **config: Client-specific configuration
            For OpenAI (official SDK):
                - api_key: str (required)
                - model: str (default: 'gpt-4-turbo-preview')
                - base_url: str | None
                - organization: str | None
            For HTTP (raw SSE over httpx, any OpenAI-compatible endpoint):
                - api_key: str (required)
                - model: str (default: 'gpt-4-turbo-preview')
                - base_url: str (default: 'https://api.openai.com/v1')
            Both accept temperature, max_tokens, request_timeout, idle_timeout.

    Returns:
        Initialized completion client

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> client = create_completion_client(
        ...     "openai",
        ...     api_key="sk-...",
        ...     model="gpt-4o-mini"
        ... )
    """
    provider_lower = provider.lower()

    if provider_lower == "openai":
        if "api_key" not in config:
            raise TypeError("OpenAI provider requires 'api_key' in config")
        return OpenAIProvider(**config)

    if provider_lower == "http":
        if "api_key" not in config:
            raise TypeError("HTTP provider requires 'api_key' in config")
        return HTTPStreamProvider(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'openai', 'http'"
    )
