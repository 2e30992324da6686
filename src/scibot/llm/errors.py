"""Exceptions raised by completion clients."""


class CompletionError(Exception):
    """A chat completion request failed (transport, API status or payload)."""


class CompletionTimeoutError(CompletionError):
    """A chat completion exceeded its request or idle timeout."""
