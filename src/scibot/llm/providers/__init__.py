from .http import HTTPStreamProvider
from .openai import OpenAIProvider

__all__ = ["HTTPStreamProvider", "OpenAIProvider"]
