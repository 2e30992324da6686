"""Chat configuration loaded from the environment.

Values come from process environment variables, optionally seeded from a
``.env`` file via python-dotenv. Settings are read once at startup; a missing
or placeholder API key raises ConfigurationError so callers can disable the
chat feature while the rest of the app keeps working.

Environment variables:
    OPENAI_API_KEY: API key (required)
    OPENAI_MODEL: Model name (default: gpt-4-turbo-preview)
    OPENAI_TEMPERATURE: Sampling temperature (default: 0.7)
    OPENAI_MAX_TOKENS: Max tokens per reply (default: 500)
    OPENAI_BASE_URL: API root (default: https://api.openai.com/v1)
    SCIBOT_LLM_PROVIDER: 'openai' or 'http' (default: openai)
    SCIBOT_REQUEST_TIMEOUT: Seconds per request (default: 30)
    SCIBOT_IDLE_TIMEOUT: Seconds between streamed fragments (default: 15)
    SCIBOT_HISTORY_DB: SQLite history path (default: ./scibot_history.db)
    SCIBOT_LOG_LEVEL: Log level (default: WARNING)
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

PLACEHOLDER_API_KEY = "your_api_key_here"


class ConfigurationError(ValueError):
    """Chat configuration is missing or invalid."""


class ChatSettings(BaseModel):
    """Settings for the completion client and history store."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(min_length=1)
    model: str = "gpt-4-turbo-preview"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, gt=0)
    base_url: str = "https://api.openai.com/v1"
    provider: str = "openai"
    request_timeout: float = Field(default=30.0, gt=0)
    idle_timeout: float = Field(default=15.0, gt=0)
    history_db: Path = Path("./scibot_history.db")
    log_level: str = "WARNING"

    def client_config(self) -> dict:
        """Keyword arguments for create_completion_client()."""
        return {
            "api_key": self.api_key,
            "model": self.model,
            "base_url": self.base_url,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "request_timeout": self.request_timeout,
            "idle_timeout": self.idle_timeout,
        }


def is_configured_key(api_key: str | None) -> bool:
    return bool(api_key) and api_key != PLACEHOLDER_API_KEY


def load_chat_settings(env_file: str | Path | None = None) -> ChatSettings:
    """Load chat settings from the environment.

    Args:
        env_file: Optional .env path (default: search from the working directory)

    Returns:
        Validated ChatSettings

    Raises:
        ConfigurationError: If the API key is missing/placeholder or a value is invalid
    """
    load_dotenv(env_file)

    api_key = os.getenv("OPENAI_API_KEY", "")
    if not is_configured_key(api_key):
        raise ConfigurationError(
            "OpenAI API key not configured. Set OPENAI_API_KEY in the environment or .env file."
        )

    try:
        return ChatSettings(
            api_key=api_key,
            model=os.getenv("OPENAI_MODEL", "gpt-4-turbo-preview"),
            temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "500")),
            base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            provider=os.getenv("SCIBOT_LLM_PROVIDER", "openai").lower(),
            request_timeout=float(os.getenv("SCIBOT_REQUEST_TIMEOUT", "30")),
            idle_timeout=float(os.getenv("SCIBOT_IDLE_TIMEOUT", "15")),
            history_db=Path(os.getenv("SCIBOT_HISTORY_DB", "./scibot_history.db")),
            log_level=os.getenv("SCIBOT_LOG_LEVEL", "WARNING").upper(),
        )
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid chat configuration: {e}") from e
