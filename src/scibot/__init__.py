"""
SCI-Bot: AI tutor chat core for a Grade 9 science learning app.

Each module hides one design decision: which LLM endpoint is used (llm),
how history is stored (memory), where the student is (context), and how
conversations are coordinated (chat).
"""

__version__ = "0.1.0"

from .characters import CHARACTERS, Character, get_character, get_character_for_topic
from .chat import ChatOrchestrator, Message, Role
from .config import ChatSettings, ConfigurationError, load_chat_settings

__all__ = [
    "CHARACTERS",
    "Character",
    "ChatOrchestrator",
    "ChatSettings",
    "ConfigurationError",
    "Message",
    "Role",
    "get_character",
    "get_character_for_topic",
    "load_chat_settings",
]
