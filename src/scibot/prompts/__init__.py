"""Tutor system prompts.

Each character's persona lives in ``<character_id>.txt`` beside this module.
A ``prompts/<character_id>.txt`` in the working directory replaces the
packaged file, so a classroom can adjust a tutor without reinstalling.
"""

from functools import lru_cache
from pathlib import Path

_PACKAGE_DIR = Path(__file__).parent


def _candidates(name: str) -> tuple[Path, Path]:
    filename = f"{name}.txt"
    return Path.cwd() / "prompts" / filename, _PACKAGE_DIR / filename


@lru_cache(maxsize=8)
def load_prompt(name: str) -> str:
    """Read a prompt file, preferring a working-directory override.

    Args:
        name: Prompt name without the .txt suffix (a character id)

    Returns:
        Raw prompt text

    Raises:
        FileNotFoundError: If neither location has the file
    """
    for path in _candidates(name):
        if path.is_file():
            return path.read_text(encoding="utf-8")

    searched = "\n".join(f"  - {path}" for path in _candidates(name))
    raise FileNotFoundError(f"Prompt '{name}' not found. Searched:\n{searched}")


def get_character_prompt(character_id: str) -> str:
    """System prompt for a tutor, without surrounding whitespace."""
    return load_prompt(character_id).strip()


def clear_cache() -> None:
    """Forget loaded prompts so edited files are picked up."""
    load_prompt.cache_clear()


__all__ = [
    "clear_cache",
    "get_character_prompt",
    "load_prompt",
]
