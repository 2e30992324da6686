"""The four SCI-Bot tutor characters.

Characters are static: Aristotle is the general guide, and three historical
scientists act as topic experts. System prompts are loaded from the packaged
prompt files on first use.
"""

from pydantic import BaseModel, ConfigDict, Field

from .prompts import get_character_prompt


class Character(BaseModel):
    """An AI tutor persona."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    specialization: str
    greeting: str
    topic_ids: tuple[str, ...] = Field(default=())
    conversation_starters: tuple[str, ...] = Field(default=())
    expertise: str | None = Field(default=None, description="Short phrase used in cross-expert redirects")
    topic_title: str | None = Field(default=None, description="Topic screen where this expert lives")

    @property
    def system_prompt(self) -> str:
        return get_character_prompt(self.id)

    @property
    def is_expert(self) -> bool:
        return self.id != ARISTOTLE.id


ARISTOTLE = Character(
    id="aristotle",
    name="Aristotle",
    specialization="Father of Biology - AI Companion",
    greeting=(
        "Hello! I'm Aristotle, the Father of Biology and your AI companion here in SCI-Bot. "
        "How can I help you learn today?"
    ),
    conversation_starters=(
        "What topics can I learn?",
        "How is my progress so far?",
        "Tell me a science fact!",
    ),
)

HEROPHILUS = Character(
    id="herophilus",
    name="Herophilus",
    specialization="Circulation & Gas Exchange",
    greeting=(
        "Greetings! I am Herophilus, ancient physician and anatomist. "
        "Let me guide you through the wonders of the circulatory system!"
    ),
    topic_ids=("topic_body_systems", "circulation"),
    conversation_starters=(
        "How does the heart pump blood?",
        "Explain gas exchange simply",
        "What are the parts of the circulatory system?",
    ),
    expertise="circulation and gas exchange",
    topic_title="Body Systems",
)

MENDEL = Character(
    id="mendel",
    name="Gregor Mendel",
    specialization="Heredity & Variation",
    greeting=(
        "Welcome! I am Gregor Mendel, the father of genetics. "
        "Let us explore the fascinating world of heredity together!"
    ),
    topic_ids=("topic_heredity", "heredity"),
    conversation_starters=(
        "What is heredity?",
        "How do Punnett squares work?",
        "Why do I look like my parents?",
    ),
    expertise="heredity and variation",
    topic_title="Heredity and Variation",
)

ODUM = Character(
    id="odum",
    name="Eugene Odum",
    specialization="Energy in the Ecosystem",
    greeting=(
        "Hello! I'm Eugene Odum, ecologist and systems thinker. "
        "Ready to explore how energy flows through nature?"
    ),
    topic_ids=("topic_energy", "energy"),
    conversation_starters=(
        "What is an ecosystem?",
        "Explain how food chains work",
        "How does energy flow in nature?",
    ),
    expertise="energy and ecosystems",
    topic_title="Energy in Ecosystems",
)

CHARACTERS: dict[str, Character] = {
    c.id: c for c in (ARISTOTLE, HEROPHILUS, MENDEL, ODUM)
}

CHARACTER_IDS: tuple[str, ...] = tuple(CHARACTERS)

# Experts each tutor redirects out-of-scope questions to
RELATED_EXPERTS: dict[str, tuple[str, ...]] = {
    "herophilus": ("mendel", "odum"),
    "mendel": ("herophilus", "odum"),
    "odum": ("herophilus", "mendel"),
}

# Greetings shown once per session when persisted history is restored
RETURN_GREETINGS: dict[str, tuple[str, ...]] = {
    "aristotle": (
        "Welcome back, scholar! Ready to pick up where we left off?",
        "Good to have you back! What shall we explore today?",
        "You're back! Science waits for no one, so let's dive in.",
    ),
    "herophilus": (
        "Welcome back! The heart never stops, and neither does learning.",
        "Good to see you again! Ready to explore more of the body's mysteries?",
        "You've returned! Shall we continue our journey through circulation?",
    ),
    "mendel": (
        "Welcome back! Heredity holds many more secrets to discover.",
        "Good to see you again! Ready to unravel more patterns of inheritance?",
        "You've returned! The laws of genetics are waiting to be explored.",
    ),
    "odum": (
        "Welcome back! The ecosystem kept thriving while you were away.",
        "Good to see you again! Ready to explore more energy flow dynamics?",
        "You've returned! Nature's web of life has much more to reveal.",
    ),
}


def get_character(character_id: str | None) -> Character:
    """Look up a character by id, falling back to Aristotle."""
    return CHARACTERS.get(character_id or "", ARISTOTLE)


def get_character_for_topic(topic_id: str) -> Character:
    """Return the expert responsible for a topic, or Aristotle."""
    topic = topic_id.lower()
    for character in CHARACTERS.values():
        if topic in character.topic_ids:
            return character
    return ARISTOTLE


def related_experts(character_id: str) -> list[Character]:
    """Experts a character may recommend for questions outside its topic.

    Aristotle covers every topic, so it has no redirects.
    """
    return [CHARACTERS[cid] for cid in RELATED_EXPERTS.get(character_id, ())]
