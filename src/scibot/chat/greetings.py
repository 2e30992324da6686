"""Greeting builders.

All functions here are pure: they build text or Message objects from
templates and never touch conversation state.
"""

import random

from ..characters import ARISTOTLE, RETURN_GREETINGS, Character, get_character_for_topic
from ..context import ChatContext
from .models import Message


def progress_greeting(completed_lessons: int, total_lessons: int, progress_percentage: int) -> str:
    """Aristotle's greeting based on overall progress."""
    if progress_percentage <= 0:
        return "Welcome to SCI-Bot! Ready to start your science journey? Let's explore together!"
    if progress_percentage < 50:
        return (
            f"Welcome back! You've completed {completed_lessons} out of {total_lessons} lessons. "
            f"You're {progress_percentage}% there. Keep going!"
        )
    if progress_percentage < 100:
        remaining = max(total_lessons - completed_lessons, 0)
        return (
            f"Wow! You're {progress_percentage}% complete! Only {remaining} lessons to go. "
            f"You're doing amazing!"
        )
    return f"Congratulations! You've completed all {total_lessons} lessons! Ready to review or explore more?"


def build_greeting(
    character: Character,
    progress: ChatContext | None = None,
    personalized: str | None = None,
) -> Message:
    """Build the greeting shown at the top of a chat.

    Args:
        character: Tutor giving the greeting
        progress: Progress figures; used for Aristotle's progress greeting
        personalized: Ready-made text that takes precedence over templates
    """
    if personalized:
        text = personalized
    elif progress is not None and character.id == ARISTOTLE.id:
        text = progress_greeting(
            progress.completed_lessons,
            progress.total_lessons,
            progress.progress_percentage,
        )
    else:
        text = character.greeting

    return Message.assistant(text, character_id=character.id, context="greeting")


def return_greeting(character_id: str, rng: random.Random | None = None) -> str:
    """Pick a 'welcome back' line for a restored conversation."""
    pool = RETURN_GREETINGS.get(character_id) or RETURN_GREETINGS[ARISTOTLE.id]
    return (rng or random).choice(pool)


def personalized_greeting(
    current: Character,
    previous_topic_id: str | None = None,
    came_from_lesson: bool = False,
    variation: int | None = None,
) -> str:
    """Greeting that mentions where the student was before.

    Args:
        current: Tutor now being opened
        previous_topic_id: Topic the student last visited, if any
        came_from_lesson: Whether the student was inside a lesson there
        variation: Which of the three phrasings to use (random if None)
    """
    if previous_topic_id is None:
        return current.greeting

    previous = get_character_for_topic(previous_topic_id)
    if previous.id == current.id or not previous.is_expert:
        return current.greeting

    index = random.randrange(3) if variation is None else variation % 3
    subject = previous.specialization.lower()

    if current.id == ARISTOTLE.id:
        if came_from_lesson:
            options = (
                f"Welcome back! I hope your session with {previous.name} went well. "
                f"What would you like to explore next?",
                f"Ah, you return from studying with {previous.name}! "
                f"Tell me, what did you discover about {subject}?",
                f"Good to see you! How was your lesson on {subject}? "
                f"Ready to continue your science journey?",
            )
        else:
            options = (
                f"Good to see you again! How was your time studying {subject}?",
                f"Welcome back from {previous.name}'s class! What caught your attention about {subject}?",
                f"Ah, returning from exploring {subject}! What questions do you have now?",
            )
        return options[index]

    options = (
        f"Welcome! I see you were just learning about {subject} with {previous.name}. "
        f"Ready to dive into {current.specialization.lower()}?",
        f"Ah, coming from {previous.name}'s lesson! Let me show you how "
        f"{current.specialization.lower()} connects to what you just learned.",
        f"Good to have you here! After studying {subject}, "
        f"let us explore {current.specialization.lower()} together.",
    )
    return options[index]
