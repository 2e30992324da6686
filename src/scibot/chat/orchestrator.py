"""Chat orchestrator: per-character conversation state around a streaming LLM.

The orchestrator owns one history per tutor character, serializes every
mutation with a single asyncio.Lock, drives the completion client, and
republishes the active character's history after each change.

Typical use:

    orchestrator = ChatOrchestrator(client, resolver, history_store)
    async with orchestrator:
        async for message in orchestrator.send_message("What is mitosis?"):
            render(message)
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import aclosing

from ..characters import CHARACTER_IDS, Character, get_character, related_experts
from ..context import ChatContext, ContextResolver
from ..llm import ChatMessage, CompletionClient
from ..memory import HistoryStore
from .broadcast import Snapshot, SnapshotBroadcaster, Subscription
from .greetings import build_greeting, return_greeting
from .models import CHAT_DISABLED_TEXT, ERROR_REPLY_TEXT, Message, new_message_id

logger = logging.getLogger(__name__)

MAX_IN_MEMORY_MESSAGES = 20
API_HISTORY_WINDOW = 10


class ConversationStore:
    """In-memory histories, one per character id.

    Every known character always has a history; histories are cleared but
    never removed. Each history holds at most ``max_messages`` messages
    (oldest evicted) and at most one streaming message, always last.
    """

    def __init__(self, character_ids: Iterable[str], max_messages: int = MAX_IN_MEMORY_MESSAGES):
        self._max_messages = max_messages
        self._histories: dict[str, list[Message]] = {cid: [] for cid in character_ids}

    @property
    def max_messages(self) -> int:
        return self._max_messages

    def snapshot(self, character_id: str) -> Snapshot:
        return tuple(self._histories[character_id])

    def messages(self, character_id: str) -> list[Message]:
        return self._histories[character_id]

    def append(self, character_id: str, message: Message) -> None:
        history = self._histories[character_id]
        history.append(message)
        overflow = len(history) - self._max_messages
        if overflow > 0:
            del history[:overflow]

    def put_streaming(self, character_id: str, message: Message) -> None:
        """Replace the trailing streaming message, or append if there is none."""
        history = self._histories[character_id]
        if history and history[-1].is_streaming:
            history[-1] = message
        else:
            self.append(character_id, message)

    def discard_streaming(self, character_id: str) -> bool:
        history = self._histories[character_id]
        if history and history[-1].is_streaming:
            history.pop()
            return True
        return False

    def replace_all(self, character_id: str, messages: list[Message]) -> None:
        self._histories[character_id] = list(messages[-self._max_messages:])

    def clear(self, character_id: str) -> None:
        self._histories[character_id].clear()


class ChatOrchestrator:
    """Coordinates tutor conversations.

    Hidden design decisions:
    - One asyncio.Lock serializes send, clear, switch and retry
    - Snapshots are published synchronously right after each mutation
    - Streaming replies are provisional messages replaced in place
    - Errors become inline error messages; nothing on the chat path raises
    """

    def __init__(
        self,
        client: CompletionClient | None,
        context_resolver: ContextResolver,
        history_store: HistoryStore | None = None,
        initial_character: str = "aristotle",
        max_messages: int = MAX_IN_MEMORY_MESSAGES,
        history_window: int = API_HISTORY_WINDOW,
    ):
        """Initialize the orchestrator.

        Args:
            client: Completion client, or None when chat is not configured
            context_resolver: Source of location/progress context
            history_store: Persistence backend (None keeps history in memory only)
            initial_character: Character active at start
            max_messages: In-memory cap per character
            history_window: Number of recent messages sent to the model
        """
        self._client = client
        self._context_resolver = context_resolver
        self._history_store = history_store
        self._history_window = history_window
        self._store = ConversationStore(CHARACTER_IDS, max_messages=max_messages)
        self._active_id = get_character(initial_character).id
        self._lock = asyncio.Lock()
        self._broadcaster = SnapshotBroadcaster()
        self._user_name: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, add_return_greeting: bool = True) -> None:
        """Load persisted history for every character.

        Characters with restored history get a one-time 'welcome back'
        message that is kept in memory only.
        """
        if self._history_store is not None:
            async with self._lock:
                for character_id in CHARACTER_IDS:
                    records = await self._history_store.load(
                        character_id, limit=self._store.max_messages
                    )
                    messages = [Message.from_record(r) for r in records]
                    if messages and add_return_greeting:
                        messages.append(Message.assistant(
                            return_greeting(character_id),
                            character_id=character_id,
                            context="session_return",
                        ))
                    self._store.replace_all(character_id, messages)
                    logger.debug("Loaded %d messages for %s", len(records), character_id)
        self._publish()

    async def close(self) -> None:
        """End the session: subscribers stop receiving snapshots."""
        self._broadcaster.close()

    async def __aenter__(self) -> "ChatOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    @property
    def active_character(self) -> Character:
        return get_character(self._active_id)

    @property
    def is_busy(self) -> bool:
        """Whether a send/clear/switch currently holds the lock."""
        return self._lock.locked()

    def history(self, character_id: str | None = None) -> Snapshot:
        """Snapshot of a character's history (default: the active character).

        Unknown ids resolve to Aristotle, as in switch_character().
        """
        if character_id is None:
            return self._store.snapshot(self._active_id)
        return self._store.snapshot(get_character(character_id).id)

    def subscribe(self) -> Subscription:
        """Subscribe to active-history snapshots. The first item is the current snapshot."""
        return self._broadcaster.subscribe(self.history())

    def set_user_name(self, name: str | None) -> None:
        """Student name used to personalize replies."""
        self._user_name = name or None

    def _publish(self) -> None:
        self._broadcaster.publish(self.history())

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(
        self,
        text: str,
        *,
        lesson_id: str | None = None,
        module_index: int | None = None,
        character: Character | str | None = None,
    ) -> AsyncIterator[Message]:
        """Send a user message and stream the tutor's reply.

        Yields the user message, then provisional streaming replies with
        growing content, then either the final reply or one error message.
        Closing the iterator early releases the lock and closes the
        underlying completion stream.

        Args:
            text: The student's message
            lesson_id: Lesson the student is in, if any
            module_index: Module within that lesson, if any
            character: Switch to this character before sending
        """
        async with self._lock:
            if character is not None:
                self._activate(get_character(character if isinstance(character, str) else character.id))
            character_id = self._active_id
            try:
                async with aclosing(self._exchange(text, lesson_id, module_index)) as replies:
                    async for message in replies:
                        yield message
            finally:
                # An abandoned stream must not leave a provisional reply behind
                if self._store.discard_streaming(character_id):
                    self._publish()

    async def _exchange(
        self,
        text: str,
        lesson_id: str | None,
        module_index: int | None,
    ) -> AsyncIterator[Message]:
        """One request/response exchange. Must run under the lock."""
        character = self.active_character
        character_id = character.id

        if self._client is None:
            error = Message.assistant(CHAT_DISABLED_TEXT, character_id=character_id, is_error=True)
            self._store.append(character_id, error)
            self._publish()
            yield error
            return

        context = await self._resolve_context(lesson_id, module_index)

        user_message = Message.user(text, character_id=character_id, context=context.location)
        self._store.append(character_id, user_message)
        await self._persist(user_message)
        self._publish()
        yield user_message

        api_messages = self._build_api_messages(character, context)
        reply_id = new_message_id()
        reply_text = ""
        failed = False

        try:
            stream = await self._client.chat_completion_stream(api_messages)
            try:
                async for fragment in stream:
                    reply_text += fragment
                    provisional = Message.assistant(
                        reply_text,
                        character_id=character_id,
                        context=context.location,
                        is_streaming=True,
                        id=reply_id,
                    )
                    self._store.put_streaming(character_id, provisional)
                    self._publish()
                    yield provisional
            finally:
                await stream.aclose()
        except Exception as e:
            logger.warning("Chat completion for %s failed: %s", character_id, e)
            failed = True

        if failed or not reply_text:
            if not failed:
                logger.warning("Chat completion for %s returned an empty reply", character_id)
            self._store.discard_streaming(character_id)
            error = Message.assistant(
                ERROR_REPLY_TEXT,
                character_id=character_id,
                context=context.location,
                is_error=True,
            )
            self._store.append(character_id, error)
            self._publish()
            yield error
            return

        final = Message.assistant(
            reply_text,
            character_id=character_id,
            context=context.location,
            id=reply_id,
        )
        self._store.put_streaming(character_id, final)
        await self._persist(final)
        self._publish()
        yield final

    async def _resolve_context(self, lesson_id: str | None, module_index: int | None) -> ChatContext:
        try:
            if lesson_id is not None and module_index is not None:
                return await self._context_resolver.module_context(lesson_id, module_index)
            if lesson_id is not None:
                return await self._context_resolver.lesson_context(lesson_id)
            return await self._context_resolver.current_context()
        except Exception as e:
            logger.warning("Context resolution failed, using home context: %s", e)
            return ChatContext(location="home")

    def _build_system_prompt(self, character: Character, context: ChatContext) -> str:
        prompt = character.system_prompt

        if self._user_name:
            prompt += (
                f"\n\nThe student's name is {self._user_name}. "
                "Use their name naturally when encouraging or complimenting them, "
                "but not in every message - keep it natural and varied."
            )

        experts = related_experts(character.id)
        if experts:
            recommendations = "\n".join(
                f"  - For questions about {expert.expertise}, politely redirect: "
                f"\"That's a great question for {expert.name}! You can find them "
                f"in the '{expert.topic_title}' topic from the Topics screen.\""
                for expert in experts
            )
            prompt += (
                "\n\n### CROSS-TOPIC GUIDANCE ###\n"
                "If a student asks about topics outside your expertise:\n"
                f"{recommendations}\n"
                "Always be encouraging and help them navigate to the right expert."
            )

        label = "CURRENT CONTEXT" if character.is_expert else "ADDITIONAL CONTEXT"
        return f"{prompt}\n\n{label}:\n{context.to_prompt_context()}"

    def _build_api_messages(self, character: Character, context: ChatContext) -> list[ChatMessage]:
        """System prompt followed by the recent conversation, ending with the new user message."""
        messages = [ChatMessage(role="system", content=self._build_system_prompt(character, context))]

        recent = [
            m for m in self._store.messages(character.id)
            if not m.is_error and not m.is_streaming
        ][-self._history_window:]
        messages.extend(m.to_api_format() for m in recent)
        return messages

    async def _persist(self, message: Message) -> None:
        if self._history_store is None:
            return
        try:
            await self._history_store.append(message.to_record())
        except Exception as e:
            logger.warning("Failed to persist message %s: %s", message.id, e)

    # ------------------------------------------------------------------
    # History management
    # ------------------------------------------------------------------

    async def clear_history(self) -> None:
        """Clear the active character's history in memory and in storage."""
        async with self._lock:
            character_id = self._active_id
            self._store.clear(character_id)
            if self._history_store is not None:
                try:
                    deleted = await self._history_store.delete_character(character_id)
                    logger.debug("Deleted %d stored messages for %s", deleted, character_id)
                except Exception as e:
                    logger.warning("Failed to clear stored history for %s: %s", character_id, e)
            self._publish()

    async def switch_character(self, character: Character | str, greeting: str | None = None) -> None:
        """Make another character active.

        No-op if it is already active. A supplied greeting is appended (and
        persisted) only when the character already has a conversation.
        """
        target = get_character(character if isinstance(character, str) else character.id)
        async with self._lock:
            if target.id == self._active_id:
                return
            self._activate(target)

            if greeting and self._store.messages(target.id):
                message = Message.assistant(greeting, character_id=target.id, context="greeting")
                self._store.append(target.id, message)
                await self._persist(message)

            self._publish()

    def _activate(self, character: Character) -> None:
        if character.id != self._active_id:
            logger.info("Switching tutor %s -> %s", self._active_id, character.id)
            self._active_id = character.id

    async def retry_last_message(self) -> AsyncIterator[Message] | None:
        """Drop trailing errors and the last user message, then resend it.

        Returns:
            The new reply stream, or None if there is no user message to retry
        """
        async with self._lock:
            character_id = self._active_id
            history = self._store.messages(character_id)

            user_index = next(
                (i for i in range(len(history) - 1, -1, -1) if history[i].is_user),
                None,
            )
            if user_index is None:
                return None

            while history and history[-1].is_error:
                history.pop()
            user_message = history.pop(user_index)

            if self._history_store is not None:
                try:
                    await self._history_store.delete(user_message.id)
                except Exception as e:
                    logger.warning("Failed to delete stored message %s: %s", user_message.id, e)
            self._publish()

        return self.send_message(user_message.content)

    # ------------------------------------------------------------------
    # Greetings and guided lessons
    # ------------------------------------------------------------------

    def get_greeting(
        self,
        progress: ChatContext | None = None,
        character: Character | None = None,
        personalized: str | None = None,
    ) -> Message:
        """Build a greeting message without touching any history."""
        return build_greeting(character or self.active_character, progress, personalized)

    async def guided_lesson_stream(
        self,
        user_message: str,
        system_prompt: str,
        max_tokens: int = 1000,
    ) -> AsyncIterator[str]:
        """Stream a one-off guided-lesson reply outside any character history."""
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_message),
        ]
        async for fragment in self._guided_stream(messages, max_tokens):
            yield fragment

    async def guided_follow_up_stream(
        self,
        user_message: str,
        system_prompt: str,
        conversation: list[ChatMessage],
        max_tokens: int = 800,
    ) -> AsyncIterator[str]:
        """Stream a guided-lesson follow-up that includes earlier turns."""
        messages = [
            ChatMessage(role="system", content=system_prompt),
            *conversation,
            ChatMessage(role="user", content=user_message),
        ]
        async for fragment in self._guided_stream(messages, max_tokens):
            yield fragment

    async def _guided_stream(self, messages: list[ChatMessage], max_tokens: int) -> AsyncIterator[str]:
        if self._client is None:
            yield CHAT_DISABLED_TEXT
            return
        try:
            stream = await self._client.chat_completion_stream(messages, max_tokens=max_tokens)
            try:
                async for fragment in stream:
                    yield fragment
            finally:
                await stream.aclose()
        except Exception as e:
            logger.warning("Guided lesson stream failed: %s", e)
            yield ERROR_REPLY_TEXT
