"""Tests for the command-line interface."""
import asyncio

import pytest
from rich.console import Console
from typer.testing import CliRunner

from scibot.characters import MENDEL
from scibot.chat import ChatOrchestrator
from scibot.cli.app import _chat_loop, app
from scibot.memory import Sender, StoredMessage
from scibot.memory.sqlite import SQLiteHistoryStore

runner = CliRunner()


@pytest.fixture
def history_db(clean_env, tmp_path):
    """Point the CLI at a temporary history database."""
    path = tmp_path / "history.db"
    clean_env.setenv("SCIBOT_HISTORY_DB", str(path))
    return path


def seed(path, *records: StoredMessage) -> None:
    async def _seed():
        async with SQLiteHistoryStore(path) as store:
            for record in records:
                await store.append(record)

    asyncio.run(_seed())


def count(path, character_id=None) -> int:
    async def _count():
        async with SQLiteHistoryStore(path) as store:
            return await store.count(character_id)

    return asyncio.run(_count())


class TestCharactersCommand:
    """Tests for `scibot characters`."""

    def test_lists_all_tutors(self):
        result = runner.invoke(app, ["characters"])

        assert result.exit_code == 0
        for character_id in ("aristotle", "herophilus", "mendel", "odum"):
            assert character_id in result.output


class TestChatCommand:
    """Tests for `scibot chat`."""

    def test_unconfigured_chat_exits_with_error(self, history_db, clean_env):
        """Test a placeholder key disables chat with exit code 1."""
        clean_env.setenv("OPENAI_API_KEY", "your_api_key_here")

        result = runner.invoke(app, ["chat"])

        assert result.exit_code == 1
        assert "not configured" in result.output

    def test_unknown_character_exits_with_error(self, history_db):
        result = runner.invoke(app, ["chat", "--character", "mendle"])

        assert result.exit_code == 1
        assert "unknown tutor" in result.output

    async def test_new_conversation_shows_greeting_and_starters(self, monkeypatch, context_resolver):
        """Test an empty history opens with the greeting and conversation starters."""
        console = Console(record=True, width=400)

        def end_of_input(*args, **kwargs):
            raise EOFError

        monkeypatch.setattr(console, "input", end_of_input)
        monkeypatch.setattr("scibot.cli.app.console", console)
        orchestrator = ChatOrchestrator(None, context_resolver, initial_character="mendel")

        await _chat_loop(orchestrator, None, None)

        output = console.export_text()
        assert "Mendel:" in output
        assert "Try: " + " | ".join(MENDEL.conversation_starters) in output
        assert "Goodbye" in output


class TestHistoryCommands:
    """Tests for `scibot history` and `scibot clear`."""

    def test_history_empty(self, history_db):
        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "No saved history" in result.output

    def test_history_shows_messages(self, history_db):
        seed(history_db, StoredMessage(
            id="m1", sender=Sender.USER, text="What is a gene?", character_id="mendel",
        ))

        result = runner.invoke(app, ["history", "--character", "mendel"])

        assert result.exit_code == 0
        assert "What is a gene?" in result.output

    def test_clear_character(self, history_db):
        seed(
            history_db,
            StoredMessage(id="m1", sender=Sender.USER, text="gene", character_id="mendel"),
            StoredMessage(id="a1", sender=Sender.USER, text="hello", character_id="aristotle"),
        )

        result = runner.invoke(app, ["clear", "--character", "mendel", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 1 messages" in result.output
        assert count(history_db, "mendel") == 0
        assert count(history_db, "aristotle") == 1

    def test_clear_all_aborts_without_confirmation(self, history_db):
        seed(history_db, StoredMessage(id="a1", sender=Sender.USER, text="hello", character_id="aristotle"))

        result = runner.invoke(app, ["clear"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.output
        assert count(history_db) == 1

    def test_clear_unknown_character_deletes_nothing(self, history_db):
        """Test a misspelled tutor id is rejected instead of clearing aristotle."""
        seed(history_db, StoredMessage(id="a1", sender=Sender.USER, text="hello", character_id="aristotle"))

        result = runner.invoke(app, ["clear", "--character", "mendle", "--yes"])

        assert result.exit_code == 1
        assert "unknown tutor" in result.output
        assert count(history_db, "aristotle") == 1

    def test_history_unknown_character_exits_with_error(self, history_db):
        result = runner.invoke(app, ["history", "--character", "mendle"])

        assert result.exit_code == 1
        assert "unknown tutor" in result.output
