"""Main CLI application using Typer."""
import asyncio
import os

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..characters import CHARACTERS, get_character
from ..chat import ChatOrchestrator, Message, personalized_greeting
from ..logging_config import configure_logging
from .providers import build_orchestrator, get_client, get_history_store, get_settings

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="scibot",
    help="SCI-Bot: Grade 9 science tutors in your terminal",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

CHAT_COMMANDS = "/clear, /retry, /switch <id>, /quit"


def _character_option(default: str | None = None):
    return typer.Option(
        default,
        "--character",
        "-c",
        help=f"Tutor id ({', '.join(CHARACTERS)})"
    )


def _require_character(character_id: str) -> None:
    """Exit with an error unless character_id names a tutor."""
    if character_id not in CHARACTERS:
        console.print(
            f"[red]Error: unknown tutor '{character_id}'. "
            f"Valid ids: {', '.join(CHARACTERS)}[/red]"
        )
        raise typer.Exit(code=1)


def _print_message(message: Message) -> None:
    if message.is_error:
        console.print(f"[red]{message.content}[/red]")
        return
    if message.is_user:
        console.print(f"[bold yellow]You:[/bold yellow] {message.content}", highlight=False)
        return
    name = get_character(message.character_id).name
    console.print(f"[bold green]{name}:[/bold green] {message.content}", highlight=False)


async def _stream_reply(replies) -> None:
    """Print a reply stream, writing only the new text of each fragment."""
    shown = 0
    started = False
    async for message in replies:
        if message.is_user:
            continue
        if message.is_error:
            if started:
                console.print()
            console.print(f"[red]{message.content}[/red]")
            return
        if not started:
            name = get_character(message.character_id).name
            console.print(f"[bold green]{name}:[/bold green] ", end="")
            started = True
        console.print(message.content[shown:], end="", markup=False, highlight=False)
        shown = len(message.content)
    if started:
        console.print("\n")


@app.command()
def characters():
    """List the available tutors."""
    table = Table(title="SCI-Bot Tutors")
    table.add_column("Id", style="bold cyan")
    table.add_column("Name")
    table.add_column("Specialization")
    table.add_column("Topics", style="dim")

    for character in CHARACTERS.values():
        table.add_row(
            character.id,
            character.name,
            character.specialization,
            ", ".join(character.topic_ids) or "-",
        )

    console.print(table)


@app.command()
def chat(
    character: str = _character_option("aristotle"),
    lesson: str | None = typer.Option(
        None,
        "--lesson",
        "-l",
        help="Lesson id the student is working on"
    ),
    module: int | None = typer.Option(
        None,
        "--module",
        "-m",
        help="Module index within the lesson (0-based)"
    ),
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Student name used to personalize replies"
    ),
):
    """Interactive chat with a science tutor."""
    _require_character(character)

    async def _chat():
        settings = get_settings(console)
        if settings is None:
            console.print("[red]Error: chat is not configured (set OPENAI_API_KEY)[/red]")
            raise typer.Exit(code=1)

        configure_logging(settings.log_level)
        client = get_client(settings)
        store = get_history_store(settings)

        try:
            await store.connect()
            orchestrator = build_orchestrator(client, store, character)
            orchestrator.set_user_name(name)

            async with orchestrator:
                await _chat_loop(orchestrator, lesson, module)

        except typer.Exit:
            raise
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()
            await client.close()

    asyncio.run(_chat())


async def _chat_loop(orchestrator: ChatOrchestrator, lesson: str | None, module: int | None) -> None:
    current = orchestrator.active_character
    console.print(f"[bold cyan]SCI-Bot: chatting with {current.name}[/bold cyan]")
    console.print(f"[dim]Commands: {CHAT_COMMANDS}[/dim]\n")

    history = orchestrator.history()
    if history:
        for message in history:
            _print_message(message)
    else:
        _print_message(orchestrator.get_greeting())
        starters = " | ".join(current.conversation_starters)
        if starters:
            console.print(f"[dim]Try: {starters}[/dim]")
    console.print()

    while True:
        try:
            user_input = console.input("[bold yellow]You:[/bold yellow] ").strip()
        except (KeyboardInterrupt, EOFError):
            console.print("\n[dim]Goodbye![/dim]")
            return

        if not user_input:
            continue

        if user_input.startswith("/"):
            command, _, argument = user_input.partition(" ")
            command = command.lower()

            if command in ("/quit", "/exit", "/q"):
                console.print("[dim]Goodbye![/dim]")
                return

            if command == "/clear":
                await orchestrator.clear_history()
                console.print(f"[dim]Cleared history with {orchestrator.active_character.name}.[/dim]\n")
                continue

            if command == "/retry":
                replies = await orchestrator.retry_last_message()
                if replies is None:
                    console.print("[dim]Nothing to retry.[/dim]\n")
                else:
                    await _stream_reply(replies)
                continue

            if command == "/switch":
                await _switch(orchestrator, argument.strip(), lesson is not None)
                continue

            console.print(f"[yellow]Unknown command. Available: {CHAT_COMMANDS}[/yellow]\n")
            continue

        await _stream_reply(
            orchestrator.send_message(user_input, lesson_id=lesson, module_index=module)
        )


async def _switch(orchestrator: ChatOrchestrator, character_id: str, came_from_lesson: bool) -> None:
    if character_id not in CHARACTERS:
        console.print(f"[yellow]Unknown tutor '{character_id}'. Try: {', '.join(CHARACTERS)}[/yellow]\n")
        return

    previous = orchestrator.active_character
    target = get_character(character_id)
    if target.id == previous.id:
        console.print(f"[dim]Already chatting with {target.name}.[/dim]\n")
        return

    previous_topic = previous.topic_ids[0] if previous.topic_ids else None
    greeting = personalized_greeting(target, previous_topic, came_from_lesson)
    await orchestrator.switch_character(target, greeting)

    console.print(f"[bold cyan]Now chatting with {target.name}[/bold cyan]")
    history = orchestrator.history()
    if history:
        _print_message(history[-1])
    else:
        _print_message(orchestrator.get_greeting(personalized=greeting))
    console.print()


@app.command()
def history(
    character: str | None = _character_option(),
    limit: int | None = typer.Option(
        None,
        "--limit",
        "-n",
        help="Show only the most recent N messages"
    ),
):
    """Show persisted chat history."""
    if character is not None:
        _require_character(character)

    async def _history():
        configure_logging(os.getenv("SCIBOT_LOG_LEVEL", "WARNING"))
        store = get_history_store(None)

        try:
            await store.connect()
            ids = [character] if character else list(CHARACTERS)

            for character_id in ids:
                records = await store.load(character_id, limit=limit)
                if not records and character is None:
                    continue

                table = Table(title=f"{get_character(character_id).name} ({len(records)} messages)")
                table.add_column("Time", style="dim", width=19)
                table.add_column("From", style="bold cyan", width=6)
                table.add_column("Message")

                for record in records:
                    table.add_row(
                        record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                        record.sender.value,
                        record.text,
                    )
                console.print(table)

            if await store.count() == 0:
                console.print("[dim]No saved history.[/dim]")

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_history())


@app.command()
def clear(
    character: str | None = _character_option(),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    )
):
    """Delete persisted chat history."""
    if character is not None:
        _require_character(character)

    async def _clear():
        target = CHARACTERS[character].name if character else "all tutors"
        if not yes:
            console.print(f"[yellow]WARNING: This will delete saved history for {target}![/yellow]")
            confirm = typer.confirm("Are you sure you want to continue?")
            if not confirm:
                console.print("[dim]Aborted.[/dim]")
                return

        configure_logging(os.getenv("SCIBOT_LOG_LEVEL", "WARNING"))
        store = get_history_store(None)

        try:
            await store.connect()

            if character:
                deleted_count = await store.delete_character(character)
            else:
                deleted_count = await store.count()
                await store.clear()

            console.print(f"[green]Success! Deleted {deleted_count} messages.[/green]")

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_clear())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
