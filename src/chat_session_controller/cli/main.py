"""CLI entry point for chat-session-controller.

Invoked as::

    chat-session-controller [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m chat_session_controller.cli.main

Commands
--------
- version            — Show detailed version information
- config show        — Print the resolved configuration
- chat               — Interactive demo against the in-memory backend
- last-session show  — Print the remembered session id
- last-session forget — Clear the remembered session id

Chat commands
-------------
Plain text is sent as a message.  Lines starting with ``/`` are commands:
``/record``, ``/stop``, ``/cancel``, ``/search <query>``,
``/export [json|yaml]``, ``/clear``, ``/new [title]``, ``/queue``,
``/sessions``, ``/open <id>``, ``/offline``, ``/online``, ``/lang <code>``,
``/help`` and ``/quit``.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import assert_never

import click
from rich.console import Console, Group, RenderableType
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chat_session_controller.config import ControllerConfig
from chat_session_controller.gateway.base import GatewayError
from chat_session_controller.machine.intents import (
    CancelRecording,
    ChangeLanguage,
    ClearChat,
    ConnectivityChanged,
    ExportHistory,
    Initialize,
    Intent,
    LoadSession,
    NewChat,
    ProcessOfflineQueue,
    SearchMessages,
    SendMessage,
    StartRecording,
    StopRecording,
)
from chat_session_controller.machine.signals import (
    ExportSuccess,
    IntentRejected,
    MessageSendFailed,
    OfflineQueueProcessed,
    OperationFailed,
    Signal,
)
from chat_session_controller.machine.states import (
    ConversationState,
    Failed,
    Loading,
    Ready,
    Recording,
    Uninitialized,
)
from chat_session_controller.session.lifecycle import SessionLifecycleManager
from chat_session_controller.session.serializer import ExportFormat
from chat_session_controller.session.state import Message, MessageStatus, MessageType, Session

console = Console()

_BARS = " ▁▂▃▄▅▆▇█"
_STATUS_MARKS: dict[MessageStatus, str] = {
    MessageStatus.PENDING: "[yellow]…[/yellow]",
    MessageStatus.SENT: "[green]✓[/green]",
    MessageStatus.FAILED: "[red]✗[/red]",
}
_HELP = (
    "Type a message to send it, or a command: /record, /stop, /cancel, "
    "/search <query>, /export [json|yaml], /clear, /new [title], /queue, "
    "/sessions, /open <id>, /offline, /online, /lang <code>, /help, /quit"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_config(config_path: str | None) -> ControllerConfig:
    if config_path is None:
        return ControllerConfig()
    try:
        return ControllerConfig.from_yaml(config_path)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        sys.exit(1)


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def parse_command(line: str, export_format: ExportFormat = "json") -> Intent | None:
    """Translate one line of chat input into an intent.

    ``/export`` without an argument uses ``export_format``.  Returns None for
    blank lines and unknown commands.
    """
    text = line.strip()
    if not text:
        return None
    if not text.startswith("/"):
        return SendMessage(text)

    command, _, argument = text.partition(" ")
    argument = argument.strip()
    if command == "/record":
        return StartRecording()
    if command == "/stop":
        return StopRecording()
    if command == "/cancel":
        return CancelRecording()
    if command == "/search":
        return SearchMessages(argument)
    if command == "/export":
        if argument in ("json", "yaml"):
            return ExportHistory(format=argument)  # type: ignore[arg-type]
        return ExportHistory(format=export_format)
    if command == "/clear":
        return ClearChat()
    if command == "/new":
        return NewChat(argument or None)
    if command == "/queue":
        return ProcessOfflineQueue()
    if command == "/open" and argument:
        return LoadSession(argument)
    if command in ("/offline", "/online"):
        return ConnectivityChanged(online=command == "/online")
    if command == "/lang" and argument:
        return ChangeLanguage(argument)
    return None


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _render_message(message: Message) -> Text:
    who = "[bold green]You[/bold green]" if message.is_user else "[bold blue]Assistant[/bold blue]"
    mark = _STATUS_MARKS[message.status] if message.is_user else ""
    voice = " [magenta]🎤[/magenta]" if message.message_type is MessageType.VOICE else ""
    star = " [yellow]★[/yellow]" if message.is_favorite else ""
    line = Text.from_markup(f"{who}{voice}{star} {mark} ")
    line.append(message.text or "(voice message)")
    if message.status is MessageStatus.FAILED and message.error:
        line.append_text(Text.from_markup(f"  [dim red]({message.error})[/dim red]"))
    return line


def _waveform(levels: tuple[float, ...]) -> str:
    top = len(_BARS) - 1
    return "".join(_BARS[min(max(int(level * top), 0), top)] for level in levels)


def _render_ready(state: Ready) -> RenderableType:
    parts: list[RenderableType] = [_render_message(m) for m in state.messages]
    if not parts:
        parts.append(Text.from_markup("[dim]No messages yet.[/dim]"))
    if state.is_typing:
        parts.append(Text.from_markup("[dim italic]Assistant is typing…[/dim italic]"))
    if state.search_results is not None:
        parts.append(
            Text.from_markup(f"[cyan]Search matches:[/cyan] {len(state.search_results)}")
        )
        parts.extend(_render_message(m) for m in state.search_results)
    if state.quick_suggestions:
        parts.append(
            Text.from_markup("[dim]Try:[/dim] " + " | ".join(state.quick_suggestions))
        )
    footer = f"session={state.session_id or '-'}  language={state.language}"
    if state.queued_count:
        footer += f"  queued={state.queued_count}"
    if not state.is_online:
        footer += "  offline"
    parts.append(Text(footer, style="dim"))
    return Panel(Group(*parts), title="Chat", expand=False)


def render_state(state: ConversationState) -> RenderableType:
    """Build a Rich renderable for every state variant."""
    match state:
        case Uninitialized():
            return Text.from_markup("[dim]Starting…[/dim]")
        case Loading():
            target = state.session_id or "new session"
            return Text.from_markup(f"[dim]Loading {target}…[/dim]")
        case Ready():
            return _render_ready(state)
        case Recording():
            return Text.from_markup(
                f"[bold red]● Recording[/bold red] {state.elapsed:.1f}s {_waveform(state.waveform)}"
            )
        case Failed():
            hint = " (retry possible)" if state.retryable else ""
            return Panel(f"[red]{state.message}[/red]{hint}", title="Error", expand=False)
        case _:
            assert_never(state)


def render_signal(signal: Signal) -> str:
    """Return a one-line Rich markup notice for ``signal``."""
    match signal:
        case ExportSuccess():
            return f"[green]Exported to[/green] {signal.path}"
        case OfflineQueueProcessed():
            text = f"[green]Offline queue:[/green] {signal.count} sent"
            if signal.abandoned:
                text += f", {signal.abandoned} abandoned"
            return text
        case MessageSendFailed():
            suffix = " (queued for retry)" if signal.queued else ""
            return f"[red]Send failed:[/red] {signal.reason}{suffix}"
        case IntentRejected():
            return f"[yellow]{signal.intent} rejected:[/yellow] {signal.reason}"
        case OperationFailed():
            return f"[red]{signal.operation} failed:[/red] {signal.reason}"
        case _:
            assert_never(signal)


def render_sessions(sessions: list[Session], current: str | None = None) -> RenderableType:
    """Build a table of backend sessions, marking the current one."""
    if not sessions:
        return Text.from_markup("[dim]No sessions yet.[/dim]")
    table = Table(title="Sessions", show_lines=False)
    table.add_column("", width=1)
    table.add_column("Id", style="bold cyan")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Last activity")
    for session in sessions:
        table.add_row(
            "*" if session.session_id == current else "",
            session.session_id,
            session.title,
            str(session.message_count),
            session.last_activity_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="chat-session-controller")
def cli() -> None:
    """Conversation session controller with lazy sessions and an offline queue"""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from chat_session_controller import __version__

    console.print(f"[bold]chat-session-controller[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# config command group
# ---------------------------------------------------------------------------


@cli.group(name="config")
def config_group() -> None:
    """Configuration commands."""


@config_group.command(name="show")
@click.option("--config", "config_path", default=None, help="YAML configuration file.")
def config_show(config_path: str | None) -> None:
    """Print the resolved configuration."""
    config = _load_config(config_path)

    table = Table(title="Configuration", show_lines=False)
    table.add_column("Setting", style="bold cyan")
    table.add_column("Value")
    for name, value in config.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------


@cli.command(name="chat")
@click.option("--config", "config_path", default=None, help="YAML configuration file.")
@click.option("--language", default=None, help="Language code (en, hi, te, ...).")
@click.option(
    "--fail-next",
    default=0,
    show_default=True,
    help="Simulate a network failure for the next N sends.",
)
@click.option("--verbose", is_flag=True, help="Log controller activity.")
def chat_command(
    config_path: str | None,
    language: str | None,
    fail_next: int,
    verbose: bool,
) -> None:
    """Chat against the in-memory backend."""
    _configure_logging(verbose)
    config = _load_config(config_path)
    if language:
        config = config.model_copy(update={"default_language": language})
    asyncio.run(_chat_loop(config, fail_next))


async def _chat_loop(config: ControllerConfig, fail_next: int) -> None:
    from chat_session_controller.audio.simulated import SimulatedRecorder
    from chat_session_controller.convenience import create_controller
    from chat_session_controller.gateway.base import FailureKind
    from chat_session_controller.gateway.memory import InMemoryGateway

    gateway = InMemoryGateway()
    if fail_next > 0:
        gateway.fail_next(FailureKind.NETWORK, times=fail_next)
    controller = create_controller(
        config,
        gateway=gateway,
        recorder=SimulatedRecorder(transcript="Tell me a story about honesty"),
    )

    try:
        controller.dispatch(Initialize())
        await controller.wait_idle()
        console.print(render_state(controller.state))
        console.print(escape(_HELP), style="dim")

        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold]> [/bold]")
            except EOFError:
                break
            command = line.strip()
            if command in ("/quit", "/exit"):
                break
            if command == "/help":
                console.print(escape(_HELP))
                continue
            if command == "/sessions":
                await _print_sessions(controller.lifecycle)
                continue
            intent = parse_command(line, config.export_format)
            if intent is None:
                if command:
                    console.print(f"[yellow]Unknown command:[/yellow] {escape(command)}")
                continue

            controller.dispatch(intent)
            await controller.wait_idle()
            for signal in controller.drain_signals():
                console.print(render_signal(signal))
            console.print(render_state(controller.state))
    finally:
        await controller.close()


async def _print_sessions(lifecycle: SessionLifecycleManager) -> None:
    try:
        sessions = await lifecycle.recent_sessions()
    except GatewayError as exc:
        console.print(f"[red]Could not list sessions:[/red] {exc}")
        return
    console.print(render_sessions(sessions, lifecycle.current_session_id))


# ---------------------------------------------------------------------------
# last-session command group
# ---------------------------------------------------------------------------


@cli.group(name="last-session")
@click.option(
    "--storage-dir",
    default=None,
    help="Directory of the filesystem store. Defaults to ~/.chat-session-controller.",
)
@click.option("--key", default="last_session_id", show_default=True, help="Pointer key.")
@click.pass_context
def last_session_group(ctx: click.Context, storage_dir: str | None, key: str) -> None:
    """Inspect the remembered last session."""
    from chat_session_controller.session.store import SessionStore
    from chat_session_controller.storage.filesystem import FilesystemKeyValueStore

    directory = Path(storage_dir) if storage_dir else ControllerConfig().storage_dir
    ctx.ensure_object(dict)
    ctx.obj["store"] = SessionStore(FilesystemKeyValueStore(directory), last_session_key=key)


@last_session_group.command(name="show")
@click.pass_context
def last_session_show(ctx: click.Context) -> None:
    """Print the last active session id."""
    session_id = asyncio.run(ctx.obj["store"].get_last_session_id())
    if session_id is None:
        console.print("[yellow]No last session.[/yellow]")
        return
    console.print(session_id)


@last_session_group.command(name="forget")
@click.pass_context
def last_session_forget(ctx: click.Context) -> None:
    """Clear the last active session id."""
    asyncio.run(ctx.obj["store"].clear_last_session_id())
    console.print("[green]Last session forgotten.[/green]")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()
