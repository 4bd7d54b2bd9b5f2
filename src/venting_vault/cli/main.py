"""
Main CLI entry point for Venting Vault.

Provides an interactive chat session plus history and status commands.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

import click

from .. import __version__
from ..app import VaultApp, create_app
from ..conversation.models import Message, MessageKind, Sender, format_timestamp
from ..core.config import Config
from ..core.exceptions import VentingVaultError
from ..core.logging import configure_logging
from ..core.persistence import JSONFileKeyValueStore
from ..services import DeepMemoryStore

logger = logging.getLogger(__name__)

SENDER_LABELS = {
    Sender.USER: "You",
    Sender.ASSISTANT: "Sentinel",
    Sender.SYSTEM: "System",
}


def _load_config(ctx: click.Context) -> Config:
    config = ctx.obj.get("config")
    if config is None:
        config_path: Optional[str] = ctx.obj.get("config_path")
        config = Config.from_file(config_path) if config_path else Config()
        ctx.obj["config"] = config
    return config


def _build_app(ctx: click.Context) -> VaultApp:
    """Create the session, honouring components injected through ``ctx.obj``."""
    return create_app(
        _load_config(ctx),
        backend=ctx.obj.get("backend"),
        store=ctx.obj.get("store"),
        audio=ctx.obj.get("audio"),
    )


def format_message(message: Message) -> str:
    label = SENDER_LABELS[message.sender]
    if message.kind == MessageKind.VOICE:
        return f"{label}: [{message.text}, {message.duration_seconds}s] (id {message.id})"
    if message.kind == MessageKind.CRISIS:
        action = f" [{message.action_ref}]" if message.action_ref else ""
        return f"!! {message.text}{action}"
    return f"{label}: {message.text}"


def _echo_messages(messages: Iterable[Message]) -> None:
    for message in messages:
        click.echo(format_message(message))


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", "-d", is_flag=True, help="Enable debug output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Runtime YAML configuration file",
)
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, debug: bool, config_path: Optional[str]
) -> None:
    """
    Venting Vault CLI

    Talk to Sentinel, a private companion that listens, remembers and looks
    out for you.
    """
    # Ensure that ctx.obj exists and is a dict
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    else:
        level = "WARNING"
    config = _load_config(ctx)
    configure_logging(level, json_format=config.monitoring.json_logs)

    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug


@cli.command()
@click.pass_context
def chat(ctx: click.Context) -> None:
    """Start an interactive conversation.

    Commands: /prompt for a reflective question, /voice N to record N seconds,
    /play ID to play a voice message, /quit to leave.
    """
    app = _build_app(ctx)
    asyncio.run(_chat(app))


async def _read_line() -> Optional[str]:
    try:
        return await asyncio.to_thread(
            click.prompt, "You", default="", show_default=False, prompt_suffix="> "
        )
    except (click.Abort, EOFError):
        return None


async def _chat(app: VaultApp) -> None:
    orchestrator = app.orchestrator
    await app.start()
    _echo_messages(orchestrator.log.messages[-5:])
    shown = len(orchestrator.log)

    try:
        while True:
            line = await _read_line()
            if line is None:
                break
            line = line.strip()
            if line == "/quit":
                break

            try:
                await _dispatch(app, line)
            except VentingVaultError as e:
                click.echo(f"Error: {e.message}", err=True)

            await orchestrator.wait_for_moderation()
            new_messages = orchestrator.log.messages[shown:]
            # The user's own text is already on screen
            _echo_messages(
                m
                for m in new_messages
                if not (m.sender == Sender.USER and m.kind == MessageKind.TEXT)
            )
            shown = len(orchestrator.log)
    finally:
        await app.close()


async def _dispatch(app: VaultApp, line: str) -> None:
    if not line:
        return
    if line == "/prompt":
        await app.orchestrator.offer_reflection_prompt()
    elif line.startswith("/voice"):
        await _record(app, line)
    elif line.startswith("/play"):
        _play(app, line)
    else:
        await app.orchestrator.submit_text(line)


async def _record(app: VaultApp, line: str) -> None:
    parts = line.split()
    try:
        seconds = float(parts[1]) if len(parts) > 1 else 5.0
    except ValueError:
        click.echo("Usage: /voice SECONDS", err=True)
        return
    await app.capture.start()
    click.echo(f"Recording for {seconds:g}s...")
    await asyncio.sleep(seconds)
    await app.capture.send()


def _play(app: VaultApp, line: str) -> None:
    parts = line.split()
    if len(parts) != 2:
        click.echo("Usage: /play MESSAGE_ID", err=True)
        return
    message_id = parts[1]
    for message in app.orchestrator.log:
        if message.id == message_id and message.voice_artifact_ref:
            started = app.playback.play(message.voice_artifact_ref, message.id)
            click.echo("Playing..." if started else "Stopped.")
            return
    click.echo(f"No voice message with id {message_id}", err=True)


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_context
def history(ctx: click.Context, output_format: str) -> None:
    """Show the stored conversation without modifying it."""
    config = _load_config(ctx)
    store = ctx.obj.get("store") or JSONFileKeyValueStore(config.memory.storage_path)
    memory = DeepMemoryStore(store, config=config.memory)
    log = asyncio.run(memory.load())

    if output_format == "json":
        click.echo(json.dumps(log.to_list(), indent=2, ensure_ascii=False))
        return

    if log.is_empty():
        click.echo("The vault is empty.")
        return
    for message in log:
        click.echo(f"[{format_timestamp(message.timestamp)}] {format_message(message)}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and storage status."""
    config = _load_config(ctx)

    click.echo("Venting Vault Status")
    click.echo("=" * 40)
    click.echo(f"Environment: {config.environment.value}")
    click.echo(f"Model: {config.generation.model}")

    if config.generation.api_key:
        click.echo("✓ API key: configured")
    else:
        click.echo("✗ API key: missing (set VAULT_OPENROUTER_KEY)")

    storage_path = Path(config.memory.storage_path)
    if storage_path.exists():
        click.echo(f"✓ Storage: {storage_path}")
    else:
        click.echo(f"- Storage: {storage_path} (not created yet)")

    click.echo(f"Wake-up gap: {config.memory.wake_gap_hours:g}h")
    click.echo(f"Escalation: {config.escalation.label} ({config.escalation.uri})")


if __name__ == "__main__":
    cli()
