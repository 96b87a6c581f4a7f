# src/claimcheck/cli.py
"""claimcheck Command Line Interface.

Entry point for the claimcheck CLI tool: send, receive and inspect
claim-check messages on an Azure Storage queue.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from claimcheck import __version__
from claimcheck.contracts.errors import ClaimCheckError
from claimcheck.contracts.models import ReceivedMessage
from claimcheck.core.config import ClaimCheckSettings, LoggingSettings, load_settings

if TYPE_CHECKING:
    from claimcheck.engine.client import ClaimCheckClient

__all__ = ["app"]

DEFAULT_SETTINGS_FILE = "claimcheck.yaml"

app = typer.Typer(
    name="claimcheck",
    help="claimcheck: queue messages of any size via blob offload.",
    no_args_is_help=True,
)


@dataclass
class _CliState:
    settings_path: Path
    verbose: bool
    json_logs: bool


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"claimcheck version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file does not exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings: Path = typer.Option(
        Path(DEFAULT_SETTINGS_FILE),
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """claimcheck: queue messages of any size via blob offload."""
    from claimcheck.core.logging import configure_logging

    configure_logging(LoggingSettings(json_output=json_logs, level="DEBUG" if verbose else "INFO"))

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)

    ctx.obj = _CliState(settings_path=settings.expanduser(), verbose=verbose, json_logs=json_logs)


def _load_settings_or_exit(state: _CliState) -> ClaimCheckSettings:
    try:
        config = load_settings(state.settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {state.settings_path}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {state.settings_path}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    # Settings file may raise the level or switch to JSON; CLI flags win.
    from claimcheck.core.logging import configure_logging

    configure_logging(
        config.logging.model_copy(
            update={
                "json_output": state.json_logs or config.logging.json_output,
                "level": "DEBUG" if state.verbose else config.logging.level,
            }
        )
    )
    return config


def _build_client_or_exit(ctx: typer.Context) -> ClaimCheckClient:
    from claimcheck.plugins.azure.factory import build_client

    config = _load_settings_or_exit(ctx.obj)
    try:
        return build_client(config)
    except ValidationError as e:
        typer.echo("Azure authentication errors:", err=True)
        for error in e.errors():
            typer.echo(f"  - azure: {error['msg']}", err=True)
        raise typer.Exit(1) from None
    except (ClaimCheckError, ImportError) as e:
        typer.echo(f"Error creating client: {e}", err=True)
        raise typer.Exit(1) from None


def _fail(e: Exception) -> typer.Exit:
    typer.echo(f"Error: {e}", err=True)
    return typer.Exit(1)


def _parse_metadata(pairs: list[str]) -> dict[str, str]:
    metadata: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--metadata")
        metadata[key] = value
    return metadata


def _message_to_dict(message: ReceivedMessage) -> dict[str, object]:
    return {
        "message_id": message.message_id,
        "body": message.body,
        "metadata": message.metadata,
        "is_from_blob": message.is_from_blob,
        "pointer": str(message.pointer) if message.pointer is not None else None,
        "dequeue_count": message.dequeue_count,
    }


@app.command()
def send(
    ctx: typer.Context,
    body: str | None = typer.Argument(None, help="Message body. Omit to use --file."),
    file: Path | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Read the body from a file ('-' for stdin).",
    ),
    metadata: list[str] = typer.Option(
        [],
        "--metadata",
        "-m",
        help="Metadata entry as KEY=VALUE. Repeatable.",
    ),
    delay: int | None = typer.Option(
        None,
        "--delay",
        min=0,
        help="Seconds before the message becomes visible.",
    ),
) -> None:
    """Send one message, offloading it to blob storage if it is too large."""
    if (body is None) == (file is None):
        typer.echo("Error: provide exactly one of BODY or --file", err=True)
        raise typer.Exit(1)

    if file is not None:
        text = sys.stdin.read() if str(file) == "-" else file.read_text(encoding="utf-8")
    else:
        assert body is not None
        text = body

    parsed_metadata = _parse_metadata(metadata)
    client = _build_client_or_exit(ctx)
    try:
        message_id = client.send_message(
            text,
            parsed_metadata,
            visibility_delay=timedelta(seconds=delay) if delay is not None else None,
        )
    except ClaimCheckError as e:
        raise _fail(e) from None

    if message_id is None:
        typer.echo("Skipped: duplicate message")
    else:
        typer.echo(message_id)


@app.command()
def receive(
    ctx: typer.Context,
    max_messages: int = typer.Option(1, "--max", "-n", min=1, max=32, help="Messages to receive (1-32)."),
    visibility_timeout: int | None = typer.Option(
        None,
        "--visibility-timeout",
        min=0,
        help="Seconds to hide received messages from other consumers.",
    ),
    delete: bool = typer.Option(
        False,
        "--delete",
        help="Delete each message (and its payload blob) after printing it.",
    ),
) -> None:
    """Receive messages, resolving offloaded payloads. Prints one JSON object per line."""
    client = _build_client_or_exit(ctx)
    try:
        messages = client.receive_messages(
            max_messages,
            visibility_timeout=timedelta(seconds=visibility_timeout) if visibility_timeout is not None else None,
        )
        for message in messages:
            typer.echo(json.dumps(_message_to_dict(message)))
            if delete:
                client.delete_message(message)
    except ClaimCheckError as e:
        raise _fail(e) from None


@app.command()
def peek(
    ctx: typer.Context,
    max_messages: int = typer.Option(1, "--max", "-n", min=1, max=32, help="Messages to peek (1-32)."),
) -> None:
    """Print raw queue bodies without dequeuing or resolving them."""
    client = _build_client_or_exit(ctx)
    try:
        bodies = client.peek_messages(max_messages)
    except ClaimCheckError as e:
        raise _fail(e) from None
    for raw_body in bodies:
        typer.echo(raw_body)


@app.command()
def count(ctx: typer.Context) -> None:
    """Print the approximate number of messages in the queue."""
    client = _build_client_or_exit(ctx)
    try:
        typer.echo(str(client.approximate_message_count()))
    except ClaimCheckError as e:
        raise _fail(e) from None


@app.command("cleanup-expired")
def cleanup_expired(ctx: typer.Context) -> None:
    """Delete payload blobs whose expiry time has passed."""
    client = _build_client_or_exit(ctx)
    try:
        deleted = client.cleanup_expired_payloads()
    except ClaimCheckError as e:
        raise _fail(e) from None
    typer.echo(f"Deleted {deleted} expired payload(s)")


@app.command("dlq-depth")
def dlq_depth(ctx: typer.Context) -> None:
    """Print the approximate dead-letter queue backlog (-1 if unavailable)."""
    client = _build_client_or_exit(ctx)
    try:
        typer.echo(str(client.dead_letter_depth()))
    except ClaimCheckError as e:
        raise _fail(e) from None


if __name__ == "__main__":
    app()
