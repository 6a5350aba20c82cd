"""OBS Listener CLI.

Usage:
    obs-listener validate --address host --port 4455
    obs-listener listen --transport myapp.obs:create_transport
    obs-listener replay <command-id> --transport myapp.obs:create_transport

    obs-listener history list              # Most used commands
    obs-listener history list --sort recent
    obs-listener history show <id>         # One command as JSON
    obs-listener history reset-session     # Zero session counters
    obs-listener history clear --yes       # Erase all history

Global options (--config, --storage-dir, --verbose) go before the
subcommand.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from .config import MappingConfigSource, Settings, YamlConfigSource, load_settings
from .connection import ConnectionState
from .event_log import LogEntry
from .history import CommandHistoryItem, CommandHistoryStore
from .orchestrator import Orchestrator
from .storage import FileKeyValueStorage
from .transport import load_transport_factory

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

SORT_FREQUENT = "frequent"
SORT_RECENT = "recent"


def format_datetime(dt: datetime | None) -> str:
    """Format datetime for display."""
    if dt is None:
        return "N/A"
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def truncate(text: str | None, max_len: int = 50) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def format_entry(entry: LogEntry) -> str:
    """One-line rendering of a log entry."""
    stamp = entry.timestamp.astimezone().strftime("%H:%M:%S")
    line = f"{stamp} [{entry.kind.value:<8}] {entry.message}"
    if entry.command is not None:
        line += f"  (rerun: {entry.command.identity})"
    return line


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _history_store(settings: Settings) -> CommandHistoryStore:
    store = CommandHistoryStore(FileKeyValueStorage(settings.storage_dir))
    store.load()
    return store


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with connection settings",
)
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for persisted command history",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    storage_dir: Path | None,
    verbose: bool,
) -> None:
    """OBS Listener - log, replay and rank OBS Studio commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        source = YamlConfigSource(config_path) if config_path else MappingConfigSource()
    except (OSError, ValueError) as e:
        raise click.UsageError(f"Cannot read config: {e}") from e

    settings = load_settings(source)
    if storage_dir is not None:
        settings = settings.model_copy(update={"storage_dir": storage_dir})

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# =============================================================================
# Validation
# =============================================================================


@main.command("validate")
@click.option("--address", default=None, help="Server address (defaults to config)")
@click.option("--port", default=None, help="Server port (defaults to config)")
@click.pass_context
def validate(ctx: click.Context, address: str | None, port: str | None) -> None:
    """Check connection settings without connecting."""
    config = _settings(ctx).connection
    changes = {k: v for k, v in {"address": address, "port": port}.items() if v is not None}
    config = config.replace(**changes)

    errors = config.validate_fields()
    if errors:
        for error in errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    click.echo(f"Configuration OK: {config.url}")


# =============================================================================
# History Commands
# =============================================================================


@main.group()
def history() -> None:
    """Inspect and manage command history."""


def _item_to_dict(item: CommandHistoryItem) -> dict:
    return item.model_dump(mode="json")


@history.command("list")
@click.option(
    "--sort",
    "-s",
    type=click.Choice([SORT_FREQUENT, SORT_RECENT]),
    default=SORT_FREQUENT,
    help="Ranking order",
)
@click.option("--limit", "-n", default=10, help="Maximum commands to show")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_context
def history_list(ctx: click.Context, sort: str, limit: int, output_format: str) -> None:
    """List commands by frequency or recency.

    Examples:

        # Most used commands
        obs-listener history list

        # Last used first, as JSON
        obs-listener history list --sort recent --format json
    """
    store = _history_store(_settings(ctx))
    items = store.get_recent(limit) if sort == SORT_RECENT else store.get_frequent(limit)

    if output_format == FORMAT_JSON:
        click.echo(json.dumps([_item_to_dict(i) for i in items], indent=2, ensure_ascii=False))
        return

    if not items:
        click.echo("No commands in history.")
        return

    click.echo(f"{'Description':<40} {'Type':<26} {'Uses':>5} {'Last used':<17}")
    click.echo("-" * 91)
    for item in items:
        click.echo(
            f"{truncate(item.description, 40):<40} {item.command.type:<26} "
            f"{item.use_count:>5} {format_datetime(item.last_used):<17}"
        )
    click.echo(f"\nTotal: {len(store)} command(s), {store.total_executions()} execution(s)")


@history.command("show")
@click.argument("command_id")
@click.pass_context
def history_show(ctx: click.Context, command_id: str) -> None:
    """Show one command by id (or unique id prefix)."""
    store = _history_store(_settings(ctx))
    try:
        item = store.find(command_id)
    except (KeyError, ValueError) as e:
        click.echo(e.args[0], err=True)
        sys.exit(1)

    click.echo(json.dumps(_item_to_dict(item), indent=2, ensure_ascii=False))


@history.command("reset-session")
@click.pass_context
def history_reset_session(ctx: click.Context) -> None:
    """Zero per-session counters, keeping lifetime counts."""
    store = _history_store(_settings(ctx))
    store.clear_session_counts()
    click.echo(f"Reset session counters for {len(store)} command(s)")


@history.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def history_clear(ctx: click.Context, yes: bool) -> None:
    """Erase all command history.

    Examples:

        obs-listener history clear --yes
    """
    store = _history_store(_settings(ctx))
    count = len(store)

    if not yes and not click.confirm(f"Delete {count} command(s) from history?"):
        click.echo("Cancelled.")
        return

    store.clear_all()
    click.echo(f"Deleted {count} command(s)")


# =============================================================================
# Live Commands
# =============================================================================


def _load_factory(path: str):
    try:
        return load_transport_factory(path)
    except (ImportError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint="--transport") from e


@main.command("listen")
@click.option(
    "--transport",
    "transport_path",
    required=True,
    help="Transport factory as module:attribute",
)
@click.pass_context
def listen(ctx: click.Context, transport_path: str) -> None:
    """Connect and stream log entries until interrupted."""
    settings = _settings(ctx)
    factory = _load_factory(transport_path)

    async def run() -> int:
        obs = Orchestrator(settings, factory)
        obs.event_log.subscribe(lambda entry: click.echo(format_entry(entry)))
        await obs.start(auto_connect=False)
        try:
            if not await obs.connect():
                return 1
            while obs.connection_state == ConnectionState.CONNECTED:
                await asyncio.sleep(0.5)
            return 0
        finally:
            await obs.close()

    try:
        exit_code = asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
        return
    sys.exit(exit_code)


@main.command("replay")
@click.argument("command_id")
@click.option(
    "--transport",
    "transport_path",
    required=True,
    help="Transport factory as module:attribute",
)
@click.pass_context
def replay(ctx: click.Context, command_id: str, transport_path: str) -> None:
    """Execute a command from history.

    Examples:

        obs-listener replay StartStream --transport myapp.obs:create_transport
    """
    settings = _settings(ctx)
    factory = _load_factory(transport_path)

    async def run() -> int:
        obs = Orchestrator(settings, factory)
        await obs.start(auto_connect=False)
        try:
            try:
                item = obs.history.find(command_id)
            except (KeyError, ValueError) as e:
                click.echo(e.args[0], err=True)
                return 1

            obs.event_log.subscribe(lambda entry: click.echo(format_entry(entry)))
            if not await obs.connect():
                return 1
            ok = await obs.execute_command(item.command)
            return 0 if ok else 1
        finally:
            await obs.close()

    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
