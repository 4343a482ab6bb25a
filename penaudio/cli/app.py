"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import signal
from contextlib import suppress
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from penaudio import __version__
from penaudio.core import BatchConverter, MediaFileConverter
from penaudio.exceptions import PenAudioError
from penaudio.media.tools import ToolPaths, find_tool
from penaudio.models.config import ConverterConfig
from penaudio.storage.cache import ArtifactCache
from penaudio.storage.config_manager import ConfigManager
from penaudio.storage.transaction import cleanup_orphan_temp_files
from penaudio.utils.structured_logger import create_structured_logger
from penaudio.utils.formatting import format_size

from .formatters import (
    print_cache_paths,
    print_config,
    print_outcome_table,
    print_summary_panel,
    print_tool_table,
)

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("penaudio")
log.setLevel("WARNING")

app = typer.Typer(
    name="penaudio",
    help=(
        "Convert mp3, ogg and wav files into the pen's audio format, with a"
        " persistent conversion cache. Use 'penaudio <command> --help' for more"
        " info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "penaudio"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> ConverterConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(
            {k: v for k, v in (cli_options or {}).items() if v is not None}
        )
    except PenAudioError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    """Turns SIGTERM into a cooperative cancellation of running conversions."""
    loop = asyncio.get_running_loop()
    with suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGTERM, cancel_event.set)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for progress details, -vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Pen audio converter CLI"""
    if version:
        console.print(f"[bold]penaudio[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    log.setLevel(log_level)

    if show_config:
        config = _load_config()
        print_config(CONFIG_FILE, config.model_dump())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", help="Directory for converted files."
    ),
    tools_dir: Path | None = typer.Option(
        None, "--tools-dir", help="Directory containing mpg123, oggenc and oggdec."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Write a configuration file with the detected codec tools."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings: dict = {}
    if cache_dir:
        settings["cache_dir"] = str(cache_dir.expanduser().resolve())
    if tools_dir:
        settings["tools_dir"] = str(tools_dir.expanduser().resolve())

    defaults = ConverterConfig(**settings)
    for tool in ("mpg123", "oggenc", "oggdec"):
        name = getattr(defaults, tool)
        if location := find_tool(name, defaults.tools_dir):
            console.print(f"[green]✓ Found {tool}:[/green] [dim]{escape(location)}[/dim]")
        else:
            console.print(f"[yellow]⚠️  {tool} not found ('{name}').[/yellow]")

    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except PenAudioError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    console.print(
        f"\n[bold green]✓ Configuration saved to '{escape(str(CONFIG_FILE))}'[/bold green]"
    )


@app.command(name="convert")
def convert_command(
    files: list[Path] = typer.Argument(  # noqa: B008
        ..., help="Source audio files (.mp3, .ogg, .wav)."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Reconvert even if a cached file exists."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous conversions."
    ),
    cache_dir: Path | None = typer.Option(
        None, "--cache-dir", help="Override the configured cache directory."
    ),
    log_dir: Path | None = typer.Option(
        None, "--log-dir", help="Also write JSON-lines event logs to this directory."
    ),
):
    """Convert files into the cache and print where each artifact lives."""
    config = _load_config(
        {
            "max_workers": workers,
            "cache_dir": str(cache_dir) if cache_dir else None,
        }
    )

    async def _convert_async():
        base_logger, conversion_events, session_events = create_structured_logger(
            log_dir, enable_json=log_dir is not None
        )
        base_logger.set_session_context(
            version=__version__, cache_dir=str(config.cache_path)
        )
        cancel_event = asyncio.Event()
        _install_cancel_handler(cancel_event)
        try:
            converter = MediaFileConverter.from_config(config, events=conversion_events)
            batch = BatchConverter(
                converter, config.max_workers, session_events=session_events
            )
            with Progress(
                TextColumn("[bold blue]{task.description}"),
                BarColumn(bar_width=40),
                MofNCompleteColumn(),
                console=console,
                transient=True,
            ) as progress:
                task_id = progress.add_task("Converting", total=len(files))
                outcomes = await batch.convert_all(
                    files,
                    force=force,
                    cancel_event=cancel_event,
                    on_outcome=lambda _: progress.advance(task_id),
                )
        finally:
            base_logger.close()
        return batch, outcomes

    batch, outcomes = asyncio.run(_convert_async())
    print_outcome_table(outcomes)
    print_summary_panel(batch.stats, batch.duration_s)
    if batch.stats.failed:
        raise typer.Exit(code=1)
    if batch.stats.cancelled:
        raise typer.Exit(code=130)


@app.command()
def transcode(
    source: Path = typer.Argument(..., help="Source audio file."),
    destination: Path = typer.Argument(..., help="Output .ogg file."),
):
    """Convert a single file to a destination, bypassing the cache."""
    config = _load_config()

    async def _transcode_async():
        cancel_event = asyncio.Event()
        _install_cancel_handler(cancel_event)
        converter = MediaFileConverter.from_config(config)
        return await converter.convert_file(source, destination, cancel_event)

    result = asyncio.run(_transcode_async())
    console.print(f"[green]✓ Wrote[/green] [dim]{escape(str(result))}[/dim]")


@app.command()
def path(
    files: list[Path] = typer.Argument(..., help="Source audio files."),  # noqa: B008
):
    """Show the cache location of each source without converting."""
    config = _load_config()
    converter = MediaFileConverter.from_config(config)

    async def _paths():
        return {str(f): await converter.get_artifact_path(f) for f in files}

    print_cache_paths(asyncio.run(_paths()))


@app.command()
def diagnose():
    """Check the configuration and the availability of the codec tools."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False

    if CONFIG_FILE.is_file():
        console.print(f"[green]✓[/] Config file exists at: [dim]{escape(str(CONFIG_FILE))}[/dim]")
    else:
        console.print("[yellow]○ No config file, using defaults.[/] Run [cyan]penaudio init[/cyan].")

    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        console.print("[green]✓[/] Configuration is valid.")
    except PenAudioError as e:
        console.print(f"[red]✗ Configuration validation failed: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    tools = ToolPaths.from_config(config)
    locations = {
        name: find_tool(getattr(tools, name))
        for name in ("mpg123", "oggenc", "oggdec")
    }
    print_tool_table(locations)
    if not all(locations.values()):
        issues_found = True

    cache_dir = config.cache_path
    if cache_dir.is_dir() and not os.access(cache_dir, os.W_OK):
        console.print(f"[red]✗ Cache directory is not writable:[/] {escape(str(cache_dir))}")
        issues_found = True
    else:
        console.print(f"[green]✓[/] Cache directory: [dim]{escape(str(cache_dir))}[/dim]")
        cache_stats = ArtifactCache(cache_dir).stats()
        console.print(
            f"  [dim]{cache_stats['artifacts']} cached file(s),"
            f" {format_size(cache_stats['total_size'])}[/dim]"
        )

    console.print()
    if not issues_found:
        console.print("[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n")
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)


@app.command(name="clean-temp")
def clean_temp():
    """Remove temporary files left in the cache by interrupted runs."""
    config = _load_config()
    removed = cleanup_orphan_temp_files(config.cache_path)
    console.print(f"[green]✓ Removed {removed} temporary file(s).[/green]")
