"""
Functions for formatting and displaying data in the console using Rich.
"""

import os
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from penaudio.models.stats import ConversionOutcome, ConversionState, ConversionStats
from penaudio.utils.formatting import format_duration, format_size, short_path


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ToolNotFoundError": [
            "• Install mpg123 and vorbis-tools (oggenc, oggdec).",
            "• Or point `tools_dir` in the config file at a folder containing them.",
            "• Run `penaudio diagnose` to see which tools are missing.",
        ],
        "ToolFailedError": [
            "• The source file may be corrupt or not what its extension claims.",
            "• Run the command with -vv to see the tool's output.",
        ],
        "ToolTimeoutError": [
            "• The tool took longer than `tool_timeout` seconds.",
            "• Raise `tool_timeout` in the config file (0 disables it).",
        ],
        "UnsupportedFormatError": [
            "• Only .mp3, .ogg and .wav sources can be converted.",
        ],
        "ArtifactIntegrityError": [
            "• The encoder produced an unreadable file; check your oggenc version.",
            "• Set `verify_output = false` to skip this check.",
        ],
        "CacheIOError": [
            "• Check that the cache directory is writable.",
            "• Change `cache_dir` in the config file or pass --cache-dir.",
        ],
        "ConfigurationError": [
            "• Fix the reported value in the config file.",
            "• Run `penaudio init --force` to write a fresh configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if key == "config_path":
            continue
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            escape(content.strip()),
            title=f"Configuration ([dim]{escape(str(config_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_tool_table(tools: dict[str, str | None]):
    """Displays where each codec tool was found."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    for name, location in tools.items():
        if location:
            table.add_row(f"{name}:", f"[green]✓[/green] [dim]{escape(location)}[/dim]")
        else:
            table.add_row(f"{name}:", "[red]✗ not found[/red]")

    console.print(
        Panel(table, title="[bold]Codec Tools[/bold]", border_style="cyan")
    )


_STATE_STYLES = {
    ConversionState.DONE: "[green]✓ converted[/green]",
    ConversionState.CACHED: "[cyan]○ cached[/cyan]",
    ConversionState.FAILED: "[red]✗ failed[/red]",
    ConversionState.CANCELLED: "[yellow]⚠ cancelled[/yellow]",
}


def print_outcome_table(outcomes: list[ConversionOutcome]):
    """Displays the source → artifact mapping of a session."""
    console = Console()
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Source", style="white", overflow="fold")
    table.add_column("State", no_wrap=True)
    table.add_column("Artifact", style="dim", overflow="fold")

    for outcome in outcomes:
        if outcome.artifact:
            detail = escape(str(outcome.artifact))
        elif outcome.error:
            detail = f"[red]{escape(str(outcome.error))}[/red]"
        else:
            detail = ""
        table.add_row(
            escape(short_path(outcome.source)), _STATE_STYLES[outcome.state], detail
        )
    console.print(table)


def print_summary_panel(stats: ConversionStats, duration_s: float):
    """Displays the final summary of a conversion session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Converted:", f"[bold green]{stats.converted}[/bold green]")
    if stats.cached > 0:
        stats_table.add_row("○ From Cache:", f"[cyan]{stats.cached}[/cyan]")
    if stats.duplicates_skipped > 0:
        stats_table.add_row(
            "○ Duplicates:", f"[yellow]{stats.duplicates_skipped}[/yellow]"
        )
    if stats.cancelled > 0:
        stats_table.add_row("⚠ Cancelled:", f"[yellow]{stats.cancelled}[/yellow]")
    if stats.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Written:", f"[cyan]{format_size(stats.total_size_written)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.converted > 0 and duration_s > 0:
        files_per_minute = (stats.converted / duration_s) * 60
        stats_table.add_row(
            "Throughput:", f"[cyan]{files_per_minute:.1f} files/min[/cyan]"
        )

    if stats.failed:
        title = "⚠ [bold]Conversion Finished With Errors[/bold]"
        border_color = "red"
    else:
        title = "🎵 [bold]Conversion Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_cache_paths(mapping: dict[str, Path]):
    """Displays the cache location of each source and whether it exists."""
    console = Console()
    for source, artifact in mapping.items():
        marker = "[green]✓[/green]" if artifact.is_file() else "[dim]·[/dim]"
        console.print(
            f"{marker} {escape(os.path.basename(source))} → [dim]{escape(str(artifact))}[/dim]"
        )
