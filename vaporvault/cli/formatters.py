"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vaporvault.exceptions import ValidationError, ValidationErrorKind
from vaporvault.models.result import SteamCmdResult
from vaporvault.utils.formatting import format_duration, truncate_lines

_VALIDATION_SUGGESTIONS = {
    ValidationErrorKind.INSUFFICIENT_SPACE: [
        "• Free up space on the drive holding the install directory.",
        "• Or choose another location with `--install-dir`.",
    ],
    ValidationErrorKind.CORRUPTED: [
        "• The download was probably truncated. Run `steamcmd install --force`.",
    ],
    ValidationErrorKind.EMPTY: [
        "• The download was probably truncated. Run `steamcmd install --force`.",
    ],
    ValidationErrorKind.INVALID_HEADER: [
        "• The extracted file is not a Windows executable.",
        "• Delete the install directory and run `steamcmd install` again.",
    ],
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "DownloadError": [
            "• Check your internet connection.",
            "• The Steam CDN might be temporarily unavailable; try again later.",
            "• Run `vaporvault diagnose` to test connectivity.",
        ],
        "ExtractionError": [
            "• The archive may be damaged. Run `steamcmd install --force`.",
            "• Make sure the install directory is writable.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `vaporvault init --force` to recreate it.",
        ],
        "ProvisioningError": [
            "• Make sure the install directory is writable.",
            "• Or choose another location with `--install-dir`.",
        ],
        "PermissionError": [
            "• Make sure the install directory is writable.",
        ],
    }

    if isinstance(error, ValidationError):
        suggestions = _VALIDATION_SUGGESTIONS.get(
            error.kind, ["• Run `steamcmd install --force` to reinstall SteamCMD."]
        )
    else:
        suggestions = suggestions_map.get(
            error_type, ["• Run the command with -vv for detailed logs."]
        )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)
    if error.__cause__ is not None:
        error_text.append(f"\nCaused by: {error.__cause__!r}", style="dim")

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

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
    content = "\n".join(
        f"{key} = {'' if value is None else value}"
        for key, value in sorted(config_data.items())
    )
    console.print(
        Panel(
            content or "[dim](defaults)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_status_table(installed_path: str | None, install_dir: Path):
    """Displays whether SteamCMD is installed and where."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    if installed_path:
        table.add_row("Installed:", "[green]Yes[/green]")
        table.add_row("Location:", installed_path)
    else:
        table.add_row("Installed:", "[red]No[/red]")
        table.add_row("Install Directory:", f"[dim]{install_dir}[/dim]")

    console.print(
        Panel(table, title="[bold]SteamCMD Status[/bold]", border_style="cyan")
    )


def print_steamcmd_help():
    """Lists the steamcmd subcommands."""
    console = Console()
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column(style="bold magenta", no_wrap=True)
    table.add_column()
    table.add_row("status", "Show current SteamCMD installation status")
    table.add_row("install", "Install or update SteamCMD")
    table.add_row("run", "Run a raw SteamCMD command line")
    table.add_row("download-depot", "Download a depot, optionally at a manifest")
    table.add_row("help", "Show this help message")
    console.print(Panel(table, title="[bold]SteamCMD Commands[/bold]", expand=False))


def print_result_panel(result: SteamCmdResult, duration_s: float):
    """Displays the outcome of a SteamCMD run."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    table.add_row("Exit Code:", str(result.exit_code))
    table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")
    if result.has_errors:
        table.add_row("Errors:", Text(truncate_lines(result.error), style="red"))

    if result.success:
        title = "[bold green]✓ SteamCMD succeeded[/bold green]"
        border_color = "green"
    else:
        title = "[bold red]✗ SteamCMD failed[/bold red]"
        border_color = "red"

    console.print()
    console.print(
        Panel(table, title=title, border_style=border_color, expand=False)
    )
