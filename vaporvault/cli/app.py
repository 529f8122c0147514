"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import aiohttp
import typer
from rich.console import Console
from rich.logging import RichHandler

from vaporvault import __version__
from vaporvault.core import SteamCmdServices, create_services
from vaporvault.core.locator import ESTIMATED_REQUIRED_SPACE
from vaporvault.exceptions import VaporVaultError
from vaporvault.infra.http_downloader import ProgressCallback
from vaporvault.models.options import AppConfig
from vaporvault.storage.config_manager import ConfigManager, get_config_dir
from vaporvault.utils.formatting import format_size
from vaporvault.utils.structured_logger import StructuredLogger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_result_panel,
    print_status_table,
    print_steamcmd_help,
)
from .progress_manager import DownloadProgress

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
log = logging.getLogger("vaporvault")

app = typer.Typer(
    name="vaporvault",
    help=(
        "Installs SteamCMD on demand and runs commands against it. Use 'vaporvault"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
steamcmd_app = typer.Typer(
    help="Manage the SteamCMD installation and run SteamCMD commands.",
    rich_markup_mode="rich",
)
app.add_typer(steamcmd_app, name="steamcmd")

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

T = TypeVar("T")

InstallDirOption = typer.Option(
    None,
    "--install-dir",
    "-d",
    help="Directory SteamCMD is installed to (overrides the config file).",
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    log_dir: Path | None = typer.Option(
        None,
        "--log-dir",
        help="Write structured JSON logs of validation events to this directory.",
    ),
):
    """VaporVault CLI"""
    if version:
        console.print(f"[bold]vaporvault[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    logging.getLogger("vaporvault").setLevel(log_level)

    ctx.obj = {"log_dir": log_dir}

    if show_config:
        config = _load_config(ctx)
        print_config(
            CONFIG_FILE,
            config.model_dump(include=AppConfig.get_ini_keys()),
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _load_config(ctx: typer.Context, **overrides: Any) -> AppConfig:
    """Loads the config file with CLI overrides, exiting on invalid settings."""
    cli_options = {key: value for key, value in overrides.items() if value is not None}
    if ctx.obj and ctx.obj.get("log_dir") is not None:
        cli_options["log_dir"] = ctx.obj["log_dir"]
        cli_options["enable_json_log"] = True
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except VaporVaultError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _run_with_services(
    config: AppConfig,
    action: Callable[[SteamCmdServices], Awaitable[T]],
    progress: ProgressCallback | None = None,
) -> T:
    """Builds the service graph, runs ``action`` and reports failures."""

    async def _runner() -> T:
        structured = None
        if config.enable_json_log and config.log_dir is not None:
            structured = StructuredLogger(
                "vaporvault.events", log_dir=config.log_dir, enable_console=False
            )
            structured.set_session_context(
                install_directory=str(
                    config.to_install_options().resolve_install_directory()
                )
            )
            log.debug(f"Writing structured logs to '{structured.json_log_path}'")

        services = create_services(config.to_install_options(), structured, progress)
        try:
            return await action(services)
        finally:
            await services.close()
            if structured:
                structured.close()

    try:
        return asyncio.run(_runner())
    except VaporVaultError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.command()
def init(
    install_dir: Path | None = InstallDirOption,
    force_redownload: bool = typer.Option(
        False,
        "--force-redownload",
        help="Always download a fresh copy of SteamCMD.",
    ),
    log_dir: Path | None = typer.Option(
        None, "--log-dir", help="Directory for structured JSON logs."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Create the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings: dict[str, Any] = {"force_redownload": force_redownload}
    if install_dir is not None:
        settings["install_directory"] = install_dir.expanduser().resolve()
    if log_dir is not None:
        settings["log_dir"] = log_dir.expanduser().resolve()
        settings["enable_json_log"] = True

    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except VaporVaultError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    console.print(
        f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )


@steamcmd_app.callback(invoke_without_command=True)
def steamcmd_callback(ctx: typer.Context):
    """Manage the SteamCMD installation and run SteamCMD commands."""
    if ctx.invoked_subcommand is None:
        status(ctx, install_dir=None)


@steamcmd_app.command()
def status(ctx: typer.Context, install_dir: Path | None = InstallDirOption):
    """Show current SteamCMD installation status."""
    config = _load_config(ctx, install_directory=install_dir)

    async def _status(services: SteamCmdServices) -> None:
        installed_path = services.locator.probe_filesystem()
        print_status_table(
            installed_path, config.to_install_options().resolve_install_directory()
        )

    _run_with_services(config, _status)


@steamcmd_app.command()
def install(
    ctx: typer.Context,
    force: bool = typer.Option(
        False, "--force", "-f", help="Download SteamCMD even if it is installed."
    ),
    install_dir: Path | None = InstallDirOption,
):
    """Install or update SteamCMD."""
    config = _load_config(
        ctx, install_directory=install_dir, force_redownload=force or None
    )
    console.print("[cyan]Installing/Updating SteamCMD...[/cyan]")

    with DownloadProgress(console) as progress:
        path = _run_with_services(
            config, lambda services: services.locator.ensure_available(), progress
        )
    console.print(f"[green]✓ SteamCMD installed successfully at: {path}[/green]")


@steamcmd_app.command(name="help")
def help_command():
    """Show the SteamCMD subcommands."""
    print_steamcmd_help()


def _execute(
    config: AppConfig,
    run: Callable[[SteamCmdServices], Awaitable[Any]],
) -> None:
    start_time = time.monotonic()
    with DownloadProgress(console) as progress:
        result = _run_with_services(config, run, progress)
    print_result_panel(result, time.monotonic() - start_time)
    if not result.success:
        raise typer.Exit(code=result.exit_code or 1)


def _echo(quiet: bool) -> Callable[[str], None] | None:
    if quiet:
        return None
    return lambda line: console.print(line, markup=False, highlight=False)


@steamcmd_app.command(name="run", context_settings={"ignore_unknown_options": True})
def run_command(
    ctx: typer.Context,
    arguments: list[str] = typer.Argument(  # noqa: B008
        ..., help="SteamCMD command line, e.g. +login anonymous +app_update 740"
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Do not echo SteamCMD output while it runs."
    ),
    install_dir: Path | None = InstallDirOption,
):
    """Run a raw SteamCMD command line (+quit is appended automatically)."""
    config = _load_config(ctx, install_directory=install_dir)
    command_line = " ".join(arguments)
    _execute(
        config,
        lambda services: services.service.run_command(
            command_line, on_output=_echo(quiet)
        ),
    )


@steamcmd_app.command(name="download-depot")
def download_depot(
    ctx: typer.Context,
    app_id: int = typer.Argument(..., help="Steam application ID."),
    depot_id: int = typer.Argument(..., help="Depot ID within the application."),
    manifest_id: str | None = typer.Argument(
        None, help="Manifest ID to pin the depot version."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Do not echo SteamCMD output while it runs."
    ),
    install_dir: Path | None = InstallDirOption,
):
    """Download a depot, optionally pinned to a manifest."""
    config = _load_config(ctx, install_directory=install_dir)
    _execute(
        config,
        lambda services: services.service.download_depot(
            app_id, depot_id, manifest_id, on_output=_echo(quiet)
        ),
    )


@app.command()
def diagnose(ctx: typer.Context):
    """Diagnose common configuration, disk and connectivity issues."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    if CONFIG_FILE.is_file():
        console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")
    else:
        console.print(
            "[yellow]○[/] No config file, using defaults. "
            "Run [cyan]vaporvault init[/cyan] to create one."
        )
    config = _load_config(ctx)
    console.print("[green]✓[/] Configuration is valid.")

    async def _diagnose(services: SteamCmdServices) -> bool:
        issues_found = False
        install_dir = config.to_install_options().resolve_install_directory()

        try:
            await services.validator.ensure_sufficient_disk_space(
                str(install_dir), ESTIMATED_REQUIRED_SPACE
            )
            console.print(
                f"[green]✓[/] At least {format_size(ESTIMATED_REQUIRED_SPACE)} free "
                f"for [dim]{install_dir}[/dim]"
            )
        except VaporVaultError as e:
            console.print(f"[red]✗ {e}[/red]")
            issues_found = True

        installed_path = services.locator.probe_filesystem()
        if installed_path:
            try:
                await services.validator.validate_executable(installed_path)
                console.print(
                    f"[green]✓[/] SteamCMD is installed at: {installed_path}"
                )
            except VaporVaultError as e:
                console.print(f"[red]✗ Installed SteamCMD is invalid: {e}[/red]")
                issues_found = True
        else:
            console.print(
                "[yellow]○[/] SteamCMD is not installed yet. "
                "Run [cyan]vaporvault steamcmd install[/cyan]."
            )

        console.print("\n[dim]Testing connectivity to the Steam CDN...[/dim]")
        url = services.locator.download_url
        try:
            timeout = aiohttp.ClientTimeout(total=10)
            async with (
                aiohttp.ClientSession(timeout=timeout) as session,
                session.head(url, allow_redirects=True) as resp,
            ):
                if resp.status == 200:
                    console.print("[green]✓[/] Successfully reached the Steam CDN.")
                else:
                    console.print(
                        f"[red]✗ Steam CDN returned status {resp.status}.[/red]"
                    )
                    issues_found = True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            console.print(f"[red]✗ Connection test failed: {e}[/red]")
            issues_found = True

        return issues_found

    issues_found = _run_with_services(config, _diagnose)
    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)
