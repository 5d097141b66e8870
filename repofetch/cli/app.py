"""
Defines the command-line interface for the application using Typer.
"""

import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from repofetch import __version__
from repofetch.engine.base import EngineOption
from repofetch.exceptions import ConfigInvalid, OptionRejected, RepoFetchError
from repofetch.models.config import RemoteConfig
from repofetch.remote.handle import SessionHandle
from repofetch.storage.config_manager import MAIN_SECTION, ConfigManager

from .formatters import (
    print_options_table,
    print_summary_panel,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
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
log = logging.getLogger("repofetch")

app = typer.Typer(
    name="repofetch",
    help=(
        "Download files from package repositories using the network, TLS and"
        " proxy settings of a dnf-style configuration."
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
    return base_dir.expanduser() / "repofetch"


CONFIG_FILE = get_config_dir() / "repofetch.conf"

ConfigOption = typer.Option(
    CONFIG_FILE, "--config", "-c", help="Path to the INI configuration file."
)
RepoOption = typer.Option(
    None,
    "--repo",
    "-r",
    help="Use the options of this repository instead of the main section.",
)


def _select_config(config_path: Path, repo: str | None) -> RemoteConfig:
    log.debug(f"Loading configuration from '{config_path}'")
    manager = ConfigManager(config_path)
    if repo:
        return manager.get_repo(repo)
    return manager.load().main


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
):
    """Repository download CLI"""
    if version:
        console.print(f"[bold]repofetch[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("repofetch").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command(name="show-options")
def show_options(
    config: Path = ConfigOption,
    repo: str | None = RepoOption,
):
    """Show the engine options a configuration produces."""
    try:
        remote_config = _select_config(config, repo)
        with SessionHandle() as handle:
            handle.configure(remote_config)
            options = dict(handle.get().options)
    except RepoFetchError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    print_options_table(f"Engine options for [{repo or MAIN_SECTION}]", options)


@app.command()
def validate(config: Path = ConfigOption):
    """Validate the configuration and every repository in it."""
    try:
        loaded = ConfigManager(config).load()
    except RepoFetchError as e:
        console.print(f"[red]✗ Configuration is invalid: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    results: list[tuple[str, str | None]] = []
    sections = [(MAIN_SECTION, loaded.main), *loaded.repos.items()]
    for name, section in sections:
        try:
            with SessionHandle() as handle:
                handle.configure(section)
            results.append((name, None))
        except (ConfigInvalid, OptionRejected) as e:
            results.append((name, str(e)))

    print_validation_table(results)
    if any(error is not None for _, error in results):
        raise typer.Exit(code=1)


@app.command(name="download")
def download_command(
    urls: list[str] = typer.Argument(..., help="One or more URLs to download."),  # noqa: B008
    config: Path = ConfigOption,
    repo: str | None = RepoOption,
    destdir: Path = typer.Option(
        Path("."), "--destdir", "-d", help="Directory to store the downloaded files."
    ),
):
    """Download files using the configured network settings."""
    try:
        remote_config = _select_config(config, repo)
    except RepoFetchError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e

    with (
        Progress(
            TextColumn("[cyan]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console,
            transient=True,
        ) as progress,
        SessionHandle() as handle,
    ):
        task_id = progress.add_task("Downloading", total=None)

        def _on_progress(total: int, downloaded: int) -> None:
            progress.update(task_id, total=total or None, completed=downloaded)

        handle.configure(remote_config)
        handle.set_opt(EngineOption.URLS, urls)
        handle.set_opt(EngineOption.DESTDIR, destdir)
        handle.set_opt(EngineOption.PROGRESSCB, _on_progress)

        start_time = time.monotonic()
        with handle.perform() as result:
            duration = time.monotonic() - start_time
            progress.stop()
            print_summary_panel(result.get(), duration)
