"""
Functions for formatting and displaying data in the console using Rich.
"""

from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from repofetch.engine.base import SECRET_OPTIONS, EngineOption
from repofetch.utils.formatting import format_duration, format_option_value, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigInvalid": [
            "• Lower `minrate` or raise `throttle`/`bandwidth` in the configuration.",
            "• A `throttle` between 0 and 1 is a fraction of `bandwidth`.",
        ],
        "ConfigurationError": [
            "• Check the path passed with --config.",
            "• Run `repofetch validate` to see every problem at once.",
        ],
        "OptionRejected": [
            "• The transfer engine refused a configured value.",
            "• Only http:// and https:// proxies are supported.",
        ],
        "TransferFailed": [
            "• Check that the URL is reachable from this machine.",
            "• Verify proxy and TLS settings with `repofetch show-options`.",
            "• Increase `timeout` or lower `minrate` on slow links.",
        ],
        "AllocationFailed": [
            "• The transfer engine could not create a session.",
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


def print_options_table(title: str, options: dict[EngineOption, Any]) -> None:
    """Displays the engine options of a configured session, hiding credentials."""
    console = Console()
    table = Table(title=escape(title), box=box.SIMPLE_HEAVY, show_header=True)
    table.add_column("Option", style="bold cyan")
    table.add_column("Value")

    for option, value in options.items():
        shown = "[hidden]" if option in SECRET_OPTIONS else format_option_value(value)
        table.add_row(option.name, escape(shown))

    console.print(table)


def print_validation_table(results: list[tuple[str, str | None]]) -> None:
    """Displays one row per configuration section with its validation outcome."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    for section, error in results:
        if error is None:
            status = "[green]✓ OK[/green]"
        else:
            status = f"[red]✗ {escape(error)}[/red]"
        table.add_row(escape(f"[{section}]"), status)

    console.print(table)


def print_summary_panel(result: Any, duration: float) -> None:
    """Prints a summary of a completed transfer."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()

    stats = result.stats
    table.add_row("Files downloaded:", f"[green]{stats.files_downloaded}[/green]")
    table.add_row("Total size:", format_size(stats.total_size_downloaded))
    table.add_row("Duration:", format_duration(duration))
    if stats.peak_speed_bps:
        table.add_row("Peak speed:", f"{format_size(stats.peak_speed_bps)}/s")
    for item in result.files:
        table.add_row("", f"[dim]{escape(str(item.path))}[/dim]")

    console.print(
        Panel(table, title="[bold]Transfer Summary[/bold]", border_style="green")
    )
