"""
Main entry point for the repofetch application.
This module handles top-level setup, exception handling, and CLI invocation.
"""

import logging
import sys

import typer
from rich.console import Console

from repofetch.cli.app import app
from repofetch.cli.formatters import format_error_with_suggestions
from repofetch.exceptions import RepoFetchError


def main() -> None:
    """Main entry point function."""
    log = logging.getLogger("repofetch")
    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(0)
    except RepoFetchError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
