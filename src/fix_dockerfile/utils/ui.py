"""
User Interface utilities for fix-dockerfile.
Handles console output (via Rich) and logging integration.
"""

import logging
from typing import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from fix_dockerfile.constants import PROJECT_NAME
from fix_dockerfile.schema import RepairDiagnostic

# 1. 初始化 Rich Console 和 Logger
console = Console()
logger = logging.getLogger(PROJECT_NAME)


# ---------------------------------------------------------
# 1. Output Functions (UI + Logging)
# ---------------------------------------------------------


def debug(message: str) -> None:
    """Log as DEBUG only."""
    logger.debug(message)


def success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")
    logger.info(message)


def error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")
    logger.error(message)


def warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")
    logger.warning(message)


def info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")
    logger.info(message)


def step(message: str) -> None:
    """Print a pipeline stage message."""
    console.print(f"[bold blue]➤[/bold blue] {message}")
    logger.info(f"Step: {message}")


# ---------------------------------------------------------
# 2. Rich Visualization Components
# ---------------------------------------------------------


def print_dockerfile(dockerfile: str, title: str = "Dockerfile") -> None:
    """Print a Dockerfile with syntax highlighting."""
    logger.debug(f"Displaying Dockerfile ({title}):\n{dockerfile}")

    syntax = Syntax(dockerfile, "dockerfile", theme="monokai", line_numbers=True)
    console.print(Panel(syntax, title=title, expand=False, border_style="blue"))


def print_comparison(original: str, repaired: str) -> None:
    """Print the original and the repaired Dockerfile one after the other."""
    logger.info("Displaying comparison between original and repaired Dockerfiles")

    console.print(
        Panel(
            Syntax(original, "dockerfile", theme="monokai", line_numbers=True),
            title="Original Dockerfile (Before)",
            style="red",
            expand=False,
        )
    )
    console.print(
        Panel(
            Syntax(repaired, "dockerfile", theme="monokai", line_numbers=True),
            title="Repaired Dockerfile (After)",
            style="green",
            expand=False,
        )
    )


def print_diagnostics(
    diagnostics: Iterable[RepairDiagnostic], title: str = "Diagnostics"
) -> None:
    """Print diagnostics as a table, one row per problem."""
    diagnostics = list(diagnostics)
    logger.debug(f"Displaying {len(diagnostics)} diagnostics")

    if not diagnostics:
        success("No problems detected")
        return

    table = Table(title=title)
    table.add_column("Line", style="cyan", justify="right")
    table.add_column("Code", style="magenta")
    table.add_column("Source", style="dim")
    table.add_column("Message")

    for diagnostic in diagnostics:
        start = diagnostic.range.start
        table.add_row(
            f"{start.line + 1}:{start.character + 1}",
            diagnostic.code,
            str(diagnostic.source),
            diagnostic.message,
        )

    console.print(table)
