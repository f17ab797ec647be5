"""
Console management for acmectl.

Provides the rich-backed console used for user-facing output. Log records
go through logutil; this module is for what the operator is meant to read.
"""

from typing import Any

from rich.console import Console
from rich.table import Table


class ConsoleManager:
    """Manages console output for acmectl."""

    def __init__(self) -> None:
        """Initialize the console manager with stdout and stderr consoles."""
        self.console = Console()
        self.error_console = Console(stderr=True)

    def print(
        self,
        message: str,
        markup: bool = True,
        highlight: bool = False,
        end: str = "\n",
    ) -> None:
        """Print a message to the standard console."""
        self.console.print(message, markup=markup, highlight=highlight, end=end)

    def print_error(self, message: str, end: str = "\n") -> None:
        """Print an error message to the error console."""
        self.error_console.print(f"[bold red]Error:[/bold red] {message}", end=end)

    def print_warning(self, message: str, end: str = "\n") -> None:
        """Print a warning message to the error console."""
        self.error_console.print(f"[yellow]Warning:[/yellow] {message}", end=end)

    def print_note(
        self, message: str, error: Exception | None = None, end: str = "\n"
    ) -> None:
        """Print a note message to the error console, optionally with an error."""
        if error:
            self.error_console.print(
                f"[yellow]Note:[/yellow] {message}: [red]{error}[/red]", end=end
            )
        else:
            self.error_console.print(f"[yellow]Note:[/yellow] {message}", end=end)

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]{message}[/green]")

    def print_config_table(self, config_data: dict[str, Any], title: str = "") -> None:
        """Print a flattened configuration mapping as a two-column table."""
        table = Table(title=title or None)
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for key, value in config_data.items():
            table.add_row(key, "" if value is None else str(value))

        self.console.print(table)


# Create global instance for easy import
console_manager = ConsoleManager()
