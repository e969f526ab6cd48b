"""Rich console singleton and output helpers."""

import json as json_mod

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Status/progress to stderr so it doesn't pollute piped JSON output
console = Console(stderr=True)

# Data output to stdout (pipeable to jq); resolved per write so redirection is honored
stdout_console = Console()


def print_ok(msg: str) -> None:
    """Print a success message to stderr."""
    console.print(f"[green]✓[/green] {msg}")


def print_err(msg: str) -> None:
    """Print an error message to stderr."""
    console.print(f"[red]✗[/red] {msg}")


def output_result(data: dict, *, json_output: bool, title: str = "") -> None:
    """Print result as JSON (stdout) or a Rich panel (stderr)."""
    if json_output:
        stdout_console.print_json(data=data)
    else:
        formatted = json_mod.dumps(data, indent=2, ensure_ascii=False, default=str)
        if title:
            console.print(Panel(formatted, title=title, border_style="blue"))
        else:
            console.print(formatted)


def output_errors(errors: list[dict], *, title: str = "Validation errors") -> None:
    """Render validation errors as a Rich table on stderr."""
    if not errors:
        console.print("[dim]No validation errors[/dim]")
        return

    table = Table(title=title, show_lines=False)
    for col in ("field", "message", "code"):
        table.add_column(col)
    for error in errors:
        table.add_row(*[str(error.get(c, "")) for c in ("field", "message", "code")])
    console.print(table)
