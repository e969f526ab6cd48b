"""Check command: evaluate a schema against data and report the snapshot."""

from pathlib import Path

import typer

from formio_engine.cli._app import app, get_options
from formio_engine.cli._common import open_session, session_report
from formio_engine.cli._console import console, output_errors, output_result


@app.command("check", help="Show visibility, calculated data and errors for a schema.")
def check_cmd(
    ctx: typer.Context,
    schema_path: Path = typer.Argument(..., help="Form schema JSON file"),
    data_path: Path = typer.Option(None, "--data", "-d", help="Form data JSON file"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Engine config YAML file"),
):
    """Initialize a session and print the resulting snapshot."""
    options = get_options(ctx)
    session = open_session(schema_path, data_path, config_path)
    report = session_report(session)

    if options.json_output:
        output_result(report, json_output=True)
        return

    output_result(report["data"], json_output=False, title=report["title"] or "Data")
    hidden = sorted(key for key, is_hidden in report["visibility"].items() if is_hidden)
    if hidden:
        console.print(f"[dim]Hidden:[/dim] {', '.join(hidden)}")
    if not report["calculation"]["converged"]:
        console.print(
            f"[yellow]![/yellow] Calculations did not converge after "
            f"{report['calculation']['passes']} passes"
        )
    output_errors(report["errors"])
