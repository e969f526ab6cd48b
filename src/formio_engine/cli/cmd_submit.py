"""Submit command: validate data as a submission would."""

from pathlib import Path

import typer

from formio_engine.cli._app import app, get_options
from formio_engine.cli._common import open_session
from formio_engine.cli._console import output_errors, output_result, print_err, print_ok


@app.command("submit", help="Validate data as a submission; exit 1 when rejected.")
def submit_cmd(
    ctx: typer.Context,
    schema_path: Path = typer.Argument(..., help="Form schema JSON file"),
    data_path: Path = typer.Argument(..., help="Form data JSON file"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Engine config YAML file"),
):
    """Run the submit transition and report whether it was accepted."""
    options = get_options(ctx)
    submitted = {}
    session = open_session(schema_path, data_path, config_path)
    session.on_submit = submitted.update
    accepted = session.submit()
    errors = [error.to_dict() for error in session.errors]

    if options.json_output:
        output_result(
            {"accepted": accepted, "data": submitted or session.data, "errors": errors},
            json_output=True,
        )
    elif accepted:
        print_ok("Submission accepted")
    else:
        print_err(f"Submission rejected: {len(errors)} error(s)")
        output_errors(errors)

    if not accepted:
        raise SystemExit(1)
