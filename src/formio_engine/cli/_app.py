"""Root Typer application: global options shared by every command."""

from dataclasses import dataclass
from typing import Optional

import typer

from formio_engine import __version__
from formio_engine.cli._common import setup_logging

app = typer.Typer(
    name="formio-engine",
    help="Evaluate Formio form schemas against data: visibility, calculations, validation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)


@dataclass
class CliOptions:
    """Global options, stored on ``ctx.obj`` for the commands."""

    verbose: bool = False
    quiet: bool = False
    json_output: bool = False


def get_options(ctx: typer.Context) -> CliOptions:
    """Options of the current invocation; defaults when the callback did not run."""
    return ctx.obj if isinstance(ctx.obj, CliOptions) else CliOptions()


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"formio-engine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log expression failures and engine passes"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
    json_output: bool = typer.Option(False, "--json", help="Write the report as JSON to stdout"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_print_version, is_eager=True, help="Show the version and exit"
    ),
):
    """[bold]formio-engine[/bold]: run a form schema through the engine from the shell."""
    ctx.obj = CliOptions(verbose=verbose, quiet=quiet, json_output=json_output)
    setup_logging(verbose=verbose, quiet=quiet)
