"""CLI package: Typer-based developer command-line interface.

Usage:
    formio-engine --help
    formio-engine check schema.json --data data.json
"""

from formio_engine.cli._app import app

# Register command modules (side-effect imports)
import formio_engine.cli.cmd_check  # noqa: F401
import formio_engine.cli.cmd_submit  # noqa: F401

__all__ = ["app"]
