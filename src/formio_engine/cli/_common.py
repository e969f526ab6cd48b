"""Shared helpers for CLI commands."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from formio_engine.config import EngineConfig, load_engine_config
from formio_engine.errors import FormioError
from formio_engine.runtime import FormSession, load_form_data, load_form_schema

logger = logging.getLogger(__name__)


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def open_session(
    schema_path: Path,
    data_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> FormSession:
    """Load schema, data and config files and return an initialized session.

    Raises:
        SystemExit: If any input file cannot be loaded.
    """
    from formio_engine.cli._console import print_err

    try:
        config: EngineConfig = load_engine_config(config_path)
        schema = load_form_schema(schema_path)
        data: Dict[str, Any] = load_form_data(data_path) if data_path else {}
    except FormioError as e:
        print_err(str(e))
        raise SystemExit(1)

    session = FormSession(config=config)
    session.initialize(schema, data)
    return session


def session_report(session: FormSession) -> Dict[str, Any]:
    """Summarize a session snapshot as a JSON-serializable dict."""
    calculation = session.last_calculation
    return {
        "title": session.schema.title if session.schema else None,
        "data": session.data,
        "visibility": session.visibility,
        "errors": [error.to_dict() for error in session.errors],
        "valid": not session.errors,
        "calculation": {
            "passes": calculation.passes if calculation else 0,
            "converged": calculation.converged if calculation else True,
        },
    }
