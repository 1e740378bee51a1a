"""Typer application and console entry point for fetchless.

The ``fetchless`` command is a thin shell around
:class:`~fetchless.client.CachingClient` backed by the on-disk
:class:`~fetchless.cache.DiskStore`:

* ``fetchless get URL`` -- cached GET, body on stdout.
* ``fetchless cache list|stats|clear`` -- inspect the response store.
* ``fetchless config show|set|reset`` -- manage the user configuration.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from fetchless import __version__
from fetchless.commands.cache import cache_app
from fetchless.commands.config import config_app
from fetchless.commands.fetch import get_command
from fetchless.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="fetchless",
    help="Cached HTTP GETs from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("get")(get_command)
app.add_typer(cache_app, name="cache", help="Inspect or clear the on-disk response store.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"fetchless {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output, including cache decisions."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~fetchless.output.OutputManager` built from
    the output flags and, with ``--verbose``, routes library logging to
    stderr.
    """
    from fetchless.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    output.attach_logging()

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Exit cleanly with status 130 on Ctrl-C."""

    def _handler(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback under the data directory and return its path."""
    from fetchless.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return str(log_path)


def main() -> None:
    """Entry point of the ``fetchless`` console script.

    A :class:`~fetchless.exceptions.FetchlessError` that escapes a command
    exits with its ``exit_code``; any other exception writes a crash log
    and exits with a generic failure.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from fetchless.exceptions import FetchlessError
        from fetchless.output import error

        if isinstance(exc, FetchlessError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
