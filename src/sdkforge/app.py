"""Typer application and CLI entry point for sdkforge.

This module wires together the top-level Typer application and registers
the built-in commands (``build``, ``develop``, ``test``, ``generators``,
``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~sdkforge.exceptions.SdkforgeError` exits with the error's code;
any other exception is written to a crash log under ``out/logs``.

See Also:
    :mod:`sdkforge.config`: Workspace resolution and the config store.
    :mod:`sdkforge.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from sdkforge import __version__
from sdkforge.commands.build import build_command, develop_command, test_command
from sdkforge.commands.config import config_app
from sdkforge.commands.generators import generators_app
from sdkforge.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="sdkforge",
    help="Build multi-language SDKs from an OpenAPI document.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("build")(build_command)
app.command("develop")(develop_command)
app.command("test")(test_command)
app.add_typer(generators_app, name="generators", help="List and initialize generators.")
app.add_typer(config_app, name="config", help="Application config and OpenAPI variants.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"sdkforge {__version__}")
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
    root: Optional[Path] = typer.Option(
        None, "--root", "-r", help="Workspace root (default: $SDKFORGE_ROOT or the current directory)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~sdkforge.output.OutputManager`, resolves
    the workspace, configures logging, and stores the workspace and its
    :class:`~sdkforge.config.ConfigStore` in ``ctx.obj``.
    """
    from sdkforge.config import ConfigStore, resolve_workspace
    from sdkforge.exceptions import SdkforgeError
    from sdkforge.logging_setup import configure_logging
    from sdkforge.output import OutputFormat, OutputManager, set_output, warning

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    workspace = resolve_workspace(str(root) if root else None)
    store = ConfigStore(workspace)
    try:
        log_level = store.application().log_level
    except SdkforgeError as exc:
        warning(str(exc))
        log_level = "info"
    configure_logging(verbose=verbose, log_level=log_level, log_file=workspace.activity_log)

    ctx.ensure_object(dict)
    ctx.obj["workspace"] = workspace
    ctx.obj["config_store"] = store
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback under ``out/logs`` and return its path."""
    from sdkforge.config import resolve_workspace

    logs_dir = resolve_workspace().logs_dir
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``sdkforge`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
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
        from sdkforge.exceptions import SdkforgeError
        from sdkforge.output import error

        if isinstance(exc, SdkforgeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
