"""Helpers shared by the command modules."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from sdkforge.config import ConfigStore, Workspace
from sdkforge.exceptions import SdkforgeError
from sdkforge.output import error


def get_workspace(ctx: typer.Context) -> Workspace:
    return ctx.obj["workspace"]


def get_config_store(ctx: typer.Context) -> ConfigStore:
    return ctx.obj["config_store"]


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Report an :class:`SdkforgeError` and exit with its code."""
    try:
        yield
    except SdkforgeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
