"""Build commands -- one-shot builds, watch mode, and SDK test runs."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from sdkforge.commands.common import exit_on_error, get_config_store, get_workspace
from sdkforge.exceptions import InvalidUsageError, SdkTestError
from sdkforge.output import info, progress, success, suggest

GENERATOR_ARGUMENT = typer.Argument(None, help="Generator name (e.g. 'php').", show_default=False)


def build_command(
    ctx: typer.Context,
    generator: Optional[str] = GENERATOR_ARGUMENT,
    spec: Optional[str] = typer.Option(
        None,
        "--spec",
        "-s",
        help="Read the OpenAPI document from a file, URL or '-' instead of config/openapi.json.",
    ),
) -> None:
    """Build an SDK once into out/<generator>.

    Example::

        sdkforge build php
        sdkforge build php --spec https://api.example.com/openapi.json
    """
    from sdkforge.generator import BuildOrchestrator

    workspace = get_workspace(ctx)
    with exit_on_error():
        orchestrator = BuildOrchestrator(workspace, get_config_store(ctx), spec_source=spec)
        progress(f"Building {generator} SDK...")
        result = asyncio.run(orchestrator.build(generator or ""))
    success(f"{result.generator} SDK ready in out/{result.generator} ({len(result.actions)} change(s))")


def develop_command(
    ctx: typer.Context,
    generator: Optional[str] = GENERATOR_ARGUMENT,
    poll_interval: float = typer.Option(0.5, "--poll-interval", help="Seconds between file scans."),
    debounce: float = typer.Option(0.2, "--debounce", help="Seconds between a change and its rebuild."),
) -> None:
    """Rebuild an SDK whenever its generator or the configuration changes.

    Watches ``generators/<generator>`` and ``config/``. Stops when the
    generator directory is removed.
    """
    from sdkforge.generator import BuildOrchestrator, require_generator
    from sdkforge.watcher import PollingWatcher, WatchLoop

    workspace = get_workspace(ctx)
    store = get_config_store(ctx)
    with exit_on_error():
        paths = require_generator(workspace, generator)
        store.openapi()

        orchestrator = BuildOrchestrator(workspace, store)
        watcher = PollingWatcher([paths.source_dir, workspace.config_dir], poll_interval=poll_interval)
        loop = WatchLoop(
            paths.source_dir,
            lambda: orchestrator.build(paths.name),
            reload_config=store.reload,
            debounce=debounce,
        )
        info(
            f'Listening to "generators/{paths.name}" for changes, '
            f're-building to "out/{paths.name}"...'
        )
        asyncio.run(loop.run(watcher.events()))


def test_command(
    ctx: typer.Context,
    generator: Optional[str] = GENERATOR_ARGUMENT,
) -> None:
    """Run the test suite of a built SDK through its generator hook.

    The SDK must have been built first; ``out/<generator>-dev`` is created
    as a scratch area for the test tooling.
    """
    from sdkforge.generator import require_generator
    from sdkforge.hooks import HookManager

    workspace = get_workspace(ctx)
    store = get_config_store(ctx)
    with exit_on_error():
        paths = require_generator(workspace, generator)
        dev_dir = workspace.output_root / f"{paths.name}-dev"
        if not dev_dir.is_dir():
            dev_dir.mkdir(parents=True)
            info(f'Created directory "out/{paths.name}-dev"')

        if not paths.output_dir.is_dir():
            suggest(f"Build it first: sdkforge build {paths.name}")
            raise InvalidUsageError(f"{paths.name} SDK build missing")

        hook = HookManager(entry_points=False).generator_hook(store.openapi(), paths, store)
        progress(f"Running {paths.name} SDK tests...")
        status = asyncio.run(hook.run_tests(paths.output_dir, dev_dir))
        if status:
            raise SdkTestError(f"{paths.name} SDK tests failed with exit status {status}", exit_code=status if status > 0 else 1)
        success(f"{paths.name} SDK tests passed")
