"""Generator commands -- list implemented generators and scaffold new ones."""

from __future__ import annotations

import asyncio

import typer

from sdkforge.commands.common import exit_on_error, get_config_store, get_workspace
from sdkforge.output import print_data, progress, success, suggest

generators_app = typer.Typer(no_args_is_help=True)


@generators_app.command("list")
def generators_list(
    ctx: typer.Context,
    available: bool = typer.Option(
        False, "--available", "-a", help="List generators that can be initialized instead."
    ),
) -> None:
    """List implemented generators, one per line.

    Example::

        sdkforge generators list
        sdkforge generators list --available
    """
    from sdkforge.generator import available_generators, implemented_generators

    workspace = get_workspace(ctx)
    names = available_generators(workspace) if available else implemented_generators(workspace)
    for name in names:
        print_data(name)


@generators_app.command("init")
def generators_init(
    ctx: typer.Context,
    name: str = typer.Argument(help="Generator to scaffold (see 'generators list --available')."),
) -> None:
    """Scaffold generators/<name> from the generator's stock templates."""
    from sdkforge.generator import initialize_generator

    store = get_config_store(ctx)
    with exit_on_error():
        progress(f"Initializing {name} SDK generator...")
        paths = asyncio.run(initialize_generator(get_workspace(ctx), store.application(), name))
    success(f'Template initialized in "generators/{paths.name}"')
    suggest(f"Start developing with: sdkforge develop {paths.name}")
