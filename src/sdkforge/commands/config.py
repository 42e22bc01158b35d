"""Config commands -- view the application config and manage OpenAPI variants.

A *variant* is a stored OpenAPI document ``config/openapi-<name>.json``.
``config switch`` makes one the active ``config/openapi.json``;
``config fetch`` downloads a fresh copy from the API server, ``config dev``
keeps doing so in a loop, and ``config check`` lints the HTML in operation
descriptions.
"""

from __future__ import annotations

from typing import Optional

import typer

from sdkforge.commands.common import exit_on_error, get_config_store, get_workspace
from sdkforge.exit_codes import EXIT_GENERIC_FAILURE
from sdkforge.output import info, print_json, print_table, success, warning

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the application configuration.

    Example::

        sdkforge config show
        sdkforge --json config show
    """
    store = get_config_store(ctx)
    with exit_on_error():
        config = store.application()
    info(f"Config file: {store.workspace.application_file}")
    print_json(config.model_dump(mode="json", by_alias=True))


@config_app.command("list")
def config_list(ctx: typer.Context) -> None:
    """List stored OpenAPI variants; the active one is marked."""
    from sdkforge.config import list_variants

    variants = list_variants(get_workspace(ctx))
    if not variants:
        warning("No OpenAPI variants found in config/")
        return
    print_table(
        ["Name", "Active"],
        [[name, "*" if active else ""] for name, active in variants],
        title="OpenAPI variants",
    )


@config_app.command("switch")
def config_switch(
    ctx: typer.Context,
    name: str = typer.Argument(help="Variant to activate."),
) -> None:
    """Make variant NAME the active config/openapi.json."""
    from sdkforge.config import switch_variant

    with exit_on_error():
        switch_variant(get_workspace(ctx), name)
    success(f"Switched to '{name}'")


@config_app.command("copy")
def config_copy(
    ctx: typer.Context,
    source: str = typer.Argument(help="Existing variant."),
    name: str = typer.Argument(help="New variant name."),
) -> None:
    """Duplicate variant SOURCE as NAME."""
    from sdkforge.config import copy_variant

    with exit_on_error():
        dest = copy_variant(get_workspace(ctx), source, name)
    success(f"Copied '{source}' to {dest.name}")


@config_app.command("delete")
def config_delete(
    ctx: typer.Context,
    name: str = typer.Argument(help="Variant to delete."),
) -> None:
    """Delete variant NAME."""
    from sdkforge.config import delete_variant

    with exit_on_error():
        path = delete_variant(get_workspace(ctx), name)
    success(f"Deleted {path.name}")


@config_app.command("fetch")
def config_fetch(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Variant to store the document as.", show_default=False),
    dev: bool = typer.Option(
        False, "--dev", help="Activate the development document from fetchDevUrl."
    ),
) -> None:
    """Download the OpenAPI document and make it active.

    Example::

        sdkforge config fetch
        sdkforge config fetch staging --dev
    """
    from sdkforge.config import fetch_openapi

    workspace = get_workspace(ctx)
    store = get_config_store(ctx)
    with exit_on_error():
        updated = fetch_openapi(workspace, store.application(), name or "sample", dev=dev)
    if not updated:
        info("OpenAPI document unchanged")
    for path in updated:
        success(f"Updated config/{path.name}")


@config_app.command("dev")
def config_dev(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Variant to store the regular document as.", show_default=False),
    interval: float = typer.Option(2.0, "--interval", help="Seconds between fetches."),
) -> None:
    """Re-fetch the development document until interrupted.

    ``config/openapi.json`` follows fetchDevUrl while variant NAME keeps
    the regular document. Stop with Ctrl+C.

    Example::

        sdkforge config dev
    """
    from sdkforge.config import poll_openapi

    store = get_config_store(ctx)
    info("Fetching the OpenAPI document at a regular interval")
    with exit_on_error():
        poll_openapi(store, name or "sample", interval=interval)


@config_app.command("check")
def config_check(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Variant to check (default: the active document).", show_default=False),
) -> None:
    """Lint the HTML in every operation description.

    Banned tags (style, script), unclosed or mismatched tags and unescaped
    special characters are reported per path and verb. Exits 1 when any
    issue is found.

    Example::

        sdkforge config check
        sdkforge --json config check staging
    """
    from sdkforge.config import read_variant
    from sdkforge.parser.lint import check_descriptions

    workspace = get_workspace(ctx)
    store = get_config_store(ctx)
    with exit_on_error():
        doc = store.openapi() if name is None else read_variant(workspace, name)

    found = check_descriptions(doc)
    if not found:
        success("No issues found in operation descriptions")
        return
    print_table(
        ["Path", "Verb", "Line", "Column", "Rule", "Detail", "Source"],
        [
            [
                item.path,
                item.verb,
                str(item.issue.line),
                str(item.issue.column),
                item.issue.rule,
                item.issue.detail(),
                item.hint,
            ]
            for item in found
        ],
        title="Description issues",
    )
    warning(f"{len(found)} issue(s) found")
    raise typer.Exit(code=EXIT_GENERIC_FAILURE)
