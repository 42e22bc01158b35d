"""Which generators exist, and scaffolding new ones.

A generator is *implemented* when ``generators/<name>/`` holds both a
``template/`` directory and a ``config.yml`` file. It is *available* when
it appears in :data:`SHORTLIST` but is not implemented yet.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from sdkforge.config import Workspace
from sdkforge.exceptions import GeneratorError, InvalidUsageError
from sdkforge.generator.runner import CommandRunner, author_template_command, run_generator
from sdkforge.models import ApplicationConfig, GeneratorPaths

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

SHORTLIST = (
    "android",
    "csharp",
    "csharp-netcore",
    "cpp-tizen",
    "dart",
    "elm",
    "go",
    "java",
    "javascript",
    "kotlin",
    "php",
    "python",
    "ruby",
    "rust",
    "swift5",
    "typescript-node",
    "typescript-axios",
)
"""Client generators supported by ``generators init``.

See ``java -jar res/openapi-generator-cli.jar list`` for the full set.
"""


def implemented_generators(workspace: Workspace) -> list[str]:
    """Names of the generators present in the workspace, sorted."""
    root = workspace.generators_dir
    if not root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir() and (entry / "template").is_dir() and (entry / "config.yml").is_file()
    )


def available_generators(workspace: Workspace) -> list[str]:
    """Shortlisted generators that are not implemented yet, in shortlist order."""
    implemented = set(implemented_generators(workspace))
    return [name for name in SHORTLIST if name not in implemented]


def require_generator(workspace: Workspace, name: Optional[str]) -> GeneratorPaths:
    """Resolve an implemented generator by name.

    Raises:
        InvalidUsageError: If *name* is empty or not implemented.
    """
    implemented = implemented_generators(workspace)
    if not name or name not in implemented:
        choices = ", ".join(implemented) or "none (run 'sdkforge generators init <name>')"
        label = f"Unknown generator '{name}'" if name else "No generator given"
        raise InvalidUsageError(f"{label}; choose one of: {choices}")
    return workspace.generator_paths(name)


async def initialize_generator(
    workspace: Workspace,
    application: ApplicationConfig,
    name: str,
    runner: CommandRunner = run_generator,
) -> GeneratorPaths:
    """Scaffold ``generators/<name>/`` from the generator's stock templates.

    Runs ``author template`` to export the stock templates, then writes a
    starter ``config.yml`` and ``hook.py``. Nothing is written if the
    export fails.

    Raises:
        InvalidUsageError: If *name* is not an available generator.
        GeneratorError: If the template export fails.
    """
    available = available_generators(workspace)
    if name not in available:
        raise InvalidUsageError(
            f"Cannot initialize '{name}'; choose one of: {', '.join(available) or 'none'}"
        )

    paths = workspace.generator_paths(name)
    paths.source_dir.mkdir(parents=True, exist_ok=True)
    try:
        await runner(author_template_command(workspace, application, paths), workspace.root)
    except GeneratorError as exc:
        raise GeneratorError(f"Could not initialize template for '{name}': {exc}") from exc

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        keep_trailing_newline=True,
    )
    context = {"generator": name, "year": datetime.date.today().year, "git_user": "example"}
    for template_name, target in (
        ("config.yml.j2", paths.config_file),
        ("hook.py.j2", paths.hook_file),
    ):
        target.write_text(env.get_template(template_name).render(context), encoding="utf-8")
        logger.info("Wrote %s", target)
    return paths
