"""Base class for build hooks.

A build hook customises one generator's build. sdkforge always runs its
own :class:`~sdkforge.hooks.core.CoreHook` first. A generator can then add
a ``hook.py`` next to its ``config.yml``, defining a subclass of
:class:`BuildHook`::

    from sdkforge.hooks import BuildHook

    class Hook(BuildHook):
        async def post_build(self) -> None:
            self.render_template_folder("lib")
            self.move_examples(command_prefix="php")

Every lifecycle method is optional; the defaults do nothing. Besides the
lifecycle, the class provides helpers that most generators need: rendering
extra template folders into the build, extracting documentation examples,
rewriting generated files, and preparing the environment for test runs.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any, Callable, Optional

from jinja2 import Environment, FileSystemLoader

from sdkforge.config import ConfigStore, load_generator_config
from sdkforge.models import GeneratorPaths

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "SDK_API_KEY"
TEMPLATE_SUFFIX = ".j2"

_EXAMPLE_RE = re.compile(
    r"<!-{3}\s*sdk-example\s*file\s*=\s*['\"](.*?)['\"]\s*-{3}>(.*?)<!-{3}\s*/sdk-example\s*-{3}>",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)
_CODE_FENCE_RE = re.compile(r"^`{3}\w+\s*|`{3}$", re.IGNORECASE | re.MULTILINE | re.DOTALL)

ExampleFilter = Callable[[str, str, str], Optional[str]]


class BuildHook:
    """Base class for all build hooks.

    Args:
        openapi: The OpenAPI document of this build. ``pre_build`` may
            mutate it; the generator receives it afterwards.
        paths: Resolved paths of the build.
        config_store: Application configuration.

    Attributes:
        build_dir: The scratch tree the generator writes into.
        source_dir: ``generators/<name>``.
        generator_config: Parsed ``config.yml``.
        application: Application config snapshot taken at construction.
    """

    def __init__(
        self,
        openapi: dict[str, Any],
        paths: GeneratorPaths,
        config_store: ConfigStore,
    ) -> None:
        self.openapi = openapi
        self.paths = paths
        self.config_store = config_store
        self.source_dir = paths.source_dir
        self.build_dir = paths.scratch_dir
        self.generator_config = load_generator_config(paths.config_file)
        self.application = config_store.application()

    @property
    def name(self) -> str:
        """Hook name used in log messages."""
        return f"{self.paths.name}:{type(self).__name__}"

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def pre_build(self) -> None:
        """Called before the generator runs; may modify :attr:`openapi`."""

    async def post_build(self) -> None:
        """Called after the generator succeeded, before the output sync."""

    async def run_tests(self, out_dir: Path, dev_dir: Path) -> Optional[int]:
        """Run the generated SDK's own test suite.

        Args:
            out_dir: The stable output tree (``out/<name>``).
            dev_dir: A scratch area for test tooling (``out/<name>-dev``).

        Returns:
            The test runner's exit status. ``None`` and ``0`` both mean the
            suite passed.
        """

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def template_context(self) -> dict[str, Any]:
        """Variables available to templates rendered by :meth:`render_template_folder`.

        ``application.schemaMappings`` is a list of ``{key, value}`` pairs so
        templates can loop over it.
        """
        application = self.application.model_dump(mode="json", by_alias=True)
        application["schemaMappings"] = [
            {"key": key, "value": value} for key, value in self.application.schema_mappings.items()
        ]
        return {
            "openApi": self.openapi,
            "srcPath": str(self.source_dir),
            "buildPath": str(self.build_dir),
            "configData": self.generator_config,
            "application": application,
        }

    def render_template_folder(self, folder: str) -> list[Path]:
        """Copy ``template/<folder>`` into the build, rendering ``.j2`` files.

        Rendered files lose their ``.j2`` suffix; every other file is copied
        as is. Existing files in the build are overwritten.

        Returns:
            The files written.
        """
        source = self.paths.template_dir / folder
        dest = self.build_dir / folder
        if not source.is_dir():
            logger.debug("No template folder %s", source)
            return []

        env = Environment(
            loader=FileSystemLoader(str(source)),
            autoescape=False,
            keep_trailing_newline=True,
        )
        context = self.template_context()
        written: list[Path] = []
        for path in sorted(p for p in source.rglob("*") if p.is_file()):
            relative = path.relative_to(source)
            target = dest / relative
            if path.name.endswith(TEMPLATE_SUFFIX):
                target = target.with_name(path.name[: -len(TEMPLATE_SUFFIX)])
            target.parent.mkdir(parents=True, exist_ok=True)
            if path.name.endswith(TEMPLATE_SUFFIX):
                template = env.get_template(relative.as_posix())
                target.write_text(template.render(context), encoding="utf-8")
            else:
                shutil.copyfile(path, target)
            written.append(target)
        return written

    def move_examples(
        self,
        folder: str = "examples",
        filter: Optional[ExampleFilter] = None,
        command_prefix: Optional[str] = None,
    ) -> list[Path]:
        """Move ``sdk-example`` blocks out of the docs into runnable files.

        A documentation block such as::

            <!--- sdk-example file="teams/list.php" --->
            ```php
            ...
            ```
            <!--- /sdk-example --->

        is written to ``<folder>/teams/list.php`` (code fence removed) and
        replaced in the doc by a button linking to the file on GitHub, built
        from ``additionalProperties.theGitUserId`` / ``theGitRepoId``.

        Args:
            folder: Destination folder inside the build.
            filter: Optional callback ``(contents, example_path, doc_path)``
                returning the contents to save, or ``None`` to leave the
                block in place.
            command_prefix: Shown before the file name in the button label,
                e.g. ``"php"``.

        Returns:
            The example files written.
        """
        folder = folder or "examples"
        docs_dir = self.build_dir / "docs"
        extra = self.generator_config.get("additionalProperties") or {}
        written: list[Path] = []

        def _rewrite(text: str, relative: str) -> str:
            def _extract(match: re.Match[str]) -> str:
                example_relative = match.group(1)
                contents = _CODE_FENCE_RE.sub("", match.group(2).strip()).strip()
                if filter is not None:
                    contents = filter(contents, f"{folder}/{example_relative}", f"docs/{relative}")
                if not isinstance(contents, str):
                    return match.group(0)

                example_path = self.build_dir / folder / example_relative
                example_path.parent.mkdir(parents=True, exist_ok=True)
                example_path.write_text(contents, encoding="utf-8")
                written.append(example_path)

                url = (
                    f"https://github.com/{extra.get('theGitUserId')}/{extra.get('theGitRepoId')}"
                    f"/blob/main/{folder}/{example_relative}"
                )
                prefix = f"{command_prefix} " if command_prefix else ""
                return (
                    "{: .new-title }\n> #️⃣ Execute command in terminal \n> \n"
                    f"> [{prefix}**{Path(example_relative).name}**]({url}){{: .btn .btn-green .mt-4}}"
                )

            return _EXAMPLE_RE.sub(_extract, text)

        rewrite_files(docs_dir, _rewrite)
        return written

    def get_env(self) -> dict[str, str]:
        """Environment for test runs, with ``SDK_API_KEY`` defaulted from the config."""
        env = dict(os.environ)
        if API_KEY_ENV_VAR not in env and self.application.api_key:
            env[API_KEY_ENV_VAR] = self.application.api_key
        logger.info("Test environment: %s=%s", API_KEY_ENV_VAR, "set" if env.get(API_KEY_ENV_VAR) else "unset")
        return env

    def remove_paths(self, *relative: str) -> list[Path]:
        """Delete files or directories from the build, ignoring missing ones."""
        removed: list[Path] = []
        for item in relative:
            path = self.build_dir / item
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            else:
                continue
            removed.append(path)
        return removed


def rewrite_files(root: Path, rewrite: Callable[[str, str], str]) -> list[Path]:
    """Apply *rewrite* to every text file below *root*.

    *rewrite* receives the contents and the ``/``-separated path relative to
    *root*. Files are only written back when their contents changed; files
    that are not valid UTF-8 are skipped.

    Returns:
        The files that were rewritten.
    """
    if not root.is_dir():
        return []
    changed: list[Path] = []
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        try:
            original = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("Skipping binary file %s", path)
            continue
        updated = rewrite(original, path.relative_to(root).as_posix())
        if updated != original:
            path.write_text(updated, encoding="utf-8")
            changed.append(path)
    return changed
