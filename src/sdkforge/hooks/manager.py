"""Hook discovery and execution.

:class:`HookManager` assembles the hooks for one build, in this order:

1. :class:`~sdkforge.hooks.core.CoreHook`;
2. the ``BuildHook`` subclass defined in the generator's ``hook.py``, if
   the file exists;
3. hooks registered by installed packages under the ``sdkforge.hooks``
   entry-point group.

Packages register hooks in their ``pyproject.toml``::

    [project.entry-points."sdkforge.hooks"]
    my-hook = "my_package.hooks:MyHook"

``hook.py`` is imported again for every build, so edits made while
``sdkforge develop`` is running take effect on the next rebuild.
"""

from __future__ import annotations

import importlib.metadata
import importlib.util
import inspect
import itertools
import logging
from pathlib import Path
from typing import Any, Optional

from sdkforge.config import ConfigStore
from sdkforge.exceptions import HookError, SdkforgeError
from sdkforge.hooks.base import BuildHook
from sdkforge.hooks.core import CoreHook
from sdkforge.models import GeneratorPaths

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "sdkforge.hooks"
"""The entry-point group name used for hook discovery."""

_module_counter = itertools.count()


def load_generator_hook(path: Path) -> type[BuildHook]:
    """Import a generator's ``hook.py`` and return its hook class.

    The file is executed under a fresh module name on every call, so the
    latest contents are always used.

    Raises:
        HookError: If the file cannot be imported or does not define a
            :class:`BuildHook` subclass.
    """
    module_name = f"sdkforge_generator_hook_{path.parent.name}_{next(_module_counter)}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise HookError(f"Cannot load hook file {path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        raise HookError(f"Failed to import hook file {path}: {exc}") from exc

    for _, obj in inspect.getmembers(module, inspect.isclass):
        if issubclass(obj, BuildHook) and obj.__module__ == module_name:
            return obj
    raise HookError(f"Hook file {path} does not define a BuildHook subclass")


def discover_entry_point_hooks() -> list[type[BuildHook]]:
    """Load hook classes registered under the ``sdkforge.hooks`` group.

    Entries that fail to load or are not :class:`BuildHook` subclasses are
    logged as warnings and skipped.
    """
    hooks: list[type[BuildHook]] = []
    for ep in importlib.metadata.entry_points().select(group=ENTRY_POINT_GROUP):
        try:
            hook_cls = ep.load()
        except Exception as exc:
            logger.warning("Failed to load hook '%s': %s", ep.name, exc)
            continue
        if not (inspect.isclass(hook_cls) and issubclass(hook_cls, BuildHook)):
            logger.warning("Hook '%s' is not a BuildHook subclass, skipping", ep.name)
            continue
        hooks.append(hook_cls)
    return hooks


class HookRunner:
    """Runs lifecycle methods across a fixed list of hooks, in order.

    A hook raising anything other than an
    :class:`~sdkforge.exceptions.SdkforgeError` is reported as a
    :class:`~sdkforge.exceptions.HookError` naming the hook.
    """

    def __init__(self, hooks: list[BuildHook]) -> None:
        self._hooks = list(hooks)

    @property
    def hooks(self) -> list[BuildHook]:
        return list(self._hooks)

    async def run_pre_build(self) -> None:
        for hook in self._hooks:
            logger.debug("pre_build: %s", hook.name)
            await self._call(hook, "pre_build")

    async def run_post_build(self) -> None:
        for hook in self._hooks:
            logger.debug("post_build: %s", hook.name)
            await self._call(hook, "post_build")

    @staticmethod
    async def _call(hook: BuildHook, method: str) -> None:
        try:
            await getattr(hook, method)()
        except SdkforgeError:
            raise
        except Exception as exc:
            raise HookError(f"Hook {hook.name} failed in {method}: {exc}") from exc


class HookManager:
    """Creates the hook chain of each build.

    Args:
        entry_points: Include hooks registered by installed packages.
    """

    def __init__(self, entry_points: bool = True) -> None:
        self._entry_point_hooks: Optional[list[type[BuildHook]]] = None if entry_points else []

    def hook_classes(self, paths: GeneratorPaths) -> list[type[BuildHook]]:
        """Hook classes for a build of ``paths.name``, in execution order."""
        classes: list[type[BuildHook]] = [CoreHook]
        if paths.hook_file.is_file():
            classes.append(load_generator_hook(paths.hook_file))
        if self._entry_point_hooks is None:
            self._entry_point_hooks = discover_entry_point_hooks()
        classes.extend(self._entry_point_hooks)
        return classes

    def create(
        self,
        openapi: dict[str, Any],
        paths: GeneratorPaths,
        config_store: ConfigStore,
    ) -> HookRunner:
        """Instantiate every hook of a build, sharing one OpenAPI document."""
        hooks = [cls(openapi, paths, config_store) for cls in self.hook_classes(paths)]
        logger.info("Hooks for %s: %s", paths.name, ", ".join(h.name for h in hooks))
        return HookRunner(hooks)

    def generator_hook(
        self,
        openapi: dict[str, Any],
        paths: GeneratorPaths,
        config_store: ConfigStore,
    ) -> BuildHook:
        """Instantiate only the generator's own hook (used to run SDK tests).

        Raises:
            HookError: If the generator has no ``hook.py``.
        """
        if not paths.hook_file.is_file():
            raise HookError(f"Generator '{paths.name}' has no hook file at {paths.hook_file}")
        return load_generator_hook(paths.hook_file)(openapi, paths, config_store)
