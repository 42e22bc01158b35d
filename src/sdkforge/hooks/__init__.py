"""Build hooks -- per-generator customisation of the build pipeline.

* :mod:`~sdkforge.hooks.base` -- :class:`BuildHook`, the base class with
  no-op lifecycle methods and shared helpers.
* :mod:`~sdkforge.hooks.core` -- :class:`CoreHook`, run first in every
  build (document morphing, scribe expansion, cleanup).
* :mod:`~sdkforge.hooks.manager` -- :class:`HookManager`, which loads the
  generator's ``hook.py`` and entry-point hooks, and :class:`HookRunner`.
"""

from sdkforge.hooks.base import BuildHook
from sdkforge.hooks.core import CoreHook
from sdkforge.hooks.manager import HookManager, HookRunner

__all__ = ["BuildHook", "CoreHook", "HookManager", "HookRunner"]
