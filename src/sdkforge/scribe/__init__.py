"""Scribe -- directive-driven documentation synthesis.

The scribe post-processes generated SDK sources and docs, and writes
documentation pages that have no counterpart in the OpenAPI document.

* :mod:`~sdkforge.scribe.transforms` -- the registry of named string
  transforms (``fluent``, ``cleanHtml``, ``tableCell``...).
* :mod:`~sdkforge.scribe.directives` -- a linear scanner for the
  ``((name:path))`` and ``((#op))...((/op))`` directives.
* :mod:`~sdkforge.scribe.engine` -- :class:`Scribe`, which loads
  ``scribe.yml`` and the Jinja2 fragments of a generator and exposes
  ``create()`` and ``parse()``.
"""

from sdkforge.scribe.engine import Scribe
from sdkforge.scribe.transforms import TRANSFORM_NAMES, build_transforms

__all__ = ["Scribe", "TRANSFORM_NAMES", "build_transforms"]
