"""SDK generation -- the external generator, the registry, and the pipeline.

* :mod:`~sdkforge.generator.runner` -- builds the generator command lines
  and runs them as child processes.
* :mod:`~sdkforge.generator.registry` -- lists implemented and available
  generators and scaffolds new ones.
* :mod:`~sdkforge.generator.build` -- :class:`BuildOrchestrator`, which
  sequences hooks, generation and the output sync.
"""

from sdkforge.generator.build import BuildOrchestrator
from sdkforge.generator.registry import (
    SHORTLIST,
    available_generators,
    implemented_generators,
    initialize_generator,
    require_generator,
)
from sdkforge.generator.runner import run_generator

__all__ = [
    "SHORTLIST",
    "BuildOrchestrator",
    "available_generators",
    "implemented_generators",
    "initialize_generator",
    "require_generator",
    "run_generator",
]
