"""The built-in hook every build runs first."""

from __future__ import annotations

import logging
from typing import Any

from sdkforge.config import ConfigStore
from sdkforge.hooks.base import BuildHook, rewrite_files
from sdkforge.models import GeneratorPaths
from sdkforge.parser import morph
from sdkforge.scribe import Scribe

logger = logging.getLogger(__name__)

GENERATOR_LEFTOVERS = (".openapi-generator", ".openapi-generator-ignore", "git_push.sh")
README_FILE = "README.md"
README_RELATIVE_PATH = "readme"


class CoreHook(BuildHook):
    """Morph the document before generation; expand scribe directives after.

    ``pre_build`` runs :func:`~sdkforge.parser.morph` on the document.
    ``post_build`` synthesizes missing documentation pages, expands scribe
    directives in ``docs/``, ``lib/`` and ``README.md``, and deletes the
    generator's own bookkeeping files from the build.
    """

    def __init__(
        self,
        openapi: dict[str, Any],
        paths: GeneratorPaths,
        config_store: ConfigStore,
    ) -> None:
        super().__init__(openapi, paths, config_store)
        self.scribe = Scribe(
            paths.template_dir,
            paths.scratch_dir,
            generator_config=self.generator_config,
            application=self.application,
        )

    async def pre_build(self) -> None:
        morph(self.openapi)

    async def post_build(self) -> None:
        created = self.scribe.create()
        if created:
            logger.info("Created %d documentation page(s)", len(created))

        rewrite_files(
            self.build_dir / "docs",
            lambda text, relative: self.scribe.parse(text.replace('\\"', '"'), relative),
        )
        rewrite_files(
            self.build_dir / "lib",
            lambda text, relative: self.scribe.parse(text, relative),
        )

        readme = self.build_dir / README_FILE
        if readme.is_file():
            original = readme.read_text(encoding="utf-8")
            updated = self.scribe.parse(original, README_RELATIVE_PATH)
            if updated != original:
                readme.write_text(updated, encoding="utf-8")

        for path in self.remove_paths(*GENERATOR_LEFTOVERS):
            logger.debug("Removed %s", path)
