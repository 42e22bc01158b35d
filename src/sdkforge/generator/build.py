"""The build pipeline of one generator.

:meth:`BuildOrchestrator.build` runs, strictly in order:

1. load the OpenAPI document (``config/openapi.json`` or an explicit
   source);
2. create the hook chain and run every ``pre_build``;
3. write the morphed document to the scratch area;
4. wipe the scratch tree and run the external generator into it;
5. run every ``post_build``;
6. synchronise the scratch tree onto ``out/<name>``.

Any failure stops the pipeline before step 6, so the output tree is never
touched by a failed build.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from typing import Optional

from sdkforge.config import ConfigStore, Workspace
from sdkforge.generator.registry import require_generator
from sdkforge.generator.runner import CommandRunner, generate_command, run_generator
from sdkforge.hooks import HookManager
from sdkforge.models import BuildResult
from sdkforge.parser import load_document
from sdkforge.sync import synchronize

logger = logging.getLogger(__name__)


class BuildOrchestrator:
    """Sequence one build of a generator.

    Args:
        workspace: The workspace layout.
        config_store: Application configuration, read at the start of
            every build.
        hook_manager: Builds the hook chain. Defaults to a manager that
            also loads entry-point hooks.
        runner: Runs the generator command. Defaults to
            :func:`~sdkforge.generator.runner.run_generator`.
        spec_source: File, URL or ``-`` to read the OpenAPI document from
            instead of ``config/openapi.json``.
    """

    def __init__(
        self,
        workspace: Workspace,
        config_store: ConfigStore,
        hook_manager: Optional[HookManager] = None,
        runner: CommandRunner = run_generator,
        spec_source: Optional[str] = None,
    ) -> None:
        self.workspace = workspace
        self.config_store = config_store
        self.hook_manager = hook_manager or HookManager()
        self.runner = runner
        self.spec_source = spec_source

    async def build(self, name: str) -> BuildResult:
        """Build generator *name* into ``out/<name>``.

        Raises:
            InvalidUsageError: If the generator is not implemented.
            SdkforgeError: Any failure of a pipeline stage; the output tree
                is left untouched.
        """
        started = time.monotonic()
        paths = require_generator(self.workspace, name)
        application = self.config_store.application()

        openapi = load_document(self.spec_source) if self.spec_source else self.config_store.openapi()
        hooks = self.hook_manager.create(openapi, paths, self.config_store)
        await hooks.run_pre_build()

        paths.openapi_file.parent.mkdir(parents=True, exist_ok=True)
        paths.openapi_file.write_text(json.dumps(openapi), encoding="utf-8")

        if paths.scratch_dir.exists():
            shutil.rmtree(paths.scratch_dir)

        logger.info("Generating %s SDK into %s", name, paths.scratch_dir)
        await self.runner(generate_command(self.workspace, application, paths), self.workspace.root)
        await hooks.run_post_build()

        actions = synchronize(paths.scratch_dir, paths.output_dir, started)
        elapsed = time.monotonic() - started
        logger.info("Built %s in %.3fs (%d change(s))", name, elapsed, len(actions))
        return BuildResult(generator=name, output_dir=paths.output_dir, actions=actions, elapsed=elapsed)
