"""Invocation of the external OpenAPI generator.

The generator is a Java program (``openapi-generator-cli.jar``) run as a
child process. Its stdout is logged at DEBUG. Anything it writes to
stderr is logged at ERROR and fails the build, even with a zero exit
status.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path
from typing import Awaitable, Callable, Optional

from sdkforge.config import Workspace
from sdkforge.exceptions import GeneratorError
from sdkforge.models import ApplicationConfig, GeneratorPaths

logger = logging.getLogger(__name__)

GENERATOR_TIMEOUT = 600.0
GLOBAL_PROPERTIES = "apis,models,supportingFiles,apiTests=false,modelTests=false"

CommandRunner = Callable[[list[str], Path], Awaitable[None]]
"""Signature of :func:`run_generator`; tests substitute their own."""


def generate_command(
    workspace: Workspace,
    application: ApplicationConfig,
    paths: GeneratorPaths,
) -> list[str]:
    """Build the ``generate`` command line for one build."""
    mappings = ",".join(f"{key}={value}" for key, value in application.schema_mappings.items())
    return [
        application.java,
        "-jar",
        str(workspace.resolve(application.generator_jar)),
        "generate",
        "-i",
        str(paths.openapi_file),
        "-g",
        paths.name,
        "-t",
        str(paths.template_dir),
        "-c",
        str(paths.config_file),
        "-o",
        str(paths.scratch_dir),
        "--skip-validate-spec",
        "--inline-schema-name-mappings",
        mappings,
        "--global-property",
        GLOBAL_PROPERTIES,
    ]


def author_template_command(
    workspace: Workspace,
    application: ApplicationConfig,
    paths: GeneratorPaths,
) -> list[str]:
    """Build the ``author template`` command line that seeds a new generator."""
    return [
        application.java,
        "-jar",
        str(workspace.resolve(application.generator_jar)),
        "author",
        "template",
        "-g",
        paths.name,
        "-o",
        str(paths.template_dir),
    ]


async def run_generator(
    command: list[str],
    cwd: Path,
    timeout: Optional[float] = GENERATOR_TIMEOUT,
) -> None:
    """Run *command* to completion.

    Raises:
        GeneratorError: If the executable is missing, the process times
            out, exits non-zero, or writes to stderr.
    """
    logger.info("$ %s", shlex.join(command))
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise GeneratorError(f"Executable not found: {command[0]}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise GeneratorError(f"Generator timed out after {timeout:.0f}s") from exc

    out_text = stdout.decode("utf-8", errors="replace")
    err_text = stderr.decode("utf-8", errors="replace")
    if out_text.strip():
        logger.debug(out_text.rstrip())
    if err_text.strip():
        logger.error(err_text.rstrip())

    if process.returncode != 0 or err_text.strip():
        details = err_text.strip().splitlines()[-20:]
        message = "Build failed"
        if details:
            message += ":\n" + "\n".join(f"  {line}" for line in details)
        raise GeneratorError(message)
