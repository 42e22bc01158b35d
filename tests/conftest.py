"""Shared test fixtures for sdkforge.

Provides an isolated workspace layout, a small OpenAPI document, a
generator skeleton, output state management, and a CLI runner. These
fixtures are automatically discovered by pytest and available to all
test modules without explicit imports.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

import pytest

from sdkforge.config import ConfigStore, Workspace
from sdkforge.output import OutputFormat, OutputManager, reset_output, set_output


PETS_OPENAPI: dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Pets", "version": "1.0.0"},
    "paths": {
        "/v1/pets": {
            "get": {"operationId": "listPets", "tags": ["pets"], "responses": {"200": {"description": "OK"}}},
            "post": {
                "operationId": "createPet",
                "deprecated": True,
                "responses": {"201": {"description": "Created"}},
            },
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "properties": {"kind": {"type": "string", "description": "cat | dog"}},
            }
        }
    },
}


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Detach handlers installed by the CLI callback."""
    yield
    logger = logging.getLogger("sdkforge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Workspace fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def openapi_doc() -> dict[str, Any]:
    """A fresh copy of the small pets document."""
    return copy.deepcopy(PETS_OPENAPI)


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Workspace:
    """An empty workspace rooted in tmp_path, with its own scratch area.

    ``SDKFORGE_ROOT`` points at the workspace and the working directory is
    changed to it, so CLI invocations resolve the same layout.
    """
    root = tmp_path / "ws"
    root.mkdir()
    (root / "config").mkdir()
    monkeypatch.setenv("SDKFORGE_ROOT", str(root))
    monkeypatch.chdir(root)
    monkeypatch.setattr("tempfile.tempdir", str(tmp_path / "tmp"))
    (tmp_path / "tmp").mkdir()
    return Workspace(root, tmp_dir=tmp_path / "tmp" / "sdkforge")


@pytest.fixture
def config_store(workspace: Workspace, openapi_doc: dict[str, Any]) -> ConfigStore:
    """A config store over *workspace* with an active OpenAPI document."""
    workspace.openapi_file.write_text(json.dumps(openapi_doc, indent=4), encoding="utf-8")
    workspace.application_file.write_text(
        json.dumps({"production": False, "logLevel": "debug", "schemaMappings": {"Inline_1": "Payload"}}),
        encoding="utf-8",
    )
    return ConfigStore(workspace)


@pytest.fixture
def generator_dir(workspace: Workspace) -> Path:
    """An implemented ``php`` generator with an empty template directory."""
    source = workspace.generators_dir / "php"
    (source / "template").mkdir(parents=True)
    (source / "config.yml").write_text(
        "additionalProperties:\n  theGitUserId: acme\n  theGitRepoId: acme-php\n",
        encoding="utf-8",
    )
    return source


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    """Install a PLAIN-format OutputManager so stderr lines can be asserted."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
