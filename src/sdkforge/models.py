"""Canonical Pydantic models shared across all sdkforge modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON under the workspace's
``config/`` directory:
    :class:`LogLevel` and :class:`ApplicationConfig`.

**Scribe description models** -- the ``scribe.yml`` side-channel document
that drives documentation synthesis:
    :class:`ScribeArg`, :class:`ScribeMethod`, :class:`ScribeClass`,
    :class:`ScribeFragment` and :class:`ScribeDescription`.

**Build models** -- produced by the build pipeline:
    :class:`GeneratorPaths`, :class:`SyncActionType`, :class:`SyncAction`
    and :class:`BuildResult`.

All models use Pydantic v2. Scribe models use ``extra="allow"`` so that any
key a template author adds to ``scribe.yml`` reaches the templates
untouched.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel


# --- Application config ---


class LogLevel(str, enum.Enum):
    """Verbosity of the activity log."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ApplicationConfig(BaseModel):
    """Application configuration stored in ``config/application.json``.

    Keys are written in camelCase on disk (``logLevel``, ``schemaMappings``)
    and exposed in snake_case in Python. Both spellings are accepted on
    input.

    Example::

        ApplicationConfig(
            production=False,
            log_level="debug",
            schema_mappings={"Inline_object": "Payload"},
        )
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    production: bool = Field(
        False,
        description="Production mode; disables local host rewriting in templates.",
    )
    log_level: LogLevel = Field(
        LogLevel.INFO,
        alias="logLevel",
        description="Activity log verbosity.",
    )
    api_key: Optional[str] = Field(
        None,
        alias="apiKey",
        description="API key exported to generator test runs as SDK_API_KEY.",
    )
    schema_mappings: dict[str, str] = Field(
        default_factory=dict,
        alias="schemaMappings",
        description="Inline schema name mappings passed to the generator.",
    )
    generator_jar: str = Field(
        "res/openapi-generator-cli.jar",
        alias="generatorJar",
        description="Generator jar, relative to the workspace root.",
    )
    java: str = Field("java", description="Java executable used to run the generator.")
    local_host: str = Field(
        "http://localhost:3000",
        alias="localHost",
        description="Host substituted into API URLs outside production.",
    )
    docs_url: str = Field(
        "https://api.example.com",
        alias="docsUrl",
        description="Base URL of the hosted API reference used for cross-links.",
    )
    fetch_url: str = Field(
        "http://localhost:3000/openapi.json",
        alias="fetchUrl",
        description="Where ``config fetch`` downloads the OpenAPI document.",
    )
    fetch_dev_url: str = Field(
        "http://localhost:3000/openapi-dev.json",
        alias="fetchDevUrl",
        description="Development document installed by ``config fetch --dev``.",
    )


# --- Scribe description ---


class ScribeArg(BaseModel):
    """One argument of a documented method. All keys are template-defined."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ScribeMethod(BaseModel):
    """A documented method of a :class:`ScribeClass`."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    method_args: list[ScribeArg] = Field(default_factory=list, alias="methodArgs")


class ScribeClass(BaseModel):
    """A class rendered into its own ``docs/<fragment>/<className>.md`` page.

    Entries without a ``className`` are kept for fragments but never get a
    page of their own.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    class_name: Optional[str] = Field(None, alias="className")
    methods: list[ScribeMethod] = Field(default_factory=list)


class ScribeFragment(BaseModel):
    """One fragment-path entry of ``scribe.yml``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = None
    classes: Optional[list[ScribeClass]] = None


class ScribeDescription(RootModel[dict[str, ScribeFragment]]):
    """The whole ``scribe.yml`` document, keyed by fragment path."""

    def get(self, fragment_path: str) -> Optional[ScribeFragment]:
        """Return the entry for *fragment_path*, or ``None``."""
        return self.root.get(fragment_path)

    def items(self):
        return self.root.items()


# --- Build ---


class GeneratorPaths(BaseModel):
    """Resolved filesystem locations for one generator build.

    Attributes:
        name: Generator name (e.g. ``"php"``).
        source_dir: ``generators/<name>`` -- templates, config and hook.
        template_dir: ``generators/<name>/template``.
        config_file: ``generators/<name>/config.yml``.
        hook_file: ``generators/<name>/hook.py`` (optional).
        output_dir: ``out/<name>`` -- the stable output tree.
        scratch_dir: Temporary tree the generator writes into.
        openapi_file: Morphed OpenAPI document handed to the generator.
    """

    name: str
    source_dir: Path
    template_dir: Path
    config_file: Path
    hook_file: Path
    output_dir: Path
    scratch_dir: Path
    openapi_file: Path


class SyncActionType(str, enum.Enum):
    """Kind of change applied by :func:`~sdkforge.sync.synchronize`."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class SyncAction(BaseModel):
    """A single change applied to the destination tree.

    ``path`` is relative to the synchronised roots and uses ``/`` separators.
    """

    type: SyncActionType
    path: str


class BuildResult(BaseModel):
    """Outcome of a successful build."""

    generator: str
    output_dir: Path
    actions: list[SyncAction] = Field(default_factory=list)
    elapsed: float = 0.0

    @property
    def changed(self) -> bool:
        """Whether the build touched the output tree."""
        return bool(self.actions)


def dump_scribe(value: BaseModel) -> dict[str, Any]:
    """Dump a scribe model the way template authors wrote it (camelCase keys)."""
    return value.model_dump(by_alias=True, exclude_none=True)
