"""Workspace layout, application configuration, and OpenAPI variants.

This module handles all persistent configuration for sdkforge:

* **Workspace layout** -- :class:`Workspace` resolves every path the build
  pipeline touches (``config/``, ``generators/``, ``out/``, the scratch
  area under the system temp directory). The root defaults to the current
  directory and can be overridden with ``--root`` or ``SDKFORGE_ROOT``.
* **Application config** -- :class:`ConfigStore` owns the
  :class:`~sdkforge.models.ApplicationConfig` snapshot. It is created once
  by the CLI and passed explicitly to whatever needs it; watch mode calls
  :meth:`ConfigStore.reload` before every rebuild.
* **OpenAPI document** -- :meth:`ConfigStore.openapi` loads the active
  ``config/openapi.json``.
* **Variants** -- stored documents named ``config/openapi-<name>.json``
  can be listed, copied, switched to, deleted and fetched from a server.
  :func:`poll_openapi` keeps re-fetching the development document while
  the API is being worked on.

Missing ``application.json`` and ``openapi.json`` files are created from
their ``-sample`` counterparts. All file writes use an atomic
temp-file-then-rename strategy (:func:`_atomic_write`).
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import yaml
from pydantic import ValidationError

from sdkforge import output
from sdkforge.exceptions import ConfigError, InvalidUsageError
from sdkforge.models import ApplicationConfig, GeneratorPaths

logger = logging.getLogger(__name__)

_APP_NAME = "sdkforge"
_ROOT_ENV_VAR = "SDKFORGE_ROOT"
_VARIANT_NAME_RE = re.compile(r"^(?:\w+|\w[\w-]+\w)$")
_VARIANT_FILE_RE = re.compile(r"^openapi-([\w-]+)\.json$")

DEV_POLL_INTERVAL = 2.0
DEV_RETRY_INTERVAL = 1.0


# --- Workspace layout ---


class Workspace:
    """Filesystem layout of an sdkforge workspace.

    Args:
        root: Workspace root directory.
        tmp_dir: Base directory for scratch trees. Defaults to
            ``<system temp>/sdkforge``.
    """

    def __init__(self, root: str | Path, tmp_dir: str | Path | None = None) -> None:
        self.root = Path(root).resolve()
        self.tmp_dir = (
            Path(tmp_dir) if tmp_dir is not None else Path(tempfile.gettempdir()) / _APP_NAME
        )

    def __repr__(self) -> str:
        return f"Workspace({str(self.root)!r})"

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def application_file(self) -> Path:
        return self.config_dir / "application.json"

    @property
    def application_sample(self) -> Path:
        return self.config_dir / "application-sample.json"

    @property
    def openapi_file(self) -> Path:
        return self.config_dir / "openapi.json"

    @property
    def openapi_sample(self) -> Path:
        return self.config_dir / "openapi-sample.json"

    @property
    def generators_dir(self) -> Path:
        return self.root / "generators"

    @property
    def output_root(self) -> Path:
        return self.root / "out"

    @property
    def activity_log(self) -> Path:
        return self.output_root / "activity.log"

    @property
    def logs_dir(self) -> Path:
        return self.output_root / "logs"

    def resolve(self, relative: str) -> Path:
        """Resolve *relative* against the workspace root (absolute paths pass through)."""
        path = Path(relative)
        return path if path.is_absolute() else self.root / path

    def variant_file(self, name: str) -> Path:
        """Path of the stored OpenAPI variant *name*."""
        return self.config_dir / f"openapi-{name}.json"

    def generator_paths(self, name: str) -> GeneratorPaths:
        """Resolve every path used by a build of generator *name*."""
        source_dir = self.generators_dir / name
        return GeneratorPaths(
            name=name,
            source_dir=source_dir,
            template_dir=source_dir / "template",
            config_file=source_dir / "config.yml",
            hook_file=source_dir / "hook.py",
            output_dir=self.output_root / name,
            scratch_dir=self.tmp_dir / name,
            openapi_file=self.tmp_dir / f"openapi-{name}.json",
        )


def resolve_workspace(root: Optional[str] = None) -> Workspace:
    """Resolve the workspace from a CLI flag, ``SDKFORGE_ROOT``, or the cwd.

    Precedence (high to low): *root*, the ``SDKFORGE_ROOT`` environment
    variable, the current working directory.
    """
    if root:
        return Workspace(root)
    env_root = os.environ.get(_ROOT_ENV_VAR, "")
    if env_root:
        return Workspace(env_root)
    return Workspace(Path.cwd())


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _file_md5(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return hashlib.md5(path.read_bytes()).hexdigest()


# --- Application config ---


class ConfigStore:
    """Owns the application configuration snapshot of a workspace.

    The snapshot is loaded lazily on the first call to :meth:`application`
    and replaced by :meth:`reload`. Nothing in sdkforge reads configuration
    through module-level state; the store is passed to whatever needs it.

    Args:
        workspace: The workspace whose ``config/`` directory is used.
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self._application: Optional[ApplicationConfig] = None

    def application(self, reload: bool = False) -> ApplicationConfig:
        """Return the application configuration, loading it on first use.

        Args:
            reload: Re-read ``config/application.json`` even if a snapshot
                is already held.
        """
        if reload or self._application is None:
            self._application = self._load_application()
        return self._application

    def reload(self) -> ApplicationConfig:
        """Re-read the application configuration from disk."""
        return self.application(reload=True)

    def _load_application(self) -> ApplicationConfig:
        path = self.workspace.application_file
        sample = self.workspace.application_sample

        if not path.is_file():
            self._restore_application(path, sample)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return ApplicationConfig.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Malformed %s (%s), restoring from sample", path, exc)
            self._restore_application(path, sample)
            try:
                return ApplicationConfig.model_validate_json(path.read_text(encoding="utf-8"))
            except ValidationError as sample_exc:
                raise ConfigError(f"Invalid application config at {sample}: {sample_exc}") from sample_exc

    @staticmethod
    def _restore_application(path: Path, sample: Path) -> None:
        if sample.is_file():
            path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(sample, path)
        else:
            defaults = ApplicationConfig().model_dump(mode="json", by_alias=True)
            _atomic_write(path, json.dumps(defaults, indent=4) + "\n")

    def save_application(self, config: ApplicationConfig) -> None:
        """Persist *config* atomically and make it the current snapshot."""
        data = config.model_dump(mode="json", by_alias=True)
        _atomic_write(self.workspace.application_file, json.dumps(data, indent=4) + "\n")
        self._application = config

    def openapi(self) -> dict[str, Any]:
        """Load the active OpenAPI document (``config/openapi.json``).

        The file is created from ``openapi-sample.json`` when missing.

        Raises:
            ConfigError: If neither file exists or the document is not valid
                JSON.
        """
        path = self.workspace.openapi_file
        sample = self.workspace.openapi_sample
        if not path.is_file():
            if not sample.is_file():
                raise ConfigError(f"No OpenAPI document at {path} and no sample at {sample}")
            shutil.copyfile(sample, path)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f'File "config/openapi.json" is malformed: {exc}') from exc
        if not isinstance(data, dict):
            raise ConfigError('File "config/openapi.json" is not a JSON object')
        return data


# --- Generator config ---


def load_generator_config(path: Path) -> dict[str, Any]:
    """Load a generator's ``config.yml``.

    Returns:
        The parsed mapping (empty for an empty file).

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or is not
            a mapping.
    """
    if not path.is_file():
        raise ConfigError(f"Generator config not found at {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid generator config at {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Generator config at {path} must be a mapping")
    return data


# --- OpenAPI variants ---


def normalize_variant_name(name: str) -> str:
    """Validate and normalise a variant name.

    Names use letters, digits, underscores and dashes, and may not start
    or end with a dash. Runs of dashes collapse and the result is
    lowercased.

    Raises:
        InvalidUsageError: If *name* is not a valid variant name.
    """
    if not _VARIANT_NAME_RE.match(name):
        raise InvalidUsageError(
            f"Invalid configuration name '{name}': use only letters, numbers and dashes"
        )
    return re.sub(r"-{2,}", "-", name).lower()


def list_variants(workspace: Workspace) -> list[tuple[str, bool]]:
    """List stored OpenAPI variants.

    Returns:
        ``(name, active)`` pairs sorted by name. A variant is active when
        its content is identical to ``config/openapi.json``.
    """
    config_dir = workspace.config_dir
    if not config_dir.is_dir():
        return []
    active_md5 = _file_md5(workspace.openapi_file)
    result: list[tuple[str, bool]] = []
    for path in sorted(config_dir.iterdir()):
        match = _VARIANT_FILE_RE.match(path.name)
        if match and path.is_file():
            result.append((match.group(1), _file_md5(path) == active_md5))
    return result


def _existing_variant(workspace: Workspace, name: str) -> Path:
    path = workspace.variant_file(name)
    if not path.is_file():
        known = ", ".join(n for n, _ in list_variants(workspace)) or "none"
        raise InvalidUsageError(f"Unknown configuration '{name}' (available: {known})")
    return path


def read_variant(workspace: Workspace, name: str) -> dict[str, Any]:
    """Load the stored document of variant *name*.

    Raises:
        InvalidUsageError: If the variant does not exist.
        ConfigError: If it is not a JSON object.
    """
    path = _existing_variant(workspace, name)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f'File "config/{path.name}" is malformed: {exc}') from exc
    if not isinstance(data, dict):
        raise ConfigError(f'File "config/{path.name}" is not a JSON object')
    return data


def switch_variant(workspace: Workspace, name: str) -> Path:
    """Copy variant *name* over ``config/openapi.json``."""
    source = _existing_variant(workspace, name)
    shutil.copyfile(source, workspace.openapi_file)
    return workspace.openapi_file


def copy_variant(workspace: Workspace, source: str, name: str) -> Path:
    """Duplicate variant *source* as a new variant *name*."""
    source_path = _existing_variant(workspace, source)
    dest = workspace.variant_file(normalize_variant_name(name))
    shutil.copyfile(source_path, dest)
    return dest


def delete_variant(workspace: Workspace, name: str) -> Path:
    """Delete variant *name*."""
    path = _existing_variant(workspace, name)
    path.unlink()
    return path


def _fetch_document(client: httpx.Client, url: str) -> dict[str, Any]:
    try:
        response = client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as exc:
        raise ConfigError(f"Failed to fetch OpenAPI document from {url}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"Invalid server response from {url}: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("openapi"), str):
        raise ConfigError(f"Not an OpenAPI document at {url}")
    return data


def fetch_openapi(
    workspace: Workspace,
    config: ApplicationConfig,
    name: str = "sample",
    dev: bool = False,
    client: Optional[httpx.Client] = None,
) -> list[Path]:
    """Download the OpenAPI document into variant *name* and make it active.

    In *dev* mode the variant receives the regular document while
    ``openapi.json`` receives the development document from
    ``config.fetch_dev_url``. Files are only rewritten when their content
    changes.

    Returns:
        The files that were updated (empty when nothing changed).

    Raises:
        ConfigError: On network failures or a response that is not an
            OpenAPI document.
    """
    variant_path = workspace.variant_file(normalize_variant_name(name))
    own_client = client is None
    http = client or httpx.Client(timeout=30.0, follow_redirects=True)
    try:
        fetched = _fetch_document(http, config.fetch_url)
        main = _fetch_document(http, config.fetch_dev_url) if dev else fetched
    finally:
        if own_client:
            http.close()

    fetched_json = json.dumps(fetched, indent=4)
    main_json = json.dumps(main, indent=4)

    updated: list[Path] = []
    for path, content in ((variant_path, fetched_json), (workspace.openapi_file, main_json)):
        current = path.read_text(encoding="utf-8") if path.is_file() else ""
        if current != content:
            _atomic_write(path, content)
            updated.append(path)
    return updated


def poll_openapi(
    store: ConfigStore,
    name: str = "sample",
    interval: float = DEV_POLL_INTERVAL,
    retry_interval: float = DEV_RETRY_INTERVAL,
    max_polls: Optional[int] = None,
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Keep the development document active while the API server evolves.

    Runs :func:`fetch_openapi` in *dev* mode every *interval* seconds, or
    every *retry_interval* seconds after a failed fetch, until interrupted
    or until *max_polls* fetches were attempted. The application config is
    re-read before every fetch. A failing server is reported once, not on
    every retry.

    Returns:
        The number of fetches that updated at least one file.

    Raises:
        InvalidUsageError: If *name* is not a valid variant name.
    """
    normalize_variant_name(name)
    own_client = client is None
    http = client or httpx.Client(timeout=30.0, follow_redirects=True)
    polls = changed = 0
    failing = False
    try:
        while max_polls is None or polls < max_polls:
            polls += 1
            started = time.monotonic()
            try:
                updated = fetch_openapi(store.workspace, store.application(reload=True), name, dev=True, client=http)
            except ConfigError as exc:
                logger.debug("Fetch %d failed: %s", polls, exc)
                if not failing:
                    output.warning(f"{exc}; retrying every {retry_interval:g}s")
                failing = True
                delay = retry_interval
            else:
                if failing:
                    output.info("OpenAPI server reachable again")
                failing = False
                if updated:
                    changed += 1
                    for path in updated:
                        output.success(f"Updated config/{path.name}")
                    elapsed = time.monotonic() - started
                    output.debug(f"^^^ {datetime.now():%H:%M:%S} in {elapsed:.2f}s")
                delay = interval
            if max_polls is None or polls < max_polls:
                sleep(delay)
    finally:
        if own_client:
            http.close()
    return changed
