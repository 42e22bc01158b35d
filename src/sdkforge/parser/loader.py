"""Load OpenAPI documents from a URL, local file, or stdin.

Builds normally read the active ``config/openapi.json`` through
:meth:`~sdkforge.config.ConfigStore.openapi`. ``sdkforge build --spec``
overrides that with any document :func:`load_document` can read, which
accepts JSON and YAML with automatic format detection.

No schema validation is performed: the generator is the authority on what
it accepts.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml

from sdkforge.exceptions import SpecParseError


def load_document(source: str) -> dict[str, Any]:
    """Load an OpenAPI document from URL, file path, or stdin ('-').

    Args:
        source: A URL (http/https), file path, or '-' for stdin.

    Returns:
        The parsed document as a dictionary.

    Raises:
        SpecParseError: If the source cannot be read or parsed.
    """
    if source == "-":
        content = sys.stdin.read()
        if not content.strip():
            raise SpecParseError("No input received from stdin")
        return _parse_content(content)
    if source.startswith(("http://", "https://")):
        return _load_from_url(source)
    return _load_from_file(Path(source))


def _load_from_url(url: str) -> dict[str, Any]:
    """Fetch a document over HTTP, using the content type as a format hint."""
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching OpenAPI document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch OpenAPI document from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    return _parse_content(response.text, hint=hint)


def _load_from_file(path: Path) -> dict[str, Any]:
    """Read a local document; ``.json``/``.yaml``/``.yml`` pick the parser."""
    if not path.is_file():
        raise SpecParseError(f"OpenAPI document not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Failed to read OpenAPI document {path}: {exc}") from exc
    if not content.strip():
        raise SpecParseError(f"OpenAPI document is empty: {path}")

    suffix = path.suffix.lower()
    hint = "json" if suffix == ".json" else "yaml" if suffix in (".yaml", ".yml") else ""
    return _parse_content(content, hint=hint)


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse *content* as JSON, then YAML, unless *hint* pins the format.

    Raises:
        SpecParseError: If the content is neither, or is not a mapping.
    """
    if hint != "yaml":
        try:
            return _expect_mapping(json.loads(content))
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc

    try:
        return _expect_mapping(yaml.safe_load(content))
    except yaml.YAMLError as exc:
        raise SpecParseError(f"Failed to parse OpenAPI document as JSON or YAML: {exc}") from exc


def _expect_mapping(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        kind = type(result).__name__ if result is not None else "empty document"
        raise SpecParseError(f"OpenAPI document must be an object (got {kind})")
    return result
