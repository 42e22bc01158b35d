"""Rewrite an OpenAPI document in place into a generator-friendly shape.

:func:`morph` applies three passes, in order:

1. :func:`remove_deprecated` -- drop every operation flagged
   ``deprecated: true`` (and any path object left empty by that).
2. :func:`sanitize_descriptions` -- replace ``|`` with ``/`` in schema
   property descriptions, so they cannot break Markdown tables in the
   generated docs.
3. :func:`fan_out_one_of` -- split every operation whose JSON request body
   is a ``oneOf`` of schema references into one synthetic operation per
   alternative, stored under ``"{path}#{verb}-{SchemaName}"``.

The fan-out keeps operationIds unique. Each synthetic operation is named
after its schema (``Name`` with the first letter upper-cased). If that
id is taken, it is prefixed with the first three letters of the path's
first two segments; ``/v1/teams/{teamId}/members`` gives ``TeaMem``. If
the prefixed id is taken too, the document is rejected.

The pass never touches the network or the filesystem. Running it on an
already-morphed document is a no-op.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any

from sdkforge.exceptions import SpecMorphError

logger = logging.getLogger(__name__)

_SCHEMA_REF_RE = re.compile(r"^#/components/schemas/")
_REF_PREFIX_RE = re.compile(r"^#/\w+/\w+/")
_VERSION_SEGMENT_RE = re.compile(r"v\d+")

JSON_MEDIA_TYPE = "application/json"


def morph(doc: dict[str, Any]) -> None:
    """Apply every morphing pass to *doc* in place.

    Args:
        doc: A parsed OpenAPI document.

    Raises:
        SpecMorphError: If a ``oneOf`` alternative references anything other
            than ``#/components/schemas/...``, or if a synthetic operationId
            collides even after prefixing.
    """
    remove_deprecated(doc)
    sanitize_descriptions(doc)
    fan_out_one_of(doc)


# ------------------------------------------------------------------ #
# Passes
# ------------------------------------------------------------------ #


def remove_deprecated(doc: dict[str, Any]) -> int:
    """Remove operations whose ``deprecated`` flag is the boolean ``True``.

    Path objects emptied by the removal are deleted as well.

    Returns:
        The number of operations removed.
    """
    paths = doc.get("paths") or {}
    removed = 0
    for path in list(paths):
        path_item = paths[path]
        if not isinstance(path_item, dict):
            continue
        deprecated = [
            verb
            for verb, operation in path_item.items()
            if isinstance(operation, dict) and operation.get("deprecated") is True
        ]
        for verb in deprecated:
            del path_item[verb]
            logger.debug("Removed deprecated operation %s %s", verb.upper(), path)
        removed += len(deprecated)
        if deprecated and not path_item:
            del paths[path]
    return removed


def sanitize_descriptions(doc: dict[str, Any]) -> None:
    """Replace ``|`` with ``/`` in every string schema property description."""
    schemas = (doc.get("components") or {}).get("schemas") or {}
    for schema in schemas.values():
        if not isinstance(schema, dict):
            continue
        for prop in (schema.get("properties") or {}).values():
            if isinstance(prop, dict) and isinstance(prop.get("description"), str):
                prop["description"] = prop["description"].replace("|", "/")


def fan_out_one_of(doc: dict[str, Any]) -> int:
    """Split ``oneOf`` JSON request bodies into one operation per alternative.

    Returns:
        The number of synthetic operations created.

    Raises:
        SpecMorphError: On a non-schema reference or an unresolvable
            operationId collision.
    """
    paths = doc.get("paths") or {}
    schemas = (doc.get("components") or {}).get("schemas") or {}
    registry = _operation_registry(paths)
    created = 0

    for path, path_item in list(paths.items()):
        if not isinstance(path_item, dict):
            continue
        for verb, operation in list(path_item.items()):
            alternatives = _one_of_alternatives(operation)
            if alternatives is None:
                continue

            # The original id is going away; an alternative may reuse it.
            registry.pop(operation.get("operationId"), None)
            used_default_description = False

            for alternative in alternatives:
                if not isinstance(alternative, dict) or not isinstance(alternative.get("$ref"), str):
                    continue
                ref = alternative["$ref"]
                if not _SCHEMA_REF_RE.match(ref):
                    raise SpecMorphError(f"Invalid reference {ref!r} in {verb.upper()} {path}")

                schema_name = _REF_PREFIX_RE.sub("", ref)
                new_operation = copy.deepcopy(operation)
                new_operation["requestBody"]["content"][JSON_MEDIA_TYPE]["schema"] = dict(alternative)

                operation_id = _unique_operation_id(registry, path, verb, schema_name)
                new_operation["operationId"] = operation_id
                registry[operation_id] = f"{path}-{verb}"

                schema = schemas.get(schema_name)
                if isinstance(schema, dict) and isinstance(schema.get("description"), str):
                    new_operation["description"] = schema["description"]
                elif used_default_description:
                    new_operation["description"] = ""
                else:
                    used_default_description = True

                paths.setdefault(f"{path}#{verb}-{schema_name}", {})[verb] = new_operation
                created += 1
                logger.debug("Split %s %s into %s", verb.upper(), path, operation_id)

            del path_item[verb]
            if not path_item:
                del paths[path]

    return created


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _operation_registry(paths: dict[str, Any]) -> dict[str, str]:
    """Map every existing operationId to its ``"{path}-{verb}"`` tag."""
    registry: dict[str, str] = {}
    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        for verb, operation in path_item.items():
            if isinstance(operation, dict) and "operationId" in operation:
                registry[operation["operationId"]] = f"{path}-{verb}"
    return registry


def _one_of_alternatives(operation: Any) -> list[Any] | None:
    """Return the ``oneOf`` list of a JSON request body, if there is one."""
    if not isinstance(operation, dict):
        return None
    body = operation.get("requestBody")
    if not isinstance(body, dict):
        return None
    media = (body.get("content") or {}).get(JSON_MEDIA_TYPE)
    if not isinstance(media, dict):
        return None
    schema = media.get("schema")
    if not isinstance(schema, dict) or not isinstance(schema.get("oneOf"), list):
        return None
    return schema["oneOf"]


def path_prefix(path: str) -> str:
    """Build the collision prefix for *path*.

    Empty segments, version segments (``v1``, ``v2``) and ``{param}``
    segments are dropped. The first two remaining segments each contribute
    their first letter upper-cased plus the next two letters.

    Example::

        >>> path_prefix("/v1/teams/{teamId}/members")
        'TeaMem'
        >>> path_prefix("/teams/{teamId}/owners")
        'TeaOwn'
    """
    segments = [
        segment
        for segment in path.split("/")
        if segment
        and not (segment.startswith("{") and segment.endswith("}"))
        and not _VERSION_SEGMENT_RE.fullmatch(segment)
    ][:2]
    return "".join(segment[:1].upper() + segment[1:3] for segment in segments)


def _unique_operation_id(registry: dict[str, str], path: str, verb: str, schema_name: str) -> str:
    candidate = schema_name[:1].upper() + schema_name[1:]
    if candidate not in registry:
        return candidate

    fallback = f"{path_prefix(path)}{schema_name}"
    if fallback not in registry:
        return fallback

    raise SpecMorphError(
        f"Duplicate operation {fallback!r}: {path}-{verb} conflicts with {registry[fallback]}"
    )
