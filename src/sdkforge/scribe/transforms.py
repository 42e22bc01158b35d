"""Named string transforms shared by scribe templates and directives.

Every transform is a plain ``str -> str`` function. The same registry,
built by :func:`build_transforms`, is exposed three ways:

* as Jinja2 filters -- ``{{ name | anchorText }}`` or
  ``{% filter cleanHtml %}...{% endfilter %}`` (render, then transform);
* as callables in every template context -- ``{{ fluent(path) }}``;
* as ``((#name))...((/name))`` blocks in generated files.

Most transforms are pure. ``host``, ``defaultDebug``, ``fixHashLinks`` and
``cleanHtml`` read the application config, which is bound when the
registry is built.
"""

from __future__ import annotations

import functools
import re
from typing import Callable

import html2text

from sdkforge.models import ApplicationConfig, LogLevel

Transform = Callable[[str], str]

SHORT_LINE_WIDTH = 100

_NON_WORD_RUN_RE = re.compile(r"\W+", re.ASCII)
_NON_WORD_RE = re.compile(r"\W", re.ASCII)
_API_HEADER_NAME_RE = re.compile(r"^\s*>>\s*(.*?)\s*<<.*$", re.IGNORECASE | re.DOTALL)
_API_HEADER_RE = re.compile(r"^\s*>>\s*(.*?)\s*<<", re.IGNORECASE | re.DOTALL)
_HASH_LINK_RE = re.compile(r'<a\s+href\s*=\s*"#([^"]+?)".*?>(.*?)<\s*/\s*a>', re.IGNORECASE)
_ANY_HASH_LINK_RE = re.compile(r'<a\s+href\s*=\s*"#.*?>(.*?)<\s*/\s*a>', re.IGNORECASE)
_PAYLOAD_RE = re.compile(r"^payload", re.IGNORECASE)
_CAMEL_RE = re.compile(r"([A-Z]+)(?=[a-z]|$)")
_VERSIONED_URL_RE = re.compile(r"^.*?/v(\d+)\b")
_MARKDOWN_RULE_RE = re.compile(r"^(?:---|\* \* \*)\s*\n", re.MULTILINE)


# ------------------------------------------------------------------ #
# Pure transforms
# ------------------------------------------------------------------ #


def fluent(text: str) -> str:
    """Render a dotted path as a chain of calls: ``a.b`` -> ``a()->b()``."""
    return _NON_WORD_RUN_RE.sub("()->", text.lower()) + "()"


def anchor_text(text: str) -> str:
    """Turn a heading into a Markdown anchor: ``Get Team`` -> ``get-team``."""
    return _NON_WORD_RE.sub("-", text.lower())


def remove_hash_links(text: str) -> str:
    """Unwrap ``<a href="#...">`` links, keeping their text."""
    return _ANY_HASH_LINK_RE.sub(r"\1", text)


def table_cell(text: str) -> str:
    """Make text safe for a Markdown table cell."""
    return remove_hash_links(text).replace("|", "/").strip()


def model_heading(text: str) -> str:
    return "Payload setters" if _PAYLOAD_RE.match(text) else "Model getters"


def model_arg_label(text: str) -> str:
    return "Argument type" if _PAYLOAD_RE.match(text) else "Return type"


def model_prefix(text: str) -> str:
    """Pick the accessor name for ``"Model,getName"``.

    Payload models are written to, so their getters become setters.
    """
    parts = text.split(",")
    model = parts[0]
    method = parts[1] if len(parts) > 1 else ""
    if _PAYLOAD_RE.match(model):
        return re.sub(r"^get", "set", method, count=1)
    return method


def short_line(text: str) -> str:
    """Strip hash links and cap the line at :data:`SHORT_LINE_WIDTH` characters."""
    text = remove_hash_links(text)
    if len(text) > SHORT_LINE_WIDTH:
        return text[: SHORT_LINE_WIDTH - 3] + "..."
    return text


def to_dashes(text: str) -> str:
    return re.sub(r"\s", "-", text)


def strip_hash(text: str) -> str:
    return re.sub(r"#.*$", "", text)


def split_camel(text: str) -> str:
    """``getTeamMembers`` -> ``get Team Members``."""
    return _CAMEL_RE.sub(r" \1", text).strip()


def split_path_strip_hash(text: str) -> str:
    """``/teams/{id}#post-Payload`` -> ``/teams /{id}``."""
    return strip_hash(text).replace("/", " /").strip()


def comment_lines(text: str) -> str:
    """Prefix every line with `` * `` for use inside a doc-block comment."""
    return "\n".join(f" * {line}" for line in str(text).split("\n"))


def link_type(text: str, fragment_path: str) -> str:
    """Link a ``\\Model\\Name`` type to its page, or wrap anything else in backticks.

    The relative link climbs out of ``docs/<fragment_path>/``, so the number
    of ``../`` segments depends on how deeply the fragment path is nested.
    """
    depth = 2 + len(re.findall(r"/\w+", fragment_path))
    match = re.search(r"\\Model\\(\w+)", text, re.IGNORECASE)
    if match:
        return f"[**{text}**]({'../' * depth}Model/{match.group(1)})"
    return f"`{text}`"


def parent_root_path(fragment_path: str) -> str:
    """Relative path from ``docs/<fragment_path>/`` back to the build root."""
    return "../" * (1 + len(re.findall(r"/\w+", fragment_path)))


# ------------------------------------------------------------------ #
# Config-aware transforms
# ------------------------------------------------------------------ #


def fix_hash_links(text: str, docs_url: str) -> str:
    """Point in-page ``#anchor`` links at the hosted API reference.

    The text may open with a ``>> Api Name <<`` marker naming the API tag.
    The marker is removed, and every ``<a href="#x">`` becomes a link to
    ``{docs_url}/#tag/Api-Name/x``.
    """
    api_name = to_dashes(_API_HEADER_NAME_RE.sub(r"\1", text))
    base = docs_url.rstrip("/")

    def _rewrite(match: re.Match[str]) -> str:
        return f'<a href="{base}/#tag/{api_name}/{match.group(1).lower()}">{match.group(2).strip()}</a>'

    return _HASH_LINK_RE.sub(_rewrite, _API_HEADER_RE.sub("", text))


def clean_html(text: str, docs_url: str) -> str:
    """Convert an HTML operation description to Markdown.

    Tables are fenced by horizontal rules, ``<br>`` becomes a paragraph
    break and ``<pre>`` is treated as ``<code>``. Links are emitted as
    numbered references rather than inline.
    """
    html = fix_hash_links(text, docs_url)
    html = re.sub(r"<\s*table\s*>", "<br><hr><table>", html, flags=re.IGNORECASE)
    html = re.sub(r"<\s*/\s*table\s*>", "</table><hr><br>", html, flags=re.IGNORECASE)
    html = re.sub(r"<\s*br\s*/?\s*>", "<p>", html, flags=re.IGNORECASE)
    html = re.sub(r"<\s*(/?)\s*pre\s*>", r"<\1code>", html, flags=re.IGNORECASE)

    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.inline_links = False
    markdown = converter.handle(html)

    markdown = _MARKDOWN_RULE_RE.sub("\n--- \n\n", markdown)
    return re.sub(r" {2,}", " ", markdown).strip()


def host(text: str, config: ApplicationConfig) -> str:
    """Swap the host of a versioned API URL for the local one outside production."""
    if config.production:
        return text
    local = config.local_host.rstrip("/")
    return _VERSIONED_URL_RE.sub(lambda m: f"{local}/v{m.group(1)}", text, count=1)


def default_debug(text: str, config: ApplicationConfig) -> str:
    """Return ``"true"`` when logging at debug level, the text otherwise."""
    return "true" if config.log_level == LogLevel.DEBUG.value else text


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #


TRANSFORM_NAMES = (
    "fluent",
    "anchorText",
    "cleanHtml",
    "fixHashLinks",
    "removeHashLinks",
    "tableCell",
    "modelHeading",
    "modelArgLabel",
    "modelPrefix",
    "shortLine",
    "toDashes",
    "stripHash",
    "splitCamel",
    "splitPathStripHash",
    "host",
    "defaultDebug",
    "commentLines",
)


def build_transforms(config: ApplicationConfig) -> dict[str, Transform]:
    """Build the named transform registry with *config* bound in.

    Returns:
        A mapping of template-facing names to ``str -> str`` callables.
        Its keys are exactly :data:`TRANSFORM_NAMES`.
    """
    registry: dict[str, Transform] = {
        "fluent": fluent,
        "anchorText": anchor_text,
        "cleanHtml": functools.partial(clean_html, docs_url=config.docs_url),
        "fixHashLinks": functools.partial(fix_hash_links, docs_url=config.docs_url),
        "removeHashLinks": remove_hash_links,
        "tableCell": table_cell,
        "modelHeading": model_heading,
        "modelArgLabel": model_arg_label,
        "modelPrefix": model_prefix,
        "shortLine": short_line,
        "toDashes": to_dashes,
        "stripHash": strip_hash,
        "splitCamel": split_camel,
        "splitPathStripHash": split_path_strip_hash,
        "host": functools.partial(host, config=config),
        "defaultDebug": functools.partial(default_debug, config=config),
        "commentLines": comment_lines,
    }
    return registry
