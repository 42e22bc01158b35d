"""Lint the HTML found in OpenAPI operation descriptions.

Descriptions end up verbatim in the generated docs and docblocks, so a
stray ``<script>`` or an unclosed ``<b>`` breaks every SDK at once.
:func:`check_descriptions` runs :func:`lint_html` over the ``description``
of every operation and tags each issue with its path and verb.

Rules:

* ``tag-bans`` -- ``<style>`` and ``<script>`` are not allowed;
* ``tag-close`` -- every non-void element must be closed;
* ``tag-name-match`` -- a closing tag must close the innermost open
  element;
* ``spec-char-escape`` -- ``<``, ``>`` and ``&`` in text must be escaped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Optional

BANNED_TAGS = frozenset({"style", "script"})

VOID_TAGS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

HINT_WIDTH = 70


@dataclass
class HtmlIssue:
    """One lint finding; ``line`` and ``column`` are 1-based."""

    rule: str
    line: int
    column: int
    data: dict[str, Any] = field(default_factory=dict)

    def detail(self) -> str:
        return json.dumps(self.data, sort_keys=True) if self.data else ""


@dataclass
class DescriptionIssue:
    """An :class:`HtmlIssue` found in the description of ``verb path``."""

    path: str
    verb: str
    issue: HtmlIssue
    hint: str = ""


class _Linter(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.issues: list[HtmlIssue] = []
        self.open_tags: list[tuple[str, int, int]] = []

    def _add(self, rule: str, position: Optional[tuple[int, int]] = None, **data: Any) -> None:
        line, offset = position or self.getpos()
        self.issues.append(HtmlIssue(rule, line, offset + 1, data))

    def handle_starttag(self, tag: str, attrs: list) -> None:
        if tag in BANNED_TAGS:
            self._add("tag-bans", tag=tag)
        if tag not in VOID_TAGS:
            line, offset = self.getpos()
            self.open_tags.append((tag, line, offset))

    def handle_startendtag(self, tag: str, attrs: list) -> None:
        if tag in BANNED_TAGS:
            self._add("tag-bans", tag=tag)

    def handle_endtag(self, tag: str) -> None:
        if tag in VOID_TAGS:
            return
        open_names = [name for name, _, _ in self.open_tags]
        if not open_names or open_names[-1] != tag:
            expected = open_names[-1] if open_names else None
            self._add("tag-name-match", expected=expected, found=tag)
        if tag in open_names:
            index = len(open_names) - 1 - open_names[::-1].index(tag)
            for name, line, offset in self.open_tags[index + 1 :]:
                self._add("tag-close", (line, offset), tag=name)
            del self.open_tags[index:]

    def handle_data(self, data: str) -> None:
        line, offset = self.getpos()
        for char in data:
            if char == "\n":
                line += 1
                offset = 0
                continue
            if char in "<>&":
                self._add("spec-char-escape", (line, offset), char=char)
            offset += 1

    def close(self) -> None:
        super().close()
        for name, line, offset in self.open_tags:
            self._add("tag-close", (line, offset), tag=name)
        self.open_tags = []


def lint_html(text: str) -> list[HtmlIssue]:
    """Lint an HTML fragment.

    Example::

        >>> [issue.rule for issue in lint_html("<b>bold <script>x()</script>")]
        ['tag-close', 'tag-bans']
    """
    linter = _Linter()
    linter.feed(text)
    linter.close()
    return sorted(linter.issues, key=lambda issue: (issue.line, issue.column))


def check_descriptions(doc: dict[str, Any]) -> list[DescriptionIssue]:
    """Lint the ``description`` of every operation in *doc*.

    Returns:
        The issues in document order, each with a hint showing the start of
        the offending line.
    """
    found: list[DescriptionIssue] = []
    for path, path_item in (doc.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for verb, operation in path_item.items():
            if not isinstance(operation, dict) or not isinstance(operation.get("description"), str):
                continue
            description = operation["description"]
            lines = description.split("\n")
            for issue in lint_html(description):
                source_line = lines[issue.line - 1] if issue.line <= len(lines) else ""
                hint = source_line[issue.column - 1 :][:HINT_WIDTH]
                found.append(DescriptionIssue(path, verb, issue, hint))
    return found
