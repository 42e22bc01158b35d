"""Scanner for the two scribe directive grammars.

Fragment directives::

    ((fragmentName:fragment/path))

``fragmentName`` is a run of word characters; the path is any text
without parentheses. The directive is replaced by whatever the
``render`` callback returns for ``(name, path)``.

Operation blocks::

    ((#operation))inner text((/operation))

The whole block, delimiters included, is replaced by ``transform(inner)``
when ``operation`` names a registered transform, and by an empty string
otherwise. The closing tag is matched case-insensitively and the first one
wins, so blocks do not nest: an inner ``((#x))`` is just part of the text
handed to the outer transform.

Both scanners make a single left-to-right pass and never backtrack over
text they already emitted. Anything that does not form a complete directive
is copied through unchanged.
"""

from __future__ import annotations

import re
from typing import Callable, Mapping, Optional

_OPEN = "(("
_CLOSE = "))"
_WORD_RE = re.compile(r"\w+", re.ASCII)
_SPACE_RE = re.compile(r"\s*")


def expand_fragments(text: str, render: Callable[[str, str], str]) -> str:
    """Replace every ``((name:path))`` directive in *text*.

    Args:
        text: Source text.
        render: Called with ``(name, path)`` for each directive; its return
            value is substituted. Surrounding whitespace is stripped from
            both arguments.

    Returns:
        The rewritten text.
    """
    out: list[str] = []
    pos = 0
    while True:
        start = text.find(_OPEN, pos)
        if start < 0:
            out.append(text[pos:])
            return "".join(out)

        match = _match_fragment(text, start)
        if match is None:
            out.append(text[pos : start + 1])
            pos = start + 1
            continue

        name, path, end = match
        out.append(text[pos:start])
        out.append(render(name, path))
        pos = end


def expand_operations(text: str, transforms: Mapping[str, Callable[[str], str]]) -> str:
    """Replace every ``((#op))...((/op))`` block in *text*.

    Args:
        text: Source text.
        transforms: Registry of named transforms. Lookup is case-sensitive.

    Returns:
        The rewritten text.
    """
    out: list[str] = []
    pos = 0
    while True:
        start = text.find(_OPEN + "#", pos)
        if start < 0:
            out.append(text[pos:])
            return "".join(out)

        match = _match_operation(text, start)
        if match is None:
            out.append(text[pos : start + 1])
            pos = start + 1
            continue

        name, inner, end = match
        transform = transforms.get(name)
        out.append(text[pos:start])
        out.append(transform(inner) if transform is not None else "")
        pos = end


def _match_fragment(text: str, start: int) -> Optional[tuple[str, str, int]]:
    """Try to read a fragment directive opening at *start*.

    Returns:
        ``(name, path, end)`` where *end* is the index just past ``))``,
        or ``None`` if no directive starts here.
    """
    pos = _SPACE_RE.match(text, start + len(_OPEN)).end()
    word = _WORD_RE.match(text, pos)
    if word is None:
        return None
    name = word.group()
    pos = _SPACE_RE.match(text, word.end()).end()
    if not text.startswith(":", pos):
        return None

    path_start = pos + 1
    path_end = path_start
    length = len(text)
    while path_end < length and text[path_end] not in "()":
        path_end += 1
    if path_end == path_start or not text.startswith(_CLOSE, path_end):
        return None

    return name, text[path_start:path_end].strip(), path_end + len(_CLOSE)


def _match_operation(text: str, start: int) -> Optional[tuple[str, str, int]]:
    """Try to read an operation block opening at *start*.

    Returns:
        ``(name, inner, end)`` where *end* is the index just past the closing
        tag, or ``None`` if there is no well-formed block here.
    """
    word = _WORD_RE.match(text, start + len(_OPEN) + 1)
    if word is None or not text.startswith(_CLOSE, word.end()):
        return None
    name = word.group()
    inner_start = word.end() + len(_CLOSE)

    closing = re.compile(re.escape(f"((/{name}))"), re.IGNORECASE).search(text, inner_start)
    if closing is None:
        return None
    return name, text[inner_start : closing.start()], closing.end()
