"""Content-hash directory synchronisation.

:func:`synchronize` converges a destination tree onto a source tree with
the smallest set of file operations:

* **added** -- in the source only: copied, parent directories created;
* **modified** -- in both, with different MD5 digests: overwritten;
* **deleted** -- in the destination only: removed. If that leaves its
  parent directory empty, the parent is removed too (one level only, and
  never the destination root itself).

A path that turned from a file into a directory, or the other way round,
is cleared out of the destination before the new entry is copied; the
removed files are reported as deletions.

Both trees are listed once, up front, and every decision is taken against
those two snapshots. A second call with an unchanged source returns no
actions.

Every action is reported on stderr as one changelog line, followed by a
summary line with the wall-clock time and the elapsed seconds.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from sdkforge import output
from sdkforge.models import SyncAction, SyncActionType

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def list_relative_files(root: Path) -> dict[str, int]:
    """Snapshot the files below *root*.

    Returns:
        A mapping of ``/``-separated paths relative to *root* to a presence
        marker. A missing root gives an empty snapshot.
    """
    root = Path(root)
    if not root.is_dir():
        return {}
    snapshot: dict[str, int] = {}
    for dirpath, _dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        for filename in filenames:
            snapshot[(base / filename).relative_to(root).as_posix()] = 1
    return snapshot


def file_digest(path: Path) -> str:
    """Return the MD5 hex digest of *path*, read in chunks."""
    digest = hashlib.md5()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def synchronize(
    source: Path,
    dest: Path,
    started: Optional[float] = None,
) -> list[SyncAction]:
    """Make *dest* an exact copy of *source*, touching only what differs.

    Args:
        source: The freshly generated tree.
        dest: The stable output tree. Created on the first copy if missing.
        started: ``time.monotonic()`` value the summary's elapsed time is
            measured from. Defaults to the start of this call.

    Returns:
        The applied actions: additions and modifications in source order,
        then deletions.
    """
    source = Path(source)
    dest = Path(dest)
    started = time.monotonic() if started is None else started

    source_files = list_relative_files(source)
    dest_files = list_relative_files(dest)
    actions: list[SyncAction] = []
    displaced: set[str] = set()

    for relative in sorted(source_files):
        source_path = source / relative
        dest_path = dest / relative
        if not source_path.is_file():
            continue

        if relative not in dest_files:
            displaced.update(_make_room(dest, relative))
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source_path, dest_path)
            actions.append(_report(SyncActionType.ADDED, relative))
        elif file_digest(source_path) != file_digest(dest_path):
            shutil.copyfile(source_path, dest_path)
            actions.append(_report(SyncActionType.MODIFIED, relative))

    for relative in sorted(dest_files):
        if relative in source_files:
            continue
        if relative in displaced:
            actions.append(_report(SyncActionType.DELETED, relative))
            continue
        dest_path = dest / relative
        if not dest_path.is_file():
            continue

        dest_path.unlink()
        actions.append(_report(SyncActionType.DELETED, relative))

        parent = dest_path.parent
        if parent != dest and not any(parent.iterdir()):
            parent.rmdir()
            folder = Path(relative).parent.as_posix()
            output.change("deleted", f"(x) Deleted  📂 {folder}")
            logger.info("Deleted directory %s", folder)

    _report_summary(actions, started)
    return actions


def _make_room(dest: Path, relative: str) -> list[str]:
    """Remove whatever in *dest* stands where the file *relative* must go.

    A file in place of one of its parent directories is unlinked, and a
    directory in place of the file itself is removed with its contents.

    Returns:
        The relative paths of the destination files that were removed.
    """
    parts = relative.split("/")
    current = dest
    for depth, part in enumerate(parts[:-1], start=1):
        current = current / part
        if current.is_file():
            current.unlink()
            return ["/".join(parts[:depth])]
        if not current.exists():
            return []

    target = dest / relative
    if not target.is_dir():
        return []
    removed = [f"{relative}/{inner}" for inner in list_relative_files(target)]
    shutil.rmtree(target)
    return removed


def _report(kind: SyncActionType, relative: str) -> SyncAction:
    label = {
        SyncActionType.ADDED: "(+) Added   ",
        SyncActionType.MODIFIED: "(~) Modified",
        SyncActionType.DELETED: "(x) Deleted ",
    }[kind]
    output.change(kind.value, f"{label} {relative}")
    logger.info("%s %s", kind.value.capitalize(), relative)
    return SyncAction(type=kind, path=relative)


def _report_summary(actions: list[SyncAction], started: float) -> None:
    timestamp = datetime.now().strftime("%H:%M:%S")
    elapsed = time.monotonic() - started
    if actions:
        output.info(f"^^^ {timestamp} in {elapsed:,.3f}s")
    else:
        output.info(f"⛳ {timestamp} (no changes) in {elapsed:,.3f}s")
