"""Polling file watcher and the development watch loop.

:class:`PollingWatcher` polls a set of directories and turns differences
between successive scans into ``add``/``change``/``unlink`` events.
Polling works on every filesystem, including mounted volumes and network
shares. A file is only reported once its size and modification time held
still for one poll, so a half-written file is never picked up. ``.git``
directories are ignored. The first scan is silent and ends with a single
``ready`` event.

:class:`WatchLoop` consumes those events and rebuilds:

* nothing happens before ``ready``; ``ready`` itself triggers the first
  build;
* every later event triggers a build after a short fixed delay;
* if the generator source directory no longer exists, the loop stops with
  :class:`~sdkforge.exceptions.WatchError`;
* while a build is running the loop is ``BUILDING`` and further triggers
  are dropped;
* a failed build, whatever it raised, is reported and the loop goes back
  to ``IDLE``; the next event retries.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional

from sdkforge import output
from sdkforge.exceptions import SdkforgeError, WatchError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_DEBOUNCE = 0.2


class WatchEventType(str, enum.Enum):
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    READY = "ready"


@dataclass(frozen=True)
class WatchEvent:
    """A filesystem event. ``path`` is ``None`` for ``ready``."""

    type: WatchEventType
    path: Optional[Path] = None


_FileStat = tuple[int, int]


class PollingWatcher:
    """Detect file additions, changes and removals by periodic scanning.

    Args:
        roots: Directories to watch recursively. Roots that do not exist
            are scanned as empty.
        poll_interval: Seconds between scans.
        ignore: Directory names that are never descended into.
    """

    def __init__(
        self,
        roots: Iterable[Path],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        ignore: Iterable[str] = (".git",),
    ) -> None:
        self.roots = [Path(r) for r in roots]
        self.poll_interval = poll_interval
        self.ignore = frozenset(ignore)
        self._reported: dict[Path, _FileStat] = {}
        self._previous: dict[Path, _FileStat] = {}

    def scan(self) -> dict[Path, _FileStat]:
        """Stat every watched file.

        Returns:
            A mapping of file path to ``(mtime_ns, size)``.
        """
        result: dict[Path, _FileStat] = {}
        for root in self.roots:
            if not root.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = [d for d in dirnames if d not in self.ignore]
                for filename in filenames:
                    path = Path(dirpath) / filename
                    try:
                        stat = path.stat()
                    except OSError:
                        # Removed between listing and stat.
                        continue
                    result[path] = (stat.st_mtime_ns, stat.st_size)
        return result

    def prime(self) -> None:
        """Record the current state without reporting it."""
        self._reported = self.scan()
        self._previous = dict(self._reported)

    def detect_changes(self) -> list[WatchEvent]:
        """Scan once and return the events since the last reported state."""
        current = self.scan()
        events: list[WatchEvent] = []

        for path, stat in current.items():
            if self._reported.get(path) == stat:
                continue
            if self._previous.get(path) != stat:
                # Still being written; wait for it to settle.
                continue
            kind = WatchEventType.CHANGE if path in self._reported else WatchEventType.ADD
            self._reported[path] = stat
            events.append(WatchEvent(kind, path))

        for path in [p for p in self._reported if p not in current]:
            del self._reported[path]
            events.append(WatchEvent(WatchEventType.UNLINK, path))

        self._previous = current
        for event in events:
            logger.debug("Watch event %s %s", event.type.value, event.path)
        return events

    async def events(self) -> AsyncIterator[WatchEvent]:
        """Yield ``ready`` after the initial scan, then events as they happen."""
        self.prime()
        logger.info("Watching %s", ", ".join(str(r) for r in self.roots))
        yield WatchEvent(WatchEventType.READY)
        while True:
            await asyncio.sleep(self.poll_interval)
            for event in self.detect_changes():
                yield event


class WatchState(str, enum.Enum):
    IDLE = "idle"
    BUILDING = "building"


class WatchLoop:
    """Serialise rebuilds triggered by filesystem events.

    Args:
        source_dir: Generator source directory; its disappearance is fatal.
        build: Coroutine function running one build.
        reload_config: Called before every build to refresh configuration.
        debounce: Seconds to wait between an event and its build trigger.
    """

    def __init__(
        self,
        source_dir: Path,
        build: Callable[[], Awaitable[object]],
        reload_config: Optional[Callable[[], object]] = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        self.source_dir = Path(source_dir)
        self.build = build
        self.reload_config = reload_config
        self.debounce = debounce
        self.state = WatchState.IDLE
        self.ready = False
        self.builds = 0
        self.failures = 0
        self.dropped = 0
        self._tasks: set[asyncio.Task] = set()
        self._fatal: Optional[asyncio.Future] = None

    async def trigger(self) -> bool:
        """Run a build unless one is already running.

        Returns:
            ``True`` if a build ran (successfully or not), ``False`` if the
            trigger was dropped.

        Raises:
            WatchError: If the source directory no longer exists.
        """
        if not self.source_dir.is_dir():
            raise WatchError(f"Source directory removed: {self.source_dir}")
        if self.state is WatchState.BUILDING:
            self.dropped += 1
            logger.debug("Build in progress, dropping trigger")
            return False

        self.state = WatchState.BUILDING
        try:
            if self.reload_config is not None:
                self.reload_config()
            await self.build()
            self.builds += 1
        except WatchError:
            raise
        except SdkforgeError as exc:
            self.failures += 1
            logger.error("Build failed: %s", exc)
            output.error(f"Build failed: {exc}")
        except Exception as exc:
            self.failures += 1
            logger.exception("Build crashed")
            output.error(f"Build failed: {type(exc).__name__}: {exc}")
        finally:
            self.state = WatchState.IDLE
        return True

    def handle(self, event: WatchEvent) -> None:
        """Schedule a delayed trigger for *event* once the watcher is ready."""
        if event.type is WatchEventType.READY:
            self.ready = True
        elif not self.ready:
            return
        task = asyncio.create_task(self._delayed_trigger())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run(self, events: AsyncIterator[WatchEvent]) -> None:
        """Consume *events* until they run out or a fatal error occurs.

        When the event stream ends, builds already scheduled are allowed to
        finish before returning.

        Raises:
            WatchError: If the source directory disappears.
        """
        self._fatal = asyncio.get_running_loop().create_future()
        consumer = asyncio.create_task(self._consume(events))
        try:
            await asyncio.wait({consumer, self._fatal}, return_when=asyncio.FIRST_COMPLETED)
            if not self._fatal.done():
                consumer.result()
                pending = {t for t in self._tasks if not t.done()}
                while pending and not self._fatal.done():
                    await asyncio.wait(pending | {self._fatal}, return_when=asyncio.FIRST_COMPLETED)
                    pending = {t for t in self._tasks if not t.done()}
            if self._fatal.done():
                self._fatal.result()
        finally:
            consumer.cancel()
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(consumer, *self._tasks, return_exceptions=True)

    async def _consume(self, events: AsyncIterator[WatchEvent]) -> None:
        async for event in events:
            self.handle(event)

    async def _delayed_trigger(self) -> None:
        await asyncio.sleep(self.debounce)
        try:
            await self.trigger()
        except Exception as exc:
            if self._fatal is not None and not self._fatal.done():
                self._fatal.set_exception(exc)
            else:
                raise
