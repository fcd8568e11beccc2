"""
reportsync — Live watch loop.

Re-publishes a report every time its files settle after a change:

  Idle → Watching → Reacting → Watching → ...   (until the process is killed)

- Events for one path are coalesced: a reaction fires only after the path
  has been quiet for the stability window, so half-written files are not
  published.
- At most one publish cycle runs at a time. A settled event that arrives
  while a cycle is running is dropped, not queued.
- The first cycle honours the caller's `update` flag; later cycles always
  update the comment the first one posted.
- A failing cycle is logged and the loop keeps watching.

The watchdog observer runs in its own thread and hands events to the asyncio
loop with `call_soon_threadsafe`; everything else runs on the loop.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

from watchdog.events import EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED, FileSystemEventHandler
from watchdog.observers import Observer

from reportsync.core.config import settings
from reportsync.utils.logging import logger

Cycle = Callable[[bool], Awaitable[Any]]

# Access notifications, not changes.
_IGNORED_EVENTS = {"opened", "closed_no_write"}


def _abspath(path: str | Path) -> Path:
    return Path(os.path.abspath(path))


@dataclass
class WatchState:
    locked: bool = False
    is_first_run: bool = True


class _ForwardingHandler(FileSystemEventHandler):
    """Runs in the observer thread; forwards file events onto the asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callable[[str, str], None]):
        self._loop = loop
        self._callback = callback

    def on_any_event(self, event):
        if event.is_directory or event.event_type in _IGNORED_EVENTS:
            return
        if event.event_type == EVENT_TYPE_MOVED:
            self._loop.call_soon_threadsafe(self._callback, EVENT_TYPE_DELETED, event.src_path)
            self._loop.call_soon_threadsafe(self._callback, EVENT_TYPE_CREATED, event.dest_path)
            return
        self._loop.call_soon_threadsafe(self._callback, event.event_type, event.src_path)


class LiveWatchLoop:
    def __init__(
        self,
        cycle: Cycle,
        markdown_file: str | Path,
        trigger_file: str | Path | None = None,
        update: bool = False,
        stability_threshold: float | None = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.cycle = cycle
        self.markdown_file = _abspath(markdown_file)
        self.trigger_file = _abspath(trigger_file) if trigger_file else None
        self.update = update
        self.stability_threshold = (
            settings.watch_stability_threshold if stability_threshold is None else stability_threshold
        )
        self.state = WatchState()

        self._observer_factory = observer_factory
        self._observer = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._gate = asyncio.Lock()
        self._watched: set[Path] = set()
        self._scheduled_dirs: set[Path] = set()
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._pending: dict[Path, str] = {}
        self._tasks: set[asyncio.Task] = set()

        self.watch(self.markdown_file)
        if self.trigger_file is not None:
            self.watch(self.trigger_file)

    @property
    def watched(self) -> set[Path]:
        return set(self._watched)

    def watch(self, path: str | Path) -> None:
        """Add a file to the watch set. Safe to call before or after start()."""
        path = _abspath(path)
        self._watched.add(path)
        if self._observer is not None:
            self._schedule(path.parent)

    def _schedule(self, directory: Path) -> None:
        if directory in self._scheduled_dirs:
            return
        self._scheduled_dirs.add(directory)
        handler = _ForwardingHandler(self._loop, self._on_fs_event)
        self._observer.schedule(handler, str(directory), recursive=False)

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._observer = self._observer_factory()
        for path in sorted(self._watched):
            self._schedule(path.parent)
        self._observer.start()

    def stop(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
            self._scheduled_dirs.clear()

    def _on_fs_event(self, event_type: str, raw_path: str) -> None:
        path = _abspath(raw_path)
        if path not in self._watched:
            return
        previous = self._timers.pop(path, None)
        if previous is not None:
            previous.cancel()
        self._pending[path] = event_type
        loop = self._loop or asyncio.get_running_loop()
        self._timers[path] = loop.call_later(self.stability_threshold, self._settle, path)

    def _settle(self, path: Path) -> None:
        self._timers.pop(path, None)
        event_type = self._pending.pop(path)
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self.handle_event(event_type, path))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle_event(self, event_type: str, path: str | Path) -> bool:
        """React to one settled event. Returns False when it was dropped."""
        path = _abspath(path)
        if self._gate.locked():
            logger.info("  Dropping %s %s: a publish cycle is in flight", event_type, path)
            return False

        async with self._gate:
            self.state.locked = True
            try:
                logger.info("watcher event: %s %s", event_type, path)
                await self.cycle(self.update or not self.state.is_first_run)
                if event_type != EVENT_TYPE_DELETED and path == self.trigger_file:
                    self.trigger_file.unlink(missing_ok=True)
            except Exception as exc:
                logger.warning("  Publish cycle failed: %s", exc)
            finally:
                self.state.is_first_run = False
                self.state.locked = False
        return True

    async def run_forever(self) -> None:
        """Watch until the process is terminated. Never returns on its own."""
        self.start()
        logger.info("watching for file changes...")
        try:
            await asyncio.Event().wait()
        finally:
            self.stop()
