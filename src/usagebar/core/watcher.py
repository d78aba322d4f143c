"""Filesystem change watching for provider log trees.

A raw ``ChangeSource`` reports changed paths with some coalescing latency;
``ChangeWatcher`` layers a per-provider debounce on top so that a burst of log
appends becomes a single refresh request.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import time
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from usagebar.models import Provider

logger = logging.getLogger(__name__)

DEFAULT_LATENCY = 0.5
DEFAULT_DEBOUNCE = 0.5
MAX_NOTIFY_LATENCY = 1.5  # Watcher share of the 2 s change-to-display budget
DEFAULT_HOT_WINDOW = 3600.0
DEFAULT_RESCAN_INTERVAL = 60.0

ChangeCallback = Callable[[Path], None]
ProviderCallback = Callable[[Provider], Awaitable[None] | None]


class WatchHandle(Protocol):
    def stop(self) -> None: ...


class ChangeSource(Protocol):
    """Raw recursive change stream for one directory."""

    def watch(self, path: Path, latency: float, callback: ChangeCallback) -> WatchHandle: ...


def walk_tree(root: Path) -> tuple[dict[Path, int], dict[Path, tuple[int, int]]]:
    """Stat every directory and file under root.

    Returns directory mtimes and file (mtime_ns, size) stamps. A directory's
    mtime is read before it is listed so a concurrent create is not lost.
    """
    dirs: dict[Path, int] = {}
    files: dict[Path, tuple[int, int]] = {}
    pending = [root]
    while pending:
        directory = pending.pop()
        try:
            dirs[directory] = directory.stat().st_mtime_ns
            with os.scandir(directory) as it:
                entries = list(it)
        except (FileNotFoundError, NotADirectoryError):
            dirs.pop(directory, None)
            continue
        for entry in entries:
            path = Path(entry.path)
            try:
                if entry.is_dir(follow_symlinks=False):
                    pending.append(path)
                elif entry.is_file():
                    st = entry.stat()
                    files[path] = (st.st_mtime_ns, st.st_size)
            except FileNotFoundError:
                continue
    return dirs, files


def changed_paths(
    before: Mapping[Path, tuple[int, int]], after: Mapping[Path, tuple[int, int]]
) -> list[Path]:
    """Return created, modified and removed paths between two snapshots."""
    changed = [path for path, stamp in after.items() if before.get(path) != stamp]
    changed.extend(path for path in before if path not in after)
    return sorted(changed)


class TreePoller:
    """Incremental stat poller for one tree.

    A poll stats the known directories and the files modified in the last
    ``hot_window`` seconds; a directory whose mtime moved is walked again.
    Appends to older files surface on the full walk every ``rescan_interval``
    seconds.
    """

    def __init__(
        self,
        root: Path,
        hot_window: float = DEFAULT_HOT_WINDOW,
        rescan_interval: float = DEFAULT_RESCAN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root = root
        self.hot_window = hot_window
        self.rescan_interval = rescan_interval
        self.clock = clock
        self._dirs: dict[Path, int] = {}
        self._files: dict[Path, tuple[int, int]] = {}
        self._last_walk: float | None = None

    def poll(self) -> list[Path]:
        """Return paths changed since the previous poll; the first poll is a baseline."""
        now = self.clock()
        if self._last_walk is None or now - self._last_walk >= self.rescan_interval:
            dirs, files = walk_tree(self.root)
            baseline = self._last_walk is None
            self._last_walk = now
        else:
            dirs, files = self._incremental()
            baseline = False

        changed = [] if baseline else changed_paths(self._files, files)
        self._dirs, self._files = dirs, files
        return changed

    def _incremental(self) -> tuple[dict[Path, int], dict[Path, tuple[int, int]]]:
        dirs = dict(self._dirs)
        files = dict(self._files)

        # Parents precede children, so a re-walked subtree is skipped below.
        for directory in self._dirs:
            if directory not in dirs:
                continue
            try:
                current = directory.stat().st_mtime_ns
            except FileNotFoundError:
                current = None
            if current == dirs[directory]:
                continue
            for table in (dirs, files):
                for path in [p for p in table if p.is_relative_to(directory)]:
                    del table[path]
            sub_dirs, sub_files = walk_tree(directory)
            dirs.update(sub_dirs)
            files.update(sub_files)

        cutoff = time.time_ns() - int(self.hot_window * 1e9)
        for path, (mtime, _size) in list(files.items()):
            if mtime < cutoff:
                continue
            try:
                st = path.stat()
            except FileNotFoundError:
                del files[path]
                continue
            files[path] = (st.st_mtime_ns, st.st_size)

        return dirs, files


class PollingWatchHandle:
    """Polls one tree every ``latency`` seconds on the running event loop."""

    def __init__(self, poller: TreePoller, latency: float, callback: ChangeCallback) -> None:
        self.poller = poller
        self.latency = latency
        self.callback = callback
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        await asyncio.to_thread(self.poller.poll)
        while True:
            await asyncio.sleep(self.latency)
            try:
                changed = await asyncio.to_thread(self.poller.poll)
            except OSError as e:
                logger.debug("Polling %s failed: %s", self.poller.root, e)
                continue
            for path in changed:
                self.callback(path)


class PollingChangeSource:
    """ChangeSource that detects changes by comparing file stat snapshots."""

    def __init__(
        self,
        hot_window: float = DEFAULT_HOT_WINDOW,
        rescan_interval: float = DEFAULT_RESCAN_INTERVAL,
    ) -> None:
        self.hot_window = hot_window
        self.rescan_interval = rescan_interval

    def watch(self, path: Path, latency: float, callback: ChangeCallback) -> PollingWatchHandle:
        poller = TreePoller(path, self.hot_window, self.rescan_interval)
        handle = PollingWatchHandle(poller, latency, callback)
        handle.start()
        return handle


class ChangeWatcher:
    """Debounced change notifications, one independent stream per provider.

    Every raw event restarts that provider's debounce timer; ``on_change``
    runs once no event has arrived for ``debounce`` seconds. Raw callbacks
    may arrive from any thread.
    """

    def __init__(
        self,
        roots: Mapping[Provider, Path],
        on_change: ProviderCallback,
        source: ChangeSource | None = None,
        latency: float = DEFAULT_LATENCY,
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        if latency < 0 or debounce < 0:
            raise ValueError("latency and debounce must be non-negative")
        if latency + debounce > MAX_NOTIFY_LATENCY:
            raise ValueError(
                f"latency + debounce must not exceed {MAX_NOTIFY_LATENCY}s "
                f"(got {latency + debounce}s)"
            )
        self.roots = dict(roots)
        self.on_change = on_change
        self.source = source or PollingChangeSource()
        self.latency = latency
        self.debounce = debounce
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handles: dict[Provider, WatchHandle] = {}
        self._timers: dict[Provider, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Begin watching every root. Calling it again is a no-op."""
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        self._running = True

        for provider, root in self.roots.items():
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning("Cannot create %s, not watching %s: %s", root, provider, e)
                continue
            self._handles[provider] = self.source.watch(
                root, self.latency, self._make_callback(provider)
            )
            logger.debug("Watching %s for %s", root, provider.display_name)

    def stop(self) -> None:
        """Stop watching and drop pending debounces. Safe to call repeatedly."""
        if not self._running:
            return
        self._running = False

        for handle in self._handles.values():
            handle.stop()
        self._handles.clear()
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()

    def _make_callback(self, provider: Provider) -> ChangeCallback:
        def callback(path: Path) -> None:
            loop = self._loop
            if not self._running or loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(self._schedule, provider)

        return callback

    def _schedule(self, provider: Provider) -> None:
        if not self._running or self._loop is None:
            return
        if timer := self._timers.get(provider):
            timer.cancel()
        self._timers[provider] = self._loop.call_later(
            self.debounce, self._fire, provider
        )

    def _fire(self, provider: Provider) -> None:
        self._timers.pop(provider, None)
        if not self._running:
            return

        logger.debug("%s logs changed", provider.display_name)
        result = self.on_change(provider)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
