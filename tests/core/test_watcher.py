"""Tests for debounced log directory watching."""

from __future__ import annotations

import asyncio
import os
import shutil
import time
from pathlib import Path

import pytest

from usagebar.core.watcher import ChangeWatcher
from usagebar.core.watcher import PollingChangeSource
from usagebar.core.watcher import TreePoller
from usagebar.core.watcher import changed_paths
from usagebar.core.watcher import walk_tree
from usagebar.models import Provider


class FakeHandle:
    def __init__(self) -> None:
        self.stopped = 0

    def stop(self) -> None:
        self.stopped += 1


class FakeChangeSource:
    """Hands raw callbacks back to the test instead of touching the disk."""

    def __init__(self) -> None:
        self.callbacks: dict[Path, object] = {}
        self.handles: list[FakeHandle] = []

    def watch(self, path, latency, callback):
        self.callbacks[path] = callback
        handle = FakeHandle()
        self.handles.append(handle)
        return handle

    def emit(self, path: Path) -> None:
        self.callbacks[path](path / "session.jsonl")


@pytest.fixture
def roots(tmp_path) -> dict[Provider, Path]:
    return {Provider.CLAUDE: tmp_path / "claude", Provider.CODEX: tmp_path / "codex"}


class TestChangeWatcher:
    def test_rejects_excess_latency(self, roots):
        with pytest.raises(ValueError, match="must not exceed"):
            ChangeWatcher(roots, lambda p: None, latency=1.0, debounce=0.6)

    def test_rejects_negative(self, roots):
        with pytest.raises(ValueError):
            ChangeWatcher(roots, lambda p: None, debounce=-0.1)

    @pytest.mark.asyncio
    async def test_burst_fires_once_after_quiet_period(self, roots):
        loop = asyncio.get_running_loop()
        fired: list[tuple[Provider, float]] = []
        source = FakeChangeSource()
        watcher = ChangeWatcher(
            roots,
            lambda p: fired.append((p, loop.time())),
            source=source,
            latency=0.0,
            debounce=0.5,
        )
        watcher.start()

        for _ in range(5):
            source.emit(roots[Provider.CLAUDE])
            await asyncio.sleep(0.02)
        last_event = loop.time()

        await asyncio.sleep(0.7)
        watcher.stop()

        assert len(fired) == 1
        provider, at = fired[0]
        assert provider == Provider.CLAUDE
        assert at - last_event >= 0.45

    @pytest.mark.asyncio
    async def test_providers_debounce_independently(self, roots):
        fired: list[Provider] = []
        source = FakeChangeSource()
        watcher = ChangeWatcher(roots, fired.append, source=source, latency=0, debounce=0.1)
        watcher.start()

        source.emit(roots[Provider.CLAUDE])
        source.emit(roots[Provider.CODEX])
        await asyncio.sleep(0.25)
        watcher.stop()

        assert sorted(fired) == [Provider.CLAUDE, Provider.CODEX]

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, roots):
        done = asyncio.Event()
        source = FakeChangeSource()

        async def on_change(provider):
            done.set()

        watcher = ChangeWatcher(roots, on_change, source=source, latency=0, debounce=0.05)
        watcher.start()
        source.emit(roots[Provider.CODEX])
        await asyncio.wait_for(done.wait(), timeout=1)
        watcher.stop()

    @pytest.mark.asyncio
    async def test_start_creates_roots_and_is_idempotent(self, roots):
        source = FakeChangeSource()
        watcher = ChangeWatcher(roots, lambda p: None, source=source)
        watcher.start()
        watcher.start()

        assert watcher.running
        assert all(root.is_dir() for root in roots.values())
        assert len(source.handles) == 2

        watcher.stop()
        watcher.stop()
        assert not watcher.running
        assert [h.stopped for h in source.handles] == [1, 1]

    @pytest.mark.asyncio
    async def test_stop_drops_pending_debounce(self, roots):
        fired = []
        source = FakeChangeSource()
        watcher = ChangeWatcher(roots, fired.append, source=source, latency=0, debounce=0.1)
        watcher.start()
        source.emit(roots[Provider.CLAUDE])
        watcher.stop()
        await asyncio.sleep(0.2)
        assert fired == []


class TestPolling:
    def test_changed_paths(self, tmp_path):
        a, b, c = tmp_path / "a", tmp_path / "b", tmp_path / "c"
        before = {a: (1, 10), b: (1, 10)}
        after = {a: (1, 10), b: (2, 12), c: (1, 1)}
        assert changed_paths(before, after) == [b, c]
        assert changed_paths(after, {a: (1, 10)}) == [b, c]

    def test_walk_tree_recurses(self, tmp_path):
        (tmp_path / "x" / "y").mkdir(parents=True)
        (tmp_path / "x" / "y" / "log.jsonl").write_text("{}\n")
        dirs, files = walk_tree(tmp_path)
        assert list(files) == [tmp_path / "x" / "y" / "log.jsonl"]
        assert set(dirs) == {tmp_path, tmp_path / "x", tmp_path / "x" / "y"}

    def test_walk_missing_root(self, tmp_path):
        assert walk_tree(tmp_path / "missing") == ({}, {})

    @pytest.mark.asyncio
    async def test_polling_source_detects_write(self, tmp_path):
        seen: list[Path] = []
        handle = PollingChangeSource().watch(tmp_path, 0.05, seen.append)
        await asyncio.sleep(0.1)

        (tmp_path / "new.jsonl").write_text("{}\n")
        for _ in range(40):
            if seen:
                break
            await asyncio.sleep(0.05)
        handle.stop()

        assert tmp_path / "new.jsonl" in seen


class TestTreePoller:
    @pytest.fixture
    def clock(self):
        return [0.0]

    def make(self, root, clock):
        return TreePoller(root, hot_window=3600, rescan_interval=60, clock=lambda: clock[0])

    def test_first_poll_is_baseline(self, tmp_path, clock):
        (tmp_path / "a.jsonl").write_text("{}\n")
        assert self.make(tmp_path, clock).poll() == []

    def test_append_to_recent_file(self, tmp_path, clock):
        log = tmp_path / "project" / "session.jsonl"
        log.parent.mkdir()
        log.write_text("{}\n")
        poller = self.make(tmp_path, clock)
        poller.poll()

        with log.open("a") as f:
            f.write('{"more": 1}\n')
        assert poller.poll() == [log]
        assert poller.poll() == []

    def test_new_project_directory(self, tmp_path, clock):
        poller = self.make(tmp_path, clock)
        poller.poll()

        log = tmp_path / "project" / "session.jsonl"
        log.parent.mkdir()
        log.write_text("{}\n")
        assert poller.poll() == [log]

    def test_removed_directory(self, tmp_path, clock):
        log = tmp_path / "project" / "session.jsonl"
        log.parent.mkdir()
        log.write_text("{}\n")
        poller = self.make(tmp_path, clock)
        poller.poll()

        shutil.rmtree(log.parent)
        assert poller.poll() == [log]

    def test_old_file_not_stat_until_rescan(self, tmp_path, clock):
        log = tmp_path / "old.jsonl"
        log.write_text("{}\n")
        two_hours_ago = time.time() - 7200
        os.utime(log, (two_hours_ago, two_hours_ago))
        poller = self.make(tmp_path, clock)
        poller.poll()

        with log.open("a") as f:
            f.write('{"more": 1}\n')
        assert poller.poll() == []

        clock[0] = 61
        assert poller.poll() == [log]
