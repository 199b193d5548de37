"""
Tests for the polling directory watcher.

These tests verify:
1. New files fire exactly once; pre-existing files never fire (fire_initially=False)
2. Pre-existing files fire on the first poll (fire_initially=True)
3. Only regular files are reported
4. Disposal stops future callbacks
5. A listing failure ends the watch loop
6. Callbacks are decoupled from each other and from the poll
"""

import asyncio
import gc
import os
import threading
import time
from pathlib import Path

import pytest

from signbridge.watchfolders import (
    DirectoryListingError,
    DirectorySnapshot,
    DirectoryWatcher,
    WatchFolderError,
    snapshot_directory,
    watch_dir,
)
from signbridge.watchfolders import watcher as watcher_module

from conftest import POLL


# -----------------------------------------------------------------------------
# Scanner
# -----------------------------------------------------------------------------

class TestSnapshotDirectory:
    """Tests for the list + stat snapshot."""

    def test_only_regular_files(self, tmp_path: Path):
        (tmp_path / "a.exe").write_bytes(b"x")
        (tmp_path / "b.txt").write_text("y")
        (tmp_path / "subdir").mkdir()

        snapshot = snapshot_directory(tmp_path)

        assert snapshot.names == frozenset({"a.exe", "b.txt"})

    def test_symlink_to_directory_excluded(self, tmp_path: Path):
        target = tmp_path / "real_dir"
        target.mkdir()
        (tmp_path / "file.exe").write_bytes(b"x")
        try:
            os.symlink(target, tmp_path / "link_dir")
            os.symlink(tmp_path / "file.exe", tmp_path / "link_file.exe")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not available")

        snapshot = snapshot_directory(tmp_path)

        assert "link_dir" not in snapshot
        assert "link_file.exe" in snapshot

    def test_stat_failure_treated_as_gone(self, tmp_path: Path, monkeypatch):
        (tmp_path / "kept.exe").write_bytes(b"x")
        (tmp_path / "ghost.exe").write_bytes(b"x")

        real_stat = os.stat

        def flaky_stat(path, *args, **kwargs):
            if str(path).endswith("ghost.exe"):
                raise FileNotFoundError(path)
            return real_stat(path, *args, **kwargs)

        monkeypatch.setattr(os, "stat", flaky_stat)

        snapshot = snapshot_directory(tmp_path)

        assert snapshot.names == frozenset({"kept.exe"})

    def test_missing_directory_raises(self, tmp_path: Path):
        with pytest.raises(DirectoryListingError) as exc_info:
            snapshot_directory(tmp_path / "nope")

        assert exc_info.value.path == str(tmp_path / "nope")

    def test_new_since_is_sorted_difference(self):
        before = DirectorySnapshot.of(["a", "b"])
        after = DirectorySnapshot.of(["c", "a", "d"])

        assert after.new_since(before) == ["c", "d"]
        assert before.new_since(DirectorySnapshot.empty()) == ["a", "b"]


# -----------------------------------------------------------------------------
# Watcher
# -----------------------------------------------------------------------------

class TestDirectoryWatcher:
    """Tests for DirectoryWatcher callback semantics."""

    def test_new_files_fire_exactly_once(self, tmp_path: Path, wait_until):
        (tmp_path / "preexisting.exe").write_bytes(b"old")
        calls = []

        async def scenario():
            watcher = DirectoryWatcher(tmp_path, calls.append, poll_interval=POLL)
            watcher.start()

            (tmp_path / "one.exe").write_bytes(b"1")
            assert await wait_until(lambda: "one.exe" in calls)

            # Several more poll cycles with no change
            await asyncio.sleep(POLL * 4)

            (tmp_path / "two.exe").write_bytes(b"2")
            (tmp_path / "three.exe").write_bytes(b"3")
            assert await wait_until(lambda: len(calls) == 3)

            await asyncio.sleep(POLL * 4)
            watcher.dispose()
            await watcher.wait()

        asyncio.run(scenario())

        assert sorted(calls) == ["one.exe", "three.exe", "two.exe"]
        assert "preexisting.exe" not in calls

    def test_fire_initially_reports_existing_files(self, tmp_path: Path, wait_until):
        (tmp_path / "A.exe").write_bytes(b"a")
        (tmp_path / "B.exe").write_bytes(b"b")
        calls = []

        async def scenario():
            dispose = watch_dir(tmp_path, True, calls.append, poll_interval=POLL)
            assert await wait_until(lambda: len(calls) == 2)
            await asyncio.sleep(POLL * 3)
            dispose()

        asyncio.run(scenario())

        assert set(calls) == {"A.exe", "B.exe"}
        assert len(calls) == 2

    def test_file_removed_and_recreated_fires_again(self, tmp_path: Path, wait_until):
        calls = []

        async def scenario():
            watcher = DirectoryWatcher(tmp_path, calls.append, poll_interval=POLL)
            watcher.start()

            target = tmp_path / "again.exe"
            target.write_bytes(b"1")
            assert await wait_until(lambda: len(calls) == 1)

            target.unlink()
            assert await wait_until(
                lambda: "again.exe" not in watcher.snapshot
            )

            target.write_bytes(b"2")
            assert await wait_until(lambda: len(calls) == 2)
            watcher.dispose()

        asyncio.run(scenario())

        assert calls == ["again.exe", "again.exe"]

    def test_directories_do_not_fire(self, tmp_path: Path, wait_until):
        calls = []

        async def scenario():
            watcher = DirectoryWatcher(tmp_path, calls.append, poll_interval=POLL)
            watcher.start()
            (tmp_path / "folder.exe").mkdir()
            (tmp_path / "real.exe").write_bytes(b"x")
            assert await wait_until(lambda: "real.exe" in calls)
            watcher.dispose()

        asyncio.run(scenario())

        assert calls == ["real.exe"]

    def test_dispose_stops_future_callbacks(self, tmp_path: Path):
        calls = []

        async def scenario():
            watcher = DirectoryWatcher(tmp_path, calls.append, poll_interval=POLL)
            dispose = watcher.start()
            await asyncio.sleep(POLL * 2)

            dispose()
            (tmp_path / "late.exe").write_bytes(b"x")
            await asyncio.sleep(POLL * 5)

            await asyncio.wait_for(watcher.wait(), timeout=2)
            assert watcher.cancelled

        asyncio.run(scenario())

        assert calls == []

    def test_dispose_during_listing_reports_nothing(self, tmp_path: Path, monkeypatch):
        calls = []
        listing_started = threading.Event()

        def slow_snapshot(directory):
            listing_started.set()
            time.sleep(0.3)
            return snapshot_directory(directory)

        monkeypatch.setattr(watcher_module, "snapshot_directory", slow_snapshot)

        async def scenario():
            loop = asyncio.get_running_loop()

            watcher = DirectoryWatcher(
                tmp_path, calls.append, fire_initially=True, poll_interval=POLL
            )
            dispose = watcher.start()
            assert await loop.run_in_executor(None, listing_started.wait, 2)

            # The in-flight listing still sees this file.
            dispose()
            (tmp_path / "late.exe").write_bytes(b"x")

            await asyncio.wait_for(watcher.wait(), timeout=2)
            await asyncio.sleep(POLL)

        asyncio.run(scenario())

        assert calls == []

    def test_detached_watcher_failure_is_retrieved(self, tmp_path: Path, wait_until):
        watched = tmp_path / "watched"
        watched.mkdir()

        async def scenario():
            loop = asyncio.get_running_loop()
            unhandled = []
            loop.set_exception_handler(lambda _loop, context: unhandled.append(context))

            before = set(watcher_module._detached_watchers)
            watch_dir(watched, False, lambda name: None, poll_interval=POLL)
            [watcher] = watcher_module._detached_watchers - before

            await asyncio.sleep(POLL * 2)
            watched.rmdir()
            assert await wait_until(
                lambda: watcher not in watcher_module._detached_watchers
            )

            del watcher
            gc.collect()
            await asyncio.sleep(0)
            return unhandled

        unhandled = asyncio.run(scenario())

        assert unhandled == []

    def test_dispose_is_idempotent(self, tmp_path: Path):
        async def scenario():
            watcher = DirectoryWatcher(tmp_path, lambda name: None, poll_interval=POLL)
            dispose = watcher.start()
            dispose()
            dispose()
            await watcher.wait()

        asyncio.run(scenario())

    def test_start_twice_raises(self, tmp_path: Path):
        async def scenario():
            watcher = DirectoryWatcher(tmp_path, lambda name: None, poll_interval=POLL)
            watcher.start()
            try:
                with pytest.raises(WatchFolderError):
                    watcher.start()
            finally:
                watcher.dispose()

        asyncio.run(scenario())

    def test_missing_directory_fails_at_start(self, tmp_path: Path):
        async def scenario():
            watcher = DirectoryWatcher(tmp_path / "missing", lambda name: None)
            with pytest.raises(DirectoryListingError):
                watcher.start()

        asyncio.run(scenario())

    def test_listing_failure_ends_watch_loop(self, tmp_path: Path):
        watched = tmp_path / "watched"
        watched.mkdir()

        async def scenario():
            watcher = DirectoryWatcher(watched, lambda name: None, poll_interval=POLL)
            watcher.start()
            await asyncio.sleep(POLL * 2)

            watched.rmdir()

            with pytest.raises(DirectoryListingError):
                await asyncio.wait_for(watcher.wait(), timeout=2)

        asyncio.run(scenario())

    def test_slow_async_callback_does_not_block_others(self, tmp_path: Path, wait_until):
        finished = []
        release = None

        async def scenario():
            nonlocal release
            release = asyncio.Event()

            async def on_file(name: str):
                if name == "a_slow.exe":
                    await release.wait()
                finished.append(name)

            (tmp_path / "a_slow.exe").write_bytes(b"x")
            (tmp_path / "b_fast.exe").write_bytes(b"x")

            watcher = DirectoryWatcher(tmp_path, on_file, fire_initially=True, poll_interval=POLL)
            watcher.start()

            assert await wait_until(lambda: "b_fast.exe" in finished)

            # Polling continues while the slow callback is parked.
            (tmp_path / "c_later.exe").write_bytes(b"x")
            assert await wait_until(lambda: "c_later.exe" in finished)
            assert "a_slow.exe" not in finished

            release.set()
            assert await wait_until(lambda: "a_slow.exe" in finished)
            watcher.dispose()

        asyncio.run(scenario())

    def test_failing_callback_does_not_stop_watcher(self, tmp_path: Path, wait_until):
        seen = []

        def on_file(name: str):
            seen.append(name)
            if name == "bad.exe":
                raise RuntimeError("callback exploded")

        async def scenario():
            watcher = DirectoryWatcher(tmp_path, on_file, poll_interval=POLL)
            watcher.start()
            (tmp_path / "bad.exe").write_bytes(b"x")
            assert await wait_until(lambda: "bad.exe" in seen)

            (tmp_path / "good.exe").write_bytes(b"x")
            assert await wait_until(lambda: "good.exe" in seen)
            assert not watcher.task.done()
            watcher.dispose()

        asyncio.run(scenario())
