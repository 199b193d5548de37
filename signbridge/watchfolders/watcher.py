"""
Polling directory watcher.

Re-lists a directory every poll interval and reports each regular file that
was not present in the previous snapshot.

Design rules:
- One poll at a time; the next poll is scheduled only after the previous
  one has finished
- Callbacks are dispatched via loop.call_soon, decoupled from the poll, so
  a slow callback never delays the next poll or its siblings
- A listing failure ends the watch loop (the directory is gone)
- dispose() prevents future polls; an in-flight poll still completes
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Set, Union

from .errors import WatchFolderError, DirectoryListingError
from .models import WatchedDirectory, DirectorySnapshot
from .scanner import snapshot_directory

logger = logging.getLogger(__name__)


# Short enough for interactive use, long enough not to thrash a slow
# network-backed shared folder.
DEFAULT_POLL_SECONDS = 1.0

FileCallback = Callable[[str], Optional[Awaitable[None]]]

_detached_watchers: Set["DirectoryWatcher"] = set()


class DirectoryWatcher:
    """
    Watch a directory and call back once per newly-appeared regular file.

    The callback receives the basename. It may be a plain function or a
    coroutine function; coroutines are scheduled as tasks.

    Must be started from inside a running event loop.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        callback: FileCallback,
        fire_initially: bool = False,
        poll_interval: float = DEFAULT_POLL_SECONDS,
    ):
        """
        Initialize watcher.

        Args:
            directory: Directory to observe
            callback: Called with each new filename
            fire_initially: Report files already present at start
            poll_interval: Seconds between scans
        """
        self.config = WatchedDirectory(
            path=str(directory),
            fire_initially=fire_initially,
            poll_interval=poll_interval,
        )
        self._callback = callback
        self._snapshot: Optional[DirectorySnapshot] = None
        self._cancelled = False
        self._wake: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._callback_tasks: Set[asyncio.Task] = set()

    @property
    def directory(self) -> str:
        return self.config.path

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def snapshot(self) -> Optional[DirectorySnapshot]:
        """Files seen at the last poll (None before start)."""
        return self._snapshot

    @property
    def task(self) -> Optional[asyncio.Task]:
        """The poll loop task (None before start)."""
        return self._task

    def start(self) -> Callable[[], None]:
        """
        Start watching.

        With fire_initially disabled, the initial snapshot is taken here,
        synchronously, so anything present before start() returns is never
        reported. This one listing runs on the event loop thread and blocks
        it for as long as the directory takes to list; later polls run in the
        executor. Callers that act right after start() (HandoffClient places
        its file then) rely on the snapshot already being in place.

        Returns:
            Disposer that stops future polls when called

        Raises:
            WatchFolderError: If already started
            DirectoryListingError: If the initial snapshot cannot be taken
        """
        if self._task is not None:
            raise WatchFolderError(f"Watcher already started: {self.directory}")

        loop = asyncio.get_running_loop()

        if self.config.fire_initially:
            self._snapshot = DirectorySnapshot.empty()
        else:
            self._snapshot = snapshot_directory(self.directory)
            logger.debug(
                f"[Watcher] Initial snapshot of {self.directory}: "
                f"{len(self._snapshot)} file(s) already known"
            )

        self._wake = asyncio.Event()
        self._task = loop.create_task(self._run())
        logger.debug(f"[Watcher] Watching {self.directory}")
        return self.dispose

    def dispose(self) -> None:
        """Stop scheduling polls. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._wake is not None:
            self._wake.set()
        logger.debug(f"[Watcher] Disposed watcher for {self.directory}")

    async def wait(self) -> None:
        """
        Wait for the poll loop to end.

        Returns after dispose(); raises DirectoryListingError if the loop
        died because the directory could not be listed.
        """
        if self._task is None:
            raise WatchFolderError(f"Watcher not started: {self.directory}")
        await self._task

    async def poll_once(self) -> List[str]:
        """
        Run one scan and dispatch callbacks for new files.

        Returns:
            Newly-appeared filenames, sorted
        """
        loop = asyncio.get_running_loop()
        current = await loop.run_in_executor(
            None, snapshot_directory, self.directory
        )

        previous = self._snapshot or DirectorySnapshot.empty()
        new_files = current.new_since(previous)
        self._snapshot = current

        if self._cancelled:
            # Disposed while listing: finish the poll, report nothing.
            return []

        for name in new_files:
            loop.call_soon(self._dispatch, name)

        return new_files

    async def _run(self) -> None:
        try:
            while True:
                await self.poll_once()
                if self._cancelled:
                    break
                try:
                    await asyncio.wait_for(
                        self._wake.wait(), timeout=self.config.poll_interval
                    )
                except asyncio.TimeoutError:
                    pass
                if self._cancelled:
                    break
        except DirectoryListingError as e:
            logger.error(f"[Watcher] Watch loop stopped: {e}")
            raise
        finally:
            if self._cancelled:
                self._snapshot = None

    def _dispatch(self, name: str) -> None:
        if self._cancelled:
            return
        try:
            result = self._callback(name)
        except Exception:
            logger.exception(f"[Watcher] Callback failed for {name}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[Watcher] Callback task failed: {exc!r}")


def watch_dir(
    directory: Union[str, Path],
    fire_initially: bool,
    callback: FileCallback,
    poll_interval: float = DEFAULT_POLL_SECONDS,
) -> Callable[[], None]:
    """
    Start watching a directory and return the disposer.

    Convenience wrapper over DirectoryWatcher for callers that only need
    cancellation. Use DirectoryWatcher directly to observe loop failure.
    """
    watcher = DirectoryWatcher(
        directory,
        callback,
        fire_initially=fire_initially,
        poll_interval=poll_interval,
    )
    disposer = watcher.start()

    # The loop only holds weak references to tasks.
    _detached_watchers.add(watcher)
    watcher.task.add_done_callback(lambda task: _forget_watcher(watcher, task))
    return disposer


def _forget_watcher(watcher: DirectoryWatcher, task: asyncio.Task) -> None:
    _detached_watchers.discard(watcher)
    # Nobody awaits a detached watcher; _run has already logged the failure.
    if not task.cancelled():
        task.exception()
