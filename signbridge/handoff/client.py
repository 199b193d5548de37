"""
Handoff client: runs on the build host.

Sends one file to the signing host through the shared directory and waits
for the signed copy:

1. Start watching out/ (files already there are ignored)
2. Move the file into in/ (not awaited)
3. Resolve when the same basename appears in out/

The client enforces no timeout of its own. Callers that need a ceiling
wrap sign() in asyncio.wait_for.
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Set, Tuple, Union

from ..config import RetrieveMode, SignBridgeSettings
from ..watchfolders.watcher import DirectoryWatcher, DEFAULT_POLL_SECONDS
from .errors import HandoffError, HandoffPlacementError
from .layout import SharedLayout
from .transfer import move_file_to_dir, retrieve

logger = logging.getLogger(__name__)


class HandoffClient:
    """
    Build-host side of the signing handoff.

    Narrow interface:
        place(file) → path in in/
        await_arrival(name, ready=...) → path in out/
        sign(file) → place once out/ is being watched, then await arrival
    """

    def __init__(
        self,
        layout: SharedLayout,
        poll_interval: float = DEFAULT_POLL_SECONDS,
    ):
        self.layout = layout
        self.poll_interval = poll_interval
        self._in_flight: Set[str] = set()

    @classmethod
    def from_settings(cls, settings: SignBridgeSettings) -> "HandoffClient":
        return cls(SharedLayout(settings.shared_dir), poll_interval=settings.poll_interval)

    @property
    def in_flight(self) -> Set[str]:
        """Basenames currently awaiting a signed result."""
        return set(self._in_flight)

    async def place(self, file_path: Union[str, Path]) -> Path:
        """
        Move a file into in/.

        Raises:
            HandoffPlacementError: If the move fails
        """
        loop = asyncio.get_running_loop()
        logger.info(f"[Handoff] Sending file for signing: {file_path}")
        try:
            return await loop.run_in_executor(
                None, move_file_to_dir, file_path, self.layout.input_dir
            )
        except OSError as e:
            raise HandoffPlacementError(str(file_path), str(e)) from e

    async def await_arrival(
        self,
        name: str,
        *,
        ready: Optional[Callable[[], Optional[Awaitable[Any]]]] = None,
    ) -> Path:
        """
        Wait until a file named name newly appears in out/.

        A file of that name already present when the watch starts is stale
        and is ignored.

        Args:
            name: Basename to wait for
            ready: Called once the out/ snapshot has been taken. If it
                returns an awaitable, that is scheduled (not awaited) and
                its failure aborts the wait.

        Raises:
            DirectoryListingError: If out/ can no longer be listed
        """
        watcher, arrived = self._watch_for(name)
        side_task: Optional[asyncio.Future] = None
        if ready is not None:
            try:
                result = ready()
            except Exception:
                watcher.dispose()
                raise
            if inspect.isawaitable(result):
                side_task = asyncio.ensure_future(result)
        return await self._wait(name, watcher, arrived, side_task)

    async def sign(self, file_path: Union[str, Path]) -> Path:
        """
        Hand a file off for signing and wait for the result.

        Returns:
            Path of the signed file in out/

        Raises:
            HandoffError: If the basename is already in flight on this client
            HandoffPlacementError: If the file cannot be placed in in/
            DirectoryListingError: If out/ can no longer be listed
        """
        name = Path(file_path).name
        if name in self._in_flight:
            raise HandoffError(f"A file named {name} is already awaiting signature")

        self._in_flight.add(name)
        try:
            # Placement waits for the snapshot so the result cannot slip in first.
            signed = await self.await_arrival(name, ready=lambda: self.place(file_path))
        finally:
            self._in_flight.discard(name)

        logger.info(f"[Handoff] Signed file arrived: {signed}")
        return signed

    async def sign_to(
        self,
        file_path: Union[str, Path],
        out_file: Union[str, Path],
        mode: RetrieveMode = RetrieveMode.COPY,
    ) -> Path:
        """Sign a file and retrieve the result to out_file."""
        signed = await self.sign(file_path)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, retrieve, signed, out_file, mode)

    def _watch_for(self, name: str) -> Tuple[DirectoryWatcher, asyncio.Future]:
        loop = asyncio.get_running_loop()
        arrived: asyncio.Future = loop.create_future()
        output_dir = self.layout.output_dir

        def on_file(basename: str) -> None:
            if basename == name and not arrived.done():
                arrived.set_result(output_dir / basename)

        watcher = DirectoryWatcher(
            output_dir,
            on_file,
            fire_initially=False,
            poll_interval=self.poll_interval,
        )
        watcher.start()
        return watcher, arrived

    async def _wait(
        self,
        name: str,
        watcher: DirectoryWatcher,
        arrived: asyncio.Future,
        side_task: Optional[asyncio.Future] = None,
    ) -> Path:
        waiters = {arrived, watcher.task}
        if side_task is not None:
            waiters.add(side_task)

        try:
            while True:
                done, _ = await asyncio.wait(
                    waiters, return_when=asyncio.FIRST_COMPLETED
                )
                if arrived in done:
                    return arrived.result()

                if side_task is not None and side_task in done:
                    # Re-raises a failed placement (HandoffPlacementError).
                    side_task.result()
                    waiters.discard(side_task)
                    continue

                if watcher.task in done:
                    watcher.task.result()
                    raise HandoffError(
                        f"Stopped watching {watcher.directory} before {name} arrived"
                    )
        finally:
            watcher.dispose()
            if not arrived.done():
                arrived.cancel()
