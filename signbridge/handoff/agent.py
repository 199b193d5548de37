"""
Signing agent: runs on the signing host.

Watches the shared input directory, signs each executable that appears
and moves it, under the same name, to the output directory.

Per-file lifecycle:
    DETECTED → VERIFIED → SIGNING → SIGNED → RELOCATED
                            └──────────┴──→ FAILED

A failed file is logged and abandoned; the next file is still processed.
Only losing the input directory itself stops the agent.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config import SignBridgeSettings
from ..execution.errors import SigningError
from ..execution.queue import DedupQueue
from ..execution.results import SigningResult, SigningStatus
from ..execution.signtool import SignTool, find_signtool
from ..watchfolders.watcher import DirectoryWatcher, DEFAULT_POLL_SECONDS
from .layout import SharedLayout
from .transfer import move_file_to_dir

logger = logging.getLogger(__name__)


DEFAULT_EXTENSIONS = frozenset({".exe"})


class SigningAgent:
    """
    Long-running signing service.

    Coordinates:
    1. Directory watching on in/ (fires for leftovers from a previous crash)
    2. Extension filtering and readability check
    3. Strictly sequential signing via DedupQueue, keyed by full path
    4. Atomic relocation to out/
    """

    def __init__(
        self,
        layout: SharedLayout,
        sign_tool: SignTool,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        poll_interval: float = DEFAULT_POLL_SECONDS,
    ):
        """
        Initialize signing agent.

        Args:
            layout: Shared directory layout
            sign_tool: Configured signing tool wrapper
            extensions: Filename suffixes that trigger signing
            poll_interval: Seconds between scans of in/
        """
        self.layout = layout
        self.sign_tool = sign_tool
        self.extensions = frozenset(ext.lower() for ext in extensions)
        self.poll_interval = poll_interval
        self.queue = DedupQueue("signing")
        self.results: List[SigningResult] = []
        self._results_by_path: Dict[str, SigningResult] = {}
        self._watcher: Optional[DirectoryWatcher] = None

    @classmethod
    def from_settings(cls, settings: SignBridgeSettings) -> "SigningAgent":
        """
        Build an agent from settings, locating the signing tool.

        Raises:
            SignToolNotFoundError: If the signing tool is not installed
        """
        sign_tool = SignTool(
            find_signtool(settings.signtool_path),
            certificate=settings.certificate,
            timestamp_url=settings.timestamp_url,
            timeout_ms=settings.sign_timeout_ms,
        )
        return cls(
            SharedLayout(settings.shared_dir),
            sign_tool,
            extensions=settings.executable_extensions,
            poll_interval=settings.poll_interval,
        )

    @property
    def watcher(self) -> Optional[DirectoryWatcher]:
        return self._watcher

    def is_signable(self, filename: str) -> bool:
        return Path(filename).suffix.lower() in self.extensions

    def start(self) -> None:
        """
        Create the shared directories and start watching in/.

        Raises:
            SharedDirectoryError: If a directory cannot be created
        """
        self.layout.ensure()
        self._watcher = DirectoryWatcher(
            self.layout.input_dir,
            self._on_file_appeared,
            fire_initially=True,
            poll_interval=self.poll_interval,
        )
        self._watcher.start()
        logger.info(f"[Agent] Watching {self.layout.input_dir} for changes...")

    def stop(self) -> None:
        """Stop watching. A signing command already running is not interrupted."""
        if self._watcher is not None:
            self._watcher.dispose()

    async def run(self) -> None:
        """
        Start and run until stopped.

        Raises:
            DirectoryListingError: If in/ disappears or becomes unreadable
        """
        self.start()
        await self._watcher.wait()

    async def drain(self) -> None:
        """Wait for every queued file to finish."""
        await self.queue.join()

    def results_with_status(self, status: SigningStatus) -> List[SigningResult]:
        return [r for r in self.results if r.status == status]

    def _on_file_appeared(self, filename: str) -> None:
        logger.debug(f"[Agent] File appeared: {filename}")
        if not self.is_signable(filename):
            return

        file_path = self.layout.input_dir / filename
        key = str(file_path)
        if key in self._results_by_path:
            logger.debug(f"[Agent] {filename} already detected")
            return

        # Appearance does not guarantee the file is still there: it may be
        # deleted between the poll and this check.
        if not os.access(file_path, os.R_OK):
            logger.warning(f"[Agent] {filename} vanished or unreadable, skipping")
            return

        result = SigningResult(source_path=key)
        result.advance(SigningStatus.VERIFIED)
        self._results_by_path[key] = result
        self.results.append(result)

        self.queue.submit(lambda: self._handle_file(file_path, result), key=key)

    async def _handle_file(self, file_path: Path, result: SigningResult) -> None:
        """Sign one verified file and move it to out/."""
        result.advance(SigningStatus.SIGNING)

        logger.info(f"[Agent] Signing {file_path}...")
        try:
            await self.sign_tool.sign(file_path)
        except SigningError as e:
            result.fail(str(e))
            logger.error(f"[Agent] ERROR {file_path}: {e}")
            return

        result.advance(SigningStatus.SIGNED)

        loop = asyncio.get_running_loop()
        try:
            out_path = await loop.run_in_executor(
                None, move_file_to_dir, file_path, self.layout.output_dir
            )
        except OSError as e:
            result.fail(f"Relocation failed: {e}")
            logger.error(f"[Agent] ERROR {file_path}: could not move to output: {e}")
            return

        result.output_path = str(out_path)
        result.advance(SigningStatus.RELOCATED)
        logger.info(f"[Agent] Done {out_path}. {result.summary()}")
