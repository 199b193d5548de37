"""
Sequential work chain with duplicate-key suppression.

Design rules:
- Strict submission order, one operation at a time
- A failed operation never halts the chain
- A key, once submitted, is remembered for the life of the queue; a later
  submission with the same key is dropped, not deferred
- No return values; completion is observed through side effects
"""

import asyncio
import logging
from typing import Awaitable, Callable, Hashable, Optional, Set

logger = logging.getLogger(__name__)


Operation = Callable[[], Awaitable[None]]


class DedupQueue:
    """
    One-at-a-time async operation chain.

    Each submitted operation is chained behind the current tail: it starts
    only after every earlier operation has finished, successfully or not.

    The seen-keys record grows monotonically. That is bounded in practice
    because one queue lives for one signing session, and keys are file paths.
    """

    def __init__(self, name: str = "queue"):
        self.name = name
        self._seen_keys: Set[Hashable] = set()
        self._tail: Optional[asyncio.Future] = None
        self._submitted = 0
        self._completed = 0

    @property
    def seen_keys(self) -> Set[Hashable]:
        """Copy of every key ever submitted."""
        return set(self._seen_keys)

    @property
    def pending_count(self) -> int:
        """Operations submitted but not yet finished."""
        return self._submitted - self._completed

    def submit(self, operation: Operation, key: Optional[Hashable] = None) -> None:
        """
        Append an operation to the chain.

        Must be called from inside a running event loop.

        Args:
            operation: Zero-argument callable returning an awaitable
            key: Optional dedup key; a repeat of a seen key is discarded
        """
        if key is not None:
            if key in self._seen_keys:
                logger.debug(f"[Queue:{self.name}] Dropping duplicate: {key}")
                return
            self._seen_keys.add(key)

        previous = self._tail
        self._submitted += 1
        self._tail = asyncio.ensure_future(self._run_after(previous, operation, key))
        logger.debug(
            f"[Queue:{self.name}] Enqueued {key or 'operation'} "
            f"(pending: {self.pending_count})"
        )

    async def join(self) -> None:
        """
        Wait until the chain is empty.

        Operations submitted while waiting are waited for as well.
        """
        while self._tail is not None and not self._tail.done():
            await asyncio.shield(self._tail)

    async def _run_after(
        self,
        previous: Optional[asyncio.Future],
        operation: Operation,
        key: Optional[Hashable],
    ) -> None:
        if previous is not None:
            # _run_after never raises, so this only waits.
            await previous

        try:
            await operation()
        except Exception as e:
            logger.error(
                f"[Queue:{self.name}] Operation {key or ''} failed: {e!r}"
            )
        finally:
            self._completed += 1
