"""
In-process invalidation queue for item importance scores.

Every project or link mutation publishes ``invalidate(item_id)``. The call
never blocks and never raises: an id already waiting is coalesced, and an
invalidation arriving while the queue is full is dropped with a warning
and a metric. A later mutation of the same item re-invalidates it, so a
dropped invalidation only delays convergence.
"""

import asyncio
import logging
from collections.abc import Iterable

from shelfspot.observability.metrics import get_metrics
from shelfspot.recompute.config import RecomputeConfig

logger = logging.getLogger(__name__)


class RecomputeQueue:
    """
    Bounded FIFO of item ids whose score is stale.

    An item id is either pending (waiting in the queue) or not; it is
    never queued twice. The id leaves the pending set as soon as a worker
    takes it, so an invalidation that arrives during the recompute queues
    the item again.

    Usage:
        queue = RecomputeQueue()
        queue.invalidate(42)

        item_id = await queue.get(timeout=1.0)
        ...
        queue.task_done()
    """

    def __init__(self, config: RecomputeConfig | None = None):
        """
        Initialize queue.

        Args:
            config: Recompute configuration
        """
        self._config = config or RecomputeConfig()
        self._queue: asyncio.Queue[int] = asyncio.Queue(maxsize=self._config.max_pending)
        self._pending: set[int] = set()
        self._consumer_attached = False
        self._warned_unconsumed = False

    def __len__(self) -> int:
        return self._queue.qsize()

    def is_pending(self, item_id: int) -> bool:
        return item_id in self._pending

    @property
    def consumer_attached(self) -> bool:
        return self._consumer_attached

    def attach_consumer(self) -> None:
        self._consumer_attached = True
        self._warned_unconsumed = False

    def detach_consumer(self) -> None:
        self._consumer_attached = False

    def invalidate(self, item_id: int) -> bool:
        """
        Mark an item's score stale.

        Args:
            item_id: Item whose links or projects changed

        Returns:
            True if the item is now waiting for recompute, False if the
            invalidation was dropped because the queue is full
        """
        if item_id in self._pending:
            return True

        try:
            self._queue.put_nowait(item_id)
        except asyncio.QueueFull:
            logger.warning(
                "Recompute queue full (%d pending), dropping invalidation for item %d",
                self._queue.qsize(), item_id,
            )
            get_metrics().record_invalidation_dropped()
            return False

        self._pending.add(item_id)
        get_metrics().set_recompute_queue_depth(self._queue.qsize())
        logger.debug("Invalidated score of item %d", item_id)
        if not self._consumer_attached and not self._warned_unconsumed:
            self._warned_unconsumed = True
            logger.warning(
                "Invalidation queued with no recompute worker running; "
                "scores stay stale until one is started"
            )
        return True

    def invalidate_many(self, item_ids: Iterable[int]) -> int:
        """
        Invalidate several items.

        Returns:
            Number of distinct items now waiting for recompute
        """
        return sum(1 for item_id in dict.fromkeys(item_ids) if self.invalidate(item_id))

    async def get(self, timeout: float | None = None) -> int | None:
        """
        Take the next stale item id.

        Args:
            timeout: Seconds to wait on an empty queue (None waits forever)

        Returns:
            Item id, or None if the timeout expired
        """
        try:
            if timeout is None:
                item_id = await self._queue.get()
            else:
                item_id = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

        self._pending.discard(item_id)
        return item_id

    def get_nowait(self) -> int | None:
        """Take the next stale item id without waiting, or None if empty."""
        try:
            item_id = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

        self._pending.discard(item_id)
        return item_id

    def task_done(self) -> None:
        self._queue.task_done()
        get_metrics().set_recompute_queue_depth(self._queue.qsize())

    async def join(self) -> None:
        """Wait until every taken item id has been marked done."""
        await self._queue.join()
