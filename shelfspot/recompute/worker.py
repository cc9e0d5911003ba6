"""
Recompute worker - refreshes stale importance scores.

Runs as a background task that:
1. Takes stale item ids from the RecomputeQueue
2. Recomputes each score from the item's current active links
3. Persists the new score on the item

A single worker drains the queue, so recomputations within one process
are serialized and the last persisted score always reflects the links
read by the most recent recompute. A failed recompute is logged and
counted; the score keeps whatever the last successful write produced.
"""

import asyncio

from shelfspot.observability.logging import get_logger
from shelfspot.observability.metrics import get_metrics
from shelfspot.recompute.config import RecomputeConfig
from shelfspot.recompute.queue import RecomputeQueue
from shelfspot.scoring.service import ScoringService

logger = get_logger(__name__)

_TRIGGER = "invalidation"


class RecomputeWorker:
    """
    Worker that turns invalidations into persisted scores.

    Usage:
        worker = RecomputeWorker(queue, scoring_service)
        task = asyncio.create_task(worker.start())  # Runs until stopped
        ...
        await worker.stop()
        await task
    """

    def __init__(
        self,
        queue: RecomputeQueue,
        scoring_service: ScoringService,
        config: RecomputeConfig | None = None,
    ):
        """
        Initialize the recompute worker.

        Args:
            queue: Invalidation queue to consume
            scoring_service: Service that recomputes and persists scores
            config: Recompute configuration
        """
        self._queue = queue
        self._scoring = scoring_service
        self._config = config or RecomputeConfig()
        self._running = False
        self._processed = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict[str, int]:
        return {
            "processed": self._processed,
            "failed": self._failed,
            "pending": len(self._queue),
        }

    async def start(self) -> None:
        """
        Start the worker.

        Consumes the queue until stop() is called, then drains what is
        left so no accepted invalidation is lost on shutdown.
        """
        self._running = True
        self._queue.attach_consumer()
        logger.info("Starting recompute worker")

        try:
            await self._process_loop()
        except asyncio.CancelledError:
            logger.info("Recompute worker cancelled")
            raise
        finally:
            self._running = False
            self._queue.detach_consumer()

        drained = await self.drain()
        logger.info("Recompute worker stopped", drained=drained, **self.stats)

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Stopping recompute worker")
        self._running = False

    async def _process_loop(self) -> None:
        timeout = self._config.poll_timeout_seconds
        while self._running:
            item_id = await self._queue.get(timeout=timeout)
            if item_id is None:
                continue
            await self._recompute(item_id)

    async def drain(self) -> int:
        """
        Recompute every item currently waiting, without blocking.

        Returns:
            Number of items taken from the queue
        """
        count = 0
        while True:
            item_id = self._queue.get_nowait()
            if item_id is None:
                break
            await self._recompute(item_id)
            count += 1
        return count

    async def _recompute(self, item_id: int) -> None:
        """Recompute one item; never raises."""
        metrics = get_metrics()
        try:
            breakdown = await self._scoring.recalculate_item_score(item_id, trigger=_TRIGGER)
        except Exception as e:
            self._failed += 1
            metrics.record_recompute(_TRIGGER, success=False)
            logger.error("Score recompute failed", item_id=item_id, error=str(e))
        else:
            self._processed += 1
            if breakdown is None:
                logger.debug("Invalidated item no longer exists", item_id=item_id)
            else:
                logger.debug(
                    "Score recomputed",
                    item_id=item_id,
                    total_score=breakdown.total_score,
                )
        finally:
            self._queue.task_done()
