"""Asynchronous importance score recomputation.

Mutation sites publish invalidations to ``RecomputeQueue``; a single
``RecomputeWorker`` drains it and persists fresh scores.
"""

from shelfspot.recompute.config import RecomputeConfig
from shelfspot.recompute.queue import RecomputeQueue
from shelfspot.recompute.worker import RecomputeWorker

__all__ = [
    "RecomputeConfig",
    "RecomputeQueue",
    "RecomputeWorker",
]
