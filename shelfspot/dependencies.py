"""
Service wiring for embedding the engine in a host application.

The ``build_*`` functions assemble one service over a given Database. The
async ``get_*`` functions keep process-wide singletons over the global
database, for hosts (an HTTP layer, the CLI ``watch`` loop) that share
one engine.
"""

from shelfspot.alerts.config import AlertConfig
from shelfspot.alerts.dispatcher import NotificationConfig, create_dispatcher
from shelfspot.alerts.repository import AlertRepository, DestinationRegistry
from shelfspot.alerts.service import AlertService, Clock
from shelfspot.projects.repository import ProjectRepository
from shelfspot.projects.service import ProjectService
from shelfspot.recompute.config import RecomputeConfig
from shelfspot.recompute.queue import RecomputeQueue
from shelfspot.recompute.worker import RecomputeWorker
from shelfspot.scoring.config import ScoringConfig
from shelfspot.scoring.repository import ScoringRepository
from shelfspot.scoring.service import ScoringService
from shelfspot.storage.database import Database, close_database, get_database

# Global service instances (initialized on first use)
_alert_service: AlertService | None = None
_scoring_service: ScoringService | None = None
_project_service: ProjectService | None = None
_recompute_queue: RecomputeQueue | None = None
_recompute_worker: RecomputeWorker | None = None


def build_alert_service(
    database: Database,
    config: AlertConfig | None = None,
    notification_config: NotificationConfig | None = None,
    clock: Clock | None = None,
) -> AlertService:
    """Alert service with the Resend and Expo channels from config."""
    config = config or AlertConfig()
    dispatcher = create_dispatcher(
        destinations=DestinationRegistry(database),
        email_recipient=config.email_recipient,
        config=notification_config,
    )
    return AlertService(
        config=config,
        alert_repo=AlertRepository(database),
        dispatcher=dispatcher,
        clock=clock,
    )


def build_scoring_service(
    database: Database,
    config: ScoringConfig | None = None,
) -> ScoringService:
    return ScoringService(repository=ScoringRepository(database), config=config)


def build_project_service(database: Database, queue: RecomputeQueue) -> ProjectService:
    return ProjectService(repository=ProjectRepository(database), invalidator=queue)


async def get_alert_service() -> AlertService:
    """Get alert service instance."""
    global _alert_service

    if _alert_service is None:
        _alert_service = build_alert_service(await get_database())

    return _alert_service


async def get_scoring_service() -> ScoringService:
    """Get scoring service instance."""
    global _scoring_service

    if _scoring_service is None:
        _scoring_service = build_scoring_service(await get_database())

    return _scoring_service


def get_recompute_queue() -> RecomputeQueue:
    """Get the process-wide invalidation queue."""
    global _recompute_queue

    if _recompute_queue is None:
        _recompute_queue = RecomputeQueue(config=RecomputeConfig())

    return _recompute_queue


async def get_recompute_worker() -> RecomputeWorker:
    """
    Get the recompute worker draining the process-wide queue.

    The caller owns starting it (``asyncio.create_task(worker.start())``).
    """
    global _recompute_worker

    if _recompute_worker is None:
        _recompute_worker = RecomputeWorker(
            queue=get_recompute_queue(),
            scoring_service=await get_scoring_service(),
        )

    return _recompute_worker


async def get_project_service() -> ProjectService:
    """
    Get project service instance publishing to the process-wide queue.

    Scores are only recomputed while a worker from get_recompute_worker()
    is running; the queue logs a warning on the first unconsumed invalidation.
    """
    global _project_service

    if _project_service is None:
        _project_service = build_project_service(
            await get_database(), get_recompute_queue(),
        )

    return _project_service


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _alert_service, _scoring_service, _project_service
    global _recompute_queue, _recompute_worker

    if _recompute_worker is not None:
        await _recompute_worker.stop()
        _recompute_worker = None

    _alert_service = None
    _scoring_service = None
    _project_service = None
    _recompute_queue = None

    await close_database()
