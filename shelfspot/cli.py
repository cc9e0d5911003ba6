"""
Command-line interface for shelfspot.

Provides commands to run alert sweeps, watch stock continuously while
refreshing importance scores, send test notifications, query scores and
run diagnostic checks.

Usage:
    shelfspot init-db                 # Initialize database
    shelfspot sweep                   # Run one full alert sweep
    shelfspot watch                   # Sweep periodically + recompute worker
    shelfspot check-item 42 3         # Check one item at a new quantity
    shelfspot scores recalc           # Recompute every importance score
    shelfspot health                  # Check service health
"""

import asyncio
import signal
import sys
from collections.abc import Awaitable, Callable

import click

from shelfspot.config.settings import get_settings
from shelfspot.observability.logging import setup_logging
from shelfspot.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """ShelfSpot - Low-stock alerting and item importance scoring."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from shelfspot.storage.database import Database
    from shelfspot.storage.schema import create_tables

    async def run():
        db = Database()
        await db.connect()

        try:
            await create_tables(db)
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def sweep() -> None:
    """Run one full alert sweep over every active rule."""
    from shelfspot.dependencies import build_alert_service
    from shelfspot.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            result = await build_alert_service(db).run_full_sweep()
            _echo_counts(
                result.message,
                checked=result.checked,
                triggered=result.triggered,
                sent=result.sent,
                reset=result.reset,
            )
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.option("--interval", default=None, type=int, help="Seconds between sweeps")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def watch(interval: int | None, metrics: bool) -> None:
    """Sweep alerts periodically while the recompute worker refreshes scores.

    Runs until SIGINT/SIGTERM. The final sweep in progress completes and
    the recompute queue is drained before exit.

    Example:
        shelfspot watch                  # Interval from SWEEP_INTERVAL_SECONDS
        shelfspot watch --interval 300   # Every 5 minutes
    """
    from shelfspot.dependencies import (
        cleanup_dependencies,
        get_alert_service,
        get_recompute_worker,
    )
    from shelfspot.observability.logging import get_logger, log_context

    logger = get_logger(__name__)
    interval = interval or get_settings().sweep_interval_seconds

    async def run():
        if metrics:
            get_metrics().start_server()

        alert_service = await get_alert_service()
        worker = await get_recompute_worker()
        stop_event = asyncio.Event()

        async def shutdown():
            stop_event.set()
            await worker.stop()

        install_shutdown_handlers(asyncio.get_running_loop(), shutdown)

        async def sweep_loop():
            sweep_number = 0
            while not stop_event.is_set():
                sweep_number += 1
                with log_context(sweep=sweep_number):
                    try:
                        result = await alert_service.run_full_sweep()
                        logger.info("Sweep completed", **result.to_dict())
                    except Exception as e:
                        logger.error("Sweep failed", error=str(e))

                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass

        click.echo(f"Watching stock every {interval}s (Ctrl+C to stop)")
        try:
            await asyncio.gather(sweep_loop(), worker.start())
        finally:
            await cleanup_dependencies()

    asyncio.run(run())


@main.command("check-item")
@click.argument("item_id", type=int)
@click.argument("quantity", type=int)
def check_item(item_id: int, quantity: int) -> None:
    """Check one item's alert rules as if its quantity just changed."""
    from shelfspot.dependencies import build_alert_service
    from shelfspot.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            result = await build_alert_service(db).check_item_alerts(item_id, quantity)
            _echo_counts(
                result.message,
                triggered=result.triggered,
                sent=result.sent,
                reset=result.reset,
            )
        finally:
            await db.close()

    asyncio.run(run())


@main.command("test-email")
@click.option("--to", "recipient", default=None, help="Recipient (default: ALERTS_EMAIL_RECIPIENT)")
def test_email(recipient: str | None) -> None:
    """Send a test e-mail through the alert e-mail channel."""
    from shelfspot.dependencies import build_alert_service
    from shelfspot.storage.database import Database

    async def run():
        # No query is issued for a test send; the pool is never connected
        result = await build_alert_service(Database()).send_test_email(recipient)
        _echo_test_result(result)

    asyncio.run(run())


@main.command("test-push")
@click.argument("token")
def test_push(token: str) -> None:
    """Send a test push notification to one Expo device token."""
    from shelfspot.dependencies import build_alert_service
    from shelfspot.storage.database import Database

    async def run():
        result = await build_alert_service(Database()).send_test_push(token)
        _echo_test_result(result)

    asyncio.run(run())


@main.group()
def scores() -> None:
    """Importance score commands."""


@scores.command("recalc")
@click.option("--item", "item_id", default=None, type=int, help="Recompute only this item")
@click.option("--project", "project_id", default=None, type=int, help="Recompute items of this project")
def scores_recalc(item_id: int | None, project_id: int | None) -> None:
    """Recompute and persist importance scores.

    Example:
        shelfspot scores recalc              # Every item
        shelfspot scores recalc --item 42    # One item
        shelfspot scores recalc --project 7  # Items of one project
    """
    from shelfspot.dependencies import build_scoring_service
    from shelfspot.errors import NotFoundError
    from shelfspot.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service = build_scoring_service(db)

            if item_id is not None:
                breakdown = await service.recalculate_item_score(item_id)
                if breakdown is None:
                    click.echo(click.style(f"Item {item_id} not found", fg="red"))
                    sys.exit(1)
                _echo_breakdown(breakdown)
                return

            if project_id is not None:
                try:
                    outcome = await service.recalculate_project_items_scores(project_id)
                except NotFoundError as e:
                    click.echo(click.style(str(e), fg="red"))
                    sys.exit(1)
                click.echo(
                    f"Recalculated {outcome['updated']} item(s) in project "
                    f"{outcome['project_name']!r}"
                )
                return

            result = await service.recalculate_all_scores()
            _echo_counts("Importance scores updated", updated=result.updated, errors=result.errors)
            if result.top_items:
                click.echo("\nTop items:")
                for b in result.top_items:
                    click.echo(f"  {b.item_id:6d}  {b.total_score:8.2f}  {b.item_name}")
        finally:
            await db.close()

    asyncio.run(run())


@scores.command("top")
@click.option("--limit", default=None, type=click.IntRange(min=0), help="Number of items")
def scores_top(limit: int | None) -> None:
    """List items by persisted importance score."""
    from shelfspot.dependencies import build_scoring_service
    from shelfspot.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            items = await build_scoring_service(db).get_top_items(limit)
            if not items:
                click.echo("No items found.")
                return
            for item in items:
                click.echo(
                    f"  {item.id:6d}  {item.importance_score:8.2f}  "
                    f"qty {item.quantity:5d}  {item.name}"
                )
        finally:
            await db.close()

    asyncio.run(run())


@scores.command("critical")
@click.option("--max-quantity", default=None, type=int, help="Stock ceiling (default 5)")
def scores_critical(max_quantity: int | None) -> None:
    """List low-stock items ranked by score per remaining unit."""
    from shelfspot.dependencies import build_scoring_service
    from shelfspot.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            items = await build_scoring_service(db).get_critical_items(max_quantity)
            if not items:
                click.echo("No critical items.")
                return
            for c in items:
                click.echo(
                    f"  {c.id:6d}  ratio {c.criticality_ratio:8.2f}  "
                    f"score {c.importance_score:6.2f}  qty {c.quantity:3d}  {c.name}"
                )
        finally:
            await db.close()

    asyncio.run(run())


@scores.command("stats")
def scores_stats() -> None:
    """Show importance score statistics."""
    from shelfspot.dependencies import build_scoring_service
    from shelfspot.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            stats = await build_scoring_service(db).get_score_statistics()

            click.echo("\nImportance Scores")
            click.echo("=" * 40)
            click.echo(f"  Total items:      {stats.total_items}")
            click.echo(f"  Items with score: {stats.items_with_score}")
            click.echo(f"  Average score:    {stats.average_score:.2f}")
            click.echo(f"  Max score:        {stats.max_score:.2f}")

            click.echo("\n  Distribution:")
            for bucket, count in stats.distribution.to_dict().items():
                click.echo(f"    {bucket:10s} {count}")
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        from shelfspot.alerts.config import AlertConfig
        from shelfspot.alerts.dispatcher import NotificationConfig

        results: dict[str, bool] = {}

        # Check PostgreSQL
        try:
            from shelfspot.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        # Check channels
        results["email_configured"] = NotificationConfig().resend_api_key is not None
        results["email_recipient_configured"] = AlertConfig().email_recipient is not None

        # Print results
        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


def _echo_counts(message: str, **counts: int) -> None:
    click.echo(f"\n{message}")
    for name, value in counts.items():
        click.echo(f"  {name}: {value}")


def _echo_test_result(result: dict) -> None:
    color = "green" if result["success"] else "red"
    click.echo(click.style(result["message"], fg=color))
    if not result["success"]:
        sys.exit(1)


def _echo_breakdown(breakdown) -> None:
    click.echo(f"\n{breakdown.item_name} (item {breakdown.item_id})")
    click.echo(f"  total score:      {breakdown.total_score:.2f}")
    click.echo(f"  active projects:  {breakdown.active_projects_score:.2f}")
    click.echo(f"  paused projects:  {breakdown.paused_projects_score:.2f}")
    click.echo(f"  diversification:  {breakdown.project_count_bonus:.2f}")
    click.echo(f"  mean multiplier:  {breakdown.priority_multiplier:.2f}")
    for usage in breakdown.projects_usage:
        click.echo(
            f"    {usage.project_name}: {usage.status}/{usage.priority} "
            f"x{usage.quantity_used} -> {usage.contribution:.2f}"
        )


def install_shutdown_handlers(
    loop: asyncio.AbstractEventLoop,
    on_signal: Callable[[], Awaitable[None]],
) -> set[asyncio.Task]:
    """
    Run on_signal as a task on SIGTERM/SIGINT.

    Returns the set holding in-flight shutdown tasks; a task leaves it
    once it finishes.
    """
    tasks: set[asyncio.Task] = set()

    def handle() -> None:
        task = loop.create_task(on_signal())
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle)
    return tasks


if __name__ == "__main__":
    main()
