"""
Background scheduler for moderation maintenance jobs.

Uses APScheduler's BackgroundScheduler, started from the FastAPI lifespan.
Suspension expiry is never swept: expiry is evaluated lazily on read. The
only periodic job catches up users whose trust state could not be written.
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from core.correlation import ensure_correlation_id, set_correlation_id
from models.config import settings
from repositories.database import session_scope


# Global scheduler instance
scheduler: BackgroundScheduler | None = None


def trust_state_reconcile_job() -> int:
    """
    Recompute trust state for every user flagged stale.

    Opens its own database session. Returns the number of users repaired.
    """
    from services.trust_state_service import TrustStateService

    set_correlation_id("")
    correlation_id = ensure_correlation_id()
    logger.info(f"Running trust state reconcile job ({correlation_id})")

    with session_scope() as db:
        repaired = TrustStateService.reconcile_stale(db)
    return repaired


def setup_scheduler() -> None:
    """
    Configure and start the background scheduler.

    Schedules:
    - Trust state reconcile: every TRUST_RECONCILE_INTERVAL_MINUTES
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        trust_state_reconcile_job,
        IntervalTrigger(minutes=settings.TRUST_RECONCILE_INTERVAL_MINUTES),
        id="trust_state_reconcile",
        name="Trust State Reconcile",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(
        "Background scheduler started with trust state reconcile every "
        f"{settings.TRUST_RECONCILE_INTERVAL_MINUTES} minutes"
    )


def shutdown_scheduler() -> None:
    """Gracefully shutdown the scheduler."""
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")
    scheduler = None


def get_scheduler_status() -> dict:
    """Get current scheduler status for the health endpoint."""
    if scheduler is None:
        return {"running": False, "jobs": []}

    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": (
                job.next_run_time.isoformat() if job.next_run_time else None
            ),
        }
        for job in scheduler.get_jobs()
    ]
    return {"running": scheduler.running, "jobs": jobs}
