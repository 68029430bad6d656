"""APScheduler integration - background jobs for the priority sender and contact sync."""
import structlog

from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.core.exceptions import IntegrationUnavailableError

logger = structlog.get_logger()
_scheduler = None


def init_scheduler():
    global _scheduler
    try:
        from apscheduler.schedulers.background import BackgroundScheduler
        from apscheduler.triggers.interval import IntervalTrigger

        _scheduler = BackgroundScheduler(timezone="UTC")

        _scheduler.add_job(
            job_priority_sender,
            IntervalTrigger(minutes=settings.PRIORITY_SENDER_INTERVAL_MINUTES),
            id="priority_sender", name="Priority Email Sender", replace_existing=True,
            max_instances=1, coalesce=True
        )
        _scheduler.add_job(
            job_contact_sync,
            IntervalTrigger(hours=settings.CONTACT_SYNC_INTERVAL_HOURS),
            id="contact_sync", name="GHL Contact Sync", replace_existing=True,
            max_instances=1, coalesce=True
        )

        _scheduler.start()
        logger.info("Scheduler started", jobs=len(_scheduler.get_jobs()))
        return _scheduler
    except Exception as e:
        logger.error("Failed to start scheduler", error=str(e))
        _scheduler = None
        return None


def shutdown_scheduler():
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
        _scheduler = None


def _scheduler_auth() -> AuthContext:
    return AuthContext(user_id=settings.SCHEDULER_USER_ID)


def job_priority_sender():
    logger.info("Running priority email sender")
    try:
        from emailflow.services.pipelines.priority_sender import run_priority_sender_job
        result = run_priority_sender_job(_scheduler_auth(), triggered_by="scheduler")
        logger.info("Priority email sender complete", result=result)
    except IntegrationUnavailableError as e:
        logger.warning("Priority email sender skipped", reason=str(e))
    except Exception as e:
        logger.error("Priority email sender failed", error=str(e))


def job_contact_sync():
    logger.info("Running contact sync")
    try:
        from emailflow.services.pipelines.contact_sync import run_contact_sync_job
        result = run_contact_sync_job(_scheduler_auth(), triggered_by="scheduler")
        logger.info("Contact sync complete", result=result)
    except IntegrationUnavailableError as e:
        logger.warning("Contact sync skipped", reason=str(e))
    except Exception as e:
        logger.error("Contact sync failed", error=str(e))
