"""Priority email sender pipeline."""
import time
from datetime import datetime
from typing import Dict, Any, List, Optional
import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session

from emailflow.db.base import session_scope
from emailflow.db.models.email import Email, EmailType
from emailflow.db.models.integration import IntegrationProvider
from emailflow.db.models.job_run import JobRun
from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.services.adapters.base import MessagingAdapter
from emailflow.services.adapters.messaging.ghl import GHLAdapter
from emailflow.services.error_log import record_error
from emailflow.services.ghl_oauth import GHLOAuthClient
from emailflow.services.integrations import require_connection
from emailflow.services.sending import contacts_with_tag, dispatch_to_contact

logger = structlog.get_logger()


def priority_tag(email_id: int) -> str:
    return f"{settings.PRIORITY_TAG_PREFIX}{email_id}"


def select_priority_emails(db: Session, now: Optional[datetime] = None) -> List[Email]:
    """Active priority emails with content whose send window contains `now`."""
    now = now or datetime.utcnow()
    emails = db.query(Email).filter(
        Email.type == EmailType.PRIORITY,
        Email.is_active == True,
        or_(Email.start_date.is_(None), Email.start_date <= now),
        or_(Email.end_date.is_(None), Email.end_date >= now)
    ).order_by(Email.email_id).all()

    eligible = []
    for email in emails:
        if not email.has_content():
            logger.info("Skipping priority email without subject or body", email_id=email.email_id)
            continue
        eligible.append(email)
    return eligible


def run_priority_sender(
    db: Session,
    adapter: MessagingAdapter,
    now: Optional[datetime] = None,
    send_delay: Optional[float] = None,
    triggered_by: str = "system"
) -> Dict[str, Any]:
    """
    Run the priority email sender.

    Steps:
    1. Select active priority emails inside their send window
    2. Find contacts tagged priority_email_<email_id>
    3. Claim a delivery per (email, contact) and send through the adapter
    4. Record sent/failed status on the delivery
    """
    now = now or datetime.utcnow()
    delay = settings.PRIORITY_SEND_DELAY_SECONDS if send_delay is None else send_delay
    counters = {"emails_processed": 0, "sent": 0, "skipped": 0, "errors": 0}

    job_run = JobRun.start("priority_sender", triggered_by)
    db.add(job_run)
    db.commit()

    try:
        logger.info("Starting priority email sender")

        emails = select_priority_emails(db, now)
        logger.info(f"Found {len(emails)} active priority emails to process")

        for email in emails:
            email_id = email.email_id
            counters["emails_processed"] += 1

            tag = priority_tag(email_id)
            contacts = contacts_with_tag(db, tag)
            if not contacts:
                logger.info("No contacts found for priority email", email_id=email_id, tag=tag)
                continue

            logger.info("Processing priority email", email_id=email_id, contacts=len(contacts))

            for contact in contacts:
                contact_id = contact.contact_id
                try:
                    result = dispatch_to_contact(db, adapter, email, contact)
                except Exception as e:
                    db.rollback()
                    counters["errors"] += 1
                    logger.error("Error sending priority email", email_id=email_id, contact_id=contact_id, error=str(e))
                    record_error(db, "priority_sender", e, {"email_id": email_id, "contact_id": contact_id})
                    attempted = True
                else:
                    if result["status"] == "sent":
                        counters["sent"] += 1
                    elif result["status"] == "failed":
                        counters["errors"] += 1
                    else:
                        counters["skipped"] += 1
                    attempted = result["status"] != "skipped"

                # Rate limit between API calls
                if attempted and delay:
                    time.sleep(delay)

        job_run.complete(counters)
        db.commit()

        logger.info("Priority email sender completed", counters=counters)
        return counters

    except Exception as e:
        db.rollback()
        logger.error("Priority email sender failed", error=str(e))
        record_error(db, "priority_sender", e)
        job_run.fail(e, counters)
        db.commit()
        raise


def run_priority_sender_job(auth: AuthContext, triggered_by: str = "scheduler") -> Dict[str, Any]:
    """Run the sender in its own session with the user's GHL connection.

    Raises IntegrationUnavailableError before sending anything when the user
    has no usable GHL connection.
    """
    with session_scope() as db:
        connection = require_connection(db, auth, IntegrationProvider.GHL, oauth_client=GHLOAuthClient())
        adapter = GHLAdapter.from_connection(connection)
        return run_priority_sender(db, adapter, triggered_by=triggered_by)
