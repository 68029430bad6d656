"""Contact sync pipeline - mirrors CRM contacts into the local store."""
import time
from typing import Dict, Any, Optional, Tuple
import structlog
from sqlalchemy.orm import Session

from emailflow.db.base import session_scope
from emailflow.db.models.contact import Contact
from emailflow.db.models.integration import IntegrationProvider
from emailflow.db.models.job_run import JobRun
from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.services.adapters.base import MessagingAdapter
from emailflow.services.adapters.messaging.ghl import GHLAdapter
from emailflow.services.error_log import record_error
from emailflow.services.ghl_oauth import GHLOAuthClient
from emailflow.services.integrations import require_connection

logger = structlog.get_logger()


def map_ghl_contact(ghl_contact: Dict[str, Any]) -> Dict[str, Any]:
    """Map a raw GHL contact to Contact column values."""
    email = ghl_contact.get("email")
    if not email:
        addresses = ghl_contact.get("emailAddresses") or []
        if addresses and isinstance(addresses[0], dict):
            email = addresses[0].get("value")

    name = ghl_contact.get("name")
    if not name:
        name = f"{ghl_contact.get('firstName') or ''} {ghl_contact.get('lastName') or ''}".strip()

    return {
        "ghl_id": str(ghl_contact["id"]),
        "email": email or f"unknown-{ghl_contact['id']}@placeholder.com",
        "name": name,
        "tags": list(ghl_contact.get("tags") or []),
        "custom_fields": ghl_contact.get("customFields") or {},
        "contact_source": "ghl_sync",
    }


def upsert_ghl_contact(
    db: Session,
    ghl_contact: Dict[str, Any],
    seen: Optional[Dict[str, Contact]] = None
) -> Tuple[Contact, bool]:
    """Create or update the local contact for a GHL contact; returns (contact, created).

    `seen` caches rows added earlier in the same transaction, which queries
    cannot see before a flush. The caller commits.
    """
    values = map_ghl_contact(ghl_contact)
    ghl_id = values["ghl_id"]
    seen = {} if seen is None else seen
    contact = seen.get(ghl_id) or db.query(Contact).filter(Contact.ghl_id == ghl_id).first()
    created = contact is None
    if created:
        contact = Contact(**values)
        db.add(contact)
    else:
        for field, value in values.items():
            setattr(contact, field, value)
    seen[ghl_id] = contact
    return contact, created


def run_contact_sync(
    db: Session,
    adapter: MessagingAdapter,
    page_size: Optional[int] = None,
    page_delay: Optional[float] = None,
    triggered_by: str = "system"
) -> Dict[str, Any]:
    """
    Run the contact sync.

    Pages through the CRM until it reports no further page (or returns an
    empty one) and upserts every contact on its GHL id.
    """
    page_size = page_size or settings.CONTACT_SYNC_PAGE_SIZE
    delay = settings.CONTACT_SYNC_PAGE_DELAY_SECONDS if page_delay is None else page_delay
    counters = {"total": 0, "created": 0, "updated": 0}

    job_run = JobRun.start("contact_sync", triggered_by)
    db.add(job_run)
    db.commit()

    try:
        logger.info("Starting contact sync")
        page = 1
        has_more = True
        seen = {}

        while has_more:
            result = adapter.fetch_contacts(page=page, limit=page_size)
            contacts = result.get("contacts") or []
            if not contacts:
                break

            logger.info(f"Processing {len(contacts)} contacts from page {page}")
            counters["total"] += len(contacts)

            for ghl_contact in contacts:
                if not ghl_contact.get("id"):
                    continue

                _, created = upsert_ghl_contact(db, ghl_contact, seen)
                counters["created" if created else "updated"] += 1

            db.commit()

            has_more = bool(result.get("has_more"))
            page += 1
            if has_more and delay:
                time.sleep(delay)

        job_run.complete(counters)
        db.commit()

        logger.info("Contact sync completed", counters=counters)
        return counters

    except Exception as e:
        db.rollback()
        logger.error("Contact sync failed", error=str(e))
        record_error(db, "contact_sync", e)
        job_run.fail(e, counters)
        db.commit()
        raise


def run_contact_sync_job(auth: AuthContext, triggered_by: str = "scheduler") -> Dict[str, Any]:
    """Run the contact sync in its own session with the user's GHL connection."""
    with session_scope() as db:
        connection = require_connection(db, auth, IntegrationProvider.GHL, oauth_client=GHLOAuthClient())
        adapter = GHLAdapter.from_connection(connection)
        return run_contact_sync(db, adapter, triggered_by=triggered_by)
