"""Per-contact email dispatch shared by the priority sender and manual tag sends."""
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import String, cast
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from emailflow.core.config import settings
from emailflow.core.exceptions import InvalidEmailError
from emailflow.db.models.contact import Contact
from emailflow.db.models.delivery import DeliveryStatus, EmailDelivery, make_active_key
from emailflow.db.models.email import Email, ExperimentVariant
from emailflow.db.models.job_run import JobRun
from emailflow.services.adapters.base import MessagingAdapter
from emailflow.services.error_log import record_error
from emailflow.services.templating import html_to_text, render_for_contact

logger = structlog.get_logger()


def contacts_with_tag(db: Session, tag: str) -> List[Contact]:
    """Contacts whose tag list contains `tag`, ordered by id."""
    candidates = db.query(Contact).filter(
        cast(Contact.tags, String).like(f'%"{tag}"%')
    ).order_by(Contact.contact_id).all()
    # The LIKE prefilter over serialized JSON can over-match; confirm exactly.
    return [c for c in candidates if c.has_tag(tag)]


def claim_delivery(
    db: Session,
    email: Email,
    contact: Contact,
    variant: Optional[ExperimentVariant] = None
) -> Optional[EmailDelivery]:
    """Claim the (email, contact) pair by inserting a queued delivery.

    Returns the claimed record, an existing record still in `queued` (an
    interrupted earlier attempt), or None when a sent or later delivery
    already holds the pair.
    """
    key = make_active_key(email.email_id, contact.contact_id)
    variant_id = variant.variant_id if variant else None

    delivery = EmailDelivery(
        email_id=email.email_id,
        contact_id=contact.contact_id,
        variant_id=variant_id,
        status=DeliveryStatus.QUEUED,
        active_key=key
    )
    db.add(delivery)
    try:
        db.commit()
        return delivery
    except IntegrityError:
        db.rollback()

    existing = db.query(EmailDelivery).filter(EmailDelivery.active_key == key).first()
    if existing is None or existing.status != DeliveryStatus.QUEUED:
        return None

    existing.variant_id = variant_id
    db.commit()
    logger.info("Resuming queued delivery", delivery_id=existing.delivery_id, email_id=email.email_id, contact_id=contact.contact_id)
    return existing


def _result(contact: Contact, status: str, delivery: Optional[EmailDelivery] = None, **extra) -> Dict[str, Any]:
    result = {
        "contact_id": contact.contact_id,
        "status": status,
        "delivery_id": delivery.delivery_id if delivery else None,
    }
    result.update(extra)
    return result


def dispatch_to_contact(
    db: Session,
    adapter: MessagingAdapter,
    email: Email,
    contact: Contact,
    variant: Optional[ExperimentVariant] = None
) -> Dict[str, Any]:
    """Send `email` (or `variant`) to one contact.

    The result `status` is "sent", "skipped" or "failed". Exceptions from the
    adapter mark the claimed delivery failed and propagate.
    """
    if not contact.ghl_id:
        logger.info("Skipping contact without GHL ID", email_id=email.email_id, contact_id=contact.contact_id)
        return _result(contact, "skipped", reason="missing_ghl_id")

    delivery = claim_delivery(db, email, contact, variant)
    if delivery is None:
        logger.debug("Email already sent to contact", email_id=email.email_id, contact_id=contact.contact_id)
        return _result(contact, "skipped", reason="already_sent")

    source = variant or email
    subject = render_for_contact(source.subject, contact)
    body_html = render_for_contact(source.body_html, contact)
    body_text = render_for_contact(source.body_text, contact) if source.body_text else html_to_text(body_html)

    try:
        response = adapter.send_email(
            contact_id=contact.ghl_id,
            subject=subject,
            body_html=body_html,
            body_text=body_text
        )
    except Exception as e:
        delivery.mark_failed(str(e))
        db.commit()
        raise

    message_id = response.get("message_id")
    if response.get("success") and message_id:
        delivery.status = DeliveryStatus.SENT
        delivery.ghl_message_id = message_id
        delivery.sent_at = datetime.utcnow()
        delivery.error_message = None
        db.commit()
        logger.info("Email sent", email_id=email.email_id, contact_id=contact.contact_id, message_id=message_id)
        return _result(contact, "sent", delivery, message_id=message_id)

    error = response.get("error") or "No message ID returned"
    delivery.mark_failed(error)
    db.commit()
    logger.warning("Email send failed", email_id=email.email_id, contact_id=contact.contact_id, error=error)
    return _result(contact, "failed", delivery, error=error)


def send_email_to_tag(
    db: Session,
    adapter: MessagingAdapter,
    email: Email,
    tag: str,
    variant: Optional[ExperimentVariant] = None,
    send_delay: Optional[float] = None,
    triggered_by: str = "system"
) -> Dict[str, Any]:
    """Send one email, or one of its variants, to every contact carrying `tag`."""
    source = variant or email
    if not source.subject or not source.body_html:
        raise InvalidEmailError("Email is missing required content (subject or body)")
    if variant is not None and variant.email_id != email.email_id:
        raise InvalidEmailError(f"Variant {variant.variant_id} does not belong to email {email.email_id}")

    delay = settings.PRIORITY_SEND_DELAY_SECONDS if send_delay is None else send_delay
    email_id = email.email_id
    variant_id = variant.variant_id if variant else None
    summary = {"email_id": email_id, "variant_id": variant_id, "tag": tag, "results": [], "sent": 0, "skipped": 0, "failed": 0}

    job_run = JobRun.start("tag_send", triggered_by)
    db.add(job_run)
    db.commit()

    contacts = contacts_with_tag(db, tag)
    logger.info("Sending email to tag", email_id=email_id, tag=tag, contacts=len(contacts))

    for contact in contacts:
        contact_id = contact.contact_id
        try:
            result = dispatch_to_contact(db, adapter, email, contact, variant)
        except Exception as e:
            db.rollback()
            logger.error("Error sending email to contact", email_id=email_id, contact_id=contact_id, error=str(e))
            record_error(db, "tag_send", e, {"email_id": email_id, "contact_id": contact_id, "variant_id": variant_id})
            result = {"contact_id": contact_id, "status": "failed", "delivery_id": None, "error": str(e)}

        summary["results"].append(result)
        summary[result["status"]] += 1
        if result["status"] != "skipped" and delay:
            time.sleep(delay)

    job_run.complete({k: summary[k] for k in ("sent", "skipped", "failed")})
    db.commit()

    logger.info("Tag send completed", email_id=email_id, tag=tag, sent=summary["sent"], skipped=summary["skipped"], failed=summary["failed"])
    return summary
