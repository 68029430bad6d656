"""Webhook ingestion - reconciles provider email events with delivery records."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

import structlog
from pydantic import ValidationError
from sqlalchemy.orm import Session

from emailflow.db.models.delivery import (
    DeliveryStatus,
    EmailDelivery,
    TIMESTAMP_FIELDS,
    can_transition,
)
from emailflow.schemas.delivery import DeliveryWebhookEvent

logger = structlog.get_logger()

# Outcomes returned by apply_delivery_event
APPLIED = "applied"
DUPLICATE = "duplicate"
REGRESSION = "regression"
UNKNOWN_MESSAGE = "unknown_message"
UNKNOWN_TYPE = "unknown_type"
INVALID = "invalid"

EVENT_STATUSES = {
    "delivered": DeliveryStatus.DELIVERED,
    "opened": DeliveryStatus.OPENED,
    "clicked": DeliveryStatus.CLICKED,
    "bounced": DeliveryStatus.BOUNCED,
    "complained": DeliveryStatus.COMPLAINED,
}

DEFAULT_BOUNCE_REASON = "Email bounced"


def normalize_event_type(event_type: str) -> Optional[DeliveryStatus]:
    """Map "delivered", "email_delivered", "email.delivered" (any case) to a status."""
    name = event_type.strip().lower()
    for prefix in ("email_", "email."):
        if name.startswith(prefix):
            name = name[len(prefix):]
            break
    return EVENT_STATUSES.get(name)


def _event_time(value: Union[datetime, float, None]) -> datetime:
    """Provider timestamp as naive UTC, or now when absent."""
    if value is None:
        return datetime.utcnow()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    seconds = float(value)
    if seconds > 1e11:  # epoch milliseconds
        seconds /= 1000.0
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)


def apply_delivery_event(db: Session, payload: Dict[str, Any]) -> str:
    """Apply one provider email event to its delivery record.

    Never raises for payload problems: invalid payloads, unknown event types
    and unknown message ids are logged and reported through the returned
    outcome. Events that would move a record backwards, or out of a terminal
    state, leave it untouched.
    """
    try:
        event = DeliveryWebhookEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning("Invalid webhook payload", errors=e.errors(include_url=False, include_input=False))
        return INVALID

    target = normalize_event_type(event.type)
    if target is None:
        logger.info("Ignoring unknown webhook event type", event_type=event.type, message_id=event.message_id)
        return UNKNOWN_TYPE

    try:
        event_time = _event_time(event.timestamp)
    except (OverflowError, OSError, ValueError):
        logger.warning("Webhook timestamp out of range", timestamp=str(event.timestamp), message_id=event.message_id)
        return INVALID

    delivery = db.query(EmailDelivery).filter(
        EmailDelivery.ghl_message_id == event.message_id
    ).with_for_update().first()

    if delivery is None:
        db.rollback()
        logger.warning("No delivery found for message", message_id=event.message_id, event_type=event.type)
        return UNKNOWN_MESSAGE

    current = delivery.status
    field = TIMESTAMP_FIELDS[target]

    if current == target:
        if getattr(delivery, field) is None:
            setattr(delivery, field, event_time)
            db.commit()
        else:
            db.rollback()
        logger.info("Duplicate webhook event", delivery_id=delivery.delivery_id, status=target.value)
        return DUPLICATE

    if not can_transition(current, target):
        db.rollback()
        logger.info(
            "Ignoring out-of-order webhook event",
            delivery_id=delivery.delivery_id,
            current_status=current.value,
            event_status=target.value
        )
        return REGRESSION

    delivery.status = target
    setattr(delivery, field, event_time)
    if target == DeliveryStatus.CLICKED and event.url:
        delivery.clicked_url = event.url
    elif target == DeliveryStatus.BOUNCED:
        delivery.error_message = event.reason or DEFAULT_BOUNCE_REASON
    elif target == DeliveryStatus.COMPLAINED and event.reason:
        delivery.error_message = event.reason
    db.commit()

    logger.info(
        "Delivery status updated",
        delivery_id=delivery.delivery_id,
        message_id=event.message_id,
        previous_status=current.value,
        status=target.value
    )
    return APPLIED
