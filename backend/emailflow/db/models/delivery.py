"""Email delivery model - one email's send lifecycle to one contact."""
from enum import Enum as PyEnum
from typing import Optional
from sqlalchemy import Column, Integer, String, DateTime, Enum, Text, ForeignKey, Index
from emailflow.db.base import Base


class DeliveryStatus(str, PyEnum):
    """Delivery status."""
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    CLICKED = "clicked"
    BOUNCED = "bounced"
    COMPLAINED = "complained"
    FAILED = "failed"


# Forward-only progression; a status may only move to an equal or higher rank.
STATUS_RANK = {
    DeliveryStatus.QUEUED: 0,
    DeliveryStatus.SENT: 1,
    DeliveryStatus.DELIVERED: 2,
    DeliveryStatus.OPENED: 3,
    DeliveryStatus.CLICKED: 4,
}

TERMINAL_STATUSES = frozenset({DeliveryStatus.BOUNCED, DeliveryStatus.COMPLAINED, DeliveryStatus.FAILED})

# Terminal failures are only reachable before the provider confirmed delivery.
FAILURE_SOURCES = frozenset({DeliveryStatus.QUEUED, DeliveryStatus.SENT})

COMPLAINT_SOURCES = frozenset({
    DeliveryStatus.SENT, DeliveryStatus.DELIVERED, DeliveryStatus.OPENED, DeliveryStatus.CLICKED,
})

DELIVERED_STATUSES = frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.OPENED, DeliveryStatus.CLICKED})
OPENED_STATUSES = frozenset({DeliveryStatus.OPENED, DeliveryStatus.CLICKED})

TIMESTAMP_FIELDS = {
    DeliveryStatus.SENT: "sent_at",
    DeliveryStatus.DELIVERED: "delivered_at",
    DeliveryStatus.OPENED: "opened_at",
    DeliveryStatus.CLICKED: "clicked_at",
    DeliveryStatus.BOUNCED: "bounced_at",
    DeliveryStatus.COMPLAINED: "complained_at",
}


def can_transition(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """Whether a record in `current` may move to `target`.

    Re-applying the current status is allowed so that duplicate provider
    events are harmless.
    """
    if current in TERMINAL_STATUSES:
        return current == target
    if target in (DeliveryStatus.BOUNCED, DeliveryStatus.FAILED):
        return current in FAILURE_SOURCES
    if target == DeliveryStatus.COMPLAINED:
        return current in COMPLAINT_SOURCES
    return STATUS_RANK[target] >= STATUS_RANK[current]


def make_active_key(email_id: int, contact_id: int) -> str:
    return f"{email_id}:{contact_id}"


class EmailDelivery(Base):
    """Email delivery model - the reconciliation record between sends and webhook events.

    `active_key` holds "<email_id>:<contact_id>" while the delivery is not
    failed and is cleared when it fails. Its unique constraint makes the
    store reject a second live delivery for the same pair.
    """

    __tablename__ = "email_deliveries"

    delivery_id = Column(Integer, primary_key=True, autoincrement=True)
    email_id = Column(Integer, ForeignKey('emails.email_id'), nullable=False)
    contact_id = Column(Integer, ForeignKey('contacts.contact_id'), nullable=False)
    variant_id = Column(Integer, ForeignKey('experiment_variants.variant_id'), nullable=True)
    ghl_message_id = Column(String(255), unique=True, nullable=True)
    active_key = Column(String(64), unique=True, nullable=True)
    status = Column(Enum(DeliveryStatus), default=DeliveryStatus.QUEUED, nullable=False)

    sent_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    opened_at = Column(DateTime, nullable=True)
    clicked_at = Column(DateTime, nullable=True)
    clicked_url = Column(Text, nullable=True)
    bounced_at = Column(DateTime, nullable=True)
    complained_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_delivery_email', 'email_id'),
        Index('idx_delivery_contact', 'contact_id'),
        Index('idx_delivery_variant', 'variant_id'),
        Index('idx_delivery_status', 'status'),
    )

    def mark_failed(self, error_message: Optional[str]) -> None:
        """Move to FAILED and release the (email, contact) pair for a later resend."""
        self.status = DeliveryStatus.FAILED
        self.error_message = error_message
        self.active_key = None

    def __repr__(self) -> str:
        return f"<EmailDelivery(delivery_id={self.delivery_id}, email_id={self.email_id}, contact_id={self.contact_id}, status='{self.status}')>"
