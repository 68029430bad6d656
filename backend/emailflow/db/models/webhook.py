"""User-configured webhooks - inbound endpoints and outbound contact notifications."""
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Enum, ForeignKey, Index
from emailflow.db.base import Base


class WebhookType(str, PyEnum):
    """Direction of a webhook."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class WebhookEvent(str, PyEnum):
    """Events that trigger outgoing webhooks."""
    CONTACT_CREATED = "contact_created"
    CONTACT_UPDATED = "contact_updated"


class IncomingHandler(str, PyEnum):
    """What an incoming webhook does with the payloads it receives."""
    EMAIL_EVENTS = "email_events"  # reconcile deliveries like /webhooks/ghl
    CONTACTS = "contacts"          # upsert a GHL contact


class Webhook(Base):
    """Webhook configuration owned by one user.

    Incoming webhooks are addressed by `provider` and `endpoint_token` and may
    require `secret_key`. Outgoing webhooks fire on `trigger_event` and send
    `payload_template` to `target_url`.
    """

    __tablename__ = "webhooks"

    webhook_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.user_id'), nullable=False, index=True)
    type = Column(Enum(WebhookType), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    provider = Column(String(50), nullable=False, default="custom")

    # Incoming
    endpoint_token = Column(String(64), unique=True, nullable=True)
    secret_key = Column(String(255), nullable=True)
    event_handling = Column(JSON, nullable=False, default=list)

    # Outgoing
    trigger_event = Column(String(50), nullable=True)
    target_url = Column(Text, nullable=True)
    http_method = Column(String(10), nullable=False, default="POST")
    headers = Column(JSON, nullable=False, default=dict)
    payload_template = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_triggered_at = Column(DateTime, nullable=True)
    last_status_code = Column(Integer, nullable=True)

    __table_args__ = (
        Index('idx_webhook_user_type', 'user_id', 'type'),
    )

    def __repr__(self) -> str:
        return f"<Webhook(webhook_id={self.webhook_id}, type='{self.type}', name='{self.name}')>"
