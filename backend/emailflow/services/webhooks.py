"""Webhooks - outgoing delivery with payload templating, and incoming payload handling."""
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy.orm import Session

from emailflow.core.config import settings
from emailflow.db.models.contact import Contact
from emailflow.db.models.webhook import IncomingHandler, Webhook, WebhookEvent, WebhookType
from emailflow.services.delivery_events import INVALID, apply_delivery_event
from emailflow.services.error_log import record_error
from emailflow.services.pipelines.contact_sync import upsert_ghl_contact

logger = structlog.get_logger()

TAGS_PLACEHOLDER = "{contact.tags}"

DEFAULT_TEMPLATE = {
    "event_type": "{event.type}",
    "timestamp": "{event.timestamp}",
    "data": {
        "contact_id": "{contact.id}",
        "ghl_id": "{contact.ghl_id}",
        "email": "{contact.email}",
        "name": "{contact.name}",
        "tags": TAGS_PLACEHOLDER,
    },
}

SAMPLE_CONTACT = {
    "id": 0,
    "ghl_id": "sample-ghl-id",
    "email": "sample.contact@example.com",
    "name": "Sample Contact",
    "tags": ["sample"],
}


def contact_fields(contact: Contact) -> Dict[str, Any]:
    return {
        "id": contact.contact_id,
        "ghl_id": contact.ghl_id,
        "email": contact.email,
        "name": contact.name,
        "tags": list(contact.tags or []),
    }


def _render(node: Any, variables: Dict[str, str], tags: List[str]) -> Any:
    if isinstance(node, dict):
        return {key: _render(value, variables, tags) for key, value in node.items()}
    if isinstance(node, list):
        return [_render(item, variables, tags) for item in node]
    if isinstance(node, str):
        if node == TAGS_PLACEHOLDER:
            return list(tags)
        for placeholder, value in variables.items():
            node = node.replace(placeholder, value)
        return node
    return node


def build_payload(
    template: Optional[str],
    event: str,
    contact: Dict[str, Any],
    now: Optional[datetime] = None
) -> Any:
    """Render a JSON payload template for one contact event.

    String values may contain {event.type}, {event.timestamp}, {contact.id},
    {contact.ghl_id}, {contact.email} and {contact.name}; a value that is
    exactly {contact.tags} becomes the tag list. A missing or unparsable
    template renders the default payload.
    """
    base = DEFAULT_TEMPLATE
    if template:
        try:
            base = json.loads(template)
        except ValueError:
            logger.warning("Invalid webhook payload template, using default", event_type=event)

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    variables = {
        "{event.type}": event,
        "{event.timestamp}": timestamp,
        "{contact.id}": "" if contact.get("id") is None else str(contact["id"]),
        "{contact.ghl_id}": contact.get("ghl_id") or "",
        "{contact.email}": contact.get("email") or "",
        "{contact.name}": contact.get("name") or "",
    }
    return _render(base, variables, contact.get("tags") or [])


class WebhookDispatcher:
    """Sends rendered payloads to outgoing webhook targets."""

    def __init__(self, timeout: float = None, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout or settings.WEBHOOK_REQUEST_TIMEOUT
        self._transport = transport

    def send(self, webhook: Webhook, payload: Any) -> Dict[str, Any]:
        """Deliver `payload`; returns {success, status_code, error} and never raises for HTTP failures.

        GET requests carry no body.
        """
        method = (webhook.http_method or "POST").upper()
        headers = dict(webhook.headers or {})
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = "application/json"
        body = None if method == "GET" else json.dumps(payload, default=str)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, webhook.target_url, headers=headers, content=body)
        except httpx.HTTPError as e:
            return {"success": False, "status_code": None, "error": str(e) or e.__class__.__name__}

        if response.is_success:
            return {"success": True, "status_code": response.status_code, "error": None}
        return {"success": False, "status_code": response.status_code, "error": f"HTTP {response.status_code}"}

    def deliver(self, db: Session, webhook: Webhook, event: str, contact: Dict[str, Any]) -> Dict[str, Any]:
        """Render, send and record the outcome on the webhook row."""
        payload = build_payload(webhook.payload_template, event, contact)
        result = self.send(webhook, payload)

        webhook.last_triggered_at = datetime.utcnow()
        webhook.last_status_code = result["status_code"]
        db.commit()

        if result["success"]:
            logger.info("Webhook delivered", webhook_id=webhook.webhook_id, event_type=event, status_code=result["status_code"])
        else:
            logger.warning("Webhook delivery failed", webhook_id=webhook.webhook_id, event_type=event, error=result["error"])
            record_error(db, "webhook_dispatch", result["error"], {
                "webhook_id": webhook.webhook_id,
                "contact_id": contact.get("id"),
                "target_url": webhook.target_url,
                "http_method": webhook.http_method,
            })
        return result

    def fire(self, db: Session, user_id: int, event: WebhookEvent, contact: Contact) -> List[Dict[str, Any]]:
        """Deliver `event` for `contact` to each of the user's active outgoing webhooks."""
        webhooks = db.query(Webhook).filter(
            Webhook.user_id == user_id,
            Webhook.type == WebhookType.OUTGOING,
            Webhook.is_active == True,
            Webhook.trigger_event == event.value
        ).order_by(Webhook.webhook_id).all()

        if not webhooks:
            return []

        logger.info("Firing webhooks", event_type=event.value, contact_id=contact.contact_id, count=len(webhooks))
        fields = contact_fields(contact)
        return [self.deliver(db, webhook, event.value, fields) for webhook in webhooks]


def verify_incoming_secret(webhook: Webhook, provided: Optional[str]) -> bool:
    """True when the webhook has no secret or `provided` matches it.

    `provided` may be the bare secret or an Authorization value such as
    "Bearer <secret>".
    """
    if not webhook.secret_key:
        return True
    if not provided:
        return False
    candidate = provided.strip()
    scheme, _, token = candidate.partition(" ")
    if token and scheme.lower() == "bearer":
        candidate = token.strip()
    return hmac.compare_digest(candidate.encode("utf-8"), webhook.secret_key.encode("utf-8"))


def handle_incoming(db: Session, webhook: Webhook, payload: Any) -> Dict[str, str]:
    """Apply an incoming payload with each handler the webhook enables.

    Returns one outcome per handler; a webhook without handlers only records
    that it was triggered.
    """
    results = {}
    for handler in webhook.event_handling or []:
        if handler == IncomingHandler.EMAIL_EVENTS.value:
            results[handler] = apply_delivery_event(db, payload) if isinstance(payload, dict) else INVALID
        elif handler == IncomingHandler.CONTACTS.value:
            results[handler] = _upsert_contact(db, payload)

    webhook.last_triggered_at = datetime.utcnow()
    db.commit()
    logger.info("Incoming webhook received", webhook_id=webhook.webhook_id, provider=webhook.provider, results=results)
    return results


def _upsert_contact(db: Session, payload: Any) -> str:
    ghl_contact = payload.get("contact", payload) if isinstance(payload, dict) else None
    if not isinstance(ghl_contact, dict) or not ghl_contact.get("id"):
        return INVALID
    _, created = upsert_ghl_contact(db, ghl_contact)
    db.commit()
    return "created" if created else "updated"
