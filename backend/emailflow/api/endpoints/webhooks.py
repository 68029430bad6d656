"""Inbound provider webhooks and user-configured webhook management."""
import hmac
import uuid
from typing import List, Optional
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_auth_context, get_webhook_dispatcher
from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.db.models.webhook import Webhook, WebhookType
from emailflow.schemas.webhook import WebhookCreate, WebhookUpdate, WebhookResponse, WebhookTestResponse
from emailflow.services.delivery_events import apply_delivery_event
from emailflow.services.webhooks import SAMPLE_CONTACT, WebhookDispatcher, handle_incoming, verify_incoming_secret

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = structlog.get_logger()

# Columns that may not be cleared through an update
NOT_NULL_FIELDS = {"name", "event_handling", "http_method", "headers", "is_active"}


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Body must be JSON"
        )


def _to_response(webhook: Webhook) -> WebhookResponse:
    endpoint_path = None
    if webhook.type == WebhookType.INCOMING and webhook.endpoint_token:
        endpoint_path = f"{settings.API_V1_PREFIX}/webhooks/incoming/{webhook.provider}/{webhook.endpoint_token}"
    return WebhookResponse(
        webhook_id=webhook.webhook_id,
        type=webhook.type,
        name=webhook.name,
        description=webhook.description,
        provider=webhook.provider,
        endpoint_path=endpoint_path,
        has_secret=bool(webhook.secret_key),
        event_handling=webhook.event_handling or [],
        trigger_event=webhook.trigger_event,
        target_url=webhook.target_url,
        http_method=webhook.http_method,
        headers=webhook.headers or {},
        payload_template=webhook.payload_template,
        is_active=webhook.is_active,
        last_triggered_at=webhook.last_triggered_at,
        last_status_code=webhook.last_status_code,
        created_at=webhook.created_at,
        updated_at=webhook.updated_at
    )


def _get_webhook_or_404(db: Session, auth: AuthContext, webhook_id: int) -> Webhook:
    webhook = db.query(Webhook).filter(
        Webhook.webhook_id == webhook_id,
        Webhook.user_id == auth.user_id
    ).first()
    if not webhook:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Webhook not found"
        )
    return webhook


@router.post("/ghl")
async def ghl_email_event(
    request: Request,
    x_webhook_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Receive a GHL email event and reconcile the matching delivery.

    Answers 200 for every JSON body so the provider does not retry events
    that can never apply; the outcome is returned for diagnostics.
    """
    if settings.GHL_WEBHOOK_SECRET and not hmac.compare_digest(
        x_webhook_secret or "", settings.GHL_WEBHOOK_SECRET
    ):
        logger.warning("Rejected webhook with invalid secret", client=request.client.host if request.client else None)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret"
        )

    payload = await _json_body(request)
    outcome = apply_delivery_event(db, payload)
    return {"status": outcome}


@router.post("/incoming/{provider}/{token}")
async def receive_incoming_webhook(
    provider: str,
    token: str,
    request: Request,
    x_webhook_secret: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Receive a payload on a user-configured incoming webhook."""
    webhook = db.query(Webhook).filter(
        Webhook.type == WebhookType.INCOMING,
        Webhook.provider == provider,
        Webhook.endpoint_token == token
    ).first()
    if not webhook:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Webhook not found"
        )
    if not webhook.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook is inactive"
        )
    if not verify_incoming_secret(webhook, x_webhook_secret or authorization):
        logger.warning("Rejected incoming webhook with invalid secret", webhook_id=webhook.webhook_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret"
        )

    payload = await _json_body(request)
    results = handle_incoming(db, webhook, payload)
    return {"status": "received", "results": results}


@router.get("", response_model=List[WebhookResponse])
async def list_webhooks(
    type_filter: Optional[WebhookType] = Query(None, alias="type"),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """List the current user's webhooks."""
    query = db.query(Webhook).filter(Webhook.user_id == auth.user_id)
    if type_filter:
        query = query.filter(Webhook.type == type_filter)
    return [_to_response(w) for w in query.order_by(Webhook.webhook_id).all()]


@router.post("", response_model=WebhookResponse, status_code=status.HTTP_201_CREATED)
async def create_webhook(
    webhook_in: WebhookCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Create a webhook. Incoming webhooks get a fresh endpoint token."""
    values = webhook_in.model_dump(mode="json", exclude={"type"})
    webhook = Webhook(user_id=auth.user_id, type=webhook_in.type, **values)
    if webhook_in.type == WebhookType.INCOMING:
        webhook.endpoint_token = uuid.uuid4().hex

    db.add(webhook)
    db.commit()
    db.refresh(webhook)
    logger.info("Webhook created", webhook_id=webhook.webhook_id, type=webhook.type.value)
    return _to_response(webhook)


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(
    webhook_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    return _to_response(_get_webhook_or_404(db, auth, webhook_id))


@router.put("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: int,
    webhook_in: WebhookUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Update a webhook; outgoing webhooks must keep a trigger event and target URL."""
    webhook = _get_webhook_or_404(db, auth, webhook_id)

    for field, value in webhook_in.model_dump(mode="json", exclude_unset=True).items():
        if value is None and field in NOT_NULL_FIELDS:
            continue
        setattr(webhook, field, value)

    if webhook.type == WebhookType.OUTGOING and not (webhook.trigger_event and webhook.target_url):
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Outgoing webhooks need trigger_event and target_url"
        )

    db.commit()
    db.refresh(webhook)
    return _to_response(webhook)


@router.delete("/{webhook_id}")
async def delete_webhook(
    webhook_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    webhook = _get_webhook_or_404(db, auth, webhook_id)
    db.delete(webhook)
    db.commit()
    return {"message": "Webhook deleted"}


@router.post("/{webhook_id}/test", response_model=WebhookTestResponse)
def test_webhook(
    webhook_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher)
):
    """Send a sample contact payload to an outgoing webhook."""
    webhook = _get_webhook_or_404(db, auth, webhook_id)
    if webhook.type != WebhookType.OUTGOING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot test an incoming webhook"
        )

    result = dispatcher.deliver(db, webhook, webhook.trigger_event, SAMPLE_CONTACT)
    return WebhookTestResponse(webhook_id=webhook.webhook_id, **result)
