"""Contact management endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import String, cast
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_current_active_user, get_auth_context, get_webhook_dispatcher
from emailflow.core.context import AuthContext
from emailflow.db.models.user import User
from emailflow.db.models.contact import Contact
from emailflow.db.models.delivery import EmailDelivery
from emailflow.db.models.webhook import WebhookEvent
from emailflow.schemas.contact import (
    ContactCreate, ContactUpdate, ContactTagsUpdate, ContactResponse, ContactListResponse
)
from emailflow.schemas.delivery import DeliveryResponse
from emailflow.services.webhooks import WebhookDispatcher

router = APIRouter(prefix="/contacts", tags=["Contacts"])


def _get_contact_or_404(db: Session, contact_id: int) -> Contact:
    contact = db.query(Contact).filter(Contact.contact_id == contact_id).first()
    if not contact:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contact not found"
        )
    return contact


def _commit_or_conflict(db: Session):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A contact with this GHL ID already exists"
        )


@router.get("", response_model=ContactListResponse)
async def list_contacts(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    tag: Optional[str] = None,
    source: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """List contacts with filtering."""
    query = db.query(Contact)

    if tag:
        query = query.filter(cast(Contact.tags, String).like(f'%"{tag}"%'))
    if source:
        query = query.filter(Contact.contact_source == source)
    if search:
        query = query.filter(
            (Contact.name.ilike(f"%{search}%")) |
            (Contact.email.ilike(f"%{search}%"))
        )

    total = query.count()
    offset = (page - 1) * page_size
    contacts = query.order_by(Contact.created_at.desc(), Contact.contact_id.desc()).offset(offset).limit(page_size).all()
    pages = (total + page_size - 1) // page_size

    return {
        "items": [ContactResponse.model_validate(c) for c in contacts],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": pages
    }


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Get contact by ID."""
    return ContactResponse.model_validate(_get_contact_or_404(db, contact_id))


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def create_contact(
    contact_in: ContactCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher)
):
    """Create a contact manually and notify contact_created webhooks."""
    contact = Contact(**contact_in.model_dump(), contact_source="manual")
    db.add(contact)
    _commit_or_conflict(db)
    db.refresh(contact)
    dispatcher.fire(db, auth.user_id, WebhookEvent.CONTACT_CREATED, contact)
    return ContactResponse.model_validate(contact)


@router.put("/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    contact_in: ContactUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher)
):
    """Update a contact and notify contact_updated webhooks."""
    contact = _get_contact_or_404(db, contact_id)

    update_data = contact_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(contact, field, value)

    _commit_or_conflict(db)
    db.refresh(contact)
    dispatcher.fire(db, auth.user_id, WebhookEvent.CONTACT_UPDATED, contact)
    return ContactResponse.model_validate(contact)


@router.put("/{contact_id}/tags", response_model=ContactResponse)
def update_contact_tags(
    contact_id: int,
    tags_in: ContactTagsUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher)
):
    """Add and remove tags on a contact and notify contact_updated webhooks."""
    contact = _get_contact_or_404(db, contact_id)

    tags: List[str] = [t for t in (contact.tags or []) if t not in tags_in.remove]
    for tag in tags_in.add:
        if tag not in tags:
            tags.append(tag)
    contact.tags = tags  # reassign so the JSON column is flagged dirty

    db.commit()
    db.refresh(contact)
    dispatcher.fire(db, auth.user_id, WebhookEvent.CONTACT_UPDATED, contact)
    return ContactResponse.model_validate(contact)


@router.get("/{contact_id}/deliveries", response_model=List[DeliveryResponse])
async def list_contact_deliveries(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delivery history of a contact, newest first."""
    _get_contact_or_404(db, contact_id)
    deliveries = db.query(EmailDelivery).filter(
        EmailDelivery.contact_id == contact_id
    ).order_by(EmailDelivery.created_at.desc(), EmailDelivery.delivery_id.desc()).all()
    return [DeliveryResponse.model_validate(d) for d in deliveries]


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delete a contact that has never been emailed."""
    contact = _get_contact_or_404(db, contact_id)

    has_deliveries = db.query(EmailDelivery).filter(EmailDelivery.contact_id == contact_id).first()
    if has_deliveries:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Contact has delivery history and cannot be deleted"
        )

    db.delete(contact)
    db.commit()
    return {"message": "Contact deleted"}
