"""Email, experiment variant and send endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_auth_context, get_messaging_adapter, get_ai_adapter
from emailflow.core.context import AuthContext
from emailflow.db.models.email import Email, EmailType, ExperimentVariant
from emailflow.schemas.email import (
    EmailCreate, EmailUpdate, EmailResponse, VariantResponse,
    GenerateVariantsRequest, SendEmailRequest, SendEmailResponse
)
from emailflow.services.adapters.base import AIAdapter, MessagingAdapter
from emailflow.services.sending import send_email_to_tag
from emailflow.services.variant_generator import generate_variants

router = APIRouter(prefix="/emails", tags=["Emails"])

# Editing any of these bumps the email version
CONTENT_FIELDS = {"subject", "body_html", "body_text", "key_angle"}


def _get_email_or_404(db: Session, email_id: int) -> Email:
    email = db.query(Email).filter(Email.email_id == email_id).first()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Email not found"
        )
    return email


@router.get("", response_model=List[EmailResponse])
async def list_emails(
    type: Optional[EmailType] = None,
    active_only: bool = False,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """List emails, newest first."""
    query = db.query(Email)
    if type:
        query = query.filter(Email.type == type)
    if active_only:
        query = query.filter(Email.is_active == True)
    emails = query.order_by(Email.created_at.desc(), Email.email_id.desc()).all()
    return [EmailResponse.model_validate(e) for e in emails]


@router.get("/{email_id}", response_model=EmailResponse)
async def get_email(
    email_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Get email by ID."""
    return EmailResponse.model_validate(_get_email_or_404(db, email_id))


@router.post("", response_model=EmailResponse, status_code=status.HTTP_201_CREATED)
async def create_email(
    email_in: EmailCreate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Create an email."""
    if email_in.base_email_id is not None:
        if email_in.type != EmailType.EXPERIMENT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only experiment emails can reference a base email"
            )
        _get_email_or_404(db, email_in.base_email_id)

    email = Email(**email_in.model_dump(), user_id=auth.user_id)
    db.add(email)
    db.commit()
    db.refresh(email)
    return EmailResponse.model_validate(email)


@router.put("/{email_id}", response_model=EmailResponse)
async def update_email(
    email_id: int,
    email_in: EmailUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Update an email."""
    email = _get_email_or_404(db, email_id)

    update_data = email_in.model_dump(exclude_unset=True)
    start = update_data.get("start_date", email.start_date)
    end = update_data.get("end_date", email.end_date)
    if start and end and end < start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date"
        )

    content_changed = any(
        field in CONTENT_FIELDS and getattr(email, field) != value
        for field, value in update_data.items()
    )
    for field, value in update_data.items():
        setattr(email, field, value)
    if content_changed:
        email.version = (email.version or 1) + 1

    db.commit()
    db.refresh(email)
    return EmailResponse.model_validate(email)


@router.delete("/{email_id}", response_model=EmailResponse)
async def deactivate_email(
    email_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Deactivate an email. Delivery history is kept."""
    email = _get_email_or_404(db, email_id)
    email.is_active = False
    db.commit()
    db.refresh(email)
    return EmailResponse.model_validate(email)


@router.get("/{email_id}/variants", response_model=List[VariantResponse])
async def list_variants(
    email_id: int,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """List experiment variants of an email by letter."""
    _get_email_or_404(db, email_id)
    variants = db.query(ExperimentVariant).filter(
        ExperimentVariant.email_id == email_id
    ).order_by(ExperimentVariant.variant_letter).all()
    return [VariantResponse.model_validate(v) for v in variants]


@router.post("/{email_id}/generate-variants", response_model=List[VariantResponse], status_code=status.HTTP_201_CREATED)
def generate_email_variants(
    email_id: int,
    request: GenerateVariantsRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    adapter: AIAdapter = Depends(get_ai_adapter)
):
    """Generate experiment variants with the user's AI provider."""
    email = _get_email_or_404(db, email_id)
    variants = generate_variants(db, auth, email, count=request.count, params=request.params, adapter=adapter)
    return [VariantResponse.model_validate(v) for v in variants]


@router.post("/{email_id}/send", response_model=SendEmailResponse)
def send_email(
    email_id: int,
    request: SendEmailRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    adapter: MessagingAdapter = Depends(get_messaging_adapter)
):
    """Send an email, or one of its variants, to every contact with a tag."""
    email = _get_email_or_404(db, email_id)

    variant = None
    if request.variant_id is not None:
        variant = db.query(ExperimentVariant).filter(
            ExperimentVariant.variant_id == request.variant_id,
            ExperimentVariant.email_id == email_id
        ).first()
        if not variant:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Variant not found for this email"
            )

    return send_email_to_tag(db, adapter, email, request.tag, variant=variant, triggered_by=auth.actor)
