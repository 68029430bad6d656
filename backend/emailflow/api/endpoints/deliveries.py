"""Email delivery endpoints."""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_current_active_user
from emailflow.db.models.user import User
from emailflow.db.models.delivery import DeliveryStatus, EmailDelivery
from emailflow.schemas.delivery import DeliveryResponse, DeliveryListResponse

router = APIRouter(prefix="/deliveries", tags=["Deliveries"])


@router.get("", response_model=DeliveryListResponse)
async def list_deliveries(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    email_id: Optional[int] = None,
    contact_id: Optional[int] = None,
    variant_id: Optional[int] = None,
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """List deliveries with filtering, newest first."""
    query = db.query(EmailDelivery)

    if email_id:
        query = query.filter(EmailDelivery.email_id == email_id)
    if contact_id:
        query = query.filter(EmailDelivery.contact_id == contact_id)
    if variant_id:
        query = query.filter(EmailDelivery.variant_id == variant_id)
    if status_filter:
        query = query.filter(EmailDelivery.status == status_filter)

    total = query.count()
    offset = (page - 1) * page_size
    deliveries = query.order_by(EmailDelivery.created_at.desc(), EmailDelivery.delivery_id.desc()).offset(offset).limit(page_size).all()
    pages = (total + page_size - 1) // page_size

    return {
        "items": [DeliveryResponse.model_validate(d) for d in deliveries],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": pages
    }


@router.get("/{delivery_id}", response_model=DeliveryResponse)
async def get_delivery(
    delivery_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Get delivery by ID."""
    delivery = db.query(EmailDelivery).filter(EmailDelivery.delivery_id == delivery_id).first()
    if not delivery:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Delivery not found"
        )
    return DeliveryResponse.model_validate(delivery)
