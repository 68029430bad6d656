"""Analytics endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_current_active_user
from emailflow.db.models.user import User
from emailflow.db.models.email import Email, EmailType
from emailflow.services import analytics

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def _get_email_or_404(db: Session, email_id: int) -> Email:
    email = db.query(Email).filter(Email.email_id == email_id).first()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Email not found"
        )
    return email


@router.get("/summary")
async def get_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Dashboard summary across all emails and deliveries."""
    return analytics.summary(db)


@router.get("/statistics")
async def get_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delivery statistics per email type."""
    return analytics.type_statistics(db)


@router.get("/emails/{email_id}")
async def get_email_analytics(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Delivery statistics for one email."""
    return analytics.email_analytics(db, _get_email_or_404(db, email_id))


@router.get("/experiments/{email_id}")
async def get_experiment_analytics(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Per-variant statistics and winner of an experiment."""
    email = _get_email_or_404(db, email_id)
    if email.type != EmailType.EXPERIMENT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is not an experiment"
        )

    result = analytics.experiment_analytics(db, email)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No variants found for this experiment"
        )
    return result
