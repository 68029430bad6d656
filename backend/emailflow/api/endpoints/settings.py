"""User settings endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_auth_context
from emailflow.core.context import AuthContext
from emailflow.db.models.settings import UserSettings
from emailflow.schemas.settings import UserSettingsUpdate, UserSettingsResponse

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=UserSettingsResponse)
async def get_user_settings(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Get the current user's avatar and ICP settings."""
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == auth.user_id).first()
    if not user_settings:
        return UserSettingsResponse(user_id=auth.user_id)
    return UserSettingsResponse.model_validate(user_settings)


@router.put("", response_model=UserSettingsResponse)
async def update_user_settings(
    settings_in: UserSettingsUpdate,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Update the current user's settings, creating them on first save."""
    user_settings = db.query(UserSettings).filter(UserSettings.user_id == auth.user_id).first()
    if not user_settings:
        user_settings = UserSettings(user_id=auth.user_id)
        db.add(user_settings)

    for field, value in settings_in.model_dump(exclude_unset=True).items():
        setattr(user_settings, field, value)

    db.commit()
    db.refresh(user_settings)
    return UserSettingsResponse.model_validate(user_settings)
