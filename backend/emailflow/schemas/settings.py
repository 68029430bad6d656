"""User settings schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class UserSettingsUpdate(BaseModel):
    """Schema for updating user settings. Omitted fields are left unchanged."""
    avatar_name: Optional[str] = None
    avatar_role: Optional[str] = None
    avatar_company_name: Optional[str] = None
    avatar_website: Optional[str] = None
    avatar_bio: Optional[str] = None
    email_signature_html: Optional[str] = None
    icp_description: Optional[str] = None
    icp_pain_points: Optional[str] = None
    icp_fears: Optional[str] = None
    icp_insecurities: Optional[str] = None
    icp_transformations: Optional[str] = None
    icp_key_objectives: Optional[str] = None


class UserSettingsResponse(UserSettingsUpdate):
    """Schema for user settings response."""
    user_id: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
