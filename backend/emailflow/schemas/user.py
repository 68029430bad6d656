"""User schemas."""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, EmailStr, Field
from emailflow.schemas.integration import IntegrationReadiness


class UserBase(BaseModel):
    """Base user schema."""
    email: EmailStr
    full_name: Optional[str] = None
    is_active: bool = True


class UserCreate(UserBase):
    """Schema for creating a user."""
    password: str = Field(..., min_length=8)


class UserResponse(UserBase):
    """Schema for user response."""
    user_id: int
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class CurrentUserResponse(UserResponse):
    """Schema for the signed-in user with provider readiness, keyed by provider."""
    integrations: Dict[str, IntegrationReadiness]
