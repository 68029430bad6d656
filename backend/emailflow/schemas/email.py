"""Email and experiment variant schemas."""
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from emailflow.db.models.email import EmailType


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored send windows are naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EmailBase(BaseModel):
    """Base email schema."""
    type: EmailType
    name: Optional[str] = None
    subject: Optional[str] = None
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    key_angle: Optional[str] = None
    description: Optional[str] = None
    base_email_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def as_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class EmailCreate(EmailBase):
    """Schema for creating an email."""
    is_active: bool = True

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EmailUpdate(BaseModel):
    """Schema for updating an email. The type cannot change."""
    name: Optional[str] = None
    subject: Optional[str] = None
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    key_angle: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def as_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _naive_utc(value)


class EmailResponse(EmailBase):
    """Schema for email response."""
    email_id: int
    user_id: Optional[int] = None
    version: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VariantResponse(BaseModel):
    """Schema for experiment variant response."""
    variant_id: int
    email_id: int
    variant_letter: str
    subject: Optional[str] = None
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    key_angle: Optional[str] = None
    ai_parameters: Dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True


class GenerateVariantsRequest(BaseModel):
    """Schema for variant generation. Count is clamped to 1..5 by the generator."""
    count: Optional[int] = None
    params: Dict[str, Any] = {}


class SendEmailRequest(BaseModel):
    """Schema for sending an email to every contact with a tag."""
    tag: str = Field(..., min_length=1)
    variant_id: Optional[int] = None


class SendResult(BaseModel):
    """Per-contact send outcome."""
    contact_id: int
    status: str
    delivery_id: Optional[int] = None
    message_id: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None


class SendEmailResponse(BaseModel):
    """Schema for tag send summary."""
    email_id: int
    variant_id: Optional[int] = None
    tag: str
    sent: int
    skipped: int
    failed: int
    results: List[SendResult]
