"""Email delivery and webhook event schemas."""
from datetime import datetime
from typing import Optional, List, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, FiniteFloat
from emailflow.db.models.delivery import DeliveryStatus


class DeliveryResponse(BaseModel):
    """Schema for email delivery response."""
    delivery_id: int
    email_id: int
    contact_id: int
    variant_id: Optional[int] = None
    ghl_message_id: Optional[str] = None
    status: DeliveryStatus
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    clicked_url: Optional[str] = None
    bounced_at: Optional[datetime] = None
    complained_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeliveryListResponse(BaseModel):
    """Schema for paginated delivery list response."""
    items: List[DeliveryResponse]
    total: int
    page: int
    page_size: int
    pages: int


class DeliveryWebhookEvent(BaseModel):
    """Email event posted by GHL. Unrecognized fields are ignored."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    type: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1, validation_alias=AliasChoices("messageId", "message_id"))
    timestamp: Optional[Union[datetime, FiniteFloat]] = None
    url: Optional[str] = None
    reason: Optional[str] = None
