"""Contact schemas."""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, EmailStr


class ContactBase(BaseModel):
    """Base contact schema."""
    email: str  # Synced placeholders such as unknown-<id>@placeholder.com are not validated
    name: Optional[str] = None
    tags: List[str] = []
    custom_fields: Dict[str, Any] = {}


class ContactCreate(ContactBase):
    """Schema for creating a contact."""
    email: EmailStr
    ghl_id: Optional[str] = None


class ContactUpdate(BaseModel):
    """Schema for updating a contact."""
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    ghl_id: Optional[str] = None
    tags: Optional[List[str]] = None
    custom_fields: Optional[Dict[str, Any]] = None


class ContactTagsUpdate(BaseModel):
    """Schema for replacing, adding or removing contact tags."""
    add: List[str] = []
    remove: List[str] = []


class ContactResponse(ContactBase):
    """Schema for contact response."""
    contact_id: int
    ghl_id: Optional[str] = None
    last_email_sequence: int = 0
    contact_source: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContactListResponse(BaseModel):
    """Schema for paginated contact list response."""
    items: List[ContactResponse]
    total: int
    page: int
    page_size: int
    pages: int
