"""Integration connection schemas."""
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel


class IntegrationUpsert(BaseModel):
    """Schema for creating or updating a provider connection."""
    name: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    config: Optional[Dict[str, Any]] = None


class IntegrationResponse(BaseModel):
    """Schema for connection response. Tokens are never returned."""
    connection_id: int
    provider: str
    name: Optional[str] = None
    is_active: bool
    has_access_token: bool
    token_expires_at: Optional[datetime] = None
    config: Dict[str, Any] = {}
    last_tested_at: Optional[datetime] = None
    last_test_success: Optional[bool] = None
    created_at: datetime
    updated_at: datetime


class IntegrationTestResponse(BaseModel):
    """Schema for connection test result."""
    provider: str
    success: bool
    tested_at: datetime


class IntegrationReadiness(BaseModel):
    """Whether a provider connection is usable right now."""
    connected: bool
    reason: Optional[str] = None


class GHLAuthorizeResponse(BaseModel):
    """Schema for the GHL OAuth start URL."""
    authorization_url: str


class GHLConnectionStatus(IntegrationReadiness):
    """Schema for GHL connection status."""
    location_id: Optional[str] = None
    token_expires_at: Optional[datetime] = None
