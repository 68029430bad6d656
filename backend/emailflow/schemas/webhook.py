"""Webhook configuration schemas."""
from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, field_validator, model_validator
from emailflow.db.models.webhook import WebhookType, WebhookEvent, IncomingHandler

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}


def _method(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.upper()
    if value not in HTTP_METHODS:
        raise ValueError(f"http_method must be one of {sorted(HTTP_METHODS)}")
    return value


def _url(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.startswith(("http://", "https://")):
        raise ValueError("target_url must be an http(s) URL")
    return value


class WebhookCreate(BaseModel):
    """Schema for creating a webhook."""
    type: WebhookType
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    provider: str = Field("custom", pattern=r"^[a-z0-9_-]+$", max_length=50)
    secret_key: Optional[str] = None
    event_handling: List[IncomingHandler] = []
    trigger_event: Optional[WebhookEvent] = None
    target_url: Optional[str] = None
    http_method: str = "POST"
    headers: Dict[str, str] = {}
    payload_template: Optional[str] = None
    is_active: bool = True

    @field_validator("http_method")
    @classmethod
    def check_method(cls, value: Optional[str]) -> Optional[str]:
        return _method(value)

    @field_validator("target_url")
    @classmethod
    def check_url(cls, value: Optional[str]) -> Optional[str]:
        return _url(value)

    @model_validator(mode="after")
    def check_outgoing(self):
        if self.type == WebhookType.OUTGOING and not (self.trigger_event and self.target_url):
            raise ValueError("outgoing webhooks need trigger_event and target_url")
        return self


class WebhookUpdate(BaseModel):
    """Schema for updating a webhook. The type and endpoint token cannot change."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    secret_key: Optional[str] = None
    event_handling: Optional[List[IncomingHandler]] = None
    trigger_event: Optional[WebhookEvent] = None
    target_url: Optional[str] = None
    http_method: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    payload_template: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("http_method")
    @classmethod
    def check_method(cls, value: Optional[str]) -> Optional[str]:
        return _method(value)

    @field_validator("target_url")
    @classmethod
    def check_url(cls, value: Optional[str]) -> Optional[str]:
        return _url(value)


class WebhookResponse(BaseModel):
    """Schema for webhook response. The secret is never returned."""
    webhook_id: int
    type: WebhookType
    name: str
    description: Optional[str] = None
    provider: str
    endpoint_path: Optional[str] = None
    has_secret: bool
    event_handling: List[str] = []
    trigger_event: Optional[str] = None
    target_url: Optional[str] = None
    http_method: str
    headers: Dict[str, str] = {}
    payload_template: Optional[str] = None
    is_active: bool
    last_triggered_at: Optional[datetime] = None
    last_status_code: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class WebhookTestResponse(BaseModel):
    """Schema for an outgoing webhook test send."""
    webhook_id: int
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
