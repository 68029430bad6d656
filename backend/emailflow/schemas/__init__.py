"""Pydantic schemas package."""
from emailflow.schemas.user import UserCreate, UserResponse, CurrentUserResponse, Token
from emailflow.schemas.contact import ContactCreate, ContactUpdate, ContactTagsUpdate, ContactResponse, ContactListResponse
from emailflow.schemas.email import (
    EmailCreate, EmailUpdate, EmailResponse, VariantResponse,
    GenerateVariantsRequest, SendEmailRequest, SendEmailResponse
)
from emailflow.schemas.delivery import DeliveryResponse, DeliveryListResponse, DeliveryWebhookEvent
from emailflow.schemas.integration import (
    IntegrationUpsert, IntegrationResponse, IntegrationTestResponse,
    IntegrationReadiness, GHLAuthorizeResponse, GHLConnectionStatus
)
from emailflow.schemas.settings import UserSettingsUpdate, UserSettingsResponse
from emailflow.schemas.job import JobRunResponse
from emailflow.schemas.webhook import WebhookCreate, WebhookUpdate, WebhookResponse, WebhookTestResponse

__all__ = [
    "UserCreate", "UserResponse", "CurrentUserResponse", "Token",
    "ContactCreate", "ContactUpdate", "ContactTagsUpdate", "ContactResponse", "ContactListResponse",
    "EmailCreate", "EmailUpdate", "EmailResponse", "VariantResponse",
    "GenerateVariantsRequest", "SendEmailRequest", "SendEmailResponse",
    "DeliveryResponse", "DeliveryListResponse", "DeliveryWebhookEvent",
    "IntegrationUpsert", "IntegrationResponse", "IntegrationTestResponse",
    "IntegrationReadiness", "GHLAuthorizeResponse", "GHLConnectionStatus",
    "UserSettingsUpdate", "UserSettingsResponse",
    "JobRunResponse",
    "WebhookCreate", "WebhookUpdate", "WebhookResponse", "WebhookTestResponse"
]
