"""Database models package."""
from emailflow.db.models.user import User
from emailflow.db.models.contact import Contact
from emailflow.db.models.email import Email, EmailType, ExperimentVariant, VARIANT_LETTERS
from emailflow.db.models.delivery import EmailDelivery, DeliveryStatus
from emailflow.db.models.integration import IntegrationConnection, IntegrationProvider
from emailflow.db.models.settings import UserSettings
from emailflow.db.models.error_log import ErrorLog
from emailflow.db.models.job_run import JobRun, JobStatus
from emailflow.db.models.webhook import Webhook, WebhookType, WebhookEvent, IncomingHandler

__all__ = [
    "User",
    "Contact",
    "Email",
    "EmailType",
    "ExperimentVariant",
    "VARIANT_LETTERS",
    "EmailDelivery",
    "DeliveryStatus",
    "IntegrationConnection",
    "IntegrationProvider",
    "UserSettings",
    "ErrorLog",
    "JobRun",
    "JobStatus",
    "Webhook",
    "WebhookType",
    "WebhookEvent",
    "IncomingHandler",
]
