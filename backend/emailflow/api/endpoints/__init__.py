"""API endpoints package."""
from emailflow.api.endpoints import auth, contacts, emails, deliveries, analytics, integrations, settings, webhooks, jobs

__all__ = [
    "auth", "contacts", "emails", "deliveries", "analytics",
    "integrations", "settings", "webhooks", "jobs"
]
