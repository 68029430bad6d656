"""API router configuration."""
from fastapi import APIRouter
from emailflow.api.endpoints import (
    auth, contacts, emails, deliveries, analytics,
    ghl_oauth, integrations, settings, webhooks, jobs
)

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router)
api_router.include_router(contacts.router)
api_router.include_router(emails.router)
api_router.include_router(deliveries.router)
api_router.include_router(analytics.router)
api_router.include_router(ghl_oauth.router)
api_router.include_router(integrations.router)
api_router.include_router(settings.router)
api_router.include_router(webhooks.router)
api_router.include_router(jobs.router)
