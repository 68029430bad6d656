"""Provider adapter dependencies, resolved from the user's integration connections."""
from fastapi import Depends
from sqlalchemy.orm import Session
from emailflow.api.deps.auth import get_auth_context
from emailflow.api.deps.database import get_db
from emailflow.core.context import AuthContext
from emailflow.db.models.integration import IntegrationProvider
from emailflow.services.adapters.base import AIAdapter, MessagingAdapter
from emailflow.services.adapters.ai.openai_adapter import OpenAIAdapter
from emailflow.services.adapters.messaging.ghl import GHLAdapter
from emailflow.services.ghl_oauth import GHLOAuthClient
from emailflow.services.integrations import require_connection
from emailflow.services.webhooks import WebhookDispatcher


def get_ghl_oauth_client() -> GHLOAuthClient:
    """OAuth client built from the GHL_* settings."""
    return GHLOAuthClient()


def get_webhook_dispatcher() -> WebhookDispatcher:
    """Dispatcher for the user's outgoing webhooks."""
    return WebhookDispatcher()


def get_messaging_adapter(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    oauth_client: GHLOAuthClient = Depends(get_ghl_oauth_client)
) -> MessagingAdapter:
    """GHL adapter for the current user; raises IntegrationUnavailableError without a usable connection.

    An expired token is refreshed here, so this runs in the threadpool.
    """
    connection = require_connection(db, auth, IntegrationProvider.GHL, oauth_client=oauth_client)
    return GHLAdapter.from_connection(connection)


async def get_ai_adapter(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
) -> AIAdapter:
    """OpenAI adapter for the current user."""
    connection = require_connection(db, auth, IntegrationProvider.OPENAI)
    return OpenAIAdapter.from_connection(connection)
