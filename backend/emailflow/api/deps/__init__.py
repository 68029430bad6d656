"""API dependencies package."""
from emailflow.api.deps.auth import get_current_user, get_current_active_user, get_auth_context
from emailflow.api.deps.database import get_db
from emailflow.api.deps.integrations import (
    get_messaging_adapter, get_ai_adapter, get_ghl_oauth_client, get_webhook_dispatcher
)

__all__ = [
    "get_current_user", "get_current_active_user", "get_auth_context",
    "get_db", "get_messaging_adapter", "get_ai_adapter",
    "get_ghl_oauth_client", "get_webhook_dispatcher"
]
