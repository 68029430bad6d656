"""GoHighLevel OAuth connect flow and connection status."""
from typing import Optional
from urllib.parse import urlencode
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_auth_context, get_ghl_oauth_client
from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.core.exceptions import IntegrationUnavailableError, OAuthError
from emailflow.db.models.integration import IntegrationProvider
from emailflow.schemas.integration import GHLAuthorizeResponse, GHLConnectionStatus
from emailflow.services.error_log import record_error
from emailflow.services.ghl_oauth import GHLOAuthClient, create_oauth_state, read_oauth_state
from emailflow.services.integrations import connect_ghl, require_connection

router = APIRouter(prefix="/integrations/ghl", tags=["Integrations"])
logger = structlog.get_logger()


def _frontend_redirect(**params) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.FRONTEND_URL.rstrip('/')}/settings/integrations?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND
    )


def _require_configured(client: GHLOAuthClient):
    if not client.configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GHL_CLIENT_ID or GHL_CLIENT_SECRET is not configured"
        )


@router.get("/authorize", response_model=GHLAuthorizeResponse)
async def authorize_ghl(
    auth: AuthContext = Depends(get_auth_context),
    client: GHLOAuthClient = Depends(get_ghl_oauth_client)
):
    """Marketplace URL that starts the GHL OAuth flow for the current user."""
    _require_configured(client)
    return GHLAuthorizeResponse(authorization_url=client.authorization_url(create_oauth_state(auth)))


@router.get("/callback")
def ghl_oauth_callback(
    code: Optional[str] = None,
    locationId: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
    client: GHLOAuthClient = Depends(get_ghl_oauth_client)
):
    """OAuth redirect target: store the connection and send the browser back to settings."""
    if not code or not locationId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Authorization code or location ID is missing"
        )
    auth = read_oauth_state(state)
    if auth is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired OAuth state"
        )
    _require_configured(client)

    try:
        connect_ghl(db, auth, client, code, locationId)
    except OAuthError as e:
        db.rollback()
        logger.warning("GHL OAuth callback failed", user_id=auth.user_id, error=str(e))
        record_error(db, "ghl_oauth_callback", e, {"user_id": auth.user_id, "locationId": locationId})
        return _frontend_redirect(error="ghl-auth-failed")

    return _frontend_redirect(success="ghl-connected")


@router.get("/status", response_model=GHLConnectionStatus)
def ghl_connection_status(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context),
    client: GHLOAuthClient = Depends(get_ghl_oauth_client)
):
    """Whether the user's GHL connection is usable, refreshing an expired token first."""
    try:
        connection = require_connection(db, auth, IntegrationProvider.GHL, oauth_client=client)
    except IntegrationUnavailableError as e:
        return GHLConnectionStatus(connected=False, reason=e.reason)
    return GHLConnectionStatus(
        connected=True,
        location_id=connection.config.get("locationId"),
        token_expires_at=connection.token_expires_at
    )
