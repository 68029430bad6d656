"""GoHighLevel OAuth - authorization URL, code exchange and token refresh."""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from emailflow.core.config import settings
from emailflow.core.context import AuthContext
from emailflow.core.exceptions import OAuthError
from emailflow.core.security import create_access_token, decode_access_token
from emailflow.db.models.integration import IntegrationConnection
from emailflow.services.error_log import record_error

logger = structlog.get_logger()

STATE_PURPOSE = "ghl_oauth"


class GHLTokenResponse(BaseModel):
    """Token endpoint response; both grants return a new refresh token."""
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str

    def connection_values(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_expires_at": now + timedelta(seconds=self.expires_in),
        }


class GHLOAuthClient:
    """Client for the GHL marketplace OAuth endpoints."""

    def __init__(
        self,
        client_id: str = None,
        client_secret: str = None,
        redirect_uri: str = None,
        auth_url: str = None,
        token_url: str = None,
        scopes: str = None,
        timeout: float = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.client_id = settings.GHL_CLIENT_ID if client_id is None else client_id
        self.client_secret = settings.GHL_CLIENT_SECRET if client_secret is None else client_secret
        self.redirect_uri = redirect_uri or settings.GHL_REDIRECT_URI
        self.auth_url = auth_url or settings.GHL_AUTH_URL
        self.token_url = token_url or settings.GHL_TOKEN_URL
        self.scopes = scopes or settings.GHL_OAUTH_SCOPES
        self.timeout = timeout or settings.GHL_REQUEST_TIMEOUT
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        query = urlencode({
            "response_type": "code",
            "client_id": self.client_id,
            "scope": self.scopes,
            "redirect_uri": self.redirect_uri,
            "state": state,
        })
        return f"{self.auth_url}?{query}"

    def exchange_code(self, code: str) -> GHLTokenResponse:
        return self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        })

    def refresh(self, refresh_token: str) -> GHLTokenResponse:
        return self._token_request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    def _token_request(self, data: Dict[str, str]) -> GHLTokenResponse:
        if not self.configured:
            raise OAuthError("GHL_CLIENT_ID or GHL_CLIENT_SECRET is not configured")

        form = {"client_id": self.client_id, "client_secret": self.client_secret, **data}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    self.token_url,
                    data=form,
                    headers={"Accept": "application/json"}
                )
                response.raise_for_status()
                return GHLTokenResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise OAuthError(f"Token request rejected with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise OAuthError(f"Token request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            raise OAuthError("Malformed token response") from e


def create_oauth_state(auth: AuthContext) -> str:
    """Signed, short-lived state tying the callback to the user who started the flow."""
    return create_access_token(
        {"sub": str(auth.user_id), "purpose": STATE_PURPOSE},
        expires_delta=timedelta(minutes=settings.GHL_OAUTH_STATE_MINUTES)
    )


def read_oauth_state(state: Optional[str]) -> Optional[AuthContext]:
    payload = decode_access_token(state) if state else None
    if not payload or payload.get("purpose") != STATE_PURPOSE:
        return None
    try:
        return AuthContext(user_id=int(payload["sub"]))
    except (KeyError, TypeError, ValueError):
        return None


def refresh_connection(db: Session, connection: IntegrationConnection, client: GHLOAuthClient) -> IntegrationConnection:
    """Replace an expired access token using the stored refresh token.

    Failures are recorded and re-raised as OAuthError.
    """
    try:
        tokens = client.refresh(connection.refresh_token)
    except OAuthError as e:
        logger.warning("GHL token refresh failed", connection_id=connection.connection_id, error=str(e))
        record_error(db, "ghl_token_refresh", e, {"connection_id": connection.connection_id})
        raise

    for field, value in tokens.connection_values().items():
        setattr(connection, field, value)
    db.commit()
    db.refresh(connection)
    logger.info("GHL token refreshed", connection_id=connection.connection_id)
    return connection
