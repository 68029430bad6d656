"""Integration connection lookup, capability checks and GHL connect/refresh."""
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from emailflow.core.context import AuthContext
from emailflow.core.exceptions import IntegrationUnavailableError, OAuthError
from emailflow.db.models.integration import IntegrationConnection, IntegrationProvider
from emailflow.services.ghl_oauth import GHLOAuthClient, refresh_connection

logger = structlog.get_logger()


def get_connection(db: Session, user_id: int, provider: str) -> Optional[IntegrationConnection]:
    return db.query(IntegrationConnection).filter(
        IntegrationConnection.user_id == user_id,
        IntegrationConnection.provider == provider
    ).first()


def require_connection(
    db: Session,
    auth: AuthContext,
    provider: IntegrationProvider,
    now: Optional[datetime] = None,
    oauth_client: Optional[GHLOAuthClient] = None
) -> IntegrationConnection:
    """Return the user's usable connection for `provider` or raise.

    A usable connection is active, has an access token, has not expired and,
    for GHL, carries a locationId in its config. An expired GHL token is
    refreshed first when `oauth_client` is configured and a refresh token is
    stored.
    """
    connection = get_connection(db, auth.user_id, provider.value)

    if not connection or not connection.is_active:
        raise IntegrationUnavailableError(provider.value, "no active connection")
    if not connection.access_token:
        raise IntegrationUnavailableError(provider.value, "missing access token")
    if connection.is_expired(now):
        if not _can_refresh(provider, connection, oauth_client):
            raise IntegrationUnavailableError(provider.value, "token expired")
        try:
            connection = refresh_connection(db, connection, oauth_client)
        except OAuthError:
            raise IntegrationUnavailableError(provider.value, "token expired and refresh failed")
    if provider == IntegrationProvider.GHL and not (connection.config or {}).get("locationId"):
        raise IntegrationUnavailableError(provider.value, "missing locationId")

    return connection


def _can_refresh(
    provider: IntegrationProvider,
    connection: IntegrationConnection,
    oauth_client: Optional[GHLOAuthClient]
) -> bool:
    return (
        provider == IntegrationProvider.GHL
        and bool(connection.refresh_token)
        and oauth_client is not None
        and oauth_client.configured
    )


def integration_status(
    db: Session,
    auth: AuthContext,
    oauth_client: Optional[GHLOAuthClient] = None
) -> Dict[str, Dict[str, Any]]:
    """Readiness of every provider for the user: {"ghl": {"connected": bool, "reason": str|None}, ...}."""
    status = {}
    for provider in IntegrationProvider:
        try:
            require_connection(db, auth, provider, oauth_client=oauth_client)
        except IntegrationUnavailableError as e:
            status[provider.value] = {"connected": False, "reason": e.reason}
        else:
            status[provider.value] = {"connected": True, "reason": None}
    return status


def upsert_connection(
    db: Session,
    auth: AuthContext,
    provider: IntegrationProvider,
    values: Dict[str, Any]
) -> IntegrationConnection:
    """Create or update the user's connection for `provider`."""
    connection = get_connection(db, auth.user_id, provider.value)
    if connection is None:
        connection = IntegrationConnection(user_id=auth.user_id, provider=provider.value)
        db.add(connection)

    for field, value in values.items():
        setattr(connection, field, value)

    db.commit()
    db.refresh(connection)
    logger.info("Integration connection saved", user_id=auth.user_id, provider=provider.value)
    return connection


def connect_ghl(
    db: Session,
    auth: AuthContext,
    client: GHLOAuthClient,
    code: str,
    location_id: str
) -> IntegrationConnection:
    """Exchange an OAuth authorization code and store the user's GHL connection."""
    tokens = client.exchange_code(code)
    existing = get_connection(db, auth.user_id, IntegrationProvider.GHL.value)
    config = dict(existing.config or {}) if existing else {}
    config["locationId"] = location_id

    values = tokens.connection_values()
    values.update({"is_active": True, "config": config})
    connection = upsert_connection(db, auth, IntegrationProvider.GHL, values)
    logger.info("GHL connected", user_id=auth.user_id, location_id=location_id)
    return connection
