"""Integration connection endpoints."""
from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from emailflow.api.deps import get_db, get_auth_context
from emailflow.core.context import AuthContext
from emailflow.db.models.integration import IntegrationConnection, IntegrationProvider
from emailflow.schemas.integration import IntegrationUpsert, IntegrationResponse, IntegrationTestResponse
from emailflow.services.adapters.ai.openai_adapter import OpenAIAdapter
from emailflow.services.adapters.messaging.ghl import GHLAdapter
from emailflow.services.integrations import get_connection, upsert_connection

router = APIRouter(prefix="/integrations", tags=["Integrations"])


def _to_response(connection: IntegrationConnection) -> IntegrationResponse:
    return IntegrationResponse(
        connection_id=connection.connection_id,
        provider=connection.provider,
        name=connection.name,
        is_active=connection.is_active,
        has_access_token=bool(connection.access_token),
        token_expires_at=connection.token_expires_at,
        config=connection.config or {},
        last_tested_at=connection.last_tested_at,
        last_test_success=connection.last_test_success,
        created_at=connection.created_at,
        updated_at=connection.updated_at
    )


def _get_connection_or_404(db: Session, auth: AuthContext, provider: IntegrationProvider) -> IntegrationConnection:
    connection = get_connection(db, auth.user_id, provider.value)
    if not connection:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No {provider.value} connection configured"
        )
    return connection


@router.get("", response_model=List[IntegrationResponse])
async def list_integrations(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """List the current user's provider connections."""
    connections = db.query(IntegrationConnection).filter(
        IntegrationConnection.user_id == auth.user_id
    ).order_by(IntegrationConnection.provider).all()
    return [_to_response(c) for c in connections]


@router.put("/{provider}", response_model=IntegrationResponse)
async def save_integration(
    provider: IntegrationProvider,
    integration_in: IntegrationUpsert,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Create or update the connection for a provider."""
    values = integration_in.model_dump(exclude_unset=True)
    if "config" in values and values["config"] is None:
        values["config"] = {}
    if "is_active" in values and values["is_active"] is None:
        values.pop("is_active")

    connection = upsert_connection(db, auth, provider, values)
    return _to_response(connection)


@router.delete("/{provider}")
async def delete_integration(
    provider: IntegrationProvider,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Remove the connection for a provider."""
    connection = _get_connection_or_404(db, auth, provider)
    db.delete(connection)
    db.commit()
    return {"message": f"{provider.value} connection removed"}


@router.post("/{provider}/test", response_model=IntegrationTestResponse)
def test_integration(
    provider: IntegrationProvider,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_auth_context)
):
    """Call the provider with the stored credentials and record the result."""
    connection = _get_connection_or_404(db, auth, provider)

    if provider == IntegrationProvider.GHL:
        adapter = GHLAdapter.from_connection(connection)
    else:
        adapter = OpenAIAdapter.from_connection(connection)

    success = bool(connection.access_token) and adapter.test_connection()
    connection.last_tested_at = datetime.utcnow()
    connection.last_test_success = success
    db.commit()

    return IntegrationTestResponse(provider=provider.value, success=success, tested_at=connection.last_tested_at)
