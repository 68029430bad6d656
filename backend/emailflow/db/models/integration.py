"""Integration connection model - per-user provider credentials."""
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, UniqueConstraint
from emailflow.db.base import Base


class IntegrationProvider(str, PyEnum):
    """Supported integration providers."""
    GHL = "ghl"
    OPENAI = "openai"


class IntegrationConnection(Base):
    """Integration connection - access token and config for one provider of one user."""

    __tablename__ = "integration_connections"

    connection_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.user_id'), nullable=False, index=True)
    provider = Column(String(50), nullable=False)
    name = Column(String(255), nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    config = Column(JSON, nullable=False, default=dict)  # e.g. {"locationId": "..."} for GHL
    last_tested_at = Column(DateTime, nullable=True)
    last_test_success = Column(Boolean, nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'provider', name='uq_connection_user_provider'),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if not self.token_expires_at:
            return False
        return self.token_expires_at < (now or datetime.utcnow())

    def __repr__(self) -> str:
        return f"<IntegrationConnection(connection_id={self.connection_id}, user_id={self.user_id}, provider='{self.provider}')>"
