"""Pytest configuration and fixtures."""
import os
from urllib.parse import parse_qsl
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test configuration BEFORE importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["DEBUG"] = "False"
os.environ["SCHEDULER_ENABLED"] = "False"
os.environ["PRIORITY_SEND_DELAY_SECONDS"] = "0"
os.environ["CONTACT_SYNC_PAGE_DELAY_SECONDS"] = "0"
os.environ["GHL_WEBHOOK_SECRET"] = ""
os.environ["GHL_CLIENT_ID"] = ""
os.environ["GHL_CLIENT_SECRET"] = ""

from emailflow.main import app
from emailflow.api.deps.database import get_db
from emailflow.api.deps.integrations import (
    get_messaging_adapter, get_ai_adapter, get_ghl_oauth_client, get_webhook_dispatcher
)
from emailflow.db.base import Base
from emailflow.core.context import AuthContext
from emailflow.core.security import get_password_hash, create_access_token
from emailflow.db.models.user import User
from emailflow.db.models.contact import Contact
from emailflow.db.models.email import Email, EmailType, ExperimentVariant
from emailflow.db.models.delivery import EmailDelivery, DeliveryStatus, make_active_key
from emailflow.db.models.integration import IntegrationConnection, IntegrationProvider
from emailflow.services.adapters.messaging.mock import MockMessagingAdapter
from emailflow.services.adapters.ai.mock import MockAIAdapter
from emailflow.services.ghl_oauth import GHLOAuthClient
from emailflow.services.webhooks import WebhookDispatcher

# Use SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def messaging_adapter():
    """Mock GHL adapter shared by the app and the test."""
    return MockMessagingAdapter()


@pytest.fixture
def ai_adapter():
    """Mock AI adapter shared by the app and the test."""
    return MockAIAdapter()


class TokenEndpoint:
    """Fake GHL OAuth token endpoint recording form posts."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.body = {
            "access_token": "new-access",
            "refresh_token": "new-refresh",
            "expires_in": 86399,
            "token_type": "Bearer",
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(dict(parse_qsl(request.content.decode())))
        return httpx.Response(self.status_code, json=self.body)


class WebhookTarget:
    """Fake outgoing webhook receiver."""

    def __init__(self):
        self.requests = []
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})


@pytest.fixture
def token_endpoint():
    return TokenEndpoint()


@pytest.fixture
def ghl_oauth_client(token_endpoint):
    """Configured OAuth client talking to the fake token endpoint."""
    return GHLOAuthClient(
        client_id="client-1",
        client_secret="client-secret",
        transport=httpx.MockTransport(token_endpoint)
    )


@pytest.fixture
def webhook_target():
    return WebhookTarget()


@pytest.fixture
def webhook_dispatcher(webhook_target):
    return WebhookDispatcher(transport=httpx.MockTransport(webhook_target))


@pytest.fixture(scope="function")
def client(db_session, messaging_adapter, ai_adapter, ghl_oauth_client, webhook_dispatcher):
    """Create a test client with database and provider overrides."""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_messaging_adapter] = lambda: messaging_adapter
    app.dependency_overrides[get_ai_adapter] = lambda: ai_adapter
    app.dependency_overrides[get_ghl_oauth_client] = lambda: ghl_oauth_client
    app.dependency_overrides[get_webhook_dispatcher] = lambda: webhook_dispatcher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user(db_session):
    """Create an active dashboard user."""
    user = User(
        email="owner@test.com",
        password_hash=get_password_hash("testpassword"),
        full_name="Owner User",
        is_active=True
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth(user):
    """Auth context of the test user."""
    return AuthContext(user_id=user.user_id, email=user.email)


@pytest.fixture
def auth_headers(user):
    """Create authorization headers for the test user."""
    token = create_access_token(data={"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def ghl_connection(db_session, user):
    """Active GHL connection with a location."""
    connection = IntegrationConnection(
        user_id=user.user_id,
        provider=IntegrationProvider.GHL.value,
        name="GHL",
        access_token="ghl-token",
        is_active=True,
        config={"locationId": "loc-1"}
    )
    db_session.add(connection)
    db_session.commit()
    db_session.refresh(connection)
    return connection


@pytest.fixture
def openai_connection(db_session, user):
    """Active OpenAI connection."""
    connection = IntegrationConnection(
        user_id=user.user_id,
        provider=IntegrationProvider.OPENAI.value,
        name="OpenAI",
        access_token="sk-test",
        is_active=True,
        config={}
    )
    db_session.add(connection)
    db_session.commit()
    db_session.refresh(connection)
    return connection


@pytest.fixture
def make_contact(db_session):
    """Factory for contacts."""
    counter = {"n": 0}

    def _make(tags=None, ghl_id="auto", email=None, name=None, custom_fields=None):
        counter["n"] += 1
        n = counter["n"]
        contact = Contact(
            ghl_id=f"ghl-{n}" if ghl_id == "auto" else ghl_id,
            email=email or f"contact{n}@example.com",
            name=name or f"Contact {n}",
            tags=tags or [],
            custom_fields=custom_fields or {},
            contact_source="manual"
        )
        db_session.add(contact)
        db_session.commit()
        db_session.refresh(contact)
        return contact

    return _make


@pytest.fixture
def make_email(db_session):
    """Factory for emails."""

    def _make(type=EmailType.PRIORITY, subject="Hello {{name}}", body_html="<p>Hi {{name}}</p>", **kwargs):
        email = Email(type=type, subject=subject, body_html=body_html, name=kwargs.pop("name", "Test email"), **kwargs)
        db_session.add(email)
        db_session.commit()
        db_session.refresh(email)
        return email

    return _make


@pytest.fixture
def make_variant(db_session):
    """Factory for experiment variants."""

    def _make(email, letter, subject=None, body_html="<p>Variant</p>"):
        variant = ExperimentVariant(
            email_id=email.email_id,
            variant_letter=letter,
            subject=subject or f"Variant {letter}",
            body_html=body_html,
            ai_parameters={}
        )
        db_session.add(variant)
        db_session.commit()
        db_session.refresh(variant)
        return variant

    return _make


@pytest.fixture
def make_delivery(db_session):
    """Factory for deliveries in a given status."""
    counter = {"n": 0}

    def _make(email, contact, status=DeliveryStatus.SENT, variant=None, message_id="auto"):
        counter["n"] += 1
        delivery = EmailDelivery(
            email_id=email.email_id,
            contact_id=contact.contact_id,
            variant_id=variant.variant_id if variant else None,
            status=status,
            ghl_message_id=f"msg-{counter['n']}" if message_id == "auto" else message_id,
            active_key=None if status == DeliveryStatus.FAILED else make_active_key(email.email_id, contact.contact_id)
        )
        db_session.add(delivery)
        db_session.commit()
        db_session.refresh(delivery)
        return delivery

    return _make
