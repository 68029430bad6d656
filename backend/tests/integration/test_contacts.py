"""Integration tests for contacts endpoints."""
import json
import pytest
from emailflow.db.models.delivery import DeliveryStatus
from emailflow.db.models.webhook import Webhook, WebhookEvent, WebhookType


class TestContactsEndpoints:
    """Tests for contacts API endpoints."""

    def test_list_contacts(self, client, auth_headers, make_contact):
        """Test listing contacts is paginated."""
        for _ in range(3):
            make_contact()
        response = client.get("/api/v1/contacts?page_size=2", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 2

    def test_list_contacts_by_tag(self, client, auth_headers, make_contact):
        """Test filtering contacts by tag."""
        tagged = make_contact(tags=["vip"])
        make_contact(tags=["vip2"])
        response = client.get("/api/v1/contacts?tag=vip", headers=auth_headers)
        assert [c["contact_id"] for c in response.json()["items"]] == [tagged.contact_id]

    def test_search_contacts(self, client, auth_headers, make_contact):
        """Test searching contacts by name or email."""
        make_contact(name="Grace Hopper")
        make_contact(name="Alan Turing")
        response = client.get("/api/v1/contacts?search=grace", headers=auth_headers)
        assert [c["name"] for c in response.json()["items"]] == ["Grace Hopper"]

    def test_get_contact(self, client, auth_headers, make_contact):
        """Test getting a specific contact."""
        contact = make_contact()
        response = client.get(f"/api/v1/contacts/{contact.contact_id}", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["contact_id"] == contact.contact_id
        assert data["email"] == contact.email
        assert data["ghl_id"] == contact.ghl_id

    def test_get_contact_not_found(self, client, auth_headers):
        """Test getting a nonexistent contact."""
        response = client.get("/api/v1/contacts/99999", headers=auth_headers)
        assert response.status_code == 404

    def test_create_contact(self, client, auth_headers):
        """Test creating a new contact."""
        response = client.post(
            "/api/v1/contacts",
            headers=auth_headers,
            json={
                "email": "jane.smith@example.com",
                "name": "Jane Smith",
                "tags": ["newsletter"]
            }
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "jane.smith@example.com"
        assert data["tags"] == ["newsletter"]
        assert data["contact_source"] == "manual"
        assert data["ghl_id"] is None

    def test_create_contact_invalid_email(self, client, auth_headers):
        """Test creating a contact with an invalid email."""
        response = client.post(
            "/api/v1/contacts",
            headers=auth_headers,
            json={"email": "not-an-email"}
        )
        assert response.status_code == 422

    def test_create_contact_duplicate_ghl_id(self, client, auth_headers, make_contact):
        """Test GHL ids are unique."""
        existing = make_contact()
        response = client.post(
            "/api/v1/contacts",
            headers=auth_headers,
            json={"email": "dup@example.com", "ghl_id": existing.ghl_id}
        )
        assert response.status_code == 409

    def test_update_contact(self, client, auth_headers, make_contact):
        """Test updating a contact."""
        contact = make_contact()
        response = client.put(
            f"/api/v1/contacts/{contact.contact_id}",
            headers=auth_headers,
            json={"name": "Renamed", "custom_fields": {"plan": "pro"}}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["custom_fields"] == {"plan": "pro"}

    def test_update_tags(self, client, auth_headers, make_contact):
        """Test adding and removing tags."""
        contact = make_contact(tags=["a", "b"])
        response = client.put(
            f"/api/v1/contacts/{contact.contact_id}/tags",
            headers=auth_headers,
            json={"add": ["c", "a"], "remove": ["b"]}
        )
        assert response.status_code == 200
        assert response.json()["tags"] == ["a", "c"]

    def test_contact_deliveries(self, client, auth_headers, make_contact, make_email, make_delivery):
        """Test listing a contact's delivery history."""
        contact = make_contact()
        make_delivery(make_email(), contact, status=DeliveryStatus.OPENED)
        response = client.get(f"/api/v1/contacts/{contact.contact_id}/deliveries", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["status"] == "opened"

    def test_delete_contact(self, client, auth_headers, make_contact):
        """Test deleting a contact without history."""
        contact = make_contact()
        response = client.delete(f"/api/v1/contacts/{contact.contact_id}", headers=auth_headers)
        assert response.status_code == 200
        assert client.get(f"/api/v1/contacts/{contact.contact_id}", headers=auth_headers).status_code == 404

    def test_delete_contact_with_history(self, client, auth_headers, make_contact, make_email, make_delivery):
        """Test contacts with deliveries are kept."""
        contact = make_contact()
        make_delivery(make_email(), contact)
        response = client.delete(f"/api/v1/contacts/{contact.contact_id}", headers=auth_headers)
        assert response.status_code == 409


@pytest.fixture
def outgoing_webhook(db_session, user):
    """Factory for the user's outgoing webhooks."""
    def _make(event, is_active=True, target_url="https://hooks.example.com/contacts"):
        webhook = Webhook(
            user_id=user.user_id,
            type=WebhookType.OUTGOING,
            name=f"{event.value} hook",
            trigger_event=event.value,
            target_url=target_url,
            is_active=is_active
        )
        db_session.add(webhook)
        db_session.commit()
        return webhook
    return _make


class TestContactWebhooks:
    """Tests for outgoing webhooks fired by contact changes."""

    def test_create_fires_contact_created(self, client, auth_headers, outgoing_webhook, webhook_target):
        """Test only active webhooks for the matching event fire."""
        outgoing_webhook(WebhookEvent.CONTACT_CREATED)
        outgoing_webhook(WebhookEvent.CONTACT_CREATED, is_active=False)
        outgoing_webhook(WebhookEvent.CONTACT_UPDATED)

        response = client.post(
            "/api/v1/contacts",
            headers=auth_headers,
            json={"email": "hooked@example.com", "name": "Hooked", "tags": ["vip"]}
        )

        assert response.status_code == 201
        assert len(webhook_target.requests) == 1
        body = json.loads(webhook_target.requests[0].content)
        assert body["event_type"] == "contact_created"
        assert body["data"] == {
            "contact_id": str(response.json()["contact_id"]),
            "ghl_id": "",
            "email": "hooked@example.com",
            "name": "Hooked",
            "tags": ["vip"],
        }

    def test_update_and_tags_fire_contact_updated(self, client, auth_headers, make_contact,
                                                  outgoing_webhook, webhook_target):
        """Test both update routes fire contact_updated with the saved values."""
        outgoing_webhook(WebhookEvent.CONTACT_UPDATED)
        contact = make_contact(tags=["a"])

        client.put(f"/api/v1/contacts/{contact.contact_id}", headers=auth_headers, json={"name": "Renamed"})
        client.put(f"/api/v1/contacts/{contact.contact_id}/tags", headers=auth_headers, json={"add": ["b"]})

        bodies = [json.loads(r.content) for r in webhook_target.requests]
        assert [b["event_type"] for b in bodies] == ["contact_updated", "contact_updated"]
        assert bodies[0]["data"]["name"] == "Renamed"
        assert bodies[1]["data"]["tags"] == ["a", "b"]

    def test_failed_webhook_does_not_fail_request(self, client, auth_headers, db_session,
                                                  outgoing_webhook, webhook_target):
        """Test a rejected delivery is recorded on the webhook, not returned to the caller."""
        webhook = outgoing_webhook(WebhookEvent.CONTACT_CREATED)
        webhook_target.status_code = 500

        response = client.post("/api/v1/contacts", headers=auth_headers, json={"email": "x@example.com"})

        assert response.status_code == 201
        db_session.refresh(webhook)
        assert webhook.last_status_code == 500
        assert webhook.last_triggered_at is not None
