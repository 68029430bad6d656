"""Mock messaging adapter for testing."""
from typing import List, Dict, Any, Optional, Iterable
import time
import uuid
from emailflow.services.adapters.base import MessagingAdapter


class MockMessagingAdapter(MessagingAdapter):
    """Mock adapter that simulates CRM sends and contact pages."""

    def __init__(
        self,
        contact_pages: Optional[List[List[Dict[str, Any]]]] = None,
        fail_for: Optional[Iterable[str]] = None,
        omit_message_id_for: Optional[Iterable[str]] = None
    ):
        self.sent_emails = []  # Store sent emails for verification
        self.contact_pages = contact_pages or []
        self.fail_for = set(fail_for or [])
        self.omit_message_id_for = set(omit_message_id_for or [])
        self.requested_pages = []

    def test_connection(self) -> bool:
        """Mock always returns successful connection."""
        return True

    def send_email(
        self,
        contact_id: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None
    ) -> Dict[str, Any]:
        """Simulate sending a single email."""
        if contact_id in self.fail_for:
            return {"success": False, "message_id": None, "error": "Mock send failure"}

        message_id = None if contact_id in self.omit_message_id_for else f"mock-{uuid.uuid4()}"
        self.sent_emails.append({
            "message_id": message_id,
            "contact_id": contact_id,
            "subject": subject,
            "body_html": body_html,
            "body_text": body_text,
            "sent_at": time.time()
        })

        if message_id is None:
            return {"success": True, "message_id": None, "error": None}
        return {"success": True, "message_id": message_id, "error": None}

    def fetch_contacts(self, page: int = 1, limit: int = 100) -> Dict[str, Any]:
        """Serve the configured pages, 1-based."""
        self.requested_pages.append(page)
        index = page - 1
        contacts = self.contact_pages[index] if 0 <= index < len(self.contact_pages) else []
        return {
            "contacts": contacts[:limit],
            "has_more": index + 1 < len(self.contact_pages)
        }

    def get_sent_emails(self) -> List[Dict[str, Any]]:
        """Return all sent emails (for testing)."""
        return self.sent_emails

    def clear_sent_emails(self):
        """Clear sent emails (for testing)."""
        self.sent_emails = []
