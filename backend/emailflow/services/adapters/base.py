"""Base adapter interfaces for all provider types."""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class BaseAdapter(ABC):
    """Base class for all adapters."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connection to the provider."""
        pass


class MessagingAdapter(BaseAdapter):
    """Base adapter for the CRM messaging and contact provider."""

    @abstractmethod
    def send_email(
        self,
        contact_id: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send a single email to a CRM contact.

        Returns dict with keys:
        - success: bool
        - message_id: Provider message ID, the correlation key for webhook events
        - error: Error message if failed
        """
        pass

    @abstractmethod
    def fetch_contacts(self, page: int = 1, limit: int = 100) -> Dict[str, Any]:
        """
        Fetch one page of CRM contacts.

        Returns dict with keys:
        - contacts: List of raw provider contact dicts
        - has_more: Whether another page follows
        """
        pass


class AIAdapter(BaseAdapter):
    """Base adapter for AI/LLM providers used for experiment variant generation."""

    @abstractmethod
    def generate_variant(
        self,
        base_subject: str,
        base_body: str,
        key_angle: Optional[str] = None,
        profile: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, str]]:
        """
        Generate one variant of an email.

        Returns dict with keys subject, body_html, body_text, key_angle,
        or None when the provider output could not be parsed.
        """
        pass

    @property
    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """Model parameters recorded alongside generated variants."""
        pass

