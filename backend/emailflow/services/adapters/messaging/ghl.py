"""GoHighLevel messaging and contacts adapter."""
from typing import Dict, Any, Optional
import httpx
import structlog
from emailflow.services.adapters.base import MessagingAdapter
from emailflow.core.config import settings
from emailflow.db.models.integration import IntegrationConnection

logger = structlog.get_logger()


class GHLAdapter(MessagingAdapter):
    """Adapter for the GoHighLevel (LeadConnector) API.

    Emails are sent as conversation messages to a GHL contact; the returned
    message id is what GHL later reports in email webhook events.
    """

    def __init__(
        self,
        access_token: str,
        location_id: str,
        base_url: str = None,
        api_version: str = None,
        timeout: float = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.access_token = access_token
        self.location_id = location_id
        self.base_url = (base_url or settings.GHL_API_BASE_URL).rstrip("/")
        self.api_version = api_version or settings.GHL_API_VERSION
        self.timeout = timeout or settings.GHL_REQUEST_TIMEOUT
        self._transport = transport

    @classmethod
    def from_connection(cls, connection: IntegrationConnection, **kwargs) -> "GHLAdapter":
        return cls(
            access_token=connection.access_token,
            location_id=(connection.config or {}).get("locationId"),
            **kwargs
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Version": self.api_version,
                "Location-Id": self.location_id or "",
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport
        )

    def test_connection(self) -> bool:
        """Test connection by reading the configured location."""
        if not self.access_token or not self.location_id:
            return False
        try:
            with self._client() as client:
                response = client.get(f"/locations/{self.location_id}")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def send_email(
        self,
        contact_id: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None
    ) -> Dict[str, Any]:
        """Send an email conversation message to a GHL contact."""
        payload = {
            "type": "Email",
            "contactId": contact_id,
            "subject": subject,
            "html": body_html,
        }
        if body_text:
            payload["text"] = body_text

        try:
            with self._client() as client:
                response = client.post("/conversations/messages", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            error = _error_detail(e.response)
            logger.error("GHL send failed", contact_id=contact_id, status_code=e.response.status_code, error=error)
            return {"success": False, "message_id": None, "error": error}
        except (httpx.HTTPError, ValueError) as e:
            logger.error("GHL send failed", contact_id=contact_id, error=str(e))
            return {"success": False, "message_id": None, "error": str(e)}

        message_id = (data.get("messageId") or data.get("id")) if isinstance(data, dict) else None
        if not message_id:
            return {"success": False, "message_id": None, "error": "GHL did not return a message ID"}

        return {"success": True, "message_id": str(message_id), "error": None}

    def fetch_contacts(self, page: int = 1, limit: int = 100) -> Dict[str, Any]:
        """Fetch a page of contacts for the configured location."""
        with self._client() as client:
            response = client.get(
                "/contacts/",
                params={"locationId": self.location_id, "page": page, "limit": limit}
            )
            response.raise_for_status()
            data = response.json()

        meta = data.get("meta") or {}
        return {
            "contacts": data.get("contacts") or [],
            "has_more": bool(meta.get("nextPage"))
        }


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {response.status_code}"
