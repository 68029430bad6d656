"""OpenAI adapter for experiment variant generation."""
import json
from typing import List, Dict, Any, Optional
import httpx
import structlog
from emailflow.services.adapters.base import AIAdapter
from emailflow.core.config import settings
from emailflow.db.models.integration import IntegrationConnection

logger = structlog.get_logger()

# Fields every variant must carry to be stored
REQUIRED_FIELDS = ("subject", "body_html")


class OpenAIAdapter(AIAdapter):
    """Adapter for OpenAI API.

    To use:
    1. Create an API key at https://platform.openai.com/
    2. Save it as the access token of the user's "openai" integration

    Each variant is one chat completion in JSON mode.
    """

    MODELS = {
        "gpt-4o": "GPT-4o - Best quality, multimodal",
        "gpt-4o-mini": "GPT-4o Mini - Fast and affordable",
    }

    def __init__(
        self,
        api_key: str,
        model: str = None,
        temperature: float = None,
        max_tokens: int = None,
        base_url: str = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.api_key = api_key
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.OPENAI_MAX_TOKENS
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self._transport = transport

    @classmethod
    def from_connection(cls, connection: IntegrationConnection, **kwargs) -> "OpenAIAdapter":
        config = connection.config or {}
        if config.get("model") and "model" not in kwargs:
            kwargs["model"] = config["model"]
        return cls(api_key=connection.access_token, **kwargs)

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            },
            timeout=settings.OPENAI_REQUEST_TIMEOUT,
            transport=self._transport
        )

    def test_connection(self) -> bool:
        """Test connection to OpenAI API."""
        if not self.api_key:
            return False

        try:
            with self._client() as client:
                response = client.get("/models")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _call_api(self, messages: List[Dict]) -> Optional[str]:
        """Make a JSON-mode chat completion call and return the message content."""
        if not self.api_key:
            raise ValueError("OpenAI API key not configured")

        with self._client() as client:
            response = client.post(
                "/chat/completions",
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": self.temperature,
                    "max_tokens": self.max_tokens,
                    "response_format": {"type": "json_object"}
                }
            )
            response.raise_for_status()
            data = response.json()
            return data["choices"][0]["message"]["content"]

    def generate_variant(
        self,
        base_subject: str,
        base_body: str,
        key_angle: Optional[str] = None,
        profile: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, str]]:
        """Generate one variant; None when the model output is unusable."""
        user_prompt = f"""Please create a variant of the following email with a different angle or tone.
Original subject: "{base_subject}"
Original body: "{base_body}"
{f'The original angle was: {key_angle}. Take a different one.' if key_angle else ''}

Generate a JSON response with the following structure:
{{"subject": "The new subject line", "body_html": "The HTML content of the email", "body_text": "The plain text version of the email", "key_angle": "The main angle or approach of this variant"}}"""

        content = self._call_api([
            {"role": "system", "content": build_system_prompt(profile, params)},
            {"role": "user", "content": user_prompt}
        ])
        return parse_variant(content)


def build_system_prompt(profile: Optional[Dict[str, Any]] = None, params: Optional[Dict[str, Any]] = None) -> str:
    """Compose the copywriter instructions from the sender profile and generation params."""
    profile = profile or {}
    params = params or {}

    lines = [
        "You are an expert email copywriter.",
        f"Write a {params.get('length', 'medium')} length {params.get('emailType', 'marketing')} email "
        f"in a {params.get('tone', 'professional')} tone.",
    ]

    sender = ", ".join(
        str(profile[key]) for key in ("avatar_name", "avatar_role", "avatar_company_name") if profile.get(key)
    )
    if sender:
        lines.append(f"The email is written by {sender}.")
    if profile.get("avatar_bio"):
        lines.append(f"About the sender: {profile['avatar_bio']}")
    if params.get("companyInfo"):
        lines.append(f"About the company: {params['companyInfo']}")

    audience = params.get("targetAudience") or profile.get("icp_description")
    if audience:
        lines.append(f"Target audience: {audience}")
    for key, label in (
        ("icp_pain_points", "Their pain points"),
        ("icp_fears", "Their fears"),
        ("icp_insecurities", "Their insecurities"),
        ("icp_transformations", "The transformation they want"),
        ("icp_key_objectives", "Their key objectives"),
    ):
        if profile.get(key):
            lines.append(f"{label}: {profile[key]}")

    if params.get("keyAngle"):
        lines.append(f"Focus on this angle: {params['keyAngle']}")
    if params.get("additionalInstructions"):
        lines.append(params["additionalInstructions"])

    lines.append("Always answer with a single JSON object.")
    return "\n".join(lines)


def parse_variant(content: Optional[str]) -> Optional[Dict[str, str]]:
    """Parse model output into variant fields, or None when it is malformed."""
    if not content:
        return None
    try:
        data = json.loads(content)
    except ValueError:
        logger.warning("OpenAI returned invalid JSON", content=content[:200])
        return None

    if not isinstance(data, dict) or not all(isinstance(data.get(f), str) and data.get(f).strip() for f in REQUIRED_FIELDS):
        logger.warning("OpenAI variant missing required fields", keys=list(data) if isinstance(data, dict) else None)
        return None

    return {
        "subject": data["subject"].strip(),
        "body_html": data["body_html"],
        "body_text": data.get("body_text") if isinstance(data.get("body_text"), str) else None,
        "key_angle": data.get("key_angle") if isinstance(data.get("key_angle"), str) else None,
    }
