"""Mock AI adapter for testing."""
from typing import List, Dict, Any, Optional
from emailflow.services.adapters.base import AIAdapter


class MockAIAdapter(AIAdapter):
    """Mock adapter that returns queued variant responses.

    A None entry in `responses` simulates unparsable model output. Once the
    queue is empty, generic variants are produced.
    """

    def __init__(self, responses: Optional[List[Optional[Dict[str, str]]]] = None):
        self.responses = list(responses) if responses is not None else None
        self.calls = []

    @property
    def parameters(self) -> Dict[str, Any]:
        return {"model": "mock", "temperature": 0.0, "max_tokens": 0}

    def test_connection(self) -> bool:
        return True

    def generate_variant(
        self,
        base_subject: str,
        base_body: str,
        key_angle: Optional[str] = None,
        profile: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, str]]:
        self.calls.append({
            "base_subject": base_subject,
            "base_body": base_body,
            "key_angle": key_angle,
            "profile": profile,
            "params": params,
        })
        if self.responses:
            return self.responses.pop(0)

        n = len(self.calls)
        return {
            "subject": f"{base_subject} (variant {n})",
            "body_html": f"<p>Variant {n}</p>{base_body}",
            "body_text": f"Variant {n}",
            "key_angle": f"angle {n}",
        }
