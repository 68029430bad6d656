"""Per-contact personalization of email content."""
import re
from typing import Optional

from emailflow.db.models.contact import Contact

_PLACEHOLDER = re.compile(r"\{\{\s*([\w.-]+)\s*\}\}")
_STYLE_OR_SCRIPT = re.compile(r"<(style|script)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s{2,}")


def render_for_contact(template: Optional[str], contact: Contact) -> str:
    """Replace {{name}}, {{email}} and {{<custom field>}} placeholders.

    Unknown placeholders are left as they are.
    """
    if not template:
        return ""

    values = {str(k): v for k, v in (contact.custom_fields or {}).items()}
    values["name"] = contact.name or "there"
    values["email"] = contact.email or ""

    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key not in values or values[key] is None:
            return match.group(0)
        return str(values[key])

    return _PLACEHOLDER.sub(_sub, template)


def html_to_text(html: Optional[str]) -> str:
    """Crude plain-text fallback for emails without a text body."""
    if not html:
        return ""
    text = _STYLE_OR_SCRIPT.sub("", html)
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()
