"""
Input sanitisation for free-text trailer, carrier and door fields.

Values are HTML-escaped and trimmed before they are stored so that the
board UI can render them verbatim. "D&H" is stored as "D&amp;H" and the
browser renders it back as "D&H".
"""
import html
from typing import Any, Optional


def sanitize_input(value: Any) -> Any:
    """Escape the five HTML-significant characters and trim whitespace.

    Non-string values are returned unchanged.
    """
    if not value or not isinstance(value, str):
        return value
    return html.escape(value, quote=True).replace("&#x27;", "&#039;").strip()


def sanitize_optional(value: Optional[str]) -> Optional[str]:
    """Sanitize a nullable text field; empty strings collapse to None."""
    if value is None:
        return None
    cleaned = sanitize_input(value)
    return cleaned or None
