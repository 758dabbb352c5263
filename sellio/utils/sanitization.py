import html
from typing import Any, Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Escape HTML special characters in buyer-supplied text before it is stored
    and later rendered into emails or the dashboard.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)


def sanitize_optional_text(value: Optional[str], max_length: int = 1000) -> Optional[str]:
    """Sanitize and clip free text; blank strings become None"""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")
    return sanitize_string(value)


def sanitize_content(content: dict[str, Any]) -> dict[str, Any]:
    """Escape string values of a fulfillment content bag (one level deep)"""
    if not content:
        return {}
    return {
        key: sanitize_string(value) if isinstance(value, str) and not key.endswith("url") else value
        for key, value in content.items()
    }
