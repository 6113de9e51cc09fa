"""
Redaction of secrets in error text returned to MCP clients.

Upstream error bodies and exception messages can echo the request's
``Authorization`` header, the configured API token or local config paths.
Everything leaving the server through an error envelope or ``McpError``
passes through here first.
"""

import re
from typing import Any, Dict, List, Pattern, Tuple

CREDENTIAL = "[REDACTED_CREDENTIAL]"
PATH = "[REDACTED_PATH]"

# Order matters: the full header is matched before the bare bearer token.
_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(pattern, re.IGNORECASE), replacement)
    for pattern, replacement in (
        (r"authorization['\"]?\s*[=:]\s*['\"]?bearer\s+[\w\-._~+/=]+['\"]?", CREDENTIAL),
        (r"bearer\s+[\w\-._~+/=]+", CREDENTIAL),
        (r"eyJ[\w\-]+\.[\w\-]+\.[\w\-]+", CREDENTIAL),
        (r"(?:zephyr[_-])?api[_-]?(?:token|key)\s*[=:]\s*['\"]?[\w\-._]+['\"]?", CREDENTIAL),
        (r"(?:token|secret)\s*[=:]\s*['\"]?[\w\-._]+['\"]?", CREDENTIAL),
        (r"password\s*[=:]\s*['\"]?[^\s\"']+['\"]?", CREDENTIAL),
        (r"/(?:home|Users|root|tmp|var|etc|opt)/[\w\-./]+", PATH),
        (r"~/[\w\-./]+", PATH),
        (r"[A-Z]:\\[\w\-\\./]+", PATH),
    )
]


def sanitize_error_message(message: str) -> str:
    """Return ``message`` with credentials and local paths replaced."""
    for pattern, replacement in _RULES:
        message = pattern.sub(replacement, message)
    return message


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_error_message(value)
    if isinstance(value, dict):
        return sanitize_dict(value)
    if isinstance(value, list):
        return [_sanitize_value(item) for item in value]
    return value


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize every string in a (nested) envelope; other values are kept."""
    return {key: _sanitize_value(value) for key, value in data.items()}


def sanitize_exception(exception: Exception) -> str:
    return f"{type(exception).__name__}: {sanitize_error_message(str(exception))}"
