"""
Utility functions for the application.
"""
from typing import Any, Dict
from datetime import datetime, timezone
import re

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE
)


def is_valid_uuid(value: str) -> bool:
    """Check that a string is a canonical hyphenated UUID."""
    return bool(value) and bool(UUID_PATTERN.match(value))


def chunked(items: list, size: int):
    """Yield successive slices of at most `size` items."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


def format_error(message: str, code: str = None, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    response = {
        "error": message,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    if code:
        response["code"] = code
    if details:
        response["details"] = details
    return response
