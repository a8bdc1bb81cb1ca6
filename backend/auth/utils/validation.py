"""Request field validation shared by the action handlers."""
from typing import Iterable, Optional, Tuple


BEARER_PREFIX = 'bearer '


def is_missing(payload: dict, field: str) -> bool:
    """A field is missing when absent or falsy (None, '', 0, False)."""
    return not payload.get(field)


def first_missing(payload: dict, fields: Iterable[str]) -> Optional[str]:
    """Return the first missing field name, in the given order."""
    for field in fields:
        if is_missing(payload, field):
            return field
    return None


def any_missing(payload: dict, fields: Iterable[str]) -> bool:
    return first_missing(payload, fields) is not None


def parse_bearer(header: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract the token from an Authorization header.

    Returns (token, None) on success or (None, error_message).
    """
    if not header or not header.strip():
        return None, 'Authorization header is required'

    value = header.strip()
    if not value.lower().startswith(BEARER_PREFIX):
        return None, 'Invalid authorization token'

    token = value[len(BEARER_PREFIX):].strip()
    if not token or ' ' in token:
        return None, 'Invalid authorization token'

    return token, None
