"""Small helpers shared across the client."""

import random
import string
from typing import Any

_REQUEST_TAG_ALPHABET = string.ascii_letters + string.digits
_REQUEST_TAG_LENGTH = 5


def request_tag() -> str:
    """Generate a short client-side identifier used to correlate log lines of one request."""
    return "".join(random.choice(_REQUEST_TAG_ALPHABET) for _ in range(_REQUEST_TAG_LENGTH))


def is_plain_object(value: Any) -> bool:
    """True for plain mappings (``dict`` and subclasses), false for model objects and references."""
    return isinstance(value, dict)
