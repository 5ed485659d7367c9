"""Runtime helpers for the Firestore client"""

from .errors import FirestoreError, Status
from .path import FieldPath
from .codec import encode_value, decode_value

__all__ = [
    "FirestoreError",
    "Status",
    "FieldPath",
    "encode_value",
    "decode_value"
]
