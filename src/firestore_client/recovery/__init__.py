"""
Error recovery components for the Firestore client.

Provides the backoff policy applied between transaction attempts.
"""

from .backoff import ExponentialBackoff

__all__ = [
    "ExponentialBackoff",
]
