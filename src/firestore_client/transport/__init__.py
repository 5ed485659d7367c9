"""
Transports carrying Firestore RPCs.
"""

from .base import RpcTransport
from .rest import RestTransport

__all__ = [
    "RpcTransport",
    "RestTransport",
]
