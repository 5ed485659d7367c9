"""
Firestore Python client - transactions

This package provides an asyncio client for the Firestore document database
with optimistic, retrying transactions.
"""

from .client import Firestore
from .config import ClientConfig
from .options import ReadOptions
from .reference import CollectionReference, DocumentReference, Query
from .snapshot import DocumentSnapshot, QuerySnapshot
from .transaction import Transaction, parse_get_all_arguments
from .write_batch import Precondition, WriteBatch, WriteResult

from .recovery import ExponentialBackoff
from .runtime.errors import *
from .runtime.path import FieldPath
from .transport import RestTransport, RpcTransport

__version__ = "0.1.0"
__all__ = [
    # Client
    "Firestore",
    "ClientConfig",

    # References and snapshots
    "DocumentReference",
    "CollectionReference",
    "Query",
    "DocumentSnapshot",
    "QuerySnapshot",
    "FieldPath",

    # Transactions and writes
    "Transaction",
    "parse_get_all_arguments",
    "ReadOptions",
    "WriteBatch",
    "WriteResult",
    "Precondition",

    # Error recovery
    "ExponentialBackoff",

    # Transports
    "RpcTransport",
    "RestTransport",

    # Errors
    "Status",
    "FirestoreError",
    "RpcError",
    "InvalidArgumentError",
    "OrderingViolationError",
    "BackoffError",
    "ErrorKind",
    "classify_transaction_error",
    "is_retryable_transaction_error",
]
