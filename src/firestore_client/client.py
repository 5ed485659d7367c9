"""
Firestore client.

Entry point of the package: builds references and batches, performs
batched document reads and runs transactions with retry.
"""

from __future__ import annotations
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .config import ClientConfig, validate_max_attempts
from .options import ReadOptions
from .recovery.backoff import ExponentialBackoff
from .reference import CollectionReference, DocumentReference
from .runtime.errors import InvalidArgumentError, RpcError, Status
from .runtime.path import FieldPath
from .snapshot import DocumentSnapshot
from .transaction import Transaction, parse_get_all_arguments
from .transport.base import RpcTransport
from .transport.rest import RestTransport
from .util import request_tag
from .write_batch import WriteBatch

logger = logging.getLogger(__name__)


class Firestore:
    """
    Firestore database client.

    Example:
        ```python
        firestore = Firestore(ClientConfig(project_id="my-project"))

        async def increment(transaction):
            ref = firestore.doc("counters/visits")
            snapshot = await transaction.get(ref)
            count = (snapshot.get("count") or 0) + 1
            transaction.set(ref, {"count": count})
            return count

        count = await firestore.run_transaction(increment)
        ```
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[RpcTransport] = None,
        backoff_factory: Optional[Callable[[], ExponentialBackoff]] = None
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration (read from the environment if None)
            transport: RPC transport (a RestTransport for ``config`` if None)
            backoff_factory: Builds the backoff policy of each transaction
        """
        self._config = config or ClientConfig.from_env()
        self._transport = transport or RestTransport(self._config)
        self._backoff_factory = backoff_factory or self._config.create_backoff

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def formatted_name(self) -> str:
        """Resource name of the database (``projects/{project}/databases/{database}``)."""
        return self._config.formatted_name

    def doc(self, document_path: str) -> DocumentReference:
        """Get a reference to a document by its slash-separated path."""
        return DocumentReference(self, document_path)

    def doc_from_name(self, name: str) -> DocumentReference:
        """Get a reference to a document from its fully qualified resource name."""
        prefix = f"{self.formatted_name}/documents/"
        if not name.startswith(prefix):
            raise InvalidArgumentError(f"Document name {name!r} does not belong to {self.formatted_name}")
        return DocumentReference(self, name[len(prefix):])

    def collection(self, collection_path: str) -> CollectionReference:
        """Get a reference to a collection by its slash-separated path."""
        return CollectionReference(self, collection_path)

    def batch(self) -> WriteBatch:
        """Create a write batch."""
        return WriteBatch(self)

    # =========================================================================
    # Low-level RPC
    # =========================================================================

    async def request(self, method: str, request: Dict[str, Any], request_tag: Optional[str] = None) -> Any:
        """
        Send an RPC through the transport.

        Args:
            method: RPC method name
            request: Request message
            request_tag: Correlation tag for logging

        Returns:
            Decoded response

        Raises:
            RpcError: If the RPC fails
        """
        logger.debug(f"[{request_tag}] Sending request: {method}")
        try:
            response = await self._transport.call(method, request, request_tag)
        except RpcError as e:
            logger.debug(f"[{request_tag}] Received error for {method}: {e}")
            raise
        logger.debug(f"[{request_tag}] Received response for {method}")
        return response

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all(
        self, *document_refs_or_read_options: Union[DocumentReference, ReadOptions, Dict[str, Any]]
    ) -> Awaitable[List[DocumentSnapshot]]:
        """
        Read several documents outside of a transaction.

        Returns:
            Awaitable resolving to the snapshots, in argument order
        """
        documents, field_mask = parse_get_all_arguments(
            document_refs_or_read_options, "Firestore.get_all"
        )
        return self.get_all_(documents, field_mask, request_tag())

    async def get_all_(
        self,
        documents: List[DocumentReference],
        field_mask: Optional[List[FieldPath]],
        request_tag: Optional[str],
        transaction_id: Optional[bytes] = None
    ) -> List[DocumentSnapshot]:
        """
        Read documents with one batchGet request.

        Args:
            documents: References to read
            field_mask: Fields to return (all fields if None)
            request_tag: Correlation tag for logging
            transaction_id: Handle of the transaction to read in, if any

        Returns:
            Snapshots in the order of ``documents``
        """
        request: Dict[str, Any] = {
            "database": self.formatted_name,
            "documents": [ref.formatted_name for ref in documents],
        }
        if field_mask is not None:
            request["mask"] = {"fieldPaths": [path.formatted_name() for path in field_mask]}
        if transaction_id is not None:
            request["transaction"] = transaction_id

        responses = await self.request("batchGet", request, request_tag)

        found: Dict[str, Dict[str, Any]] = {}
        for response in responses or []:
            if "found" in response:
                found[response["found"]["name"]] = response
            elif "missing" in response:
                found[response["missing"]] = response

        snapshots = []
        for ref in documents:
            response = found.get(ref.formatted_name)
            if response is None:
                raise RpcError(f"Did not receive document for {ref.path!r}.", Status.INTERNAL)
            if "found" in response:
                snapshots.append(DocumentSnapshot.from_document(ref, response["found"], response.get("readTime")))
            else:
                snapshots.append(DocumentSnapshot.missing(ref, response.get("readTime")))

        logger.debug(f"[{request_tag}] Received {len(snapshots)} documents")
        return snapshots

    # =========================================================================
    # Transactions
    # =========================================================================

    async def run_transaction(
        self,
        update_function: Callable[[Transaction], Awaitable[Any]],
        max_attempts: Optional[int] = None
    ) -> Any:
        """
        Run ``update_function`` in a transaction, retrying on contention.

        The update function receives a Transaction and must return an
        awaitable. It may run more than once, so it should not have side
        effects outside the transaction.

        Args:
            update_function: The unit of work
            max_attempts: Maximum number of attempts (from the config if None)

        Returns:
            The result of the update function
        """
        max_attempts = validate_max_attempts(
            self._config.max_attempts if max_attempts is None else max_attempts
        )
        transaction = Transaction(self, request_tag(), self._backoff_factory())
        return await transaction.run_transaction(update_function, max_attempts)

    async def close(self) -> None:
        """Close the transport."""
        await self._transport.close()

    async def __aenter__(self) -> Firestore:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
