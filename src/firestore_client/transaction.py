"""
Transactions.

A Transaction is handed to the caller's update function. It reads at the
transaction's snapshot, buffers writes for the current attempt and, through
``run_transaction``, commits them with optimistic retry: on a retryable
failure the attempt is rolled back and the whole update function runs
again after a backoff delay.

Example:
    ```python
    async def transfer(transaction):
        snapshot = await transaction.get(account_ref)
        transaction.update(account_ref, {"balance": snapshot.get("balance") - 10})
        return snapshot.get("balance")

    balance = await firestore.run_transaction(transfer)
    ```
"""

from __future__ import annotations
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Sequence, Union, TYPE_CHECKING
)
from pydantic import ValidationError

from .config import validate_max_attempts
from .options import ReadOptions
from .recovery.backoff import ExponentialBackoff
from .reference import DocumentReference, Query, validate_document_reference
from .runtime.errors import (
    ErrorKind,
    InvalidArgumentError,
    OrderingViolationError,
    Status,
    classify_transaction_error,
    error_code,
)
from .runtime.path import FieldPath
from .snapshot import DocumentSnapshot, QuerySnapshot
from .util import is_plain_object, request_tag as new_request_tag
from .write_batch import Precondition, WriteBatch

if TYPE_CHECKING:
    from .client import Firestore

logger = logging.getLogger(__name__)

READ_AFTER_WRITE_ERROR_MSG = (
    "Firestore transactions require all reads to be executed before all writes."
)


class AttemptState(Enum):
    """Lifecycle of one transaction attempt."""
    IDLE = "idle"
    BEGUN = "begun"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Attempt:
    """
    One begin/update/commit cycle.

    Owns the pending write set of the attempt; the transaction handle is
    carried across attempts by the Transaction.
    """
    index: int
    writes: WriteBatch
    state: AttemptState = AttemptState.IDLE

    @property
    def has_writes(self) -> bool:
        """True once any write was recorded; reads are rejected from then on."""
        return not self.writes.is_empty


class OutcomeKind(Enum):
    """What the retry loop does after an attempt."""
    SUCCEEDED = "succeeded"
    RETRY = "retry"
    FAIL = "fail"


@dataclass
class AttemptOutcome:
    """Result of running the update function and committing once."""
    kind: OutcomeKind
    result: Any = None
    error: Optional[BaseException] = field(default=None)


class GetAllArguments(NamedTuple):
    """Parsed arguments of ``get_all()``."""
    documents: List[DocumentReference]
    field_mask: Optional[List[FieldPath]]


def parse_get_all_arguments(
    document_refs_or_read_options: Sequence[Union[DocumentReference, ReadOptions, Dict[str, Any]]],
    method_name: str = "get_all"
) -> GetAllArguments:
    """
    Parse the arguments of a ``get_all()`` call.

    The arguments are one or more DocumentReferences, optionally followed
    by read options (a ReadOptions instance or a plain dict).

    Args:
        document_refs_or_read_options: Positional arguments of the call
        method_name: Name used in error messages

    Returns:
        GetAllArguments with the references and the field mask (None if not given)

    Raises:
        InvalidArgumentError: If the arguments are malformed
    """
    args = list(document_refs_or_read_options)
    if not args:
        raise InvalidArgumentError(f"Function \"{method_name}()\" requires at least 1 argument.")

    if isinstance(args[0], (list, tuple)):
        raise InvalidArgumentError(
            f"{method_name}() no longer accepts a list as its first argument. "
            f"Please unpack your list and call {method_name}() with individual arguments."
        )

    read_options: Optional[ReadOptions] = None
    if isinstance(args[-1], ReadOptions):
        read_options = args.pop()
    elif is_plain_object(args[-1]):
        read_options = validate_read_options("options", args.pop())

    if not args:
        raise InvalidArgumentError(
            f"Function \"{method_name}()\" requires at least 1 DocumentReference."
        )

    documents = [validate_document_reference(i, ref) for i, ref in enumerate(args)]
    field_mask = read_options.field_paths() if read_options is not None else None
    return GetAllArguments(documents, field_mask)


def validate_read_options(arg: Union[int, str], value: Dict[str, Any]) -> ReadOptions:
    """
    Validate a plain dict as read options.

    Raises:
        InvalidArgumentError: If the dict is not valid read options
    """
    try:
        return ReadOptions.model_validate(value)
    except ValidationError as e:
        reason = "; ".join(
            error["msg"].removeprefix("Value error, ") for error in e.errors()
        )
        raise InvalidArgumentError(
            f"Value for argument \"{arg}\" is not a valid read option. {reason}"
        ) from e


class Transaction:
    """
    A transaction passed to the update function of ``run_transaction``.

    Reads must happen before writes within one attempt.
    """

    def __init__(
        self,
        firestore: Firestore,
        request_tag: Optional[str] = None,
        backoff: Optional[ExponentialBackoff] = None
    ):
        """
        Initialize a transaction.

        Args:
            firestore: Client the transaction runs on
            request_tag: Correlation tag for the requests of this transaction
            backoff: Backoff policy applied between attempts
        """
        self._firestore = firestore
        self._request_tag = request_tag or new_request_tag()
        self._backoff = backoff or ExponentialBackoff()
        self._transaction_id: Optional[bytes] = None
        self._attempt = Attempt(index=0, writes=WriteBatch(firestore))

    @property
    def request_tag(self) -> str:
        return self._request_tag

    @property
    def transaction_id(self) -> Optional[bytes]:
        """Handle of the current (or, before begin, the previous) server transaction."""
        return self._transaction_id

    @property
    def attempt(self) -> Attempt:
        return self._attempt

    # =========================================================================
    # Reads
    # =========================================================================

    def _check_read_allowed(self) -> None:
        if self._attempt.has_writes:
            raise OrderingViolationError(READ_AFTER_WRITE_ERROR_MSG)

    def get(self, ref_or_query: Union[DocumentReference, Query]) -> Awaitable[Union[DocumentSnapshot, QuerySnapshot]]:
        """
        Read a document or run a query at the transaction's snapshot.

        Ordering and argument checks run before anything is awaited.

        Raises:
            OrderingViolationError: If a write was already recorded in this attempt
            InvalidArgumentError: If the argument is neither a DocumentReference nor a Query
        """
        self._check_read_allowed()
        if isinstance(ref_or_query, DocumentReference):
            return self.get_document(ref_or_query)
        if isinstance(ref_or_query, Query):
            return self.get_query(ref_or_query)
        raise InvalidArgumentError(
            "Value for argument \"ref_or_query\" must be a DocumentReference or a Query."
        )

    def get_document(self, document_ref: DocumentReference) -> Awaitable[DocumentSnapshot]:
        """Read one document at the transaction's snapshot."""
        self._check_read_allowed()
        validate_document_reference("documentRef", document_ref)
        return self._read_document(document_ref)

    async def _read_document(self, document_ref: DocumentReference) -> DocumentSnapshot:
        snapshots = await self._firestore.get_all_(
            [document_ref], None, self._request_tag, self._transaction_id
        )
        return snapshots[0]

    def get_query(self, query: Query) -> Awaitable[QuerySnapshot]:
        """Run a query at the transaction's snapshot."""
        self._check_read_allowed()
        if not isinstance(query, Query):
            raise InvalidArgumentError("Value for argument \"query\" is not a valid Query.")
        return query._get(self._transaction_id)

    def get_all(
        self, *document_refs_or_read_options: Union[DocumentReference, ReadOptions, Dict[str, Any]]
    ) -> Awaitable[List[DocumentSnapshot]]:
        """
        Read several documents at the transaction's snapshot.

        Pass the references individually, optionally followed by read options:

            docs = await transaction.get_all(first, second, {"field_mask": ["count"]})

        Returns:
            Awaitable resolving to the snapshots, in argument order
        """
        self._check_read_allowed()
        documents, field_mask = parse_get_all_arguments(
            document_refs_or_read_options, "Transaction.get_all"
        )
        return self._firestore.get_all_(
            documents, field_mask, self._request_tag, self._transaction_id
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, document_ref: DocumentReference, data: Dict[str, Any]) -> Transaction:
        """Create a document; the transaction fails if it already exists."""
        self._attempt.writes.create(document_ref, data)
        return self

    def set(
        self,
        document_ref: DocumentReference,
        data: Dict[str, Any],
        merge: bool = False,
        merge_fields: Optional[Sequence[Union[str, Sequence[str], FieldPath]]] = None
    ) -> Transaction:
        """Write a document, replacing it unless a merge is requested."""
        self._attempt.writes.set(document_ref, data, merge=merge, merge_fields=merge_fields)
        return self

    def update(
        self,
        document_ref: DocumentReference,
        data: Dict[str, Any],
        precondition: Optional[Precondition] = None
    ) -> Transaction:
        """Update fields of an existing document."""
        self._attempt.writes.update(document_ref, data, precondition=precondition)
        return self

    def delete(self, document_ref: DocumentReference, precondition: Optional[Precondition] = None) -> Transaction:
        """Delete a document."""
        self._attempt.writes.delete(document_ref, precondition=precondition)
        return self

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def _reset(self, attempt_index: int = 0) -> None:
        """Start a new attempt with an empty write set, keeping the handle as retry hint."""
        self._attempt = Attempt(index=attempt_index, writes=WriteBatch(self._firestore))

    async def begin(self) -> None:
        """Start a server transaction, passing the previous handle as retry hint."""
        request: Dict[str, Any] = {"database": self._firestore.formatted_name}
        if self._transaction_id is not None:
            request["options"] = {
                "readWrite": {"retryTransaction": self._transaction_id}
            }

        response = await self._firestore.request("beginTransaction", request, self._request_tag)
        self._transaction_id = response["transaction"]
        self._attempt.state = AttemptState.BEGUN

    async def commit(self) -> None:
        """Commit the writes of the current attempt."""
        await self._attempt.writes._commit(
            transaction_id=self._transaction_id, request_tag=self._request_tag
        )
        self._attempt.state = AttemptState.COMMITTED

    async def rollback(self) -> None:
        """Release the server transaction of the current attempt."""
        request = {
            "database": self._firestore.formatted_name,
            "transaction": self._transaction_id,
        }
        await self._firestore.request("rollback", request, self._request_tag)
        self._attempt.state = AttemptState.ROLLED_BACK

    # =========================================================================
    # Retry loop
    # =========================================================================

    async def run_transaction(
        self,
        update_function: Callable[[Transaction], Awaitable[Any]],
        max_attempts: int
    ) -> Any:
        """
        Run ``update_function`` and commit, retrying retryable failures.

        Args:
            update_function: Callable receiving this transaction and returning an awaitable
            max_attempts: Maximum number of attempts

        Returns:
            The result of the update function from the successful attempt

        Raises:
            The error of the failed attempt: immediately for non-retryable
            errors, after ``max_attempts`` attempts for retryable ones. Errors
            from begin() are raised immediately.
        """
        validate_max_attempts(max_attempts)
        last_error: Optional[BaseException] = None

        for attempt_index in range(max_attempts):
            if last_error is not None:
                logger.info(f"[{self._request_tag}] Retrying transaction after error: {last_error}")

            self._reset(attempt_index)
            await self._maybe_backoff(last_error)
            await self.begin()

            outcome = await self._run_attempt(update_function)
            if outcome.kind is OutcomeKind.SUCCEEDED:
                return outcome.result
            if outcome.kind is OutcomeKind.FAIL:
                logger.info(f"[{self._request_tag}] Transaction failed with non-retryable error: {outcome.error}")
                raise outcome.error
            last_error = outcome.error

        logger.info(
            f"[{self._request_tag}] Transaction not eligible for retry after "
            f"{max_attempts} attempts, returning error: {last_error}"
        )
        raise last_error

    async def _run_attempt(self, update_function: Callable[[Transaction], Awaitable[Any]]) -> AttemptOutcome:
        try:
            awaitable = update_function(self)
            if not inspect.isawaitable(awaitable):
                raise InvalidArgumentError(
                    "Your transaction callback must return an awaitable (for example a coroutine)."
                )
            result = await awaitable
            await self.commit()
            return AttemptOutcome(OutcomeKind.SUCCEEDED, result=result)
        except Exception as error:
            logger.debug(f"[{self._request_tag}] Rolling back transaction after callback error: {error}")
            await self._rollback_quietly()

            if classify_transaction_error(error) is ErrorKind.RETRYABLE:
                return AttemptOutcome(OutcomeKind.RETRY, error=error)
            return AttemptOutcome(OutcomeKind.FAIL, error=error)

    async def _rollback_quietly(self) -> None:
        try:
            await self.rollback()
        except Exception as rollback_error:
            logger.warning(f"[{self._request_tag}] Rollback failed: {rollback_error}")

    async def _maybe_backoff(self, error: Optional[BaseException] = None) -> None:
        """Wait before the next attempt; RESOURCE_EXHAUSTED waits the maximum delay."""
        if error is not None and error_code(error) is Status.RESOURCE_EXHAUSTED:
            self._backoff.reset_to_max()
        await self._backoff.backoff_and_wait()
