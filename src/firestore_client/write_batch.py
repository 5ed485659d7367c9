"""
Write batches.

A WriteBatch buffers create/set/update/delete operations and sends them in
a single commit. Transactions use one batch per attempt as their pending
write set.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence, Union, TYPE_CHECKING
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .runtime.codec import encode_fields
from .runtime.errors import InvalidArgumentError
from .runtime.path import FieldPath
from .reference import DocumentReference, validate_document_reference
from .util import request_tag

if TYPE_CHECKING:
    from .client import Firestore

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 500


class Precondition(BaseModel):
    """
    Precondition on the target document of a write.

    At most one of ``exists`` and ``last_update_time`` may be set.
    """
    exists: Optional[bool] = Field(default=None, description="Require the document to exist (or not)")
    last_update_time: Optional[str] = Field(
        default=None,
        alias="lastUpdateTime",
        description="Require the document to have been last updated at this RFC 3339 time"
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def check_single_condition(self) -> Precondition:
        if self.exists is not None and self.last_update_time is not None:
            raise ValueError("Input specifies more than one precondition.")
        return self

    @property
    def is_empty(self) -> bool:
        return self.exists is None and self.last_update_time is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API-compatible dictionary."""
        if self.exists is not None:
            return {"exists": self.exists}
        if self.last_update_time is not None:
            return {"updateTime": self.last_update_time}
        return {}


class WriteResult(BaseModel):
    """Result of one committed write."""
    update_time: Optional[str] = Field(default=None, alias="updateTime")

    model_config = ConfigDict(populate_by_name=True)


def _expand_dotted_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Turn ``{"a.b": 1}`` into ``{"a": {"b": 1}}``."""
    expanded: Dict[str, Any] = {}
    for key, value in data.items():
        segments = FieldPath.from_argument(key).segments
        node = expanded
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = value
    return expanded


def _validate_no_conflicting_paths(paths: List[FieldPath]) -> None:
    """Reject repeated field paths and paths nested under another path of the same update."""
    ordered = sorted(paths, key=lambda path: path.segments)
    for previous, current in zip(ordered, ordered[1:]):
        if current.segments[:len(previous.segments)] == previous.segments:
            raise InvalidArgumentError(
                f"Field \"{previous.formatted_name()}\" was specified multiple times."
            )


def _leaf_field_paths(data: Dict[str, Any], prefix: Sequence[str] = ()) -> List[FieldPath]:
    """List the field paths of all non-map values in ``data``."""
    paths: List[FieldPath] = []
    for key, value in data.items():
        segments = list(prefix) + [key]
        if isinstance(value, dict) and value:
            paths.extend(_leaf_field_paths(value, segments))
        else:
            paths.append(FieldPath(*segments))
    return paths


class WriteBatch:
    """
    Accumulates writes to be committed atomically.

    Every mutating method returns the batch so calls can be chained.
    """

    def __init__(self, firestore: Firestore, max_batch_size: int = MAX_BATCH_SIZE):
        self._firestore = firestore
        self._max_batch_size = max_batch_size
        self._writes: List[Dict[str, Any]] = []
        self._committed = False

    @property
    def is_empty(self) -> bool:
        """True if no write has been recorded."""
        return not self._writes

    @property
    def writes(self) -> List[Dict[str, Any]]:
        """Copy of the recorded writes in REST form."""
        return list(self._writes)

    def __len__(self) -> int:
        return len(self._writes)

    def _verify_not_committed(self) -> None:
        if self._committed:
            raise InvalidArgumentError("Cannot modify a WriteBatch that has been committed.")

    def _add(self, write: Dict[str, Any]) -> None:
        self._verify_not_committed()
        if len(self._writes) >= self._max_batch_size:
            raise InvalidArgumentError(
                f"Cannot add more than {self._max_batch_size} writes to a single batch."
            )
        self._writes.append(write)

    @staticmethod
    def _validate_data(data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise InvalidArgumentError("Value for argument \"data\" is not a valid Firestore document. Input is not a plain dict.")
        return data

    def _document(self, ref: DocumentReference, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"name": ref.formatted_name, "fields": encode_fields(data)}

    def create(self, document_ref: DocumentReference, data: Dict[str, Any]) -> WriteBatch:
        """Create a document; the commit fails if it already exists."""
        validate_document_reference("documentRef", document_ref)
        data = self._validate_data(data)
        self._add({
            "update": self._document(document_ref, data),
            "currentDocument": {"exists": False},
        })
        return self

    def set(
        self,
        document_ref: DocumentReference,
        data: Dict[str, Any],
        merge: bool = False,
        merge_fields: Optional[Sequence[Union[str, Sequence[str], FieldPath]]] = None
    ) -> WriteBatch:
        """
        Write a document, replacing it unless a merge is requested.

        Args:
            document_ref: Document to write
            data: Document contents
            merge: Only replace the fields present in ``data``
            merge_fields: Only replace these field paths
        """
        validate_document_reference("documentRef", document_ref)
        data = self._validate_data(data)
        if merge and merge_fields is not None:
            raise InvalidArgumentError("Value for argument \"options\" cannot specify both \"merge\" and \"mergeFields\".")

        write: Dict[str, Any] = {"update": self._document(document_ref, data)}
        if merge:
            mask = _leaf_field_paths(data)
        elif merge_fields is not None:
            mask = [FieldPath.from_argument(path) for path in merge_fields]
        else:
            mask = None
        if mask is not None:
            write["updateMask"] = {"fieldPaths": [path.formatted_name() for path in mask]}
        self._add(write)
        return self

    def update(
        self,
        document_ref: DocumentReference,
        data: Dict[str, Any],
        precondition: Optional[Precondition] = None
    ) -> WriteBatch:
        """
        Update fields of an existing document.

        Keys of ``data`` are field paths, so ``{"a.b": 1}`` updates the nested field.
        """
        validate_document_reference("documentRef", document_ref)
        data = self._validate_data(data)
        if not data:
            raise InvalidArgumentError("At least one field must be updated.")

        paths = [FieldPath.from_argument(key) for key in data]
        _validate_no_conflicting_paths(paths)
        mask = [path.formatted_name() for path in paths]
        precondition = precondition or Precondition(exists=True)
        write: Dict[str, Any] = {
            "update": self._document(document_ref, _expand_dotted_keys(data)),
            "updateMask": {"fieldPaths": mask},
        }
        if not precondition.is_empty:
            write["currentDocument"] = precondition.to_dict()
        self._add(write)
        return self

    def delete(self, document_ref: DocumentReference, precondition: Optional[Precondition] = None) -> WriteBatch:
        """Delete a document. Deleting a missing document succeeds unless a precondition says otherwise."""
        validate_document_reference("documentRef", document_ref)
        write: Dict[str, Any] = {"delete": document_ref.formatted_name}
        if precondition is not None and not precondition.is_empty:
            write["currentDocument"] = precondition.to_dict()
        self._add(write)
        return self

    async def commit(self) -> List[WriteResult]:
        """Commit all recorded writes outside of a transaction."""
        return await self._commit(request_tag=request_tag())

    async def _commit(self, transaction_id: Optional[bytes] = None,
                      request_tag: Optional[str] = None) -> List[WriteResult]:
        """
        Send the recorded writes in one commit request.

        Args:
            transaction_id: Handle of the transaction to commit, if any
            request_tag: Correlation tag for logging

        Returns:
            One WriteResult per write
        """
        self._verify_not_committed()
        self._committed = True

        request: Dict[str, Any] = {
            "database": self._firestore.formatted_name,
            "writes": list(self._writes),
        }
        if transaction_id is not None:
            request["transaction"] = transaction_id

        logger.debug(f"[{request_tag}] Sending commit request with {len(self._writes)} writes")
        response = await self._firestore.request("commit", request, request_tag)

        results = (response or {}).get("writeResults") or [{} for _ in self._writes]
        commit_time = (response or {}).get("commitTime")
        return [
            WriteResult(update_time=result.get("updateTime") or commit_time)
            for result in results
        ]
