"""
Document and query snapshots.
"""

from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union, TYPE_CHECKING

from .runtime.codec import decode_fields
from .runtime.path import FieldPath

if TYPE_CHECKING:
    from .reference import DocumentReference, Query


class DocumentSnapshot:
    """
    The contents of a document at a point in time.

    A snapshot of a missing document has ``exists == False`` and no data.
    """

    def __init__(
        self,
        ref: DocumentReference,
        data: Optional[Dict[str, Any]],
        read_time: Optional[str] = None,
        create_time: Optional[str] = None,
        update_time: Optional[str] = None
    ):
        self._ref = ref
        self._data = data
        self.read_time = read_time
        self.create_time = create_time
        self.update_time = update_time

    @classmethod
    def from_document(cls, ref: DocumentReference, document: Dict[str, Any],
                      read_time: Optional[str] = None) -> DocumentSnapshot:
        """Build a snapshot from a REST ``Document`` resource."""
        return cls(
            ref,
            decode_fields(document.get("fields")),
            read_time=read_time,
            create_time=document.get("createTime"),
            update_time=document.get("updateTime"),
        )

    @classmethod
    def missing(cls, ref: DocumentReference, read_time: Optional[str] = None) -> DocumentSnapshot:
        """Build a snapshot for a document that does not exist."""
        return cls(ref, None, read_time=read_time)

    @property
    def exists(self) -> bool:
        return self._data is not None

    @property
    def reference(self) -> DocumentReference:
        return self._ref

    @property
    def id(self) -> str:
        return self._ref.id

    def to_dict(self) -> Optional[Dict[str, Any]]:
        """Get a copy of the document data, or None if the document does not exist."""
        if self._data is None:
            return None
        return dict(self._data)

    def get(self, field_path: Union[str, Sequence[str], FieldPath]) -> Any:
        """
        Get a field value by path.

        Returns:
            The value, or None if the document or the field does not exist
        """
        value: Any = self._data
        for segment in FieldPath.from_argument(field_path).segments:
            if not isinstance(value, dict) or segment not in value:
                return None
            value = value[segment]
        return value

    def __repr__(self) -> str:
        return f"DocumentSnapshot({self._ref.path!r}, exists={self.exists})"


class QuerySnapshot:
    """The documents returned by a query."""

    def __init__(self, query: Query, docs: List[DocumentSnapshot], read_time: Optional[str] = None):
        self.query = query
        self.docs = docs
        self.read_time = read_time

    @property
    def size(self) -> int:
        return len(self.docs)

    @property
    def empty(self) -> bool:
        return not self.docs

    def __iter__(self) -> Iterator[DocumentSnapshot]:
        return iter(self.docs)

    def __len__(self) -> int:
        return len(self.docs)
