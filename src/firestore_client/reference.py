"""
Document and collection references and simple queries.
"""

from __future__ import annotations
import logging
import random
import string
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union, TYPE_CHECKING

from .runtime.codec import encode_value
from .runtime.errors import InvalidArgumentError
from .runtime.path import FieldPath, split_resource_path
from .snapshot import DocumentSnapshot, QuerySnapshot
from .util import request_tag

if TYPE_CHECKING:
    from .client import Firestore

logger = logging.getLogger(__name__)

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20

FILTER_OPERATORS = {
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "array-contains": "ARRAY_CONTAINS",
    "in": "IN",
    "not-in": "NOT_IN",
    "array-contains-any": "ARRAY_CONTAINS_ANY",
}

DIRECTIONS = ("ASCENDING", "DESCENDING")


def auto_id() -> str:
    """Generate a random 20 character document id."""
    return "".join(random.choice(_AUTO_ID_ALPHABET) for _ in range(_AUTO_ID_LENGTH))


class DocumentReference:
    """A reference to a document location. The document may or may not exist."""

    def __init__(self, firestore: Firestore, path: str):
        segments = split_resource_path(path)
        if len(segments) % 2 != 0:
            raise InvalidArgumentError(
                f"Value for argument \"documentPath\" must point to a document, but was {path!r}. "
                "Your path does not contain an even number of components."
            )
        self._firestore = firestore
        self._segments = segments

    @property
    def firestore(self) -> Firestore:
        return self._firestore

    @property
    def id(self) -> str:
        return self._segments[-1]

    @property
    def path(self) -> str:
        """Slash-separated path relative to the database root."""
        return "/".join(self._segments)

    @property
    def formatted_name(self) -> str:
        """Fully qualified resource name."""
        return f"{self._firestore.formatted_name}/documents/{self.path}"

    @property
    def parent(self) -> CollectionReference:
        return CollectionReference(self._firestore, "/".join(self._segments[:-1]))

    def collection(self, collection_path: str) -> CollectionReference:
        """Get a reference to a subcollection of this document."""
        return CollectionReference(self._firestore, f"{self.path}/{collection_path}")

    async def get(self) -> DocumentSnapshot:
        """Read the document outside of any transaction."""
        snapshots = await self._firestore.get_all_([self], None, request_tag())
        return snapshots[0]

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, DocumentReference):
            return self._firestore is other._firestore and self._segments == other._segments
        return False

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"DocumentReference({self.path!r})"


def validate_document_reference(arg: Union[int, str], value: Any) -> DocumentReference:
    """
    Validate that a value is a DocumentReference.

    Raises:
        InvalidArgumentError: If it is not
    """
    if not isinstance(value, DocumentReference):
        if isinstance(arg, int):
            raise InvalidArgumentError(f"Element at index {arg} is not a valid DocumentReference.")
        raise InvalidArgumentError(f"Value for argument \"{arg}\" is not a valid DocumentReference.")
    return value


class Query:
    """
    A query over the documents of one collection.

    Queries are immutable; ``where``, ``order_by`` and ``limit`` return new
    queries.
    """

    def __init__(
        self,
        firestore: Firestore,
        parent_path: str,
        collection_id: str,
        filters: Tuple[Dict[str, Any], ...] = (),
        orders: Tuple[Dict[str, Any], ...] = (),
        limit: Optional[int] = None
    ):
        self._firestore = firestore
        self._parent_path = parent_path
        self._collection_id = collection_id
        self._filters = filters
        self._orders = orders
        self._limit = limit

    @property
    def firestore(self) -> Firestore:
        return self._firestore

    @property
    def parent_name(self) -> str:
        """Resource name of the document (or database root) the collection lives under."""
        root = f"{self._firestore.formatted_name}/documents"
        return f"{root}/{self._parent_path}" if self._parent_path else root

    def _copy(self, **overrides: Any) -> Query:
        fields = {
            "filters": self._filters,
            "orders": self._orders,
            "limit": self._limit,
        }
        fields.update(overrides)
        return Query(self._firestore, self._parent_path, self._collection_id, **fields)

    def where(self, field_path: Union[str, Sequence[str], FieldPath], op: str, value: Any) -> Query:
        """Add a field filter."""
        if op not in FILTER_OPERATORS:
            raise InvalidArgumentError(
                f"Invalid value for argument \"opStr\". Acceptable values are: {', '.join(FILTER_OPERATORS)}"
            )
        field_filter = {
            "fieldFilter": {
                "field": {"fieldPath": FieldPath.from_argument(field_path).formatted_name()},
                "op": FILTER_OPERATORS[op],
                "value": encode_value(value),
            }
        }
        return self._copy(filters=self._filters + (field_filter,))

    def order_by(self, field_path: Union[str, Sequence[str], FieldPath], direction: str = "ASCENDING") -> Query:
        """Add an ordering."""
        direction = direction.upper()
        if direction not in DIRECTIONS:
            raise InvalidArgumentError(
                f"Invalid value for argument \"directionStr\". Acceptable values are: {', '.join(DIRECTIONS)}"
            )
        order = {
            "field": {"fieldPath": FieldPath.from_argument(field_path).formatted_name()},
            "direction": direction,
        }
        return self._copy(orders=self._orders + (order,))

    def limit(self, count: int) -> Query:
        """Return at most ``count`` documents."""
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise InvalidArgumentError("Value for argument \"limit\" must be a non-negative integer.")
        return self._copy(limit=count)

    def to_structured_query(self) -> Dict[str, Any]:
        """Build the REST ``StructuredQuery`` for this query."""
        structured: Dict[str, Any] = {"from": [{"collectionId": self._collection_id}]}
        if len(self._filters) == 1:
            structured["where"] = self._filters[0]
        elif self._filters:
            structured["where"] = {"compositeFilter": {"op": "AND", "filters": list(self._filters)}}
        if self._orders:
            structured["orderBy"] = list(self._orders)
        if self._limit is not None:
            structured["limit"] = self._limit
        return structured

    async def get(self) -> QuerySnapshot:
        """Run the query outside of any transaction."""
        return await self._get()

    async def _get(self, transaction_id: Optional[bytes] = None) -> QuerySnapshot:
        """
        Run the query, optionally inside a transaction.

        Args:
            transaction_id: Handle of the transaction to read in

        Returns:
            QuerySnapshot with the matching documents
        """
        tag = request_tag()
        request: Dict[str, Any] = {
            "parent": self.parent_name,
            "structuredQuery": self.to_structured_query(),
        }
        if transaction_id is not None:
            request["transaction"] = transaction_id

        responses = await self._firestore.request("runQuery", request, tag)

        docs: List[DocumentSnapshot] = []
        read_time = None
        for response in responses or []:
            read_time = response.get("readTime", read_time)
            document = response.get("document")
            if document is None:
                continue
            ref = self._firestore.doc_from_name(document["name"])
            docs.append(DocumentSnapshot.from_document(ref, document, read_time))

        logger.debug(f"[{tag}] Query on {self._collection_id!r} returned {len(docs)} documents")
        return QuerySnapshot(self, docs, read_time)


class CollectionReference(Query):
    """A reference to a collection; also the query over all its documents."""

    def __init__(self, firestore: Firestore, path: str):
        segments = split_resource_path(path)
        if len(segments) % 2 != 1:
            raise InvalidArgumentError(
                f"Value for argument \"collectionPath\" must point to a collection, but was {path!r}. "
                "Your path does not contain an odd number of components."
            )
        super().__init__(firestore, "/".join(segments[:-1]), segments[-1])
        self._segments = segments

    @property
    def id(self) -> str:
        return self._segments[-1]

    @property
    def path(self) -> str:
        return "/".join(self._segments)

    def doc(self, document_id: Optional[str] = None) -> DocumentReference:
        """Get a reference to a document in this collection; a random id is used if none is given."""
        return DocumentReference(self._firestore, f"{self.path}/{document_id or auto_id()}")

    def __repr__(self) -> str:
        return f"CollectionReference({self.path!r})"
