"""
Field and resource paths.
"""

from __future__ import annotations
import re
from typing import Any, List, Sequence, Union

from .errors import InvalidArgumentError

_SIMPLE_SEGMENT = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*$")
_RESERVED_CHARACTERS = re.compile(r"[~*/\[\]]")

DOCUMENT_ID_SENTINEL = "__name__"


class FieldPath:
    """
    A path to a field in a document.

    Field paths are built from segments. A dotted string such as ``"a.b"``
    is split into ``["a", "b"]``; to address a field whose name contains a
    dot, pass the segments explicitly.
    """

    def __init__(self, *segments: str):
        if not segments:
            raise InvalidArgumentError("Function \"FieldPath()\" requires at least 1 argument.")
        for i, segment in enumerate(segments):
            if not isinstance(segment, str) or not segment:
                raise InvalidArgumentError(
                    f"Element at index {i} should not be an empty string."
                )
        self._segments = tuple(segments)

    @property
    def segments(self) -> List[str]:
        """Get a copy of the path segments."""
        return list(self._segments)

    @classmethod
    def document_id(cls) -> FieldPath:
        """A special path that refers to the ID of a document."""
        return cls(DOCUMENT_ID_SENTINEL)

    @classmethod
    def from_dotted_string(cls, path: str) -> FieldPath:
        """Split a dotted string into a field path."""
        if _RESERVED_CHARACTERS.search(path):
            raise InvalidArgumentError(
                f"Paths can't contain '~', '*', '/', '[', or ']'. Got: {path!r}"
            )
        if path.startswith(".") or path.endswith(".") or ".." in path:
            raise InvalidArgumentError(
                f"Paths must not start or end with '.' or contain '..'. Got: {path!r}"
            )
        return cls(*path.split("."))

    @classmethod
    def from_argument(cls, value: Union[str, Sequence[str], FieldPath]) -> FieldPath:
        """Convert a string, a list of segments or a FieldPath into a FieldPath."""
        if isinstance(value, FieldPath):
            return value
        if isinstance(value, str):
            return cls.from_dotted_string(value)
        if isinstance(value, (list, tuple)):
            return cls(*value)
        raise InvalidArgumentError(
            "Paths can only be specified as strings, lists of strings or via a FieldPath object."
        )

    def formatted_name(self) -> str:
        """Canonical string form, quoting segments that are not simple identifiers."""
        return ".".join(
            segment if _SIMPLE_SEGMENT.match(segment)
            else "`" + segment.replace("\\", "\\\\").replace("`", "\\`") + "`"
            for segment in self._segments
        )

    def __str__(self) -> str:
        return self.formatted_name()

    def __repr__(self) -> str:
        return f"FieldPath({', '.join(repr(s) for s in self._segments)})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FieldPath):
            return self._segments == other._segments
        return False

    def __hash__(self) -> int:
        return hash(self._segments)


def validate_field_path(arg: Union[int, str], value: Any) -> None:
    """
    Validate that a value can be used as a field path.

    Args:
        arg: Argument name or index, used in the error message
        value: Value to validate

    Raises:
        InvalidArgumentError: If the value is not a valid field path
    """
    try:
        FieldPath.from_argument(value)
    except InvalidArgumentError as e:
        raise InvalidArgumentError(
            f"Element at index {arg} is not a valid field path. {e.message}"
        ) from e


def split_resource_path(path: str) -> List[str]:
    """
    Split a slash-separated resource path into segments.

    Raises:
        InvalidArgumentError: If the path is empty or contains empty segments
    """
    if not isinstance(path, str) or not path.strip("/"):
        raise InvalidArgumentError(f"Resource path must be a non-empty string, got {path!r}")
    segments = path.strip("/").split("/")
    if any(not s for s in segments):
        raise InvalidArgumentError(f"Paths must not contain //. Got: {path!r}")
    return segments
