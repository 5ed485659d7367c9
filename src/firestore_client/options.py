"""
Read options.
"""

from __future__ import annotations
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .runtime.errors import InvalidArgumentError
from .runtime.path import FieldPath, validate_field_path


class ReadOptions(BaseModel):
    """
    Options for multi-document reads.

    ``field_mask`` limits the returned fields; each entry is a dotted
    string, a list of path segments or a FieldPath.
    """
    field_mask: Optional[List[Any]] = Field(
        default=None,
        alias="fieldMask",
        description="Field paths to return"
    )

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    @field_validator("field_mask", mode="before")
    @classmethod
    def validate_field_mask(cls, v: Any) -> Optional[List[Any]]:
        """Check that every mask entry can be used as a field path."""
        if v is None:
            return None
        if not isinstance(v, (list, tuple)):
            raise ValueError("\"fieldMask\" is not an array.")
        for i, entry in enumerate(v):
            try:
                validate_field_path(i, entry)
            except InvalidArgumentError as e:
                raise ValueError(f"\"fieldMask\" is not valid: {e.message}") from e
        return list(v)

    def field_paths(self) -> Optional[List[FieldPath]]:
        """Convert the mask entries to FieldPaths (None if no mask was given)."""
        if self.field_mask is None:
            return None
        return [FieldPath.from_argument(entry) for entry in self.field_mask]
