"""Pydantic models for recorded memories."""

import copy
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from shared.exceptions.errors import InvalidInput


class MemoryCategory(str, Enum):
    CAREER = "career"
    SKILLS = "skills"
    GOALS = "goals"
    PROFESSIONAL = "professional"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: "str | MemoryCategory") -> "MemoryCategory":
        """Parse a category supplied by a caller, raising InvalidInput when unknown."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            allowed = ", ".join(c.value for c in cls)
            raise InvalidInput(f"Unknown memory category '{raw}'. Allowed: {allowed}.")


class Memory(BaseModel):
    """A discrete fact recorded for one user.

    Memories are never edited. A superseding fact is recorded as a new memory and
    the importance score is fixed at write time. Metadata is copied on
    validation and exposed read-only.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    content: str
    category: MemoryCategory
    importance: float = Field(ge=0.0, le=1.0)
    metadata: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    created_at: datetime

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(copy.deepcopy(dict(value)))

    @field_serializer("metadata")
    def _dump_metadata(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return copy.deepcopy(dict(value))
