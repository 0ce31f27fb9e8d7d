"""Shared types, enums, and base models used across the domain models."""

from datetime import datetime, timezone
from enum import IntEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]
ActivityCodeStr = Annotated[
    str,
    Field(
        min_length=3,
        pattern=r"^\d+$",
        description="Zero-padded numeric economic-activity code.",
    ),
]
Confidence = Annotated[float, Field(ge=0.0, le=1.0)]


# --- Shared enums ---


class CodeLevel(IntEnum):
    """Depth of an economic-activity code in the three-level hierarchy."""

    MAJOR = 1
    INTERMEDIATE = 2
    SPECIFIC = 3


# --- Base model ---


class DirectoryBase(BaseModel):
    """Base model with common configuration for all domain Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "protected_namespaces": (),
    }
