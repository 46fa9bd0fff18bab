"""Base Pydantic schemas with common patterns.

This module defines the base schema classes shared by the workflow
definition and execution result schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration for all schemas.

    Configures Pydantic v2 settings for consistent behavior across all
    schemas. Fields accept both their Python name and their camelCase alias
    so JSON documents produced by the editor validate as-is.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class SnapshotSchema(BaseSchema):
    """Immutable schema for values handed back to callers."""

    model_config = ConfigDict(frozen=True)
