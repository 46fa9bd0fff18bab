"""Pydantic schemas for workflow validation results."""

from __future__ import annotations

from pydantic import Field

from flowforge.schemas.base import SnapshotSchema


class ValidationResult(SnapshotSchema):
    """Outcome of a structural workflow validation.

    Attributes:
        valid: True when no blocking error was found.
        errors: Every blocking error, in detection order.
        warnings: Non-blocking findings (isolated nodes).
    """

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
