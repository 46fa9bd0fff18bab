"""Pydantic schemas for workflow definitions and run records.

Exports all schemas for convenient importing.
"""

from flowforge.schemas.base import BaseSchema, SnapshotSchema

# Execution schemas
from flowforge.schemas.execution import (
    DispatchResult,
    ExecutionErrorRecord,
    ExecutionOptions,
    ExecutionResult,
    ExecutionSummary,
    LogEntry,
    NodeExecutionSummary,
)
from flowforge.schemas.validation import ValidationResult

# Workflow schemas
from flowforge.schemas.workflow import Connection, WorkflowDefinition, WorkflowNode

__all__ = [
    # Base schemas
    "BaseSchema",
    "SnapshotSchema",
    # Workflow schemas
    "Connection",
    "WorkflowDefinition",
    "WorkflowNode",
    # Execution schemas
    "DispatchResult",
    "ExecutionErrorRecord",
    "ExecutionOptions",
    "ExecutionResult",
    "ExecutionSummary",
    "LogEntry",
    "NodeExecutionSummary",
    # Validation
    "ValidationResult",
]
