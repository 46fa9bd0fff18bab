"""Enumerations shared by schemas and services."""

from flowforge.models.enums import EventType, ExecutionStatus, NodeCategory, NodeStatus

__all__ = [
    "EventType",
    "ExecutionStatus",
    "NodeCategory",
    "NodeStatus",
]
