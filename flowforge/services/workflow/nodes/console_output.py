"""Console Output Node.

Writes its input to the run log for debugging and passes it through.
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import Field

from flowforge.models.enums import NodeCategory
from flowforge.services.workflow.context import NodeExecutionContext
from flowforge.services.workflow.nodes.base import BaseNode, NodeProperties, PortDefinition
from flowforge.services.workflow.nodes.errors import NodeOperationError


class ConsoleOutputProperties(NodeProperties):
    log_level: Literal["log", "info", "warn", "error", "debug"] = Field(
        default="info", alias="logLevel"
    )
    message: str = ""
    include_timestamp: bool = Field(default=True, alias="includeTimestamp")
    include_node_info: bool = Field(default=True, alias="includeNodeInfo")
    format_output: Literal["pretty", "compact", "string", "summary"] = Field(
        default="pretty", alias="formatOutput"
    )
    pass_through: bool = Field(default=True, alias="passThrough")


def summarize(data: Any) -> str:
    """One-line description of a value's shape."""
    if data is None:
        return "null"
    if isinstance(data, bool):
        return f"Boolean: {str(data).lower()}"
    if isinstance(data, str):
        suffix = "..." if len(data) > 50 else ""
        return f'String ({len(data)} chars): "{data[:50]}{suffix}"'
    if isinstance(data, int | float):
        return f"Number: {data}"
    if isinstance(data, list):
        items = ", ".join(f'"{item}"' if isinstance(item, str) else str(item) for item in data[:3])
        suffix = "..." if len(data) > 3 else ""
        return f"Array ({len(data)} items): [{items}{suffix}]"
    if isinstance(data, Mapping):
        keys = list(data.keys())
        suffix = "..." if len(keys) > 3 else ""
        return f"Object ({len(keys)} keys): {{{', '.join(str(k) for k in keys[:3])}{suffix}}}"
    return f"{type(data).__name__}: {str(data)[:100]}"


class ConsoleOutputNode(BaseNode):
    """Logs formatted input through the run logger.

    With ``passThrough`` (default) the input is forwarded on ``output`` with a
    ``_console`` metadata entry added; mapping inputs are extended in place,
    other values are wrapped under ``data``.
    """

    node_type = "ConsoleOutput"
    category = NodeCategory.ACTION
    description = "Output data to console for debugging"
    inputs = (
        PortDefinition(name="input", type="any", required=True, description="Data to output to console"),
    )
    outputs = (
        PortDefinition(name="output", type="object", description="Pass-through data with console metadata"),
    )
    properties_schema = ConsoleOutputProperties

    async def execute(self, context: NodeExecutionContext) -> dict[str, Any]:
        props: ConsoleOutputProperties = self.properties
        input_data = context.get_input_data()
        timestamp = datetime.now(UTC).isoformat()

        try:
            formatted = self.format_data(input_data, props.format_output)
        except (TypeError, ValueError) as e:
            raise NodeOperationError(
                node_type=self.node_type,
                node_id=self.id,
                message=f"Console output formatting failed: {e}",
                code="OUTPUT_ERROR",
            ) from e

        prefix = self.build_prefix(props, timestamp)
        context.log(
            props.log_level,
            f"{prefix}\n{formatted}" if prefix else formatted,
            {"format": props.format_output},
        )

        console_meta = {"logged": True, "timestamp": timestamp, "logLevel": props.log_level}

        if not props.pass_through:
            return {
                "output": {
                    "logged": True,
                    "logLevel": props.log_level,
                    "timestamp": timestamp,
                    "message": props.message or "Console output",
                    "nodeId": self.id,
                }
            }

        if isinstance(input_data, Mapping):
            return {"output": {**input_data, "_console": console_meta}}
        return {"output": {"data": input_data, "_console": console_meta}}

    def build_prefix(self, props: ConsoleOutputProperties, timestamp: str) -> str:
        parts: list[str] = []
        if props.include_timestamp:
            parts.append(f"[{timestamp}]")
        if props.include_node_info:
            parts.append(f"[{self.node_type}:{self.id[:8]}]")
        if props.message:
            parts.append(props.message)
        return " ".join(parts)

    @staticmethod
    def format_data(data: Any, format_output: str) -> str:
        if format_output == "compact":
            return json.dumps(data, default=str, separators=(",", ":"))
        if format_output == "string":
            return str(data)
        if format_output == "summary":
            return summarize(data)
        return json.dumps(data, default=str, indent=2)
