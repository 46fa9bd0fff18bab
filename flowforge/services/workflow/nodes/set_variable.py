"""Set Variable Node.

Sets and manipulates run-scoped workflow variables.
"""

import json
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import Field

from flowforge.models.enums import NodeCategory
from flowforge.services.workflow.context import NodeExecutionContext
from flowforge.services.workflow.nodes.base import (
    BaseNode,
    NodeProperties,
    PortDefinition,
    resolve_path,
)

_EXPRESSION_BRACES = re.compile(r"\{\{|\}\}")


class VariableAssignment(NodeProperties):
    name: str = ""
    value: Any = ""
    type: Literal["string", "number", "boolean", "object", "array", "expression"] = "string"
    operation: Literal["set", "append", "prepend", "increment", "decrement"] = "set"


class SetVariableProperties(NodeProperties):
    variables: list[VariableAssignment] = Field(default_factory=list)
    keep_existing: bool = Field(default=True, alias="keepExisting")
    output_format: Literal["merge", "variables_only", "wrapped"] = Field(
        default="merge", alias="outputFormat"
    )


def parse_number(value: Any) -> int | float:
    """Convert a config value to a number.

    Raises:
        ValueError: If the value has no numeric reading.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return value
    text = "" if value is None else str(value).strip()
    if text == "":
        return 0
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise ValueError(f'Cannot convert "{value}" to number') from None


def number_or(value: Any, default: int | float) -> int | float:
    """Numeric reading of ``value``; ``default`` when it is zero or not a number."""
    try:
        number = parse_number(value)
    except (TypeError, ValueError):
        return default
    return number or default


class SetVariableNode(BaseNode):
    """Writes each configured variable into the run variables.

    Each assignment's value is converted according to its ``type`` and then
    combined with the current value (run variable first, then the input
    field of the same name) according to its ``operation``. An assignment
    that fails to convert is logged and skipped; the others still apply.

    ``outputFormat``:
        merge: input fields overlaid with the variables (default)
        variables_only: just the variables
        wrapped: ``{data, variables: [names], timestamp}``
    """

    node_type = "SetVariable"
    category = NodeCategory.DATA
    description = "Set and manipulate workflow variables"
    inputs = (PortDefinition(name="input", type="any", description="Input data to process"),)
    outputs = (PortDefinition(name="output", type="object", description="Output with set variables"),)
    properties_schema = SetVariableProperties

    async def execute(self, context: NodeExecutionContext) -> dict[str, Any]:
        props: SetVariableProperties = self.properties
        raw_input = context.get_input_data()
        input_data: dict[str, Any] = dict(raw_input) if isinstance(raw_input, Mapping) else {}

        context.log(
            "info",
            f"Setting {len(props.variables)} variables",
            {"outputFormat": props.output_format},
        )

        processed: dict[str, Any] = {}
        for assignment in props.variables:
            if not assignment.name:
                continue
            try:
                value = self.process_variable(assignment, input_data, context)
            except (TypeError, ValueError) as e:
                context.log(
                    "warn",
                    f"Failed to set variable: {assignment.name}",
                    {"error": str(e)},
                )
                continue
            context.set_variable(assignment.name, value)
            processed[assignment.name] = value

        merged = {**input_data, **processed} if props.keep_existing else dict(processed)

        match props.output_format:
            case "variables_only":
                output: dict[str, Any] = processed
            case "wrapped":
                output = {
                    "data": merged,
                    "variables": list(processed),
                    "timestamp": datetime.now(UTC).isoformat(),
                }
            case _:
                output = merged

        context.log("info", "Variables set successfully", {"count": len(processed)})
        return {"output": output}

    def process_variable(
        self,
        assignment: VariableAssignment,
        input_data: dict[str, Any],
        context: NodeExecutionContext,
    ) -> Any:
        current = context.get_variable(assignment.name)
        if current is None:
            current = input_data.get(assignment.name)

        value = self.process_value(assignment.value, assignment.type, input_data, context)

        match assignment.operation:
            case "append":
                if isinstance(current, list):
                    return [*current, value]
                if isinstance(current, str) and isinstance(value, str):
                    return current + value
                return [v for v in (current, value) if v is not None]
            case "prepend":
                if isinstance(current, list):
                    return [value, *current]
                if isinstance(current, str) and isinstance(value, str):
                    return value + current
                return [v for v in (value, current) if v is not None]
            case "increment":
                return number_or(current, 0) + number_or(value, 1)
            case "decrement":
                return number_or(current, 0) - number_or(value, 1)
        return value

    def process_value(
        self,
        value: Any,
        value_type: str,
        input_data: dict[str, Any],
        context: NodeExecutionContext,
    ) -> Any:
        if value_type == "expression" or (isinstance(value, str) and value.startswith("{{")):
            return self.evaluate_expression(value, input_data, context)

        match value_type:
            case "string":
                if isinstance(value, bool):
                    return "true" if value else "false"
                return "" if value is None else str(value)
            case "number":
                return parse_number(value)
            case "boolean":
                if isinstance(value, str):
                    lowered = value.strip().lower()
                    if lowered in ("true", "1", "yes"):
                        return True
                    if lowered in ("false", "0", "no"):
                        return False
                return bool(value)
            case "object":
                if isinstance(value, Mapping | list):
                    return value
                if isinstance(value, str):
                    try:
                        return json.loads(value)
                    except json.JSONDecodeError:
                        raise ValueError(f'Cannot parse "{value}" as JSON object') from None
                return {}
            case "array":
                if isinstance(value, list):
                    return value
                if isinstance(value, str):
                    try:
                        parsed = json.loads(value)
                    except json.JSONDecodeError:
                        return [part.strip() for part in value.split(",")]
                    return parsed if isinstance(parsed, list) else [parsed]
                return [value]
        return value

    def evaluate_expression(
        self,
        expression: Any,
        input_data: dict[str, Any],
        context: NodeExecutionContext,
    ) -> Any:
        """Resolve ``{{path}}`` against the input, then variables, then input keys.

        Unresolvable expressions evaluate to themselves.
        """
        reference = _EXPRESSION_BRACES.sub("", str(expression)).strip()

        if "." in reference:
            return resolve_path(input_data, reference)

        variable = context.get_variable(reference)
        if variable is not None:
            return variable

        if reference in input_data:
            return input_data[reference]

        return expression
