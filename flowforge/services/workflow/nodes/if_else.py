"""If/Else Node.

Evaluates one condition against its input and emits on exactly one of the
``true`` / ``false`` ports, which is how the untaken branch is suppressed.
"""

import math
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
from flowforge.services.workflow.nodes.errors import NodeOperationError

Condition = Literal[
    "exists",
    "equals",
    "not_equals",
    "greater_than",
    "less_than",
    "contains",
    "starts_with",
    "ends_with",
    "is_empty",
    "is_number",
    "is_string",
    "custom",
]


class IfElseProperties(NodeProperties):
    condition: Condition = "exists"
    field: str = ""
    value: Any = ""
    custom_expression: str = Field(default="", alias="customExpression")
    pass_through: bool = Field(default=True, alias="passThrough")


def to_number(value: Any) -> float | None:
    """Numeric view of a value, or None when it has none.

    Booleans, None and blank strings are not numbers.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compare_values(left: Any, right: Any, operator: str) -> bool:
    """Compare numerically when both sides are numeric, else as text."""
    left_number, right_number = to_number(left), to_number(right)
    if left_number is not None and right_number is not None:
        a, b = left_number, right_number
    elif operator in ("==", "!="):
        a, b = left, right
        if isinstance(left, str) or isinstance(right, str):
            a, b = to_text(left), to_text(right)
    else:
        a, b = to_text(left), to_text(right)

    match operator:
        case "==":
            return a == b
        case "!=":
            return a != b
        case ">":
            return a > b
        case "<":
            return a < b
    raise ValueError(f"Unsupported operator: {operator}")


def is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, list | dict | tuple | set):
        return len(value) == 0
    if isinstance(value, int | float):
        return value == 0
    return to_text(value).strip() == ""


class IfElseNode(BaseNode):
    """Conditional branching node.

    ``field`` is a dot path into the input (empty means the whole input).
    With ``passThrough`` (default) the input is forwarded on the taken port;
    otherwise an evaluation report is emitted instead.

    ``custom`` conditions evaluate ``customExpression`` as a Python
    expression with ``data`` bound to the input and no builtins available.
    A custom expression that fails to evaluate counts as false.
    """

    node_type = "IfElse"
    category = NodeCategory.LOGIC
    description = "Conditional logic with if/else branching"
    inputs = (PortDefinition(name="input", type="any", required=True, description="Data to evaluate"),)
    outputs = (
        PortDefinition(name="true", type="any", description="Output when condition is true"),
        PortDefinition(name="false", type="any", description="Output when condition is false"),
    )
    properties_schema = IfElseProperties

    async def execute(self, context: NodeExecutionContext) -> dict[str, Any]:
        props: IfElseProperties = self.properties
        input_data = context.get_input_data()
        field_value = resolve_path(input_data, props.field)

        context.log(
            "info",
            f"Evaluating condition: {props.condition}",
            {"field": props.field, "compareValue": props.value},
        )

        try:
            result = self.evaluate(props, field_value, input_data, context)
        except (TypeError, ValueError) as e:
            raise NodeOperationError(
                node_type=self.node_type,
                node_id=self.id,
                message=f"If/Else execution failed: {e}",
                code="CONDITION_ERROR",
                details={"condition": props.condition, "field": props.field},
            ) from e

        context.log("info", f"Condition result: {result}", {"fieldValue": field_value})

        if props.pass_through:
            output = input_data
        else:
            output = {
                "result": result,
                "field": props.field,
                "fieldValue": field_value,
                "compareValue": props.value,
                "timestamp": datetime.now(UTC).isoformat(),
            }

        return {"true": output} if result else {"false": output}

    def evaluate(
        self,
        props: IfElseProperties,
        field_value: Any,
        input_data: Any,
        context: NodeExecutionContext,
    ) -> bool:
        compare = props.value
        match props.condition:
            case "exists":
                return field_value is not None
            case "equals":
                return compare_values(field_value, compare, "==")
            case "not_equals":
                return compare_values(field_value, compare, "!=")
            case "greater_than":
                return compare_values(field_value, compare, ">")
            case "less_than":
                return compare_values(field_value, compare, "<")
            case "contains":
                return to_text(compare).lower() in to_text(field_value).lower()
            case "starts_with":
                return to_text(field_value).lower().startswith(to_text(compare).lower())
            case "ends_with":
                return to_text(field_value).lower().endswith(to_text(compare).lower())
            case "is_empty":
                return is_empty(field_value)
            case "is_number":
                return to_number(field_value) is not None
            case "is_string":
                return isinstance(field_value, str)
            case "custom":
                return self.evaluate_custom(props.custom_expression, input_data, context)
        raise ValueError(f"Unknown condition type: {props.condition}")

    def evaluate_custom(self, expression: str, data: Any, context: NodeExecutionContext) -> bool:
        if not expression:
            return False
        eval_context = {
            **(data if isinstance(data, Mapping) else {}),
            "data": data,
            "true": True,
            "false": False,
            "null": None,
        }
        try:
            return bool(eval(expression, {"__builtins__": {}}, eval_context))
        except Exception as e:
            # A bad expression routes to the false branch
            context.log(
                "warn",
                "Custom expression evaluation failed",
                {"expression": expression, "error": str(e)},
            )
            return False
