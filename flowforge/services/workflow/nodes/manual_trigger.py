"""Manual Trigger Node.

Seeds a run with the caller's trigger input merged over configured data.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import Field

from flowforge.models.enums import NodeCategory
from flowforge.services.workflow.context import NodeExecutionContext
from flowforge.services.workflow.nodes.base import BaseNode, NodeProperties, PortDefinition


class ManualTriggerProperties(NodeProperties):
    trigger_data: dict[str, Any] = Field(default_factory=dict, alias="triggerData")
    description: str = "Manual trigger"


class ManualTriggerNode(BaseNode):
    """Trigger node started by an explicit execute_workflow call.

    Output (``output`` port):
        trigger: always ``"manual"``
        timestamp: ISO-8601 time of the dispatch
        description: configured description
        data: configured ``triggerData`` overlaid with the trigger input
        executionId: id of the run
    """

    node_type = "ManualTrigger"
    category = NodeCategory.TRIGGER
    description = "Manually trigger workflow execution"
    inputs = ()
    outputs = (PortDefinition(name="output", type="object", description="Trigger execution data"),)
    properties_schema = ManualTriggerProperties

    async def execute(self, context: NodeExecutionContext) -> dict[str, Any]:
        props: ManualTriggerProperties = self.properties
        trigger_input = context.get_input_data()

        data = dict(props.trigger_data)
        if isinstance(trigger_input, Mapping):
            data.update(trigger_input)
        elif trigger_input is not None:
            data["input"] = trigger_input

        context.log("info", "Manual trigger executed")

        return {
            "output": {
                "trigger": "manual",
                "timestamp": datetime.now(UTC).isoformat(),
                "description": props.description,
                "data": data,
                "executionId": context.execution_id,
            }
        }
