"""FlowForge workflow execution engine.

Runs node-based workflow graphs: validates a definition, instantiates its
nodes through a catalog and walks the graph from its trigger nodes.
"""

from flowforge.services.workflow import WorkflowEngine

__version__ = "0.1.0"

__all__ = [
    "WorkflowEngine",
    "__version__",
]
