from __future__ import annotations
from typing import List, Optional


class NodeflowError(Exception):
    """Base class for every error raised by nodeflow."""


class NotRegistered(NodeflowError):
    def __init__(self, type_name: str, available: Optional[List[str]] = None):
        self.type_name = type_name
        msg = f"Node type '{type_name}' is not registered"
        if available:
            msg += f". Registered: {', '.join(sorted(available))}"
        super().__init__(msg)


class GraphError(NodeflowError):
    """The graph description itself is unusable (bad references, nothing to run)."""


class CyclicGraph(NodeflowError):
    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Cycle detected in node graph: {path}")


class ProcessFailure(NodeflowError):
    def __init__(self, node_id: str, title: str, cause: BaseException):
        self.node_id = node_id
        self.title = title
        self.cause = cause
        super().__init__(f"{title} ({node_id}) failed: {cause}")
