"""nodeflow evaluates graphs of typed nodes wired through typed sockets.

Nodes are created through a NodeRegistry, connected output-to-input, and run on
demand: run_flow() drives every end node concurrently, computing each upstream node
at most once and reporting a result or an error per end node.
"""

from .engine import ExecutionCache, execute_node
from .errors import CyclicGraph, GraphError, NodeflowError, NotRegistered, ProcessFailure
from .ir import Connection, Graph, MultiOutput, Node, NodeKind, Socket
from .registry import NodeRegistry, SocketIdAllocator, default_registry
from .runner import FlowResult, FlowRun, find_end_nodes, run_flow
from .validator import topological_order, validate_graph

__version__ = "0.1.0"
