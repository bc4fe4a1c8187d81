"""
Pull-based execution of a node graph.

execute_node() resolves a node by pulling upstream values on demand. Every node's
evaluation is an asyncio task stored in an ExecutionCache; the task is registered
before anything awaits, so concurrent requests for the same node (two sinks sharing
an ancestor, the two arms of a diamond) wait on one task and the node's process runs
at most once per cache.
"""

from __future__ import annotations
import asyncio
from typing import Any, Callable, Dict, Optional, Sequence

from .errors import GraphError, ProcessFailure
from .ir import Connection, MultiOutput, Node, find_node, find_socket, incoming_connection
from .logging import get_logger
from .nodes import process_node
from .validator import ensure_acyclic

logger = get_logger(__name__)

SettledCallback = Callable[[str, Any, Optional[BaseException]], None]


class ExecutionCache:
    """Per-run memo of node id -> task producing that node's value."""

    def __init__(self, on_settled: Optional[SettledCallback] = None):
        self._tasks: Dict[str, asyncio.Future] = {}
        self._on_settled = on_settled
        self.checked = False

    def get(self, node_id: str) -> Optional[asyncio.Future]:
        return self._tasks.get(node_id)

    def register(self, node_id: str, task: asyncio.Future) -> None:
        if node_id in self._tasks:
            raise GraphError(f"Node '{node_id}' is already registered in this execution")
        self._tasks[node_id] = task
        if self._on_settled is not None:
            task.add_done_callback(lambda t: self._settled(node_id, t))

    def _settled(self, node_id: str, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        self._on_settled(node_id, None if error else task.result(), error)

    def results(self) -> Dict[str, Any]:
        """Values of every node that has finished successfully so far."""
        return {nid: t.result() for nid, t in self._tasks.items()
                if t.done() and not t.cancelled() and t.exception() is None}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)


async def execute_node(node: Node, nodes: Sequence[Node], connections: Sequence[Connection],
                       cache: Optional[ExecutionCache] = None) -> Any:
    if cache is None:
        cache = ExecutionCache()
    if not cache.checked:
        # a cycle would leave two tasks awaiting each other forever
        ensure_acyclic(nodes, connections)
        cache.checked = True

    pending = cache.get(node.id)
    if pending is not None:
        logger.debug("Waiting for cached result", node_id=node.id, title=node.title)
        return await pending

    task = asyncio.ensure_future(_run(node, nodes, connections, cache))
    cache.register(node.id, task)
    return await task


async def _run(node: Node, nodes: Sequence[Node], connections: Sequence[Connection],
               cache: ExecutionCache) -> Any:
    async def get_input_value(socket_id: str) -> Any:
        conn = incoming_connection(socket_id, connections)
        if conn is None:
            return None
        source_socket = find_socket(conn.from_socket, nodes)
        if source_socket is None:
            return None
        source = find_node(source_socket.node_id, nodes)
        if source is None:
            return None

        result = await execute_node(source, nodes, connections, cache)
        if isinstance(result, MultiOutput):
            # a missing key hands over the whole result
            return result[conn.from_socket] if conn.from_socket in result else result
        return result

    logger.debug("Starting node", node_id=node.id, title=node.title)
    try:
        result = await process_node(node, get_input_value)
    except ProcessFailure:
        raise
    except Exception as e:
        logger.debug("Node failed", node_id=node.id, title=node.title, error=str(e))
        raise ProcessFailure(node.id, node.title, e) from e
    logger.debug("Completed node", node_id=node.id, title=node.title)
    return result
