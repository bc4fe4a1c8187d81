from __future__ import annotations
import asyncio
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from .engine import ExecutionCache, execute_node
from .errors import GraphError
from .ir import Connection, MultiOutput, Node
from .logging import get_logger
from .registry import NodeRegistry
from .validator import ensure_acyclic

logger = get_logger(__name__)


class FlowResult(BaseModel):
    node_id: str
    title: str
    result: Any = None
    error: Optional[str] = None
    execution_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class FlowRun(BaseModel):
    results: List[FlowResult]
    nodes: List[Node] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    def result_for(self, node_id: str) -> FlowResult:
        return next(r for r in self.results if r.node_id == str(node_id))


def find_end_nodes(nodes: Sequence[Node], connections: Sequence[Connection]) -> List[Node]:
    used = {c.from_socket for c in connections}
    return [n for n in nodes if all(s.id not in used for s in n.outputs())]


def plain_value(value: Any) -> Any:
    if isinstance(value, MultiOutput):
        return value.to_dict()
    return value


async def run_flow(nodes: Sequence[Node], connections: Sequence[Connection], *,
                   sinks: Optional[Sequence[Node]] = None,
                   on_node_complete: Optional[Callable[[Node, Any], None]] = None,
                   on_node_error: Optional[Callable[[Node, str], None]] = None,
                   on_progress: Optional[Callable[[int, int], None]] = None) -> FlowRun:
    """Execute every sink concurrently on one shared cache; each sink fails on its own."""
    ensure_acyclic(nodes, connections)

    sinks = list(sinks) if sinks is not None else find_end_nodes(nodes, connections)
    if not sinks:
        raise GraphError("No end nodes found. A flow needs at least one node with unused outputs.")
    logger.info("Running flow", sinks=len(sinks), nodes=len(nodes))

    node_map = {n.id: n for n in nodes}
    missing = [s.id for s in sinks if s.id not in node_map]
    if missing:
        raise GraphError(f"Unknown sink node(s): {', '.join(missing)}")
    done = 0

    def settled(node_id: str, value: Any, error: Optional[BaseException]) -> None:
        nonlocal done
        done += 1
        node = node_map[node_id]
        if error is None:
            if on_node_complete:
                on_node_complete(node, value)
        elif on_node_error:
            on_node_error(node, str(error))
        if on_progress:
            # only nodes a consumer actually pulled are counted
            on_progress(done, len(cache))

    cache = ExecutionCache(on_settled=settled)

    async def run_sink(sink: Node) -> FlowResult:
        start = time.perf_counter()
        try:
            value = await execute_node(sink, nodes, connections, cache)
        except Exception as e:
            logger.warning("Sink failed", node_id=sink.id, title=sink.title, error=str(e))
            return FlowResult(node_id=sink.id, title=sink.title, error=str(e),
                              execution_time=time.perf_counter() - start)
        return FlowResult(node_id=sink.id, title=sink.title, result=plain_value(value),
                          execution_time=time.perf_counter() - start)

    results = await asyncio.gather(*(run_sink(s) for s in sinks))

    values = cache.results()
    errors = {r.node_id: r.error for r in results if not r.ok}
    updated = []
    for node in nodes:
        if node.id in values:
            updated.append(node.model_copy(update={"result": plain_value(values[node.id])}))
        elif node.id in errors:
            updated.append(node.model_copy(update={"result": f"Error: {errors[node.id]}"}))
        else:
            updated.append(node)
    return FlowRun(results=list(results), nodes=updated)


def run_graph(file: Path, registry: Optional[NodeRegistry] = None,
              sinks: Optional[Sequence[str]] = None) -> FlowRun:
    """Load a flow description and run it to completion."""
    from .generator import load_graph

    g = load_graph(file, registry)
    selected = None
    if sinks:
        node_map = g.node_map()
        missing = [s for s in sinks if s not in node_map]
        if missing:
            raise GraphError(f"Unknown sink node(s): {', '.join(missing)}")
        selected = [node_map[s] for s in sinks]
    return asyncio.run(run_flow(g.nodes, g.connections, sinks=selected))
