from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import networkx as nx

from .errors import CyclicGraph
from .ir import Connection, Graph, Node
from .logging import get_logger
from .registry import NodeRegistry

logger = get_logger(__name__)


def dependency_graph(nodes: Sequence[Node], connections: Sequence[Connection]) -> nx.DiGraph:
    """Edge u -> v means v consumes an output of u."""
    owner = {s.id: n.id for n in nodes for s in n.sockets}
    nxg = nx.DiGraph()
    nxg.add_nodes_from(n.id for n in nodes)
    for c in connections:
        source, target = owner.get(c.from_socket), owner.get(c.to_socket)
        if source is not None and target is not None:
            nxg.add_edge(source, target)
    return nxg


def find_cycle(nodes: Sequence[Node], connections: Sequence[Connection]) -> Optional[List[str]]:
    try:
        edges = nx.find_cycle(dependency_graph(nodes, connections))
    except nx.NetworkXNoCycle:
        return None
    return [u for u, _ in edges]


def ensure_acyclic(nodes: Sequence[Node], connections: Sequence[Connection]) -> None:
    cycle = find_cycle(nodes, connections)
    if cycle is not None:
        raise CyclicGraph(cycle)


def topological_order(nodes: Sequence[Node], connections: Sequence[Connection]) -> List[Node]:
    """Dependencies first. A cyclic graph falls back to left-to-right (x) order."""
    node_map = {n.id: n for n in nodes}
    try:
        order = list(nx.topological_sort(dependency_graph(nodes, connections)))
    except nx.NetworkXUnfeasible:
        logger.warning("Cycle detected in node graph, falling back to x-position ordering")
        return sorted(nodes, key=lambda n: n.x)
    logger.debug("Topological order", order=order)
    return [node_map[nid] for nid in order]


def validate_graph(g: Graph) -> Tuple[bool, List[str]]:
    messages: List[str] = []
    ok = True

    node_ids = [n.id for n in g.nodes]
    # 1) Unique node ids
    if len(set(node_ids)) != len(node_ids):
        ok = False
        messages.append("ERR: Duplicate node IDs detected.")
    else:
        messages.append("OK: Node IDs are unique.")

    # 2) Unique socket ids across the whole graph
    socket_ids = [s.id for n in g.nodes for s in n.sockets]
    if len(set(socket_ids)) != len(socket_ids):
        ok = False
        messages.append("ERR: Duplicate socket IDs detected.")
    else:
        messages.append("OK: Socket IDs are unique.")

    # 3) Connections refer to existing sockets, output -> input
    sockets = {s.id: s for n in g.nodes for s in n.sockets}
    endpoints_ok = True
    for c in g.connections:
        src, dst = sockets.get(c.from_socket), sockets.get(c.to_socket)
        if src is None or dst is None:
            endpoints_ok = False
            messages.append(f"ERR: Connection {c.from_socket}->{c.to_socket} references missing socket(s).")
            continue
        if src.direction != "output":
            endpoints_ok = False
            messages.append(f"ERR: Connection from {src.node_id}.{src.key} does not start at an output.")
        if dst.direction != "input":
            endpoints_ok = False
            messages.append(f"ERR: Connection to {dst.node_id}.{dst.key} does not end at an input.")
    if endpoints_ok:
        messages.append("OK: All connections run from an output to an input.")
    ok = ok and endpoints_ok

    # 4) At most one connection per input socket
    seen = set()
    fan_in_ok = True
    for c in g.connections:
        if c.to_socket in seen:
            fan_in_ok = False
            dst = sockets.get(c.to_socket)
            where = f"{dst.node_id}.{dst.key}" if dst else c.to_socket
            messages.append(f"ERR: Input {where} has more than one incoming connection.")
        seen.add(c.to_socket)
    if fan_in_ok:
        messages.append("OK: Every input has at most one incoming connection.")
    ok = ok and fan_in_ok

    # 5) Acyclic check
    cycle = find_cycle(g.nodes, g.connections)
    if cycle is None:
        messages.append("OK: Graph is acyclic.")
    else:
        ok = False
        messages.append(f"ERR: Cycle detected in the graph: {' -> '.join(cycle + cycle[:1])}.")

    return ok, messages


def validate_graph_from_file(path: Path, registry: Optional[NodeRegistry] = None) -> Tuple[bool, List[str]]:
    from .generator import load_graph

    return validate_graph(load_graph(path, registry))
