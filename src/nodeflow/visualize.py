from __future__ import annotations
from pathlib import Path
from typing import Optional

from .generator import load_graph
from .ir import Graph
from .registry import NodeRegistry
from .validator import find_cycle, topological_order


def ascii_plan(g: Graph) -> str:
    sockets = {s.id: s for n in g.nodes for s in n.sockets}
    cyclic = find_cycle(g.nodes, g.connections) is not None
    order = topological_order(g.nodes, g.connections)

    title = "left-to-right order, graph has a cycle" if cyclic else "topological order"
    lines = [f"# ASCII Plan ({title})"]
    for i, node in enumerate(order, 1):
        lines.append(f"{i:02d}. {node.id} [{node.type.value}] {node.title}")
        for out in node.outputs():
            for c in g.connections:
                if c.from_socket != out.id:
                    continue
                dst = sockets.get(c.to_socket)
                if dst is not None:
                    lines.append(f"    └─▶ {dst.node_id}  ({out.key}->{dst.key})")
    return "\n".join(lines)


def ascii_plan_from_file(path: Path, registry: Optional[NodeRegistry] = None) -> str:
    return ascii_plan(load_graph(path, registry))
