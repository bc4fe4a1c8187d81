from __future__ import annotations
from importlib.resources import files
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import GraphError
from .ir import Connection, Graph, Node, NodeKind
from .registry import NodeRegistry, default_registry


def _load_template_yaml(name: str) -> str:
    pkg = files('nodeflow.templates')
    return (pkg / f"{name}.yaml").read_text()


def list_templates() -> List[str]:
    pkg = files('nodeflow.templates')
    return sorted(p.name[:-len(".yaml")] for p in pkg.iterdir() if p.name.endswith(".yaml"))


def generate_graph_from_task(task: str, registry: Optional[NodeRegistry] = None) -> Graph:
    name = task.lower().replace('-', '_')
    available = list_templates()
    if name not in available:
        raise ValueError(f"Unknown task '{task}'. Use one of: {', '.join(available)}")
    data = yaml.safe_load(_load_template_yaml(name))
    return graph_from_document(data, registry)


def _create_node(item: Dict[str, Any], registry: NodeRegistry) -> Node:
    if "id" not in item or "type" not in item:
        raise GraphError(f"Node entries need an 'id' and a 'type': {item!r}")
    pos = item.get("position") or {}
    node = registry.create(item["type"], str(item["id"]), (pos.get("x", 0), pos.get("y", 0)))
    if "title" in item:
        node.title = str(item["title"])
    if "value" in item:
        node.value = item["value"]
    node.config.update(item.get("config") or {})

    if "inputs" in item:
        if node.type is not NodeKind.JOIN:
            raise GraphError(f"Node '{node.id}': only Join nodes take an 'inputs' count")
        while len(node.inputs()) < int(item["inputs"]):
            registry.add_input_socket(node)
    return node


def graph_from_document(data: Dict[str, Any], registry: Optional[NodeRegistry] = None) -> Graph:
    if not isinstance(data, dict):
        raise GraphError("A flow document must be a mapping with 'nodes' and 'connections'")
    registry = registry or default_registry()

    nodes: List[Node] = []
    by_id: Dict[str, Node] = {}
    for item in data.get("nodes") or []:
        node = _create_node(item, registry)
        if node.id in by_id:
            raise GraphError(f"Duplicate node id '{node.id}'")
        by_id[node.id] = node
        nodes.append(node)

    def resolve(ref: Any) -> str:
        # "<node id>.<socket key>"
        node_id, _, key = str(ref).rpartition(".")
        if node_id not in by_id:
            raise GraphError(f"Connection endpoint '{ref}' refers to an unknown node")
        try:
            return by_id[node_id].socket(key).id
        except KeyError as e:
            raise GraphError(f"Connection endpoint '{ref}': {e.args[0]}") from None

    connections = []
    for item in data.get("connections") or []:
        if "from" not in item or "to" not in item:
            raise GraphError(f"Connection entries need 'from' and 'to': {item!r}")
        connections.append(Connection(from_socket=resolve(item["from"]), to_socket=resolve(item["to"]),
                                      label=item.get("label")))

    metadata = {k: data[k] for k in ("name", "description") if k in data}
    return Graph(nodes=nodes, connections=connections, metadata=metadata)


def graph_to_document(graph: Graph) -> Dict[str, Any]:
    sockets = {s.id: s for n in graph.nodes for s in n.sockets}
    nodes = []
    for n in graph.nodes:
        entry: Dict[str, Any] = {"id": n.id, "type": n.type.value, "title": n.title, "value": n.value}
        if n.config:
            entry["config"] = dict(n.config)
        if n.type is NodeKind.JOIN:
            entry["inputs"] = len(n.inputs())
        entry["position"] = {"x": n.x, "y": n.y}
        nodes.append(entry)

    connections = []
    for c in graph.connections:
        src, dst = sockets[c.from_socket], sockets[c.to_socket]
        entry = {"from": f"{src.node_id}.{src.key}", "to": f"{dst.node_id}.{dst.key}"}
        if c.label:
            entry["label"] = c.label
        connections.append(entry)

    return {**graph.metadata, "nodes": nodes, "connections": connections}


def load_graph(path: Union[str, Path], registry: Optional[NodeRegistry] = None) -> Graph:
    data = yaml.safe_load(Path(path).read_text())
    return graph_from_document(data, registry)


def save_graph_yaml(graph: Graph, path: Path):
    path.write_text(yaml.safe_dump(graph_to_document(graph), sort_keys=False))
