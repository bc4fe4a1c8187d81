"""
Node type registry: type name -> factory building a Node with its sockets and defaults.

A registry is an ordinary object; build one with default_registry() at startup and
pass it to whatever creates nodes (loaders, templates, the CLI).
"""

from __future__ import annotations
import itertools
import re
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import NotRegistered
from .ir import Node, NodeKind, Socket

Position = Tuple[float, float]
NodeFactory = Callable[[str, Position, "SocketIdAllocator"], Node]

_ALLOCATED = re.compile(r"^s(\d+)$")


class SocketIdAllocator:
    """Hands out opaque socket ids that are unique for the allocator's lifetime."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)

    def next_id(self) -> str:
        return f"s{next(self._counter)}"

    def reserve(self, existing: Iterable[str]) -> None:
        # skip past ids already present in a reloaded graph
        highest = 0
        for sid in existing:
            m = _ALLOCATED.match(sid)
            if m:
                highest = max(highest, int(m.group(1)))
        current = next(self._counter)
        self._counter = itertools.count(max(current, highest + 1))


class NodeRegistry:
    def __init__(self, allocator: Optional[SocketIdAllocator] = None) -> None:
        self.allocator = allocator or SocketIdAllocator()
        self._factories: Dict[str, NodeFactory] = {}
        self._categories: Dict[str, str] = {}

    def register(self, type_name: str, factory: NodeFactory, category: str = "General") -> None:
        if not type_name or not type_name.strip():
            raise ValueError("type_name must be non-empty")
        type_name = type_name.strip()
        if type_name in self._factories:
            raise ValueError(f"Node type '{type_name}' is already registered")
        self._factories[type_name] = factory
        self._categories[type_name] = category

    def create(self, type_name: str, node_id: str, position: Position = (0, 0)) -> Node:
        factory = self._factories.get(type_name)
        if factory is None:
            raise NotRegistered(type_name, list(self._factories))
        return factory(str(node_id), position, self.allocator)

    def list_types(self) -> List[str]:
        return list(self._factories)

    def list_categories(self) -> List[str]:
        return list(dict.fromkeys(self._categories.values()))

    def list_types_by_category(self, category: str) -> List[str]:
        return [t for t, c in self._categories.items() if c == category]

    def add_input_socket(self, node: Node) -> Socket:
        """Append another numbered input to a Join node."""
        if node.type is not NodeKind.JOIN:
            raise ValueError(f"Only Join nodes accept extra inputs, got {node.type.value}")
        n = len(node.inputs()) + 1
        socket = Socket(id=self.allocator.next_id(), key=f"input{n}", title=f"Input {n}",
                        direction="input", node_id=node.id, data_type="unknown")
        # inputs stay ahead of the output socket
        node.sockets.insert(len(node.inputs()), socket)
        return socket

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._factories


def default_registry(allocator: Optional[SocketIdAllocator] = None) -> NodeRegistry:
    from .nodes import register_builtin_nodes

    registry = NodeRegistry(allocator)
    register_builtin_nodes(registry)
    return registry
