from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

Direction = Literal["input", "output"]
DataType = Literal["string", "number", "boolean", "json", "html", "embedding", "url", "unknown"]


class NodeKind(str, Enum):
    TEXT = "Text"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    IMAGE = "Image"
    ADD = "Add"
    JOIN = "Join"
    CHAT = "Chat"
    DELAY = "Delay"
    HASH = "Hash"
    IF_ELSE = "IfElse"


class Socket(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    key: str                      # slot name, unique within the owning node
    title: str
    direction: Direction
    node_id: str
    data_type: Optional[DataType] = None


class Connection(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_socket: str
    to_socket: str
    label: Optional[str] = None


class Node(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    type: NodeKind
    title: str
    x: float = 0
    y: float = 0
    sockets: List[Socket] = Field(default_factory=list)
    value: Any = None
    config: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None

    def inputs(self) -> List[Socket]:
        return [s for s in self.sockets if s.direction == "input"]

    def outputs(self) -> List[Socket]:
        return [s for s in self.sockets if s.direction == "output"]

    def socket(self, key: str) -> Socket:
        for s in self.sockets:
            if s.key == key:
                return s
        raise KeyError(f"Node '{self.id}' ({self.type.value}) has no socket '{key}'")


class MultiOutput(Mapping[str, Any]):
    """A node result keyed by the ids of the node's own output sockets."""

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    def __getitem__(self, socket_id: str) -> Any:
        return self._values[socket_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"MultiOutput({self._values!r})"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)


class Graph(BaseModel):
    nodes: List[Node]
    connections: List[Connection] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def node_map(self) -> Dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def find_node(self, node_id: str) -> Optional[Node]:
        return find_node(node_id, self.nodes)

    def find_socket(self, socket_id: str) -> Optional[Socket]:
        return find_socket(socket_id, self.nodes)

    def incoming(self, socket_id: str) -> Optional[Connection]:
        return incoming_connection(socket_id, self.connections)


def find_node(node_id: str, nodes: List[Node]) -> Optional[Node]:
    return next((n for n in nodes if n.id == node_id), None)


def find_socket(socket_id: str, nodes: List[Node]) -> Optional[Socket]:
    for node in nodes:
        for s in node.sockets:
            if s.id == socket_id:
                return s
    return None


def incoming_connection(socket_id: str, connections: List[Connection]) -> Optional[Connection]:
    return next((c for c in connections if c.to_socket == socket_id), None)
