"""
Built-in node kinds.

Each kind has a factory (sockets + defaults) registered under its type name, and a
branch in process_node() that computes the node's value from its upstream inputs.
A processor asks for inputs through get_input(socket_id), which yields None for an
unconnected socket; every kind decides its own default for that case.
"""

from __future__ import annotations
import asyncio
import hashlib
import math
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .config import get_settings
from .ir import MultiOutput, Node, NodeKind, Socket
from .llm import DEFAULT_MODELS, build_messages, complete_chat, sanitize_model
from .logging import get_logger
from .registry import NodeFactory, NodeRegistry, Position, SocketIdAllocator

logger = get_logger(__name__)

GetInput = Callable[[str], Awaitable[Any]]
SocketSpec = Tuple[str, str, str, str]  # key, title, direction, data type

PLACEHOLDER = "{{input}}"
DEFAULT_DELAY_MS = 1000
HASH_ALGORITHMS = {
    "MD5": hashlib.md5,
    "SHA1": hashlib.sha1,
    "SHA256": hashlib.sha256,
    "SHA512": hashlib.sha512,
}


def _factory(kind: NodeKind, title: str, value: Any, sockets: List[SocketSpec],
             config: Optional[dict] = None) -> NodeFactory:
    def create(node_id: str, position: Position, allocator: SocketIdAllocator) -> Node:
        x, y = position
        return Node(
            id=node_id,
            type=kind,
            title=title,
            x=x,
            y=y,
            value=value,
            config=dict(config or {}),
            sockets=[Socket(id=allocator.next_id(), key=key, title=stitle, direction=direction,
                            node_id=node_id, data_type=dtype)
                     for key, stitle, direction, dtype in sockets],
        )
    return create


BUILTIN_NODES = [
    # type name, category, factory
    ("Text", "Input", _factory(NodeKind.TEXT, "Text", PLACEHOLDER, [
        ("input", "Input", "input", "string"),
        ("output", "Output", "output", "string"),
    ])),
    ("Number", "Input", _factory(NodeKind.NUMBER, "Number", 0, [
        ("output", "Output", "output", "number"),
    ])),
    ("Boolean", "Input", _factory(NodeKind.BOOLEAN, "Boolean", False, [
        ("output", "Output", "output", "boolean"),
    ])),
    ("Image", "Input", _factory(NodeKind.IMAGE, "Image", "", [
        ("source", "Source", "input", "string"),
        ("output", "Output", "output", "string"),
    ])),
    ("Add", "Math", _factory(NodeKind.ADD, "Add", None, [
        ("a", "Input A", "input", "number"),
        ("b", "Input B", "input", "number"),
        ("result", "Result", "output", "number"),
    ], config={"a": 0, "b": 0})),
    ("Join", "Text", _factory(NodeKind.JOIN, "Join", " ", [
        ("input1", "Input 1", "input", "unknown"),
        ("input2", "Input 2", "input", "unknown"),
        ("output", "Output", "output", "string"),
    ])),
    ("Hash", "Text", _factory(NodeKind.HASH, "Hash", "SHA256", [
        ("input", "Input", "input", "string"),
        ("hash", "Hash", "output", "string"),
    ])),
    ("Chat", "AI", _factory(NodeKind.CHAT, "Chat", "gpt-4o-mini", [
        ("prompt", "Prompt", "input", "string"),
        ("system", "System Prompt", "input", "string"),
        ("response", "Response", "output", "string"),
        ("tokens", "Tokens", "output", "number"),
    ], config={"provider": "openai", "api_key": ""})),
    ("Delay", "Control", _factory(NodeKind.DELAY, "Delay", DEFAULT_DELAY_MS, [
        ("input", "Input", "input", "unknown"),
        ("output", "Output", "output", "unknown"),
    ])),
    ("IfElse", "Control", _factory(NodeKind.IF_ELSE, "If/Else", None, [
        ("condition", "Condition", "input", "boolean"),
        ("true", "True", "input", "unknown"),
        ("false", "False", "input", "unknown"),
        ("output", "Output", "output", "unknown"),
    ], config={"strict": False})),
]


def register_builtin_nodes(registry: NodeRegistry) -> None:
    for type_name, category, factory in BUILTIN_NODES:
        registry.register(type_name, factory, category)


async def render_template(template: str, get_input: GetInput, socket_id: str) -> str:
    if PLACEHOLDER not in template:
        return template
    value = await get_input(socket_id)
    return template.replace(PLACEHOLDER, "" if value is None else str(value))


def to_number(value: Any):
    if value is None or value is False or value == "":
        return 0
    if value is True:
        return 1
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise ValueError(f"Cannot convert {value!r} to a number") from None


def join_separator(value: Any) -> str:
    separator = str(value) if value else ""
    return separator.replace("(new line)", "\n").replace("\\n", "\n")


def delay_ms(value: Any) -> float:
    raw = str(value).strip().lower()
    if raw.endswith("ms"):
        raw = raw[:-2].strip()
    try:
        ms = float(raw)
    except ValueError:
        return DEFAULT_DELAY_MS
    if not math.isfinite(ms):
        return DEFAULT_DELAY_MS
    return max(0.0, ms)


async def process_node(node: Node, get_input: GetInput) -> Any:
    kind = node.type

    if kind is NodeKind.TEXT:
        if isinstance(node.value, str):
            return await render_template(node.value, get_input, node.socket("input").id)
        return node.value

    elif kind is NodeKind.NUMBER or kind is NodeKind.BOOLEAN:
        return node.value

    elif kind is NodeKind.IMAGE:
        source = await get_input(node.socket("source").id)
        return source if source is not None else node.value

    elif kind is NodeKind.ADD:
        a = await get_input(node.socket("a").id)
        b = await get_input(node.socket("b").id)
        a = to_number(node.config.get("a", 0) if a is None else a)
        b = to_number(node.config.get("b", 0) if b is None else b)
        return a + b

    elif kind is NodeKind.JOIN:
        values = await asyncio.gather(*(get_input(s.id) for s in node.inputs()))
        parts = ["" if v is None else str(v) for v in values]
        return join_separator(node.value).join(p for p in parts if p != "")

    elif kind is NodeKind.HASH:
        value = await get_input(node.socket("input").id)
        algorithm = HASH_ALGORITHMS.get(str(node.value or "").upper(), hashlib.sha256)
        digest = algorithm(("" if value is None else str(value)).encode("utf-8")).hexdigest()
        return MultiOutput({node.socket("hash").id: digest})

    elif kind is NodeKind.CHAT:
        return await _process_chat(node, get_input)

    elif kind is NodeKind.DELAY:
        value = await get_input(node.socket("input").id)
        ms = delay_ms(node.value)
        if ms > 0:
            await asyncio.sleep(ms / 1000)
        return MultiOutput({node.socket("output").id: value})

    elif kind is NodeKind.IF_ELSE:
        condition = await get_input(node.socket("condition").id)
        when_true = await get_input(node.socket("true").id)
        when_false = await get_input(node.socket("false").id)
        if node.config.get("strict"):
            chosen = when_true if condition is True else when_false
        else:
            chosen = when_true if condition else when_false
        return MultiOutput({node.socket("output").id: chosen})

    else:
        raise ValueError(f"No processor for node kind '{kind}'")


async def _process_chat(node: Node, get_input: GetInput) -> MultiOutput:
    settings = get_settings()
    prompt = await get_input(node.socket("prompt").id)
    system = await get_input(node.socket("system").id)
    response_id = node.socket("response").id
    tokens_id = node.socket("tokens").id

    provider = str(node.config.get("provider") or "openai").lower()
    model = sanitize_model(node.value, DEFAULT_MODELS.get(provider, settings.default_chat_model))
    api_key = node.config.get("api_key") or settings.api_key_for(provider) or ""
    messages = build_messages("" if prompt is None else str(prompt), "" if system is None else str(system))

    logger.info("Executing chat node", node_id=node.id, provider=provider, model=model)
    try:
        completion = await complete_chat(provider, model, messages, api_key, timeout=settings.chat_timeout)
    except Exception as e:
        # network and API failures stay inside this branch as an in-band error
        logger.warning("Chat node failed", node_id=node.id, error=str(e) or type(e).__name__)
        return MultiOutput({response_id: f"Error: {str(e) or type(e).__name__}", tokens_id: 0})
    return MultiOutput({response_id: completion.content, tokens_id: completion.total_tokens})
