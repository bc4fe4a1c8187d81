import pytest

from nodeflow.ir import Connection
from nodeflow.registry import default_registry


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def make(registry):
    """Create a node and apply value/config overrides in one call."""
    def _make(type_name, node_id, value=None, x=0, **config):
        node = registry.create(type_name, node_id, (x, 0))
        if value is not None:
            node.value = value
        node.config.update(config)
        return node
    return _make


@pytest.fixture
def wire():
    def _wire(src, src_key, dst, dst_key):
        return Connection(from_socket=src.socket(src_key).id, to_socket=dst.socket(dst_key).id)
    return _wire


@pytest.fixture
def count_process(monkeypatch):
    """Count process calls per node id while keeping the real behaviour."""
    import nodeflow.engine as engine

    calls = {}
    original = engine.process_node

    async def counting(node, get_input):
        calls[node.id] = calls.get(node.id, 0) + 1
        return await original(node, get_input)

    monkeypatch.setattr(engine, "process_node", counting)
    return calls
