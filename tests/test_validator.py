import pytest

from nodeflow.errors import CyclicGraph
from nodeflow.generator import generate_graph_from_task
from nodeflow.ir import Connection, Graph
from nodeflow.validator import ensure_acyclic, find_cycle, topological_order, validate_graph


def test_topological_order_puts_dependencies_first(make, wire):
    c = make("Text", "C")
    b = make("Text", "B")
    a = make("Text", "A")
    conns = [wire(a, "output", b, "input"), wire(b, "output", c, "input")]

    order = [n.id for n in topological_order([c, b, a], conns)]

    assert order == ["A", "B", "C"]


def test_cycle_falls_back_to_x_order(make, wire):
    a = make("Text", "A", x=200)
    b = make("Text", "B", x=0)
    c = make("Text", "C", x=100)
    conns = [wire(a, "output", b, "input"), wire(b, "output", c, "input"), wire(c, "output", a, "input")]

    order = [n.id for n in topological_order([a, b, c], conns)]

    assert order == ["B", "C", "A"]


def test_find_cycle_and_ensure_acyclic(make, wire):
    a, b, c = make("Text", "A"), make("Text", "B"), make("Text", "C")
    chain = [wire(a, "output", b, "input"), wire(b, "output", c, "input")]
    assert find_cycle([a, b, c], chain) is None
    ensure_acyclic([a, b, c], chain)

    looped = chain + [wire(c, "output", a, "input")]
    assert sorted(find_cycle([a, b, c], looped)) == ["A", "B", "C"]
    with pytest.raises(CyclicGraph, match="Cycle detected"):
        ensure_acyclic([a, b, c], looped)


def test_template_graph_is_valid(registry):
    ok, messages = validate_graph(generate_graph_from_task("story", registry))
    assert ok, messages
    assert all(m.startswith("OK:") for m in messages)


def test_validate_reports_fan_in_and_direction(make, wire):
    a, b = make("Text", "a"), make("Text", "b")
    sink = make("Text", "sink")
    g = Graph(nodes=[a, b, sink], connections=[
        wire(a, "output", sink, "input"),
        wire(b, "output", sink, "input"),
        Connection(from_socket=sink.socket("input").id, to_socket=a.socket("output").id),
    ])

    ok, messages = validate_graph(g)

    assert not ok
    assert "ERR: Input sink.input has more than one incoming connection." in messages
    assert any("does not start at an output" in m for m in messages)
    assert any("does not end at an input" in m for m in messages)


def test_validate_reports_missing_sockets_duplicates_and_cycles(make, wire):
    a, b = make("Text", "a"), make("Text", "b")
    twin = make("Number", "a")
    g = Graph(nodes=[a, b, twin], connections=[
        Connection(from_socket="gone", to_socket=a.socket("input").id),
        wire(a, "output", b, "input"),
        wire(b, "output", a, "input"),
    ])

    ok, messages = validate_graph(g)

    assert not ok
    assert "ERR: Duplicate node IDs detected." in messages
    assert any("references missing socket" in m for m in messages)
    assert any(m.startswith("ERR: Cycle detected") for m in messages)
