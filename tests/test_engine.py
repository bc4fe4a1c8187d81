import asyncio

import pytest

import nodeflow.engine as engine
import nodeflow.nodes as nodes_mod
from nodeflow.engine import ExecutionCache, execute_node
from nodeflow.errors import CyclicGraph, GraphError, ProcessFailure
from nodeflow.ir import MultiOutput
from nodeflow.llm import ChatCompletion


@pytest.mark.asyncio
async def test_diamond_runs_shared_ancestor_once(make, wire, count_process):
    a = make("Text", "A", "x")
    b = make("Text", "B", "b-{{input}}")
    c = make("Text", "C", "c-{{input}}")
    d = make("Join", "D")
    nodes = [a, b, c, d]
    conns = [
        wire(a, "output", b, "input"),
        wire(a, "output", c, "input"),
        wire(b, "output", d, "input1"),
        wire(c, "output", d, "input2"),
    ]

    assert await execute_node(d, nodes, conns) == "b-x c-x"
    assert count_process == {"A": 1, "B": 1, "C": 1, "D": 1}


@pytest.mark.asyncio
async def test_concurrent_sinks_share_in_flight_ancestor(make, wire, count_process):
    slow = make("Delay", "slow", 30)
    src = make("Text", "src", "payload")
    left = make("Text", "left", "L:{{input}}")
    right = make("Text", "right", "R:{{input}}")
    nodes = [src, slow, left, right]
    conns = [
        wire(src, "output", slow, "input"),
        wire(slow, "output", left, "input"),
        wire(slow, "output", right, "input"),
    ]
    cache = ExecutionCache()

    results = await asyncio.gather(
        execute_node(left, nodes, conns, cache),
        execute_node(right, nodes, conns, cache),
    )

    assert results == ["L:payload", "R:payload"]
    assert count_process["slow"] == 1
    assert count_process["src"] == 1
    assert len(cache) == 4


@pytest.mark.asyncio
async def test_multi_output_routes_each_socket_to_its_consumer(make, wire, monkeypatch):
    calls = []

    async def fake_chat(provider, model, messages, api_key, **kwargs):
        calls.append(messages)
        await asyncio.sleep(0.01)
        return ChatCompletion(content="hello", total_tokens=42)

    monkeypatch.setattr(nodes_mod, "complete_chat", fake_chat)

    chat = make("Chat", "chat")
    text = make("Text", "text", "R={{input}}")
    tokens = make("Add", "tokens")
    nodes = [chat, text, tokens]
    conns = [wire(chat, "response", text, "input"), wire(chat, "tokens", tokens, "a")]
    cache = ExecutionCache()

    got_text, got_tokens = await asyncio.gather(
        execute_node(text, nodes, conns, cache),
        execute_node(tokens, nodes, conns, cache),
    )

    assert got_text == "R=hello"
    assert got_tokens == 42
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_missing_output_key_hands_over_whole_result(make, wire, monkeypatch):
    original = engine.process_node

    async def odd_process(node, get_input):
        if node.id == "src":
            return MultiOutput({"not-a-socket": 1})
        return await original(node, get_input)

    monkeypatch.setattr(engine, "process_node", odd_process)
    src = make("Number", "src")
    image = make("Image", "img")

    result = await execute_node(image, [src, image], [wire(src, "output", image, "source")])

    assert isinstance(result, MultiOutput)
    assert result.to_dict() == {"not-a-socket": 1}


@pytest.mark.asyncio
async def test_unconnected_input_resolves_to_none(make, monkeypatch):
    seen = []

    async def probe(node, get_input):
        seen.append(await get_input(node.socket("input").id))
        return "done"

    monkeypatch.setattr(engine, "process_node", probe)
    text = make("Text", "t")

    assert await execute_node(text, [text], []) == "done"
    assert seen == [None]


@pytest.mark.asyncio
async def test_cycle_is_rejected_instead_of_hanging(make, wire):
    a = make("Text", "A")
    b = make("Text", "B")
    conns = [wire(a, "output", b, "input"), wire(b, "output", a, "input")]

    with pytest.raises(CyclicGraph) as exc:
        await asyncio.wait_for(execute_node(a, [a, b], conns), timeout=2)
    assert set(exc.value.cycle) == {"A", "B"}


@pytest.mark.asyncio
async def test_self_loop_is_a_cycle(make, wire):
    a = make("Text", "A")
    with pytest.raises(CyclicGraph):
        await asyncio.wait_for(execute_node(a, [a], [wire(a, "output", a, "input")]), timeout=2)


@pytest.mark.asyncio
async def test_failure_names_the_node_that_raised(make, wire):
    bad = make("Text", "bad", "not a number")
    add = make("Add", "add")
    shown = make("Text", "shown", "sum={{input}}")
    nodes = [bad, add, shown]
    conns = [wire(bad, "output", add, "a"), wire(add, "result", shown, "input")]

    with pytest.raises(ProcessFailure) as exc:
        await execute_node(shown, nodes, conns)
    assert exc.value.node_id == "add"
    assert isinstance(exc.value.cause, ValueError)


@pytest.mark.asyncio
async def test_fresh_cache_per_top_level_call(make, count_process):
    n = make("Number", "n", 5)
    assert await execute_node(n, [n], []) == 5
    assert await execute_node(n, [n], []) == 5
    assert count_process["n"] == 2


@pytest.mark.asyncio
async def test_cache_accepts_one_registration_per_node():
    cache = ExecutionCache()
    fut = asyncio.get_running_loop().create_future()
    fut.set_result(1)
    cache.register("n", fut)
    with pytest.raises(GraphError):
        cache.register("n", fut)
    assert "n" in cache
    assert cache.results() == {"n": 1}
