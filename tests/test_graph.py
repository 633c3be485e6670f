import itertools

import pytest

from cubeflow.dataflow import core as df
from cubeflow.dataflow.errors import (NotFound, InvalidSlot, IncompatibleType,
                                      SlotOccupied, WouldCycle, WrongNodeKind,
                                      TypeMismatch, UnknownTransform)
from cubeflow.dataflow.graph import Graph


def state(graph):
    return (graph.nodes(), graph.edges(), graph.outputs())


def test_add_nodes(graph, registry):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.add")
    u = graph.add_transform(registry.lookup_transform("test.scale"))
    assert (c, t, u) == (1, 2, 3)
    assert len(graph) == 3 and t in graph
    assert graph.node(c).kind == "constant"
    assert graph.node(t).transform is registry.lookup_transform("test.add")
    with pytest.raises(UnknownTransform):
        graph.add_transform("test.missing")
    with pytest.raises(TypeMismatch):
        graph.add_constant("three", "test.number")
    assert len(graph) == 3


def test_ids_are_not_reused(graph):
    a = graph.add_constant(1, "test.number")
    b = graph.add_constant(2, "test.number")
    graph.remove_node(b)
    c = graph.add_constant(3, "test.number")
    assert c not in (a, b)


def test_slots(graph):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.scale")
    graph.connect(c, 0, t, 0)
    slots = graph.slots(t)
    assert [s["source"] for s in slots["inputs"]] == [(c, 0), None]
    assert [s["default"] for s in slots["inputs"]] == [None, 2]
    assert slots["outputs"][0]["datatype"] == "test.number"
    assert graph.slots(c) == {
        "inputs": [],
        "outputs": [{"index": 0, "id": "value", "label": "Value",
                     "datatype": "test.number"}],
    }
    assert graph.inputs(t) == [((c, 0), (t, 0))]


def test_connect_errors(graph):
    num = graph.add_constant(3, "test.number")
    text = graph.add_constant("abc", "test.text")
    add = graph.add_transform("test.add")
    before = state(graph)
    with pytest.raises(NotFound):
        graph.connect(99, 0, add, 0)
    with pytest.raises(NotFound):
        graph.connect(num, 0, 99, 0)
    with pytest.raises(InvalidSlot):
        graph.connect(num, 1, add, 0)
    with pytest.raises(InvalidSlot):
        graph.connect(num, 0, add, 2)
    with pytest.raises(IncompatibleType):
        graph.connect(text, 0, add, 0)
    assert state(graph) == before

    graph.connect(num, 0, add, 0)
    with pytest.raises(SlotOccupied):
        graph.connect(num, 0, add, 0)
    assert graph.edges() == [((num, 0), (add, 0))]


def test_widened_connection(graph):
    length = graph.add_transform("test.length")
    add = graph.add_transform("test.add")
    graph.connect(length, 0, add, 0)
    with pytest.raises(IncompatibleType):
        graph.connect(add, 0, graph.add_transform("test.length"), 0)


def test_connect_matches_compatibility(registry):
    # one constant of each type feeding a node with an input of each type
    ids = ["test.number", "test.integer", "test.text"]
    values = {"test.number": 1.5, "test.integer": 2, "test.text": "abc"}
    sinks = {"test.number": ("test.add", 0), "test.integer": ("test.repeat", 1),
             "test.text": ("test.length", 0)}
    for source, target in itertools.product(ids, sinks):
        graph = Graph(registry)
        src = graph.add_constant(values[source], source)
        dst = graph.add_transform(sinks[target][0])
        expected = registry.compatible(source, target)
        if expected:
            graph.connect(src, 0, dst, sinks[target][1])
            assert len(graph.edges()) == 1
        else:
            with pytest.raises(IncompatibleType):
                graph.connect(src, 0, dst, sinks[target][1])
            assert graph.edges() == []
    # a number never narrows to an integer
    assert not registry.compatible("test.number", "test.integer")


def test_would_cycle(graph):
    # Add(C1, C2) wired back into itself
    c1 = graph.add_constant(3, "test.number")
    c2 = graph.add_constant(4, "test.number")
    t = graph.add_transform("test.add")
    graph.connect(c1, 0, t, 0)
    graph.connect(c2, 0, t, 1)
    with pytest.raises(WouldCycle):
        graph.connect(t, 0, t, 0)
    assert graph.edges() == [((c1, 0), (t, 0)), ((c2, 0), (t, 1))]


def test_longer_cycle(graph):
    a = graph.add_transform("test.scale")
    b = graph.add_transform("test.scale")
    c = graph.add_transform("test.scale")
    graph.connect(a, 0, b, 0)
    graph.connect(b, 0, c, 0)
    before = state(graph)
    with pytest.raises(WouldCycle):
        graph.connect(c, 0, a, 0)
    with pytest.raises(WouldCycle):
        graph.connect(c, 0, a, 1)
    assert state(graph) == before
    # a diamond is not a cycle
    graph.connect(a, 0, c, 1)
    assert graph.dependents(a) == set([a, b, c])
    assert graph.dependencies(c) == [a, b, c]


def test_random_edits_stay_acyclic(registry):
    graph = Graph(registry)
    nodes = [graph.add_transform("test.add") for _ in range(6)]
    for src, dst in itertools.permutations(nodes, 2):
        for slot in (0, 1):
            try:
                graph.connect(src, 0, dst, slot)
            except (WouldCycle, SlotOccupied):
                pass
        # ordering fails with ValueError if the graph has a cycle
        assert sorted(graph.order()) == sorted(nodes)
        for (s, _), (d, _) in graph.edges():
            assert s not in graph.dependents(d)
            assert d in graph.dependents(s)


def test_disconnect(graph):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.scale")
    graph.connect(c, 0, t, 0)
    with pytest.raises(NotFound):
        graph.disconnect(t, 1)
    with pytest.raises(InvalidSlot):
        graph.disconnect(t, 5)
    with pytest.raises(NotFound):
        graph.disconnect(99, 0)
    graph.disconnect(t, 0)
    assert graph.edges() == []
    assert graph.dependents(c) == set([c])
    with pytest.raises(NotFound):
        graph.disconnect(t, 0)


def test_set_constant(graph):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.add")
    graph.set_constant(c, 4.5)
    assert graph.node(c).value == 4.5
    graph.set_constant(c, 5, "test.number")
    with pytest.raises(WrongNodeKind):
        graph.set_constant(t, 3)
    with pytest.raises(TypeMismatch):
        graph.set_constant(c, "five")
    with pytest.raises(TypeMismatch):
        graph.set_constant(c, 5, "test.integer")
    with pytest.raises(NotFound):
        graph.set_constant(99, 5)
    assert graph.node(c).value == 5


def test_set_default(graph):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.scale")
    graph.set_default(t, 1, 10)
    assert graph.node(t).defaults == [None, 10]
    # instance defaults do not change the transform
    assert graph.node(t).transform.inputs[1]["default"] == 2
    graph.set_default(t, 1, None)
    assert graph.slots(t)["inputs"][1]["default"] is None
    with pytest.raises(WrongNodeKind):
        graph.set_default(c, 0, 1)
    with pytest.raises(InvalidSlot):
        graph.set_default(t, 2, 1)
    with pytest.raises(TypeMismatch):
        graph.set_default(t, 0, "one")


def test_remove_node(graph):
    c1 = graph.add_constant(3, "test.number")
    c2 = graph.add_constant(4, "test.number")
    t = graph.add_transform("test.add")
    u = graph.add_transform("test.scale")
    graph.connect(c1, 0, t, 0)
    graph.connect(c2, 0, t, 1)
    graph.connect(t, 0, u, 0)
    graph.remove_node(t)
    assert t not in graph
    assert graph.edges() == []
    assert graph.slots(u)["inputs"][0]["source"] is None
    with pytest.raises(NotFound):
        graph.remove_node(t)
    with pytest.raises(NotFound):
        graph.node(t)


def test_outputs(graph):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.scale")
    first = graph.attach_output(t, 0)
    second = graph.attach_output(c, 0)
    assert graph.outputs() == [(first, (t, 0)), (second, (c, 0))]
    with pytest.raises(InvalidSlot):
        graph.attach_output(t, 1)
    graph.remove_node(t)
    assert graph.output(first) is None
    graph.detach_output(first)
    assert graph.outputs() == [(second, (c, 0))]
    with pytest.raises(NotFound):
        graph.detach_output(first)
    with pytest.raises(NotFound):
        graph.output(first)


def test_copy_is_independent(graph):
    c = graph.add_constant(3, "test.number")
    t = graph.add_transform("test.scale")
    graph.connect(c, 0, t, 0)
    snapshot = graph.copy()
    graph.set_constant(c, 4)
    graph.set_default(t, 1, 3)
    graph.disconnect(t, 0)
    assert snapshot.node(c).value == 3
    assert snapshot.node(t).defaults == [None, 2]
    assert snapshot.edges() == [((c, 0), (t, 0))]
    assert snapshot.add_constant(1, "test.number") == graph.add_constant(1, "test.number")
