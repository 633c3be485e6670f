import threading

import pytest

from cubeflow.dataflow import calc
from cubeflow.dataflow.configure import apply_config, load_config, load_library
from cubeflow.dataflow.core import Registry
from cubeflow.dataflow.errors import WouldCycle
from cubeflow.dataflow.session import Session


def test_session_edits(registry, calls):
    session = Session(registry)
    c1 = session.add_constant(3, "test.number")
    c2 = session.add_constant(4, "test.number")
    t = session.add_transform("test.add")
    session.connect(c1, 0, t, 0)
    session.connect(c2, 0, t, 1)
    with pytest.raises(WouldCycle):
        session.connect(t, 0, t, 0)
    assert session.evaluate(t) == 7
    output = session.attach_output(t, 0)
    assert session.evaluate_output(output) == 7
    assert calls["add"] == 1
    assert session.find_calculated() == {(t, 0): True}
    session.set_constant(c2, 10)
    assert session.evaluate(t) == 13
    assert len(session.edges()) == 2


def test_snapshot(registry, calls):
    session = Session(registry)
    c = session.add_constant(3, "test.number")
    s = session.add_transform("test.scale")
    session.connect(c, 0, s, 0)
    snapshot = session.snapshot()
    session.set_constant(c, 5)
    assert calc.evaluate(snapshot, s) == 6
    assert session.evaluate(s) == 10


def test_concurrent_access(registry):
    session = Session(registry)
    c = session.add_constant(1, "test.number")
    errors = []

    def editor():
        try:
            for k in range(200):
                s = session.add_transform("test.scale")
                session.connect(c, 0, s, 0)
                session.set_constant(c, k)
        except Exception as exc:
            errors.append(exc)

    def evaluator():
        try:
            for _ in range(200):
                for node_id, node in session.nodes():
                    if (node.kind == "transform"
                            and session.slots(node_id)["inputs"][0]["source"]):
                        session.evaluate(node_id)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=editor), threading.Thread(target=evaluator)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert errors == []


def test_replace_graph(registry):
    session = Session(registry)
    with pytest.raises(ValueError):
        session.replace_graph(Session(Registry()).graph)


def test_apply_config():
    session = apply_config(user_overrides={"cache": {"size": 10}})
    assert "astro" in session.registry.list_libraries()
    assert session.cache.size == 10
    assert session.registry.widening.max_hops == 1

    session = apply_config(user_overrides={
        "libraries": [], "widening": {"max_hops": None}})
    assert session.registry.list_libraries() == []
    assert session.registry.widening.max_hops is None


def test_load_config():
    config = load_config("no_such_config")
    assert config["libraries"] == ["astrored"]
    config["libraries"].append("other")
    assert load_config("no_such_config")["libraries"] == ["astrored"]
    with pytest.raises(ImportError):
        load_config("no_such_config", fallback=False)


def test_load_library():
    registry = Registry()
    library = load_library(registry, "astrored")
    assert library.id == "astro"
    assert "astro.slice_3d_to_2d" in registry.list_transforms()
