import collections

import pytest

from cubeflow.dataflow import core as df
from cubeflow.dataflow.automod import nocache
from cubeflow.dataflow.graph import Graph


def _slots(*specs):
    return [dict(id=id, datatype=datatype, **extra) for id, datatype, extra in specs]


def make_library(calls):
    """
    Small arithmetic library whose actions count their invocations in
    *calls*.
    """
    def add(in0, in1):
        calls["add"] += 1
        return in0 + in1

    def scale(x, factor):
        calls["scale"] += 1
        return x * factor

    def divmod_(x, y):
        calls["divmod"] += 1
        return divmod(x, y)

    def fail(x):
        calls["fail"] += 1
        if x < 0:
            raise ValueError("negative input %s" % x)
        return x

    def length(text):
        calls["length"] += 1
        return len(text)

    def repeat(text, count):
        calls["repeat"] += 1
        return text * count

    @nocache
    def tick(x):
        calls["tick"] += 1
        return x

    number, integer, text = "test.number", "test.integer", "test.text"
    transforms = [
        df.Transform("test.add", "1", "Add", "in0 + in1",
                     inputs=_slots(("in0", number, {}), ("in1", number, {})),
                     outputs=_slots(("out", number, {})),
                     action=add),
        df.Transform("test.scale", "1", "Scale", "x * factor",
                     inputs=_slots(("x", number, {}),
                                   ("factor", number, {"default": 2})),
                     outputs=_slots(("out", number, {})),
                     action=scale),
        df.Transform("test.divmod", "1", "Divmod", "quotient and remainder",
                     inputs=_slots(("x", number, {}), ("y", number, {})),
                     outputs=_slots(("quotient", number, {}),
                                    ("remainder", number, {})),
                     action=divmod_),
        df.Transform("test.fail", "1", "Fail", "fails for negative input",
                     inputs=_slots(("x", number, {})),
                     outputs=_slots(("out", number, {})),
                     action=fail),
        df.Transform("test.length", "1", "Length", "length of text",
                     inputs=_slots(("text", text, {})),
                     outputs=_slots(("out", integer, {})),
                     action=length),
        df.Transform("test.repeat", "1", "Repeat", "text repeated count times",
                     inputs=_slots(("text", text, {}),
                                   ("count", integer, {"default": 1})),
                     outputs=_slots(("out", text, {})),
                     action=repeat),
        df.Transform("test.tick", "1", "Tick", "never cached",
                     inputs=_slots(("x", number, {})),
                     outputs=_slots(("out", number, {})),
                     action=tick),
    ]
    datatypes = [
        df.DataType(number, (int, float)),
        df.DataType(integer, int),
        df.DataType(text, str),
    ]
    return df.Library(
        id="test",
        menu=[("arithmetic", transforms)],
        datatypes=datatypes,
        widenings=[(integer, number, None)],
    )


@pytest.fixture
def calls():
    return collections.Counter()


@pytest.fixture
def registry(calls):
    registry = df.Registry()
    registry.register_library(make_library(calls))
    return registry


@pytest.fixture
def graph(registry):
    return Graph(registry)
