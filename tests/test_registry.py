import pickle
import warnings

import numpy as np
import pytest

from cubeflow.dataflow import core as df
from cubeflow.dataflow.errors import DuplicateName, UnknownTransform, TypeMismatch


def test_lookup(registry):
    add = registry.lookup_transform("test.add")
    assert add.name == "Add"
    assert [s["id"] for s in add.inputs] == ["in0", "in1"]
    assert add.inputs[0]["default"] is None
    assert add.inputs[0]["label"] == "in0"
    assert "default" not in add.outputs[0]
    assert registry.list_libraries() == ["test"]
    assert "test.scale" in registry.list_transforms()
    assert registry.lookup_library("test").get_transform_by_id("add") is add


def test_unknown_transform(registry):
    with pytest.raises(UnknownTransform):
        registry.lookup_transform("test.subtract")
    # still a KeyError for callers that only know about dicts
    with pytest.raises(KeyError):
        registry.lookup_transform("test.subtract")


def test_duplicate_name(registry):
    add = registry.lookup_transform("test.add")
    with pytest.raises(DuplicateName):
        registry.register_transform(add)
    with pytest.raises(DuplicateName):
        registry.register_library(registry.lookup_library("test"))


def test_registries_are_independent(registry):
    other = df.Registry()
    assert other.list_transforms() == []
    with pytest.raises(UnknownTransform):
        other.lookup_transform("test.add")


def test_undefined_datatype():
    registry = df.Registry()
    t = df.Transform("x.id", "1", "Id", "",
                     inputs=[{"id": "x", "datatype": "x.missing"}],
                     outputs=[{"id": "out", "datatype": "x.missing"}],
                     action=lambda x: x)
    with pytest.raises(TypeError):
        registry.register_transform(t)
    with pytest.raises(TypeError):
        df.Library(id="x", menu=[("", [t])], datatypes=[])


def test_bad_default():
    registry = df.Registry()
    registry.register_datatype(df.DataType("x.int", int))
    t = df.Transform("x.id", "1", "Id", "",
                     inputs=[{"id": "x", "datatype": "x.int", "default": "one"}],
                     outputs=[{"id": "out", "datatype": "x.int"}],
                     action=lambda x: x)
    with pytest.raises(TypeMismatch):
        registry.register_transform(t)


def test_unused_datatype_warns():
    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter("always")
        df.Library(id="x", datatypes=[df.DataType("x.int", int)])
    assert any("unused types" in str(item.message) for item in w)


def test_datatype_accepts():
    number = df.DataType("x.number", (int, float))
    assert number.accepts(3) and number.accepts(2.5)
    assert not number.accepts(True)
    assert not number.accepts("3")
    flag = df.DataType("x.flag", bool)
    assert flag.accepts(True)
    vector = df.DataType("x.vector", np.ndarray, check=lambda v: v.shape == (3,))
    assert vector.accepts(np.zeros(3))
    assert not vector.accepts(np.zeros(4))


def test_compatible(registry):
    assert registry.compatible("test.integer", "test.number")
    assert not registry.compatible("test.number", "test.integer")
    assert registry.compatible("test.text", "test.text")


def test_definition(registry):
    definition = registry.lookup_library("test").get_definition()
    assert definition["id"] == "test"
    assert definition["widenings"] == [["test.integer", "test.number"]]
    transforms = dict((t["id"], t) for t in definition["transforms"])
    assert transforms["test.scale"]["inputs"][1]["default"] == 2
    assert "action" not in transforms["test.scale"]


def test_pickle_transform():
    t = df.Transform("x.sqrt", "1", "Sqrt", "",
                     inputs=[{"id": "x", "datatype": "x.float"}],
                     outputs=[{"id": "out", "datatype": "x.float"}],
                     action=np.sqrt, action_id="numpy.sqrt")
    copy = pickle.loads(pickle.dumps(t))
    assert copy.id == t.id and copy.inputs == t.inputs
    assert copy.action is np.sqrt


def test_sanitize_json():
    data = {"a": [1.0, float("inf"), -float("inf")], "b": (float("nan"),)}
    clean = df.sanitizeForJSON(data)
    assert clean["a"][0] == 1.0
    restored = df.sanitizeFromJSON(clean)
    assert restored["a"] == [1.0, float("inf"), -float("inf")]
    assert np.isnan(restored["b"][0])
