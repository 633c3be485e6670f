import numpy as np
import pytest

from cubeflow.dataflow.deps import processing_order


def _check(msg, pairs, n):
    """
    Verify that the list n contains the given items, and that the list
    satisfies the partial ordering given by the pairs in partial order.
    """
    order = processing_order(pairs, n=n)
    assert len(set(order)) == n, "%s is missing items" % msg
    for lo, hi in pairs:
        assert order.index(lo) < order.index(hi), (
            "%s expect %s before %s in %s" % (msg, lo, hi, order))


def test_no_dependencies():
    _check("test empty", [], 9)


def test_no_chain_dependencies():
    _check("test2", [(4, 1), (3, 2), (7, 6)], 9)


def test_chain_dependencies():
    pairs = [(4, 0), (0, 1), (1, 2), (7, 0), (3, 5)]
    _check("test1", pairs, 9)
    _check("test1 numpy", np.array(pairs), 9)


def test_cycle():
    pairs = [(1, 4), (4, 3), (4, 5), (5, 1)]
    with pytest.raises(ValueError):
        processing_order(pairs, n=9)


def test_large():
    A = np.random.randint(4000, size=(1000, 2))
    A[:, 1] += 4000  # Avoid cycles
    _check("test-large", A, 8000)


def test_depth():
    k = 200
    A = np.array([range(0, k), range(1, k + 1)]).T
    _check("depth-1", A, 201)

    A = np.array([range(1, k + 1), range(0, k)]).T
    _check("depth-2", A, 201)


def test_item_ids():
    # ids need not be consecutive; unconstrained items are in sorted order
    assert processing_order([(12, 3)], n=[3, 12, 7, 5]) == [12, 3, 5, 7]
    assert processing_order([(12, 3)], n=[12, 3]) == [12, 3]
    with pytest.raises(ValueError):
        processing_order([(12, 3)], n=[3])


def test_deterministic():
    pairs = [(1, 5), (2, 5), (3, 5), (4, 5)]
    assert processing_order(pairs) == processing_order(list(reversed(pairs)))
