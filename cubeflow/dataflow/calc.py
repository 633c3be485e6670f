"""
Evaluate a dataflow graph.

:func:`evaluate` computes the value at one output slot of a node.

:func:`evaluate_output` computes the value at an attached output.

:func:`find_calculated` returns the outputs which have already been
calculated and cached for the current state of the graph.

:func:`fingerprint_graph` returns the unique fingerprint for each node
given its inputs.
"""
import hashlib
import itertools
import logging
from collections import OrderedDict

import numpy as np

from .errors import NotFound, InvalidSlot, UnresolvedInput, TransformError

logger = logging.getLogger(__name__)

# Transforms marked @nocache get a new fingerprint on every evaluation
_volatile = itertools.count()


def evaluate(graph, node_id, slot=0):
    """
    Return the value at output *slot* of node *node_id*.

    Only the nodes required to evaluate the target are computed.  For each
    transform node, if its outputs are already in the cache for the
    current fingerprint, the cached values are used and nothing upstream of
    it is computed.  If not, its inputs are resolved from the wires, or
    from the default values for inputs which are not wired, the action is
    run and the results are placed in the cache.

    The new cache entries are committed only if the whole evaluation
    succeeds, so a failure leaves the cache as it was.

    Raises *UnresolvedInput* if a required input has neither a wire nor a
    default, and *TransformError* if an action fails.
    """
    node = graph.node(node_id)
    if not 0 <= slot < len(node.outputs):
        raise InvalidSlot("node %d has no output %d" % (node_id, slot))
    if node.kind == "constant":
        return node.value

    order = graph.dependencies(node_id)
    fingerprints = fingerprint_graph(graph, order)
    needed = _needed(graph, node_id, order, fingerprints)

    values = {}
    with graph.cache.transaction():
        for n in order:
            if n in needed:
                values.update(_eval_node(graph, n, fingerprints[n], values))
    return values[(node_id, slot)]


def evaluate_output(graph, output_id):
    """
    Return the value at the attached output *output_id*.
    """
    target = graph.output(output_id)
    if target is None:
        raise NotFound("output %d is not attached" % output_id)
    return evaluate(graph, *target)


def find_calculated(graph):
    """
    Returns {(node, slot): bool} indicating whether or not each transform
    output in the graph has been computed and cached.
    """
    cache = graph.cache
    fingerprints = fingerprint_graph(graph)
    result = OrderedDict()
    for n, node in graph.nodes():
        if node.kind != "transform":
            continue
        for slot in range(len(node.outputs)):
            result[(n, slot)] = cache.exists(n, slot, fingerprints[n])
    return result


def _needed(graph, target, order, fingerprints):
    """
    Walk back from *target* to find the nodes which must be evaluated.

    A node whose outputs are all cached hides everything upstream of it.
    """
    needed = set([target])
    for n in reversed(order):
        if n not in needed:
            continue
        node = graph.node(n)
        if node.kind == "constant" or _is_fresh(graph, n, node, fingerprints[n]):
            continue
        for index in range(len(node.inputs)):
            source = graph.source(n, index)
            if source is not None:
                needed.add(source[0])
    return needed


def _is_fresh(graph, n, node, fp):
    return node.transform.cached and all(
        graph.cache.exists(n, slot, fp) for slot in range(len(node.outputs)))


def _eval_node(graph, n, fp, values):
    """
    Compute or retrieve all outputs of node *n*.

    *values* holds the outputs of the upstream nodes already evaluated as
    *{(node, slot): value}*.

    Returns *{(n, slot): value}* for every output slot of the node.
    """
    node = graph.node(n)
    if node.kind == "constant":
        return {(n, 0): node.value}

    transform = node.transform
    # The action produces all outputs at once; run it at most once even if
    # several output slots are missing from the cache.
    results = []
    def compute_all():
        if not results:
            inputs = _get_inputs(graph, n, node, values)
            results.append(_do_action(graph.registry, n, transform, inputs))
        return results[0]

    if transform.cached:
        outputs = [
            graph.cache.get_or_compute(n, slot, fp, lambda slot=slot: compute_all()[slot])
            for slot in range(len(transform.outputs))]
    else:
        outputs = compute_all()
    return dict(((n, slot), value) for slot, value in enumerate(outputs))


def _get_inputs(graph, n, node, values):
    """
    Resolve the inputs of node *n* from the wires and defaults.

    Inputs are resolved from left to right.  Wires carrying a widened type
    apply the widening conversion on the way through.

    Returns *{slot id: value}* ready to pass to the action.
    """
    registry = graph.registry
    transform = node.transform
    inputs = OrderedDict()
    for index, slot in enumerate(node.inputs):
        target_type = slot["datatype"]
        source = graph.source(n, index)
        if source is not None:
            if source not in values:
                raise RuntimeError("input %d of node %d was not evaluated"
                                   % (index, n))
            value = values[source]
            source_type = graph.node(source[0]).outputs[source[1]]["datatype"]
            convert = registry.widening.converter(source_type, target_type)
            if convert is not None:
                try:
                    value = convert(value)
                except Exception as exc:
                    raise TransformError(transform.id, exc) from exc
            elif source_type != target_type:
                # widened without conversion; the value keeps its own type
                target_type = source_type
        elif node.defaults[index] is not None:
            value = node.defaults[index]
        else:
            raise UnresolvedInput(n, index)
        _check_datatype(registry, target_type, value, "input %s of node %d"
                        % (slot["id"], n))
        inputs[slot["id"]] = value

    if len(inputs) != len(transform.inputs):
        raise RuntimeError("wrong number of inputs for node %d" % n)
    return inputs


def _check_datatype(registry, datatype_id, value, where):
    """
    Check that the value matches the datatype.  Edit time checks ensure
    this for inputs, so failure here means the engine is broken.
    """
    if not registry.lookup_datatype(datatype_id).accepts(value):
        raise RuntimeError("expected %s for %s but got %s"
                           % (datatype_id, where, type(value).__name__))


def _do_action(registry, n, transform, inputs):
    """
    Perform the transform action, returning the results as a list.

    Because we know the number of outputs expected (each one is a slot),
    we can convert no outputs or a single output to lists of length 0 and 1
    respectively.  This makes the transform actions more natural to write.
    """
    logger.debug("calculating node %d: %s", n, transform.id)
    try:
        result = transform.action(**inputs)
    except Exception as exc:
        raise TransformError(transform.id, exc) from exc

    num_outputs = len(transform.outputs)
    if num_outputs == 1:
        result = [result]
    elif num_outputs == 0:
        result = []
    else:
        try:
            result = list(result)
        except TypeError as exc:
            raise TransformError(transform.id, exc) from exc
        if len(result) != num_outputs:
            raise TransformError(transform.id, ValueError(
                "expected %d outputs but got %d" % (num_outputs, len(result))))

    for slot, value in zip(transform.outputs, result):
        if not registry.lookup_datatype(slot["datatype"]).accepts(value):
            raise TransformError(transform.id, TypeError(
                "expected %s for output %s but got %s"
                % (slot["datatype"], slot["id"], type(value).__name__)))
    return result


def fingerprint_graph(graph, order=None):
    """
    Run the fingerprint operation on the nodes in *order*, or on the whole
    graph, returning the dict of fingerprints (one per node).

    *order* must list every node before the nodes which depend on it.
    """
    if order is None:
        order = graph.order()
    fingerprints = {}
    for n in order:
        fingerprints[n] = fingerprint_node(graph, n, fingerprints)
    return fingerprints


def fingerprint_node(graph, n, fingerprints):
    """
    Create a unique sha1 hash for a node based on its transform and inputs.

    *fingerprints* must already hold the fingerprints of the nodes wired
    into *n*.
    """
    node = graph.node(n)
    if node.kind == "constant":
        return generate_fingerprint(["constant", node.datatype.id,
                                     node.value_fingerprint])

    transform = node.transform
    parts = [transform.id, str(transform.version)]
    for index, slot in enumerate(node.inputs):
        source = graph.source(n, index)
        if source is not None:
            source_node, source_slot = source
            source_type = graph.node(source_node).outputs[source_slot]["datatype"]
            parts.extend(["wire", str(index), fingerprints[source_node],
                          str(source_slot), source_type])
        elif node.defaults[index] is not None:
            parts.extend(["default", str(index), node.default_fingerprints[index]])
        else:
            parts.extend(["unresolved", str(index)])
    if not transform.cached:
        parts.append("volatile %d" % next(_volatile))
    return generate_fingerprint(parts)


def fingerprint_value(value):
    """
    Create a unique sha1 hash for a constant value.
    """
    return generate_fingerprint([str(_format_ordered(value))])


def generate_fingerprint(parts):
    """
    Generate a fingerprint from string parts.
    """
    key = ":".join(parts)
    return hashlib.sha1(key.encode('utf-8')).hexdigest()


# new methods that keep everything ordered
def _format_ordered(value):
    if value is None or isinstance(value, (bool, int, str, bytes)):
        return value
    elif isinstance(value, float):
        # repr is exact for python floats; keep 1.0 distinct from 1
        return "float(%r)" % value
    elif isinstance(value, np.ndarray):
        data = np.ascontiguousarray(value)
        digest = hashlib.sha1(data.tobytes()).hexdigest()
        return ["ndarray", data.dtype.str, list(data.shape), digest]
    elif isinstance(value, np.generic):
        return [type(value).__name__, repr(value.item())]
    elif isinstance(value, dict):
        # keys of mixed type do not compare, so order them by repr
        items = sorted(value.items(), key=lambda kv: repr(kv[0]))
        return list((_format_ordered(k), _format_ordered(v)) for k, v in items)
    elif isinstance(value, list):
        return [_format_ordered(v) for v in value]
    elif isinstance(value, tuple):
        return tuple(_format_ordered(v) for v in value)
    elif hasattr(value, '__getstate__') and value.__getstate__() is not None:
        return [value.__class__.__name__, _format_ordered(value.__getstate__())]
    elif hasattr(value, '__dict__'):
        return [value.__class__.__name__, _format_ordered(value.__dict__)]
    else:
        return repr(value)
