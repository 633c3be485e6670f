"""
Convert graphs to and from the stored representation.

The stored representation is given in terms of python primitives
which are suitable for calls to json loads/dumps.  Every node, wire,
input default and output of the graph is included, along with the node
ids, so that the graph can be rebuilt exactly.  Cached values are not
stored; they are recomputed on demand.

The following functions are available:

    graph_to_state, graph_from_state

        Convert a graph to and from a dictionary of primitives.

    dumps, loads

        Convert a graph to and from a JSON string.

    packb, unpackb

        Convert a graph to and from msgpack bytes.

Loading replays the graph edits, so a stored graph which is no longer
valid, for example because a transform has been removed from the library
or its slots have changed type, fails with the same error as the edit.
"""
__all__ = ['graph_to_state', 'graph_from_state', 'dumps', 'loads',
           'packb', 'unpackb']

import json
import logging

from .core import sanitizeForJSON, sanitizeFromJSON
from .graph import Graph

logger = logging.getLogger(__name__)

GRAPH_VERSION = "1.0"


def graph_to_state(graph):
    """
    Return the graph as a dictionary of python primitives.
    """
    nodes = []
    for node_id, node in graph.nodes():
        if node.kind == "constant":
            nodes.append({
                "id": node_id,
                "kind": "constant",
                "datatype": node.datatype.id,
                "value": node.datatype.todict(node.value),
            })
        else:
            nodes.append({
                "id": node_id,
                "kind": "transform",
                "transform": node.transform.id,
                "version": node.transform.version,
                "defaults": [_encode_default(graph, slot, value)
                             for slot, value in zip(node.inputs, node.defaults)],
            })
    wires = [{"source": list(src), "target": list(dst)}
             for src, dst in graph.edges()]
    outputs = [{"id": output_id,
                "target": list(target) if target is not None else None}
               for output_id, target in graph.outputs()]
    return {
        "version": GRAPH_VERSION,
        "nodes": nodes,
        "wires": wires,
        "outputs": outputs,
        "next_id": graph._next_id,
        "next_output": graph._next_output,
    }


def _encode_default(graph, slot, value):
    if value is None:
        return None
    return graph.registry.lookup_datatype(slot["datatype"]).todict(value)


def graph_from_state(state, registry, cache=None):
    """
    Rebuild a graph from the dictionary produced by :func:`graph_to_state`.

    Raises *TypeError* if the state was stored by an incompatible version,
    or the error of the first graph edit which fails.
    """
    version = state.get("version", None)
    if version != GRAPH_VERSION:
        raise TypeError("Graph version mismatch: %s must be %s"
                        % (version, GRAPH_VERSION))
    graph = Graph(registry, cache=cache)
    for item in state["nodes"]:
        node_id = int(item["id"])
        if node_id in graph:
            raise ValueError("node %d is defined twice" % node_id)
        if item["kind"] == "constant":
            datatype = registry.lookup_datatype(item["datatype"])
            value = datatype.fromdict(item["value"])
            _replay(graph, node_id, lambda: graph.add_constant(value, datatype.id))
        elif item["kind"] == "transform":
            transform = registry.lookup_transform(item["transform"])
            if item.get("version", transform.version) != transform.version:
                logger.warning("node %d was stored with %s version %s; using %s",
                               node_id, transform.id, item["version"],
                               transform.version)
            _replay(graph, node_id, lambda: graph.add_transform(transform.id))
            defaults = item.get("defaults", [])
            if len(defaults) > len(transform.inputs):
                raise ValueError("too many defaults for node %d" % node_id)
            for index, value in enumerate(defaults):
                if value is not None:
                    datatype = registry.lookup_datatype(
                        transform.inputs[index]["datatype"])
                    value = datatype.fromdict(value)
                graph.set_default(node_id, index, value)
        else:
            raise ValueError("unknown node kind %r" % item["kind"])

    for wire in state["wires"]:
        (src, src_slot), (dst, dst_slot) = wire["source"], wire["target"]
        graph.connect(int(src), int(src_slot), int(dst), int(dst_slot))

    for output in state.get("outputs", []):
        target = output["target"]
        if target is not None:
            node_id, slot = int(target[0]), int(target[1])
            if not graph.node(node_id).output_exists(slot):
                raise ValueError("output %d refers to a missing slot"
                                 % output["id"])
            target = (node_id, slot)
        graph._attach_output(int(output["id"]), target)

    graph._next_id = max(graph._next_id, int(state.get("next_id", 1)))
    graph._next_output = max(graph._next_output, int(state.get("next_output", 1)))
    logger.debug("loaded graph with %d nodes", len(graph))
    return graph


def _replay(graph, node_id, add):
    # Add the node through the edit API, but with its stored id.
    next_id = max(graph._next_id, node_id + 1)
    graph._next_id = node_id
    if add() != node_id:
        raise RuntimeError("Can't get here")
    graph._next_id = next_id


def dumps(graph):
    """
    Convert a graph to a JSON string.
    """
    return json.dumps(sanitizeForJSON(graph_to_state(graph)))


def loads(text, registry):
    """
    Convert a JSON string to a graph.
    """
    return graph_from_state(sanitizeFromJSON(json.loads(text)), registry)


def packb(graph):
    """
    Convert a graph to msgpack bytes.

    Requires the *msgpack* package.
    """
    import msgpack
    return msgpack.packb(graph_to_state(graph), use_bin_type=True)


def unpackb(data, registry):
    """
    Convert msgpack bytes to a graph.
    """
    import msgpack
    return graph_from_state(msgpack.unpackb(data, raw=False), registry)
