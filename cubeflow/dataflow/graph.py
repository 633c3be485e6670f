"""
Editable dataflow graph.

The graph holds transform nodes and constant nodes connected by wires
from an output slot of one node to an input slot of another.  Nodes are
referred to by integer ids, which are never reused, and wires by the slot
indices they join.  Every edit checks all of its preconditions before it
changes anything, so a failed edit leaves the graph as it was.

The graph is acyclic at all times.  Before a wire is inserted, the nodes
reachable from its destination are searched for its source; if the source
is found the wire would close a cycle and is rejected.

Edits mark the cached outputs downstream of the change as stale.  Nothing
is recomputed until it is next requested; see :mod:`.calc`.
"""
import copy
import logging
from collections import OrderedDict

from .cache import OutputCache
from .calc import fingerprint_value
from .core import Transform
from .deps import processing_order
from .errors import (NotFound, InvalidSlot, IncompatibleType, SlotOccupied,
                     WouldCycle, WrongNodeKind, TypeMismatch)

logger = logging.getLogger(__name__)


class Node(object):
    """
    Graph vertex.

    *kind* is "transform" or "constant".  *inputs* and *outputs* are the
    slot descriptions, ordered by slot index.
    """
    kind = None
    inputs = ()
    outputs = ()

    def __init__(self, id):
        self.id = id

    def input_exists(self, index):
        return 0 <= index < len(self.inputs)

    def output_exists(self, index):
        return 0 <= index < len(self.outputs)

    def copy(self):
        return copy.copy(self)


class TransformNode(Node):
    """
    Instance of a registered transform.

    Each instance carries its own input defaults, initialised from the
    transform, which are used when nothing is wired into the slot.
    """
    kind = "transform"

    def __init__(self, id, transform, defaults=None):
        Node.__init__(self, id)
        self.transform = transform
        if defaults is None:
            defaults = [slot["default"] for slot in transform.inputs]
        self.defaults = list(defaults)
        self.default_fingerprints = [
            None if v is None else fingerprint_value(v) for v in self.defaults]

    @property
    def inputs(self):
        return self.transform.inputs

    @property
    def outputs(self):
        return self.transform.outputs

    def set_default(self, index, value):
        self.defaults[index] = value
        self.default_fingerprints[index] = (
            None if value is None else fingerprint_value(value))

    def copy(self):
        result = copy.copy(self)
        result.defaults = list(self.defaults)
        result.default_fingerprints = list(self.default_fingerprints)
        return result

    def __repr__(self):
        return "<TransformNode %d %s>" % (self.id, self.transform.id)


class ConstantNode(Node):
    """
    A directly editable value with one output slot and no inputs.
    """
    kind = "constant"

    def __init__(self, id, datatype, value):
        Node.__init__(self, id)
        self.datatype = datatype
        self.outputs = ({"id": "value", "label": "Value",
                         "datatype": datatype.id, "description": ""},)
        self.set_value(value)

    def set_value(self, value):
        self.value = value
        self.value_fingerprint = fingerprint_value(value)

    def __repr__(self):
        return "<ConstantNode %d %s>" % (self.id, self.datatype.id)


class Graph(object):
    """
    Nodes and wires of a dataflow computation.

    *registry* : Registry
        Transforms and datatypes available to the graph.

    *cache* : OutputCache
        Cache of computed outputs.  A new cache of the default size is
        created if none is given.
    """
    def __init__(self, registry, cache=None):
        self.registry = registry
        self.cache = cache if cache is not None else OutputCache()
        self._nodes = OrderedDict()
        # {(dst, dst_slot): (src, src_slot)}
        self._wires = {}
        # {src: set((src_slot, dst, dst_slot))}
        self._fanout = {}
        # {output_id: (node, slot) or None}
        self._outputs = OrderedDict()
        self._next_id = 1
        self._next_output = 1

    # === Edits ===

    def add_transform(self, transform_ref):
        """
        Add an instance of a registered transform, returning its node id.

        *transform_ref* is a transform id or a :class:`.core.Transform`.
        Raises *UnknownTransform* if it is not registered.
        """
        if isinstance(transform_ref, Transform):
            transform_ref = transform_ref.id
        transform = self.registry.lookup_transform(transform_ref)
        node = TransformNode(self._next_id, transform)
        self._add_node(node)
        logger.debug("added node %d: %s", node.id, transform.id)
        return node.id

    def add_constant(self, value, datatype):
        """
        Add a constant node holding *value*, returning its node id.

        *datatype* is a datatype id.  Raises *TypeMismatch* if the datatype
        does not accept the value.
        """
        datatype = self.registry.lookup_datatype(datatype)
        if not datatype.accepts(value):
            raise TypeMismatch("%r is not %s" % (value, datatype.id))
        node = ConstantNode(self._next_id, datatype, value)
        self._add_node(node)
        logger.debug("added constant %d: %s", node.id, datatype.id)
        return node.id

    def _add_node(self, node):
        if node.id in self._nodes:
            raise RuntimeError("node %d already exists" % node.id)
        self._nodes[node.id] = node
        self._next_id = max(self._next_id, node.id + 1)

    def remove_node(self, node_id):
        """
        Remove a node and every wire touching it.

        Nodes which depended on it fall back to their defaults, or become
        unresolved.  Outputs attached to the node are detached.  Raises
        *NotFound* if the node does not exist.
        """
        self.node(node_id)
        self.cache.invalidate_downstream_of(self, node_id)
        for dst_key in [k for k, v in self._wires.items() if k[0] == node_id]:
            self._unwire(dst_key)
        for src_slot, dst, dst_slot in list(self._fanout.get(node_id, ())):
            self._unwire((dst, dst_slot))
        self._fanout.pop(node_id, None)
        for output_id, target in self._outputs.items():
            if target is not None and target[0] == node_id:
                self._outputs[output_id] = None
        del self._nodes[node_id]
        self.cache.remove(node_id)
        logger.debug("removed node %d", node_id)

    def connect(self, src, src_slot, dst, dst_slot):
        """
        Wire output *src_slot* of node *src* into input *dst_slot* of
        node *dst*.

        Raises *NotFound* if either node is missing, *InvalidSlot* if
        either slot is out of range, *IncompatibleType* if the output type
        cannot feed the input, *WouldCycle* if *src* is reachable from
        *dst*, or *SlotOccupied* if the input is already wired.
        """
        src_node, dst_node = self.node(src), self.node(dst)
        if not src_node.output_exists(src_slot):
            raise InvalidSlot("node %d has no output %d" % (src, src_slot))
        if not dst_node.input_exists(dst_slot):
            raise InvalidSlot("node %d has no input %d" % (dst, dst_slot))
        source_type = src_node.outputs[src_slot]["datatype"]
        target_type = dst_node.inputs[dst_slot]["datatype"]
        if not self.registry.compatible(source_type, target_type):
            raise IncompatibleType("%s cannot feed %s" % (source_type, target_type))
        if src in self.dependents(dst):
            raise WouldCycle("wiring %d into %d would create a cycle" % (src, dst))
        if (dst, dst_slot) in self._wires:
            raise SlotOccupied("input %d of node %d is already wired"
                               % (dst_slot, dst))
        self._wires[(dst, dst_slot)] = (src, src_slot)
        self._fanout.setdefault(src, set()).add((src_slot, dst, dst_slot))
        self.cache.invalidate_downstream_of(self, dst)
        logger.debug("connected %d:%d -> %d:%d", src, src_slot, dst, dst_slot)

    def disconnect(self, dst, dst_slot):
        """
        Remove the wire into input *dst_slot* of node *dst*.

        Raises *NotFound* if the node or the wire does not exist, or
        *InvalidSlot* if the slot is out of range.
        """
        node = self.node(dst)
        if not node.input_exists(dst_slot):
            raise InvalidSlot("node %d has no input %d" % (dst, dst_slot))
        if (dst, dst_slot) not in self._wires:
            raise NotFound("input %d of node %d is not wired" % (dst_slot, dst))
        self._unwire((dst, dst_slot))
        self.cache.invalidate_downstream_of(self, dst)
        logger.debug("disconnected %d:%d", dst, dst_slot)

    def _unwire(self, dst_key):
        src, src_slot = self._wires.pop(dst_key)
        fanout = self._fanout[src]
        fanout.discard((src_slot,) + dst_key)
        if not fanout:
            del self._fanout[src]

    def set_constant(self, node_id, value, datatype=None):
        """
        Replace the value held by a constant node.

        Raises *WrongNodeKind* for transform nodes and *TypeMismatch* if
        *datatype* differs from the node's datatype or the value is not a
        member of it.
        """
        node = self.node(node_id)
        if node.kind != "constant":
            raise WrongNodeKind("node %d is not a constant" % node_id)
        if datatype is not None and datatype != node.datatype.id:
            raise TypeMismatch("node %d holds %s, not %s"
                               % (node_id, node.datatype.id, datatype))
        if not node.datatype.accepts(value):
            raise TypeMismatch("%r is not %s" % (value, node.datatype.id))
        node.set_value(value)
        self.cache.invalidate_downstream_of(self, node_id)
        logger.debug("set constant %d", node_id)

    def set_default(self, node_id, slot, value):
        """
        Replace the default value of an input slot of a transform node.

        *value* is None to remove the default, leaving the input
        unresolved unless it is wired.
        """
        node = self.node(node_id)
        if node.kind != "transform":
            raise WrongNodeKind("node %d has no inputs" % node_id)
        if not node.input_exists(slot):
            raise InvalidSlot("node %d has no input %d" % (node_id, slot))
        if value is not None:
            datatype = self.registry.lookup_datatype(node.inputs[slot]["datatype"])
            if not datatype.accepts(value):
                raise TypeMismatch("%r is not %s" % (value, datatype.id))
        node.set_default(slot, value)
        self.cache.invalidate_downstream_of(self, node_id)
        logger.debug("set default %d:%d", node_id, slot)

    # === Outputs ===

    def attach_output(self, node_id, slot):
        """
        Attach a new output to output *slot* of node *node_id*, returning
        the output id.
        """
        node = self.node(node_id)
        if not node.output_exists(slot):
            raise InvalidSlot("node %d has no output %d" % (node_id, slot))
        output_id = self._next_output
        self._next_output += 1
        self._outputs[output_id] = (node_id, slot)
        return output_id

    def _attach_output(self, output_id, target):
        self._outputs[output_id] = target
        self._next_output = max(self._next_output, output_id + 1)

    def detach_output(self, output_id):
        if output_id not in self._outputs:
            raise NotFound("output %d does not exist" % output_id)
        del self._outputs[output_id]

    def output(self, output_id):
        """
        Return the (node, slot) watched by the output, or None if the node
        has been removed.
        """
        try:
            return self._outputs[output_id]
        except KeyError:
            raise NotFound("output %d does not exist" % output_id) from None

    def outputs(self):
        return list(self._outputs.items())

    # === Queries ===

    def __contains__(self, node_id):
        return node_id in self._nodes

    def __len__(self):
        return len(self._nodes)

    def nodes(self):
        return list(self._nodes.items())

    def node(self, node_id):
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NotFound("node %s does not exist" % node_id) from None

    def slots(self, node_id):
        """
        Describe the slots of a node with their current bindings.

        Returns {"inputs": [...], "outputs": [...]} where each input lists
        *index*, *id*, *label*, *datatype*, *default* and *source*, the
        (node, slot) wired into it or None.
        """
        node = self.node(node_id)
        inputs = []
        for index, slot in enumerate(node.inputs):
            inputs.append({
                "index": index,
                "id": slot["id"],
                "label": slot["label"],
                "datatype": slot["datatype"],
                "default": node.defaults[index],
                "source": self._wires.get((node_id, index)),
            })
        outputs = [{"index": index, "id": slot["id"], "label": slot["label"],
                    "datatype": slot["datatype"]}
                   for index, slot in enumerate(node.outputs)]
        return {"inputs": inputs, "outputs": outputs}

    def source(self, node_id, slot):
        """
        Return the (node, slot) wired into input *slot*, or None.
        """
        return self._wires.get((node_id, slot))

    def edges(self):
        """
        Return the wires as a sorted list of ((src, src_slot), (dst, dst_slot)).
        """
        return sorted((src, dst) for dst, src in self._wires.items())

    def inputs(self, node_id):
        """
        Return the wires feeding *node_id*, ordered by input slot.
        """
        self.node(node_id)
        return sorted((src, dst) for dst, src in self._wires.items()
                      if dst[0] == node_id)

    def dependents(self, node_id):
        """
        Return the set of nodes reachable from *node_id*, including itself.
        """
        seen = set([node_id])
        stack = [node_id]
        while stack:
            n = stack.pop()
            for _, dst, _ in self._fanout.get(n, ()):
                if dst not in seen:
                    seen.add(dst)
                    stack.append(dst)
        return seen

    def dependencies(self, node_id):
        """
        Return the nodes *node_id* depends on, including itself, in the
        order they must be evaluated.
        """
        self.node(node_id)
        seen = set([node_id])
        stack = [node_id]
        pairs = set()
        while stack:
            n = stack.pop()
            for slot in range(len(self._nodes[n].inputs)):
                source = self._wires.get((n, slot))
                if source is None:
                    continue
                src = source[0]
                pairs.add((src, n))
                if src not in seen:
                    seen.add(src)
                    stack.append(src)
        return processing_order(sorted(pairs), n=sorted(seen))

    def order(self):
        """
        Return all nodes in evaluation order.
        """
        pairs = set((src, dst) for (dst, _), (src, _) in self._wires.items())
        return processing_order(sorted(pairs), n=list(self._nodes))

    def copy(self):
        """
        Return a snapshot of the graph which can be evaluated while this
        graph continues to be edited.

        Transforms and values are shared; the node table, wires and cache
        are copied.
        """
        result = Graph(self.registry, cache=self.cache.copy())
        result._nodes = OrderedDict((k, v.copy()) for k, v in self._nodes.items())
        result._wires = dict(self._wires)
        result._fanout = dict((k, set(v)) for k, v in self._fanout.items())
        result._outputs = OrderedDict(self._outputs)
        result._next_id = self._next_id
        result._next_output = self._next_output
        return result
