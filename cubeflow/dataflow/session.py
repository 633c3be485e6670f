"""
Exclusive access to a graph and its cache.

A session owns one registry, one graph and the cache behind it.  Edits and
evaluations from different threads, such as an editor and a background
evaluator, are serialized through the session lock so that cycle checks
and invalidation always see a consistent graph.

For long running evaluations, take a :meth:`Session.snapshot` and evaluate
the copy with :func:`.calc.evaluate` outside the lock.  The snapshot has its
own copy of the cache, so results computed from it are not seen by the
session.
"""
import functools
import logging
import threading

from . import calc
from .cache import OutputCache, DEFAULT_SIZE
from .graph import Graph

logger = logging.getLogger(__name__)


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class Session(object):
    """
    Single writer access to a dataflow graph.

    *registry* : Registry
        Populated transform registry.

    *cache_size* : int or None
        Number of output values to keep in the cache, or None for no limit.
    """
    def __init__(self, registry, cache_size=DEFAULT_SIZE):
        self.registry = registry
        self.graph = Graph(registry, cache=OutputCache(cache_size))
        self._lock = threading.RLock()

    @property
    def cache(self):
        return self.graph.cache

    # edits
    @_locked
    def add_transform(self, transform_ref):
        return self.graph.add_transform(transform_ref)

    @_locked
    def add_constant(self, value, datatype):
        return self.graph.add_constant(value, datatype)

    @_locked
    def remove_node(self, node_id):
        self.graph.remove_node(node_id)

    @_locked
    def connect(self, src, src_slot, dst, dst_slot):
        self.graph.connect(src, src_slot, dst, dst_slot)

    @_locked
    def disconnect(self, dst, dst_slot):
        self.graph.disconnect(dst, dst_slot)

    @_locked
    def set_constant(self, node_id, value, datatype=None):
        self.graph.set_constant(node_id, value, datatype)

    @_locked
    def set_default(self, node_id, slot, value):
        self.graph.set_default(node_id, slot, value)

    @_locked
    def attach_output(self, node_id, slot):
        return self.graph.attach_output(node_id, slot)

    @_locked
    def detach_output(self, output_id):
        self.graph.detach_output(output_id)

    # queries
    @_locked
    def nodes(self):
        return self.graph.nodes()

    @_locked
    def slots(self, node_id):
        return self.graph.slots(node_id)

    @_locked
    def edges(self):
        return self.graph.edges()

    @_locked
    def outputs(self):
        return self.graph.outputs()

    # evaluation
    @_locked
    def evaluate(self, node_id, slot=0):
        return calc.evaluate(self.graph, node_id, slot)

    @_locked
    def evaluate_output(self, output_id):
        return calc.evaluate_output(self.graph, output_id)

    @_locked
    def find_calculated(self):
        return calc.find_calculated(self.graph)

    @_locked
    def snapshot(self):
        """
        Return a copy of the graph which may be evaluated without holding
        the session lock.
        """
        logger.debug("snapshot of %d nodes", len(self.graph))
        return self.graph.copy()

    @_locked
    def replace_graph(self, graph):
        """
        Replace the session graph, for example with one restored by
        :func:`.store.graph_from_state`.
        """
        if graph.registry is not self.registry:
            raise ValueError("graph uses a different registry")
        self.graph = graph
