"""
Calculations are cached in memory, one entry per node output.

Each entry records the value, the fingerprint of everything the value
depends on, and whether the entry has been marked stale by an edit
upstream.  An entry is only returned when it is fresh and its fingerprint
matches the current state of the graph; otherwise the value is recomputed
and the entry replaced.

Invalidation is lazy: an edit marks the downstream entries stale but does
not recompute anything.  The value is recomputed the next time it is
requested, which avoids wasted work if it never is.

The entry table is a least recently used cache (via *pylru*) so that a
long session does not hold on to every intermediate image it has ever
produced.  Evicting an entry is always safe; the value is recomputed on
the next request.
"""
import contextlib
import copy
import logging
import time
from collections import OrderedDict

import pylru

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 1000


def lrucache(size):
    """
    Return a least recently used table of *size* entries, or an unbounded
    dict if *size* is None.
    """
    if size is None:
        return {}
    return pylru.lrucache(size)


class CacheEntry(object):
    """
    Cached value of one output slot.

    *created* is the time the value was computed, so that viewers can show
    how old the result is.
    """
    def __init__(self, value, fingerprint, created=None):
        self.value = value
        self.fingerprint = fingerprint
        self.stale = False
        self.created = time.time() if created is None else created

    @property
    def age(self):
        return time.time() - self.created

    def __repr__(self):
        return "<CacheEntry %s%s>" % (self.fingerprint[:8],
                                      " stale" if self.stale else "")


class OutputCache(object):
    """
    Memoize the values at node outputs.

    *size* is the number of output values to keep, or None for no limit.
    """
    def __init__(self, size=DEFAULT_SIZE):
        self.size = size
        self._entries = lrucache(size)
        self._pending = None
        self.hits = 0
        self.misses = 0

    def __len__(self):
        return len(self._entries)

    def _peek(self, key):
        # look without touching the LRU order
        if isinstance(self._entries, dict):
            return self._entries[key]
        return self._entries.peek(key)

    def _find(self, key, touch):
        if self._pending is not None and key in self._pending:
            return self._pending[key]
        if key not in self._entries:
            return None
        return self._entries[key] if touch else self._peek(key)

    def entry(self, node_id, slot):
        """
        Return the raw cache entry for the output, stale or not, or None.
        """
        return self._find((node_id, slot), touch=False)

    def lookup(self, node_id, slot, fingerprint):
        """
        Return the entry for the output if it is fresh and matches
        *fingerprint*, otherwise None.
        """
        entry = self._find((node_id, slot), touch=True)
        if entry is None or entry.stale or entry.fingerprint != fingerprint:
            return None
        return entry

    def exists(self, node_id, slot, fingerprint):
        """
        Return True if a fresh value for *fingerprint* is cached.
        """
        entry = self._find((node_id, slot), touch=False)
        return (entry is not None and not entry.stale
                and entry.fingerprint == fingerprint)

    def store(self, node_id, slot, fingerprint, value):
        entry = CacheEntry(value, fingerprint)
        if self._pending is not None:
            self._pending[(node_id, slot)] = entry
        else:
            self._entries[(node_id, slot)] = entry
        return entry

    def get_or_compute(self, node_id, slot, fingerprint, compute_fn):
        """
        Return the cached value for the output, calling *compute_fn()* to
        produce it if the entry is missing or stale.
        """
        entry = self.lookup(node_id, slot, fingerprint)
        if entry is not None:
            self.hits += 1
            logger.debug("retrieving cached value for node %d:%d: %s",
                         node_id, slot, fingerprint)
            return entry.value
        self.misses += 1
        value = compute_fn()
        logger.debug("caching node %d:%d: %s", node_id, slot, fingerprint)
        self.store(node_id, slot, fingerprint, value)
        return value

    @contextlib.contextmanager
    def transaction(self):
        """
        Stage the entries stored within the block, committing them only if
        the block completes without raising.

        Nested transactions join the outer one.
        """
        if self._pending is not None:
            yield self
            return
        self._pending = OrderedDict()
        try:
            yield self
        except BaseException:
            logger.debug("discarding %d staged entries", len(self._pending))
            raise
        else:
            for key, entry in self._pending.items():
                self._entries[key] = entry
        finally:
            self._pending = None

    def invalidate_downstream_of(self, graph, node_id):
        """
        Mark the outputs of *node_id* and of every node reachable from it
        as stale.

        Returns the set of affected nodes.
        """
        nodes = graph.dependents(node_id)
        count = 0
        for node in nodes:
            for slot in range(len(graph.node(node).outputs)):
                entry = self.entry(node, slot)
                if entry is not None and not entry.stale:
                    entry.stale = True
                    count += 1
        logger.debug("invalidated %d entries downstream of node %d",
                     count, node_id)
        return nodes

    def remove(self, node_id):
        """
        Purge all entries belonging to *node_id*.
        """
        keys = [key for key in list(self._entries.keys()) if key[0] == node_id]
        for key in keys:
            del self._entries[key]
        logger.debug("removed %d entries for node %d", len(keys), node_id)

    def clear(self):
        self._entries.clear()
        self.hits = self.misses = 0

    def copy(self):
        """
        Return an independent cache holding copies of the current entries.

        Values are shared, not copied; they are never mutated in place.
        """
        result = OutputCache(self.size)
        # pylru iterates from most to least recently used
        for key in reversed(list(self._entries.keys())):
            result._entries[key] = copy.copy(self._peek(key))
        result.hits, result.misses = self.hits, self.misses
        return result
