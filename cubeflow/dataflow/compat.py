"""
Type compatibility between terminals.

A wire may connect an output slot to an input slot when the two datatypes
are identical, or when the domain library has declared that the source
type *widens* to the target type (for example, integer to float).  The
widening relation is data supplied by the library; the engine only looks
it up.

By default only directly declared widenings are honoured.  Set *max_hops*
to allow chains of declared widenings to compose, or to None to use the
full transitive closure.  Chains are never inferred beyond that, so
integer -> float and float -> complex does not imply integer -> complex
unless the library says so or the session is configured to allow it.
"""
from collections import OrderedDict

from .errors import IncompatibleType


class WideningRelation(object):
    """
    Directed table of allowed widenings between datatype ids.

    *max_hops* is the maximum number of declared widenings that may be
    chained together, or None for no limit.
    """
    def __init__(self, max_hops=1):
        if max_hops is not None and max_hops < 1:
            raise ValueError("max_hops must be at least 1, or None")
        self.max_hops = max_hops
        self._table = OrderedDict()

    def add(self, source, target, convert=None):
        """
        Declare that values of datatype *source* may flow into *target*.

        *convert* is an optional function applied to the value on its way
        through the wire.  Without it the value is passed unchanged.
        """
        if source == target:
            raise ValueError("%s already feeds itself" % source)
        self._table[(source, target)] = convert

    def pairs(self):
        """
        Return the declared (source, target) pairs in declaration order.
        """
        return list(self._table.keys())

    def __contains__(self, pair):
        return pair in self._table

    def __len__(self):
        return len(self._table)

    def compatible(self, source, target):
        """
        Return True if an output of type *source* can feed an input of
        type *target*.
        """
        return source == target or self._path(source, target) is not None

    def converter(self, source, target):
        """
        Return the conversion function for a *source* to *target* wire.

        Returns None when the value passes through unchanged.  Raises
        *IncompatibleType* if the types are not compatible.
        """
        if source == target:
            return None
        path = self._path(source, target)
        if path is None:
            raise IncompatibleType("%s cannot feed %s" % (source, target))
        steps = [self._table[pair] for pair in zip(path[:-1], path[1:])]
        steps = [fn for fn in steps if fn is not None]
        if not steps:
            return None
        if len(steps) == 1:
            return steps[0]
        def convert(value):
            for fn in steps:
                value = fn(value)
            return value
        return convert

    def _path(self, source, target):
        # Breadth first search so that the shortest chain wins; ties go to
        # the first declared widening.
        if (source, target) in self._table:
            return [source, target]
        if self.max_hops == 1:
            return None
        frontier = [[source]]
        visited = set([source])
        depth = 0
        while frontier and (self.max_hops is None or depth < self.max_hops):
            depth += 1
            next_frontier = []
            for path in frontier:
                tail = path[-1]
                for a, b in self._table:
                    if a != tail or b in visited:
                        continue
                    if b == target:
                        return path + [b]
                    visited.add(b)
                    next_frontier.append(path + [b])
            frontier = next_frontier
        return None
