"""
Dependency calculator.
"""


def processing_order(pairs, n=0):
    """
    Order the work in a workflow.

    Given a set of items to evaluate, and dependency pairs (a, b) meaning
    that a must be evaluated before b, return the items in an order which
    satisfies every pair.

    :Parameters:

    *pairs* : [(int, int), ...]

        Pairwise dependencies amongst items.

    *n* : int or [int, ...]

        Number of items numbered from zero through n-1, or the list of
        item ids if they are not consecutive, or 0 if we don't care about
        any item that is not mentioned in the list of pairs.

    :Returns:

    *order* : [int, ...]

        Permutation which satisfies the partial order requirements.
        Items not constrained by any pair follow in ascending order.

    Raises *ValueError* if the pairs contain a cycle.
    """
    order = _dependencies(pairs)
    if isinstance(n, int):
        items = set(range(n)) if n else set(k for p in pairs for k in p)
    else:
        items = set(n)
    if n and set(order) - items:
        raise ValueError("Not all dependencies are in the set")
    rest = items - set(order)
    return order + sorted(rest)


def _dependencies(pairs):
    emptyset = set()
    order = []
    pairs = [(a, b) for a, b in pairs]
    if not pairs:
        return order

    # Break pairs into left set and right set
    left, right = (set(s) for s in zip(*pairs))
    while pairs:
        # Find which items only occur on the right
        independent = right - left
        if independent == emptyset:
            cycleset = ", ".join(str(s) for s in sorted(left))
            raise ValueError("Cyclic dependencies amongst %s" % cycleset)

        # The possibly resolvable items are those that depend on the independents
        dependent = set(a for a, b in pairs if b in independent)
        pairs = [(a, b) for a, b in pairs if b not in independent]
        if not pairs:
            resolved = dependent
        else:
            left, right = (set(s) for s in zip(*pairs))
            resolved = dependent - left
        # Sort each layer so the order is deterministic for a given graph
        order += sorted(resolved, reverse=True)
    order.reverse()
    return order
