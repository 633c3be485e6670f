"""
Exceptions raised by the dataflow engine.

Every error is recoverable by the caller.  A rejected edit leaves the graph
unchanged and a failed evaluation leaves the cache unchanged, so the user
can fix the offending constant or wire and try again.

Each class also derives from the closest builtin exception, so callers
which catch *KeyError* for a missing node keep working.
"""


class DataflowError(Exception):
    """Base class for all engine errors."""


# === registry ===
class DuplicateName(DataflowError, ValueError):
    """A transform with the same id is already registered."""


class UnknownTransform(DataflowError, KeyError):
    """No transform is registered under the given id."""
    def __str__(self):
        return Exception.__str__(self)


# === structural edits ===
class NotFound(DataflowError, KeyError):
    """The node, wire or output does not exist."""
    def __str__(self):
        return Exception.__str__(self)


class InvalidSlot(DataflowError, IndexError):
    """Slot index is out of range for the node."""


class IncompatibleType(DataflowError, TypeError):
    """The source slot type cannot feed the target slot type."""


class SlotOccupied(DataflowError, ValueError):
    """The input slot already has an incoming wire."""


class WouldCycle(DataflowError, ValueError):
    """The wire would close a cycle in the graph."""


class WrongNodeKind(DataflowError, TypeError):
    """The operation does not apply to this kind of node."""


class TypeMismatch(DataflowError, TypeError):
    """The value does not belong to the declared type."""


# === evaluation ===
class UnresolvedInput(DataflowError, ValueError):
    """
    An input slot has neither a wire nor a default value.

    *node* and *slot* identify the input which could not be resolved.
    """
    def __init__(self, node, slot, message=None):
        if message is None:
            message = "input %d of node %d is not connected and has no default" % (slot, node)
        DataflowError.__init__(self, message)
        self.node = node
        self.slot = slot


class TransformError(DataflowError, RuntimeError):
    """
    The transform action failed.

    *name* is the transform id and *cause* the exception raised by the
    action (also available as *__cause__*).
    """
    def __init__(self, name, cause):
        DataflowError.__init__(self, "%s failed: %s" % (name, cause))
        self.name = name
        self.cause = cause
