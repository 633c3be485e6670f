"""
Dataflow architecture.

The dataflow architecture evaluates graphs of transforms wired together
by the user, such as loading a data cube, slicing it along a plane and
extracting the spectrum of a region.

Operations are organized into libraries, each with its own data types and
transforms.  These are defined as :class:`.core.Library`,
:class:`.core.DataType` and :class:`.core.Transform` respectively, and are
registered with a :class:`.core.Registry` when the session starts.
Transforms have ordered input slots, each with a datatype and an optional
default value, and ordered output slots.  Data types control which output
slots can be wired to which input slots, either directly or through a
widening declared by the library (an integer feeding a float input, for
example).

The graph itself is a :class:`.graph.Graph` of transform nodes and
constant nodes.  Edits are checked as they are made, so the graph is
always acyclic and every wire joins compatible types.  Values are computed
on demand by :func:`.calc.evaluate`, which computes only what is needed
for the requested output and keeps the results in a
:class:`.cache.OutputCache` until an edit upstream makes them stale.

A :class:`.session.Session` serializes access to the graph from multiple
threads, and :mod:`.store` saves and restores graphs.
"""

__version__ = "0.2"
