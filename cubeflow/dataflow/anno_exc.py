"""
Add context to an exception before it is reraised.

For example::

    try:
        parse(action)
    except ValueError as exc:
        annotate_exception("while initializing transform " + action.__name__, exc)
        raise

The annotated message reads "unable to parse parameter ... while
initializing transform integrate", which identifies the failing function
without changing the exception type seen by the caller.
"""
import sys

def annotate_exception(msg, exc=None):
    """
    Append *msg* to the message of *exc*, or of the exception currently
    being handled.
    """
    if exc is None:
        exc = sys.exc_info()[1]

    args = exc.args
    if isinstance(exc, OSError) and len(args) == 2:
        # system errors have args=(errno, message)
        exc.args = (args[0], " ".join((args[1], msg)))
    elif not args:
        exc.args = (msg,)
    else:
        exc.args = (" ".join((str(args[0]), msg)),) + tuple(args[1:])
