"""
Generate transform definitions from function declarations.

:func:`make_transforms` defines the transforms available in a library given
a list of actions.  The doc strings of the actions define the interface.
"""
import inspect
import logging
import re

from .anno_exc import annotate_exception
from .core import Transform
from .rst2html import rst2html

logger = logging.getLogger(__name__)

# Decorators to tag action functions for a library

def cache(action):
    """
    Decorator which adds the *cached* attribute to the function.

    Transforms are cached by default, so *@cache* only documents the intent.
    Use *@nocache* for actions which read external state, such as a file
    which may change on disk, or when debugging a function so that it will
    be recomputed each time regardless of whether or not it is seen again.
    Everything downstream of a *@nocache* transform is recomputed as well.
    """
    action.cached = True
    return action

def nocache(action):
    """
    Decorator which clears the *cached* attribute of the function.

    See :func:`cache`.
    """
    action.cached = False
    return action

def module(tag=""):
    """
    Decorator adds *group=tag* as an attribute to the function.

    This marks a function as a transform to be included in the library.
    If *tag* is set then the transform will be placed in a submenu with
    that label.  If used as a bare function then defaults to a tag of ""
    for the top-level menu.

    For example, to register *action*::

        @module
        def action(image, scale=1.0):
            ...

    To register action in the *slice* submenu use::

        @module("slice")
        def slice_action(image):
            ...

    Actions can be retrieved from a python module using :func:`get_modules`.
    """
    # Called as @module
    if callable(tag):
        tag.group = ""
        return tag

    # Called as @module("tag")
    def wrapper(fn):
        fn.group = tag
        return fn
    return wrapper

def get_modules(module, grouped=False, sorted=True):
    """
    Retrieve @module actions from a python module.

    If *grouped*, return [(group, [action, ...]), ...] in group order.

    If *sorted*, sort the actions by name, otherwise they appear in the
    order they are defined in the module.
    """
    actions = [
        fn for name in dir(module)
        for fn in [getattr(module, name)]
        if hasattr(fn, 'group') and getattr(fn, '__module__', None) == module.__name__
    ]
    if sorted:
        actions.sort(key=lambda fn: fn.__name__)
    else:
        actions.sort(key=lambda fn: fn.__code__.co_firstlineno)
    if grouped:
        groups = []
        index = {}
        for fn in actions:
            if fn.group not in index:
                index[fn.group] = len(groups)
                groups.append((fn.group, []))
            groups[index[fn.group]][1].append(fn)
        return groups
    return actions


def make_transforms(actions, prefix=""):
    """
    Convert a list of action functions into transforms using auto_transform.

    All ids are prefixed with prefix, as are datatypes which are not
    already fully qualified.
    """
    transforms = []
    for action in actions:
        # Read the transform definition from the docstring
        description = auto_transform(action)

        # Tag transform ids with prefix
        description['id'] = prefix + description['id']

        # Tag each slot data type with the data type prefix, if it is
        # not already a fully qualified name
        for v in description['inputs'] + description['outputs']:
            if '.' not in v['datatype']:
                v['datatype'] = prefix + v['datatype']

        transform = Transform(action=action, **description)
        logger.debug("defined transform %s version %s",
                     transform.id, transform.version)
        transforms.append(transform)

    return transforms


def auto_transform(action):
    """
    Given an action function, parse the docstring and return the
    transform definition.

    The action name and docstring are highly stylized.

    The description is first.  It can span multiple lines.

    The parameter sections are ``**Inputs**`` and ``**Returns**``.
    These must occur on a line by themselves, with the ``**...**`` markup
    to make them show up bold in the sphinx docs.  Every function argument
    is an input slot, in the order given in the function definition.  If
    the argument has a keyword default, that value is used whenever nothing
    is wired into the slot.

    Each parameter has id, optional label, datatype and description.  The
    id is the first on the line, followed by the label in {braces}, the
    datatype in (parentheses), then ':' and a description string.  The
    parameter definition can span multiple lines, but the description will
    be joined to a single line.  Return values are given in the same way,
    one for each output slot.

    Every transform should have a date stamp and author, with date as
    yyyy-mm-dd so that it sorts correctly.  A change notice can be
    included, separated from author by ':'.  If there are multiple
    updates to the transform, precede each with '| ' so that line breaks
    are preserved in the formatted documentation.  The most recent date is
    the version of the transform, so any change to the calculation should
    add a line to the change log.

    For example::

        def integrate(image, roi):
            r\"""
            Sum the pixels of each frame of the cube over the region of
            interest.

            **Inputs**

            image (image3d) : data cube

            roi {Region} (roi) : pixels to include

            **Returns**

            output (image1d) : summed intensity for each frame

            | 2018-03-02 A. Author: first release
            | 2018-05-14 B. Author: use the roi mask
            \"""

    The 'r' preceding the docstring allows us to put backslashes in the
    documentation, which is convenient when we have latex markup in between
    dollar signs or in a \\:math\\: environment.
    """
    try:
        return _parse_function(action)
    except ValueError as exc:
        annotate_exception("while initializing transform " + action.__name__, exc)
        raise


timestamp = re.compile(r"^([|] )?(?P<date>[0-9]{4}-[0-9]{2}-[0-9]{2})\s+(?P<author>.*?)\s*(:\s*(?P<change>.*?)\s*)?$")
def _parse_function(action):
    # grab arguments and defaults from the function definition
    argspec = inspect.getfullargspec(action)
    args = argspec.args
    defaults = (dict(zip(args[-len(argspec.defaults):], argspec.defaults))
                if argspec.defaults else {})
    if argspec.varargs is not None or argspec.varkw is not None:
        raise ValueError("function contains *args or **kwargs")

    # Note: inspect.getdoc() cleans the docstring, removing the indentation and
    # the leading and trailing carriage returns
    docstr = inspect.getdoc(action)
    if not docstr:
        raise ValueError("function has no docstring")

    # Default values for docstring portions
    input_lines = []
    output_lines = []
    changelog = []

    # Split docstring into sections
    state = 0 # processing description
    for line in docstr.split('\n'):
        match = timestamp.match(line)
        stripped = line.strip()
        if match is not None:
            state = 3
            changelog.append((match.group('date'), match.group('author'),
                              match.group('change')))
        elif stripped == "**Inputs**":
            state = 1
        elif stripped == "**Returns**":
            state = 2
        elif state == 0:
            pass
        elif state == 1:
            input_lines.append(line)
        elif state == 2:
            output_lines.append(line)
        elif state == 3:
            if stripped:
                raise ValueError("docstring continues after time stamp")
        else:
            raise RuntimeError("Unknown state %s"%state)

    if not changelog:
        raise ValueError("missing time stamp")
    version, author, _ = max(changelog, key=lambda entry: entry[0])

    # parse the sections
    name = _unsplit_name(action.__name__)
    heading = "\n".join(("="*len(name), name, "="*len(name), ""))
    description = rst2html(heading + docstr, part="html_body", math_output="mathjax")
    inputs = parse_parameters(input_lines)
    outputs = parse_parameters(output_lines)

    # Check that all defined arguments are described
    defined = set(args)
    described = set(p['id'] for p in inputs)
    if defined-described:
        raise ValueError("Parameters defined but not described: "
                         + ",".join(sorted(defined-described)))
    if described-defined:
        raise ValueError("Parameters described but not defined: "
                         + ",".join(sorted(described-defined)))

    # Make sure there are no duplicates
    all_described = set(p['id'] for p in inputs+outputs)
    if len(all_described) != len(inputs)+len(outputs):
        raise ValueError("Parameter and return value names must be unique")

    # Slots are ordered as in the function definition, not the docstring
    order = dict((arg, k) for k, arg in enumerate(args))
    inputs.sort(key=lambda p: order[p['id']])
    for p in inputs:
        p['default'] = defaults.get(p['id'], None)

    # Collect all the transform info
    result = {
        'id': action.__name__,
        'name': name,
        'description': description,
        'inputs': inputs,
        'outputs': outputs,
        'version': version,
        'author': author,
        'action_id': action.__module__ + "." + action.__name__
        }

    return result


def _unsplit_name(name):
    """
    Convert "this_name" into "This Name".
    """
    return " ".join(s.capitalize() for s in name.split('_'))


# parameter definition regular expression
parameter_re = re.compile(r"""\A
    \s*(?P<id>\w+)                           # name
    \s*(\{\s*(?P<label>.*?)\s*\})?           # { label }    (optional)
    \s*(\(\s*(?P<datatype>[\w.]*)\s*\))?     # (datatype)   (optional)
    \s*:                                     # :
    \s*(?P<description>.*?)                  # description  (non-greedy)
    \s*\Z""", re.VERBOSE)
def parse_parameters(lines):
    """
    Interpret the doc strings for the parameters.

    Each parameter must use the form defined by the following syntax:

        id {label} (datatype) : description

    The *{label}* is optional, defaulting to the id with words capitalized.
    The *(datatype)* is optional, defaulting to str.

    *lines* is the set of lines after ``**Inputs**`` and ``**Returns**``.
    Note that parameters are defined by consecutive non-blank lines separated
    by blank lines.  :func:`get_paragraphs` is used to gather all of the
    relevant lines together, skipping the blank bits.
    """
    ret = []
    for group in get_paragraphs(lines):
        s = " ".join(s.strip() for s in group)
        match = parameter_re.match(s)
        if match is None:
            raise ValueError("unable to parse parameter:\n  "+"  ".join(group))
        d = match.groupdict()
        if d['label'] is None:
            d['label'] = _unsplit_name(d['id'])
        if not d['datatype']:
            d['datatype'] = "str"
        ret.append(d)
    return ret


def get_paragraphs(lines):
    """
    Yield a list of paragraphs defined as lines separated by blank lines.

    Each paragraph is returned as a list of lines.
    """
    group = []
    for line in lines:
        if line.strip() == "":
            if group:
                yield group
            group = []
        else:
            group.append(line)
    if group:
        yield group
