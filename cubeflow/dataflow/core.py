"""
Core class definitions
"""
import datetime
import importlib
import json
import logging
import warnings
from collections import OrderedDict
from importlib import resources

import numpy as np
from numpy import nan, inf

from .compat import WideningRelation
from .errors import DuplicateName, UnknownTransform, TypeMismatch

logger = logging.getLogger(__name__)


class Registry(object):
    """
    Transforms, datatypes and widenings known to a session.

    The registry is populated once at start up by the domain libraries,
    and is read-only thereafter.  There is no global registry; construct
    one and pass it to the graph.  Tests build a fresh registry for each
    case so that registrations do not leak between them.

    *max_hops* is the widening composition depth; see
    :class:`.compat.WideningRelation`.
    """
    def __init__(self, max_hops=1):
        self._libraries = OrderedDict()
        self._transforms = OrderedDict()
        self._datatypes = OrderedDict()
        self.widening = WideningRelation(max_hops=max_hops)

    def register_library(self, library):
        """
        Add a new library of datatypes and transforms.
        """
        if library.id in self._libraries:
            raise DuplicateName("library %s already registered" % library.id)
        for d in library.datatypes:
            self.register_datatype(d)
        for source, target, convert in library.widenings:
            self.register_widening(source, target, convert)
        for t in library.transforms:
            self.register_transform(t)
        self._libraries[library.id] = library

    def lookup_library(self, id):
        return self._libraries[id]

    def list_libraries(self):
        """
        Return a list of available libraries.
        """
        return list(self._libraries.keys())

    def register_transform(self, transform):
        """
        Register a new transform.

        Raises *DuplicateName* if the id is already taken.
        """
        if transform.id in self._transforms:
            raise DuplicateName("transform %s already registered" % transform.id)
        for slot in transform.inputs + transform.outputs:
            if slot["datatype"] not in self._datatypes:
                raise TypeError("undefined type %s for %s in %s"
                                % (slot["datatype"], slot["id"], transform.id))
        for slot in transform.inputs:
            default = slot["default"]
            if default is not None:
                datatype = self._datatypes[slot["datatype"]]
                if not datatype.accepts(default):
                    raise TypeMismatch("default %r for %s in %s is not %s"
                                       % (default, slot["id"], transform.id,
                                          datatype.id))
        self._transforms[transform.id] = transform

    def lookup_transform(self, id):
        """
        Lookup a transform in the registry.
        """
        try:
            return self._transforms[id]
        except KeyError:
            raise UnknownTransform("transform %s is not registered" % id) from None

    def list_transforms(self):
        return list(self._transforms.keys())

    def register_datatype(self, datatype):
        if (datatype.id in self._datatypes
                and datatype != self._datatypes[datatype.id]):
            raise TypeError("Datatype already registered", datatype.id)
        self._datatypes[datatype.id] = datatype

    def lookup_datatype(self, id):
        return self._datatypes[id]

    def register_widening(self, source, target, convert=None):
        """
        Declare that datatype *source* can feed an input of type *target*.
        """
        for id in (source, target):
            if id not in self._datatypes:
                raise TypeError("undefined type %s in widening" % id)
        self.widening.add(source, target, convert)

    def compatible(self, source, target):
        """
        Return True if an output of datatype *source* can feed an input of
        datatype *target*.
        """
        return self.widening.compatible(source, target)


class Transform(object):
    """
    Transform descriptor.

    A computation is represented as a set of transforms connected by wires.

    *id* : string
        Transform identifier. By convention this will be a dotted structure
        '<library>.<operation>', such as "astro.slice_3d_to_2d".

    *version* : string
        Version number of the code which implements the calculation.
        If any code in the supporting libraries changes in a way that will
        affect the calculation results, the version number should be
        incremented.  The version is part of every fingerprint, so
        incrementing it invalidates cached results.

    *name* : string
        The display name of the transform, with every word capitalized.

    *description* : string
        A tooltip shown when hovering over the node.

    *action* : callable
        function which performs the calculation

    *action_id* : string
        fully qualified name required to import the action

    *author* : string
        Author of the transform

    *inputs* : [{Slot}, ...]
        Ordered input slots.  The index of a slot is its position.

        *id* : string
            name of the slot; this must correspond to a parameter name in
            the action.

        *label* : string
            display name for the slot.

        *datatype* : string
            id of the datatype accepted by the slot.

        *description* : string
            A tooltip shown when hovering over the slot.

        *default* : object
            value used when nothing is wired into the slot, or None if
            the slot must be wired.

    *outputs* : [{Slot}, ...]
        Ordered output slots, as for *inputs* but without *default*.
    """
    def __init__(self, id, version, name, description, inputs=None,
                 outputs=None, action=None, author="", action_id=""):
        self.id = id
        self.version = version
        self.name = name
        self.description = description
        self.author = author
        self.inputs = tuple(_slot(s, default=True) for s in (inputs or ()))
        self.outputs = tuple(_slot(s, default=False) for s in (outputs or ()))
        self.action = action
        self.action_id = action_id

    def __repr__(self):
        return "Transform(%r)" % self.id

    def get_definition(self):
        return self.__getstate__()

    @property
    def cached(self):
        return not hasattr(self.action, 'cached') or self.action.cached

    def __getstate__(self):
        # Don't pickle the function reference
        keys = ['version', 'id', 'name', 'description', 'author',
                'inputs', 'outputs', 'action_id']
        state = dict([(k, getattr(self, k)) for k in keys])
        state['inputs'] = [_encode_slot(s) for s in self.inputs]
        state['outputs'] = [dict(s) for s in self.outputs]
        return state

    def __setstate__(self, state):
        for k, v in state.items():
            setattr(self, k, v)
        self.inputs = tuple(_slot(s, default=True) for s in self.inputs)
        self.outputs = tuple(_slot(s, default=False) for s in self.outputs)
        # Restore the function reference after unpickling
        parts = self.action_id.split('.')
        mod = importlib.import_module(".".join(parts[:-1]))
        self.action = getattr(mod, parts[-1])


def _slot(slot, default):
    slot = dict(slot)
    slot.setdefault("label", slot["id"])
    slot.setdefault("description", "")
    if default:
        slot.setdefault("default", None)
    else:
        slot.pop("default", None)
    return slot


def _encode_slot(slot):
    slot = dict(slot)
    slot["default"] = todict(slot["default"])
    return slot


class Library(object):
    """
    A library is a set of transforms, the datatypes flowing between them
    and the standard templates which use them.

    *id* : string
        Library identifier, used as prefix for transform and datatype ids.

    *name* : string
        The display name of the library

    *menu* : [(string, [Transform, ...]), ...]
        Transforms available. Transforms are organized into groups of
        related operations, such as Input, Reduce, Analyze, ...

    *datatypes* : [DataType]
        List of datatypes used by the library

    *widenings* : [(source, target, convert), ...]
        Declared widenings between datatype ids; *convert* may be None.

    *template_defs* : {name: state}
        Saved graphs shipped with the library; see :func:`load_templates`.
    """
    def __init__(self, id, name=None, menu=None, datatypes=None,
                 widenings=None, template_defs=None):
        self.id = id
        self.name = name if name is not None else id
        self.menu = menu if menu is not None else []
        self.datatypes = datatypes if datatypes is not None else []
        self.widenings = widenings if widenings is not None else []
        self.template_defs = template_defs if template_defs is not None else {}

        self.transforms = []
        for _, m in self.menu:
            self.transforms.extend(m)
        self._check_datatypes()
        self._check_names()

    def _check_datatypes(self):
        defined = set(d.id for d in self.datatypes)
        used = set()
        for t in self.transforms:
            used |= set(s['datatype'] for s in t.inputs + t.outputs)
        for source, target, _ in self.widenings:
            used |= set((source, target))
        if used - defined:
            raise TypeError("undefined types: %s" % ", ".join(sorted(used - defined)))
        if defined - used:
            warnings.warn("unused types in %s: %s"
                          % (self.id, ", ".join(sorted(defined - used))))

    def _check_names(self):
        names = set(t.name for t in self.transforms)
        if len(names) != len(self.transforms):
            raise TypeError("names must be unique within a library")

    def get_transform_by_id(self, id):
        if '.' not in id:
            id = ".".join((self.id, id))
        for t in self.transforms:
            if t.id == id:
                return t
        raise KeyError(id + ' does not exist in library ' + self.name)

    def get_definition(self):
        keys = ['id', 'name']
        definition = dict([(k, getattr(self, k)) for k in keys])
        definition['menu'] = [[group, [t.id for t in transforms]]
                              for group, transforms in self.menu]
        definition['transforms'] = [t.get_definition() for t in self.transforms]
        definition['datatypes'] = [d.get_definition() for d in self.datatypes]
        definition['widenings'] = [[s, t] for s, t, _ in self.widenings]
        definition['templates'] = self.template_defs
        return definition


class DataType(object):
    """
    Data objects represent the information flowing over a wire.

    *id* : string
        Name of the data type.

    *cls* : class or tuple of classes
        Python class defining the data type.

    *check* : callable
        Optional predicate for values that share a python class with
        other data types, such as numpy arrays of different dimension.

    *encode*, *decode* : callable
        Convert a value to and from json-compatible primitives when the
        graph is saved.  Defaults are :func:`todict` and no conversion.

    *description* : string
        A tooltip shown when hovering over a wire of this type.
    """
    def __init__(self, id, cls, check=None, encode=None, decode=None,
                 description=""):
        self.id = id
        self.cls = cls
        self.check = check
        self.encode = encode if encode is not None else todict
        self.decode = decode
        self.description = description

    def __repr__(self):
        return "DataType(%r)" % self.id

    def accepts(self, value):
        """
        Return True if *value* is a member of the datatype.
        """
        # bool is a subclass of int, but True is not an integer value
        if isinstance(value, bool) and not _includes(self.cls, bool):
            return False
        if not isinstance(value, self.cls):
            return False
        return self.check is None or bool(self.check(value))

    def todict(self, value):
        return self.encode(value)

    def fromdict(self, state):
        return self.decode(state) if self.decode is not None else state

    def get_definition(self):
        return {"id": self.id, "description": self.description}


def _includes(cls, target):
    classes = cls if isinstance(cls, tuple) else (cls,)
    return any(issubclass(target, c) and c is not int for c in classes)


def todict(obj, convert_bytes=False):
    """
    Convert numpy and other values to json-compatible primitives.
    """
    if isinstance(obj, np.integer):
        obj = int(obj)
    elif isinstance(obj, np.floating):
        obj = float(obj)
    elif isinstance(obj, np.ndarray):
        obj = obj.tolist()
    elif isinstance(obj, datetime.datetime):
        obj = [obj.year, obj.month, obj.day, obj.hour, obj.minute, obj.second]
    elif isinstance(obj, (list, tuple)):
        obj = [todict(a, convert_bytes=convert_bytes) for a in obj]
    elif isinstance(obj, (dict, OrderedDict)):
        obj = OrderedDict([(k, todict(v, convert_bytes=convert_bytes))
                           for k, v in obj.items()])
    elif isinstance(obj, bytes) and convert_bytes:
        obj = obj.decode()
    return obj


def load_templates(package):
    """
    Returns a dictionary {name: state} of saved graphs for a library.

    Templates are stored as JSON files named "<library>.<name>.json" in a
    templates subdirectory, made into a package by inclusion of an empty
    __init__.py file.  They can then be loaded using::

        from cubeflow.dataflow import core as df
        from . import templates
        ...
        library = df.Library(
            ...
            template_defs=df.load_templates(templates),
        )

    Use :func:`.store.graph_from_state` to turn a template into a graph.
    """
    templates = {}
    templates_dir = resources.files(package)
    for item in templates_dir.iterdir():
        if item.is_file() and item.name.endswith('.json'):
            name = item.name.split('.')[-2]
            templates[name] = json.loads(item.read_text())
    logger.debug("loaded templates %s from %s", sorted(templates), package.__name__)
    return templates


# Inf/NaN representation options:
#     javascript names: "Infinity", "-Infinity", "NaN"
#     python names: "inf", "-inf", "nan"
#     math expressions: "1/0", "-1/0", "0/0"
#     unicode symbols: u"\u221E", u"-\u221E", u"\u26A0"
#     u26A0 is WARNING SIGN (! in triangle)
#     uFFFD is REPLACEMENT CHARACTER (? in diamond)
_NAN_STRING = u"\u26A0"  # WARNING SIGN (! in triangle)
_INF_STRING = u"\u221E"  # INFINITY
_MINUS_INF_STRING = u"-\u221E"  # -INFINITY
def sanitizeForJSON(obj):
    """
    Take an object made of python objects and remove inf and nan
    """
    if isinstance(obj, dict):
        output = {}
        for k, v in obj.items():
            output[k] = sanitizeForJSON(v)
        return output
    elif isinstance(obj, (list, tuple)):
        return list(map(sanitizeForJSON, obj))
    elif not isinstance(obj, float):
        return obj
    elif obj == inf:
        return _INF_STRING
    elif obj == -inf:
        return _MINUS_INF_STRING
    elif obj != obj:
        # Use WARNING SIGN for NaN
        return _NAN_STRING
    else:
        return obj


def sanitizeFromJSON(obj):
    """
    Convert inf/nan from json representation to python.
    """
    if isinstance(obj, dict):
        output = {}
        for k, v in obj.items():
            output[k] = sanitizeFromJSON(v)
        return output
    elif isinstance(obj, list):
        return list(map(sanitizeFromJSON, obj))
    elif obj == _INF_STRING:
        return inf
    elif obj == _MINUS_INF_STRING:
        return -inf
    elif obj == _NAN_STRING:
        return nan
    else:
        return obj
