"""
Build a session from a configuration.

Configurations are python modules in :mod:`cubeflow.configurations` which
define a *config* dictionary.  See *configurations/default.py* for the
available settings.
"""
import copy
import importlib
import logging

from cubeflow.configurations import default
from .cache import DEFAULT_SIZE
from .core import Registry
from .session import Session

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = copy.deepcopy(default.config)

def load_config(name="config", fallback=True):
    """
    Look for configurations defined in the configurations directory
    if the name is not found, use "default" if fallback==True
    """
    try:
        config_module = importlib.import_module("cubeflow.configurations.{name}".format(name=name))
        return copy.deepcopy(config_module.config)
    except ImportError:
        if fallback:
            return copy.deepcopy(DEFAULT_CONFIG)
        else:
            raise

def load_library(registry, name):
    """
    Register the library defined by the package *cubeflow.<name>*.

    The package must provide a *dataflow* module with a
    *define_library(registry)* function.
    """
    library_module = importlib.import_module("cubeflow.{name}.dataflow".format(name=name))
    library = library_module.define_library(registry)
    logger.info("loaded library %s from %s", library.id, name)
    return library

def apply_config(user_config=None, user_overrides=None):
    """
    Return a new :class:`.session.Session` set up as described by the
    configuration.

    *user_overrides* replaces individual top level entries in the
    configuration.
    """
    if user_config is not None:
        config = copy.deepcopy(user_config)
    else:
        config = copy.deepcopy(DEFAULT_CONFIG)

    if user_overrides is not None:
        config.update(user_overrides)

    logging_config = config.get("logging", {})
    if "level" in logging_config:
        logging.basicConfig(level=getattr(logging, logging_config["level"].upper()))

    widening_config = config.get("widening", {})
    registry = Registry(max_hops=widening_config.get("max_hops", 1))

    # Load astrored if nothing specified in config.
    for name in config.get("libraries", ["astrored"]):
        load_library(registry, name)

    cache_config = config.get("cache", {})
    return Session(registry, cache_size=cache_config.get("size", DEFAULT_SIZE))
