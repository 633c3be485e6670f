#############################################################
# rename or copy this file to config.py if you make changes #
#############################################################

# Settings for a cubeflow session.  Use
#
#     from cubeflow.dataflow.configure import apply_config, load_config
#     session = apply_config(load_config("config"))
#
# to build a session from the named configuration, falling back to this
# file if there is no such configuration.

config = {
    # Number of node outputs to keep in the cache.  Set size to None to
    # keep every computed value for the life of the session.
    "cache": {
        "size": 1000,
    },

    # Number of declared widenings which may be chained to connect an
    # output to an input.  With max_hops=1 only the widenings declared by
    # the libraries are used; None allows any chain.
    "widening": {
        "max_hops": 1,
    },

    # Libraries to load, as packages under cubeflow.
    "libraries": ["astrored"],

    "logging": {
        "level": "WARNING",
    },
}
