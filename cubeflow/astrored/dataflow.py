import numpy as np

from cubeflow.dataflow import core as df
from cubeflow.dataflow.automod import make_transforms, get_modules

from . import steps
from . import templates
from .roi import Roi

LIBRARY = "astro"


def _array(ndim, width=None):
    def check(value):
        return value.ndim == ndim and (width is None or value.shape[-1] == width)
    return check

def _decode_array(state):
    return np.asarray(state, dtype=float)


def define_library(registry):
    # Define transforms
    menu = [(group, make_transforms(actions, prefix=LIBRARY+'.'))
            for group, actions in get_modules(steps, grouped=True, sorted=False)]

    # Define data types
    integer = df.DataType(LIBRARY+".integer", (int, np.integer),
                          description="whole number")
    real = df.DataType(LIBRARY+".float", (float, np.floating),
                       description="floating point number")
    path = df.DataType(LIBRARY+".path", str, description="file name")
    float3 = df.DataType(LIBRARY+".float3", np.ndarray, check=_array(1, 3),
                         decode=_decode_array, description="vector [x, y, z]")
    roi = df.DataType(LIBRARY+".roi", Roi, encode=Roi.todict,
                      decode=Roi.fromdict, description="region of interest")
    image1d = df.DataType(LIBRARY+".image1d", np.ndarray, check=_array(1),
                          decode=_decode_array, description="spectrum")
    image2d = df.DataType(LIBRARY+".image2d", np.ndarray, check=_array(2),
                          decode=_decode_array, description="image")
    image3d = df.DataType(LIBRARY+".image3d", np.ndarray, check=_array(3),
                          decode=_decode_array, description="data cube")
    map2d = df.DataType(LIBRARY+".map2d_to_3d_coords", np.ndarray,
                        check=_array(3, 3), decode=_decode_array,
                        description="cube coordinates of the points of a plane")

    # Define widenings
    widenings = [
        (integer.id, real.id, float),
        (float3.id, image1d.id, None),
    ]

    # Define library
    astro = df.Library(
        id=LIBRARY,
        name='Astronomy',
        menu=menu,
        datatypes=[
            integer, real, path, float3, roi,
            image1d, image2d, image3d, map2d,
            ],
        widenings=widenings,
        template_defs=df.load_templates(templates),
        )

    # Register library
    registry.register_library(astro)
    return astro
