"""
Transforms for exploring spectroscopic data cubes.

Data cubes are numpy arrays indexed as cube[wave, y, x], with one image
frame per wavelength channel.  Coordinates in a plane map use the same
(wave, y, x) order.
"""
import numpy as np

from cubeflow.dataflow.automod import module, nocache

from .roi import Roi


@module("arithmetic")
def add(x, y):
    """
    Add two numbers.

    **Inputs**

    x (float) : first term

    y (float) : second term

    **Returns**

    sum (float) : x + y

    | 2018-03-02 cubeflow developers
    """
    return float(x + y)


@module("arithmetic")
def multiply(x, factor=1.0):
    """
    Multiply a number by a constant factor.

    **Inputs**

    x (float) : value to scale

    factor (float) : scale factor

    **Returns**

    product (float) : x * factor

    | 2018-03-02 cubeflow developers
    """
    return float(x * factor)


@module("arithmetic")
def divide(x, y):
    """
    Divide two numbers.

    Fails if the divisor is zero.

    **Inputs**

    x (float) : numerator

    y (float) : divisor

    **Returns**

    ratio (float) : x / y

    | 2018-03-02 cubeflow developers
    """
    if y == 0:
        raise ZeroDivisionError("cannot divide %g by zero" % x)
    return float(x / y)


@module("vectors")
def make_float3(x=0.0, y=0.0, z=0.0):
    """
    Build a vector of three floats from its components.

    **Inputs**

    x (float) : first component

    y (float) : second component

    z (float) : third component

    **Returns**

    vector (float3) : [x, y, z]

    | 2018-03-02 cubeflow developers
    """
    return np.array([x, y, z], dtype=float)


@module("vectors")
def make_roi(x0=0, y0=0, x1=1, y1=1):
    """
    Select a rectangle of pixels on the image plane.

    The rectangle includes x0 and y0 but not x1 and y1.

    **Inputs**

    x0 (integer) : first column

    y0 (integer) : first row

    x1 (integer) : column after the last

    y1 (integer) : row after the last

    **Returns**

    roi (roi) : selected pixels

    | 2018-03-11 cubeflow developers
    """
    if x1 <= x0 or y1 <= y0:
        raise ValueError("empty region [%d, %d) x [%d, %d)" % (x0, x1, y0, y1))
    return Roi.rectangle(x0, y0, x1, y1)


@module("input")
@nocache
def load_cube(filename):
    """
    Load a data cube saved with numpy.save.

    The file is read again on every evaluation, so changes on disk are
    seen by everything downstream.

    **Inputs**

    filename (path) : .npy file holding a 3D array

    **Returns**

    cube (image3d) : data cube as cube[wave, y, x]

    | 2018-03-02 cubeflow developers
    """
    data = np.load(filename)
    if data.ndim != 3:
        raise ValueError("expected a 3D array in %s but got %dD"
                         % (filename, data.ndim))
    return np.asarray(data, dtype=float)


@module("input")
def synthetic_cube(frames=16, rows=32, cols=32, width=4.0, amplitude=10.0):
    r"""
    Generate a data cube holding a single source with an emission line.

    The source is a gaussian of the given *width* in the middle of the
    image plane.  Its brightness is 1 in the continuum, rising to
    1 + *amplitude* at the central wavelength channel.

    **Inputs**

    frames (integer) : number of wavelength channels

    rows (integer) : image height

    cols (integer) : image width

    width (float) : gaussian width of the source in pixels

    amplitude (float) : peak strength of the emission line

    **Returns**

    cube (image3d) : data cube as cube[wave, y, x]

    | 2018-03-02 cubeflow developers
    | 2018-04-20 cubeflow developers: add emission line
    """
    if frames < 1 or rows < 1 or cols < 1:
        raise ValueError("cube dimensions must be positive")
    if width <= 0:
        raise ValueError("width must be positive")
    z = np.arange(frames, dtype=float)[:, None, None]
    y = np.arange(rows, dtype=float)[None, :, None]
    x = np.arange(cols, dtype=float)[None, None, :]
    r2 = (x - (cols-1)/2.)**2 + (y - (rows-1)/2.)**2
    spatial = np.exp(-r2/(2*width**2))
    line_width = max(frames/8., 1.)
    line = 1 + amplitude*np.exp(-(z - (frames-1)/2.)**2/(2*line_width**2))
    return spatial*line


@module("slice")
def make_plane3d(p0, dir1, dir2, count1=32, count2=32):
    """
    Map a grid on an arbitrary plane of the cube.

    Point [i, j] of the map is at p0 + i*dir1 + j*dir2.

    **Inputs**

    p0 {Origin} (float3) : first point of the grid, as (wave, y, x)

    dir1 {First Axis} (float3) : step between rows of the grid

    dir2 {Second Axis} (float3) : step between columns of the grid

    count1 (integer) : number of rows in the grid

    count2 (integer) : number of columns in the grid

    **Returns**

    map (map2d_to_3d_coords) : cube coordinates of each grid point

    | 2018-03-02 cubeflow developers
    """
    if count1 < 1 or count2 < 1:
        raise ValueError("grid must have at least one point")
    i = np.arange(count1, dtype=float)[:, None, None]
    j = np.arange(count2, dtype=float)[None, :, None]
    p0, dir1, dir2 = (np.asarray(v, dtype=float)[None, None, :]
                      for v in (p0, dir1, dir2))
    return p0 + i*dir1 + j*dir2


@module("slice")
def slice_3d_to_2d(image, map):
    """
    Slice the cube along a plane.

    Each point of the map takes the value of the nearest pixel of the cube.

    **Inputs**

    image (image3d) : data cube

    map (map2d_to_3d_coords) : cube coordinates of each output pixel

    **Returns**

    output (image2d) : pixels of the cube on the plane

    | 2018-03-02 cubeflow developers
    """
    index = np.floor(map + 0.5).astype(int)
    outside = ((index < 0) | (index >= np.array(image.shape))).any(axis=-1)
    if outside.any():
        raise ValueError("map point %s is outside of the cube"
                         % (tuple(map[outside][0]),))
    return image[index[..., 0], index[..., 1], index[..., 2]]


@module("analyze")
def extract_wave(image, roi):
    """
    Sum the pixels in the region of interest for each wavelength channel,
    giving the spectrum of the region.

    **Inputs**

    image (image3d) : data cube

    roi {Region} (roi) : pixels to include

    **Returns**

    spectrum (image1d) : total intensity in each channel

    | 2018-03-11 cubeflow developers
    """
    if not len(roi):
        raise ValueError("region of interest is empty")
    ys, xs = roi.indices(image.shape[1:])
    return image[:, ys, xs].sum(axis=1)


@module("analyze")
def integrate(image, start=0, stop=0):
    """
    Sum the frames of the cube over a range of wavelength channels.

    **Inputs**

    image (image3d) : data cube

    start (integer) : first channel

    stop (integer) : channel after the last, or 0 for all remaining channels

    **Returns**

    output (image2d) : integrated image

    | 2018-03-11 cubeflow developers
    """
    frames = image[start:stop] if stop > 0 else image[start:]
    if frames.shape[0] == 0:
        raise ValueError("no channels in [%d, %d)" % (start, stop))
    return frames.sum(axis=0)
