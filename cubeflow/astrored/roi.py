"""
Region of interest on the image plane of a data cube.
"""
import numpy as np


class Roi(object):
    """
    Set of pixels selected on a 2D image.

    *pixels* : [(x, y), ...]
        Column and row of each selected pixel.
    """
    def __init__(self, pixels=()):
        self.pixels = tuple(sorted(set((int(x), int(y)) for x, y in pixels)))

    @classmethod
    def rectangle(cls, x0, y0, x1, y1):
        """
        Select the pixels with x0 <= x < x1 and y0 <= y < y1.
        """
        return cls((x, y) for x in range(x0, x1) for y in range(y0, y1))

    def __len__(self):
        return len(self.pixels)

    def __eq__(self, other):
        return isinstance(other, Roi) and self.pixels == other.pixels

    def __hash__(self):
        return hash(self.pixels)

    def __repr__(self):
        return "Roi(%d pixels)" % len(self.pixels)

    def indices(self, shape):
        """
        Return (rows, cols) index arrays for an image of the given (rows,
        cols) shape.

        Raises *ValueError* if any pixel lies outside the image.
        """
        rows, cols = shape
        for x, y in self.pixels:
            if not (0 <= x < cols and 0 <= y < rows):
                raise ValueError("pixel (%d, %d) is outside the %dx%d image"
                                 % (x, y, cols, rows))
        ys = np.array([y for _, y in self.pixels], dtype=int)
        xs = np.array([x for x, _ in self.pixels], dtype=int)
        return ys, xs

    def __getstate__(self):
        return {"pixels": [list(p) for p in self.pixels]}

    def __setstate__(self, state):
        self.pixels = tuple(tuple(p) for p in state["pixels"])

    def todict(self):
        return self.__getstate__()

    @classmethod
    def fromdict(cls, state):
        return cls(state["pixels"])
