"""
Spectroscopic data cube library.

Transforms for generating, slicing and analyzing 3D data cubes, registered
under the "astro" library id.
"""
