"""
Visual programming engine for spectroscopic data cubes.
"""
