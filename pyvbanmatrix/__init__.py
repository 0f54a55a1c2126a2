"""pyvbanmatrix Python Package

Python library for controlling a VBAN Matrix audio routing matrix.
"""

from pyvbanmatrix.mixer import VBANMatrix

__all__ = ["VBANMatrix"]
