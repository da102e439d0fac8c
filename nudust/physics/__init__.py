"""Physics modules for size grids and sputtering coefficients."""
from . import sizes, sputter

__all__ = ["sizes", "sputter"]
