"""Grain nucleation and sputtering-destruction setup over independent cells."""
from . import constants
from .errors import NuDustError

__version__ = "0.1.0"

__all__ = ["constants", "NuDustError", "__version__"]
