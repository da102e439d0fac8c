"""I/O helper subpackage."""
from . import inputs, checkpoint

__all__ = ["inputs", "checkpoint"]
