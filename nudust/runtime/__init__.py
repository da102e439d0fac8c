"""Runtime helpers used by the rank driver."""

from .driver import DEFAULT_WORKERS, run_cells
from .helpers import format_exception_short, log_stage

__all__ = [
    "DEFAULT_WORKERS",
    "run_cells",
    "format_exception_short",
    "log_stage",
]
