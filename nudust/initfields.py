"""Initial state-vector assembly shared with the integrator's right-hand side.

Every cell integrates one flat vector laid out as::

    [abundances (n_gas)] [moments (N_MOMENTS * n_react)] [size distribution (n_react * n_bins)]

The moments block is grain-major (all moments of grain 0 first) and starts
empty; the size distribution block is grain-major as well.  The integrator
slices the vector with :class:`StateLayout`, so both sides must agree on
this ordering.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from . import constants
from .errors import ConfigurationError

if TYPE_CHECKING:
    from .io.inputs import CellInputStore

logger = logging.getLogger(__name__)


def state_vector_length(n_gas: int, n_react: int, n_bins: int, n_moments: int = constants.N_MOMENTS) -> int:
    """Return ``n_gas + n_moments * n_react + n_react * n_bins``."""

    return n_gas + n_moments * n_react + n_react * n_bins


@dataclass(frozen=True)
class StateLayout:
    """Block boundaries inside the flat per-cell state vector."""

    n_gas: int
    n_react: int
    n_bins: int
    n_moments: int = constants.N_MOMENTS

    @property
    def size(self) -> int:
        return state_vector_length(self.n_gas, self.n_react, self.n_bins, self.n_moments)

    @property
    def abundances(self) -> slice:
        return slice(0, self.n_gas)

    @property
    def moments(self) -> slice:
        start = self.n_gas
        return slice(start, start + self.n_moments * self.n_react)

    @property
    def size_dist(self) -> slice:
        start = self.n_gas + self.n_moments * self.n_react
        return slice(start, start + self.n_react * self.n_bins)


def assemble_state_vector(abundances: np.ndarray, size_dist: np.ndarray, layout: StateLayout) -> np.ndarray:
    """Concatenate abundances, a zeroed moments block and the size distribution."""

    abundances = np.asarray(abundances, dtype=float)
    size_dist = np.asarray(size_dist, dtype=float)
    if abundances.size != layout.n_gas:
        raise ConfigurationError(f"expected {layout.n_gas} abundances, got {abundances.size}")
    if size_dist.size != layout.n_react * layout.n_bins:
        raise ConfigurationError(
            f"expected {layout.n_react * layout.n_bins} size-distribution values, got {size_dist.size}"
        )
    moments = np.zeros(layout.n_moments * layout.n_react)
    return np.concatenate([abundances, moments, size_dist])


def generate_sol_vectors(store: CellInputStore, n_react: int, n_bins: int) -> StateLayout:
    """Assemble the initial state vector of every cell in ``store``."""

    layout = StateLayout(n_gas=store.n_gas, n_react=n_react, n_bins=n_bins)
    for cell_id, cell in store.items():
        try:
            cell.solution_vector = assemble_state_vector(cell.init_abund, cell.size_dist, layout)
        except ConfigurationError as exc:
            raise ConfigurationError(f"cell {cell_id}: {exc}") from exc
    logger.info("generated solution vector of length %d for %d cells", layout.size, len(store))
    return layout


__all__ = ["state_vector_length", "StateLayout", "assemble_state_vector", "generate_sol_vectors"]
