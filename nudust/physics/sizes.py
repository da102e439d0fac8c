"""Grain size-bin construction."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..errors import ConfigurationError


@dataclass(frozen=True)
class SizeGrid:
    """Bin edges (``n_bins + 1``) and representative sizes (``n_bins``) in cm."""

    edges: np.ndarray
    sizes: np.ndarray

    @property
    def n_bins(self) -> int:
        return int(self.sizes.size)


def log_edges(low: float, high: float, n_bins: int) -> np.ndarray:
    """Return ``10**(low + n (high-low)/n_bins)`` for ``n = 0..n_bins``."""

    exp_del = (high - low) / float(n_bins)
    return np.array([10.0 ** (low + n * exp_del) for n in range(n_bins + 1)])


def generate_size_grid(
    low_exp: Optional[float],
    high_exp: Optional[float],
    n_bins: Optional[int],
) -> SizeGrid:
    """Build a log-spaced grid from decade exponents.

    Representative sizes are the arithmetic midpoints of adjacent edges.
    """

    if low_exp is None or high_exp is None or n_bins is None:
        raise ConfigurationError(
            "Missing parameters needed to generate a binned size distribution "
            "(sizing.low_sd_exp, sizing.high_sd_exp, sizing.bin_number) and no "
            "size distribution file was specified"
        )
    n_bins = int(n_bins)
    if n_bins <= 0:
        raise ConfigurationError("sizing.bin_number must be positive")
    edges = log_edges(float(low_exp), float(high_exp), n_bins)
    sizes = 0.5 * (edges[:-1] + edges[1:])
    return SizeGrid(edges=edges, sizes=sizes)


def grid_from_representative_sizes(sizes: Sequence[float]) -> SizeGrid:
    """Reconstruct bin edges around sizes read from a size-distribution file.

    The edges span whole decades, from ``floor(log10(sizes[0]))`` to
    ``floor(log10(sizes[-1])) + 1``, split evenly in log space.  They
    approximate rather than reproduce the boundaries the sizes were drawn
    from.
    """

    sizes_arr = np.asarray(sizes, dtype=float)
    if sizes_arr.ndim != 1 or sizes_arr.size == 0:
        raise ConfigurationError("size distribution header must list at least one size")
    if np.any(sizes_arr <= 0.0):
        raise ConfigurationError("representative grain sizes must be positive")
    low = math.floor(math.log10(sizes_arr[0]))
    high = math.floor(math.log10(sizes_arr[-1])) + 1
    edges = log_edges(float(low), float(high), sizes_arr.size)
    return SizeGrid(edges=edges, sizes=sizes_arr)


__all__ = ["SizeGrid", "log_edges", "generate_size_grid", "grid_from_representative_sizes"]
