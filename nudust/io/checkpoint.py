"""Completed-output and restart artifacts for individual cells.

A restart artifact keeps the legacy three-line text layout::

    <start time>
    <velocity deficit values ...>
    <delta sizes ...> <solution vector ...>

Reading is lenient: tokens that do not parse as floats are dropped, which
tolerates partially written trailing output.  Any line beyond the third is
treated as a continuation of the third.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

import numpy as np

from ..errors import InputFileError
from ..initfields import StateLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactNames:
    """Per-cell artifact paths, prefixed by bin count and network label."""

    output_dir: Path
    restart_dir: Path
    bin_number: int
    label: str

    @property
    def output_prefix(self) -> str:
        return f"B{self.bin_number}_{self.label}_"

    @property
    def restart_prefix(self) -> str:
        return f"restart_B{self.bin_number}_{self.label}_"

    def output_path(self, cell_id: int) -> Path:
        return Path(self.output_dir) / f"{self.output_prefix}{cell_id}.dat"

    def restart_path(self, cell_id: int) -> Path:
        return Path(self.restart_dir) / f"{self.restart_prefix}{cell_id}.dat"


@dataclass
class RestartState:
    sim_start_time: float
    vd: np.ndarray
    del_sz: np.ndarray
    solution_vector: np.ndarray


def _lenient_floats(line: str) -> List[float]:
    values = []
    for token in line.split():
        try:
            value = float(token)
        except ValueError:
            continue
        values.append(value)
    return values


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _join(values: Iterable[float]) -> str:
    return " ".join(repr(float(v)) for v in values)


def write_restart(path: Path, state: RestartState) -> Path:
    """Serialise a restart artifact in the legacy layout."""

    path = Path(path)
    _ensure_parent(path)
    body = np.concatenate([np.asarray(state.del_sz, dtype=float), np.asarray(state.solution_vector, dtype=float)])
    with path.open("w", encoding="utf-8") as fh:
        fh.write(f"{float(state.sim_start_time)!r}\n")
        fh.write(_join(state.vd) + "\n")
        fh.write(_join(body) + "\n")
    return path


def read_restart(path: Path, layout: StateLayout) -> RestartState:
    """Load a restart artifact, dropping malformed tokens.

    The concatenated third line is split into ``n_react * n_bins`` delta
    sizes followed by the solution vector, whose length must match
    ``layout``.
    """

    path = Path(path)
    if not path.is_file():
        raise InputFileError(f"Cannot open restart file {path}")
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.read().splitlines()
    lines += [""] * (3 - len(lines))

    start = _lenient_floats(lines[0])
    if not start or not math.isfinite(start[0]):
        raise InputFileError(f"restart file {path} has no start time")
    vd = np.array(_lenient_floats(lines[1]))
    body = np.array([v for line in lines[2:] for v in _lenient_floats(line)])

    n_del = layout.n_react * layout.n_bins
    del_sz, solution = body[:n_del], body[n_del:]
    if del_sz.size != n_del or solution.size != layout.size:
        raise InputFileError(
            f"restart file {path} holds {body.size} state values; expected {n_del} delta sizes "
            f"and a solution vector of length {layout.size}"
        )
    logger.debug("recovered restart state for %s at t=%g", path.name, start[0])
    return RestartState(sim_start_time=start[0], vd=vd, del_sz=del_sz, solution_vector=solution)


def write_output(path: Path, time: float, solution: np.ndarray) -> Path:
    """Write the completed-output artifact: final time followed by the state vector."""

    path = Path(path)
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        fh.write(f"{float(time)!r}\n")
        fh.write(_join(solution) + "\n")
    return path


__all__ = ["ArtifactNames", "RestartState", "read_restart", "write_restart", "write_output"]
