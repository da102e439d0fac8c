"""Single-cell integration.

A :class:`Cell` owns its input and state vector outright; the network, the
sputtering table and the configuration are shared read-only between all
cells of a rank, so cells can be solved concurrently without locking.
The chemistry/nucleation right-hand side is supplied by the configured
``physics.rhs_entrypoint`` with signature ``rhs(t, y, cell) -> dydt``.
"""
from __future__ import annotations

import importlib
import logging
from typing import Any, Callable, Optional, Sequence

import numpy as np
from scipy.integrate import solve_ivp

from .errors import ConfigurationError, IntegrationError
from .initfields import StateLayout
from .io.checkpoint import ArtifactNames, RestartState, write_output, write_restart
from .io.inputs import CellInput
from .network import ChemicalNetwork
from .physics.sputter import SputterCoefficientTable
from .schema import Config

logger = logging.getLogger(__name__)

RhsFunc = Callable[[float, np.ndarray, "Cell"], np.ndarray]


def load_entrypoint(entrypoint: Optional[str]) -> Optional[RhsFunc]:
    """Resolve ``"module:function"`` to a callable."""

    if entrypoint is None:
        return None
    module_name, sep, func_name = str(entrypoint).partition(":")
    if not module_name or not func_name:
        raise ConfigurationError(f"Invalid rhs entrypoint '{entrypoint}' (expected 'module:function')")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Unable to import rhs module '{module_name}': {exc}") from exc
    try:
        func = getattr(module, func_name)
    except AttributeError as exc:
        raise ConfigurationError(f"rhs entrypoint '{entrypoint}' missing attribute '{func_name}'") from exc
    if not callable(func):
        raise ConfigurationError(f"rhs entrypoint '{entrypoint}' is not callable")
    return func


def artifact_names(config: Config, network: ChemicalNetwork, n_bins: int) -> ArtifactNames:
    return ArtifactNames(
        output_dir=config.io.output_dir,
        restart_dir=config.io.restart_dir,
        bin_number=n_bins,
        label=network.label,
    )


class Cell:
    """One independent cell and its ODE state."""

    def __init__(
        self,
        network: ChemicalNetwork,
        coefficients: Optional[SputterCoefficientTable],
        config: Config,
        cell_id: int,
        species: Sequence[str],
        cell_input: CellInput,
    ) -> None:
        self.net = network
        self.sputter = coefficients
        self.config = config
        self.cid = int(cell_id)
        self.species = tuple(species)
        self.inputs = cell_input
        self.layout = StateLayout(
            n_gas=len(self.species),
            n_react=network.n_nucleation_reactions,
            n_bins=int(np.size(cell_input.bin_sizes)),
        )
        self.state = np.asarray(cell_input.solution_vector, dtype=float)
        if self.state.size != self.layout.size:
            raise ConfigurationError(
                f"cell {self.cid}: state vector has {self.state.size} entries, layout needs {self.layout.size}"
            )
        self.time = self._resolve_start_time()
        self.names = artifact_names(config, network, self.layout.n_bins)

    def _resolve_start_time(self) -> float:
        if self.inputs.sim_start_time is not None:
            return float(self.inputs.sim_start_time)
        if self.inputs.times:
            return float(self.inputs.times[0])
        return 0.0

    def _resolve_end_time(self) -> float:
        t_end = self.config.physics.t_end
        if t_end is None and self.inputs.times:
            t_end = self.inputs.times[-1]
        if t_end is None:
            raise ConfigurationError(
                f"cell {self.cid}: no end time; set physics.t_end or provide an environment trajectory"
            )
        return float(t_end)

    def checkpoint(self) -> None:
        """Persist the current state as a restart artifact."""

        write_restart(
            self.names.restart_path(self.cid),
            RestartState(
                sim_start_time=self.time,
                vd=self.inputs.vd,
                del_sz=self.inputs.del_sz,
                solution_vector=self.state,
            ),
        )

    def solve(self) -> None:
        """Integrate to the end time and write the completed-output artifact."""

        rhs = load_entrypoint(self.config.physics.rhs_entrypoint)
        if rhs is None:
            raise ConfigurationError("physics.rhs_entrypoint must be set to integrate cells")
        t_end = self._resolve_end_time()
        physics = self.config.physics
        if t_end > self.time:
            sol: Any = solve_ivp(
                lambda t, y: rhs(t, y, self),
                (self.time, t_end),
                self.state,
                method=physics.method,
                rtol=physics.rtol,
                atol=physics.atol,
            )
            if sol.t.size:
                self.time = float(sol.t[-1])
                self.state = np.array(sol.y[:, -1])
            if not sol.success:
                self.checkpoint()
                raise IntegrationError(f"cell {self.cid}: integration stopped at t={self.time:g}: {sol.message}")
        write_output(self.names.output_path(self.cid), self.time, self.state)


__all__ = ["Cell", "load_entrypoint", "artifact_names"]
