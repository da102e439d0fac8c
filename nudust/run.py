"""Preprocessing pipeline and command line entry point.

:class:`NuDust` performs the one-time setup of a rank: it loads the network
and the per-cell inputs, builds the size grid and the sputtering table,
assembles the initial state vectors and instantiates the cells owned by
this rank.  :meth:`NuDust.run` then integrates them concurrently.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .cell import Cell, artifact_names
from .config_utils import configure_logging, load_config
from .errors import NuDustError
from .initfields import generate_sol_vectors
from .io.inputs import (
    apply_size_grid,
    gen_shock_array_from_value,
    load_environment_data,
    load_initial_abundances,
    load_shock_params,
    load_size_distribution,
)
from .network import ChemicalNetwork
from .orchestrator import CellFactory, create_simulation_cells
from .physics.sizes import SizeGrid, generate_size_grid
from .physics.sputter import SputterCoefficientTable
from .properties import IonGrainPropertyStore
from .runtime import format_exception_short, log_stage, run_cells
from .schema import Config

logger = logging.getLogger(__name__)


class NuDust:
    """Per-rank setup of the cell integrations described by ``config``."""

    def __init__(self, config: Config, *, cell_factory: CellFactory = Cell) -> None:
        self.config = config
        inputs = config.inputs

        self.network = ChemicalNetwork.from_records(
            [reaction.model_dump() for reaction in config.network.reactions],
            label=config.network.label,
        )
        log_stage(logger, "loaded network", extra={"nucleation_reactions": self.network.n_nucleation_reactions})
        n_react = self.network.n_nucleation_reactions

        self.store = load_initial_abundances(inputs.abundance_file)

        self.grid: SizeGrid
        if inputs.size_dist_file is not None:
            self.grid = load_size_distribution(inputs.size_dist_file, self.store, self.network)
        else:
            sizing = config.sizing
            self.grid = generate_size_grid(sizing.low_sd_exp, sizing.high_sd_exp, sizing.bin_number)
            apply_size_grid(self.store, self.grid, n_react)

        if inputs.environment_file is not None:
            load_environment_data(inputs.environment_file, self.store)

        self.coefficients: Optional[SputterCoefficientTable] = None
        if config.physics.do_destruction:
            properties = IonGrainPropertyStore.from_json(inputs.sputter_file)
            self.coefficients = SputterCoefficientTable.from_network(self.network, self.store.species, properties)
            if inputs.shock_file is not None:
                load_shock_params(inputs.shock_file, self.store, n_react, self.grid.n_bins)
            shock = config.shock
            if shock.shock_velo is not None:
                gen_shock_array_from_value(
                    self.store,
                    shock_velo=shock.shock_velo,
                    shock_temp=shock.shock_temp,
                    shock_time=shock.sim_start_time,
                    pile_up_factor=shock.pile_up_factor,
                    n_react=n_react,
                    n_bins=self.grid.n_bins,
                )

        self.layout = generate_sol_vectors(self.store, n_react, self.grid.n_bins)
        self.names = artifact_names(config, self.network, self.grid.n_bins)
        log_stage(logger, "data and restart file names defined", extra={"output": self.names.output_prefix})
        self.cells = create_simulation_cells(
            self.store,
            self.network,
            self.coefficients,
            config,
            self.names,
            self.layout,
            cell_factory=cell_factory,
        )

    def run(self) -> int:
        """Integrate every cell owned by this rank; return the number solved."""

        physics = self.config.physics
        if physics.do_nucleation and physics.do_destruction:
            logger.info("Starting Nucleation and Destruction")
        elif physics.do_nucleation:
            logger.info("Starting Nucleation")
        elif physics.do_destruction:
            logger.info("Starting Destruction")
        else:
            logger.warning("destruction and nucleation were both not selected")

        log_stage(logger, "entering main integration loop")
        n_done = run_cells(self.cells, workers=self.config.parallel.workers)
        log_stage(logger, "leaving main integration loop", extra={"cells": n_done})
        return n_done


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""

    parser = argparse.ArgumentParser(description="Grain nucleation and destruction over independent cells")
    parser.add_argument("--config", type=Path, required=True, help="Path to YAML configuration")
    parser.add_argument("--rank", type=int, help="Index of this rank (overrides parallel.rank)")
    parser.add_argument("--ranks", type=int, help="Number of ranks (overrides parallel.ranks)")
    parser.add_argument("--workers", type=int, help="Concurrent cell integrations (overrides parallel.workers)")
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help="Apply configuration overrides using dotted paths; e.g. --override sizing.bin_number=40",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load inputs and schedule cells without integrating them.",
    )
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors.")
    args = parser.parse_args(argv)

    configure_logging(logging.WARNING if args.quiet else logging.INFO)

    override_list: List[str] = []
    for group in args.override or []:
        override_list.extend(group)
    for flag, path in (("rank", "parallel.rank"), ("ranks", "parallel.ranks"), ("workers", "parallel.workers")):
        value = getattr(args, flag)
        if value is not None:
            override_list.append(f"{path}={value}")

    try:
        cfg = load_config(args.config, override_list)
        nudust = NuDust(cfg)
        if args.dry_run:
            logger.info("dry run: %d cells scheduled on rank %d", len(nudust.cells), cfg.parallel.rank)
            return 0
        nudust.run()
    except NuDustError as exc:
        logger.error("%s", format_exception_short(exc))
        return 1
    return 0


__all__ = ["NuDust", "main"]


if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    raise SystemExit(main())
