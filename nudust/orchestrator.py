"""Rank partitioning and restart-aware cell instantiation.

Ranks are independent processes without communication: each one loads the
full input set, then instantiates only its own slice of the ascending cell
id list.  Within the slice a cell is

* skipped when its completed-output artifact exists (this wins over a
  restart artifact),
* recovered from its restart artifact when one exists,
* otherwise created fresh from its assembled state vector.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .cell import Cell
from .errors import ConfigurationError
from .initfields import StateLayout
from .io.checkpoint import ArtifactNames, read_restart
from .io.inputs import CellInput, CellInputStore
from .network import ChemicalNetwork
from .physics.sputter import SputterCoefficientTable
from .schema import Config

logger = logging.getLogger(__name__)

DEFAULT_CELL_CAP = 10

CellFactory = Callable[
    [ChemicalNetwork, Optional[SputterCoefficientTable], Config, int, Sequence[str], CellInput],
    Cell,
]


def partition(total: int, ranks: int, rank_index: int, cap: Optional[int] = DEFAULT_CELL_CAP) -> Tuple[int, int]:
    """Return the half-open ``[start, end)`` slice of cell positions for one rank.

    Every rank gets ``total // ranks`` positions; the ``total % ranks``
    remainder positions at the tail are not assigned to any rank.  ``cap``
    further limits the slice length; ``None`` disables it.
    """

    if ranks < 1:
        raise ConfigurationError(f"rank count must be positive, got {ranks}")
    if not 0 <= rank_index < ranks:
        raise ConfigurationError(f"rank index {rank_index} outside [0, {ranks})")
    if total < 0:
        raise ConfigurationError(f"cell count must be non-negative, got {total}")
    if cap is not None and cap < 0:
        raise ConfigurationError(f"cell cap must be non-negative, got {cap}")

    per_rank = total // ranks
    start = rank_index * per_rank
    end = min(start + per_rank, total)
    if cap is not None:
        end = min(end, start + cap)
    return start, end


def create_simulation_cells(
    store: CellInputStore,
    network: ChemicalNetwork,
    coefficients: Optional[SputterCoefficientTable],
    config: Config,
    names: ArtifactNames,
    layout: StateLayout,
    *,
    cell_factory: CellFactory = Cell,
) -> List[Cell]:
    """Instantiate this rank's cells, moving their inputs out of ``store``."""

    par = config.parallel
    ids = store.ids()
    start, end = partition(len(ids), par.ranks, par.rank, par.cell_cap)
    species = tuple(store.species)

    cells: List[Cell] = []
    n_skipped = 0
    n_restarted = 0
    for cell_id in ids[start:end]:
        if names.output_path(cell_id).exists():
            logger.debug("cell %d already finished; skipping", cell_id)
            n_skipped += 1
            continue
        restart_path = names.restart_path(cell_id)
        if restart_path.exists():
            recovered = read_restart(restart_path, layout)
            cell_input = store.take(cell_id)
            cell_input.sim_start_time = recovered.sim_start_time
            cell_input.vd = recovered.vd
            cell_input.del_sz = recovered.del_sz
            cell_input.solution_vector = recovered.solution_vector
            n_restarted += 1
            logger.info("cell %d restarting from t=%g", cell_id, recovered.sim_start_time)
        else:
            cell_input = store.take(cell_id)
        cells.append(cell_factory(network, coefficients, config, cell_id, species, cell_input))

    logger.info(
        "rank %d has %d cells (positions [%d, %d) of %d; %d finished, %d restarted)",
        par.rank,
        len(cells),
        start,
        end,
        len(ids),
        n_skipped,
        n_restarted,
    )
    return cells


__all__ = ["DEFAULT_CELL_CAP", "partition", "create_simulation_cells"]
