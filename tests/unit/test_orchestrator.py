from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from nudust.cell import artifact_names
from nudust.errors import ConfigurationError
from nudust.initfields import generate_sol_vectors
from nudust.io.checkpoint import RestartState, write_output, write_restart
from nudust.io.inputs import apply_size_grid, load_initial_abundances
from nudust.orchestrator import create_simulation_cells, partition
from nudust.physics.sizes import generate_size_grid


def _record_factory(network, coefficients, config, cell_id, species, cell_input):
    return {"cid": cell_id, "species": species, "input": cell_input}


def _prepared(abundance_file: Path, network, config):
    store = load_initial_abundances(abundance_file)
    grid = generate_size_grid(-7.0, -4.0, 3)
    apply_size_grid(store, grid, network.n_nucleation_reactions)
    layout = generate_sol_vectors(store, network.n_nucleation_reactions, grid.n_bins)
    names = artifact_names(config, network, grid.n_bins)
    return store, layout, names


def test_partition_leaves_remainder_unscheduled() -> None:
    assert partition(7, 2, 0) == (0, 3)
    assert partition(7, 2, 1) == (3, 6)
    scheduled = {pos for rank in range(2) for pos in range(*partition(7, 2, rank))}
    assert 6 not in scheduled


def test_partition_applies_cap() -> None:
    assert partition(25, 1, 0) == (0, 10)
    assert partition(25, 2, 1) == (12, 22)
    assert partition(25, 1, 0, cap=None) == (0, 25)
    assert partition(25, 1, 0, cap=3) == (0, 3)


def test_partition_more_ranks_than_cells() -> None:
    assert partition(3, 5, 4) == (0, 0)


@pytest.mark.parametrize("total, ranks, rank", [(5, 0, 0), (5, 2, 2), (5, 2, -1), (-1, 1, 0)])
def test_partition_rejects_bad_arguments(total: int, ranks: int, rank: int) -> None:
    with pytest.raises(ConfigurationError):
        partition(total, ranks, rank)


def test_rank_gets_its_slice_in_ascending_id_order(abundance_file: Path, network, make_config) -> None:
    config = make_config(parallel={"ranks": 2, "rank": 1})
    store, layout, names = _prepared(abundance_file, network, config)

    cells = create_simulation_cells(store, network, None, config, names, layout, cell_factory=_record_factory)

    assert [cell["cid"] for cell in cells] == [3, 4]
    assert cells[0]["species"] == ("He", "C", "O", "Si", "Fe", "CO", "SiO")
    # inputs are moved out of the store
    assert store.ids() == [1, 2, 5]


def test_finished_and_restarted_cells(abundance_file: Path, network, make_config) -> None:
    config = make_config(parallel={"cell_cap": None})
    store, layout, names = _prepared(abundance_file, network, config)

    write_output(names.output_path(1), 1.0, np.zeros(layout.size))
    # an output artifact wins over a restart artifact
    write_output(names.output_path(2), 1.0, np.zeros(layout.size))
    write_restart(names.restart_path(2), RestartState(5.0, np.zeros(6), np.zeros(6), np.zeros(layout.size)))
    restart_vec = np.linspace(0.0, 1.0, layout.size)
    write_restart(
        names.restart_path(3),
        RestartState(7.5, np.full(6, 2.0e6), np.full(6, 1.0e-9), restart_vec),
    )

    cells = create_simulation_cells(store, network, None, config, names, layout, cell_factory=_record_factory)

    assert [cell["cid"] for cell in cells] == [3, 4, 5]
    restarted = cells[0]["input"]
    assert restarted.sim_start_time == 7.5
    assert restarted.vd == pytest.approx([2.0e6] * 6)
    assert restarted.del_sz == pytest.approx([1.0e-9] * 6)
    assert restarted.solution_vector == pytest.approx(restart_vec)
    assert cells[1]["input"].sim_start_time is None
    assert store.ids() == [1, 2]
