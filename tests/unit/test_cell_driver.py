from __future__ import annotations

import threading
import time

import pytest

from nudust.runtime import driver


class _FakeCell:
    def __init__(self, cid: int, fail: bool = False, delay: float = 0.0) -> None:
        self.cid = cid
        self.fail = fail
        self.delay = delay
        self.solved = False
        self.thread = None

    def solve(self) -> None:
        if self.delay:
            time.sleep(self.delay)
        self.thread = threading.current_thread().name
        if self.fail:
            raise RuntimeError(f"cell {self.cid} diverged")
        self.solved = True


@pytest.mark.parametrize(
    "n_cells, workers, expected_jobs, expected_chunk",
    [(10, 2, 2, 5), (7, 2, 2, 4), (1, 4, 1, 1), (0, 2, 1, 0)],
)
def test_resolve_worker_config(n_cells: int, workers: int, expected_jobs: int, expected_chunk: int) -> None:
    cfg = driver.resolve_worker_config(n_cells, workers)
    assert cfg["jobs_effective"] == expected_jobs
    assert cfg["chunk_size"] == expected_chunk


def test_static_chunks_are_contiguous() -> None:
    chunks = driver.static_chunks(list(range(7)), 4)
    assert chunks == [[0, 1, 2, 3], [4, 5, 6]]


def test_run_cells_solves_everything_on_worker_threads() -> None:
    cells = [_FakeCell(cid) for cid in range(6)]

    assert driver.run_cells(cells, workers=2) == 6
    assert all(cell.solved for cell in cells)
    assert all(cell.thread.startswith("nudust-cell") for cell in cells)
    # each chunk stays on a single worker
    assert len({cell.thread for cell in cells[:3]}) == 1
    assert len({cell.thread for cell in cells[3:]}) == 1


def test_run_cells_with_no_cells() -> None:
    assert driver.run_cells([], workers=2) == 0


def test_run_cells_rejects_zero_workers() -> None:
    with pytest.raises(ValueError):
        driver.run_cells([_FakeCell(1)], workers=0)


def test_failure_surfaces_after_other_workers_finish() -> None:
    cells = [
        _FakeCell(1, fail=True),
        _FakeCell(2),
        _FakeCell(3, delay=0.05),
        _FakeCell(4, delay=0.05),
    ]

    with pytest.raises(RuntimeError, match="cell 1 diverged"):
        driver.run_cells(cells, workers=2)

    # the failing worker stops at its failing cell
    assert not cells[1].solved
    assert cells[2].solved and cells[3].solved
