"""Concurrent solve of the cells owned by one rank.

Cells are split into contiguous chunks, one per worker thread, with no
rebalancing.  Each cell only mutates its own buffers, so the workers share
the network and the sputtering table without locks.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Protocol, Sequence

from .helpers import format_exception_short

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 2


class Solvable(Protocol):
    cid: int

    def solve(self) -> None:
        ...


def resolve_worker_config(n_cells: int, workers_requested: int) -> Dict[str, int]:
    """Return the effective worker count and static chunk size."""

    jobs = max(1, min(int(workers_requested), n_cells)) if n_cells > 0 else 1
    chunk_size = int(math.ceil(n_cells / jobs)) if n_cells > 0 else 0
    return {"jobs_effective": jobs, "chunk_size": chunk_size}


def static_chunks(cells: Sequence[Solvable], chunk_size: int) -> List[Sequence[Solvable]]:
    if chunk_size <= 0:
        return []
    return [cells[idx : idx + chunk_size] for idx in range(0, len(cells), chunk_size)]


def _run_cell_chunk(chunk: Sequence[Solvable]) -> int:
    for cell in chunk:
        logger.info("running cell: %d", cell.cid)
        cell.solve()
        logger.info("finished cell: %d", cell.cid)
    return len(chunk)


def run_cells(cells: Sequence[Solvable], workers: int = DEFAULT_WORKERS) -> int:
    """Solve every cell and return how many finished.

    The call returns only after all workers have joined; the first worker
    failure is then re-raised.  A failing worker stops at the failing cell
    while the other workers finish their chunks.
    """

    if workers < 1:
        raise ValueError("workers must be positive")
    cfg = resolve_worker_config(len(cells), workers)
    chunks = static_chunks(cells, cfg["chunk_size"])
    if not chunks:
        logger.info("no cells to integrate")
        return 0

    logger.info(
        "integrating %d cells on %d workers (chunk size %d)",
        len(cells),
        cfg["jobs_effective"],
        cfg["chunk_size"],
    )
    with ThreadPoolExecutor(max_workers=cfg["jobs_effective"], thread_name_prefix="nudust-cell") as executor:
        futures = [executor.submit(_run_cell_chunk, chunk) for chunk in chunks]

    errors = [fut.exception() for fut in futures if fut.exception() is not None]
    for exc in errors:
        logger.error("cell worker failed: %s", format_exception_short(exc))
    if errors:
        raise errors[0]
    return sum(fut.result() for fut in futures)


__all__ = ["DEFAULT_WORKERS", "resolve_worker_config", "static_chunks", "run_cells"]
