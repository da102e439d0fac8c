"""Per-cell input accumulation from the abundance, size, environment and shock files.

Loader passes are order dependent.  :func:`load_initial_abundances` creates
the cells and fixes the species list; every later pass only touches cells
that already exist and sizes its arrays from the network and the size grid.
All whitespace-delimited formats are described in the individual loaders.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .. import constants
from ..errors import ConfigurationError, InputFileError
from ..network import ChemicalNetwork
from ..physics.sizes import SizeGrid, grid_from_representative_sizes

logger = logging.getLogger(__name__)


@dataclass
class CellInput:
    """Everything known about one cell before its integration starts."""

    init_abund: np.ndarray = field(default_factory=lambda: np.zeros(0))
    bin_edges: np.ndarray = field(default_factory=lambda: np.zeros(0))
    bin_sizes: np.ndarray = field(default_factory=lambda: np.zeros(0))
    size_dist: np.ndarray = field(default_factory=lambda: np.zeros(0))
    del_sz: np.ndarray = field(default_factory=lambda: np.zeros(0))
    cell_time: Optional[float] = None
    # environment trajectory
    times: List[float] = field(default_factory=list)
    temp: List[float] = field(default_factory=list)
    volumes: List[float] = field(default_factory=list)
    rho: List[float] = field(default_factory=list)
    pressure: List[float] = field(default_factory=list)
    velo: List[float] = field(default_factory=list)
    x_cm: List[float] = field(default_factory=list)
    # shock
    shock_time: Optional[float] = None
    shock_temp: Optional[float] = None
    vd: np.ndarray = field(default_factory=lambda: np.zeros(0))
    solution_vector: np.ndarray = field(default_factory=lambda: np.zeros(0))
    sim_start_time: Optional[float] = None


class CellInputStore:
    """Cell inputs keyed by integer cell id, iterated in ascending id order."""

    def __init__(self, species: Optional[Sequence[str]] = None) -> None:
        self.species: List[str] = list(species or [])
        self._cells: Dict[int, CellInput] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._cells

    def __getitem__(self, cell_id: int) -> CellInput:
        return self._cells[cell_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self.ids())

    def ids(self) -> List[int]:
        return sorted(self._cells)

    def items(self) -> List[Tuple[int, CellInput]]:
        return [(cid, self._cells[cid]) for cid in self.ids()]

    def create(self, cell_id: int) -> CellInput:
        cell = self._cells.get(cell_id)
        if cell is None:
            cell = CellInput()
            self._cells[cell_id] = cell
        return cell

    def take(self, cell_id: int) -> CellInput:
        """Remove and return a cell's input, handing ownership to the caller."""

        try:
            return self._cells.pop(cell_id)
        except KeyError:
            raise KeyError(f"cell {cell_id} is not in the input store") from None

    @property
    def n_gas(self) -> int:
        return len(self.species)


# ---------------------------------------------------------------------------
# token helpers
# ---------------------------------------------------------------------------


def _require_file(path: Path, label: str) -> Path:
    path = Path(path)
    if not path.is_file():
        raise InputFileError(f"Cannot open {label} file {path}")
    return path


def _to_float(token: str, path: Path, lineno: int) -> float:
    try:
        return float(token)
    except ValueError:
        raise InputFileError(f"bad value {token!r} in {path} line {lineno}") from None


def _to_int(token: str, path: Path, lineno: int) -> int:
    try:
        return int(token)
    except ValueError:
        raise InputFileError(f"bad cell id {token!r} in {path} line {lineno}") from None


def _read_table(path: Path, label: str, **kwargs) -> pd.DataFrame:
    try:
        return pd.read_csv(path, sep=r"\s+", dtype=str, keep_default_na=False, **kwargs)
    except pd.errors.ParserError as exc:
        raise InputFileError(f"Malformed {label} file {path}: {exc}") from exc
    except pd.errors.EmptyDataError as exc:
        raise InputFileError(f"Empty {label} file {path}") from exc


def _numeric_frame(df: pd.DataFrame, path: Path, label: str, first_line: int = 1) -> pd.DataFrame:
    """Convert a string frame to floats; ``first_line`` is the file line of row 0."""

    numeric = df.apply(pd.to_numeric, errors="coerce")
    bad = numeric.isna()
    if bad.any().any():
        row, col = next(zip(*np.nonzero(bad.to_numpy())))
        token = df.iat[row, col]
        shown = "<missing>" if pd.isna(token) else repr(token)
        raise InputFileError(f"bad value {shown} in {label} file {path} line {row + first_line}")
    return numeric


def _cell_ids(column: pd.Series, path: Path, label: str, first_line: int = 1) -> List[int]:
    ids = []
    for row, token in enumerate(column.tolist()):
        try:
            ids.append(int(token))
        except (TypeError, ValueError):
            raise InputFileError(f"bad cell id {token!r} in {label} file {path} line {row + first_line}") from None
    return ids


# ---------------------------------------------------------------------------
# abundances
# ---------------------------------------------------------------------------


def premake(x1: float, x2: float) -> Tuple[float, float, float]:
    """Convert the limiting constituent completely into the product molecule.

    Returns ``(x1_new, x2_new, product)``; the smaller input becomes the
    product abundance and is subtracted from the larger one.
    """

    if x2 > x1:
        return 0.0, x2 - x1, x1
    return x1 - x2, 0.0, x2


def load_initial_abundances(path: Path) -> CellInputStore:
    """Read the abundance file and synthesise CO and SiO.

    The header holds a placeholder followed by the species names; every data
    row holds a cell id and one abundance per species.  CO and SiO are
    appended to the species list when absent, then for each pair the
    limiting constituent is converted entirely into the molecule.
    """

    path = _require_file(path, "abundance")
    df = _read_table(path, "abundance", header=None)
    if df.shape[1] < 2:
        raise InputFileError(f"abundance file {path} needs a header with at least one species")
    species = [str(name) for name in df.iloc[0, 1:]]
    n_input = len(species)
    rows = df.iloc[1:].reset_index(drop=True)
    ids = _cell_ids(rows.iloc[:, 0], path, "abundance", first_line=2)
    values = _numeric_frame(rows.iloc[:, 1:], path, "abundance", first_line=2).to_numpy(dtype=float)

    for _, _, product in constants.PREMADE_MOLECULES:
        if product not in species:
            species.append(product)
    index = {name: idx for idx, name in enumerate(species)}
    pairs = []
    for first, second, product in constants.PREMADE_MOLECULES:
        missing = [name for name in (first, second) if name not in index]
        if missing:
            raise ConfigurationError(
                f"abundance file {path} lacks {', '.join(missing)} needed to premake {product}"
            )
        pairs.append((index[first], index[second], index[product]))

    store = CellInputStore(species)
    for cell_id, row in zip(ids, values):
        abund = np.zeros(len(species))
        abund[:n_input] = row
        for s1, s2, sp in pairs:
            abund[s1], abund[s2], abund[sp] = premake(abund[s1], abund[s2])
        store.create(cell_id).init_abund = abund
    logger.info("loaded abundance file. loaded %d abundances for %d cells", len(species), len(store))
    return store


# ---------------------------------------------------------------------------
# size distribution
# ---------------------------------------------------------------------------


def apply_size_grid(store: CellInputStore, grid: SizeGrid, n_react: int) -> None:
    """Give every cell the generated grid and an empty distribution."""

    n_bins = grid.n_bins
    for _, cell in store.items():
        cell.bin_edges = grid.edges.copy()
        cell.bin_sizes = grid.sizes.copy()
        cell.size_dist = np.zeros(n_react * n_bins)
        cell.del_sz = np.zeros(n_react * n_bins)
    logger.info("generated dust size distribution with %d bins", n_bins)


def _grain_index_map(file_grains: Sequence[str], network: ChemicalNetwork, path: Path) -> List[int]:
    """Map each network grain to its column block in the size file."""

    mapping = []
    for name in network.grain_names:
        matches = [idx for idx, file_name in enumerate(file_grains) if file_name == name]
        if not matches:
            raise ConfigurationError(f"grain '{name}' from the network is missing in size distribution file {path}")
        mapping.append(matches[-1])
    dropped = sorted(set(file_grains) - set(network.grain_names))
    if dropped:
        logger.info("ignoring size distributions for grains outside the network: %s", ", ".join(dropped))
    return mapping


def load_size_distribution(path: Path, store: CellInputStore, network: ChemicalNetwork) -> SizeGrid:
    """Read per-cell grain size distributions.

    Line 1 lists the grain names, line 2 the representative sizes (which fix
    the bin count) and every further line holds ``cell id, cell time`` and
    ``n_grains * n_bins`` values, grain-major.  Values are reordered to the
    network's grain order.
    """

    path = _require_file(path, "size distribution")
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.read().splitlines()
    if len(lines) < 2:
        raise InputFileError(f"size distribution file {path} needs grain-name and size header lines")
    file_grains = lines[0].split()
    grid = grid_from_representative_sizes([_to_float(tok, path, 2) for tok in lines[1].split()])
    n_bins = grid.n_bins
    grain_idx = _grain_index_map(file_grains, network, path)
    n_react = network.n_nucleation_reactions
    expected = len(file_grains) * n_bins
    if not any(line.strip() for line in lines[2:]):
        logger.info("loaded size distribution file for 0 cells with %d bins", n_bins)
        return grid

    df = _read_table(path, "size distribution", header=None, skiprows=2)
    if df.shape[1] < 2:
        raise InputFileError(f"missing cell time in size distribution file {path}")
    if df.shape[1] - 2 != expected:
        raise InputFileError(
            f"expected {expected} size values per cell in {path}, found {df.shape[1] - 2}"
        )
    ids = _cell_ids(df.iloc[:, 0], path, "size distribution", first_line=3)
    values = _numeric_frame(df.iloc[:, 1:], path, "size distribution", first_line=3).to_numpy(dtype=float)

    n_loaded = 0
    for cell_id, row in zip(ids, values):
        if cell_id not in store:
            logger.warning("size distribution for unknown cell %d ignored", cell_id)
            continue
        cell = store[cell_id]
        cell.cell_time = float(row[0])
        cell.bin_sizes = grid.sizes.copy()
        cell.bin_edges = grid.edges.copy()
        blocks = row[1:].reshape(len(file_grains), n_bins)
        cell.size_dist = blocks[grain_idx].reshape(n_react * n_bins).copy()
        cell.del_sz = np.zeros(n_react * n_bins)
        n_loaded += 1
    logger.info("loaded size distribution file for %d cells with %d bins", n_loaded, n_bins)
    return grid


# ---------------------------------------------------------------------------
# environment trajectory
# ---------------------------------------------------------------------------


def load_environment_data(path: Path, store: CellInputStore) -> None:
    """Append trajectory samples to each cell.

    A single-token line sets the time of the samples that follow; seven-token
    lines hold ``cell id, temperature, volume, density, pressure, velocity,
    position``.
    """

    path = _require_file(path, "environment")
    time: Optional[float] = None
    unknown = set()
    with path.open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            tokens = line.split()
            if not tokens:
                continue
            if len(tokens) == 1:
                time = _to_float(tokens[0], path, lineno)
                continue
            if len(tokens) != 7:
                raise InputFileError(f"expected 1 or 7 tokens in {path} line {lineno}, found {len(tokens)}")
            if time is None:
                raise InputFileError(f"environment sample before any time marker in {path} line {lineno}")
            cell_id = _to_int(tokens[0], path, lineno)
            temp, vol, rho, press, velo, x_cm = (_to_float(tok, path, lineno) for tok in tokens[1:])
            if cell_id not in store:
                unknown.add(cell_id)
                continue
            cell = store[cell_id]
            cell.times.append(time)
            cell.temp.append(temp)
            cell.volumes.append(vol)
            cell.rho.append(rho)
            cell.pressure.append(press)
            cell.velo.append(velo)
            cell.x_cm.append(x_cm)
    if unknown:
        logger.warning("environment samples for %d unknown cells ignored", len(unknown))
    logger.info("loaded environment file")


# ---------------------------------------------------------------------------
# shock parameters
# ---------------------------------------------------------------------------


def load_shock_params(path: Path, store: CellInputStore, n_react: int, n_bins: int) -> None:
    """Read ``cell id, shock time, shock temperature, shock velocity`` rows."""

    path = _require_file(path, "shock parameter")
    df = _read_table(path, "shock parameter", header=None)
    if df.shape[1] != 4:
        raise InputFileError(f"shock parameter file {path} needs 4 columns, found {df.shape[1]}")
    ids = _cell_ids(df.iloc[:, 0], path, "shock parameter")
    values = _numeric_frame(df.iloc[:, 1:], path, "shock parameter").to_numpy(dtype=float)
    for cell_id, (shock_time, shock_temp, shock_velo) in zip(ids, values):
        if cell_id not in store:
            logger.warning("shock parameters for unknown cell %d ignored", cell_id)
            continue
        cell = store[cell_id]
        cell.shock_time = float(shock_time)
        cell.shock_temp = float(shock_temp)
        cell.vd = np.full(n_react * n_bins, float(shock_velo))
    logger.info("loaded shock parameters file")


def apply_pile_up(store: CellInputStore, factor: float) -> None:
    """Scale abundances by ``factor * (shock_time / cell_time)**-3``."""

    cells = store.items()
    for cell_id, cell in cells:
        if cell.shock_time is None or cell.cell_time is None:
            raise ConfigurationError(f"cell {cell_id} needs a shock time and a cell time for the pile-up correction")
        if not (cell.shock_time > 0.0 and cell.cell_time > 0.0):
            raise ConfigurationError(
                f"cell {cell_id} needs positive shock and cell times for the pile-up correction "
                f"(shock time {cell.shock_time:g}, cell time {cell.cell_time:g})"
            )
    for _, cell in cells:
        cell.init_abund = cell.init_abund * (factor * math.pow(cell.shock_time / cell.cell_time, -3.0))
    logger.info("applied pile-up factor %g", factor)


def gen_shock_array_from_value(
    store: CellInputStore,
    *,
    shock_velo: Optional[float],
    shock_temp: Optional[float],
    shock_time: Optional[float],
    pile_up_factor: float,
    n_react: int,
    n_bins: int,
) -> None:
    """Give every cell the configured shock and apply the pile-up correction once."""

    if shock_velo is None or shock_temp is None or shock_time is None:
        raise ConfigurationError(
            "Missing parameters needed to generate the shock arrays for each cell: "
            "shock.shock_velo, shock.shock_temp and shock.sim_start_time are required"
        )
    for _, cell in store.items():
        cell.vd = np.full(n_react * n_bins, float(shock_velo))
        cell.shock_temp = float(shock_temp)
        cell.shock_time = float(shock_time)
    apply_pile_up(store, pile_up_factor)
    logger.info("set up shock arrays from config params")


__all__ = [
    "CellInput",
    "CellInputStore",
    "premake",
    "load_initial_abundances",
    "apply_size_grid",
    "load_size_distribution",
    "load_environment_data",
    "load_shock_params",
    "apply_pile_up",
    "gen_shock_array_from_value",
]
