from __future__ import annotations

import json
import sys
import types
from pathlib import Path

import numpy as np
import pytest

from nudust.config_utils import RANK_ENV_VARS
from nudust.errors import ConfigurationError, InputFileError
from nudust.run import NuDust, main

REACTIONS = [
    {"reactants": ["SiO", "O"], "products": ["SiO2"], "nucleation": True},
    {"reactants": ["C"], "products": ["Cgrain"], "nucleation": True},
    {"reactants": ["C", "O"], "products": ["CO"], "nucleation": False},
]


def _frozen(t, y, cell):
    return np.zeros_like(y)


@pytest.fixture(autouse=True)
def _no_launcher_rank(monkeypatch: pytest.MonkeyPatch) -> None:
    for pair in RANK_ENV_VARS:
        for name in pair:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def rhs_module(monkeypatch: pytest.MonkeyPatch) -> str:
    module = types.ModuleType("nudust_pipeline_rhs")
    module.frozen = _frozen
    monkeypatch.setitem(sys.modules, "nudust_pipeline_rhs", module)
    return "nudust_pipeline_rhs"


def _size_file(tmp_path: Path) -> Path:
    path = tmp_path / "sizes.dat"
    rows = "".join(f"{cid} 100.0 1 2 3 4 5 6\n" for cid in range(1, 6))
    path.write_text("SiO2 Cgrain\n2e-7 3e-6 4e-5\n" + rows, encoding="utf-8")
    return path


def test_generative_setup(make_config) -> None:
    nudust = NuDust(make_config())

    assert nudust.network.grain_names == ["SiO2", "Cgrain"]
    assert nudust.grid.n_bins == 3
    assert nudust.coefficients is None
    assert nudust.layout.size == 7 + 4 * 2 + 2 * 3
    assert [cell.cid for cell in nudust.cells] == [1, 2, 3, 4, 5]
    assert len(nudust.store) == 0
    assert nudust.names.output_prefix == "B3_test_"


def test_destruction_setup_with_generated_shock(tmp_path: Path, make_config, sputter_file: Path) -> None:
    config = make_config(
        inputs={"size_dist_file": _size_file(tmp_path), "sputter_file": sputter_file},
        physics={"do_destruction": True},
        shock={"shock_velo": 1.0e7, "shock_temp": 1.0e4, "sim_start_time": 50.0, "pile_up_factor": 1.0},
    )

    nudust = NuDust(config)

    table = nudust.coefficients
    assert table is not None
    assert table.grains == ("SiO2", "Cgrain")
    assert table.species == ("He", "C", "O", "Si", "Fe", "CO", "SiO")
    assert table.eth.shape == (2, 7)
    first = nudust.cells[0]
    assert first.inputs.vd == pytest.approx([1.0e7] * 6)
    # pile-up: (50 / 100)**-3
    assert first.state[:7] == pytest.approx(8.0 * np.array([0.1, 0.0, 0.15, 0.0, 0.01, 0.3, 0.05]))
    assert first.state[15:] == pytest.approx([1, 2, 3, 4, 5, 6])


def test_missing_optional_file_is_fatal(tmp_path: Path, make_config) -> None:
    config = make_config(inputs={"environment_file": tmp_path / "absent.dat"})
    with pytest.raises(InputFileError, match="environment"):
        NuDust(config)


def test_run_writes_outputs_and_rerun_skips(make_config, rhs_module: str) -> None:
    config = make_config(physics={"rhs_entrypoint": f"{rhs_module}:frozen", "t_end": 2.0})

    first = NuDust(config)
    assert first.run() == 5
    for cid in range(1, 6):
        assert first.names.output_path(cid).exists()

    second = NuDust(config)
    assert second.cells == []
    assert second.run() == 0


def test_run_without_rhs_fails(make_config) -> None:
    nudust = NuDust(make_config(physics={"t_end": 1.0}))
    with pytest.raises(ConfigurationError):
        nudust.run()


def _yaml_config(tmp_path: Path, abundance_file: Path, extra: str = "") -> Path:
    path = tmp_path / "run.yml"
    path.write_text(
        "inputs:\n"
        f"  abundance_file: {abundance_file}\n"
        "network:\n"
        "  label: cli\n"
        f"  reactions: {json.dumps(REACTIONS)}\n"
        "sizing: {low_sd_exp: -7, high_sd_exp: -4, bin_number: 3}\n"
        "io:\n"
        f"  output_dir: {tmp_path / 'output'}\n"
        f"  restart_dir: {tmp_path / 'restart'}\n" + extra,
        encoding="utf-8",
    )
    return path


def test_cli_dry_run(tmp_path: Path, abundance_file: Path) -> None:
    path = _yaml_config(tmp_path, abundance_file)

    assert main(["--config", str(path), "--dry-run", "--ranks", "2", "--rank", "1", "--quiet"]) == 0
    assert not (tmp_path / "output").exists()


def test_cli_full_run(tmp_path: Path, abundance_file: Path, rhs_module: str) -> None:
    path = _yaml_config(
        tmp_path,
        abundance_file,
        f"physics: {{rhs_entrypoint: '{rhs_module}:frozen', t_end: 1.0}}\n",
    )

    assert main(["--config", str(path), "--workers", "3", "--quiet"]) == 0
    assert sorted(p.name for p in (tmp_path / "output").iterdir()) == [f"B3_cli_{cid}.dat" for cid in range(1, 6)]


def test_cli_reports_errors(tmp_path: Path) -> None:
    assert main(["--config", str(tmp_path / "missing.yml"), "--quiet"]) == 1
