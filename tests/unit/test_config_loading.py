from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from nudust.config_utils import apply_overrides_dict, load_config, parse_override_value, rank_from_environment
from nudust.errors import ConfigurationError
from nudust.schema import Config


def _write_config(tmp_path: Path, body: str = "") -> Path:
    path = tmp_path / "run.yml"
    path.write_text(
        "inputs:\n"
        f"  abundance_file: {tmp_path / 'abund.dat'}\n"
        "network:\n"
        "  label: sn\n"
        "  reactions:\n"
        "    - {reactants: [C], products: [Cgrain], nucleation: true}\n"
        "parallel:\n"
        "  ranks: 4\n"
        "  rank: 1\n" + body,
        encoding="utf-8",
    )
    return path


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    cfg = load_config(_write_config(tmp_path), environ={})

    assert cfg.network.label == "sn"
    assert cfg.network.reactions[0].products == ["Cgrain"]
    assert cfg.parallel.ranks == 4
    assert cfg.parallel.rank == 1
    assert cfg.parallel.cell_cap == 10
    assert cfg.parallel.workers == 2
    assert cfg.physics.do_nucleation is True
    assert cfg.physics.do_destruction is False
    assert cfg.io.output_dir == Path("output")


def test_overrides_win_over_environment_and_file(tmp_path: Path) -> None:
    path = _write_config(tmp_path)
    env = {"NUDUST_RANK": "2", "NUDUST_RANKS": "8", "OMPI_COMM_WORLD_RANK": "5"}

    from_env = load_config(path, environ=env)
    assert (from_env.parallel.rank, from_env.parallel.ranks) == (2, 8)

    from_cli = load_config(path, ["parallel.rank=3"], environ=env)
    assert (from_cli.parallel.rank, from_cli.parallel.ranks) == (3, 8)


def test_rank_from_launcher_variables() -> None:
    assert rank_from_environment({"OMPI_COMM_WORLD_RANK": "1", "OMPI_COMM_WORLD_SIZE": "4"}) == (1, 4)
    assert rank_from_environment({"PMI_RANK": "0", "PMI_SIZE": "2"}) == (0, 2)
    assert rank_from_environment({"PMI_RANK": "x"}) == (None, None)
    assert rank_from_environment({}) == (None, None)


def test_override_values_are_typed() -> None:
    assert parse_override_value("true") is True
    assert parse_override_value("null") is None
    assert parse_override_value("40") == 40
    assert parse_override_value("1e-7") == pytest.approx(1e-7)
    assert parse_override_value("'LSODA'") == "LSODA"

    payload = apply_overrides_dict({}, ["sizing.bin_number=40", "physics.method=BDF"])
    assert payload == {"sizing": {"bin_number": 40}, "physics": {"method": "BDF"}}


def test_malformed_override_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="expected path=value"):
        load_config(_write_config(tmp_path), ["parallel.rank"], environ={})


def test_invalid_configuration_is_reported(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_config(_write_config(tmp_path), ["parallel.rank=4"], environ={})
    with pytest.raises(ConfigurationError, match="Cannot open"):
        load_config(tmp_path / "missing.yml")


def test_schema_cross_field_checks(tmp_path: Path) -> None:
    inputs = {"abundance_file": tmp_path / "abund.dat"}
    with pytest.raises(ValidationError, match="sputter_file"):
        Config(inputs=inputs, physics={"do_destruction": True})
    with pytest.raises(ValidationError, match="low_sd_exp"):
        Config(inputs=inputs, sizing={"low_sd_exp": -4.0, "high_sd_exp": -7.0, "bin_number": 3})
    with pytest.raises(ValidationError):
        Config(inputs=inputs, network={"reactions": [{"reactants": ["C"], "products": []}]})
