from __future__ import annotations

import json
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from nudust.network import ChemicalNetwork  # noqa: E402
from nudust.properties import IonGrainPropertyStore  # noqa: E402
from nudust.schema import Config  # noqa: E402

REACTIONS = [
    {"reactants": ["C", "O"], "products": ["CO"], "nucleation": False},
    {"reactants": ["SiO", "O"], "products": ["SiO2"], "nucleation": True},
    {"reactants": ["C"], "products": ["Cgrain"], "nucleation": True},
]

SPUTTER_PROPERTIES: Dict[str, Any] = {
    "ions": {
        "He": {"mi": 4.0, "zi": 2},
        "C": {"mi": 12.0, "zi": 6},
        "O": {"mi": 16.0, "zi": 8},
        "Si": {"mi": 28.0, "zi": 14},
        "Fe": {"mi": 56.0, "zi": 26},
        "CO": {"mi": 28.0, "zi": 14},
        "SiO": {"mi": 44.0, "zi": 22},
    },
    "grains": {
        "SiO2": {"md": 20.0, "zd": 10, "rhod": 2.66, "u0": 6.42, "K": 0.78},
        "Cgrain": {"md": 12.0, "zd": 6, "rhod": 2.2, "u0": 4.0, "K": 0.61},
        "Al2O3": {"md": 20.4, "zd": 10, "rhod": 4.0, "u0": 8.5, "K": 0.08},
    },
}

ABUNDANCE_TEXT = """\
cell He C O Si Fe
1 0.1 0.3 0.5 0.05 0.01
2 0.2 0.6 0.4 0.1 0.0
3 0.1 0.2 0.2 0.0 0.0
4 0.0 0.0 1.0 0.5 0.2
5 0.3 0.1 0.1 0.1 0.1
"""


def write_text(path: Path, text: str) -> Path:
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


@pytest.fixture
def network() -> ChemicalNetwork:
    return ChemicalNetwork.from_records(REACTIONS, label="test")


@pytest.fixture
def property_store() -> IonGrainPropertyStore:
    return IonGrainPropertyStore.from_mapping(SPUTTER_PROPERTIES)


@pytest.fixture
def sputter_file(tmp_path: Path) -> Path:
    path = tmp_path / "sputterDict.json"
    path.write_text(json.dumps(SPUTTER_PROPERTIES), encoding="utf-8")
    return path


@pytest.fixture
def abundance_file(tmp_path: Path) -> Path:
    return write_text(tmp_path / "abundances.dat", ABUNDANCE_TEXT)


@pytest.fixture
def make_config(tmp_path: Path, abundance_file: Path) -> Callable[..., Config]:
    """Build a :class:`Config` with generative sizing and artifacts under ``tmp_path``."""

    def _make(**sections: Any) -> Config:
        payload: Dict[str, Any] = {
            "inputs": {"abundance_file": abundance_file},
            "network": {"label": "test", "reactions": REACTIONS},
            "sizing": {"low_sd_exp": -7.0, "high_sd_exp": -4.0, "bin_number": 3},
            "io": {"output_dir": tmp_path / "output", "restart_dir": tmp_path / "restart"},
        }
        for key, value in sections.items():
            if isinstance(value, dict) and isinstance(payload.get(key), dict):
                payload[key] = {**payload[key], **value}
            else:
                payload[key] = value
        return Config(**payload)

    return _make
