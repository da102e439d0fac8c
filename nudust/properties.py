"""Name-keyed lookup of ion and grain physical constants.

The store is read from a JSON document shaped as::

    {
      "ions":   {"O":   {"mi": 16.0, "zi": 8}},
      "grains": {"SiO2": {"md": 20.0, "zd": 10, "rhod": 2.66, "u0": 6.42, "K": 0.78}}
    }

Ion masses ``mi`` and grain masses ``md`` are in amu, ``rhod`` in g cm^-3
and the binding energy ``u0`` in eV.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

from .errors import ConfigurationError, InputFileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IonProperties:
    mi: float
    zi: float


@dataclass(frozen=True)
class GrainProperties:
    md: float
    zd: float
    rhod: float
    u0: float
    K: float


class IonGrainPropertyStore:
    """Read-only ion/grain property tables keyed by species name."""

    def __init__(
        self,
        ions: Mapping[str, IonProperties],
        grains: Mapping[str, GrainProperties],
    ) -> None:
        self._ions: Dict[str, IonProperties] = dict(ions)
        self._grains: Dict[str, GrainProperties] = dict(grains)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "IonGrainPropertyStore":
        try:
            ions = {
                str(name): IonProperties(mi=float(entry["mi"]), zi=float(entry["zi"]))
                for name, entry in dict(payload.get("ions", {})).items()
            }
            grains = {
                str(name): GrainProperties(
                    md=float(entry["md"]),
                    zd=float(entry["zd"]),
                    rhod=float(entry["rhod"]),
                    u0=float(entry["u0"]),
                    K=float(entry["K"]),
                )
                for name, entry in dict(payload.get("grains", {})).items()
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Malformed ion/grain property entry: {exc}") from exc
        return cls(ions, grains)

    @classmethod
    def from_json(cls, path: Path) -> "IonGrainPropertyStore":
        path = Path(path)
        if not path.exists():
            raise InputFileError(f"Cannot open sputter property file {path}")
        with path.open("r", encoding="utf-8") as fh:
            try:
                payload = json.load(fh)
            except json.JSONDecodeError as exc:
                raise InputFileError(f"Malformed sputter property file {path}: {exc}") from exc
        store = cls.from_mapping(payload)
        logger.info("loaded %d ion and %d grain property entries from %s", len(store._ions), len(store._grains), path)
        return store

    def ion(self, name: str) -> IonProperties:
        try:
            return self._ions[name]
        except KeyError:
            raise ConfigurationError(f"Unknown ion species '{name}' in sputter property store") from None

    def grain(self, name: str) -> GrainProperties:
        try:
            return self._grains[name]
        except KeyError:
            raise ConfigurationError(f"Unknown grain species '{name}' in sputter property store") from None


__all__ = ["IonProperties", "GrainProperties", "IonGrainPropertyStore"]
