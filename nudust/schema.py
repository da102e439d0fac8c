"""Configuration schema for nucleation/destruction runs.

The Pydantic models mirror the YAML run configuration read by
:func:`nudust.config_utils.load_config`.  Optional input files disable their
feature when left unset; the cross-field requirements of the generative size
grid and of the generated shock are checked when those features are used so
that a configuration can be validated without every input present.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import ConfigurationError


class Inputs(BaseModel):
    """Input files; unset optional files switch their loader off."""

    abundance_file: Path = Field(..., description="Per-cell initial abundances (required)")
    size_dist_file: Optional[Path] = Field(
        None,
        description="Per-cell grain size distributions; when unset the sizing block generates empty bins",
    )
    environment_file: Optional[Path] = Field(None, description="Per-cell trajectory (time, T, V, rho, P, v, x)")
    shock_file: Optional[Path] = Field(None, description="Per-cell shock time, temperature and velocity")
    sputter_file: Optional[Path] = Field(
        None,
        description="Ion/grain physical constants (JSON); required when physics.do_destruction is set",
    )


class ReactionSpec(BaseModel):
    reactants: List[str] = Field(default_factory=list)
    products: List[str]
    nucleation: bool = False

    @field_validator("products")
    @classmethod
    def _products_not_empty(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("a reaction needs at least one product")
        return value


class NetworkConfig(BaseModel):
    """Reaction list of the chemical network; nucleation products name the grains."""

    label: str = Field("net", description="Network label used in artifact file names")
    reactions: List[ReactionSpec] = Field(default_factory=list)


class Sizing(BaseModel):
    """Generative log-spaced size grid (cm), used when no size file is given."""

    low_sd_exp: Optional[float] = Field(None, description="log10 of the smallest bin edge")
    high_sd_exp: Optional[float] = Field(None, description="log10 of the largest bin edge")
    bin_number: Optional[int] = Field(None, gt=0, description="Number of size bins")

    @model_validator(mode="after")
    def _check_exponent_order(self) -> "Sizing":
        low, high = self.low_sd_exp, self.high_sd_exp
        if low is not None and high is not None and low >= high:
            raise ConfigurationError(f"sizing.low_sd_exp ({low}) must be smaller than high_sd_exp ({high})")
        return self


class Shock(BaseModel):
    """Uniform shock applied to every cell when ``shock_velo`` is set."""

    shock_velo: Optional[float] = Field(None, description="Shock velocity; enables the generated shock")
    shock_temp: Optional[float] = Field(None, description="Post-shock gas temperature")
    sim_start_time: Optional[float] = Field(None, description="Time of the shock / start of the simulation")
    pile_up_factor: float = Field(1.0, gt=0.0, description="Post-shock density compression factor")


class Physics(BaseModel):
    do_nucleation: bool = True
    do_destruction: bool = False
    rhs_entrypoint: Optional[str] = Field(
        None,
        description="Right-hand side of the cell ODE as 'module:function' with signature f(t, y, cell)",
    )
    t_end: Optional[float] = Field(None, description="Integration end time; defaults to the last trajectory time")
    method: Literal["LSODA", "BDF", "Radau", "RK45", "DOP853"] = "LSODA"
    rtol: float = Field(1.0e-6, gt=0.0)
    atol: float = Field(1.0e-20, gt=0.0)


class Parallel(BaseModel):
    """Rank slicing and the per-rank worker pool."""

    ranks: int = Field(1, ge=1, description="Number of independent ranks sharing the cell list")
    rank: int = Field(0, ge=0, description="Index of this rank")
    cell_cap: Optional[int] = Field(10, ge=0, description="Maximum cells per rank; null disables the cap")
    workers: int = Field(2, ge=1, description="Concurrent cell integrations per rank")

    @model_validator(mode="after")
    def _check_rank(self) -> "Parallel":
        if self.rank >= self.ranks:
            raise ConfigurationError(f"parallel.rank ({self.rank}) must be smaller than parallel.ranks ({self.ranks})")
        return self


class IO(BaseModel):
    output_dir: Path = Field(Path("output"), description="Directory of completed-output artifacts")
    restart_dir: Path = Field(Path("restart"), description="Directory of restart artifacts")


class Config(BaseModel):
    """Top-level configuration object."""

    inputs: Inputs
    network: NetworkConfig = NetworkConfig()
    sizing: Sizing = Sizing()
    shock: Shock = Shock()
    physics: Physics = Physics()
    parallel: Parallel = Parallel()
    io: IO = IO()

    @model_validator(mode="after")
    def _check_destruction_inputs(self) -> "Config":
        if self.physics.do_destruction and self.inputs.sputter_file is None:
            raise ConfigurationError("physics.do_destruction requires inputs.sputter_file")
        return self


__all__ = [
    "Inputs",
    "ReactionSpec",
    "NetworkConfig",
    "Sizing",
    "Shock",
    "Physics",
    "Parallel",
    "IO",
    "Config",
]
