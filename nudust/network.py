"""Minimal chemical network container.

The reaction kinetics live in the external integrator; the preprocessing
stage only needs the reaction ordering, the nucleation subset and the grain
species each nucleation reaction produces.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Sequence, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class Reaction:
    """Single network reaction; ``prods[0]`` names the grain for nucleation."""

    reactants: Tuple[str, ...]
    prods: Tuple[str, ...]
    nucleation: bool = False

    @property
    def product(self) -> str:
        return self.prods[0]


@dataclass(frozen=True)
class ChemicalNetwork:
    """Ordered reaction list with nucleation reactions placed first.

    Placing the nucleation reactions at the head of the list makes the
    reaction index double as the grain index used by the size-distribution
    and sputtering blocks.
    """

    reactions: Tuple[Reaction, ...]
    label: str = "net"
    n_nucleation_reactions: int = field(init=False)

    def __post_init__(self) -> None:
        ordered = tuple(r for r in self.reactions if r.nucleation) + tuple(
            r for r in self.reactions if not r.nucleation
        )
        object.__setattr__(self, "reactions", ordered)
        object.__setattr__(self, "n_nucleation_reactions", sum(1 for r in ordered if r.nucleation))

    @property
    def n_reactions(self) -> int:
        return len(self.reactions)

    @property
    def grain_names(self) -> List[str]:
        """First product of each nucleation reaction, in network order."""

        return [r.product for r in self.reactions[: self.n_nucleation_reactions]]

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, object]], *, label: str = "net") -> "ChemicalNetwork":
        """Build a network from ``{"reactants", "products", "nucleation"}`` mappings."""

        reactions = []
        for idx, record in enumerate(records):
            products: Sequence[str] = tuple(record.get("products") or ())  # type: ignore[arg-type]
            if not products:
                raise ConfigurationError(f"network.reactions[{idx}] has no products")
            reactants: Sequence[str] = tuple(record.get("reactants") or ())  # type: ignore[arg-type]
            reactions.append(
                Reaction(
                    reactants=tuple(str(s) for s in reactants),
                    prods=tuple(str(s) for s in products),
                    nucleation=bool(record.get("nucleation", False)),
                )
            )
        return cls(reactions=tuple(reactions), label=label)


__all__ = ["Reaction", "ChemicalNetwork"]
