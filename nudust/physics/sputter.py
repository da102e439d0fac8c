r"""Sputtering coefficients for thermal and non-thermal grain destruction.

The coefficients follow Biscaro & Cherchneff (2016, A&A 589, A132), which
builds on the Tsai & Mathews / Nozawa et al. fits for the sputtering yield
of a grain of mass :math:`m_d` bombarded by an ion of mass :math:`m_i`:

* eq. 8, the mass-ratio dependent factor :math:`\alpha(\mu)` with
  :math:`\mu = m_d/m_i`;
* eq. 3, the threshold energy :math:`E_{\rm th}`;
* eq. 5, the Thomas-Fermi screening length :math:`a_{\rm sc}`;
* eq. 4, the nuclear stopping cross-section coefficient;
* eq. 7, the reduced energy coefficient :math:`\epsilon_i / E`.

The piecewise factors are exposed as pure functions so they can be tested
independently of the table.  :class:`SputterCoefficientTable` evaluates them
once for every (grain, species) pair; the resulting arrays are read-only and
shared by reference among all cells of a run.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .. import constants
from ..errors import PhysicsError
from ..network import ChemicalNetwork
from ..properties import IonGrainPropertyStore

logger = logging.getLogger(__name__)

TWO_THIRDS = 2.0 / 3.0
ONE_THIRD = 1.0 / 3.0


def alpha_mass_ratio(mu: float) -> float:
    """Return the dimensionless factor :math:`\\alpha(\\mu)` (Biscaro 2016, eq. 8).

    ``mu > 1`` uses ``0.3 (mu - 0.6)^(2/3)``, ``mu <= 0.5`` gives the constant
    0.2 and the intermediate range ``0.5 < mu <= 1`` interpolates with
    ``0.1/mu + 0.25 (mu - 0.5)^2``.
    """

    if mu > 1.0:
        return 0.3 * (mu - 0.6) ** TWO_THIRDS
    if mu <= 0.5:
        return 0.2
    return 0.1 / mu + 0.25 * (mu - 0.5) ** 2


def threshold_energy(u0: float, ion_mass: float, grain_mass: float) -> float:
    """Return the sputtering threshold energy (Biscaro 2016, eq. 3).

    Parameters
    ----------
    u0:
        Surface binding energy of the grain material (eV).
    ion_mass, grain_mass:
        Projectile and target masses in any common unit (amu in practice).

    Light projectiles (``m_i/m_d <= 0.3``) use the maximum energy transfer
    fraction ``g = 4 m_i m_d / (m_i + m_d)^2``; heavier projectiles use the
    ``8 u0 (m_i/m_d)^(1/3)`` fit.
    """

    if ion_mass <= 0.0 or grain_mass <= 0.0:
        raise PhysicsError("ion_mass and grain_mass must be positive")
    inv_mu = ion_mass / grain_mass
    if inv_mu > 0.3:
        return 8.0 * u0 * inv_mu ** ONE_THIRD
    g = 4.0 * ion_mass * grain_mass / (ion_mass + grain_mass) ** 2
    return u0 / (g * (1.0 - g))


def screening_length(zi: float, zd: float) -> float:
    """Return the Thomas-Fermi screening length in Angstrom (eq. 5)."""

    return 0.885 * constants.BOHR_RADIUS_ANGSTROM * (zi**TWO_THIRDS + zd**TWO_THIRDS) ** -0.5


def stopping_power_coefficient(asc: float, zi: float, zd: float, ion_mass: float, grain_mass: float) -> float:
    """Coefficient of the reduced nuclear stopping cross-section (eq. 4)."""

    return 4.0 * math.pi * asc * zi * zd * constants.ECHARGE_SQ * ion_mass / (ion_mass + grain_mass)


def energy_loss_coefficient(asc: float, zi: float, zd: float, ion_mass: float, grain_mass: float) -> float:
    """Conversion factor from projectile energy to reduced energy (eq. 7)."""

    return grain_mass / (ion_mass + grain_mass) * asc / (zi * zd * constants.ECHARGE_SQ)


def _readonly(values: Sequence[float] | np.ndarray) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class SputterCoefficientTable:
    """Per-species, per-grain and per-(grain, species) sputtering terms.

    Species arrays have length ``n_gas``; grain arrays have length
    ``n_grains``; pair arrays have shape ``(n_grains, n_gas)``.  All arrays
    are flagged read-only after construction.

    Attributes
    ----------
    mi, mi_g, mi_kg:
        Ion masses in amu, grams and kilograms.
    zi:
        Ion charge numbers.
    y8_pi_mi:
        ``8 / (pi m_i)`` with ``m_i`` in grams (thermal velocity prefactor).
    md, md_g, zd, rhod, u0, K:
        Grain monomer mass (amu, grams), charge, bulk density (g cm^-3),
        binding energy (eV) and the empirical constant ``K``.
    msp_2rhod, three_2Rhod:
        ``m_d / (2 rho_d)`` in grams and ``3 / (2 rho_d)``.
    mu, inv_mu, alpha, eth, asc, si_coeff, ei_coeff:
        Pair terms; see the module docstring.
    """

    species: tuple
    grains: tuple
    mi: np.ndarray
    mi_g: np.ndarray
    mi_kg: np.ndarray
    zi: np.ndarray
    y8_pi_mi: np.ndarray
    md: np.ndarray
    md_g: np.ndarray
    zd: np.ndarray
    rhod: np.ndarray
    u0: np.ndarray
    K: np.ndarray
    msp_2rhod: np.ndarray
    three_2Rhod: np.ndarray
    mu: np.ndarray
    inv_mu: np.ndarray
    alpha: np.ndarray
    eth: np.ndarray
    asc: np.ndarray
    si_coeff: np.ndarray
    ei_coeff: np.ndarray

    @property
    def n_gas(self) -> int:
        return len(self.species)

    @property
    def n_grains(self) -> int:
        return len(self.grains)

    @classmethod
    def build(
        cls,
        species: Sequence[str],
        grains: Sequence[str],
        store: IonGrainPropertyStore,
    ) -> "SputterCoefficientTable":
        """Evaluate every coefficient for the given species and grain names.

        Unknown names raise :class:`~nudust.errors.ConfigurationError` from
        the property store.
        """

        ions = [store.ion(name) for name in species]
        grain_props = [store.grain(name) for name in grains]

        mi = np.array([ion.mi for ion in ions], dtype=float)
        zi = np.array([ion.zi for ion in ions], dtype=float)
        if np.any(mi <= 0.0):
            raise PhysicsError("ion masses must be positive")
        mi_g = mi * constants.AMU_TO_G

        md = np.array([grain.md for grain in grain_props], dtype=float)
        zd = np.array([grain.zd for grain in grain_props], dtype=float)
        rhod = np.array([grain.rhod for grain in grain_props], dtype=float)
        if np.any(md <= 0.0) or np.any(rhod <= 0.0):
            raise PhysicsError("grain masses and bulk densities must be positive")
        md_g = md * constants.AMU_TO_G

        shape = (len(grain_props), len(ions))
        mu = np.empty(shape)
        alpha = np.empty(shape)
        eth = np.empty(shape)
        asc = np.empty(shape)
        si_coeff = np.empty(shape)
        ei_coeff = np.empty(shape)
        for g_idx, grain in enumerate(grain_props):
            for s_idx, ion in enumerate(ions):
                mu[g_idx, s_idx] = grain.md / ion.mi
                alpha[g_idx, s_idx] = alpha_mass_ratio(mu[g_idx, s_idx])
                eth[g_idx, s_idx] = threshold_energy(grain.u0, ion.mi, grain.md)
                a = screening_length(ion.zi, grain.zd)
                asc[g_idx, s_idx] = a
                si_coeff[g_idx, s_idx] = stopping_power_coefficient(a, ion.zi, grain.zd, ion.mi, grain.md)
                ei_coeff[g_idx, s_idx] = energy_loss_coefficient(a, ion.zi, grain.zd, ion.mi, grain.md)

        table = cls(
            species=tuple(species),
            grains=tuple(grains),
            mi=_readonly(mi),
            mi_g=_readonly(mi_g),
            mi_kg=_readonly(mi * constants.AMU_TO_KG),
            zi=_readonly(zi),
            y8_pi_mi=_readonly(8.0 / (math.pi * mi_g)),
            md=_readonly(md),
            md_g=_readonly(md_g),
            zd=_readonly(zd),
            rhod=_readonly(rhod),
            u0=_readonly([grain.u0 for grain in grain_props]),
            K=_readonly([grain.K for grain in grain_props]),
            msp_2rhod=_readonly(md_g * 0.5 / rhod),
            three_2Rhod=_readonly(1.5 / rhod),
            mu=_readonly(mu),
            inv_mu=_readonly(1.0 / mu),
            alpha=_readonly(alpha),
            eth=_readonly(eth),
            asc=_readonly(asc),
            si_coeff=_readonly(si_coeff),
            ei_coeff=_readonly(ei_coeff),
        )
        logger.info("calculated sputtering terms for %d grains x %d species", *shape)
        return table

    @classmethod
    def from_network(
        cls,
        network: ChemicalNetwork,
        species: Sequence[str],
        store: IonGrainPropertyStore,
    ) -> "SputterCoefficientTable":
        """Build the table for the grains produced by the network's nucleation reactions."""

        return cls.build(species, network.grain_names, store)


__all__ = [
    "alpha_mass_ratio",
    "threshold_energy",
    "screening_length",
    "stopping_power_coefficient",
    "energy_loss_coefficient",
    "SputterCoefficientTable",
]
