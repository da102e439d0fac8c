"""Physical constants used by the sputtering and size-distribution setup.

Values are expressed in the CGS/atomic units the sputtering yields are
formulated in (Biscaro & Cherchneff 2016): masses in amu or grams, lengths
in Angstrom and the squared elementary charge in eV Angstrom.
"""
from __future__ import annotations

# Atomic mass unit in grams and kilograms
AMU_TO_G: float = 1.66053906660e-24
AMU_TO_KG: float = 1.66053906660e-27

# Bohr radius (Angstrom)
BOHR_RADIUS_ANGSTROM: float = 0.529177210903

# Elementary charge squared, e^2 / (4 pi eps0), in eV Angstrom
ECHARGE_SQ: float = 14.3996454784

# Number of size-distribution moments tracked per grain species
# (number, mean radius, area, volume).
N_MOMENTS: int = 4

# Molecules synthesised from their constituents when absent from the input
# abundances: (first constituent, second constituent, product).
PREMADE_MOLECULES = (("C", "O", "CO"), ("Si", "O", "SiO"))
