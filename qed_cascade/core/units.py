"""
Normalized unit system.

All engine quantities are normalized to electron rest mass, elementary
charge, the speed of light and the reduced Planck constant. Fields are in
units of the Schwinger critical field. Conversion only happens at the
configuration and output boundaries.
"""

import numpy as np
from scipy import constants

# Fine-structure constant (dimensionless, used by every rate formula)
ALPHA = constants.fine_structure


class UnitsSystem:
    """
    Reference scales for converting between physical and normalized units.

    Usage:
        units = UnitsSystem('SI')
        dt = 1e-17 / units.ref_time          # seconds -> normalized
        E_si = E_norm * units.ref_e_field    # normalized -> V/m
    """

    SYSTEMS = ('SI',)

    def __init__(self, system: str = 'SI'):
        """
        Initialize unit system.

        Parameters:
            system: Unit system name (only 'SI' is available)
        """
        if system.upper() not in self.SYSTEMS:
            raise ValueError(f"Unknown unit system '{system}'. "
                             f"Available: {list(self.SYSTEMS)}")
        self.system = system.upper()

        m = constants.m_e
        c = constants.c
        e = constants.e
        hbar = constants.hbar

        self.ref_mass = m                                # kg
        self.ref_charge = e                              # C
        self.ref_time = hbar / (m * c**2)                # s
        self.ref_length = hbar / (m * c)                 # m
        self.ref_energy = m * c**2                       # J
        self.ref_momentum = m * c                        # kg m/s
        self.ref_e_field = m**2 * c**3 / (e * hbar)      # V/m (Schwinger field)
        self.ref_b_field = self.ref_e_field / c          # T
        self.ref_energy_mev = constants.physical_constants[
            'electron mass energy equivalent in MeV'][0]  # MeV

    def to_normalized(self, value, quantity: str):
        """Convert a physical value (scalar or array) to normalized units."""
        return np.asarray(value, dtype=np.float64) / self._reference(quantity)

    def to_physical(self, value, quantity: str):
        """Convert a normalized value (scalar or array) to physical units."""
        return np.asarray(value, dtype=np.float64) * self._reference(quantity)

    def _reference(self, quantity: str) -> float:
        references = {
            'time': self.ref_time,
            'length': self.ref_length,
            'energy': self.ref_energy,
            'energy_mev': self.ref_energy_mev,
            'momentum': self.ref_momentum,
            'e_field': self.ref_e_field,
            'b_field': self.ref_b_field,
            'mass': self.ref_mass,
            'charge': self.ref_charge,
        }
        if quantity not in references:
            raise ValueError(f"Unknown quantity '{quantity}'. "
                             f"Available: {list(references.keys())}")
        return references[quantity]

    def __repr__(self) -> str:
        return (f"UnitsSystem('{self.system}', t={self.ref_time:.3e} s, "
                f"L={self.ref_length:.3e} m, E={self.ref_e_field:.3e} V/m)")
