"""
Strong-field QED rates and spectra.

Tabulates, once per process, the total rates and inverse cumulative
distributions of:
    - nonlinear Compton photon emission (quantum synchrotron spectrum)
    - nonlinear Breit-Wheeler pair production
    - classical synchrotron emission

All rates are in normalized units (m c^2 / hbar). With u the energy
fraction taken by the secondary:

    photon emission:  dW/du = α/(√3 π γ) [(1-u+1/(1-u)) K_2/3(z) - ∫_z K_1/3],
                      z = 2u / (3χ(1-u))
    pair production:  dW/du = α/(√3 π ω) [(u/(1-u)+(1-u)/u) K_2/3(z) + ∫_z K_1/3],
                      z = 2 / (3χ_γ u(1-u))
    classical:        dW/du = α/(√3 π γ) ∫_z K_5/3,  z = 2u / (3χ)

References:
    - Baier, Katkov & Strakhovenko, Electromagnetic Processes at High Energies (1998)
    - Elkina et al., PRSTAB 14, 054401 (2011)
    - Ridgers et al., J. Comput. Phys. 260, 273 (2014)
"""

from functools import lru_cache

import numpy as np
import numba
from scipy import special, integrate

from qed_cascade.core.units import ALPHA

# Below this quantum parameter every rate is exactly zero
CHI_ZERO = 1e-12

# Tabulation ranges
EMISSION_CHI_MIN = 1e-3
EMISSION_CHI_MAX = 1e3
PAIR_CHI_MIN = 1e-2
PAIR_CHI_MAX = 1e3

RATE_PREFACTOR = ALPHA / (np.sqrt(3.0) * np.pi)


@numba.njit(fastmath=True, cache=True)
def quantum_parameter(momentum: np.ndarray, energy: float,
                      e_field: np.ndarray, b_field: np.ndarray) -> float:
    """
    Quantum parameter χ of a lepton or photon.

        χ = sqrt((ε E + p × B)² - (p · E)²)

    with ε the energy (γ for a lepton, ω for a photon) and p the momentum,
    all normalized. Fields are in units of the Schwinger field.
    """
    fx = energy * e_field[0] + momentum[1] * b_field[2] - momentum[2] * b_field[1]
    fy = energy * e_field[1] + momentum[2] * b_field[0] - momentum[0] * b_field[2]
    fz = energy * e_field[2] + momentum[0] * b_field[1] - momentum[1] * b_field[0]
    p_dot_e = momentum[0] * e_field[0] + momentum[1] * e_field[1] + momentum[2] * e_field[2]
    chi2 = fx * fx + fy * fy + fz * fz - p_dot_e * p_dot_e
    if chi2 <= 0.0:
        return 0.0
    return np.sqrt(chi2)


@numba.njit(fastmath=True, cache=True)
def gaunt_factor(chi: float) -> float:
    """
    Ratio of quantum to classical radiated power.

    Fit: g(χ) = (1 + 4.8(1+χ) ln(1+1.7χ) + 2.44χ²)^(-2/3)
    """
    return (1.0 + 4.8 * (1.0 + chi) * np.log(1.0 + 1.7 * chi) + 2.44 * chi * chi)**(-2.0 / 3.0)


@lru_cache(maxsize=None)
def _bessel_tail_table(order: float):
    """
    Tabulate ∫_z^∞ K_order(x) dx on a log grid.

    Integrates x K(x) in ln x from the top of the grid downwards.

    Returns:
        (ln z grid, integral values)
    """
    x = np.logspace(-10.0, 2.6, 20001)
    ln_x = np.log(x)
    integrand = x * special.kv(order, x)
    # Integrate from the top of the grid down to each point
    reversed_cumulative = integrate.cumulative_trapezoid(
        integrand[::-1], -ln_x[::-1], initial=0.0)
    return ln_x, reversed_cumulative[::-1]


def bessel_tail_integral(order: float, z):
    """∫_z^∞ K_order(x) dx (vectorized, zero beyond the table)."""
    ln_x, values = _bessel_tail_table(order)
    z = np.asarray(z, dtype=np.float64)
    result = np.interp(np.log(np.maximum(z, 1e-300)), ln_x, values, right=0.0)
    return result


def _cumulative_with_head(u: np.ndarray, density: np.ndarray) -> np.ndarray:
    """
    Cumulative integral of a density that diverges like u^(-2/3) at u -> 0.

    The piece [0, u0] is integrated analytically as 3 u0 f(u0).
    """
    head = 3.0 * u[0] * density[0]
    return head + integrate.cumulative_trapezoid(density, u, initial=0.0)


def emission_density(chi: float, u: np.ndarray) -> np.ndarray:
    """Quantum synchrotron spectrum shape (without α/(√3πγ)) at fixed χ."""
    z = 2.0 * u / (3.0 * chi * (1.0 - u))
    density = ((1.0 - u + 1.0 / (1.0 - u)) * special.kv(2.0 / 3.0, z)
               - bessel_tail_integral(1.0 / 3.0, z))
    return np.maximum(np.nan_to_num(density, nan=0.0, posinf=0.0), 0.0)


def pair_density(chi: float, u: np.ndarray) -> np.ndarray:
    """Pair spectrum shape (without α/(√3πω)) at fixed χ_γ."""
    z = 2.0 / (3.0 * chi * u * (1.0 - u))
    density = ((u / (1.0 - u) + (1.0 - u) / u) * special.kv(2.0 / 3.0, z)
               + bessel_tail_integral(1.0 / 3.0, z))
    return np.maximum(np.nan_to_num(density, nan=0.0, posinf=0.0), 0.0)


class QEDTables:
    """
    Read-only rate and spectrum tables.

    Built once and shared by every process object in a worker.

    Usage:
        tables = get_tables()
        rate = tables.emission_rate(chi=1.0, gamma=1000.0)
        u = tables.sample_emission_fraction(chi=1.0, r=rng.random())
    """

    def __init__(self, n_chi: int = 61):
        """
        Build all tables.

        Parameters:
            n_chi: Number of quantum-parameter grid points per table
        """
        # Photon emission: fraction grid resolving both ends of (0, 1)
        self.emission_u = np.concatenate([
            np.logspace(-10.0, -1.0, 180, endpoint=False),
            np.linspace(0.1, 0.9, 160, endpoint=False),
            1.0 - np.logspace(-1.0, -10.0, 180),
        ])
        self.emission_ln_chi = np.linspace(np.log(EMISSION_CHI_MIN),
                                           np.log(EMISSION_CHI_MAX), n_chi)
        self.emission_h, self.emission_cdf = self._build(
            emission_density, self.emission_u, self.emission_ln_chi, head=True)

        # Pair production: fraction grid clustered at both ends
        s = np.linspace(0.0, 1.0, 801)[1:-1]
        self.pair_u = 0.5 * (1.0 - np.cos(np.pi * s))
        self.pair_ln_chi = np.linspace(np.log(PAIR_CHI_MIN), np.log(PAIR_CHI_MAX), n_chi)
        self.pair_h, self.pair_cdf = self._build(
            pair_density, self.pair_u, self.pair_ln_chi, head=False)

        # Classical synchrotron: universal shape in z = 2u/(3χ)
        self.classical_z = np.logspace(-10.0, 2.3, 800)
        density = bessel_tail_integral(5.0 / 3.0, self.classical_z)
        cumulative = _cumulative_with_head(self.classical_z, density)
        self.classical_norm = cumulative[-1]          # analytically 5π/3
        self.classical_cdf = cumulative / cumulative[-1]

    @staticmethod
    def _build(density_fn, u: np.ndarray, ln_chi: np.ndarray, head: bool):
        totals = np.zeros(len(ln_chi))
        cdfs = np.zeros((len(ln_chi), len(u)))
        for i, chi in enumerate(np.exp(ln_chi)):
            density = density_fn(chi, u)
            if head:
                cumulative = _cumulative_with_head(u, density)
            else:
                cumulative = integrate.cumulative_trapezoid(density, u, initial=0.0)
            totals[i] = cumulative[-1]
            if totals[i] > 0.0:
                cdfs[i] = cumulative / totals[i]
            else:
                cdfs[i] = np.linspace(0.0, 1.0, len(u))
        return totals, cdfs

    # ------------------------------------------------------------------
    # Photon emission
    # ------------------------------------------------------------------

    def emission_integral(self, chi: float) -> float:
        """h(χ) = ∫ dW/du du without the α/(√3πγ) prefactor."""
        if chi <= CHI_ZERO:
            return 0.0
        if chi < EMISSION_CHI_MIN:
            return float(self.emission_h[0] * chi / EMISSION_CHI_MIN)
        if chi > EMISSION_CHI_MAX:
            return float(self.emission_h[-1] * (chi / EMISSION_CHI_MAX)**(2.0 / 3.0))
        return float(np.exp(np.interp(np.log(chi), self.emission_ln_chi,
                                      np.log(self.emission_h))))

    def emission_rate(self, chi: float, gamma: float) -> float:
        """Photon emission rate dN/dt of a lepton with energy gamma."""
        if chi <= CHI_ZERO or gamma <= 0.0:
            return 0.0
        return RATE_PREFACTOR * self.emission_integral(chi) / gamma

    def sample_emission_fraction(self, chi: float, r: float) -> float:
        """Photon energy fraction u for a uniform draw r in [0, 1)."""
        if chi < EMISSION_CHI_MIN:
            # Quantum spectrum reduces to the classical shape in z
            z = self._sample_classical_z(r)
            return 1.5 * chi * z / (1.0 + 1.5 * chi * z)
        return self._sample_row(self.emission_ln_chi, self.emission_cdf,
                                self.emission_u, chi, r)

    # ------------------------------------------------------------------
    # Pair production
    # ------------------------------------------------------------------

    def pair_integral(self, chi: float) -> float:
        """∫ dW/du du for pair production without the α/(√3πω) prefactor."""
        if chi < PAIR_CHI_MIN:
            return 0.0
        if chi > PAIR_CHI_MAX:
            return float(self.pair_h[-1] * (chi / PAIR_CHI_MAX)**(2.0 / 3.0))
        return float(np.exp(np.interp(np.log(chi), self.pair_ln_chi,
                                      np.log(np.maximum(self.pair_h, 1e-300)))))

    def pair_rate(self, chi: float, omega: float) -> float:
        """Pair production rate dN/dt of a photon with energy omega."""
        if chi <= CHI_ZERO or omega <= 0.0:
            return 0.0
        return RATE_PREFACTOR * self.pair_integral(chi) / omega

    def sample_pair_fraction(self, chi: float, r: float) -> float:
        """Energy fraction taken by the electron for a uniform draw r."""
        return self._sample_row(self.pair_ln_chi, self.pair_cdf, self.pair_u, chi, r)

    # ------------------------------------------------------------------
    # Classical synchrotron emission
    # ------------------------------------------------------------------

    def classical_emission_rate(self, chi: float, gamma: float) -> float:
        """Classical photon number rate 5αχ/(2√3γ)."""
        if chi <= CHI_ZERO or gamma <= 0.0:
            return 0.0
        return RATE_PREFACTOR * 1.5 * chi * self.classical_norm / gamma

    def sample_classical_fraction(self, chi: float, r: float) -> float:
        """Photon energy fraction from the classical spectrum (may exceed 1)."""
        return 1.5 * chi * self._sample_classical_z(r)

    def _sample_classical_z(self, r: float) -> float:
        return float(np.interp(r, self.classical_cdf, self.classical_z))

    @staticmethod
    def _sample_row(ln_chi_grid, cdf_table, u_grid, chi: float, r: float) -> float:
        """Inverse-CDF sample, linearly blended between neighbouring χ rows."""
        ln_chi = np.log(max(chi, CHI_ZERO))
        if ln_chi <= ln_chi_grid[0]:
            return float(np.interp(r, cdf_table[0], u_grid))
        if ln_chi >= ln_chi_grid[-1]:
            return float(np.interp(r, cdf_table[-1], u_grid))

        j = int(np.searchsorted(ln_chi_grid, ln_chi)) - 1
        weight = (ln_chi - ln_chi_grid[j]) / (ln_chi_grid[j + 1] - ln_chi_grid[j])
        u_low = np.interp(r, cdf_table[j], u_grid)
        u_high = np.interp(r, cdf_table[j + 1], u_grid)
        return float((1.0 - weight) * u_low + weight * u_high)


@lru_cache(maxsize=1)
def get_tables() -> QEDTables:
    """Shared tables for this process (built on first use)."""
    return QEDTables()
