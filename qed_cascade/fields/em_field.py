"""
Prescribed electromagnetic fields.

Every field is a pure function of (position, time) returning the local
electric and magnetic field in normalized units (Schwinger field). Field
objects are configured once and never mutated, so one instance can be
shared by all events.

Implemented shapes:
    - static:    uniform constant E and B
    - plane:     infinite linearly polarized plane wave
    - gaussian:  paraxial Gaussian pulse (leading order)
    - focusing:  Salamin-Keitel higher-order focused pulse

References:
    - Salamin & Keitel, PRL 88, 095005 (2002)
    - Siegman, Lasers (1986), Gaussian beam optics
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
import numba

from qed_cascade.core.vector import as_three_vector, orthonormal_basis, cross3, dot3

# Envelope cut-off in pulse durations; the field is exactly zero beyond it
ENVELOPE_CUTOFF = 5.0


@numba.njit(fastmath=True, cache=True)
def plane_wave_fields(position: np.ndarray, time: float, amplitude: float,
                      wavenumber: float, e_pol: np.ndarray, e_perp: np.ndarray,
                      k_dir: np.ndarray) -> np.ndarray:
    """
    Linearly polarized plane wave.

        E = E0 sin(ωt - k·r) e_pol,    B = k̂ × E

    Returns:
        Array [Ex, Ey, Ez, Bx, By, Bz]
    """
    phase = wavenumber * time - wavenumber * dot3(k_dir, position)
    amp = amplitude * np.sin(phase)

    result = np.empty(6, dtype=np.float64)
    for i in range(3):
        result[i] = amp * e_pol[i]
        result[3 + i] = amp * e_perp[i]
    return result


@numba.njit(fastmath=True, cache=True)
def focused_pulse_fields(position: np.ndarray, time: float, amplitude: float,
                         wavelength: float, duration: float, waist: float,
                         e_pol: np.ndarray, e_perp: np.ndarray, k_dir: np.ndarray,
                         focus: np.ndarray, z_start: float,
                         higher_order: bool) -> np.ndarray:
    """
    Gaussian focused pulse with a Gaussian temporal envelope.

    Local frame: x along polarisation, z along propagation, origin at focus.
    With ε = w0/zR, ξ = x/w0, ν = y/w0, ρ = r/w0 and
        C_n = (w0/w)^n cos(ψ + nψ_G),  S_n = (w0/w)^n sin(ψ + nψ_G)
        ψ = ωt - kz - kr²/(2R),        ψ_G = atan(z/zR)

    the paraxial fields are E_x = B_y = E S1 and the higher-order terms add
    corrections up to ε³ including longitudinal components.

    Parameters:
        position: Evaluation point
        time: Evaluation time
        amplitude: Peak field E0
        wavelength: Carrier wavelength
        duration: Envelope 1/e half-width in time
        waist: Beam waist w0 at focus
        e_pol, e_perp, k_dir: Right-handed local frame
        focus: Focal point
        z_start: Pulse-centre coordinate along k_dir (relative to focus) at t=0
        higher_order: Include Salamin-Keitel corrections

    Returns:
        Array [Ex, Ey, Ez, Bx, By, Bz]
    """
    result = np.zeros(6, dtype=np.float64)

    rel = np.empty(3, dtype=np.float64)
    for i in range(3):
        rel[i] = position[i] - focus[i]
    x = dot3(rel, e_pol)
    y = dot3(rel, e_perp)
    z = dot3(rel, k_dir)

    # Envelope (exactly zero far from the pulse centre)
    dz = z - (z_start + time)
    if abs(dz) > ENVELOPE_CUTOFF * duration:
        return result
    envelope = np.exp(-(dz / duration)**2)

    k = 2.0 * np.pi / wavelength
    z_r = 0.5 * k * waist**2
    eps = waist / z_r

    r2 = x * x + y * y
    w_ratio = 1.0 / np.sqrt(1.0 + (z / z_r)**2)       # w0 / w
    w2 = waist**2 / w_ratio**2
    gouy = np.arctan(z / z_r)
    psi = k * time - k * z - 0.5 * k * r2 * z / (z * z + z_r * z_r)

    e0 = amplitude * np.exp(-r2 / w2) * envelope

    s1 = w_ratio * np.sin(psi + gouy)
    ex = s1
    ey = 0.0
    ez = 0.0
    by = s1
    bz = 0.0

    if higher_order:
        xi = x / waist
        nu = y / waist
        rho2 = r2 / waist**2
        rho4 = rho2 * rho2

        c2 = w_ratio**2 * np.cos(psi + 2.0 * gouy)
        c3 = w_ratio**3 * np.cos(psi + 3.0 * gouy)
        c4 = w_ratio**4 * np.cos(psi + 4.0 * gouy)
        c5 = w_ratio**5 * np.cos(psi + 5.0 * gouy)
        s3 = w_ratio**3 * np.sin(psi + 3.0 * gouy)
        s4 = w_ratio**4 * np.sin(psi + 4.0 * gouy)

        ex = s1 + eps**2 * (xi**2 * s3 - 0.25 * rho4 * s4)
        ey = xi * nu * eps**2 * s3
        ez = xi * (eps * c2 + eps**3 * (-0.5 * c3 + rho2 * c4 - 0.25 * rho4 * c5))
        by = s1 + eps**2 * (0.5 * rho2 * s3 - 0.25 * rho4 * s4)
        bz = nu * (eps * c2 + eps**3 * (0.5 * c3 + 0.5 * rho2 * c4 - 0.25 * rho4 * c5))

    for i in range(3):
        result[i] = e0 * (ex * e_pol[i] + ey * e_perp[i] + ez * k_dir[i])
        result[3 + i] = e0 * (by * e_perp[i] + bz * k_dir[i])
    return result


def polarisation_frame(direction, polarisation: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Right-handed frame (e_pol, e_perp, k_dir) for a beam.

    Parameters:
        direction: Propagation direction (normalized internally)
        polarisation: Polarisation angle about the propagation axis [radians]
    """
    k_dir = as_three_vector(direction)
    norm = np.linalg.norm(k_dir)
    if norm == 0.0:
        raise ValueError("Field propagation direction must be non-zero")
    k_dir = k_dir / norm

    e1, e2 = orthonormal_basis(k_dir)
    e_pol = np.cos(polarisation) * e1 + np.sin(polarisation) * e2
    e_perp = cross3(k_dir, e_pol)
    return e_pol, e_perp, k_dir


class EMField(ABC):
    """Base class: (position, time) -> (E, B)."""

    def evaluate(self, position: np.ndarray, time: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Field at a point.

        Ill-defined inputs or results give zero field instead of an error.

        Returns:
            (E, B) as ThreeVectors
        """
        if not (np.all(np.isfinite(position)) and np.isfinite(time)):
            return np.zeros(3), np.zeros(3)
        fields = self._fields(position, time)
        if not np.all(np.isfinite(fields)):
            return np.zeros(3), np.zeros(3)
        return fields[:3].copy(), fields[3:].copy()

    def __call__(self, position: np.ndarray, time: float) -> Tuple[np.ndarray, np.ndarray]:
        return self.evaluate(position, time)

    @abstractmethod
    def _fields(self, position: np.ndarray, time: float) -> np.ndarray:
        """Return [Ex, Ey, Ez, Bx, By, Bz]."""


class StaticEMField(EMField):
    """Uniform, constant electric and magnetic fields."""

    def __init__(self, e_field=(0.0, 0.0, 0.0), b_field=(0.0, 0.0, 0.0)):
        self.e_field = as_three_vector(e_field)
        self.b_field = as_three_vector(b_field)
        self._cached = np.concatenate([self.e_field, self.b_field])

    def _fields(self, position, time):
        return self._cached

    def __repr__(self) -> str:
        return f"StaticEMField(E={self.e_field}, B={self.b_field})"


class PlaneEMField(EMField):
    """Infinite-duration linearly polarized plane wave."""

    def __init__(self, max_field: float, wavelength: float, polarisation: float,
                 direction=(0.0, 0.0, 1.0)):
        """
        Parameters:
            max_field: Peak electric field [normalized]
            wavelength: Wavelength [normalized length]
            polarisation: Polarisation angle [radians]
            direction: Propagation direction
        """
        if wavelength <= 0.0:
            raise ValueError("Plane wave wavelength must be positive")
        self.max_field = float(max_field)
        self.wavelength = float(wavelength)
        self.polarisation = float(polarisation)
        self.e_pol, self.e_perp, self.direction = polarisation_frame(direction, polarisation)
        self.wavenumber = 2.0 * np.pi / self.wavelength

    def _fields(self, position, time):
        return plane_wave_fields(position, time, self.max_field, self.wavenumber,
                                 self.e_pol, self.e_perp, self.direction)


class GaussianEMField(EMField):
    """
    Paraxial Gaussian pulse.

    The pulse centre sits at `start` at t=0 and travels at c towards
    `focus`, where the beam reaches its waist.
    """

    higher_order = False

    def __init__(self, max_field: float, wavelength: float, duration: float,
                 waist: float, polarisation: float, start, focus):
        """
        Parameters:
            max_field: Peak electric field [normalized]
            wavelength: Carrier wavelength [normalized length]
            duration: Pulse duration [normalized time]
            waist: Beam waist at focus [normalized length]
            polarisation: Polarisation angle [radians]
            start: Pulse-centre position at t=0
            focus: Focal position
        """
        if wavelength <= 0.0 or duration <= 0.0 or waist <= 0.0:
            raise ValueError("Pulse wavelength, duration and waist must be positive")
        self.max_field = float(max_field)
        self.wavelength = float(wavelength)
        self.duration = float(duration)
        self.waist = float(waist)
        self.polarisation = float(polarisation)
        self.start = as_three_vector(start)
        self.focus = as_three_vector(focus)

        axis = self.focus - self.start
        if np.linalg.norm(axis) == 0.0:
            raise ValueError("Pulse start and focus must differ")
        self.e_pol, self.e_perp, self.direction = polarisation_frame(axis, polarisation)
        self.z_start = float(np.dot(self.start - self.focus, self.direction))

    def _fields(self, position, time):
        return focused_pulse_fields(position, time, self.max_field, self.wavelength,
                                    self.duration, self.waist, self.e_pol, self.e_perp,
                                    self.direction, self.focus, self.z_start,
                                    self.higher_order)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(E0={self.max_field:.3g}, "
                f"lambda={self.wavelength:.3g}, tau={self.duration:.3g}, "
                f"w0={self.waist:.3g})")


class FocusingField(GaussianEMField):
    """Higher-order (non-paraxial) focused pulse, valid for smaller waists."""

    higher_order = True


# Closed set of field shapes, resolved once at setup
FIELD_TYPES = {
    'static': StaticEMField,
    'plane': PlaneEMField,
    'gaussian': GaussianEMField,
    'focusing': FocusingField,
}


def create_field(field_type: str, **params) -> EMField:
    """
    Build a field from its type label.

    Parameters:
        field_type: 'static', 'plane', 'gaussian' or 'focusing'
        **params: Constructor arguments of the chosen class

    Raises:
        ValueError: Unknown field type
    """
    key = field_type.lower()
    if key not in FIELD_TYPES:
        raise ValueError(f"Unknown field type '{field_type}'. "
                         f"Available: {list(FIELD_TYPES.keys())}")
    return FIELD_TYPES[key](**params)
