"""
Relativistic equation-of-motion integrators.

Each pusher advances one particle by exactly one global time step in the
prescribed field:
    - LorentzPusher:         Boris integration of q(E + v×B)
    - LandauPusher:          Boris + Landau-Lifshitz radiation reaction
    - ModifiedLandauPusher:  radiation reaction scaled by the Gaunt factor g(χ)

Pushers are deterministic and hold only read-only configuration.

References:
    - Boris, Proc. 4th Conf. Num. Sim. Plasmas (1970)
    - Landau & Lifshitz, The Classical Theory of Fields, §76
    - Ridgers et al., J. Plasma Phys. 83, 715830502 (2017)
"""

from abc import ABC, abstractmethod

import numpy as np
import numba

from qed_cascade.core.particle import Particle
from qed_cascade.core.units import ALPHA
from qed_cascade.fields.em_field import EMField
from qed_cascade.physics.qed_tables import quantum_parameter, gaunt_factor


@numba.njit(fastmath=True, cache=True)
def boris_push(momentum: np.ndarray, mass: float, charge: float,
               e_field: np.ndarray, b_field: np.ndarray, dt: float) -> np.ndarray:
    """
    Boris momentum update for a massive particle.

    Half electric kick, magnetic rotation, half electric kick, all in terms
    of u = p/m.

    Returns:
        New momentum [m c]
    """
    qdt2m = 0.5 * charge * dt / mass

    u_minus = np.empty(3, dtype=np.float64)
    for i in range(3):
        u_minus[i] = momentum[i] / mass + qdt2m * e_field[i]

    gamma_minus = np.sqrt(1.0 + u_minus[0]**2 + u_minus[1]**2 + u_minus[2]**2)

    t = np.empty(3, dtype=np.float64)
    for i in range(3):
        t[i] = qdt2m * b_field[i] / gamma_minus
    t2 = t[0]**2 + t[1]**2 + t[2]**2

    # u' = u- + u- × t
    u_prime = np.empty(3, dtype=np.float64)
    u_prime[0] = u_minus[0] + u_minus[1] * t[2] - u_minus[2] * t[1]
    u_prime[1] = u_minus[1] + u_minus[2] * t[0] - u_minus[0] * t[2]
    u_prime[2] = u_minus[2] + u_minus[0] * t[1] - u_minus[1] * t[0]

    # u+ = u- + u' × s,  s = 2t / (1 + t²)
    s_scale = 2.0 / (1.0 + t2)
    result = np.empty(3, dtype=np.float64)
    result[0] = u_minus[0] + s_scale * (u_prime[1] * t[2] - u_prime[2] * t[1])
    result[1] = u_minus[1] + s_scale * (u_prime[2] * t[0] - u_prime[0] * t[2])
    result[2] = u_minus[2] + s_scale * (u_prime[0] * t[1] - u_prime[1] * t[0])

    for i in range(3):
        result[i] = mass * (result[i] + qdt2m * e_field[i])
    return result


@numba.njit(fastmath=True, cache=True)
def landau_lifshitz_force(momentum: np.ndarray, mass: float, charge: float,
                          e_field: np.ndarray, b_field: np.ndarray) -> np.ndarray:
    """
    Landau-Lifshitz radiation-reaction force without field-derivative terms.

        F = (2/3)α q⁴/m² [E×B + B×(B×v) + (v·E)E - γ²((E + v×B)² - (v·E)²) v]

    Vanishes identically when E = B = 0.
    """
    p2 = momentum[0]**2 + momentum[1]**2 + momentum[2]**2
    gamma = np.sqrt(1.0 + p2 / mass**2)
    v = np.empty(3, dtype=np.float64)
    for i in range(3):
        v[i] = momentum[i] / (gamma * mass)

    ex, ey, ez = e_field[0], e_field[1], e_field[2]
    bx, by, bz = b_field[0], b_field[1], b_field[2]

    # E × B
    exb_x = ey * bz - ez * by
    exb_y = ez * bx - ex * bz
    exb_z = ex * by - ey * bx

    # B × (B × v) = B (B·v) - v B²
    b_dot_v = bx * v[0] + by * v[1] + bz * v[2]
    b2 = bx * bx + by * by + bz * bz

    # Lorentz force per unit charge: E + v × B
    lx = ex + v[1] * bz - v[2] * by
    ly = ey + v[2] * bx - v[0] * bz
    lz = ez + v[0] * by - v[1] * bx
    v_dot_e = v[0] * ex + v[1] * ey + v[2] * ez
    friction = gamma**2 * (lx * lx + ly * ly + lz * lz - v_dot_e * v_dot_e)

    coefficient = (2.0 / 3.0) * ALPHA * charge**4 / mass**2

    force = np.empty(3, dtype=np.float64)
    force[0] = coefficient * (exb_x + bx * b_dot_v - v[0] * b2 + v_dot_e * ex - friction * v[0])
    force[1] = coefficient * (exb_y + by * b_dot_v - v[1] * b2 + v_dot_e * ey - friction * v[1])
    force[2] = coefficient * (exb_z + bz * b_dot_v - v[2] * b2 + v_dot_e * ez - friction * v[2])
    return force


class ParticlePusher(ABC):
    """Base class: advance one particle by one time step."""

    def __init__(self, field: EMField, time_step: float):
        """
        Parameters:
            field: Background field shared by all events
            time_step: Global time step [normalized time]
        """
        if not time_step > 0.0:
            raise ValueError(f"Time step must be positive, got {time_step}")
        self.field = field
        self.time_step = float(time_step)

    def push(self, particle: Particle):
        """Advance position, momentum and time by one step."""
        dt = self.time_step
        if particle.mass == 0.0:
            # Massless: straight line at c
            position = particle.position + particle.direction * dt
            particle.update_track(position, particle.momentum.copy())
        else:
            e_field, b_field = self.field.evaluate(particle.position, particle.time)
            momentum = self._advance_momentum(particle, e_field, b_field)
            gamma = np.sqrt(1.0 + np.dot(momentum, momentum) / particle.mass**2)
            position = particle.position + momentum / (gamma * particle.mass) * dt
            particle.update_track(position, momentum)
        particle.update_time(dt)

    @abstractmethod
    def _advance_momentum(self, particle: Particle, e_field: np.ndarray,
                          b_field: np.ndarray) -> np.ndarray:
        """New momentum after one step."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dt={self.time_step:.4g})"


class LorentzPusher(ParticlePusher):
    """Bare Lorentz force, no radiation reaction."""

    def _advance_momentum(self, particle, e_field, b_field):
        return boris_push(particle.momentum, particle.mass, particle.charge,
                          e_field, b_field, self.time_step)


class LandauPusher(ParticlePusher):
    """Lorentz force plus classical Landau-Lifshitz radiation reaction."""

    def _advance_momentum(self, particle, e_field, b_field):
        momentum = boris_push(particle.momentum, particle.mass, particle.charge,
                              e_field, b_field, self.time_step)
        if particle.charge == 0.0:
            return momentum
        force = landau_lifshitz_force(particle.momentum, particle.mass, particle.charge,
                                      e_field, b_field)
        return momentum + self.reaction_scale(particle, e_field, b_field) * force * self.time_step

    def reaction_scale(self, particle, e_field, b_field) -> float:
        return 1.0


class ModifiedLandauPusher(LandauPusher):
    """Radiation reaction reduced by the quantum Gaunt factor g(χ)."""

    def reaction_scale(self, particle, e_field, b_field) -> float:
        chi = quantum_parameter(particle.momentum, particle.energy, e_field, b_field)
        return gaunt_factor(chi)


# Closed set of integrators, resolved once at setup
PUSHER_TYPES = {
    'lorentz': LorentzPusher,
    'landau': LandauPusher,
    'modified_landau': ModifiedLandauPusher,
}


def create_pusher(pusher_type: str, field: EMField, time_step: float) -> ParticlePusher:
    """
    Build a pusher from its name.

    Parameters:
        pusher_type: 'lorentz', 'landau' or 'modified_landau' (case-insensitive)
        field: Background field
        time_step: Global time step [normalized time]

    Raises:
        ValueError: Unknown pusher type or non-positive time step
    """
    key = pusher_type.lower().replace('-', '_').replace(' ', '_')
    if key not in PUSHER_TYPES:
        raise ValueError(f"Unknown pusher type '{pusher_type}'. "
                         f"Available: {list(PUSHER_TYPES.keys())}")
    return PUSHER_TYPES[key](field, time_step)
