"""
Particle state and the per-event particle container.

Particles are plain Python objects holding NumPy ThreeVectors; the
ParticleList owns every particle created during one event (primaries and
secondaries) and carries the event's random generator.
"""

import numpy as np
from typing import Optional, List, Iterator

from qed_cascade.core.vector import as_three_vector


# Row layout for exported phase space: px, py, pz, x, y, z, weight
PHASE_SPACE_COLUMNS = ('px', 'py', 'pz', 'x', 'y', 'z', 'weight')

# Structured layout for full particle dumps
PARTICLE_DTYPE = np.dtype([
    ('position', np.float64, 3),      # normalized length
    ('momentum', np.float64, 3),      # normalized momentum (m c)
    ('energy', np.float64),           # total energy (m c^2)
    ('time', np.float64),             # normalized time
    ('mass', np.float64),             # electron masses
    ('charge', np.float64),           # elementary charges
    ('weight', np.float64),           # statistical weight
    ('radiated_energy', np.float64),  # continuous radiation loss (m c^2)
    ('alive', np.bool_),              # still taking part in the event?
])


def draw_optical_depth(rng: np.random.Generator) -> float:
    """Draw a strictly positive optical depth from a unit-mean exponential."""
    tau = rng.exponential(1.0)
    while tau <= 0.0:
        tau = rng.exponential(1.0)
    return tau


class Particle:
    """
    Massive charged (or neutral) particle.

    Mass is in electron masses and charge in elementary charges, so an
    electron has mass 1 and charge -1.
    """

    name = 'particle'

    def __init__(self, mass: float, charge: float, position, momentum,
                 time: float = 0.0, tracking: bool = False, weight: float = 1.0,
                 rng: Optional[np.random.Generator] = None):
        """
        Initialize a particle.

        Parameters:
            mass: Rest mass [electron masses]
            charge: Charge [elementary charges]
            position: (x, y, z) position [normalized length]
            momentum: (px, py, pz) momentum [m c]
            time: Global time of the particle [normalized time]
            tracking: Record full position/momentum/time/gamma history
            weight: Statistical weight
            rng: Random generator used for the initial optical depth

        radiated_energy accumulates the continuous radiation loss booked by
        ContinuousEmission [m c^2].
        """
        self.mass = float(mass)
        self.charge = float(charge)
        self.time = float(time)
        self.position = as_three_vector(position)
        self.momentum = as_three_vector(momentum)
        self.tracking = tracking
        self.weight = float(weight)
        self.alive = True
        self.radiated_energy = 0.0

        self.pos_history: List[np.ndarray] = []
        self.mom_history: List[np.ndarray] = []
        self.time_history: List[float] = []
        self.gamma_history: List[float] = []

        self.optical_depth = 0.0
        self.init_optical_depth(rng if rng is not None else np.random.default_rng())

        if self.tracking:
            self._record()

    # ------------------------------------------------------------------
    # State updates
    # ------------------------------------------------------------------

    def update_track(self, position: np.ndarray, momentum: np.ndarray):
        """Set the new position and momentum, recording them if tracking."""
        self.position = position
        self.momentum = momentum
        if self.tracking:
            self._record()

    def update_time(self, dt: float):
        self.time += dt
        if self.tracking:
            self.time_history[-1] = self.time

    def update_optical_depth(self, dtau: float):
        self.optical_depth -= dtau

    def init_optical_depth(self, rng: np.random.Generator):
        """Redraw the optical depth (after creation or after an interaction)."""
        self.optical_depth = draw_optical_depth(rng)

    def _record(self):
        self.pos_history.append(self.position.copy())
        self.mom_history.append(self.momentum.copy())
        self.time_history.append(self.time)
        self.gamma_history.append(self.gamma)

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def momentum_magnitude(self) -> float:
        return float(np.sqrt(np.dot(self.momentum, self.momentum)))

    @property
    def gamma(self) -> float:
        """Lorentz factor."""
        p2 = np.dot(self.momentum, self.momentum)
        return float(np.sqrt(1.0 + p2 / self.mass**2))

    @property
    def beta(self) -> float:
        """Speed in units of c."""
        return self.momentum_magnitude / (self.gamma * self.mass)

    @property
    def velocity(self) -> np.ndarray:
        return self.momentum / (self.gamma * self.mass)

    @property
    def direction(self) -> np.ndarray:
        p = self.momentum_magnitude
        if p == 0.0:
            return np.zeros(3)
        return self.momentum / p

    @property
    def energy(self) -> float:
        """Total energy [m c^2]."""
        return self.gamma * self.mass

    @property
    def kinetic_energy(self) -> float:
        """Kinetic energy [m c^2], written to avoid cancellation at low momentum."""
        p2 = np.dot(self.momentum, self.momentum)
        return float(p2 / (self.mass * (1.0 + self.gamma)))

    def phase_space(self) -> np.ndarray:
        """Row [px, py, pz, x, y, z, weight]."""
        return np.concatenate([self.momentum, self.position, [self.weight]])

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(E={self.energy:.4g}, t={self.time:.4g}, "
                f"tau={self.optical_depth:.3f}, alive={self.alive})")


class Electron(Particle):
    name = 'electron'

    def __init__(self, position, momentum, time: float = 0.0, tracking: bool = False,
                 weight: float = 1.0, rng: Optional[np.random.Generator] = None):
        super().__init__(1.0, -1.0, position, momentum, time, tracking, weight, rng)


class Positron(Particle):
    name = 'positron'

    def __init__(self, position, momentum, time: float = 0.0, tracking: bool = False,
                 weight: float = 1.0, rng: Optional[np.random.Generator] = None):
        super().__init__(1.0, 1.0, position, momentum, time, tracking, weight, rng)


class Photon(Particle):
    """
    Massless neutral particle.

    Energy equals momentum magnitude, beta is 1 and gamma is defined as the
    momentum magnitude.
    """

    name = 'photon'

    def __init__(self, position, momentum, time: float = 0.0, tracking: bool = False,
                 weight: float = 1.0, rng: Optional[np.random.Generator] = None):
        super().__init__(0.0, 0.0, position, momentum, time, tracking, weight, rng)

    @classmethod
    def from_energy(cls, energy: float, position, direction, time: float = 0.0,
                    tracking: bool = False, weight: float = 1.0,
                    rng: Optional[np.random.Generator] = None) -> 'Photon':
        """Create a photon of given energy travelling along direction."""
        direction = as_three_vector(direction)
        direction = direction / np.linalg.norm(direction)
        return cls(position, energy * direction, time, tracking, weight, rng)

    @property
    def gamma(self) -> float:
        return self.momentum_magnitude

    @property
    def beta(self) -> float:
        return 1.0

    @property
    def velocity(self) -> np.ndarray:
        return self.direction

    @property
    def energy(self) -> float:
        return self.momentum_magnitude

    @property
    def kinetic_energy(self) -> float:
        return self.momentum_magnitude


# Species lookup used by the source generator and configuration
PARTICLE_TYPES = {
    'electron': Electron,
    'positron': Positron,
    'photon': Photon,
}


def particle_class(particle_type: str):
    """Resolve a species name to its particle class."""
    key = particle_type.lower()
    if key not in PARTICLE_TYPES:
        raise ValueError(f"Unknown particle type '{particle_type}'. "
                         f"Available: {list(PARTICLE_TYPES.keys())}")
    return PARTICLE_TYPES[key]


class ParticleList:
    """
    Ordered container owning every particle of one event.

    The list may grow while it is being traversed by index; callers that
    want newly appended particles to be visited must re-read len() on every
    iteration instead of iterating over a snapshot.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        """
        Initialize an empty event.

        Parameters:
            rng: Random generator owned by this event (fresh one if None)
        """
        self.rng = rng if rng is not None else np.random.default_rng()
        self._particles: List[Particle] = []

    def append(self, particle: Particle):
        """Take ownership of a particle."""
        self._particles.append(particle)

    def release(self):
        """Drop every particle held by this event."""
        self._particles.clear()

    def __len__(self) -> int:
        return len(self._particles)

    def __getitem__(self, index: int) -> Particle:
        return self._particles[index]

    def __iter__(self) -> Iterator[Particle]:
        return iter(list(self._particles))

    @property
    def n_alive(self) -> int:
        return sum(1 for p in self._particles if p.alive)

    def species(self, name: str, alive_only: bool = True) -> List[Particle]:
        """Particles of one species, in insertion order."""
        return [p for p in self._particles
                if p.name == name and (p.alive or not alive_only)]

    def phase_space(self, name: str) -> np.ndarray:
        """(n, 7) array of [px, py, pz, x, y, z, weight] for living particles."""
        rows = [p.phase_space() for p in self.species(name)]
        if not rows:
            return np.zeros((0, len(PHASE_SPACE_COLUMNS)))
        return np.vstack(rows)

    def to_structured_array(self) -> np.ndarray:
        """Convert every particle (alive or not) to PARTICLE_DTYPE records."""
        records = np.zeros(len(self._particles), dtype=PARTICLE_DTYPE)
        for i, p in enumerate(self._particles):
            records['position'][i] = p.position
            records['momentum'][i] = p.momentum
            records['energy'][i] = p.energy
            records['time'][i] = p.time
            records['mass'][i] = p.mass
            records['charge'][i] = p.charge
            records['weight'][i] = p.weight
            records['radiated_energy'][i] = p.radiated_energy
            records['alive'][i] = p.alive
        return records

    def get_statistics(self) -> dict:
        """Get statistics about the event."""
        counts = {name: len(self.species(name)) for name in PARTICLE_TYPES}
        energies = [p.energy for p in self._particles if p.alive]
        return {
            'n_total': len(self._particles),
            'n_alive': self.n_alive,
            **{f'n_{name}': n for name, n in counts.items()},
            'total_energy': float(np.sum(energies)) if energies else 0.0,
        }

    def __repr__(self) -> str:
        stats = self.get_statistics()
        return (f"ParticleList(n={stats['n_total']}, alive={stats['n_alive']}, "
                f"e-={stats['n_electron']}, e+={stats['n_positron']}, "
                f"gamma={stats['n_photon']})")
