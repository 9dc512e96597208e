"""
Primary particle sampling.

Draws the initial ParticleList of one event from configured energy,
transverse, temporal and angular distributions.
"""

import numpy as np
from typing import Tuple

from qed_cascade.core.particle import ParticleList, Particle, particle_class, Photon
from qed_cascade.core.vector import as_three_vector, orthonormal_basis, rotate_direction


class SourceGenerator:
    """
    Sampler of primary particles.

    Sampling is stateless apart from the configuration; all randomness comes
    from the generator passed in, so each event can own its stream.

    Energy distributions (energies are kinetic, normalized):
        'mono':           energy_param1
        'uniform':        uniform in [energy_param1, energy_param2]
        'normal':         mean energy_param1, sigma energy_param2 (truncated at 0)
        'bremsstrahlung': dN/dE ∝ 1/E in [energy_param1, energy_param2]

    Example:
        source = SourceGenerator('electron', 'mono', 2000.0, radius=10.0)
        event = source.generate_list(np.random.default_rng(1))
    """

    DISTRIBUTIONS = ('mono', 'uniform', 'normal', 'bremsstrahlung')

    def __init__(self, particle_type: str, distribution: str, energy_param1: float,
                 energy_param2: float = 0.0, radius: float = 0.0, duration: float = 0.0,
                 divergence: float = 0.0,
                 position: Tuple[float, float, float] = (0.0, 0.0, 0.0),
                 direction: Tuple[float, float, float] = (0.0, 0.0, 1.0),
                 n_primaries: int = 1, tracking: bool = False):
        """
        Initialize the generator.

        Parameters:
            particle_type: 'electron', 'positron' or 'photon'
            distribution: Energy distribution name (see DISTRIBUTIONS)
            energy_param1: First energy parameter [m c^2]
            energy_param2: Second energy parameter [m c^2]
            radius: Transverse source radius [normalized length]
            duration: Birth time window [normalized time]
            divergence: Cone half-angle [radians]
            position: Reference starting position
            direction: Reference direction (normalized internally)
            n_primaries: Primaries per event
            tracking: Record history of the primaries
        """
        self.particle_class = particle_class(particle_type)
        self.particle_type = self.particle_class.name

        self.distribution = distribution.lower()
        if self.distribution not in self.DISTRIBUTIONS:
            raise ValueError(f"Unknown energy distribution '{distribution}'. "
                             f"Available: {list(self.DISTRIBUTIONS)}")

        self.energy_param1 = float(energy_param1)
        self.energy_param2 = float(energy_param2)
        self._check_energy_parameters()

        if radius < 0.0 or duration < 0.0 or divergence < 0.0:
            raise ValueError("Source radius, duration and divergence must be non-negative")
        if n_primaries < 1:
            raise ValueError(f"At least one primary per event is required, got {n_primaries}")

        self.radius = float(radius)
        self.duration = float(duration)
        self.divergence = float(divergence)
        self.position = as_three_vector(position)

        dir_array = as_three_vector(direction)
        norm = np.linalg.norm(dir_array)
        if norm == 0.0:
            raise ValueError("Source direction must be non-zero")
        self.direction = dir_array / norm
        self._e1, self._e2 = orthonormal_basis(self.direction)

        self.n_primaries = int(n_primaries)
        self.tracking = tracking

    def _check_energy_parameters(self):
        p1, p2 = self.energy_param1, self.energy_param2
        if self.distribution == 'mono' and p1 <= 0.0:
            raise ValueError("Mono-energetic source needs a positive energy")
        if self.distribution == 'uniform' and not (0.0 <= p1 <= p2 and p2 > 0.0):
            raise ValueError("Uniform source needs 0 <= energy_param1 <= energy_param2 "
                             "and energy_param2 > 0")
        if self.distribution == 'normal' and (p1 <= 0.0 or p2 < 0.0):
            raise ValueError("Normal source needs a positive mean and non-negative sigma")
        if self.distribution == 'bremsstrahlung' and not 0.0 < p1 < p2:
            raise ValueError("Bremsstrahlung source needs 0 < energy_param1 < energy_param2")

    @property
    def mass(self) -> float:
        return 0.0 if self.particle_class is Photon else 1.0

    def sample_energy(self, rng: np.random.Generator) -> float:
        """Kinetic energy of one primary (strictly positive)."""
        p1, p2 = self.energy_param1, self.energy_param2
        if self.distribution == 'mono':
            return p1
        if self.distribution == 'uniform':
            energy = rng.uniform(p1, p2)
            while energy <= 0.0:
                energy = rng.uniform(p1, p2)
            return energy
        if self.distribution == 'normal':
            energy = rng.normal(p1, p2)
            while energy <= 0.0:
                energy = rng.normal(p1, p2)
            return energy
        # 1/E spectrum: log-uniform
        return float(np.exp(rng.uniform(np.log(p1), np.log(p2))))

    def sample_direction(self, rng: np.random.Generator) -> np.ndarray:
        """Direction uniform in solid angle within the divergence cone."""
        if self.divergence == 0.0:
            return self.direction.copy()
        cos_theta = 1.0 - rng.random() * (1.0 - np.cos(self.divergence))
        theta = np.arccos(cos_theta)
        phi = rng.uniform(0.0, 2.0 * np.pi)
        return rotate_direction(self.direction, theta, phi)

    def sample_position(self, rng: np.random.Generator) -> np.ndarray:
        """Uniform point in the disc of `radius` normal to the reference direction."""
        if self.radius == 0.0:
            return self.position.copy()
        r = self.radius * np.sqrt(rng.random())
        phi = rng.uniform(0.0, 2.0 * np.pi)
        return self.position + r * (np.cos(phi) * self._e1 + np.sin(phi) * self._e2)

    def sample_particle(self, rng: np.random.Generator) -> Particle:
        """
        Draw one primary.

        A birth delay d in [0, duration) is represented at t=0 by moving the
        particle back by beta*d along its direction.
        """
        kinetic = self.sample_energy(rng)
        direction = self.sample_direction(rng)
        position = self.sample_position(rng)

        mass = self.mass
        momentum = np.sqrt(kinetic**2 + 2.0 * kinetic * mass)
        beta = momentum / (kinetic + mass)

        if self.duration > 0.0:
            delay = self.duration * rng.random()
            position = position - beta * delay * direction

        return self.particle_class(position, momentum * direction, time=0.0,
                                   tracking=self.tracking, rng=rng)

    def generate_list(self, rng: np.random.Generator) -> ParticleList:
        """Sample the initial ParticleList of one event (owning rng)."""
        particles = ParticleList(rng)
        for _ in range(self.n_primaries):
            particles.append(self.sample_particle(rng))
        return particles

    @staticmethod
    def free_sources(particles: ParticleList):
        """Release an event's particles once its output has been collected."""
        particles.release()

    def __repr__(self) -> str:
        return (f"SourceGenerator({self.particle_type}, {self.distribution}, "
                f"E=({self.energy_param1:.4g}, {self.energy_param2:.4g}), "
                f"n={self.n_primaries})")
