"""
Monte Carlo interaction processes.

Stochastic processes use the optical-depth method: every particle carries
an exponentially distributed optical depth τ which is reduced by W·dt each
step, W being the local instantaneous rate. When τ would drop to zero the
interaction fires, secondaries are sampled from the differential rate and
appended to the event, and τ is redrawn.

Processes:
    - StochasticEmission:     photon emission with recoil (Lorentz pusher)
    - NonLinearCompton:       cascade photon emission, every photon kept
    - NonLinearBreitWheeler:  photon -> electron + positron
    - ContinuousEmission:     radiated-energy bookkeeping and sampled photon
                              spectrum for the Landau pushers
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from qed_cascade.core.particle import Particle, ParticleList, Photon, Electron, Positron
from qed_cascade.core.units import ALPHA
from qed_cascade.fields.em_field import EMField
from qed_cascade.physics.qed_tables import (QEDTables, get_tables, quantum_parameter,
                                            gaunt_factor)

# Pair creation needs at least two electron rest energies
PAIR_THRESHOLD = 2.0


class Process(ABC):
    """Base class: interact(particle, particles) may append new particles."""

    def __init__(self, field: EMField, time_step: float,
                 tables: Optional[QEDTables] = None):
        """
        Parameters:
            field: Background field shared by all events
            time_step: Global time step [normalized time]
            tables: Rate tables (shared per-process tables if None)
        """
        if not time_step > 0.0:
            raise ValueError(f"Time step must be positive, got {time_step}")
        self.field = field
        self.time_step = float(time_step)
        self.tables = tables if tables is not None else get_tables()

    @abstractmethod
    def interact(self, particle: Particle, particles: ParticleList):
        """Offer one particle to the process; may append to particles."""

    def local_chi(self, particle: Particle) -> float:
        """Quantum parameter of a particle in the local field."""
        e_field, b_field = self.field.evaluate(particle.position, particle.time)
        return quantum_parameter(particle.momentum, particle.energy, e_field, b_field)

    def consume_optical_depth(self, particle: Particle, rate: float) -> bool:
        """
        Reduce τ by rate·dt.

        Returns:
            True if τ crossed zero (τ is left untouched, caller redraws it)
        """
        if rate <= 0.0:
            return False
        dtau = rate * self.time_step
        if particle.optical_depth - dtau > 0.0:
            particle.update_optical_depth(dtau)
            return False
        return True

    def __getstate__(self):
        # Tables are rebuilt once per worker instead of being pickled
        state = self.__dict__.copy()
        state['tables'] = None
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        if self.tables is None:
            self.tables = get_tables()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dt={self.time_step:.4g})"


def _check_sample_fraction(sample_fraction: float) -> float:
    if not 0.0 <= sample_fraction <= 1.0:
        raise ValueError(f"Sampling fraction must be between 0 and 1, got {sample_fraction}")
    return float(sample_fraction)


class StochasticEmission(Process):
    """
    Discrete photon emission by electrons and positrons.

    On each emission the lepton loses the photon energy (its direction is
    kept). A photon secondary is created for a `sample_fraction` of the
    emissions, with its weight scaled up accordingly.
    """

    def __init__(self, field: EMField, time_step: float, sample_fraction: float = 1.0,
                 produce_photons: bool = False, min_energy: float = 0.0,
                 tracking: bool = False, tables: Optional[QEDTables] = None):
        """
        Parameters:
            field: Background field
            time_step: Global time step [normalized time]
            sample_fraction: Fraction of emissions that create a photon (0 to 1)
            produce_photons: Append photon secondaries to the event
            min_energy: Photons at or below this energy are not created [m c^2]
            tracking: Record history of created photons
            tables: Rate tables
        """
        super().__init__(field, time_step, tables)
        self.sample_fraction = _check_sample_fraction(sample_fraction)
        self.produce_photons = produce_photons
        self.min_energy = float(min_energy)
        self.tracking = tracking

    def interact(self, particle, particles):
        if not particle.alive or particle.charge == 0.0:
            return

        chi = self.local_chi(particle)
        rate = self.tables.emission_rate(chi, particle.gamma)
        if not self.consume_optical_depth(particle, rate):
            return

        rng = particles.rng
        u = self.tables.sample_emission_fraction(chi, rng.random())
        self.emit(particle, particles, u)
        particle.init_optical_depth(rng)

    def emit(self, particle: Particle, particles: ParticleList, u: float):
        """
        Emit a photon carrying fraction u of the lepton energy.

        The lepton keeps its direction and loses the photon energy; it is
        never brought below rest.
        """
        energy = particle.energy
        photon_energy = min(u * energy, energy - particle.mass)
        if photon_energy <= 0.0:
            return

        direction = particle.direction
        new_energy = energy - photon_energy
        p_new = np.sqrt(max(new_energy**2 - particle.mass**2, 0.0))
        particle.momentum = direction * p_new

        if self._keep_photon(photon_energy, particles.rng):
            photon = Photon.from_energy(photon_energy, particle.position.copy(), direction,
                                        time=particle.time, tracking=self.tracking,
                                        weight=particle.weight / self.sample_fraction,
                                        rng=particles.rng)
            particles.append(photon)

    def _keep_photon(self, photon_energy: float, rng: np.random.Generator) -> bool:
        if not self.produce_photons or self.sample_fraction == 0.0:
            return False
        if photon_energy <= self.min_energy:
            return False
        return self.sample_fraction >= 1.0 or rng.random() < self.sample_fraction


class NonLinearCompton(StochasticEmission):
    """
    Nonlinear Compton scattering as a cascade source.

    Every emitted photon is added to the event; `tracking` is passed on to
    the photons.
    """

    def __init__(self, field: EMField, time_step: float, tracking: bool = False,
                 tables: Optional[QEDTables] = None):
        super().__init__(field, time_step, sample_fraction=1.0, produce_photons=True,
                         min_energy=0.0, tracking=tracking, tables=tables)


class NonLinearBreitWheeler(Process):
    """
    Pair production by photons in the strong field.

    The parent photon is marked dead and an electron and a positron are
    appended whose momenta sum to the photon momentum.
    """

    def __init__(self, field: EMField, time_step: float, tracking: bool = False,
                 tables: Optional[QEDTables] = None):
        super().__init__(field, time_step, tables)
        self.tracking = tracking

    def interact(self, particle, particles):
        if not particle.alive or particle.mass != 0.0 or particle.charge != 0.0:
            return

        omega = particle.energy
        if omega <= PAIR_THRESHOLD:
            return

        chi = self.local_chi(particle)
        rate = self.tables.pair_rate(chi, omega)
        if not self.consume_optical_depth(particle, rate):
            return

        rng = particles.rng
        u = self.tables.sample_pair_fraction(chi, rng.random())
        self.create_pair(particle, particles, u)

    def create_pair(self, photon: Particle, particles: ParticleList, u: float):
        """Split the photon momentum k into u·k (electron) and k - u·k (positron)."""
        k = photon.momentum
        electron_momentum = u * k
        positron_momentum = k - electron_momentum

        for cls, momentum in ((Electron, electron_momentum), (Positron, positron_momentum)):
            lepton = cls(photon.position.copy(), momentum, time=photon.time,
                         tracking=self.tracking, weight=photon.weight, rng=particles.rng)
            particles.append(lepton)

        photon.alive = False


class ContinuousEmission(Process):
    """
    Continuous radiation for the Landau-type pushers.

    The pusher already applies the energy loss; this process accounts the
    radiated energy on each lepton and, for a `sample_fraction` of the
    leptons each step, appends one weighted photon drawn from the classical
    (or quantum-corrected) spectrum. No recoil is applied.
    """

    def __init__(self, field: EMField, time_step: float, classical: bool = True,
                 sample_fraction: float = 1.0, produce_photons: bool = False,
                 min_energy: float = 0.0, tracking: bool = False,
                 tables: Optional[QEDTables] = None):
        """
        Parameters:
            field: Background field
            time_step: Global time step [normalized time]
            classical: Classical spectrum and power (else quantum-corrected)
            sample_fraction: Probability per step of sampling a photon (0 to 1)
            produce_photons: Append sampled photons to the event
            min_energy: Photons at or below this energy are not created [m c^2]
            tracking: Record history of created photons
            tables: Rate tables
        """
        super().__init__(field, time_step, tables)
        self.classical = classical
        self.sample_fraction = _check_sample_fraction(sample_fraction)
        self.produce_photons = produce_photons
        self.min_energy = float(min_energy)
        self.tracking = tracking

    def radiated_power(self, chi: float) -> float:
        """P = (2/3)αχ², times g(χ) in the quantum-corrected case."""
        power = (2.0 / 3.0) * ALPHA * chi**2
        if not self.classical:
            power *= gaunt_factor(chi)
        return power

    def interact(self, particle, particles):
        if not particle.alive or particle.charge == 0.0:
            return

        chi = self.local_chi(particle)
        if chi <= 0.0:
            return
        particle.radiated_energy += self.radiated_power(chi) * self.time_step

        if not self.produce_photons or self.sample_fraction == 0.0:
            return

        if self.classical:
            rate = self.tables.classical_emission_rate(chi, particle.gamma)
        else:
            rate = self.tables.emission_rate(chi, particle.gamma)
        expected = rate * self.time_step
        if expected <= 0.0:
            return

        rng = particles.rng
        if rng.random() >= self.sample_fraction:
            return

        if self.classical:
            u = self.tables.sample_classical_fraction(chi, rng.random())
        else:
            u = self.tables.sample_emission_fraction(chi, rng.random())
        photon_energy = u * particle.energy
        if u >= 1.0 or photon_energy <= self.min_energy:
            return

        photon = Photon(particle.position.copy(), photon_energy * particle.direction,
                        time=particle.time, tracking=self.tracking,
                        weight=particle.weight * expected / self.sample_fraction,
                        rng=rng)
        particles.append(photon)


# Closed set of processes, resolved once at setup
PROCESS_TYPES = {
    'nonlinear_compton': NonLinearCompton,
    'nonlinear_breit_wheeler': NonLinearBreitWheeler,
    'stochastic_emission': StochasticEmission,
    'continuous_emission': ContinuousEmission,
}


def create_process(process_type: str, field: EMField, time_step: float, **params) -> Process:
    """
    Build a process from its name.

    Raises:
        ValueError: Unknown process type
    """
    key = process_type.lower().replace('-', '_').replace(' ', '_')
    if key not in PROCESS_TYPES:
        raise ValueError(f"Unknown process type '{process_type}'. "
                         f"Available: {list(PROCESS_TYPES.keys())}")
    return PROCESS_TYPES[key](field, time_step, **params)
