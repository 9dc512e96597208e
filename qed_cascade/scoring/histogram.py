"""
Particle histograms sampled at fixed simulation times.

A histogram selects one species and one kinetic attribute (energy or a
position component) and is filled once per event when the event time
reaches its sample time. Histograms from independent events or workers are
combined with merge(), which is commutative and associative.
"""

import copy

import numpy as np

from qed_cascade.core.particle import Particle, ParticleList


class Histogram:
    """
    Fixed-range histogram of one particle attribute.

    Usage:
        hist = Histogram('photon_spectrum', 'photon', 'energy', time=0.0,
                         min_bin=0.0, max_bin=1000.0, n_bins=100)
        hist.fill(event)
        centres, values = hist.bin_centres, hist.normalised()
    """

    DATA_TYPES = ('energy', 'x', 'y', 'z')

    def __init__(self, name: str, particle: str, data_type: str, time: float,
                 min_bin: float, max_bin: float, n_bins: int):
        """
        Initialize an empty histogram.

        Parameters:
            name: Histogram name (used for output)
            particle: Species name to select ('electron', 'positron', 'photon')
            data_type: 'energy', 'x', 'y' or 'z'
            time: Simulation time at which the histogram is filled [normalized]
            min_bin: Lower edge of the range
            max_bin: Upper edge of the range
            n_bins: Number of bins

        Raises:
            ValueError: Unknown attribute or degenerate binning
        """
        self.data_type = data_type.lower()
        if self.data_type not in self.DATA_TYPES:
            raise ValueError(f"Unknown histogram data type '{data_type}'. "
                             f"Available: {list(self.DATA_TYPES)}")
        if int(n_bins) < 1:
            raise ValueError(f"Histogram '{name}' needs at least one bin")
        if not max_bin > min_bin:
            raise ValueError(f"Histogram '{name}' has an empty range [{min_bin}, {max_bin}]")

        self.name = name
        self.particle = particle.lower()
        self.time = float(time)
        self.n_bins = int(n_bins)
        self.bin_edges = np.linspace(float(min_bin), float(max_bin), self.n_bins + 1)

        self.counts = np.zeros(self.n_bins)
        self.entries = 0

    @property
    def bin_centres(self) -> np.ndarray:
        return 0.5 * (self.bin_edges[:-1] + self.bin_edges[1:])

    def value_of(self, particle: Particle) -> float:
        if self.data_type == 'energy':
            return particle.energy
        return float(particle.position['xyz'.index(self.data_type)])

    def append_particle(self, particle: Particle):
        """
        Count one particle.

        Every appended particle counts as an entry; only values inside the
        range are binned.
        """
        self.entries += 1
        value = self.value_of(particle)
        if value < self.bin_edges[0] or value > self.bin_edges[-1]:
            return
        index = int(np.searchsorted(self.bin_edges, value, side='right')) - 1
        index = min(index, self.n_bins - 1)
        self.counts[index] += particle.weight

    def fill(self, particles: ParticleList):
        """Append every living particle of the selected species."""
        for particle in particles.species(self.particle):
            self.append_particle(particle)

    def is_compatible(self, other: 'Histogram') -> bool:
        return (self.n_bins == other.n_bins
                and np.array_equal(self.bin_edges, other.bin_edges))

    def merge(self, other: 'Histogram') -> bool:
        """
        Add another histogram's entries and counts into this one.

        Incompatible histograms are reported and ignored.

        Returns:
            True if merged
        """
        if not self.is_compatible(other):
            print(f"Error: Trying to merge histograms \"{self.name}\" and \"{other.name}\". "
                  f"These histograms are incompatible.")
            return False
        self.entries += other.entries
        self.counts += other.counts
        return True

    def normalised(self) -> np.ndarray:
        """Counts per entry (all zeros while empty)."""
        if self.entries == 0:
            return np.zeros(self.n_bins)
        return self.counts / self.entries

    def empty_copy(self) -> 'Histogram':
        """Same binning and selection, no entries."""
        fresh = copy.deepcopy(self)
        fresh.reset()
        return fresh

    def reset(self):
        self.counts = np.zeros(self.n_bins)
        self.entries = 0

    def __repr__(self) -> str:
        return (f"Histogram('{self.name}', {self.particle}:{self.data_type}, "
                f"t={self.time:.4g}, bins={self.n_bins}, entries={self.entries})")
