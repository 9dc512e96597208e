"""
Histogram Test Suite

Tests binning, merging and normalisation.
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from qed_cascade.core.particle import Electron, Photon, ParticleList
from qed_cascade.scoring.histogram import Histogram


def energy_histogram(name='spectrum', n_bins=10):
    return Histogram(name, 'photon', 'energy', time=0.0, min_bin=0.0, max_bin=10.0,
                     n_bins=n_bins)


def photons(energies, weight=1.0):
    particles = ParticleList(np.random.default_rng(0))
    for energy in energies:
        particles.append(Photon((0, 0, 0), (energy, 0.0, 0.0), weight=weight))
    return particles


def test_append_and_range():
    hist = energy_histogram()
    for particle in photons([0.5, 9.99, 10.0, 12.0, 3.2], weight=0.5):
        hist.append_particle(particle)

    assert hist.entries == 5
    assert hist.counts[0] == 0.5
    assert hist.counts[3] == 0.5
    # The upper edge belongs to the last bin; values beyond it are only entries
    assert hist.counts[9] == 1.0
    assert hist.counts.sum() == pytest.approx(2.0)


def test_fill_selects_species():
    particles = photons([1.5, 2.5])
    particles.append(Electron((0, 0, 0), (1.0, 0.0, 0.0)))
    dead = Photon((0, 0, 0), (4.5, 0.0, 0.0))
    dead.alive = False
    particles.append(dead)

    hist = energy_histogram()
    hist.fill(particles)

    assert hist.entries == 2
    assert hist.counts[1] == 1.0 and hist.counts[2] == 1.0
    assert hist.counts[4] == 0.0


def test_position_histogram():
    hist = Histogram('profile', 'electron', 'y', time=0.0, min_bin=-1.0, max_bin=1.0,
                     n_bins=4)
    particles = ParticleList(np.random.default_rng(0))
    particles.append(Electron((0.0, -0.75, 0.0), (0.0, 0.0, 1.0)))
    particles.append(Electron((0.0, 0.25, 0.0), (0.0, 0.0, 1.0)))
    hist.fill(particles)
    np.testing.assert_array_equal(hist.counts, [1.0, 0.0, 1.0, 0.0])
    np.testing.assert_allclose(hist.bin_centres, [-0.75, -0.25, 0.25, 0.75])


def test_merge_adds_counts_and_entries():
    first, second = energy_histogram('a'), energy_histogram('b')
    first.fill(photons([1.0, 1.5, 7.0]))
    second.fill(photons([7.5, 20.0]))

    merged_ab = first.empty_copy()
    assert merged_ab.merge(first) and merged_ab.merge(second)
    merged_ba = first.empty_copy()
    assert merged_ba.merge(second) and merged_ba.merge(first)

    assert merged_ab.entries == 5
    assert merged_ab.counts[1] == 2.0
    assert merged_ab.counts[7] == 2.0
    np.testing.assert_array_equal(merged_ab.counts, merged_ba.counts)


def test_incompatible_merge_is_reported(capsys):
    hist = energy_histogram('coarse', n_bins=10)
    hist.fill(photons([1.0]))
    other = energy_histogram('fine', n_bins=20)
    other.fill(photons([2.0, 3.0]))

    assert hist.merge(other) is False

    captured = capsys.readouterr()
    assert "Error" in captured.out
    assert "coarse" in captured.out and "fine" in captured.out
    assert hist.entries == 1
    assert hist.counts.sum() == 1.0


def test_normalised():
    hist = energy_histogram()
    np.testing.assert_array_equal(hist.normalised(), np.zeros(10))

    hist.fill(photons([0.5, 0.6, 5.5, 50.0]))
    norm = hist.normalised()
    assert norm[0] == pytest.approx(0.5)
    assert norm[5] == pytest.approx(0.25)
    assert norm.sum() == pytest.approx(0.75)

    hist.reset()
    assert hist.entries == 0 and hist.counts.sum() == 0.0


@pytest.mark.parametrize("kwargs", [
    dict(data_type='momentum'),
    dict(n_bins=0),
    dict(min_bin=5.0, max_bin=5.0),
])
def test_invalid_histograms(kwargs):
    params = dict(name='bad', particle='photon', data_type='energy', time=0.0,
                  min_bin=0.0, max_bin=10.0, n_bins=10)
    params.update(kwargs)
    with pytest.raises(ValueError):
        Histogram(**params)
