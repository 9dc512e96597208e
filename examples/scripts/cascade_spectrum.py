"""
Photon Spectrum - Electron Beam Colliding With a Laser Pulse

Sends a mono-energetic electron beam head-on into a focused laser pulse and
plots the final electron spectrum and the emitted photon spectrum for the
three physics models.

This example shows:
    - Building a run with RunManager (SI input)
    - Comparing classical, semiclassical and quantum radiation reaction
    - Weighted photon spectra with a reduced sampling fraction

Expected behaviour for 1 GeV electrons and a0 ~ 50:
    - Classical model gives the largest mean energy loss
    - Quantum model gives a broader final electron spectrum
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
from scipy import constants

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from qed_cascade.run_manager import RunManager

MEV = 1e6 * constants.e

# Continuous emission may sample a photon every step, so only keep a few
SAMPLE_FRACTIONS = {'classical': 1e-3, 'semiclassical': 1e-3, 'quantum': 1.0}


def simulate_collision(physics: str, n_events: int = 200, n_workers: int = 1,
                       energy_MeV: float = 1000.0, max_field: float = 2.0e14,
                       seed: int = 1):
    """
    Run one electron-laser collision.

    Parameters:
        physics: 'classical', 'semiclassical' or 'quantum'
        n_events: Number of primary electrons
        n_workers: Worker processes
        energy_MeV: Electron kinetic energy [MeV]
        max_field: Peak laser field [V/m]
        seed: Root random seed

    Returns:
        (final electron energies, photon energies, photon weights) [MeV]
    """
    run = RunManager()
    run.set_time(2.0e-18, 2.5e-13)
    run.set_field('gaussian', max_field, 0.8e-6, 30.0e-15, 2.0e-6, 0.0,
                  start=(0.0, 0.0, -4.0e-5), focus=(0.0, 0.0, 0.0))
    run.set_physics(physics)
    run.set_generator('electron', 'mono', energy_MeV * MEV, radius=1.0e-6,
                      position=(0.0, 0.0, 3.0e-5), direction=(0.0, 0.0, -1.0))
    run.set_sample_fraction(SAMPLE_FRACTIONS[physics])
    run.set_photon_production(True, min_energy=0.1 * MEV)
    run.use_pair_production(physics == 'quantum')
    run.beam_on(n_events, n_workers=n_workers, seed=seed, verbose=True)

    mc2 = constants.m_e * constants.c**2
    electrons = run.get_electrons()
    p = np.linalg.norm(electrons[:, :3], axis=1) * constants.c
    electron_energy = (np.sqrt(p**2 + mc2**2) - mc2) / MEV

    photons = run.get_photons()
    photon_energy = np.linalg.norm(photons[:, :3], axis=1) * constants.c / MEV
    return electron_energy, photon_energy, photons[:, 6]


def plot_spectra(results, energy_MeV: float, n_events: int, save_path=None):
    """Final electron spectra and photon spectra per physics model."""
    fig, (ax_e, ax_g) = plt.subplots(1, 2, figsize=(14, 6))
    bins = np.linspace(0.0, 1.05 * energy_MeV, 80)

    for physics, (electron_energy, photon_energy, weights) in results.items():
        ax_e.hist(electron_energy, bins=bins, histtype='step', linewidth=2,
                  label=f'{physics} (mean {electron_energy.mean():.0f} MeV)')
        # Photons per primary, weights undo the sampling fraction
        ax_g.hist(photon_energy, bins=bins, weights=weights / n_events, histtype='step',
                  linewidth=2, label=physics)

    ax_e.set_xlabel('Electron kinetic energy [MeV]', fontsize=12)
    ax_e.set_ylabel('Electrons per bin', fontsize=12)
    ax_e.set_title(f'{energy_MeV:.0f} MeV electrons after the laser pulse', fontsize=13)

    ax_g.set_xlabel('Photon energy [MeV]', fontsize=12)
    ax_g.set_ylabel('Photons per primary per bin', fontsize=12)
    ax_g.set_yscale('log')
    ax_g.set_title('Emitted photons', fontsize=13)

    for ax in (ax_e, ax_g):
        ax.legend()
        ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150)
        print(f"  Saved: {save_path}")
    else:
        plt.show()


def main():
    parser = argparse.ArgumentParser(description="Electron-laser collision spectra")
    parser.add_argument('--events', type=int, default=200)
    parser.add_argument('--workers', type=int, default=1)
    parser.add_argument('--save', type=str, default=None)
    args = parser.parse_args()

    energy = 1000.0
    results = {}
    for physics in ('classical', 'semiclassical', 'quantum'):
        print(f"\n{'='*70}")
        print(f"Physics: {physics}")
        print(f"{'='*70}")
        results[physics] = simulate_collision(physics, args.events, args.workers, energy)

    print(f"\n{'='*70}")
    print("Results:")
    print(f"{'='*70}")
    for physics, (electron_energy, photon_energy, weights) in results.items():
        print(f"  {physics:>13}: mean final energy {electron_energy.mean():7.1f} MeV, "
              f"photons {len(photon_energy)} (weighted {weights.sum() / args.events:.1f} "
              f"per primary)")

    plot_spectra(results, energy, args.events, args.save)


if __name__ == '__main__':
    main()
