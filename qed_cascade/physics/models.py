"""
Physics models: pusher + process combinations.

    classical:      LandauPusher + classical ContinuousEmission
    semiclassical:  ModifiedLandauPusher + quantum-corrected ContinuousEmission
    quantum:        LorentzPusher + StochasticEmission

Pair production (NonLinearBreitWheeler) can be added to any model.
"""

from typing import List, Tuple

from qed_cascade.fields.em_field import EMField
from qed_cascade.physics.pushers import (ParticlePusher, LorentzPusher, LandauPusher,
                                         ModifiedLandauPusher)
from qed_cascade.physics.processes import (Process, ContinuousEmission, StochasticEmission,
                                           NonLinearBreitWheeler)

PHYSICS_MODELS = ('classical', 'semiclassical', 'quantum')


def create_physics(model: str, field: EMField, time_step: float,
                   sample_fraction: float = 1.0, pair_production: bool = False,
                   produce_photons: bool = True, min_photon_energy: float = 0.0,
                   tracking: bool = False) -> Tuple[ParticlePusher, List[Process]]:
    """
    Build the pusher and process list of a physics model.

    Parameters:
        model: 'classical', 'semiclassical' or 'quantum' (case-insensitive)
        field: Background field
        time_step: Global time step [normalized time]
        sample_fraction: Photon sampling fraction of the emission process
        pair_production: Add nonlinear Breit-Wheeler pair production
        produce_photons: Emission process appends photon secondaries
        min_photon_energy: Lowest photon energy kept [m c^2]
        tracking: Record history of secondaries

    Returns:
        (pusher, processes)

    Raises:
        ValueError: Unknown model
    """
    key = model.lower()
    if key not in PHYSICS_MODELS:
        raise ValueError(f"Unknown physics type '{model}'. "
                         f"Available: {list(PHYSICS_MODELS)}")

    if key == 'classical':
        pusher = LandauPusher(field, time_step)
        emission = ContinuousEmission(field, time_step, classical=True,
                                      sample_fraction=sample_fraction,
                                      produce_photons=produce_photons,
                                      min_energy=min_photon_energy, tracking=tracking)
    elif key == 'semiclassical':
        pusher = ModifiedLandauPusher(field, time_step)
        emission = ContinuousEmission(field, time_step, classical=False,
                                      sample_fraction=sample_fraction,
                                      produce_photons=produce_photons,
                                      min_energy=min_photon_energy, tracking=tracking)
    else:
        pusher = LorentzPusher(field, time_step)
        emission = StochasticEmission(field, time_step, sample_fraction=sample_fraction,
                                      produce_photons=produce_photons,
                                      min_energy=min_photon_energy, tracking=tracking)

    processes: List[Process] = [emission]
    if pair_production:
        processes.append(NonLinearBreitWheeler(field, time_step, tracking=tracking))
    return pusher, processes
