"""Physics module: Pushers, QED rates and interaction processes."""

from qed_cascade.physics.pushers import (LorentzPusher, LandauPusher, ModifiedLandauPusher,
                                         create_pusher)
from qed_cascade.physics.processes import (NonLinearCompton, NonLinearBreitWheeler,
                                           ContinuousEmission, StochasticEmission,
                                           create_process)
from qed_cascade.physics.models import create_physics

__all__ = ["LorentzPusher", "LandauPusher", "ModifiedLandauPusher", "create_pusher",
           "NonLinearCompton", "NonLinearBreitWheeler", "ContinuousEmission",
           "StochasticEmission", "create_process", "create_physics"]
