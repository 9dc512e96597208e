"""
QED_CASCADE: Strong-Field QED Cascade Monte Carlo

Event-by-event simulation of electrons, positrons and photons in intense
laser fields, with photon emission and pair creation sampled by the
optical-depth method.

Modules:
    core: Particles, event lists, vectors and units
    fields: Static, plane-wave and focused-pulse fields
    physics: Pushers, QED rate tables and interaction processes
    source: Primary particle sampling
    scoring: Histograms
    transport: Event loop and parallel driver
    io: YAML configuration and HDF5 output
"""

__version__ = "0.1.0"
__author__ = "William Comaskey"

from qed_cascade.core.particle import Particle, Electron, Positron, Photon, ParticleList
from qed_cascade.core.units import UnitsSystem
from qed_cascade.fields.em_field import (StaticEMField, PlaneEMField, GaussianEMField,
                                         FocusingField, create_field)
from qed_cascade.physics.pushers import LorentzPusher, LandauPusher, ModifiedLandauPusher
from qed_cascade.physics.processes import (NonLinearCompton, NonLinearBreitWheeler,
                                           ContinuousEmission, StochasticEmission)
from qed_cascade.source.generator import SourceGenerator
from qed_cascade.scoring.histogram import Histogram
from qed_cascade.transport.engine import CascadeEngine
from qed_cascade.run_manager import RunManager

__all__ = [
    "Particle",
    "Electron",
    "Positron",
    "Photon",
    "ParticleList",
    "UnitsSystem",
    "StaticEMField",
    "PlaneEMField",
    "GaussianEMField",
    "FocusingField",
    "create_field",
    "LorentzPusher",
    "LandauPusher",
    "ModifiedLandauPusher",
    "NonLinearCompton",
    "NonLinearBreitWheeler",
    "ContinuousEmission",
    "StochasticEmission",
    "SourceGenerator",
    "Histogram",
    "CascadeEngine",
    "RunManager",
]
