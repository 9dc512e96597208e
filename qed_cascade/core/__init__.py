"""Core module: Particles, event lists, vectors and units."""

from qed_cascade.core.particle import Particle, Electron, Positron, Photon, ParticleList
from qed_cascade.core.units import UnitsSystem

__all__ = ["Particle", "Electron", "Positron", "Photon", "ParticleList", "UnitsSystem"]
