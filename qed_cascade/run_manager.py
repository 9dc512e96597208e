"""
Programmatic run setup.

RunManager collects a focused-pulse field, a physics model and a primary
source given in SI units, then runs a batch of events and keeps the
initial and final phase space in SI units.

Example:
    run = RunManager()
    run.set_time(1e-18, 2e-13)
    run.set_field('gaussian', 1e14, 0.8e-6, 30e-15, 2e-6, 0.0,
                  start=(0, 0, -2e-5), focus=(0, 0, 0))
    run.set_physics('quantum')
    run.set_generator('electron', 'mono', 1.602e-10,        # 1 GeV in J
                      position=(0, 0, 1e-5), direction=(0, 0, -1))
    run.use_pair_production(True)
    run.set_sample_fraction(0.1)                  # keep one photon in ten
    run.beam_on(100)
    electrons = run.get_electrons()    # (n, 7) [p (kg m/s), x (m), weight]
    photons = run.get_photons()
"""

from typing import Optional

import numpy as np

from qed_cascade.core.units import UnitsSystem
from qed_cascade.fields.em_field import GaussianEMField, FocusingField
from qed_cascade.physics.models import PHYSICS_MODELS, create_physics
from qed_cascade.source.generator import SourceGenerator
from qed_cascade.transport.engine import CascadeEngine, RunSummary

RUN_FIELD_TYPES = {
    'gaussian': GaussianEMField,
    'focusing': FocusingField,
}


class RunManager:
    """Setup-then-run interface for one field, physics model and source."""

    def __init__(self):
        self.units = UnitsSystem('SI')
        self.time_step = 0.0
        self.time_end = 0.0
        self.sample_fraction = 1.0
        self.pair_production = False
        self.produce_photons = True
        self.min_photon_energy = 0.0

        self._field_params: Optional[dict] = None
        self._field_type: Optional[str] = None
        self._physics: Optional[str] = None
        self._generator_params: Optional[dict] = None
        self.summary: Optional[RunSummary] = None

    def set_time(self, time_step: float, time_end: float):
        """Time step and end time [s]."""
        if not time_step > 0.0:
            raise ValueError(f"Time step must be positive, got {time_step}")
        if time_end < 0.0:
            raise ValueError(f"End time must be non-negative, got {time_end}")
        self.time_step = float(self.units.to_normalized(time_step, 'time'))
        self.time_end = float(self.units.to_normalized(time_end, 'time'))

    def set_field(self, field_type: str, max_field: float, wavelength: float,
                  duration: float, waist: float, polarisation: float,
                  start=(0.0, 0.0, 0.0), focus=(0.0, 0.0, 0.0)):
        """
        Focused laser pulse.

        Parameters:
            field_type: 'gaussian' or 'focusing'
            max_field: Peak field [V/m]
            wavelength: Wavelength [m]
            duration: Pulse duration [s]
            waist: Beam waist [m]
            polarisation: Polarisation angle [rad]
            start: Pulse-centre position at t=0 [m]
            focus: Focal position [m]
        """
        key = field_type.lower()
        if key not in RUN_FIELD_TYPES:
            self._field_type = None
            raise ValueError(f"Unknown field type '{field_type}'. "
                             f"Available: {list(RUN_FIELD_TYPES.keys())}")
        units = self.units
        self._field_type = key
        self._field_params = {
            'max_field': float(units.to_normalized(max_field, 'e_field')),
            'wavelength': float(units.to_normalized(wavelength, 'length')),
            'duration': float(units.to_normalized(duration, 'time')),
            'waist': float(units.to_normalized(waist, 'length')),
            'polarisation': float(polarisation),
            'start': units.to_normalized(start, 'length'),
            'focus': units.to_normalized(focus, 'length'),
        }

    def set_physics(self, physics: str):
        """'classical', 'semiclassical' or 'quantum'."""
        if physics.lower() not in PHYSICS_MODELS:
            self._physics = None
            raise ValueError(f"Unknown physics type '{physics}'. "
                             f"Available: {list(PHYSICS_MODELS)}")
        self._physics = physics.lower()

    def set_generator(self, particle_type: str, distribution: str, energy_param1: float,
                      energy_param2: float = 0.0, radius: float = 0.0,
                      duration: float = 0.0, divergence: float = 0.0,
                      position=(0.0, 0.0, 0.0), direction=(0.0, 0.0, 1.0)):
        """
        Primary source (one primary per event).

        Energies are kinetic [J], radius [m], duration [s], divergence [rad]
        and position [m]. The generator itself is validated here.
        """
        units = self.units
        params = {
            'particle_type': particle_type,
            'distribution': distribution,
            'energy_param1': float(units.to_normalized(energy_param1, 'energy')),
            'energy_param2': float(units.to_normalized(energy_param2, 'energy')),
            'radius': float(units.to_normalized(radius, 'length')),
            'duration': float(units.to_normalized(duration, 'time')),
            'divergence': float(divergence),
            'position': units.to_normalized(position, 'length'),
            'direction': direction,
        }
        SourceGenerator(**params)
        self._generator_params = params

    def set_sample_fraction(self, sample_fraction: float):
        """Photon sampling fraction; out-of-range values are reported and ignored."""
        if 0.0 <= sample_fraction <= 1.0:
            self.sample_fraction = float(sample_fraction)
        else:
            print("Error: Sampling fraction must be between 0 and 1.")

    def use_pair_production(self, use_bw: bool):
        self.pair_production = bool(use_bw)

    def set_photon_production(self, produce: bool, min_energy: float = 0.0):
        """
        Photon secondaries of the emission process.

        Parameters:
            produce: Append emitted photons to the event
            min_energy: Photons at or below this energy are not created [J]
        """
        if min_energy < 0.0:
            raise ValueError(f"Minimum photon energy must be non-negative, got {min_energy}")
        self.produce_photons = bool(produce)
        self.min_photon_energy = float(self.units.to_normalized(min_energy, 'energy'))

    def build_engine(self) -> CascadeEngine:
        """
        Build field, pusher and processes from the current settings.

        Raises:
            RuntimeError: set_time, set_field, set_physics or set_generator missing
        """
        if (self.time_step == 0.0 or self._field_type is None or self._physics is None
                or self._generator_params is None):
            raise RuntimeError("set_time(), set_field(), set_physics() and set_generator() "
                               "must all be called before beam_on()")

        field = RUN_FIELD_TYPES[self._field_type](**self._field_params)
        pusher, processes = create_physics(self._physics, field, self.time_step,
                                           sample_fraction=self.sample_fraction,
                                           pair_production=self.pair_production,
                                           produce_photons=self.produce_photons,
                                           min_photon_energy=self.min_photon_energy)
        return CascadeEngine(field, pusher, processes, time_end=self.time_end)

    def beam_on(self, events: int, n_workers: int = 1, seed: Optional[int] = None,
                verbose: bool = False) -> RunSummary:
        """
        Run `events` independent events.

        Parameters:
            events: Number of events (one primary each)
            n_workers: Worker processes
            seed: Root seed (random if None)
            verbose: Print progress information
        """
        engine = self.build_engine()
        source = SourceGenerator(**self._generator_params)
        self.summary = engine.run(source, events, seed=seed, n_workers=n_workers,
                                  verbose=verbose)
        return self.summary

    def _to_si(self, rows: np.ndarray) -> np.ndarray:
        si = np.array(rows, dtype=np.float64, copy=True)
        si[:, 0:3] = self.units.to_physical(si[:, 0:3], 'momentum')
        si[:, 3:6] = self.units.to_physical(si[:, 3:6], 'length')
        return si

    def _collect(self, species: str, which: str = 'final') -> np.ndarray:
        if self.summary is None:
            return np.zeros((0, 7))
        return self._to_si(self.summary.particles(species, which))

    def get_input(self) -> np.ndarray:
        """(n, 6) initial [px, py, pz, x, y, z] of every primary in SI units."""
        if self.summary is None:
            return np.zeros((0, 6))
        blocks = [self._collect(name, 'initial')[:, :6] for name in self.summary.initial]
        return np.vstack(blocks) if blocks else np.zeros((0, 6))

    def get_electrons(self) -> np.ndarray:
        """(n, 7) final [px, py, pz, x, y, z, weight] in SI units."""
        return self._collect('electron')

    def get_positrons(self) -> np.ndarray:
        return self._collect('positron')

    def get_photons(self) -> np.ndarray:
        return self._collect('photon')

    def get_radiated_energy(self) -> float:
        """Weighted continuous radiation loss of the last run [J]."""
        if self.summary is None:
            return 0.0
        return float(self.units.to_physical(self.summary.radiated_energy, 'energy'))
