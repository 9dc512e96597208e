"""
YAML configuration.

A configuration file has five sections, all in SI units with particle
energies in MeV:

    general:    time_step [s], time_end [s], tracking, store_events, file_name,
                n_workers, seed
    field:      type ('static', 'plane', 'gaussian', 'focusing') and its parameters
    physics:    model ('classical', 'semiclassical', 'quantum')
                or pusher + processes, plus pair/photon options
    sources:    list of primary sources, each with n_events
    histograms: optional list of histograms

Example:
    general:
      time_step: 1.0e-18
      time_end: 1.0e-13
      file_name: cascade.h5
    field:
      type: gaussian
      max_field: 1.0e14
      wavelength: 0.8e-6
      duration: 30.0e-15
      waist: 2.0e-6
      polarisation: 0.0
      start: [0.0, 0.0, -2.0e-5]
      focus: [0.0, 0.0, 0.0]
    physics:
      model: quantum
      pair_production: true
      produce_photons: true
    sources:
      - particle: electron
        distribution: mono
        energy_param1: 1000.0
        direction: [0.0, 0.0, -1.0]
        position: [0.0, 0.0, 1.0e-5]
        n_events: 100

build_simulation() converts everything to normalized units and resolves
every type name once, so configuration errors surface before any event runs.
"""

from dataclasses import dataclass, field as dataclass_field
from typing import List, Optional, Tuple

import yaml

from qed_cascade.core.units import UnitsSystem
from qed_cascade.fields.em_field import EMField, create_field
from qed_cascade.physics.models import create_physics
from qed_cascade.physics.pushers import create_pusher
from qed_cascade.physics.processes import (PROCESS_TYPES, create_process,
                                           StochasticEmission, ContinuousEmission)
from qed_cascade.scoring.histogram import Histogram
from qed_cascade.source.generator import SourceGenerator
from qed_cascade.transport.engine import CascadeEngine

Vector = Tuple[float, float, float]

REQUIRED_SECTIONS = ('general', 'field', 'physics', 'sources')


@dataclass
class GeneralConfig:
    time_step: float
    time_end: float
    tracking: bool = False
    store_events: bool = False
    file_name: Optional[str] = None
    n_workers: int = 1
    seed: Optional[int] = None

    def __post_init__(self):
        # PyYAML reads some exponent forms ('1e-18', '1.0e14') as strings
        self.time_step = float(self.time_step)
        self.time_end = float(self.time_end)
        self.n_workers = int(self.n_workers)


@dataclass
class FieldConfig:
    type: str
    max_field: float = 0.0                # V/m
    wavelength: float = 0.8e-6            # m
    duration: float = 30.0e-15            # s
    waist: float = 2.0e-6                 # m
    polarisation: float = 0.0             # rad
    start: Vector = (0.0, 0.0, -2.0e-5)   # m
    focus: Vector = (0.0, 0.0, 0.0)       # m
    direction: Vector = (0.0, 0.0, 1.0)
    e_field: Vector = (0.0, 0.0, 0.0)     # V/m
    b_field: Vector = (0.0, 0.0, 0.0)     # T

    def __post_init__(self):
        for name in ('max_field', 'wavelength', 'duration', 'waist', 'polarisation'):
            setattr(self, name, float(getattr(self, name)))


@dataclass
class PhysicsConfig:
    model: Optional[str] = None
    pusher: str = 'lorentz'
    processes: List[str] = dataclass_field(default_factory=list)
    pair_production: bool = False
    sample_fraction: float = 1.0
    produce_photons: bool = True
    min_photon_energy: float = 0.0        # MeV

    def __post_init__(self):
        self.sample_fraction = float(self.sample_fraction)
        self.min_photon_energy = float(self.min_photon_energy)


@dataclass
class SourceConfig:
    particle: str
    distribution: str
    energy_param1: float                  # MeV
    energy_param2: float = 0.0            # MeV
    radius: float = 0.0                   # m
    duration: float = 0.0                 # s
    divergence: float = 0.0               # rad
    position: Vector = (0.0, 0.0, 0.0)    # m
    direction: Vector = (0.0, 0.0, 1.0)
    n_events: int = 1
    n_primaries: int = 1
    output: bool = True

    def __post_init__(self):
        self.energy_param1 = float(self.energy_param1)
        self.energy_param2 = float(self.energy_param2)
        self.n_events = int(self.n_events)
        self.n_primaries = int(self.n_primaries)


@dataclass
class HistogramConfig:
    name: str
    particle: str
    type: str
    time: float                           # s
    min: float                            # MeV or m
    max: float                            # MeV or m
    bins: int

    def __post_init__(self):
        self.time = float(self.time)
        self.min = float(self.min)
        self.max = float(self.max)
        self.bins = int(self.bins)


@dataclass
class SimulationConfig:
    general: GeneralConfig
    field: FieldConfig
    physics: PhysicsConfig
    sources: List[SourceConfig]
    histograms: List[HistogramConfig] = dataclass_field(default_factory=list)


@dataclass
class SourceRun:
    """A built source together with how many events it runs."""

    generator: SourceGenerator
    n_events: int
    output: bool = True


@dataclass
class Simulation:
    """Normalized, ready-to-run objects built from a SimulationConfig."""

    config: SimulationConfig
    units: UnitsSystem
    field: EMField
    engine: CascadeEngine
    sources: List[SourceRun]
    histograms: List[Histogram]


def _section(cls, data, name: str):
    if not isinstance(data, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    try:
        return cls(**data)
    except TypeError as err:
        raise ValueError(f"Invalid '{name}' section: {err}") from err


def config_from_dict(data: dict) -> SimulationConfig:
    """
    Build a SimulationConfig from a parsed mapping.

    Raises:
        ValueError: Missing section, unknown or missing keys
    """
    if not isinstance(data, dict):
        raise ValueError("Configuration must be a mapping of sections")
    missing = [name for name in REQUIRED_SECTIONS if name not in data]
    if missing:
        raise ValueError(f"Missing configuration section(s): {missing}")

    sources = data['sources']
    if not isinstance(sources, list) or not sources:
        raise ValueError("Configuration needs a non-empty 'sources' list")

    return SimulationConfig(
        general=_section(GeneralConfig, data['general'], 'general'),
        field=_section(FieldConfig, data['field'], 'field'),
        physics=_section(PhysicsConfig, data['physics'] or {}, 'physics'),
        sources=[_section(SourceConfig, s, f'sources[{i}]') for i, s in enumerate(sources)],
        histograms=[_section(HistogramConfig, h, f'histograms[{i}]')
                    for i, h in enumerate(data.get('histograms') or [])],
    )


def load_config(path: str) -> SimulationConfig:
    """Read a YAML configuration file."""
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    return config_from_dict(data)


def build_field(config: FieldConfig, units: UnitsSystem) -> EMField:
    """Normalize field parameters and build the field."""
    kind = config.type.lower()
    if kind == 'static':
        return create_field(kind,
                            e_field=units.to_normalized(config.e_field, 'e_field'),
                            b_field=units.to_normalized(config.b_field, 'b_field'))
    if kind == 'plane':
        return create_field(kind,
                            max_field=float(units.to_normalized(config.max_field, 'e_field')),
                            wavelength=float(units.to_normalized(config.wavelength, 'length')),
                            polarisation=config.polarisation,
                            direction=config.direction)
    return create_field(kind,
                        max_field=float(units.to_normalized(config.max_field, 'e_field')),
                        wavelength=float(units.to_normalized(config.wavelength, 'length')),
                        duration=float(units.to_normalized(config.duration, 'time')),
                        waist=float(units.to_normalized(config.waist, 'length')),
                        polarisation=config.polarisation,
                        start=units.to_normalized(config.start, 'length'),
                        focus=units.to_normalized(config.focus, 'length'))


def build_physics(config: PhysicsConfig, field: EMField, time_step: float,
                  tracking: bool, units: UnitsSystem):
    """
    Resolve the pusher and processes.

    A `model` takes precedence over an explicit pusher/process list.
    """
    min_energy = float(units.to_normalized(config.min_photon_energy, 'energy_mev'))
    if config.model is not None:
        return create_physics(config.model, field, time_step,
                              sample_fraction=config.sample_fraction,
                              pair_production=config.pair_production,
                              produce_photons=config.produce_photons,
                              min_photon_energy=min_energy, tracking=tracking)

    pusher = create_pusher(config.pusher, field, time_step)
    names = [name.lower().replace('-', '_').replace(' ', '_') for name in config.processes]
    processes = []
    for name in names:
        params = {'tracking': tracking}
        if PROCESS_TYPES.get(name) in (StochasticEmission, ContinuousEmission):
            params.update(sample_fraction=config.sample_fraction,
                          produce_photons=config.produce_photons,
                          min_energy=min_energy)
        processes.append(create_process(name, field, time_step, **params))
    if config.pair_production and 'nonlinear_breit_wheeler' not in names:
        processes.append(create_process('nonlinear_breit_wheeler', field, time_step,
                                        tracking=tracking))
    return pusher, processes


def build_source(config: SourceConfig, units: UnitsSystem, tracking: bool) -> SourceRun:
    """Normalize one source and build its generator."""
    if config.n_events < 0:
        raise ValueError(f"Number of events must be non-negative, got {config.n_events}")
    generator = SourceGenerator(
        config.particle, config.distribution,
        energy_param1=float(units.to_normalized(config.energy_param1, 'energy_mev')),
        energy_param2=float(units.to_normalized(config.energy_param2, 'energy_mev')),
        radius=float(units.to_normalized(config.radius, 'length')),
        duration=float(units.to_normalized(config.duration, 'time')),
        divergence=config.divergence,
        position=units.to_normalized(config.position, 'length'),
        direction=config.direction,
        n_primaries=config.n_primaries,
        tracking=tracking,
    )
    return SourceRun(generator, int(config.n_events), config.output)


def build_histogram(config: HistogramConfig, units: UnitsSystem) -> Histogram:
    """Normalize one histogram (energy axes in MeV, position axes in m)."""
    quantity = 'energy_mev' if config.type.lower() == 'energy' else 'length'
    return Histogram(config.name, config.particle, config.type,
                     time=float(units.to_normalized(config.time, 'time')),
                     min_bin=float(units.to_normalized(config.min, quantity)),
                     max_bin=float(units.to_normalized(config.max, quantity)),
                     n_bins=config.bins)


def build_simulation(config: SimulationConfig) -> Simulation:
    """
    Convert a configuration to normalized units and build every object.

    Raises:
        ValueError: Unknown type name, non-positive time step, bad parameters
    """
    units = UnitsSystem('SI')
    general = config.general

    if not general.time_step > 0.0:
        raise ValueError(f"Time step must be positive, got {general.time_step}")
    if general.time_end < 0.0:
        raise ValueError(f"End time must be non-negative, got {general.time_end}")

    time_step = float(units.to_normalized(general.time_step, 'time'))
    time_end = float(units.to_normalized(general.time_end, 'time'))

    em_field = build_field(config.field, units)
    pusher, processes = build_physics(config.physics, em_field, time_step,
                                      general.tracking, units)
    histograms = [build_histogram(h, units) for h in config.histograms]
    engine = CascadeEngine(em_field, pusher, processes, time_end=time_end,
                           histograms=histograms)
    sources = [build_source(s, units, general.tracking) for s in config.sources]

    return Simulation(config=config, units=units, field=em_field, engine=engine,
                      sources=sources, histograms=histograms)
