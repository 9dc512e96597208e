"""
Setup Test Suite

Tests everything between the user and the engine:
    - YAML configuration and its errors
    - Physics models
    - Source sampling
    - RunManager
    - HDF5 output and the command line
"""

import numpy as np
import pytest
import sys
from pathlib import Path

import h5py
import yaml

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from qed_cascade.core.units import UnitsSystem
from qed_cascade.fields.em_field import GaussianEMField, StaticEMField
from qed_cascade.io.config import config_from_dict, load_config, build_simulation
from qed_cascade.io.output import HDF5Output, OutputManager
from qed_cascade.physics.models import create_physics
from qed_cascade.physics.pushers import LorentzPusher, LandauPusher, ModifiedLandauPusher
from qed_cascade.physics.processes import (StochasticEmission, ContinuousEmission,
                                           NonLinearBreitWheeler, NonLinearCompton)
from qed_cascade.run import run_simulation, main
from qed_cascade.run_manager import RunManager
from qed_cascade.source.generator import SourceGenerator


def base_config():
    return {
        'general': {'time_step': 1.0e-18, 'time_end': 1.0e-17, 'seed': 5},
        'field': {
            'type': 'gaussian',
            'max_field': 1.0e14,
            'wavelength': 0.8e-6,
            'duration': 30.0e-15,
            'waist': 2.0e-6,
            'polarisation': 0.0,
            'start': [0.0, 0.0, -2.0e-5],
            'focus': [0.0, 0.0, 0.0],
        },
        'physics': {'model': 'quantum', 'pair_production': True},
        'sources': [{
            'particle': 'electron',
            'distribution': 'mono',
            'energy_param1': 1000.0,
            'position': [0.0, 0.0, 1.0e-3],
            'direction': [0.0, 0.0, -1.0],
            'n_events': 3,
        }],
        'histograms': [{
            'name': 'electron_energy', 'particle': 'electron', 'type': 'energy',
            'time': 0.0, 'min': 0.0, 'max': 2000.0, 'bins': 20,
        }],
    }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_build_simulation_normalizes_units():
    units = UnitsSystem('SI')
    simulation = build_simulation(config_from_dict(base_config()))

    assert isinstance(simulation.field, GaussianEMField)
    assert simulation.field.max_field == pytest.approx(1.0e14 / units.ref_e_field)
    assert simulation.engine.time_step == pytest.approx(1.0e-18 / units.ref_time)
    assert simulation.engine.n_steps == 10

    assert isinstance(simulation.engine.pusher, LorentzPusher)
    kinds = [type(p) for p in simulation.engine.processes]
    assert kinds == [StochasticEmission, NonLinearBreitWheeler]

    source = simulation.sources[0]
    assert source.n_events == 3
    assert source.generator.energy_param1 == pytest.approx(1000.0 / units.ref_energy_mev)
    assert simulation.histograms[0].bin_edges[-1] == pytest.approx(
        2000.0 / units.ref_energy_mev)


def test_explicit_pusher_and_processes():
    data = base_config()
    data['field'] = {'type': 'static', 'b_field': [0.0, 0.0, 1.0e6]}
    data['physics'] = {'pusher': 'landau',
                       'processes': ['nonlinear_compton', 'continuous_emission'],
                       'pair_production': True, 'sample_fraction': 0.5}
    simulation = build_simulation(config_from_dict(data))

    assert isinstance(simulation.field, StaticEMField)
    assert isinstance(simulation.engine.pusher, LandauPusher)
    kinds = [type(p) for p in simulation.engine.processes]
    assert kinds == [NonLinearCompton, ContinuousEmission, NonLinearBreitWheeler]
    assert simulation.engine.processes[1].sample_fraction == 0.5


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / 'run.yaml'
    data = base_config()
    # Some exponent forms are read as strings by PyYAML
    text = yaml.safe_dump(data).replace('1.0e-18', '1e-18')
    path.write_text(text)

    config = load_config(str(path))
    assert config.general.time_step == 1.0e-18
    assert config.sources[0].n_events == 3
    assert config.histograms[0].bins == 20


@pytest.mark.parametrize("mutate, message", [
    (lambda d: d.pop('field'), "Missing configuration section"),
    (lambda d: d['general'].update(time_step=0.0), "Time step"),
    (lambda d: d['general'].update(time_step=-1e-18), "Time step"),
    (lambda d: d['field'].update(type='laser'), "Unknown field type"),
    (lambda d: d['physics'].update(model='hybrid'), "Unknown physics type"),
    (lambda d: d['physics'].update(model=None, pusher='vay'), "Unknown pusher type"),
    (lambda d: d['sources'][0].update(colour='red'), "Invalid 'sources\\[0\\]' section"),
    (lambda d: d['sources'][0].update(particle='muon'), "Unknown particle type"),
    (lambda d: d.update(sources=[]), "sources"),
])
def test_configuration_errors(mutate, message):
    data = base_config()
    mutate(data)
    with pytest.raises(ValueError, match=message):
        build_simulation(config_from_dict(data))


@pytest.mark.parametrize("model, pusher_cls, emission_cls", [
    ('classical', LandauPusher, ContinuousEmission),
    ('Semiclassical', ModifiedLandauPusher, ContinuousEmission),
    ('quantum', LorentzPusher, StochasticEmission),
])
def test_physics_models(model, pusher_cls, emission_cls):
    field = StaticEMField()
    pusher, processes = create_physics(model, field, 1.0)
    assert type(pusher) is pusher_cls
    assert [type(p) for p in processes] == [emission_cls]
    assert processes[0].produce_photons
    if emission_cls is ContinuousEmission:
        assert processes[0].classical == (model == 'classical')


# ---------------------------------------------------------------------------
# Source sampling
# ---------------------------------------------------------------------------

def test_source_mono_energy_and_species():
    source = SourceGenerator('positron', 'mono', 50.0, n_primaries=4)
    particles = source.generate_list(np.random.default_rng(0))
    assert len(particles) == 4
    for particle in particles:
        assert particle.name == 'positron'
        assert particle.kinetic_energy == pytest.approx(50.0)
        assert particle.optical_depth > 0.0
        np.testing.assert_allclose(particle.direction, [0.0, 0.0, 1.0])


def test_source_distributions_stay_in_range():
    rng = np.random.default_rng(3)
    uniform = SourceGenerator('electron', 'uniform', 10.0, 20.0)
    brems = SourceGenerator('photon', 'bremsstrahlung', 1.0, 100.0)
    normal = SourceGenerator('electron', 'normal', 5.0, 10.0)

    energies = [uniform.sample_energy(rng) for _ in range(500)]
    assert min(energies) >= 10.0 and max(energies) <= 20.0
    energies = [brems.sample_energy(rng) for _ in range(500)]
    assert min(energies) >= 1.0 and max(energies) <= 100.0
    # 1/E: half of the draws below the geometric mean
    assert 0.4 < np.mean(np.array(energies) < 10.0) < 0.6
    assert all(normal.sample_energy(rng) > 0.0 for _ in range(500))


def test_source_geometry():
    rng = np.random.default_rng(7)
    direction = np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0)
    source = SourceGenerator('electron', 'mono', 10.0, radius=5.0, divergence=0.1,
                             position=(1.0, 2.0, 3.0), direction=direction)
    for _ in range(300):
        particle = source.sample_particle(rng)
        offset = particle.position - np.array([1.0, 2.0, 3.0])
        assert abs(np.dot(offset, direction)) < 1e-9
        assert np.linalg.norm(offset) <= 5.0 + 1e-9
        angle = np.arccos(np.clip(np.dot(particle.direction, direction), -1.0, 1.0))
        assert angle <= 0.1 + 1e-9


def test_source_duration_shifts_backwards():
    rng = np.random.default_rng(2)
    source = SourceGenerator('photon', 'mono', 10.0, duration=100.0)
    z = [source.sample_particle(rng).position[2] for _ in range(200)]
    assert max(z) <= 0.0
    assert min(z) >= -100.0


@pytest.mark.parametrize("args", [
    ('electron', 'maxwellian', 1.0),
    ('electron', 'mono', -1.0),
    ('electron', 'uniform', 5.0, 1.0),
    ('electron', 'uniform', 0.0, 0.0),
    ('photon', 'bremsstrahlung', 0.0, 10.0),
    ('tau', 'mono', 1.0),
])
def test_invalid_sources(args):
    with pytest.raises(ValueError):
        SourceGenerator(*args)


# ---------------------------------------------------------------------------
# RunManager
# ---------------------------------------------------------------------------

def configured_run_manager():
    run = RunManager()
    run.set_time(1e-18, 1e-17)
    run.set_field('focusing', 1e14, 0.8e-6, 30e-15, 2e-6, 0.0,
                  start=(0.0, 0.0, -2e-5), focus=(0.0, 0.0, 0.0))
    run.set_physics('quantum')
    # 100 MeV electron far from the pulse
    run.set_generator('electron', 'mono', 1.602176634e-11,
                      position=(0.0, 0.0, 1e-3), direction=(0.0, 0.0, -1.0))
    return run


def test_run_manager_requires_setup():
    run = RunManager()
    run.set_time(1e-18, 1e-17)
    with pytest.raises(RuntimeError):
        run.beam_on(1)


def test_run_manager_rejects_unknown_types():
    run = RunManager()
    with pytest.raises(ValueError, match="Unknown field type"):
        run.set_field('plane', 1e14, 0.8e-6, 30e-15, 2e-6, 0.0)
    with pytest.raises(ValueError, match="Unknown physics type"):
        run.set_physics('hybrid')


def test_run_manager_sample_fraction(capsys):
    run = RunManager()
    run.set_sample_fraction(0.3)
    run.set_sample_fraction(1.5)
    assert run.sample_fraction == 0.3
    assert "Sampling fraction must be between 0 and 1" in capsys.readouterr().out


def test_run_manager_beam_on_returns_si_arrays():
    units = UnitsSystem('SI')
    run = configured_run_manager()
    run.use_pair_production(True)
    run.beam_on(3, seed=1)

    inputs = run.get_input()
    electrons = run.get_electrons()
    assert inputs.shape == (3, 6)
    assert electrons.shape == (3, 7)
    assert run.get_positrons().shape == (0, 7)

    # Free flight: momentum unchanged, position advanced towards the pulse
    momentum = np.sqrt(1.602176634e-11**2 + 2 * 1.602176634e-11 * units.ref_energy)
    momentum /= 299792458.0
    assert electrons[0, 2] == pytest.approx(-momentum, rel=1e-6)
    assert electrons[0, 5] < 1e-3
    assert electrons[0, 6] == 1.0


def colliding_run_manager(physics='quantum', sample_fraction=1.0):
    """1 GeV electrons meeting a 5e14 V/m pulse near its focus."""
    run = RunManager()
    run.set_time(2e-17, 1.2e-14)
    run.set_field('gaussian', 5e14, 0.8e-6, 10e-15, 2e-6, 0.0,
                  start=(0.0, 0.0, -1e-6), focus=(0.0, 0.0, 0.0))
    run.set_physics(physics)
    run.set_generator('electron', 'mono', 1.602176634e-10,
                      position=(0.0, 0.0, 1e-6), direction=(0.0, 0.0, -1.0))
    run.set_sample_fraction(sample_fraction)
    return run


def test_run_manager_photons_follow_sample_fraction():
    full = colliding_run_manager(sample_fraction=1.0)
    full.beam_on(4, seed=3)
    sampled = colliding_run_manager(sample_fraction=0.1)
    sampled.beam_on(4, seed=3)

    photons = full.get_photons()
    few = sampled.get_photons()
    assert len(photons) > 20
    assert 0 < len(few) < len(photons) / 2
    np.testing.assert_allclose(photons[:, 6], 1.0)
    np.testing.assert_allclose(few[:, 6], 10.0)


def test_run_manager_photon_production_switch():
    run = colliding_run_manager()
    run.set_photon_production(False)
    run.beam_on(1, seed=3)
    assert run.get_photons().shape == (0, 7)

    # The electron still radiates
    units = UnitsSystem('SI')
    initial = np.linalg.norm(run.get_input()[0, :3])
    final = np.linalg.norm(run.get_electrons()[0, :3])
    assert final < initial
    assert initial == pytest.approx(np.sqrt(1.602176634e-10**2 + 2 * 1.602176634e-10
                                            * units.ref_energy) / 299792458.0, rel=1e-6)

    with pytest.raises(ValueError):
        run.set_photon_production(True, min_energy=-1.0)


def test_run_manager_classical_radiated_energy():
    run = colliding_run_manager('classical', sample_fraction=0.05)
    assert run.get_radiated_energy() == 0.0
    run.beam_on(1, seed=2)
    assert run.get_radiated_energy() > 0.0
    photons = run.get_photons()
    assert len(photons) > 0
    assert np.all(photons[:, 6] > 0.0)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def test_run_simulation_writes_hdf5(tmp_path):
    data = base_config()
    data['general']['file_name'] = str(tmp_path / 'out.h5')
    path = tmp_path / 'run.yaml'
    path.write_text(yaml.safe_dump(data))

    summaries = run_simulation(str(path), quiet=True)
    assert len(summaries) == 1

    units = UnitsSystem('SI')
    with h5py.File(tmp_path / 'out.h5', 'r') as f:
        assert f['source_0'].attrs['n_events'] == 3
        initial = f['source_0/initial/electron'][()]
        assert initial.shape == (3, 7)
        # 1000 MeV kinetic energy -> |p| c in MeV
        p_mev = np.linalg.norm(initial[0, :3])
        expected = np.sqrt(1000.0**2 + 2 * 1000.0 * units.ref_energy_mev)
        assert p_mev == pytest.approx(expected, rel=1e-9)
        assert initial[0, 5] == pytest.approx(1.0e-3, rel=1e-9)

        hist = f['source_0/histograms/electron_energy']
        assert hist.attrs['entries'] == 3
        assert hist.attrs['bin_edges'][-1] == pytest.approx(2000.0)
        assert hist[()].sum() == 3.0


def test_run_simulation_stores_full_events(tmp_path):
    data = base_config()
    data['general'].update(file_name=str(tmp_path / 'events.h5'), store_events=True)
    data['sources'][0]['n_events'] = 2
    path = tmp_path / 'run.yaml'
    path.write_text(yaml.safe_dump(data))

    summaries = run_simulation(str(path), quiet=True)
    assert [event.event_id for event in summaries[0].events] == [0, 1]

    units = UnitsSystem('SI')
    with h5py.File(tmp_path / 'events.h5', 'r') as f:
        assert sorted(f['source_0/events'].keys()) == ['0', '1']
        dataset = f['source_0/events/1']
        assert dataset.attrs['n_particles'] == 1
        assert dataset.attrs['n_steps'] == 10
        records = dataset[()]
        assert records.shape == (1,)
        record = records[0]
        assert record['energy'] == pytest.approx(1000.0 + units.ref_energy_mev, rel=1e-9)
        assert record['time'] == pytest.approx(1.0e-17, rel=1e-9)
        assert record['position'][2] < 1.0e-3
        assert record['momentum'][2] < 0.0
        assert record['charge'] == -1.0
        assert record['radiated_energy'] == 0.0
        assert record['alive']
        assert f['source_0'].attrs['radiated_energy'] == 0.0


def test_hdf5_output_replaces_datasets(tmp_path):
    name = str(tmp_path / 'arrays.h5')
    with HDF5Output(name) as output:
        output.add_array(np.arange(3), 'group/data')
        output.add_array(np.arange(5), 'group/data', attrs={'unit': 'm'})
    with HDF5Output(name, append=True) as output:
        assert output.file['group/data'].shape == (5,)
        assert output.file['group/data'].attrs['unit'] == 'm'


def test_phase_space_conversion():
    units = UnitsSystem('SI')
    manager = OutputManager(None, units)
    rows = np.array([[1.0, 0.0, 0.0, 1.0, 0.0, 0.0, 2.0]])
    physical = manager.phase_space_to_physical(rows)
    assert physical[0, 0] == pytest.approx(units.ref_energy_mev)
    assert physical[0, 3] == pytest.approx(units.ref_length)
    assert physical[0, 6] == 2.0


def test_cli(tmp_path, capsys):
    data = base_config()
    data['general']['file_name'] = str(tmp_path / 'cli.h5')
    path = tmp_path / 'run.yaml'
    path.write_text(yaml.safe_dump(data))
    assert main([str(path), '--quiet', '--seed', '3']) == 0
    assert (tmp_path / 'cli.h5').exists()

    del data['physics']
    bad = tmp_path / 'bad.yaml'
    bad.write_text(yaml.safe_dump(data))
    assert main([str(bad), '--quiet']) == 1
    assert "Error: Missing configuration section" in capsys.readouterr().err
