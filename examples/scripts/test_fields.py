"""
Field Test Suite

Tests the background fields:
    - Static field evaluation
    - Plane-wave geometry
    - Pulse support (exact zero outside the envelope)
    - Ill-defined inputs
    - Factory errors
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from qed_cascade.fields.em_field import (StaticEMField, PlaneEMField, GaussianEMField,
                                         FocusingField, create_field, ENVELOPE_CUTOFF)

# Laser-like parameters in normalized units (0.8 um, ~8 fs, 5 um waist)
WAVELENGTH = 2.0e6
DURATION = 1.0e7
WAIST = 1.3e7


def make_pulse(cls):
    return cls(max_field=1e-3, wavelength=WAVELENGTH, duration=DURATION, waist=WAIST,
               polarisation=0.0, start=(0.0, 0.0, -1.0e8), focus=(0.0, 0.0, 0.0))


def test_static_field_is_uniform():
    field = StaticEMField(e_field=(1e-4, 0.0, 0.0), b_field=(0.0, 0.0, 2e-4))
    for position, time in [((0, 0, 0), 0.0), ((1e9, -3e4, 7.0), 1e12)]:
        e, b = field.evaluate(np.array(position, dtype=float), time)
        np.testing.assert_array_equal(e, [1e-4, 0.0, 0.0])
        np.testing.assert_array_equal(b, [0.0, 0.0, 2e-4])


def test_plane_wave_geometry():
    field = PlaneEMField(max_field=1e-3, wavelength=WAVELENGTH, polarisation=0.3,
                         direction=(0.0, 1.0, 1.0))
    k_dir = np.array([0.0, 1.0, 1.0]) / np.sqrt(2.0)
    rng = np.random.default_rng(3)
    for _ in range(20):
        e, b = field(rng.uniform(-1e7, 1e7, 3), rng.uniform(0.0, 1e7))
        assert abs(np.dot(e, b)) < 1e-18
        assert abs(np.dot(e, k_dir)) < 1e-18
        assert np.linalg.norm(e) == pytest.approx(np.linalg.norm(b), rel=1e-12, abs=1e-20)
        assert np.linalg.norm(e) <= 1e-3 * (1.0 + 1e-12)


@pytest.mark.parametrize("cls", [GaussianEMField, FocusingField])
def test_pulse_is_exactly_zero_outside_envelope(cls):
    field = make_pulse(cls)
    # Pulse centre sits at z = -1e8 at t=0; beyond 5 durations the field vanishes
    far = (ENVELOPE_CUTOFF + 0.1) * DURATION
    for position in [(0.0, 0.0, -1e8 + far), (0.0, 0.0, -1e8 - far), (1e6, 0.0, 5e8)]:
        e, b = field.evaluate(np.array(position), 0.0)
        assert np.all(e == 0.0)
        assert np.all(b == 0.0)

    # The support moves with the pulse
    e, b = field.evaluate(np.array([0.0, 0.0, -1e8]), 2.0e8)
    assert np.all(e == 0.0) and np.all(b == 0.0)


@pytest.mark.parametrize("cls", [GaussianEMField, FocusingField])
def test_pulse_is_nonzero_at_focus(cls):
    field = make_pulse(cls)
    times = 1.0e8 + np.linspace(0.0, WAVELENGTH, 16)
    peak = max(np.linalg.norm(field.evaluate(np.zeros(3), t)[0]) for t in times)
    assert 0.5e-3 < peak <= 1.0e-3 * (1.0 + 1e-6)


def test_paraxial_pulse_has_no_longitudinal_field():
    field = make_pulse(GaussianEMField)
    e, b = field.evaluate(np.array([3e6, 2e6, 0.0]), 1.0e8 + 0.1 * WAVELENGTH)
    assert e[2] == 0.0
    assert b[2] == 0.0


def test_non_finite_input_gives_zero_field():
    field = make_pulse(FocusingField)
    e, b = field.evaluate(np.array([np.nan, 0.0, 0.0]), 0.0)
    assert np.all(e == 0.0) and np.all(b == 0.0)
    e, b = field.evaluate(np.zeros(3), np.inf)
    assert np.all(e == 0.0) and np.all(b == 0.0)


def test_create_field():
    field = create_field('Static', b_field=(0.0, 0.0, 1e-3))
    assert isinstance(field, StaticEMField)
    assert isinstance(create_field('focusing', max_field=1e-3, wavelength=WAVELENGTH,
                                   duration=DURATION, waist=WAIST, polarisation=0.0,
                                   start=(0, 0, -1), focus=(0, 0, 0)), FocusingField)

    with pytest.raises(ValueError, match="Unknown field type"):
        create_field('laser')


def test_invalid_pulse_parameters():
    with pytest.raises(ValueError):
        GaussianEMField(1e-3, WAVELENGTH, DURATION, WAIST, 0.0,
                        start=(0, 0, 0), focus=(0, 0, 0))
    with pytest.raises(ValueError):
        GaussianEMField(1e-3, -1.0, DURATION, WAIST, 0.0,
                        start=(0, 0, -1), focus=(0, 0, 0))
