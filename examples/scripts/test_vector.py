"""
Vector Test Suite

Tests the ThreeVector helpers shared by fields, pushers and sources.
"""

import numpy as np
import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from qed_cascade.core.vector import (three_vector, as_three_vector, dot3, cross3, norm3,
                                     unit_vector, orthonormal_basis, rotate_direction)


def test_construction():
    v = three_vector(1.0, -2.0, 3.0)
    assert v.dtype == np.float64
    np.testing.assert_array_equal(v, [1.0, -2.0, 3.0])
    np.testing.assert_array_equal(three_vector(), np.zeros(3))

    w = as_three_vector([[1, 2, 3]])
    np.testing.assert_array_equal(w, [1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        as_three_vector((1.0, 2.0))


def test_products():
    x, y = three_vector(1.0, 0.0, 0.0), three_vector(0.0, 1.0, 0.0)
    np.testing.assert_allclose(cross3(x, y), [0.0, 0.0, 1.0])
    assert dot3(x, y) == 0.0
    assert norm3(three_vector(3.0, 4.0, 0.0)) == pytest.approx(5.0)
    np.testing.assert_array_equal(unit_vector(three_vector()), np.zeros(3))


@pytest.mark.parametrize("direction", [
    (0.0, 0.0, 1.0),
    (0.0, 0.0, -1.0),
    (1.0, 1.0, 0.0),
    (0.3, -0.2, 0.9),
])
def test_orthonormal_basis_is_right_handed(direction):
    u = unit_vector(as_three_vector(direction))
    e1, e2 = orthonormal_basis(u)
    assert norm3(e1) == pytest.approx(1.0)
    assert norm3(e2) == pytest.approx(1.0)
    assert dot3(e1, u) == pytest.approx(0.0, abs=1e-12)
    assert dot3(e2, u) == pytest.approx(0.0, abs=1e-12)
    np.testing.assert_allclose(cross3(e1, e2), u, atol=1e-12)


def test_rotate_direction_polar_angle():
    u = unit_vector(three_vector(0.2, 0.5, -0.8))
    for theta, phi in [(0.0, 1.0), (0.1, 0.0), (0.7, 2.5), (np.pi / 2, 4.0)]:
        rotated = rotate_direction(u, theta, phi)
        assert norm3(rotated) == pytest.approx(1.0)
        assert np.arccos(np.clip(dot3(rotated, u), -1.0, 1.0)) == pytest.approx(
            theta, abs=1e-7)
