"""
Three-vector helpers.

A ThreeVector is a float64 NumPy array of shape (3,). The kernels here are
numba-compiled so they can be called from the field and pusher kernels.
"""

import numpy as np
import numba


def three_vector(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Build a ThreeVector from components."""
    return np.array([x, y, z], dtype=np.float64)


def as_three_vector(value) -> np.ndarray:
    """Convert any length-3 sequence to a ThreeVector (copy)."""
    vec = np.array(value, dtype=np.float64).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"Expected 3 components, got {vec.shape[0]}")
    return vec


@numba.njit(fastmath=True, cache=True)
def dot3(a: np.ndarray, b: np.ndarray) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


@numba.njit(fastmath=True, cache=True)
def cross3(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    result = np.empty(3, dtype=np.float64)
    result[0] = a[1] * b[2] - a[2] * b[1]
    result[1] = a[2] * b[0] - a[0] * b[2]
    result[2] = a[0] * b[1] - a[1] * b[0]
    return result


@numba.njit(fastmath=True, cache=True)
def norm3(a: np.ndarray) -> float:
    return np.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


@numba.njit(fastmath=True, cache=True)
def unit_vector(a: np.ndarray) -> np.ndarray:
    """Unit vector along a; the zero vector maps to itself."""
    result = np.zeros(3, dtype=np.float64)
    n = norm3(a)
    if n > 0.0:
        result[0] = a[0] / n
        result[1] = a[1] / n
        result[2] = a[2] / n
    return result


@numba.njit(fastmath=True, cache=True)
def orthonormal_basis(direction: np.ndarray):
    """
    Two unit vectors (e1, e2) such that (e1, e2, direction) is right-handed.

    e1 lies in the plane spanned by the direction and the z-axis whenever
    the direction is not (anti)parallel to z; otherwise e1 is the x-axis.

    Parameters:
        direction: Unit vector

    Returns:
        (e1, e2)
    """
    ux, uy, uz = direction[0], direction[1], direction[2]

    raw = np.empty(3, dtype=np.float64)
    if abs(uz) > 0.99:
        # x-axis with the component along direction removed
        raw[0] = 1.0 - ux * ux
        raw[1] = -ux * uy
        raw[2] = -ux * uz
    else:
        # z-axis projected onto the plane normal to direction
        raw[0] = -uz * ux
        raw[1] = -uz * uy
        raw[2] = 1.0 - uz * uz
    e1 = unit_vector(raw)
    e2 = cross3(direction, e1)
    return e1, e2


@numba.njit(fastmath=True, cache=True)
def rotate_direction(direction: np.ndarray, theta: float, phi: float) -> np.ndarray:
    """
    Rotate direction vector by polar angle theta and azimuth phi.

    Uses Rodrigues' rotation formula:
        v_rot = v*cos(θ) + (k × v)*sin(θ) + k*(k·v)*(1-cos(θ))

    where k is the rotation axis perpendicular to v.

    Parameters:
        direction: Initial direction unit vector [x, y, z]
        theta: Polar angle [radians]
        phi: Azimuthal angle [radians]

    Returns:
        Rotated direction unit vector [x, y, z]
    """
    ux, uy, uz = direction[0], direction[1], direction[2]

    if theta < 1e-14:
        return direction.copy()

    if abs(uz) > 0.99:
        perp_x = 1.0
        perp_y = 0.0
        perp_z = 0.0
    else:
        norm = np.sqrt(ux**2 + uy**2)
        perp_x = -uy / norm
        perp_y = ux / norm
        perp_z = 0.0

    # Rotate the axis by phi around the original direction
    cos_phi = np.cos(phi)
    sin_phi = np.sin(phi)
    k_dot_u = perp_x * ux + perp_y * uy + perp_z * uz
    kx = (perp_x * cos_phi + (uy * perp_z - uz * perp_y) * sin_phi
          + ux * k_dot_u * (1.0 - cos_phi))
    ky = (perp_y * cos_phi + (uz * perp_x - ux * perp_z) * sin_phi
          + uy * k_dot_u * (1.0 - cos_phi))
    kz = (perp_z * cos_phi + (ux * perp_y - uy * perp_x) * sin_phi
          + uz * k_dot_u * (1.0 - cos_phi))
    k_norm = np.sqrt(kx * kx + ky * ky + kz * kz)
    kx /= k_norm
    ky /= k_norm
    kz /= k_norm

    cos_theta = np.cos(theta)
    sin_theta = np.sin(theta)
    dot = kx * ux + ky * uy + kz * uz

    new_x = ux * cos_theta + (ky * uz - kz * uy) * sin_theta + kx * dot * (1.0 - cos_theta)
    new_y = uy * cos_theta + (kz * ux - kx * uz) * sin_theta + ky * dot * (1.0 - cos_theta)
    new_z = uz * cos_theta + (kx * uy - ky * ux) * sin_theta + kz * dot * (1.0 - cos_theta)

    norm = np.sqrt(new_x**2 + new_y**2 + new_z**2)

    result = np.empty(3, dtype=np.float64)
    result[0] = new_x / norm
    result[1] = new_y / norm
    result[2] = new_z / norm
    return result
