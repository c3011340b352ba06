"""
Small 3D vector helpers on numpy arrays.

Directions are always re-normalized after blending or rotation. Zero-length
inputs fall back to a caller-supplied axis instead of producing NaN.
"""

import math
from typing import Optional

import numpy as np

EPSILON = 1e-12

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])


def vec3(x: float, y: float, z: float) -> np.ndarray:
    """Build a float64 3-vector."""
    return np.array([x, y, z], dtype=np.float64)


def normalize(v: np.ndarray, fallback: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Return v scaled to unit length.

    Args:
        v: Vector to normalize
        fallback: Returned (as a copy) when v has zero or non-finite length;
            defaults to the Z axis

    Returns:
        Unit vector
    """
    v = np.asarray(v, dtype=np.float64)
    length = float(np.sqrt(np.dot(v, v)))
    if not math.isfinite(length) or length < EPSILON:
        return (Z_AXIS if fallback is None else np.asarray(fallback, dtype=np.float64)).copy()
    return v / length


def angle_between(a: np.ndarray, b: np.ndarray) -> float:
    """Unsigned angle in radians between two vectors (0 if either is zero)."""
    denominator = math.sqrt(float(np.dot(a, a)) * float(np.dot(b, b)))
    if denominator < EPSILON:
        return 0.0
    cos_angle = float(np.dot(a, b)) / denominator
    return math.acos(max(-1.0, min(1.0, cos_angle)))


def lerp_vectors(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    """Component-wise linear interpolation."""
    return a + (b - a) * t


def quaternion_from_unit_vectors(v_from: np.ndarray, v_to: np.ndarray) -> np.ndarray:
    """
    Minimal rotation quaternion (w, x, y, z) turning v_from onto v_to.

    Both inputs are assumed unit length. When they are exactly opposite the
    rotation axis is ambiguous, so a stable axis perpendicular to v_from is
    chosen (half turn) rather than dividing by zero.
    """
    r = float(np.dot(v_from, v_to)) + 1.0
    if r < 1e-15:
        # opposite vectors
        if abs(v_from[0]) > abs(v_from[2]):
            q = np.array([0.0, -v_from[1], v_from[0], 0.0])
        else:
            q = np.array([0.0, 0.0, -v_from[2], v_from[1]])
    else:
        axis = np.cross(v_from, v_to)
        q = np.array([r, axis[0], axis[1], axis[2]])
    return q / np.linalg.norm(q)


def rotate_by_quaternion(v: np.ndarray, q: np.ndarray) -> np.ndarray:
    """Rotate vector v by unit quaternion q = (w, x, y, z)."""
    w = q[0]
    u = q[1:]
    uv = np.cross(u, v)
    uuv = np.cross(u, uv)
    return v + 2.0 * (w * uv + uuv)


def rotate_about_axis(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rodrigues rotation of v about a unit axis by angle radians."""
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return v * cos_a + np.cross(axis, v) * sin_a + axis * float(np.dot(axis, v)) * (1.0 - cos_a)


def smallest_component_axis(v: np.ndarray) -> np.ndarray:
    """Coordinate axis along v's smallest-magnitude component (ties go to the later axis)."""
    smallest = math.inf
    axis = X_AXIS
    for candidate, component in ((X_AXIS, v[0]), (Y_AXIS, v[1]), (Z_AXIS, v[2])):
        if abs(component) <= smallest:
            smallest = abs(component)
            axis = candidate
    return axis.copy()


def strip_closing_point(points, atol: float = 1e-9) -> np.ndarray:
    """Drop a trailing point that repeats the first one."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) > 1 and np.allclose(pts[0], pts[-1], rtol=0.0, atol=atol):
        return pts[:-1]
    return pts
