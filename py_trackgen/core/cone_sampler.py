"""
Uniform direction sampling inside a cone.

cos(theta) is drawn uniformly between cos(max_angle) and 1 and the azimuth
uniformly in [0, 2*pi), which spreads samples evenly over the spherical cap
(solid-angle uniform, not angle uniform). The sample is built around the
canonical +Z axis and rotated onto the requested forward direction.
"""

import math

import numpy as np

from ..utils.random import lerp
from ..utils.vector_math import (
    EPSILON,
    Z_AXIS,
    normalize,
    quaternion_from_unit_vectors,
    rotate_by_quaternion,
)

CANONICAL_AXIS = Z_AXIS


def sample_cone(forward: np.ndarray, max_angle_degrees: float, prng) -> np.ndarray:
    """
    Draw a unit vector within max_angle_degrees of forward.

    Consumes exactly two values from prng.

    Args:
        forward: Cone axis (any length; zero falls back to +Z)
        max_angle_degrees: Half-angle of the cone
        prng: Stream exposing random() in [0, 1)

    Returns:
        Unit direction vector
    """
    max_angle = math.radians(max_angle_degrees)
    cos_theta = lerp(math.cos(max_angle), 1.0, prng.random())
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
    phi = prng.random() * 2.0 * math.pi

    local = np.array([
        sin_theta * math.cos(phi),
        sin_theta * math.sin(phi),
        cos_theta,
    ])
    axis = normalize(forward, fallback=CANONICAL_AXIS)
    rotation = quaternion_from_unit_vectors(CANONICAL_AXIS, axis)
    return normalize(rotate_by_quaternion(local, rotation), fallback=axis)


def sample_cone_batch(
    forwards: np.ndarray,
    max_angle_degrees: float,
    cos_draws: np.ndarray,
    phi_draws: np.ndarray,
) -> np.ndarray:
    """
    Vectorized sample_cone over K forward directions.

    cos_draws[k] and phi_draws[k] play the roles of the first and second
    random() values sample_cone would consume for forwards[k].

    Returns:
        (K, 3) unit directions
    """
    forwards = np.asarray(forwards, dtype=np.float64).reshape(-1, 3)
    max_angle = math.radians(max_angle_degrees)
    cos_theta = math.cos(max_angle) + (1.0 - math.cos(max_angle)) * np.asarray(cos_draws)
    sin_theta = np.sqrt(np.maximum(0.0, 1.0 - cos_theta * cos_theta))
    phi = np.asarray(phi_draws) * 2.0 * math.pi
    local = np.stack([sin_theta * np.cos(phi), sin_theta * np.sin(phi), cos_theta], axis=1)

    lengths = np.linalg.norm(forwards, axis=1, keepdims=True)
    usable = np.isfinite(lengths) & (lengths >= EPSILON)
    axes = np.where(usable, forwards / np.where(usable, lengths, 1.0), CANONICAL_AXIS)

    # Quaternion (w, x, y, z) turning +Z onto each axis
    w = axes[:, 2] + 1.0
    quats = np.stack([w, -axes[:, 1], axes[:, 0], np.zeros(len(axes))], axis=1)
    opposite = w < 1e-15
    quats[opposite] = [0.0, 0.0, -1.0, 0.0]
    quats /= np.linalg.norm(quats, axis=1, keepdims=True)

    u = quats[:, 1:]
    uv = np.cross(u, local)
    rotated = local + 2.0 * (quats[:, :1] * uv + np.cross(u, uv))
    norms = np.linalg.norm(rotated, axis=1, keepdims=True)
    return np.where(norms >= EPSILON, rotated / np.where(norms >= EPSILON, norms, 1.0), axes)
