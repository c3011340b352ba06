"""Camera placement that frames a generated track."""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .exceptions import TrackParameterError

DEFAULT_MARGIN = 1.2
DEFAULT_MIN_FAR = 1500.0
DEFAULT_FAR_MULTIPLIER = 3.0


@dataclass
class CameraFit:
    position: np.ndarray
    target: np.ndarray
    distance: float
    near: float
    far: float
    fov: float  # vertical field of view, degrees

    def to_dict(self) -> dict:
        return {
            "position": self.position.tolist(),
            "target": self.target.tolist(),
            "distance": self.distance,
            "near": self.near,
            "far": self.far,
            "fov": self.fov,
        }


def bounding_sphere(positions) -> Tuple[np.ndarray, float]:
    """
    Sphere around the axis-aligned bounding box of positions.

    Returns:
        (center, radius) with center at the box centre and radius half the
        box diagonal
    """
    pts = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    if len(pts) == 0:
        raise TrackParameterError("Cannot fit a bounding sphere to zero positions")
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    return (lo + hi) * 0.5, float(np.linalg.norm(hi - lo) * 0.5)


def fit_camera(
    center,
    radius: float,
    fov_degrees: float,
    margin: float = DEFAULT_MARGIN,
    min_far: float = DEFAULT_MIN_FAR,
    far_multiplier: float = DEFAULT_FAR_MULTIPLIER,
    near: float = 0.1,
) -> CameraFit:
    """
    Place a camera on +Z above center so the whole sphere fits the view.

    Args:
        center: Sphere centre
        radius: Sphere radius
        fov_degrees: Vertical field of view, strictly between 0 and 180
        margin: Extra room around the sphere
        min_far: Lower bound for the far plane
        far_multiplier: Far plane as a multiple of the camera distance
        near: Near plane

    Returns:
        CameraFit looking at center
    """
    if not 0 < fov_degrees < 180:
        raise TrackParameterError(f"fov must be between 0 and 180 degrees, got {fov_degrees}")
    if radius < 0 or not math.isfinite(radius):
        raise TrackParameterError(f"radius must be non-negative, got {radius}")

    center = np.asarray(center, dtype=np.float64)
    distance = radius * margin / math.sin(math.radians(fov_degrees) / 2.0)
    far = max(distance * far_multiplier, min_far)
    return CameraFit(
        position=center + np.array([0.0, 0.0, distance]),
        target=center.copy(),
        distance=distance,
        near=near,
        far=far,
        fov=fov_degrees,
    )
