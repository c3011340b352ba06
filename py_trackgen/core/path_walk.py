"""
Angle-walk path generation.

An open walk accumulates a heading angle in the XY plane and a separate
pitch angle, each nudged by a uniform random amount every step. A closing
path then homes in on the start with a steering bias that grows as the
distance shrinks, and the last point is placed one step out from the start
roughly opposite the opening direction so the loop joins smoothly.
"""

import math
from typing import List

import numpy as np
import structlog

from ..utils.vector_math import Z_AXIS, lerp_vectors, normalize
from .cone_sampler import sample_cone

logger = structlog.get_logger()

DEFAULT_MAX_CLOSING_STEPS = 1000
BASE_CLOSING_BIAS = 0.1
DISTANCE_CLOSING_BIAS = 0.5


def walk_open_path(prng, num_points: int, max_angle: float, distance_step: float) -> List[np.ndarray]:
    """Random heading walk of num_points points starting at the origin."""
    points = [np.zeros(3)]
    angle_xy = 0.0
    angle_z = 0.0
    for _ in range(1, num_points):
        angle_xy += prng.uniform(-max_angle, max_angle)
        angle_z += prng.uniform(-max_angle, max_angle)
        rad_xy = math.radians(angle_xy)
        rad_z = math.radians(angle_z)
        step = np.array([math.cos(rad_xy), math.sin(rad_xy), math.sin(rad_z)]) * distance_step
        points.append(points[-1] + step)
    return points


def closing_path(
    prng,
    last_point: np.ndarray,
    start_point: np.ndarray,
    penultimate_point: np.ndarray,
    open_direction: np.ndarray,
    distance_step: float,
    max_angle: float,
    max_steps: int = DEFAULT_MAX_CLOSING_STEPS,
) -> List[np.ndarray]:
    """
    Steer from last_point back toward start_point.

    Args:
        prng: Seeded stream
        last_point: End of the open walk
        start_point: Point the loop returns to
        penultimate_point: Point before last_point, fixes the initial heading
        open_direction: Direction of the first step of the walk
        distance_step: Step length
        max_angle: Cone half-angle in degrees
        max_steps: Upper bound on closing steps

    Returns:
        Points to append after last_point (start_point itself not included)
    """
    current = np.asarray(last_point, dtype=np.float64).copy()
    target = np.asarray(start_point, dtype=np.float64)
    forward = normalize(current - np.asarray(penultimate_point, dtype=np.float64),
                        fallback=normalize(target - current))
    initial_distance = float(np.linalg.norm(current - target))

    path = []
    steps = 0
    while np.linalg.norm(current - target) > distance_step and steps < max_steps:
        distance = float(np.linalg.norm(current - target))
        bias = BASE_CLOSING_BIAS + DISTANCE_CLOSING_BIAS * (1.0 - min(distance / initial_distance, 1.0))
        to_target = normalize(target - current, fallback=forward)
        forward = normalize(lerp_vectors(forward, to_target, bias), fallback=to_target)

        candidate = current + sample_cone(forward, max_angle, prng) * distance_step
        if np.linalg.norm(candidate - target) < distance_step:
            final_direction = sample_cone(-open_direction, max_angle, prng)
            path.append(target + final_direction * distance_step)
            break

        current = candidate
        path.append(current.copy())
        steps += 1

    if steps >= max_steps:
        logger.warning("Closing path hit its step limit", max_steps=max_steps)
    return path


def walk_path(
    prng,
    num_points: int,
    max_angle: float,
    distance_step: float,
    max_closing_steps: int = DEFAULT_MAX_CLOSING_STEPS,
) -> np.ndarray:
    """
    Angle walk plus closing path, with the start point repeated at the end.

    Returns:
        (N, 3) polyline with first == last
    """
    points = walk_open_path(prng, num_points, max_angle, distance_step)

    if len(points) >= 2:
        open_direction = normalize(points[1] - points[0], fallback=Z_AXIS)
        points.extend(closing_path(
            prng,
            points[-1],
            points[0],
            points[-2],
            open_direction,
            distance_step,
            max_angle,
            max_steps=max_closing_steps,
        ))

    points.append(points[0].copy())
    logger.debug("Angle walk generated", points=len(points))
    return np.array(points)
