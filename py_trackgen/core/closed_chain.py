"""
Closed-loop chain solver.

Builds a loop of equal-length steps whose vectors sum to zero. The first
step is fixed along +X, each following step is cone-sampled from the
previous one, and the closing step is whatever brings the chain back to the
origin. Chains whose closing step has the wrong length or turns too sharply
are thrown away whole and regenerated; nothing is repaired after the fact.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from ..utils.random import random_values
from ..utils.vector_math import EPSILON, X_AXIS, normalize
from .cone_sampler import sample_cone_batch
from .exceptions import TrackParameterError

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 10000
DEFAULT_BATCH_SIZE = 1024


@dataclass
class ChainResult:
    points: Optional[np.ndarray]  # (count, 3) or None when the budget ran out
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.points is not None


def _validate(count: int, step_distance: float, max_angle_deg: float, tolerance: float, max_attempts: int):
    if count < 3:
        raise TrackParameterError(f"Closed chain needs at least 3 points, got {count}")
    if not math.isfinite(step_distance) or step_distance <= 0:
        raise TrackParameterError(f"step_distance must be positive, got {step_distance}")
    if not math.isfinite(max_angle_deg) or max_angle_deg < 0:
        raise TrackParameterError(f"max_angle_deg must be non-negative, got {max_angle_deg}")
    if not math.isfinite(tolerance) or tolerance < 0:
        raise TrackParameterError(f"tolerance must be non-negative, got {tolerance}")
    if max_attempts < 1:
        raise TrackParameterError(f"max_attempts must be at least 1, got {max_attempts}")


def _angles(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Row-wise angle_between for (K, 3) arrays."""
    dots = np.einsum("ij,ij->i", a, b)
    denominator = np.sqrt(np.einsum("ij,ij->i", a, a) * np.einsum("ij,ij->i", b, b))
    safe = denominator >= EPSILON
    cosines = np.clip(dots / np.where(safe, denominator, 1.0), -1.0, 1.0)
    return np.where(safe, np.arccos(cosines), 0.0)


def solve_closed_chain(
    prng,
    count: int,
    step_distance: float,
    max_angle_deg: float,
    tolerance: float,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ChainResult:
    """
    Rejection-sample a closed chain of count equal steps.

    Attempts are evaluated batch_size at a time. Attempt k always uses draws
    k * 2 * (count - 2) onward, two per sampled step in step order, so the
    accepted chain and attempt number do not depend on batch_size. The
    stream is advanced a whole batch at a time.

    Args:
        prng: Seeded stream exposing random() (and optionally random_block())
        count: Number of points (and steps) in the loop
        step_distance: Length of every step
        max_angle_deg: Largest allowed turn between consecutive steps,
            including the turn from the closing step back to the first
        tolerance: Allowed deviation of the closing step length
        max_attempts: Whole-chain attempts before giving up
        batch_size: Attempts sampled together

    Returns:
        ChainResult with the prefix-summed points (origin first, no repeated
        closing point), or points=None after max_attempts
    """
    _validate(count, step_distance, max_angle_deg, tolerance, max_attempts)
    if batch_size < 1:
        raise TrackParameterError(f"batch_size must be at least 1, got {batch_size}")
    max_angle = math.radians(max_angle_deg)
    first_step = X_AXIS * step_distance
    sampled = count - 2

    done = 0
    while done < max_attempts:
        batch = min(batch_size, max_attempts - done)
        draws = random_values(prng, batch * sampled * 2).reshape(batch, sampled, 2)

        steps = np.empty((batch, count - 1, 3))
        steps[:, 0] = first_step
        for s in range(1, count - 1):
            directions = sample_cone_batch(steps[:, s - 1], max_angle_deg, draws[:, s - 1, 0], draws[:, s - 1, 1])
            steps[:, s] = directions * step_distance

        closing = -steps.sum(axis=1)
        closing_length = np.linalg.norm(closing, axis=1)
        passed = np.abs(closing_length - step_distance) <= tolerance
        passed &= _angles(steps[:, -1], closing) <= max_angle
        passed &= _angles(closing, np.broadcast_to(first_step, closing.shape)) <= max_angle

        for k in np.flatnonzero(passed):
            chain = np.vstack([steps[k], normalize(closing[k], fallback=X_AXIS) * step_distance])
            positions = np.vstack([np.zeros(3), np.cumsum(chain, axis=0)])
            if np.linalg.norm(positions[-1] - positions[0]) > tolerance:
                continue

            attempt = done + int(k) + 1
            logger.debug("Closed chain accepted", count=count, attempts=attempt)
            return ChainResult(points=positions[:-1], attempts=attempt)

        done += batch

    logger.info("Closed chain budget exhausted", count=count, attempts=max_attempts)
    return ChainResult(points=None, attempts=max_attempts)


def generate_closed_chain(
    prng,
    count: int,
    step_distance: float,
    max_angle_deg: float,
    tolerance: float,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Optional[np.ndarray]:
    """Closed chain points, or None when no chain closed within max_attempts."""
    return solve_closed_chain(prng, count, step_distance, max_angle_deg, tolerance, max_attempts).points
