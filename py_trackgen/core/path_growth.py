"""
Path growth algorithm for closed track polylines.

The walk starts at a fixed anchor and extends one point at a time:

- First half: pure random walk, each direction a cone deviation from the
  previous one.
- Second half: the previous direction is blended 80/20 with the direction
  to the target anchor, then cone-sampled with the (smaller) bias angle, so
  the path curls back without sharp corrective turns.

Candidates closer than road_width + buffer to any earlier, non-adjacent
point are rejected and resampled up to a fixed attempt cap. The loop is
closed by a short straight approach toward the start and a repeat of the
start point.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import structlog
from scipy.spatial import cKDTree

from ..utils.random import lerp
from ..utils.vector_math import X_AXIS, normalize, strip_closing_point
from .cone_sampler import sample_cone
from .exceptions import ProximityError

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_APPROACH_LENGTH = 5.0
PREVIOUS_DIRECTION_WEIGHT = 0.8
TARGET_DIRECTION_WEIGHT = 0.2


@dataclass
class GrownPath:
    """Result of one path growth pass."""

    points: np.ndarray  # (N, 3), first == last after closure
    forced_indices: List[int] = field(default_factory=list)  # accepted at the attempt cap
    attempts: int = 0  # candidate draws across all points

    @property
    def forced_count(self) -> int:
        return len(self.forced_indices)


def collides(candidate: np.ndarray, points: List[np.ndarray], threshold: float) -> bool:
    """Check candidate against every point except the last (its predecessor)."""
    if len(points) < 2:
        return False
    earlier = np.asarray(points[:-1])
    distances = np.linalg.norm(earlier - candidate, axis=1)
    return bool(np.any(distances < threshold))


def grow_path(
    prng,
    num_points: int,
    max_angle: float,
    bias_angle: float,
    min_step: float,
    max_step: float,
    road_width: float,
    buffer: float,
    start: Optional[np.ndarray] = None,
    target: Optional[np.ndarray] = None,
    approach_length: float = DEFAULT_APPROACH_LENGTH,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    strict: bool = False,
) -> GrownPath:
    """
    Grow a closed polyline from the start anchor.

    Args:
        prng: Seeded stream exposing random()
        num_points: Number of walked points including the anchor slots
        max_angle: Cone half-angle in degrees for the random-walk half
        bias_angle: Cone half-angle in degrees for the homing half
        min_step: Minimum segment length
        max_step: Maximum segment length
        road_width: Road width used by the proximity threshold
        buffer: Extra clearance added to road_width
        start: Start anchor, defaults to the origin
        target: Anchor the second half steers toward, defaults to start
        approach_length: Length of the straight approach toward start
        max_attempts: Candidate draws per point before the cap fallback
        strict: Raise ProximityError instead of accepting a too-close point

    Returns:
        GrownPath whose points begin and end at the start anchor
    """
    start = np.zeros(3) if start is None else np.asarray(start, dtype=np.float64)
    if target is None:
        target = start.copy()
    else:
        target = np.asarray(target, dtype=np.float64)
    separate_target = not np.allclose(target, start)

    threshold = road_width + buffer
    if separate_target:
        direction = normalize(target - start, fallback=X_AXIS)
        final_count = num_points - 2
    else:
        direction = X_AXIS.copy()
        final_count = num_points - 1

    points = [start.copy()]
    current = start.copy()
    forced_indices: List[int] = []
    attempts = 0

    for i in range(1, final_count):
        homing = i >= final_count / 2
        candidate = current
        for _ in range(max_attempts):
            if homing:
                to_target = normalize(target - current, fallback=direction)
                blended = normalize(
                    direction * PREVIOUS_DIRECTION_WEIGHT + to_target * TARGET_DIRECTION_WEIGHT,
                    fallback=direction,
                )
                new_direction = sample_cone(blended, bias_angle, prng)
            else:
                new_direction = sample_cone(direction, max_angle, prng)
            step = lerp(min_step, max_step, prng.random())
            candidate = current + new_direction * step
            attempts += 1
            if not collides(candidate, points, threshold):
                break
        else:
            if strict:
                raise ProximityError(
                    f"No candidate cleared {threshold:.3f} units after "
                    f"{max_attempts} attempts at point {len(points)}",
                    index=len(points),
                )
            forced_indices.append(len(points))
            logger.debug("Accepted candidate at attempt cap", index=len(points))

        points.append(candidate)
        direction = normalize(candidate - current, fallback=direction)
        current = candidate

    if forced_indices:
        logger.warning(
            "Path growth accepted points closer than the clearance threshold",
            forced_points=len(forced_indices),
            threshold=threshold,
        )

    add_short_approach(points, approach_length)
    return GrownPath(points=np.array(points), forced_indices=forced_indices, attempts=attempts)


def add_short_approach(points: List[np.ndarray], approach_length: float) -> List[np.ndarray]:
    """
    Append a straight approach toward points[0], then points[0] itself.

    The approach never overshoots the start when the last point is already
    closer than approach_length.
    """
    start = np.asarray(points[0], dtype=np.float64)
    last = np.asarray(points[-1], dtype=np.float64)
    offset = start - last
    distance = float(np.linalg.norm(offset))
    length = min(approach_length, distance)
    points.append(last + normalize(offset, fallback=X_AXIS) * length)
    points.append(start.copy())
    return points


def smooth_points(points, window_size: int = 3, closed: bool = False) -> np.ndarray:
    """
    Moving-average smoothing.

    Open mode shrinks the window at the ends; closed mode wraps around so the
    loop has no privileged seam.
    """
    pts = np.asarray(points, dtype=np.float64)
    if window_size <= 1 or len(pts) == 0:
        return pts.copy()

    half = window_size // 2
    n = len(pts)
    if closed:
        offsets = range(-half, half + 1)
        return sum(np.roll(pts, -offset, axis=0) for offset in offsets) / len(offsets)

    smoothed = np.empty_like(pts)
    for i in range(n):
        lo = max(0, i - half)
        hi = min(n, i + half + 1)
        smoothed[i] = pts[lo:hi].mean(axis=0)
    return smoothed


def find_proximity_violations(
    points, min_distance: float, closed: bool = True
) -> List[Tuple[int, int]]:
    """
    Find non-adjacent point pairs closer than min_distance.

    Args:
        points: Polyline, optionally with a repeated closing point
        min_distance: Clearance threshold (road_width + buffer)
        closed: Treat the first and last points as adjacent

    Returns:
        Sorted (i, j) index pairs with i < j
    """
    pts = strip_closing_point(points) if closed else np.asarray(points, dtype=np.float64)
    n = len(pts)
    if n < 3:
        return []

    tree = cKDTree(pts)
    pairs = tree.query_pairs(r=min_distance, output_type="ndarray")
    violations = []
    for i, j in pairs:
        i, j = int(min(i, j)), int(max(i, j))
        if j - i == 1 or (closed and i == 0 and j == n - 1):
            continue
        if np.linalg.norm(pts[i] - pts[j]) < min_distance:
            violations.append((i, j))
    return sorted(violations)
