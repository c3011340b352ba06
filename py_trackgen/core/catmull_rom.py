"""
Closed Catmull-Rom curve and parallel-transported frames.

The curve is periodic over t in [0, 1]: with n control points, segment i
covers t in [i/n, (i+1)/n) and interpolates points[i] -> points[i+1] using
points[i-1] and points[i+2] as neighbours, all indices wrapping. Centripetal
and chordal variants use non-uniform knot spacing, which avoids cusps and
self-loops on unevenly spaced control points.

Arc-length parametrization (u) is served from a cumulative chord-length
table so callers can sample evenly along the track regardless of how the
control points are spaced.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from ..utils.vector_math import (
    EPSILON,
    X_AXIS,
    normalize,
    rotate_about_axis,
    smallest_component_axis,
    strip_closing_point,
)
from .exceptions import TrackParameterError

logger = structlog.get_logger()

CURVE_TYPES = ("centripetal", "chordal", "catmullrom")
MIN_CONTROL_POINTS = 4
MIN_KNOT_SPACING = 1e-4
DEFAULT_ARC_LENGTH_DIVISIONS = 200


@dataclass
class FrenetFrames:
    """Per-sample orthonormal frames along a closed curve."""

    tangents: np.ndarray  # (S + 1, 3)
    normals: np.ndarray  # (S + 1, 3)
    binormals: np.ndarray  # (S + 1, 3)
    degenerate: np.ndarray  # (S + 1,) bool, previous frame carried forward

    @property
    def degenerate_count(self) -> int:
        return int(np.count_nonzero(self.degenerate))

    def __len__(self) -> int:
        return len(self.tangents)


class ClosedCatmullRomCurve:
    """
    Closed Catmull-Rom spline through a loop of control points.

    A trailing control point equal to the first is dropped; the loop is
    closed topologically, not by a repeated coordinate.
    """

    def __init__(
        self,
        points,
        curve_type: str = "centripetal",
        tension: float = 0.5,
        arc_length_divisions: int = DEFAULT_ARC_LENGTH_DIVISIONS,
    ):
        pts = strip_closing_point(points)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise TrackParameterError(f"Control points must have shape (N, 3), got {pts.shape}")
        if len(pts) < MIN_CONTROL_POINTS:
            raise TrackParameterError(
                f"Closed spline needs at least {MIN_CONTROL_POINTS} distinct control points, got {len(pts)}"
            )
        if not np.all(np.isfinite(pts)):
            raise TrackParameterError("Control points must be finite")
        if curve_type not in CURVE_TYPES:
            raise TrackParameterError(f"Unknown curve type '{curve_type}', expected one of {CURVE_TYPES}")
        if arc_length_divisions < 1:
            raise TrackParameterError("arc_length_divisions must be at least 1")

        self.points = pts
        self.curve_type = curve_type
        self.tension = tension
        self.arc_length_divisions = arc_length_divisions
        self._coefficients = self._build_coefficients()
        self._lengths: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.points)

    def _build_coefficients(self) -> np.ndarray:
        """Cubic coefficients per segment, shape (n, 4, 3)."""
        p1 = self.points
        p0 = np.roll(p1, 1, axis=0)
        p2 = np.roll(p1, -1, axis=0)
        p3 = np.roll(p1, -2, axis=0)

        if self.curve_type == "catmullrom":
            t1 = self.tension * (p2 - p0)
            t2 = self.tension * (p3 - p1)
        else:
            power = 0.25 if self.curve_type == "centripetal" else 0.5
            dt0 = np.sum((p1 - p0) ** 2, axis=1) ** power
            dt1 = np.sum((p2 - p1) ** 2, axis=1) ** power
            dt2 = np.sum((p3 - p2) ** 2, axis=1) ** power

            # repeated control points
            dt1 = np.where(dt1 < MIN_KNOT_SPACING, 1.0, dt1)
            dt0 = np.where(dt0 < MIN_KNOT_SPACING, dt1, dt0)
            dt2 = np.where(dt2 < MIN_KNOT_SPACING, dt1, dt2)
            dt0, dt1, dt2 = dt0[:, None], dt1[:, None], dt2[:, None]

            t1 = ((p1 - p0) / dt0 - (p2 - p0) / (dt0 + dt1) + (p2 - p1) / dt1) * dt1
            t2 = ((p2 - p1) / dt1 - (p3 - p1) / (dt1 + dt2) + (p3 - p2) / dt2) * dt1

        c0 = p1
        c1 = t1
        c2 = -3.0 * p1 + 3.0 * p2 - 2.0 * t1 - t2
        c3 = 2.0 * p1 - 2.0 * p2 + t1 + t2
        return np.stack([c0, c1, c2, c3], axis=1)

    def _locate(self, t):
        t_arr = np.asarray(t, dtype=np.float64)
        scalar = t_arr.ndim == 0
        t_arr = np.atleast_1d(t_arr)
        n = len(self.points)
        p = t_arr * n
        segment = np.floor(p)
        weight = (p - segment)[:, None]
        segment = segment.astype(np.int64) % n
        return scalar, self._coefficients[segment], weight

    def get_point(self, t):
        """Curve position at parameter t (scalar or array), periodic in t."""
        scalar, c, w = self._locate(t)
        out = c[:, 0] + w * (c[:, 1] + w * (c[:, 2] + w * c[:, 3]))
        return out[0] if scalar else out

    def get_derivative(self, t):
        """dP/dt at parameter t."""
        scalar, c, w = self._locate(t)
        out = (c[:, 1] + w * (2.0 * c[:, 2] + w * 3.0 * c[:, 3])) * len(self.points)
        return out[0] if scalar else out

    def get_points(self, divisions: int = 5) -> np.ndarray:
        """divisions + 1 points at uniform t; the last equals the first."""
        return self.get_point(np.linspace(0.0, 1.0, divisions + 1))

    def get_lengths(self, divisions: Optional[int] = None) -> np.ndarray:
        """Cumulative chord length at uniform t, divisions + 1 entries."""
        if divisions is None:
            divisions = self.arc_length_divisions
        if divisions == self.arc_length_divisions and self._lengths is not None:
            return self._lengths

        pts = self.get_points(divisions)
        lengths = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(pts, axis=0), axis=1))])
        if divisions == self.arc_length_divisions:
            self._lengths = lengths
        return lengths

    def get_length(self) -> float:
        return float(self.get_lengths()[-1])

    def get_u_to_t_mapping(self, u):
        """Map arc-length fraction u in [0, 1] to curve parameter t."""
        lengths = self.get_lengths()
        total = lengths[-1]
        if total <= EPSILON:
            return np.asarray(u, dtype=np.float64)
        ts = np.linspace(0.0, 1.0, len(lengths))
        return np.interp(np.asarray(u, dtype=np.float64) * total, lengths, ts)

    def get_point_at(self, u):
        return self.get_point(self.get_u_to_t_mapping(u))

    def get_spaced_points(self, divisions: int = 5) -> np.ndarray:
        """divisions + 1 points evenly spaced by arc length."""
        return self.get_point_at(np.linspace(0.0, 1.0, divisions + 1))

    def get_tangent(self, t):
        """Unit tangent at t; a vanishing derivative falls back to +X."""
        d = np.atleast_2d(self.get_derivative(t))
        unit = np.array([normalize(row, fallback=X_AXIS) for row in d])
        return unit[0] if np.ndim(t) == 0 else unit

    def get_tangent_at(self, u):
        return self.get_tangent(self.get_u_to_t_mapping(u))

    def compute_frenet_frames(self, segments: int) -> FrenetFrames:
        """
        Parallel-transported frames at segments + 1 arc-length-uniform samples.

        The first normal is seeded from the tangent's smallest component
        axis; every later frame is the previous one rotated by the turn
        between consecutive tangents. Where that turn has no defined axis
        (parallel tangents or a vanishing derivative) the previous frame is
        carried forward and the sample is flagged. Residual twist around the
        loop is spread evenly so the last frame lines up with the first.

        Args:
            segments: Number of intervals; frames are returned for
                segments + 1 samples, the last one at the closure

        Returns:
            FrenetFrames with unit, mutually orthogonal vectors
        """
        if segments < 1:
            raise TrackParameterError(f"segments must be at least 1, got {segments}")

        derivatives = self.get_derivative(self.get_u_to_t_mapping(np.linspace(0.0, 1.0, segments + 1)))
        count = segments + 1
        tangents = np.empty((count, 3))
        normals = np.empty((count, 3))
        binormals = np.empty((count, 3))
        degenerate = np.zeros(count, dtype=bool)

        norms = np.linalg.norm(derivatives, axis=1)
        valid = np.isfinite(norms) & (norms > EPSILON)
        fallback = derivatives[valid][0] / norms[valid][0] if np.any(valid) else X_AXIS
        previous = fallback
        for i in range(count):
            if valid[i]:
                tangents[i] = derivatives[i] / norms[i]
            else:
                tangents[i] = previous
                degenerate[i] = True
            previous = tangents[i]

        axis = smallest_component_axis(tangents[0])
        seed = normalize(np.cross(tangents[0], axis))
        normals[0] = np.cross(tangents[0], seed)
        binormals[0] = np.cross(tangents[0], normals[0])

        for i in range(1, count):
            normal = normals[i - 1]
            turn_axis = np.cross(tangents[i - 1], tangents[i])
            turn_length = float(np.linalg.norm(turn_axis))
            if turn_length > EPSILON:
                theta = math.acos(max(-1.0, min(1.0, float(np.dot(tangents[i - 1], tangents[i])))))
                normal = rotate_about_axis(normal, turn_axis / turn_length, theta)
            else:
                degenerate[i] = True
            # re-orthogonalize against the new tangent
            normal = normal - tangents[i] * float(np.dot(tangents[i], normal))
            normals[i] = normalize(normal, fallback=normals[i - 1])
            binormals[i] = np.cross(tangents[i], normals[i])

        theta = math.acos(max(-1.0, min(1.0, float(np.dot(normals[0], normals[-1]))))) / segments
        if float(np.dot(tangents[0], np.cross(normals[0], normals[-1]))) > 0:
            theta = -theta
        for i in range(1, count):
            normals[i] = normalize(rotate_about_axis(normals[i], tangents[i], theta * i), fallback=normals[i])
            binormals[i] = np.cross(tangents[i], normals[i])

        if degenerate.any():
            logger.debug("Carried frames forward", degenerate=int(degenerate.sum()), samples=count)

        return FrenetFrames(tangents=tangents, normals=normals, binormals=binormals, degenerate=degenerate)
