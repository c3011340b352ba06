"""
Ribbon (road) mesh extrusion along a closed curve.

Each arc-length sample gets a banked cross-section: the lateral axis is the
frame binormal rolled about the tangent by the banking angle, and the up
axis is tangent x lateral. Consecutive cross-sections are joined by quads
split into two outward-facing triangles.

Plain cross-section (4 vertices per sample):

    TL ---- TR      surface, +-width/2 along the lateral axis
    |        |
    BL ---- BR      thickness below along the up axis

Multi-strip cross-section (6 vertices per sample): outer-left, inner-left,
inner-right, outer-right on the surface (shoulder | road | shoulder), and
bottom-left, bottom-right under the outer edges.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np
import structlog

from ..utils.vector_math import angle_between, rotate_about_axis
from .catmull_rom import ClosedCatmullRomCurve
from .exceptions import TrackGenerationError, TrackParameterError

logger = structlog.get_logger()

# Faces per segment, as corners on the near (a) and far (b) cross-section
PLAIN_FACES = {
    "road": [("a0", "a1", "b1"), ("a0", "b1", "b0")],
    "walls": [
        ("a2", "b2", "b3"), ("a2", "b3", "a3"),  # bottom
        ("a0", "b0", "b2"), ("a0", "b2", "a2"),  # left
        ("a1", "a3", "b3"), ("a1", "b3", "b1"),  # right
    ],
}

MULTI_STRIP_FACES = {
    "road": [("a1", "a2", "b2"), ("a1", "b2", "b1")],
    "shoulders": [
        ("a0", "a1", "b1"), ("a0", "b1", "b0"),
        ("a2", "a3", "b3"), ("a2", "b3", "b2"),
    ],
    "walls": [
        ("a4", "b4", "b5"), ("a4", "b5", "a5"),  # bottom
        ("a0", "b0", "b4"), ("a0", "b4", "a4"),  # left
        ("a3", "a5", "b5"), ("a3", "b5", "b3"),  # right
    ],
}


@dataclass
class RibbonOptions:
    """Extrusion settings for one ribbon."""

    segments: int = 500
    width: float = 12.0
    thickness: float = 1.0
    banking_factor: float = 0.4  # degrees of roll per radian of turn
    max_banking_angle: float = 25.0  # degrees
    texture_repeat: float = 10.0  # world units per texture repeat
    finish_region_length: float = 5.0
    finish_color_multiplier: float = 1000.0
    shoulder_width: float = 0.0  # 0 selects the plain cross-section
    weld_seam: bool = False

    def validate(self) -> None:
        if self.segments < 3:
            raise TrackParameterError(f"segments must be at least 3, got {self.segments}")
        for name in ("width", "thickness", "texture_repeat"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise TrackParameterError(f"{name} must be positive, got {value}")
        for name in ("max_banking_angle", "finish_region_length", "shoulder_width"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise TrackParameterError(f"{name} must be non-negative, got {value}")
        if not math.isfinite(self.banking_factor):
            raise TrackParameterError("banking_factor must be finite")

    @property
    def vertices_per_sample(self) -> int:
        return 6 if self.shoulder_width > 0 else 4


@dataclass
class RibbonMesh:
    """Raw buffers of an extruded ribbon plus per-sample metadata."""

    positions: np.ndarray  # (V, 3)
    uvs: np.ndarray  # (V, 2)
    colors: np.ndarray  # (V, 3)
    indices: np.ndarray  # (F, 3) int32
    banking: np.ndarray  # (segments + 1,) radians
    distances: np.ndarray  # (segments + 1,) cumulative arc length
    finish_mask: np.ndarray  # (segments + 1,) bool
    groups: Dict[str, Tuple[int, int]] = field(default_factory=dict)  # name -> (first face, face count)
    total_length: float = 0.0
    segments: int = 0
    vertices_per_sample: int = 4
    welded: bool = False
    degenerate_frames: int = 0

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def face_count(self) -> int:
        return len(self.indices)

    @property
    def sample_count(self) -> int:
        return self.segments if self.welded else self.segments + 1

    def flat_buffers(self) -> Dict[str, List[float]]:
        """Flattened buffers as plain lists, ready to upload or serialize."""
        return {
            "positions": self.positions.ravel().tolist(),
            "uvs": self.uvs.ravel().tolist(),
            "colors": self.colors.ravel().tolist(),
            "indices": self.indices.ravel().tolist(),
        }

    def face_normals(self) -> np.ndarray:
        """Unit normal per triangle (zero for degenerate triangles)."""
        tri = self.positions[self.indices]
        normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        return np.divide(normals, lengths, out=np.zeros_like(normals), where=lengths > 0)

    def group_faces(self, name: str) -> np.ndarray:
        start, count = self.groups[name]
        return self.indices[start:start + count]

    def validate(self) -> None:
        """Raise TrackGenerationError if the buffers are inconsistent."""
        expected = self.vertices_per_sample * self.sample_count
        if self.vertex_count != expected:
            raise TrackGenerationError(f"Expected {expected} vertices, found {self.vertex_count}")
        if len(self.uvs) != self.vertex_count or len(self.colors) != self.vertex_count:
            raise TrackGenerationError("Attribute buffers do not match the vertex count")
        if not np.all(np.isfinite(self.positions)):
            raise TrackGenerationError("Mesh contains non-finite positions")
        if self.indices.size and (self.indices.min() < 0 or self.indices.max() >= self.vertex_count):
            raise TrackGenerationError("Index buffer references missing vertices")


def banking_angle(
    tangent: np.ndarray,
    next_tangent: np.ndarray,
    up: np.ndarray,
    banking_factor: float,
    max_banking_angle: float,
) -> float:
    """
    Roll angle in radians for one sample.

    The turn between consecutive tangents is taken in radians and signed by
    turn direction around up. turn * banking_factor is read as degrees,
    clamped to max_banking_angle and converted, and the sign is flipped so
    the road rolls into the turn.
    """
    turn = angle_between(tangent, next_tangent)
    if float(np.dot(np.cross(tangent, next_tangent), up)) < 0:
        turn = -turn
    bank = max(-max_banking_angle, min(max_banking_angle, turn * banking_factor))
    return -math.radians(bank)


def _cross_section(center, lateral, up, options: RibbonOptions) -> np.ndarray:
    half = options.width * 0.5
    if options.shoulder_width > 0:
        outer = half + options.shoulder_width
        outer_left = center + lateral * outer
        outer_right = center - lateral * outer
        return np.array([
            outer_left,
            center + lateral * half,
            center - lateral * half,
            outer_right,
            outer_left - up * options.thickness,
            outer_right - up * options.thickness,
        ])
    top_left = center + lateral * half
    top_right = center - lateral * half
    return np.array([
        top_left,
        top_right,
        top_left - up * options.thickness,
        top_right - up * options.thickness,
    ])


def _lateral_fractions(options: RibbonOptions) -> np.ndarray:
    if options.shoulder_width > 0:
        full = options.width + 2.0 * options.shoulder_width
        inner_left = options.shoulder_width / full
        return np.array([0.0, inner_left, 1.0 - inner_left, 1.0, 0.0, 1.0])
    return np.array([0.0, 1.0, 0.0, 1.0])


def _strip_indices(starts: np.ndarray, ends: np.ndarray, pattern) -> np.ndarray:
    """Triangles for every segment, segment-major."""
    triangles = []
    for corners in pattern:
        columns = [(ends if corner[0] == "b" else starts) + int(corner[1:]) for corner in corners]
        triangles.append(np.stack(columns, axis=1))
    return np.stack(triangles, axis=1).reshape(-1, 3)


def extrude_ribbon(curve: ClosedCatmullRomCurve, options: RibbonOptions = None) -> RibbonMesh:
    """
    Extrude a closed ribbon along curve.

    By default the closing triangles use a seam sample at index segments,
    a positional copy of sample 0 that keeps u continuous to the full
    length. Pass weld_seam=True for watertight geometry that indexes
    sample 0 itself.

    Args:
        curve: Closed curve to follow
        options: Extrusion settings, defaults to RibbonOptions()

    Returns:
        RibbonMesh whose last segment joins back to sample 0, through a seam
        sample at identical positions or, with weld_seam, directly
    """
    options = options or RibbonOptions()
    options.validate()
    segments = options.segments
    per_sample = options.vertices_per_sample

    frames = curve.compute_frenet_frames(segments)
    centers = curve.get_spaced_points(segments)
    centers[segments] = centers[0]
    distances = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(centers, axis=0), axis=1))])
    total_length = float(distances[-1])

    banking = np.empty(segments + 1)
    sections = np.empty((segments + 1, per_sample, 3))
    for i in range(segments):
        tangent = frames.tangents[i]
        up = np.cross(tangent, frames.binormals[i])
        banking[i] = banking_angle(
            tangent, frames.tangents[i + 1], up, options.banking_factor, options.max_banking_angle
        )
        lateral = rotate_about_axis(frames.binormals[i], tangent, banking[i])
        sections[i] = _cross_section(centers[i], lateral, np.cross(tangent, lateral), options)
    banking[segments] = banking[0]
    sections[segments] = sections[0]

    finish_mask = distances >= total_length - options.finish_region_length
    sample_colors = np.where(finish_mask, options.finish_color_multiplier, 1.0)

    sample_count = segments if options.weld_seam else segments + 1
    positions = sections[:sample_count].reshape(-1, 3)

    uvs = np.empty((sample_count, per_sample, 2))
    uvs[:, :, 0] = (distances[:sample_count] / options.texture_repeat)[:, None]
    uvs[:, :, 1] = _lateral_fractions(options)[None, :]
    uvs = uvs.reshape(-1, 2)

    colors = np.repeat(sample_colors[:sample_count], per_sample)[:, None] * np.ones((1, 3))

    starts = np.arange(segments) * per_sample
    ends = np.arange(1, segments + 1) * per_sample
    if options.weld_seam:
        ends = (np.arange(1, segments + 1) % segments) * per_sample

    patterns = MULTI_STRIP_FACES if options.shoulder_width > 0 else PLAIN_FACES
    face_blocks = []
    groups = {}
    first_face = 0
    for name, pattern in patterns.items():
        block = _strip_indices(starts, ends, pattern)
        groups[name] = (first_face, len(block))
        first_face += len(block)
        face_blocks.append(block)
    indices = np.concatenate(face_blocks).astype(np.int32)

    mesh = RibbonMesh(
        positions=positions,
        uvs=uvs,
        colors=colors,
        indices=indices,
        banking=banking,
        distances=distances,
        finish_mask=finish_mask,
        groups=groups,
        total_length=total_length,
        segments=segments,
        vertices_per_sample=per_sample,
        welded=options.weld_seam,
        degenerate_frames=frames.degenerate_count,
    )
    logger.debug(
        "Ribbon extruded",
        segments=segments,
        vertices=mesh.vertex_count,
        faces=mesh.face_count,
        length=round(total_length, 3),
    )
    return mesh
