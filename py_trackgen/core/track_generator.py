"""
Track generation pipeline.

parameters -> seeded stream -> path strategy -> polyline -> closed spline
-> ribbon mesh -> camera fit. Every call builds its own Mulberry32 stream
from the seed string, so identical parameters always give identical tracks.
"""

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np
import structlog

from ..utils.random import create_prng
from ..utils.vector_math import strip_closing_point
from .camera_fit import CameraFit, bounding_sphere, fit_camera
from .catmull_rom import ClosedCatmullRomCurve
from .closed_chain import solve_closed_chain
from .exceptions import ClosureError, TrackParameterError
from .path_growth import find_proximity_violations, grow_path, smooth_points
from .path_walk import walk_path
from .ribbon_mesh import RibbonMesh, RibbonOptions, extrude_ribbon

logger = structlog.get_logger()


class PathStrategy(str, Enum):
    GROWTH = "growth"
    WALK = "walk"
    CHAIN = "chain"


@dataclass(frozen=True)
class TrackParameters:
    """Immutable configuration for one generate_track call."""

    seed: str = "hanna"
    strategy: PathStrategy = PathStrategy.GROWTH

    # Path shape
    num_points: int = 50
    max_angle: float = 60.0  # degrees
    bias_angle: float = 40.0  # degrees, homing half of path growth
    distance_step: float = 10.0
    min_step: Optional[float] = None  # defaults to distance_step
    max_step: Optional[float] = None  # defaults to distance_step
    road_width: float = 12.0
    proximity_buffer: float = 5.0
    approach_length: float = 5.0
    max_proximity_attempts: int = 10
    strict_proximity: bool = False
    smoothing_window: int = 1  # 1 disables smoothing

    # Closed chain
    checkpoint_count: int = 15
    chain_step: float = 100.0
    chain_max_angle: float = 100.0  # degrees
    chain_tolerance: float = 0.1
    chain_max_attempts: int = 10000
    chain_max_retries: int = 20

    # Ribbon
    segments: int = 500
    thickness: float = 1.0
    banking_factor: float = 0.4  # degrees of roll per radian of turn
    max_banking_angle: float = 25.0  # degrees
    texture_repeat: float = 10.0
    finish_region_length: float = 5.0
    shoulder_width: float = 0.0
    weld_seam: bool = False

    # Camera
    fov: float = 75.0
    camera_margin: float = 1.2

    def __post_init__(self):
        try:
            strategy = PathStrategy(self.strategy)
        except ValueError:
            choices = ", ".join(s.value for s in PathStrategy)
            raise TrackParameterError(f"Unknown strategy '{self.strategy}', expected one of: {choices}")
        object.__setattr__(self, "strategy", strategy)
        object.__setattr__(self, "seed", str(self.seed))

    @property
    def resolved_min_step(self) -> float:
        return self.distance_step if self.min_step is None else self.min_step

    @property
    def resolved_max_step(self) -> float:
        return self.distance_step if self.max_step is None else self.max_step

    def validate(self) -> None:
        """Raise TrackParameterError before any geometry is built."""
        positive = {
            "distance_step": self.distance_step,
            "min_step": self.resolved_min_step,
            "max_step": self.resolved_max_step,
            "road_width": self.road_width,
            "thickness": self.thickness,
            "texture_repeat": self.texture_repeat,
            "chain_step": self.chain_step,
            "camera_margin": self.camera_margin,
        }
        for name, value in positive.items():
            if not math.isfinite(value) or value <= 0:
                raise TrackParameterError(f"{name} must be a positive finite number, got {value}")

        non_negative = {
            "max_angle": self.max_angle,
            "bias_angle": self.bias_angle,
            "chain_max_angle": self.chain_max_angle,
            "max_banking_angle": self.max_banking_angle,
            "proximity_buffer": self.proximity_buffer,
            "approach_length": self.approach_length,
            "chain_tolerance": self.chain_tolerance,
            "finish_region_length": self.finish_region_length,
            "shoulder_width": self.shoulder_width,
        }
        for name, value in non_negative.items():
            if not math.isfinite(value) or value < 0:
                raise TrackParameterError(f"{name} must be non-negative, got {value}")

        if not math.isfinite(self.banking_factor):
            raise TrackParameterError("banking_factor must be finite")
        if self.num_points < 4:
            raise TrackParameterError(f"num_points must be at least 4 for a closed track, got {self.num_points}")
        if self.checkpoint_count < 4:
            raise TrackParameterError(f"checkpoint_count must be at least 4, got {self.checkpoint_count}")
        if self.segments < 3:
            raise TrackParameterError(f"segments must be at least 3, got {self.segments}")
        if self.resolved_min_step > self.resolved_max_step:
            raise TrackParameterError(
                f"min_step ({self.resolved_min_step}) exceeds max_step ({self.resolved_max_step})"
            )
        if not 0 < self.fov < 180:
            raise TrackParameterError(f"fov must be between 0 and 180 degrees, got {self.fov}")
        for name in ("max_proximity_attempts", "chain_max_attempts", "chain_max_retries", "smoothing_window"):
            if getattr(self, name) < 1:
                raise TrackParameterError(f"{name} must be at least 1, got {getattr(self, name)}")

    def ribbon_options(self) -> RibbonOptions:
        return RibbonOptions(
            segments=self.segments,
            width=self.road_width,
            thickness=self.thickness,
            banking_factor=self.banking_factor,
            max_banking_angle=self.max_banking_angle,
            texture_repeat=self.texture_repeat,
            finish_region_length=self.finish_region_length,
            shoulder_width=self.shoulder_width,
            weld_seam=self.weld_seam,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["strategy"] = self.strategy.value
        return data


@dataclass
class TrackQualityReport:
    """Non-fatal issues met while generating a track."""

    forced_indices: List[int] = field(default_factory=list)
    proximity_violations: List[Tuple[int, int]] = field(default_factory=list)
    degenerate_frames: int = 0
    path_attempts: int = 0
    chain_attempts: int = 0
    chain_retries: int = 0

    @property
    def is_clean(self) -> bool:
        return not self.forced_indices and not self.proximity_violations and self.degenerate_frames == 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["proximity_violations"] = [list(pair) for pair in self.proximity_violations]
        data["is_clean"] = self.is_clean
        return data


@dataclass
class GeneratedTrack:
    parameters: TrackParameters
    polyline: np.ndarray  # (N, 3), first == last
    control_points: np.ndarray  # (M, 3), spline input without the closing repeat
    curve: ClosedCatmullRomCurve
    mesh: RibbonMesh
    camera: CameraFit
    quality: TrackQualityReport


def _build_polyline(params: TrackParameters, prng, quality: TrackQualityReport) -> np.ndarray:
    if params.strategy is PathStrategy.GROWTH:
        grown = grow_path(
            prng,
            num_points=params.num_points,
            max_angle=params.max_angle,
            bias_angle=params.bias_angle,
            min_step=params.resolved_min_step,
            max_step=params.resolved_max_step,
            road_width=params.road_width,
            buffer=params.proximity_buffer,
            approach_length=params.approach_length,
            max_attempts=params.max_proximity_attempts,
            strict=params.strict_proximity,
        )
        quality.forced_indices = list(grown.forced_indices)
        quality.path_attempts = grown.attempts
        return grown.points

    if params.strategy is PathStrategy.WALK:
        return walk_path(prng, params.num_points, params.max_angle, params.distance_step)

    total_attempts = 0
    for retry in range(params.chain_max_retries):
        result = solve_closed_chain(
            prng,
            params.checkpoint_count,
            params.chain_step,
            params.chain_max_angle,
            params.chain_tolerance,
            max_attempts=params.chain_max_attempts,
        )
        total_attempts += result.attempts
        if result.succeeded:
            quality.chain_attempts = total_attempts
            quality.chain_retries = retry
            return np.vstack([result.points, result.points[:1]])
        logger.info("Retrying closed chain", retry=retry + 1, attempts=total_attempts)

    raise ClosureError(
        f"Closed chain did not close within {params.chain_max_retries} retries "
        f"of {params.chain_max_attempts} attempts",
        attempts=total_attempts,
        retries=params.chain_max_retries,
    )


def generate_track(params: Optional[TrackParameters] = None) -> GeneratedTrack:
    """
    Generate a closed track from a seed and shape parameters.

    Args:
        params: Generation parameters, defaults to TrackParameters()

    Returns:
        GeneratedTrack with polyline, curve, ribbon mesh, camera fit and
        quality report

    Raises:
        TrackParameterError: Invalid parameters (nothing is generated)
        ClosureError: Closed chain strategy exhausted every retry
        ProximityError: strict_proximity set and the attempt cap was hit
    """
    params = params or TrackParameters()
    params.validate()
    logger.info("Generating track", seed=params.seed, strategy=params.strategy.value)

    prng = create_prng(params.seed)
    quality = TrackQualityReport()

    polyline = _build_polyline(params, prng, quality)
    control_points = strip_closing_point(polyline)
    if params.smoothing_window > 1:
        control_points = smooth_points(control_points, params.smoothing_window, closed=True)

    quality.proximity_violations = find_proximity_violations(
        polyline, params.road_width + params.proximity_buffer, closed=True
    )

    curve = ClosedCatmullRomCurve(control_points)
    mesh = extrude_ribbon(curve, params.ribbon_options())
    mesh.validate()
    quality.degenerate_frames = mesh.degenerate_frames

    center, radius = bounding_sphere(mesh.positions)
    camera = fit_camera(center, radius, params.fov, margin=params.camera_margin)

    logger.info(
        "Track generated",
        seed=params.seed,
        strategy=params.strategy.value,
        points=len(polyline),
        vertices=mesh.vertex_count,
        faces=mesh.face_count,
        length=round(mesh.total_length, 2),
        prng_calls=prng.call_count,
        clean=quality.is_clean,
    )

    return GeneratedTrack(
        parameters=params,
        polyline=polyline,
        control_points=control_points,
        curve=curve,
        mesh=mesh,
        camera=camera,
        quality=quality,
    )
