"""FastAPI main application."""

import logging
from typing import Dict, List, Optional, Tuple

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.closed_chain import solve_closed_chain
from ..core.exceptions import ClosureError, ProximityError, TrackParameterError
from ..core.track_generator import GeneratedTrack, PathStrategy, TrackParameters, generate_track
from ..utils.random import create_prng

# Configure logging
logging.basicConfig(format="%(message)s", level=settings.log_level.upper())
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if settings.log_format == "console" else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Track Generator API",
    description="Seeded procedural race-track loops with banked ribbon meshes",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class TrackGenerationRequest(BaseModel):
    """Request to generate a track."""

    seed: Optional[str] = Field(None, description="Seed string, defaults to the configured seed")
    strategy: PathStrategy = Field(PathStrategy.GROWTH, description="Path strategy: growth, walk or chain")
    num_points: int = Field(50, ge=4, description="Points in the generated path")
    max_angle: float = Field(60.0, ge=0, le=180, description="Maximum turn per step in degrees")
    bias_angle: float = Field(40.0, ge=0, le=180, description="Cone angle while homing, degrees")
    distance_step: float = Field(10.0, gt=0, description="Step length")
    min_step: Optional[float] = Field(None, gt=0, description="Minimum step length")
    max_step: Optional[float] = Field(None, gt=0, description="Maximum step length")
    road_width: float = Field(12.0, gt=0, description="Road width")
    proximity_buffer: float = Field(5.0, ge=0, description="Clearance added to the road width")
    approach_length: float = Field(5.0, ge=0, description="Straight approach toward the start")
    max_proximity_attempts: int = Field(10, ge=1, le=1000, description="Candidate draws per point")
    strict_proximity: bool = Field(False, description="Fail instead of accepting a close pass")
    smoothing_window: int = Field(1, ge=1, le=25, description="Moving-average window, 1 disables")
    checkpoint_count: int = Field(15, ge=4, description="Points in a closed chain")
    chain_step: float = Field(100.0, gt=0, description="Closed chain step length")
    chain_max_angle: float = Field(100.0, ge=0, le=180, description="Closed chain turn limit, degrees")
    chain_tolerance: float = Field(0.1, ge=0, description="Closed chain closure tolerance")
    chain_max_attempts: int = Field(10000, ge=1, le=100000, description="Chain attempts per retry")
    chain_max_retries: int = Field(20, ge=1, le=100, description="Chain retries before giving up")
    segments: int = Field(500, ge=3, description="Ribbon segments")
    thickness: float = Field(1.0, gt=0, description="Ribbon thickness")
    banking_factor: float = Field(0.4, description="Banking degrees per radian of turn")
    max_banking_angle: float = Field(25.0, ge=0, le=90, description="Banking limit, degrees")
    texture_repeat: float = Field(10.0, gt=0, description="World units per texture repeat")
    finish_region_length: float = Field(5.0, ge=0, description="Length of the finish region")
    shoulder_width: float = Field(0.0, ge=0, description="Shoulder width, 0 for a plain ribbon")
    weld_seam: bool = Field(False, description="Index sample 0 directly at the loop seam")
    fov: float = Field(75.0, gt=0, lt=180, description="Camera field of view, degrees")
    camera_margin: float = Field(1.2, gt=0, description="Camera framing margin")
    include_mesh: bool = Field(True, description="Return mesh buffers")


class MeshBuffers(BaseModel):
    positions: List[float]
    uvs: List[float]
    colors: List[float]
    indices: List[int]
    vertex_count: int
    face_count: int
    vertices_per_sample: int
    groups: Dict[str, Tuple[int, int]]


class CameraResponse(BaseModel):
    position: List[float]
    target: List[float]
    distance: float
    near: float
    far: float
    fov: float


class QualityResponse(BaseModel):
    forced_indices: List[int]
    proximity_violations: List[List[int]]
    degenerate_frames: int
    path_attempts: int
    chain_attempts: int
    chain_retries: int
    is_clean: bool


class TrackResponse(BaseModel):
    """Generated track."""

    seed: str
    strategy: str
    polyline: List[List[float]]
    control_points: List[List[float]]
    total_length: float
    mesh: Optional[MeshBuffers] = None
    camera: CameraResponse
    quality: QualityResponse


class ClosedChainRequest(BaseModel):
    """Request to solve a single closed chain."""

    seed: Optional[str] = Field(None, description="Seed string, defaults to the configured seed")
    count: int = Field(15, ge=3, description="Points in the loop")
    step_distance: float = Field(100.0, gt=0, description="Step length")
    max_angle: float = Field(100.0, ge=0, le=180, description="Turn limit in degrees")
    tolerance: float = Field(0.1, ge=0, description="Closure tolerance")
    max_attempts: int = Field(10000, ge=1, le=100000, description="Whole-chain attempts")


class ClosedChainResponse(BaseModel):
    seed: str
    points: List[List[float]]
    attempts: int


def _check_limits(request: TrackGenerationRequest) -> None:
    if request.num_points > settings.max_num_points:
        raise HTTPException(status_code=400, detail=f"num_points exceeds {settings.max_num_points}")
    if request.checkpoint_count > settings.max_num_points:
        raise HTTPException(status_code=400, detail=f"checkpoint_count exceeds {settings.max_num_points}")
    if request.segments > settings.max_segments:
        raise HTTPException(status_code=400, detail=f"segments exceeds {settings.max_segments}")
    if request.strategy is PathStrategy.CHAIN:
        budget = request.chain_max_attempts * request.chain_max_retries
        if budget > settings.max_chain_attempts:
            raise HTTPException(
                status_code=400,
                detail=f"chain_max_attempts * chain_max_retries exceeds {settings.max_chain_attempts}",
            )


def _track_response(track: GeneratedTrack, include_mesh: bool) -> TrackResponse:
    mesh = None
    if include_mesh:
        mesh = MeshBuffers(
            **track.mesh.flat_buffers(),
            vertex_count=track.mesh.vertex_count,
            face_count=track.mesh.face_count,
            vertices_per_sample=track.mesh.vertices_per_sample,
            groups=track.mesh.groups,
        )
    return TrackResponse(
        seed=track.parameters.seed,
        strategy=track.parameters.strategy.value,
        polyline=track.polyline.tolist(),
        control_points=track.control_points.tolist(),
        total_length=track.mesh.total_length,
        mesh=mesh,
        camera=CameraResponse(**track.camera.to_dict()),
        quality=QualityResponse(**track.quality.to_dict()),
    )


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Track Generator API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/tracks/generate", response_model=TrackResponse)
def generate(request: TrackGenerationRequest):
    """
    Generate a track synchronously.

    Parameter errors map to 400; a closed chain or strict proximity run
    that cannot be satisfied maps to 409.
    """
    _check_limits(request)
    data = request.model_dump(exclude={"seed", "include_mesh"})
    seed = request.seed if request.seed is not None else settings.default_seed
    logger.info("Track generation requested", seed=seed, strategy=request.strategy.value)

    try:
        track = generate_track(TrackParameters(seed=seed, **data))
    except TrackParameterError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (ClosureError, ProximityError) as e:
        logger.warning("Track generation failed", seed=seed, error=str(e))
        raise HTTPException(status_code=409, detail=str(e))

    return _track_response(track, request.include_mesh)


@app.post("/tracks/closed-chain", response_model=ClosedChainResponse)
def closed_chain(request: ClosedChainRequest):
    """Solve one closed chain; 409 when the attempt budget runs out."""
    if request.count > settings.max_num_points:
        raise HTTPException(status_code=400, detail=f"count exceeds {settings.max_num_points}")
    if request.max_attempts > settings.max_chain_attempts:
        raise HTTPException(status_code=400, detail=f"max_attempts exceeds {settings.max_chain_attempts}")
    seed = request.seed if request.seed is not None else settings.default_seed

    try:
        result = solve_closed_chain(
            create_prng(seed),
            request.count,
            request.step_distance,
            request.max_angle,
            request.tolerance,
            max_attempts=request.max_attempts,
        )
    except TrackParameterError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not result.succeeded:
        logger.warning("Closed chain exhausted", seed=seed, attempts=result.attempts)
        raise HTTPException(
            status_code=409,
            detail=f"No closed chain found within {result.attempts} attempts",
        )

    return ClosedChainResponse(seed=seed, points=result.points.tolist(), attempts=result.attempts)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
