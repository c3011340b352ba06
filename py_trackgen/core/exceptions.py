"""Errors raised by the track generation pipeline."""


class TrackGenerationError(Exception):
    """Base class for track generation failures."""


class TrackParameterError(TrackGenerationError, ValueError):
    """Invalid generation parameters, raised before any geometry is built."""


class ClosureError(TrackGenerationError):
    """The closed-chain solver exhausted every retry without closing a loop."""

    def __init__(self, message: str, attempts: int = 0, retries: int = 0):
        super().__init__(message)
        self.attempts = attempts
        self.retries = retries


class ProximityError(TrackGenerationError):
    """Path growth hit its attempt cap while strict proximity was requested."""

    def __init__(self, message: str, index: int):
        super().__init__(message)
        self.index = index
