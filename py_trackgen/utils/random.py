"""
Random number generation utilities.

Every generation pass creates its own seeded stream through
create_prng(). Python's random and NumPy's random are not used by the
generators, so a seed string reproduces the same track bit for bit.
"""

import numpy as np


def create_prng(seed: str):
    """
    Create an independent Mulberry32 stream for one generation pass.

    Args:
        seed: Seed string (the empty string is valid)

    Returns:
        Freshly seeded Mulberry32 instance
    """
    from ..core.mulberry_prng import Mulberry32

    return Mulberry32.from_seed(seed)


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation between two scalars."""
    return a + (b - a) * t


def random_values(prng, count: int) -> np.ndarray:
    """
    Draw count values from prng in stream order.

    Streams with random_block() fill the array in one call; any other source
    exposing random() is drawn one value at a time.
    """
    block = getattr(prng, "random_block", None)
    if block is not None:
        return block(count)
    return np.array([prng.random() for _ in range(count)], dtype=np.float64)
