"""
Seeded PRNG used by every track generator.

A string seed is hashed with cyrb128 (four interleaved 32-bit accumulators)
and the first word seeds a Mulberry32 stream. All mixing is integer
arithmetic with explicit 32-bit truncation, so the same seed yields a
bit-identical stream on every platform and matches the browser build of the
track viewer.
"""

from typing import Tuple

import numpy as np

_UINT32_MASK = 0xFFFFFFFF
_TWO_POW_32 = 4294967296.0

CYRB128_INITIAL = (1779033703, 3144134277, 1013904242, 2773480762)
MULBERRY32_INCREMENT = 0x6D2B79F5


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & _UINT32_MASK


def _imul(a, b):
    """Low 32 bits of a 32-bit multiplication (JavaScript Math.imul)."""
    return (_uint32(a) * _uint32(b)) & _UINT32_MASK


def _utf16_code_units(text: str):
    """Yield UTF-16 code units, matching String.prototype.charCodeAt."""
    data = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def cyrb128(seed: str) -> Tuple[int, int, int, int]:
    """
    Hash a seed string into four unsigned 32-bit words.

    The empty string is valid and returns the initial constants.
    """
    h1, h2, h3, h4 = CYRB128_INITIAL
    for k in _utf16_code_units(str(seed)):
        h1 = h2 ^ _imul(h1 ^ k, 597399067)
        h2 = h3 ^ _imul(h2 ^ k, 2869860233)
        h3 = h4 ^ _imul(h3 ^ k, 951274213)
        h4 = h1 ^ _imul(h4 ^ k, 2716044179)
    return (_uint32(h1), _uint32(h2), _uint32(h3), _uint32(h4))


class Mulberry32:
    """
    Mulberry32 stream over a 32-bit state.

    One instance belongs to exactly one generation pass. It is not
    thread-safe; concurrent generations must each create their own.
    """

    def __init__(self, state: int):
        self.state = _uint32(state)
        self.call_count = 0

    @classmethod
    def from_seed(cls, seed: str) -> "Mulberry32":
        """Create a stream from the first cyrb128 word of a seed string."""
        return cls(cyrb128(seed)[0])

    def next_uint32(self) -> int:
        """Advance the state and return the next mixed 32-bit word."""
        self.call_count += 1
        self.state = (self.state + MULBERRY32_INCREMENT) & _UINT32_MASK
        t = self.state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _UINT32_MASK
        return (t ^ (t >> 14)) & _UINT32_MASK

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        return self.next_uint32() / _TWO_POW_32

    def uniform(self, min_val: float, max_val: float) -> float:
        """Random float in [min_val, max_val)."""
        return self.random() * (max_val - min_val) + min_val

    def random_block(self, count: int) -> np.ndarray:
        """
        Next count values of random() as a float64 array.

        The state advances by a fixed increment per draw, so the whole block
        is mixed at once and matches count successive random() calls.
        """
        if count <= 0:
            return np.empty(0)
        steps = np.arange(1, count + 1, dtype=np.uint64) * np.uint64(MULBERRY32_INCREMENT)
        mask = np.uint64(_UINT32_MASK)
        t = (np.uint64(self.state) + steps) & mask
        self.state = int(t[-1])
        self.call_count += count

        t = ((t ^ (t >> np.uint64(15))) * (t | np.uint64(1))) & mask
        t ^= (t + (((t ^ (t >> np.uint64(7))) * (t | np.uint64(61))) & mask)) & mask
        t = (t ^ (t >> np.uint64(14))) & mask
        return t.astype(np.float64) / _TWO_POW_32
