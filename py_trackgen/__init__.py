"""
Procedural race-track loop generation.

Seeded path generators, closed Catmull-Rom smoothing and banked ribbon
mesh extrusion.
"""

__version__ = "0.1.0"
