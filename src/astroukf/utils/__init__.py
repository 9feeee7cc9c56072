"""Shared utility functions for astroukf.

Provides angle conversion and normalization helpers.
"""

from astroukf.utils._angle import from_radians, normalize_angle, to_radians

__all__ = [
    "from_radians",
    "normalize_angle",
    "to_radians",
]
