"""Reference frame transformations.

- :mod:`~astroukf.frames.eci_ecef`: Earth rotation between the inertial
  and Earth-fixed frames.
- :mod:`~astroukf.frames.lof`: local orbital frames (QSW, TNW) attached
  to a spacecraft state.
"""

from astroukf.frames.eci_ecef import (
    Rz,
    earth_rotation,
    rotation_ecef_to_eci,
    rotation_eci_to_ecef,
    state_ecef_to_eci,
    state_eci_to_ecef,
)
from astroukf.frames.lof import (
    LOFType,
    lof_angular_rate,
    rotation_eci_to_lof,
    rotation_lof_to_eci,
    state_eci_to_lof,
    state_lof_to_eci,
)

__all__ = [
    "LOFType",
    "Rz",
    "earth_rotation",
    "lof_angular_rate",
    "rotation_ecef_to_eci",
    "rotation_eci_to_ecef",
    "rotation_eci_to_lof",
    "rotation_lof_to_eci",
    "state_ecef_to_eci",
    "state_eci_to_ecef",
    "state_eci_to_lof",
    "state_lof_to_eci",
]
