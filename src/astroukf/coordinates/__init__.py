"""Coordinate system conversions.

- :mod:`~astroukf.coordinates.keplerian`: Keplerian elements ↔ ECI state.
- :mod:`~astroukf.coordinates.equinoctial`: equinoctial elements ↔ ECI
  state and ↔ Keplerian elements.
- :mod:`~astroukf.coordinates.geodetic`: WGS84 geodetic → ECEF.
- :mod:`~astroukf.coordinates.topocentric`: ECEF ↔ ENZ and ENZ →
  azimuth/elevation/range.
"""

from astroukf.coordinates.equinoctial import (
    state_eci_to_eqoe,
    state_eqoe_to_eci,
    state_eqoe_to_koe,
    state_koe_to_eqoe,
)
from astroukf.coordinates.geodetic import position_geodetic_to_ecef
from astroukf.coordinates.keplerian import state_eci_to_koe, state_koe_to_eci
from astroukf.coordinates.topocentric import (
    position_enz_to_azel,
    relative_position_ecef_to_enz,
    rotation_ellipsoid_to_enz,
    rotation_enz_to_ellipsoid,
)

__all__ = [
    "position_enz_to_azel",
    "position_geodetic_to_ecef",
    "relative_position_ecef_to_enz",
    "rotation_ellipsoid_to_enz",
    "rotation_enz_to_ellipsoid",
    "state_eci_to_eqoe",
    "state_eci_to_koe",
    "state_eqoe_to_eci",
    "state_eqoe_to_koe",
    "state_koe_to_eci",
    "state_koe_to_eqoe",
]
