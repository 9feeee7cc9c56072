"""Geodetic (WGS84 ellipsoid) coordinate transformations.

Converts geodetic coordinates ``[longitude, latitude, altitude]`` to
Earth-Centered Earth-Fixed (ECEF) Cartesian coordinates ``[x, y, z]``.
Ground stations are declared geodetically and placed in ECEF with this
closed-form mapping.

All inputs and outputs use SI base units (metres, radians).

References:
    1. NIMA Technical Report TR8350.2, *Department of Defense World Geodetic
       System 1984*.
    2. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012, Sec. 5.3.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import WGS84_a, WGS84_f

# First eccentricity squared of the WGS84 ellipsoid
ECC2 = WGS84_f * (2.0 - WGS84_f)


def position_geodetic_to_ecef(
    x_geod: ArrayLike,
    use_degrees: bool = False,
) -> Array:
    """Convert geodetic position to ECEF Cartesian coordinates.

    Uses the WGS84 prime vertical radius of curvature:

    .. math::

        N = \\frac{a}{\\sqrt{1 - e^2 \\sin^2 \\phi}}

    Args:
        x_geod: Geodetic coordinates ``[lon, lat, alt]``.
            Longitude and latitude in *rad* (or *deg* if ``use_degrees=True``),
            altitude in *m* above the WGS84 ellipsoid.
        use_degrees: If ``True``, interpret longitude and latitude as degrees.

    Returns:
        jax.Array: ECEF position ``[x, y, z]`` in *m*.

    Example:
        >>> import jax.numpy as jnp
        >>> from astroukf.coordinates import position_geodetic_to_ecef
        >>> x_ecef = position_geodetic_to_ecef(jnp.array([0.0, 0.0, 0.0]))
        >>> float(x_ecef[0])  # WGS84_a on the equator
        6378137.0
    """
    x_geod = jnp.asarray(x_geod, dtype=get_dtype())

    lon = x_geod[0]
    lat = x_geod[1]
    alt = x_geod[2]

    if use_degrees:
        lon = jnp.deg2rad(lon)
        lat = jnp.deg2rad(lat)

    sin_lat = jnp.sin(lat)
    cos_lat = jnp.cos(lat)

    N = WGS84_a / jnp.sqrt(1.0 - ECC2 * sin_lat * sin_lat)

    x = (N + alt) * cos_lat * jnp.cos(lon)
    y = (N + alt) * cos_lat * jnp.sin(lon)
    z = ((1.0 - ECC2) * N + alt) * sin_lat

    return jnp.array([x, y, z])
