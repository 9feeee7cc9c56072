"""East-North-Zenith (ENZ) topocentric coordinate transformations.

Converts between Earth-Centered Earth-Fixed (ECEF) Cartesian coordinates
and a local topocentric frame defined by East, North, and Zenith axes at
an observer location on the Earth's surface.  Also provides conversion
from ENZ to azimuth, elevation, and range.

The ENZ frame is a right-handed coordinate system:

- **East** (E): tangent to the surface, pointing geographic east
- **North** (N): tangent to the surface, pointing geographic north
- **Zenith** (Z): normal to the surface, pointing radially outward

All inputs and outputs use SI base units (metres, radians) unless
``use_degrees=True`` is specified.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.coordinates.geodetic import position_geodetic_to_ecef


def rotation_ellipsoid_to_enz(
    x_ellipsoid: ArrayLike,
    use_degrees: bool = False,
) -> Array:
    """Compute the rotation matrix from ECEF to East-North-Zenith (ENZ).

    The input geodetic coordinates specify the observer location.  The
    returned 3x3 matrix transforms a vector in ECEF into the local ENZ
    frame at that location.

    Args:
        x_ellipsoid: Geodetic coordinates ``[lon, lat, alt]``.
            Longitude and latitude in *rad* (or *deg* if ``use_degrees=True``),
            altitude in *m*.
        use_degrees: If ``True``, interpret longitude and latitude as degrees.

    Returns:
        3x3 rotation matrix (ECEF → ENZ).
    """
    x_ellipsoid = jnp.asarray(x_ellipsoid, dtype=get_dtype())

    lon = x_ellipsoid[0]
    lat = x_ellipsoid[1]

    if use_degrees:
        lon = jnp.deg2rad(lon)
        lat = jnp.deg2rad(lat)

    sin_lon = jnp.sin(lon)
    cos_lon = jnp.cos(lon)
    sin_lat = jnp.sin(lat)
    cos_lat = jnp.cos(lat)

    # Rows are E, N, Z basis vectors expressed in ECEF
    return jnp.array([
        [-sin_lon, cos_lon, 0.0],                             # East
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],    # North
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],      # Zenith
    ])


def rotation_enz_to_ellipsoid(
    x_ellipsoid: ArrayLike,
    use_degrees: bool = False,
) -> Array:
    """Compute the rotation matrix from ENZ to ECEF.

    This is the transpose of :func:`rotation_ellipsoid_to_enz`.
    """
    return rotation_ellipsoid_to_enz(x_ellipsoid, use_degrees).T


def relative_position_ecef_to_enz(
    x_geod: ArrayLike,
    r_ecef: ArrayLike,
) -> Array:
    """Express an ECEF position in the ENZ frame of a geodetic observer.

    Computes the ENZ components of ``r_ecef - location_ecef`` where the
    observer location is given geodetically, which fixes the local frame
    without an ECEF-to-geodetic inversion.

    Args:
        x_geod: Observer geodetic coordinates ``[lon, lat, alt]`` in *rad*
            and *m*.
        r_ecef: ECEF position of the target object ``[x, y, z]`` in *m*.

    Returns:
        Relative position ``[east, north, zenith]`` in *m*.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.coordinates import relative_position_ecef_to_enz
        x_sta = jnp.array([0.0, 0.0, 0.0])
        x_sat = jnp.array([6378137.0 + 500e3, 0.0, 0.0])
        r_enz = relative_position_ecef_to_enz(x_sta, x_sat)  # ≈ [0, 0, 500e3]
        ```
    """
    x_geod = jnp.asarray(x_geod, dtype=get_dtype())
    r_ecef = jnp.asarray(r_ecef, dtype=get_dtype())

    location_ecef = position_geodetic_to_ecef(x_geod)
    rot = rotation_ellipsoid_to_enz(x_geod)
    return rot @ (r_ecef - location_ecef)


def position_enz_to_azel(
    x_enz: ArrayLike,
    use_degrees: bool = False,
) -> Array:
    """Convert ENZ position to azimuth, elevation, and range.

    Azimuth is measured clockwise from North (0° = North, 90° = East).
    Elevation is measured from the local horizon (0°) to zenith (90°).

    At the zenith singularity (elevation = 90°), azimuth is defined as 0.

    Args:
        x_enz: ENZ position ``[east, north, zenith]`` in *m*.
        use_degrees: If ``True``, return azimuth and elevation in degrees.

    Returns:
        ``[azimuth, elevation, range]``.
            Azimuth in ``[0, 2pi)`` rad (or ``[0, 360)`` deg),
            elevation in ``[-pi/2, pi/2]`` rad, range in *m*.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.coordinates import position_enz_to_azel
        azel = position_enz_to_azel(jnp.array([100.0, 0.0, 0.0]), use_degrees=True)
        # azel ≈ [90.0, 0.0, 100.0]
        ```
    """
    x_enz = jnp.asarray(x_enz, dtype=get_dtype())

    e = x_enz[0]
    n = x_enz[1]
    z = x_enz[2]

    rho = jnp.sqrt(e * e + n * n + z * z)

    horiz = jnp.sqrt(e * e + n * n)
    el = jnp.arctan2(z, horiz)

    # Azimuth clockwise from north, defined as 0 at zenith
    az_raw = jnp.arctan2(e, n)
    az_wrapped = jnp.where(az_raw >= 0.0, az_raw, az_raw + 2.0 * jnp.pi)
    at_zenith = horiz == 0.0
    az = jnp.where(at_zenith, 0.0, az_wrapped)

    if use_degrees:
        az = jnp.rad2deg(az)
        el = jnp.rad2deg(el)

    return jnp.array([az, el, rho])
