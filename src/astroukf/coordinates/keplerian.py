"""Keplerian orbital element ↔ ECI Cartesian state vector conversions.

Converts between Keplerian orbital elements ``[a, e, i, RAAN, omega, M]``
and inertial Cartesian state vectors ``[x, y, z, vx, vy, vz]`` for an
arbitrary gravitational parameter.

| Index | Element                       | Units         |
|-------|-------------------------------|---------------|
| 0     | *a*: semi-major axis         | m             |
| 1     | *e*: eccentricity            | dimensionless |
| 2     | *i*: inclination             | rad           |
| 3     | *Ω*: right ascension (RAAN)  | rad           |
| 4     | *ω*: argument of perigee     | rad           |
| 5     | *M*: mean anomaly            | rad           |

Keplerian elements are singular for circular and equatorial orbits; use
the equinoctial conversions in :mod:`astroukf.coordinates.equinoctial`
for near-circular orbits.

All inputs and outputs use SI base units (metres, metres/second, radians).

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012, Sec. 2.2.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH
from astroukf.orbits.keplerian import anomaly_eccentric_to_mean, anomaly_mean_to_eccentric


def state_koe_to_eci(
    x_oe: ArrayLike,
    use_degrees: bool = False,
    gm: float = GM_EARTH,
) -> Array:
    """Convert Keplerian orbital elements to an ECI Cartesian state vector.

    Solves Kepler's equation to obtain the eccentric anomaly, then
    constructs position and velocity via the perifocal P and Q vectors
    (Montenbruck & Gill Eq. 2.43–2.44).

    Args:
        x_oe: Orbital elements ``[a, e, i, RAAN, omega, M]``.
            Semi-major axis in *m*, angles in *rad* (or *deg* if
            ``use_degrees=True``).
        use_degrees: If ``True``, interpret angular elements as degrees.
        gm: Gravitational parameter in *m^3/s^2*. Default: Earth.

    Returns:
        ECI state ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.constants import R_EARTH
        from astroukf.coordinates import state_koe_to_eci
        oe = jnp.array([R_EARTH + 500e3, 0.01, 0.9, 0.0, 0.0, 0.0])
        state = state_koe_to_eci(oe)
        ```
    """
    x_oe = jnp.asarray(x_oe, dtype=get_dtype())

    a = x_oe[0]
    e = x_oe[1]
    i = x_oe[2]
    raan = x_oe[3]
    omega = x_oe[4]
    M = x_oe[5]

    if use_degrees:
        i = jnp.deg2rad(i)
        raan = jnp.deg2rad(raan)
        omega = jnp.deg2rad(omega)
        M = jnp.deg2rad(M)

    E = anomaly_mean_to_eccentric(M, e)

    # Perifocal unit vectors (Montenbruck & Gill Eq. 2.43)
    cos_o = jnp.cos(omega)
    sin_o = jnp.sin(omega)
    cos_R = jnp.cos(raan)
    sin_R = jnp.sin(raan)
    cos_i = jnp.cos(i)
    sin_i = jnp.sin(i)

    P = jnp.array([
        cos_o * cos_R - sin_o * cos_i * sin_R,
        cos_o * sin_R + sin_o * cos_i * cos_R,
        sin_o * sin_i,
    ])
    Q = jnp.array([
        -sin_o * cos_R - cos_o * cos_i * sin_R,
        -sin_o * sin_R + cos_o * cos_i * cos_R,
        cos_o * sin_i,
    ])

    cos_E = jnp.cos(E)
    sin_E = jnp.sin(E)
    sqrt_1me2 = jnp.sqrt(1.0 - e * e)

    r_vec = a * (cos_E - e) * P + a * sqrt_1me2 * sin_E * Q
    r_mag = a * (1.0 - e * cos_E)
    v_vec = (jnp.sqrt(gm * a) / r_mag) * (-sin_E * P + sqrt_1me2 * cos_E * Q)

    return jnp.concatenate([r_vec, v_vec])


def state_eci_to_koe(
    x_cart: ArrayLike,
    use_degrees: bool = False,
    gm: float = GM_EARTH,
) -> Array:
    """Convert an ECI Cartesian state vector to Keplerian orbital elements.

    Derives the osculating elements from position and velocity using
    angular momentum, vis-viva, and the node/eccentricity vectors
    (Montenbruck & Gill Eq. 2.56–2.68).

    Args:
        x_cart: ECI state ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.
        use_degrees: If ``True``, return angular elements in degrees.
        gm: Gravitational parameter in *m^3/s^2*. Default: Earth.

    Returns:
        Orbital elements ``[a, e, i, RAAN, omega, M]``.
            Semi-major axis in *m*, angles in *rad* (or *deg*), with RAAN,
            omega and M in ``[0, 2pi)``.
    """
    x_cart = jnp.asarray(x_cart, dtype=get_dtype())

    r = x_cart[:3]
    v = x_cart[3:6]

    r_mag = jnp.linalg.norm(r)
    v_mag = jnp.linalg.norm(v)

    h = jnp.cross(r, v)
    h_mag = jnp.linalg.norm(h)
    W = h / h_mag

    i = jnp.arctan2(jnp.sqrt(W[0] * W[0] + W[1] * W[1]), W[2])
    raan = jnp.arctan2(W[0], -W[1])

    # Semi-latus rectum and semi-major axis (vis-viva)
    p = h_mag * h_mag / gm
    a = 1.0 / (2.0 / r_mag - v_mag * v_mag / gm)

    n = jnp.sqrt(gm / jnp.abs(a) ** 3)

    # Clamp (1 - p/a) to prevent NaN from sqrt of a rounding-negative value
    ecc = jnp.sqrt(jnp.maximum(1.0 - p / a, 0.0))

    E = jnp.arctan2(jnp.dot(r, v) / (n * a * a), 1.0 - r_mag / a)
    M = anomaly_eccentric_to_mean(E, ecc)

    # Argument of latitude
    u = jnp.arctan2(r[2], -r[0] * W[1] + r[1] * W[0])

    sqrt_1me2 = jnp.sqrt(1.0 - ecc * ecc)
    nu = jnp.arctan2(sqrt_1me2 * jnp.sin(E), jnp.cos(E) - ecc)

    omega = u - nu

    two_pi = 2.0 * jnp.pi
    raan = raan % two_pi
    omega = omega % two_pi
    M = M % two_pi

    if use_degrees:
        i = jnp.rad2deg(i)
        raan = jnp.rad2deg(raan)
        omega = jnp.rad2deg(omega)
        M = jnp.rad2deg(M)

    return jnp.array([a, ecc, i, raan, omega, M])
