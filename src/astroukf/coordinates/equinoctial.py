"""Equinoctial orbital element conversions.

Equinoctial elements ``[a, ex, ey, hx, hy, lM]`` stay regular for
circular and equatorial orbits, which makes them the natural element set
for a filter that estimates small corrections to a near-circular mean
trajectory.

| Index | Element                                        | Units         |
|-------|------------------------------------------------|---------------|
| 0     | *a*: semi-major axis                          | m             |
| 1     | *ex*: ``e cos(ω + Ω)``                        | dimensionless |
| 2     | *ey*: ``e sin(ω + Ω)``                        | dimensionless |
| 3     | *hx*: ``tan(i/2) cos(Ω)``                     | dimensionless |
| 4     | *hy*: ``tan(i/2) sin(Ω)``                     | dimensionless |
| 5     | *lM*: mean longitude argument ``M + ω + Ω``   | rad           |

The elements are singular only for retrograde equatorial orbits
(``i = pi``).

References:
    1. R. A. Broucke and P. J. Cefola, "On the equinoctial orbit elements",
       *Celestial Mechanics* 5, 1972.
    2. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH
from astroukf.orbits.keplerian import (
    longitude_mean_to_eccentric,
    longitude_true_to_mean,
)


def _equinoctial_axes(hx: Array, hy: Array) -> tuple[Array, Array]:
    """Unit vectors *f* and *g* spanning the orbital plane."""
    hx2 = hx * hx
    hy2 = hy * hy
    fact_h = 1.0 / (1.0 + hx2 + hy2)
    f_hat = jnp.array([1.0 + hx2 - hy2, 2.0 * hx * hy, -2.0 * hy]) * fact_h
    g_hat = jnp.array([2.0 * hx * hy, 1.0 - hx2 + hy2, 2.0 * hx]) * fact_h
    return f_hat, g_hat


def state_eqoe_to_eci(x_eq: ArrayLike, gm: float = GM_EARTH) -> Array:
    """Convert equinoctial elements to an ECI Cartesian state vector.

    Args:
        x_eq: Equinoctial elements ``[a, ex, ey, hx, hy, lM]`` with the
            mean longitude argument in *rad*.
        gm: Gravitational parameter in *m^3/s^2*. Default: Earth.

    Returns:
        ECI state ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.constants import R_EARTH
        from astroukf.coordinates import state_eqoe_to_eci
        eq = jnp.array([R_EARTH + 500e3, 0.0, 0.0, 0.45, 0.0, 0.3])
        state = state_eqoe_to_eci(eq)
        ```
    """
    x_eq = jnp.asarray(x_eq, dtype=get_dtype())

    a = x_eq[0]
    ex = x_eq[1]
    ey = x_eq[2]
    hx = x_eq[3]
    hy = x_eq[4]

    l_ecc = longitude_mean_to_eccentric(x_eq[5], ex, ey)

    f_hat, g_hat = _equinoctial_axes(hx, hy)

    beta = 1.0 / (1.0 + jnp.sqrt(1.0 - ex * ex - ey * ey))
    cos_le = jnp.cos(l_ecc)
    sin_le = jnp.sin(l_ecc)
    ex_c_ey_s = ex * cos_le + ey * sin_le

    # Position and velocity in the (f, g) plane
    x = a * ((1.0 - beta * ey * ey) * cos_le + beta * ex * ey * sin_le - ex)
    y = a * ((1.0 - beta * ex * ex) * sin_le + beta * ex * ey * cos_le - ey)
    factor = jnp.sqrt(gm / a) / (1.0 - ex_c_ey_s)
    x_dot = factor * (-sin_le + beta * ey * ex_c_ey_s)
    y_dot = factor * (cos_le - beta * ex * ex_c_ey_s)

    r_vec = x * f_hat + y * g_hat
    v_vec = x_dot * f_hat + y_dot * g_hat

    return jnp.concatenate([r_vec, v_vec])


def state_eci_to_eqoe(x_cart: ArrayLike, gm: float = GM_EARTH) -> Array:
    """Convert an ECI Cartesian state vector to equinoctial elements.

    Args:
        x_cart: ECI state ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.
        gm: Gravitational parameter in *m^3/s^2*. Default: Earth.

    Returns:
        Equinoctial elements ``[a, ex, ey, hx, hy, lM]``, mean longitude
            argument in ``(-pi, pi]`` *rad*.
    """
    x_cart = jnp.asarray(x_cart, dtype=get_dtype())

    r = x_cart[:3]
    v = x_cart[3:6]
    r_mag = jnp.linalg.norm(r)
    v2 = jnp.dot(v, v)

    h = jnp.cross(r, v)
    w = h / jnp.linalg.norm(h)
    d = 1.0 / (1.0 + w[2])
    hx = -d * w[1]
    hy = d * w[0]

    # True longitude argument
    cos_lv = (r[0] - d * r[2] * w[0]) / r_mag
    sin_lv = (r[1] - d * r[2] * w[1]) / r_mag
    l_true = jnp.arctan2(sin_lv, cos_lv)

    # Vis-viva and eccentricity vector in the (f, g) plane
    r_v2_on_mu = r_mag * v2 / gm
    a = r_mag / (2.0 - r_v2_on_mu)
    e_s_e = jnp.dot(r, v) / jnp.sqrt(gm * a)
    e_c_e = r_v2_on_mu - 1.0
    e2 = e_c_e * e_c_e + e_s_e * e_s_e
    f = e_c_e - e2
    g = jnp.sqrt(1.0 - e2) * e_s_e
    ex = a * (f * cos_lv + g * sin_lv) / r_mag
    ey = a * (f * sin_lv - g * cos_lv) / r_mag

    l_mean = longitude_true_to_mean(l_true, ex, ey)

    return jnp.array([a, ex, ey, hx, hy, l_mean])


def state_koe_to_eqoe(x_oe: ArrayLike) -> Array:
    """Convert Keplerian elements to equinoctial elements.

    Args:
        x_oe: Keplerian elements ``[a, e, i, RAAN, omega, M]`` in *m*
            and *rad*.

    Returns:
        Equinoctial elements ``[a, ex, ey, hx, hy, lM]``.
    """
    x_oe = jnp.asarray(x_oe, dtype=get_dtype())

    a = x_oe[0]
    e = x_oe[1]
    i = x_oe[2]
    raan = x_oe[3]
    omega = x_oe[4]
    M = x_oe[5]

    pa_raan = omega + raan
    tan_half_i = jnp.tan(i / 2.0)

    return jnp.array([
        a,
        e * jnp.cos(pa_raan),
        e * jnp.sin(pa_raan),
        tan_half_i * jnp.cos(raan),
        tan_half_i * jnp.sin(raan),
        M + pa_raan,
    ])


def state_eqoe_to_koe(x_eq: ArrayLike) -> Array:
    """Convert equinoctial elements to Keplerian elements.

    For a circular orbit the argument of perigee is undefined and is set
    to ``-RAAN`` (modulo ``2 pi``), keeping ``omega + RAAN`` equal to the
    direction of the (null) eccentricity vector.

    Args:
        x_eq: Equinoctial elements ``[a, ex, ey, hx, hy, lM]``.

    Returns:
        Keplerian elements ``[a, e, i, RAAN, omega, M]`` with RAAN, omega
            and M in ``[0, 2pi)``.
    """
    x_eq = jnp.asarray(x_eq, dtype=get_dtype())

    a = x_eq[0]
    ex = x_eq[1]
    ey = x_eq[2]
    hx = x_eq[3]
    hy = x_eq[4]

    e = jnp.sqrt(ex * ex + ey * ey)
    i = 2.0 * jnp.arctan(jnp.sqrt(hx * hx + hy * hy))
    raan = jnp.arctan2(hy, hx)
    pa_raan = jnp.arctan2(ey, ex)

    two_pi = 2.0 * jnp.pi
    return jnp.array([
        a,
        e,
        i,
        raan % two_pi,
        (pa_raan - raan) % two_pi,
        (x_eq[5] - pa_raan) % two_pi,
    ])
