"""Keplerian orbital mechanics functions.

This module provides the orbital period and mean motion for a given
gravitational parameter, the Keplerian anomaly conversions (mean,
eccentric, true) and their equinoctial counterparts, the mean, eccentric
and true *longitudes* used by non-singular element sets.

All functions use JAX operations and are compatible with ``jax.jit``,
``jax.vmap``, and ``jax.jacfwd``. Inputs are coerced to the configured
float dtype (see :func:`astroukf.config.set_dtype`).

The Kepler equation solvers are Newton-Raphson iterations implemented
with ``jax.lax.fori_loop`` for JAX traceability.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH
from astroukf.utils import from_radians, to_radians

# ──────────────────────────────────────────────
# Orbital period and mean motion
# ──────────────────────────────────────────────


def orbital_period(a: ArrayLike, gm: float = GM_EARTH) -> Array:
    """Compute the orbital period of an elliptical orbit.

    Args:
        a: Semi-major axis. Units: *m*
        gm: Gravitational parameter. Units: *m^3/s^2*. Default: Earth.

    Returns:
        Orbital period. Units: *s*

    Examples:
        ```python
        from astroukf.constants import R_EARTH
        from astroukf.orbits import orbital_period
        T = orbital_period(R_EARTH + 500e3)
        ```
    """
    a = jnp.asarray(a, dtype=get_dtype())
    return 2.0 * jnp.pi * jnp.sqrt(a**3 / gm)


def mean_motion(a: ArrayLike, use_degrees: bool = False, gm: float = GM_EARTH) -> Array:
    """Compute the Keplerian mean motion.

    Args:
        a: Semi-major axis. Units: *m*
        use_degrees: If ``True``, return mean motion in degrees per second.
        gm: Gravitational parameter. Units: *m^3/s^2*. Default: Earth.

    Returns:
        Mean motion. Units: *rad/s* or *deg/s*
    """
    a = jnp.asarray(a, dtype=get_dtype())
    n = jnp.sqrt(gm / a**3)
    return from_radians(n, use_degrees)


# ──────────────────────────────────────────────
# Anomaly conversions
# ──────────────────────────────────────────────


def anomaly_eccentric_to_mean(anm_ecc: ArrayLike, e: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert eccentric anomaly to mean anomaly.

    Applies Kepler's equation: ``M = E - e * sin(E)``.

    Args:
        anm_ecc: Eccentric anomaly. Units: *rad* or *deg*
        e: Eccentricity. Dimensionless.
        use_degrees: If ``True``, input and output are in degrees.

    Returns:
        Mean anomaly. Units: *rad* or *deg*

    References:
        O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
        Applications*, 2012. Eq. 2.65.

    Examples:
        ```python
        from astroukf.orbits import anomaly_eccentric_to_mean
        M = anomaly_eccentric_to_mean(90.0, 0.1, use_degrees=True)
        ```
    """
    anm_ecc = jnp.asarray(anm_ecc, dtype=get_dtype())
    e = jnp.asarray(e, dtype=get_dtype())

    E = to_radians(anm_ecc, use_degrees)
    M = E - e * jnp.sin(E)
    return from_radians(M, use_degrees)


def anomaly_mean_to_eccentric(anm_mean: ArrayLike, e: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert mean anomaly to eccentric anomaly.

    Solves Kepler's equation ``M = E - e * sin(E)`` for ``E`` using
    Newton-Raphson iteration implemented with ``jax.lax.fori_loop``
    for JAX traceability.

    Args:
        anm_mean: Mean anomaly. Units: *rad* or *deg*
        e: Eccentricity. Dimensionless.
        use_degrees: If ``True``, input and output are in degrees.

    Returns:
        Eccentric anomaly. Units: *rad* or *deg*

    Examples:
        ```python
        from astroukf.orbits import anomaly_mean_to_eccentric
        E = anomaly_mean_to_eccentric(84.27, 0.1, use_degrees=True)
        ```
    """
    anm_mean = jnp.asarray(anm_mean, dtype=get_dtype())
    e = jnp.asarray(e, dtype=get_dtype())

    M = to_radians(anm_mean, use_degrees)
    M = M % (2.0 * jnp.pi)

    # Initial guess: M for low eccentricity, pi for high eccentricity
    E0 = jnp.where(e < 0.8, M, jnp.pi)

    def newton_step(_, E):
        f = E - e * jnp.sin(E) - M
        E = E - f / (1.0 - e * jnp.cos(E))
        return E

    E = jax.lax.fori_loop(0, 10, newton_step, E0)
    return from_radians(E, use_degrees)


def anomaly_true_to_eccentric(anm_true: ArrayLike, e: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert true anomaly to eccentric anomaly.

    Args:
        anm_true: True anomaly. Units: *rad* or *deg*
        e: Eccentricity. Dimensionless.
        use_degrees: If ``True``, input and output are in degrees.

    Returns:
        Eccentric anomaly. Units: *rad* or *deg*

    References:
        D. Vallado, *Fundamentals of Astrodynamics and Applications
        (4th Ed.)*, pp. 47, eq. 2-9, 2010.

    Examples:
        ```python
        from astroukf.orbits import anomaly_true_to_eccentric
        E = anomaly_true_to_eccentric(90.0, 0.1, use_degrees=True)
        ```
    """
    anm_true = jnp.asarray(anm_true, dtype=get_dtype())
    e = jnp.asarray(e, dtype=get_dtype())

    nu = to_radians(anm_true, use_degrees)
    E = jnp.arctan2(jnp.sin(nu) * jnp.sqrt(1.0 - e**2), jnp.cos(nu) + e)
    return from_radians(E, use_degrees)


def anomaly_eccentric_to_true(anm_ecc: ArrayLike, e: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert eccentric anomaly to true anomaly.

    Args:
        anm_ecc: Eccentric anomaly. Units: *rad* or *deg*
        e: Eccentricity. Dimensionless.
        use_degrees: If ``True``, input and output are in degrees.

    Returns:
        True anomaly. Units: *rad* or *deg*

    References:
        D. Vallado, *Fundamentals of Astrodynamics and Applications
        (4th Ed.)*, pp. 47, eq. 2-9, 2010.

    Examples:
        ```python
        from astroukf.orbits import anomaly_eccentric_to_true
        nu = anomaly_eccentric_to_true(90.0, 0.1, use_degrees=True)
        ```
    """
    anm_ecc = jnp.asarray(anm_ecc, dtype=get_dtype())
    e = jnp.asarray(e, dtype=get_dtype())

    E = to_radians(anm_ecc, use_degrees)
    nu = jnp.arctan2(jnp.sin(E) * jnp.sqrt(1.0 - e**2), jnp.cos(E) - e)
    return from_radians(nu, use_degrees)


def anomaly_true_to_mean(anm_true: ArrayLike, e: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert true anomaly to mean anomaly.

    Composite conversion: true -> eccentric -> mean.

    Args:
        anm_true: True anomaly. Units: *rad* or *deg*
        e: Eccentricity. Dimensionless.
        use_degrees: If ``True``, input and output are in degrees.

    Returns:
        Mean anomaly. Units: *rad* or *deg*

    Examples:
        ```python
        from astroukf.orbits import anomaly_true_to_mean
        M = anomaly_true_to_mean(90.0, 0.1, use_degrees=True)
        ```
    """
    return anomaly_eccentric_to_mean(
        anomaly_true_to_eccentric(anm_true, e, use_degrees),
        e,
        use_degrees,
    )


def anomaly_mean_to_true(anm_mean: ArrayLike, e: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert mean anomaly to true anomaly.

    Composite conversion: mean -> eccentric -> true.

    Args:
        anm_mean: Mean anomaly. Units: *rad* or *deg*
        e: Eccentricity. Dimensionless.
        use_degrees: If ``True``, input and output are in degrees.

    Returns:
        True anomaly. Units: *rad* or *deg*

    Examples:
        ```python
        from astroukf.orbits import anomaly_mean_to_true
        nu = anomaly_mean_to_true(90.0, 0.1, use_degrees=True)
        ```
    """
    return anomaly_eccentric_to_true(
        anomaly_mean_to_eccentric(anm_mean, e, use_degrees),
        e,
        use_degrees,
    )


# ──────────────────────────────────────────────
# Equinoctial longitude conversions
# ──────────────────────────────────────────────


def longitude_eccentric_to_mean(l_ecc: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert eccentric longitude to mean longitude.

    Equinoctial form of Kepler's equation:
    ``lM = lE - ex * sin(lE) + ey * cos(lE)``.

    Args:
        l_ecc: Eccentric longitude argument ``E + omega + Omega``. Units: *rad*
        ex: Eccentricity vector component along the equinoctial *f* axis.
        ey: Eccentricity vector component along the equinoctial *g* axis.

    Returns:
        Mean longitude argument. Units: *rad*
    """
    l_ecc = jnp.asarray(l_ecc, dtype=get_dtype())
    return l_ecc - ex * jnp.sin(l_ecc) + ey * jnp.cos(l_ecc)


def longitude_mean_to_eccentric(l_mean: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert mean longitude to eccentric longitude.

    Solves the equinoctial Kepler equation with a Newton-Raphson iteration.
    Unlike :func:`anomaly_mean_to_eccentric` the input is not wrapped, so
    the result stays on the same revolution as ``l_mean``.

    Args:
        l_mean: Mean longitude argument. Units: *rad*
        ex: Eccentricity vector component along the equinoctial *f* axis.
        ey: Eccentricity vector component along the equinoctial *g* axis.

    Returns:
        Eccentric longitude argument. Units: *rad*
    """
    l_mean = jnp.asarray(l_mean, dtype=get_dtype())

    def newton_step(_, l_ecc):
        f = l_ecc - ex * jnp.sin(l_ecc) + ey * jnp.cos(l_ecc) - l_mean
        fp = 1.0 - ex * jnp.cos(l_ecc) - ey * jnp.sin(l_ecc)
        return l_ecc - f / fp

    return jax.lax.fori_loop(0, 10, newton_step, l_mean)


def longitude_eccentric_to_true(l_ecc: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert eccentric longitude to true longitude.

    Args:
        l_ecc: Eccentric longitude argument. Units: *rad*
        ex: Eccentricity vector component along the equinoctial *f* axis.
        ey: Eccentricity vector component along the equinoctial *g* axis.

    Returns:
        True longitude argument. Units: *rad*
    """
    l_ecc = jnp.asarray(l_ecc, dtype=get_dtype())
    epsilon = jnp.sqrt(1.0 - ex * ex - ey * ey)
    cos_le = jnp.cos(l_ecc)
    sin_le = jnp.sin(l_ecc)
    num = ex * sin_le - ey * cos_le
    den = epsilon + 1.0 - ex * cos_le - ey * sin_le
    return l_ecc + 2.0 * jnp.arctan(num / den)


def longitude_true_to_eccentric(l_true: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert true longitude to eccentric longitude.

    Args:
        l_true: True longitude argument. Units: *rad*
        ex: Eccentricity vector component along the equinoctial *f* axis.
        ey: Eccentricity vector component along the equinoctial *g* axis.

    Returns:
        Eccentric longitude argument. Units: *rad*
    """
    l_true = jnp.asarray(l_true, dtype=get_dtype())
    epsilon = jnp.sqrt(1.0 - ex * ex - ey * ey)
    cos_lv = jnp.cos(l_true)
    sin_lv = jnp.sin(l_true)
    num = ey * cos_lv - ex * sin_lv
    den = epsilon + 1.0 + ex * cos_lv + ey * sin_lv
    return l_true + 2.0 * jnp.arctan(num / den)


def longitude_mean_to_true(l_mean: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert mean longitude to true longitude (mean -> eccentric -> true)."""
    return longitude_eccentric_to_true(
        longitude_mean_to_eccentric(l_mean, ex, ey), ex, ey
    )


def longitude_true_to_mean(l_true: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert true longitude to mean longitude (true -> eccentric -> mean)."""
    return longitude_eccentric_to_mean(
        longitude_true_to_eccentric(l_true, ex, ey), ex, ey
    )
