"""Mean-osculating Keplerian element conversions and secular J2 rates.

First-order J2 perturbation mapping based on Brouwer-Lyddane theory.
Implements the algorithm from Schaub and Junkins, *Analytical Mechanics
of Space Systems*, Appendix F: "First-Order Mapping Between Mean and
Osculating Orbit Elements".

The transformation uses a sign convention on the perturbation parameter
gamma_2 to handle both directions (mean-to-osculating and
osculating-to-mean) with a single code path, keeping the implementation
fully JAX-traceable with no Python control flow.

The J2 coefficient and reference radius are arguments rather than
module constants so that an estimated J2 value can flow through the
mapping.  The mapping is singular at the critical inclination
(``cos^2 i = 1/5``) and for equatorial orbits.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH, J2_EARTH, R_EARTH
from astroukf.orbits.keplerian import (
    anomaly_eccentric_to_true,
    anomaly_mean_to_eccentric,
)
from astroukf.utils import from_radians, to_radians


def _transform_koe(oe: Array, sign: float, j2: ArrayLike, r_eq: float) -> Array:
    """Apply the first-order Brouwer-Lyddane J2 transformation.

    Implements equations F.1-F.22 from Schaub & Junkins Appendix F.

    Args:
        oe: Keplerian elements ``[a, e, i, Omega, omega, M]`` in
            metres and radians.
        sign: ``+1.0`` for mean-to-osculating, ``-1.0`` for
            osculating-to-mean.
        j2: Unnormalized second zonal harmonic.
        r_eq: Reference equatorial radius in metres.

    Returns:
        Transformed Keplerian elements in metres and radians.
    """
    a, e, i, raan, argp, m_anom = (oe[k] for k in range(6))

    # (F.1-F.3)
    gamma2 = sign * (j2 / 2.0) * (r_eq / a) ** 2
    eta = jnp.sqrt(1.0 - e * e)
    eta2 = eta * eta
    eta3 = eta2 * eta
    eta6 = eta3 * eta3
    gp = gamma2 / (eta2 * eta2)

    # (F.4-F.6)
    f = anomaly_eccentric_to_true(anomaly_mean_to_eccentric(m_anom, e), e)
    a_r = (1.0 + e * jnp.cos(f)) / eta2
    a_r3 = a_r ** 3

    c = jnp.cos(i)
    c2 = c * c
    c4 = c2 * c2
    c6 = c4 * c2
    s2 = 1.0 - c2
    k5 = 1.0 - 5.0 * c2
    k5_sq = k5 * k5

    cf = jnp.cos(f)
    sf = jnp.sin(f)
    cf2 = cf * cf
    cf3 = cf2 * cf

    w2 = 2.0 * argp
    c_w2 = jnp.cos(w2)
    c_w2f1 = jnp.cos(w2 + f)
    s_w2f1 = jnp.sin(w2 + f)
    c_w2f2 = jnp.cos(w2 + 2.0 * f)
    s_w2f2 = jnp.sin(w2 + 2.0 * f)
    c_w2f3 = jnp.cos(w2 + 3.0 * f)
    s_w2f3 = jnp.sin(w2 + 3.0 * f)

    # Equation of the center term shared by F.11 and F.13
    center = f - m_anom + e * sf
    # Long-period bracket shared by F.8, F.11 and F.12
    lp = 1.0 - 11.0 * c2 - 40.0 * c4 / k5

    # (F.7)
    a_new = a + a * gamma2 * (
        (3.0 * c2 - 1.0) * (a_r3 - 1.0 / eta3)
        + 3.0 * s2 * a_r3 * c_w2f2
    )

    # (F.8-F.9)
    de1 = (gp / 8.0) * e * eta2 * lp * c_w2
    de = de1 + (eta2 / 2.0) * (
        gamma2 * (
            ((3.0 * c2 - 1.0) / eta6)
            * (e * eta + e / (1.0 + eta) + 3.0 * cf + 3.0 * e * cf2 + e * e * cf3)
            + 3.0 * (s2 / eta6)
            * (e + 3.0 * cf + 3.0 * e * cf2 + e * e * cf3) * c_w2f2
        )
        - gp * s2 * (3.0 * c_w2f1 + c_w2f3)
    )

    # (F.10)
    s_i = jnp.sqrt(s2)
    di = -(e * de1) / (eta2 * jnp.tan(i)) + (gp / 2.0) * c * s_i * (
        3.0 * c_w2f2 + 3.0 * e * c_w2f1 + e * c_w2f3
    )

    # (F.13) node, reused inside F.11
    d_raan = (
        -(gp / 8.0) * e * e * c * (11.0 + 80.0 * c2 / k5 + 200.0 * c4 / k5_sq)
        - (gp / 2.0) * c * (6.0 * center - 3.0 * s_w2f2 - 3.0 * e * s_w2f1 - e * s_w2f3)
    )

    # (F.11) M' + omega' + Omega'
    mpo = (
        m_anom + argp + raan
        + (gp / 8.0) * eta3 * lp
        - (gp / 16.0) * (
            2.0 + e * e
            - 11.0 * (2.0 + 3.0 * e * e) * c2
            - 40.0 * (2.0 + 5.0 * e * e) * c4 / k5
            - 400.0 * e * e * c6 / k5_sq
        )
        + (gp / 4.0) * (
            -6.0 * k5 * center
            + (3.0 - 5.0 * c2) * (3.0 * s_w2f2 + 3.0 * e * s_w2f1 + e * s_w2f3)
        )
        + d_raan
    )

    # (F.12) e * delta_M
    aer = a_r * eta
    aer2 = aer * aer
    e_dm = (gp / 8.0) * e * eta3 * lp - (gp / 4.0) * eta3 * (
        2.0 * (3.0 * c2 - 1.0) * (aer2 + a_r + 1.0) * sf
        + 3.0 * s2 * (
            (-aer2 - a_r + 1.0) * s_w2f1
            + (aer2 + a_r + 1.0 / 3.0) * s_w2f3
        )
    )

    # (F.14-F.17) eccentricity and mean anomaly
    sm = jnp.sin(m_anom)
    cm = jnp.cos(m_anom)
    d1 = (e + de) * sm + e_dm * cm
    d2 = (e + de) * cm - e_dm * sm
    m_new = jnp.arctan2(d1, d2)
    e_new = jnp.sqrt(d1 * d1 + d2 * d2)

    # (F.18-F.21) inclination and node
    sh = jnp.sin(i / 2.0)
    ch = jnp.cos(i / 2.0)
    sr = jnp.sin(raan)
    cr = jnp.cos(raan)
    d3 = (sh + ch * di / 2.0) * sr + sh * d_raan * cr
    d4 = (sh + ch * di / 2.0) * cr - sh * d_raan * sr
    raan_new = jnp.arctan2(d3, d4)
    i_new = 2.0 * jnp.arcsin(jnp.sqrt(d3 * d3 + d4 * d4))

    # (F.22)
    argp_new = mpo - m_new - raan_new

    two_pi = 2.0 * jnp.pi
    return jnp.array([
        a_new,
        e_new,
        i_new,
        raan_new % two_pi,
        argp_new % two_pi,
        m_new % two_pi,
    ])


def _to_rad(oe: Array, use_degrees: bool) -> Array:
    return jnp.concatenate([oe[:2], to_radians(oe[2:], use_degrees)])


def _from_rad(oe: Array, use_degrees: bool) -> Array:
    return jnp.concatenate([oe[:2], from_radians(oe[2:], use_degrees)])


def state_koe_osc_to_mean(
    oe: ArrayLike,
    use_degrees: bool = False,
    j2: ArrayLike = J2_EARTH,
    r_eq: float = R_EARTH,
) -> Array:
    """Convert osculating Keplerian elements to mean Keplerian elements.

    Applies the first-order Brouwer-Lyddane transformation to convert
    osculating (instantaneous) orbital elements to mean (orbit-averaged)
    elements.

    Args:
        oe: Osculating Keplerian elements ``[a, e, i, Omega, omega, M]``.
            Semi-major axis in metres, eccentricity dimensionless,
            angles in radians or degrees.
        use_degrees: If ``True``, angular elements are in degrees.
        j2: Unnormalized second zonal harmonic. Default: Earth.
        r_eq: Reference equatorial radius in metres. Default: Earth.

    Returns:
        Mean Keplerian elements in the same format as input.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.constants import R_EARTH
        from astroukf.orbits import state_koe_osc_to_mean

        osc = jnp.array([R_EARTH + 500e3, 0.001, 45.0, 0.0, 0.0, 0.0])
        mean = state_koe_osc_to_mean(osc, use_degrees=True)
        ```
    """
    oe = jnp.asarray(oe, dtype=get_dtype())
    return _from_rad(_transform_koe(_to_rad(oe, use_degrees), -1.0, j2, r_eq), use_degrees)


def state_koe_mean_to_osc(
    oe: ArrayLike,
    use_degrees: bool = False,
    j2: ArrayLike = J2_EARTH,
    r_eq: float = R_EARTH,
) -> Array:
    """Convert mean Keplerian elements to osculating Keplerian elements.

    Applies the first-order Brouwer-Lyddane transformation to convert
    mean (orbit-averaged) orbital elements to osculating (instantaneous)
    elements.  The difference between the two is the J2 short-period
    (and long-period) correction used by the semi-analytical propagator.

    Args:
        oe: Mean Keplerian elements ``[a, e, i, Omega, omega, M]``.
            Semi-major axis in metres, eccentricity dimensionless,
            angles in radians or degrees.
        use_degrees: If ``True``, angular elements are in degrees.
        j2: Unnormalized second zonal harmonic. Default: Earth.
        r_eq: Reference equatorial radius in metres. Default: Earth.

    Returns:
        Osculating Keplerian elements in the same format as input.
    """
    oe = jnp.asarray(oe, dtype=get_dtype())
    return _from_rad(_transform_koe(_to_rad(oe, use_degrees), +1.0, j2, r_eq), use_degrees)


def mean_element_rates_j2(
    oe: ArrayLike,
    gm: float = GM_EARTH,
    j2: ArrayLike = J2_EARTH,
    r_eq: float = R_EARTH,
) -> Array:
    """Secular drift of mean Keplerian elements caused by J2.

    Semi-major axis, eccentricity and inclination have no secular drift
    at first order; the node regresses and the perigee and mean anomaly
    drift.  The Keplerian mean motion itself is *not* included in the
    mean anomaly rate.

    Args:
        oe: Mean Keplerian elements ``[a, e, i, Omega, omega, M]`` in
            metres and radians.
        gm: Gravitational parameter in *m^3/s^2*.
        j2: Unnormalized second zonal harmonic.
        r_eq: Reference equatorial radius in metres.

    Returns:
        Element rates ``[0, 0, 0, dOmega, domega, dM]`` in *rad/s*.

    References:
        D. Vallado, *Fundamentals of Astrodynamics and Applications
        (4th Ed.)*, Sec. 9.6, 2013.
    """
    oe = jnp.asarray(oe, dtype=get_dtype())
    a = oe[0]
    e = oe[1]
    cos_i = jnp.cos(oe[2])

    n = jnp.sqrt(gm / a**3)
    eta = jnp.sqrt(1.0 - e * e)
    p = a * eta * eta
    k = 0.75 * n * j2 * (r_eq / p) ** 2

    raan_dot = -2.0 * k * cos_i
    argp_dot = k * (5.0 * cos_i * cos_i - 1.0)
    m_dot = k * eta * (3.0 * cos_i * cos_i - 1.0)

    zero = jnp.zeros_like(a)
    return jnp.array([zero, zero, zero, raan_dot, argp_dot, m_dot])
