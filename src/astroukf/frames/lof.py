"""Local orbital frames (LOF) attached to a reference spacecraft.

Provides rotation matrices and relative state mappings between the
Earth-Centered Inertial (ECI) frame and two local orbital frames:

- **QSW** (also called RTN or LVLH): *Q* radial from Earth's center
  toward the satellite, *W* along the angular momentum, *S* completing
  the right-handed triad (``W x Q``).
- **TNW**: *T* along the inertial velocity, *W* along the angular
  momentum, *N* completing the right-handed triad (``W x T``).

Process-noise models specify their uncertainty growth along these axes
and map it to the inertial frame through :func:`state_lof_to_eci`.

All inputs and outputs use SI base units (metres, metres/second).

References:
    1. H. Schaub and J. Junkins, *Analytical Mechanics of Space Systems*,
       2nd ed., AIAA, 2009.
    2. K. Alfriend et al., *Spacecraft Formation Flying*, Elsevier, 2010,
       eq. 2.16.
"""

from __future__ import annotations

import enum

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH


class LOFType(enum.Enum):
    """Supported local orbital frame definitions."""

    QSW = "QSW"
    TNW = "TNW"


def rotation_lof_to_eci(x_eci: ArrayLike, lof_type: LOFType = LOFType.QSW) -> Array:
    """Compute the 3x3 rotation matrix from a local orbital frame to ECI.

    The columns of the returned matrix are the LOF unit vectors expressed
    in ECI coordinates.

    Args:
        x_eci: 6-element ECI state ``[x, y, z, vx, vy, vz]`` of the
            reference spacecraft. Units: m, m/s.
        lof_type: Local orbital frame definition. Default: ``LOFType.QSW``.

    Returns:
        jax.Array: 3x3 rotation matrix (LOF -> ECI).

    Example:
        >>> import jax.numpy as jnp
        >>> from astroukf.frames import LOFType, rotation_lof_to_eci
        >>> from astroukf.constants import R_EARTH, GM_EARTH
        >>> sma = R_EARTH + 500e3
        >>> x = jnp.array([sma, 0.0, 0.0, 0.0, jnp.sqrt(GM_EARTH / sma), 0.0])
        >>> rotation_lof_to_eci(x, LOFType.TNW).shape
        (3, 3)
    """
    x_eci = jnp.asarray(x_eci, dtype=get_dtype())

    r = x_eci[:3]
    v = x_eci[3:6]

    h = jnp.cross(r, v)
    w_hat = h / jnp.linalg.norm(h)

    if lof_type == LOFType.QSW:
        q_hat = r / jnp.linalg.norm(r)
        s_hat = jnp.cross(w_hat, q_hat)
        return jnp.column_stack([q_hat, s_hat, w_hat])

    t_hat = v / jnp.linalg.norm(v)
    n_hat = jnp.cross(w_hat, t_hat)
    return jnp.column_stack([t_hat, n_hat, w_hat])


def rotation_eci_to_lof(x_eci: ArrayLike, lof_type: LOFType = LOFType.QSW) -> Array:
    """Compute the 3x3 rotation matrix from ECI to a local orbital frame.

    This is the transpose of :func:`rotation_lof_to_eci`.
    """
    return rotation_lof_to_eci(x_eci, lof_type).T


def lof_angular_rate(
    x_eci: ArrayLike,
    lof_type: LOFType = LOFType.QSW,
    gm: float = GM_EARTH,
) -> Array:
    """Angular rate of the local orbital frame about its *W* axis.

    For QSW this is the rate of the argument of latitude
    (``|r x v| / |r|^2``).  For TNW it is the turning rate of the velocity
    vector under Keplerian acceleration (``|v x a| / |v|^2``).

    Args:
        x_eci: 6-element ECI state of the reference spacecraft.
        lof_type: Local orbital frame definition.
        gm: Gravitational parameter in *m^3/s^2*.

    Returns:
        Angular rate in *rad/s*.
    """
    x_eci = jnp.asarray(x_eci, dtype=get_dtype())
    r = x_eci[:3]
    v = x_eci[3:6]
    h_norm = jnp.linalg.norm(jnp.cross(r, v))
    r_norm = jnp.linalg.norm(r)

    if lof_type == LOFType.QSW:
        return h_norm / r_norm ** 2

    v2 = jnp.dot(v, v)
    return gm * h_norm / (r_norm ** 3 * v2)


def state_eci_to_lof(
    x_chief: ArrayLike,
    x_deputy: ArrayLike,
    lof_type: LOFType = LOFType.QSW,
    gm: float = GM_EARTH,
) -> Array:
    """Transform an absolute ECI state into a relative LOF state.

    Computes the position and velocity of *x_deputy* relative to
    *x_chief* expressed in the chief's rotating local orbital frame,
    accounting for the frame's angular velocity.

    Args:
        x_chief: 6-element ECI state of the reference spacecraft.
        x_deputy: 6-element ECI state to express relative to the chief.
        lof_type: Local orbital frame definition.
        gm: Gravitational parameter in *m^3/s^2*.

    Returns:
        jax.Array: 6-element relative state in the LOF. Units: m, m/s.
    """
    x_chief = jnp.asarray(x_chief, dtype=get_dtype())
    x_deputy = jnp.asarray(x_deputy, dtype=get_dtype())

    R_eci2lof = rotation_eci_to_lof(x_chief, lof_type)
    omega = jnp.array([0.0, 0.0, lof_angular_rate(x_chief, lof_type, gm)])

    rho_lof = R_eci2lof @ (x_deputy[:3] - x_chief[:3])
    rho_dot_lof = R_eci2lof @ (x_deputy[3:6] - x_chief[3:6]) - jnp.cross(omega, rho_lof)

    return jnp.concatenate([rho_lof, rho_dot_lof])


def state_lof_to_eci(
    x_chief: ArrayLike,
    x_rel_lof: ArrayLike,
    lof_type: LOFType = LOFType.QSW,
    gm: float = GM_EARTH,
) -> Array:
    """Transform a relative LOF state back to an absolute ECI state.

    Inverse of :func:`state_eci_to_lof`.

    Args:
        x_chief: 6-element ECI state of the reference spacecraft.
        x_rel_lof: 6-element relative state in the chief's LOF.
        lof_type: Local orbital frame definition.
        gm: Gravitational parameter in *m^3/s^2*.

    Returns:
        jax.Array: 6-element absolute ECI state. Units: m, m/s.

    Example:
        >>> import jax.numpy as jnp
        >>> from astroukf.frames import state_lof_to_eci
        >>> from astroukf.constants import R_EARTH, GM_EARTH
        >>> sma = R_EARTH + 500e3
        >>> chief = jnp.array([sma, 0.0, 0.0, 0.0, jnp.sqrt(GM_EARTH / sma), 0.0])
        >>> deputy = state_lof_to_eci(chief, jnp.array([100.0, 0.0, 0.0, 0.0, 0.0, 0.0]))
        >>> float(deputy[0] - chief[0])
        100.0
    """
    x_chief = jnp.asarray(x_chief, dtype=get_dtype())
    x_rel_lof = jnp.asarray(x_rel_lof, dtype=get_dtype())

    R_lof2eci = rotation_lof_to_eci(x_chief, lof_type)
    omega = jnp.array([0.0, 0.0, lof_angular_rate(x_chief, lof_type, gm)])

    rho_lof = x_rel_lof[:3]
    rho_dot_lof = x_rel_lof[3:6]

    r_deputy = x_chief[:3] + R_lof2eci @ rho_lof
    v_deputy = x_chief[3:6] + R_lof2eci @ (rho_dot_lof + jnp.cross(omega, rho_lof))

    return jnp.concatenate([r_deputy, v_deputy])
