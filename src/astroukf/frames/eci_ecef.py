"""ECI to ECEF frame transformations using Earth rotation.

Provides rotation matrices and state-vector transformations between the
Earth-Centered Inertial (ECI) frame and the Earth-Centered Earth-Fixed
(ECEF) frame.

The model keeps only the Earth rotation component, a single
:math:`R_z(\\theta_{\\text{GMST}})` rotation.  Ground-station
measurement models use it to place stations in the inertial frame in
which the filter states live.

All inputs and outputs use SI base units (metres, metres/second).

References:
    1. D. Vallado, *Fundamentals of Astrodynamics and Applications*,
       4th ed., Microcosm Press, 2013, Sec. 3.7.
    2. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012, Sec. 5.2.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import OMEGA_EARTH
from astroukf.epoch import Epoch
from astroukf.utils import to_radians


def Rz(angle: ArrayLike, use_degrees: bool = False) -> Array:
    """Rotation matrix, for a rotation about the z-axis.

    Args:
        angle: Counter-clockwise angle of rotation as viewed looking back
            along the positive direction of the rotation axis.
        use_degrees: Handle input in degrees. Default: ``False``

    Returns:
        jax.Array: 3x3 rotation matrix.

    References:

        1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and Applications*, 2012, p.27.
    """
    angle = to_radians(angle, use_degrees)

    c = jnp.cos(angle)
    s = jnp.sin(angle)

    return jnp.array([[ +c,   +s,  0.0],
                      [ -s,   +c,  0.0],
                      [0.0,  0.0,  1.0]])


def earth_rotation(epc: Epoch) -> Array:
    """Compute the Earth rotation matrix at the given epoch.

    Returns the 3x3 rotation matrix :math:`R_z(\\theta_{\\text{GMST}})` that
    rotates vectors from the ECI frame into the ECEF frame.

    Args:
        epc: Epoch at which to evaluate the rotation.

    Returns:
        jax.Array: 3x3 Earth rotation matrix.
    """
    return Rz(epc.gmst())


def rotation_eci_to_ecef(epc: Epoch) -> Array:
    """Compute the 3x3 rotation matrix from the ECI frame to the ECEF frame."""
    return earth_rotation(epc)


def rotation_ecef_to_eci(epc: Epoch) -> Array:
    """Compute the 3x3 rotation matrix from the ECEF frame to the ECI frame."""
    return earth_rotation(epc).T


def state_eci_to_ecef(epc: Epoch, x_eci: ArrayLike) -> Array:
    """Transform a 6-element state vector from ECI to ECEF.

    Rotates position and velocity, and subtracts the velocity contribution
    from Earth's rotation.

    Args:
        epc: Epoch at which to evaluate the transformation.
        x_eci: 6-element ECI state ``[x, y, z, vx, vy, vz]``.
            Units: m, m/s.

    Returns:
        jax.Array: 6-element ECEF state ``[x, y, z, vx, vy, vz]``.
    """
    x_eci = jnp.asarray(x_eci, dtype=get_dtype())

    R = earth_rotation(epc)
    omega = jnp.array([0.0, 0.0, OMEGA_EARTH], dtype=get_dtype())

    r_ecef = R @ x_eci[:3]
    v_ecef = R @ x_eci[3:6] - jnp.cross(omega, r_ecef)

    return jnp.concatenate([r_ecef, v_ecef])


def state_ecef_to_eci(epc: Epoch, x_ecef: ArrayLike) -> Array:
    """Transform a 6-element state vector from ECEF to ECI.

    Inverse of :func:`state_eci_to_ecef`.

    Args:
        epc: Epoch at which to evaluate the transformation.
        x_ecef: 6-element ECEF state ``[x, y, z, vx, vy, vz]``.
            Units: m, m/s.

    Returns:
        jax.Array: 6-element ECI state ``[x, y, z, vx, vy, vz]``.

    Example:
        >>> import jax.numpy as jnp
        >>> from astroukf import Epoch
        >>> from astroukf.frames import state_ecef_to_eci
        >>> from astroukf.constants import R_EARTH
        >>> x_eci = state_ecef_to_eci(Epoch(2024, 1, 1), jnp.array([R_EARTH, 0.0, 0.0, 0.0, 0.0, 0.0]))
        >>> x_eci.shape
        (6,)
    """
    x_ecef = jnp.asarray(x_ecef, dtype=get_dtype())

    R = earth_rotation(epc)
    omega = jnp.array([0.0, 0.0, OMEGA_EARTH], dtype=get_dtype())

    r_ecef = x_ecef[:3]
    v_ecef = x_ecef[3:6]

    r_eci = R.T @ r_ecef
    v_eci = R.T @ (v_ecef + jnp.cross(omega, r_ecef))

    return jnp.concatenate([r_eci, v_eci])
