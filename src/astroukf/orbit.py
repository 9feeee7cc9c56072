"""Orbit representation and conversions between element sets.

An :class:`Orbit` stores a six-element array together with the element
set it is expressed in (:class:`OrbitType`), the convention of its angle
(:class:`PositionAngle`), its epoch, the gravitational parameter and the
name of its inertial frame.  It is immutable: a change of state is a new
orbit.

:func:`convert_elements` is a pure ``jax.numpy`` function between any two
element layouts, so Jacobians of one element set with respect to another
are one ``jax.jacfwd`` away.  :meth:`Orbit.from_array` is the checked
entry point used when a filter builds orbits from arithmetic on element
arrays: anything that is not a bound elliptical orbit raises
:class:`~astroukf.errors.InvalidOrbitState` instead of silently
carrying NaNs forward.

Element layouts:

- ``CARTESIAN``: ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*
- ``KEPLERIAN``: ``[a, e, i, Ω, ω, anomaly]`` in *m* and *rad*
- ``EQUINOCTIAL``: ``[a, ex, ey, hx, hy, λ]`` in *m* and *rad*
"""

from __future__ import annotations

import enum
import math
from typing import NamedTuple

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH
from astroukf.coordinates.equinoctial import (
    state_eci_to_eqoe,
    state_eqoe_to_eci,
    state_eqoe_to_koe,
    state_koe_to_eqoe,
)
from astroukf.coordinates.keplerian import state_eci_to_koe, state_koe_to_eci
from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, InvalidOrbitState
from astroukf.orbits.keplerian import (
    anomaly_eccentric_to_mean,
    anomaly_mean_to_eccentric,
    anomaly_mean_to_true,
    anomaly_true_to_mean,
    longitude_eccentric_to_mean,
    longitude_mean_to_eccentric,
    longitude_mean_to_true,
    longitude_true_to_mean,
)


class OrbitType(enum.Enum):
    """Element set used to represent an orbit as a six-component array."""

    CARTESIAN = "CARTESIAN"
    KEPLERIAN = "KEPLERIAN"
    EQUINOCTIAL = "EQUINOCTIAL"


class PositionAngle(enum.Enum):
    """Convention of the fast angle (anomaly or longitude argument)."""

    MEAN = "MEAN"
    ECCENTRIC = "ECCENTRIC"
    TRUE = "TRUE"


_ANGLE_SUFFIX = {
    PositionAngle.MEAN: "M",
    PositionAngle.ECCENTRIC: "E",
    PositionAngle.TRUE: "v",
}


def orbit_parameter_names(orbit_type: OrbitType, angle_type: PositionAngle) -> tuple[str, ...]:
    """Names of the six orbital parameters of an element set.

    Args:
        orbit_type: Element set.
        angle_type: Convention of the fast angle.

    Returns:
        Six parameter names in array order, e.g.
        ``("a", "ex", "ey", "hx", "hy", "λM")``.
    """
    if orbit_type == OrbitType.CARTESIAN:
        return ("Px", "Py", "Pz", "Vx", "Vy", "Vz")
    suffix = _ANGLE_SUFFIX[angle_type]
    if orbit_type == OrbitType.KEPLERIAN:
        return ("a", "e", "i", "Ω", "ω", suffix)
    return ("a", "ex", "ey", "hx", "hy", "λ" + suffix)


# ──────────────────────────────────────────────
# Angle conventions
# ──────────────────────────────────────────────


def _angle_to_mean(x: Array, orbit_type: OrbitType, angle_type: PositionAngle) -> Array:
    if orbit_type == OrbitType.CARTESIAN or angle_type == PositionAngle.MEAN:
        return x
    if orbit_type == OrbitType.KEPLERIAN:
        if angle_type == PositionAngle.ECCENTRIC:
            angle = anomaly_eccentric_to_mean(x[5], x[1])
        else:
            angle = anomaly_true_to_mean(x[5], x[1])
    else:
        if angle_type == PositionAngle.ECCENTRIC:
            angle = longitude_eccentric_to_mean(x[5], x[1], x[2])
        else:
            angle = longitude_true_to_mean(x[5], x[1], x[2])
    return x.at[5].set(angle)


def _angle_from_mean(x: Array, orbit_type: OrbitType, angle_type: PositionAngle) -> Array:
    if orbit_type == OrbitType.CARTESIAN or angle_type == PositionAngle.MEAN:
        return x
    if orbit_type == OrbitType.KEPLERIAN:
        if angle_type == PositionAngle.ECCENTRIC:
            angle = anomaly_mean_to_eccentric(x[5], x[1])
        else:
            angle = anomaly_mean_to_true(x[5], x[1])
    else:
        if angle_type == PositionAngle.ECCENTRIC:
            angle = longitude_mean_to_eccentric(x[5], x[1], x[2])
        else:
            angle = longitude_mean_to_true(x[5], x[1], x[2])
    return x.at[5].set(angle)


def _mean_form_to_cartesian(x: Array, orbit_type: OrbitType, mu: ArrayLike) -> Array:
    if orbit_type == OrbitType.KEPLERIAN:
        return state_koe_to_eci(x, gm=mu)
    if orbit_type == OrbitType.EQUINOCTIAL:
        return state_eqoe_to_eci(x, gm=mu)
    return x


def _cartesian_to_mean_form(x: Array, orbit_type: OrbitType, mu: ArrayLike) -> Array:
    if orbit_type == OrbitType.KEPLERIAN:
        return state_eci_to_koe(x, gm=mu)
    if orbit_type == OrbitType.EQUINOCTIAL:
        return state_eci_to_eqoe(x, gm=mu)
    return x


def convert_elements(
    elements: ArrayLike,
    from_type: OrbitType,
    from_angle: PositionAngle,
    to_type: OrbitType,
    to_angle: PositionAngle,
    mu: ArrayLike = GM_EARTH,
) -> Array:
    """Convert a six-element array between element sets and angle conventions.

    Keplerian and equinoctial elements are converted directly into each
    other; every other pair goes through Cartesian coordinates.  The
    function is pure and differentiable with ``jax.jacfwd``.

    Args:
        elements: Input element array.
        from_type: Element set of ``elements``.
        from_angle: Angle convention of ``elements``.
        to_type: Requested element set.
        to_angle: Requested angle convention.
        mu: Gravitational parameter in *m^3/s^2*.

    Returns:
        Element array in the requested representation.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.constants import R_EARTH
        from astroukf.orbit import OrbitType, PositionAngle, convert_elements
        koe = jnp.array([R_EARTH + 500e3, 0.01, 0.9, 0.1, 0.2, 0.3])
        eq = convert_elements(koe, OrbitType.KEPLERIAN, PositionAngle.MEAN,
                              OrbitType.EQUINOCTIAL, PositionAngle.TRUE)
        ```
    """
    x = jnp.asarray(elements, dtype=get_dtype())
    if from_type == to_type and (from_angle == to_angle or from_type == OrbitType.CARTESIAN):
        return x

    xm = _angle_to_mean(x, from_type, from_angle)

    if from_type == to_type:
        ym = xm
    elif from_type == OrbitType.KEPLERIAN and to_type == OrbitType.EQUINOCTIAL:
        ym = state_koe_to_eqoe(xm)
    elif from_type == OrbitType.EQUINOCTIAL and to_type == OrbitType.KEPLERIAN:
        ym = state_eqoe_to_koe(xm)
    else:
        ym = _cartesian_to_mean_form(_mean_form_to_cartesian(xm, from_type, mu), to_type, mu)

    return _angle_from_mean(ym, to_type, to_angle)


def _validate_elements(x: np.ndarray, orbit_type: OrbitType, mu: float) -> None:
    if not np.all(np.isfinite(x)):
        raise InvalidOrbitState(f"non-finite {orbit_type.value} elements: {x}")
    if orbit_type == OrbitType.CARTESIAN:
        r = np.linalg.norm(x[:3])
        h = np.linalg.norm(np.cross(x[:3], x[3:6]))
        if r == 0.0 or h == 0.0:
            raise InvalidOrbitState("degenerate Cartesian state (null position or angular momentum)")
        energy = 0.5 * np.dot(x[3:6], x[3:6]) - mu / r
        if energy >= 0.0:
            raise InvalidOrbitState(f"hyperbolic or parabolic Cartesian state (energy {energy})")
        return
    if x[0] <= 0.0:
        raise InvalidOrbitState(f"non-positive semi-major axis {x[0]}")
    if orbit_type == OrbitType.KEPLERIAN:
        if x[1] < 0.0 or x[1] >= 1.0:
            raise InvalidOrbitState(f"eccentricity {x[1]} outside [0, 1)")
    elif x[1] ** 2 + x[2] ** 2 >= 1.0:
        raise InvalidOrbitState(f"eccentricity vector ({x[1]}, {x[2]}) outside the unit disk")


class Orbit(NamedTuple):
    """An orbit expressed in one element set at one epoch.

    Use :meth:`from_array` to build orbits from computed arrays; it checks
    that the elements describe a bound elliptical orbit.

    Attributes:
        elements: Six-element array in ``orbit_type`` / ``angle_type``.
        orbit_type: Element set of ``elements``.
        angle_type: Angle convention of ``elements``.
        epoch: Epoch of the orbit.
        mu: Gravitational parameter in *m^3/s^2*.
        frame: Name of the inertial frame, ``None`` if unset.
    """

    elements: Array
    orbit_type: OrbitType
    angle_type: PositionAngle
    epoch: Epoch
    mu: float = GM_EARTH
    frame: str | None = "ECI"

    @classmethod
    def from_array(
        cls,
        elements: ArrayLike,
        orbit_type: OrbitType,
        angle_type: PositionAngle,
        epoch: Epoch,
        mu: float = GM_EARTH,
        frame: str | None = "ECI",
    ) -> Orbit:
        """Build an orbit from an element array, checking it is elliptical.

        Raises:
            InvalidOrbitState: If the elements are non-finite or do not
                describe a bound elliptical orbit.
            ConfigurationError: If ``mu`` is not a positive finite number.
        """
        mu = float(mu)
        if not math.isfinite(mu) or mu <= 0.0:
            raise ConfigurationError(f"gravitational parameter must be positive, got {mu}")
        x = jnp.asarray(elements, dtype=get_dtype())
        if x.shape != (6,):
            raise InvalidOrbitState(f"orbit arrays have 6 elements, got shape {x.shape}")
        _validate_elements(np.asarray(x), orbit_type, mu)
        return cls(x, orbit_type, angle_type, epoch, mu, frame)

    def to_array(
        self,
        orbit_type: OrbitType | None = None,
        angle_type: PositionAngle | None = None,
    ) -> Array:
        """Return the elements in the requested representation.

        Args:
            orbit_type: Element set. Default: the orbit's own.
            angle_type: Angle convention. Default: the orbit's own.
        """
        orbit_type = self.orbit_type if orbit_type is None else orbit_type
        angle_type = self.angle_type if angle_type is None else angle_type
        return convert_elements(
            self.elements, self.orbit_type, self.angle_type, orbit_type, angle_type, self.mu
        )

    def cartesian(self) -> Array:
        """Inertial state ``[x, y, z, vx, vy, vz]``."""
        return self.to_array(OrbitType.CARTESIAN, PositionAngle.MEAN)

    def keplerian(self) -> Array:
        """Keplerian elements ``[a, e, i, Ω, ω, M]`` with mean anomaly."""
        return self.to_array(OrbitType.KEPLERIAN, PositionAngle.MEAN)

    @property
    def position(self) -> Array:
        return self.cartesian()[:3]

    @property
    def velocity(self) -> Array:
        return self.cartesian()[3:6]

    @property
    def a(self) -> Array:
        """Semi-major axis in *m*."""
        if self.orbit_type == OrbitType.CARTESIAN:
            return self.keplerian()[0]
        return self.elements[0]
