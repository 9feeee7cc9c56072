"""Ground station participating in tracking measurements."""

from __future__ import annotations

from collections.abc import Mapping

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.coordinates import (
    position_geodetic_to_ecef,
    relative_position_ecef_to_enz,
    rotation_enz_to_ellipsoid,
)
from astroukf.epoch import Epoch
from astroukf.frames import rotation_ecef_to_eci
from astroukf.parameters import ParameterDriver, parameter_value

# Scale of the station offset drivers, in metres
_OFFSET_SCALE = 1.0


class GroundStation:
    """Tracking station fixed on the WGS84 ellipsoid.

    The station carries three offset drivers, along the local East, North
    and Zenith axes, named ``"<name>-offset-East"`` and so on.  They
    start at zero and are not selected.

    Args:
        name: Station name, prefix of its driver names.
        geodetic: Geodetic location ``[lon, lat, alt]`` in *rad* and *m*.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.measurements import GroundStation
        station = GroundStation("Kiruna", jnp.array([0.3658, 1.1844, 390.0]))
        [d.name for d in station.parameters_drivers]
        ```
    """

    def __init__(self, name: str, geodetic: ArrayLike) -> None:
        self._name = name
        self._geodetic = jnp.asarray(geodetic, dtype=get_dtype())
        self._east = ParameterDriver(f"{name}-offset-East", 0.0, _OFFSET_SCALE)
        self._north = ParameterDriver(f"{name}-offset-North", 0.0, _OFFSET_SCALE)
        self._zenith = ParameterDriver(f"{name}-offset-Zenith", 0.0, _OFFSET_SCALE)

    @property
    def name(self) -> str:
        return self._name

    @property
    def geodetic(self) -> Array:
        return self._geodetic

    @property
    def parameters_drivers(self) -> list[ParameterDriver]:
        return [self._east, self._north, self._zenith]

    def offset_enz(self, parameter_offsets: Mapping[str, ArrayLike] | None = None) -> Array:
        """Station displacement in its own ENZ frame, in *m*."""
        return jnp.array([
            parameter_value(self._east, parameter_offsets),
            parameter_value(self._north, parameter_offsets),
            parameter_value(self._zenith, parameter_offsets),
        ], dtype=get_dtype())

    def position_ecef(self, parameter_offsets: Mapping[str, ArrayLike] | None = None) -> Array:
        """Station position in ECEF, offsets included."""
        return (position_geodetic_to_ecef(self._geodetic)
                + rotation_enz_to_ellipsoid(self._geodetic) @ self.offset_enz(parameter_offsets))

    def position_eci(self, date: Epoch, parameter_offsets: Mapping[str, ArrayLike] | None = None) -> Array:
        """Station position in ECI at ``date``."""
        return rotation_ecef_to_eci(date) @ self.position_ecef(parameter_offsets)

    def topocentric(
        self,
        r_ecef: ArrayLike,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> Array:
        """Position of a target relative to the station in its ENZ frame.

        Args:
            r_ecef: Target ECEF position in *m*.
            parameter_offsets: Offsets on the station drivers.

        Returns:
            ``[east, north, zenith]`` in *m*.
        """
        return relative_position_ecef_to_enz(self._geodetic, r_ecef) - self.offset_enz(parameter_offsets)

    def __repr__(self) -> str:
        return f"GroundStation({self._name!r})"
