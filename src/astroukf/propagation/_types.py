"""Type definitions for semi-analytical propagation.

- :class:`PropagationType`: whether an orbit holds mean or osculating
  elements.
- :class:`SpacecraftState`: immutable snapshot of a spacecraft at one
  epoch.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from types import MappingProxyType
from typing import NamedTuple

from jax import Array

from astroukf.epoch import Epoch
from astroukf.orbit import Orbit


class PropagationType(enum.Enum):
    """Nature of the elements carried by an orbit."""

    MEAN = "MEAN"
    OSCULATING = "OSCULATING"


_NO_ADDITIONAL: Mapping[str, Array] = MappingProxyType({})


class SpacecraftState(NamedTuple):
    """Immutable state of a spacecraft.

    A change of any component is expressed by building a new state, for
    example with :meth:`with_orbit`.

    Attributes:
        orbit: Orbit of the spacecraft, mean or osculating depending on
            where the state comes from.
        mass: Spacecraft mass in *kg*. Default: 1000.0.
        attitude: Optional attitude quaternion ``[w, x, y, z]``.
        additional: Read-only mapping of named extra state arrays.
    """

    orbit: Orbit
    mass: float = 1000.0
    attitude: Array | None = None
    additional: Mapping[str, Array] = _NO_ADDITIONAL

    @property
    def epoch(self) -> Epoch:
        return self.orbit.epoch

    def with_orbit(self, orbit: Orbit) -> SpacecraftState:
        """Copy of this state with another orbit."""
        return self._replace(orbit=orbit)

    def with_additional(self, name: str, value: Array) -> SpacecraftState:
        """Copy of this state with one more named extra array."""
        additional = dict(self.additional)
        additional[name] = value
        return self._replace(additional=MappingProxyType(additional))
