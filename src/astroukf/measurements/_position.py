"""Direct position and position-velocity measurements (e.g. GNSS fixes)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import jax.numpy as jnp
from jax.typing import ArrayLike

from astroukf.epoch import Epoch
from astroukf.measurements._base import ObservedMeasurement
from astroukf.measurements._types import EstimatedMeasurement


class Position(ObservedMeasurement):
    """Inertial position of the spacecraft.

    Args:
        date: Observation epoch.
        position: Observed ``[x, y, z]`` in *m*.
        sigma: Standard deviation(s) in *m*.
        base_weight: Base weight(s). Default: 1.
    """

    def __init__(
        self,
        date: Epoch,
        position: ArrayLike,
        sigma: ArrayLike,
        base_weight: ArrayLike = 1.0,
    ) -> None:
        super().__init__(date, position, sigma, base_weight)

    def _theoretical_evaluation(
        self,
        iteration: int,
        count: int,
        states: Sequence,
        parameter_offsets: Mapping[str, ArrayLike] | None,
    ) -> EstimatedMeasurement:
        x_eci = states[0].orbit.cartesian()
        return EstimatedMeasurement(self, iteration, count, states, (x_eci,), x_eci[:3])


class PV(ObservedMeasurement):
    """Inertial position and velocity of the spacecraft.

    Args:
        date: Observation epoch.
        pv: Observed ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.
        sigma_position: Position standard deviation in *m*.
        sigma_velocity: Velocity standard deviation in *m/s*.
        base_weight: Base weight(s). Default: 1.
    """

    def __init__(
        self,
        date: Epoch,
        pv: ArrayLike,
        sigma_position: float,
        sigma_velocity: float,
        base_weight: ArrayLike = 1.0,
    ) -> None:
        sigma = jnp.concatenate([jnp.full(3, sigma_position), jnp.full(3, sigma_velocity)])
        super().__init__(date, pv, sigma, base_weight)

    def _theoretical_evaluation(
        self,
        iteration: int,
        count: int,
        states: Sequence,
        parameter_offsets: Mapping[str, ArrayLike] | None,
    ) -> EstimatedMeasurement:
        x_eci = states[0].orbit.cartesian()
        return EstimatedMeasurement(self, iteration, count, states, (x_eci,), x_eci)
