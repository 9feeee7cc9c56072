"""Ground-station range measurement."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import jax.numpy as jnp
from jax.typing import ArrayLike

from astroukf.epoch import Epoch
from astroukf.frames import state_eci_to_ecef
from astroukf.measurements._base import ObservedMeasurement
from astroukf.measurements._ground_station import GroundStation
from astroukf.measurements._types import EstimatedMeasurement


class Range(ObservedMeasurement):
    """Instantaneous geometric distance between a station and the spacecraft.

    Signal travel time is neglected: both ends are taken at the
    measurement date.

    Args:
        station: Observing ground station; its offset drivers become
            drivers of the measurement.
        date: Observation epoch.
        range_value: Observed range in *m*.
        sigma: Standard deviation in *m*.
        base_weight: Base weight. Default: 1.
    """

    def __init__(
        self,
        station: GroundStation,
        date: Epoch,
        range_value: float,
        sigma: float,
        base_weight: float = 1.0,
    ) -> None:
        super().__init__(date, range_value, sigma, base_weight)
        self._station = station
        for driver in station.parameters_drivers:
            self._add_parameter_driver(driver)

    @property
    def station(self) -> GroundStation:
        return self._station

    def _theoretical_evaluation(
        self,
        iteration: int,
        count: int,
        states: Sequence,
        parameter_offsets: Mapping[str, ArrayLike] | None,
    ) -> EstimatedMeasurement:
        state = states[0]
        x_eci = state.orbit.cartesian()
        r_ecef = state_eci_to_ecef(self.date, x_eci)[:3]
        enz = self._station.topocentric(r_ecef, parameter_offsets)
        return EstimatedMeasurement(
            observed_measurement=self,
            iteration=iteration,
            count=count,
            states=states,
            participants=(self._station.position_eci(self.date, parameter_offsets), x_eci),
            estimated_value=jnp.atleast_1d(jnp.linalg.norm(enz)),
        )
