"""Ground-station azimuth/elevation measurement."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from jax.typing import ArrayLike

from astroukf.coordinates import position_enz_to_azel
from astroukf.epoch import Epoch
from astroukf.frames import state_eci_to_ecef
from astroukf.measurements._base import ObservedMeasurement
from astroukf.measurements._ground_station import GroundStation
from astroukf.measurements._types import EstimatedMeasurement
from astroukf.utils import normalize_angle


class AngularAzEl(ObservedMeasurement):
    """Azimuth and elevation of the spacecraft seen from a ground station.

    The estimated azimuth is wrapped into ``[az_obs - pi, az_obs + pi)``
    so residuals never jump by a full turn near North.

    Args:
        station: Observing ground station.
        date: Observation epoch.
        angular: Observed ``[azimuth, elevation]`` in *rad*.
        sigma: Standard deviation(s) in *rad*.
        base_weight: Base weight(s). Default: 1.
    """

    def __init__(
        self,
        station: GroundStation,
        date: Epoch,
        angular: ArrayLike,
        sigma: ArrayLike,
        base_weight: ArrayLike = 1.0,
    ) -> None:
        super().__init__(date, angular, sigma, base_weight)
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
        azel = position_enz_to_azel(self._station.topocentric(r_ecef, parameter_offsets))
        azimuth = normalize_angle(azel[0], self.observed_value[0])
        return EstimatedMeasurement(
            observed_measurement=self,
            iteration=iteration,
            count=count,
            states=states,
            participants=(self._station.position_eci(self.date, parameter_offsets), x_eci),
            estimated_value=azel[:2].at[0].set(azimuth),
        )
