"""Type definitions for measurements.

- :class:`MeasurementStatus`: whether an evaluated measurement is kept.
- :class:`EstimatedMeasurement`: the theoretical value of an observed
  measurement for one set of spacecraft states.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import jax.numpy as jnp
from jax import Array

if TYPE_CHECKING:
    from astroukf.epoch import Epoch
    from astroukf.measurements._base import ObservedMeasurement


class MeasurementStatus(enum.Enum):
    """Outcome of a measurement evaluation.

    ``REJECTED`` is the only channel through which a measurement is
    discarded; it is never signalled with an exception.
    """

    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


@dataclass
class EstimatedMeasurement:
    """Theoretical value of a measurement.

    Built fresh on every evaluation.  Modifiers adjust
    ``estimated_value`` and ``status`` in place and are recorded in
    ``applied_modifiers``.

    Args:
        observed_measurement: The measurement being evaluated.
        iteration: Estimator iteration number.
        count: Evaluation counter.
        states: Spacecraft states used for the evaluation.
        participants: Positions/velocities of the participants (ground
            station, spacecraft) in the inertial frame.
        estimated_value: Theoretical value, same shape as the observed
            value.
        status: Evaluation status. Default: ``PROCESSED``.
        applied_modifiers: Modifiers applied so far.
    """

    observed_measurement: ObservedMeasurement
    iteration: int
    count: int
    states: tuple
    participants: tuple[Array, ...]
    estimated_value: Array
    status: MeasurementStatus = MeasurementStatus.PROCESSED
    applied_modifiers: list[Any] = field(default_factory=list)

    @property
    def date(self) -> Epoch:
        return self.observed_measurement.date

    @property
    def observed_value(self) -> Array:
        return self.observed_measurement.observed_value

    def residuals(self) -> Array:
        """Observed minus estimated value."""
        return self.observed_value - jnp.asarray(self.estimated_value)
