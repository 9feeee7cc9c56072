"""Type definitions for sequential estimation.

Provides the data exchanged between the unscented Kalman filter engine
and a process model:

- :class:`ProcessEstimate`: state and covariance of the filter at one
  time, plus diagnostics of the step that produced it.
- :class:`UKFConfig`: sigma point spread and weighting.
- :class:`UnscentedEvolution`: what a process model returns when asked
  to evolve sigma points to the next measurement.
- :class:`MeasurementDecorator`: an observed measurement with its
  covariance and its time on the filter's time axis.

All types are :class:`~typing.NamedTuple` instances.
"""

from __future__ import annotations

from typing import NamedTuple

import jax.numpy as jnp
from jax import Array

from astroukf.config import get_dtype
from astroukf.epoch import Epoch
from astroukf.measurements import ObservedMeasurement


class ProcessEstimate(NamedTuple):
    """Filter estimate at one time.

    Attributes:
        time: Time on the filter axis, in seconds from the reference date.
        state: Estimated state vector of shape ``(n,)``.
        covariance: Error covariance of shape ``(n, n)``.
        innovation_covariance: Innovation covariance ``S`` of the step
            that produced the estimate, ``None`` for a prior.
        kalman_gain: Gain ``K`` of that step, ``None`` for a prior.
    """

    time: float
    state: Array
    covariance: Array
    innovation_covariance: Array | None = None
    kalman_gain: Array | None = None


class UKFConfig(NamedTuple):
    """Configuration of the scaled unscented transform (Van der Merwe).

    Attributes:
        alpha: Spread of sigma points around the mean. ``alpha=1.0``
            gives unit spread. Default: 1.0.
        beta: Prior knowledge of the state distribution. ``beta=2.0``
            is optimal for Gaussian distributions. Default: 2.0.
        kappa: Secondary scaling parameter. Default: 0.0.
    """

    alpha: float = 1.0
    beta: float = 2.0
    kappa: float = 0.0


class UnscentedEvolution(NamedTuple):
    """Sigma points evolved to a measurement and their predicted values.

    Attributes:
        current_time: Time of the measurement on the filter axis.
        current_states: Evolved sigma points, shape ``(2n+1, n)``.
        current_measurements: Predicted measurement of every sigma point,
            shape ``(2n+1, m)``.
        process_noise_matrix: Process noise added to the predicted
            covariance, shape ``(n, n)``.
    """

    current_time: float
    current_states: Array
    current_measurements: Array
    process_noise_matrix: Array


class MeasurementDecorator(NamedTuple):
    """Observed measurement prepared for the filter engine.

    Attributes:
        observed_measurement: The wrapped measurement.
        covariance: Measurement noise covariance ``R``.
        time: Measurement time in seconds from the reference date.
    """

    observed_measurement: ObservedMeasurement
    covariance: Array
    time: float

    @property
    def date(self) -> Epoch:
        return self.observed_measurement.date


def decorate_unscented(observed: ObservedMeasurement, reference_date: Epoch) -> MeasurementDecorator:
    """Wrap a measurement for the unscented filter.

    The covariance is ``diag(sigma^2)``; the base weight does not enter it.

    Args:
        observed: Measurement to wrap.
        reference_date: Origin of the filter time axis.

    Returns:
        The decorated measurement.
    """
    covariance = jnp.asarray(observed.covariance, dtype=get_dtype())
    return MeasurementDecorator(observed, covariance, float(observed.date - reference_date))
