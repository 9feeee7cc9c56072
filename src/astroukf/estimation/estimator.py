"""Sequential orbit determination with the semi-analytical unscented filter.

:class:`SemiAnalyticalUnscentedKalmanEstimator` drives the whole batch:
it sorts the measurements, moves the nominal mean trajectory to each
measurement date using a reference propagator built once from the
builder, runs one filter step per measurement and, after the last one,
writes the correction back into the parameter drivers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, EstimationStepError
from astroukf.estimation._types import UKFConfig, decorate_unscented
from astroukf.estimation.covariance import CovarianceMatrixProvider
from astroukf.estimation.model import SemiAnalyticalUnscentedKalmanModel
from astroukf.estimation.ukf import UnscentedKalmanFilter
from astroukf.measurements import ObservedMeasurement
from astroukf.propagation import SemiAnalyticalPropagator, SemiAnalyticalPropagatorBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KalmanEstimatorConfig:
    """Settings of the sequential estimator.

    Attributes:
        ukf: Sigma point configuration.
        reference_date: Origin of the filter time axis. Default: the
            builder's initial orbit date.

    Raises:
        ConfigurationError: If ``ukf.alpha`` is not positive or
            ``ukf.beta`` is negative.
    """

    ukf: UKFConfig = field(default_factory=UKFConfig)
    reference_date: Epoch | None = None

    def __post_init__(self) -> None:
        if not self.ukf.alpha > 0.0:
            raise ConfigurationError(f"UKF alpha must be positive, got {self.ukf.alpha}")
        if self.ukf.beta < 0.0:
            raise ConfigurationError(f"UKF beta must be non-negative, got {self.ukf.beta}")


class KalmanObserver(Protocol):
    """Receives the process model after every filter step."""

    def evaluation_performed(self, model: SemiAnalyticalUnscentedKalmanModel) -> None: ...


class SemiAnalyticalUnscentedKalmanEstimator:
    """Unscented Kalman filter estimator for semi-analytical propagators.

    Args:
        builder: Propagator builder holding the orbital and force-model
            drivers to estimate.
        covariance_provider: Provider of the orbital and propagation
            covariance blocks.
        config: Estimator settings.
        measurement_process_noise: Optional provider of the measurement
            parameter block.
        estimated_measurements_parameters: Measurement drivers to estimate.

    Examples:
        ```python
        from astroukf.estimation import (
            ConstantProcessNoise, SemiAnalyticalUnscentedKalmanEstimator,
        )

        estimator = SemiAnalyticalUnscentedKalmanEstimator(
            builder, ConstantProcessNoise(initial_covariance, process_noise)
        )
        propagator = estimator.process_measurements(measurements)
        ```
    """

    def __init__(
        self,
        builder: SemiAnalyticalPropagatorBuilder,
        covariance_provider: CovarianceMatrixProvider,
        config: KalmanEstimatorConfig = KalmanEstimatorConfig(),
        measurement_process_noise: CovarianceMatrixProvider | None = None,
        estimated_measurements_parameters: Iterable | None = None,
    ) -> None:
        self._builder = builder
        self._config = config
        self._reference_date = (
            builder.initial_orbit_date if config.reference_date is None else config.reference_date
        )
        self._model = SemiAnalyticalUnscentedKalmanModel(
            builder,
            covariance_provider,
            estimated_measurements_parameters,
            measurement_process_noise,
        )
        self._reference_propagator = builder.build_propagator()
        self._filter = UnscentedKalmanFilter(self._model, self._model.estimate, config.ukf)
        self._observer: KalmanObserver | None = None

    @property
    def config(self) -> KalmanEstimatorConfig:
        return self._config

    @property
    def model(self) -> SemiAnalyticalUnscentedKalmanModel:
        return self._model

    @property
    def filter(self) -> UnscentedKalmanFilter:
        return self._filter

    @property
    def reference_propagator(self) -> SemiAnalyticalPropagator:
        """Propagator giving the nominal mean trajectory."""
        return self._reference_propagator

    @property
    def observer(self) -> KalmanObserver | None:
        return self._observer

    @observer.setter
    def observer(self, observer: KalmanObserver | None) -> None:
        self._observer = observer

    def _process_one(self, observed: ObservedMeasurement) -> None:
        nominal = self._reference_propagator.propagate_mean(observed.date)
        self._model.relinearize(nominal)
        decorated = decorate_unscented(observed, self._reference_date)
        estimate = self._filter.estimation_step(decorated)
        if estimate is not None:
            self._model.finalize(observed, estimate)

    def process_measurements(self, measurements: Sequence[ObservedMeasurement]) -> SemiAnalyticalPropagator:
        """Process a batch of measurements.

        Measurements are processed in chronological order.  Each one
        moves the nominal trajectory to its date, then goes through one
        prediction and, unless rejected, one correction.  After the last
        measurement the correction is added to the estimated drivers.

        Args:
            measurements: Measurements, in any order.

        Returns:
            A propagator built from the updated drivers.

        Raises:
            ConfigurationError: If ``measurements`` is empty.
            EstimationStepError: If processing a measurement fails.  The
                original exception is chained.
        """
        ordered = sorted(measurements, key=lambda m: m.date)
        if not ordered:
            raise ConfigurationError("no measurements to process")

        logger.info(
            "Processing %d measurements from %s to %s", len(ordered), ordered[0].date, ordered[-1].date
        )
        for index, observed in enumerate(ordered):
            try:
                self._process_one(observed)
            except EstimationStepError:
                raise
            except Exception as exc:
                raise EstimationStepError(index, observed.date, str(exc)) from exc
            if self._observer is not None:
                self._observer.evaluation_performed(self._model)

        self._model.finalize_operations_observation_grid()
        logger.info("Processed %d measurements", len(ordered))
        return self._model.get_estimated_propagator()
