"""Process model coupling the unscented filter to a semi-analytical propagator.

The filter state is a *correction* to a nominal mean trajectory, in
physical units, laid out as::

    [selected orbital elements | propagation parameters | measurement parameters]

Orbital columns follow the builder's element order.  Propagation
columns are the selected force-model drivers merged by name and sorted
lexicographically, so the same configuration always gives the same
layout.  Measurement columns come last, in the order supplied.

For each measurement the filter engine calls :meth:`evolve`, then
:meth:`innovate`, and for accepted measurements the estimator calls
:meth:`finalize`.  Drivers are only written once, by
:meth:`finalize_operations_observation_grid`, after the last measurement
of the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import jax.numpy as jnp
import numpy as np
from jax import Array

from astroukf.config import get_dtype
from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError
from astroukf.estimation._types import MeasurementDecorator, ProcessEstimate, UnscentedEvolution
from astroukf.estimation.composer import LinearizationContext, OrbitalStateComposer
from astroukf.estimation.covariance import CovarianceMatrixProvider, check_dimension
from astroukf.measurements import EstimatedMeasurement, MeasurementStatus, ObservedMeasurement
from astroukf.parameters import ParameterDriversList
from astroukf.propagation import (
    PropagationType,
    SemiAnalyticalPropagator,
    SemiAnalyticalPropagatorBuilder,
    SpacecraftState,
)

logger = logging.getLogger(__name__)


def _default_reference_dates(drivers: Iterable, date: Epoch) -> None:
    for driver in drivers:
        if driver.reference_date is None:
            driver.reference_date = date


class SemiAnalyticalUnscentedKalmanModel:
    """Process model of the semi-analytical unscented Kalman filter.

    Args:
        builder: Propagator builder; its orbital and propagation drivers
            define the orbital and propagation columns.
        covariance_provider: Provider of the orbital and propagation
            blocks.  It may also return the full matrix, measurement
            block included, when ``measurement_process_noise`` is not
            given.
        estimated_measurements_parameters: Measurement drivers to
            estimate; unselected ones are ignored.
        measurement_process_noise: Optional provider of the measurement
            block.  Without it and without a full-size matrix from
            ``covariance_provider`` the measurement block is zero.

    Raises:
        DimensionMismatchError: If a covariance block does not match the
            selected columns.
        ConfigurationError: If drivers sharing a name disagree on their
            selection state.
    """

    def __init__(
        self,
        builder: SemiAnalyticalPropagatorBuilder,
        covariance_provider: CovarianceMatrixProvider,
        estimated_measurements_parameters: Iterable | None = None,
        measurement_process_noise: CovarianceMatrixProvider | None = None,
    ) -> None:
        self._builder = builder
        self._covariance_provider = covariance_provider
        self._measurement_process_noise = measurement_process_noise
        self._initial_date = builder.initial_orbit_date

        # Orbital columns, in element order
        orbital = builder.orbital_parameters_drivers
        _default_reference_dates(orbital, self._initial_date)
        self._estimated_orbital = orbital.selected()

        # Propagation columns, merged by name and sorted
        propagation = builder.propagation_parameters_drivers
        _default_reference_dates(propagation, self._initial_date)
        self._estimated_propagation = ParameterDriversList(
            driver for driver in propagation if driver.selected
        )
        self._estimated_propagation.sort()

        # Measurement columns
        self._estimated_measurements = ParameterDriversList()
        for driver in estimated_measurements_parameters or ():
            if driver.selected:
                self._estimated_measurements.add(driver)
        _default_reference_dates(self._estimated_measurements, self._initial_date)

        self._composer = OrbitalStateComposer(
            orbital, self._estimated_orbital, self._estimated_propagation, self._estimated_measurements
        )

        # Nominal mean state
        self._propagator = builder.build_propagator()
        nominal = self._propagator.propagate_mean(self._initial_date)
        self._context = LinearizationContext(self._propagator, nominal)

        self._current_measurement_number = 0
        self._current_date = self._initial_date
        self._last_measurement_date: Epoch | None = None
        self._predicted_states = (nominal,)
        self._corrected_states = (nominal,)
        self._predicted_measurement: EstimatedMeasurement | None = None
        self._corrected_measurement: EstimatedMeasurement | None = None

        covariance = self._assemble(
            covariance_provider.initial_covariance_matrix(nominal),
            None if measurement_process_noise is None
            else measurement_process_noise.initial_covariance_matrix(nominal),
            "initial covariance",
        )
        self._estimate = ProcessEstimate(0.0, jnp.zeros(self.nb_columns, dtype=get_dtype()), covariance)
        logger.debug(
            "Filter columns: %d orbital, %d propagation, %d measurement",
            len(self._estimated_orbital),
            len(self._estimated_propagation),
            len(self._estimated_measurements),
        )

    # Column layout

    @property
    def nb_orbital_columns(self) -> int:
        return len(self._estimated_orbital)

    @property
    def nb_propagation_columns(self) -> int:
        return len(self._estimated_propagation)

    @property
    def nb_measurement_columns(self) -> int:
        return len(self._estimated_measurements)

    @property
    def nb_columns(self) -> int:
        return self.nb_orbital_columns + self.nb_propagation_columns + self.nb_measurement_columns

    @property
    def estimated_orbital_parameters(self) -> ParameterDriversList:
        return self._estimated_orbital

    @property
    def estimated_propagation_parameters(self) -> ParameterDriversList:
        return self._estimated_propagation

    @property
    def estimated_measurements_parameters(self) -> ParameterDriversList:
        return self._estimated_measurements

    @property
    def composer(self) -> OrbitalStateComposer:
        return self._composer

    @property
    def context(self) -> LinearizationContext:
        return self._context

    def _assemble(self, dynamic: Array, measurement: Array | None, name: str) -> Array:
        """Place the dynamic and measurement blocks in one matrix."""
        n = self.nb_columns
        n_dynamic = self.nb_orbital_columns + self.nb_propagation_columns
        dynamic = jnp.asarray(dynamic, dtype=get_dtype())
        if measurement is None and dynamic.shape == (n, n):
            return dynamic
        dynamic = check_dimension(dynamic, n_dynamic, f"{name} (orbital and propagation block)")
        matrix = jnp.zeros((n, n), dtype=get_dtype()).at[:n_dynamic, :n_dynamic].set(dynamic)
        if measurement is not None:
            block = check_dimension(measurement, n - n_dynamic, f"{name} (measurement block)")
            matrix = matrix.at[n_dynamic:, n_dynamic:].set(block)
        return matrix

    def process_noise_matrix(self) -> Array:
        """Process noise between the previous and the current nominal states."""
        previous = self._context.previous_nominal_mean_state
        current = self._context.nominal_mean_state
        return self._assemble(
            self._covariance_provider.process_noise_matrix(previous, current),
            None if self._measurement_process_noise is None
            else self._measurement_process_noise.process_noise_matrix(previous, current),
            "process noise",
        )

    # Linearization

    def relinearize(self, nominal_mean_state: SpacecraftState) -> None:
        """Move the nominal trajectory to a new mean state.

        Moves the builder's orbital drivers to the new state, then
        refreshes the short-period terms and replaces the nominal state.
        If the builder cannot be moved, the nominal state is left
        untouched.

        Args:
            nominal_mean_state: New nominal mean state.
        """
        self._builder.reset_orbit(nominal_mean_state.orbit, PropagationType.MEAN)
        self._context.relinearize(nominal_mean_state)

    @property
    def nominal_mean_spacecraft_state(self) -> SpacecraftState:
        return self._context.nominal_mean_state

    @property
    def previous_nominal_mean_spacecraft_state(self) -> SpacecraftState:
        return self._context.previous_nominal_mean_state

    # Filter protocol

    def _compose(self, x: Array) -> SpacecraftState:
        return self._composer.compose(self._context, x, self._current_date)

    def _estimate_measurement(self, observed: ObservedMeasurement, x: Array) -> EstimatedMeasurement:
        state = self._compose(x)
        return observed.estimate(
            self._current_measurement_number,
            self._current_measurement_number,
            (state,),
            self._composer.measurement_offsets(x),
        )

    def evolve(
        self,
        previous_time: float,
        sigma_points: Array,
        measurement: MeasurementDecorator,
    ) -> UnscentedEvolution:
        """Predict the measurement of every sigma point.

        The sigma points are returned unchanged: the filter state is a
        correction to the nominal trajectory, which already sits at the
        measurement date.

        Args:
            previous_time: Time of the previous estimate on the filter axis.
            sigma_points: Sigma points of shape ``(2n+1, n)``.
            measurement: Decorated measurement.

        Returns:
            The evolution, with the process noise between the previous
            and current nominal states.

        Raises:
            ConfigurationError: If the measurement is older than the
                previous one.
            InvalidOrbitState: If a sigma point does not compose into an
                elliptical orbit.
        """
        observed = measurement.observed_measurement
        _default_reference_dates(observed.parameters_drivers, self._initial_date)

        date = observed.date
        if self._last_measurement_date is not None and date < self._last_measurement_date:
            raise ConfigurationError(
                f"measurement at {date} is older than previous measurement at {self._last_measurement_date}"
            )
        self._last_measurement_date = date
        self._current_measurement_number += 1
        self._current_date = date

        points = jnp.asarray(sigma_points, dtype=get_dtype())
        predicted = jnp.stack([
            jnp.atleast_1d(self._estimate_measurement(observed, point).estimated_value)
            for point in points
        ])
        logger.debug(
            "Evolved %d sigma points to measurement #%d at %s",
            points.shape[0], self._current_measurement_number, date,
        )
        return UnscentedEvolution(measurement.time, points, predicted, self.process_noise_matrix())

    def innovate(
        self,
        measurement: MeasurementDecorator,
        predicted_measurement: Array,
        predicted_state: Array,
        innovation_covariance: Array,
    ) -> Array | None:
        """Residual of the measurement at the predicted state.

        The measurement is re-estimated at the osculating state composed
        from ``predicted_state``.  If the measurement carries a dynamic
        outlier filter, its sigma is seeded with the square root of the
        innovation covariance diagonal for this single evaluation.

        Returns:
            ``observed - estimated``, or ``None`` if the measurement is
            rejected.
        """
        observed = measurement.observed_measurement
        x = jnp.asarray(predicted_state, dtype=get_dtype())
        state = self._compose(x)
        self._predicted_states = (state,)
        estimated = observed.estimate(
            self._current_measurement_number,
            self._current_measurement_number,
            self._predicted_states,
            self._composer.measurement_offsets(x),
        )
        self._predicted_measurement = estimated

        outlier_filter = observed.dynamic_outlier_filter
        if outlier_filter is not None:
            outlier_filter.sigma = jnp.sqrt(jnp.diag(jnp.asarray(innovation_covariance)))
            try:
                outlier_filter.modify(estimated)
            finally:
                outlier_filter.sigma = None

        if estimated.status == MeasurementStatus.REJECTED:
            logger.info("Measurement #%d at %s rejected", self._current_measurement_number, observed.date)
            return None
        return estimated.residuals()

    def finalize(self, observed: ObservedMeasurement, estimate: ProcessEstimate) -> None:
        """Store an accepted correction.

        Rolls the previous nominal state forward and evaluates the
        measurement at the corrected state.
        """
        self._estimate = estimate
        self._context.roll_previous()
        x = jnp.asarray(estimate.state, dtype=get_dtype())
        state = self._compose(x)
        self._corrected_states = (state,)
        self._corrected_measurement = observed.estimate(
            self._current_measurement_number,
            self._current_measurement_number,
            self._corrected_states,
            self._composer.measurement_offsets(x),
        )

    def finalize_operations_observation_grid(self) -> None:
        """Add the corrected state to the drivers, column by column.

        Bounds are enforced by the drivers themselves.
        """
        x = np.asarray(self._estimate.state)
        for driver, delta in zip(self._columns(), x):
            driver.value = driver.value + float(delta)
        logger.debug("Updated %d parameter drivers", x.shape[0])

    def _columns(self) -> list:
        return (
            self._estimated_orbital.drivers
            + self._estimated_propagation.drivers
            + self._estimated_measurements.drivers
        )

    def get_estimated_propagator(self) -> SemiAnalyticalPropagator:
        """Propagator built from the builder's current driver values."""
        return self._builder.build_propagator()

    # Observation

    @property
    def estimate(self) -> ProcessEstimate:
        """Last corrected estimate, a correction to the nominal trajectory."""
        return self._estimate

    @property
    def current_date(self) -> Epoch:
        return self._current_date

    @property
    def current_measurement_number(self) -> int:
        return self._current_measurement_number

    @property
    def predicted_measurement(self) -> EstimatedMeasurement | None:
        return self._predicted_measurement

    @property
    def corrected_measurement(self) -> EstimatedMeasurement | None:
        return self._corrected_measurement

    @property
    def predicted_spacecraft_states(self) -> tuple[SpacecraftState, ...]:
        """Osculating state at the last prediction."""
        return self._predicted_states

    @property
    def corrected_spacecraft_states(self) -> tuple[SpacecraftState, ...]:
        """Osculating state at the last accepted correction."""
        return self._corrected_states

    @property
    def physical_estimated_state(self) -> Array:
        """Current values of the estimated drivers, in column order."""
        return jnp.array([driver.value for driver in self._columns()], dtype=get_dtype())

    @property
    def physical_estimated_covariance_matrix(self) -> Array:
        return self._estimate.covariance

    @property
    def physical_innovation_covariance_matrix(self) -> Array | None:
        return self._estimate.innovation_covariance

    @property
    def physical_kalman_gain(self) -> Array | None:
        return self._estimate.kalman_gain

    @property
    def physical_state_transition_matrix(self) -> None:
        """Not available: the unscented filter uses no transition matrix."""
        return None

    @property
    def physical_measurement_jacobian(self) -> None:
        """Not available: the unscented filter uses no measurement Jacobian."""
        return None
