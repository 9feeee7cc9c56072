"""Base classes for observed measurements and their modifiers.

An :class:`ObservedMeasurement` holds what was observed (date, value,
standard deviation, weight) and knows how to compute the theoretical
value of that observation from spacecraft states.  Pluggable
:class:`EstimationModifier` instances then correct the theoretical value
(biases) or flag the evaluation as rejected (outlier filters).

The covariance-driven outlier test run by a sequential filter is not a
regular modifier: it is attached to the measurement through the typed
:attr:`ObservedMeasurement.dynamic_outlier_filter` field, and applied by
the filter once per measurement.

Parameter offsets
-----------------
``estimate`` accepts an optional mapping from driver name to additive
offset.  Measurement models and modifiers evaluate their parameters as
``driver.value + offset`` so that a filter can perturb them per sigma
point without mutating the drivers.
"""

from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, DimensionMismatchError
from astroukf.measurements._types import EstimatedMeasurement
from astroukf.parameters import ParameterDriver

if TYPE_CHECKING:
    from astroukf.measurements._modifiers import DynamicOutlierFilter
    from astroukf.propagation import SpacecraftState


class EstimationModifier(abc.ABC):
    """Correction applied to an estimated measurement."""

    @property
    def parameters_drivers(self) -> list[ParameterDriver]:
        """Drivers of the modifier parameters. Default: none."""
        return []

    @abc.abstractmethod
    def modify(
        self,
        estimated: EstimatedMeasurement,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> None:
        """Adjust ``estimated`` in place."""


def _as_vector(value: ArrayLike, size: int) -> Array:
    vector = jnp.broadcast_to(jnp.asarray(value, dtype=get_dtype()), (size,))
    return jnp.asarray(vector)


class ObservedMeasurement(abc.ABC):
    """A dated observation and its measurement model.

    Args:
        date: Observation epoch.
        observed_value: Observed value, scalar or vector.
        sigma: Theoretical standard deviation, scalar (shared by every
            component) or one per component.
        base_weight: Base weight, scalar or one per component. Default: 1.

    Raises:
        DimensionMismatchError: If ``sigma`` or ``base_weight`` cannot be
            broadcast to the measurement dimension.
        ConfigurationError: If a standard deviation is not positive.
    """

    def __init__(
        self,
        date: Epoch,
        observed_value: ArrayLike,
        sigma: ArrayLike,
        base_weight: ArrayLike = 1.0,
    ) -> None:
        self._date = date
        self._observed = jnp.atleast_1d(jnp.asarray(observed_value, dtype=get_dtype()))
        size = self._observed.shape[0]
        try:
            self._sigma = _as_vector(sigma, size)
            self._base_weight = _as_vector(base_weight, size)
        except ValueError as exc:
            raise DimensionMismatchError(
                f"{type(self).__name__} standard deviation or weight", jnp.shape(sigma), size
            ) from exc
        if not bool(jnp.all(self._sigma > 0.0)):
            raise ConfigurationError(f"standard deviations must be positive, got {self._sigma}")
        self._drivers: list[ParameterDriver] = []
        self._modifiers: list[EstimationModifier] = []
        self.dynamic_outlier_filter: DynamicOutlierFilter | None = None

    # Description

    @property
    def date(self) -> Epoch:
        return self._date

    @property
    def observed_value(self) -> Array:
        return self._observed

    @property
    def theoretical_standard_deviation(self) -> Array:
        return self._sigma

    @property
    def base_weight(self) -> Array:
        return self._base_weight

    @property
    def dimension(self) -> int:
        return self._observed.shape[0]

    @property
    def covariance(self) -> Array:
        """Diagonal measurement covariance ``diag(sigma^2)``."""
        return jnp.diag(self._sigma ** 2)

    @property
    def modifiers(self) -> list[EstimationModifier]:
        return list(self._modifiers)

    @property
    def parameters_drivers(self) -> list[ParameterDriver]:
        """Drivers of the measurement model and of its modifiers."""
        return list(self._drivers)

    def _add_parameter_driver(self, driver: ParameterDriver) -> None:
        if all(existing is not driver for existing in self._drivers):
            self._drivers.append(driver)

    def add_modifier(self, modifier: EstimationModifier) -> None:
        """Append a modifier; its drivers become drivers of the measurement."""
        self._modifiers.append(modifier)
        for driver in modifier.parameters_drivers:
            self._add_parameter_driver(driver)

    # Evaluation

    @abc.abstractmethod
    def _theoretical_evaluation(
        self,
        iteration: int,
        count: int,
        states: Sequence[SpacecraftState],
        parameter_offsets: Mapping[str, ArrayLike] | None,
    ) -> EstimatedMeasurement:
        """Evaluate the measurement model without modifiers."""

    def estimate(
        self,
        iteration: int,
        count: int,
        states: Sequence[SpacecraftState],
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> EstimatedMeasurement:
        """Theoretical value of the measurement, modifiers applied in order.

        Args:
            iteration: Estimator iteration number.
            count: Evaluation counter.
            states: Spacecraft states at the measurement date.
            parameter_offsets: Additive offsets on measurement parameters,
                keyed by driver name.

        Returns:
            A new :class:`EstimatedMeasurement`.
        """
        estimated = self._theoretical_evaluation(iteration, count, tuple(states), parameter_offsets)
        for modifier in self._modifiers:
            modifier.modify(estimated, parameter_offsets)
            estimated.applied_modifiers.append(modifier)
        return estimated

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._date}, {self._observed.tolist()})"
