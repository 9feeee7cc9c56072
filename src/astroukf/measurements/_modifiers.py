"""Measurement modifiers: biases and outlier filters."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.errors import DimensionMismatchError
from astroukf.measurements._base import EstimationModifier
from astroukf.measurements._types import EstimatedMeasurement, MeasurementStatus
from astroukf.parameters import ParameterDriver, parameter_value

logger = logging.getLogger(__name__)


class Bias(EstimationModifier):
    """Additive bias, one driver per measurement component.

    Args:
        names: Driver names, one per component.
        reference_values: Initial bias values.
        scales: Driver scales.
        min_values: Lower bounds. Default: ``-inf`` for every component.
        max_values: Upper bounds. Default: ``+inf`` for every component.

    Raises:
        DimensionMismatchError: If the sequences differ in length.

    Examples:
        ```python
        from astroukf.measurements import Bias
        bias = Bias(["range bias"], [0.0], [1.0], [-10.0], [10.0])
        bias.parameters_drivers[0].selected = True
        ```
    """

    def __init__(
        self,
        names: Sequence[str],
        reference_values: Sequence[float],
        scales: Sequence[float],
        min_values: Sequence[float] | None = None,
        max_values: Sequence[float] | None = None,
    ) -> None:
        size = len(names)
        min_values = [-math.inf] * size if min_values is None else list(min_values)
        max_values = [math.inf] * size if max_values is None else list(max_values)
        for label, values in (("reference values", reference_values), ("scales", scales),
                              ("min values", min_values), ("max values", max_values)):
            if len(values) != size:
                raise DimensionMismatchError(f"bias {label}", len(values), size)
        self._drivers = [
            ParameterDriver(name, value, scale, lo, hi)
            for name, value, scale, lo, hi in zip(names, reference_values, scales, min_values, max_values)
        ]

    @property
    def parameters_drivers(self) -> list[ParameterDriver]:
        return list(self._drivers)

    def values(self, parameter_offsets: Mapping[str, ArrayLike] | None = None) -> Array:
        """Current bias values, offsets included."""
        return jnp.array([parameter_value(d, parameter_offsets) for d in self._drivers], dtype=get_dtype())

    def modify(
        self,
        estimated: EstimatedMeasurement,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> None:
        estimated.estimated_value = jnp.asarray(estimated.estimated_value) + self.values(parameter_offsets)


class OutlierFilter(EstimationModifier):
    """Rejects evaluations whose residual exceeds a multiple of sigma.

    The test is only applied once the estimator iteration exceeds
    ``warmup``.  The sigma used is the measurement's theoretical standard
    deviation.

    Args:
        warmup: Number of iterations during which no rejection occurs.
        max_sigma: Rejection threshold in multiples of sigma.
    """

    def __init__(self, warmup: int, max_sigma: float) -> None:
        self._warmup = int(warmup)
        self._max_sigma = float(max_sigma)

    @property
    def warmup(self) -> int:
        return self._warmup

    @property
    def max_sigma(self) -> float:
        return self._max_sigma

    def _reference_sigma(self, estimated: EstimatedMeasurement) -> Array | None:
        return estimated.observed_measurement.theoretical_standard_deviation

    def modify(
        self,
        estimated: EstimatedMeasurement,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> None:
        if estimated.iteration <= self._warmup:
            return
        sigma = self._reference_sigma(estimated)
        if sigma is None:
            return
        residuals = jnp.abs(estimated.residuals())
        if bool(jnp.any(residuals > self._max_sigma * jnp.asarray(sigma))):
            logger.debug(
                "Rejecting %s: residuals %s exceed %.1f sigma",
                estimated.observed_measurement, residuals.tolist(), self._max_sigma,
            )
            estimated.status = MeasurementStatus.REJECTED


class DynamicOutlierFilter(OutlierFilter):
    """Outlier filter whose sigma is supplied per evaluation.

    A sequential filter seeds :attr:`sigma` (typically with the square
    root of the innovation covariance diagonal), runs :meth:`modify` and
    resets :attr:`sigma` to ``None``.  While :attr:`sigma` is ``None`` the
    filter never rejects.

    Args:
        warmup: Number of iterations during which no rejection occurs.
        max_sigma: Rejection threshold in multiples of sigma.
    """

    def __init__(self, warmup: int, max_sigma: float) -> None:
        super().__init__(warmup, max_sigma)
        self.sigma: Array | None = None

    def _reference_sigma(self, estimated: EstimatedMeasurement) -> Array | None:
        return self.sigma
