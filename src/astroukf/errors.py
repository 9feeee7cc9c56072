"""Exception hierarchy for astroukf.

Configuration problems are raised as soon as they are detected, at setup
or at the first offending call.  Numerical problems are fatal for the
filter step in which they occur and are re-raised by the estimator as
:class:`EstimationStepError` with the offending measurement attached.

Measurement rejection and parameter clipping are *not* errors: rejection
is reported through
:class:`~astroukf.measurements.MeasurementStatus` and clipping happens
silently inside :class:`~astroukf.parameters.ParameterDriver`.
"""

from __future__ import annotations


class AstroUKFError(Exception):
    """Base class of every exception raised by astroukf."""


class ConfigurationError(AstroUKFError, ValueError):
    """Inconsistent filter, propagator or parameter configuration."""


class DimensionMismatchError(ConfigurationError):
    """A matrix or vector does not match the selected column layout.

    Args:
        name: What was being checked (e.g. ``"process noise"``).
        requested: Shape or size that was supplied.
        expected: Shape or size implied by the selected columns.
    """

    def __init__(self, name: str, requested, expected) -> None:
        self.name = name
        self.requested = requested
        self.expected = expected
        super().__init__(
            f"{name}: dimension {requested} does not match expected {expected}"
        )


class InvalidOrbitState(AstroUKFError, ValueError):
    """An element array cannot be converted to an elliptical orbit."""


class EstimationStepError(AstroUKFError):
    """A fatal error interrupted the processing of one measurement.

    Args:
        index: Position of the measurement in the chronologically sorted
            batch.
        date: Epoch of the measurement.
        message: Description of the underlying failure.
    """

    def __init__(self, index: int, date, message: str) -> None:
        self.index = index
        self.date = date
        super().__init__(f"measurement #{index} at {date}: {message}")


class NumericalError(AstroUKFError, ArithmeticError):
    """A matrix or Jacobian needed by the filter is not usable.

    Raised for non-finite Jacobians and for covariance matrices that
    cannot be factorized.
    """
