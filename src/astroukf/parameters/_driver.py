"""Scalar parameter drivers.

A :class:`ParameterDriver` is a named physical scalar (an orbital
element, a force-model coefficient, a measurement bias) that an
estimator may adjust.  It carries a reference value, a scale used to
normalize corrections, optional bounds and a reference date.

The driver owns clipping: assigning a value outside ``[min_value,
max_value]`` stores the nearest bound.  Callers never clip.
"""

from __future__ import annotations

import math

from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError


class ParameterDriver:
    """Named, scaled and bounded scalar parameter.

    Args:
        name: Parameter name, unique within its namespace.
        reference_value: Reference (initial) physical value.
        scale: Scaling factor used to normalize the value; must be finite
            and non-zero.
        min_value: Lower bound. Default: ``-inf``.
        max_value: Upper bound. Default: ``+inf``.

    Raises:
        ConfigurationError: If the scale is zero or not finite, or the
            bounds are inverted.

    Examples:
        ```python
        from astroukf.parameters import ParameterDriver
        drag = ParameterDriver("drag coefficient", 2.2, 0.1, 1.0, 3.0)
        drag.value = 5.0
        drag.value            # 3.0, clipped to the upper bound
        drag.normalized_value # (3.0 - 2.2) / 0.1
        ```
    """

    __slots__ = (
        "_name",
        "_reference_value",
        "_scale",
        "_min_value",
        "_max_value",
        "_value",
        "_reference_date",
        "_selected",
    )

    def __init__(
        self,
        name: str,
        reference_value: float,
        scale: float,
        min_value: float = -math.inf,
        max_value: float = math.inf,
    ) -> None:
        scale = float(scale)
        if scale == 0.0 or not math.isfinite(scale):
            raise ConfigurationError(f"scale of parameter {name!r} must be finite and non-zero, got {scale}")
        if min_value > max_value:
            raise ConfigurationError(
                f"parameter {name!r} has inverted bounds [{min_value}, {max_value}]"
            )
        self._name = name
        self._reference_value = float(reference_value)
        self._scale = scale
        self._min_value = float(min_value)
        self._max_value = float(max_value)
        self._reference_date: Epoch | None = None
        self._selected = False
        self._value = self._clip(self._reference_value)

    def _clip(self, value: float) -> float:
        return max(self._min_value, min(self._max_value, float(value)))

    @property
    def name(self) -> str:
        return self._name

    @property
    def reference_value(self) -> float:
        return self._reference_value

    @reference_value.setter
    def reference_value(self, value: float) -> None:
        self._reference_value = float(value)

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def min_value(self) -> float:
        return self._min_value

    @property
    def max_value(self) -> float:
        return self._max_value

    @property
    def value(self) -> float:
        """Physical value, always within ``[min_value, max_value]``."""
        return self._value

    @value.setter
    def value(self, value: float) -> None:
        self._value = self._clip(value)

    @property
    def normalized_value(self) -> float:
        """Value relative to the reference, in units of the scale."""
        return (self._value - self._reference_value) / self._scale

    @normalized_value.setter
    def normalized_value(self, normalized: float) -> None:
        self.value = self._reference_value + self._scale * float(normalized)

    @property
    def reference_date(self) -> Epoch | None:
        """Date at which the value applies, ``None`` until assigned."""
        return self._reference_date

    @reference_date.setter
    def reference_date(self, date: Epoch | None) -> None:
        self._reference_date = date

    @property
    def selected(self) -> bool:
        """Whether the parameter is estimated."""
        return self._selected

    @selected.setter
    def selected(self, selected: bool) -> None:
        self._selected = bool(selected)

    def __repr__(self) -> str:
        return f"ParameterDriver({self._name!r}, value={self._value!r}, selected={self._selected})"
