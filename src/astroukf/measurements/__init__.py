"""Observed measurements, their theoretical evaluation and modifiers.

- :class:`ObservedMeasurement` and :class:`EstimatedMeasurement`:
  observation and its model value, with :class:`MeasurementStatus`.
- :class:`GroundStation`, :class:`Range`, :class:`AngularAzEl`:
  ground-based tracking.
- :class:`Position`, :class:`PV`: direct state fixes.
- :class:`EstimationModifier` with :class:`Bias`,
  :class:`OutlierFilter` and :class:`DynamicOutlierFilter`.
"""

from astroukf.measurements._angular import AngularAzEl
from astroukf.measurements._base import EstimationModifier, ObservedMeasurement
from astroukf.measurements._ground_station import GroundStation
from astroukf.measurements._modifiers import Bias, DynamicOutlierFilter, OutlierFilter
from astroukf.measurements._position import PV, Position
from astroukf.measurements._range import Range
from astroukf.measurements._types import EstimatedMeasurement, MeasurementStatus

__all__ = [
    "PV",
    "AngularAzEl",
    "Bias",
    "DynamicOutlierFilter",
    "EstimatedMeasurement",
    "EstimationModifier",
    "GroundStation",
    "MeasurementStatus",
    "ObservedMeasurement",
    "OutlierFilter",
    "Position",
    "Range",
]
