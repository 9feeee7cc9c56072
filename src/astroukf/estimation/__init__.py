"""Sequential estimation with a semi-analytical unscented Kalman filter.

Available components:

- :class:`UnscentedKalmanFilter` -- scaled UKF engine driven by a process model
- :class:`ProcessEstimate`, :class:`UKFConfig`, :class:`UnscentedEvolution`,
  :class:`MeasurementDecorator` -- data exchanged with the engine
- :class:`CovarianceMatrixProvider` with :class:`ConstantProcessNoise` and
  :class:`UnivariateProcessNoise` -- initial covariance and process noise
- :func:`compose_osculating_array`, :class:`LinearizationContext`,
  :class:`OrbitalStateComposer` -- osculating states from mean elements
- :class:`SemiAnalyticalUnscentedKalmanModel` -- the filter's process model
- :class:`SemiAnalyticalUnscentedKalmanEstimator` -- batch driver
"""

from astroukf.estimation._types import (
    MeasurementDecorator,
    ProcessEstimate,
    UKFConfig,
    UnscentedEvolution,
    decorate_unscented,
)
from astroukf.estimation.composer import (
    LinearizationContext,
    OrbitalStateComposer,
    compose_osculating_array,
)
from astroukf.estimation.covariance import (
    ConstantProcessNoise,
    CovarianceMatrixProvider,
    UnivariateProcessNoise,
    check_dimension,
)
from astroukf.estimation.estimator import (
    KalmanEstimatorConfig,
    KalmanObserver,
    SemiAnalyticalUnscentedKalmanEstimator,
)
from astroukf.estimation.model import SemiAnalyticalUnscentedKalmanModel
from astroukf.estimation.ukf import UnscentedKalmanFilter, UnscentedProcess

__all__ = [
    "ConstantProcessNoise",
    "CovarianceMatrixProvider",
    "KalmanEstimatorConfig",
    "KalmanObserver",
    "LinearizationContext",
    "MeasurementDecorator",
    "OrbitalStateComposer",
    "ProcessEstimate",
    "SemiAnalyticalUnscentedKalmanEstimator",
    "SemiAnalyticalUnscentedKalmanModel",
    "UKFConfig",
    "UnivariateProcessNoise",
    "UnscentedEvolution",
    "UnscentedKalmanFilter",
    "UnscentedProcess",
    "check_dimension",
    "compose_osculating_array",
    "decorate_unscented",
]
