"""
astroukf is a semi-analytical unscented Kalman filter for orbit determination implemented in JAX.
"""

from .constants import (
    DEG2RAD,
    RAD2DEG,
    JD_MJD_OFFSET,
    SECONDS_PER_DAY,
    R_EARTH,
    WGS84_a,
    WGS84_f,
    GM_EARTH,
    J2_EARTH,
    OMEGA_EARTH,
)

from .config import set_dtype, get_dtype
from .epoch import Epoch

from .errors import (
    AstroUKFError,
    ConfigurationError,
    DimensionMismatchError,
    InvalidOrbitState,
    NumericalError,
    EstimationStepError,
)

from .orbit import (
    Orbit,
    OrbitType,
    PositionAngle,
    convert_elements,
)

from .frames import (
    LOFType,
    rotation_eci_to_ecef,
    rotation_ecef_to_eci,
    state_eci_to_ecef,
    state_ecef_to_eci,
    state_eci_to_lof,
    state_lof_to_eci,
)

from .parameters import (
    ParameterDriver,
    ParameterDriversList,
)

from .propagation import (
    PropagationType,
    SpacecraftState,
    NewtonianAttraction,
    ZonalJ2,
    SemiAnalyticalPropagator,
    SemiAnalyticalPropagatorBuilder,
)

from .measurements import (
    GroundStation,
    Range,
    AngularAzEl,
    Position,
    PV,
    Bias,
    OutlierFilter,
    DynamicOutlierFilter,
    MeasurementStatus,
)

from .estimation import (
    ConstantProcessNoise,
    UnivariateProcessNoise,
    KalmanEstimatorConfig,
    SemiAnalyticalUnscentedKalmanModel,
    SemiAnalyticalUnscentedKalmanEstimator,
)
