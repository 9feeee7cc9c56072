"""Semi-analytical orbit propagation.

- :class:`SpacecraftState` and :class:`PropagationType`: immutable states
  and the mean/osculating flag.
- :class:`SemiAnalyticalForceModel` with :class:`NewtonianAttraction` and
  :class:`ZonalJ2`: secular rates and short-period terms.
- :class:`SemiAnalyticalPropagator`: mean-element propagation with
  analytical short-period terms.
- :class:`SemiAnalyticalPropagatorBuilder`: builds propagators from
  orbital and force-model parameter drivers.
"""

from astroukf.propagation._types import PropagationType, SpacecraftState
from astroukf.propagation.builder import (
    SemiAnalyticalPropagatorBuilder,
    orbital_parameter_scales,
)
from astroukf.propagation.force_models import (
    CENTRAL_ATTRACTION_COEFFICIENT,
    J2_COEFFICIENT,
    NewtonianAttraction,
    SemiAnalyticalForceModel,
    ZonalJ2,
)
from astroukf.propagation.semianalytical import (
    SemiAnalyticalPropagator,
    wrap_element_difference,
)

__all__ = [
    "CENTRAL_ATTRACTION_COEFFICIENT",
    "J2_COEFFICIENT",
    "NewtonianAttraction",
    "PropagationType",
    "SemiAnalyticalForceModel",
    "SemiAnalyticalPropagator",
    "SemiAnalyticalPropagatorBuilder",
    "SpacecraftState",
    "ZonalJ2",
    "orbital_parameter_scales",
    "wrap_element_difference",
]
