"""Builder of semi-analytical propagators from parameter drivers.

The builder owns one :class:`~astroukf.parameters.ParameterDriver` per
orbital element of the configured element set, plus the drivers of its
force models.  An estimator adjusts these drivers and asks the builder
for a fresh :class:`SemiAnalyticalPropagator` built from their current
values.

Orbital driver scales follow from a single position scale: the velocity
scale is taken as ``mu * dP / (|v| r^2)`` and each element scale sums the
absolute Jacobian entries of the Cartesian-to-element conversion weighted
by the position and velocity scales.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import jax
import jax.numpy as jnp
import numpy as np

from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, DimensionMismatchError
from astroukf.orbit import (
    Orbit,
    OrbitType,
    PositionAngle,
    convert_elements,
    orbit_parameter_names,
)
from astroukf.parameters import ParameterDriver, ParameterDriversList
from astroukf.propagation._types import PropagationType, SpacecraftState
from astroukf.propagation.force_models import (
    CENTRAL_ATTRACTION_COEFFICIENT,
    NewtonianAttraction,
    SemiAnalyticalForceModel,
)
from astroukf.propagation.semianalytical import SemiAnalyticalPropagator

logger = logging.getLogger(__name__)


def orbital_parameter_scales(
    orbit: Orbit,
    position_scale: float,
    orbit_type: OrbitType,
    angle_type: PositionAngle,
) -> np.ndarray:
    """Scales of the six orbital parameters derived from a position scale.

    Args:
        orbit: Reference orbit.
        position_scale: Position scale in *m*.
        orbit_type: Element set of the parameters.
        angle_type: Angle convention of the parameters.

    Returns:
        Six positive scales, in the units of the element set.
    """
    x = orbit.cartesian()
    r = float(jnp.linalg.norm(x[:3]))
    v = float(jnp.linalg.norm(x[3:6]))
    velocity_scale = orbit.mu * position_scale / (v * r * r)

    jacobian = jax.jacfwd(
        lambda y: convert_elements(
            y, OrbitType.CARTESIAN, PositionAngle.MEAN, orbit_type, angle_type, orbit.mu
        )
    )(x)
    jacobian = np.abs(np.asarray(jacobian))
    scales = jacobian[:, :3].sum(axis=1) * position_scale + jacobian[:, 3:].sum(axis=1) * velocity_scale
    if not np.all(np.isfinite(scales)) or np.any(scales == 0.0):
        raise ConfigurationError(
            f"cannot derive {orbit_type.value} parameter scales from position scale {position_scale}"
        )
    return scales


class SemiAnalyticalPropagatorBuilder:
    """Builds semi-analytical propagators from estimated parameters.

    A :class:`~astroukf.propagation.force_models.NewtonianAttraction` model
    carrying the reference orbit's ``mu`` is added first; its driver is the
    builder's gravitational parameter.

    Args:
        reference_orbit: Initial orbit, holding mean elements unless
            ``initial_state_type`` says otherwise.
        force_models: Additional force models.
        position_scale: Position scale in *m* used to derive the orbital
            parameter scales. Default: 1.0.
        orbit_type: Element set of the orbital parameters.
            Default: ``EQUINOCTIAL``.
        angle_type: Angle convention of the orbital parameters.
            Default: ``MEAN``.
        mass: Spacecraft mass in *kg*. Default: 1000.0.
        initial_state_type: Nature of the elements of ``reference_orbit``.
            Default: ``PropagationType.MEAN``.

    Raises:
        ConfigurationError: If the reference orbit has no frame, or the
            position scale is not positive.
    """

    def __init__(
        self,
        reference_orbit: Orbit,
        force_models: Sequence[SemiAnalyticalForceModel] = (),
        position_scale: float = 1.0,
        orbit_type: OrbitType = OrbitType.EQUINOCTIAL,
        angle_type: PositionAngle = PositionAngle.MEAN,
        mass: float = 1000.0,
        initial_state_type: PropagationType = PropagationType.MEAN,
    ) -> None:
        if reference_orbit.frame is None:
            raise ConfigurationError("reference orbit has no inertial frame")
        if not (math.isfinite(position_scale) and position_scale > 0.0):
            raise ConfigurationError(f"position scale must be positive, got {position_scale}")

        self._frame = reference_orbit.frame
        self._orbit_type = orbit_type
        self._angle_type = angle_type
        self._position_scale = float(position_scale)
        self._mass = mass
        self._initial_state_type = initial_state_type
        self._initial_orbit_date = reference_orbit.epoch

        self._newtonian = NewtonianAttraction(reference_orbit.mu)
        self._force_models: list[SemiAnalyticalForceModel] = [self._newtonian]
        self._propagation_drivers = ParameterDriversList(self._newtonian.parameters_drivers)
        for model in force_models:
            self.add_force_model(model)

        elements = np.asarray(reference_orbit.to_array(orbit_type, angle_type))
        scales = orbital_parameter_scales(reference_orbit, self._position_scale, orbit_type, angle_type)
        self._orbital_drivers = ParameterDriversList()
        for name, value, scale in zip(orbit_parameter_names(orbit_type, angle_type), elements, scales):
            driver = ParameterDriver(name, float(value), float(scale))
            driver.selected = True
            self._orbital_drivers.add(driver)

    def add_force_model(self, model: SemiAnalyticalForceModel) -> None:
        """Add a force model and collect its parameter drivers.

        Raises:
            ConfigurationError: If the model exposes a second
                central-attraction driver.
        """
        for driver in model.parameters_drivers:
            if driver.name == CENTRAL_ATTRACTION_COEFFICIENT:
                raise ConfigurationError("the central attraction is owned by the builder")
        self._force_models.append(model)
        for driver in model.parameters_drivers:
            self._propagation_drivers.add(driver)

    # Properties

    @property
    def orbital_parameters_drivers(self) -> ParameterDriversList:
        return self._orbital_drivers

    @property
    def propagation_parameters_drivers(self) -> ParameterDriversList:
        return self._propagation_drivers

    @property
    def force_models(self) -> list[SemiAnalyticalForceModel]:
        return list(self._force_models)

    @property
    def mu(self) -> float:
        """Gravitational parameter, the value of the central attraction driver."""
        return self._newtonian.mu

    @property
    def frame(self) -> str:
        return self._frame

    @property
    def orbit_type(self) -> OrbitType:
        return self._orbit_type

    @property
    def angle_type(self) -> PositionAngle:
        return self._angle_type

    @property
    def position_scale(self) -> float:
        return self._position_scale

    @property
    def initial_orbit_date(self) -> Epoch:
        return self._initial_orbit_date

    @property
    def initial_state_type(self) -> PropagationType:
        return self._initial_state_type

    # Construction

    def _orbital_values(self) -> np.ndarray:
        return np.array([driver.value for driver in self._orbital_drivers])

    def selected_normalized_parameters(self) -> np.ndarray:
        """Normalized values of the selected orbital and propagation drivers."""
        return np.array(
            [d.normalized_value for d in self._orbital_drivers if d.selected]
            + [d.normalized_value for d in self._propagation_drivers if d.selected]
        )

    def build_propagator(self, normalized_parameters=None) -> SemiAnalyticalPropagator:
        """Build a propagator from the current driver values.

        Args:
            normalized_parameters: Optional normalized values assigned to
                the selected orbital then propagation drivers first.

        Returns:
            A new propagator starting at :attr:`initial_orbit_date`.

        Raises:
            DimensionMismatchError: If ``normalized_parameters`` has the
                wrong length.
            InvalidOrbitState: If the orbital drivers do not describe an
                elliptical orbit.
        """
        if normalized_parameters is not None:
            selected = [d for d in self._orbital_drivers if d.selected] + [
                d for d in self._propagation_drivers if d.selected
            ]
            values = np.asarray(normalized_parameters, dtype=float).ravel()
            if values.shape[0] != len(selected):
                raise DimensionMismatchError("normalized parameters", values.shape[0], len(selected))
            for driver, value in zip(selected, values):
                driver.normalized_value = value

        orbit = Orbit.from_array(
            self._orbital_values(),
            self._orbit_type,
            self._angle_type,
            self._initial_orbit_date,
            self.mu,
            self._frame,
        )
        logger.debug("Building propagator at %s with mu=%.9e", self._initial_orbit_date, self.mu)
        return SemiAnalyticalPropagator(
            SpacecraftState(orbit, self._mass),
            self._force_models,
            self._orbit_type,
            self._angle_type,
            self._initial_state_type,
        )

    def reset_orbit(self, orbit: Orbit, propagation_type: PropagationType = PropagationType.MEAN) -> None:
        """Move the orbital drivers and the initial date to a new orbit.

        Reference values and values of the orbital drivers both take the
        new elements.

        Args:
            orbit: New reference orbit.
            propagation_type: Whether ``orbit`` holds mean or osculating
                elements.
        """
        elements = np.asarray(orbit.to_array(self._orbit_type, self._angle_type))
        for driver, value in zip(self._orbital_drivers, elements):
            driver.reference_value = float(value)
            driver.value = float(value)
        self._initial_orbit_date = orbit.epoch
        self._initial_state_type = propagation_type
