"""Semi-analytical propagator built on mean elements.

The propagator carries a *mean* orbit.  Mean elements drift linearly in
time at the secular rates summed over the force models; the osculating
state at any date is the mean state plus the short-period terms of the
force models, expressed in the propagator's element set.

Internally the mean state is held as Keplerian elements with the mean
anomaly, and converted to the configured element set on output.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.epoch import Epoch
from astroukf.orbit import Orbit, OrbitType, PositionAngle, convert_elements
from astroukf.propagation._types import PropagationType, SpacecraftState
from astroukf.propagation.force_models import SemiAnalyticalForceModel
from astroukf.utils import normalize_angle

logger = logging.getLogger(__name__)


def wrap_element_difference(delta: Array, orbit_type: OrbitType) -> Array:
    """Wrap the angular components of an element difference to ``[-pi, pi)``.

    Args:
        delta: Difference of two element arrays of the same set.
        orbit_type: Element set of the arrays.

    Returns:
        Difference with angles wrapped; Cartesian differences are
        returned unchanged.
    """
    if orbit_type == OrbitType.EQUINOCTIAL:
        return delta.at[5].set(normalize_angle(delta[5]))
    if orbit_type == OrbitType.KEPLERIAN:
        return jnp.concatenate([delta[:3], normalize_angle(delta[3:])])
    return delta


class SemiAnalyticalPropagator:
    """Mean-element propagator with analytical short-period terms.

    Args:
        initial_state: Initial spacecraft state.  Its orbit holds mean
            elements when ``initial_state_type`` is ``MEAN``, osculating
            elements otherwise.
        force_models: Force models; their drivers are shared with the
            caller.
        orbit_type: Element set of the states returned by the
            propagator. Default: ``EQUINOCTIAL``.
        angle_type: Angle convention of the returned states.
            Default: ``MEAN``.
        initial_state_type: Nature of ``initial_state``.
            Default: ``PropagationType.MEAN``.
        mean_max_iterations: Iteration limit of :meth:`compute_mean_state`.
        mean_tolerance: Convergence threshold of :meth:`compute_mean_state`,
            relative on the semi-major axis and absolute on the others.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf import Epoch
        from astroukf.constants import R_EARTH
        from astroukf.orbit import Orbit, OrbitType, PositionAngle
        from astroukf.propagation import (
            NewtonianAttraction, SemiAnalyticalPropagator, SpacecraftState, ZonalJ2,
        )

        orbit = Orbit.from_array(
            jnp.array([R_EARTH + 500e3, 0.001, 0.9, 0.0, 0.0, 0.0]),
            OrbitType.KEPLERIAN, PositionAngle.MEAN, Epoch(2024, 1, 1),
        )
        propagator = SemiAnalyticalPropagator(
            SpacecraftState(orbit), [NewtonianAttraction(), ZonalJ2()]
        )
        osculating = propagator.propagate(Epoch(2024, 1, 1, 0, 10, 0.0))
        ```
    """

    def __init__(
        self,
        initial_state: SpacecraftState,
        force_models: Sequence[SemiAnalyticalForceModel],
        orbit_type: OrbitType = OrbitType.EQUINOCTIAL,
        angle_type: PositionAngle = PositionAngle.MEAN,
        initial_state_type: PropagationType = PropagationType.MEAN,
        mean_max_iterations: int = 50,
        mean_tolerance: float = 1.0e-13,
    ) -> None:
        self._force_models = list(force_models)
        self._orbit_type = orbit_type
        self._angle_type = angle_type
        self._mean_max_iterations = mean_max_iterations
        self._mean_tolerance = mean_tolerance
        self._set_initial_state(initial_state, initial_state_type)

    def _set_initial_state(self, state: SpacecraftState, state_type: PropagationType) -> None:
        self._initial_state = state
        self._initial_state_type = state_type
        self._mu = state.orbit.mu
        self._frame = state.orbit.frame
        self._mass = state.mass
        if state_type == PropagationType.OSCULATING:
            mean_state = self.compute_mean_state(state)
        else:
            mean_state = state
        self._mean_koe = mean_state.orbit.keplerian()
        self._epoch = mean_state.epoch
        self.initialize_short_period_terms(mean_state)

    # Properties

    @property
    def initial_state(self) -> SpacecraftState:
        """Initial state, mean or osculating as given at construction."""
        return self._initial_state

    @property
    def initial_is_osculating(self) -> bool:
        return self._initial_state_type == PropagationType.OSCULATING

    @property
    def force_models(self) -> list[SemiAnalyticalForceModel]:
        return list(self._force_models)

    @property
    def orbit_type(self) -> OrbitType:
        return self._orbit_type

    @property
    def angle_type(self) -> PositionAngle:
        return self._angle_type

    @property
    def mu(self) -> float:
        return self._mu

    def reset_orbit(self, orbit: Orbit, propagation_type: PropagationType = PropagationType.MEAN) -> None:
        """Restart the propagation from a new orbit.

        Args:
            orbit: New initial orbit.
            propagation_type: Whether ``orbit`` holds mean or osculating
                elements.
        """
        self._set_initial_state(self._initial_state.with_orbit(orbit), propagation_type)

    # Short-period terms

    def initialize_short_period_terms(self, mean_state: SpacecraftState) -> None:
        for model in self._force_models:
            model.initialize_short_period_terms(mean_state)

    def update_short_period_terms(self, mean_state: SpacecraftState) -> None:
        """Refresh the short-period coefficients of every force model."""
        for model in self._force_models:
            model.update_short_period_terms(mean_state)

    def _short_period_array(
        self,
        elements: Array,
        orbit_type: OrbitType,
        angle_type: PositionAngle,
        parameter_offsets: Mapping[str, ArrayLike] | None,
    ) -> Array:
        koe = convert_elements(
            elements, orbit_type, angle_type, OrbitType.KEPLERIAN, PositionAngle.MEAN, self._mu
        )
        delta = jnp.zeros(6, dtype=get_dtype())
        for model in self._force_models:
            delta = delta + model.short_period_contribution(koe, parameter_offsets)
        # No periodic terms: skip the round trip through Keplerian elements
        if not bool(jnp.any(delta != 0.0)):
            return jnp.zeros(6, dtype=get_dtype())
        osculating = convert_elements(
            koe + delta, OrbitType.KEPLERIAN, PositionAngle.MEAN, orbit_type, angle_type, self._mu
        )
        return wrap_element_difference(osculating - elements, orbit_type)

    def short_period_terms_value(
        self,
        mean_state: SpacecraftState,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> Array:
        """Short-period terms at a mean state, in the propagator's element set.

        Args:
            mean_state: Mean spacecraft state.
            parameter_offsets: Additive offsets on force-model parameters,
                keyed by driver name.

        Returns:
            Osculating minus mean elements, shape ``(6,)``, in the
            propagator's element set and angle convention.
        """
        elements = mean_state.orbit.to_array(self._orbit_type, self._angle_type)
        return self._short_period_array(
            elements, self._orbit_type, self._angle_type, parameter_offsets
        )

    # Propagation

    def _mean_elements_at(self, date: Epoch) -> Array:
        dt = date - self._epoch
        rates = jnp.zeros(6, dtype=get_dtype())
        for model in self._force_models:
            rates = rates + model.mean_element_rates(self._mean_koe, self._mu)
        koe = self._mean_koe + rates * dt
        return jnp.concatenate([koe[:3], koe[3:] % (2.0 * jnp.pi)])

    def propagate_mean(self, date: Epoch) -> SpacecraftState:
        """Mean state at ``date``."""
        elements = convert_elements(
            self._mean_elements_at(date),
            OrbitType.KEPLERIAN,
            PositionAngle.MEAN,
            self._orbit_type,
            self._angle_type,
            self._mu,
        )
        orbit = Orbit.from_array(
            elements, self._orbit_type, self._angle_type, date, self._mu, self._frame
        )
        return SpacecraftState(orbit, self._mass)

    def propagate(self, date: Epoch) -> SpacecraftState:
        """Osculating state at ``date``."""
        mean_state = self.propagate_mean(date)
        elements = mean_state.orbit.elements + self.short_period_terms_value(mean_state)
        orbit = Orbit.from_array(
            elements, self._orbit_type, self._angle_type, date, self._mu, self._frame
        )
        return mean_state.with_orbit(orbit)

    def compute_mean_state(self, osculating_state: SpacecraftState) -> SpacecraftState:
        """Mean state whose osculating image is ``osculating_state``.

        Solves ``mean = osculating - short_period_terms(mean)`` by fixed-point
        iteration in equinoctial elements, starting from the osculating
        elements.  Short-period terms use the current force-model
        coefficients.  A warning is logged if the iteration limit is
        reached; the last iterate is returned.

        Args:
            osculating_state: Osculating spacecraft state.

        Returns:
            Mean state in the propagator's element set.
        """
        eq, mean = OrbitType.EQUINOCTIAL, PositionAngle.MEAN
        osculating = osculating_state.orbit.to_array(eq, mean)
        elements = osculating
        change = np.inf
        for iteration in range(1, self._mean_max_iterations + 1):
            updated = osculating - self._short_period_array(elements, eq, mean, None)
            delta = wrap_element_difference(updated - elements, eq)
            elements = updated
            change = max(abs(float(delta[0] / elements[0])), float(jnp.max(jnp.abs(delta[1:]))))
            if change < self._mean_tolerance:
                logger.debug("Mean state converged after %d iterations", iteration)
                break
        else:
            logger.warning(
                "Mean state did not converge after %d iterations (last change %.3e)",
                self._mean_max_iterations,
                change,
            )

        orbit = osculating_state.orbit
        mean_orbit = Orbit.from_array(
            convert_elements(elements, eq, mean, self._orbit_type, self._angle_type, orbit.mu),
            self._orbit_type,
            self._angle_type,
            orbit.epoch,
            orbit.mu,
            orbit.frame,
        )
        return osculating_state.with_orbit(mean_orbit)
