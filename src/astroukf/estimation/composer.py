"""Osculating state reconstruction from mean elements.

The semi-analytical filter never carries the orbit itself.  It carries a
small correction to a nominal mean trajectory, and every osculating
state it needs is rebuilt as::

    osculating = nominal mean elements + filter correction + short-period terms

The nominal mean state and the short-period terms evaluated on it live
in a :class:`LinearizationContext`.  They are replaced together by
:meth:`LinearizationContext.relinearize`, so a prediction can never pair
a fresh mean state with stale periodic terms.

:class:`OrbitalStateComposer` knows the column layout of the filter
state: which columns correct which orbital elements, and which ones hold
propagation or measurement parameter offsets.
"""

from __future__ import annotations

import logging

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.epoch import Epoch
from astroukf.orbit import Orbit, OrbitType, PositionAngle
from astroukf.parameters import ParameterDriversList
from astroukf.propagation import (
    CENTRAL_ATTRACTION_COEFFICIENT,
    SemiAnalyticalPropagator,
    SpacecraftState,
)

logger = logging.getLogger(__name__)


def compose_osculating_array(
    nominal: ArrayLike,
    correction: ArrayLike,
    short_period_terms: ArrayLike,
) -> Array:
    """Osculating element array from its three additive parts.

    Args:
        nominal: Nominal mean elements, shape ``(6,)``.
        correction: Filter correction of the elements, shape ``(6,)``.
        short_period_terms: Short-period terms, shape ``(6,)``.

    Returns:
        ``nominal + correction + short_period_terms``.
    """
    dtype = get_dtype()
    return (
        jnp.asarray(nominal, dtype=dtype)
        + jnp.asarray(correction, dtype=dtype)
        + jnp.asarray(short_period_terms, dtype=dtype)
    )


class LinearizationContext:
    """Nominal mean state shared by every evaluation of one filter step.

    Holds the nominal mean state, the mean state at the last accepted
    measurement (origin of the process noise interval), the nominal
    elements as an array in the filter's element set, and the
    short-period terms evaluated on the nominal state with the current
    force-model parameters.

    Args:
        propagator: Propagator evaluating the short-period terms.
        nominal_mean_state: Initial nominal mean state.
    """

    def __init__(self, propagator: SemiAnalyticalPropagator, nominal_mean_state: SpacecraftState) -> None:
        self._propagator = propagator
        self._previous = nominal_mean_state
        self._set_nominal(nominal_mean_state)

    def _set_nominal(self, nominal: SpacecraftState) -> None:
        self._propagator.update_short_period_terms(nominal)
        short_period_terms = self._propagator.short_period_terms_value(nominal)
        nominal_array = nominal.orbit.to_array(self.orbit_type, self.angle_type)
        self._nominal = nominal
        self._nominal_array = nominal_array
        self._short_period_terms = short_period_terms

    @property
    def propagator(self) -> SemiAnalyticalPropagator:
        return self._propagator

    @property
    def orbit_type(self) -> OrbitType:
        return self._propagator.orbit_type

    @property
    def angle_type(self) -> PositionAngle:
        return self._propagator.angle_type

    @property
    def nominal_mean_state(self) -> SpacecraftState:
        return self._nominal

    @property
    def previous_nominal_mean_state(self) -> SpacecraftState:
        return self._previous

    @property
    def nominal_array(self) -> Array:
        """Nominal mean elements in the filter's element set."""
        return self._nominal_array

    @property
    def short_period_terms(self) -> Array:
        """Short-period terms at the nominal state, without parameter offsets."""
        return self._short_period_terms

    @property
    def mu(self) -> float:
        return self._nominal.orbit.mu

    @property
    def frame(self) -> str | None:
        return self._nominal.orbit.frame

    def short_period_terms_value(self, parameter_offsets) -> Array:
        """Short-period terms at the nominal state with parameter offsets."""
        return self._propagator.short_period_terms_value(self._nominal, parameter_offsets)

    def relinearize(self, nominal_mean_state: SpacecraftState) -> None:
        """Replace the nominal state and refresh the short-period terms.

        The force-model coefficients are refreshed around the new state
        and the terms are evaluated before anything is stored, so the
        nominal state and its short-period terms always change together.
        """
        logger.debug("Relinearizing at %s", nominal_mean_state.epoch)
        self._set_nominal(nominal_mean_state)

    def roll_previous(self) -> None:
        """Make the current nominal state the origin of the next noise interval."""
        self._previous = self._nominal


class OrbitalStateComposer:
    """Maps filter state vectors to osculating spacecraft states.

    Column layout of the filter state: selected orbital parameters, then
    propagation parameters, then measurement parameters.

    Args:
        orbital_drivers: All six orbital drivers of the builder, in
            element order.
        estimated_orbital: Selected orbital drivers.
        estimated_propagation: Selected propagation drivers, in column
            order.
        estimated_measurements: Selected measurement drivers, in column
            order.
    """

    def __init__(
        self,
        orbital_drivers: ParameterDriversList,
        estimated_orbital: ParameterDriversList,
        estimated_propagation: ParameterDriversList,
        estimated_measurements: ParameterDriversList,
    ) -> None:
        names = orbital_drivers.names
        self._orbital_positions = jnp.array(
            [names.index(name) for name in estimated_orbital.names], dtype=jnp.int32
        )
        n_orbital = len(estimated_orbital)
        n_propagation = len(estimated_propagation)
        self._orbital_columns = jnp.arange(n_orbital, dtype=jnp.int32)
        self._propagation_columns = {
            name: n_orbital + k for k, name in enumerate(estimated_propagation.names)
        }
        self._measurement_columns = {
            name: n_orbital + n_propagation + k for k, name in enumerate(estimated_measurements.names)
        }

    @property
    def propagation_columns(self) -> dict[str, int]:
        return dict(self._propagation_columns)

    @property
    def measurement_columns(self) -> dict[str, int]:
        return dict(self._measurement_columns)

    def orbital_correction(self, x: ArrayLike) -> Array:
        """Six-element correction, zero for unselected elements."""
        x = jnp.asarray(x, dtype=get_dtype())
        correction = jnp.zeros(6, dtype=x.dtype)
        return correction.at[self._orbital_positions].set(x[self._orbital_columns])

    def propagation_offsets(self, x: ArrayLike) -> dict[str, Array]:
        """Offsets of the propagation parameters, keyed by driver name."""
        return {name: x[column] for name, column in self._propagation_columns.items()}

    def measurement_offsets(self, x: ArrayLike) -> dict[str, Array]:
        """Offsets of the measurement parameters, keyed by driver name."""
        return {name: x[column] for name, column in self._measurement_columns.items()}

    def compose(self, context: LinearizationContext, x: ArrayLike, date: Epoch) -> SpacecraftState:
        """Osculating state for one filter state vector.

        Args:
            context: Current linearization context.
            x: Filter state vector.
            date: Epoch of the state.

        Returns:
            Osculating spacecraft state at ``date``.

        Raises:
            InvalidOrbitState: If the composed elements are not an
                elliptical orbit.
        """
        offsets = self.propagation_offsets(x)
        if offsets:
            short_period_terms = context.short_period_terms_value(offsets)
        else:
            short_period_terms = context.short_period_terms
        elements = compose_osculating_array(
            context.nominal_array, self.orbital_correction(x), short_period_terms
        )
        mu = context.mu
        if CENTRAL_ATTRACTION_COEFFICIENT in offsets:
            mu = mu + float(offsets[CENTRAL_ATTRACTION_COEFFICIENT])
        orbit = Orbit.from_array(
            elements, context.orbit_type, context.angle_type, date, mu, context.frame
        )
        return SpacecraftState(orbit, context.nominal_mean_state.mass)
