"""Force models for the semi-analytical propagator.

A semi-analytical force model contributes two things:

- secular drift rates of the mean Keplerian elements, integrated by the
  propagator to move the mean state in time;
- short-period corrections mapping mean elements to osculating ones.

Short-period coefficients are refreshed explicitly with
:meth:`SemiAnalyticalForceModel.update_short_period_terms`; between two
refreshes they are evaluated with the parameter values captured at the
last refresh, shifted by any offsets supplied by the caller.  This lets a
filter perturb a force-model parameter for one sigma point without
touching the driver itself.

All element arrays are Keplerian ``[a, e, i, Ω, ω, M]`` with the mean
anomaly, in metres and radians.
"""

from __future__ import annotations

import abc
from collections.abc import Mapping

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.constants import GM_EARTH, J2_EARTH, R_EARTH
from astroukf.orbits import mean_element_rates_j2, state_koe_mean_to_osc
from astroukf.parameters import ParameterDriver
from astroukf.utils import normalize_angle

#: Name of the gravitational parameter driver.
CENTRAL_ATTRACTION_COEFFICIENT = "central attraction coefficient"

#: Name of the second zonal harmonic driver.
J2_COEFFICIENT = "J2"

# Scale of the gravitational parameter driver
_MU_SCALE = 2.0 ** 32


def _wrap_keplerian_angles(delta: Array) -> Array:
    return jnp.concatenate([delta[:3], normalize_angle(delta[3:])])


class SemiAnalyticalForceModel(abc.ABC):
    """Base class of the force models used by the semi-analytical propagator."""

    @property
    @abc.abstractmethod
    def parameters_drivers(self) -> list[ParameterDriver]:
        """Drivers of the model parameters."""

    @abc.abstractmethod
    def mean_element_rates(self, koe: ArrayLike, mu: float) -> Array:
        """Secular rates of the mean Keplerian elements.

        Args:
            koe: Mean Keplerian elements.
            mu: Gravitational parameter in *m^3/s^2*.

        Returns:
            Rates ``[da, de, di, dΩ, dω, dM]`` in SI units per second.
        """

    def initialize_short_period_terms(self, mean_state) -> None:
        """Prepare the short-period terms for a new propagation."""
        self.update_short_period_terms(mean_state)

    def update_short_period_terms(self, mean_state) -> None:
        """Refresh the short-period coefficients around ``mean_state``."""

    def short_period_contribution(
        self,
        koe: ArrayLike,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> Array:
        """Osculating minus mean Keplerian elements due to this model.

        Angular components are wrapped to ``[-pi, pi)``.

        Args:
            koe: Mean Keplerian elements.
            parameter_offsets: Additive offsets on the model parameters,
                keyed by driver name.

        Returns:
            Element difference of shape ``(6,)``.
        """
        return jnp.zeros(6, dtype=get_dtype())


class NewtonianAttraction(SemiAnalyticalForceModel):
    """Keplerian attraction of a point mass.

    Drives the mean anomaly at the Keplerian mean motion and has no
    short-period terms.

    Args:
        mu: Gravitational parameter in *m^3/s^2*. Default: Earth.
    """

    def __init__(self, mu: float = GM_EARTH) -> None:
        self._driver = ParameterDriver(CENTRAL_ATTRACTION_COEFFICIENT, mu, _MU_SCALE, 0.0)

    @property
    def parameters_drivers(self) -> list[ParameterDriver]:
        return [self._driver]

    @property
    def mu(self) -> float:
        return self._driver.value

    def mean_element_rates(self, koe: ArrayLike, mu: float) -> Array:
        koe = jnp.asarray(koe, dtype=get_dtype())
        n = jnp.sqrt(mu / koe[0] ** 3)
        return jnp.zeros(6, dtype=get_dtype()).at[5].set(n)

    def __repr__(self) -> str:
        return f"NewtonianAttraction(mu={self.mu!r})"


class ZonalJ2(SemiAnalyticalForceModel):
    """Second zonal harmonic of the central body.

    Secular rates are the classical first-order J2 drifts of the node,
    perigee and mean anomaly.  Short-period terms come from the
    first-order Brouwer-Lyddane mean-to-osculating mapping.

    Args:
        j2: Unnormalized second zonal coefficient. Default: Earth.
        r_eq: Equatorial radius in *m*. Default: Earth.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.constants import R_EARTH
        from astroukf.propagation import ZonalJ2
        j2 = ZonalJ2()
        koe = jnp.array([R_EARTH + 500e3, 0.001, 0.9, 0.0, 0.0, 0.0])
        delta = j2.short_period_contribution(koe, {"J2": 1e-6})
        ```
    """

    def __init__(self, j2: float = J2_EARTH, r_eq: float = R_EARTH) -> None:
        self._driver = ParameterDriver(J2_COEFFICIENT, j2, 1.0e-6)
        self._r_eq = float(r_eq)
        self._j2_snapshot = self._driver.value

    @property
    def parameters_drivers(self) -> list[ParameterDriver]:
        return [self._driver]

    @property
    def r_eq(self) -> float:
        return self._r_eq

    @property
    def j2_snapshot(self) -> float:
        """J2 value captured at the last short-period refresh."""
        return self._j2_snapshot

    def mean_element_rates(self, koe: ArrayLike, mu: float) -> Array:
        return mean_element_rates_j2(koe, mu, self._driver.value, self._r_eq)

    def update_short_period_terms(self, mean_state) -> None:
        self._j2_snapshot = self._driver.value

    def short_period_contribution(
        self,
        koe: ArrayLike,
        parameter_offsets: Mapping[str, ArrayLike] | None = None,
    ) -> Array:
        koe = jnp.asarray(koe, dtype=get_dtype())
        j2 = self._j2_snapshot
        if parameter_offsets and J2_COEFFICIENT in parameter_offsets:
            j2 = j2 + parameter_offsets[J2_COEFFICIENT]
        osculating = state_koe_mean_to_osc(koe, j2=j2, r_eq=self._r_eq)
        return _wrap_keplerian_angles(osculating - koe)

    def __repr__(self) -> str:
        return f"ZonalJ2(j2={self._driver.value!r}, r_eq={self._r_eq!r})"
