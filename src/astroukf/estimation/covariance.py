"""Initial covariance and process noise providers.

A :class:`CovarianceMatrixProvider` supplies the filter with the initial
covariance of the estimated columns and with the process noise added
between two nominal states.  Providers are stateless: the same inputs
always give the same matrix.

:class:`UnivariateProcessNoise` describes the orbital noise as standard
deviations growing with time along the axes of a local orbital frame,
which is how uncertainty is usually specified for a spacecraft.  The
orbital block is mapped from the local frame to inertial Cartesian
coordinates and then to the filter's element set through the Jacobians
of the two transformations, evaluated at the current nominal state.
"""

from __future__ import annotations

import abc
from collections.abc import Callable, Sequence

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from astroukf.config import get_dtype
from astroukf.errors import DimensionMismatchError, NumericalError
from astroukf.frames import LOFType, state_lof_to_eci
from astroukf.orbit import OrbitType, PositionAngle, convert_elements
from astroukf.propagation import SpacecraftState

NoiseEvolution = Callable[[float], float]


def check_dimension(matrix: ArrayLike, expected: int, name: str) -> Array:
    """Check that a matrix is square with ``expected`` rows.

    Args:
        matrix: Matrix to check.
        expected: Expected number of rows and columns.
        name: Description used in the error message.

    Returns:
        The matrix as an array of the configured dtype.

    Raises:
        DimensionMismatchError: If the shape is not ``(expected, expected)``.
    """
    matrix = jnp.asarray(matrix, dtype=get_dtype())
    if matrix.shape != (expected, expected):
        raise DimensionMismatchError(name, tuple(matrix.shape), (expected, expected))
    return matrix


class CovarianceMatrixProvider(abc.ABC):
    """Source of initial covariance and process noise matrices."""

    @abc.abstractmethod
    def initial_covariance_matrix(self, state: SpacecraftState) -> Array:
        """Covariance of the estimated columns at the initial state."""

    @abc.abstractmethod
    def process_noise_matrix(self, previous: SpacecraftState, current: SpacecraftState) -> Array:
        """Noise accumulated between two nominal states."""


class ConstantProcessNoise(CovarianceMatrixProvider):
    """Provider returning fixed matrices.

    Args:
        initial: Initial covariance.
        process: Process noise. Default: same as ``initial``.

    Raises:
        DimensionMismatchError: If a matrix is not square or the two
            matrices differ in size.
    """

    def __init__(self, initial: ArrayLike, process: ArrayLike | None = None) -> None:
        initial = jnp.asarray(initial, dtype=get_dtype())
        size = initial.shape[0] if initial.ndim == 2 else -1
        self._initial = check_dimension(initial, size, "initial covariance")
        self._process = self._initial if process is None else check_dimension(process, size, "process noise")

    def initial_covariance_matrix(self, state: SpacecraftState) -> Array:
        return self._initial

    def process_noise_matrix(self, previous: SpacecraftState, current: SpacecraftState) -> Array:
        return self._process


def _diagonal(evolutions: Sequence[NoiseEvolution], dt: float) -> Array:
    return jnp.array([float(f(dt)) ** 2 for f in evolutions], dtype=get_dtype())


class UnivariateProcessNoise(CovarianceMatrixProvider):
    """Process noise given as functions of the elapsed time.

    The orbital block comes from six functions giving standard deviations
    along the local orbital frame position and velocity axes.  The
    diagonal covariance they form is mapped to inertial Cartesian
    coordinates through the Jacobian of the LOF-to-inertial relative
    state mapping (rotation and frame rate), then to the configured
    element set through the Jacobian of the Cartesian-to-element
    conversion.  Propagation and measurement parameters get independent
    diagonal blocks ``g_j(dt)^2`` and ``h_k(dt)^2``.

    Args:
        initial_covariance: Initial covariance of the orbital,
            propagation and measurement columns, in that order.
        lof_type: Local orbital frame of the orbital noise.
        orbit_type: Element set of the filter's orbital columns.
        position_angle: Angle convention of the filter's orbital columns.
        lof_cartesian_orbital_parameters_evolution: Six functions of the
            elapsed time in seconds giving standard deviations along the
            LOF axes, position then velocity.
        propagation_parameters_evolution: One function per estimated
            propagation parameter.
        measurements_parameters_evolution: One function per estimated
            measurement parameter.

    Raises:
        DimensionMismatchError: If there are not six orbital functions or
            the initial covariance does not match the number of columns.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.estimation import UnivariateProcessNoise
        from astroukf.frames import LOFType
        from astroukf.orbit import OrbitType, PositionAngle

        position = lambda dt: 1e-3 * dt
        velocity = lambda dt: 1e-6 * dt
        noise = UnivariateProcessNoise(
            jnp.eye(6), LOFType.QSW, OrbitType.EQUINOCTIAL, PositionAngle.MEAN,
            [position] * 3 + [velocity] * 3,
        )
        ```
    """

    def __init__(
        self,
        initial_covariance: ArrayLike,
        lof_type: LOFType,
        orbit_type: OrbitType,
        position_angle: PositionAngle,
        lof_cartesian_orbital_parameters_evolution: Sequence[NoiseEvolution],
        propagation_parameters_evolution: Sequence[NoiseEvolution] = (),
        measurements_parameters_evolution: Sequence[NoiseEvolution] = (),
    ) -> None:
        orbital = tuple(lof_cartesian_orbital_parameters_evolution)
        if len(orbital) != 6:
            raise DimensionMismatchError("LOF Cartesian orbital parameters evolution", len(orbital), 6)
        self._lof_type = lof_type
        self._orbit_type = orbit_type
        self._position_angle = position_angle
        self._orbital = orbital
        self._propagation = tuple(propagation_parameters_evolution)
        self._measurements = tuple(measurements_parameters_evolution)
        size = 6 + len(self._propagation) + len(self._measurements)
        self._initial = check_dimension(initial_covariance, size, "initial covariance")

    @property
    def lof_type(self) -> LOFType:
        return self._lof_type

    @property
    def orbit_type(self) -> OrbitType:
        return self._orbit_type

    @property
    def position_angle(self) -> PositionAngle:
        return self._position_angle

    @property
    def lof_cartesian_orbital_parameters_evolution(self) -> tuple[NoiseEvolution, ...]:
        return self._orbital

    @property
    def propagation_parameters_evolution(self) -> tuple[NoiseEvolution, ...]:
        return self._propagation

    @property
    def measurements_parameters_evolution(self) -> tuple[NoiseEvolution, ...]:
        return self._measurements

    def initial_covariance_matrix(self, state: SpacecraftState) -> Array:
        return self._initial

    def lof_to_orbit_jacobian(self, state: SpacecraftState) -> Array:
        """Jacobian of the filter elements with respect to LOF relative states.

        Evaluated at ``state``: the product of the element/Cartesian
        Jacobian and the LOF/inertial Jacobian.

        Raises:
            NumericalError: If the Jacobian is not finite.
        """
        orbit = state.orbit
        x = orbit.cartesian()
        lof_jacobian = jax.jacfwd(
            lambda rel: state_lof_to_eci(x, rel, self._lof_type, orbit.mu)
        )(jnp.zeros(6, dtype=get_dtype()))
        orbit_jacobian = jax.jacfwd(
            lambda y: convert_elements(
                y, OrbitType.CARTESIAN, PositionAngle.MEAN,
                self._orbit_type, self._position_angle, orbit.mu,
            )
        )(x)
        jacobian = orbit_jacobian @ lof_jacobian
        if not np.all(np.isfinite(np.asarray(jacobian))):
            raise NumericalError(f"non-finite LOF to {self._orbit_type.value} Jacobian at {orbit.epoch}")
        return jacobian

    def process_noise_matrix(self, previous: SpacecraftState, current: SpacecraftState) -> Array:
        """Process noise between two nominal states.

        The elapsed time is ``current.epoch - previous.epoch``; the frame
        mapping is evaluated at ``current``.
        """
        dt = float(current.epoch - previous.epoch)
        jacobian = self.lof_to_orbit_jacobian(current)
        orbital = jacobian @ jnp.diag(_diagonal(self._orbital, dt)) @ jacobian.T

        size = 6 + len(self._propagation) + len(self._measurements)
        noise = jnp.zeros((size, size), dtype=get_dtype())
        noise = noise.at[:6, :6].set(0.5 * (orbital + orbital.T))
        parameters = _diagonal(self._propagation + self._measurements, dt)
        if parameters.shape[0] > 0:
            noise = noise.at[6:, 6:].set(jnp.diag(parameters))
        return noise
