"""Unscented Kalman Filter (UKF) engine driven by a process model.

Implements the scaled Unscented Kalman Filter using the Van der Merwe
sigma point algorithm.  The engine knows nothing about orbits: each
step it hands sigma points to an :class:`UnscentedProcess`, which
evolves them to the next measurement, predicts the measurement for each
of them and supplies the process noise.  The process model then
computes the innovation, and may refuse it by returning ``None``.

The Cholesky factor is computed on the correlation matrix and rescaled
by the standard deviations, so states mixing metres and radians do not
ruin its conditioning.  A dtype-adaptive epsilon regularizes the
factorization.
"""

from __future__ import annotations

import logging
from typing import Protocol

import jax.numpy as jnp
from jax import Array

from astroukf.config import get_dtype
from astroukf.errors import NumericalError
from astroukf.estimation._types import (
    MeasurementDecorator,
    ProcessEstimate,
    UKFConfig,
    UnscentedEvolution,
)

logger = logging.getLogger(__name__)


class UnscentedProcess(Protocol):
    """Process model consumed by :class:`UnscentedKalmanFilter`."""

    def evolve(
        self,
        previous_time: float,
        sigma_points: Array,
        measurement: MeasurementDecorator,
    ) -> UnscentedEvolution: ...

    def innovate(
        self,
        measurement: MeasurementDecorator,
        predicted_measurement: Array,
        predicted_state: Array,
        innovation_covariance: Array,
    ) -> Array | None: ...


def _sigma_points(
    x: Array,
    P: Array,
    config: UKFConfig,
) -> tuple[Array, Array, Array]:
    """Generate scaled sigma points and weights.

    Uses Van der Merwe's scaled unscented transform to generate
    ``2n + 1`` sigma points from the state mean and covariance.

    Args:
        x: State mean of shape ``(n,)``.
        P: State covariance of shape ``(n, n)``.
        config: UKF sigma point configuration.

    Returns:
        A tuple ``(points, Wm, Wc)`` where:

        - ``points``: Sigma points of shape ``(2n+1, n)``.
        - ``Wm``: Mean weights of shape ``(2n+1,)``.
        - ``Wc``: Covariance weights of shape ``(2n+1,)``.

    Raises:
        NumericalError: If ``P`` is not positive definite.
    """
    dtype = get_dtype()
    n = x.shape[0]

    alpha = config.alpha
    beta = config.beta
    kappa = config.kappa
    lam = alpha**2 * (n + kappa) - n

    # Factorize the correlation matrix, regularized; zero-variance
    # components get no spread
    variance = jnp.diag(P)
    if not bool(jnp.all(variance >= 0.0)):
        raise NumericalError(f"covariance has negative diagonal {variance.tolist()}")
    std = jnp.sqrt(variance)
    std_safe = jnp.where(std > 0.0, std, 1.0)
    eps = jnp.finfo(dtype).eps * 100.0
    C = P / jnp.outer(std_safe, std_safe) + eps * jnp.eye(n, dtype=dtype)
    L = std[:, None] * jnp.linalg.cholesky((n + lam) * C)
    if not bool(jnp.all(jnp.isfinite(L))):
        raise NumericalError("covariance matrix is not positive definite")

    # Sigma points: x, x + L_i, x - L_i
    points_plus = x[None, :] + L.T
    points_minus = x[None, :] - L.T
    points = jnp.concatenate([x[None, :], points_plus, points_minus], axis=0)

    # Weights
    w0_m = jnp.asarray(lam / (n + lam), dtype=dtype)
    w0_c = jnp.asarray(lam / (n + lam) + (1.0 - alpha**2 + beta), dtype=dtype)
    wi = jnp.asarray(1.0 / (2.0 * (n + lam)), dtype=dtype)

    Wm = jnp.concatenate([jnp.array([w0_m], dtype=dtype), jnp.full(2 * n, wi, dtype=dtype)])
    Wc = jnp.concatenate([jnp.array([w0_c], dtype=dtype), jnp.full(2 * n, wi, dtype=dtype)])

    return points, Wm, Wc


class UnscentedKalmanFilter:
    """Sequential unscented Kalman filter.

    Args:
        process: Process model implementing :class:`UnscentedProcess`.
        initial_estimate: Prior estimate; its time is the start of the
            filter time axis.
        config: Sigma point configuration. Default: ``UKFConfig()``.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.estimation import ProcessEstimate, UnscentedKalmanFilter

        ukf = UnscentedKalmanFilter(model, ProcessEstimate(0.0, jnp.zeros(6), jnp.eye(6)))
        estimate = ukf.estimation_step(decorated_measurement)
        ```
    """

    def __init__(
        self,
        process: UnscentedProcess,
        initial_estimate: ProcessEstimate,
        config: UKFConfig = UKFConfig(),
    ) -> None:
        self._process = process
        self._config = config
        self._predicted = initial_estimate
        self._corrected = initial_estimate

    @property
    def config(self) -> UKFConfig:
        return self._config

    @property
    def predicted(self) -> ProcessEstimate:
        """Estimate after the last prediction."""
        return self._predicted

    @property
    def corrected(self) -> ProcessEstimate:
        """Estimate after the last accepted correction."""
        return self._corrected

    def estimation_step(self, measurement: MeasurementDecorator) -> ProcessEstimate | None:
        """Process one measurement.

        Predicts the state and measurement through the process model and,
        unless the process model refuses the innovation, corrects the
        estimate.

        Args:
            measurement: Decorated measurement.

        Returns:
            The corrected estimate, or ``None`` if the measurement was
            rejected.  A rejection leaves :attr:`corrected` unchanged.
        """
        dtype = get_dtype()
        x = jnp.asarray(self._corrected.state, dtype=dtype)
        P = jnp.asarray(self._corrected.covariance, dtype=dtype)

        # Generate and evolve sigma points
        points, Wm, Wc = _sigma_points(x, P, self._config)
        evolution = self._process.evolve(self._corrected.time, points, measurement)
        states = jnp.asarray(evolution.current_states, dtype=dtype)
        z_points = jnp.asarray(evolution.current_measurements, dtype=dtype)

        # Predicted state and covariance
        x_pred = jnp.einsum("i,ij->j", Wm, states)
        x_diff = states - x_pred[None, :]
        P_pred = jnp.einsum("i,ij,ik->jk", Wc, x_diff, x_diff) + evolution.process_noise_matrix
        self._predicted = ProcessEstimate(evolution.current_time, x_pred, P_pred)

        # Predicted measurement, innovation covariance and cross-covariance
        z_pred = jnp.einsum("i,ij->j", Wm, z_points)
        z_diff = z_points - z_pred[None, :]
        S = jnp.einsum("i,ij,ik->jk", Wc, z_diff, z_diff) + measurement.covariance
        Pxz = jnp.einsum("i,ij,ik->jk", Wc, x_diff, z_diff)

        innovation = self._process.innovate(measurement, z_pred, x_pred, S)
        if innovation is None:
            logger.debug("Measurement at %s rejected, no correction", measurement.date)
            return None

        # Kalman gain: K = Pxz @ S^{-1}
        K = jnp.linalg.solve(S, Pxz.T).T

        x_upd = x_pred + K @ jnp.asarray(innovation, dtype=dtype)
        P_upd = P_pred - K @ S @ K.T
        P_upd = 0.5 * (P_upd + P_upd.T)

        self._corrected = ProcessEstimate(
            time=evolution.current_time,
            state=x_upd,
            covariance=P_upd,
            innovation_covariance=S,
            kalman_gain=K,
        )
        return self._corrected
