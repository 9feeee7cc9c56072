import jax
import jax.numpy as jnp
import pytest

from astroukf.constants import R_EARTH
from astroukf.epoch import Epoch
from astroukf.errors import DimensionMismatchError
from astroukf.estimation import (
    ConstantProcessNoise,
    UnivariateProcessNoise,
    check_dimension,
)
from astroukf.frames import LOFType, state_eci_to_lof
from astroukf.orbit import Orbit, OrbitType, PositionAngle
from astroukf.propagation import SpacecraftState

_EPOCH = Epoch(2024, 1, 1)
_KOE = jnp.array([R_EARTH + 500e3, 0.001, jnp.deg2rad(51.6), 0.3, 0.5, 0.1])
_DT = 60.0


def _state(date, orbit_type=OrbitType.EQUINOCTIAL):
    koe = Orbit.from_array(_KOE, OrbitType.KEPLERIAN, PositionAngle.MEAN, date)
    elements = koe.to_array(orbit_type, PositionAngle.MEAN)
    return SpacecraftState(Orbit.from_array(elements, orbit_type, PositionAngle.MEAN, date))


def _position_sigma(dt):
    return 0.1 * dt


def _velocity_sigma(dt):
    return 1e-4 * dt


_ORBITAL_EVOLUTION = [_position_sigma] * 3 + [_velocity_sigma] * 3


def _univariate(orbit_type=OrbitType.EQUINOCTIAL, lof_type=LOFType.QSW, propagation=(), measurements=()):
    size = 6 + len(propagation) + len(measurements)
    return UnivariateProcessNoise(
        jnp.eye(size), lof_type, orbit_type, PositionAngle.MEAN,
        _ORBITAL_EVOLUTION, propagation, measurements,
    )


# ──────────────────────────────────────────────
# Dimension checks
# ──────────────────────────────────────────────


class TestCheckDimension:
    def test_accepts_square(self):
        assert check_dimension(jnp.eye(3), 3, "test").shape == (3, 3)

    def test_rejects_wrong_size(self):
        with pytest.raises(DimensionMismatchError) as excinfo:
            check_dimension(jnp.eye(3), 4, "process noise")
        assert excinfo.value.requested == (3, 3)
        assert excinfo.value.expected == (4, 4)
        assert "process noise" in str(excinfo.value)

    def test_rejects_non_square(self):
        with pytest.raises(DimensionMismatchError):
            check_dimension(jnp.zeros((3, 2)), 3, "test")


# ──────────────────────────────────────────────
# ConstantProcessNoise
# ──────────────────────────────────────────────


class TestConstantProcessNoise:
    def test_returns_fixed_matrices(self):
        initial = jnp.diag(jnp.arange(1.0, 7.0))
        process = 1e-3 * jnp.eye(6)
        provider = ConstantProcessNoise(initial, process)
        state = _state(_EPOCH)
        assert jnp.array_equal(provider.initial_covariance_matrix(state), initial)
        assert jnp.array_equal(provider.process_noise_matrix(state, _state(_EPOCH + _DT)), process)

    def test_process_defaults_to_initial(self):
        provider = ConstantProcessNoise(jnp.eye(4))
        state = _state(_EPOCH)
        assert jnp.array_equal(provider.process_noise_matrix(state, state), jnp.eye(4))

    def test_non_square_initial(self):
        with pytest.raises(DimensionMismatchError):
            ConstantProcessNoise(jnp.zeros((6, 5)))

    def test_vector_initial(self):
        with pytest.raises(DimensionMismatchError):
            ConstantProcessNoise(jnp.ones(6))

    def test_size_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            ConstantProcessNoise(jnp.eye(6), jnp.eye(7))


# ──────────────────────────────────────────────
# UnivariateProcessNoise
# ──────────────────────────────────────────────


class TestUnivariateProcessNoiseSetup:
    def test_requires_six_orbital_functions(self):
        with pytest.raises(DimensionMismatchError):
            UnivariateProcessNoise(
                jnp.eye(6), LOFType.QSW, OrbitType.EQUINOCTIAL, PositionAngle.MEAN,
                _ORBITAL_EVOLUTION[:5],
            )

    def test_initial_size_counts_parameters(self):
        with pytest.raises(DimensionMismatchError):
            UnivariateProcessNoise(
                jnp.eye(6), LOFType.QSW, OrbitType.EQUINOCTIAL, PositionAngle.MEAN,
                _ORBITAL_EVOLUTION, [lambda dt: 1.0],
            )

    def test_accessors(self):
        provider = _univariate(lof_type=LOFType.TNW, measurements=[lambda dt: 0.0])
        assert provider.lof_type == LOFType.TNW
        assert provider.orbit_type == OrbitType.EQUINOCTIAL
        assert provider.position_angle == PositionAngle.MEAN
        assert len(provider.lof_cartesian_orbital_parameters_evolution) == 6
        assert provider.propagation_parameters_evolution == ()
        assert len(provider.measurements_parameters_evolution) == 1
        assert jnp.array_equal(provider.initial_covariance_matrix(_state(_EPOCH)), jnp.eye(7))


class TestUnivariateProcessNoiseMatrix:
    @pytest.mark.parametrize("lof_type", [LOFType.QSW, LOFType.TNW])
    def test_cartesian_block_maps_back_to_lof_variances(self, lof_type):
        provider = _univariate(OrbitType.CARTESIAN, lof_type)
        previous = _state(_EPOCH, OrbitType.CARTESIAN)
        current = _state(_EPOCH + _DT, OrbitType.CARTESIAN)
        noise = provider.process_noise_matrix(previous, current)

        x = current.orbit.cartesian()
        to_lof = jax.jacfwd(lambda y: state_eci_to_lof(x, y, lof_type))(x)
        recovered = to_lof @ noise @ to_lof.T
        expected = jnp.array([_position_sigma(_DT) ** 2] * 3 + [_velocity_sigma(_DT) ** 2] * 3)

        normalizer = 1.0 / jnp.sqrt(expected)
        correlation = normalizer[:, None] * recovered * normalizer[None, :]
        assert jnp.allclose(correlation, jnp.eye(6), atol=1e-8)

    def test_lof_jacobian_preserves_volume(self):
        provider = _univariate(OrbitType.CARTESIAN)
        jacobian = provider.lof_to_orbit_jacobian(_state(_EPOCH, OrbitType.CARTESIAN))
        assert float(jnp.linalg.det(jacobian)) == pytest.approx(1.0, rel=1e-9)

    def test_equinoctial_block_symmetric_positive(self):
        provider = _univariate()
        noise = provider.process_noise_matrix(_state(_EPOCH), _state(_EPOCH + _DT))
        assert noise.shape == (6, 6)
        assert jnp.array_equal(noise, noise.T)
        assert jnp.all(jnp.diag(noise) > 0.0)
        assert jnp.all(jnp.isfinite(noise))

    def test_zero_elapsed_time(self):
        provider = _univariate()
        state = _state(_EPOCH)
        assert jnp.array_equal(provider.process_noise_matrix(state, state), jnp.zeros((6, 6)))

    def test_grows_with_elapsed_time(self):
        provider = _univariate()
        short = provider.process_noise_matrix(_state(_EPOCH), _state(_EPOCH + _DT))
        long = provider.process_noise_matrix(_state(_EPOCH - _DT), _state(_EPOCH + _DT))
        assert float(long[0, 0]) > float(short[0, 0])

    def test_parameter_blocks_are_independent(self):
        provider = _univariate(
            propagation=[lambda dt: 2.0 * dt],
            measurements=[lambda dt: 3.0, lambda dt: 0.5],
        )
        noise = provider.process_noise_matrix(_state(_EPOCH), _state(_EPOCH + _DT))
        assert noise.shape == (9, 9)
        assert jnp.allclose(jnp.diag(noise)[6:], jnp.array([(2.0 * _DT) ** 2, 9.0, 0.25]))
        assert jnp.array_equal(noise[:6, 6:], jnp.zeros((6, 3)))
        assert jnp.array_equal(noise[6:, :6], jnp.zeros((3, 6)))
        off_diagonal = noise[6:, 6:] - jnp.diag(jnp.diag(noise[6:, 6:]))
        assert jnp.array_equal(off_diagonal, jnp.zeros((3, 3)))
