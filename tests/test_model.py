import jax.numpy as jnp
import numpy as np
import pytest

from astroukf.constants import R_EARTH
from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, DimensionMismatchError
from astroukf.estimation import (
    ConstantProcessNoise,
    ProcessEstimate,
    SemiAnalyticalUnscentedKalmanModel,
    UnscentedKalmanFilter,
    compose_osculating_array,
    decorate_unscented,
)
from astroukf.measurements import (
    PV,
    Bias,
    DynamicOutlierFilter,
    GroundStation,
    MeasurementStatus,
    Range,
)
from astroukf.orbit import Orbit, OrbitType, PositionAngle
from astroukf.propagation import (
    CENTRAL_ATTRACTION_COEFFICIENT,
    J2_COEFFICIENT,
    SemiAnalyticalPropagatorBuilder,
    ZonalJ2,
)

_EPOCH = Epoch(2024, 1, 1)
_KOE = jnp.array([R_EARTH + 500e3, 0.001, jnp.deg2rad(51.6), 0.3, 0.5, 0.1])
_POSITION_SCALE = 10.0


def _builder(force_models=()):
    koe = Orbit.from_array(_KOE, OrbitType.KEPLERIAN, PositionAngle.MEAN, _EPOCH)
    orbit = Orbit.from_array(
        koe.to_array(OrbitType.EQUINOCTIAL, PositionAngle.MEAN),
        OrbitType.EQUINOCTIAL, PositionAngle.MEAN, _EPOCH,
    )
    return SemiAnalyticalPropagatorBuilder(orbit, list(force_models), position_scale=_POSITION_SCALE)


def _noise(builder, extra=()):
    scales = np.array([d.scale for d in builder.orbital_parameters_drivers if d.selected])
    variances = jnp.asarray(np.concatenate([scales ** 2, np.asarray(extra, dtype=float)]))
    return ConstantProcessNoise(jnp.diag(variances), 1e-4 * jnp.diag(variances))


def _pv(date, force_models=None):
    """PV fix generated by an independent propagator with the same configuration."""
    truth = _builder([ZonalJ2()] if force_models is None else force_models).build_propagator()
    return PV(date, truth.propagate(date).orbit.cartesian(), 10.0, 0.01)


class _Harness:
    """Model, filter and reference propagator stepped like the estimator does."""

    def __init__(self, builder, noise, **kwargs):
        self.builder = builder
        self.model = SemiAnalyticalUnscentedKalmanModel(builder, noise, **kwargs)
        self.reference = builder.build_propagator()
        self.ukf = UnscentedKalmanFilter(self.model, self.model.estimate)

    def step(self, observed):
        self.model.relinearize(self.reference.propagate_mean(observed.date))
        estimate = self.ukf.estimation_step(decorate_unscented(observed, _EPOCH))
        if estimate is not None:
            self.model.finalize(observed, estimate)
        return estimate


class _RecordingOutlierFilter(DynamicOutlierFilter):
    def __init__(self, warmup, max_sigma):
        super().__init__(warmup, max_sigma)
        self.seen = []

    def modify(self, estimated, parameter_offsets=None):
        self.seen.append(self.sigma)
        super().modify(estimated, parameter_offsets)


class _FrozenBuilder(SemiAnalyticalPropagatorBuilder):
    def reset_orbit(self, orbit, propagation_type=None):
        raise RuntimeError("builder is frozen")


# ──────────────────────────────────────────────
# Column layout
# ──────────────────────────────────────────────


class TestColumnLayout:
    def test_orbital_only(self):
        builder = _builder()
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        assert model.nb_columns == model.nb_orbital_columns == 6
        assert model.nb_propagation_columns == model.nb_measurement_columns == 0
        assert model.estimated_orbital_parameters.names == ["a", "ex", "ey", "hx", "hy", "λM"]

    def test_propagation_columns_sorted(self):
        builder = _builder([ZonalJ2()])
        for driver in builder.propagation_parameters_drivers:
            driver.selected = True
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder, [1e-12, 1e12]))
        assert model.estimated_propagation_parameters.names == [J2_COEFFICIENT, CENTRAL_ATTRACTION_COEFFICIENT]
        assert model.composer.propagation_columns == {J2_COEFFICIENT: 6, CENTRAL_ATTRACTION_COEFFICIENT: 7}

    def test_shared_driver_is_one_column(self):
        builder = _builder([ZonalJ2(), ZonalJ2()])
        builder.propagation_parameters_drivers.find_by_name(J2_COEFFICIENT).selected = True
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder, [1e-12]))
        assert model.nb_propagation_columns == 1
        assert len(model.estimated_propagation_parameters.find_by_name(J2_COEFFICIENT).raw_drivers) == 2

    def test_measurement_columns_last(self):
        builder = _builder()
        bias = Bias(["range bias"], [0.0], [1.0])
        bias.parameters_drivers[0].selected = True
        station = GroundStation("Station", jnp.zeros(3))
        model = SemiAnalyticalUnscentedKalmanModel(
            builder, _noise(builder, [1.0]),
            estimated_measurements_parameters=station.parameters_drivers + bias.parameters_drivers,
        )
        assert model.estimated_measurements_parameters.names == ["range bias"]
        assert model.composer.measurement_columns == {"range bias": 6}

    def test_layout_is_deterministic(self):
        def layout():
            builder = _builder([ZonalJ2()])
            for driver in builder.propagation_parameters_drivers:
                driver.selected = True
            model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder, [1e-12, 1e12]))
            return (
                model.estimated_orbital_parameters.names
                + model.estimated_propagation_parameters.names
            )

        assert layout() == layout()

    def test_unselected_orbital_element(self):
        builder = _builder()
        builder.orbital_parameters_drivers.find_by_name("hx").selected = False
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        assert model.nb_orbital_columns == 5
        correction = model.composer.orbital_correction(jnp.arange(1.0, 6.0))
        assert jnp.array_equal(correction, jnp.array([1.0, 2.0, 3.0, 0.0, 4.0, 5.0]))

    def test_reference_dates_defaulted(self):
        builder = _builder([ZonalJ2()])
        bias = Bias(["range bias"], [0.0], [1.0])
        bias.parameters_drivers[0].selected = True
        SemiAnalyticalUnscentedKalmanModel(
            builder, _noise(builder, [1.0]), estimated_measurements_parameters=bias.parameters_drivers
        )
        drivers = (
            builder.orbital_parameters_drivers.drivers
            + builder.propagation_parameters_drivers.drivers
            + bias.parameters_drivers
        )
        assert all(driver.reference_date == _EPOCH for driver in drivers)


# ──────────────────────────────────────────────
# Covariance assembly
# ──────────────────────────────────────────────


class TestCovarianceAssembly:
    def _model_with_bias(self, noise, measurement_noise=None):
        builder = _builder()
        bias = Bias(["range bias"], [0.0], [1.0])
        bias.parameters_drivers[0].selected = True
        return SemiAnalyticalUnscentedKalmanModel(
            builder, noise(builder), bias.parameters_drivers, measurement_noise
        )

    def test_initial_estimate(self):
        builder = _builder()
        noise = _noise(builder)
        model = SemiAnalyticalUnscentedKalmanModel(builder, noise)
        assert model.estimate.time == 0.0
        assert jnp.array_equal(model.estimate.state, jnp.zeros(6))
        assert jnp.array_equal(model.estimate.covariance, noise.initial_covariance_matrix(None))

    def test_measurement_block_defaults_to_zero(self):
        model = self._model_with_bias(_noise)
        assert model.estimate.covariance.shape == (7, 7)
        assert float(model.estimate.covariance[6, 6]) == 0.0

    def test_full_matrix_accepted(self):
        model = self._model_with_bias(lambda b: _noise(b, [4.0]))
        assert float(model.estimate.covariance[6, 6]) == 4.0

    def test_measurement_provider_block(self):
        model = self._model_with_bias(_noise, ConstantProcessNoise(jnp.eye(1) * 9.0, jnp.eye(1)))
        assert float(model.estimate.covariance[6, 6]) == 9.0
        assert jnp.array_equal(model.estimate.covariance[:6, 6], jnp.zeros(6))
        assert float(model.process_noise_matrix()[6, 6]) == 1.0

    def test_measurement_block_wrong_size(self):
        with pytest.raises(DimensionMismatchError, match="measurement block"):
            self._model_with_bias(_noise, ConstantProcessNoise(jnp.eye(2)))

    def test_dynamic_block_wrong_size(self):
        builder = _builder()
        with pytest.raises(DimensionMismatchError):
            SemiAnalyticalUnscentedKalmanModel(builder, ConstantProcessNoise(jnp.eye(5)))


# ──────────────────────────────────────────────
# Composition
# ──────────────────────────────────────────────


class TestComposition:
    def test_compose_osculating_array(self):
        out = compose_osculating_array(jnp.ones(6), 2.0 * jnp.ones(6), 3.0 * jnp.ones(6))
        assert jnp.array_equal(out, 6.0 * jnp.ones(6))

    def test_zero_correction_without_periodic_terms_is_nominal(self):
        builder = _builder()
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        state = model.composer.compose(model.context, jnp.zeros(6), _EPOCH)
        assert jnp.array_equal(state.orbit.elements, model.context.nominal_array)
        assert jnp.array_equal(model.context.short_period_terms, jnp.zeros(6))

    def test_zero_correction_matches_osculating_propagation(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        date = _EPOCH + 120.0
        harness.model.relinearize(harness.reference.propagate_mean(date))
        state = harness.model.composer.compose(harness.model.context, jnp.zeros(6), date)
        assert jnp.array_equal(state.orbit.elements, harness.reference.propagate(date).orbit.elements)

    def test_orbital_correction_is_additive(self):
        builder = _builder([ZonalJ2()])
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        x = jnp.array([5.0, 0.0, 0.0, 0.0, 0.0, 1e-6])
        base = model.composer.compose(model.context, jnp.zeros(6), _EPOCH).orbit.elements
        shifted = model.composer.compose(model.context, x, _EPOCH).orbit.elements
        assert jnp.allclose(shifted - base, x, atol=1e-9)

    def test_propagation_offsets_reach_short_period_terms(self):
        builder = _builder([ZonalJ2()])
        builder.propagation_parameters_drivers.find_by_name(J2_COEFFICIENT).selected = True
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder, [1e-12]))
        x = jnp.zeros(7).at[6].set(1e-5)
        state = model.composer.compose(model.context, x, _EPOCH)
        expected = model.context.nominal_array + model.context.short_period_terms_value({J2_COEFFICIENT: 1e-5})
        assert jnp.allclose(state.orbit.elements, expected, rtol=0.0, atol=1e-6)
        unshifted = model.context.nominal_array[0] + model.context.short_period_terms[0]
        assert abs(float(state.orbit.elements[0] - unshifted)) > 1e-3

    def test_central_attraction_offset_shifts_mu(self):
        builder = _builder()
        builder.propagation_parameters_drivers.find_by_name(CENTRAL_ATTRACTION_COEFFICIENT).selected = True
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder, [1e12]))
        state = model.composer.compose(model.context, jnp.zeros(7).at[6].set(1e6), _EPOCH)
        assert state.orbit.mu == pytest.approx(builder.mu + 1e6, rel=1e-15)

    def test_relinearize_moves_builder(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        date = _EPOCH + 300.0
        nominal = harness.reference.propagate_mean(date)
        harness.model.relinearize(nominal)
        assert harness.builder.initial_orbit_date == date
        assert harness.model.nominal_mean_spacecraft_state is nominal
        assert harness.model.previous_nominal_mean_spacecraft_state.epoch == _EPOCH

    def test_failed_builder_reset_keeps_nominal(self):
        koe = Orbit.from_array(_KOE, OrbitType.KEPLERIAN, PositionAngle.MEAN, _EPOCH)
        orbit = Orbit.from_array(
            koe.to_array(OrbitType.EQUINOCTIAL, PositionAngle.MEAN),
            OrbitType.EQUINOCTIAL, PositionAngle.MEAN, _EPOCH,
        )
        builder = _FrozenBuilder(orbit, [ZonalJ2()], position_scale=_POSITION_SCALE)
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        before = model.nominal_mean_spacecraft_state
        short_period_terms = model.context.short_period_terms
        later = builder.build_propagator().propagate_mean(_EPOCH + 300.0)
        with pytest.raises(RuntimeError, match="frozen"):
            model.relinearize(later)
        assert model.nominal_mean_spacecraft_state is before
        assert model.context.short_period_terms is short_period_terms


# ──────────────────────────────────────────────
# Filter steps
# ──────────────────────────────────────────────


class TestFilterSteps:
    def test_counter_and_date_advance(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        for k in (1, 2):
            date = _EPOCH + 60.0 * k
            harness.step(_pv(date))
            assert harness.model.current_measurement_number == k
            assert harness.model.current_date == date

    def test_out_of_order_measurement(self):
        builder = _builder()
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        points = jnp.zeros((1, 6))
        model.evolve(0.0, points, decorate_unscented(_pv(_EPOCH + 120.0, []), _EPOCH))
        with pytest.raises(ConfigurationError, match="older"):
            model.evolve(120.0, points, decorate_unscented(_pv(_EPOCH + 60.0, []), _EPOCH))

    def test_observed_drivers_get_reference_date(self):
        builder = _builder()
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        station = GroundStation("Station", jnp.zeros(3))
        observed = Range(station, _EPOCH + 60.0, 1e6, 1.0)
        model.evolve(0.0, jnp.zeros((1, 6)), decorate_unscented(observed, _EPOCH))
        assert all(d.reference_date == _EPOCH for d in station.parameters_drivers)

    def test_process_noise_is_additive(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        prior = harness.model.estimate
        harness.step(_pv(_EPOCH + 60.0))
        expected = prior.covariance + harness.model.process_noise_matrix()
        assert jnp.allclose(harness.ukf.predicted.covariance, expected, rtol=1e-8, atol=1e-20)

    def test_accepted_step_updates_model(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        estimate = harness.step(_pv(_EPOCH + 60.0))
        model = harness.model
        assert model.estimate is estimate
        assert model.physical_innovation_covariance_matrix is estimate.innovation_covariance
        assert model.physical_kalman_gain is estimate.kalman_gain
        assert model.physical_estimated_covariance_matrix is estimate.covariance
        assert model.corrected_measurement.status == MeasurementStatus.PROCESSED
        assert model.predicted_spacecraft_states[0].epoch == _EPOCH + 60.0
        assert model.corrected_spacecraft_states[0].epoch == _EPOCH + 60.0
        assert model.previous_nominal_mean_spacecraft_state is model.nominal_mean_spacecraft_state

    def test_consistent_measurement_keeps_correction_small(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        estimate = harness.step(_pv(_EPOCH + 60.0))
        scales = np.array([d.scale for d in harness.builder.orbital_parameters_drivers])
        assert np.all(np.abs(np.asarray(estimate.state)) / scales < 1e-6)

    def test_rejection_leaves_estimate(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        date = _EPOCH + 60.0
        observed = _pv(date)
        observed = PV(date, observed.observed_value.at[0].add(1e5), 10.0, 0.01)
        observed.dynamic_outlier_filter = DynamicOutlierFilter(0, 3.0)
        before = harness.model.estimate
        assert harness.step(observed) is None
        assert harness.model.estimate is before
        assert harness.model.predicted_measurement.status == MeasurementStatus.REJECTED
        assert harness.model.corrected_measurement is None
        assert observed.dynamic_outlier_filter.sigma is None

    def test_dynamic_sigma_seeded_then_reset(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        observed = _pv(_EPOCH + 60.0)
        spy = _RecordingOutlierFilter(0, 100.0)
        observed.dynamic_outlier_filter = spy
        estimate = harness.step(observed)
        assert len(spy.seen) == 1
        assert jnp.allclose(spy.seen[0], jnp.sqrt(jnp.diag(estimate.innovation_covariance)), rtol=1e-12)
        assert spy.sigma is None

    def test_dynamic_sigma_follows_each_innovation(self):
        harness = _Harness(_builder([ZonalJ2()]), _noise(_builder()))
        spy = _RecordingOutlierFilter(0, 100.0)
        estimates = []
        for date in (_EPOCH + 60.0, _EPOCH + 120.0):
            observed = _pv(date)
            observed.dynamic_outlier_filter = spy
            assert spy.sigma is None
            estimates.append(harness.step(observed))
        assert len(spy.seen) == 2
        for seen, estimate in zip(spy.seen, estimates):
            assert jnp.allclose(seen, jnp.sqrt(jnp.diag(estimate.innovation_covariance)), rtol=1e-12)
        assert not jnp.allclose(spy.seen[0], spy.seen[1], rtol=1e-9, atol=0.0)
        assert spy.sigma is None

    def test_no_jacobians(self):
        builder = _builder()
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        assert model.physical_state_transition_matrix is None
        assert model.physical_measurement_jacobian is None


# ──────────────────────────────────────────────
# Driver update
# ──────────────────────────────────────────────


class TestDriverUpdate:
    def test_correction_added_to_drivers(self):
        builder = _builder()
        bias = Bias(["range bias"], [0.0], [1.0], [-1.0], [1.0])
        bias.parameters_drivers[0].selected = True
        model = SemiAnalyticalUnscentedKalmanModel(
            builder, _noise(builder, [1.0]), estimated_measurements_parameters=bias.parameters_drivers
        )
        before = model.physical_estimated_state
        x = jnp.array([3.0, 0.0, 0.0, 0.0, 0.0, 0.0, 5.0])
        model.finalize(_pv(_EPOCH, []), ProcessEstimate(0.0, x, jnp.eye(7)))
        model.finalize_operations_observation_grid()
        after = model.physical_estimated_state
        assert float(after[0]) == pytest.approx(float(before[0]) + 3.0, abs=1e-6)
        assert jnp.array_equal(after[1:6], before[1:6])
        # Clipped by the driver's upper bound
        assert float(after[6]) == 1.0

    def test_estimated_propagator_uses_drivers(self):
        builder = _builder()
        model = SemiAnalyticalUnscentedKalmanModel(builder, _noise(builder))
        builder.orbital_parameters_drivers.find_by_name("a").value += 100.0
        propagator = model.get_estimated_propagator()
        assert float(propagator.propagate_mean(_EPOCH).orbit.elements[0]) == pytest.approx(
            float(_KOE[0]) + 100.0, abs=1e-6
        )
