import jax.numpy as jnp
import numpy as np
import pytest

from astroukf.constants import R_EARTH
from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, EstimationStepError
from astroukf.estimation import (
    ConstantProcessNoise,
    KalmanEstimatorConfig,
    SemiAnalyticalUnscentedKalmanEstimator,
    UKFConfig,
)
from astroukf.measurements import (
    PV,
    AngularAzEl,
    DynamicOutlierFilter,
    GroundStation,
    MeasurementStatus,
    Position,
    Range,
)
from astroukf.orbit import Orbit, OrbitType, PositionAngle
from astroukf.propagation import SemiAnalyticalPropagatorBuilder, ZonalJ2

_EPOCH = Epoch(2024, 1, 1)
_KOE = jnp.array([R_EARTH + 500e3, 0.001, jnp.deg2rad(51.6), 0.3, 0.5, 0.1])
_STATION = GroundStation("Station", jnp.array([0.2, 0.9, 100.0]))


def _builder():
    koe = Orbit.from_array(_KOE, OrbitType.KEPLERIAN, PositionAngle.MEAN, _EPOCH)
    orbit = Orbit.from_array(
        koe.to_array(OrbitType.EQUINOCTIAL, PositionAngle.MEAN),
        OrbitType.EQUINOCTIAL, PositionAngle.MEAN, _EPOCH,
    )
    return SemiAnalyticalPropagatorBuilder(orbit, [ZonalJ2()], position_scale=10.0)


def _noise(builder):
    scales = np.array([d.scale for d in builder.orbital_parameters_drivers])
    variances = jnp.asarray(scales ** 2)
    return ConstantProcessNoise(jnp.diag(variances), jnp.zeros((6, 6)))


def _truth(date):
    return _builder().build_propagator().propagate(date)


def _pv(date):
    return PV(date, _truth(date).orbit.cartesian(), 10.0, 0.01)


def _station_measurements(date):
    """Exact range and angles to the truth state, seen from the station."""
    state = _truth(date)
    range_value = Range(_STATION, date, 0.0, 1.0).estimate(0, 0, (state,)).estimated_value
    angles = AngularAzEl(_STATION, date, jnp.zeros(2), jnp.ones(2)).estimate(0, 0, (state,)).estimated_value
    return [
        Range(_STATION, date, float(jnp.squeeze(range_value)), 1.0),
        AngularAzEl(_STATION, date, angles, jnp.array([1e-6, 1e-6])),
    ]


class _RecordingObserver:
    def __init__(self):
        self.calls = []

    def evaluation_performed(self, model):
        self.calls.append((
            model.current_measurement_number,
            model.current_date,
            model.predicted_measurement.status,
        ))


class _FailingPosition(Position):
    def _theoretical_evaluation(self, iteration, count, states, parameter_offsets):
        raise RuntimeError("evaluation failed")


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────


class TestKalmanEstimatorConfig:
    def test_defaults(self):
        config = KalmanEstimatorConfig()
        assert config.ukf == UKFConfig()
        assert config.reference_date is None

    @pytest.mark.parametrize("alpha", [0.0, -1.0])
    def test_alpha_must_be_positive(self, alpha):
        with pytest.raises(ConfigurationError, match="alpha"):
            KalmanEstimatorConfig(UKFConfig(alpha=alpha))

    def test_beta_must_be_non_negative(self):
        with pytest.raises(ConfigurationError, match="beta"):
            KalmanEstimatorConfig(UKFConfig(beta=-0.5))

    def test_zero_beta_accepted(self):
        assert KalmanEstimatorConfig(UKFConfig(beta=0.0)).ukf.beta == 0.0


# ──────────────────────────────────────────────
# Estimator
# ──────────────────────────────────────────────


class TestEstimatorSetup:
    def test_components(self):
        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        assert estimator.model.nb_columns == 6
        assert estimator.filter.corrected is estimator.model.estimate
        assert estimator.reference_propagator.initial_state.epoch == _EPOCH
        assert estimator.observer is None

    def test_empty_batch(self):
        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        with pytest.raises(ConfigurationError, match="no measurements"):
            estimator.process_measurements([])


class TestProcessMeasurements:
    def test_measurements_processed_in_date_order(self):
        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        observer = _RecordingObserver()
        estimator.observer = observer
        dates = [_EPOCH + 120.0, _EPOCH + 60.0]
        estimator.process_measurements([_pv(date) for date in dates])
        assert [call[0] for call in observer.calls] == [1, 2]
        assert [call[1] for call in observer.calls] == [_EPOCH + 60.0, _EPOCH + 120.0]

    def test_observer_sees_rejected_measurements(self):
        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        observer = _RecordingObserver()
        estimator.observer = observer

        good = _pv(_EPOCH + 60.0)
        outlier = _pv(_EPOCH + 120.0)
        outlier = PV(outlier.date, outlier.observed_value.at[1].add(1e5), 10.0, 0.01)
        outlier.dynamic_outlier_filter = DynamicOutlierFilter(0, 3.0)

        estimator.process_measurements([good, outlier])
        assert [call[2] for call in observer.calls] == [MeasurementStatus.PROCESSED, MeasurementStatus.REJECTED]

    def test_reference_date_sets_time_axis(self):
        builder = _builder()
        config = KalmanEstimatorConfig(reference_date=_EPOCH - 60.0)
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder), config)
        estimator.process_measurements([_pv(_EPOCH + 60.0)])
        assert estimator.model.estimate.time == pytest.approx(120.0)

    def test_failure_is_wrapped(self):
        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        failing = _FailingPosition(_EPOCH + 120.0, jnp.zeros(3), 1.0)
        with pytest.raises(EstimationStepError) as excinfo:
            estimator.process_measurements([failing, _pv(_EPOCH + 60.0)])
        assert excinfo.value.index == 1
        assert excinfo.value.date == _EPOCH + 120.0
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert "evaluation failed" in str(excinfo.value)

    def test_returns_propagator_at_last_date(self):
        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        propagator = estimator.process_measurements([_pv(_EPOCH + 60.0), _pv(_EPOCH + 180.0)])
        assert propagator.initial_state.epoch == _EPOCH + 180.0
        assert builder.initial_orbit_date == _EPOCH + 180.0


@pytest.mark.slow
class TestEndToEnd:
    def test_consistent_tracking_keeps_reference_orbit(self):
        dates = [_EPOCH + 60.0 * k for k in range(1, 11)]
        measurements = [m for date in dates for m in _station_measurements(date)]

        builder = _builder()
        estimator = SemiAnalyticalUnscentedKalmanEstimator(builder, _noise(builder))
        observer = _RecordingObserver()
        estimator.observer = observer
        scales = np.array([d.scale for d in builder.orbital_parameters_drivers])

        propagator = estimator.process_measurements(measurements)

        assert len(observer.calls) == len(measurements)
        assert all(call[2] == MeasurementStatus.PROCESSED for call in observer.calls)
        correction = np.asarray(estimator.model.estimate.state)
        assert np.all(np.abs(correction) / scales < 1e-6)

        expected = _truth(dates[-1]).orbit.cartesian()
        estimated = propagator.propagate(dates[-1]).orbit.cartesian()
        assert jnp.allclose(estimated[:3], expected[:3], atol=1e-3)
