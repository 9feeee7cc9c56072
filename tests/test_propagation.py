import jax.numpy as jnp
import numpy as np
import pytest

from astroukf.constants import GM_EARTH, J2_EARTH, R_EARTH
from astroukf.epoch import Epoch
from astroukf.errors import ConfigurationError, DimensionMismatchError, InvalidOrbitState
from astroukf.orbit import Orbit, OrbitType, PositionAngle
from astroukf.parameters import ParameterDriver
from astroukf.propagation import (
    CENTRAL_ATTRACTION_COEFFICIENT,
    J2_COEFFICIENT,
    NewtonianAttraction,
    PropagationType,
    SemiAnalyticalForceModel,
    SemiAnalyticalPropagator,
    SemiAnalyticalPropagatorBuilder,
    SpacecraftState,
    ZonalJ2,
    orbital_parameter_scales,
    wrap_element_difference,
)
from astroukf.utils import normalize_angle

_EPOCH = Epoch(2024, 1, 1)
_KOE = jnp.array([R_EARTH + 500e3, 0.001, jnp.deg2rad(51.6), 0.3, 0.5, 0.1])
_SMA_TOL = 1e-4  # metres


def _reference_orbit(orbit_type=OrbitType.EQUINOCTIAL, angle_type=PositionAngle.MEAN):
    koe = Orbit.from_array(_KOE, OrbitType.KEPLERIAN, PositionAngle.MEAN, _EPOCH)
    return Orbit.from_array(koe.to_array(orbit_type, angle_type), orbit_type, angle_type, _EPOCH)


def _propagator(force_models=None, **kwargs):
    models = [NewtonianAttraction(), ZonalJ2()] if force_models is None else force_models
    return SemiAnalyticalPropagator(SpacecraftState(_reference_orbit()), models, **kwargs)


def _assert_same_elements(x, y, sma_tol=_SMA_TOL, tol=1e-10):
    assert float(x[0]) == pytest.approx(float(y[0]), abs=sma_tol)
    assert jnp.allclose(x[1:5], y[1:5], atol=tol)
    assert float(jnp.abs(normalize_angle(x[5] - y[5]))) < tol


# ──────────────────────────────────────────────
# State types
# ──────────────────────────────────────────────


class TestSpacecraftState:
    def test_defaults(self):
        state = SpacecraftState(_reference_orbit())
        assert state.mass == 1000.0
        assert state.attitude is None
        assert dict(state.additional) == {}
        assert state.epoch == _EPOCH

    def test_with_additional_leaves_original(self):
        state = SpacecraftState(_reference_orbit())
        updated = state.with_additional("mass flow", jnp.array([0.1]))
        assert "mass flow" in updated.additional
        assert "mass flow" not in state.additional
        with pytest.raises(TypeError):
            updated.additional["other"] = jnp.zeros(1)

    def test_with_orbit(self):
        state = SpacecraftState(_reference_orbit(), mass=500.0)
        other = state.with_orbit(_reference_orbit(OrbitType.KEPLERIAN))
        assert other.mass == 500.0
        assert other.orbit.orbit_type == OrbitType.KEPLERIAN
        assert state.orbit.orbit_type == OrbitType.EQUINOCTIAL


class TestWrapElementDifference:
    def test_equinoctial_longitude(self):
        delta = jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 2.0 * jnp.pi - 0.1])
        wrapped = wrap_element_difference(delta, OrbitType.EQUINOCTIAL)
        assert float(wrapped[5]) == pytest.approx(-0.1, abs=1e-12)
        assert float(wrapped[0]) == 1.0

    def test_keplerian_angles(self):
        delta = jnp.array([0.0, 0.0, 0.0, 4.0, -4.0, 0.5])
        wrapped = wrap_element_difference(delta, OrbitType.KEPLERIAN)
        assert jnp.all(jnp.abs(wrapped[3:]) <= jnp.pi)

    def test_cartesian_unchanged(self):
        delta = jnp.arange(6.0) * 10.0
        assert jnp.array_equal(wrap_element_difference(delta, OrbitType.CARTESIAN), delta)


# ──────────────────────────────────────────────
# Force models
# ──────────────────────────────────────────────


class TestForceModels:
    def test_newtonian_rates(self):
        rates = NewtonianAttraction().mean_element_rates(_KOE, GM_EARTH)
        n = float(jnp.sqrt(GM_EARTH / _KOE[0] ** 3))
        assert jnp.array_equal(rates[:5], jnp.zeros(5))
        assert float(rates[5]) == pytest.approx(n, rel=1e-14)

    def test_newtonian_driver(self):
        model = NewtonianAttraction(4.0e14)
        (driver,) = model.parameters_drivers
        assert driver.name == CENTRAL_ATTRACTION_COEFFICIENT
        driver.value = 4.1e14
        assert model.mu == 4.1e14

    def test_newtonian_has_no_short_period_terms(self):
        assert jnp.array_equal(NewtonianAttraction().short_period_contribution(_KOE), jnp.zeros(6))

    def test_j2_snapshot_follows_updates_only(self):
        model = ZonalJ2()
        (driver,) = model.parameters_drivers
        assert driver.name == J2_COEFFICIENT
        before = model.short_period_contribution(_KOE)
        driver.value = 2.0 * J2_EARTH
        assert jnp.array_equal(model.short_period_contribution(_KOE), before)
        model.update_short_period_terms(None)
        assert model.j2_snapshot == 2.0 * J2_EARTH
        assert not jnp.array_equal(model.short_period_contribution(_KOE), before)

    def test_j2_offset_matches_driver_change(self):
        shifted = ZonalJ2(J2_EARTH + 1e-6)
        model = ZonalJ2()
        with_offset = model.short_period_contribution(_KOE, {J2_COEFFICIENT: 1e-6})
        assert jnp.allclose(with_offset, shifted.short_period_contribution(_KOE), atol=1e-12)

    def test_j2_short_period_angles_wrapped(self):
        delta = ZonalJ2().short_period_contribution(_KOE)
        assert jnp.all(jnp.abs(delta[3:]) <= jnp.pi)


# ──────────────────────────────────────────────
# Propagator
# ──────────────────────────────────────────────


class TestSemiAnalyticalPropagator:
    def test_propagate_mean_at_initial_date(self):
        propagator = _propagator()
        state = propagator.propagate_mean(_EPOCH)
        assert state.orbit.orbit_type == OrbitType.EQUINOCTIAL
        _assert_same_elements(state.orbit.elements, _reference_orbit().elements)

    def test_keplerian_mean_motion(self):
        propagator = _propagator([NewtonianAttraction()], orbit_type=OrbitType.KEPLERIAN)
        dt = 600.0
        state = propagator.propagate_mean(_EPOCH + dt)
        n = float(jnp.sqrt(GM_EARTH / _KOE[0] ** 3))
        assert float(normalize_angle(state.orbit.elements[5] - _KOE[5] - n * dt)) == pytest.approx(0.0, abs=1e-10)
        assert jnp.allclose(state.orbit.elements[:5], _KOE[:5], atol=1e-12)

    def test_newtonian_only_has_no_short_period_terms(self):
        propagator = _propagator([NewtonianAttraction()])
        date = _EPOCH + 1234.0
        mean = propagator.propagate_mean(date)
        assert jnp.array_equal(propagator.short_period_terms_value(mean), jnp.zeros(6))
        assert jnp.array_equal(propagator.propagate(date).orbit.elements, mean.orbit.elements)

    def test_j2_regresses_node(self):
        propagator = _propagator(orbit_type=OrbitType.KEPLERIAN)
        day = propagator.propagate_mean(_EPOCH + 86400.0)
        drift = float(normalize_angle(day.orbit.elements[3] - _KOE[3]))
        # About -5 degrees per day at 500 km and 51.6 degrees
        assert -0.1 < drift < -0.05

    def test_osculating_differs_from_mean(self):
        propagator = _propagator()
        date = _EPOCH + 300.0
        mean = propagator.propagate_mean(date)
        osculating = propagator.propagate(date)
        assert osculating.epoch == date
        assert float(jnp.abs(osculating.orbit.elements[0] - mean.orbit.elements[0])) > 100.0

    def test_short_period_offsets(self):
        propagator = _propagator()
        mean = propagator.propagate_mean(_EPOCH + 300.0)
        nominal = propagator.short_period_terms_value(mean)
        shifted = propagator.short_period_terms_value(mean, {J2_COEFFICIENT: 1e-6})
        assert jnp.all(jnp.isfinite(shifted))
        assert not jnp.allclose(nominal, shifted)

    def test_compute_mean_state_inverts_short_period_terms(self):
        propagator = _propagator()
        date = _EPOCH + 900.0
        recovered = propagator.compute_mean_state(propagator.propagate(date))
        _assert_same_elements(recovered.orbit.elements, propagator.propagate_mean(date).orbit.elements)
        assert recovered.epoch == date

    def test_osculating_initial_state(self):
        osculating = _propagator().propagate(_EPOCH)
        propagator = SemiAnalyticalPropagator(
            osculating, [NewtonianAttraction(), ZonalJ2()],
            initial_state_type=PropagationType.OSCULATING,
        )
        assert propagator.initial_is_osculating
        _assert_same_elements(propagator.propagate(_EPOCH).orbit.elements, osculating.orbit.elements)

    def test_reset_orbit(self):
        propagator = _propagator()
        later = Epoch(2024, 1, 2)
        orbit = Orbit.from_array(
            _reference_orbit().elements, OrbitType.EQUINOCTIAL, PositionAngle.MEAN, later
        )
        propagator.reset_orbit(orbit)
        _assert_same_elements(propagator.propagate_mean(later).orbit.elements, orbit.elements)

    def test_unconverged_mean_state_logs_warning(self, caplog):
        propagator = _propagator(mean_max_iterations=1)
        with caplog.at_level("WARNING", logger="astroukf.propagation.semianalytical"):
            propagator.compute_mean_state(propagator.propagate(_EPOCH + 60.0))
        assert "did not converge" in caplog.text

    def test_output_angle_type(self):
        propagator = _propagator(angle_type=PositionAngle.TRUE)
        state = propagator.propagate(_EPOCH + 60.0)
        assert state.orbit.angle_type == PositionAngle.TRUE


# ──────────────────────────────────────────────
# Builder
# ──────────────────────────────────────────────


class _DuplicateCentralAttraction(SemiAnalyticalForceModel):
    def __init__(self):
        self._driver = ParameterDriver(CENTRAL_ATTRACTION_COEFFICIENT, GM_EARTH, 1.0)

    @property
    def parameters_drivers(self):
        return [self._driver]

    def mean_element_rates(self, koe, mu):
        return jnp.zeros(6)


class TestOrbitalParameterScales:
    def test_positive_and_finite(self):
        scales = orbital_parameter_scales(_reference_orbit(), 10.0, OrbitType.EQUINOCTIAL, PositionAngle.MEAN)
        assert scales.shape == (6,)
        assert np.all(np.isfinite(scales)) and np.all(scales > 0.0)

    def test_linear_in_position_scale(self):
        one = orbital_parameter_scales(_reference_orbit(), 1.0, OrbitType.KEPLERIAN, PositionAngle.MEAN)
        ten = orbital_parameter_scales(_reference_orbit(), 10.0, OrbitType.KEPLERIAN, PositionAngle.MEAN)
        assert np.allclose(ten, 10.0 * one, rtol=1e-12)

    def test_cartesian_position_scale(self):
        scales = orbital_parameter_scales(_reference_orbit(), 2.0, OrbitType.CARTESIAN, PositionAngle.MEAN)
        assert np.allclose(scales[:3], 2.0, rtol=1e-12)


class TestSemiAnalyticalPropagatorBuilder:
    def test_orbital_drivers(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit(), [ZonalJ2()], position_scale=10.0)
        drivers = builder.orbital_parameters_drivers
        assert drivers.names == ["a", "ex", "ey", "hx", "hy", "λM"]
        assert all(d.selected for d in drivers)
        assert np.allclose([d.value for d in drivers], np.asarray(_reference_orbit().elements))

    def test_propagation_drivers_not_selected_by_default(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit(), [ZonalJ2()])
        drivers = builder.propagation_parameters_drivers
        assert drivers.names == [CENTRAL_ATTRACTION_COEFFICIENT, J2_COEFFICIENT]
        assert drivers.nb_params == 0

    def test_mu_follows_driver(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit())
        builder.propagation_parameters_drivers.find_by_name(CENTRAL_ATTRACTION_COEFFICIENT).value = 3.9e14
        assert builder.mu == 3.9e14
        assert builder.build_propagator().mu == 3.9e14

    def test_build_propagator_from_reference(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit(), [ZonalJ2()])
        propagator = builder.build_propagator()
        _assert_same_elements(propagator.propagate_mean(_EPOCH).orbit.elements, _reference_orbit().elements)

    def test_build_with_normalized_parameters(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit(), position_scale=10.0)
        sma_scale = builder.orbital_parameters_drivers.find_by_name("a").scale
        builder.build_propagator(np.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0]))
        a = builder.orbital_parameters_drivers.find_by_name("a").value
        assert a == pytest.approx(float(_KOE[0]) + sma_scale, abs=1e-6)

    def test_wrong_normalized_length(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit())
        with pytest.raises(DimensionMismatchError):
            builder.build_propagator(np.zeros(5))

    def test_invalid_orbital_drivers(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit())
        builder.orbital_parameters_drivers.find_by_name("ex").value = 2.0
        with pytest.raises(InvalidOrbitState):
            builder.build_propagator()

    def test_shared_force_model_drivers(self):
        j2 = ZonalJ2()
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit(), [j2])
        builder.propagation_parameters_drivers.find_by_name(J2_COEFFICIENT).value = 1.1e-3
        assert j2.parameters_drivers[0].value == 1.1e-3

    def test_second_central_attraction_rejected(self):
        with pytest.raises(ConfigurationError, match="central attraction"):
            SemiAnalyticalPropagatorBuilder(_reference_orbit(), [_DuplicateCentralAttraction()])

    @pytest.mark.parametrize("scale", [0.0, -1.0, float("nan")])
    def test_invalid_position_scale(self, scale):
        with pytest.raises(ConfigurationError, match="position scale"):
            SemiAnalyticalPropagatorBuilder(_reference_orbit(), position_scale=scale)

    def test_missing_frame(self):
        orbit = _reference_orbit()._replace(frame=None)
        with pytest.raises(ConfigurationError, match="frame"):
            SemiAnalyticalPropagatorBuilder(orbit)

    def test_reset_orbit(self):
        builder = SemiAnalyticalPropagatorBuilder(_reference_orbit(), [ZonalJ2()])
        later = builder.build_propagator().propagate_mean(_EPOCH + 600.0).orbit
        builder.reset_orbit(later)
        assert builder.initial_orbit_date == later.epoch
        for driver, value in zip(builder.orbital_parameters_drivers, np.asarray(later.elements)):
            assert driver.value == driver.reference_value == pytest.approx(float(value), rel=1e-15)
