# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "astroukf"]
#
# [tool.uv.sources]
# astroukf = { path = ".." }
# ///
"""Estimate a LEO orbit from simulated ground-station tracking.

Simulates range and azimuth/elevation measurements of a satellite from a
single ground station using a J2 semi-analytical propagator, perturbs the
initial orbit, and recovers it with the semi-analytical unscented Kalman
filter.

Requires astroukf to be installed (``uv pip install -e .`` from the repo root).

Usage:
    uv run examples/orbit_determination.py [OPTIONS]

Examples:
    # Quick run: 20 passes of measurements, one minute apart
    uv run examples/orbit_determination.py --count 20 --timestep 60

    # Estimate J2 along with the orbit, with noisy measurements
    uv run examples/orbit_determination.py --estimate-j2 --noise
"""

import logging
import time
from typing import Annotated

import jax
import jax.numpy as jnp
import numpy as np
import typer

from astroukf import set_dtype
from astroukf.constants import R_EARTH
from astroukf.epoch import Epoch
from astroukf.estimation import (
    ConstantProcessNoise,
    KalmanEstimatorConfig,
    SemiAnalyticalUnscentedKalmanEstimator,
    UKFConfig,
)
from astroukf.measurements import AngularAzEl, DynamicOutlierFilter, GroundStation, Range
from astroukf.orbit import Orbit, OrbitType, PositionAngle
from astroukf.propagation import J2_COEFFICIENT, SemiAnalyticalPropagatorBuilder, ZonalJ2

set_dtype(jnp.float64)  # Must be before any JIT compilation

_EPOCH = Epoch(2024, 3, 20, 12, 0, 0.0)
_STATION = GroundStation("Svalbard", jnp.deg2rad(jnp.array([15.4, 78.2, 0.0])).at[2].set(450.0))
_RANGE_SIGMA = 5.0
_ANGLE_SIGMA = 1e-4


def _builder(koe: jax.Array, j2: float) -> SemiAnalyticalPropagatorBuilder:
    orbit = Orbit.from_array(koe, OrbitType.KEPLERIAN, PositionAngle.MEAN, _EPOCH)
    orbit = Orbit.from_array(
        orbit.to_array(OrbitType.EQUINOCTIAL, PositionAngle.MEAN),
        OrbitType.EQUINOCTIAL,
        PositionAngle.MEAN,
        _EPOCH,
    )
    return SemiAnalyticalPropagatorBuilder(orbit, [ZonalJ2(j2)], position_scale=10.0)


class _Progress:
    """Prints the filter state after every measurement."""

    def __init__(self, total: int) -> None:
        self.total = total

    def evaluation_performed(self, model) -> None:
        measurement = model.predicted_measurement
        print(
            f"\r  Measurement {model.current_measurement_number}/{self.total} "
            f"({measurement.status.value})",
            end="",
            flush=True,
        )


def main(
    count: Annotated[int, typer.Option(help="Number of measurement epochs")] = 30,
    timestep: Annotated[float, typer.Option(help="Time between epochs in seconds")] = 60.0,
    offset: Annotated[float, typer.Option(help="Initial semi-major axis error in metres")] = 50.0,
    estimate_j2: Annotated[bool, typer.Option(help="Estimate the J2 coefficient")] = False,
    noise: Annotated[bool, typer.Option(help="Add Gaussian noise to the measurements")] = False,
    seed: Annotated[int, typer.Option(help="Random seed of the measurement noise")] = 42,
    verbose: Annotated[bool, typer.Option(help="Log filter steps")] = False,
) -> None:
    """Run a simulated orbit determination."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    koe_truth = jnp.array([R_EARTH + 600e3, 0.002, jnp.deg2rad(97.8), 0.4, 1.1, 0.0])

    # ── Stage 1: Simulate measurements ──────────────────────────────────
    print("── Stage 1: Simulating measurements ──")
    t0 = time.perf_counter()
    truth = _builder(koe_truth, 1.0826e-3).build_propagator()
    rng = np.random.default_rng(seed)
    measurements = []
    for k in range(1, count + 1):
        date = _EPOCH + k * timestep
        state = truth.propagate(date)
        rho = Range(_STATION, date, 0.0, _RANGE_SIGMA).estimate(0, 0, (state,)).estimated_value
        angles = AngularAzEl(_STATION, date, jnp.zeros(2), jnp.ones(2)).estimate(0, 0, (state,)).estimated_value
        if noise:
            rho = rho + rng.normal(0.0, _RANGE_SIGMA)
            angles = angles + rng.normal(0.0, _ANGLE_SIGMA, size=2)
        measurements.append(Range(_STATION, date, float(jnp.squeeze(rho)), _RANGE_SIGMA))
        azel = AngularAzEl(_STATION, date, angles, jnp.full(2, _ANGLE_SIGMA))
        azel.dynamic_outlier_filter = DynamicOutlierFilter(5, 5.0)
        measurements.append(azel)
    print(f"  Simulated {len(measurements)} measurements in {time.perf_counter() - t0:.1f}s")

    # ── Stage 2: Configure the filter ───────────────────────────────────
    print("\n── Stage 2: Configuring the filter ──")
    builder = _builder(koe_truth.at[0].add(offset), 1.0e-3 if estimate_j2 else 1.0826e-3)
    scales = [driver.scale for driver in builder.orbital_parameters_drivers]
    variances = [(100.0 * s) ** 2 for s in scales]
    if estimate_j2:
        builder.propagation_parameters_drivers.find_by_name(J2_COEFFICIENT).selected = True
        variances.append(1e-8)
    initial = jnp.diag(jnp.array(variances))
    estimator = SemiAnalyticalUnscentedKalmanEstimator(
        builder,
        ConstantProcessNoise(initial, 1e-8 * initial),
        KalmanEstimatorConfig(UKFConfig(alpha=0.5, beta=2.0, kappa=0.0)),
    )
    estimator.observer = _Progress(len(measurements))
    print(f"  Filter columns: {estimator.model.nb_columns}")

    # ── Stage 3: Estimate ────────────────────────────────────────────────
    print("\n── Stage 3: Processing measurements ──")
    t0 = time.perf_counter()
    propagator = estimator.process_measurements(measurements)
    print()
    print(f"  Processed in {time.perf_counter() - t0:.1f}s")

    # ── Stage 4: Compare with the truth ──────────────────────────────────
    print("\n── Stage 4: Results ──")
    last = measurements[-1].date
    error = propagator.propagate(last).orbit.position - truth.propagate(last).orbit.position
    print(f"  Position error at {last}: {float(jnp.linalg.norm(error)):.3f} m")
    if estimate_j2:
        j2 = builder.propagation_parameters_drivers.find_by_name(J2_COEFFICIENT).value
        print(f"  Estimated J2: {j2:.6e}")

    print("\nDone.")


if __name__ == "__main__":
    typer.run(main)
