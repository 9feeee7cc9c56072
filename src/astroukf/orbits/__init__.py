"""Orbital mechanics helpers.

Provides the Keplerian period and mean motion, anomaly and equinoctial
longitude conversions, and the Brouwer-Lyddane first-order J2 mapping
between mean and osculating Keplerian elements together with the secular
J2 mean element rates.
"""

from astroukf.orbits.keplerian import (
    anomaly_eccentric_to_mean,
    anomaly_eccentric_to_true,
    anomaly_mean_to_eccentric,
    anomaly_mean_to_true,
    anomaly_true_to_eccentric,
    anomaly_true_to_mean,
    longitude_eccentric_to_mean,
    longitude_eccentric_to_true,
    longitude_mean_to_eccentric,
    longitude_mean_to_true,
    longitude_true_to_eccentric,
    longitude_true_to_mean,
    mean_motion,
    orbital_period,
)
from astroukf.orbits.mean_elements import (
    mean_element_rates_j2,
    state_koe_mean_to_osc,
    state_koe_osc_to_mean,
)

__all__ = [
    "anomaly_eccentric_to_mean",
    "anomaly_eccentric_to_true",
    "anomaly_mean_to_eccentric",
    "anomaly_mean_to_true",
    "anomaly_true_to_eccentric",
    "anomaly_true_to_mean",
    "longitude_eccentric_to_mean",
    "longitude_eccentric_to_true",
    "longitude_mean_to_eccentric",
    "longitude_mean_to_true",
    "longitude_true_to_eccentric",
    "longitude_true_to_mean",
    "mean_element_rates_j2",
    "mean_motion",
    "orbital_period",
    "state_koe_mean_to_osc",
    "state_koe_osc_to_mean",
]
