"""Estimated parameters and their column bookkeeping.

- :class:`ParameterDriver`: a named, scaled, bounded physical scalar.
- :class:`DelegatingDriver`: one estimated column written back to one or
  more physical drivers.
- :class:`ParameterDriversList`: insertion-ordered columns with name
  lookup and lexicographic sorting.
- :func:`parameter_value`: value of a driver shifted by a per-evaluation
  offset, used when sigma points perturb parameters without mutating
  the drivers.
"""

from collections.abc import Mapping

from astroukf.parameters._driver import ParameterDriver
from astroukf.parameters._drivers_list import DelegatingDriver, ParameterDriversList


def parameter_value(driver, offsets: Mapping | None = None):
    """Physical value of ``driver`` plus its offset in ``offsets``, if any.

    Args:
        driver: A :class:`ParameterDriver` or :class:`DelegatingDriver`.
        offsets: Mapping from parameter name to additive offset.

    Returns:
        ``driver.value`` when no offset applies, otherwise
        ``driver.value + offsets[driver.name]`` (possibly a JAX scalar).
    """
    if offsets and driver.name in offsets:
        return driver.value + offsets[driver.name]
    return driver.value


__all__ = [
    "DelegatingDriver",
    "ParameterDriver",
    "ParameterDriversList",
    "parameter_value",
]
