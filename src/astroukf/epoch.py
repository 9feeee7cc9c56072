"""The epoch module provides the ``Epoch`` class for representing instants in time.

The Epoch class uses an internal representation of integer Julian Day number,
seconds within the day, and a Kahan summation compensator for maintaining
precision during arithmetic operations.

The Kahan compensator tracks floating-point rounding errors that accumulate
during repeated additions (e.g. stepping a filter through a long tracking
pass), preventing error growth from O(N) to O(1) machine epsilon.

Seconds are stored in the module-wide float dtype (see
:func:`astroukf.config.get_dtype`), so the default float64 configuration
resolves time to well below a microsecond.  Epochs are host-side objects:
they key measurements, drive sorting and feed ``float`` time offsets into
the JAX numerics, and are not meant to be traced.
"""

from __future__ import annotations

import math
import re

import jax
import jax.numpy as jnp

from .config import get_dtype, get_epoch_eq_tolerance
from .constants import JD_MJD_OFFSET, SECONDS_PER_DAY
from .time import caldate_to_jd, jd_to_caldate

# J2000.0 epoch Julian Date
_JD_J2000 = 2451545

# Valid ISO 8601 epoch string patterns
_EPOCH_PATTERNS = [
    # YYYY-MM-DD
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})$'),
    # YYYY-MM-DDTHH:MM:SSZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})Z$'),
    # YYYY-MM-DDTHH:MM:SS.fffZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d+)Z$'),
]


class Epoch:
    """Represents a single instant in time with high-precision arithmetic.

    The internal representation uses three private components:
        ``_jd`` (jnp.int32), ``_seconds`` and ``_kahan_c`` (both in the
        configured float dtype).

    Subtracting two epochs returns the elapsed time in seconds; adding or
    subtracting a number of seconds returns a new epoch.  Comparison
    operators return plain Python booleans so epochs can be sorted and
    used as dictionary keys.

    Constructors:
        Epoch(2018, 1, 1)
        Epoch(2018, 1, 1, 12, 0, 0.0)
        Epoch("2018-01-01T12:00:00Z")
        Epoch(other_epoch)
    """

    __slots__ = ('_jd', '_seconds', '_kahan_c')

    def __init__(self, *args: int | float | str | Epoch) -> None:
        """Initialize Epoch. Supports multiple constructor forms.

        Args:
            *args: Either (year, month, day[, hour, minute, second]),
                a string in ISO 8601 format, or another Epoch instance.
        """
        dtype = get_dtype()
        self._jd = jnp.int32(0)
        self._seconds = dtype(0.0)
        self._kahan_c = dtype(0.0)

        if len(args) == 1:
            if isinstance(args[0], str):
                self._init_string(args[0])
            elif isinstance(args[0], Epoch):
                self._init_epoch(args[0])
            else:
                raise ValueError(f"Cannot construct Epoch from {type(args[0])}")
        elif 3 <= len(args) <= 6:
            self._init_date(*args)
        else:
            raise ValueError(
                "Epoch requires date components (3-6 args), a string, or an Epoch"
            )

    @classmethod
    def _from_internal(cls, jd, seconds, kahan_c):
        """Create an Epoch from already-normalized internal components."""
        obj = object.__new__(cls)
        obj._jd = jd
        obj._seconds = seconds
        obj._kahan_c = kahan_c
        return obj

    def _init_date(self, year, month, day, hour=0, minute=0, second=0.0):
        """Initialize from calendar date components.

        Args:
            year (int): Year.
            month (int): Month.
            day (int): Day.
            hour (int): Hour. Default: 0
            minute (int): Minute. Default: 0
            second (float): Second, may include fractional part. Default: 0.0
        """
        dtype = get_dtype()
        jd_full = float(caldate_to_jd(year, month, day))

        jd_int = int(math.floor(jd_full))
        frac_day = jd_full - jd_int

        seconds = (frac_day * SECONDS_PER_DAY
                   + hour * 3600.0 + minute * 60.0 + second)

        self._jd = jnp.int32(jd_int)
        self._seconds = dtype(seconds)
        self._kahan_c = dtype(0.0)

        self._normalize()

    def _init_string(self, string):
        """Initialize from an ISO 8601 string.

        Supported formats:
            - ``YYYY-MM-DD``
            - ``YYYY-MM-DDTHH:MM:SSZ``
            - ``YYYY-MM-DDTHH:MM:SS.fffZ``

        Args:
            string (str): ISO 8601 date/time string.
        """
        for pattern in _EPOCH_PATTERNS:
            m = pattern.match(string)
            if m:
                groups = m.groups()
                year = int(groups[0])
                month = int(groups[1])
                day = int(groups[2])

                hour = 0
                minute = 0
                second = 0.0

                if len(groups) >= 6:
                    hour = int(groups[3])
                    minute = int(groups[4])
                    second = float(groups[5])

                if len(groups) == 7:
                    second += float(f"0.{groups[6]}")

                self._init_date(year, month, day, hour, minute, second)
                return

        raise ValueError(
            f'Invalid Epoch string: "{string}" is not ISO 8601 compliant'
        )

    def _init_epoch(self, other):
        self._jd = other._jd
        self._seconds = other._seconds
        self._kahan_c = other._kahan_c

    def _normalize(self):
        """Normalize seconds to [0, 86400) by adjusting the Julian day number."""
        dtype = get_dtype()
        day_offset = jnp.int32(jnp.floor(self._seconds / SECONDS_PER_DAY))
        self._seconds = self._seconds - dtype(day_offset) * dtype(SECONDS_PER_DAY)
        self._jd = self._jd + day_offset

    def _compensated_seconds(self):
        return self._seconds - self._kahan_c

    # Arithmetic operators

    def __add__(self, delta: float) -> Epoch:
        """Return a new Epoch advanced by ``delta`` seconds.

        Uses Kahan compensated summation so that many small steps do not
        accumulate rounding error.

        Args:
            delta (float): Seconds to add.

        Returns:
            Epoch: New Epoch with delta seconds added.
        """
        dtype = get_dtype()
        delta = dtype(delta)
        y = delta - self._kahan_c
        t = self._seconds + y
        new_kahan_c = (t - self._seconds) - y
        new_seconds = t

        day_offset = jnp.int32(jnp.floor(new_seconds / SECONDS_PER_DAY))
        new_seconds = new_seconds - dtype(day_offset) * dtype(SECONDS_PER_DAY)
        new_jd = self._jd + day_offset

        return Epoch._from_internal(new_jd, new_seconds, new_kahan_c)

    def __sub__(self, other: Epoch | float) -> Epoch | jax.Array:
        """Subtract seconds or compute difference between Epochs.

        Args:
            other: If Epoch, returns the time difference in seconds.
                If numeric, returns a new Epoch with seconds subtracted.

        Returns:
            jax.Array or Epoch: Time difference in seconds, or new Epoch.
        """
        if isinstance(other, Epoch):
            return ((self._jd - other._jd) * SECONDS_PER_DAY
                    + (self._compensated_seconds()
                       - other._compensated_seconds()))
        return self.__add__(-get_dtype()(other))

    # Comparison operators

    def __eq__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return bool(jnp.abs(self - other) < get_epoch_eq_tolerance())

    def __ne__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return not self.__eq__(other)

    def __lt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return bool(self - other < 0.0) and not self.__eq__(other)

    def __le__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self.__lt__(other) or self.__eq__(other)

    def __gt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return bool(self - other > 0.0) and not self.__eq__(other)

    def __ge__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self.__gt__(other) or self.__eq__(other)

    # Time properties

    def caldate(self) -> tuple[int, int, int, int, int, float]:
        """Return the calendar date components.

        Returns:
            tuple: (year, month, day, hour, minute, second) where second
                includes fractional part.
        """
        comp_seconds = float(self._compensated_seconds())
        jd_full = int(self._jd) + comp_seconds / SECONDS_PER_DAY

        year, month, day, _, _, _ = jd_to_caldate(jd_full)

        # JD day starts at noon, so shift by 43200s to get civil time of day.
        civil_time = (comp_seconds + 43200.0) % SECONDS_PER_DAY

        hour = int(civil_time // 3600)
        civil_time -= hour * 3600
        minute = int(civil_time // 60)
        second = civil_time - minute * 60

        return int(year), int(month), int(day), hour, minute, second

    def jd(self) -> jax.Array:
        """Return the Julian Date as a single float.

        Returns:
            Julian Date in the configured dtype.
        """
        dtype = get_dtype()
        return dtype(self._jd) + self._compensated_seconds() / dtype(SECONDS_PER_DAY)

    def mjd(self) -> jax.Array:
        """Return the Modified Julian Date as a single float."""
        return self.jd() - get_dtype()(JD_MJD_OFFSET)

    # Sidereal time

    def gmst(self, use_degrees: bool = False) -> jax.Array:
        """Compute Greenwich Mean Sidereal Time using the IAU 1982 model.

        Uses the Vallado GMST82 polynomial approximation and assumes UTC
        approximates UT1, which introduces at most ~1 second of error.

        Args:
            use_degrees (bool): If True, return in degrees. Default: False
                (radians).

        Returns:
            Greenwich Mean Sidereal Time. Units: rad (or deg if
                use_degrees=True)

        References:

            1. D. Vallado, *Fundamentals of Astrodynamics and Applications
               (4th Ed.)*, 2010.
        """
        dtype = get_dtype()
        days_from_j2000 = dtype(self._jd - jnp.int32(_JD_J2000))
        frac_day = self._compensated_seconds() / dtype(SECONDS_PER_DAY)
        t_ut1 = (days_from_j2000 + frac_day) / dtype(36525.0)

        gmst_sec = (dtype(67310.54841)
                    + dtype(876600.0 * 3600.0 + 8640184.812866) * t_ut1
                    + dtype(0.093104) * t_ut1 * t_ut1
                    - dtype(6.2e-6) * t_ut1 * t_ut1 * t_ut1)

        # 1 second of time = 1/240 degree
        two_pi = dtype(2.0) * jnp.pi
        gmst_rad = (gmst_sec / dtype(240.0) * jnp.pi / dtype(180.0)) % two_pi
        gmst_rad = jnp.where(gmst_rad < 0, gmst_rad + two_pi, gmst_rad)

        if use_degrees:
            return jnp.rad2deg(gmst_rad)
        return gmst_rad

    # String representations

    def __str__(self):
        year, month, day, hour, minute, second = self.caldate()
        return (f'{year:04d}-{month:02d}-{day:02d}T'
                f'{hour:02d}:{minute:02d}:{second:06.3f}Z')

    def __repr__(self):
        return f'Epoch("{self}")'

    def __hash__(self):
        return hash((int(self._jd), round(float(self._compensated_seconds()), 6)))
