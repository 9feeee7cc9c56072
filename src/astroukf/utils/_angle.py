"""Angle and unit conversion helpers.

These helpers wrap the ``use_degrees`` convention used throughout
astroukf, providing JAX-traceable degree/radian conversion via
``jnp.where``, plus angle normalization around an arbitrary center.
"""

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike


def to_radians(angle: ArrayLike, use_degrees: bool) -> Array:
    """Convert angle to radians if ``use_degrees`` is True.

    Args:
        angle (ArrayLike): Angle value.
        use_degrees (bool): If ``True``, treat ``angle`` as degrees and convert.

    Returns:
        Angle in radians.
    """
    return jnp.where(use_degrees, jnp.deg2rad(angle), angle)


def from_radians(angle: ArrayLike, use_degrees: bool) -> Array:
    """Convert angle from radians to degrees if ``use_degrees`` is True.

    Args:
        angle (ArrayLike): Angle in radians.
        use_degrees (bool): If ``True``, convert to degrees.

    Returns:
        Angle in radians or degrees.
    """
    return jnp.where(use_degrees, jnp.rad2deg(angle), angle)


def normalize_angle(angle: ArrayLike, center: ArrayLike = 0.0) -> Array:
    """Wrap an angle into ``[center - pi, center + pi)``.

    Args:
        angle (ArrayLike): Angle in radians.
        center (ArrayLike): Center of the output interval in radians.
            Default: ``0.0``.

    Returns:
        Angle shifted by a multiple of ``2*pi``.

    Examples:
        ```python
        import jax.numpy as jnp
        from astroukf.utils import normalize_angle
        normalize_angle(3.5 * jnp.pi)           # -pi/2
        normalize_angle(0.1, center=2 * jnp.pi)  # 0.1 + 2*pi
        ```
    """
    two_pi = 2.0 * jnp.pi
    return angle - two_pi * jnp.floor((angle + jnp.pi - center) / two_pi)
