import jax.numpy as jnp
import pytest

from astroukf.config import set_dtype


@pytest.fixture(autouse=True)
def _ensure_float64():
    """Set float64 precision before every test.

    With pytest-xdist, each worker process starts from the package default.
    This fixture ensures all tests run in float64 unless they explicitly
    override it (test_config.py switches to float32 in some tests).
    """
    set_dtype(jnp.float64)
