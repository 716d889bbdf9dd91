"""
Utility functions for CH-JAX.

This module provides helper functions for:
- Validating and reshaping caller-supplied fields
- Error norms used by diagnostics and tests
"""

import math
from typing import Optional

import jax.numpy as jnp
import numpy as np


def as_square_field(
    values,
    n: Optional[int] = None,
    dtype: jnp.dtype = jnp.float64
) -> jnp.ndarray:
    """
    Convert a caller field to an (n, n) array.

    Accepts an (n, n) array or a flat sequence of n² values in row-major
    order. The data is copied.

    Args:
        values: Array-like field
        n: Expected grid size (None: infer from values)
        dtype: Output data type

    Returns:
        Array of shape (n, n)

    Raises:
        ValueError: If the size is not a perfect square or does not match n
    """
    arr = np.array(values, dtype=np.float64)

    if arr.ndim == 1:
        side = math.isqrt(arr.size)
        if side * side != arr.size:
            raise ValueError(f"Flat field of length {arr.size} is not a square grid")
        arr = arr.reshape(side, side)
    elif arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
        raise ValueError(f"Field must be square (n, n) or flat n², got shape {arr.shape}")

    if n is not None and arr.shape[0] != n:
        raise ValueError(f"Field is {arr.shape[0]}x{arr.shape[1]}, expected {n}x{n}")
    if not np.all(np.isfinite(arr)):
        raise ValueError("Field contains NaN or Inf")

    return jnp.asarray(arr, dtype=dtype)


def relative_error(u: jnp.ndarray, u_ref: jnp.ndarray, eps: float = 1e-300) -> float:
    """
    Relative L2 error ||u - u_ref|| / ||u_ref||.

    Falls back to the absolute error when u_ref is (numerically) zero.
    """
    diff = float(jnp.linalg.norm(u - u_ref))
    ref = float(jnp.linalg.norm(u_ref))
    return diff / ref if ref > eps else diff
