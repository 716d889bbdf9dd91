"""
Spectral transform engine for CH-JAX.

This module provides the real-input 2D FFT pair used by every time step and
the wavenumber grid matching its output layout:
- Wavenumber builders for the rfft2 half-grid
- SpectralTransform: forward (rfft2) / inverse (irfft2) fixed to one grid

Design decisions:
- FFT operates on the full periodic grid (no ghost cells)
- Transforms are JIT-compiled once at construction and reused every step
- The inverse applies the 1/N² normalization, so inverse(forward(u)) == u
- Uses jax.numpy.fft (rfft2, irfft2)

Layout of the real-input transform for an N x N field:
  axis 0 (y): N modes, ordered 0, 1, ..., N/2-1, -N/2, ..., -1 (fftfreq)
  axis 1 (x): N//2 + 1 non-negative modes (rfftfreq)
"""

from dataclasses import dataclass, field
from typing import Callable, Tuple

import jax
import jax.numpy as jnp

from chjax.core.grid import PeriodicGrid2D


# =============================================================================
# Wavenumbers
# =============================================================================

def build_wavenumbers_2d(
    n: int,
    dx: float,
    dtype: jnp.dtype = jnp.float64
) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """
    Build angular wavenumbers for the rfft2 half-grid.

    Args:
        n: Number of grid points per side
        dx: Grid spacing
        dtype: Data type

    Returns:
        Tuple of (kx, ky) arrays, each with shape (n, n//2 + 1)
    """
    # rfftfreq/fftfreq return cycles per unit length
    kx_1d = 2.0 * jnp.pi * jnp.fft.rfftfreq(n, d=dx)
    ky_1d = 2.0 * jnp.pi * jnp.fft.fftfreq(n, d=dx)

    shape = (n, n // 2 + 1)
    kx = jnp.broadcast_to(kx_1d, shape).astype(dtype)
    ky = jnp.broadcast_to(ky_1d[:, None], shape).astype(dtype)

    return kx, ky


def wavenumber_magnitude_sq(
    n: int,
    dx: float,
    dtype: jnp.dtype = jnp.float64
) -> jnp.ndarray:
    """
    Squared wavenumber magnitude k² = kx² + ky² on the rfft2 half-grid.

    The Fourier symbol of the Laplacian is -k².

    Args:
        n: Number of grid points per side
        dx: Grid spacing
        dtype: Data type

    Returns:
        Array of shape (n, n//2 + 1)
    """
    kx, ky = build_wavenumbers_2d(n, dx, dtype)
    return kx * kx + ky * ky


# =============================================================================
# Transform Engine
# =============================================================================

@dataclass(frozen=True)
class SpectralTransform:
    """Forward/inverse real FFT pair bound to a fixed periodic grid.

    Args:
        grid: PeriodicGrid2D the transforms operate on

    Example:
        >>> transform = SpectralTransform(PeriodicGrid2D.square(64))
        >>> u_hat = transform.forward(u)       # (64, 33) complex
        >>> u_back = transform.inverse(u_hat)  # (64, 64) real
    """

    grid: PeriodicGrid2D
    _forward: Callable = field(init=False, repr=False, compare=False)
    _inverse: Callable = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        shape = self.grid.shape

        def forward(u):
            return jnp.fft.rfft2(u)

        def inverse(u_hat):
            # s pins the output size: an odd n cannot be recovered from the half-grid
            return jnp.fft.irfft2(u_hat, s=shape)

        object.__setattr__(self, '_forward', jax.jit(forward))
        object.__setattr__(self, '_inverse', jax.jit(inverse))

    @property
    def shape(self) -> Tuple[int, int]:
        """Physical-space shape."""
        return self.grid.shape

    @property
    def spectral_shape(self) -> Tuple[int, int]:
        """Fourier-space shape."""
        return self.grid.spectral_shape

    def forward(self, u: jnp.ndarray) -> jnp.ndarray:
        """Physical field (n, n) -> spectral coefficients (n, n//2 + 1)."""
        return self._forward(u)

    def inverse(self, u_hat: jnp.ndarray) -> jnp.ndarray:
        """Spectral coefficients (n, n//2 + 1) -> physical field (n, n)."""
        return self._inverse(u_hat)
