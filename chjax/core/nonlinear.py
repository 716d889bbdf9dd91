"""
Nonlinear term of the Cahn-Hilliard equation in Fourier space.

The cubic chemical potential contributes Δ(c³) to ∂c/∂t. It is evaluated
pseudo-spectrally: cube in physical space, transform, multiply by the
Laplacian symbol -k².
"""

from __future__ import annotations

from dataclasses import dataclass, field

import jax.numpy as jnp

from chjax.core.fft_transforms import SpectralTransform


@dataclass(frozen=True)
class CubicNonlinearity:
    """N_hat(c) = -k² * FFT(c³).

    Args:
        transform: SpectralTransform for the grid
        laplacian_symbol: Fourier symbol of Δ (-k²), rfft2 layout
    """

    transform: SpectralTransform
    laplacian_symbol: jnp.ndarray = field(repr=False, compare=False)

    def __call__(self, c: jnp.ndarray) -> jnp.ndarray:
        """Spectral nonlinear term from a physical field (one forward FFT)."""
        return self.laplacian_symbol * self.transform.forward(c * c * c)

    def from_spectral(self, c_hat: jnp.ndarray) -> jnp.ndarray:
        """Spectral nonlinear term from spectral coefficients (inverse + forward FFT)."""
        return self(self.transform.inverse(c_hat))
