"""
Solver state for CH-JAX.

The state is the pair (c, c_hat): the concentration field in physical space
and its rfft2 coefficients. Both are carried so that each step can reuse the
physical field it already has instead of transforming back again.

Design decisions:
- SolverState is a NamedTuple, hence a JAX PyTree usable as a lax loop carry
- Both members describe the same field between steps; kernels always return
  a consistent pair
"""

from typing import NamedTuple

import jax.numpy as jnp

from chjax.core.fft_transforms import SpectralTransform


class SolverState(NamedTuple):
    """Concentration field in physical and Fourier space."""
    c: jnp.ndarray      # (n, n) real
    c_hat: jnp.ndarray  # (n, n//2 + 1) complex


def state_from_field(c: jnp.ndarray, transform: SpectralTransform) -> SolverState:
    """
    Build a consistent state from a physical field.

    Args:
        c: Physical field of shape (n, n)
        transform: Transform for the grid

    Returns:
        SolverState with c_hat = forward(c)
    """
    return SolverState(c=c, c_hat=transform.forward(c))


def state_from_spectral(c_hat: jnp.ndarray, transform: SpectralTransform) -> SolverState:
    """Build a consistent state from spectral coefficients."""
    return SolverState(c=transform.inverse(c_hat), c_hat=c_hat)


def state_mean(state: SolverState) -> jnp.ndarray:
    """Spatial mean of the field, read from the k = 0 coefficient."""
    n = state.c.shape[0]
    return jnp.real(state.c_hat[0, 0]) / (n * n)


def consistency_error(state: SolverState, transform: SpectralTransform) -> jnp.ndarray:
    """Max-norm distance between c and inverse(c_hat)."""
    return jnp.max(jnp.abs(state.c - transform.inverse(state.c_hat)))
