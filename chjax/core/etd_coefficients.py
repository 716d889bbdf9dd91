"""
Exponential time differencing coefficients for ETDRK4.

ETD methods integrate u_t = L*u + N(u) with the linear part solved exactly
through exp(dt*L). The nonlinear quadrature weights are the φ-functions

    φ₀(z) = exp(z)
    φₖ(z) = (φₖ₋₁(z) - 1/(k-1)!) / z = Σⱼ zʲ / (j+k)!

which have a removable singularity at z = 0. The closed forms lose all
accuracy there through cancellation (φ₃ worst, error ~ eps/|z|³), so two
stable evaluations are provided:

- 'series': truncated Taylor series inside |z| < threshold, closed form
  (via expm1) outside. The closed form is never evaluated near z = 0.
- 'contour': Kassam & Trefethen (2005) contour integral, averaging the closed
  form over points on a circle around each z.

Reference: Cox & Matthews (2002), "Exponential Time Differencing for Stiff
Systems", J. Comput. Phys. 176, 430-455; Kassam & Trefethen (2005), "Fourth-
order time-stepping for stiff PDEs", SIAM J. Sci. Comput. 26, 1214-1233.
"""

from __future__ import annotations

import math
from typing import NamedTuple

import jax.numpy as jnp


COEFFICIENT_METHODS = ('series', 'contour')

# 20 terms: truncation error below 1e-25 at |z| = 0.5, below 1e-18 at |z| = 1
_SERIES_TERMS = 20
MAX_SERIES_THRESHOLD = 1.0

# Trapezoid rule on the unit circle: aliasing error ~ e^(z+1)/M!, ~1e-13 at M = 16
MIN_CONTOUR_POINTS = 16


class ETDRK4Coefficients(NamedTuple):
    """Per-mode ETDRK4 weights for a fixed dt.

    Stage update (dt multiplies q and f1..f3 inside the step):
        a  = E2*u + (dt/2)*q*N(u)
        u' = E*u + dt*(f1*N(u) + 2*f2*(N(a) + N(b)) + f3*N(c))
    """
    E: jnp.ndarray   # exp(z)
    E2: jnp.ndarray  # exp(z/2)
    q: jnp.ndarray   # φ₁(z/2)
    f1: jnp.ndarray  # φ₁ - 3φ₂ + 4φ₃
    f2: jnp.ndarray  # φ₂ - 2φ₃
    f3: jnp.ndarray  # -φ₂ + 4φ₃


# =============================================================================
# φ-functions
# =============================================================================

def _phi_closed_form(z: jnp.ndarray, order: int) -> jnp.ndarray:
    """Closed form of φₖ, valid away from z = 0 (real or complex z)."""
    # expm1 keeps φ₁ accurate for moderate real |z|
    numer = jnp.exp(z) - 1.0 if jnp.iscomplexobj(z) else jnp.expm1(z)
    for j in range(1, order):
        numer = numer - z**j / math.factorial(j)
    return numer / z**order


def _phi_series(z: jnp.ndarray, order: int, n_terms: int = _SERIES_TERMS) -> jnp.ndarray:
    """Taylor series Σⱼ zʲ/(j+k)!, evaluated by Horner's rule."""
    result = jnp.full_like(z, 1.0 / math.factorial(n_terms - 1 + order))
    for j in range(n_terms - 2, -1, -1):
        result = result * z + 1.0 / math.factorial(j + order)
    return result


def phi(z: jnp.ndarray, order: int, threshold: float = 0.5) -> jnp.ndarray:
    """Evaluate φₖ(z) with a series fallback for |z| < threshold.

    Args:
        z: Real or complex argument (any shape)
        order: k >= 0
        threshold: Radius below which the Taylor series is used
                   (0 < threshold <= MAX_SERIES_THRESHOLD)

    Returns:
        φₖ(z), same shape as z
    """
    if order < 0:
        raise ValueError(f"phi order must be >= 0, got {order}")
    if not 0.0 < threshold <= MAX_SERIES_THRESHOLD:
        raise ValueError(
            f"Series threshold must be in (0, {MAX_SERIES_THRESHOLD}], got {threshold}"
        )
    z = jnp.asarray(z)
    if order == 0:
        return jnp.exp(z)

    small = jnp.abs(z) < threshold
    # Feed the closed form a dummy argument where the series is selected,
    # otherwise 0/0 would surface as NaN in the untaken branch
    z_safe = jnp.where(small, jnp.ones_like(z), z)
    return jnp.where(small, _phi_series(z, order), _phi_closed_form(z_safe, order))


def phi1(z: jnp.ndarray, threshold: float = 0.5) -> jnp.ndarray:
    """φ₁(z) = (exp(z) - 1) / z, with φ₁(0) = 1."""
    return phi(z, 1, threshold)


def phi2(z: jnp.ndarray, threshold: float = 0.5) -> jnp.ndarray:
    """φ₂(z) = (exp(z) - 1 - z) / z², with φ₂(0) = 1/2."""
    return phi(z, 2, threshold)


def phi3(z: jnp.ndarray, threshold: float = 0.5) -> jnp.ndarray:
    """φ₃(z) = (exp(z) - 1 - z - z²/2) / z³, with φ₃(0) = 1/6."""
    return phi(z, 3, threshold)


def phi_contour(
    z: jnp.ndarray,
    order: int,
    n_points: int = 32,
    radius: float = 1.0,
) -> jnp.ndarray:
    """Evaluate φₖ(z) for real z by the Kassam-Trefethen contour mean.

    φₖ is analytic, so its value at z equals the mean of its values on a
    circle centred at z. The circle points avoid the real axis, so the closed
    form never meets the singularity.

    Args:
        z: Real argument (any shape)
        order: k >= 1
        n_points: Number of quadrature points on the circle (>= MIN_CONTOUR_POINTS)
        radius: Circle radius

    Returns:
        φₖ(z), real, same shape as z
    """
    if order < 1:
        raise ValueError(f"phi_contour order must be >= 1, got {order}")
    if n_points < MIN_CONTOUR_POINTS:
        raise ValueError(f"n_points must be >= {MIN_CONTOUR_POINTS}, got {n_points}")

    z = jnp.asarray(z)
    theta = 2.0 * jnp.pi * (jnp.arange(1, n_points + 1) - 0.5) / n_points
    shifts = radius * jnp.exp(1j * theta)
    zc = z[..., None] + shifts
    return jnp.real(jnp.mean(_phi_closed_form(zc, order), axis=-1)).astype(z.dtype)


# =============================================================================
# ETDRK4 coefficient sets
# =============================================================================

def etdrk4_coefficients(
    eigenvalues: jnp.ndarray,
    dt: float,
    method: str = 'series',
    threshold: float = 0.5,
    n_points: int = 32,
) -> ETDRK4Coefficients:
    """Precompute ETDRK4 weights for a diagonal linear operator.

    Args:
        eigenvalues: Real symbol L per mode
        dt: Fixed time step
        method: 'series' or 'contour'
        threshold: Series radius (method='series')
        n_points: Contour points (method='contour')

    Returns:
        ETDRK4Coefficients with arrays shaped like eigenvalues
    """
    z = dt * jnp.asarray(eigenvalues)

    if method == 'series':
        q = phi1(z / 2.0, threshold)
        p1 = phi1(z, threshold)
        p2 = phi2(z, threshold)
        p3 = phi3(z, threshold)
    elif method == 'contour':
        q = phi_contour(z / 2.0, 1, n_points)
        p1 = phi_contour(z, 1, n_points)
        p2 = phi_contour(z, 2, n_points)
        p3 = phi_contour(z, 3, n_points)
    else:
        raise ValueError(f"Unknown coefficient method: {method}. Use one of {COEFFICIENT_METHODS}")

    return ETDRK4Coefficients(
        E=jnp.exp(z),
        E2=jnp.exp(z / 2.0),
        q=q,
        f1=p1 - 3.0 * p2 + 4.0 * p3,
        f2=p2 - 2.0 * p3,
        f3=-p2 + 4.0 * p3,
    )
