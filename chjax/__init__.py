"""
CH-JAX: Spectral Cahn-Hilliard Solver in JAX

This library advances the 2D Cahn-Hilliard equation

    ∂c/∂t = Δ(c³ - c - Δc)

on a periodic square domain with pseudo-spectral (real FFT) discretization
and JAX JIT compilation.

Key Features:
- Explicit solver objects: several independent simulations per process
- Real-input FFT transform pair compiled once per grid
- IMEX Euler: implicit stiffness, explicit cubic term (1st order)
- ETDRK4: exact linear propagation, 4th order Runge-Kutta quadrature
- Series / contour-integral evaluation of the φ-functions near z = 0
- Batched stepping via lax.fori_loop for interactive frame rates
"""

import logging

from chjax.core.grid import PeriodicGrid2D
from chjax.core.fft_transforms import (
    SpectralTransform,
    build_wavenumbers_2d,
    wavenumber_magnitude_sq,
)
from chjax.core.fft_operators import CahnHilliardOperator, SpectralBounds, imex_stable_dt
from chjax.core.nonlinear import CubicNonlinearity
from chjax.core.etd_coefficients import (
    ETDRK4Coefficients,
    etdrk4_coefficients,
    phi,
    phi1,
    phi2,
    phi3,
    phi_contour,
)
from chjax.core.state import SolverState, state_from_field, state_from_spectral
from chjax.core.fft_integrators import (
    SolverType,
    TimeIntegrator,
    IMEXIntegrator,
    ETDRK4Integrator,
    imex_step,
    etdrk4_step,
    make_integrator,
)
from chjax.core.solver import (
    CahnHilliardSolver,
    SolverConfig,
    SolverReleasedError,
    init_solver,
    random_initial_field,
)
from chjax.utils.logging_config import configure_logging, get_logger

logging.getLogger("chjax").addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    # Grid
    "PeriodicGrid2D",
    # Transforms
    "SpectralTransform",
    "build_wavenumbers_2d",
    "wavenumber_magnitude_sq",
    # Operators
    "CahnHilliardOperator",
    "SpectralBounds",
    "imex_stable_dt",
    "CubicNonlinearity",
    # ETD coefficients
    "ETDRK4Coefficients",
    "etdrk4_coefficients",
    "phi",
    "phi1",
    "phi2",
    "phi3",
    "phi_contour",
    # State
    "SolverState",
    "state_from_field",
    "state_from_spectral",
    # Integrators
    "SolverType",
    "TimeIntegrator",
    "IMEXIntegrator",
    "ETDRK4Integrator",
    "imex_step",
    "etdrk4_step",
    "make_integrator",
    # Solver
    "CahnHilliardSolver",
    "SolverConfig",
    "SolverReleasedError",
    "init_solver",
    "random_initial_field",
    # Logging
    "configure_logging",
    "get_logger",
]
