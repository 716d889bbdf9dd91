"""
Spectral time integrators for the Cahn-Hilliard equation.

Both schemes advance the semi-linear system

    ∂ĉ/∂t = L ĉ + N̂(c),    L = k² - k⁴,    N̂ = -k² FFT(c³)

on the rfft2 half-grid:

- IMEX Euler: implicit in L, explicit in N. 1st order, one FFT pair per step.
- ETDRK4 (Cox-Matthews): L solved exactly via exp(dt*L), 4-stage quadrature
  for N. 4th order, four FFT pairs per step.

Each scheme is exposed two ways:
- pure kernels imex_step / etdrk4_step (SolverState -> SolverState)
- TimeIntegrator strategies that JIT-compile the kernel once for a grid and
  also provide a batched advance() built on lax.fori_loop
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, ClassVar, Protocol, Union, runtime_checkable

import jax
from jax import lax

from chjax.core.etd_coefficients import ETDRK4Coefficients, etdrk4_coefficients
from chjax.core.fft_operators import CahnHilliardOperator, imex_stable_dt
from chjax.core.fft_transforms import SpectralTransform
from chjax.core.nonlinear import CubicNonlinearity
from chjax.core.state import SolverState, state_from_spectral


class SolverType(IntEnum):
    """Time integration schemes."""
    IMEX = 0    # Semi-implicit Euler
    ETDRK4 = 1  # Exponential time differencing RK4

    @classmethod
    def parse(cls, value: Union["SolverType", int, str]) -> "SolverType":
        """Accept a SolverType, its integer value or its name (any case)."""
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown scheme: {value!r}. Use one of {[s.name for s in cls]}"
                ) from None
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Unknown scheme: {value!r}. Use one of {[s.name for s in cls]}"
            ) from None


# =============================================================================
# Step Kernels
# =============================================================================

def imex_step(
    state: SolverState,
    dt: float,
    operator: CahnHilliardOperator,
    nonlinear: CubicNonlinearity,
    transform: SpectralTransform,
) -> SolverState:
    """IMEX-Euler step: implicit stiffness, explicit cubic term.

    Update (per mode):
        ĉ_{n+1} = (ĉ_n + dt*N̂(c_n)) / (1 - dt*L)

    Args:
        state: Current consistent state
        dt: Time step
        operator: Linear operator providing L
        nonlinear: Nonlinear term evaluator
        transform: Transform for the final refresh of c

    Returns:
        New consistent state
    """
    N_hat = nonlinear(state.c)
    c_hat = operator.solve(state.c_hat + dt * N_hat, dt)
    return state_from_spectral(c_hat, transform)


def etdrk4_step(
    state: SolverState,
    dt: float,
    coeffs: ETDRK4Coefficients,
    nonlinear: CubicNonlinearity,
    transform: SpectralTransform,
) -> SolverState:
    """ETDRK4 (Cox-Matthews) step with precomputed coefficients.

    Stages:
        a  = E2*ĉ + (dt/2)*q*N̂(c)
        b  = E2*ĉ + (dt/2)*q*N̂(a)
        c' = E2*a + (dt/2)*q*(2*N̂(b) - N̂(c))
        ĉ_{n+1} = E*ĉ + dt*(f1*N̂(c) + 2*f2*(N̂(a) + N̂(b)) + f3*N̂(c'))

    coeffs must have been computed for this dt.

    Args:
        state: Current consistent state
        dt: Time step the coefficients were built for
        coeffs: ETDRK4Coefficients
        nonlinear: Nonlinear term evaluator
        transform: Transform for the final refresh of c

    Returns:
        New consistent state
    """
    c_hat = state.c_hat
    half_q = 0.5 * dt * coeffs.q

    # Stage 1 reuses the physical field already in the state
    N_c = nonlinear(state.c)

    a_hat = coeffs.E2 * c_hat + half_q * N_c
    N_a = nonlinear.from_spectral(a_hat)

    b_hat = coeffs.E2 * c_hat + half_q * N_a
    N_b = nonlinear.from_spectral(b_hat)

    cc_hat = coeffs.E2 * a_hat + half_q * (2.0 * N_b - N_c)
    N_cc = nonlinear.from_spectral(cc_hat)

    c_hat_new = coeffs.E * c_hat + dt * (
        coeffs.f1 * N_c + 2.0 * coeffs.f2 * (N_a + N_b) + coeffs.f3 * N_cc
    )
    return state_from_spectral(c_hat_new, transform)


def _make_advance(kernel: Callable[[SolverState, float], SolverState]) -> Callable:
    """Wrap a step kernel into (state, dt, n_steps) -> state using lax.fori_loop."""
    def advance(state: SolverState, dt: float, n_steps: int) -> SolverState:
        return lax.fori_loop(0, n_steps, lambda _, s: kernel(s, dt), state)
    return advance


# =============================================================================
# Integrator Strategies
# =============================================================================

@runtime_checkable
class TimeIntegrator(Protocol):
    """Protocol shared by the IMEX and ETDRK4 integrators."""

    scheme: SolverType

    def step(self, state: SolverState, dt: float, stacklevel: int = 1) -> SolverState:
        """Advance one step.

        stacklevel counts frames above the caller for warnings about dt.
        """
        ...

    def advance(
        self, state: SolverState, dt: float, n_steps: int, stacklevel: int = 1
    ) -> SolverState:
        """Advance n_steps steps of size dt."""
        ...


@dataclass(frozen=True)
class IMEXIntegrator:
    """IMEX-Euler integrator compiled for one grid.

    dt is a runtime argument: 1 - dt*L is formed inside the kernel, so any
    positive step may be used.
    """

    operator: CahnHilliardOperator
    nonlinear: CubicNonlinearity
    transform: SpectralTransform
    scheme: ClassVar[SolverType] = SolverType.IMEX
    _step: Callable = field(init=False, repr=False, compare=False)
    _advance: Callable = field(init=False, repr=False, compare=False)
    _dt_limit: float = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        def kernel(state, dt):
            return imex_step(state, dt, self.operator, self.nonlinear, self.transform)

        object.__setattr__(self, '_step', jax.jit(kernel))
        object.__setattr__(self, '_advance', jax.jit(_make_advance(kernel)))
        object.__setattr__(self, '_dt_limit', imex_stable_dt(self.operator, safety=1.0))

    @property
    def dt_limit(self) -> float:
        """dt at which 1 - dt*L first vanishes for a growing mode."""
        return self._dt_limit

    def _check_dt(self, dt: float, stacklevel: int) -> None:
        if not dt > 0:
            raise ValueError(f"Time step dt must be > 0, got {dt}")
        if dt >= self._dt_limit:
            warnings.warn(
                f"IMEX dt={dt} >= 1/max(L)={self._dt_limit:.4g}: the implicit factor "
                f"1/(1 - dt*L) changes sign for the fastest growing modes "
                f"(singular at dt*L = 1), so they are not resolved",
                RuntimeWarning,
                stacklevel=stacklevel + 1,
            )

    def step(self, state: SolverState, dt: float, stacklevel: int = 1) -> SolverState:
        self._check_dt(dt, stacklevel + 1)
        return self._step(state, dt)

    def advance(
        self, state: SolverState, dt: float, n_steps: int, stacklevel: int = 1
    ) -> SolverState:
        self._check_dt(dt, stacklevel + 1)
        return self._advance(state, dt, n_steps)


@dataclass(frozen=True)
class ETDRK4Integrator:
    """ETDRK4 integrator compiled for one grid and one fixed dt.

    The exponential and φ-function weights depend on dt, so they are built
    once here; stepping with any other dt is an error.

    Args:
        operator: Linear operator providing L
        nonlinear: Nonlinear term evaluator
        transform: Transform for the grid
        dt: Fixed time step
        method: Coefficient evaluation, 'series' or 'contour'
        threshold: Series radius for method='series'
        n_points: Quadrature points for method='contour'
    """

    operator: CahnHilliardOperator
    nonlinear: CubicNonlinearity
    transform: SpectralTransform
    dt: float
    method: str = 'series'
    threshold: float = 0.5
    n_points: int = 32
    scheme: ClassVar[SolverType] = SolverType.ETDRK4
    _coeffs: ETDRK4Coefficients = field(init=False, repr=False, compare=False)
    _step: Callable = field(init=False, repr=False, compare=False)
    _advance: Callable = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.dt > 0:
            raise ValueError(f"Time step dt must be > 0, got {self.dt}")

        coeffs = etdrk4_coefficients(
            self.operator.eigenvalues, self.dt,
            method=self.method, threshold=self.threshold, n_points=self.n_points,
        )
        object.__setattr__(self, '_coeffs', coeffs)

        def kernel(state, dt):
            return etdrk4_step(state, dt, coeffs, self.nonlinear, self.transform)

        object.__setattr__(self, '_step', jax.jit(kernel))
        object.__setattr__(self, '_advance', jax.jit(_make_advance(kernel)))

    @property
    def coefficients(self) -> ETDRK4Coefficients:
        """Precomputed per-mode weights."""
        return self._coeffs

    def _check_dt(self, dt: float) -> None:
        if not math.isclose(dt, self.dt, rel_tol=1e-12, abs_tol=0.0):
            raise ValueError(
                f"ETDRK4 coefficients were computed for dt={self.dt}, got dt={dt}; "
                f"create a new solver to change the step size"
            )

    def step(self, state: SolverState, dt: float, stacklevel: int = 1) -> SolverState:
        self._check_dt(dt)
        return self._step(state, self.dt)

    def advance(
        self, state: SolverState, dt: float, n_steps: int, stacklevel: int = 1
    ) -> SolverState:
        self._check_dt(dt)
        return self._advance(state, self.dt, n_steps)


def make_integrator(
    scheme: Union[SolverType, int, str],
    operator: CahnHilliardOperator,
    nonlinear: CubicNonlinearity,
    transform: SpectralTransform,
    dt: float,
    method: str = 'series',
    threshold: float = 0.5,
    n_points: int = 32,
) -> TimeIntegrator:
    """Build the integrator for a scheme tag.

    Args:
        scheme: SolverType (or name/value)
        operator, nonlinear, transform: Shared building blocks
        dt: Step size (fixed for ETDRK4)
        method, threshold, n_points: ETDRK4 coefficient options

    Returns:
        IMEXIntegrator or ETDRK4Integrator
    """
    scheme = SolverType.parse(scheme)
    if scheme == SolverType.IMEX:
        return IMEXIntegrator(operator, nonlinear, transform)
    return ETDRK4Integrator(
        operator, nonlinear, transform, dt,
        method=method, threshold=threshold, n_points=n_points,
    )
