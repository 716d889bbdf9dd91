"""
Cahn-Hilliard solver lifecycle for CH-JAX.

A CahnHilliardSolver owns everything one simulation needs: the grid, the
compiled transform pair, the linear symbol, the nonlinear evaluator, the
integrator for the chosen scheme and the current (c, c_hat) state. Several
solvers can coexist; none shares state with another.

Typical use (mirrors a display loop pulling a frame every few steps):

    >>> c0 = random_initial_field(jax.random.PRNGKey(0), 128)
    >>> with init_solver(c0, dt=0.1, scheme="etdrk4") as solver:
    ...     for frame in range(100):
    ...         solver.advance(10)
    ...         image = solver.get_solution()
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Optional, Union

import jax
import jax.numpy as jnp
import numpy as np

from chjax.core.etd_coefficients import (
    COEFFICIENT_METHODS,
    MAX_SERIES_THRESHOLD,
    MIN_CONTOUR_POINTS,
)
from chjax.core.fft_integrators import SolverType, TimeIntegrator, make_integrator
from chjax.core.fft_operators import CahnHilliardOperator
from chjax.core.fft_transforms import SpectralTransform
from chjax.core.grid import PeriodicGrid2D
from chjax.core.nonlinear import CubicNonlinearity
from chjax.core.state import SolverState, state_from_field, state_mean
from chjax.core.utils import as_square_field
from chjax.utils.logging_config import get_logger

logger = get_logger("core.solver")


class SolverReleasedError(RuntimeError):
    """Raised when a released solver is used again."""


@dataclass(frozen=True)
class SolverConfig:
    """
    Fixed configuration of one solver.

    Attributes:
        n: Grid points per side
        dt: Time step (fixed for ETDRK4, default step for IMEX)
        scheme: SolverType or its name ("imex", "etdrk4")
        length: Domain side length (None: n, unit spacing)
        coefficient_method: ETDRK4 φ-function evaluation, 'series' or 'contour'
        series_threshold: |z| below which the Taylor series is used (at most 1)
        contour_points: Quadrature points for the contour method (at least 16)
        dtype: Real data type of the field
    """
    n: int
    dt: float
    scheme: Union[SolverType, int, str] = SolverType.ETDRK4
    length: Optional[float] = None
    coefficient_method: str = 'series'
    series_threshold: float = 0.5
    contour_points: int = 32
    dtype: jnp.dtype = jnp.float64

    def __post_init__(self):
        object.__setattr__(self, 'scheme', SolverType.parse(self.scheme))

        valid_dt = (isinstance(self.dt, numbers.Real) and not isinstance(self.dt, bool)
                    and math.isfinite(self.dt) and self.dt > 0)
        if not valid_dt:
            raise ValueError(f"Time step dt must be a finite number > 0, got {self.dt!r}")
        if self.coefficient_method not in COEFFICIENT_METHODS:
            raise ValueError(
                f"Unknown coefficient method: {self.coefficient_method!r}. "
                f"Use one of {COEFFICIENT_METHODS}"
            )
        if not 0.0 < self.series_threshold <= MAX_SERIES_THRESHOLD:
            raise ValueError(
                f"series_threshold must be in (0, {MAX_SERIES_THRESHOLD}], "
                f"got {self.series_threshold}"
            )
        if self.contour_points < MIN_CONTOUR_POINTS:
            raise ValueError(
                f"contour_points must be >= {MIN_CONTOUR_POINTS}, got {self.contour_points}"
            )

        grid = PeriodicGrid2D.square(self.n, self.length)
        object.__setattr__(self, 'n', grid.n)
        object.__setattr__(self, 'length', grid.length)

    @property
    def grid(self) -> PeriodicGrid2D:
        """Grid described by this configuration."""
        return PeriodicGrid2D.square(self.n, self.length)


class CahnHilliardSolver:
    """
    2D periodic Cahn-Hilliard solver, ∂c/∂t = Δ(c³ - c - Δc).

    Args:
        initial_field: (n, n) array or flat sequence of n² values
        config: SolverConfig; its n must match the field

    Raises:
        ValueError: On any configuration or field-size error
    """

    def __init__(self, initial_field, config: SolverConfig):
        self._config = config
        grid = config.grid

        c0 = as_square_field(initial_field, n=grid.n, dtype=config.dtype)

        self._transform = SpectralTransform(grid)
        self._operator = CahnHilliardOperator(grid, config.dtype)
        self._nonlinear = CubicNonlinearity(self._transform, self._operator.laplacian_symbol)
        self._integrator: Optional[TimeIntegrator] = make_integrator(
            config.scheme,
            self._operator,
            self._nonlinear,
            self._transform,
            config.dt,
            method=config.coefficient_method,
            threshold=config.series_threshold,
            n_points=config.contour_points,
        )
        self._state: Optional[SolverState] = state_from_field(c0, self._transform)
        self._time = 0.0
        self._n_steps = 0

        bounds = self._operator.spectral_bounds()
        logger.info(
            "Initialized %s solver: n=%d, length=%.4g, dt=%.4g",
            config.scheme.name, grid.n, grid.length, config.dt,
        )
        logger.debug(
            "Linear symbol bounds: max|L|=%.4g (dt*max|L|=%.4g), max L=%.4g",
            bounds.rho, config.dt * bounds.rho, bounds.re_max,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SolverConfig:
        return self._config

    @property
    def n(self) -> int:
        return self._config.n

    @property
    def dt(self) -> float:
        return self._config.dt

    @property
    def scheme(self) -> SolverType:
        return self._config.scheme

    @property
    def time(self) -> float:
        """Simulated time since initialization."""
        return self._time

    @property
    def n_steps(self) -> int:
        """Number of completed steps."""
        return self._n_steps

    @property
    def released(self) -> bool:
        return self._state is None

    @property
    def mean(self) -> float:
        """Spatial mean of the current field (conserved by the dynamics)."""
        return float(state_mean(self._live_state()))

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _live_state(self) -> SolverState:
        if self._state is None:
            raise SolverReleasedError("Solver has been released")
        return self._state

    def step(self, dt: Optional[float] = None) -> None:
        """
        Advance one step of the configured scheme.

        Args:
            dt: Step size (None: configured dt). ETDRK4 only accepts the
                configured value.
        """
        state = self._live_state()
        dt = self._config.dt if dt is None else dt
        self._state = self._integrator.step(state, dt, stacklevel=2)
        self._time += dt
        self._n_steps += 1

    def advance(self, n_steps: int) -> None:
        """
        Advance n_steps steps of the configured dt in one compiled loop.

        Args:
            n_steps: Number of steps (>= 0)
        """
        state = self._live_state()
        if n_steps < 0:
            raise ValueError(f"n_steps must be >= 0, got {n_steps}")
        if n_steps == 0:
            return
        dt = self._config.dt
        self._state = self._integrator.advance(state, dt, n_steps, stacklevel=2)
        self._time += n_steps * dt
        self._n_steps += n_steps

    def get_solution(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Snapshot of the physical field.

        Args:
            out: Optional NumPy buffer of n² elements (flat or (n, n)) that is
                overwritten and returned

        Returns:
            Read-only (n, n) copy of the field, or out when given
        """
        c = np.asarray(jax.device_get(self._live_state().c))

        if out is not None:
            if out.size != c.size:
                raise ValueError(f"Output buffer has {out.size} elements, expected {c.size}")
            np.copyto(out, c.reshape(out.shape))
            return out

        snapshot = c.copy()
        snapshot.setflags(write=False)
        return snapshot

    def free(self) -> None:
        """Release state, compiled kernels and coefficients. Only once."""
        self._live_state()
        self._state = None
        self._integrator = None
        self._nonlinear = None
        self._operator = None
        self._transform = None
        logger.info("Released %s solver after %d steps (t=%.6g)",
                    self._config.scheme.name, self._n_steps, self._time)

    def __enter__(self) -> "CahnHilliardSolver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.released:
            self.free()

    def __repr__(self) -> str:
        status = "released" if self.released else f"t={self._time:.6g}"
        return (f"CahnHilliardSolver(n={self.n}, dt={self.dt}, "
                f"scheme={self.scheme.name}, {status})")


def init_solver(
    initial_field,
    dt: float,
    scheme: Union[SolverType, int, str] = SolverType.ETDRK4,
    **options,
) -> CahnHilliardSolver:
    """
    Create a solver, taking the grid size from the initial field.

    Args:
        initial_field: (n, n) array or flat sequence of n² values
        dt: Time step
        scheme: SolverType or name
        **options: Further SolverConfig fields (length, coefficient_method, ...)

    Returns:
        CahnHilliardSolver
    """
    dtype = options.get('dtype', jnp.float64)
    c0 = as_square_field(initial_field, dtype=dtype)
    config = SolverConfig(n=c0.shape[0], dt=dt, scheme=scheme, **options)
    return CahnHilliardSolver(c0, config)


def random_initial_field(
    key: jax.Array,
    n: int,
    amplitude: float = 0.1,
    mean: float = 0.0,
    dtype: jnp.dtype = jnp.float64,
) -> jnp.ndarray:
    """
    Uniform noise around a mean, the usual quench initial condition.

    Args:
        key: JAX PRNG key
        n: Grid points per side
        amplitude: Half-width of the noise
        mean: Average concentration
        dtype: Data type

    Returns:
        (n, n) array with values in [mean - amplitude, mean + amplitude)
    """
    noise = jax.random.uniform(key, (n, n), dtype=dtype, minval=-amplitude, maxval=amplitude)
    return mean + noise
