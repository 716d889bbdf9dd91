"""
Periodic grid definition for CH-JAX.

The Cahn-Hilliard solver works on a square, doubly periodic domain sampled on
an N x N grid. There are no ghost cells: every array on the grid is exactly
(N, N) in physical space and (N, N//2 + 1) in Fourier space (real-input FFT
half-grid layout).

Design decisions:
- Grids are immutable dataclasses (frozen=True)
- The side length defaults to N, i.e. unit grid spacing
- First index is y (rows), second index is x (columns)
"""

import numbers
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class PeriodicGrid2D:
    """
    Square periodic grid.

    Attributes:
        n: Number of grid points per side
        length: Physical side length of the domain (default: n)

    Example:
        >>> grid = PeriodicGrid2D.square(128)
        >>> grid.dx
        1.0
        >>> grid.spectral_shape
        (128, 65)
    """
    n: int
    length: Optional[float] = field(default=None)

    def __post_init__(self):
        if isinstance(self.n, bool) or not isinstance(self.n, numbers.Integral):
            raise ValueError(f"Grid size n must be an integer, got {self.n!r}")
        object.__setattr__(self, 'n', int(self.n))
        if self.n < 2:
            raise ValueError(f"Grid size n must be >= 2, got {self.n}")

        if self.length is None:
            object.__setattr__(self, 'length', float(self.n))
        elif not self.length > 0:
            raise ValueError(f"Domain length must be > 0, got {self.length}")

    @classmethod
    def square(cls, n: int, length: Optional[float] = None) -> "PeriodicGrid2D":
        """
        Create a square periodic grid.

        Args:
            n: Number of grid points per side
            length: Side length (None for unit spacing)

        Returns:
            PeriodicGrid2D instance
        """
        return cls(n=n, length=length)

    @property
    def dx(self) -> float:
        """Grid spacing (same in x and y)."""
        return self.length / self.n

    @property
    def shape(self) -> Tuple[int, int]:
        """Physical-space array shape."""
        return (self.n, self.n)

    @property
    def spectral_shape(self) -> Tuple[int, int]:
        """Fourier-space array shape for the real-input transform."""
        return (self.n, self.n // 2 + 1)

    @property
    def size(self) -> int:
        """Number of physical samples, N²."""
        return self.n * self.n

    def meshgrid(self) -> Tuple["jax.Array", "jax.Array"]:
        """
        Get 2D coordinate arrays of the grid points.

        Returns:
            Tuple (X, Y) with X varying along columns and Y along rows
        """
        import jax.numpy as jnp

        x = jnp.arange(self.n) * self.dx
        return jnp.meshgrid(x, x, indexing='xy')
