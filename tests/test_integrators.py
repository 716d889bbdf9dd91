"""
Tests for the IMEX and ETDRK4 integrators.

Verifies:
- Mean (mass) conservation for both schemes
- The zero field is a fixed point
- Single low-amplitude modes follow the linear amplification factors
- IMEX converges at 1st order, ETDRK4 at 4th order
- A point perturbation spreads like biharmonic diffusion
- Batched advance() matches repeated step()
"""

import pytest
import jax
import jax.numpy as jnp
import numpy as np

jax.config.update("jax_enable_x64", True)

from chjax.core.grid import PeriodicGrid2D
from chjax.core.fft_integrators import (
    ETDRK4Integrator,
    IMEXIntegrator,
    SolverType,
    TimeIntegrator,
    etdrk4_step,
    imex_step,
    make_integrator,
)
from chjax.core.fft_operators import CahnHilliardOperator
from chjax.core.fft_transforms import SpectralTransform
from chjax.core.nonlinear import CubicNonlinearity
from chjax.core.solver import init_solver, random_initial_field
from chjax.core.state import consistency_error, state_from_field


SCHEMES = [SolverType.IMEX, SolverType.ETDRK4]


def run(c0, dt, scheme, n_steps, **options):
    """Integrate n_steps with a fresh solver and return the final field."""
    with init_solver(c0, dt, scheme, **options) as solver:
        for _ in range(n_steps):
            solver.step()
        return solver.get_solution()


def smooth_field(grid):
    """Low-mode initial condition inside the spinodal band."""
    X, Y = grid.meshgrid()
    k = 2 * jnp.pi / grid.length
    return (0.5 * jnp.cos(3 * k * X)
            + 0.3 * jnp.cos(2 * k * Y)
            + 0.2 * jnp.sin(k * (X + Y)))


def build_parts(n=16, length=None):
    grid = PeriodicGrid2D.square(n, length)
    transform = SpectralTransform(grid)
    op = CahnHilliardOperator(grid)
    nonlinear = CubicNonlinearity(transform, op.laplacian_symbol)
    return grid, transform, op, nonlinear


class TestConservation:
    """Tests for invariants of the dynamics."""

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_mean_conserved(self, scheme):
        c0 = random_initial_field(jax.random.PRNGKey(0), 32, amplitude=0.5, mean=0.1)
        mean0 = float(jnp.mean(c0))

        with init_solver(c0, 0.1, scheme) as solver:
            for _ in range(5):
                solver.advance(10)
            c = solver.get_solution()
            assert solver.mean == pytest.approx(mean0, abs=1e-13)

        assert float(np.mean(c)) == pytest.approx(mean0, abs=1e-13)

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_zero_field_is_fixed_point(self, scheme):
        c = run(np.zeros((16, 16)), 0.1, scheme, n_steps=25)
        assert np.all(c == 0.0)

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_constant_field_is_fixed_point(self, scheme):
        c = run(np.full((16, 16), 0.3), 0.1, scheme, n_steps=10)
        np.testing.assert_allclose(c, 0.3, atol=1e-13)

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_state_stays_consistent(self, scheme):
        grid, transform, op, nonlinear = build_parts()
        integrator = make_integrator(scheme, op, nonlinear, transform, dt=0.05)
        state = state_from_field(random_initial_field(jax.random.PRNGKey(1), 16), transform)

        state = integrator.advance(state, 0.05, 20)

        assert float(consistency_error(state, transform)) < 1e-12


class TestLinearRegime:
    """Single Fourier modes with negligible nonlinearity."""

    AMPLITUDE = 1e-6

    @pytest.mark.parametrize("mode", [1, 3])
    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_single_mode_amplification(self, scheme, mode):
        """Growing (m=1) and decaying (m=3) modes on a 16x16 unit-spacing grid."""
        grid = PeriodicGrid2D.square(16)
        X, _ = grid.meshgrid()
        k = 2 * np.pi * mode / grid.length
        lam = k**2 - k**4
        dt, n_steps = 0.1, 20
        c0 = self.AMPLITUDE * jnp.cos(k * X)

        c = run(c0, dt, scheme, n_steps)

        if scheme == SolverType.IMEX:
            factor = (1.0 / (1.0 - dt * lam)) ** n_steps
        else:
            factor = np.exp(lam * dt * n_steps)
        np.testing.assert_allclose(c, factor * np.asarray(c0), rtol=1e-8, atol=1e-18)

    def test_signs(self):
        """m=1 (|k| < 1) grows, m=3 (|k| > 1) decays."""
        grid = PeriodicGrid2D.square(16)
        X, _ = grid.meshgrid()
        for mode, grows in ((1, True), (3, False)):
            k = 2 * np.pi * mode / grid.length
            c0 = self.AMPLITUDE * jnp.cos(k * X)
            c = run(c0, 0.1, SolverType.ETDRK4, 10)
            assert (np.max(np.abs(c)) > self.AMPLITUDE) == grows


class TestPointPerturbation:
    """N=8, dt=1e-5, one sample at 0.05."""

    N = 8
    DT = 1e-5
    AMP = 0.05
    I, J = 3, 4

    def _initial(self):
        c0 = np.zeros((self.N, self.N))
        c0[self.I, self.J] = self.AMP
        return c0

    def _linear_prediction(self, c0):
        """exp(dt*L) applied with a full complex FFT (independent of rfft2)."""
        k1d = 2 * np.pi * np.fft.fftfreq(self.N, d=1.0)
        KX, KY = np.meshgrid(k1d, k1d, indexing='xy')
        k2 = KX**2 + KY**2
        lam = -k2 * (k2 - 1.0)
        return np.real(np.fft.ifft2(np.exp(self.DT * lam) * np.fft.fft2(c0)))

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_spreads_to_neighbours(self, scheme):
        c0 = self._initial()

        c = run(c0, self.DT, scheme, n_steps=1)

        i, j, n = self.I, self.J, self.N
        neighbours = np.array([
            c[(i - 1) % n, j], c[(i + 1) % n, j],
            c[i, (j - 1) % n], c[i, (j + 1) % n],
        ])

        # Biharmonic smoothing: neighbours gain, the peak loses
        assert np.all(neighbours > 0)
        assert c[i, j] < self.AMP
        np.testing.assert_allclose(neighbours, neighbours[0], rtol=1e-9)

        # Magnitude of the change matches the linear operator
        expected = self._linear_prediction(c0)
        np.testing.assert_allclose(neighbours, expected[(i + 1) % n, j], rtol=1e-2)
        np.testing.assert_allclose(c[i, j] - self.AMP, expected[i, j] - self.AMP, rtol=1e-2)

        assert float(np.mean(c)) == pytest.approx(self.AMP / 64, abs=1e-15)


CONVERGENCE_N = 32
CONVERGENCE_T_END = 8.0


@pytest.fixture(scope="module")
def reference():
    """ETDRK4 solution at t = 8 with dt = 0.025."""
    c0 = smooth_field(PeriodicGrid2D.square(CONVERGENCE_N))
    dt = 0.025
    return run(c0, dt, SolverType.ETDRK4, int(round(CONVERGENCE_T_END / dt)))


class TestConvergence:
    """Temporal order against an ETDRK4 reference with a much smaller dt."""

    def _error(self, scheme, dt, reference):
        c0 = smooth_field(PeriodicGrid2D.square(CONVERGENCE_N))
        c = run(c0, dt, scheme, int(round(CONVERGENCE_T_END / dt)))
        return float(np.max(np.abs(c - reference)))

    def test_imex_first_order(self, reference):
        e1 = self._error(SolverType.IMEX, 0.1, reference)
        e2 = self._error(SolverType.IMEX, 0.05, reference)
        ratio = e1 / e2
        assert 1.6 < ratio < 2.6, f"IMEX error ratio {ratio:.2f} (errors {e1:.2e}, {e2:.2e})"

    def test_etdrk4_fourth_order(self, reference):
        e1 = self._error(SolverType.ETDRK4, 0.4, reference)
        e2 = self._error(SolverType.ETDRK4, 0.2, reference)
        ratio = e1 / e2
        assert 10.0 < ratio < 24.0, f"ETDRK4 error ratio {ratio:.2f} (errors {e1:.2e}, {e2:.2e})"

    def test_etdrk4_more_accurate_than_imex(self, reference):
        assert (self._error(SolverType.ETDRK4, 0.2, reference)
                < self._error(SolverType.IMEX, 0.05, reference))


class TestIntegratorStrategies:
    """Tests for the integrator objects and pure kernels."""

    def test_factory(self):
        grid, transform, op, nonlinear = build_parts(n=8)
        imex = make_integrator("imex", op, nonlinear, transform, dt=0.1)
        etd = make_integrator(SolverType.ETDRK4, op, nonlinear, transform, dt=0.1)

        assert isinstance(imex, IMEXIntegrator)
        assert isinstance(etd, ETDRK4Integrator)
        assert isinstance(imex, TimeIntegrator)
        assert isinstance(etd, TimeIntegrator)
        assert imex.scheme == SolverType.IMEX
        assert etd.scheme == SolverType.ETDRK4

    @pytest.mark.parametrize("scheme", SCHEMES)
    def test_advance_matches_step(self, scheme):
        grid, transform, op, nonlinear = build_parts()
        integrator = make_integrator(scheme, op, nonlinear, transform, dt=0.05)
        state0 = state_from_field(random_initial_field(jax.random.PRNGKey(2), 16), transform)

        stepped = state0
        for _ in range(7):
            stepped = integrator.step(stepped, 0.05)
        batched = integrator.advance(state0, 0.05, 7)

        np.testing.assert_allclose(batched.c, stepped.c, atol=1e-13)

    def test_kernels_match_integrators(self):
        grid, transform, op, nonlinear = build_parts()
        state = state_from_field(random_initial_field(jax.random.PRNGKey(3), 16), transform)
        etd = ETDRK4Integrator(op, nonlinear, transform, dt=0.1)

        np.testing.assert_allclose(
            etd.step(state, 0.1).c,
            etdrk4_step(state, 0.1, etd.coefficients, nonlinear, transform).c,
            atol=1e-13,
        )
        np.testing.assert_allclose(
            IMEXIntegrator(op, nonlinear, transform).step(state, 0.1).c,
            imex_step(state, 0.1, op, nonlinear, transform).c,
            atol=1e-13,
        )

    def test_etdrk4_rejects_other_dt(self):
        grid, transform, op, nonlinear = build_parts(n=8)
        etd = ETDRK4Integrator(op, nonlinear, transform, dt=0.1)
        state = state_from_field(jnp.zeros(grid.shape), transform)

        with pytest.raises(ValueError, match="dt=0.1"):
            etd.step(state, 0.05)
        with pytest.raises(ValueError):
            etd.advance(state, 0.2, 3)

    def test_etdrk4_contour_matches_series(self):
        grid, transform, op, nonlinear = build_parts()
        state = state_from_field(random_initial_field(jax.random.PRNGKey(4), 16), transform)
        series = ETDRK4Integrator(op, nonlinear, transform, dt=0.2, method='series')
        contour = ETDRK4Integrator(op, nonlinear, transform, dt=0.2, method='contour')

        np.testing.assert_allclose(
            series.advance(state, 0.2, 10).c, contour.advance(state, 0.2, 10).c, atol=1e-10
        )

    def test_imex_accepts_any_positive_dt(self):
        grid, transform, op, nonlinear = build_parts(n=8)
        imex = IMEXIntegrator(op, nonlinear, transform)
        state = state_from_field(jnp.zeros(grid.shape), transform)

        imex.step(state, 0.01)
        imex.step(state, 0.2)
        with pytest.raises(ValueError, match="dt must be > 0"):
            imex.step(state, 0.0)

    def test_imex_warns_past_stability_bound(self):
        grid, transform, op, nonlinear = build_parts(n=32)
        imex = IMEXIntegrator(op, nonlinear, transform)
        state = state_from_field(jnp.zeros(grid.shape), transform)

        with pytest.warns(RuntimeWarning, match="changes sign") as record:
            imex.step(state, 2.0 * imex.dt_limit)
        assert record[0].filename == __file__


class TestSolverType:

    @pytest.mark.parametrize("value,expected", [
        ("imex", SolverType.IMEX),
        ("ETDRK4", SolverType.ETDRK4),
        (0, SolverType.IMEX),
        (SolverType.ETDRK4, SolverType.ETDRK4),
    ])
    def test_parse(self, value, expected):
        assert SolverType.parse(value) is expected

    @pytest.mark.parametrize("value", ["rk4", 7])
    def test_parse_unknown(self, value):
        with pytest.raises(ValueError, match="Unknown scheme"):
            SolverType.parse(value)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
