#!/usr/bin/env python3
"""
Benchmark: IMEX vs ETDRK4 step cost

Measures the steady-state wall time per step of both schemes across grid
sizes, using the batched advance() loop (one compiled lax.fori_loop per call).
Writes results/schemes.json.

Run: python benchmarks/benchmark_schemes.py [--n-reps 10] [--sizes 64 128 256]
"""

# CRITICAL: Set x64 BEFORE any jax.numpy imports
import jax
jax.config.update("jax_enable_x64", True)

import argparse
import json
import time
from pathlib import Path

import numpy as np

from chjax import init_solver, random_initial_field


N_STEPS = 100
DT = {"imex": 0.05, "etdrk4": 0.2}


def compute_stats(times):
    """Compute median and IQR from timing array."""
    median = float(np.median(times))
    q25, q75 = np.percentile(times, [25, 75])
    return median, float(q75 - q25)


def time_scheme(scheme, n, n_reps):
    """Median seconds per step for one scheme and grid size."""
    c0 = random_initial_field(jax.random.PRNGKey(0), n)

    with init_solver(c0, DT[scheme], scheme) as solver:
        # Warmup (compile + discard)
        t0 = time.perf_counter()
        solver.advance(N_STEPS)
        solver.get_solution()
        compile_s = time.perf_counter() - t0

        times = []
        for _ in range(n_reps):
            t0 = time.perf_counter()
            solver.advance(N_STEPS)
            # get_solution() blocks until the device is done
            solver.get_solution()
            times.append(time.perf_counter() - t0)

        if not np.all(np.isfinite(solver.get_solution())):
            raise ValueError(f"{scheme} result on {n}x{n} contains NaN/Inf")

    median, iqr = compute_stats(times)
    return {
        'first_call_s': compile_s,
        'median_s': median,
        'iqr_s': iqr,
        'ms_per_step': 1e3 * median / N_STEPS,
    }


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument('--n-reps', type=int, default=10,
                        help='Number of repetitions (default: 10)')
    parser.add_argument('--sizes', type=int, nargs='+', default=[64, 128, 256, 512])
    args = parser.parse_args()

    print("IMEX vs ETDRK4 Benchmark")
    print("=" * 60)
    print(f"Device: {jax.devices()[0]}")
    print(f"Backend: {jax.default_backend()}")
    print(f"Steps per call: {N_STEPS}, N_REPS: {args.n_reps}")
    print("=" * 60)

    results = {}
    for n in args.sizes:
        results[n] = {}
        for scheme in ("imex", "etdrk4"):
            stats = time_scheme(scheme, n, args.n_reps)
            results[n][scheme] = stats
            print(f"{n:5d}x{n:<5d} {scheme:7s}: {stats['ms_per_step']:8.3f} ms/step "
                  f"(first call {stats['first_call_s']:.2f} s)")
        ratio = results[n]['etdrk4']['ms_per_step'] / results[n]['imex']['ms_per_step']
        results[n]['etdrk4_over_imex'] = ratio
        print(f"{'':12s}ETDRK4/IMEX cost ratio: {ratio:.2f}")

    output = {
        'config': {
            'sizes': args.sizes,
            'n_steps': N_STEPS,
            'n_reps': args.n_reps,
            'dt': DT,
            'device': str(jax.devices()[0]),
            'dtype': 'float64',
        },
        'results': {str(n): r for n, r in results.items()},
    }

    output_path = Path(__file__).parent / 'results' / 'schemes.json'
    output_path.parent.mkdir(exist_ok=True)
    with open(output_path, 'w') as f:
        json.dump(output, f, indent=2)
    print(f"\nResults saved to {output_path}")


if __name__ == "__main__":
    main()
