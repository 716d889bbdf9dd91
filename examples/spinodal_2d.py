#!/usr/bin/env python3
"""
Spinodal Decomposition Example (2D Cahn-Hilliard).

This example demonstrates:
- Quench from a nearly uniform mixture (small random noise around c = 0)
- Pulling a frame every few steps with advance() + get_solution()
- IMEX vs ETDRK4 on the same initial condition
- Per-iteration timing of the compiled step loop

The Cahn-Hilliard equation:
    dc/dt = Laplacian(c^3 - c - Laplacian(c))

Run: python examples/spinodal_2d.py [--scheme etdrk4] [--frames 40]
"""

# Set x64 before any jax.numpy work
import jax
jax.config.update("jax_enable_x64", True)

import argparse
import time
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from chjax import init_solver, random_initial_field
from chjax.utils.logging_config import setup_from_environment


N = 128
AMPLITUDE = 0.1
STEPS_PER_FRAME = 10
DT = {"imex": 0.05, "etdrk4": 0.2}


def run(scheme, n_frames, output_dir, seed=0):
    """Run one simulation and save a strip of snapshots."""
    print(f"\nRunning {scheme.upper()} with dt={DT[scheme]}...")
    c0 = random_initial_field(jax.random.PRNGKey(seed), N, amplitude=AMPLITUDE)

    snapshots = []
    snapshot_every = max(n_frames // 4, 1)
    elapsed = 0.0

    with init_solver(c0, DT[scheme], scheme) as solver:
        # First call compiles the loop; keep it out of the timing
        solver.advance(STEPS_PER_FRAME)
        frame = np.empty(N * N)

        for i in range(1, n_frames + 1):
            t0 = time.perf_counter()
            solver.advance(STEPS_PER_FRAME)
            solver.get_solution(out=frame)
            elapsed += time.perf_counter() - t0

            if i % snapshot_every == 0 or i == n_frames:
                snapshots.append((solver.time, frame.reshape(N, N).copy()))
                print(f"  iter {solver.n_steps:6d}  t = {solver.time:8.2f}  "
                      f"avg {1e3 * elapsed / (i * STEPS_PER_FRAME):.3f} ms/iter  "
                      f"mean = {solver.mean:+.2e}")

    fig, axes = plt.subplots(1, len(snapshots), figsize=(4 * len(snapshots), 4))
    for ax, (t, c) in zip(np.atleast_1d(axes), snapshots):
        im = ax.imshow(c, cmap="RdBu_r", vmin=-1.0, vmax=1.0, origin="lower")
        ax.set_title(f"{scheme.upper()}  t = {t:.1f}")
        ax.set_xticks([])
        ax.set_yticks([])
    fig.colorbar(im, ax=axes, shrink=0.8)

    path = output_dir / f"spinodal_{scheme}.png"
    fig.savefig(path, dpi=120)
    plt.close(fig)
    print(f"  Saved {path}")


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--scheme", choices=["imex", "etdrk4", "both"], default="both")
    parser.add_argument("--frames", type=int, default=40)
    parser.add_argument("--output", type=Path, default=Path("output"))
    args = parser.parse_args()

    setup_from_environment()

    print("=" * 60)
    print("Cahn-Hilliard Spinodal Decomposition")
    print("=" * 60)
    print(f"Grid: {N}x{N}, noise amplitude {AMPLITUDE}, {STEPS_PER_FRAME} steps/frame")

    args.output.mkdir(exist_ok=True)
    schemes = ["imex", "etdrk4"] if args.scheme == "both" else [args.scheme]
    for scheme in schemes:
        run(scheme, args.frames, args.output)


if __name__ == "__main__":
    main()
