"""
Core numerics of CH-JAX: grid, spectral transforms, operators and integrators.
"""
