"""Shape parameter derivation and importance-sampled kernel generation.

A kernel is an ``(n, 2)`` float64 array of ``(radius, 1 / pdf)`` rows at
the stratified positions ``p_i = (i + 0.5) / n``.  Normalizing the
weights and multiplying by the surface albedo happens in the shader.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from diffusion_profile.constants import MAX_SOLVER_ITERATIONS
from diffusion_profile.core import disney


def shape_param(scattering_distance: Sequence[float]) -> np.ndarray:
    """Per-channel shape parameter ``S = 1 / D``.

    A zero distance yields ``inf``: the shader evaluates
    ``exp2(-inf * r) = 0``, so that channel does not blur.
    """
    d = np.asarray(scattering_distance, dtype=np.float64)
    with np.errstate(divide="ignore"):
        return 1.0 / d


def importance_shape(shape: Sequence[float]) -> float:
    """Shape value that drives sample placement.

    The channel with the widest scattering distance (smallest ``S``) is
    importance sampled so every channel stays adequately covered.
    """
    return float(np.min(shape))


def sample_positions(n: int) -> np.ndarray:
    """Stratified cumulative probabilities ``(i + 0.5) / n``."""
    if n <= 0:
        raise ValueError(f"Sample count must be positive, got {n}")
    return (np.arange(n, dtype=np.float64) + 0.5) * (1.0 / n)


def generate_kernel(
    n: int,
    s: float,
    max_iterations: int = MAX_SOLVER_ITERATIONS,
) -> np.ndarray:
    """Importance sample the diffusion profile for shape ``s``.

    Parameters
    ----------
    n : int
        Number of samples
    s : float
        Importance-sampling shape, see :func:`importance_shape`
    max_iterations : int
        Forwarded to :func:`disney.cdf_inverse`

    Returns
    -------
    np.ndarray
        ``(n, 2)`` float64 array of ``(radius, reciprocal pdf)``.  Rows with
        a degenerate radius (``0`` or ``inf``) carry a zero weight.

    Raises
    ------
    disney.ConvergenceError
        If the root solver exceeds ``max_iterations`` for any sample
    """
    kernel = np.zeros((n, 2), dtype=np.float64)

    for i, p in enumerate(sample_positions(n)):
        r = disney.cdf_inverse(float(p), s, max_iterations=max_iterations)
        kernel[i, 0] = r
        if r > 0.0 and math.isfinite(r):
            kernel[i, 1] = 1.0 / disney.pdf(r, s)

    return kernel
