"""Closed-form Disney diffusion profile and its inverse CDF.

Reference: *Approximate Reflectance Profiles for Efficient Subsurface
Scattering* (Christensen & Burley, Pixar 2015).  With shape parameter
``s = 1 / d`` the normalized diffuse reflectance profile is::

    R[r, phi, s]   = s * (Exp[-r * s] + Exp[-r * s / 3]) / (8 * Pi * r)
    PDF[r, phi, s] = r * R[r, phi, s]
    CDF[r, s]      = 1 - 1/4 * Exp[-r * s] - 3/4 * Exp[-r * s / 3]

The PDF carries the ``r`` Jacobian of polar integration.  The CDF is not
analytically invertible, so :func:`cdf_inverse` finds radii with Halley's
method.

All functions are scalar, pure and operate on Python floats.
"""

from __future__ import annotations

import logging
import math

from diffusion_profile.constants import MAX_SOLVER_ITERATIONS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConvergenceError(ArithmeticError):
    """Raised when the inverse-CDF solver exceeds its iteration ceiling."""

    def __init__(self, p: float, s: float, r: float, iterations: int) -> None:
        self.p = p
        self.s = s
        self.r = r
        self.iterations = iterations
        super().__init__(
            f"Inverse CDF did not converge for p={p!r}, s={s!r} after "
            f"{iterations} iterations (last r={r!r})"
        )


# ---------------------------------------------------------------------------
# Profile functions
# ---------------------------------------------------------------------------


def reflectance(r: float, s: float) -> float:
    """Radial diffuse reflectance ``R(r, s)``."""
    return s * (math.exp(-r * s) + math.exp(-r * s / 3.0)) / (8.0 * math.pi * r)


def pdf(r: float, s: float) -> float:
    """Radial sampling density ``r * R(r, s)``."""
    return r * reflectance(r, s)


def cdf(r: float, s: float) -> float:
    """Cumulative distribution, increasing from 0 at ``r = 0`` to 1 as ``r → ∞``."""
    return 1.0 - 0.25 * math.exp(-r * s) - 0.75 * math.exp(-r * s / 3.0)


def cdf_derivative1(r: float, s: float) -> float:
    """First derivative of :func:`cdf` with respect to ``r``."""
    return 0.25 * s * math.exp(-r * s) * (1.0 + math.exp(r * s * (2.0 / 3.0)))


def cdf_derivative2(r: float, s: float) -> float:
    """Second derivative of :func:`cdf` with respect to ``r``."""
    return (-1.0 / 12.0) * s * s * math.exp(-r * s) * (3.0 + math.exp(r * s * (2.0 / 3.0)))


# ---------------------------------------------------------------------------
# Root solver
# ---------------------------------------------------------------------------


def initial_guess(p: float, s: float) -> float:
    """Seed radius ``(10^p - 1) / s`` for the Halley iteration."""
    return (10.0 ** p - 1.0) / s


def cdf_inverse(p: float, s: float, max_iterations: int = MAX_SOLVER_ITERATIONS) -> float:
    """Solve ``cdf(r, s) = p`` for ``r``.

    Halley's method on ``f(r) = cdf(r, s) - p`` from :func:`initial_guess`.
    A step is taken only while its magnitude strictly shrinks; the first
    step that does not shrink (including a NaN step) means the best
    achievable precision was reached and the current radius is returned.

    Parameters
    ----------
    p : float
        Target cumulative probability in (0, 1)
    s : float
        Shape parameter, ``s >= 0``.  ``s == 0`` returns ``inf`` (the
        profile never decays); ``s == inf`` returns ``0.0`` (no scattering).
    max_iterations : int
        Ceiling on accepted steps

    Returns
    -------
    float
        Radius in the units of ``1 / s``

    Raises
    ------
    ConvergenceError
        If more than ``max_iterations`` steps keep shrinking
    """
    if s == 0.0:
        return math.inf
    if math.isinf(s):
        return 0.0

    r = initial_guess(p, s)
    t = math.inf
    iterations = 0

    while True:
        f0 = cdf(r, s) - p
        f1 = cdf_derivative1(r, s)
        f2 = cdf_derivative2(r, s)
        dr = f0 / (f1 * (1.0 - f0 * f2 / (2.0 * f1 * f1)))

        if not abs(dr) < t:
            # Converged to the best result.
            break

        r = r - dr
        t = abs(dr)
        iterations += 1
        if iterations > max_iterations:
            raise ConvergenceError(p, s, r, iterations)

    logger.debug("cdf_inverse(p=%.6f, s=%.6f) = %.6f after %d steps", p, s, r, iterations)
    return r
