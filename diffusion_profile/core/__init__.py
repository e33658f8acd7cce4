"""
Profile model: closed-form diffusion profile, root solver, kernels.

Layers (one-way): profile → kernel → disney.
"""

from diffusion_profile.core.disney import ConvergenceError, cdf, cdf_inverse, pdf, reflectance
from diffusion_profile.core.kernel import generate_kernel, importance_shape, sample_positions, shape_param
from diffusion_profile.core.profile import (
    DiffusionProfile,
    StaleProfileError,
    TexturingMode,
    TransmissionMode,
)

__all__ = [
    "ConvergenceError",
    "DiffusionProfile",
    "StaleProfileError",
    "TexturingMode",
    "TransmissionMode",
    "cdf",
    "cdf_inverse",
    "generate_kernel",
    "importance_shape",
    "pdf",
    "reflectance",
    "sample_positions",
    "shape_param",
]
