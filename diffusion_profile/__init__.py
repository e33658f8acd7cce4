"""Diffusion profile baker: subsurface-scattering kernels for real-time shading.

Turns artist-facing material parameters (per-channel scattering distance,
transmission tint, thickness bounds, index of refraction) into the
importance-sampled kernels and packed constants a screen-space
subsurface-scattering pass consumes.

Architecture layers (strict one-way dependency):
    bake → configs → cache → core → utils

Key invariants:
    - Kernels are regenerated together and only read from a validated profile
    - Caches are immutable float32 projections of a profile
    - Slot 0 of every profile table is the neutral (no blur) profile
    - Thickness in millimeters, world scale in meters per world unit
"""

__version__ = "1.0.0"

from diffusion_profile.cache import (
    DiffusionProfileCache,
    ProfileTable,
    ProfileTableError,
    neutral_cache,
    pack_profile,
)
from diffusion_profile.core import (
    ConvergenceError,
    DiffusionProfile,
    StaleProfileError,
    TexturingMode,
    TransmissionMode,
)

__all__ = [
    "ConvergenceError",
    "DiffusionProfile",
    "DiffusionProfileCache",
    "ProfileTable",
    "ProfileTableError",
    "StaleProfileError",
    "TexturingMode",
    "TransmissionMode",
    "neutral_cache",
    "pack_profile",
]
