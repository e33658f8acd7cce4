"""Render-ready packing of diffusion profiles."""

from diffusion_profile.cache.packer import (
    SHAPE_PARAM_SCALE,
    DiffusionProfileCache,
    fresnel0,
    neutral_cache,
    pack_profile,
)
from diffusion_profile.cache.table import ProfileTable, ProfileTableError

__all__ = [
    "SHAPE_PARAM_SCALE",
    "DiffusionProfileCache",
    "ProfileTable",
    "ProfileTableError",
    "fresnel0",
    "neutral_cache",
    "pack_profile",
]
