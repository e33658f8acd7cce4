"""Render-ready projection of a validated diffusion profile.

:class:`DiffusionProfileCache` is the layout the shading stage binds
positionally, one float4 per field plus the interleaved kernel array::

    thickness_remaps                         (min, max - min, 0, 0)
    world_scales                             (meters/unit, units/meter, 0, 0)
    shape_params                             (S * (-1/3) * log2(e), max_radius)
    transmission_tints_and_fresnel0          (tint * 0.25, fresnel0)
    disabled_transmission_tints_and_fresnel0 (0, 0, 0, fresnel0)
    filter_kernels[55]                       (near r, near 1/pdf, far r, far 1/pdf)

Far-field pairs only occupy the first 21 rows; the remaining ``zw`` slots
are zero.  A cache is never edited: arrays are float32 and read-only, and
a new cache is packed whenever the profile changes.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from diffusion_profile.constants import (
    DEFAULT_FRESNEL0,
    SSS_N_SAMPLES_FAR_FIELD,
    SSS_N_SAMPLES_NEAR_FIELD,
)
from diffusion_profile.core.profile import DiffusionProfile

LOG2_E = 1.44269504088896340736

SHAPE_PARAM_SCALE = (-1.0 / 3.0) * LOG2_E
"""Folds ``exp(-r * S / 3)`` into the ``exp2`` the shader evaluates."""

TRANSMISSION_TINT_SCALE = 0.25

CACHE_FIELDS = (
    "thickness_remaps",
    "world_scales",
    "shape_params",
    "transmission_tints_and_fresnel0",
    "disabled_transmission_tints_and_fresnel0",
    "filter_kernels",
)


def fresnel0(ior: float) -> float:
    """Fresnel reflectance at normal incidence, ``((ior - 1) / (ior + 1))^2``."""
    f = (ior - 1.0) / (ior + 1.0)
    return f * f


def _vec4(x: float = 0.0, y: float = 0.0, z: float = 0.0, w: float = 0.0) -> np.ndarray:
    return np.array([x, y, z, w], dtype=np.float32)


def _freeze(a: np.ndarray) -> np.ndarray:
    a.flags.writeable = False
    return a


@dataclass(frozen=True, eq=False)
class DiffusionProfileCache:
    """Packed constants for one profile slot (float32, read-only)."""

    thickness_remaps: np.ndarray
    world_scales: np.ndarray
    shape_params: np.ndarray
    transmission_tints_and_fresnel0: np.ndarray
    disabled_transmission_tints_and_fresnel0: np.ndarray
    filter_kernels: np.ndarray

    def __post_init__(self) -> None:
        for name in CACHE_FIELDS[:-1]:
            if getattr(self, name).shape != (4,):
                raise ValueError(f"{name} must have shape (4,), got {getattr(self, name).shape}")
        if self.filter_kernels.shape != (SSS_N_SAMPLES_NEAR_FIELD, 4):
            raise ValueError(
                f"filter_kernels must have shape ({SSS_N_SAMPLES_NEAR_FIELD}, 4), "
                f"got {self.filter_kernels.shape}"
            )
        for name in CACHE_FIELDS:
            _freeze(getattr(self, name))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiffusionProfileCache):
            return NotImplemented
        return all(
            np.array_equal(getattr(self, name), getattr(other, name), equal_nan=True)
            for name in CACHE_FIELDS
        )

    __hash__ = None

    def as_dict(self) -> dict[str, np.ndarray]:
        """Field name → array, in binding order."""
        return {name: getattr(self, name) for name in CACHE_FIELDS}


def pack_profile(profile: DiffusionProfile) -> DiffusionProfileCache:
    """Project a validated profile into its render-ready cache.

    Raises
    ------
    StaleProfileError
        If the profile was modified without re-validating
    """
    near = profile.filter_kernel_near_field
    far = profile.filter_kernel_far_field
    shape = profile.shape_param

    t_min, t_max = profile.thickness_remap
    f0 = fresnel0(profile.ior)
    tint = np.asarray(profile.transmission_tint, dtype=np.float64) * TRANSMISSION_TINT_SCALE

    # An infinite S becomes -inf; exp2(-inf * r) = 0 in the shader.
    scaled_shape = shape * SHAPE_PARAM_SCALE

    filter_kernels = np.zeros((SSS_N_SAMPLES_NEAR_FIELD, 4), dtype=np.float32)
    filter_kernels[:, 0:2] = near
    filter_kernels[:SSS_N_SAMPLES_FAR_FIELD, 2:4] = far

    return DiffusionProfileCache(
        thickness_remaps=_vec4(t_min, t_max - t_min),
        world_scales=_vec4(profile.world_scale, 1.0 / profile.world_scale),
        shape_params=_vec4(*scaled_shape, profile.max_radius),
        transmission_tints_and_fresnel0=_vec4(*tint, f0),
        disabled_transmission_tints_and_fresnel0=_vec4(0.0, 0.0, 0.0, f0),
        filter_kernels=filter_kernels,
    )


def neutral_cache() -> DiffusionProfileCache:
    """Cache of the reserved neutral slot: no blur, no transmission.

    Only the regular transmission vector carries the default Fresnel term
    (0.04); the disabled-transmission vector is all zero.
    """
    filter_kernels = np.zeros((SSS_N_SAMPLES_NEAR_FIELD, 4), dtype=np.float32)
    filter_kernels[:, 1] = 1.0
    filter_kernels[:, 3] = 1.0

    return DiffusionProfileCache(
        thickness_remaps=_vec4(),
        world_scales=_vec4(1.0, 1.0),
        shape_params=_vec4(),
        transmission_tints_and_fresnel0=_vec4(w=DEFAULT_FRESNEL0),
        disabled_transmission_tints_and_fresnel0=_vec4(),
        filter_kernels=filter_kernels,
    )
