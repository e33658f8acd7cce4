"""Diffusion profile: artist-facing parameters and derived kernels.

A :class:`DiffusionProfile` holds the tunable description of one
translucent material and the quantities derived from it (shape
parameter, max radius, near/far-field kernels).

Invalidation
------------
Assigning any tunable field marks the profile *stale*.  Derived fields
are only readable after :meth:`DiffusionProfile.validate` has run again;
reading them earlier raises :class:`StaleProfileError`, so kernels from a
previous parameter set can never leak into a cache.

Units
-----
``thickness_remap`` is in millimeters, ``world_scale`` in meters per world
unit, kernel radii and ``max_radius`` in millimeters.  ``scattering_distance``
has no fixed unit.
"""

from __future__ import annotations

import logging
import math
from dataclasses import InitVar, dataclass
from enum import IntEnum
from typing import Any

import numpy as np

from diffusion_profile.constants import (
    MAX_SOLVER_ITERATIONS,
    SSS_N_SAMPLES_FAR_FIELD,
    SSS_N_SAMPLES_NEAR_FIELD,
    UINT32_MAX,
)
from diffusion_profile.core import kernel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums & exceptions
# ---------------------------------------------------------------------------


class TexturingMode(IntEnum):
    """When the surface albedo is applied relative to scattering."""

    PRE_AND_POST_SCATTER = 0
    POST_SCATTER = 1


class TransmissionMode(IntEnum):
    """How light transmitted through the object is evaluated."""

    REGULAR = 0
    THIN_OBJECT = 1


class StaleProfileError(RuntimeError):
    """Raised when derived fields are read before re-validating."""

    pass


# Fields whose assignment invalidates the derived kernels.
_TUNABLE_FIELDS = frozenset({
    "scattering_distance",
    "transmission_tint",
    "texturing_mode",
    "transmission_mode",
    "thickness_remap",
    "world_scale",
    "ior",
})

_COLOR_FIELDS = ("scattering_distance", "transmission_tint")


def _coerce_enum(enum_cls: type[IntEnum], value: Any) -> IntEnum:
    """Accept an enum member, its integer value, or its name (any case)."""
    if isinstance(value, str):
        try:
            return enum_cls[value.upper()]
        except KeyError:
            raise ValueError(
                f"{enum_cls.__name__} must be one of "
                f"{[m.name.lower() for m in enum_cls]}, got {value!r}"
            ) from None
    return enum_cls(value)


def _coerce_vector(name: str, value: Any, size: int) -> tuple[float, ...]:
    values = tuple(float(v) for v in value)
    if len(values) != size:
        raise ValueError(f"{name} must have {size} components, got {len(values)}")
    return values


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class DiffusionProfile:
    """Tunable parameters of one diffusion profile.

    Parameters
    ----------
    name : str
        Display name, not part of the baked data.
    scattering_distance : tuple[float, float, float]
        Per-channel distance at which the diffuse reflectance decays to
        near zero.  Zero on a channel disables scattering for it.
    transmission_tint : tuple[float, float, float]
        HDR color of light transmitted through thin geometry.
    texturing_mode : TexturingMode
        Consumed by the shader only.
    transmission_mode : TransmissionMode
        Consumed by the shader only.
    thickness_remap : tuple[float, float]
        ``(min, max)`` thickness in mm.
    world_scale : float
        Size of the world unit in meters.
    ior : float
        Index of refraction; 1.4 is typical for skin.
    hash_id : int
        Opaque uint32 key used by shaders to find the profile's slot.
        Assigned by the caller; never generated here.  Wrapped into
        uint32 on assignment.
    max_iterations : int
        Init-only solver ceiling for the validation run on construction.
    """

    name: str = "Diffusion Profile"
    scattering_distance: tuple[float, float, float] = (0.5, 0.5, 0.5)
    transmission_tint: tuple[float, float, float] = (1.0, 1.0, 1.0)
    texturing_mode: TexturingMode = TexturingMode.PRE_AND_POST_SCATTER
    transmission_mode: TransmissionMode = TransmissionMode.THIN_OBJECT
    thickness_remap: tuple[float, float] = (0.0, 5.0)
    world_scale: float = 1.0
    ior: float = 1.4
    hash_id: int = 0
    max_iterations: InitVar[int] = MAX_SOLVER_ITERATIONS

    def __post_init__(self, max_iterations: int) -> None:
        self._shape_param: np.ndarray | None = None
        self._max_radius: float = 0.0
        self._near_field: np.ndarray | None = None
        self._far_field: np.ndarray | None = None
        self._half_rcp_weighted_variances = np.zeros(4, dtype=np.float64)
        self.validate(max_iterations=max_iterations)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _COLOR_FIELDS:
            value = _coerce_vector(name, value, 3)
        elif name == "thickness_remap":
            value = _coerce_vector(name, value, 2)
        elif name in ("world_scale", "ior"):
            value = float(value)
        elif name == "texturing_mode":
            value = _coerce_enum(TexturingMode, value)
        elif name == "transmission_mode":
            value = _coerce_enum(TransmissionMode, value)
        elif name == "hash_id":
            value = int(value) & UINT32_MAX

        object.__setattr__(self, name, value)
        if name in _TUNABLE_FIELDS:
            object.__setattr__(self, "_stale", True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiffusionProfile):
            return NotImplemented
        return all(getattr(self, f) == getattr(other, f) for f in sorted(_TUNABLE_FIELDS))

    __hash__ = None  # mutable

    # -- Validation ---------------------------------------------------------

    @property
    def is_stale(self) -> bool:
        """True when tunable fields changed since the last :meth:`validate`."""
        return self._stale

    def validate(self, max_iterations: int = MAX_SOLVER_ITERATIONS) -> DiffusionProfile:
        """Clamp tunable fields into range, then regenerate the kernels.

        Out-of-range values are clamped, never rejected:

        * ``thickness_remap``: ``max >= 0``, ``min`` in ``[0, max]``
        * ``world_scale >= 0.001``
        * ``ior`` in ``[1, 2]``
        * negative or non-finite color components → 0

        Returns
        -------
        DiffusionProfile
            ``self``, for chaining

        Raises
        ------
        disney.ConvergenceError
            If kernel generation fails; the profile then stays stale.
        """
        t_min, t_max = self.thickness_remap
        t_max = max(t_max, 0.0)
        t_min = min(max(t_min, 0.0), t_max)
        self._set_clamped("thickness_remap", (t_min, t_max))
        self._set_clamped("world_scale", max(self.world_scale, 0.001))
        self._set_clamped("ior", min(max(self.ior, 1.0), 2.0))
        for name in _COLOR_FIELDS:
            # NaN and inf read as "no scattering" on that channel
            clamped = tuple(c if math.isfinite(c) and c > 0.0 else 0.0 for c in getattr(self, name))
            self._set_clamped(name, clamped)

        self.update_kernel(max_iterations=max_iterations)
        return self

    def _set_clamped(self, name: str, value: Any) -> None:
        current = getattr(self, name)
        if current != value:
            logger.debug("Profile '%s': clamped %s from %r to %r", self.name, name, current, value)
            setattr(self, name, value)

    def update_kernel(self, max_iterations: int = MAX_SOLVER_ITERATIONS) -> None:
        """Regenerate shape parameter, near/far kernels and max radius together.

        Fields are not clamped here; call :meth:`validate` after editing.
        """
        shape = kernel.shape_param(self.scattering_distance)
        s = kernel.importance_shape(shape)

        near = kernel.generate_kernel(SSS_N_SAMPLES_NEAR_FIELD, s, max_iterations=max_iterations)
        far = kernel.generate_kernel(SSS_N_SAMPLES_FAR_FIELD, s, max_iterations=max_iterations)

        for a in (shape, near, far):
            a.flags.writeable = False

        self._shape_param = shape
        self._near_field = near
        self._far_field = far
        self._max_radius = float(far[-1, 0])
        object.__setattr__(self, "_stale", False)

        logger.debug(
            "Profile '%s': regenerated kernels (s=%.6g, max_radius=%.6g mm)",
            self.name, s, self._max_radius,
        )

    # -- Derived fields -----------------------------------------------------

    def _require_fresh(self) -> None:
        if self._stale:
            raise StaleProfileError(
                f"Profile '{self.name}' was modified; call validate() before "
                f"reading derived fields"
            )

    @property
    def shape_param(self) -> np.ndarray:
        """Per-channel ``S = 1 / D`` (read-only, shape ``(3,)``)."""
        self._require_fresh()
        return self._shape_param

    @property
    def max_radius(self) -> float:
        """Radius of the last far-field sample, in mm."""
        self._require_fresh()
        return self._max_radius

    @property
    def filter_kernel_near_field(self) -> np.ndarray:
        """``(55, 2)`` array of ``(radius, 1 / pdf)`` (read-only)."""
        self._require_fresh()
        return self._near_field

    @property
    def filter_kernel_far_field(self) -> np.ndarray:
        """``(21, 2)`` array of ``(radius, 1 / pdf)`` (read-only)."""
        self._require_fresh()
        return self._far_field

    @property
    def half_rcp_weighted_variances(self) -> np.ndarray:
        # Always zero; the slot is reserved in the shader layout.
        self._require_fresh()
        return self._half_rcp_weighted_variances

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Tunable fields as plain YAML/JSON-safe values."""
        return {
            "name": self.name,
            "hash_id": self.hash_id,
            "scattering_distance": list(self.scattering_distance),
            "transmission_tint": list(self.transmission_tint),
            "texturing_mode": self.texturing_mode.name.lower(),
            "transmission_mode": self.transmission_mode.name.lower(),
            "thickness_remap": list(self.thickness_remap),
            "world_scale": self.world_scale,
            "ior": self.ior,
        }
