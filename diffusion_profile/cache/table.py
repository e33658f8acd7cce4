"""Fixed-size table of profile caches for constant-buffer upload.

Slot ``DIFFUSION_PROFILE_NEUTRAL_ID`` (0) always holds the neutral
cache; user profiles fill slots 1..16 in the order given.  Shaders find a
profile's slot from its externally assigned ``hash_id``; ``hash_id = 0``
is reserved for the neutral slot.

Usage::

    table = ProfileTable([skin, marble])
    arrays = table.as_arrays()      # stacked float32, ready to upload
    slot = table.index_of(skin.hash_id)
"""

from __future__ import annotations

import logging
from typing import Iterable

import numpy as np

from diffusion_profile.cache.packer import (
    CACHE_FIELDS,
    DiffusionProfileCache,
    neutral_cache,
    pack_profile,
)
from diffusion_profile.constants import DIFFUSION_PROFILE_COUNT, DIFFUSION_PROFILE_NEUTRAL_ID
from diffusion_profile.core.profile import DiffusionProfile

logger = logging.getLogger(__name__)


class ProfileTableError(ValueError):
    """Raised when profiles cannot be assigned to table slots."""

    pass


class ProfileTable:
    """Neutral slot plus up to ``DIFFUSION_PROFILE_COUNT - 1`` profile caches.

    Parameters
    ----------
    profiles : Iterable[DiffusionProfile]
        Validated profiles with unique, non-zero ``hash_id`` values

    Raises
    ------
    ProfileTableError
        Too many profiles, a zero ``hash_id``, or a duplicate ``hash_id``
    StaleProfileError
        If a profile was modified without re-validating
    """

    capacity = DIFFUSION_PROFILE_COUNT - 1

    def __init__(self, profiles: Iterable[DiffusionProfile] = ()) -> None:
        self._profiles: list[DiffusionProfile] = list(profiles)
        self._check_slots()
        self._caches: list[DiffusionProfileCache] = []
        self.refresh()

    def _check_slots(self) -> None:
        if len(self._profiles) > self.capacity:
            raise ProfileTableError(
                f"At most {self.capacity} diffusion profiles fit next to the "
                f"neutral slot, got {len(self._profiles)}"
            )

        seen: dict[int, str] = {}
        for profile in self._profiles:
            if profile.hash_id == 0:
                raise ProfileTableError(
                    f"Profile '{profile.name}' has hash_id 0, which is "
                    f"reserved for the neutral profile"
                )
            if profile.hash_id in seen:
                raise ProfileTableError(
                    f"Profiles '{seen[profile.hash_id]}' and '{profile.name}' "
                    f"share hash_id {profile.hash_id}"
                )
            seen[profile.hash_id] = profile.name

    def refresh(self) -> None:
        """Repack every slot from the current profile state."""
        self._check_slots()
        self._caches = [neutral_cache()] + [pack_profile(p) for p in self._profiles]
        logger.info(
            "Packed %d diffusion profile(s) into a %d-slot table",
            len(self._profiles), DIFFUSION_PROFILE_COUNT,
        )

    def __len__(self) -> int:
        """Number of occupied slots, including the neutral slot."""
        return len(self._caches)

    @property
    def profiles(self) -> tuple[DiffusionProfile, ...]:
        return tuple(self._profiles)

    def index_of(self, hash_id: int) -> int:
        """Slot index for ``hash_id`` (0 maps to the neutral slot).

        Raises
        ------
        KeyError
            If no profile carries ``hash_id``
        """
        if hash_id == 0:
            return DIFFUSION_PROFILE_NEUTRAL_ID
        for i, profile in enumerate(self._profiles, start=1):
            if profile.hash_id == hash_id:
                return i
        raise KeyError(f"No diffusion profile with hash_id {hash_id}")

    def cache_at(self, index: int) -> DiffusionProfileCache:
        """Cache stored in slot ``index``; unused slots read as neutral."""
        if not 0 <= index < DIFFUSION_PROFILE_COUNT:
            raise IndexError(f"Slot {index} out of range [0, {DIFFUSION_PROFILE_COUNT})")
        if index < len(self._caches):
            return self._caches[index]
        return self._caches[DIFFUSION_PROFILE_NEUTRAL_ID]

    def as_arrays(self) -> dict[str, np.ndarray]:
        """Stack every field across all ``DIFFUSION_PROFILE_COUNT`` slots.

        Returns
        -------
        dict[str, np.ndarray]
            One ``(17, 4)`` float32 array per float4 field,
            ``filter_kernels`` as ``(17, 55, 4)``, and ``hash_ids`` as
            ``(17,)`` uint32 (zero for neutral and unused slots).
        """
        slots = [self.cache_at(i) for i in range(DIFFUSION_PROFILE_COUNT)]
        arrays = {
            name: np.stack([getattr(c, name) for c in slots]).astype(np.float32)
            for name in CACHE_FIELDS
        }

        hash_ids = np.zeros(DIFFUSION_PROFILE_COUNT, dtype=np.uint32)
        for i, profile in enumerate(self._profiles, start=1):
            hash_ids[i] = profile.hash_id
        arrays["hash_ids"] = hash_ids
        return arrays
