"""Tests for DiffusionProfile: defaults, clamping, kernels and invalidation.

Validates that:
    - A new profile is validated and carries fresh kernels
    - validate() clamps out-of-range fields instead of rejecting them
    - Kernels, shape parameter and max radius are regenerated together
    - Editing a tunable field makes derived fields unreadable until validate()
    - Equality compares tunable fields only

Run:
    pytest tests/test_profile.py -v
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from diffusion_profile.constants import SSS_N_SAMPLES_FAR_FIELD, SSS_N_SAMPLES_NEAR_FIELD
from diffusion_profile.core import kernel
from diffusion_profile.core.disney import ConvergenceError
from diffusion_profile.core.profile import (
    DiffusionProfile,
    StaleProfileError,
    TexturingMode,
    TransmissionMode,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def unit_profile() -> DiffusionProfile:
    """Profile with a scattering distance of 1 on every channel."""
    return DiffusionProfile(name="unit", scattering_distance=(1.0, 1.0, 1.0), hash_id=7)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_default_fields(self) -> None:
        p = DiffusionProfile()
        assert p.name == "Diffusion Profile"
        assert p.scattering_distance == (0.5, 0.5, 0.5)
        assert p.transmission_tint == (1.0, 1.0, 1.0)
        assert p.texturing_mode is TexturingMode.PRE_AND_POST_SCATTER
        assert p.transmission_mode is TransmissionMode.THIN_OBJECT
        assert p.thickness_remap == (0.0, 5.0)
        assert p.world_scale == 1.0
        assert p.ior == 1.4
        assert p.hash_id == 0

    def test_new_profile_is_fresh(self) -> None:
        p = DiffusionProfile()
        assert not p.is_stale
        np.testing.assert_allclose(p.shape_param, [2.0, 2.0, 2.0])

    def test_half_rcp_weighted_variances_is_zero(self) -> None:
        np.testing.assert_array_equal(DiffusionProfile().half_rcp_weighted_variances, np.zeros(4))


# ---------------------------------------------------------------------------
# Validation (clamping)
# ---------------------------------------------------------------------------


class TestValidation:
    def test_negative_thickness_min_clamped(self) -> None:
        p = DiffusionProfile(thickness_remap=(-1.0, 10.0))
        assert p.thickness_remap == (0.0, 10.0)

    def test_thickness_min_clamped_to_max(self) -> None:
        p = DiffusionProfile(thickness_remap=(6.0, 2.0))
        assert p.thickness_remap == (2.0, 2.0)

    def test_negative_thickness_max_clamped(self) -> None:
        p = DiffusionProfile(thickness_remap=(1.0, -3.0))
        assert p.thickness_remap == (0.0, 0.0)

    def test_world_scale_floor(self) -> None:
        p = DiffusionProfile(world_scale=0.0)
        assert p.world_scale == 0.001

    @pytest.mark.parametrize("ior, expected", [(3.0, 2.0), (0.5, 1.0), (1.33, 1.33)])
    def test_ior_range(self, ior: float, expected: float) -> None:
        assert DiffusionProfile(ior=ior).ior == expected

    def test_negative_colors_clamped(self) -> None:
        p = DiffusionProfile(scattering_distance=(-1.0, 0.5, 0.5), transmission_tint=(1.0, -2.0, 0.0))
        assert p.scattering_distance == (0.0, 0.5, 0.5)
        assert p.transmission_tint == (1.0, 0.0, 0.0)

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_distance_disables_channel(self, bad: float) -> None:
        p = DiffusionProfile(scattering_distance=(bad, 1.0, 1.0))
        assert p.scattering_distance == (0.0, 1.0, 1.0)
        assert np.isposinf(p.shape_param[0])
        assert math.isfinite(p.max_radius)
        np.testing.assert_array_equal(
            p.filter_kernel_near_field, kernel.generate_kernel(SSS_N_SAMPLES_NEAR_FIELD, 1.0)
        )

    def test_nan_tint_clamped(self) -> None:
        assert DiffusionProfile(transmission_tint=(math.nan, 0.5, 1.0)).transmission_tint == (0.0, 0.5, 1.0)

    def test_hash_id_wrapped_to_uint32(self) -> None:
        assert DiffusionProfile(hash_id=-1).hash_id == 0xFFFFFFFF
        assert DiffusionProfile(hash_id=(1 << 32) + 5).hash_id == 5

    def test_hash_id_wrapped_on_assignment(self, unit_profile: DiffusionProfile) -> None:
        unit_profile.hash_id = -1
        assert unit_profile.hash_id == 0xFFFFFFFF
        unit_profile.hash_id = (1 << 32) + 9
        assert unit_profile.hash_id == 9
        assert not unit_profile.is_stale

    def test_construction_uses_given_solver_cap(self, monkeypatch: pytest.MonkeyPatch) -> None:
        caps = []
        original = kernel.generate_kernel

        def spy(n, s, max_iterations):
            caps.append(max_iterations)
            return original(n, s, max_iterations=max_iterations)

        monkeypatch.setattr(kernel, "generate_kernel", spy)
        DiffusionProfile(max_iterations=500)
        assert caps == [500, 500]

    def test_construction_cap_too_low_raises(self) -> None:
        with pytest.raises(ConvergenceError):
            DiffusionProfile(max_iterations=1)

    def test_solver_cap_is_not_a_field(self) -> None:
        assert "max_iterations" not in DiffusionProfile(max_iterations=100).to_dict()

    def test_validate_is_idempotent(self, unit_profile: DiffusionProfile) -> None:
        before = unit_profile.filter_kernel_near_field.copy()
        unit_profile.validate()
        assert unit_profile.thickness_remap == (0.0, 5.0)
        np.testing.assert_array_equal(unit_profile.filter_kernel_near_field, before)

    def test_validate_returns_self(self, unit_profile: DiffusionProfile) -> None:
        assert unit_profile.validate() is unit_profile


# ---------------------------------------------------------------------------
# Kernels
# ---------------------------------------------------------------------------


class TestKernels:
    def test_unit_distance_end_to_end(self, unit_profile: DiffusionProfile) -> None:
        np.testing.assert_allclose(unit_profile.shape_param, [1.0, 1.0, 1.0])
        assert unit_profile.filter_kernel_near_field.shape == (SSS_N_SAMPLES_NEAR_FIELD, 2)
        assert unit_profile.filter_kernel_far_field.shape == (SSS_N_SAMPLES_FAR_FIELD, 2)
        assert unit_profile.max_radius == unit_profile.filter_kernel_far_field[-1, 0]

    def test_kernels_match_generator(self, unit_profile: DiffusionProfile) -> None:
        np.testing.assert_array_equal(
            unit_profile.filter_kernel_near_field,
            kernel.generate_kernel(SSS_N_SAMPLES_NEAR_FIELD, 1.0),
        )

    def test_widest_channel_drives_sampling(self) -> None:
        p = DiffusionProfile(scattering_distance=(0.25, 2.0, 1.0))
        np.testing.assert_array_equal(
            p.filter_kernel_far_field, kernel.generate_kernel(SSS_N_SAMPLES_FAR_FIELD, 0.5)
        )

    def test_larger_distance_larger_radius(self) -> None:
        small = DiffusionProfile(scattering_distance=(0.5, 0.5, 0.5))
        large = DiffusionProfile(scattering_distance=(2.0, 2.0, 2.0))
        assert large.max_radius == pytest.approx(4.0 * small.max_radius)

    def test_disabled_profile(self) -> None:
        p = DiffusionProfile(scattering_distance=(0.0, 0.0, 0.0))
        assert np.all(np.isposinf(p.shape_param))
        assert p.max_radius == 0.0
        np.testing.assert_array_equal(p.filter_kernel_near_field, np.zeros((55, 2)))

    def test_partially_disabled_channel(self) -> None:
        p = DiffusionProfile(scattering_distance=(0.0, 1.0, 1.0))
        assert math.isinf(p.shape_param[0])
        np.testing.assert_array_equal(
            p.filter_kernel_near_field, kernel.generate_kernel(SSS_N_SAMPLES_NEAR_FIELD, 1.0)
        )

    def test_derived_arrays_are_read_only(self, unit_profile: DiffusionProfile) -> None:
        with pytest.raises(ValueError):
            unit_profile.filter_kernel_near_field[0, 0] = 1.0
        with pytest.raises(ValueError):
            unit_profile.shape_param[0] = 1.0


# ---------------------------------------------------------------------------
# Invalidation
# ---------------------------------------------------------------------------


class TestInvalidation:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("scattering_distance", (2.0, 2.0, 2.0)),
            ("transmission_tint", (0.5, 0.5, 0.5)),
            ("texturing_mode", TexturingMode.POST_SCATTER),
            ("transmission_mode", TransmissionMode.REGULAR),
            ("thickness_remap", (1.0, 2.0)),
            ("world_scale", 0.01),
            ("ior", 1.5),
        ],
    )
    def test_tunable_edit_marks_stale(self, unit_profile: DiffusionProfile, field: str, value) -> None:
        setattr(unit_profile, field, value)
        assert unit_profile.is_stale
        with pytest.raises(StaleProfileError):
            _ = unit_profile.filter_kernel_near_field
        with pytest.raises(StaleProfileError):
            _ = unit_profile.max_radius

    @pytest.mark.parametrize("field, value", [("name", "renamed"), ("hash_id", 99)])
    def test_identity_edit_keeps_fresh(self, unit_profile: DiffusionProfile, field: str, value) -> None:
        setattr(unit_profile, field, value)
        assert not unit_profile.is_stale

    def test_validate_regenerates(self, unit_profile: DiffusionProfile) -> None:
        old_radius = unit_profile.max_radius
        unit_profile.scattering_distance = (2.0, 2.0, 2.0)
        unit_profile.validate()
        assert not unit_profile.is_stale
        assert unit_profile.max_radius == pytest.approx(2.0 * old_radius)
        np.testing.assert_allclose(unit_profile.shape_param, [0.5, 0.5, 0.5])

    def test_failed_validate_stays_stale(self, unit_profile: DiffusionProfile) -> None:
        unit_profile.scattering_distance = (2.0, 2.0, 2.0)
        with pytest.raises(ConvergenceError):
            unit_profile.validate(max_iterations=1)
        assert unit_profile.is_stale
        with pytest.raises(StaleProfileError):
            _ = unit_profile.shape_param


# ---------------------------------------------------------------------------
# Coercion, equality and serialization
# ---------------------------------------------------------------------------


class TestCoercion:
    def test_enum_from_name(self) -> None:
        p = DiffusionProfile(texturing_mode="post_scatter", transmission_mode="REGULAR")
        assert p.texturing_mode is TexturingMode.POST_SCATTER
        assert p.transmission_mode is TransmissionMode.REGULAR

    def test_enum_from_int(self) -> None:
        assert DiffusionProfile(transmission_mode=0).transmission_mode is TransmissionMode.REGULAR

    def test_unknown_enum_name_raises(self) -> None:
        with pytest.raises(ValueError, match="post_scatter"):
            DiffusionProfile(texturing_mode="subsurface")

    def test_vector_length_checked(self) -> None:
        with pytest.raises(ValueError, match="3 components"):
            DiffusionProfile(scattering_distance=(1.0, 1.0))

    def test_vectors_stored_as_float_tuples(self) -> None:
        p = DiffusionProfile(scattering_distance=np.array([1, 2, 3]))
        assert p.scattering_distance == (1.0, 2.0, 3.0)
        assert all(type(c) is float for c in p.scattering_distance)


class TestEquality:
    def test_equal_tunables_equal(self) -> None:
        assert DiffusionProfile(name="a", hash_id=1) == DiffusionProfile(name="b", hash_id=2)

    def test_different_tunables_differ(self) -> None:
        assert DiffusionProfile(ior=1.3) != DiffusionProfile(ior=1.4)

    def test_unhashable(self) -> None:
        with pytest.raises(TypeError):
            hash(DiffusionProfile())


class TestToDict:
    def test_plain_values(self, unit_profile: DiffusionProfile) -> None:
        d = unit_profile.to_dict()
        assert d == {
            "name": "unit",
            "hash_id": 7,
            "scattering_distance": [1.0, 1.0, 1.0],
            "transmission_tint": [1.0, 1.0, 1.0],
            "texturing_mode": "pre_and_post_scatter",
            "transmission_mode": "thin_object",
            "thickness_remap": [0.0, 5.0],
            "world_scale": 1.0,
            "ior": 1.4,
        }

    def test_round_trips_through_constructor(self, unit_profile: DiffusionProfile) -> None:
        assert DiffusionProfile(**unit_profile.to_dict()) == unit_profile
