"""Fixed layout constants shared with the consuming shaders.

These values are part of the constant-buffer contract: the shading stage
indexes kernel arrays and the profile table by them, so changing any of
them requires rebuilding the shaders.
"""

DIFFUSION_PROFILE_COUNT = 17
"""Max. number of profiles, including the slot taken by the neutral profile."""

DIFFUSION_PROFILE_NEUTRAL_ID = 0
"""Reserved slot that does not result in blurring."""

SSS_N_SAMPLES_NEAR_FIELD = 55
"""Kernel size used for extreme close-ups; must be a Fibonacci number."""

SSS_N_SAMPLES_FAR_FIELD = 21
"""Kernel size used at a regular distance; must be a Fibonacci number."""

SSS_LOD_THRESHOLD = 4
"""Screen-space radius (pixels) above which the near-field kernel is used."""

DEFAULT_FRESNEL0 = 0.04
"""Fresnel reflectance at normal incidence of the neutral slot (default specular)."""

MAX_SOLVER_ITERATIONS = 64
"""Ceiling on accepted Halley steps in the inverse-CDF solver."""

UINT32_MAX = 0xFFFFFFFF
