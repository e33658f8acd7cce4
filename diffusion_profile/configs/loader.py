"""Profile library loader.

Loads ``profiles.yaml`` (schema ``diffusion_profiles.v1``) and validates
its *structure* with pydantic: required keys, types, vector lengths, enum
names, unique names and hash ids.  Physical ranges are not checked here;
:meth:`DiffusionProfile.validate` clamps them to the nearest valid value.

Usage::

    from diffusion_profile.configs.loader import load_config
    cfg = load_config()                        # packaged defaults
    cfg = load_config("/studio/profiles.yaml") # explicit path
    profiles = cfg.build_profiles()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from diffusion_profile.constants import DIFFUSION_PROFILE_COUNT, MAX_SOLVER_ITERATIONS, UINT32_MAX
from diffusion_profile.core.profile import DiffusionProfile
from diffusion_profile.utils.fs import load_yaml
from diffusion_profile.utils.logging_config import pop_context, push_context

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "diffusion_profiles.v1"

DEFAULT_CONFIG_PATH = Path(__file__).parent / "profiles.yaml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when a profile library fails to load or validate."""

    pass


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class SolverSettings(BaseModel):
    """Inverse-CDF solver limits."""
    model_config = ConfigDict(extra="forbid")

    max_iterations: int = Field(MAX_SOLVER_ITERATIONS, ge=1, le=10_000, description="Halley step ceiling")


class RotateSettings(BaseModel):
    """Log file rotation, by size or by time."""
    model_config = ConfigDict(extra="forbid")

    mode: Literal["size", "time"] = "size"
    max_bytes: Optional[int] = Field(None, gt=0, description="Size mode: bytes per file")
    when: Optional[str] = Field(None, description="Time mode: TimedRotatingFileHandler 'when'")
    interval: Optional[int] = Field(None, gt=0, description="Time mode: rotation interval")
    backup_count: Optional[int] = Field(None, ge=0, description="Rotated files kept")


class LoggingSettings(BaseModel):
    """Keyword arguments for ``setup_logging``."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    log_level: str = Field("INFO", description="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    log_file: Optional[str] = Field(None, description="Optional log file path")
    json_format: bool = Field(False, alias="json", description="JSON lines instead of human format")
    color: bool = Field(True, description="ANSI colors on a TTY console")
    tz: Literal["UTC", "local"] = Field("UTC", description="Timestamp zone")
    rotate: Optional[RotateSettings] = Field(None, description="Rotate log_file; None keeps one file")
    quiet_libs: List[str] = Field(default_factory=list, description="Loggers forced to WARNING")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}, got '{v}'")
        return v.upper()

    def to_setup_kwargs(self) -> dict[str, Any]:
        return {
            "log_level": self.log_level,
            "log_file": self.log_file,
            "json": self.json_format,
            "color": self.color,
            "tz": self.tz,
            "rotate": self.rotate.model_dump(exclude_none=True) if self.rotate else None,
            "quiet_libs": list(self.quiet_libs),
        }


class ProfileEntry(BaseModel):
    """One diffusion profile as written in the library."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Display name")
    hash_id: int = Field(..., ge=1, le=UINT32_MAX, description="Shader lookup key (0 is the neutral slot)")
    scattering_distance: Tuple[float, float, float] = Field((0.5, 0.5, 0.5), description="Per-channel distance")
    transmission_tint: Tuple[float, float, float] = Field((1.0, 1.0, 1.0), description="HDR tint")
    texturing_mode: Literal["pre_and_post_scatter", "post_scatter"] = "pre_and_post_scatter"
    transmission_mode: Literal["regular", "thin_object"] = "thin_object"
    thickness_remap: Tuple[float, float] = Field((0.0, 5.0), description="(min, max) thickness in mm")
    world_scale: float = Field(1.0, description="Meters per world unit")
    ior: float = Field(1.4, description="Index of refraction")

    def build(self, max_iterations: int = MAX_SOLVER_ITERATIONS) -> DiffusionProfile:
        """Instantiate the profile; construction validates it once with ``max_iterations``."""
        return DiffusionProfile(**self.model_dump(), max_iterations=max_iterations)


class DiffusionProfilesV1(BaseModel):
    """Profile library schema v1."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_version: str = Field(..., alias="schema", description="Schema version")
    solver: SolverSettings = Field(default_factory=SolverSettings)
    logging_settings: LoggingSettings = Field(default_factory=LoggingSettings, alias="logging")
    profiles: List[ProfileEntry] = Field(
        ..., min_length=1, max_length=DIFFUSION_PROFILE_COUNT - 1, description="Profiles in slot order"
    )

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != SCHEMA_VERSION:
            raise ValueError(f"Expected schema '{SCHEMA_VERSION}', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_unique_keys(self) -> 'DiffusionProfilesV1':
        for key in ("name", "hash_id"):
            values = [getattr(p, key) for p in self.profiles]
            duplicates = sorted({v for v in values if values.count(v) > 1}, key=str)
            if duplicates:
                raise ValueError(f"Duplicate profile {key}(s): {duplicates}")
        return self

    def build_profiles(self) -> list[DiffusionProfile]:
        """Instantiate and validate every profile in slot order.

        Raises
        ------
        ConvergenceError
            If a profile's kernels cannot be generated
        """
        profiles = []
        for entry in self.profiles:
            push_context(profile=entry.name)
            try:
                profile = entry.build(max_iterations=self.solver.max_iterations)
                logger.info(
                    "Validated (hash_id=%d, max_radius=%.4f mm)",
                    profile.hash_id, profile.max_radius,
                )
            finally:
                pop_context(keys=["profile"])
            profiles.append(profile)
        return profiles


BakeConfig = DiffusionProfilesV1


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(path: Union[str, Path, None] = None) -> DiffusionProfilesV1:
    """Load and validate a profile library from YAML.

    Parameters
    ----------
    path : str | Path | None
        Library path.  ``None`` loads the defaults shipped with this module.

    Returns
    -------
    DiffusionProfilesV1
        Validated library

    Raises
    ------
    FileNotFoundError
        If *path* does not exist
    ConfigError
        If the YAML cannot be parsed or fails schema validation
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Profile library not found: {path}")

    logger.info("Loading diffusion profiles from %s", path)

    try:
        data = load_yaml(path)
    except yaml.YAMLError as e:
        raise ConfigError(str(e)) from e

    if data is None:
        raise ConfigError(f"Empty profile library: {path}")
    if not isinstance(data, dict):
        raise ConfigError(f"Profile library {path} must be a mapping, got {type(data).__name__}")

    try:
        cfg = DiffusionProfilesV1.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Profile library validation failed at {path}: {e}") from e

    logger.info("Loaded %d profile(s)", len(cfg.profiles))
    return cfg
