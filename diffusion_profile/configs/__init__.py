"""Profile library loading and validation."""

from diffusion_profile.configs.loader import (
    DEFAULT_CONFIG_PATH,
    SCHEMA_VERSION,
    BakeConfig,
    ConfigError,
    DiffusionProfilesV1,
    ProfileEntry,
    load_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_VERSION",
    "BakeConfig",
    "ConfigError",
    "DiffusionProfilesV1",
    "ProfileEntry",
    "load_config",
]
