"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Atomic I/O and YAML (fs)
    - Hashing for provenance (hashing)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (core, cache, configs, bake).

Convenience imports:
    from diffusion_profile.utils import fs, hashing
    from diffusion_profile.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import hashing
from . import logging_config

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    'fs',
    'hashing',
    'logging_config',
    'setup_logging',
    'get_logger',
    'push_context',
]
