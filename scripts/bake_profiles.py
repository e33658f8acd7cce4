#!/usr/bin/env python3
"""
Bake Diffusion Profiles.

Validate a profile library and write the packed constants a
subsurface-scattering pass uploads (``diffusion_profiles.npz``) plus a
manifest with slots, max radii and provenance hashes.

Usage:
    python scripts/bake_profiles.py
    python scripts/bake_profiles.py --config studio/profiles.yaml --output build/sss
    python scripts/bake_profiles.py --log-level DEBUG --json-logs

Exit codes:
    0: Bake succeeded
    1: Config, solver or slot assignment failure (details are logged)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from diffusion_profile.bake import bake_main
from diffusion_profile.cache.table import ProfileTableError
from diffusion_profile.configs.loader import ConfigError, load_config
from diffusion_profile.core.disney import ConvergenceError
from diffusion_profile.utils.logging_config import install_excepthook, setup_logging, shutdown

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Bake diffusion profiles into render-ready constants",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Profile library YAML (default: packaged profiles.yaml)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="outputs/diffusion_profiles",
        help="Output directory",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the library's logging.log_level",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (FileNotFoundError, ConfigError) as e:
        setup_logging(context={"app": "bake"})
        logger.error("Error loading profile library: %s", e)
        return 1

    log_kwargs = cfg.logging_settings.to_setup_kwargs()
    if args.log_level:
        log_kwargs["log_level"] = args.log_level
    if args.json_logs:
        log_kwargs["json"] = True
    setup_logging(**log_kwargs, context={"app": "bake"})
    install_excepthook()

    try:
        result = bake_main(args.config, args.output)
    except (ConfigError, ConvergenceError, ProfileTableError) as e:
        logger.error("Bake failed: %s", e)
        return 1

    logger.info(
        "Baked %d profile(s) into %s",
        len(result["table"].profiles), result["npz_path"].parent,
    )
    return 0


if __name__ == "__main__":
    exit_code = main()
    shutdown()
    sys.exit(exit_code)
