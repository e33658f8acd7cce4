"""Bake a profile library into render-ready constants.

Pipeline:
    1. Load and validate the profile library (YAML)
    2. Validate every profile (clamp + regenerate kernels)
    3. Pack the neutral slot and all profiles into a ProfileTable
    4. Write ``diffusion_profiles.npz`` (stacked float32 arrays)
    5. Write ``diffusion_profiles_manifest.yaml`` (slots, radii, hashes)

Both files are written atomically, so a renderer watching the output
directory never loads a partial bake.

Output structure:
    <output_dir>/
        diffusion_profiles.npz
        diffusion_profiles_manifest.yaml

Used by:
    - CLI: scripts/bake_profiles.py
    - Tests and embedding tools: bake_main() callable
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from diffusion_profile import __version__
from diffusion_profile.cache.table import ProfileTable
from diffusion_profile.configs.loader import DEFAULT_CONFIG_PATH, load_config
from diffusion_profile.constants import SSS_N_SAMPLES_FAR_FIELD, SSS_N_SAMPLES_NEAR_FIELD
from diffusion_profile.utils import fs, hashing
from diffusion_profile.utils.logging_config import pop_context, push_context

logger = logging.getLogger(__name__)

NPZ_NAME = "diffusion_profiles.npz"
MANIFEST_NAME = "diffusion_profiles_manifest.yaml"


def build_manifest(
    table: ProfileTable,
    config_path: Path,
    npz_path: Path,
) -> Dict[str, Any]:
    """Describe a baked table: per-slot profile info plus provenance hashes."""
    profiles = []
    for profile in table.profiles:
        profiles.append({
            "name": profile.name,
            "hash_id": profile.hash_id,
            "slot": table.index_of(profile.hash_id),
            "max_radius_mm": float(profile.max_radius),
            "shape_param": [float(s) for s in profile.shape_param],
            "fingerprint": hashing.profile_fingerprint(profile),
        })

    return {
        "generator": f"diffusion_profile {__version__}",
        "samples": {
            "near_field": SSS_N_SAMPLES_NEAR_FIELD,
            "far_field": SSS_N_SAMPLES_FAR_FIELD,
        },
        "config_sha256": hashing.sha256_file(config_path),
        "npz_sha256": hashing.sha256_file(npz_path),
        "profiles": profiles,
    }


def bake_main(
    config_path: Optional[Union[str, Path]] = None,
    output_dir: Union[str, Path] = "outputs/diffusion_profiles",
) -> Dict[str, Any]:
    """Bake the library at ``config_path`` into ``output_dir``.

    Parameters
    ----------
    config_path : str | Path | None
        Profile library; None uses the packaged defaults
    output_dir : str | Path
        Destination directory, created if missing

    Returns
    -------
    dict
        {"table": ProfileTable, "npz_path": Path, "manifest_path": Path,
         "manifest": dict}

    Raises
    ------
    FileNotFoundError
        If the library does not exist
    ConfigError
        If the library fails validation
    ConvergenceError
        If a kernel cannot be generated
    ProfileTableError
        If profiles cannot be assigned to slots
    """
    config_path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    output_dir = fs.ensure_dir(output_dir)

    push_context(library=config_path.name)
    try:
        cfg = load_config(config_path)

        table = ProfileTable(cfg.build_profiles())

        npz_path = output_dir / NPZ_NAME
        fs.atomic_save_npz(table.as_arrays(), npz_path)
        logger.info("Wrote %s", npz_path)

        manifest = build_manifest(table, config_path, npz_path)
        manifest_path = output_dir / MANIFEST_NAME
        fs.atomic_yaml_dump(manifest, manifest_path)
        logger.info("Wrote %s", manifest_path)
    finally:
        pop_context(keys=["library"])

    return {
        "table": table,
        "npz_path": npz_path,
        "manifest_path": manifest_path,
        "manifest": manifest,
    }
