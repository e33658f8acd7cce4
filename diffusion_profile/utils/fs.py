"""Atomic filesystem operations for baked outputs and YAML handling.

A renderer hot-reloading ``diffusion_profiles.npz`` must never observe a
truncated archive, so every writer here stages its bytes in a sibling
``.tmp`` file, fsyncs it and renames it over the target.

Provides:
    - atomic_write_bytes / atomic_write_text: staged write + rename
    - atomic_yaml_dump / load_yaml: PyYAML safe dumper and loader
    - atomic_save_npz / load_npz: archives of packed kernel arrays

Usage:
    from diffusion_profile.utils import fs
    fs.atomic_save_npz(table.as_arrays(), out_dir / "diffusion_profiles.npz")
    fs.atomic_yaml_dump(manifest, out_dir / "diffusion_profiles_manifest.yaml")

Note: Module named ``fs`` rather than ``io`` to avoid shadowing stdlib ``io``.
"""

import io
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import numpy as np
import yaml

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create ``p`` (and parents) if missing and return it as a Path."""
    directory = Path(p)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _require_file(path: PathLike, what: str) -> Path:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"{what} not found: {path}")
    return path


def atomic_write_bytes(path: PathLike, data: bytes, tmp_suffix: str = ".tmp") -> None:
    """Replace ``path`` with ``data`` in one rename.

    Parameters
    ----------
    path : str | Path
        Target file; its directory is created if missing
    data : bytes
        Full file contents
    tmp_suffix : str
        Suffix of the staging file next to ``path``, default ".tmp"

    Raises
    ------
    RuntimeError
        If staging or renaming fails; the staging file is removed
    """
    target = Path(path)
    staging = target.with_name(target.name + tmp_suffix)
    ensure_dir(target.parent)

    try:
        with open(staging, 'wb') as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(staging, target)
    except OSError as e:
        staging.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to write {target} atomically: {e}") from e


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    """Text variant of :func:`atomic_write_bytes`."""
    atomic_write_bytes(path, text.encode(encoding))


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Write plain data as block-style YAML, keeping key order.

    Notes
    -----
    Uses ``yaml.safe_dump``; numpy scalars must be converted by the
    caller (``float(x)``) or the dump fails with a RepresenterError.
    """
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_text(path, text)


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file with the safe loader.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    yaml.YAMLError
        If parsing fails; the message names the file
    """
    path = _require_file(path, "YAML file")
    try:
        return yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def atomic_save_npz(arrays: Mapping[str, np.ndarray], path: PathLike) -> None:
    """Save named arrays to an uncompressed ``.npz`` archive atomically.

    Raises
    ------
    ValueError
        If ``arrays`` is empty
    """
    if not arrays:
        raise ValueError("No arrays to save")

    buf = io.BytesIO()
    np.savez(buf, **{name: np.asarray(a) for name, a in arrays.items()})
    atomic_write_bytes(path, buf.getvalue())


def load_npz(path: PathLike) -> Dict[str, np.ndarray]:
    """Load every member of an ``.npz`` archive into a dict."""
    path = _require_file(path, "Archive")
    with np.load(path) as archive:
        return {name: archive[name] for name in archive.files}
