"""SHA-256 hashing for bake provenance.

Provides:
    - sha256_file(): Hash file contents (source configs, baked archives)
    - sha256_array(): Hash array values (packed kernels)
    - hash_dict(): Hash JSON-serializable dicts with sorted keys
    - profile_fingerprint(): Content hash of a profile's tunable fields

The manifest written by the bake records these so a renderer (or a CI
diff) can tell whether baked constants are out of date.

These hashes are provenance only.  The ``hash_id`` a shader uses to find
a profile's slot is supplied externally and is unrelated.

Note: Module named ``hashing`` to avoid shadowing builtin ``hash()``.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping, Union

import numpy as np


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Hex SHA-256 of a file, read in ``chunk_size`` blocks (default 1 MB).

    Used for the library YAML and the baked archive in the manifest.

    Raises
    ------
    FileNotFoundError
        If ``path`` is not a file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    digest = hashlib.sha256()
    with path.open('rb') as fh:
        while True:
            block = fh.read(chunk_size)
            if not block:
                break
            digest.update(block)
    return digest.hexdigest()


def sha256_array(a: np.ndarray) -> str:
    """Compute SHA-256 hash of array values.

    Notes
    -----
    Deterministic for identical values, dtype and shape: dtype and shape
    are folded into the digest so a float32 and float64 copy differ.
    """
    a = np.ascontiguousarray(a)
    sha256 = hashlib.sha256()
    sha256.update(f"{a.dtype.str}:{a.shape}".encode('utf-8'))
    sha256.update(a.tobytes())
    return sha256.hexdigest()


def sha256_string(s: str) -> str:
    """Compute SHA-256 hash of a UTF-8 string."""
    return hashlib.sha256(s.encode('utf-8')).hexdigest()


def hash_dict(d: Mapping[str, Any]) -> str:
    """Compute SHA-256 hash of a JSON-serializable dict (sorted keys)."""
    return sha256_string(json.dumps(d, sort_keys=True))


def profile_fingerprint(profile: Any) -> str:
    """Content hash of a profile's tunable fields.

    Parameters
    ----------
    profile : DiffusionProfile or Mapping
        Anything with ``to_dict()``, or the dict itself

    Returns
    -------
    str
        SHA-256 hex digest; equal profiles give equal fingerprints

    Notes
    -----
    ``name`` and ``hash_id`` are excluded: renaming a profile or moving
    it to a different slot does not change the baked kernels.
    """
    fields = profile.to_dict() if hasattr(profile, "to_dict") else dict(profile)
    fields = {k: v for k, v in fields.items() if k not in ("name", "hash_id")}
    return hash_dict(fields)
