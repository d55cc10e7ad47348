from __future__ import annotations

import hashlib
import logging
from pathlib import Path

logger = logging.getLogger("level_collector.utils")


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str | None:
    """Compute SHA-256 hash of a file. Returns None on error."""
    try:
        h = hashlib.sha256()
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                h.update(chunk)
        return h.hexdigest()
    except OSError:
        logger.warning("Failed to compute SHA-256 hash for %s", path, exc_info=True)
        return None
