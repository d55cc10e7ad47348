"""
Validation of the on-disk level tree.

A level directory is valid when its ``catalog.json`` parses, carries the
required metadata and level fields, lists a ``dat`` file and every listed
file exists with the recorded size (and hash, when verification is on).
Missing recommended fields are warnings, never errors.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from pathlib import Path
from typing import Any

from level_collector.catalog import LEVEL_CATALOG_FILENAME
from level_collector.models import FileType, Level, LevelFile, MapSource
from level_collector.result import Err, Noop, Ok, Result
from level_collector.utils.hash import sha256_file
from level_collector.utils.io import read_json

logger = logging.getLogger(__name__)

REQUIRED_METADATA_FIELDS = ("id", "title", "author", "source")
RECOMMENDED_METADATA_FIELDS = ("description", "postedDate", "tags", "formatVersion")
REQUIRED_LEVEL_FIELDS = ("indexed", "lastUpdated")


@dataclasses.dataclass
class ValidationResult:
    path: str
    level_id: str | None = None
    source: str | None = None
    errors: list[str] = dataclasses.field(default_factory=list)
    warnings: list[str] = dataclasses.field(default_factory=list)
    file_count: int = 0
    total_size: int = 0
    has_dat_file: bool = False
    has_images: bool = False

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "levelId": self.level_id,
            "source": self.source,
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "fileCount": self.file_count,
            "totalSize": self.total_size,
            "hasDatFile": self.has_dat_file,
            "hasImages": self.has_images,
        }


@dataclasses.dataclass
class ValidationSummary:
    total_levels: int = 0
    valid_levels: int = 0
    levels_with_errors: int = 0
    levels_with_warnings: int = 0
    common_errors: dict[str, int] = dataclasses.field(default_factory=dict)
    common_warnings: dict[str, int] = dataclasses.field(default_factory=dict)
    by_source: dict[str, dict[str, int]] = dataclasses.field(default_factory=dict)
    results: list[ValidationResult] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLevels": self.total_levels,
            "validLevels": self.valid_levels,
            "levelsWithErrors": self.levels_with_errors,
            "levelsWithWarnings": self.levels_with_warnings,
            "commonErrors": dict(self.common_errors),
            "commonWarnings": dict(self.common_warnings),
            "bySource": {key: dict(value) for key, value in self.by_source.items()},
        }


def _check_file(level_dir: Path, level_file: LevelFile, verify_hashes: bool) -> Result:
    if not level_file.filename:
        return Err("file_invalid", "File missing filename")
    if not level_file.path:
        return Err("file_invalid", f"File missing path: {level_file.filename}")
    path = Path(level_file.path)
    if not path.is_absolute():
        path = level_dir / path
    if not path.exists():
        fallback = level_dir / level_file.filename
        if not fallback.exists():
            return Err("file_missing", f"File not found: {level_file.filename}")
        path = fallback
    actual_size = path.stat().st_size
    if level_file.size and abs(actual_size - level_file.size) > 1:
        return Err(
            "size_mismatch",
            f"File size mismatch for {level_file.filename}: "
            f"expected {level_file.size}, got {actual_size}",
        )
    if not level_file.hash:
        return Noop(f"No hash provided for {level_file.filename}")
    if verify_hashes and sha256_file(path) != level_file.hash:
        return Err("hash_mismatch", f"File hash mismatch for {level_file.filename}")
    return Ok(path)


def _source_warnings(level: Level) -> list[str]:
    meta = level.metadata
    url = meta.source_url or ""
    warnings: list[str] = []
    if meta.source is MapSource.ARCHIVE:
        if "archive.org" not in url:
            warnings.append("Archive.org level missing proper sourceUrl")
        if not meta.original_id:
            warnings.append("Archive.org level missing originalId")
    elif meta.source in (MapSource.DISCORD_COMMUNITY, MapSource.DISCORD_ARCHIVE):
        if "discord.com" not in url:
            warnings.append("Discord level missing proper sourceUrl")
        if not meta.original_id:
            warnings.append("Discord level missing message ID")
    elif meta.source is MapSource.HOGNOSE:
        if not meta.release_id:
            warnings.append("Hognose level missing releaseId")
        if "github.com" not in url:
            warnings.append("Hognose level missing GitHub URL")
    return warnings


def validate_level_dir(path: Path, verify_hashes: bool = False) -> ValidationResult:
    result = ValidationResult(path=str(path))
    catalog_path = path / LEVEL_CATALOG_FILENAME
    if not catalog_path.exists():
        result.errors.append("Missing catalog.json file")
        return result
    try:
        raw = read_json(catalog_path)
        if not isinstance(raw, dict):
            raise ValueError("catalog.json root must be an object")
        metadata = raw.get("metadata") or {}
        level = Level.from_dict(raw)
    except (OSError, ValueError, TypeError) as exc:
        result.errors.append(f"Failed to parse catalog.json: {exc}")
        return result

    result.level_id = level.id or None
    result.source = level.source.value
    for name in REQUIRED_METADATA_FIELDS:
        if not metadata.get(name):
            result.errors.append(f"Missing required metadata field: {name}")
    for name in RECOMMENDED_METADATA_FIELDS:
        if not metadata.get(name):
            result.warnings.append(f"Missing recommended metadata field: {name}")
    for name in REQUIRED_LEVEL_FIELDS:
        if not raw.get(name):
            result.errors.append(f"Missing required level field: {name}")
    if raw.get("indexed") and level.indexed is None:
        result.errors.append("Invalid indexed date")

    if not isinstance(raw.get("files"), list):
        result.errors.append("Missing or invalid files array")
    result.file_count = len(level.files)
    result.total_size = sum(level_file.size for level_file in level.files)
    result.has_dat_file = level.primary_file is not None
    result.has_images = any(
        level_file.type in (FileType.IMAGE, FileType.THUMBNAIL) for level_file in level.files
    )
    if not result.has_dat_file:
        result.errors.append("No .dat file found in level")

    for level_file in level.files:
        outcome = _check_file(path, level_file, verify_hashes)
        if outcome.is_err:
            result.errors.append(outcome.message or outcome.error or "file error")
        elif outcome.is_noop:
            result.warnings.append(outcome.message or "")

    result.warnings.extend(_source_warnings(level))
    return result


def find_level_dirs(root: Path) -> list[Path]:
    """Every directory below ``root`` that holds a ``catalog.json``, in path order."""
    found: list[Path] = []
    if not root.is_dir():
        return found
    for child in sorted(p for p in root.iterdir() if p.is_dir()):
        if (child / LEVEL_CATALOG_FILENAME).exists():
            found.append(child)
        else:
            found.extend(find_level_dirs(child))
    return found


def validate_output(output_dir: Path, *, verify_hashes: bool = False) -> ValidationSummary:
    summary = ValidationSummary()
    errors: Counter[str] = Counter()
    warnings: Counter[str] = Counter()
    for level_dir in find_level_dirs(output_dir):
        result = validate_level_dir(level_dir, verify_hashes=verify_hashes)
        summary.results.append(result)
        summary.total_levels += 1
        bucket = summary.by_source.setdefault(
            result.source or "unknown", {"total": 0, "valid": 0, "withErrors": 0, "withWarnings": 0}
        )
        bucket["total"] += 1
        if result.valid:
            summary.valid_levels += 1
            bucket["valid"] += 1
        else:
            summary.levels_with_errors += 1
            bucket["withErrors"] += 1
            logger.debug("Invalid level %s: %s", level_dir, "; ".join(result.errors))
        if result.warnings:
            summary.levels_with_warnings += 1
            bucket["withWarnings"] += 1
        errors.update(result.errors)
        warnings.update(result.warnings)
    summary.common_errors = dict(errors.most_common(20))
    summary.common_warnings = dict(warnings.most_common(20))
    if summary.levels_with_errors:
        logger.warning(
            "%d of %d level directories failed validation",
            summary.levels_with_errors,
            summary.total_levels,
        )
    return summary
