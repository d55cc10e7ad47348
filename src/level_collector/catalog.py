"""
Catalog index: the flat JSON snapshot of every indexed level.

Each source indexer writes ``<output>/<levels-dir>/<levelId>/catalog.json``;
this module rebuilds the master ``catalog_index.json`` from those files,
loads it back and offers the small query/export helpers used by the CLI.
"""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from level_collector.exceptions import CatalogLoadError, CatalogWriteError
from level_collector.logging_config import log_success
from level_collector.models import INDEXED_SOURCES, CatalogIndex, Level, MapSource
from level_collector.utils.dates import format_datetime, utc_now_dt
from level_collector.utils.io import read_json, write_json, write_jsonl, write_text
from level_collector.utils.paths import ensure_dir

logger = logging.getLogger(__name__)

CATALOG_INDEX_FILENAME = "catalog_index.json"
LEVEL_CATALOG_FILENAME = "catalog.json"

SOURCE_LEVEL_DIRS: dict[MapSource, str] = {
    MapSource.ARCHIVE: "levels-archive",
    MapSource.DISCORD_COMMUNITY: "levels-discord-community",
    MapSource.DISCORD_ARCHIVE: "levels-discord-archive",
    MapSource.HOGNOSE: "levels-hognose",
    MapSource.MERGED: "levels-merged",
}

EXPORT_FORMATS = ("json", "csv", "jsonl")

CSV_COLUMNS = (
    "id",
    "title",
    "author",
    "source",
    "postedDate",
    "fileSize",
    "tags",
    "description",
    "sourceUrl",
    "datFilePath",
)


def source_levels_dir(source: MapSource | str) -> str:
    return SOURCE_LEVEL_DIRS[MapSource.parse(source)]


def resolve_level_path(output_dir: Path | None, raw: str) -> Path:
    """Resolve a path recorded in a catalog.

    Absolute paths are used as-is; relative paths are tried against the
    output directory first, then the working directory.
    """
    path = Path(raw)
    if path.is_absolute() or output_dir is None:
        return path
    candidate = output_dir / path
    if candidate.exists():
        return candidate
    return path


def empty_source_counts(*, include_merged: bool = False) -> dict[str, int]:
    sources = list(INDEXED_SOURCES)
    if include_merged:
        sources.append(MapSource.MERGED)
    return {source.value: 0 for source in sources}


def build_catalog_index(levels: Iterable[Level], *, include_merged: bool = False) -> CatalogIndex:
    levels = list(levels)
    counts = empty_source_counts(include_merged=include_merged)
    for level in levels:
        key = level.source.value
        counts[key] = counts.get(key, 0) + 1
    return CatalogIndex(
        total_levels=len(levels),
        sources=counts,
        last_updated=utc_now_dt(),
        levels=levels,
    )


def _load_level_reference(entry: Any, base_dir: Path) -> Level:
    if isinstance(entry, dict):
        return Level.from_dict(entry)
    ref = Path(str(entry))
    if not ref.is_absolute():
        ref = base_dir / ref
    if ref.is_dir():
        ref = ref / LEVEL_CATALOG_FILENAME
    return Level.from_dict(read_json(ref))


def load_catalog_index(path: Path) -> CatalogIndex:
    """Load ``catalog_index.json``; any failure is fatal for the caller."""
    if not path.exists():
        raise CatalogLoadError(
            f"Catalog index not found: {path}",
            context={"path": str(path)},
        )
    try:
        data = read_json(path)
        if not isinstance(data, dict):
            raise ValueError("catalog index root must be an object")
        levels = [_load_level_reference(entry, path.parent) for entry in data.get("levels") or []]
    except (OSError, ValueError, TypeError, KeyError) as exc:
        raise CatalogLoadError(
            f"Failed to read catalog index {path}: {exc}",
            context={"path": str(path), "error": str(exc)},
        ) from exc
    catalog = CatalogIndex.from_dict({**data, "levels": []})
    catalog.levels = levels
    catalog.total_levels = len(levels)
    logger.info("Loaded catalog index with %d levels from %s", len(levels), path)
    return catalog


def save_catalog_index(path: Path, catalog: CatalogIndex) -> None:
    try:
        write_json(path, catalog.to_dict())
    except OSError as exc:
        raise CatalogWriteError(
            f"Failed to write catalog index {path}: {exc}",
            context={"path": str(path), "error": str(exc)},
        ) from exc
    logger.debug("Saved catalog index to %s", path)


def scan_level_catalogs(levels_dir: Path) -> list[Level]:
    """Read every ``<levelId>/catalog.json`` below ``levels_dir`` in name order."""
    levels: list[Level] = []
    if not levels_dir.is_dir():
        return levels
    for level_dir in sorted(p for p in levels_dir.iterdir() if p.is_dir()):
        catalog_path = level_dir / LEVEL_CATALOG_FILENAME
        if not catalog_path.exists():
            continue
        try:
            levels.append(Level.from_dict(read_json(catalog_path)))
        except (OSError, ValueError, TypeError) as exc:
            logger.warning("Skipping unreadable level catalog %s: %s", catalog_path, exc)
    return levels


def rebuild_catalog_index(output_dir: Path) -> CatalogIndex:
    """Rebuild the master and per-source indexes from the level directories."""
    logger.info("Rebuilding catalog index from level directories in %s", output_dir)
    all_levels: list[Level] = []
    for source in INDEXED_SOURCES:
        levels_dir = output_dir / source_levels_dir(source)
        if not levels_dir.is_dir():
            continue
        levels = scan_level_catalogs(levels_dir)
        foreign = [level for level in levels if level.source is not source]
        if foreign:
            logger.warning(
                "%d level(s) in %s declare a different source", len(foreign), levels_dir
            )
        save_catalog_index(levels_dir / CATALOG_INDEX_FILENAME, build_catalog_index(levels))
        logger.debug("Indexed %d %s levels", len(levels), source.value)
        all_levels.extend(levels)

    catalog = build_catalog_index(all_levels)
    ensure_dir(output_dir)
    save_catalog_index(output_dir / CATALOG_INDEX_FILENAME, catalog)
    log_success(logger, "Rebuilt catalog index with %d levels", catalog.total_levels)
    return catalog


def validate_catalog(catalog: CatalogIndex, output_dir: Path | None = None) -> dict[str, Any]:
    """Check that every file a catalog entry points at exists on disk."""
    errors: list[str] = []
    for level in catalog.levels:
        title = level.metadata.title or level.id
        level_dir = resolve_level_path(output_dir, level.catalog_path)
        if not level.catalog_path or not level_dir.exists():
            errors.append(f"Level directory missing: {level.catalog_path}")
            continue
        dat_path = resolve_level_path(output_dir, level.dat_file_path)
        if not level.dat_file_path or not dat_path.exists():
            errors.append(f"DAT file missing for level {title}: {level.dat_file_path}")
        if not (level_dir / LEVEL_CATALOG_FILENAME).exists():
            errors.append(
                f"Catalog file missing for level {title}: {level_dir / LEVEL_CATALOG_FILENAME}"
            )
        for level_file in level.files:
            if not resolve_level_path(output_dir, level_file.path).exists():
                errors.append(f"File missing for level {title}: {level_file.path}")
    if errors:
        logger.warning("Catalog validation found %d error(s)", len(errors))
    else:
        log_success(logger, "Catalog validation passed for %d levels", len(catalog.levels))
    return {"valid": not errors, "errors": errors}


def _flat_row(level: Level) -> dict[str, Any]:
    meta = level.metadata
    return {
        "id": meta.id,
        "title": meta.title,
        "author": meta.author,
        "source": meta.source.value,
        "postedDate": format_datetime(meta.posted_date) or "",
        "fileSize": meta.file_size if meta.file_size is not None else "",
        "tags": ";".join(meta.tags or []),
        "description": meta.description or "",
        "sourceUrl": meta.source_url or "",
        "datFilePath": level.dat_file_path,
    }


def export_catalog(catalog: CatalogIndex, path: Path, fmt: str = "json") -> Path:
    """Write the catalog as ``json``, ``csv`` or ``jsonl`` (``.gz``/``.zst`` aware)."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")
    if fmt == "json":
        write_json(path, catalog.to_dict())
    elif fmt == "jsonl":
        write_jsonl(path, (level.to_dict() for level in catalog.levels))
    else:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(CSV_COLUMNS))
        writer.writeheader()
        for level in catalog.levels:
            writer.writerow(_flat_row(level))
        write_text(path, buffer.getvalue())
    logger.info("Exported %d levels to %s (%s)", len(catalog.levels), path, fmt)
    return path


def recent_levels(catalog: CatalogIndex, limit: int = 10) -> list[Level]:
    """Levels ordered newest first by posted date; undated levels sort last."""
    dated = [level for level in catalog.levels if level.metadata.posted_date is not None]
    undated = [level for level in catalog.levels if level.metadata.posted_date is None]
    dated.sort(key=lambda level: level.metadata.posted_date, reverse=True)
    return (dated + undated)[: max(limit, 0)]


def levels_by_source(catalog: CatalogIndex, source: MapSource | str) -> list[Level]:
    wanted = MapSource.parse(source)
    return [level for level in catalog.levels if level.source is wanted]

