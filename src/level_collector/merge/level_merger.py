"""
Level merger: materializes the deduplicated ``levels-merged`` tree.

Each duplicate group becomes one directory holding a single copy of the
shared ``.dat`` payload plus the merged ``catalog.json``; every level outside
a group is copied across unchanged. A group that cannot be merged is logged
and left out of the merged tree without stopping the run.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

from level_collector.catalog import (
    CATALOG_INDEX_FILENAME,
    LEVEL_CATALOG_FILENAME,
    SOURCE_LEVEL_DIRS,
    build_catalog_index,
    load_catalog_index,
    resolve_level_path,
    save_catalog_index,
    source_levels_dir,
)
from level_collector.config import MergeConfig
from level_collector.exceptions import GroupMergeError
from level_collector.logging_config import LogContext, log_success
from level_collector.merge.analyzer import DuplicateAnalyzer
from level_collector.merge.metadata import MetadataMerger
from level_collector.merge.preview import format_group_for_merge, merge_preview
from level_collector.merge.summary import render_merge_info, write_merge_summary
from level_collector.models import (
    CatalogIndex,
    DuplicateGroup,
    FileType,
    Level,
    LevelFile,
    MapSource,
    MergeResult,
    OriginalStats,
)
from level_collector.result import Err, Ok, Result
from level_collector.utils.io import write_json, write_text
from level_collector.utils.logging import log_event
from level_collector.utils.paths import ensure_dir, safe_filename

MERGE_INFO_FILENAME = "MERGE_INFO.md"
REPORTS_DIRNAME = "reports"


def _earliest(values: list[datetime | None]) -> datetime | None:
    present = [value for value in values if value is not None]
    return min(present) if present else None


def _latest(values: list[datetime | None]) -> datetime | None:
    present = [value for value in values if value is not None]
    return max(present) if present else None


class LevelMerger:
    def __init__(
        self,
        output_dir: Path,
        *,
        config: MergeConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.merged_dir = self.output_dir / SOURCE_LEVEL_DIRS[MapSource.MERGED]
        self.config = config or MergeConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.metadata_merger = MetadataMerger(self.config, logger=self.logger)

    def merge_duplicate_levels(self, dry_run: bool = False) -> MergeResult:
        self.logger.info(
            "Starting level merge in %s%s", self.output_dir, " (dry run)" if dry_run else ""
        )
        catalog = load_catalog_index(self.output_dir / CATALOG_INDEX_FILENAME)
        analyzer = DuplicateAnalyzer(self.output_dir, config=self.config, logger=self.logger)
        report = analyzer.analyze_catalog(catalog)

        levels_by_key = {level.key: level for level in catalog.levels}
        grouped_keys = {entry.key for group in report.duplicate_groups for entry in group.levels}

        merged_ids = self.config.merged_ids(group.hash for group in report.duplicate_groups)
        merged_levels: list[Level] = []
        skipped_groups = 0
        self.logger.info("Processing %d duplicate groups...", len(report.duplicate_groups))
        for group in report.duplicate_groups:
            with LogContext(group_hash=group.hash[:16]):
                outcome = self._merge_group(
                    group, levels_by_key, merged_id=merged_ids[group.hash], dry_run=dry_run
                )
            if outcome.is_ok:
                merged_levels.append(outcome.value)
            else:
                skipped_groups += 1
                self.logger.error("Failed to merge group %s: %s", group.hash, outcome.message)
        merged_groups = len(merged_levels)

        self.logger.info("Copying unique levels...")
        used_names = {level.id for level in merged_levels}
        unique_count = 0
        skipped_levels = 0
        for level in catalog.levels:
            if level.key in grouped_keys:
                continue
            with LogContext(level_id=level.id, source=level.source.value):
                outcome = self._copy_unique_level(level, used_names, dry_run=dry_run)
            if outcome.is_ok:
                merged_levels.append(outcome.value)
                unique_count += 1
            else:
                skipped_levels += 1
                self.logger.error("Failed to copy unique level %s: %s", level.id, outcome.message)

        merged_catalog = build_catalog_index(merged_levels, include_merged=True)
        merged_catalog.last_updated = _latest([level.last_updated for level in merged_levels]) or (
            merged_catalog.last_updated
        )
        result = MergeResult(
            total_duplicate_groups=len(report.duplicate_groups),
            total_merged_levels=merged_groups,
            total_unique_levels=unique_count,
            merged_catalog=merged_catalog,
            original_stats=self._original_stats(catalog),
            space_saved=sum(
                (len(group.levels) - 1) * group.file_size for group in report.duplicate_groups
            ),
            skipped_groups=skipped_groups,
            skipped_levels=skipped_levels,
            dry_run=dry_run,
        )

        if not dry_run:
            save_catalog_index(self.merged_dir / CATALOG_INDEX_FILENAME, merged_catalog)
            write_merge_summary(result, report, self.merged_dir / REPORTS_DIRNAME, log=self.logger)

        log_event(
            self.logger,
            "merge finished",
            groups=result.total_duplicate_groups,
            merged=result.total_merged_levels,
            unique=result.total_unique_levels,
            skipped_groups=skipped_groups,
            skipped_levels=skipped_levels,
            space_saved=result.space_saved,
            dry_run=dry_run,
        )
        log_success(
            self.logger,
            "Merge complete: %d levels in merged catalog",
            merged_catalog.total_levels,
        )
        return result

    @staticmethod
    def _original_stats(catalog: CatalogIndex) -> OriginalStats:
        counts = build_catalog_index(catalog.levels, include_merged=True).sources
        return OriginalStats(total_levels=len(catalog.levels), by_source=counts)

    def _find_payload(self, group: DuplicateGroup, members: list[Level]) -> tuple[Path, str]:
        for level in members:
            primary = level.primary_file
            raw = (primary.path if primary else "") or level.dat_file_path
            if not raw:
                continue
            path = resolve_level_path(self.output_dir, raw)
            if path.is_file():
                filename = primary.filename if primary and primary.filename else path.name
                return path, filename
        raise GroupMergeError(
            f"No member of group {group.hash} has its payload on disk",
            context={"hash": group.hash, "members": [level.id for level in members]},
        )

    def _merge_group(
        self,
        group: DuplicateGroup,
        levels_by_key: dict[tuple[str, str], Level],
        *,
        merged_id: str,
        dry_run: bool,
    ) -> Result:
        """Materialize one group; any failure is returned as an ``Err`` for the caller to count."""
        try:
            if dry_run:
                self.logger.info("\n%s", format_group_for_merge(group))
                self.logger.info("\n%s", merge_preview(group, self.config, merged_id=merged_id))
            members = [levels_by_key[entry.key] for entry in group.levels]
            metadata, decisions = self.metadata_merger.explain_group(group, merged_id=merged_id)
            payload, filename = self._find_payload(group, members)

            level_dir = self.merged_dir / metadata.id
            dest = level_dir / safe_filename(filename)
            merged = Level(
                metadata=metadata,
                files=[
                    LevelFile(
                        filename=dest.name,
                        path=str(dest),
                        size=group.file_size,
                        hash=group.hash,
                        type=FileType.PRIMARY,
                    )
                ],
                catalog_path=str(level_dir),
                dat_file_path=str(dest),
                indexed=_earliest([level.indexed for level in members]),
                last_updated=_latest([level.last_updated for level in members]),
            )
            if not dry_run:
                ensure_dir(level_dir)
                shutil.copyfile(payload, dest)
                write_json(level_dir / LEVEL_CATALOG_FILENAME, merged.to_dict())
                if self.config.write_merge_info:
                    write_text(
                        level_dir / MERGE_INFO_FILENAME,
                        render_merge_info(metadata, group, decisions),
                    )
            self.logger.debug("Merged %d copies into %s", len(group.levels), metadata.id)
            return Ok(merged)
        except GroupMergeError as exc:
            return Err(exc.code, str(exc), hash=group.hash)
        except Exception as exc:
            return Err("group_merge_failed", f"{type(exc).__name__}: {exc}", hash=group.hash)

    def _unique_source_dir(self, level: Level) -> Path:
        if level.catalog_path:
            path = resolve_level_path(self.output_dir, level.catalog_path)
            if path.name == LEVEL_CATALOG_FILENAME:
                path = path.parent
            if path.is_dir():
                return path
        return self.output_dir / source_levels_dir(level.source) / level.id

    def _copy_unique_level(self, level: Level, used_names: set[str], *, dry_run: bool) -> Result:
        name = safe_filename(level.id)
        if name in used_names:
            base = safe_filename(f"{level.source.value}-{level.id}")
            name, suffix = base, 2
            while name in used_names:
                name = f"{base}-{suffix}"
                suffix += 1
        used_names.add(name)
        dest_dir = self.merged_dir / name
        try:
            source_dir = self._unique_source_dir(level)
            if not dry_run:
                if not source_dir.is_dir():
                    raise FileNotFoundError(f"Level directory missing: {source_dir}")
                shutil.copytree(source_dir, dest_dir, dirs_exist_ok=True)
            copied = Level(
                metadata=level.metadata,
                files=[
                    LevelFile(
                        filename=level_file.filename,
                        path=str(dest_dir / level_file.filename),
                        size=level_file.size,
                        hash=level_file.hash,
                        type=level_file.type,
                    )
                    for level_file in level.files
                ],
                catalog_path=str(dest_dir),
                dat_file_path=str(dest_dir / Path(level.dat_file_path).name)
                if level.dat_file_path
                else "",
                indexed=level.indexed,
                last_updated=level.last_updated,
            )
            if not dry_run:
                write_json(dest_dir / LEVEL_CATALOG_FILENAME, copied.to_dict())
            return Ok(copied)
        except OSError as exc:
            return Err("level_copy_failed", str(exc), level_id=level.id)
