"""
Duplicate analysis.

Levels are grouped by the recorded SHA-256 of their primary ``.dat`` file.
Any hash shared by two or more levels forms a ``DuplicateGroup``; everything
else (including levels with no usable hash) is unique. The catalog passed in
is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from level_collector.catalog import CATALOG_INDEX_FILENAME, load_catalog_index, resolve_level_path
from level_collector.config import MergeConfig, ScoringWeights
from level_collector.logging_config import log_success
from level_collector.models import (
    INDEXED_SOURCES,
    CatalogIndex,
    DuplicateAnalysisReport,
    DuplicateEntry,
    DuplicateGroup,
    DuplicateStatistics,
    Level,
    MapSource,
    SourceStats,
)
from level_collector.merge.scoring import recommend_best
from level_collector.utils.dates import utc_now_dt
from level_collector.utils.hash import sha256_file
from level_collector.utils.text import format_kib


def group_representative(group: DuplicateGroup) -> int:
    """Index of the member treated as the original copy.

    The earliest upload wins; undated members lose to dated ones and ties
    fall back to group order.
    """
    best = 0
    best_date: datetime | None = group.levels[0].upload_date if group.levels else None
    for position, entry in enumerate(group.levels[1:], start=1):
        if entry.upload_date is None:
            continue
        if best_date is None or entry.upload_date < best_date:
            best, best_date = position, entry.upload_date
    return best


class DuplicateAnalyzer:
    def __init__(
        self,
        output_dir: Path | None = None,
        *,
        config: MergeConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.config = config or MergeConfig()
        self.logger = logger or logging.getLogger(__name__)

    def analyze_catalog(self, catalog: CatalogIndex | None = None) -> DuplicateAnalysisReport:
        if catalog is None:
            if self.output_dir is None:
                raise ValueError("analyze_catalog needs a catalog or an output directory")
            catalog = load_catalog_index(self.output_dir / CATALOG_INDEX_FILENAME)

        self.logger.info("Analyzing %d levels for duplicates...", len(catalog.levels))
        buckets: dict[str, list[Level]] = {}
        sizes: dict[str, int] = {}
        unhashed: list[Level] = []
        for level in catalog.levels:
            content_hash, size = self._level_hash(level)
            if content_hash is None:
                unhashed.append(level)
                continue
            buckets.setdefault(content_hash, []).append(level)
            sizes.setdefault(content_hash, size)

        groups = [
            DuplicateGroup(
                hash=content_hash,
                file_size=sizes[content_hash],
                levels=[DuplicateEntry.from_level(level) for level in members],
            )
            for content_hash, members in buckets.items()
            if len(members) > 1
        ]
        groups.sort(key=lambda group: (-len(group.levels), group.hash))

        grouped_count = sum(len(group.levels) for group in groups)
        unique_levels = len(catalog.levels) - grouped_count
        report = DuplicateAnalysisReport(
            total_levels=len(catalog.levels),
            unique_levels=unique_levels,
            duplicate_count=len(catalog.levels) - unique_levels - len(groups),
            duplicate_groups=groups,
            statistics=self._statistics(catalog.levels, groups),
            generated_at=utc_now_dt(),
        )
        if unhashed:
            self.logger.warning(
                "%d level(s) have no content hash and were treated as unique", len(unhashed)
            )
        log_success(
            self.logger,
            "Analysis complete: found %d duplicate groups",
            len(report.duplicate_groups),
        )
        return report

    def _level_hash(self, level: Level) -> tuple[str | None, int]:
        primary = level.primary_file
        if primary is None:
            self.logger.warning("No DAT file found for level %s (%s)", level.id, level.source.value)
            return None, 0
        if primary.hash:
            return primary.hash, primary.size
        if self.config.analysis.compute_missing_hashes:
            path = resolve_level_path(self.output_dir, primary.path or level.dat_file_path)
            computed = sha256_file(path)
            if computed:
                return computed, primary.size
        self.logger.warning(
            "Level %s (%s) has no recorded hash for %s",
            level.id,
            level.source.value,
            primary.filename,
        )
        return None, primary.size

    @staticmethod
    def _statistics(levels: Iterable[Level], groups: list[DuplicateGroup]) -> DuplicateStatistics:
        by_source = {source.value: SourceStats() for source in INDEXED_SOURCES}
        for level in levels:
            by_source.setdefault(level.source.value, SourceStats()).total += 1

        grouped: dict[str, int] = {}
        cross = within = largest = 0
        for group in groups:
            largest = max(largest, len(group.levels))
            if group.is_cross_source:
                cross += 1
            else:
                within += 1
            representative = group_representative(group)
            for position, entry in enumerate(group.levels):
                key = entry.source.value
                grouped[key] = grouped.get(key, 0) + 1
                if position != representative:
                    by_source.setdefault(key, SourceStats()).duplicates += 1

        for key, stats in by_source.items():
            stats.unique = stats.total - grouped.get(key, 0)
        return DuplicateStatistics(
            by_source=by_source,
            cross_source_duplicates=cross,
            within_source_duplicates=within,
            largest_duplicate_group=largest,
        )

    def recommend_best_duplicate(
        self, group: DuplicateGroup, weights: ScoringWeights | None = None
    ) -> str:
        return recommend_best(group, weights or self.config.scoring)


def format_duplicate_group(group: DuplicateGroup) -> str:
    lines = [
        f"Duplicate Group ({len(group.levels)} copies):",
        f"  Hash: {group.hash}",
        f"  File Size: {format_kib(group.file_size)}",
        "  Copies:",
    ]
    for entry in sorted(group.levels, key=lambda e: (e.source.value, e.title)):
        uploaded = entry.upload_date.strftime("%Y-%m-%d") if entry.upload_date else "unknown date"
        lines.append(f'    - [{entry.source.value}] "{entry.title}" by {entry.author} ({uploaded})')
    return "\n".join(lines)


def filter_report_sources(
    report: DuplicateAnalysisReport, sources: Iterable[MapSource | str]
) -> list[DuplicateGroup]:
    """Groups that contain at least one member from any of ``sources``."""
    wanted = {MapSource.parse(source) for source in sources}
    return [group for group in report.duplicate_groups if group.source_set & wanted]
