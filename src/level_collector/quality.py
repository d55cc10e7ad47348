"""Metadata completeness metrics for a set of levels."""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Sequence
from typing import Any

from level_collector.models import FileType, Level, MapSource

CHECKED_FIELDS: tuple[str, ...] = (
    "description",
    "posted_date",
    "tags",
    "format_version",
    "source_url",
    "original_id",
)

# Weights sum to 100.
COMPLETENESS_WEIGHTS: dict[str, float] = {
    "description": 20,
    "tags": 15,
    "images": 15,
    "format_version": 10,
    "source_url": 10,
    "posted_date": 10,
    "original_id": 10,
    "no_duplicate_titles": 10,
}

MIN_DESCRIPTION_LENGTH = 10


@dataclasses.dataclass
class DataQualityMetrics:
    completeness_score: int = 0
    missing_metadata_fields: dict[str, int] = dataclasses.field(default_factory=dict)
    levels_without_descriptions: int = 0
    levels_without_tags: int = 0
    levels_without_images: int = 0
    duplicate_titles: list[tuple[str, int]] = dataclasses.field(default_factory=list)
    unknown_format_versions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "completenessScore": self.completeness_score,
            "missingMetadataFields": dict(self.missing_metadata_fields),
            "levelsWithoutDescriptions": self.levels_without_descriptions,
            "levelsWithoutTags": self.levels_without_tags,
            "levelsWithoutImages": self.levels_without_images,
            "duplicateTitles": [{"title": t, "count": c} for t, c in self.duplicate_titles],
            "unknownFormatVersions": self.unknown_format_versions,
        }


def _has_image(level: Level) -> bool:
    return any(f.type in (FileType.IMAGE, FileType.THUMBNAIL) for f in level.files)


def assess_data_quality(levels: Sequence[Level]) -> DataQualityMetrics:
    metrics = DataQualityMetrics(missing_metadata_fields={name: 0 for name in CHECKED_FIELDS})
    titles: Counter[str] = Counter()
    for level in levels:
        meta = level.metadata
        for name in CHECKED_FIELDS:
            if not getattr(meta, name):
                metrics.missing_metadata_fields[name] += 1
        if not meta.description or len(meta.description.strip()) < MIN_DESCRIPTION_LENGTH:
            metrics.levels_without_descriptions += 1
        if not meta.tags:
            metrics.levels_without_tags += 1
        if not _has_image(level):
            metrics.levels_without_images += 1
        if not meta.format_version or meta.format_version.lower() == "unknown":
            metrics.unknown_format_versions += 1
        titles[meta.title.strip().lower()] += 1

    metrics.duplicate_titles = sorted(
        ((title, count) for title, count in titles.items() if count > 1),
        key=lambda item: (-item[1], item[0]),
    )
    if not levels:
        return metrics

    total = len(levels)
    score = 0.0
    score += COMPLETENESS_WEIGHTS["description"] * (1 - metrics.levels_without_descriptions / total)
    score += COMPLETENESS_WEIGHTS["tags"] * (1 - metrics.levels_without_tags / total)
    score += COMPLETENESS_WEIGHTS["images"] * (1 - metrics.levels_without_images / total)
    for name in ("format_version", "source_url", "posted_date", "original_id"):
        score += COMPLETENESS_WEIGHTS[name] * (1 - metrics.missing_metadata_fields[name] / total)
    score += COMPLETENESS_WEIGHTS["no_duplicate_titles"] * (
        1 - len(metrics.duplicate_titles) / len(titles)
    )
    metrics.completeness_score = round(score)
    return metrics


def build_recommendations(metrics: DataQualityMetrics, levels: Sequence[Level]) -> list[str]:
    recommendations: list[str] = []
    by_source: dict[MapSource, list[Level]] = {}
    for level in levels:
        by_source.setdefault(level.source, []).append(level)
    source_count = max(len(by_source), 1)

    if levels and metrics.completeness_score < 70:
        recommendations.append(
            "Data quality score is below 70%. Focus on improving metadata completeness."
        )
    if metrics.levels_without_descriptions > source_count * 5:
        recommendations.append(
            "Many levels lack descriptions. Consider adding meaningful descriptions."
        )
    if metrics.levels_without_tags > source_count * 5:
        recommendations.append("Many levels lack tags. Add tags to improve discoverability.")
    if metrics.levels_without_images > source_count * 10:
        recommendations.append("Many levels lack preview images. Consider generating thumbnails.")
    if len(metrics.duplicate_titles) > 5:
        recommendations.append("Found duplicate level titles. Review and deduplicate the catalog.")
    for source, source_levels in sorted(by_source.items(), key=lambda item: item[0].value):
        authors = {level.metadata.author for level in source_levels}
        if len(source_levels) > 1 and len(authors) == 1:
            recommendations.append(
                f"Only one author found for {source.value}. Expand data collection."
            )
    if metrics.unknown_format_versions > 10:
        recommendations.append(
            "Many levels have unknown format versions. Improve version detection."
        )
    return recommendations
