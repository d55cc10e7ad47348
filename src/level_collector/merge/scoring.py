"""Metadata quality scoring used to recommend which duplicate to keep."""

from __future__ import annotations

import dataclasses
from datetime import datetime

from level_collector.config import ScoringWeights
from level_collector.models import DuplicateEntry, DuplicateGroup, MapSource


@dataclasses.dataclass(frozen=True)
class EntryScore:
    entry: DuplicateEntry
    position: int
    score: float
    factors: tuple[str, ...]


def _earliest_upload(group: DuplicateGroup) -> datetime | None:
    dates = [entry.upload_date for entry in group.levels if entry.upload_date is not None]
    return min(dates) if dates else None


def score_entry(
    entry: DuplicateEntry,
    *,
    weights: ScoringWeights,
    earliest: datetime | None = None,
) -> tuple[float, list[str]]:
    """Score one entry's metadata; returns the score and the factors that contributed."""
    meta = entry.metadata
    score = 0.0
    factors: list[str] = []

    if meta.description and meta.description.strip():
        score += weights.description
        factors.append("has description")
    if meta.tags:
        score += len(meta.tags) * weights.per_tag
        factors.append(f"{len(meta.tags)} tags")
    if meta.author and meta.author != "Unknown":
        score += weights.known_author
        factors.append("known author")
    if meta.format_version and meta.format_version != "unknown":
        score += weights.format_version
        factors.append("has format version")
    if meta.difficulty:
        score += weights.difficulty
        factors.append("has difficulty")
    if meta.objectives:
        score += weights.objectives
        factors.append("has objectives")
    if earliest is not None and entry.upload_date == earliest:
        score += weights.earliest_upload
        factors.append("earliest upload")

    bonus = weights.source_bonus.get(entry.source, 0.0)
    if bonus:
        if entry.source is MapSource.ARCHIVE:
            if meta.source_url:
                score += bonus
                factors.append("has archive URL")
        else:
            score += bonus
            factors.append(f"{entry.source.value} bonus")
    return score, factors


def score_group(group: DuplicateGroup, weights: ScoringWeights | None = None) -> list[EntryScore]:
    """Scores for every member, best first.

    Ties go to the earliest upload date, then to group order.
    """
    weights = weights or ScoringWeights()
    earliest = _earliest_upload(group)
    scored = []
    for position, entry in enumerate(group.levels):
        score, factors = score_entry(entry, weights=weights, earliest=earliest)
        scored.append(EntryScore(entry, position, score, tuple(factors)))

    def sort_key(item: EntryScore) -> tuple[float, int, float, int]:
        upload = item.entry.upload_date
        return (
            -item.score,
            0 if upload is not None else 1,
            upload.timestamp() if upload is not None else 0.0,
            item.position,
        )

    return sorted(scored, key=sort_key)


def recommend_best(group: DuplicateGroup, weights: ScoringWeights | None = None) -> str:
    """Id of the member with the best metadata."""
    if not group.levels:
        raise ValueError("Cannot recommend from an empty duplicate group")
    return score_group(group, weights)[0].entry.id
