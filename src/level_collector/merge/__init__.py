"""Duplicate detection and merging."""

from level_collector.merge.analyzer import DuplicateAnalyzer, format_duplicate_group
from level_collector.merge.metadata import FieldDecision, MetadataMerger
from level_collector.merge.preview import merge_preview
from level_collector.merge.scoring import recommend_best, score_entry
from level_collector.merge.level_merger import LevelMerger

__all__ = [
    "DuplicateAnalyzer",
    "FieldDecision",
    "LevelMerger",
    "MetadataMerger",
    "format_duplicate_group",
    "merge_preview",
    "recommend_best",
    "score_entry",
]
