from __future__ import annotations

from level_collector.config import MergeConfig
from level_collector.merge.metadata import MetadataMerger
from level_collector.models import DuplicateGroup
from level_collector.utils.dates import format_date
from level_collector.utils.text import format_kib


def merge_preview(
    group: DuplicateGroup,
    config: MergeConfig | None = None,
    *,
    merged_id: str | None = None,
) -> str:
    """Human-readable description of what merging ``group`` would produce."""
    merger = MetadataMerger(config)
    merged, decisions = merger.explain_group(group, merged_id=merged_id)
    lines = [
        f"Merge Preview ({len(group.levels)} copies):",
        f"  Hash: {group.hash[:16]}...",
        f"  File Size: {format_kib(group.file_size)}",
        "",
        "  Metadata Contributions:",
    ]
    for decision in decisions:
        if decision.source is None:
            continue
        lines.append(
            f"    {decision.field}: [{decision.source}] {decision.level_id} ({decision.reason})"
        )

    lines += [
        "",
        "  Merged Result:",
        f"    Id: {merged.id}",
        f'    Title: "{merged.title}"',
        f"    Author: {merged.author}",
        f"    Upload Date: {format_date(merged.posted_date)}",
        f"    Has Author Notes: {'Yes' if merged.author_notes else 'No'}",
        f"    Combined Tags: {len(merged.tags or [])}",
        f"    Sources: {', '.join(sorted(merged.sources)) or 'none'}",
    ]
    return "\n".join(lines)


def format_group_for_merge(group: DuplicateGroup) -> str:
    lines = [
        f"Duplicate Group ({len(group.levels)} copies to merge):",
        f"  Hash: {group.hash}",
        f"  File Size: {format_kib(group.file_size)}",
        "  Sources to merge:",
    ]
    for entry in sorted(group.levels, key=lambda e: (e.source.value, e.title)):
        lines.append(
            f'    - [{entry.source.value.upper()}] "{entry.title}" by {entry.author} '
            f"({format_date(entry.upload_date)})"
        )
    return "\n".join(lines)
