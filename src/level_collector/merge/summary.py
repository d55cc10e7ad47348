"""Provenance notes and before/after summaries for a merge run."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from html import escape
from pathlib import Path
from typing import Any

from level_collector.merge.metadata import FieldDecision
from level_collector.models import (
    DuplicateAnalysisReport,
    DuplicateGroup,
    MapSource,
    MergedMetadata,
    MergeResult,
)
from level_collector.utils.dates import format_date, format_datetime, utc_now_dt
from level_collector.utils.html import render_page
from level_collector.utils.io import write_json, write_text
from level_collector.utils.text import format_kib, format_mib

logger = logging.getLogger(__name__)


def render_merge_info(
    metadata: MergedMetadata,
    group: DuplicateGroup,
    decisions: Iterable[FieldDecision] = (),
) -> str:
    """Markdown provenance note stored next to a merged level."""
    lines = [
        f"# {metadata.title}",
        f"By: {metadata.author}",
        "",
        "## About This Merged Level",
        "",
        "This level was merged automatically from identical copies found in several places.",
        "",
        "### Description",
        metadata.description or "No description available.",
        "",
    ]
    if metadata.author_notes:
        lines += ["### Author's Notes", metadata.author_notes, ""]
    lines += ["### Sources", ""]
    for entry in group.levels:
        lines += [
            f"- **{entry.source.value.upper()}**: {entry.title}",
            f"  - Uploaded: {format_date(entry.upload_date)}",
            f"  - URL: {entry.metadata.source_url or 'N/A'}",
        ]
    decisions = [decision for decision in decisions if decision.source is not None]
    if decisions:
        lines += ["", "### Field Choices", ""]
        for decision in decisions:
            lines.append(
                f"- {decision.field}: {decision.source} ({decision.level_id}), {decision.reason}"
            )
    lines += [
        "",
        "### Technical Details",
        f"- File Hash: {group.hash}",
        f"- File Size: {format_kib(group.file_size)}",
        f"- Format Version: {metadata.format_version or 'Unknown'}",
        "",
    ]
    return "\n".join(lines)


def merge_summary(result: MergeResult, report: DuplicateAnalysisReport) -> dict[str, Any]:
    original = result.original_stats
    return {
        "generatedAt": format_datetime(utc_now_dt()),
        "dryRun": result.dry_run,
        "summary": {
            "originalLevels": original.total_levels,
            "mergedLevels": result.merged_catalog.total_levels,
            "duplicatesRemoved": result.duplicates_removed,
            "spaceSavedMB": format_mib(result.space_saved),
            "reductionPercentage": f"{result.reduction_percentage:.1f}",
        },
        "beforeMerge": {
            "total": original.total_levels,
            "bySource": dict(original.by_source),
            "duplicateGroups": result.total_duplicate_groups,
            "duplicateLevels": report.duplicate_count,
        },
        "afterMerge": {
            "total": result.merged_catalog.total_levels,
            "bySource": dict(result.merged_catalog.sources),
            "uniqueLevels": result.total_unique_levels,
            "mergedLevels": result.total_merged_levels,
            "skippedGroups": result.skipped_groups,
            "skippedLevels": result.skipped_levels,
        },
    }


def render_merge_summary_markdown(summary: dict[str, Any]) -> str:
    head = summary["summary"]
    before = summary["beforeMerge"]
    after = summary["afterMerge"]
    lines = [
        "# Merge Summary",
        "",
        f"Generated: {summary['generatedAt']}",
        "",
        "| Metric | Value |",
        "| --- | --- |",
        f"| Original levels | {head['originalLevels']} |",
        f"| Levels after merge | {head['mergedLevels']} |",
        f"| Duplicates removed | {head['duplicatesRemoved']} |",
        f"| Space saved | {head['spaceSavedMB']} MB |",
        f"| Reduction | {head['reductionPercentage']}% |",
        f"| Skipped groups | {after['skippedGroups']} |",
        f"| Skipped levels | {after['skippedLevels']} |",
        "",
        "## Source Distribution",
        "",
        "| Source | Before | After |",
        "| --- | --- | --- |",
    ]
    before_counts = before["bySource"]
    after_counts = after["bySource"]
    sources = list(before_counts) + [s for s in after_counts if s not in before_counts]
    for source in sources:
        lines.append(
            f"| {source} | {before_counts.get(source, 0)} | {after_counts.get(source, 0)} |"
        )
    lines.append("")
    return "\n".join(lines)


def render_merge_summary_html(summary: dict[str, Any]) -> str:
    head = summary["summary"]
    before = summary["beforeMerge"]
    after = summary["afterMerge"]

    def source_rows(by_source: dict[str, int], total: int) -> str:
        return "".join(
            "<tr>"
            f"<td>{escape(source.upper())}</td><td>{count}</td>"
            f"<td>{(count / total * 100) if total else 0:.1f}%</td>"
            "</tr>"
            for source, count in by_source.items()
        )

    before_sources = {
        source: count
        for source, count in before["bySource"].items()
        if source != MapSource.MERGED.value
    }
    body = (
        f"<p>Generated {escape(str(summary['generatedAt']))}</p>"
        '<div class="card"><h2>Merge Results</h2><table>'
        f"<tr><th>Original levels</th><td>{head['originalLevels']}</td></tr>"
        f"<tr><th>After merge</th><td>{head['mergedLevels']}</td></tr>"
        f"<tr><th>Duplicates removed</th><td class=\"good\">{head['duplicatesRemoved']}</td></tr>"
        f"<tr><th>Space saved</th><td class=\"good\">{escape(head['spaceSavedMB'])} MB</td></tr>"
        f"<tr><th>Reduction</th><td class=\"good\">{escape(head['reductionPercentage'])}%</td></tr>"
        f"<tr><th>Skipped groups</th><td>{after['skippedGroups']}</td></tr>"
        f"<tr><th>Skipped levels</th><td>{after['skippedLevels']}</td></tr>"
        "</table></div>"
        '<div class="card"><h2>Before Merge</h2><table>'
        "<tr><th>Source</th><th>Count</th><th>Share</th></tr>"
        f"{source_rows(before_sources, before['total'])}</table></div>"
        '<div class="card"><h2>After Merge</h2><table>'
        "<tr><th>Source</th><th>Count</th><th>Share</th></tr>"
        f"{source_rows(after['bySource'], after['total'])}</table></div>"
    )
    return render_page("Manic Miners Merge Summary", body)


def write_merge_summary(
    result: MergeResult,
    report: DuplicateAnalysisReport,
    reports_dir: Path,
    *,
    log: logging.Logger | None = None,
) -> dict[str, Any]:
    log = log or logger
    summary = merge_summary(result, report)
    write_json(reports_dir / "merge-summary.json", summary)
    write_text(reports_dir / "merge-summary.md", render_merge_summary_markdown(summary))
    write_text(reports_dir / "merge-summary.html", render_merge_summary_html(summary))
    log.info("Merge summary reports saved to %s", reports_dir)
    return summary
