"""
Rendering for duplicate analysis reports.

Everything here is a pure function of its inputs except
``write_duplicate_reports``, which persists the rendered output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from html import escape
from pathlib import Path

from level_collector.merge.analyzer import format_duplicate_group
from level_collector.models import DuplicateAnalysisReport, DuplicateGroup
from level_collector.utils.dates import format_date, format_datetime
from level_collector.utils.html import render_page
from level_collector.utils.io import write_json, write_text
from level_collector.utils.text import format_kib

logger = logging.getLogger(__name__)

DUPLICATE_REPORTS_DIR = "duplicate-reports"
REPORT_FORMATS = ("console", "json", "html")


def render_console_report(
    report: DuplicateAnalysisReport,
    *,
    groups: Iterable[DuplicateGroup] | None = None,
    details: bool = False,
    max_groups: int = 10,
) -> str:
    stats = report.statistics
    lines = [
        "Duplicate Analysis Report",
        "=" * 40,
        f"Total levels:            {report.total_levels}",
        f"Unique levels:           {report.unique_levels}",
        f"Duplicate groups:        {len(report.duplicate_groups)}",
        f"Extra copies:            {report.duplicate_count}",
        f"Cross-source groups:     {stats.cross_source_duplicates}",
        f"Within-source groups:    {stats.within_source_duplicates}",
        f"Largest group:           {stats.largest_duplicate_group}",
        "",
        "By source (total / unique / duplicates):",
    ]
    for source, source_stats in stats.by_source.items():
        lines.append(
            f"  {source:<18} {source_stats.total:>6} {source_stats.unique:>6} "
            f"{source_stats.duplicates:>6}"
        )
    shown = list(groups if groups is not None else report.duplicate_groups)
    if details and shown:
        lines.append("")
        for group in shown[:max_groups]:
            lines.append(format_duplicate_group(group))
            lines.append("")
        if len(shown) > max_groups:
            lines.append(f"... and {len(shown) - max_groups} more groups")
    return "\n".join(lines)


def render_duplicates_html(report: DuplicateAnalysisReport) -> str:
    stats = report.statistics
    source_rows = "".join(
        "<tr>"
        f"<td>{escape(source)}</td>"
        f"<td>{s.total}</td><td>{s.unique}</td><td>{s.duplicates}</td>"
        "</tr>"
        for source, s in stats.by_source.items()
    )
    group_rows = []
    for group in report.duplicate_groups:
        members = "".join(
            f"<li>[{escape(entry.source.value)}] {escape(entry.title)} by "
            f"{escape(entry.author)} ({escape(format_date(entry.upload_date))})</li>"
            for entry in group.levels
        )
        group_rows.append(
            "<tr>"
            f"<td><code>{escape(group.hash[:16])}</code></td>"
            f"<td>{len(group.levels)}</td>"
            f"<td>{escape(format_kib(group.file_size))}</td>"
            f"<td>{'cross-source' if group.is_cross_source else 'within-source'}</td>"
            f"<td><ul>{members}</ul></td>"
            "</tr>"
        )
    body = (
        f"<p>Generated {escape(format_datetime(report.generated_at) or '')}</p>"
        '<div class="card"><h2>Summary</h2><table>'
        f"<tr><th>Total levels</th><td>{report.total_levels}</td></tr>"
        f"<tr><th>Unique levels</th><td>{report.unique_levels}</td></tr>"
        f"<tr><th>Duplicate groups</th><td>{len(report.duplicate_groups)}</td></tr>"
        f"<tr><th>Extra copies</th><td>{report.duplicate_count}</td></tr>"
        f"<tr><th>Cross-source groups</th><td>{stats.cross_source_duplicates}</td></tr>"
        f"<tr><th>Within-source groups</th><td>{stats.within_source_duplicates}</td></tr>"
        "</table></div>"
        '<div class="card"><h2>By source</h2><table>'
        "<tr><th>Source</th><th>Total</th><th>Unique</th><th>Duplicates</th></tr>"
        f"{source_rows}</table></div>"
        '<div class="card"><h2>Duplicate groups</h2><table>'
        "<tr><th>Hash</th><th>Copies</th><th>Size</th><th>Kind</th><th>Members</th></tr>"
        f"{''.join(group_rows)}</table></div>"
    )
    return render_page("Manic Miners Duplicate Analysis", body)


def write_duplicate_reports(
    report: DuplicateAnalysisReport,
    output_dir: Path,
    formats: Iterable[str] = REPORT_FORMATS,
    *,
    details: bool = False,
    log: logging.Logger | None = None,
) -> list[Path]:
    """Emit the analysis in each requested format; console output goes to the logger."""
    log = log or logger
    wanted = {fmt.lower() for fmt in formats}
    if "all" in wanted:
        wanted = set(REPORT_FORMATS)
    reports_dir = output_dir / DUPLICATE_REPORTS_DIR
    written: list[Path] = []
    if "console" in wanted:
        log.info("\n%s", render_console_report(report, details=details))
    if "json" in wanted:
        path = reports_dir / "duplicates.json"
        write_json(path, report.to_dict())
        written.append(path)
    if "html" in wanted:
        path = reports_dir / "duplicates.html"
        write_text(path, render_duplicates_html(report))
        written.append(path)
    for path in written:
        log.info("Duplicate report saved to %s", path)
    return written
