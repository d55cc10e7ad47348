#!/usr/bin/env python3
"""Command line entry point for catalog maintenance, duplicate analysis and merging."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from pathlib import Path

from level_collector.__version__ import __version__
from level_collector.catalog import (
    CATALOG_INDEX_FILENAME,
    EXPORT_FORMATS,
    build_catalog_index,
    export_catalog,
    levels_by_source,
    load_catalog_index,
    rebuild_catalog_index,
    recent_levels,
    validate_catalog,
)
from level_collector.config import MergeConfig, load_merge_config, resolve_output_dir
from level_collector.exceptions import LevelCollectorError
from level_collector.logging_config import LogContext, add_logging_args, configure_logging
from level_collector.merge.analyzer import DuplicateAnalyzer, filter_report_sources
from level_collector.merge.level_merger import LevelMerger
from level_collector.quality import assess_data_quality, build_recommendations
from level_collector.reports import render_console_report, write_duplicate_reports
from level_collector.utils.text import format_mib
from level_collector.validation import validate_output

logger = logging.getLogger("level_collector.cli")

COMMAND_REBUILD = "rebuild-catalog"
COMMAND_ANALYZE = "analyze"
COMMAND_MERGE = "merge"
COMMAND_VALIDATE = "validate"
COMMAND_EXPORT = "export"


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--output",
        default=None,
        help=(
            "Output directory holding the level tree "
            "(default: $LEVEL_COLLECTOR_OUTPUT or ./output)."
        ),
    )
    common.add_argument("--config", default=None, help="Merge configuration YAML.")
    add_logging_args(common)

    parser = argparse.ArgumentParser(
        prog="level-collector",
        description="Manic Miners level catalog tools.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser(
        COMMAND_REBUILD,
        parents=[common],
        help="Rebuild catalog_index.json from the per-level catalog files.",
    )

    analyze = sub.add_parser(COMMAND_ANALYZE, parents=[common], help="Find duplicate levels.")
    analyze.add_argument(
        "--format",
        default="console",
        choices=["console", "json", "html", "all"],
        help="Report format (default: console).",
    )
    analyze.add_argument(
        "--sources",
        nargs="+",
        default=None,
        help="Only list groups containing levels from these sources.",
    )
    analyze.add_argument(
        "--details",
        action="store_true",
        help="Show every duplicate group and a data quality summary.",
    )

    merge = sub.add_parser(COMMAND_MERGE, parents=[common], help="Merge duplicate levels.")
    merge.add_argument("--dry-run", action="store_true", help="Preview without writing files.")
    merge.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    validate = sub.add_parser(
        COMMAND_VALIDATE, parents=[common], help="Validate the catalog and level directories."
    )
    validate.add_argument(
        "--verify-hashes",
        action="store_true",
        help="Recompute SHA-256 of every referenced file.",
    )

    export = sub.add_parser(COMMAND_EXPORT, parents=[common], help="Export the catalog.")
    export.add_argument("--format", default="json", choices=list(EXPORT_FORMATS))
    export.add_argument("--source", default=None, help="Only export levels from this source.")
    export.add_argument(
        "--recent",
        type=int,
        default=None,
        metavar="N",
        help="Only export the N most recently posted levels.",
    )
    export.add_argument(
        "--dest",
        default=None,
        help="Destination file (default: <output>/catalog-export.<format>).",
    )
    return parser


def _run_rebuild(output_dir: Path) -> int:
    catalog = rebuild_catalog_index(output_dir)
    print(f"Rebuilt catalog with {catalog.total_levels} levels:")
    for source, count in catalog.sources.items():
        print(f"  {source}: {count}")
    return 0


def _run_analyze(args: argparse.Namespace, output_dir: Path, config: MergeConfig) -> int:
    analyzer = DuplicateAnalyzer(output_dir, config=config, logger=logger)
    catalog = load_catalog_index(output_dir / CATALOG_INDEX_FILENAME)
    report = analyzer.analyze_catalog(catalog)

    groups = report.duplicate_groups
    if args.sources:
        groups = filter_report_sources(report, args.sources)

    if args.format in ("console", "all"):
        print(render_console_report(report, groups=groups, details=args.details))
        if args.details:
            for group in groups[:10]:
                best = analyzer.recommend_best_duplicate(group)
                print(f"Recommended copy for {group.hash[:16]}: {best}")
            metrics = assess_data_quality(catalog.levels)
            print(f"\nData completeness score: {metrics.completeness_score}%")
            for recommendation in build_recommendations(metrics, catalog.levels):
                print(f"  - {recommendation}")

    file_formats = {"json", "html"} if args.format == "all" else {args.format} - {"console"}
    if file_formats:
        for path in write_duplicate_reports(report, output_dir, sorted(file_formats), log=logger):
            print(f"Report written: {path}")
    return 0


def _run_merge(args: argparse.Namespace, output_dir: Path, config: MergeConfig) -> int:
    merger = LevelMerger(output_dir, config=config, logger=logger)
    result = merger.merge_duplicate_levels(dry_run=args.dry_run)
    label = "Planned merge" if result.dry_run else "Merge"
    print(f"{label} summary:")
    print(f"  Original levels:   {result.original_stats.total_levels}")
    print(f"  Merged catalog:    {result.merged_catalog.total_levels}")
    print(f"  Duplicate groups:  {result.total_duplicate_groups}")
    print(f"  Merged levels:     {result.total_merged_levels}")
    print(f"  Unique levels:     {result.total_unique_levels}")
    print(f"  Skipped groups:    {result.skipped_groups}")
    print(f"  Skipped levels:    {result.skipped_levels}")
    print(f"  Space saved:       {format_mib(result.space_saved)} MB")
    return 0


def _run_validate(args: argparse.Namespace, output_dir: Path) -> int:
    catalog = load_catalog_index(output_dir / CATALOG_INDEX_FILENAME)
    catalog_check = validate_catalog(catalog, output_dir)
    summary = validate_output(output_dir, verify_hashes=args.verify_hashes)
    print(f"Catalog entries: {len(catalog.levels)} ({len(catalog_check['errors'])} errors)")
    for error in catalog_check["errors"][:20]:
        print(f"  - {error}")
    print(
        f"Level directories: {summary.total_levels} "
        f"({summary.valid_levels} valid, {summary.levels_with_errors} with errors, "
        f"{summary.levels_with_warnings} with warnings)"
    )
    for message, count in summary.common_errors.items():
        print(f"  [{count}] {message}")
    return 0 if catalog_check["valid"] and not summary.levels_with_errors else 1


def _run_export(args: argparse.Namespace, output_dir: Path) -> int:
    catalog = load_catalog_index(output_dir / CATALOG_INDEX_FILENAME)
    if args.source or args.recent is not None:
        levels = levels_by_source(catalog, args.source) if args.source else catalog.levels
        if args.recent is not None:
            levels = recent_levels(build_catalog_index(levels), args.recent)
        catalog = build_catalog_index(levels)
    dest = Path(args.dest) if args.dest else output_dir / f"catalog-export.{args.format}"
    export_catalog(catalog, dest, args.format)
    print(f"Exported {len(catalog.levels)} levels to {dest}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    level = "DEBUG" if getattr(args, "verbose", False) else args.log_level
    configure_logging(level=level, fmt=args.log_format)

    try:
        config = load_merge_config(args.config)
        output_dir = resolve_output_dir(args.output, config)
        if args.command == COMMAND_REBUILD:
            return _run_rebuild(output_dir)
        if args.command == COMMAND_ANALYZE:
            return _run_analyze(args, output_dir, config)
        if args.command == COMMAND_MERGE:
            return _run_merge(args, output_dir, config)
        if args.command == COMMAND_VALIDATE:
            return _run_validate(args, output_dir)
        if args.command == COMMAND_EXPORT:
            return _run_export(args, output_dir)
    except LevelCollectorError as exc:
        with LogContext(**exc.as_log_fields()):
            logger.error("%s", exc)
        return 1
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
