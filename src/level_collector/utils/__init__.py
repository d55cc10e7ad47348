"""Shared utility functions for the Level Collector."""

from level_collector.utils.dates import format_date, format_datetime, parse_datetime, utc_now_dt
from level_collector.utils.hash import sha256_bytes, sha256_file
from level_collector.utils.io import read_json, read_jsonl, write_json, write_jsonl, write_text
from level_collector.utils.logging import log_event
from level_collector.utils.paths import ensure_dir, safe_filename
from level_collector.utils.text import (
    format_kib,
    format_mib,
    normalize_whitespace,
    strip_suffixes,
)

__all__ = [
    "utc_now_dt",
    "parse_datetime",
    "format_datetime",
    "format_date",
    "ensure_dir",
    "safe_filename",
    "sha256_bytes",
    "sha256_file",
    "normalize_whitespace",
    "strip_suffixes",
    "format_kib",
    "format_mib",
    "read_json",
    "write_json",
    "write_text",
    "read_jsonl",
    "write_jsonl",
    "log_event",
]
