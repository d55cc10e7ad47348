from __future__ import annotations

import gzip
import io
import json
import os
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import zstandard as zstd

from level_collector.utils.paths import ensure_dir


def read_json(path: Path) -> Any:
    """Read JSON file and return the decoded value."""
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, obj: Any, *, indent: int = 2) -> None:
    """Write a JSON document atomically."""
    write_text(path, json.dumps(obj, indent=indent, ensure_ascii=False) + "\n")


def write_text(path: Path, text: str) -> None:
    """Write text atomically (temp file, fsync, rename)."""
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)


def _open_text(path: Path, mode: str) -> io.TextIOBase:
    if path.suffix == ".gz":
        return gzip.open(path, mode, encoding="utf-8", errors="ignore")
    if path.suffix == ".zst":
        try:
            if "r" in mode:
                stream = zstd.ZstdDecompressor().stream_reader(path.open("rb"))
                return io.TextIOWrapper(stream, encoding="utf-8", errors="ignore")
            stream = zstd.ZstdCompressor().stream_writer(path.open("wb"))
            return io.TextIOWrapper(stream, encoding="utf-8")
        except zstd.ZstdError as e:
            raise OSError(f"Failed to open zstd file {path}: {e}") from e
    return open(path, mode, encoding="utf-8", errors="ignore")


def read_jsonl(path: Path) -> Iterator[dict[str, Any]]:
    """Read JSONL file (supports .gz/.zst) and yield records."""
    with _open_text(path, "rt") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue


def write_jsonl(path: Path, rows: Iterable[dict[str, Any]]) -> int:
    """Write records to JSONL file (supports .gz/.zst) atomically, return row count."""
    ensure_dir(path.parent)
    compressed_suffix = path.suffix if path.suffix in (".gz", ".zst") else ""
    tmp_path = path.with_name(path.name + ".tmp" + compressed_suffix)
    count = 0
    with _open_text(tmp_path, "wt") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
            count += 1
    tmp_path.replace(path)
    return count
