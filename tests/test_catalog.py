"""Tests for the catalog index."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from conftest import make_level
from level_collector.catalog import (
    CATALOG_INDEX_FILENAME,
    build_catalog_index,
    export_catalog,
    levels_by_source,
    load_catalog_index,
    rebuild_catalog_index,
    recent_levels,
    save_catalog_index,
    validate_catalog,
)
from level_collector.exceptions import CatalogLoadError, CatalogWriteError
from level_collector.models import MapSource
from level_collector.utils.io import read_jsonl


def test_build_catalog_index_counts_every_source() -> None:
    catalog = build_catalog_index(
        [make_level("a"), make_level("b", "hognose"), make_level("c", "hognose")]
    )
    assert catalog.total_levels == 3
    assert catalog.sources == {
        "archive": 1,
        "discord_community": 0,
        "discord_archive": 0,
        "hognose": 2,
    }


def test_load_missing_catalog_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(CatalogLoadError) as excinfo:
        load_catalog_index(tmp_path / CATALOG_INDEX_FILENAME)
    assert excinfo.value.context["path"].endswith(CATALOG_INDEX_FILENAME)


def test_load_unparseable_catalog_is_fatal(tmp_path: Path) -> None:
    path = tmp_path / CATALOG_INDEX_FILENAME
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CatalogLoadError):
        load_catalog_index(path)


def test_save_then_load_preserves_levels(tmp_path: Path) -> None:
    path = tmp_path / CATALOG_INDEX_FILENAME
    levels = [make_level("a", description="hello"), make_level("b", "discord")]
    save_catalog_index(path, build_catalog_index(levels))
    loaded = load_catalog_index(path)
    assert loaded.total_levels == 2
    assert [level.to_dict() for level in loaded.levels] == [level.to_dict() for level in levels]
    assert loaded.levels[1].source is MapSource.DISCORD_COMMUNITY


def test_save_failure_raises_catalog_write_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    with pytest.raises(CatalogWriteError):
        save_catalog_index(blocker / CATALOG_INDEX_FILENAME, build_catalog_index([]))


def test_load_resolves_level_path_references(output_dir: Path, level_factory) -> None:
    level = level_factory("ref-level")
    path = output_dir / CATALOG_INDEX_FILENAME
    relative = Path(level.catalog_path).relative_to(output_dir)
    path.write_text(
        json.dumps({"totalLevels": 1, "sources": {}, "levels": [str(relative)]}),
        encoding="utf-8",
    )
    loaded = load_catalog_index(path)
    assert loaded.levels[0].id == "ref-level"


def test_rebuild_scans_source_directories(output_dir: Path, level_factory, caplog) -> None:
    level_factory("a1", "archive")
    level_factory("d1", "discord_community")
    level_factory("h1", "hognose")
    broken = output_dir / "levels-hognose" / "broken"
    broken.mkdir()
    (broken / "catalog.json").write_text("{", encoding="utf-8")

    catalog = rebuild_catalog_index(output_dir)

    assert catalog.total_levels == 3
    assert catalog.sources["hognose"] == 1
    assert (output_dir / CATALOG_INDEX_FILENAME).exists()
    per_source = load_catalog_index(output_dir / "levels-archive" / CATALOG_INDEX_FILENAME)
    assert [level.id for level in per_source.levels] == ["a1"]
    assert "Skipping unreadable level catalog" in caplog.text


def test_validate_catalog_reports_missing_files(output_dir: Path, level_factory) -> None:
    good = level_factory("good")
    missing = level_factory("missing", write_payload=False)
    result = validate_catalog(build_catalog_index([good, missing]), output_dir)
    assert result["valid"] is False
    assert any("DAT file missing for level" in error for error in result["errors"])
    assert all("good" not in error for error in result["errors"])


def test_recent_levels_newest_first() -> None:
    catalog = build_catalog_index(
        [
            make_level("old", posted_date="2020-01-01T00:00:00Z"),
            make_level("undated", posted_date=None),
            make_level("new", posted_date="2024-01-01T00:00:00Z"),
        ]
    )
    assert [level.id for level in recent_levels(catalog, 2)] == ["new", "old"]
    assert recent_levels(catalog, 10)[-1].id == "undated"


def test_levels_by_source_accepts_aliases() -> None:
    catalog = build_catalog_index([make_level("a"), make_level("b", "discord_community")])
    assert [level.id for level in levels_by_source(catalog, "discord")] == ["b"]


def test_export_csv_and_compressed_jsonl(tmp_path: Path) -> None:
    catalog = build_catalog_index([make_level("a", tags=["cave", "lava"]), make_level("b")])

    csv_path = export_catalog(catalog, tmp_path / "catalog.csv", "csv")
    with csv_path.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["id"] for row in rows] == ["a", "b"]
    assert rows[0]["tags"] == "cave;lava"

    jsonl_path = export_catalog(catalog, tmp_path / "catalog.jsonl.zst", "jsonl")
    assert [row["metadata"]["id"] for row in read_jsonl(jsonl_path)] == ["a", "b"]


def test_export_rejects_unknown_format(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Unsupported export format"):
        export_catalog(build_catalog_index([]), tmp_path / "x.xml", "xml")
