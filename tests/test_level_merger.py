"""End-to-end tests for building the merged level tree."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from level_collector.catalog import CATALOG_INDEX_FILENAME, load_catalog_index
from level_collector.config import MergeConfig
from level_collector.exceptions import CatalogLoadError
from level_collector.merge import LevelMerger
from level_collector.models import MergedMetadata
from level_collector.utils.hash import sha256_bytes

PAYLOAD_HASH = sha256_bytes(b"cool cave payload")
MERGED_ID = f"merged-{PAYLOAD_HASH[:8]}"


def _merged_dir(output_dir: Path) -> Path:
    return output_dir / "levels-merged"


def test_cross_source_duplicates_become_one_level(cool_cave_tree, output_dir: Path) -> None:
    result = LevelMerger(output_dir).merge_duplicate_levels()

    assert result.total_duplicate_groups == 1
    assert result.total_merged_levels == 1
    assert result.total_unique_levels == 1
    assert result.skipped_groups == 0
    assert result.merged_catalog.total_levels == 2
    assert result.original_stats.total_levels == 3
    assert result.duplicates_removed == 1
    assert result.space_saved == len(b"cool cave payload")
    assert result.merged_catalog.sources["merged"] == 1
    assert result.merged_catalog.sources["hognose"] == 1

    merged_dir = _merged_dir(output_dir)
    level_dir = merged_dir / MERGED_ID
    assert (level_dir / "cool-cave.dat").read_bytes() == b"cool cave payload"
    record = json.loads((level_dir / "catalog.json").read_text(encoding="utf-8"))
    assert record["metadata"]["title"] == "Cool Cave"
    assert record["metadata"]["source"] == "merged"
    assert record["metadata"]["mergedFrom"] == ["cool-cave", "1111"]
    assert record["metadata"]["tags"] == ["cave", "lava"]
    assert record["files"][0]["hash"] == PAYLOAD_HASH

    info = (level_dir / "MERGE_INFO.md").read_text(encoding="utf-8")
    assert info.startswith("# Cool Cave")
    assert "### Author's Notes" in info
    assert f"- File Hash: {PAYLOAD_HASH}" in info

    assert (merged_dir / "lonely-ridge" / "lonely-ridge.dat").exists()
    assert (merged_dir / "lonely-ridge" / "catalog.json").exists()

    reports = merged_dir / "reports"
    summary = json.loads((reports / "merge-summary.json").read_text(encoding="utf-8"))
    assert summary["summary"]["originalLevels"] == 3
    assert summary["summary"]["mergedLevels"] == 2
    assert summary["summary"]["duplicatesRemoved"] == 1
    assert summary["afterMerge"]["skippedGroups"] == 0
    assert (reports / "merge-summary.md").exists()
    assert "<html" in (reports / "merge-summary.html").read_text(encoding="utf-8")


def test_merged_catalog_loads_back(cool_cave_tree, output_dir: Path) -> None:
    LevelMerger(output_dir).merge_duplicate_levels()
    catalog = load_catalog_index(_merged_dir(output_dir) / CATALOG_INDEX_FILENAME)

    merged = [level for level in catalog.levels if level.id == MERGED_ID]
    assert len(merged) == 1
    assert isinstance(merged[0].metadata, MergedMetadata)
    assert set(merged[0].metadata.sources) == {"archive", "discord_community"}
    assert merged[0].metadata.author_notes.startswith("Finally finished")


def test_rerun_is_byte_identical(cool_cave_tree, output_dir: Path) -> None:
    merger = LevelMerger(output_dir)
    merger.merge_duplicate_levels()
    merged_dir = _merged_dir(output_dir)
    first = (merged_dir / MERGED_ID / "catalog.json").read_bytes()
    first_index = (merged_dir / CATALOG_INDEX_FILENAME).read_bytes()

    merger.merge_duplicate_levels()
    assert (merged_dir / MERGED_ID / "catalog.json").read_bytes() == first
    assert (merged_dir / CATALOG_INDEX_FILENAME).read_bytes() == first_index


def test_dry_run_writes_nothing(cool_cave_tree, output_dir: Path, caplog) -> None:
    with caplog.at_level("INFO"):
        result = LevelMerger(output_dir).merge_duplicate_levels(dry_run=True)

    assert result.dry_run is True
    assert result.merged_catalog.total_levels == 2
    assert not _merged_dir(output_dir).exists()
    assert "Merge Preview (2 copies):" in caplog.text
    assert "Duplicate Group (2 copies to merge):" in caplog.text


def test_group_without_payload_is_skipped(output_dir: Path, level_factory, write_catalog) -> None:
    lost_a = level_factory("lost-a", "archive", payload=b"gone", write_payload=False)
    lost_b = level_factory("lost-b", "hognose", payload=b"gone", write_payload=False)
    keeper = level_factory("keeper", "discord_archive", payload=b"still here")
    write_catalog([lost_a, lost_b, keeper])

    result = LevelMerger(output_dir).merge_duplicate_levels()

    assert result.total_duplicate_groups == 1
    assert result.skipped_groups == 1
    assert result.total_merged_levels == 0
    assert result.total_unique_levels == 1
    assert result.merged_catalog.total_levels == (
        result.total_unique_levels + result.total_merged_levels
    )
    assert [level.id for level in result.merged_catalog.levels] == ["keeper"]
    assert not (_merged_dir(output_dir) / "lost-a").exists()


def test_missing_unique_level_is_counted(output_dir: Path, level_factory, write_catalog) -> None:
    present = level_factory("present")
    missing = level_factory("missing", "hognose", payload=b"other")
    write_catalog([present, missing])
    for child in (output_dir / "levels-hognose" / "missing").iterdir():
        child.unlink()
    (output_dir / "levels-hognose" / "missing").rmdir()
    result = LevelMerger(output_dir).merge_duplicate_levels()
    assert result.skipped_levels == 1
    assert result.total_unique_levels == 1


def test_unique_name_collision_uses_source_prefix(
    output_dir: Path, level_factory, write_catalog
) -> None:
    first = level_factory("shared", "archive", payload=b"one")
    second = level_factory("shared", "hognose", payload=b"two")
    write_catalog([first, second])

    result = LevelMerger(output_dir).merge_duplicate_levels()
    paths = sorted(Path(level.catalog_path).name for level in result.merged_catalog.levels)
    assert paths == ["hognose-shared", "shared"]


def test_merge_info_can_be_disabled(cool_cave_tree, output_dir: Path) -> None:
    LevelMerger(output_dir, config=MergeConfig(write_merge_info=False)).merge_duplicate_levels()
    assert not (_merged_dir(output_dir) / MERGED_ID / "MERGE_INFO.md").exists()


def test_missing_catalog_is_fatal(output_dir: Path) -> None:
    with pytest.raises(CatalogLoadError):
        LevelMerger(output_dir).merge_duplicate_levels()


def test_unparseable_url_does_not_abort_the_run(
    output_dir: Path, level_factory, write_catalog, caplog
) -> None:
    archived = level_factory(
        "crystal-path",
        "archive",
        payload=b"same",
        source_url="https://archive.org/details/crystal-path",
    )
    shared = level_factory(
        "2222", "discord_community", payload=b"same", source_url="https://[::1/channels/1/2"
    )
    solo = level_factory("solo", "hognose", payload=b"different")
    write_catalog([archived, shared, solo])

    with caplog.at_level("WARNING"):
        result = LevelMerger(output_dir).merge_duplicate_levels()

    assert result.skipped_groups == 0
    assert result.total_merged_levels == 1
    assert result.merged_catalog.total_levels == 2
    merged = [level for level in result.merged_catalog.levels if level.id.startswith("merged-")]
    assert set(merged[0].metadata.sources) == {"archive"}
    assert merged[0].metadata.merged_from == ["crystal-path", "2222"]
    assert "Skipping provenance for 2222" in caplog.text


def test_unexpected_group_failure_is_counted(
    output_dir: Path, level_factory, write_catalog, monkeypatch, caplog
) -> None:
    first = level_factory("first", "archive", payload=b"same")
    second = level_factory("second", "hognose", payload=b"same")
    solo = level_factory("solo", "discord_archive", payload=b"different")
    write_catalog([first, second, solo])

    merger = LevelMerger(output_dir)

    def _explode(group, *, merged_id=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(merger.metadata_merger, "explain_group", _explode)
    with caplog.at_level("ERROR"):
        result = merger.merge_duplicate_levels()

    assert result.skipped_groups == 1
    assert result.total_merged_levels == 0
    assert [level.id for level in result.merged_catalog.levels] == ["solo"]
    assert "RuntimeError: boom" in caplog.text


def test_dry_run_failure_is_counted(
    output_dir: Path, level_factory, write_catalog, monkeypatch
) -> None:
    first = level_factory("first", "archive", payload=b"same")
    second = level_factory("second", "hognose", payload=b"same")
    write_catalog([first, second])

    def _bad_preview(*args, **kwargs):
        raise ValueError("bad preview")

    monkeypatch.setattr("level_collector.merge.level_merger.merge_preview", _bad_preview)
    result = LevelMerger(output_dir).merge_duplicate_levels(dry_run=True)

    assert result.skipped_groups == 1
    assert result.total_merged_levels == 0


def test_merged_ids_stay_distinct_when_prefixes_collide(
    output_dir: Path, level_factory, write_catalog
) -> None:
    first_hash = "deadbeef1" + "0" * 55
    second_hash = "deadbeef2" + "0" * 55
    levels = [
        level_factory("a1", "archive", payload=b"first", content_hash=first_hash),
        level_factory("a2", "hognose", payload=b"first", content_hash=first_hash),
        level_factory("b1", "archive", payload=b"second", content_hash=second_hash),
        level_factory("b2", "hognose", payload=b"second", content_hash=second_hash),
    ]
    write_catalog(levels)

    result = LevelMerger(output_dir).merge_duplicate_levels()

    assert result.total_merged_levels == 2
    assert sorted(level.id for level in result.merged_catalog.levels) == [
        "merged-deadbeef1",
        "merged-deadbeef2",
    ]
    assert (_merged_dir(output_dir) / "merged-deadbeef1" / "a1.dat").read_bytes() == b"first"
    assert (_merged_dir(output_dir) / "merged-deadbeef2" / "b1.dat").read_bytes() == b"second"


def test_unique_name_collision_skips_taken_fallback(
    output_dir: Path, level_factory, write_catalog
) -> None:
    plain = level_factory("x", "archive", payload=b"one")
    prefixed = level_factory("hognose-x", "archive", payload=b"two")
    clash = level_factory("x", "hognose", payload=b"three")
    write_catalog([plain, prefixed, clash])

    result = LevelMerger(output_dir).merge_duplicate_levels()
    paths = sorted(Path(level.catalog_path).name for level in result.merged_catalog.levels)
    assert paths == ["hognose-x", "hognose-x-2", "x"]
    assert (_merged_dir(output_dir) / "hognose-x-2" / "x.dat").read_bytes() == b"three"
