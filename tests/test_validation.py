"""Tests for on-disk level tree validation."""

from __future__ import annotations

from pathlib import Path

from level_collector.validation import find_level_dirs, validate_level_dir, validate_output


def _level_dir(output_dir: Path, level_id: str, source_dir: str = "levels-archive") -> Path:
    return output_dir / source_dir / level_id


def test_complete_level_is_valid(output_dir: Path, level_factory) -> None:
    level_factory(
        "good",
        description="Nice map",
        tags=["cave"],
        format_version="1.0",
        with_image=True,
    )
    result = validate_level_dir(_level_dir(output_dir, "good"))

    assert result.valid
    assert result.has_dat_file and result.has_images
    assert result.file_count == 2
    assert "Archive.org level missing proper sourceUrl" in result.warnings
    assert "Missing recommended metadata field: description" not in result.warnings


def test_missing_payload_is_an_error(output_dir: Path, level_factory) -> None:
    level_factory("gone", write_payload=False)
    result = validate_level_dir(_level_dir(output_dir, "gone"))
    assert not result.valid
    assert "File not found: gone.dat" in result.errors


def test_size_and_hash_checks(output_dir: Path, level_factory) -> None:
    level_factory("resized", payload=b"12345678")
    (_level_dir(output_dir, "resized") / "resized.dat").write_bytes(b"1234")
    assert any(
        error.startswith("File size mismatch")
        for error in validate_level_dir(_level_dir(output_dir, "resized")).errors
    )

    level_factory("tampered", payload=b"12345678")
    (_level_dir(output_dir, "tampered") / "tampered.dat").write_bytes(b"87654321")
    assert validate_level_dir(_level_dir(output_dir, "tampered")).valid
    verified = validate_level_dir(_level_dir(output_dir, "tampered"), verify_hashes=True)
    assert "File hash mismatch for tampered.dat" in verified.errors


def test_unhashed_file_is_a_warning(output_dir: Path, level_factory) -> None:
    level_factory("nohash", record_hash=False)
    result = validate_level_dir(_level_dir(output_dir, "nohash"))
    assert result.valid
    assert "No hash provided for nohash.dat" in result.warnings


def test_unreadable_catalog(output_dir: Path) -> None:
    level_dir = _level_dir(output_dir, "broken")
    level_dir.mkdir(parents=True)
    assert validate_level_dir(level_dir).errors == ["Missing catalog.json file"]
    (level_dir / "catalog.json").write_text("[1, 2", encoding="utf-8")
    assert validate_level_dir(level_dir).errors[0].startswith("Failed to parse catalog.json")


def test_validate_output_summarizes_by_source(output_dir: Path, level_factory) -> None:
    level_factory("a1")
    level_factory("h1", "hognose", release_id="v1")
    level_factory("h2", "hognose", write_payload=False)

    assert len(find_level_dirs(output_dir)) == 3
    summary = validate_output(output_dir)

    assert summary.total_levels == 3
    assert summary.valid_levels == 2
    assert summary.levels_with_errors == 1
    assert summary.by_source["hognose"] == {
        "total": 2,
        "valid": 1,
        "withErrors": 1,
        "withWarnings": 2,
    }
    assert summary.common_errors == {"File not found: h2.dat": 1}
    assert summary.to_dict()["validLevels"] == 2
