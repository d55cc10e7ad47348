"""
Shared pytest fixtures for Level Collector tests.

Provides builders for:
- Level metadata and catalog entries
- On-disk level trees (``levels-<source>/<id>/`` with payload + catalog.json)
- Master catalog indexes
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

from level_collector.catalog import (  # noqa: E402
    CATALOG_INDEX_FILENAME,
    LEVEL_CATALOG_FILENAME,
    build_catalog_index,
    save_catalog_index,
    source_levels_dir,
)
from level_collector.models import (  # noqa: E402
    FileType,
    Level,
    LevelFile,
    LevelMetadata,
    MapSource,
)
from level_collector.utils.dates import parse_datetime  # noqa: E402
from level_collector.utils.hash import sha256_bytes  # noqa: E402
from level_collector.utils.io import write_json  # noqa: E402

LevelFactory = Callable[..., Level]


def make_metadata(
    level_id: str,
    source: MapSource | str = MapSource.ARCHIVE,
    **overrides: Any,
) -> LevelMetadata:
    """Build metadata with sensible defaults; keyword overrides use attribute names."""
    source = MapSource.parse(source)
    fields: dict[str, Any] = {
        "id": level_id,
        "title": f"Level {level_id}",
        "author": "Baraklava",
        "source": source,
        "posted_date": parse_datetime("2023-01-01T00:00:00Z"),
    }
    if "posted_date" in overrides and isinstance(overrides["posted_date"], str):
        overrides["posted_date"] = parse_datetime(overrides["posted_date"])
    fields.update(overrides)
    return LevelMetadata(**fields)


def make_level(
    level_id: str,
    source: MapSource | str = MapSource.ARCHIVE,
    *,
    content_hash: str | None = "abc123",
    size: int = 1024,
    with_dat: bool = True,
    **metadata: Any,
) -> Level:
    """In-memory catalog entry; nothing is written to disk."""
    meta = make_metadata(level_id, source, **metadata)
    files = []
    if with_dat:
        files.append(
            LevelFile(
                filename=f"{level_id}.dat",
                path=f"/nonexistent/{level_id}.dat",
                size=size,
                hash=content_hash,
                type=FileType.PRIMARY,
            )
        )
    return Level(
        metadata=meta,
        files=files,
        catalog_path=f"/nonexistent/{level_id}",
        dat_file_path=f"/nonexistent/{level_id}.dat" if with_dat else "",
        indexed=parse_datetime("2024-01-01T00:00:00Z"),
        last_updated=parse_datetime("2024-01-02T00:00:00Z"),
    )


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    root = tmp_path / "output"
    root.mkdir()
    return root


@pytest.fixture
def level_factory(output_dir: Path) -> LevelFactory:
    """Write a level directory under ``output_dir`` and return its catalog entry.

    ``payload`` is the primary file content; its SHA-256 (or ``content_hash``)
    is recorded unless ``record_hash`` is False. ``write_payload=False`` leaves the file absent.
    """

    def _make(
        level_id: str,
        source: MapSource | str = MapSource.ARCHIVE,
        *,
        payload: bytes = b"map data",
        record_hash: bool = True,
        content_hash: str | None = None,
        write_payload: bool = True,
        with_image: bool = False,
        indexed: str = "2024-01-01T00:00:00Z",
        last_updated: str = "2024-01-02T00:00:00Z",
        **metadata: Any,
    ) -> Level:
        meta = make_metadata(level_id, source, **metadata)
        level_dir = output_dir / source_levels_dir(meta.source) / level_id
        level_dir.mkdir(parents=True, exist_ok=True)
        dat_path = level_dir / f"{level_id}.dat"
        if write_payload:
            dat_path.write_bytes(payload)
        files = [
            LevelFile(
                filename=dat_path.name,
                path=str(dat_path),
                size=len(payload),
                hash=(content_hash or sha256_bytes(payload)) if record_hash else None,
                type=FileType.PRIMARY,
            )
        ]
        if with_image:
            image_path = level_dir / "screenshot.png"
            image_path.write_bytes(b"\x89PNG")
            files.append(
                LevelFile(
                    filename=image_path.name,
                    path=str(image_path),
                    size=4,
                    type=FileType.IMAGE,
                )
            )
        level = Level(
            metadata=meta,
            files=files,
            catalog_path=str(level_dir),
            dat_file_path=str(dat_path),
            indexed=parse_datetime(indexed),
            last_updated=parse_datetime(last_updated),
        )
        write_json(level_dir / LEVEL_CATALOG_FILENAME, level.to_dict())
        return level

    return _make


@pytest.fixture
def write_catalog(output_dir: Path) -> Callable[[list[Level]], Path]:
    """Persist ``levels`` as the master catalog index and return its path."""

    def _write(levels: list[Level]) -> Path:
        path = output_dir / CATALOG_INDEX_FILENAME
        save_catalog_index(path, build_catalog_index(levels))
        return path

    return _write


@pytest.fixture
def cool_cave_tree(level_factory: LevelFactory, write_catalog: Callable) -> list[Level]:
    """Two copies of one map (archive + Discord) plus one unrelated map."""
    archive = level_factory(
        "cool-cave",
        MapSource.ARCHIVE,
        payload=b"cool cave payload",
        title="Cool Cave | Manic Miners custom level",
        author="Baraklava",
        description="A sprawling cave with three crystal seams and a hidden base.",
        posted_date="2023-06-01T00:00:00Z",
        source_url="https://archive.org/details/cool-cave",
        original_id="cool-cave",
        tags=["archive", "cave"],
    )
    discord = level_factory(
        "1111",
        MapSource.DISCORD_COMMUNITY,
        payload=b"cool cave payload",
        title="Cool Cave",
        author="baraklava",
        description="Finally finished this one! Watch out for the slugs near the lava lake.",
        posted_date="2022-03-15T12:00:00Z",
        source_url="https://discord.com/channels/580269696369164299/683985075704299520/1111",
        tags=["discord", "lava"],
    )
    other = level_factory(
        "lonely-ridge",
        MapSource.HOGNOSE,
        payload=b"something else entirely",
        title="Lonely Ridge",
        source_url="https://github.com/charredUtensil/hognose/releases/tag/v0.11.2",
        release_id="v0.11.2",
    )
    levels = [archive, discord, other]
    write_catalog(levels)
    return levels
