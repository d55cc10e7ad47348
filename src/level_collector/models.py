"""
Catalog data model.

Every record round-trips through the JSON wire format used by the indexers
(camelCase keys, ISO 8601 timestamps). Optional fields that are unset are
omitted on output so that identical records always serialize identically.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import Enum
from typing import Any

from level_collector.utils.dates import format_datetime, parse_datetime

UNKNOWN = "Unknown"


class MapSource(str, Enum):
    ARCHIVE = "archive"
    DISCORD_COMMUNITY = "discord_community"
    DISCORD_ARCHIVE = "discord_archive"
    HOGNOSE = "hognose"
    MERGED = "merged"

    @classmethod
    def parse(cls, value: Any) -> MapSource:
        if isinstance(value, MapSource):
            return value
        text = str(value or "").strip().lower().replace("-", "_")
        text = _SOURCE_ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError as exc:
            raise ValueError(f"Unknown level source: {value!r}") from exc


_SOURCE_ALIASES = {
    "internet_archive": "archive",
    "discord": "discord_community",
}

# Sources an indexer may emit. MERGED is reserved for the level merger.
INDEXED_SOURCES: tuple[MapSource, ...] = (
    MapSource.ARCHIVE,
    MapSource.DISCORD_COMMUNITY,
    MapSource.DISCORD_ARCHIVE,
    MapSource.HOGNOSE,
)


class FileType(str, Enum):
    PRIMARY = "dat"
    IMAGE = "image"
    THUMBNAIL = "thumbnail"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> FileType:
        try:
            return cls(str(value))
        except ValueError:
            return cls.OTHER


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


@dataclasses.dataclass
class LevelFile:
    filename: str
    path: str
    size: int = 0
    hash: str | None = None
    type: FileType = FileType.OTHER

    @property
    def is_primary(self) -> bool:
        return self.type is FileType.PRIMARY

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "filename": self.filename,
                "path": self.path,
                "size": self.size,
                "hash": self.hash or None,
                "type": self.type.value,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LevelFile:
        return cls(
            filename=str(data.get("filename") or ""),
            path=str(data.get("path") or ""),
            size=int(data.get("size") or 0),
            hash=data.get("hash") or None,
            type=FileType.parse(data.get("type")),
        )


# (attribute, wire key) pairs in output order.
_METADATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("id", "id"),
    ("title", "title"),
    ("author", "author"),
    ("description", "description"),
    ("posted_date", "postedDate"),
    ("source", "source"),
    ("source_url", "sourceUrl"),
    ("original_id", "originalId"),
    ("file_size", "fileSize"),
    ("requirements", "requirements"),
    ("objectives", "objectives"),
    ("tags", "tags"),
    ("difficulty", "difficulty"),
    ("rating", "rating"),
    ("download_count", "downloadCount"),
    ("format_version", "formatVersion"),
    ("release_id", "releaseId"),
    ("discord_channel_id", "discordChannelId"),
    ("discord_channel_name", "discordChannelName"),
)


@dataclasses.dataclass
class LevelMetadata:
    id: str
    title: str
    author: str
    source: MapSource
    posted_date: datetime | None = None
    description: str | None = None
    source_url: str | None = None
    original_id: str | None = None
    file_size: int | None = None
    requirements: list[str] | None = None
    objectives: list[str] | None = None
    tags: list[str] | None = None
    difficulty: float | None = None
    rating: float | None = None
    download_count: int | None = None
    format_version: str | None = None
    release_id: str | None = None
    discord_channel_id: str | None = None
    discord_channel_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for attr, key in _METADATA_FIELDS:
            value = getattr(self, attr)
            if attr == "posted_date":
                value = format_datetime(value)
            elif attr == "source":
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            payload[key] = value
        return _drop_none(payload)

    @staticmethod
    def _common_kwargs(data: dict[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for attr, key in _METADATA_FIELDS:
            value = data.get(key)
            if attr == "posted_date":
                value = parse_datetime(value)
            elif attr == "source":
                value = MapSource.parse(value)
            elif attr in ("requirements", "objectives", "tags") and value is not None:
                value = [str(item) for item in value]
            elif attr in ("id", "title", "author"):
                value = "" if value is None else str(value)
            kwargs[attr] = value
        return kwargs

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LevelMetadata:
        if "mergedFrom" in data or MapSource.parse(data.get("source")) is MapSource.MERGED:
            return MergedMetadata.from_dict(data)
        return cls(**cls._common_kwargs(data))


@dataclasses.dataclass
class SourceProvenance:
    """Where one contributing source published the level."""

    url: str
    upload_date: datetime | None = None
    platform_id: str | None = None
    channel_id: str | None = None
    message_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "url": self.url,
                "uploadDate": format_datetime(self.upload_date),
                "id": self.platform_id,
                "channelId": self.channel_id,
                "messageId": self.message_id,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceProvenance:
        return cls(
            url=str(data.get("url") or ""),
            upload_date=parse_datetime(data.get("uploadDate")),
            platform_id=data.get("id"),
            channel_id=data.get("channelId"),
            message_id=data.get("messageId"),
        )


@dataclasses.dataclass
class MergedMetadata(LevelMetadata):
    author_notes: str | None = None
    sources: dict[str, SourceProvenance] = dataclasses.field(default_factory=dict)
    merged_from: list[str] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.author_notes is not None:
            payload["authorNotes"] = self.author_notes
        payload["sources"] = {key: prov.to_dict() for key, prov in self.sources.items()}
        payload["mergedFrom"] = list(self.merged_from)
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MergedMetadata:
        kwargs = cls._common_kwargs(data)
        return cls(
            **kwargs,
            author_notes=data.get("authorNotes"),
            sources={
                str(key): SourceProvenance.from_dict(value)
                for key, value in (data.get("sources") or {}).items()
            },
            merged_from=[str(item) for item in data.get("mergedFrom") or []],
        )


@dataclasses.dataclass
class Level:
    metadata: LevelMetadata
    files: list[LevelFile]
    catalog_path: str = ""
    dat_file_path: str = ""
    indexed: datetime | None = None
    last_updated: datetime | None = None

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def source(self) -> MapSource:
        return self.metadata.source

    @property
    def key(self) -> tuple[str, str]:
        """Identity of a level across the whole catalog (ids are only unique per source)."""
        return (self.metadata.source.value, self.metadata.id)

    @property
    def primary_file(self) -> LevelFile | None:
        for level_file in self.files:
            if level_file.is_primary:
                return level_file
        return None

    @property
    def primary_hash(self) -> str | None:
        primary = self.primary_file
        return primary.hash if primary else None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "metadata": self.metadata.to_dict(),
                "files": [level_file.to_dict() for level_file in self.files],
                "catalogPath": self.catalog_path,
                "datFilePath": self.dat_file_path,
                "indexed": format_datetime(self.indexed),
                "lastUpdated": format_datetime(self.last_updated),
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Level:
        return cls(
            metadata=LevelMetadata.from_dict(data.get("metadata") or {}),
            files=[LevelFile.from_dict(item) for item in data.get("files") or []],
            catalog_path=str(data.get("catalogPath") or ""),
            dat_file_path=str(data.get("datFilePath") or data.get("primaryFilePath") or ""),
            indexed=parse_datetime(data.get("indexed")),
            last_updated=parse_datetime(data.get("lastUpdated")),
        )


@dataclasses.dataclass
class CatalogIndex:
    total_levels: int
    sources: dict[str, int]
    last_updated: datetime | None
    levels: list[Level]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLevels": self.total_levels,
            "sources": dict(self.sources),
            "lastUpdated": format_datetime(self.last_updated),
            "levels": [level.to_dict() for level in self.levels],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogIndex:
        levels = [Level.from_dict(item) for item in data.get("levels") or []]
        return cls(
            total_levels=int(data.get("totalLevels", len(levels))),
            sources={str(key): int(value) for key, value in (data.get("sources") or {}).items()},
            last_updated=parse_datetime(data.get("lastUpdated")),
            levels=levels,
        )


@dataclasses.dataclass
class DuplicateEntry:
    """Lightweight summary of one level inside a duplicate group."""

    id: str
    source: MapSource
    title: str
    author: str
    path: str
    upload_date: datetime | None
    metadata: LevelMetadata

    @classmethod
    def from_level(cls, level: Level) -> DuplicateEntry:
        primary = level.primary_file
        return cls(
            id=level.metadata.id,
            source=level.metadata.source,
            title=level.metadata.title,
            author=level.metadata.author,
            path=level.dat_file_path or (primary.path if primary else ""),
            upload_date=level.metadata.posted_date,
            metadata=level.metadata,
        )

    @property
    def key(self) -> tuple[str, str]:
        return (self.source.value, self.id)

    def to_dict(self) -> dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "source": self.source.value,
                "title": self.title,
                "author": self.author,
                "path": self.path,
                "uploadDate": format_datetime(self.upload_date),
                "metadata": self.metadata.to_dict(),
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DuplicateEntry:
        metadata = LevelMetadata.from_dict(data.get("metadata") or {})
        return cls(
            id=str(data.get("id") or metadata.id),
            source=MapSource.parse(data.get("source") or metadata.source),
            title=str(data.get("title") or metadata.title),
            author=str(data.get("author") or metadata.author),
            path=str(data.get("path") or ""),
            upload_date=parse_datetime(data.get("uploadDate")),
            metadata=metadata,
        )


@dataclasses.dataclass
class DuplicateGroup:
    hash: str
    file_size: int
    levels: list[DuplicateEntry]

    @property
    def source_set(self) -> set[MapSource]:
        return {entry.source for entry in self.levels}

    @property
    def is_cross_source(self) -> bool:
        return len(self.source_set) > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "fileSize": self.file_size,
            "levels": [entry.to_dict() for entry in self.levels],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DuplicateGroup:
        return cls(
            hash=str(data.get("hash") or ""),
            file_size=int(data.get("fileSize") or 0),
            levels=[DuplicateEntry.from_dict(item) for item in data.get("levels") or []],
        )


@dataclasses.dataclass
class SourceStats:
    total: int = 0
    unique: int = 0
    duplicates: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "unique": self.unique, "duplicates": self.duplicates}


@dataclasses.dataclass
class DuplicateStatistics:
    by_source: dict[str, SourceStats]
    cross_source_duplicates: int = 0
    within_source_duplicates: int = 0
    largest_duplicate_group: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bySource": {source: stats.to_dict() for source, stats in self.by_source.items()},
            "crossSourceDuplicates": self.cross_source_duplicates,
            "withinSourceDuplicates": self.within_source_duplicates,
            "largestDuplicateGroup": self.largest_duplicate_group,
        }


@dataclasses.dataclass
class DuplicateAnalysisReport:
    total_levels: int
    unique_levels: int
    duplicate_count: int
    duplicate_groups: list[DuplicateGroup]
    statistics: DuplicateStatistics
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalLevels": self.total_levels,
            "uniqueLevels": self.unique_levels,
            "duplicateCount": self.duplicate_count,
            "duplicateGroups": [group.to_dict() for group in self.duplicate_groups],
            "statistics": self.statistics.to_dict(),
            "generatedAt": format_datetime(self.generated_at),
        }


@dataclasses.dataclass
class OriginalStats:
    total_levels: int
    by_source: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {"totalLevels": self.total_levels, "bySource": dict(self.by_source)}


@dataclasses.dataclass
class MergeResult:
    total_duplicate_groups: int
    total_merged_levels: int
    total_unique_levels: int
    merged_catalog: CatalogIndex
    original_stats: OriginalStats
    space_saved: int
    skipped_groups: int = 0
    skipped_levels: int = 0
    dry_run: bool = False

    @property
    def duplicates_removed(self) -> int:
        return self.original_stats.total_levels - self.merged_catalog.total_levels

    @property
    def reduction_percentage(self) -> float:
        if not self.original_stats.total_levels:
            return 0.0
        return self.duplicates_removed / self.original_stats.total_levels * 100


@dataclasses.dataclass
class IndexerResult:
    """Summary an external source indexer hands back after a run."""

    success: bool
    levels_processed: int = 0
    levels_skipped: int = 0
    errors: list[str] = dataclasses.field(default_factory=list)
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "levelsProcessed": self.levels_processed,
            "levelsSkipped": self.levels_skipped,
            "errors": list(self.errors),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexerResult:
        return cls(
            success=bool(data.get("success")),
            levels_processed=int(data.get("levelsProcessed") or 0),
            levels_skipped=int(data.get("levelsSkipped") or 0),
            errors=[str(item) for item in data.get("errors") or []],
            duration=float(data.get("duration") or 0.0),
        )
