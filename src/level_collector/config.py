from __future__ import annotations

import dataclasses
import json
import os
import re
from collections.abc import Iterable, Mapping
from functools import cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator, FormatChecker

from level_collector.__version__ import __schema_version__
from level_collector.exceptions import ConfigValidationError, YamlParseError
from level_collector.models import MapSource

MERGE_CONFIG_SCHEMA = "merge_config"
MIN_SUPPORTED_SCHEMA_VERSION = "1.0"
OUTPUT_DIR_ENV = "LEVEL_COLLECTOR_OUTPUT"
DEFAULT_OUTPUT_DIR = "output"

_VERSION_PATTERN = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+))?")


@cache
def load_schema(schema_name: str) -> dict[str, Any]:
    schema_path = resources.files("level_collector").joinpath(
        "schemas",
        f"{schema_name}.schema.json",
    )
    return json.loads(schema_path.read_text(encoding="utf-8"))


def validate_config(config: Any, schema_name: str, *, config_path: Path | None = None) -> None:
    schema = load_schema(schema_name)
    validator = Draft7Validator(schema, format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(config), key=lambda exc: list(map(str, exc.path)))
    if not errors:
        return
    location = str(config_path) if config_path else "<config>"
    lines = [f"Schema validation failed for {location} ({schema_name})."]
    error_details: list[dict[str, str]] = []
    for error in errors[:10]:
        path = ".".join(str(p) for p in error.path) if error.path else "<root>"
        lines.append(f"- {path}: {error.message}")
        error_details.append({"path": path, "message": error.message})
    if len(errors) > 10:
        lines.append(f"... and {len(errors) - 10} more errors.")
    raise ConfigValidationError(
        "\n".join(lines),
        context={
            "path": location,
            "schema": schema_name,
            "errors": error_details,
            "truncated": len(errors) > 10,
        },
    )


def _parse_version(version: str) -> tuple[int, int, int]:
    match = _VERSION_PATTERN.match(version.strip())
    if not match:
        raise ValueError(f"Invalid version format: {version}")
    return (int(match.group(1)), int(match.group(2)), int(match.group(3) or 0))


def validate_schema_version(config: Mapping[str, Any], *, config_path: Path | None = None) -> None:
    """Reject configs written for a schema this release cannot read.

    A missing ``schema_version`` is treated as the current version.
    """
    raw = config.get("schema_version")
    if raw is None:
        return
    location = str(config_path) if config_path else "<config>"
    version = _parse_version(str(raw))
    minimum = _parse_version(MIN_SUPPORTED_SCHEMA_VERSION)
    current = _parse_version(__schema_version__)
    if version < minimum or version[0] > current[0]:
        raise ConfigValidationError(
            f"Unsupported schema_version {raw} in {location}; "
            f"supported: {MIN_SUPPORTED_SCHEMA_VERSION} to {__schema_version__}",
            context={"path": location, "schema_version": str(raw)},
        )


def read_yaml(path: Path, schema_name: str | None = None) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise YamlParseError(
            f"YAML parse error in {path}: {exc}",
            context={"path": str(path), "error": str(exc)},
        ) from exc
    if data is None:
        data = {}
    if schema_name:
        validate_config(data, schema_name, config_path=path)
        validate_schema_version(data, config_path=path)
    return data


CHAT_SOURCES: tuple[MapSource, ...] = (MapSource.DISCORD_COMMUNITY, MapSource.DISCORD_ARCHIVE)

_QUALITY_ORDER: tuple[MapSource, ...] = (
    MapSource.ARCHIVE,
    MapSource.HOGNOSE,
    MapSource.DISCORD_COMMUNITY,
    MapSource.DISCORD_ARCHIVE,
)

_POSTED_DATE_ORDER: tuple[MapSource, ...] = (
    MapSource.DISCORD_COMMUNITY,
    MapSource.DISCORD_ARCHIVE,
    MapSource.HOGNOSE,
    MapSource.ARCHIVE,
)


@dataclasses.dataclass(frozen=True)
class FieldPriorities:
    """Source preference order per merged field.

    Fields without an explicit order fall back to ``default``.
    """

    default: tuple[MapSource, ...] = _QUALITY_ORDER
    title: tuple[MapSource, ...] | None = None
    author: tuple[MapSource, ...] | None = None
    posted_date: tuple[MapSource, ...] | None = _POSTED_DATE_ORDER
    description: tuple[MapSource, ...] | None = None
    author_notes: tuple[MapSource, ...] | None = CHAT_SOURCES

    def for_field(self, name: str) -> tuple[MapSource, ...]:
        order = getattr(self, name, None)
        return order if order is not None else self.default

    def rank(self, name: str, source: MapSource) -> int:
        """Position of ``source`` in the field order; unlisted sources sort last."""
        order = self.for_field(name)
        try:
            return order.index(source)
        except ValueError:
            return len(order)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> FieldPriorities:
        if not data:
            return cls()
        kwargs: dict[str, tuple[MapSource, ...]] = {}
        for field in dataclasses.fields(cls):
            values = data.get(field.name)
            if values is None:
                continue
            kwargs[field.name] = _dedupe_sources(values)
        return cls(**kwargs)


def _dedupe_sources(values: Any) -> tuple[MapSource, ...]:
    ordered: list[MapSource] = []
    for value in values:
        source = MapSource.parse(value)
        if source not in ordered:
            ordered.append(source)
    return tuple(ordered)


@dataclasses.dataclass(frozen=True)
class ScoringWeights:
    description: float = 2.0
    per_tag: float = 0.5
    known_author: float = 1.0
    format_version: float = 1.0
    difficulty: float = 0.5
    objectives: float = 0.5
    earliest_upload: float = 1.0
    source_bonus: Mapping[MapSource, float] = dataclasses.field(
        default_factory=lambda: {MapSource.ARCHIVE: 0.5, MapSource.HOGNOSE: 0.5}
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ScoringWeights:
        if not data:
            return cls()
        kwargs: dict[str, Any] = {}
        for field in dataclasses.fields(cls):
            if field.name == "source_bonus" or field.name not in data:
                continue
            kwargs[field.name] = float(data[field.name])
        if "source_bonus" in data:
            kwargs["source_bonus"] = {
                MapSource.parse(key): float(value) for key, value in data["source_bonus"].items()
            }
        return cls(**kwargs)


@dataclasses.dataclass(frozen=True)
class AnalysisConfig:
    compute_missing_hashes: bool = False


def _common_prefix_length(left: str, right: str) -> int:
    length = 0
    for a, b in zip(left, right):
        if a != b:
            break
        length += 1
    return length


@dataclasses.dataclass(frozen=True)
class MergeConfig:
    priorities: FieldPriorities = dataclasses.field(default_factory=FieldPriorities)
    scoring: ScoringWeights = dataclasses.field(default_factory=ScoringWeights)
    analysis: AnalysisConfig = dataclasses.field(default_factory=AnalysisConfig)
    id_prefix: str = "merged-"
    id_hash_length: int = 8
    write_merge_info: bool = True
    title_suffixes: tuple[str, ...] = (" | Manic Miners custom level",)
    placeholder_description_prefixes: tuple[str, ...] = ("Level shared on Discord by",)
    placeholder_authors: tuple[str, ...] = ("Unknown", "unknown", "")
    source_tags: frozenset[str] = frozenset(
        {
            "archive",
            "discord",
            "hognose",
            "internet-archive",
            "community",
            "discord-community",
            "discord-archive",
        }
    )
    output_dir: str | None = None

    def merged_id(self, content_hash: str, length: int | None = None) -> str:
        return f"{self.id_prefix}{content_hash[: length or self.id_hash_length]}"

    def merged_ids(self, content_hashes: Iterable[str]) -> dict[str, str]:
        """Merged id per hash, lengthening any prefix shared by two hashes in the set.

        The result depends only on the set of hashes, so a rerun over the same
        catalog assigns the same ids.
        """
        ordered = sorted(set(content_hashes))
        ids: dict[str, str] = {}
        for index, content_hash in enumerate(ordered):
            shared = 0
            for neighbour in ordered[max(index - 1, 0) : index + 2]:
                if neighbour != content_hash:
                    shared = max(shared, _common_prefix_length(content_hash, neighbour))
            length = min(max(self.id_hash_length, shared + 1), len(content_hash))
            ids[content_hash] = self.merged_id(content_hash, length)
        return ids

    def is_placeholder_description(self, text: str | None) -> bool:
        if not text or not text.strip():
            return True
        stripped = text.strip()
        return any(stripped.startswith(prefix) for prefix in self.placeholder_description_prefixes)

    def is_placeholder_author(self, author: str | None) -> bool:
        return author is None or author.strip() in self.placeholder_authors


def merge_config_from_mapping(data: Mapping[str, Any] | None) -> MergeConfig:
    data = data or {}
    merge = data.get("merge") or {}
    analysis = data.get("analysis") or {}
    kwargs: dict[str, Any] = {
        "priorities": FieldPriorities.from_mapping(merge.get("priorities")),
        "scoring": ScoringWeights.from_mapping(data.get("scoring")),
        "analysis": AnalysisConfig(
            compute_missing_hashes=bool(analysis.get("compute_missing_hashes", False))
        ),
        "output_dir": data.get("output_dir"),
    }
    for key in ("id_prefix", "write_merge_info"):
        if key in merge:
            kwargs[key] = merge[key]
    if "id_hash_length" in merge:
        kwargs["id_hash_length"] = int(merge["id_hash_length"])
    for key in ("title_suffixes", "placeholder_description_prefixes", "placeholder_authors"):
        if key in merge:
            kwargs[key] = tuple(str(item) for item in merge[key])
    if "source_tags" in merge:
        kwargs["source_tags"] = frozenset(str(item) for item in merge["source_tags"])
    return MergeConfig(**kwargs)


def load_merge_config(path: Path | str | None = None) -> MergeConfig:
    """Load and validate a merge config; defaults apply when ``path`` is None."""
    if path is None:
        return MergeConfig()
    path = Path(path)
    if not path.is_file():
        raise ConfigValidationError(
            f"Config file not found: {path}", context={"path": str(path)}
        )
    data = read_yaml(path, MERGE_CONFIG_SCHEMA)
    return merge_config_from_mapping(data)


def resolve_output_dir(cli_value: str | None, config: MergeConfig | None = None) -> Path:
    if cli_value:
        return Path(cli_value)
    env_value = os.environ.get(OUTPUT_DIR_ENV)
    if env_value:
        return Path(env_value)
    if config is not None and config.output_dir:
        return Path(config.output_dir)
    return Path(DEFAULT_OUTPUT_DIR)
