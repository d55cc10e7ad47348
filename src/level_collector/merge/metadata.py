"""
Field-by-field metadata merging for one duplicate group.

Each field is taken from the member whose source ranks highest in that
field's priority order (see ``FieldPriorities``); members of equal rank keep
group order. The result depends only on the group, never on the clock, so
merging the same group twice yields identical records.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from typing import Any

from level_collector.config import MergeConfig
from level_collector.exceptions import GroupMergeError
from level_collector.merge.provenance import build_sources
from level_collector.models import (
    UNKNOWN,
    DuplicateEntry,
    DuplicateGroup,
    MapSource,
    MergedMetadata,
)
from level_collector.utils.text import normalize_whitespace, strip_suffixes

# Fields copied verbatim from the first member that has a usable value.
SCALAR_FIELDS: tuple[str, ...] = (
    "objectives",
    "requirements",
    "difficulty",
    "rating",
    "download_count",
    "format_version",
    "file_size",
    "source_url",
    "release_id",
    "discord_channel_id",
    "discord_channel_name",
)


@dataclasses.dataclass(frozen=True)
class FieldDecision:
    field: str
    source: str | None
    level_id: str | None
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def _is_empty(name: str, value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple)) and len(value) == 0:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if name == "format_version" and str(value).strip().lower() == "unknown":
        return True
    return False


class MetadataMerger:
    def __init__(self, config: MergeConfig | None = None, *, logger: logging.Logger | None = None):
        self.config = config or MergeConfig()
        self.logger = logger or logging.getLogger(__name__)

    def merge_group(self, group: DuplicateGroup, *, merged_id: str | None = None) -> MergedMetadata:
        merged, _ = self.explain_group(group, merged_id=merged_id)
        return merged

    def explain_group(
        self, group: DuplicateGroup, *, merged_id: str | None = None
    ) -> tuple[MergedMetadata, list[FieldDecision]]:
        """Merge ``group`` and report which member supplied each field.

        ``merged_id`` overrides the id derived from the group hash.
        """
        if not group.levels:
            raise GroupMergeError(
                "Cannot merge an empty duplicate group",
                context={"hash": group.hash},
            )
        decisions: list[FieldDecision] = []

        title_entry = self._first(group, "title", self._clean_title)
        title = self._clean_title(title_entry) if title_entry is not None else UNKNOWN
        decisions.append(self._decision("title", title_entry, "first non-empty title by priority"))

        author_entry = self._first(
            group,
            "author",
            lambda e: None if self.config.is_placeholder_author(e.author) else e.author,
        )
        author = author_entry.author.strip() if author_entry is not None else UNKNOWN
        decisions.append(self._decision("author", author_entry, "first known author by priority"))

        date_entry = self._first(group, "posted_date", lambda e: e.upload_date)
        decisions.append(
            self._decision("posted_date", date_entry, "first upload date by priority")
        )

        description_entry, description_reason = self._pick_description(group)
        description = description_entry.metadata.description if description_entry else None
        decisions.append(self._decision("description", description_entry, description_reason))

        notes_entry = self._pick_author_notes(group, description)
        if notes_entry is not None:
            decisions.append(
                self._decision("author_notes", notes_entry, "distinct description from chat source")
            )

        scalars: dict[str, Any] = {}
        for name in SCALAR_FIELDS:
            entry = self._first(
                group,
                "default",
                lambda e, n=name: None if _is_empty(n, getattr(e.metadata, n)) else True,
            )
            if entry is None:
                continue
            value = getattr(entry.metadata, name)
            scalars[name] = list(value) if isinstance(value, list) else value
            decisions.append(self._decision(name, entry, "first available value by priority"))

        merged = MergedMetadata(
            id=merged_id or self.config.merged_id(group.hash),
            title=title,
            author=author,
            source=MapSource.MERGED,
            posted_date=date_entry.upload_date if date_entry else None,
            description=description,
            tags=self._merge_tags(group),
            author_notes=notes_entry.metadata.description if notes_entry else None,
            sources=build_sources(group.levels, log=self.logger),
            merged_from=[entry.id for entry in group.levels],
            **scalars,
        )
        return merged, decisions

    def _clean_title(self, entry: DuplicateEntry) -> str:
        return strip_suffixes(entry.title or "", self.config.title_suffixes)

    def _ordered(self, group: DuplicateGroup, field: str) -> list[DuplicateEntry]:
        priorities = self.config.priorities
        indexed = list(enumerate(group.levels))
        indexed.sort(key=lambda item: (priorities.rank(field, item[1].source), item[0]))
        return [entry for _, entry in indexed]

    def _first(
        self,
        group: DuplicateGroup,
        field: str,
        getter: Callable[[DuplicateEntry], Any],
    ) -> DuplicateEntry | None:
        for entry in self._ordered(group, field):
            if not _is_empty(field, getter(entry)):
                return entry
        return None

    def _pick_description(self, group: DuplicateGroup) -> tuple[DuplicateEntry | None, str]:
        best: DuplicateEntry | None = None
        for entry in self._ordered(group, "description"):
            text = entry.metadata.description
            if self.config.is_placeholder_description(text):
                continue
            if best is None:
                best = entry
            elif entry.source is best.source and len(text or "") > len(
                best.metadata.description or ""
            ):
                best = entry
            elif entry.source is not best.source:
                break
        if best is not None:
            return best, "first real description by priority"
        for entry in self._ordered(group, "description"):
            if not _is_empty("description", entry.metadata.description):
                return entry, "placeholder description, nothing better available"
        return None, "no description"

    def _pick_author_notes(
        self, group: DuplicateGroup, description: str | None
    ) -> DuplicateEntry | None:
        allowed = self.config.priorities.for_field("author_notes")
        chosen = normalize_whitespace(description)
        for entry in self._ordered(group, "author_notes"):
            if entry.source not in allowed:
                continue
            text = entry.metadata.description
            if self.config.is_placeholder_description(text):
                continue
            if normalize_whitespace(text) == chosen:
                continue
            return entry
        return None

    def _merge_tags(self, group: DuplicateGroup) -> list[str]:
        seen: dict[str, None] = {}
        for entry in group.levels:
            for tag in entry.metadata.tags or []:
                if tag in self.config.source_tags:
                    continue
                seen.setdefault(tag, None)
        return list(seen)

    @staticmethod
    def _decision(field: str, entry: DuplicateEntry | None, reason: str) -> FieldDecision:
        if entry is None:
            return FieldDecision(field=field, source=None, level_id=None, reason="default")
        return FieldDecision(
            field=field, source=entry.source.value, level_id=entry.id, reason=reason
        )
