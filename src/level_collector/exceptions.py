from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LevelCollectorError(Exception):
    message: str
    code: str = "level_collector_error"
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.context = dict(context or {})

    def __str__(self) -> str:
        return self.message

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "error_context": self.context,
        }


class ConfigValidationError(LevelCollectorError):
    code = "config_validation_error"


class YamlParseError(LevelCollectorError):
    code = "yaml_parse_error"


class CatalogLoadError(LevelCollectorError):
    """The catalog index is missing or cannot be parsed. Fatal for a run."""

    code = "catalog_load_error"


class CatalogWriteError(LevelCollectorError):
    code = "catalog_write_error"


class GroupMergeError(LevelCollectorError):
    """A single duplicate group could not be materialized."""

    code = "group_merge_error"
