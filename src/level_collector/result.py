"""
level_collector/result.py

Result types for per-item outcomes.

Error Handling Convention:
--------------------------
1. **Exceptions** are raised for structural problems that abort a run:
   - CatalogLoadError: missing or unparseable catalog index
   - CatalogWriteError: the merged catalog cannot be persisted
   - ConfigValidationError / YamlParseError: invalid merge configuration

2. **Result types** (this module) are returned for recoverable per-item issues:
   - one duplicate group failing to materialize (missing payload on disk)
   - one unique level failing to copy into the merged tree
   - one level directory failing validation

3. Callers count the failures and surface them in summaries, so a partial
   failure is always visible in the final report.

Usage:
------
    from level_collector.result import Ok, Err

    def copy_level(level: Level) -> Result[Level]:
        try:
            ...
            return Ok(copied)
        except OSError as exc:
            return Err("copy_failed", str(exc), level_id=level.id)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Either a success (Ok), a failure (Err) or a skipped operation (Noop).

    Attributes:
        status: "ok", "error" or "noop"
        value: The success value (only meaningful when status="ok")
        error: Error code (only meaningful when status="error")
        message: Human-readable error message or skip reason
        extras: Additional context (hash, level ids, paths)
    """

    status: str
    value: T | None = None
    error: str | None = None
    message: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_err(self) -> bool:
        return self.status == "error"

    @property
    def is_noop(self) -> bool:
        return self.status == "noop"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for JSON output (the value itself is not included)."""
        d: dict[str, Any] = {"status": self.status}
        if self.status == "error":
            if self.error:
                d["error"] = self.error
            if self.message:
                d["message"] = self.message
        elif self.status == "noop" and self.message:
            d["reason"] = self.message
        d.update(self.extras)
        return d


def Ok(value: T = None, **extras: Any) -> Result[T]:  # noqa: N802 - intentional PascalCase
    """Create a successful result."""
    return Result(status="ok", value=value, extras=extras)


def Err(error: str, message: str | None = None, **extras: Any) -> Result[Any]:  # noqa: N802
    """Create a failure result."""
    return Result(status="error", error=error, message=message, extras=extras)


def Noop(reason: str, **extras: Any) -> Result[Any]:  # noqa: N802
    """Create a no-operation result (skipped)."""
    return Result(status="noop", message=reason, extras=extras)
