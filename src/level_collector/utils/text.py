from __future__ import annotations

import re


def normalize_whitespace(text: str | None) -> str:
    """Collapse all whitespace to single spaces and strip."""
    return re.sub(r"\s+", " ", (text or "")).strip()


def strip_suffixes(text: str, suffixes: tuple[str, ...]) -> str:
    """Remove any of ``suffixes`` from the end of ``text`` (repeatedly).

    A text that is nothing but a suffix, leading whitespace aside, becomes empty.
    """
    result = text.strip()
    changed = True
    while changed:
        changed = False
        for suffix in suffixes:
            if suffix and result.endswith(suffix):
                result = result[: -len(suffix)].rstrip()
                changed = True
            elif suffix.strip() and result == suffix.strip():
                result = ""
                changed = True
    return result


def format_kib(size: int | float | None) -> str:
    return f"{(size or 0) / 1024:.1f} KB"


def format_mib(size: int | float | None) -> str:
    return f"{(size or 0) / (1024 * 1024):.2f}"
