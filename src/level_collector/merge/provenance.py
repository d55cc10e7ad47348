from __future__ import annotations

import logging
import re
from urllib.parse import unquote, urlparse

from level_collector.models import DuplicateEntry, MapSource, SourceProvenance

logger = logging.getLogger(__name__)

# /channels/<guild>/<channel>/<message> or /channels/<channel>/<message>
DISCORD_MESSAGE_RE = re.compile(r"/channels/(\d+|@me)/(\d+)(?:/(\d+))?/?$")
ARCHIVE_ITEM_RE = re.compile(r"/(?:details|download)/([^/?#]+)")
GITHUB_RELEASE_RE = re.compile(r"/releases/(?:tag|download)/([^/?#]+)")


class MalformedUrlError(ValueError):
    pass


def _checked_url(url: str) -> str:
    try:
        parsed = urlparse(url.strip())
    except ValueError as exc:
        raise MalformedUrlError(f"unparseable URL {url!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise MalformedUrlError(f"not an absolute http(s) URL: {url!r}")
    return parsed.path


def parse_provenance(entry: DuplicateEntry) -> SourceProvenance:
    """Build the provenance slot for one member; raises MalformedUrlError."""
    meta = entry.metadata
    url = (meta.source_url or "").strip()
    if not url:
        raise MalformedUrlError("missing source URL")
    path = _checked_url(url)

    if entry.source in (MapSource.DISCORD_COMMUNITY, MapSource.DISCORD_ARCHIVE):
        match = DISCORD_MESSAGE_RE.search(path)
        if not match:
            raise MalformedUrlError(f"no channel/message ids in Discord URL: {url!r}")
        if match.group(3):
            channel_id, message_id = match.group(2), match.group(3)
        else:
            channel_id, message_id = match.group(1), match.group(2)
        return SourceProvenance(
            url=url,
            upload_date=entry.upload_date,
            platform_id=message_id,
            channel_id=channel_id,
            message_id=message_id,
        )

    if entry.source is MapSource.ARCHIVE:
        match = ARCHIVE_ITEM_RE.search(path)
        identifier = meta.original_id or (unquote(match.group(1)) if match else None) or entry.id
        return SourceProvenance(url=url, upload_date=entry.upload_date, platform_id=identifier)

    if entry.source is MapSource.HOGNOSE:
        match = GITHUB_RELEASE_RE.search(path)
        tag = meta.release_id or (unquote(match.group(1)) if match else None) or meta.original_id
        return SourceProvenance(url=url, upload_date=entry.upload_date, platform_id=tag or entry.id)

    return SourceProvenance(
        url=url, upload_date=entry.upload_date, platform_id=meta.original_id or entry.id
    )


def build_sources(
    entries: list[DuplicateEntry], *, log: logging.Logger | None = None
) -> dict[str, SourceProvenance]:
    """One provenance slot per contributing source, first parseable member wins.

    Members with a malformed URL are logged and left out; the merge goes on.
    """
    log = log or logger
    sources: dict[str, SourceProvenance] = {}
    for entry in entries:
        key = entry.source.value
        if key in sources:
            continue
        if not entry.metadata.source_url:
            continue
        try:
            sources[key] = parse_provenance(entry)
        except MalformedUrlError as exc:
            log.warning("Skipping provenance for %s (%s): %s", entry.id, key, exc)
    return sources
