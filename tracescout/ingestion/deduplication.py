"""
URL-keyed deduplication across feeds.

The same product routinely shows up on several feeds in one run (a GitHub
repo posted as "Show HN", a launch cross-posted to Reddit). Items collapse
onto a canonical URL key; the copy from the most trustworthy feed survives
and inherits the tags of every duplicate.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from tracescout.ingestion.schemas import RawItem, source_priority

logger = logging.getLogger(__name__)

TRACKING_PARAMS = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "utm_name",
    "utm_reader",
    "utm_referrer",
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "ref_url",
})


def canonicalize_url(url: str) -> str:
    """
    Build the dedup key for a URL.

    - Lowercase scheme and host, drop a leading ``www.``
    - Remove the fragment and tracking query parameters
    - Strip the trailing path slash
    - Sort the remaining query parameters

    Falls back to the lower-cased, trimmed raw string when the value does
    not parse as an absolute URL.

    Args:
        url: URL as published by the feed.

    Returns:
        Canonical key string.
    """
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
        host = (parts.hostname or "").lower()
        port = parts.port
    except ValueError:
        return raw.lower()

    if not parts.scheme or not host:
        return raw.lower()

    if host.startswith("www."):
        host = host[4:]
    netloc = f"{host}:{port}" if port else host

    kept = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k.lower() not in TRACKING_PARAMS and not k.lower().startswith("utm_")
    ]
    kept.sort()

    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), netloc, path, urlencode(kept), ""))


def merge_tags(*tag_sets: Iterable[str]) -> tuple[str, ...]:
    """Union tag collections, keeping first-seen order and ignoring case."""
    seen: set[str] = set()
    merged: list[str] = []
    for tags in tag_sets:
        for tag in tags:
            key = tag.lower()
            if key not in seen:
                seen.add(key)
                merged.append(tag)
    return tuple(merged)


@dataclass
class DedupResult:
    """Outcome of a deduplication pass.

    Attributes:
        items: Surviving items, paired with their canonical key, in
            first-seen key order.
        duplicates: Number of input items that collapsed into another.
    """

    items: list[tuple[str, RawItem]] = field(default_factory=list)
    duplicates: int = 0


def deduplicate(items: Iterable[RawItem]) -> DedupResult:
    """
    Collapse items sharing a canonical URL.

    On collision the item from the higher-priority source is kept (the
    earlier item wins ties) and both tag sets are unioned.

    Args:
        items: Raw items from every source of one fetch attempt.

    Returns:
        DedupResult with one item per canonical key.
    """
    by_key: dict[str, RawItem] = {}
    duplicates = 0

    for item in items:
        key = canonicalize_url(item.url) if item.url else f"id:{item.id}"
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = item
            continue

        duplicates += 1
        if source_priority(item.source) > source_priority(existing.source):
            winner, loser = item, existing
        else:
            winner, loser = existing, item

        by_key[key] = winner.model_copy(update={"tags": merge_tags(winner.tags, loser.tags)})
        logger.debug(
            "Duplicate %s: kept %s (%s), merged %s (%s)",
            key, winner.id, winner.source, loser.id, loser.source,
        )

    return DedupResult(items=list(by_key.items()), duplicates=duplicates)
