"""Ingestion: item schemas, fetchers, dedup and normalization."""

from tracescout.ingestion.base_adapter import BaseFetcher, Fetcher
from tracescout.ingestion.deduplication import canonicalize_url, deduplicate
from tracescout.ingestion.normalizer import ItemNormalizer
from tracescout.ingestion.schemas import MarketCategory, NormalizedItem, RawItem, Source

__all__ = [
    "BaseFetcher",
    "Fetcher",
    "ItemNormalizer",
    "MarketCategory",
    "NormalizedItem",
    "RawItem",
    "Source",
    "canonicalize_url",
    "deduplicate",
]
