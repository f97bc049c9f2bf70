"""Load fetcher plugins from ``module:factory`` import paths."""

import importlib
import logging

from tracescout.ingestion.base_adapter import Fetcher

logger = logging.getLogger(__name__)


class FetcherLoadError(Exception):
    """Raised when a configured fetcher plugin cannot be loaded."""


def load_fetcher(path: str) -> Fetcher:
    """
    Import ``module:factory`` and call the factory.

    Args:
        path: Import path such as ``mypkg.feeds:HackerNewsFetcher``.

    Returns:
        The fetcher the factory returned.

    Raises:
        FetcherLoadError: If the path is malformed, the import fails, or
            the factory does not produce a Fetcher.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise FetcherLoadError(f"Fetcher path must look like 'module:factory', got {path!r}")

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise FetcherLoadError(f"Cannot import fetcher {path!r}: {e}") from e

    fetcher = factory()
    if not isinstance(fetcher, Fetcher):
        raise FetcherLoadError(f"{path!r} did not return a Fetcher (got {type(fetcher).__name__})")

    logger.info("Loaded fetcher %s from %s", fetcher.name, path)
    return fetcher


def load_fetchers(paths: list[str]) -> list[Fetcher]:
    """Load every configured fetcher plugin, failing on the first bad one."""
    return [load_fetcher(path) for path in paths]
