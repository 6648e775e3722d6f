"""Multi-category matching engine.

A site can sit in several overlapping blocklists at once: ``foo.com`` may be
listed under both "ads" and "tracking", and ``blogspot.com`` under "blog"
while ``adultblog.blogspot.com`` is under "adult". ``detect`` returns every
category that matches, merged into one set:

1. the exact domain of the candidate
2. every ancestor domain of it (never the bare top-level label)
3. the exact canonical URL of the candidate

The engine is read-only once built. To refresh blocklists, build a new engine
and swap it in with ``EngineHolder``.
"""

import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional

from blocktag.errors import NormalizationError
from blocktag.index import BuildStats, DomainIndex, UrlIndex, build_indices
from blocktag.normalizer import normalize_domain, normalize_url
from blocktag.sources import CategorySource, DirectorySource, MappingSource

logger = logging.getLogger(__name__)


def ancestor_suffixes(domain: str) -> list[str]:
    """Return the parent domains of ``domain`` to look up, longest first.

    The domain itself and the bare top-level label are excluded, so a block
    on "com" never matches every .com domain.

    >>> ancestor_suffixes("a.b.example.com")
    ['b.example.com', 'example.com']
    """
    labels = domain.split(".")
    return [".".join(labels[i:]) for i in range(1, len(labels) - 1)]


class BlocklistEngine:
    """Domain and URL indices with multi-category lookup."""

    def __init__(
        self,
        domains: DomainIndex,
        urls: UrlIndex,
        stats: Optional[BuildStats] = None,
    ) -> None:
        """Initialize the engine from pre-built indices.

        Args:
            domains: Canonical domain -> category tags
            urls: Canonical URL -> category tags
            stats: Counters from the build, if any
        """
        self._domains = domains
        self._urls = urls
        self.stats = stats or BuildStats()

    @classmethod
    def from_sources(cls, source: CategorySource) -> "BlocklistEngine":
        """Build an engine from any category source.

        Raises:
            OSError: If the source fails to read a list
        """
        domains, urls, stats = build_indices(source)
        return cls(domains, urls, stats)

    @classmethod
    def from_mapping(
        cls,
        domains: Mapping[str, Iterable[str]],
        urls: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> "BlocklistEngine":
        """Build an engine from category -> raw lines mappings.

        >>> engine = BlocklistEngine.from_mapping({"blog": ["blogspot.com"]})
        >>> sorted(engine.detect("https://ujj.blogspot.com/things"))
        ['blog']
        """
        return cls.from_sources(MappingSource(domains, urls))

    @classmethod
    def from_dir(cls, root: Path, categories: Optional[Iterable[str]] = None) -> "BlocklistEngine":
        """Build an engine from a blocklist directory tree.

        Raises:
            BlocklistDirectoryError: If root is not a directory
            OSError: If a list file cannot be read
        """
        logger.info(f"Loading blocklists from {root}")
        return cls.from_sources(DirectorySource(root, categories))

    @property
    def categories(self) -> list[str]:
        """All category tags present in either index."""
        tags: set[str] = set()
        for index in (self._domains, self._urls):
            for values in index.values():
                tags.update(values)
        return sorted(tags)

    @property
    def domain_count(self) -> int:
        return len(self._domains)

    @property
    def url_count(self) -> int:
        return len(self._urls)

    def _domain_tags(self, domain: str) -> set[str]:
        tags = set(self._domains.get(domain, ()))
        # Every ancestor level is checked: nested lists must not depend on order
        for suffix in ancestor_suffixes(domain):
            tags.update(self._domains.get(suffix, ()))
        return tags

    def detect_domain(self, candidate: str) -> Optional[frozenset[str]]:
        """Categories matching the candidate's domain or any of its parents."""
        try:
            domain = normalize_domain(candidate)
        except NormalizationError:
            return None
        return frozenset(self._domain_tags(domain)) or None

    def detect_url(self, candidate: str) -> Optional[frozenset[str]]:
        """Categories matching the candidate's canonical URL exactly."""
        try:
            url = normalize_url(candidate)
        except NormalizationError:
            return None
        return frozenset(self._urls.get(url, ())) or None

    def detect(self, candidate: str) -> Optional[frozenset[str]]:
        """Return every category matching a URL or domain.

        Domain and URL matches are merged into one set. A failure to
        normalize the candidate as one form does not prevent lookup of the
        other.

        Args:
            candidate: URL or domain, scheme optional

        Returns:
            Non-empty set of category tags, or None if nothing matched
        """
        detections: set[str] = set()

        try:
            detections.update(self._domain_tags(normalize_domain(candidate)))
        except NormalizationError:
            pass

        try:
            detections.update(self._urls.get(normalize_url(candidate), ()))
        except NormalizationError:
            pass

        return frozenset(detections) or None

    def matches(self, candidate: str, category: str) -> bool:
        """Return True if the candidate is listed under ``category``."""
        detections = self.detect(candidate)
        return detections is not None and category in detections


def build_from_sources(source: CategorySource) -> BlocklistEngine:
    """Build an engine from a category source."""
    return BlocklistEngine.from_sources(source)


class EngineHolder:
    """Swappable reference to the live engine.

    Queries read the current reference without locking. Reloads build a new
    engine first and only then replace the reference, so in-flight queries
    always see a complete engine.

    Usage:
        holder = EngineHolder(BlocklistEngine.from_dir(root))
        holder.detect("https://example.com/")
        holder.reload_from_dir(root)  # after the lists were updated
    """

    def __init__(self, engine: BlocklistEngine) -> None:
        self._engine = engine
        self._swap_lock = threading.Lock()

    @property
    def engine(self) -> BlocklistEngine:
        return self._engine

    def swap(self, engine: BlocklistEngine) -> BlocklistEngine:
        """Install a new engine and return the previous one."""
        with self._swap_lock:
            previous = self._engine
            self._engine = engine
        logger.info(f"Swapped blocklist engine ({engine.domain_count} domains, {engine.url_count} urls)")
        return previous

    def reload_from_dir(
        self,
        root: Path,
        categories: Optional[Iterable[str]] = None,
    ) -> BlocklistEngine:
        """Rebuild from a directory and swap the result in.

        Returns the previous engine. The current engine stays in place if the
        build fails.
        """
        return self.swap(BlocklistEngine.from_dir(root, categories))

    def detect(self, candidate: str) -> Optional[frozenset[str]]:
        return self._engine.detect(candidate)
