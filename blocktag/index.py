"""Index construction from blocklist sources.

Every raw line is normalized and the owning category appended to the key's
tag list. Lines that fail normalization are skipped: upstream blocklists
routinely carry malformed entries and must not abort a build.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from blocktag.errors import NormalizationError
from blocktag.normalizer import normalize_domain, normalize_url
from blocktag.sources import CategorySource

logger = logging.getLogger(__name__)

DomainIndex = dict[str, list[str]]
UrlIndex = dict[str, list[str]]


@dataclass
class BuildStats:
    """Counters collected while building the indices."""

    categories: int = 0
    domain_lines: int = 0
    url_lines: int = 0
    skipped_domains: int = 0
    skipped_urls: int = 0
    domains_by_category: Counter = field(default_factory=Counter)
    urls_by_category: Counter = field(default_factory=Counter)
    skipped_by_category: Counter = field(default_factory=Counter)

    @property
    def skipped(self) -> int:
        return self.skipped_domains + self.skipped_urls

    def as_dict(self) -> dict[str, Any]:
        return {
            "categories": self.categories,
            "domain_lines": self.domain_lines,
            "url_lines": self.url_lines,
            "skipped_domains": self.skipped_domains,
            "skipped_urls": self.skipped_urls,
            "domains_by_category": dict(self.domains_by_category),
            "urls_by_category": dict(self.urls_by_category),
            "skipped_by_category": dict(self.skipped_by_category),
        }


def build_indices(source: CategorySource) -> tuple[DomainIndex, UrlIndex, BuildStats]:
    """Build the domain and URL indices from a source.

    Args:
        source: Yields categories and their raw domain/url lines

    Returns:
        Tuple of (domain index, url index, build stats)

    Raises:
        OSError: If a list file cannot be read
    """
    domains: DomainIndex = {}
    urls: UrlIndex = {}
    stats = BuildStats()

    for category in source.categories():
        stats.categories += 1

        for line in source.domain_lines(category):
            stats.domain_lines += 1
            try:
                key = normalize_domain(line)
            except NormalizationError as e:
                stats.skipped_domains += 1
                stats.skipped_by_category[category] += 1
                logger.debug(f"Skipping domain line in {category}: {e}")
                continue
            domains.setdefault(key, []).append(category)
            stats.domains_by_category[category] += 1

        for line in source.url_lines(category):
            stats.url_lines += 1
            try:
                key = normalize_url(line)
            except NormalizationError as e:
                stats.skipped_urls += 1
                stats.skipped_by_category[category] += 1
                logger.debug(f"Skipping url line in {category}: {e}")
                continue
            urls.setdefault(key, []).append(category)
            stats.urls_by_category[category] += 1

        logger.info(
            f"Loaded {category}: {stats.domains_by_category[category]} domains, "
            f"{stats.urls_by_category[category]} urls, "
            f"{stats.skipped_by_category[category]} skipped"
        )

    logger.info(
        f"Built indices: {len(domains)} domains, {len(urls)} urls "
        f"from {stats.categories} categories ({stats.skipped} lines skipped)"
    )
    return domains, urls, stats
