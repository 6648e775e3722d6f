"""blocktag - Categorize URLs and domains against named blocklists."""

from blocktag.engine import BlocklistEngine, EngineHolder, ancestor_suffixes, build_from_sources
from blocktag.errors import (
    BlocklistDirectoryError,
    BlocklistNotFoundError,
    BlocktagError,
    MalformedInputError,
    NoHostnameError,
    NormalizationError,
)
from blocktag.normalizer import normalize_domain, normalize_url
from blocktag.sources import DirectorySource, MappingSource, load_category

__version__ = "0.1.0"

__all__ = [
    "BlocklistEngine",
    "EngineHolder",
    "ancestor_suffixes",
    "build_from_sources",
    "BlocklistDirectoryError",
    "BlocklistNotFoundError",
    "BlocktagError",
    "MalformedInputError",
    "NoHostnameError",
    "NormalizationError",
    "normalize_domain",
    "normalize_url",
    "DirectorySource",
    "MappingSource",
    "load_category",
]
