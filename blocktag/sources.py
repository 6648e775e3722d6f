"""Blocklist sources.

A source yields, per category, the raw domain lines and raw URL lines that
feed the index builder. Two implementations are provided:

- ``MappingSource`` wraps in-memory mappings (fixtures, programmatic use)
- ``DirectorySource`` scans a UT1-style blocklist tree::

    blacklists/
    ├── README
    ├── ads -> publicite
    ├── adult
    │   ├── domains.gz
    │   ├── urls
    │   └── usage
    └── gambling
        ├── domains
        └── urls
"""

import gzip
import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Optional, Protocol

from blocktag.errors import BlocklistDirectoryError, BlocklistNotFoundError

logger = logging.getLogger(__name__)

DOMAINS_FILE = "domains"
URLS_FILE = "urls"


class CategorySource(Protocol):
    """Anything that can enumerate categories and their raw lines."""

    def categories(self) -> Iterable[str]: ...

    def domain_lines(self, category: str) -> Iterable[str]: ...

    def url_lines(self, category: str) -> Iterable[str]: ...


class MappingSource:
    """Source backed by in-memory mappings of category -> raw lines."""

    def __init__(
        self,
        domains: Mapping[str, Iterable[str]],
        urls: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self._domains = domains
        self._urls = urls or {}

    def categories(self) -> list[str]:
        names = list(self._domains)
        names.extend(name for name in self._urls if name not in self._domains)
        return names

    def domain_lines(self, category: str) -> Iterable[str]:
        return self._domains.get(category, ())

    def url_lines(self, category: str) -> Iterable[str]:
        return self._urls.get(category, ())


def iter_list_lines(path: Path) -> Iterator[str]:
    """Yield the entries of a blocklist file.

    Reads ``path`` or, when it does not exist, its ``.gz`` sibling. Blank lines
    and ``#`` comments are skipped; undecodable bytes are replaced.

    Raises:
        OSError: If the file exists but cannot be read
    """
    if path.exists():
        handle = open(path, encoding="utf-8", errors="replace")
    else:
        handle = gzip.open(path.with_name(path.name + ".gz"), "rt", encoding="utf-8", errors="replace")

    with handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            yield line


def _list_exists(path: Path) -> bool:
    return path.is_file() or path.with_name(path.name + ".gz").is_file()


class DirectorySource:
    """Source backed by a directory of category subdirectories."""

    def __init__(self, root: Path, categories: Optional[Iterable[str]] = None) -> None:
        """Initialize the source.

        Args:
            root: Blocklist root, one subdirectory per category
            categories: Restrict to these category names (default: all)

        Raises:
            BlocklistDirectoryError: If root is not a directory
        """
        self.root = Path(root).expanduser()
        if not self.root.is_dir():
            raise BlocklistDirectoryError(self.root)
        self._only = list(categories) if categories is not None else None

    def categories(self) -> list[str]:
        """Return category names, sorted; symlinked aliases count as categories."""
        if self._only is not None:
            return [name for name in self._only if (self.root / name).is_dir()]
        return sorted(entry.name for entry in self.root.iterdir() if entry.is_dir())

    def domain_lines(self, category: str) -> Iterable[str]:
        return self._lines(category, DOMAINS_FILE)

    def url_lines(self, category: str) -> Iterable[str]:
        return self._lines(category, URLS_FILE)

    def _lines(self, category: str, filename: str) -> Iterable[str]:
        path = self.root / category / filename
        if not _list_exists(path):
            logger.debug(f"No {filename} list for category {category}")
            return ()
        return iter_list_lines(path)


def load_category(root: Path, name: str) -> DirectorySource:
    """Build a source restricted to a single category.

    Raises:
        BlocklistDirectoryError: If root is not a directory
        BlocklistNotFoundError: If root/name has neither a domains nor a urls list
    """
    source = DirectorySource(root, categories=[name])
    category_dir = source.root / name
    if not (_list_exists(category_dir / DOMAINS_FILE) or _list_exists(category_dir / URLS_FILE)):
        raise BlocklistNotFoundError(category_dir)
    return source
