"""Blocklist archive manager.

Downloads and caches the UT1 blocklist archive (Université Toulouse 1
Capitole) and unpacks it into a directory tree that ``DirectorySource`` can
read. Never used on the lookup path.
"""

import logging
import shutil
import tarfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import requests

logger = logging.getLogger(__name__)

UT1_ARCHIVE_URL = "https://dsi.ut-capitole.fr/blacklists/download/blacklists.tar.gz"
ARCHIVE_NAME = "blacklists.tar.gz"
BLOCKLIST_DIR_NAME = "blacklists"


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def safe_members(tar: tarfile.TarFile, dest: Path) -> list[tarfile.TarInfo]:
    """Return archive members that stay inside ``dest`` once extracted.

    Absolute paths, ``..`` escapes, links pointing outside ``dest`` and
    device files are dropped with a warning.
    """
    dest = dest.resolve()
    members = []
    for member in tar.getmembers():
        target = (dest / member.name).resolve()
        if not _is_within(target, dest):
            logger.warning(f"Skipping archive member outside destination: {member.name}")
            continue
        if member.issym():
            link_target = (target.parent / member.linkname).resolve()
            if not _is_within(link_target, dest):
                logger.warning(f"Skipping symlink pointing outside destination: {member.name}")
                continue
        elif member.islnk():
            if not _is_within((dest / member.linkname).resolve(), dest):
                logger.warning(f"Skipping hard link pointing outside destination: {member.name}")
                continue
        elif not (member.isfile() or member.isdir()):
            logger.warning(f"Skipping special archive member: {member.name}")
            continue
        members.append(member)
    return members


class BlocklistFeedManager:
    """Manages downloading and unpacking of the blocklist archive."""

    def __init__(
        self,
        cache_dir: Path,
        url: str = UT1_ARCHIVE_URL,
        update_interval_hours: int = 24,
        timeout_seconds: int = 60,
    ) -> None:
        """Initialize the feed manager.

        Args:
            cache_dir: Directory holding the archive and the unpacked tree
            url: Archive URL (.tar.gz)
            update_interval_hours: How often to refresh the archive
            timeout_seconds: HTTP request timeout
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.url = url
        self.update_interval = timedelta(hours=update_interval_hours)
        self.timeout = timeout_seconds

    @property
    def archive_path(self) -> Path:
        return self.cache_dir / ARCHIVE_NAME

    @property
    def blocklist_dir(self) -> Path:
        """Root of the unpacked blocklists, one subdirectory per category."""
        return self.cache_dir / BLOCKLIST_DIR_NAME

    def is_stale(self) -> bool:
        """Check if the archive is missing, never unpacked, or older than the interval."""
        if not self.archive_path.exists() or not self.blocklist_dir.is_dir():
            return True

        mtime = datetime.fromtimestamp(self.archive_path.stat().st_mtime)
        return datetime.now() - mtime > self.update_interval

    def update(self, force: bool = False) -> bool:
        """Download and unpack the archive if stale.

        Args:
            force: Download even if the cached copy is fresh

        Returns:
            True if a new archive was unpacked, False if the cached copy was kept

        Raises:
            requests.RequestException: If the download fails and no previous
                copy exists
        """
        if not force and not self.is_stale():
            logger.debug("Blocklist archive is up to date")
            return False

        logger.info(f"Updating blocklists from {self.url}")
        try:
            self._download_archive()
        except requests.RequestException as e:
            if not self.blocklist_dir.is_dir():
                raise
            logger.warning(f"Failed to update blocklists, keeping existing copy: {e}")
            return False

        self._extract_archive()
        return True

    def _download_archive(self) -> None:
        """Download the archive to the cache.

        Raises:
            requests.RequestException: If download fails
        """
        temp_file = self.archive_path.with_suffix(".tmp")
        with requests.get(self.url, timeout=self.timeout, stream=True) as resp:
            resp.raise_for_status()
            with open(temp_file, "wb") as f:
                for chunk in resp.iter_content(chunk_size=1 << 16):
                    f.write(chunk)

        # Write to temp file first, then rename (atomic)
        temp_file.replace(self.archive_path)
        logger.info(f"Downloaded {self.archive_path.name} ({self.archive_path.stat().st_size} bytes)")

    def _extract_archive(self) -> None:
        """Unpack the archive, replacing the previous tree only once extraction succeeded."""
        staging = self.cache_dir / ".extract"
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir()

        with tarfile.open(self.archive_path, "r:*") as tar:
            members = safe_members(tar, staging)
            if hasattr(tarfile, "data_filter"):
                tar.extractall(staging, members=members, filter="data")
            else:
                tar.extractall(staging, members=members)

        # The UT1 archive wraps everything in a top-level "blacklists" directory
        extracted = staging / BLOCKLIST_DIR_NAME
        if not extracted.is_dir():
            extracted = staging

        previous = self.cache_dir / ".previous"
        if previous.exists():
            shutil.rmtree(previous)
        if self.blocklist_dir.exists():
            self.blocklist_dir.replace(previous)
        extracted.replace(self.blocklist_dir)

        for leftover in (staging, previous):
            if leftover.exists():
                shutil.rmtree(leftover)

        logger.info(f"Unpacked {self.category_count()} categories into {self.blocklist_dir}")

    def category_count(self) -> int:
        if not self.blocklist_dir.is_dir():
            return 0
        return sum(1 for entry in self.blocklist_dir.iterdir() if entry.is_dir())

    def get_stats(self) -> dict[str, Any]:
        """Get statistics about the cached archive.

        Returns:
            Dict with archive path, size, age and category count
        """
        stats: dict[str, Any] = {
            "archive": str(self.archive_path),
            "blocklist_dir": str(self.blocklist_dir),
            "categories": self.category_count(),
            "size_bytes": None,
            "updated": None,
            "age_hours": None,
        }

        if self.archive_path.exists():
            mtime = datetime.fromtimestamp(self.archive_path.stat().st_mtime)
            age = datetime.now() - mtime
            stats["size_bytes"] = self.archive_path.stat().st_size
            stats["updated"] = mtime.strftime("%Y-%m-%d %H:%M:%S")
            stats["age_hours"] = int(age.total_seconds() / 3600)

        return stats

