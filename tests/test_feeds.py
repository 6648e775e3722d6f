"""Tests for the blocklist archive manager."""

import io
import os
import tarfile
import time
from pathlib import Path

import pytest
import requests

from blocktag.engine import BlocklistEngine
from blocktag.feeds import BlocklistFeedManager, safe_members


def make_archive(files: dict[str, str], symlinks: dict[str, str] | None = None) -> bytes:
    """Build an in-memory .tar.gz archive."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buf.getvalue()


class FakeResponse:
    """Minimal stand-in for a streamed requests.Response."""

    def __init__(self, content: bytes, status_code: int = 200) -> None:
        self.content = content
        self.status_code = status_code

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: object) -> bool:
        return False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]


UT1_ARCHIVE = make_archive(
    {
        "blacklists/README": "UT1\n",
        "blacklists/adult/domains": "foo.bar\n",
        "blacklists/adult/urls": "foo.bar/baz\n",
        "blacklists/gambling/domains": "casino.test\n",
    },
    symlinks={"blacklists/ads": "adult"},
)


@pytest.fixture()
def served(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Serve UT1_ARCHIVE for every requests.get call; returns the requested URLs."""
    calls: list[str] = []

    def fake_get(url: str, **kwargs: object) -> FakeResponse:
        calls.append(url)
        return FakeResponse(UT1_ARCHIVE)

    monkeypatch.setattr(requests, "get", fake_get)
    return calls


class TestUpdate:
    def test_download_and_unpack(self, tmp_path: Path, served: list[str]) -> None:
        manager = BlocklistFeedManager(tmp_path / "cache", url="https://mirror.test/bl.tar.gz")

        assert manager.is_stale()
        assert manager.update()
        assert served == ["https://mirror.test/bl.tar.gz"]
        assert not manager.is_stale()

        assert (manager.blocklist_dir / "adult" / "domains").read_text() == "foo.bar\n"
        assert manager.category_count() == 3

        engine = BlocklistEngine.from_dir(manager.blocklist_dir)
        assert engine.detect("https://foo.bar/baz") == {"adult", "ads"}
        assert engine.detect("www.casino.test") == {"gambling"}

    def test_fresh_cache_not_downloaded_again(self, tmp_path: Path, served: list[str]) -> None:
        manager = BlocklistFeedManager(tmp_path / "cache")
        manager.update()
        assert not manager.update()
        assert len(served) == 1

    def test_force_redownloads(self, tmp_path: Path, served: list[str]) -> None:
        manager = BlocklistFeedManager(tmp_path / "cache")
        manager.update()
        assert manager.update(force=True)
        assert len(served) == 2
        assert manager.category_count() == 3

    def test_old_archive_is_stale(self, tmp_path: Path, served: list[str]) -> None:
        manager = BlocklistFeedManager(tmp_path / "cache", update_interval_hours=1)
        manager.update()
        two_hours_ago = time.time() - 7200
        os.utime(manager.archive_path, (two_hours_ago, two_hours_ago))
        assert manager.is_stale()

    def test_first_download_failure_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def failing_get(url: str, **kwargs: object) -> FakeResponse:
            return FakeResponse(b"", status_code=503)

        monkeypatch.setattr(requests, "get", failing_get)
        manager = BlocklistFeedManager(tmp_path / "cache")
        with pytest.raises(requests.HTTPError):
            manager.update()

    def test_failure_keeps_existing_copy(
        self, tmp_path: Path, served: list[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        manager = BlocklistFeedManager(tmp_path / "cache")
        manager.update()

        def offline_get(url: str, **kwargs: object) -> FakeResponse:
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(requests, "get", offline_get)
        assert not manager.update(force=True)
        assert (manager.blocklist_dir / "gambling" / "domains").exists()

    def test_stats(self, tmp_path: Path, served: list[str]) -> None:
        manager = BlocklistFeedManager(tmp_path / "cache")
        assert manager.get_stats()["size_bytes"] is None

        manager.update()
        stats = manager.get_stats()
        assert stats["categories"] == 3
        assert stats["size_bytes"] == len(UT1_ARCHIVE)
        assert stats["age_hours"] == 0


class TestSafeMembers:
    def test_escaping_members_dropped(self, tmp_path: Path) -> None:
        data = make_archive(
            {"blacklists/adult/domains": "foo.bar\n", "../evil": "x", "/abs/evil": "x"},
            symlinks={"blacklists/ads": "adult", "blacklists/passwd": "/etc/passwd", "blacklists/up": "../../x"},
        )
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            names = [m.name for m in safe_members(tar, tmp_path)]

        assert names == ["blacklists/adult/domains", "blacklists/ads"]
