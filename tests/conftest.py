"""Shared fixtures: a small UT1-style blocklist tree."""

import gzip
from pathlib import Path

import pytest


def write_list(path: Path, lines: list[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n")


@pytest.fixture()
def blocklist_root(tmp_path: Path) -> Path:
    """Provide a blocklist directory.

    blacklists/
      README
      adult/domains, adult/urls
      blog/domains
      gambling/domains.gz (compressed, with a comment and a blank line)
      empty/            (no lists)
      ads -> adult      (alias)
    """
    root = tmp_path / "blacklists"
    root.mkdir()
    (root / "README").write_text("UT1 blacklists\n")

    write_list(root / "adult" / "domains", ["foo.bar", "adultblog.blogspot.com", "not a domain"])
    write_list(root / "adult" / "urls", ["foo.bar/baz", "cri.univ-tlse1.fr/tools/test_filtrage/adult/"])
    write_list(root / "blog" / "domains", ["blogspot.com", "wordpress.com"])

    (root / "gambling").mkdir()
    with gzip.open(root / "gambling" / "domains.gz", "wt") as f:
        f.write("# gambling sites\ncasino.test\n\nbet.example.org\n")

    (root / "empty").mkdir()
    (root / "ads").symlink_to("adult")
    return root
