"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest
import requests
from click.testing import CliRunner

from blocktag import config as config_module
from blocktag.cli import main
from test_feeds import UT1_ARCHIVE, FakeResponse


@pytest.fixture(autouse=True)
def no_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the user's real config files out of the tests."""
    monkeypatch.setattr(config_module, "get_config_search_paths", lambda: [tmp_path / "absent.toml"])


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


class TestDetect:
    def test_match(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(main, ["-b", str(blocklist_root), "detect", "www.casino.test"])
        assert result.exit_code == 0
        assert "gambling" in result.stdout

    def test_no_match_exit_code(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(main, ["-b", str(blocklist_root), "detect", "clean.test"])
        assert result.exit_code == 1

    def test_json_output(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(
            main,
            ["-b", str(blocklist_root), "detect", "--json", "https://foo.bar/baz", "clean.test"],
        )
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload == {"https://foo.bar/baz": ["ads", "adult"], "clean.test": None}

    def test_category_filter(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(
            main, ["-b", str(blocklist_root), "--category", "blog", "detect", "www.casino.test"]
        )
        assert result.exit_code == 1

    def test_unknown_category_is_build_error(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(main, ["-b", str(blocklist_root), "--category", "empty", "detect", "x.test"])
        assert result.exit_code == 2

    def test_missing_blocklist_dir(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["-b", str(tmp_path / "missing"), "detect", "foo.bar"])
        assert result.exit_code == 2

    def test_blocklist_path_from_config(self, runner: CliRunner, blocklist_root: Path, tmp_path: Path) -> None:
        config_path = tmp_path / "blocktag.toml"
        config_path.write_text(f'[blocklists]\npath = "{blocklist_root}"\ncategories = ["adult"]\n')
        result = runner.invoke(main, ["-c", str(config_path), "detect", "--json", "foo.bar", "casino.test"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"foo.bar": ["adult"], "casino.test": None}


class TestClassify:
    def test_stdin(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(
            main,
            ["-b", str(blocklist_root), "classify", "-"],
            input="foo.bar\n\nclean.test\nhttps://ujj.blogspot.com/things\n",
        )
        assert result.exit_code == 0
        assert "foo.bar\tads,adult\n" in result.stdout
        assert "https://ujj.blogspot.com/things\tblog\n" in result.stdout
        assert "clean.test" not in result.stdout

    def test_show_all(self, runner: CliRunner, blocklist_root: Path, tmp_path: Path) -> None:
        candidates = tmp_path / "candidates.txt"
        candidates.write_text("clean.test\ncasino.test\n")
        result = runner.invoke(main, ["-b", str(blocklist_root), "classify", "--all", str(candidates)])
        assert result.exit_code == 0
        assert "clean.test\t\n" in result.stdout
        assert "casino.test\tgambling\n" in result.stdout


class TestStats:
    def test_table(self, runner: CliRunner, blocklist_root: Path) -> None:
        result = runner.invoke(main, ["-b", str(blocklist_root), "stats"])
        assert result.exit_code == 0
        assert "gambling" in result.stdout
        assert "Unique domains: 6" in result.stdout
        assert "Skipped lines: 2" in result.stdout


class TestUpdate:
    def test_update_then_detect(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(requests, "get", lambda url, **kwargs: FakeResponse(UT1_ARCHIVE))
        cache_dir = tmp_path / "cache"

        result = runner.invoke(main, ["update", "--cache-dir", str(cache_dir)])
        assert result.exit_code == 0
        assert (cache_dir / "blacklists" / "adult" / "domains").exists()

        result = runner.invoke(main, ["-b", str(cache_dir / "blacklists"), "detect", "foo.bar"])
        assert result.exit_code == 0
        assert "adult" in result.stdout

    def test_download_failure(self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def offline_get(url: str, **kwargs: object) -> FakeResponse:
            raise requests.ConnectionError("offline")

        monkeypatch.setattr(requests, "get", offline_get)
        result = runner.invoke(main, ["update", "--cache-dir", str(tmp_path / "cache")])
        assert result.exit_code == 1
