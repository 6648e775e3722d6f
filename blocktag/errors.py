"""Exceptions raised by blocktag."""

from pathlib import Path


class BlocktagError(Exception):
    """Base class for all blocktag errors."""


class NormalizationError(BlocktagError):
    """A candidate string could not be turned into a lookup key."""


class MalformedInputError(NormalizationError):
    """Neither the raw string nor its https://-prefixed form parses as a URL."""

    def __init__(self, candidate: str) -> None:
        super().__init__(f"Cannot parse {candidate!r} as a URL")
        self.candidate = candidate


class NoHostnameError(NormalizationError):
    """The URL parsed but carries no host (e.g. mailto:)."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No hostname in {url!r}")
        self.url = url


class BlocklistDirectoryError(BlocktagError):
    """The blocklist root is missing or is not a directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"{path} is not a directory.")
        self.path = path


class BlocklistNotFoundError(BlocktagError):
    """A named category has neither a domains nor a urls list."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"No blocklist named {path} found")
        self.path = path


class ConfigError(BlocktagError):
    """A config file exists but cannot be parsed."""
