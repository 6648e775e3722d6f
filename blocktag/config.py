"""Configuration loading for blocktag.

Loads settings from TOML config file with CLI override support.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomli

from blocktag.errors import ConfigError
from blocktag.feeds import UT1_ARCHIVE_URL

logger = logging.getLogger(__name__)


def get_default_cache_dir() -> Path:
    """Get the default directory for the downloaded archive."""
    return Path.home() / ".cache" / "blocktag"


def get_config_search_paths() -> list[Path]:
    """Get list of paths to search for config file."""
    return [
        Path("blocktag.toml"),  # Current directory
        Path.home() / ".config" / "blocktag" / "blocktag.toml",
        Path("/etc/blocktag/blocktag.toml"),
    ]


def find_config_file() -> Optional[Path]:
    """Find the first existing config file."""
    for path in get_config_search_paths():
        if path.exists():
            return path
    return None


@dataclass
class Config:
    """Loaded configuration with all sections."""

    # Blocklists (None means: use the unpacked archive under feed_cache_dir)
    blocklist_path: Optional[Path] = None
    categories: Optional[list[str]] = None

    # Feed
    feed_url: str = UT1_ARCHIVE_URL
    feed_cache_dir: Path = field(default_factory=get_default_cache_dir)
    feed_update_interval_hours: int = 24
    feed_timeout_seconds: int = 60

    # Logging
    log_level: str = "WARNING"

    def resolve_blocklist_path(self) -> Path:
        """Directory to build the engine from."""
        if self.blocklist_path is not None:
            return self.blocklist_path
        return self.feed_cache_dir / "blacklists"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from TOML file.

    Args:
        config_path: Explicit path to config file, or None to search

    Returns:
        Config object with loaded values

    Raises:
        ConfigError: If an explicitly given config file cannot be parsed
    """
    config = Config()
    explicit = config_path is not None

    # Find config file
    if config_path is None:
        config_path = find_config_file()

    if config_path is None or not config_path.exists():
        logger.debug("No config file found, using defaults")
        return config

    logger.info(f"Loading config from {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        if explicit:
            raise ConfigError(f"Failed to load config file {config_path}: {e}") from e
        logger.warning(f"Failed to load config file: {e}")
        return config

    # Blocklists section
    if "blocklists" in data:
        bl = data["blocklists"]
        if "path" in bl:
            config.blocklist_path = Path(bl["path"]).expanduser()
        if "categories" in bl:
            config.categories = list(bl["categories"])

    # Feed section
    if "feed" in data:
        feed = data["feed"]
        if "url" in feed:
            config.feed_url = feed["url"]
        if "cache_dir" in feed:
            config.feed_cache_dir = Path(feed["cache_dir"]).expanduser()
        if "update_interval_hours" in feed:
            config.feed_update_interval_hours = feed["update_interval_hours"]
        if "timeout_seconds" in feed:
            config.feed_timeout_seconds = feed["timeout_seconds"]

    # Logging section
    if "logging" in data:
        log = data["logging"]
        if "level" in log:
            config.log_level = str(log["level"]).upper()

    return config


def merge_cli_options(config: Config, **cli_options: Any) -> Config:
    """Merge CLI options into config (CLI takes precedence).

    Args:
        config: Base config from file
        **cli_options: CLI option overrides (None values are ignored)

    Returns:
        Config with CLI overrides applied
    """
    # Map CLI option names to config attributes
    mappings = {
        "blocklists": "blocklist_path",
        "category": "categories",
        "cache_dir": "feed_cache_dir",
        "feed_url": "feed_url",
    }

    for cli_name, config_name in mappings.items():
        if cli_name in cli_options:
            value = cli_options[cli_name]
            # Only override if CLI value is meaningful
            if value is not None and value != () and value != "":
                if cli_name == "category" and isinstance(value, tuple):
                    value = list(value)
                if cli_name in ("blocklists", "cache_dir"):
                    value = Path(value).expanduser()
                setattr(config, config_name, value)

    return config
