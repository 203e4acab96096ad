"""Configuration for vaultfx.

Settings live in ``~/.vaultfx/config.json``. A missing file means defaults;
a broken file is logged and ignored, so configuration never stops startup.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from vaultfx.utils.logging import get_logger

DEFAULT_DATA_DIR = Path.home() / ".vaultfx"
CONFIG_FILENAME = "config.json"
BW_BINARY_ENV = "VAULTFX_BW_BINARY"

logger = get_logger("config")


@dataclass
class AppConfig:
    """Runtime settings.

    Attributes:
        bw_binary: Name or path of the Bitwarden CLI executable.
        data_dir: Directory for the cache file and logs.
        cache_enabled: Whether to read and write the item cache.
        fuzzy_search: Fuzzy subsequence matching instead of substring.
        case_sensitive: Match the query case-sensitively.
        tick_interval: Seconds between UI ticks.
        status_ttl: Seconds a status message stays visible.
        page_size: Rows moved by PageUp/PageDown.
        clipboard_clear_seconds: Clear copied secrets after this many
            seconds. 0 disables.
        otp_debounce: Minimum seconds between OTP fetch attempts.
        log_level: Logging level name.
    """

    bw_binary: str = "bw"
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    cache_enabled: bool = True
    fuzzy_search: bool = True
    case_sensitive: bool = False
    tick_interval: float = 0.1
    status_ttl: float = 3.0
    page_size: int = 10
    clipboard_clear_seconds: int = 30
    otp_debounce: float = 1.0
    log_level: str = "INFO"

    @property
    def cache_file(self) -> Path:
        """Path of the item cache."""
        return self.data_dir / "vault_cache.json"

    @property
    def log_dir(self) -> Path:
        """Directory for log files."""
        return self.data_dir

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        """Create a config from a dictionary, ignoring unknown or mistyped keys."""
        config = cls()
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            default = getattr(config, f.name)
            if f.name == "data_dir":
                if isinstance(value, str) and value:
                    config.data_dir = Path(value).expanduser()
                else:
                    logger.warning("Ignoring invalid config value for data_dir")
                continue
            # bool is a subclass of int, so check it first
            if isinstance(default, bool):
                ok = isinstance(value, bool)
            elif isinstance(default, float):
                ok = isinstance(value, (int, float)) and not isinstance(value, bool)
                value = float(value) if ok else value
            elif isinstance(default, int):
                ok = isinstance(value, int) and not isinstance(value, bool)
            else:
                ok = isinstance(value, str)
            if ok:
                setattr(config, f.name, value)
            else:
                logger.warning("Ignoring invalid config value for %s", f.name)
        return config


def load_config(path: Path | None = None) -> AppConfig:
    """Load settings from disk.

    Args:
        path: Config file. Defaults to ~/.vaultfx/config.json.

    Returns:
        The loaded config, or defaults when the file is missing or invalid.
    """
    config_path = path or DEFAULT_DATA_DIR / CONFIG_FILENAME
    config = AppConfig()

    if config_path.exists():
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read config %s: %s", config_path, e)
        else:
            if isinstance(data, dict):
                config = AppConfig.from_dict(data)
            else:
                logger.warning("Config %s is not a JSON object, using defaults", config_path)

    binary = os.environ.get(BW_BINARY_ENV)
    if binary:
        config.bw_binary = binary

    return config
