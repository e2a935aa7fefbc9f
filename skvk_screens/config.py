# config.py
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger


@dataclass
class Config:
    """Holds all application configuration."""
    DATABASE_FILENAME: str = "skvk_screens.db"
    CONTENT_API_BASE_URL: str = "https://skvk-content.workers.dev"
    CONNECTIVITY_PROBE_URL: str = "https://www.gstatic.com/generate_204"
    LOCATION_SEARCH_URL: str = "https://nominatim.openstreetmap.org"
    LOCATION_RESULT_LIMIT: int = 5
    USER_AGENT: str = "SKVK Astrology App/1.0"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    SEARCH_MIN_LENGTH: int = 3
    SEARCH_DEBOUNCE_SECONDS: float = 0.3
    TRACK_SOURCE: str = "api"
    YTMUSIC_CATALOG_QUERY: str = "devotional aarti bhajan"
    SEARCH_RESULT_LIMIT: int = 25
    BOOK_LANGUAGE: str = "en"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.TRACK_SOURCE not in ("api", "ytmusic"):
            raise ValueError(f"Invalid TRACK_SOURCE: {self.TRACK_SOURCE!r}. Valid sources are: api, ytmusic")
        if self.SEARCH_MIN_LENGTH < 1:
            raise ValueError("SEARCH_MIN_LENGTH must be at least 1")
        if self.SEARCH_DEBOUNCE_SECONDS < 0:
            raise ValueError("SEARCH_DEBOUNCE_SECONDS cannot be negative")
        if self.HTTP_TIMEOUT_SECONDS <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be positive")
        if self.LOCATION_RESULT_LIMIT < 1:
            raise ValueError("LOCATION_RESULT_LIMIT must be at least 1")


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "skvk-screens"
    return Path.home() / ".config" / "skvk-screens"


def get_data_dir() -> Path:
    """Get the data directory path (database and logs)."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "skvk-screens"
    return Path.home() / ".local" / "share" / "skvk-screens"


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Converts a TOML value to the type of the setting's default."""
    if default is None:
        return value
    expected = type(default)
    if isinstance(value, expected) and not isinstance(value, bool):
        return value
    if isinstance(value, (bool, dict, list)) or (expected is int and isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"Invalid value for {name}: {value!r} (expected {expected.__name__})")
    try:
        return expected(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {name}: {value!r} (expected {expected.__name__})") from None


def _apply_overrides(config: Config, values: Dict[str, Any]) -> Config:
    defaults = {f.name: getattr(config, f.name) for f in fields(Config)}
    for key, value in values.items():
        name = key.upper()
        if name not in defaults:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        setattr(config, name, _coerce(name, value, defaults[name]))
    return config


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load configuration, overlaying a TOML file on the defaults.

    Lookup order: explicit path, $SKVK_CONFIG, then config.toml in the config dir.
    A missing file just yields the defaults.
    """
    config = Config()
    if path is None:
        env_path = os.environ.get("SKVK_CONFIG")
        path = Path(env_path) if env_path else get_config_dir() / "config.toml"

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        _apply_overrides(config, data.get("skvk", data))
        logger.info(f"Loaded configuration from {path}")
    else:
        logger.debug(f"No config file at {path}, using defaults")

    config.validate()
    return config
