"""
Configuration management for nightride.
"""
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from nightride.logging_config import get_logger, ConfigurationError
from nightride.stations import Station, StationRegistry, station_from_dict

logger = get_logger('config')

DEFAULT_CONFIG: str = """# Nightride FM configuration

[player]
# External player binary and its IPC socket
executable = "mpv"
socket_path = "/tmp/nightride.sock"
# Seconds to wait for a reply on the control channel
command_timeout = 1.0
reconnect_attempts = 3
reconnect_backoff = 0.2
spawn_timeout = 5.0

[playback]
volume_step = 5

[metadata]
# Seconds between now-playing requests
poll_interval = 15.0
# Quitting can wait this long for a request still in flight
request_timeout = 3.0

[search]
url = "https://music.youtube.com/search?q="

[input]
timeout = 0.05

[logging]
level = "INFO"
# file = "~/.local/state/nightride/nightride.log"

[notifications]
enabled = false
glyph = "🎵"

# Override the station list:
# [[stations]]
# id = "nightride"
# name = "Nightride"
# stream_url = "http://stream.nightride.fm/nightride.ogg"
# metadata_url = "https://nightride.fm/api/now-playing/nightride"
"""


def _xdg_dir(env_var: str, fallback: str) -> Path:
    base = os.environ.get(env_var)
    if base:
        return Path(base) / "nightride"
    return Path.home() / fallback / "nightride"


def get_config_dir() -> Path:
    """Get the configuration directory following XDG spec.

    Returns:
        Path to the config directory (~/.config/nightride by default)
    """
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def get_data_dir() -> Path:
    """Directory holding the session file (~/.local/share/nightride)."""
    return _xdg_dir("XDG_DATA_HOME", ".local/share")


def get_state_dir() -> Path:
    """Directory holding the log file (~/.local/state/nightride)."""
    return _xdg_dir("XDG_STATE_HOME", ".local/state")


@dataclass
class AppConfig:
    """Application configuration settings."""

    # Player settings
    player_executable: str = "mpv"
    socket_path: str = "/tmp/nightride.sock"
    command_timeout: float = 1.0
    reconnect_attempts: int = 3
    reconnect_backoff: float = 0.2
    spawn_timeout: float = 5.0

    # Playback settings
    volume_step: int = 5

    # Metadata settings
    poll_interval: float = 15.0
    request_timeout: float = 3.0

    # Search settings
    search_url: str = "https://music.youtube.com/search?q="

    # Input settings
    input_timeout: float = 0.05

    # Logging settings
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Notification settings
    notifications_enabled: bool = False
    notification_glyph: str = "🎵"

    # Station overrides, empty means the stock list
    stations: List[Station] = field(default_factory=list)


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# TOML (section, key) -> AppConfig attribute
_CONFIG_KEYS: Dict[tuple, str] = {
    ("player", "executable"): "player_executable",
    ("player", "socket_path"): "socket_path",
    ("player", "command_timeout"): "command_timeout",
    ("player", "reconnect_attempts"): "reconnect_attempts",
    ("player", "reconnect_backoff"): "reconnect_backoff",
    ("player", "spawn_timeout"): "spawn_timeout",
    ("playback", "volume_step"): "volume_step",
    ("metadata", "poll_interval"): "poll_interval",
    ("metadata", "request_timeout"): "request_timeout",
    ("search", "url"): "search_url",
    ("input", "timeout"): "input_timeout",
    ("logging", "level"): "log_level",
    ("logging", "file"): "log_file",
    ("notifications", "enabled"): "notifications_enabled",
    ("notifications", "glyph"): "notification_glyph",
}


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self._get_default_config_path()
        self.config: AppConfig = AppConfig()
        self.created = False
        self._load_config()

    def _get_default_config_path(self) -> Path:
        """Get default configuration file path."""
        return get_config_dir() / "nightride.toml"

    def _load_config(self) -> None:
        """Load configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._create_default_config()
            return

        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
        except (tomllib.TOMLDecodeError, OSError) as e:
            logger.error(f"Failed to load config: {e}")
            logger.info("Using default configuration")
            return

        try:
            self._apply_config_data(data)
        except ConfigurationError as e:
            logger.error(f"Invalid config: {e}")
            logger.info("Using default configuration")
            self.config = AppConfig()
            return
        logger.info(f"Loaded configuration from {self.config_path}")

    def _create_default_config(self) -> None:
        """Create a default configuration file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
            self.created = True
            logger.info(f"Created default config at {self.config_path}")
        except OSError as e:
            logger.warning(f"Failed to create default config: {e}")

    def _apply_config_data(self, data: Dict[str, Any]) -> None:
        """Apply parsed TOML data to the AppConfig object."""
        defaults = {f.name: f.default for f in fields(AppConfig) if f.name != "stations"}

        for section, values in data.items():
            if section == "stations":
                continue
            if not isinstance(values, dict):
                logger.warning(f"Ignoring config value outside a section: {section}")
                continue
            for key, value in values.items():
                attr = _CONFIG_KEYS.get((section, key))
                if attr is None:
                    logger.warning(f"Unknown config key: [{section}] {key}")
                    continue
                if not _type_matches(value, defaults[attr]):
                    logger.warning(f"Invalid config value for [{section}] {key}: {value!r}")
                    continue
                setattr(self.config, attr, value)

        if "stations" in data:
            entries = data["stations"]
            if not isinstance(entries, list):
                raise ConfigurationError("'stations' must be an array of tables")
            self.config.stations = [station_from_dict(entry) for entry in entries]

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return getattr(self.config, key, default)

    def validate_config(self) -> bool:
        """Validate current configuration.

        Out-of-range values are put back to their defaults.

        Returns:
            True if every value was valid
        """
        checks = [
            ("volume_step", lambda v: 1 <= v <= 50, "Volume step must be 1-50"),
            ("poll_interval", lambda v: v > 0, "Poll interval must be positive"),
            ("request_timeout", lambda v: v > 0, "Request timeout must be positive"),
            ("reconnect_attempts", lambda v: v >= 1, "Reconnect attempts must be at least 1"),
            ("reconnect_backoff", lambda v: v >= 0, "Reconnect backoff must not be negative"),
            ("command_timeout", lambda v: v > 0, "Command timeout must be positive"),
            ("spawn_timeout", lambda v: v > 0, "Spawn timeout must be positive"),
            ("input_timeout", lambda v: 0 < v <= 1, "Input timeout must be in (0, 1]"),
            ("log_level", lambda v: v.upper() in _LOG_LEVELS, "Invalid log level"),
        ]
        defaults = AppConfig()
        issues = []

        for attr, check, message in checks:
            value = getattr(self.config, attr)
            if not check(value):
                default = getattr(defaults, attr)
                issues.append(f"{message}, got {value!r}, using {default!r}")
                setattr(self.config, attr, default)

        if issues:
            logger.warning(f"Configuration validation issues: {issues}")
            return False

        return True

    def build_registry(self) -> StationRegistry:
        """Station registry from the configured list, or the stock one."""
        return StationRegistry(self.config.stations or None)

    def get_log_file_path(self) -> Path:
        if self.config.log_file:
            return Path(self.config.log_file).expanduser()
        return get_state_dir() / "nightride.log"


def _type_matches(value: Any, default: Any) -> bool:
    # bool is an int subclass, keep them apart
    if isinstance(default, bool) or isinstance(value, bool):
        return isinstance(value, bool) and isinstance(default, bool)
    if default is None:
        return isinstance(value, str)
    if isinstance(default, float):
        return isinstance(value, (int, float))
    return isinstance(value, type(default))


def load_config(config_path: Optional[Path] = None) -> ConfigManager:
    """Load configuration and return manager."""
    return ConfigManager(config_path)
