"""
Configuration management for Tunes
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

MUSIC_DIR_ENV = "TUNES_MUSIC_DIR"


def _require_int(name: str, value: object) -> None:
    # TOML booleans are ints to isinstance
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Invalid {name}: {value!r} (expected an integer)")


@dataclass
class LibraryConfig:
    """Configuration for the music library directory."""

    music_dir: Optional[str] = None  # Default: ~/Music/tunes
    watch: bool = True  # Rescan automatically when files change


@dataclass
class PlayerConfig:
    """Configuration for the audio output."""

    sample_rate: int = 44100
    channels: int = 2
    blocksize: int = 1024
    output_device: Optional[str] = None  # sounddevice name or index, None = system default
    autoplay: bool = True  # Play the next track when one finishes

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        for name in ("sample_rate", "channels", "blocksize"):
            _require_int(name, getattr(self, name))
        if self.sample_rate <= 0:
            raise ValueError(f"Invalid sample_rate: {self.sample_rate}")
        if self.channels not in (1, 2):
            raise ValueError(f"Invalid channels: {self.channels}. Valid values are: 1, 2")
        if self.blocksize < 0:
            raise ValueError(f"Invalid blocksize: {self.blocksize}")


@dataclass
class WatcherConfig:
    """Configuration for filesystem change debouncing."""

    quiet_window_ms: int = 500  # Quiet time required before rescanning
    poll_interval_ms: int = 100  # How often the debounce loop wakes up

    def validate(self) -> None:
        """Validate debounce timings.

        Raises:
            ValueError: If configuration values are invalid
        """
        for name in ("quiet_window_ms", "poll_interval_ms"):
            value = getattr(self, name)
            _require_int(name, value)
            if value < 0:
                raise ValueError(f"Invalid {name}: {value}")
        if self.poll_interval_ms == 0:
            raise ValueError("Invalid poll_interval_ms: 0")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # Default: ~/.local/share/tunes/tunes.log
    console_output: bool = False  # Also output to stderr (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "tunes"
    return Path.home() / ".config" / "tunes"


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks the current working directory first, then
    XDG_CONFIG_HOME/tunes (or ~/.config/tunes).
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "tunes"
    return Path.home() / ".local" / "share" / "tunes"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Tunes Configuration

[library]
# Directory holding your music (default: ~/Music/tunes)
# music_dir = "~/Music/tunes"

# Rescan the library automatically when files are added or removed
watch = true

[player]
# Output sample rate and channel count
sample_rate = 44100
channels = 2

# Frames per audio callback (0 lets the driver choose)
blocksize = 1024

# Output device name or index (default: system default device)
# output_device = "pulse"

# Play the next track in the library when one finishes
autoplay = true

[watcher]
# Quiet time after the last file change before the library is rescanned
quiet_window_ms = 500

# How often the debounce loop checks for quiet
poll_interval_ms = 100

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/tunes/tunes.log)
# log_file = "/path/to/custom/tunes.log"

# Also output logs to stderr (useful for debugging)
console_output = false
""".strip()


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - TUNES_MUSIC_DIR
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()
    config = Config()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            logger.info(f"Created default configuration at: {config_path}")
        except OSError as e:
            logger.warning(f"Could not write default configuration to {config_path}: {e}")
        return _apply_env_overrides(config)

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        if "library" in toml_data:
            library_data = toml_data["library"]
            music_dir = library_data.get("music_dir")
            if music_dir:
                music_dir = str(Path(music_dir).expanduser())
            config.library = LibraryConfig(
                music_dir=music_dir,
                watch=library_data.get("watch", config.library.watch),
            )

        if "player" in toml_data:
            player_data = toml_data["player"]
            output_device = player_data.get("output_device")
            config.player = PlayerConfig(
                sample_rate=player_data.get("sample_rate", config.player.sample_rate),
                channels=player_data.get("channels", config.player.channels),
                blocksize=player_data.get("blocksize", config.player.blocksize),
                output_device=str(output_device) if output_device is not None else None,
                autoplay=player_data.get("autoplay", config.player.autoplay),
            )
            try:
                config.player.validate()
            except ValueError as e:
                logger.warning(f"Invalid player configuration: {e}. Using defaults.")
                config.player = PlayerConfig()

        if "watcher" in toml_data:
            watcher_data = toml_data["watcher"]
            config.watcher = WatcherConfig(
                quiet_window_ms=watcher_data.get(
                    "quiet_window_ms", config.watcher.quiet_window_ms
                ),
                poll_interval_ms=watcher_data.get(
                    "poll_interval_ms", config.watcher.poll_interval_ms
                ),
            )
            try:
                config.watcher.validate()
            except ValueError as e:
                logger.warning(f"Invalid watcher configuration: {e}. Using defaults.")
                config.watcher = WatcherConfig()

        if "logging" in toml_data:
            logging_data = toml_data["logging"]
            log_file = logging_data.get("log_file")
            if log_file:
                log_file = str(Path(log_file).expanduser())
            config.logging = LoggingConfig(
                level=logging_data.get("level", config.logging.level).upper(),
                log_file=log_file,
                console_output=logging_data.get(
                    "console_output", config.logging.console_output
                ),
            )

    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Error loading configuration from {config_path}: {e}")
        logger.warning("Using default configuration.")
        config = Config()

    return _apply_env_overrides(config)


def _apply_env_overrides(config: Config) -> Config:
    music_dir = os.environ.get(MUSIC_DIR_ENV)
    if music_dir:
        config.library.music_dir = str(Path(music_dir).expanduser())
    return config
