"""
Configuration management for the Stationcast player.

Reads configuration from an .env file and environment variables with
sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from stationcast.log_file import DEFAULT_LOG_FILE

# Default .env file location
DEFAULT_ENV_FILE = Path("/etc/stationcast/player.env")

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

logger = logging.getLogger(__name__)


def _load_env_file() -> None:
    """Load environment variables from the .env file if it exists."""
    env_path = Path(os.getenv("STATIONCAST_ENV_FILE", str(DEFAULT_ENV_FILE)))
    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars


def _get_float(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be a number)")


def _get_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be an integer)")


def _get_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


@dataclass
class PlayerConfig:
    """Player configuration loaded from .env file and environment variables."""

    # Station API
    api_base_url: str = "http://127.0.0.1:3000/api"
    api_timeout: float = 5.0
    now_playing_url: Optional[str] = None

    # Drivers
    clip_dir: str = "~/.cache/stationcast/clips"
    piper_bin: str = "piper"
    voices_dir: str = "~/.cache/stationcast/voices"
    default_voice: Optional[str] = None

    # Scheduler timing
    poll_interval_ms: int = 100
    fade_steps: int = 20
    transition_ms: int = 500

    # Logging
    log_level: str = "INFO"
    log_file: str = DEFAULT_LOG_FILE

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0

    @classmethod
    def load_config(cls) -> "PlayerConfig":
        """
        Load configuration from environment variables.

        Returns:
            PlayerConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        _load_env_file()

        config = cls(
            api_base_url=os.getenv("STATIONCAST_API_URL", cls.api_base_url),
            api_timeout=_get_float("STATIONCAST_API_TIMEOUT", "5.0"),
            now_playing_url=_get_optional("STATIONCAST_NOW_PLAYING_URL"),
            clip_dir=os.getenv("STATIONCAST_CLIP_DIR", cls.clip_dir),
            piper_bin=os.getenv("STATIONCAST_PIPER_BIN", cls.piper_bin),
            voices_dir=os.getenv("STATIONCAST_VOICES_DIR", cls.voices_dir),
            default_voice=_get_optional("STATIONCAST_DEFAULT_VOICE"),
            poll_interval_ms=_get_int("STATIONCAST_POLL_INTERVAL_MS", "100"),
            fade_steps=_get_int("STATIONCAST_FADE_STEPS", "20"),
            transition_ms=_get_int("STATIONCAST_TRANSITION_MS", "500"),
            log_level=os.getenv("STATIONCAST_LOG_LEVEL", "INFO"),
            log_file=os.getenv("STATIONCAST_LOG_FILE", DEFAULT_LOG_FILE),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.api_base_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid API URL: {self.api_base_url} (must start with http:// or https://)")

        if self.api_timeout <= 0:
            raise ValueError(f"Invalid API timeout: {self.api_timeout} (must be > 0)")

        if self.poll_interval_ms <= 0:
            raise ValueError(f"Invalid poll interval: {self.poll_interval_ms} (must be > 0)")

        if self.fade_steps < 1:
            raise ValueError(f"Invalid fade steps: {self.fade_steps} (must be >= 1)")

        if self.transition_ms < 0:
            raise ValueError(f"Invalid transition: {self.transition_ms} (must be >= 0)")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level} "
                f"(must be one of: {', '.join(VALID_LOG_LEVELS)})"
            )


def load_config() -> PlayerConfig:
    """
    Load and validate player configuration from environment variables.

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        return PlayerConfig.load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise
