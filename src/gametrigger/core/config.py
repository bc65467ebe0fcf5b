"""core.config
Configuration core: load/save helpers for config.ini.

This module provides a tiny ConfigManager used by the application to read
and persist simple key/value settings. It purposely keeps a small API:
ConfigManager.load(), get(key, fallback), get_bool/get_int/get_float, set()
and save().
"""

import logging
import os
from configparser import ConfigParser
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

APP_DIR_NAME = "GameAudioTrigger"

DEFAULTS = {
    "log_level": "INFO",
    # Target and trigger
    "process_name": "",
    "template_image": "",
    "audio_file": "",
    "match_method": "template",
    "match_threshold": "0.8",
    "cooldown_ms": "1000",
    "enabled": "True",
    "debug_mode": "False",
    "tick_interval_ms": "100",
    # Playback
    "audio_volume": "1.0",
    "audio_speed": "1.0",
    "audio_duration": "-1",  # seconds, -1 plays the whole file
    # Capture
    "min_window_width": "100",
    "min_window_height": "100",
    "capture_client_area": "True",
    "capture_screen_fallback": "False",
    # Preprocessing / matcher
    "grayscale": "True",
    "edge_detection": "False",
    "blur_kernel": "0",
    "blur_sigma": "0",
    "scale_min": "0.8",
    "scale_max": "1.2",
    "rotation_tolerance": "5",
    "max_matches": "1",
}

_TRUE = {"true", "1", "yes", "on"}


class ConfigManager:
    """Simple configuration manager backed by an INI file.

    Behaviour:
    - Uses a single DEFAULT section for lookups.
    - Creates the file with sensible defaults if it does not exist.
    - Defaults to a per-user config path (%APPDATA% on Windows,
      XDG_CONFIG_HOME or ~/.config on other systems) unless an explicit
      path is provided.
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        if config_path:
            self.config_path = Path(config_path)
        else:
            if os.name == "nt":
                base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
            else:
                base = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
            self.config_path = base.joinpath(APP_DIR_NAME, "config.ini")

        self.config = ConfigParser()
        self.load()

    def load(self) -> None:
        """Load configuration from disk, creating defaults when needed."""
        existed = self.config_path.exists()
        if existed:
            self.config.read(self.config_path, encoding="utf-8")

        missing = [key for key in DEFAULTS if key not in self.config["DEFAULT"]]
        for key in missing:
            self.config["DEFAULT"][key] = DEFAULTS[key]

        # Persist on first run and whenever defaults were added to an older file
        if not existed or missing:
            try:
                self.save()
            except OSError as e:
                logger.warning("config: could not write %s: %s", self.config_path, e)

    def get(self, key: str, fallback=None):
        """Get a configuration value.

        Precedence is env > config.ini > fallback. Environment names checked:
        GT_<KEY>, <KEY>.
        """
        for ek in (f"GT_{str(key).upper()}", str(key).upper()):
            val = os.environ.get(ek)
            if val is not None and str(val) != "":
                return val
        return self.config["DEFAULT"].get(key, fallback)

    def get_bool(self, key: str, fallback: bool = False) -> bool:
        val = self.get(key)
        if val is None or str(val).strip() == "":
            return fallback
        return str(val).strip().lower() in _TRUE

    def get_int(self, key: str, fallback: int = 0) -> int:
        val = self.get(key)
        try:
            return int(float(str(val).strip()))
        except (TypeError, ValueError):
            if val not in (None, ""):
                logger.warning("config: %s=%r is not an integer, using %s", key, val, fallback)
            return fallback

    def get_float(self, key: str, fallback: float = 0.0) -> float:
        val = self.get(key)
        try:
            return float(str(val).strip())
        except (TypeError, ValueError):
            if val not in (None, ""):
                logger.warning("config: %s=%r is not a number, using %s", key, val, fallback)
            return fallback

    def set(self, key: str, value) -> None:
        self.config["DEFAULT"][key] = str(value)

    def save(self) -> None:
        """Persist current configuration to disk (creates parent directories)."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with self.config_path.open("w", encoding="utf-8") as fh:
            self.config.write(fh)
