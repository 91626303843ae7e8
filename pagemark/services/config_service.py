"""
Configuration service for pagemark.

Loads, saves and exposes application settings. Configuration is stored as
JSON in ~/.config/pagemark/config.json following the XDG Base Directory
Specification. Values missing from the file are filled from DEFAULT_CONFIG.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pagemark.services.logging_service import get_logger

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "pagemark"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

DEFAULT_CONFIG: Dict[str, Any] = {
    # Written into every annotation created by this session
    "author_id": "current-user",
    "log_level": "INFO",
    # Where the JSON annotation store keeps one file per document
    "store_dir": str(Path.home() / ".local" / "share" / "pagemark" / "annotations"),
    # Style used for new annotations until the host changes it
    "default_style": {
        "color": "#000000",
        "line_width": 2,
        "opacity": 1.0,
        "circle_diameter_mode": False,
    },
    "engine": {
        # Device pixels; divided by the zoom scale before hit-testing
        "handle_tolerance": 8,
        # Document units between recorded freehand samples
        "freehand_min_distance": 2,
        "resize_min_size": 10,
    },
    "auto_scroll": {
        "threshold": 80,
        "max_speed": 15,
        "min_speed": 2,
        "acceleration": 0.2,
        "deceleration": 0.92,
        "stop_speed": 0.1,
        "frame_interval_ms": 16,
    },
    "text": {
        "default_text": "Type here...",
        "font_size": 14,
        "font_family": "Arial",
        "text_box": [120, 40],
        "sticky_box": [200, 150],
        "sticky_background": "#FFD700",
    },
}


class ConfigService:
    """
    Service for managing application configuration.

    Handles loading, saving, and accessing configuration values.
    Provides defaults when the config file is missing or corrupted.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Initialize the ConfigService.

        Args:
            config_path: Optional path to config file. Defaults to
                        ~/.config/pagemark/config.json
        """
        self._logger = get_logger(__name__)
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE
        self._config: Dict[str, Any] = {}

        self._load()

    @property
    def path(self) -> Path:
        return self._config_path

    def _load(self) -> None:
        """Load configuration from file, using defaults if needed."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if not self._config_path.exists():
            self._logger.info(
                f"Config file not found at {self._config_path}. Using defaults."
            )
            self._save_to_file()
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded_config = json.load(f)

            if not isinstance(loaded_config, dict):
                raise ValueError("Config file does not contain a valid JSON object")

            self._deep_merge(self._config, loaded_config)
            self._logger.info(f"Configuration loaded from {self._config_path}")
            # Persist any default keys the file was missing
            self._save_to_file()

        except (json.JSONDecodeError, ValueError) as e:
            self._logger.warning(
                f"Config file corrupted or invalid: {e}. Recreating with defaults."
            )
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save_to_file()

        except OSError as e:
            self._logger.warning(f"Could not read config file: {e}. Using defaults.")

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_to_file(self) -> None:
        """Save current configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)

            self._logger.debug(f"Configuration saved to {self._config_path}")

        except OSError as e:
            self._logger.error(f"Could not save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve.
            default: Default value if key doesn't exist.

        Returns:
            The configuration value, or default if not found.
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value (in memory only).

        Call save() to persist changes to disk.
        """
        self._config[key] = value
        self._logger.debug(f"Config key '{key}' set to '{value}'")

    def save(self) -> None:
        """Persist current configuration to disk."""
        self._save_to_file()

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.get(name, {})
        merged = copy.deepcopy(DEFAULT_CONFIG[name])
        if isinstance(section, dict):
            merged.update(section)
        return merged

    # ─── General Settings ─────────────────────────────────────────────────

    @property
    def author_id(self) -> str:
        return self.get("author_id", DEFAULT_CONFIG["author_id"])

    @property
    def log_level(self) -> str:
        return self.get("log_level", "INFO")

    @property
    def store_dir(self) -> Path:
        """Directory of the JSON annotation store."""
        return Path(self.get("store_dir", DEFAULT_CONFIG["store_dir"])).expanduser()

    @property
    def default_style(self) -> Dict[str, Any]:
        return self._section("default_style")

    # ─── Engine Settings ──────────────────────────────────────────────────

    @property
    def handle_tolerance(self) -> float:
        return float(self._section("engine")["handle_tolerance"])

    @property
    def freehand_min_distance(self) -> float:
        return float(self._section("engine")["freehand_min_distance"])

    @property
    def resize_min_size(self) -> float:
        return float(self._section("engine")["resize_min_size"])

    @property
    def auto_scroll(self) -> Dict[str, Any]:
        """All auto-scroll tuning values."""
        return self._section("auto_scroll")

    # ─── Text Settings ────────────────────────────────────────────────────

    @property
    def default_text(self) -> str:
        return self._section("text")["default_text"]

    @property
    def text_font_size(self) -> int:
        return int(self._section("text")["font_size"])

    @property
    def text_font_family(self) -> str:
        return self._section("text")["font_family"]

    @property
    def text_box(self) -> Tuple[float, float]:
        width, height = self._section("text")["text_box"]
        return float(width), float(height)

    @property
    def sticky_box(self) -> Tuple[float, float]:
        width, height = self._section("text")["sticky_box"]
        return float(width), float(height)

    @property
    def sticky_background(self) -> str:
        return self._section("text")["sticky_background"]
