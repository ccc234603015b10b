"""Persistent user settings backed by a JSON file.

Settings are stored at the platform-appropriate config directory
(e.g. ~/.config/fogtrail/settings.json on Linux).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from platformdirs import user_config_dir

from fogtrail.config import Config

log = logging.getLogger(__name__)

SETTINGS_DIR = Path(user_config_dir("fogtrail", appauthor=False))
SETTINGS_FILE = SETTINGS_DIR / "settings.json"


def load_settings(config: Config) -> dict:
    """Load saved settings into config, returning the raw dict for UI state."""
    if not SETTINGS_FILE.exists():
        return {}

    try:
        data = json.loads(SETTINGS_FILE.read_text())
    except (json.JSONDecodeError, OSError):
        log.warning("Failed to read settings file, using defaults")
        return {}

    if not isinstance(data, dict):
        log.warning("Settings file is not an object, using defaults")
        return {}

    if "api_base_url" in data:
        config.api_base_url = data["api_base_url"]
    if "user_id" in data:
        config.user_id = data["user_id"]
    if "sync_interval_ms" in data:
        config.sync_interval_ms = data["sync_interval_ms"]

    log.info("Loaded settings from %s", SETTINGS_FILE)
    return data


def save_settings(
    config: Config,
    *,
    window_geometry: dict | None = None,
    map_view: dict | None = None,
    fog_visible: bool = True,
) -> None:
    """Save current settings to disk."""
    data: dict = {
        "api_base_url": config.api_base_url,
        "user_id": config.user_id,
        "sync_interval_ms": config.sync_interval_ms,
        "fog_visible": fog_visible,
    }

    if window_geometry is not None:
        data["window_geometry"] = window_geometry
    if map_view is not None:
        data["map_view"] = map_view

    try:
        SETTINGS_DIR.mkdir(parents=True, exist_ok=True)
        SETTINGS_FILE.write_text(json.dumps(data, indent=2))
        log.debug("Saved settings to %s", SETTINGS_FILE)
    except OSError:
        log.warning("Failed to save settings", exc_info=True)


def reset_settings() -> None:
    """Delete the settings file to restore defaults."""
    try:
        SETTINGS_FILE.unlink(missing_ok=True)
        log.info("Settings reset to defaults")
    except OSError:
        log.warning("Failed to reset settings", exc_info=True)
