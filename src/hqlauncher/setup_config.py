# src/hqlauncher/setup_config.py

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs
import yaml

from hqlauncher.constants import (
    APP_NAME,
    CONFIG_DIR_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_CONFIG_URL,
    DEFAULT_REQUEST_TIMEOUT,
    LOADER_URL,
    MANIFEST_STATE_FILE,
    MANIFEST_URL,
    SHARED_CONFIG_DIR_NAME,
    STEAM_APP_ID,
    STEAM_DEPOT_ID,
    TEMP_DIR_NAME,
    TOOLS_DIR_NAME,
    VERSIONS_DIR_NAME,
)
from hqlauncher.exceptions import ConfigurationError
from hqlauncher.log_utils import logger

CONFIG_DIR = platformdirs.user_config_dir(APP_NAME)
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)
DEFAULT_DATA_DIR = platformdirs.user_data_dir(APP_NAME)
LOG_DIR = platformdirs.user_log_dir(APP_NAME)

DEFAULT_CONFIG: Dict[str, Any] = {
    "DATA_DIR": None,
    "MANIFEST_URL": MANIFEST_URL,
    "DEFAULT_CONFIG_URL": DEFAULT_CONFIG_URL,
    "LOADER_URL": LOADER_URL,
    "DEPOT_DOWNLOADER_PATH": None,
    "STEAM_APP_ID": STEAM_APP_ID,
    "STEAM_DEPOT_ID": STEAM_DEPOT_ID,
    "INCLUDE_PRACTICE_MODS": False,
    "REQUEST_TIMEOUT": DEFAULT_REQUEST_TIMEOUT,
    "LOG_LEVEL": "INFO",
}


@dataclass
class LauncherSettings:
    """Resolved, typed view of the launcher configuration."""

    data_dir: Path
    manifest_url: str = MANIFEST_URL
    default_config_url: str = DEFAULT_CONFIG_URL
    loader_url: str = LOADER_URL
    depot_downloader_path: Optional[Path] = None
    steam_app_id: int = STEAM_APP_ID
    steam_depot_id: int = STEAM_DEPOT_ID
    include_practice_mods: bool = False
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = "INFO"

    @property
    def versions_dir(self) -> Path:
        return self.data_dir / VERSIONS_DIR_NAME

    @property
    def config_dir(self) -> Path:
        return self.data_dir / CONFIG_DIR_NAME

    @property
    def shared_config_dir(self) -> Path:
        return self.config_dir / SHARED_CONFIG_DIR_NAME

    @property
    def manifest_state_path(self) -> Path:
        return self.config_dir / MANIFEST_STATE_FILE

    @property
    def temp_dir(self) -> Path:
        return self.data_dir / TEMP_DIR_NAME

    @property
    def tools_dir(self) -> Path:
        return self.data_dir / TOOLS_DIR_NAME

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "LauncherSettings":
        """
        Build settings from a loaded configuration mapping.

        Missing keys fall back to DEFAULT_CONFIG. `None` is treated as an empty config.

        Raises:
            ConfigurationError: If a value has the wrong type or cannot be converted.
        """
        merged = dict(DEFAULT_CONFIG)
        if config:
            if not isinstance(config, dict):
                raise ConfigurationError(
                    "Configuration must be a mapping",
                    details=f"got {type(config).__name__}",
                )
            merged.update({k: v for k, v in config.items() if v is not None})

        data_dir = merged.get("DATA_DIR") or DEFAULT_DATA_DIR
        depot_path = merged.get("DEPOT_DOWNLOADER_PATH")

        try:
            return cls(
                data_dir=Path(os.path.expanduser(str(data_dir))),
                manifest_url=str(merged["MANIFEST_URL"]),
                default_config_url=str(merged["DEFAULT_CONFIG_URL"]),
                loader_url=str(merged["LOADER_URL"]),
                depot_downloader_path=(
                    Path(os.path.expanduser(str(depot_path))) if depot_path else None
                ),
                steam_app_id=int(merged["STEAM_APP_ID"]),
                steam_depot_id=int(merged["STEAM_DEPOT_ID"]),
                include_practice_mods=_as_bool(
                    "INCLUDE_PRACTICE_MODS", merged["INCLUDE_PRACTICE_MODS"]
                ),
                request_timeout=float(merged["REQUEST_TIMEOUT"]),
                log_level=str(merged["LOG_LEVEL"]).upper(),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError("Invalid configuration value", details=str(e)) from e


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0"):
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def config_exists() -> bool:
    """Return True if the configuration file exists at CONFIG_FILE."""
    return os.path.exists(CONFIG_FILE)


def load_config() -> Optional[Dict[str, Any]]:
    """
    Load the HQ Launcher configuration YAML.

    Returns:
        dict | None: The parsed configuration dictionary, or None if no configuration file was found.

    Raises:
        ConfigurationError: If the file cannot be read or is not valid YAML.
    """
    if not os.path.exists(CONFIG_FILE):
        return None

    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to read configuration {CONFIG_FILE}", details=str(e)
        ) from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Configuration {CONFIG_FILE} must contain a mapping",
            details=f"got {type(config).__name__}",
        )
    return config


def save_config(config: Dict[str, Any]) -> str:
    """
    Write `config` to CONFIG_FILE as YAML, creating the config directory if needed.

    Returns:
        str: The path of the written configuration file.
    """
    try:
        os.makedirs(CONFIG_DIR, exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(
            f"Failed to write configuration {CONFIG_FILE}", details=str(e)
        ) from e
    logger.info(f"Configuration saved to {CONFIG_FILE}")
    return CONFIG_FILE


def run_setup(data_dir: Optional[str] = None) -> Dict[str, Any]:
    """
    Create or update the configuration file with defaults, keeping existing values.

    Parameters:
        data_dir (Optional[str]): Overrides DATA_DIR when provided.

    Returns:
        dict: The configuration that was written.
    """
    config = dict(DEFAULT_CONFIG)
    config["DATA_DIR"] = DEFAULT_DATA_DIR
    existing = load_config()
    if existing:
        config.update(existing)
    if data_dir:
        config["DATA_DIR"] = os.path.abspath(os.path.expanduser(data_dir))

    # Validate before persisting
    LauncherSettings.from_config(config)
    save_config(config)
    return config


def get_settings() -> LauncherSettings:
    """Load the configuration file (if any) and resolve it into LauncherSettings."""
    return LauncherSettings.from_config(load_config())
