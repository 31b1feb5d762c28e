"""
Constants and configuration values for HQ Launcher.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# Remote endpoints
REMOTE_BASE_URL = "https://f.asta.rs/hq-launcher"
MANIFEST_URL = f"{REMOTE_BASE_URL}/manifest.json"
DEFAULT_CONFIG_URL = f"{REMOTE_BASE_URL}/default_config.zip"

# Mod loader (Thunderstore BepInExPack, preconfigured Mono build)
LOADER_PACKAGE_VERSION = "5.4.2304"
LOADER_URL = (
    "https://thunderstore.io/package/download/BepInEx/BepInExPack/"
    f"{LOADER_PACKAGE_VERSION}/"
)

# Thunderstore package endpoints used by the default mods installer
THUNDERSTORE_DOWNLOAD_URL = (
    "https://thunderstore.io/package/download/{dev}/{name}/{version}/"
)
THUNDERSTORE_PACKAGE_API_URL = (
    "https://thunderstore.io/api/experimental/package/{dev}/{name}/"
)

# Steam depot identifiers for the game
STEAM_APP_ID = 1966720
STEAM_DEPOT_ID = 1966721

# DepotDownloader release used when no executable is configured
DEPOT_DOWNLOADER_VERSION = "3.4.0"
DEPOT_DOWNLOADER_RELEASE_URL = (
    "https://github.com/SteamRE/DepotDownloader/releases/download/"
    "DepotDownloader_{version}/DepotDownloader-{platform}.zip"
)

# Network timeouts (in seconds) and transfer settings
DEFAULT_REQUEST_TIMEOUT = 300
DEFAULT_CHUNK_SIZE = 64 * 1024
BYTES_PER_MEGABYTE = 1024 * 1024
HTTP_STATUS_ERROR_THRESHOLD = 400
HTTP_STATUS_RETRY_THRESHOLD = 500

# Archive signature ("PK" local file header)
ZIP_MAGIC = b"PK"

# Sentinel pin value meaning "use the latest package version"
LATEST_VERSION_SENTINEL = "0.0.0"

# Directory and file names under the data directory
VERSIONS_DIR_NAME = "versions"
VERSION_DIR_PREFIX = "v"
CONFIG_DIR_NAME = "config"
SHARED_CONFIG_DIR_NAME = "shared"
TEMP_DIR_NAME = "temp"
TOOLS_DIR_NAME = "tools"
MANIFEST_STATE_FILE = "manifest_state.json"
DEPOT_LOGIN_FILE = "depot_login.json"
LOADER_ROOT_DIR_NAME = "BepInEx"
LOADER_CONFIG_DIR_NAME = "config"
LOADER_PLUGINS_DIR_NAME = "plugins"

# Pipeline step names
STEP_LOGIN_CHECK = "Login Check"
STEP_DOWNLOAD_GAME = "Download Game"
STEP_INSTALL_LOADER = "Install BepInEx"
STEP_INSTALL_CONFIG = "Install Config"
STEP_INSTALL_MODS = "Install Mods"
STEP_SYNC_CONFIG = "Sync Config"
STEP_SYNC_MODS = "Sync Mods"
INSTALL_STEPS_TOTAL = 5
SYNC_STEPS_TOTAL = 2

# Share of the loader step spent downloading; the rest is extraction
LOADER_DOWNLOAD_WEIGHT = 0.5

# Logging configuration
LOGGER_NAME = "hqlauncher"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "hq-launcher.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Configuration
APP_NAME = "hq-launcher"
CONFIG_FILE_NAME = "hq-launcher.yaml"

# Environment variable names
LOG_LEVEL_ENV_VAR = "HQ_LAUNCHER_LOG_LEVEL"
DISABLE_FILE_LOGGING_ENV_VAR = "HQ_LAUNCHER_DISABLE_FILE_LOGGING"
