import importlib.metadata
import os
import platform
from pathlib import Path
from typing import Optional

from hqlauncher.constants import APP_NAME

_USER_AGENT_CACHE: Optional[str] = None


def get_app_version() -> str:
    """
    Return the installed hq-launcher package version, or `unknown` when not installed.
    """
    try:
        return importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `hq-launcher/{version}`, where `{version}` is the installed package version or `unknown` if the version cannot be determined.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        _USER_AGENT_CACHE = f"{APP_NAME}/{get_app_version()}"

    return _USER_AGENT_CACHE


def is_windows() -> bool:
    return platform.system() == "Windows"


def canonical_path(path: Path) -> Optional[Path]:
    """
    Resolve `path` to its canonical absolute form.

    Returns:
        Optional[Path]: The resolved path, or `None` if the path does not exist or cannot be resolved.
    """
    try:
        if not os.path.exists(path):
            return None
        return Path(os.path.realpath(path))
    except OSError:
        return None


def same_path(first: Path, second: Path) -> bool:
    """Return True when both paths exist and canonically resolve to the same location."""
    if first == second:
        return True
    a = canonical_path(first)
    b = canonical_path(second)
    return a is not None and a == b
