"""
Local install state: the applied manifest version and installed game versions.
"""

import json
import re
from pathlib import Path
from typing import List, Optional

from hqlauncher.constants import VERSION_DIR_PREFIX
from hqlauncher.download.files import atomic_write_json
from hqlauncher.download.interfaces import InstalledVersion, ManifestState
from hqlauncher.exceptions import FileSystemError
from hqlauncher.log_utils import logger

_VERSION_DIR_RE = re.compile(rf"^{re.escape(VERSION_DIR_PREFIX)}(\d+)$")


class ManifestStateStore:
    """
    Reads and writes ``manifest_state.json``.

    A missing file means nothing has been synced yet (manifest version 0).
    Writes replace the file atomically; there is no locking between processes.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> ManifestState:
        """
        Raises:
            FileSystemError: If the file exists but cannot be read or parsed.
        """
        if not self.path.exists():
            return ManifestState(manifest_version=0)
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            version = int(data["manifest_version"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise FileSystemError(
                "Could not read manifest state", path=str(self.path), details=str(e)
            ) from e
        return ManifestState(manifest_version=version)

    def write(self, state: ManifestState) -> None:
        atomic_write_json(self.path, {"manifest_version": state.manifest_version})
        logger.debug(f"Recorded manifest version {state.manifest_version}")


def list_installed_versions(versions_root: Path) -> List[InstalledVersion]:
    """
    Scan `versions_root` for ``v<number>`` directories, oldest first.

    Anything that is not a directory or does not match the naming convention is ignored.
    """
    root = Path(versions_root)
    try:
        entries = list(root.iterdir())
    except OSError:
        return []

    installed = []
    for entry in entries:
        match = _VERSION_DIR_RE.match(entry.name)
        if not match or not entry.is_dir():
            continue
        installed.append(InstalledVersion(game_version=int(match.group(1)), path=entry))
    return sorted(installed, key=lambda v: v.game_version)


def latest_installed_version(versions_root: Path) -> Optional[InstalledVersion]:
    """Return the installed version with the greatest number, or None."""
    installed = list_installed_versions(versions_root)
    return installed[-1] if installed else None
