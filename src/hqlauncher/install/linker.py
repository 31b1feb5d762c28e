"""
Shared configuration linking.

Every installed game version sees the same configuration directory: its
``BepInEx/config`` path is a directory link (symlink, or junction on
Windows) to ``<data>/config/shared``. Files found in a pre-existing real
config directory are merged into the shared directory without overwriting.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from hqlauncher.constants import LOADER_CONFIG_DIR_NAME, LOADER_ROOT_DIR_NAME
from hqlauncher.download.files import copy_dir_add_only
from hqlauncher.exceptions import FileSystemError, LinkError
from hqlauncher.log_utils import logger
from hqlauncher.utils import is_windows, same_path


@dataclass
class LinkResult:
    """Outcome of ConfigLinker.ensure_link."""

    shared_dir: Path
    link_path: Path
    degraded: bool = False
    """True when a plain directory had to stand in for the link"""

    migrated_files: int = 0
    """Files copied from a pre-existing config directory into the shared one"""


class DirectoryLinker:
    """
    Creates and recognizes directory links.

    POSIX uses symlinks. Windows tries an NTFS junction first (no privileges
    needed) and then a directory symlink. When neither works a plain
    directory is created and the call reports degraded mode.

    Parameters:
        windows (Optional[bool]): Force Windows behavior on or off; detected when None.
    """

    def __init__(self, windows: Optional[bool] = None) -> None:
        self.windows = is_windows() if windows is None else windows

    def is_link(self, path: Path) -> bool:
        if os.path.islink(path):
            return True
        isjunction = getattr(os.path, "isjunction", None)
        return bool(isjunction and isjunction(path))

    def remove_link(self, path: Path) -> None:
        """Remove the link itself, never its target."""
        if self.windows and os.path.isdir(path):
            os.rmdir(path)
        else:
            os.unlink(path)

    def _create_junction(self, link: Path, target: Path) -> bool:
        try:
            result = subprocess.run(
                ["cmd", "/C", "mklink", "/J", str(link), str(target)],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.debug(f"mklink /J could not run: {e}")
            return False
        if result.returncode != 0:
            logger.debug(f"mklink /J failed: {result.stdout}{result.stderr}")
            return False
        return True

    def create_link(self, link: Path, target: Path) -> bool:
        """
        Make `link` point at `target`.

        Returns:
            bool: True if degraded (a plain directory was created instead of a link).

        Raises:
            LinkError: If not even the fallback directory could be created.
        """
        if self.windows and self._create_junction(link, target):
            return False

        try:
            os.symlink(target, link, target_is_directory=True)
            return False
        except (OSError, NotImplementedError) as e:
            logger.warning(
                f"Directory links are unavailable ({e}); "
                f"using a plain directory at {link}, config will not be shared"
            )

        try:
            link.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LinkError(
                "Could not create config directory", path=str(link), details=str(e)
            ) from e
        return True


class ConfigLinker:
    """
    Keeps each game root's config path linked to the shared config directory.

    Parameters:
        shared_dir (Path): The shared configuration directory.
        linker (Optional[DirectoryLinker]): Link capability; platform default when None.
    """

    def __init__(self, shared_dir: Path, linker: Optional[DirectoryLinker] = None) -> None:
        self.shared_dir = Path(shared_dir)
        self.linker = linker or DirectoryLinker()

    @staticmethod
    def config_path(game_root: Path) -> Path:
        return Path(game_root) / LOADER_ROOT_DIR_NAME / LOADER_CONFIG_DIR_NAME

    def ensure_link(self, game_root: Path) -> LinkResult:
        """
        Link `game_root`'s config path to the shared directory. Idempotent.

        An already-correct link is left alone. A stale link is replaced, a real
        directory is merged into the shared directory (add-only) and removed, and
        a stray file is deleted before the link is created.

        Raises:
            FileSystemError: On create/copy/remove failures.
            LinkError: If the link (or its fallback directory) cannot be created.
        """
        shared = self.shared_dir
        link = self.config_path(game_root)
        try:
            shared.mkdir(parents=True, exist_ok=True)
            link.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(
                "Could not prepare config directories", path=str(link), details=str(e)
            ) from e

        if os.path.exists(link) and same_path(link, shared):
            logger.debug(f"{link} already points at {shared}")
            return LinkResult(shared_dir=shared, link_path=link)

        migrated = 0
        try:
            if self.linker.is_link(link):
                logger.debug(f"Replacing stale config link {link}")
                self.linker.remove_link(link)
            elif link.is_dir():
                migrated = copy_dir_add_only(link, shared)
                logger.info(f"Merged {migrated} config files from {link} into {shared}")
                shutil.rmtree(link)
            elif os.path.lexists(link):
                logger.warning(f"Removing unexpected file at {link}")
                link.unlink()
        except OSError as e:
            raise FileSystemError(
                "Could not clear config path", path=str(link), details=str(e)
            ) from e

        degraded = self.linker.create_link(link, shared)
        if degraded:
            # Without a link, seed the per-version directory with the shared contents
            copy_dir_add_only(shared, link)
        else:
            logger.info(f"Linked {link} -> {shared}")

        return LinkResult(
            shared_dir=shared,
            link_path=link,
            degraded=degraded,
            migrated_files=migrated,
        )
