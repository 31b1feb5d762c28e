"""
Thunderstore mods installer.

Default ModsInstaller implementation: downloads each planned package from
Thunderstore and unpacks it into ``BepInEx/plugins/<dev>-<name>``. A package
folder that already exists is left untouched, so re-running the same plan is
safe.
"""

import asyncio
import shutil
from pathlib import Path
from typing import List, Optional

from hqlauncher.constants import (
    LOADER_PLUGINS_DIR_NAME,
    LOADER_ROOT_DIR_NAME,
    THUNDERSTORE_DOWNLOAD_URL,
    THUNDERSTORE_PACKAGE_API_URL,
)
from hqlauncher.exceptions import DownloadError, FileSystemError, InvalidArchiveError
from hqlauncher.log_utils import logger

from .async_client import AsyncHttpClient
from .files import ZipArchiveExtractor, is_zip_archive, remove_file_quietly
from .interfaces import ArchiveExtractor, ModsInstaller, ModsProgressCallback, ResolvedMod


class ThunderstoreModsInstaller(ModsInstaller):
    """
    Installs mods from Thunderstore.

    Parameters:
        client (AsyncHttpClient): HTTP client for metadata and package downloads.
        temp_dir (Path): Scratch directory for downloaded archives.
        extractor (Optional[ArchiveExtractor]): Archive extractor; defaults to ZipArchiveExtractor.
    """

    def __init__(
        self,
        client: AsyncHttpClient,
        temp_dir: Path,
        extractor: Optional[ArchiveExtractor] = None,
    ) -> None:
        self.client = client
        self.temp_dir = Path(temp_dir)
        self.extractor = extractor or ZipArchiveExtractor()

    def plugins_dir(self, root: Path) -> Path:
        return Path(root) / LOADER_ROOT_DIR_NAME / LOADER_PLUGINS_DIR_NAME

    async def latest_version(self, dev: str, name: str) -> str:
        """
        Look up the newest published version of a package.

        Raises:
            DownloadError: If the metadata request fails or has no version number.
        """
        url = THUNDERSTORE_PACKAGE_API_URL.format(dev=dev, name=name)
        data = await self.client.get_json(url)
        latest = data.get("latest") if isinstance(data, dict) else None
        version = latest.get("version_number") if isinstance(latest, dict) else None
        if not isinstance(version, str) or not version:
            raise DownloadError(
                f"No latest version published for {dev}-{name}", url=url
            )
        return version

    async def install_mods(
        self,
        root: Path,
        game_version: int,
        plan: List[ResolvedMod],
        on_progress: Optional[ModsProgressCallback] = None,
    ) -> None:
        plugins = self.plugins_dir(root)
        try:
            plugins.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(
                "Could not create plugins directory", path=str(plugins), details=str(e)
            ) from e

        total = len(plan)
        logger.info(f"Installing {total} mods for v{game_version}")
        for done, mod in enumerate(plan, start=1):
            await self._install_one(mod, plugins)
            if on_progress:
                result = on_progress(done, total, mod.describe())
                if asyncio.iscoroutine(result):
                    await result

    async def _install_one(self, mod: ResolvedMod, plugins: Path) -> None:
        target = plugins / mod.full_name
        if target.exists():
            logger.debug(f"{mod.full_name} already installed, skipping")
            return

        version = mod.version or await self.latest_version(mod.dev, mod.name)
        url = THUNDERSTORE_DOWNLOAD_URL.format(dev=mod.dev, name=mod.name, version=version)
        archive = self.temp_dir / f"{mod.full_name}-{version}.zip"

        await self.client.download_file(url, archive)
        try:
            if not is_zip_archive(archive):
                raise InvalidArchiveError(
                    f"Package {mod.full_name} {version} is not a valid zip", url=url
                )
            staging = plugins / f".{mod.full_name}.partial"
            if staging.exists():
                shutil.rmtree(staging)
            await asyncio.to_thread(self.extractor.extract_add_only, archive, staging)
            staging.rename(target)
        except OSError as e:
            raise FileSystemError(
                f"Could not install {mod.full_name}", path=str(target), details=str(e)
            ) from e
        finally:
            remove_file_quietly(archive)

        logger.info(f"Installed {mod.full_name} {version}")
