"""
Fresh install of one game version.

Five steps run in order against ``versions/v<N>``: login check, game depot
download, mod loader install, shared config link, and mods. A failure at
any step ends the run with a single TaskError; files written by earlier
steps stay on disk.
"""

import shutil
from pathlib import Path

from hqlauncher.constants import (
    INSTALL_STEPS_TOTAL,
    LOADER_DOWNLOAD_WEIGHT,
    LOADER_URL,
    STEP_DOWNLOAD_GAME,
    STEP_INSTALL_CONFIG,
    STEP_INSTALL_LOADER,
    STEP_INSTALL_MODS,
    STEP_LOGIN_CHECK,
    VERSION_DIR_PREFIX,
)
from hqlauncher.download.async_client import AsyncHttpClient
from hqlauncher.download.files import remove_file_quietly
from hqlauncher.download.interfaces import (
    ArchiveExtractor,
    DepotDownloader,
    FetchedManifest,
    ModsInstaller,
)
from hqlauncher.download.manifest import ManifestClient
from hqlauncher.download.version import resolve_mod_plan
from hqlauncher.exceptions import AuthError, ManifestError
from hqlauncher.log_utils import logger

from .linker import ConfigLinker
from .pipeline import PipelineBase, progress_relay
from .progress import ProgressSink, StepReporter


class InstallPipeline(PipelineBase):
    """
    Installs a game version with the mod loader, shared config and mods.

    Parameters:
        client (AsyncHttpClient): HTTP client used for the loader download.
        manifest_client (ManifestClient): Source of the remote manifest.
        depot (DepotDownloader): Game depot downloader.
        extractor (ArchiveExtractor): Archive extractor for the loader package.
        mods_installer (ModsInstaller): Installs the resolved mod plan.
        config_linker (ConfigLinker): Links the version's config directory to the shared one.
        versions_dir (Path): Root holding ``v<N>`` install directories.
        temp_dir (Path): Scratch directory for downloaded archives.
        sink (ProgressSink): Receives progress and the terminal event.
        loader_url (str): Mod loader package URL.
    """

    steps_total = INSTALL_STEPS_TOTAL

    def __init__(
        self,
        client: AsyncHttpClient,
        manifest_client: ManifestClient,
        depot: DepotDownloader,
        extractor: ArchiveExtractor,
        mods_installer: ModsInstaller,
        config_linker: ConfigLinker,
        versions_dir: Path,
        temp_dir: Path,
        sink: ProgressSink,
        loader_url: str = LOADER_URL,
    ) -> None:
        super().__init__(client, sink)
        self.manifest_client = manifest_client
        self.depot = depot
        self.extractor = extractor
        self.mods_installer = mods_installer
        self.config_linker = config_linker
        self.versions_dir = Path(versions_dir)
        self.temp_dir = Path(temp_dir)
        self.loader_url = loader_url

    def version_dir(self, game_version: int) -> Path:
        return self.versions_dir / f"{VERSION_DIR_PREFIX}{game_version}"

    async def run(self, game_version: int) -> Path:
        """
        Install `game_version` and return its directory.

        Raises:
            AuthError: If the depot downloader is not logged in.
            ManifestError: If the manifest cannot be fetched or lists no depot manifest for the version.
            DownloadError: If a download fails or the loader payload is not a zip.
            ExtractionError: If the loader archive cannot be extracted.
            FileSystemError: On filesystem failures.
        """
        reporter = self._reporter(game_version)

        async def _body() -> Path:
            manifest = await self._login_check(reporter)
            root = await self._download_game(reporter, manifest, game_version)
            await self._install_loader(reporter, root)
            self._install_config(reporter, root)
            await self._install_mods(reporter, manifest, root, game_version)
            return root

        root = await self._guarded(reporter, _body)
        logger.info(f"Installed v{game_version} at {root}")
        reporter.finished(str(root))
        return root

    async def _login_check(self, reporter: StepReporter) -> FetchedManifest:
        reporter.progress(1, STEP_LOGIN_CHECK, 0.0, detail="Checking login...")
        await self.depot.ensure_ready(self.client)
        state = self.depot.get_login_state()
        if not state.is_logged_in:
            raise AuthError(
                "Not logged in to the depot downloader",
                details="run `hq-launcher login <username>` first",
            )
        reporter.progress(
            1, STEP_LOGIN_CHECK, 1.0, detail=f"Logged in as {state.username or 'unknown'}"
        )
        return await self.manifest_client.fetch_manifest()

    async def _download_game(
        self, reporter: StepReporter, manifest: FetchedManifest, game_version: int
    ) -> Path:
        manifest_id = manifest.depot_manifest_for(game_version)
        if not manifest_id:
            raise ManifestError(
                f"No depot manifest for game version {game_version}",
                url=self.manifest_client.url,
            )

        root = self.version_dir(game_version)
        reporter.progress(
            2, STEP_DOWNLOAD_GAME, 0.0, detail=f"Downloading game v{game_version}..."
        )
        if root.exists():
            logger.info(f"Removing existing install at {root}")
            shutil.rmtree(root)
        root.mkdir(parents=True)

        await self.depot.download_depot(manifest_id, root)
        reporter.progress(2, STEP_DOWNLOAD_GAME, 1.0, detail="Game downloaded")
        return root

    async def _install_loader(self, reporter: StepReporter, root: Path) -> None:
        reporter.progress(3, STEP_INSTALL_LOADER, 0.0, detail="Downloading BepInEx...")
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        archive = self.temp_dir / "BepInExPack.zip"

        await self._download_archive(
            self.loader_url,
            archive,
            reporter,
            3,
            STEP_INSTALL_LOADER,
            "BepInEx",
            weight=LOADER_DOWNLOAD_WEIGHT,
        )
        try:
            count = await self._extract_in_worker(
                self.extractor.extract_package,
                archive,
                root,
                reporter,
                3,
                STEP_INSTALL_LOADER,
                "Extracting BepInEx",
                offset=LOADER_DOWNLOAD_WEIGHT,
                weight=1.0 - LOADER_DOWNLOAD_WEIGHT,
            )
        finally:
            remove_file_quietly(archive)

        logger.debug(f"Extracted {count} loader files into {root}")
        reporter.progress(3, STEP_INSTALL_LOADER, 1.0, detail="BepInEx installed")

    def _install_config(self, reporter: StepReporter, root: Path) -> None:
        reporter.progress(4, STEP_INSTALL_CONFIG, 0.0, detail="Linking shared config...")
        result = self.config_linker.ensure_link(root)
        detail = "Config linked"
        if result.degraded:
            detail = "Config copied (directory links unavailable)"
        reporter.progress(4, STEP_INSTALL_CONFIG, 1.0, detail=detail)

    async def _install_mods(
        self,
        reporter: StepReporter,
        manifest: FetchedManifest,
        root: Path,
        game_version: int,
    ) -> None:
        plan = resolve_mod_plan(manifest.mods_config, game_version)
        reporter.progress(
            5,
            STEP_INSTALL_MODS,
            0.0,
            detail=f"Installing {len(plan)} mods...",
            extracted_files=0,
            total_files=len(plan),
        )
        self.mods_installer.plugins_dir(root).mkdir(parents=True, exist_ok=True)
        await self.mods_installer.install_mods(
            root,
            game_version,
            plan,
            progress_relay(reporter, 5, STEP_INSTALL_MODS),
        )
        reporter.progress(
            5,
            STEP_INSTALL_MODS,
            1.0,
            detail="Mods installed",
            extracted_files=len(plan),
            total_files=len(plan),
        )
