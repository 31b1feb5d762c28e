"""
Manifest-driven sync of the latest installed game version.

When the remote manifest version differs from the one recorded locally,
the default config package is merged into the shared config directory and
the mod plan is re-applied. The new manifest version is recorded only after
both steps succeed.
"""

from pathlib import Path
from typing import Optional

from hqlauncher.constants import (
    DEFAULT_CONFIG_URL,
    STEP_SYNC_CONFIG,
    STEP_SYNC_MODS,
    SYNC_STEPS_TOTAL,
)
from hqlauncher.download.async_client import AsyncHttpClient
from hqlauncher.download.files import copy_dir_add_only, remove_file_quietly
from hqlauncher.download.interfaces import (
    ArchiveExtractor,
    FetchedManifest,
    ManifestState,
    ModsInstaller,
)
from hqlauncher.download.manifest import ManifestClient
from hqlauncher.download.version import resolve_mod_plan
from hqlauncher.log_utils import logger

from .linker import ConfigLinker
from .pipeline import PipelineBase, progress_relay
from .progress import ProgressSink, StepReporter
from .state import ManifestStateStore, latest_installed_version


class SyncPipeline(PipelineBase):
    """
    Brings the latest installed version up to date with the remote manifest.

    Parameters:
        client (AsyncHttpClient): HTTP client used for the default config download.
        manifest_client (ManifestClient): Source of the remote manifest.
        extractor (ArchiveExtractor): Extracts the config package additively.
        mods_installer (ModsInstaller): Re-applies the resolved mod plan.
        config_linker (ConfigLinker): Ensures the config link before extraction.
        state_store (ManifestStateStore): Persisted manifest version.
        versions_dir (Path): Root holding ``v<N>`` install directories.
        temp_dir (Path): Scratch directory for the config archive.
        sink (ProgressSink): Receives progress and the terminal event.
        default_config_url (str): Default config package URL.
    """

    steps_total = SYNC_STEPS_TOTAL

    def __init__(
        self,
        client: AsyncHttpClient,
        manifest_client: ManifestClient,
        extractor: ArchiveExtractor,
        mods_installer: ModsInstaller,
        config_linker: ConfigLinker,
        state_store: ManifestStateStore,
        versions_dir: Path,
        temp_dir: Path,
        sink: ProgressSink,
        default_config_url: str = DEFAULT_CONFIG_URL,
    ) -> None:
        super().__init__(client, sink)
        self.manifest_client = manifest_client
        self.extractor = extractor
        self.mods_installer = mods_installer
        self.config_linker = config_linker
        self.state_store = state_store
        self.versions_dir = Path(versions_dir)
        self.temp_dir = Path(temp_dir)
        self.default_config_url = default_config_url

    async def run(self) -> Optional[Path]:
        """
        Sync the latest installed version if the remote manifest has changed.

        Returns:
            Optional[Path]: The synced game root, or None when nothing is installed
            or the local state is already current. Neither case emits events.

        Raises:
            ManifestError: If the manifest cannot be fetched (no events are emitted).
            DownloadError: If the config package download fails or is not a zip.
            ExtractionError: If the config package cannot be extracted.
            FileSystemError: On filesystem failures, including an unreadable state file.
        """
        installed = latest_installed_version(self.versions_dir)
        if installed is None:
            logger.info("No installed game version to sync")
            return None

        manifest = await self.manifest_client.fetch_manifest()
        local = self.state_store.read()
        if local.manifest_version == manifest.manifest_version:
            logger.info(
                f"Manifest v{manifest.manifest_version} already applied, nothing to sync"
            )
            return None

        logger.info(
            f"Syncing v{installed.game_version}: manifest "
            f"{local.manifest_version} -> {manifest.manifest_version}"
        )
        reporter = self._reporter(installed.game_version)
        root = installed.path

        async def _body() -> None:
            await self._sync_config(reporter, root)
            await self._sync_mods(reporter, manifest, root, installed.game_version)
            reporter.progress(
                SYNC_STEPS_TOTAL,
                STEP_SYNC_MODS,
                1.0,
                detail="Sync complete",
                overall_percent=100.0,
            )
            self.state_store.write(
                ManifestState(manifest_version=manifest.manifest_version)
            )

        await self._guarded(reporter, _body)
        reporter.finished(str(root))
        return root

    async def _sync_config(self, reporter: StepReporter, root: Path) -> None:
        reporter.progress(
            1,
            STEP_SYNC_CONFIG,
            0.0,
            detail="Downloading default_config.zip...",
            extracted_files=0,
        )
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        archive = self.temp_dir / "default_config.zip"

        await self._download_archive(
            self.default_config_url,
            archive,
            reporter,
            1,
            STEP_SYNC_CONFIG,
            "default_config.zip",
            weight=0.0,
        )
        try:
            link = self.config_linker.ensure_link(root)
            added = await self._extract_in_worker(
                self.extractor.extract_add_only,
                archive,
                link.shared_dir,
                reporter,
                1,
                STEP_SYNC_CONFIG,
                "Syncing config",
            )
            if link.degraded:
                # The game reads the plain per-version copy, not the shared directory
                seeded = copy_dir_add_only(link.shared_dir, link.link_path)
                logger.warning(
                    f"Config links unavailable; copied {seeded} new files into {link.link_path}"
                )
        finally:
            remove_file_quietly(archive)

        logger.info(f"Added {added} new config files to {link.shared_dir}")
        reporter.progress(1, STEP_SYNC_CONFIG, 1.0, detail="Config synced")

    async def _sync_mods(
        self,
        reporter: StepReporter,
        manifest: FetchedManifest,
        root: Path,
        game_version: int,
    ) -> None:
        plan = resolve_mod_plan(manifest.mods_config, game_version)
        reporter.progress(
            2,
            STEP_SYNC_MODS,
            0.0,
            detail=f"Syncing {len(plan)} mods...",
            extracted_files=0,
            total_files=len(plan),
        )
        await self.mods_installer.install_mods(
            root,
            game_version,
            plan,
            progress_relay(reporter, 2, STEP_SYNC_MODS),
        )
