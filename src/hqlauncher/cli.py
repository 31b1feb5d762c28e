# src/hqlauncher/cli.py

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pick import pick
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskID,
    TaskProgressColumn,
    TextColumn,
)

from hqlauncher import log_utils, setup_config
from hqlauncher.download.async_client import AsyncHttpClient
from hqlauncher.download.depot import DepotDownloaderTool
from hqlauncher.download.files import ZipArchiveExtractor
from hqlauncher.download.manifest import ManifestClient, summarize_chain_config
from hqlauncher.download.mods import ThunderstoreModsInstaller
from hqlauncher.download.version import resolve_mod_plan
from hqlauncher.exceptions import ConfigurationError, HQLauncherError, ManifestError
from hqlauncher.install.linker import ConfigLinker
from hqlauncher.install.orchestrator import InstallPipeline
from hqlauncher.install.progress import (
    ProgressEvent,
    ProgressSink,
    TaskError,
    TaskFinished,
    TaskProgress,
)
from hqlauncher.install.state import ManifestStateStore, list_installed_versions
from hqlauncher.install.sync import SyncPipeline
from hqlauncher.setup_config import LauncherSettings
from hqlauncher.utils import get_app_version


class RichProgressSink(ProgressSink):
    """
    Renders pipeline progress as a rich progress bar.

    The bar tracks `overall_percent`; its description shows the current step and
    the detail column the latest detail text. Terminal events stop the bar and
    print a one-line summary.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def _start(self) -> Progress:
        progress = Progress(
            TextColumn("{task.description}", markup=False),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("{task.fields[detail]}", markup=False),
            console=self.console,
        )
        progress.start()
        self._task = progress.add_task("", total=100, detail="")
        self._progress = progress
        return progress

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None

    def emit(self, event: ProgressEvent) -> None:
        if isinstance(event, TaskProgress):
            progress = self._progress or self._start()
            progress.update(
                self._task,
                completed=event.overall_percent,
                description=f"v{event.version} [{event.step}/{event.steps_total}] {event.step_name}",
                detail=event.detail or "",
            )
            return

        self.stop()
        if isinstance(event, TaskFinished):
            self.console.print(f"v{event.version} ready: {event.path}", markup=False)
        elif isinstance(event, TaskError):
            self.console.print(
                f"v{event.version} failed: {event.message}", style="red", markup=False
            )


def _prepare_command_run() -> LauncherSettings:
    """
    Load settings and apply the configured log level and file logging.

    Raises:
        ConfigurationError: If the configuration file is unreadable or invalid.
    """
    if not setup_config.config_exists():
        log_utils.logger.info(
            "No configuration found; using defaults. Run 'hq-launcher setup' to create one."
        )
    settings = setup_config.get_settings()
    log_utils.set_log_level(settings.log_level)
    log_utils.add_file_logging(Path(setup_config.LOG_DIR), settings.log_level)
    return settings


def _manifest_client(settings: LauncherSettings, client: AsyncHttpClient) -> ManifestClient:
    return ManifestClient(
        client,
        url=settings.manifest_url,
        include_practice_mods=settings.include_practice_mods,
    )


def _depot_tool(settings: LauncherSettings) -> DepotDownloaderTool:
    return DepotDownloaderTool(
        data_dir=settings.data_dir,
        tools_dir=settings.tools_dir,
        executable=settings.depot_downloader_path,
        app_id=settings.steam_app_id,
        depot_id=settings.steam_depot_id,
    )


def _choose_version(versions: List[int]) -> int:
    """Let the user pick a game version, newest first."""
    if not versions:
        raise ManifestError("The manifest does not list any game versions")
    options = [f"v{v}" for v in versions]
    _option, index = pick(options, "Select a game version to install:", indicator="*")
    return versions[index]


async def _run_install(
    settings: LauncherSettings, game_version: Optional[int], sink: ProgressSink
) -> Path:
    async with AsyncHttpClient(timeout=settings.request_timeout) as client:
        manifest_client = _manifest_client(settings, client)
        if game_version is None:
            manifest = await manifest_client.fetch_manifest()
            game_version = _choose_version(manifest.game_versions)

        depot = _depot_tool(settings)
        extractor = ZipArchiveExtractor()
        pipeline = InstallPipeline(
            client=client,
            manifest_client=manifest_client,
            depot=depot,
            extractor=extractor,
            mods_installer=ThunderstoreModsInstaller(client, settings.temp_dir, extractor),
            config_linker=ConfigLinker(settings.shared_config_dir),
            versions_dir=settings.versions_dir,
            temp_dir=settings.temp_dir,
            sink=sink,
            loader_url=settings.loader_url,
        )
        return await pipeline.run(game_version)


async def _run_sync(settings: LauncherSettings, sink: ProgressSink) -> Optional[Path]:
    async with AsyncHttpClient(timeout=settings.request_timeout) as client:
        extractor = ZipArchiveExtractor()
        pipeline = SyncPipeline(
            client=client,
            manifest_client=_manifest_client(settings, client),
            extractor=extractor,
            mods_installer=ThunderstoreModsInstaller(client, settings.temp_dir, extractor),
            config_linker=ConfigLinker(settings.shared_config_dir),
            state_store=ManifestStateStore(settings.manifest_state_path),
            versions_dir=settings.versions_dir,
            temp_dir=settings.temp_dir,
            sink=sink,
            default_config_url=settings.default_config_url,
        )
        return await pipeline.run()


async def _run_login(settings: LauncherSettings, username: str) -> None:
    depot = _depot_tool(settings)
    async with AsyncHttpClient(timeout=settings.request_timeout) as client:
        await depot.ensure_installed(client)
    state = await depot.login(username, settings.temp_dir)
    log_utils.logger.info(f"Logged in as {state.username}")


async def _show_manifest(settings: LauncherSettings, console: Console) -> None:
    async with AsyncHttpClient(timeout=settings.request_timeout) as client:
        manifest = await _manifest_client(settings, client).fetch_manifest()

    console.print(f"Manifest version: {manifest.manifest_version}", markup=False)
    console.print(
        "Game versions: "
        + (", ".join(f"v{v}" for v in manifest.game_versions) or "none"),
        markup=False,
    )
    if manifest.game_versions:
        newest = manifest.game_versions[0]
        plan = resolve_mod_plan(manifest.mods_config, newest)
        console.print(f"Mods for v{newest} ({len(plan)}):", markup=False)
        for mod in plan:
            console.print(f"  {mod.describe()}", markup=False)
    if manifest.chain_config:
        console.print("Load-order chains:", markup=False)
        console.print(summarize_chain_config(manifest.chain_config), markup=False)


def show_installed_versions(settings: LauncherSettings, console: Console) -> None:
    """Print installed versions, marking the one sync applies to."""
    installed = list_installed_versions(settings.versions_dir)
    if not installed:
        console.print("No game versions installed.", markup=False)
        return
    state = ManifestStateStore(settings.manifest_state_path).read()
    latest = installed[-1].game_version
    for item in reversed(installed):
        marker = " (latest)" if item.game_version == latest else ""
        console.print(f"v{item.game_version}{marker}  {item.path}", markup=False)
    console.print(f"Applied manifest version: {state.manifest_version}", markup=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hq-launcher",
        description="HQ Launcher - install and sync modded game versions",
    )
    subparsers = parser.add_subparsers(dest="command")

    setup_parser = subparsers.add_parser("setup", help="Write the configuration file")
    setup_parser.add_argument(
        "--data-dir",
        dest="data_dir",
        help="Directory holding game versions, shared config and state",
    )

    login_parser = subparsers.add_parser(
        "login", help="Log the depot downloader in to Steam"
    )
    login_parser.add_argument("username", help="Steam account name")

    subparsers.add_parser("logout", help="Forget the depot downloader login")

    install_parser = subparsers.add_parser(
        "install", help="Install a game version with BepInEx, config and mods"
    )
    install_parser.add_argument(
        "game_version",
        nargs="?",
        type=int,
        metavar="VERSION",
        help="Game version number; chosen interactively when omitted",
    )

    subparsers.add_parser(
        "sync", help="Apply manifest changes to the latest installed version"
    )
    subparsers.add_parser("versions", help="List installed game versions")
    subparsers.add_parser("manifest", help="Show the remote manifest")
    subparsers.add_parser("version", help="Display HQ Launcher version")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the HQ Launcher command-line interface.

    Parses arguments and dispatches subcommands: setup, login, logout, install,
    sync, versions, manifest and version. Any HQLauncherError is logged and the
    process exits with status 1.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()

    if args.command is None:
        parser.print_help()
        return

    if args.command == "version":
        log_utils.logger.info(f"HQ Launcher v{get_app_version()}")
        return

    try:
        if args.command == "setup":
            config = setup_config.run_setup(data_dir=args.data_dir)
            log_utils.logger.info(f"Data directory: {config['DATA_DIR']}")
            return

        settings = _prepare_command_run()

        if args.command == "login":
            asyncio.run(_run_login(settings, args.username))
        elif args.command == "logout":
            _depot_tool(settings).logout()
        elif args.command == "install":
            sink = RichProgressSink(console)
            try:
                asyncio.run(_run_install(settings, args.game_version, sink))
            finally:
                sink.stop()
        elif args.command == "sync":
            sink = RichProgressSink(console)
            try:
                synced = asyncio.run(_run_sync(settings, sink))
            finally:
                sink.stop()
            if synced is None:
                log_utils.logger.info("Nothing to sync")
        elif args.command == "versions":
            show_installed_versions(settings, console)
        elif args.command == "manifest":
            asyncio.run(_show_manifest(settings, console))
        else:
            parser.print_help()
    except ConfigurationError as e:
        log_utils.logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except HQLauncherError as e:
        log_utils.logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
