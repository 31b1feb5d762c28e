"""
DepotDownloader integration.

Wraps the external DepotDownloader executable. Steam credentials stay with the
tool (``-remember-password``); the launcher only records which username has
logged in successfully so the install pipeline can check the login state
without starting the tool.
"""

import asyncio
import json
import os
import platform
import stat
from pathlib import Path
from typing import List, Optional

from hqlauncher.constants import (
    DEPOT_DOWNLOADER_RELEASE_URL,
    DEPOT_DOWNLOADER_VERSION,
    DEPOT_LOGIN_FILE,
    STEAM_APP_ID,
    STEAM_DEPOT_ID,
)
from hqlauncher.exceptions import DownloadError, FileSystemError
from hqlauncher.log_utils import logger

from .files import ZipArchiveExtractor, atomic_write_json, remove_file_quietly
from .interfaces import DepotDownloader, LoginState


def _release_platform() -> str:
    system = platform.system()
    machine = platform.machine().lower()
    arch = "arm64" if machine in ("arm64", "aarch64") else "x64"
    if system == "Windows":
        return f"windows-{arch}"
    if system == "Darwin":
        return f"macos-{arch}"
    return f"linux-{arch}"


def _executable_name() -> str:
    return "DepotDownloader.exe" if platform.system() == "Windows" else "DepotDownloader"


class DepotDownloaderTool(DepotDownloader):
    """
    DepotDownloader-backed implementation of the depot download capability.

    Parameters:
        data_dir (Path): Launcher data directory; holds the login record.
        tools_dir (Path): Directory the tool is installed into when not configured.
        executable (Optional[Path]): Explicit path to an existing DepotDownloader binary.
        app_id (int): Steam app id.
        depot_id (int): Steam depot id for game content.
    """

    def __init__(
        self,
        data_dir: Path,
        tools_dir: Path,
        executable: Optional[Path] = None,
        app_id: int = STEAM_APP_ID,
        depot_id: int = STEAM_DEPOT_ID,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.tools_dir = Path(tools_dir)
        self.executable = (
            Path(executable)
            if executable
            else self.tools_dir / "DepotDownloader" / _executable_name()
        )
        self.app_id = app_id
        self.depot_id = depot_id

    @property
    def login_file(self) -> Path:
        return self.data_dir / DEPOT_LOGIN_FILE

    def get_login_state(self) -> LoginState:
        """
        Read the recorded login.

        A missing or unreadable record means "not logged in".
        """
        try:
            with open(self.login_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return LoginState(is_logged_in=False)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable login record {self.login_file}: {e}")
            return LoginState(is_logged_in=False)

        username = data.get("username") if isinstance(data, dict) else None
        if not isinstance(username, str) or not username:
            return LoginState(is_logged_in=False)
        return LoginState(is_logged_in=True, username=username)

    def logout(self) -> None:
        remove_file_quietly(self.login_file)
        logger.info("Depot downloader login record removed")

    async def ensure_ready(self, client) -> None:
        await self.ensure_installed(client)

    async def ensure_installed(self, client) -> Path:
        """
        Download and unpack the DepotDownloader release if the executable is missing.

        Parameters:
            client (AsyncHttpClient): HTTP client used for the release download.

        Returns:
            Path: Path to the executable.
        """
        if self.executable.exists():
            return self.executable

        url = DEPOT_DOWNLOADER_RELEASE_URL.format(
            version=DEPOT_DOWNLOADER_VERSION, platform=_release_platform()
        )
        archive = self.tools_dir / "DepotDownloader.zip"
        logger.info(f"Installing DepotDownloader {DEPOT_DOWNLOADER_VERSION} from {url}")
        await client.download_file(url, archive)
        try:
            await asyncio.to_thread(
                ZipArchiveExtractor().extract_add_only,
                archive,
                self.executable.parent,
            )
        finally:
            remove_file_quietly(archive)

        if not self.executable.exists():
            raise DownloadError(
                "DepotDownloader archive did not contain the executable",
                url=url,
                details=str(self.executable),
            )
        if os.name != "nt":
            try:
                mode = self.executable.stat().st_mode
                self.executable.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            except OSError as e:
                raise FileSystemError(
                    "Could not mark DepotDownloader executable",
                    path=str(self.executable),
                    details=str(e),
                ) from e
        return self.executable

    def _base_args(self, username: str) -> List[str]:
        return [
            str(self.executable),
            "-app",
            str(self.app_id),
            "-depot",
            str(self.depot_id),
            "-username",
            username,
            "-remember-password",
        ]

    async def login(self, username: str, scratch_dir: Path) -> LoginState:
        """
        Run the tool interactively once so it can store the Steam session.

        The terminal is inherited so the user can answer password and Steam Guard
        prompts. The username is recorded only when the tool exits successfully.

        Raises:
            DownloadError: If the tool exits with a non-zero status.
        """
        args = self._base_args(username) + ["-manifest-only", "-dir", str(scratch_dir)]
        await self._run(args, interactive=True)
        atomic_write_json(self.login_file, {"username": username})
        logger.info(f"Logged in to Steam as {username}")
        return LoginState(is_logged_in=True, username=username)

    async def download_depot(self, manifest_id: str, dest_dir: Path) -> None:
        state = self.get_login_state()
        if not state.is_logged_in or not state.username:
            raise DownloadError("DepotDownloader has no stored login")

        args = self._base_args(state.username) + [
            "-manifest",
            str(manifest_id),
            "-dir",
            str(dest_dir),
        ]
        logger.info(f"Downloading depot {self.depot_id} manifest {manifest_id}")
        await self._run(args, interactive=False)

    async def _run(self, args: List[str], interactive: bool) -> None:
        logger.debug(f"Running {' '.join(args)}")
        try:
            if interactive:
                process = await asyncio.create_subprocess_exec(*args)
                await process.wait()
                output = ""
            else:
                process = await asyncio.create_subprocess_exec(
                    *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    stdin=asyncio.subprocess.DEVNULL,
                )
                stdout, _ = await process.communicate()
                output = stdout.decode("utf-8", errors="replace") if stdout else ""
                for line in output.splitlines():
                    logger.debug(f"DepotDownloader: {line}")
        except OSError as e:
            raise DownloadError(
                f"Could not start DepotDownloader at {self.executable}", details=str(e)
            ) from e

        if process.returncode != 0:
            tail = "\n".join(output.splitlines()[-5:])
            raise DownloadError(
                f"DepotDownloader exited with status {process.returncode}",
                details=tail or None,
            )
