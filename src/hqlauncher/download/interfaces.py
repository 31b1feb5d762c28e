"""
Core Interfaces for the HQ Launcher Download Subsystem

This module defines the data structures shared by the manifest client, the
version resolver and the install/sync pipelines, plus the abstract
collaborators the pipelines delegate to (depot downloads, archive extraction
and mod installation).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

Pathish = Union[str, Path]

# (done, total, name) reported while extracting archives
ExtractProgressCallback = Callable[[int, int, Optional[str]], None]

# (done, total, detail) reported while installing mods; may return an awaitable
ModsProgressCallback = Callable[[int, int, Optional[str]], Any]


@dataclass
class ModEntry:
    """A mod package listed in the remote manifest."""

    dev: str
    """Thunderstore namespace (package owner)"""

    name: str
    """Thunderstore package name"""

    enabled: bool = True
    """Disabled entries are never installed"""

    low_cap: Optional[int] = None
    """Inclusive lowest game version this mod installs on"""

    high_cap: Optional[int] = None
    """Inclusive highest game version this mod installs on"""

    version_config: Dict[int, str] = field(default_factory=dict)
    """Game-version threshold -> pinned package version, kept in ascending key order"""

    def __post_init__(self) -> None:
        self.version_config = dict(sorted(self.version_config.items()))

    @property
    def full_name(self) -> str:
        return f"{self.dev}-{self.name}"


@dataclass
class ModsConfig:
    """Ordered mod list; list order is install order."""

    mods: List[ModEntry] = field(default_factory=list)


@dataclass
class RemoteManifest:
    """Parsed remote manifest document."""

    manifest_version: int
    manifests: Dict[int, str]
    chain_config: List[List[str]]
    mods: List[ModEntry]


@dataclass
class FetchedManifest:
    """The four facets callers use from a freshly fetched manifest."""

    manifest_version: int
    mods_config: ModsConfig
    chain_config: List[List[str]]
    manifests: Dict[int, str]

    def depot_manifest_for(self, game_version: int) -> Optional[str]:
        return self.manifests.get(game_version)

    @property
    def game_versions(self) -> List[int]:
        """Game versions with a published depot manifest, newest first."""
        return sorted(self.manifests, reverse=True)


@dataclass
class ResolvedMod:
    """A compatible mod paired with the package version to fetch (None = latest)."""

    dev: str
    name: str
    version: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.dev}-{self.name}"

    def describe(self) -> str:
        return f"{self.full_name} {self.version or 'latest'}"


@dataclass
class ManifestState:
    """Locally persisted manifest version that was last applied successfully."""

    manifest_version: int = 0


@dataclass
class InstalledVersion:
    """An installed game version directory (``versions/v<N>``)."""

    game_version: int
    path: Path


@dataclass
class LoginState:
    """Authentication state reported by the depot downloader."""

    is_logged_in: bool
    username: Optional[str] = None


class DepotDownloader(ABC):
    """Capability that downloads a game depot to a local directory."""

    @abstractmethod
    def get_login_state(self) -> LoginState:
        """Return whether the downloader holds usable credentials."""

    @abstractmethod
    async def download_depot(self, manifest_id: str, dest_dir: Path) -> None:
        """
        Download depot content identified by `manifest_id` into `dest_dir`.

        Raises:
            DownloadError: If the transfer fails.
        """

    async def ensure_ready(self, client: Any) -> None:
        """
        Prepare the downloader before a run, e.g. install its executable.

        Runs inside the install pipeline, so failures end the run with a
        TaskError. The default does nothing.
        """
        return None


class ArchiveExtractor(ABC):
    """Capability that unpacks zip archives. Called from a worker thread."""

    @abstractmethod
    def extract_package(
        self,
        archive_path: Path,
        dest_dir: Path,
        on_progress: Optional[ExtractProgressCallback] = None,
    ) -> int:
        """
        Extract a package archive, unwrapping its single top-level folder and
        ignoring loose top-level files.

        Returns:
            int: Number of files written.
        """

    @abstractmethod
    def extract_add_only(
        self,
        archive_path: Path,
        dest_dir: Path,
        on_progress: Optional[ExtractProgressCallback] = None,
    ) -> int:
        """
        Extract every member into `dest_dir`, skipping files that already exist.

        Returns:
            int: Number of files written.
        """


class ModsInstaller(ABC):
    """
    Capability that downloads and places mod packages into a game root.

    Implementations are expected to be idempotent and non-destructive: the
    sync pipeline re-runs the full plan after a failure.
    """

    @abstractmethod
    async def install_mods(
        self,
        root: Path,
        game_version: int,
        plan: List[ResolvedMod],
        on_progress: Optional[ModsProgressCallback] = None,
    ) -> None:
        """Install every mod in `plan` under `root`, reporting (done, total, detail)."""

    @abstractmethod
    def plugins_dir(self, root: Path) -> Path:
        """Return the directory mods are installed into for `root`."""
