"""
File operations for the download and install subsystems.

Includes:
- Add-only recursive directory copy
- Atomic JSON writes
- Archive signature checks
- Safe zip extraction (package flattening and add-only modes)
"""

import json
import os
import shutil
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Callable, List, Optional, Tuple

from hqlauncher.constants import ZIP_MAGIC
from hqlauncher.exceptions import ExtractionError, FileSystemError
from hqlauncher.log_utils import logger
from hqlauncher.utils import same_path

from .interfaces import ArchiveExtractor, ExtractProgressCallback, Pathish


def copy_dir_add_only(src: Path, dst: Path) -> int:
    """
    Recursively copy `src` into `dst` without ever overwriting a destination file.

    Subdirectories are always descended into, even when they already exist in
    `dst`. Files are copied only when the destination path is absent. Nothing
    happens when both paths resolve to the same directory.

    Returns:
        int: Number of files copied.

    Raises:
        FileSystemError: If reading `src` or writing into `dst` fails.
    """
    src = Path(src)
    dst = Path(dst)
    if same_path(src, dst):
        return 0

    copied = 0
    try:
        dst.mkdir(parents=True, exist_ok=True)
        for entry in sorted(src.iterdir()):
            target = dst / entry.name
            if entry.is_dir():
                copied += copy_dir_add_only(entry, target)
                continue
            if entry.is_file():
                if os.path.lexists(target):
                    continue
                shutil.copy2(entry, target)
                copied += 1
    except OSError as e:
        raise FileSystemError(
            f"Failed to copy {src} into {dst}", path=str(src), details=str(e)
        ) from e
    return copied


def _atomic_write(
    file_path: Pathish, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> None:
    """
    Write data to a file atomically by writing to a temporary file and replacing the target on success.

    Raises:
        FileSystemError: If the temporary file cannot be created, written or moved into place.
    """
    directory = os.path.dirname(os.fspath(file_path)) or "."
    try:
        os.makedirs(directory, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix="tmp-", suffix=suffix)
    except OSError as e:
        raise FileSystemError(
            f"Could not create temporary file for {file_path}",
            path=os.fspath(file_path),
            details=str(e),
        ) from e

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    except (OSError, UnicodeEncodeError) as e:
        raise FileSystemError(
            f"Could not write to {file_path}", path=os.fspath(file_path), details=str(e)
        ) from e
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass


def atomic_write_json(file_path: Pathish, data: dict) -> None:
    """Atomically write `data` to `file_path` as pretty-printed JSON."""
    _atomic_write(file_path, lambda f: json.dump(data, f, indent=2), suffix=".json")


def is_zip_archive(path: Pathish) -> bool:
    """Return True if the file starts with the zip local-header signature ``PK``."""
    try:
        with open(path, "rb") as f:
            header = f.read(len(ZIP_MAGIC))
    except OSError:
        return False
    return header == ZIP_MAGIC


def remove_file_quietly(path: Pathish) -> None:
    """Best-effort removal used for temporary archives."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")


def _is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the member name contains no absolute paths, parent-directory references, or null bytes, `False` otherwise.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    parts = PurePosixPath(member_name.replace("\\", "/")).parts
    if any(part == ".." for part in parts):
        return False
    if parts and parts[0].endswith(":"):
        return False
    return True


def safe_extract_path(extract_dir: Pathish, relative_path: str) -> Path:
    """
    Resolve a safe absolute extraction path and prevent directory traversal.

    Raises:
        ValueError: If the resolved path is outside extract_dir.
    """
    real_extract_dir = os.path.realpath(extract_dir)
    normalized_path = os.path.realpath(os.path.join(real_extract_dir, relative_path))
    try:
        inside = os.path.commonpath([real_extract_dir, normalized_path]) == real_extract_dir
    except ValueError:
        inside = False
    if not inside:
        raise ValueError(
            f"Unsafe extraction path '{relative_path}' is outside base '{extract_dir}'"
        )
    return Path(normalized_path)


def _strip_top_level(member_name: str) -> Optional[str]:
    """
    Map a package member to its flattened path.

    Loose top-level files return None; everything inside a top-level folder
    loses that folder component.
    """
    parts = PurePosixPath(member_name.replace("\\", "/")).parts
    if len(parts) < 2:
        return None
    return str(PurePosixPath(*parts[1:]))


class ZipArchiveExtractor(ArchiveExtractor):
    """
    zipfile-based ArchiveExtractor.

    Unsafe member names are skipped with a warning. Any zip or I/O failure is
    raised as ExtractionError.
    """

    def _plan(
        self,
        zip_ref: zipfile.ZipFile,
        mapper: Callable[[str], Optional[str]],
    ) -> List[Tuple[zipfile.ZipInfo, str]]:
        planned = []
        for info in zip_ref.infolist():
            if info.is_dir():
                continue
            if not _is_safe_archive_member(info.filename):
                logger.warning(
                    f"Skipping unsafe archive member {info.filename} (possible traversal)"
                )
                continue
            relative = mapper(info.filename)
            if relative is None:
                continue
            planned.append((info, relative))
        return planned

    def _extract(
        self,
        archive_path: Path,
        dest_dir: Path,
        mapper: Callable[[str], Optional[str]],
        overwrite: bool,
        on_progress: Optional[ExtractProgressCallback],
    ) -> int:
        written = 0
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, "r") as zip_ref:
                planned = self._plan(zip_ref, mapper)
                total = len(planned)
                for done, (info, relative) in enumerate(planned, start=1):
                    try:
                        target = safe_extract_path(dest_dir, relative)
                    except ValueError as e:
                        logger.warning(f"Skipping unsafe extraction path: {e}")
                        continue

                    if overwrite or not os.path.lexists(target):
                        target.parent.mkdir(parents=True, exist_ok=True)
                        with zip_ref.open(info) as source, open(target, "wb") as out:
                            shutil.copyfileobj(source, out)
                        written += 1
                    else:
                        logger.debug(f"Keeping existing {target}")

                    if on_progress:
                        on_progress(done, total, relative)
        except (zipfile.BadZipFile, OSError) as e:
            raise ExtractionError(
                f"Failed to extract {archive_path}",
                archive_path=str(archive_path),
                details=str(e),
            ) from e

        logger.debug(f"Extracted {written} files from {archive_path} into {dest_dir}")
        return written

    def extract_package(
        self,
        archive_path: Path,
        dest_dir: Path,
        on_progress: Optional[ExtractProgressCallback] = None,
    ) -> int:
        return self._extract(
            Path(archive_path), Path(dest_dir), _strip_top_level, True, on_progress
        )

    def extract_add_only(
        self,
        archive_path: Path,
        dest_dir: Path,
        on_progress: Optional[ExtractProgressCallback] = None,
    ) -> int:
        return self._extract(
            Path(archive_path),
            Path(dest_dir),
            lambda name: str(PurePosixPath(name.replace("\\", "/"))),
            False,
            on_progress,
        )
