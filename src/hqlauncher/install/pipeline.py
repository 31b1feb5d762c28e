"""
Shared machinery for the step-sequenced install and sync pipelines.
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

from hqlauncher.constants import BYTES_PER_MEGABYTE
from hqlauncher.download.async_client import AsyncHttpClient
from hqlauncher.download.files import is_zip_archive, remove_file_quietly
from hqlauncher.download.interfaces import ExtractProgressCallback
from hqlauncher.exceptions import FileSystemError, HQLauncherError, InvalidArchiveError
from hqlauncher.log_utils import logger

from .progress import ProgressSink, StepReporter, fraction

T = TypeVar("T")


class PipelineBase:
    """
    Base class for pipelines that end in exactly one terminal event.

    Parameters:
        client (AsyncHttpClient): HTTP client for package downloads.
        sink (ProgressSink): Destination for progress and terminal events.
    """

    steps_total: int = 1

    def __init__(self, client: AsyncHttpClient, sink: ProgressSink) -> None:
        self.client = client
        self.sink = sink

    def _reporter(self, version: int) -> StepReporter:
        return StepReporter(self.sink, version, self.steps_total)

    async def _guarded(
        self, reporter: StepReporter, body: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Run `body`, turning any failure into one TaskError before re-raising.

        OSErrors that escape a step are raised as FileSystemError.
        """
        try:
            return await body()
        except HQLauncherError as e:
            logger.error(f"v{reporter.version}: {e}")
            reporter.error(str(e))
            raise
        except OSError as e:
            error = FileSystemError(
                "Filesystem operation failed",
                path=getattr(e, "filename", None),
                details=str(e),
            )
            logger.error(f"v{reporter.version}: {error}")
            reporter.error(str(error))
            raise error from e
        except Exception as e:
            logger.exception(f"v{reporter.version}: unexpected failure")
            reporter.error(f"Unexpected error: {e}")
            raise

    async def _download_archive(
        self,
        url: str,
        target: Path,
        reporter: StepReporter,
        step: int,
        step_name: str,
        label: str,
        weight: float = 1.0,
    ) -> None:
        """
        Stream `url` to `target`, reporting byte progress scaled by `weight`,
        then reject (and delete) anything that is not a zip archive.

        Raises:
            InvalidArchiveError: If the payload does not start with ``PK``.
        """

        def _on_chunk(downloaded: int, total: Optional[int], _name: str) -> None:
            sp = fraction(downloaded, total) if total else 0.0
            reporter.progress(
                step,
                step_name,
                sp * weight,
                detail=f"Downloading {label}... {downloaded // BYTES_PER_MEGABYTE} MB",
                downloaded_bytes=downloaded,
                total_bytes=total,
            )

        await self.client.download_file(url, target, progress_callback=_on_chunk)

        if not is_zip_archive(target):
            remove_file_quietly(target)
            raise InvalidArchiveError(
                f"{label} download is not a valid zip (got non-zip response). Please retry.",
                url=url,
            )

    async def _extract_in_worker(
        self,
        extract: Callable[[Path, Path, Optional[ExtractProgressCallback]], int],
        archive: Path,
        dest: Path,
        reporter: StepReporter,
        step: int,
        step_name: str,
        label: str,
        offset: float = 0.0,
        weight: float = 1.0,
    ) -> int:
        """
        Run an extractor method on a worker thread.

        Progress from the worker is scheduled back onto the event loop and
        mapped into ``[offset, offset + weight]`` of the step.
        """
        loop = asyncio.get_running_loop()
        report = reporter.threadsafe(loop)

        def _on_file(done: int, total: int, name: Optional[str]) -> None:
            detail = f"{label}... {done}/{total}"
            if name:
                detail = f"{detail} • {name}"
            report(
                step,
                step_name,
                offset + fraction(done, total) * weight,
                detail=detail,
                extracted_files=done,
                total_files=total,
            )

        written = await asyncio.to_thread(extract, archive, dest, _on_file)
        # Let progress scheduled by the worker reach the sink before continuing
        await asyncio.sleep(0)
        return written


def progress_relay(
    reporter: StepReporter, step: int, step_name: str
) -> Callable[[int, int, Optional[str]], Any]:
    """Adapt (done, total, detail) mod-install callbacks to step progress records."""

    def _relay(done: int, total: int, detail: Optional[str]) -> None:
        reporter.progress(
            step,
            step_name,
            fraction(done, total),
            detail=detail,
            extracted_files=done,
            total_files=total,
        )

    return _relay
