"""
Install and sync pipelines, shared config linking, progress reporting and
local install state.
"""

from .linker import ConfigLinker, DirectoryLinker, LinkResult
from .orchestrator import InstallPipeline
from .progress import (
    CallbackSink,
    LoggingSink,
    ProgressSink,
    QueueSink,
    RecordingSink,
    TaskError,
    TaskFinished,
    TaskProgress,
)
from .state import ManifestStateStore, latest_installed_version, list_installed_versions
from .sync import SyncPipeline

__all__ = [
    "CallbackSink",
    "ConfigLinker",
    "DirectoryLinker",
    "InstallPipeline",
    "LinkResult",
    "LoggingSink",
    "ManifestStateStore",
    "ProgressSink",
    "QueueSink",
    "RecordingSink",
    "SyncPipeline",
    "TaskError",
    "TaskFinished",
    "TaskProgress",
    "latest_installed_version",
    "list_installed_versions",
]
