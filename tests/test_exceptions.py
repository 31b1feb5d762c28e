"""
Tests for the exception taxonomy.
"""

import pytest

from hqlauncher.exceptions import (
    ArchiveError,
    AuthError,
    ConfigurationError,
    DownloadError,
    ExtractionError,
    FileSystemError,
    HQLauncherError,
    HTTPError,
    InvalidArchiveError,
    LinkError,
    ManifestError,
    NetworkError,
)

pytestmark = [pytest.mark.unit]


@pytest.mark.parametrize(
    "exc_type,parent",
    [
        (ConfigurationError, HQLauncherError),
        (AuthError, HQLauncherError),
        (ManifestError, HQLauncherError),
        (DownloadError, HQLauncherError),
        (NetworkError, DownloadError),
        (HTTPError, DownloadError),
        (InvalidArchiveError, DownloadError),
        (ExtractionError, ArchiveError),
        (ArchiveError, HQLauncherError),
        (LinkError, FileSystemError),
        (FileSystemError, HQLauncherError),
    ],
)
def test_hierarchy(exc_type, parent):
    assert issubclass(exc_type, parent)


def test_str_with_details():
    error = HQLauncherError("Install failed", details="disk full")
    assert str(error) == "Install failed - disk full"
    assert error.message == "Install failed"


def test_str_without_details():
    assert str(AuthError("Not logged in")) == "Not logged in"


def test_http_error_fields():
    error = HTTPError("HTTP error 503", status_code=503, url="https://x", is_retryable=True)
    assert error.status_code == 503
    assert error.url == "https://x"
    assert error.is_retryable is True


def test_manifest_error_url():
    assert ManifestError("bad", url="https://m").url == "https://m"


def test_filesystem_error_path():
    error = LinkError("no link", path="/games/v73/BepInEx/config", details="EPERM")
    assert error.path == "/games/v73/BepInEx/config"
    assert str(error) == "no link - EPERM"
