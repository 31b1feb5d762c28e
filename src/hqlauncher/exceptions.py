"""
Custom exceptions for HQ Launcher.

Install and sync pipelines, the CLI and the default collaborators raise
these. The CLI catches HQLauncherError and exits with status 1.
"""


class HQLauncherError(Exception):
    """
    Base exception for all HQ Launcher errors.

    `details` carries the underlying cause and is appended to str(error).
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(HQLauncherError):
    """
    Raised when hq-launcher.yaml cannot be parsed or holds a bad value.
    """

    pass


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthError(HQLauncherError):
    """Exception raised when the depot downloader is not logged in."""

    pass


# =============================================================================
# Manifest Errors
# =============================================================================


class ManifestError(HQLauncherError):
    """
    Exception raised when the remote manifest cannot be used.

    This includes:
    - Transport failures while fetching the manifest
    - Malformed manifest JSON
    - A game version with no depot manifest id
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(HQLauncherError):
    """
    Base class for package, loader and tool download failures.

    Attributes:
        url: The URL that was being downloaded when the error occurred.
        is_retryable: Whether re-running the action could succeed.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        """
        Args:
            message: The primary error message.
            url: Source URL of the failed request.
            is_retryable: Whether this error could be retried.
            details: Optional additional context.
        """
        super().__init__(message, details)
        self.url = url
        self.is_retryable = is_retryable


class NetworkError(DownloadError):
    """
    Raised when a request never produced an HTTP response (timeouts, refused
    connections, DNS failures). Always retryable.
    """

    pass


class HTTPError(DownloadError):
    """
    Exception raised for non-success HTTP responses.

    Attributes:
        status_code: The HTTP status code returned by the server.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        super().__init__(message, url, is_retryable, details)
        self.status_code = status_code


class InvalidArchiveError(DownloadError):
    """Exception raised when a downloaded payload is not a zip archive."""

    pass


# =============================================================================
# Archive Errors
# =============================================================================


class ArchiveError(HQLauncherError):
    """
    Base class for zip archive failures.

    This includes:
    - Corrupted ZIP files
    - Extraction failures
    """

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.archive_path = archive_path


class ExtractionError(ArchiveError):
    """Raised for corrupt zips and members that would escape the destination."""

    pass


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(HQLauncherError):
    """
    Raised when a filesystem operation inside a pipeline fails.

    This includes:
    - Directory creation failures
    - Copy and remove failures
    - State file read/write failures
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        """
        Args:
            message: The primary error message.
            path: Path the operation failed on.
            details: Optional additional context.
        """
        super().__init__(message, details)
        self.path = path


class LinkError(FileSystemError):
    """Exception raised when a directory link or junction cannot be created."""

    pass
