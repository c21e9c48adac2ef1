"""
Typed errors raised by gcloud-st.

Every failure the upload workflow can hit maps onto one of these classes.
Each error keeps the local path (when there is one) and the underlying
exception so the top-level handler can decide whether to abort the run or
skip the entry and keep going.

Example usage:
    >>> try:
    ...     upload_file(bucket, "site/index.html", options)
    ... except UploadError as e:
    ...     print(e.path, e.cause)
"""

from typing import Optional


class GcloudStError(Exception):
    """
    Base class for all gcloud-st errors.

    Attributes:
        message: Human readable description
        path: Local file or directory the error refers to (if any)
        cause: Underlying exception (if any)
        stage: Workflow stage the error was raised in, set by the workflow
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.cause = cause
        self.stage: Optional[str] = None

    def __str__(self) -> str:
        text = self.message
        if self.path is not None:
            text = f"{text} [{self.path}]"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class ConfigError(GcloudStError):
    """Missing or invalid command-line / configuration option."""


class AuthError(GcloudStError):
    """Ambient credentials could not be resolved."""


class ServiceInitError(GcloudStError):
    """The storage client could not be constructed."""


class BucketCheckError(GcloudStError):
    """Bucket lookup failed. Treated as "bucket absent" by provisioning."""


class BucketCreateError(GcloudStError):
    """Bucket creation failed."""


class FileOpenError(GcloudStError):
    """A local file could not be opened or read."""


class FileStatError(GcloudStError):
    """A filesystem entry could not be stat-ed or listed during the walk."""


class CompressionError(GcloudStError):
    """Gzip encoding of a file failed."""


class UploadError(GcloudStError):
    """The storage service rejected an object insert."""
