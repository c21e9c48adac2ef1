"""
Google Cloud Storage object uploader.

Uploads one local file as one object. The object name is the local path in
POSIX form, so uploading a nested directory keeps its full relative layout in
the bucket.

With gzip enabled the whole file is compressed into memory first and sent
with Content-Encoding: gzip; the Content-Type is sniffed from the original
bytes. Without gzip the open file handle is streamed as-is, still with a
sniffed Content-Type; the client library would otherwise send
application/octet-stream for every object.

The body size is always passed along, so objects up to the client library's
multipart limit (8 MiB) go out as one request instead of a resumable session.

Example usage:
    >>> from gcloud_st.uploader import upload_file
    >>> from gcloud_st.utils.config import UploadOptions
    >>> options = UploadOptions(bucket_name="www.example.com", project_id="p",
    ...                         file_path="site/index.html", gzip_encode=True)
    >>> result = upload_file(bucket, "site/index.html", options)
    >>> print(result.gcs_uri)
    gs://www.example.com/site/index.html
"""

import gzip
import io
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, BinaryIO, Dict, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from gcloud_st.uploader.sniffer import sniff_content_type
from gcloud_st.utils.config import UploadOptions
from gcloud_st.utils.errors import (
    CompressionError,
    FileOpenError,
    FileStatError,
    UploadError,
)
from gcloud_st.utils.logging import get_logger, log_function_call
from gcloud_st.utils.metrics import UploadMetrics

logger = get_logger(__name__)

GZIP_ENCODING = "gzip"

# Copy chunk size when draining a file through the gzip writer
COPY_BUFSIZE = 64 * 1024


@dataclass(frozen=True)
class StorageObject:
    """
    Object metadata sent with an insert.

    Attributes:
        name: Destination object name (equal to the source path)
        content_type: MIME type sniffed from the source bytes
        content_encoding: "gzip" or None
        acl: Predefined ACL ("private" or "publicRead")
    """

    name: str
    content_type: str
    content_encoding: Optional[str]
    acl: str


@dataclass
class UploadResult:
    """
    Result of a single object upload.

    Attributes:
        object_name: Name of the created object
        local_path: Source file path
        gcs_uri: gs://bucket/object URI
        bytes_sent: Size of the uploaded body (compressed size for gzip)
        source_size_bytes: Size of the local file
        content_type: Content type sent
        content_encoding: "gzip" or None
        acl: Predefined ACL applied
        duration_seconds: Wall time of the upload
    """

    object_name: str
    local_path: str
    gcs_uri: str
    bytes_sent: int
    source_size_bytes: int
    content_type: str
    content_encoding: Optional[str]
    acl: str
    duration_seconds: float


def object_name_for(local_path: str) -> str:
    """
    Derive the object name for a local path.

    The path is kept whole and only cleaned: OS separators become "/" and
    "." segments are dropped.

    Example:
        >>> object_name_for("site/img/logo.png")
        'site/img/logo.png'
        >>> object_name_for("./site/index.html")
        'site/index.html'
    """
    return PurePath(local_path).as_posix()


def gzip_buffer(fileobj: BinaryIO) -> io.BytesIO:
    """
    Drain `fileobj` through a gzip writer into an in-memory buffer.

    The writer is closed (flushing the trailer) before the buffer is
    rewound and returned.
    """
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb") as writer:
        shutil.copyfileobj(fileobj, writer, COPY_BUFSIZE)
    buffer.seek(0)
    return buffer


def build_storage_object(
    object_name: str, options: UploadOptions, content_type: str
) -> StorageObject:
    """Build the object metadata for an upload under `options`."""
    return StorageObject(
        name=object_name,
        content_type=content_type,
        content_encoding=GZIP_ENCODING if options.gzip_encode else None,
        acl=options.predefined_acl,
    )


@log_function_call
def upload_file(
    bucket: storage.Bucket,
    local_path: str,
    options: UploadOptions,
    object_name: Optional[str] = None,
    metrics: Optional[UploadMetrics] = None,
) -> UploadResult:
    """
    Upload a single file to the bucket.

    Args:
        bucket: Destination bucket handle
        local_path: Local file to upload
        options: Run options (gzip, ACL, timeout)
        object_name: Destination name override (defaults to the local path)
        metrics: Metrics to record into (optional)

    Returns:
        UploadResult describing the created object

    Raises:
        FileOpenError: If the file cannot be opened or read
        FileStatError: If the file cannot be stat-ed
        CompressionError: If gzip encoding fails
        UploadError: If the storage service rejects the insert
    """
    start_time = time.time()
    name = object_name if object_name is not None else object_name_for(local_path)

    try:
        handle = open(local_path, "rb")
    except OSError as e:
        raise FileOpenError("Error opening file", local_path, e) from e

    with handle:
        try:
            source_size = os.fstat(handle.fileno()).st_size
        except OSError as e:
            raise FileStatError("Error reading file status", local_path, e) from e

        content_type = sniff_content_type(handle, local_path)
        if options.gzip_encode:
            try:
                body: BinaryIO = gzip_buffer(handle)
            except (OSError, EOFError, ValueError) as e:
                raise CompressionError("Error gzip-encoding file", local_path, e) from e
            bytes_sent = len(body.getvalue())
        else:
            body = handle
            bytes_sent = source_size

        storage_object = build_storage_object(name, options, content_type)
        logger.debug(
            f"Uploading {local_path} -> gs://{bucket.name}/{name} "
            f"({bytes_sent} bytes, type={storage_object.content_type}, "
            f"acl={storage_object.acl}, "
            f"encoding={storage_object.content_encoding or 'identity'})"
        )
        _insert_object(
            bucket, storage_object, body, bytes_sent, options, local_path, metrics
        )

    duration = time.time() - start_time
    logger.info(
        f"Created object {name}",
        extra={"object_name": name, "bytes": bytes_sent, "duration_seconds": duration},
    )

    if metrics is not None:
        metrics.record_upload_success(
            bytes_sent=bytes_sent,
            source_bytes=source_size,
            encoding=storage_object.content_encoding or "identity",
        )

    return UploadResult(
        object_name=name,
        local_path=local_path,
        gcs_uri=f"gs://{bucket.name}/{name}",
        bytes_sent=bytes_sent,
        source_size_bytes=source_size,
        content_type=storage_object.content_type,
        content_encoding=storage_object.content_encoding,
        acl=storage_object.acl,
        duration_seconds=duration,
    )


def _insert_object(
    bucket: storage.Bucket,
    storage_object: StorageObject,
    body: BinaryIO,
    size: int,
    options: UploadOptions,
    local_path: str,
    metrics: Optional[UploadMetrics],
) -> None:
    """Issue one object insert with the given body."""
    blob = bucket.blob(storage_object.name)
    if storage_object.content_encoding:
        blob.content_encoding = storage_object.content_encoding

    kwargs: Dict[str, Any] = {
        "content_type": storage_object.content_type,
        "predefined_acl": storage_object.acl,
        "size": size,
    }
    if options.timeout_seconds is not None:
        kwargs["timeout"] = options.timeout_seconds

    try:
        if metrics is not None:
            with metrics.track_upload():
                blob.upload_from_file(body, **kwargs)
        else:
            blob.upload_from_file(body, **kwargs)
    except (GoogleAPIError, GoogleAuthError, OSError, ValueError) as e:
        if metrics is not None:
            metrics.record_gcs_error(operation="insert", error_type=type(e).__name__)
        raise UploadError(
            f"Objects.Insert failed for {storage_object.name}", local_path, e
        ) from e
