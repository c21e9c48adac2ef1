"""
Prometheus metrics for a gcloud-st run.

Each run owns an UploadMetrics instance backed by its own CollectorRegistry,
so counters start from zero per invocation. The CLI can export them as a
node-exporter textfile (`--metrics-file`) for scheduled deploy jobs.

Metrics Provided:
    - gcloud_st_objects_uploaded_total{encoding}: objects created
    - gcloud_st_upload_bytes_total: bytes sent as object bodies
    - gcloud_st_source_bytes_total: bytes read from local files
    - gcloud_st_entries_skipped_total{reason}: hidden / other / failed entries
    - gcloud_st_gcs_errors_total{operation,error_type}: storage API errors
    - gcloud_st_buckets_created_total: buckets created by provisioning
    - gcloud_st_upload_duration_seconds: per-object upload latency

Usage:
    >>> metrics = UploadMetrics()
    >>> with metrics.track_upload():
    ...     blob.upload_from_file(body)
    >>> metrics.record_upload_success(bytes_sent=1024, source_bytes=4096, encoding="gzip")
    >>> metrics.write_textfile("/var/lib/node_exporter/gcloud_st.prom")
"""

from pathlib import Path
from typing import Optional, Union

from prometheus_client import CollectorRegistry, Counter, Histogram, write_to_textfile

from gcloud_st.utils.logging import get_logger

logger = get_logger(__name__)


class UploadMetrics:
    """
    Counters and latency histogram for one upload run.

    Example:
        >>> metrics = UploadMetrics()
        >>> metrics.record_skip("hidden")
        >>> metrics.value("gcloud_st_entries_skipped_total", {"reason": "hidden"})
        1.0
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        self.objects_uploaded = Counter(
            name="gcloud_st_objects_uploaded_total",
            documentation="Objects created in the bucket",
            labelnames=["encoding"],  # identity, gzip
            registry=self.registry,
        )

        self.upload_bytes = Counter(
            name="gcloud_st_upload_bytes_total",
            documentation="Bytes sent as object bodies",
            registry=self.registry,
        )

        self.source_bytes = Counter(
            name="gcloud_st_source_bytes_total",
            documentation="Bytes read from local files",
            registry=self.registry,
        )

        self.entries_skipped = Counter(
            name="gcloud_st_entries_skipped_total",
            documentation="Filesystem entries not uploaded",
            labelnames=["reason"],  # hidden, other, failed
            registry=self.registry,
        )

        self.gcs_errors = Counter(
            name="gcloud_st_gcs_errors_total",
            documentation="Storage API errors",
            labelnames=["operation", "error_type"],  # get_bucket, create_bucket, insert
            registry=self.registry,
        )

        self.buckets_created = Counter(
            name="gcloud_st_buckets_created_total",
            documentation="Buckets created because they did not exist",
            registry=self.registry,
        )

        self.upload_duration = Histogram(
            name="gcloud_st_upload_duration_seconds",
            documentation="Time spent in a single object insert",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0],
            registry=self.registry,
        )

    def track_upload(self):
        """
        Context manager timing one object insert.

        Example:
            >>> with metrics.track_upload():
            ...     blob.upload_from_file(body)
        """
        return self.upload_duration.time()

    def record_upload_success(
        self, bytes_sent: int, source_bytes: int, encoding: str = "identity"
    ) -> None:
        self.objects_uploaded.labels(encoding=encoding).inc()
        self.upload_bytes.inc(bytes_sent)
        self.source_bytes.inc(source_bytes)

    def record_skip(self, reason: str) -> None:
        self.entries_skipped.labels(reason=reason).inc()

    def record_gcs_error(self, operation: str, error_type: str) -> None:
        """
        Record a storage API error.

        Args:
            operation: get_bucket, create_bucket or insert
            error_type: Exception class name (NotFound, Forbidden, ...)
        """
        self.gcs_errors.labels(operation=operation, error_type=error_type).inc()

    def record_bucket_created(self) -> None:
        self.buckets_created.inc()

    def value(self, name: str, labels: Optional[dict] = None) -> float:
        """Return the current value of a sample (0.0 if never recorded)."""
        sample = self.registry.get_sample_value(name, labels or {})
        return sample if sample is not None else 0.0

    def write_textfile(self, path: Union[str, Path]) -> None:
        """Write all metrics in the Prometheus text format to `path`."""
        write_to_textfile(str(path), self.registry)
        logger.info(f"Metrics written to {path}")
