"""
End-to-end upload run.

One run moves through a fixed sequence of stages:

    START -> AUTH_RESOLVED -> BUCKET_ENSURED
          -> SINGLE_FILE_UPLOADED | DIRECTORY_WALKED -> DONE

Any typed error ends the run in FATAL: the error is tagged with the stage it
was raised in and propagated to the caller. There are no retry or rollback
transitions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from google.cloud import storage

from gcloud_st.uploader.provisioning import build_client, ensure_bucket
from gcloud_st.uploader.traversal import upload_tree
from gcloud_st.uploader.uploader import UploadResult, upload_file
from gcloud_st.utils.config import UploadOptions
from gcloud_st.utils.errors import GcloudStError
from gcloud_st.utils.logging import get_logger
from gcloud_st.utils.metrics import UploadMetrics

logger = get_logger(__name__)


class RunStage(str, Enum):
    START = "start"
    AUTH_RESOLVED = "auth_resolved"
    BUCKET_ENSURED = "bucket_ensured"
    SINGLE_FILE_UPLOADED = "single_file_uploaded"
    DIRECTORY_WALKED = "directory_walked"
    DONE = "done"
    FATAL = "fatal"


@dataclass
class RunSummary:
    """What one run did."""

    options: UploadOptions
    stage: RunStage = RunStage.START
    bucket_created: bool = False
    results: List[UploadResult] = field(default_factory=list)
    failures: List[GcloudStError] = field(default_factory=list)
    directories: int = 0
    hidden_skipped: int = 0
    other_skipped: int = 0

    @property
    def success(self) -> bool:
        return self.stage == RunStage.DONE and not self.failures

    @property
    def bytes_sent(self) -> int:
        return sum(r.bytes_sent for r in self.results)


class UploadRun:
    """
    Drives a single run through its stages.

    Example:
        >>> run = UploadRun(options)
        >>> summary = run.execute()
        >>> summary.stage
        <RunStage.DONE: 'done'>
    """

    def __init__(
        self,
        options: UploadOptions,
        client: Optional[storage.Client] = None,
        metrics: Optional[UploadMetrics] = None,
    ) -> None:
        self.options = options.validate()
        self.client = client
        self.metrics = metrics
        self.summary = RunSummary(options=self.options)

    @property
    def stage(self) -> RunStage:
        return self.summary.stage

    def _advance(self, stage: RunStage) -> None:
        logger.debug(f"Run stage: {self.summary.stage.value} -> {stage.value}")
        self.summary.stage = stage

    def execute(self) -> RunSummary:
        """
        Run every stage in order.

        Raises:
            GcloudStError: The first fatal error, with `.stage` set to the
                stage that was running when it happened
        """
        try:
            self._run_stages()
        except GcloudStError as e:
            e.stage = self.summary.stage.value
            self._advance(RunStage.FATAL)
            raise
        return self.summary

    def _run_stages(self) -> None:
        options = self.options

        if self.client is None:
            self.client = build_client(options.project_id)
        self._advance(RunStage.AUTH_RESOLVED)

        status = ensure_bucket(
            self.client, options.bucket_name, options.project_id, self.metrics
        )
        self.summary.bucket_created = status.created
        self._advance(RunStage.BUCKET_ENSURED)

        if options.file_path:
            result = upload_file(
                status.bucket, options.file_path, options, metrics=self.metrics
            )
            self.summary.results.append(result)
            self._advance(RunStage.SINGLE_FILE_UPLOADED)
        else:
            report = upload_tree(status.bucket, options.dir_path, options, self.metrics)
            self.summary.results.extend(report.results)
            self.summary.failures.extend(report.failures)
            self.summary.directories = report.directories
            self.summary.hidden_skipped = report.hidden_skipped
            self.summary.other_skipped = report.other_skipped
            self._advance(RunStage.DIRECTORY_WALKED)

        self._advance(RunStage.DONE)


def run_upload(
    options: UploadOptions,
    client: Optional[storage.Client] = None,
    metrics: Optional[UploadMetrics] = None,
) -> RunSummary:
    """
    Run a complete upload: resolve auth, ensure the bucket, upload.

    Args:
        options: Validated run options
        client: Pre-built storage client (built from ambient credentials if None)
        metrics: Metrics to record into (optional)

    Returns:
        RunSummary of the finished run

    Raises:
        ConfigError: If options are incomplete
        GcloudStError: The first fatal error of the run
    """
    return UploadRun(options, client=client, metrics=metrics).execute()
