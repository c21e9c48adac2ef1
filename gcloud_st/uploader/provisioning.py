"""
Storage client construction and bucket provisioning.

Credentials come from the ambient environment: the gcloud CLI's application
default credentials when running locally, or the attached service account
when running on Google Cloud.
"""

from dataclasses import dataclass
from typing import Optional

import google.auth
from google.api_core.exceptions import GoogleAPIError
from google.auth.credentials import Credentials
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.cloud import storage

from gcloud_st.utils.errors import AuthError, BucketCheckError, BucketCreateError, ServiceInitError
from gcloud_st.utils.logging import get_logger, log_function_call
from gcloud_st.utils.metrics import UploadMetrics

logger = get_logger(__name__)

# Full control over Cloud Storage resources (bucket create + object insert with ACL)
STORAGE_SCOPE = "https://www.googleapis.com/auth/devstorage.full_control"


@dataclass
class BucketStatus:
    """Result of ensure_bucket."""

    bucket: storage.Bucket
    created: bool


def resolve_credentials() -> Credentials:
    """
    Resolve ambient credentials for the storage scope.

    Raises:
        AuthError: If no default credentials are available
    """
    try:
        credentials, detected_project = google.auth.default(scopes=[STORAGE_SCOPE])
    except DefaultCredentialsError as e:
        raise AuthError("Unable to get default client", cause=e) from e
    logger.debug(f"Resolved default credentials (detected project: {detected_project})")
    return credentials


@log_function_call
def build_client(
    project_id: str, credentials: Optional[Credentials] = None
) -> storage.Client:
    """
    Construct an authenticated storage client.

    Args:
        project_id: Project used for bucket creation and billing
        credentials: Explicit credentials; resolved from the environment if None

    Returns:
        storage.Client

    Raises:
        AuthError: If credentials cannot be resolved
        ServiceInitError: If the client cannot be constructed
    """
    if credentials is None:
        credentials = resolve_credentials()

    try:
        client = storage.Client(project=project_id, credentials=credentials)
    except (GoogleAuthError, GoogleAPIError, ValueError, OSError) as e:
        raise ServiceInitError("Unable to create storage service", cause=e) from e

    logger.debug(f"Storage client ready for project {project_id}")
    return client


def check_bucket(client: storage.Client, bucket_name: str) -> storage.Bucket:
    """
    Fetch an existing bucket visible to the authenticated identity.

    Raises:
        BucketCheckError: If the bucket does not exist or cannot be read
    """
    try:
        return client.get_bucket(bucket_name)
    except GoogleAPIError as e:
        raise BucketCheckError(f"Bucket {bucket_name} is not accessible", cause=e) from e


@log_function_call
def ensure_bucket(
    client: storage.Client,
    bucket_name: str,
    project_id: str,
    metrics: Optional[UploadMetrics] = None,
) -> BucketStatus:
    """
    Return the bucket, creating it under `project_id` if it is absent.

    Any lookup error (not only NotFound) is treated as "absent" and followed
    by a create attempt; if the bucket exists but is not readable the create
    call fails and reports the real problem. No bucket settings (location,
    storage class, versioning) are applied.

    Args:
        client: Authenticated storage client
        bucket_name: Bucket to look up or create
        project_id: Project the bucket is created under
        metrics: Metrics to record into (optional)

    Returns:
        BucketStatus with the bucket handle and whether it was created

    Raises:
        BucketCreateError: If creation fails
    """
    try:
        bucket = check_bucket(client, bucket_name)
    except BucketCheckError as e:
        logger.info(f"Bucket {bucket_name} not found, creating it ({e.cause})")
        if metrics is not None:
            metrics.record_gcs_error(operation="get_bucket", error_type=type(e.cause).__name__)
    else:
        logger.info(f"Bucket {bucket_name} exists. Use it to add data")
        return BucketStatus(bucket=bucket, created=False)

    try:
        bucket = client.create_bucket(bucket_name, project=project_id)
    except GoogleAPIError as e:
        if metrics is not None:
            metrics.record_gcs_error(operation="create_bucket", error_type=type(e).__name__)
        raise BucketCreateError(f"Failed creating bucket {bucket_name}", cause=e) from e

    logger.info(f"Created bucket {bucket.name} in project {project_id}")
    if metrics is not None:
        metrics.record_bucket_created()
    return BucketStatus(bucket=bucket, created=True)
