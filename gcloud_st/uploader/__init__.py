"""
Google Cloud Storage uploader.

Sniffs content types, uploads files as objects (optionally gzip-encoded),
walks directory trees and makes sure the destination bucket exists.
"""

from gcloud_st.uploader.sniffer import detect_content_type, sniff_content_type
from gcloud_st.uploader.uploader import (
    StorageObject,
    UploadResult,
    build_storage_object,
    gzip_buffer,
    object_name_for,
    upload_file,
)
from gcloud_st.uploader.traversal import (
    TraversalEntry,
    TreeReport,
    is_hidden_path,
    upload_tree,
    walk_tree,
)
from gcloud_st.uploader.provisioning import BucketStatus, build_client, ensure_bucket
from gcloud_st.uploader.workflow import RunStage, RunSummary, UploadRun, run_upload

__all__ = [
    "detect_content_type",
    "sniff_content_type",
    "StorageObject",
    "UploadResult",
    "build_storage_object",
    "gzip_buffer",
    "object_name_for",
    "upload_file",
    "TraversalEntry",
    "TreeReport",
    "is_hidden_path",
    "upload_tree",
    "walk_tree",
    "BucketStatus",
    "build_client",
    "ensure_bucket",
    "RunStage",
    "RunSummary",
    "UploadRun",
    "run_upload",
]
