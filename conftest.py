"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Dict, List
from unittest.mock import MagicMock

import pytest

# Make the package importable without installing it
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from gcloud_st.utils.config import UploadOptions  # noqa: E402


class RecordingBucket:
    """
    Bucket stand-in that records every object insert.

    Each call to blob(name) returns a MagicMock whose upload_from_file
    stores the name, the body bytes and the keyword arguments, so tests can
    inspect exactly what would have been sent.
    """

    def __init__(self, name: str = "test-bucket") -> None:
        self.name = name
        self.inserts: List[Dict] = []
        self.blobs: Dict[str, MagicMock] = {}

    def blob(self, blob_name: str) -> MagicMock:
        blob = MagicMock(name=f"blob:{blob_name}")
        blob.name = blob_name
        blob.content_encoding = None

        def upload_from_file(body, **kwargs):
            self.inserts.append(
                {
                    "name": blob_name,
                    "body": body.read(),
                    "content_encoding": blob.content_encoding,
                    **kwargs,
                }
            )

        blob.upload_from_file.side_effect = upload_from_file
        self.blobs[blob_name] = blob
        return blob

    @property
    def object_names(self) -> List[str]:
        return [insert["name"] for insert in self.inserts]


@pytest.fixture
def bucket() -> RecordingBucket:
    return RecordingBucket()


@pytest.fixture
def storage_client(bucket: RecordingBucket) -> MagicMock:
    """storage.Client stand-in whose bucket already exists."""
    client = MagicMock(name="storage.Client")
    client.get_bucket.return_value = bucket
    client.create_bucket.return_value = bucket
    return client


@pytest.fixture
def options() -> UploadOptions:
    return UploadOptions(bucket_name="test-bucket", project_id="test-project")


@pytest.fixture
def site_tree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Create ./site with index.html, .git/config and img/logo.png and chdir
    into its parent, so walked paths look like "site/index.html".
    """
    site = tmp_path / "site"
    (site / ".git").mkdir(parents=True)
    (site / "img").mkdir()
    (site / "index.html").write_text("<!DOCTYPE html><html><body>hi</body></html>")
    (site / ".git" / "config").write_text("[core]\n\tbare = false\n")
    (site / "img" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 64)
    monkeypatch.chdir(tmp_path)
    return site
