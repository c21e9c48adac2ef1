"""
Unit tests for the object uploader.

Uses a recording bucket stand-in (see conftest.py) instead of a real
storage client, so no credentials or network access are needed.
"""

import gzip
import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import Forbidden

from gcloud_st.uploader import (
    StorageObject,
    build_storage_object,
    gzip_buffer,
    object_name_for,
    upload_file,
)
from gcloud_st.utils.config import UploadOptions, predefined_acl_for, flag_enabled
from gcloud_st.utils.errors import FileOpenError, UploadError
from gcloud_st.utils.metrics import UploadMetrics


class TestAclSelection:
    """Test predefined ACL selection from the public flag."""

    def test_true_is_public_read(self):
        assert predefined_acl_for(flag_enabled("true")) == "publicRead"

    @pytest.mark.parametrize("value", ["", "false", "True", "yes", "1", None])
    def test_anything_else_is_private(self, value):
        assert predefined_acl_for(flag_enabled(value)) == "private"

    def test_options_property(self, options):
        assert options.predefined_acl == "private"
        assert options.merged(make_public=True).predefined_acl == "publicRead"


class TestBuildStorageObject:
    """Test object metadata construction."""

    def test_plain_upload_carries_sniffed_type(self, options):
        obj = build_storage_object(
            "site/a.css", options, content_type="text/plain; charset=utf-8"
        )

        assert obj == StorageObject(
            name="site/a.css",
            content_type="text/plain; charset=utf-8",
            content_encoding=None,
            acl="private",
        )

    def test_gzip_upload_sets_encoding_and_type(self, options):
        gz = options.merged(gzip_encode=True, make_public=True)
        obj = build_storage_object("site/a.png", gz, content_type="image/png")

        assert obj.content_encoding == "gzip"
        assert obj.content_type == "image/png"
        assert obj.acl == "publicRead"


class TestGzipBuffer:
    """Test in-memory gzip encoding."""

    def test_round_trip_is_byte_identical(self):
        source = bytes(range(256)) * 300
        buffer = gzip_buffer(io.BytesIO(source))

        assert buffer.tell() == 0
        assert gzip.decompress(buffer.read()) == source

    def test_empty_input_produces_valid_gzip(self):
        buffer = gzip_buffer(io.BytesIO(b""))

        assert gzip.decompress(buffer.getvalue()) == b""


class TestObjectName:
    """Test object naming from local paths."""

    def test_keeps_full_relative_path(self):
        assert object_name_for("site/img/logo.png") == "site/img/logo.png"

    def test_no_prefix_stripping(self):
        assert object_name_for("deploy/site/index.html") == "deploy/site/index.html"

    def test_current_directory_segments_dropped(self):
        assert object_name_for("./site/index.html") == "site/index.html"
        assert object_name_for("site/./img/logo.png") == "site/img/logo.png"


class TestUploadFile:
    """Test upload_file against a recording bucket."""

    def test_plain_upload_streams_raw_file(self, bucket, options, tmp_path: Path):
        source = tmp_path / "style.css"
        source.write_text("body { margin: 0 }\n")

        result = upload_file(bucket, str(source), options)

        assert len(bucket.inserts) == 1
        insert = bucket.inserts[0]
        assert insert["name"] == str(source)
        assert insert["body"] == b"body { margin: 0 }\n"
        assert insert["content_type"] == "text/plain; charset=utf-8"
        assert insert["size"] == source.stat().st_size
        assert insert["predefined_acl"] == "private"
        assert insert["content_encoding"] is None
        assert "timeout" not in insert

        assert result.object_name == str(source)
        assert result.gcs_uri == f"gs://test-bucket/{source}"
        assert result.bytes_sent == result.source_size_bytes == source.stat().st_size
        assert result.content_encoding is None

    def test_gzip_upload_round_trip(self, bucket, options, tmp_path: Path):
        payload = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 50
        source = tmp_path / "logo.png"
        source.write_bytes(payload)
        gz = options.merged(gzip_encode=True)

        result = upload_file(bucket, str(source), gz)

        insert = bucket.inserts[0]
        assert insert["content_encoding"] == "gzip"
        assert insert["content_type"] == "image/png"
        assert gzip.decompress(insert["body"]) == payload
        assert insert["size"] == len(insert["body"])
        assert result.bytes_sent == len(insert["body"])
        assert result.source_size_bytes == len(payload)

    def test_plain_html_upload_is_served_as_html(self, bucket, options, tmp_path: Path):
        source = tmp_path / "index.html"
        source.write_text("<!DOCTYPE html><html><body>hi</body></html>")

        result = upload_file(bucket, str(source), options)

        insert = bucket.inserts[0]
        assert insert["content_type"] == "text/html; charset=utf-8"
        assert insert["content_encoding"] is None
        assert insert["body"] == source.read_bytes()
        assert result.content_type == "text/html; charset=utf-8"

    def test_content_type_sniffed_from_uncompressed_content(
        self, bucket, options, tmp_path: Path
    ):
        source = tmp_path / "page"
        source.write_text("<html><body>no extension</body></html>")

        upload_file(bucket, str(source), options.merged(gzip_encode=True))

        assert bucket.inserts[0]["content_type"] == "text/html; charset=utf-8"

    def test_public_acl_and_timeout_passed(self, bucket, options, tmp_path: Path):
        source = tmp_path / "a.txt"
        source.write_text("hello")

        upload_file(
            bucket, str(source), options.merged(make_public=True, timeout_seconds=30.0)
        )

        assert bucket.inserts[0]["predefined_acl"] == "publicRead"
        assert bucket.inserts[0]["timeout"] == 30.0

    def test_object_name_override(self, bucket, options, tmp_path: Path):
        source = tmp_path / "a.txt"
        source.write_text("hello")

        result = upload_file(bucket, str(source), options, object_name="renamed.txt")

        assert bucket.object_names == ["renamed.txt"]
        assert result.gcs_uri == "gs://test-bucket/renamed.txt"

    def test_missing_file_raises_file_open_error(self, bucket, options, tmp_path: Path):
        missing = str(tmp_path / "missing.txt")

        with pytest.raises(FileOpenError) as excinfo:
            upload_file(bucket, missing, options)

        assert excinfo.value.path == missing
        assert bucket.inserts == []

    def test_service_error_raises_upload_error(self, options, tmp_path: Path):
        source = tmp_path / "a.txt"
        source.write_text("hello")
        blob = MagicMock()
        blob.upload_from_file.side_effect = Forbidden("no write access")
        failing_bucket = MagicMock()
        failing_bucket.name = "locked-bucket"
        failing_bucket.blob.return_value = blob
        metrics = UploadMetrics()

        with pytest.raises(UploadError) as excinfo:
            upload_file(failing_bucket, str(source), options, metrics=metrics)

        assert excinfo.value.path == str(source)
        assert isinstance(excinfo.value.cause, Forbidden)
        assert metrics.value(
            "gcloud_st_gcs_errors_total",
            {"operation": "insert", "error_type": "Forbidden"},
        ) == 1.0

    def test_records_metrics(self, bucket, options, tmp_path: Path):
        source = tmp_path / "a.txt"
        source.write_text("hello world")
        metrics = UploadMetrics()

        upload_file(bucket, str(source), options, metrics=metrics)

        assert metrics.value(
            "gcloud_st_objects_uploaded_total", {"encoding": "identity"}
        ) == 1.0
        assert metrics.value("gcloud_st_upload_bytes_total") == 11.0
        assert metrics.value("gcloud_st_upload_duration_seconds_count") == 1.0

    def test_file_handle_closed_after_upload(self, bucket, options, tmp_path: Path):
        source = tmp_path / "a.txt"
        source.write_text("hello")
        seen = []

        def capture(body, **kwargs):
            seen.append(body)

        blob = MagicMock()
        blob.upload_from_file.side_effect = capture
        capturing_bucket = MagicMock()
        capturing_bucket.name = "test-bucket"
        capturing_bucket.blob.return_value = blob

        upload_file(capturing_bucket, str(source), options)

        assert seen[0].closed
