"""Tests for upload options."""

import dataclasses
import os

import pytest

from gcloud_st.utils.config import (
    ErrorPolicy,
    HiddenPolicy,
    UploadOptions,
    flag_enabled,
)
from gcloud_st.utils.errors import ConfigError


class TestUploadOptions:
    """Test UploadOptions defaults, validation and merging."""

    def test_defaults(self):
        options = UploadOptions(bucket_name="b", project_id="p", dir_path="site")

        assert options.make_public is False
        assert options.gzip_encode is False
        assert options.verbose is True
        assert options.allow_hidden is False
        assert options.hidden_policy == HiddenPolicy.RELATIVE
        assert options.error_policy == ErrorPolicy.ABORT
        assert options.timeout_seconds is None
        assert options.log_level == "INFO"

    def test_options_are_immutable(self):
        options = UploadOptions(bucket_name="b", project_id="p")

        with pytest.raises(dataclasses.FrozenInstanceError):
            options.bucket_name = "other"  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"project_id": "p", "file_path": "f"}, "Bucket argument is required"),
            ({"bucket_name": "b", "file_path": "f"}, "Project argument is required"),
            ({"bucket_name": "b", "project_id": "p"}, "file or dir argument"),
            (
                {"bucket_name": "b", "project_id": "p", "file_path": "f", "dir_path": "d"},
                "either --file or --dir",
            ),
            (
                {"bucket_name": "b", "project_id": "p", "file_path": "f", "timeout_seconds": 0},
                "Timeout must be positive",
            ),
        ],
    )
    def test_validate_rejects_incomplete_options(self, kwargs, message):
        with pytest.raises(ConfigError, match=message):
            UploadOptions(**kwargs).validate()

    def test_validate_returns_self(self):
        options = UploadOptions(bucket_name="b", project_id="p", file_path="f")
        assert options.validate() is options

    def test_merged_skips_none_and_converts_enums(self):
        base = UploadOptions(bucket_name="b", project_id="p")

        merged = base.merged(bucket_name=None, hidden_policy="legacy", error_policy="skip")

        assert merged.bucket_name == "b"
        assert merged.hidden_policy == HiddenPolicy.LEGACY
        assert merged.error_policy == ErrorPolicy.SKIP
        assert base.hidden_policy == HiddenPolicy.RELATIVE

    def test_merged_rejects_unknown_and_invalid_values(self):
        base = UploadOptions()

        with pytest.raises(ConfigError, match="Unknown option"):
            base.merged(colour="blue")
        with pytest.raises(ConfigError, match="Invalid hidden_policy"):
            base.merged(hidden_policy="sometimes")

    def test_quiet_options_log_at_warning(self):
        assert UploadOptions(verbose=False).log_level == "WARNING"


class TestFlagEnabled:
    """Test string-valued boolean flags."""

    def test_only_exact_true_enables(self):
        assert flag_enabled("true") is True
        assert flag_enabled("TRUE") is False
        assert flag_enabled("") is False
        assert flag_enabled(None) is False

    def test_booleans_pass_through(self):
        assert flag_enabled(True) is True
        assert flag_enabled(False) is False


class TestFromEnv:
    """Test loading options from the environment."""

    def test_reads_bucket_project_and_timeout(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GCS_BUCKET", "env-bucket")
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "env-project")
        monkeypatch.setenv("GCLOUD_ST_TIMEOUT_SECONDS", "45")

        options = UploadOptions.from_env()

        assert options.bucket_name == "env-bucket"
        assert options.project_id == "env-project"
        assert options.timeout_seconds == 45.0

    def test_missing_vars_give_empty_values(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GCS_BUCKET", raising=False)
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        monkeypatch.delenv("GCLOUD_ST_TIMEOUT_SECONDS", raising=False)

        options = UploadOptions.from_env()

        assert options.bucket_name == ""
        assert options.project_id == ""
        assert options.timeout_seconds is None

    def test_loads_dotenv_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GCS_BUCKET", raising=False)
        env_file = tmp_path / "deploy.env"
        env_file.write_text("GCS_BUCKET=dotenv-bucket\n")

        options = UploadOptions.from_env(env_file)
        # load_dotenv writes into os.environ
        os.environ.pop("GCS_BUCKET", None)

        assert options.bucket_name == "dotenv-bucket"

    def test_invalid_timeout(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GCLOUD_ST_TIMEOUT_SECONDS", "soon")

        with pytest.raises(ConfigError, match="must be a number"):
            UploadOptions.from_env()
