"""
Upload options for gcloud-st.

UploadOptions is built once at process start (from command-line flags, an
optional YAML options file and the environment) and then passed unchanged to
every component. Environment values may come from a .env file in the working
directory.
"""

import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

from gcloud_st.utils.errors import ConfigError

ACL_PRIVATE = "private"
ACL_PUBLIC_READ = "publicRead"

# Only this exact string turns a string-valued flag on
TRUE_FLAG_VALUE = "true"


class HiddenPolicy(str, Enum):
    """How a walked path is classified as hidden."""

    RELATIVE = "relative"  # a segment below the walk root starts with "."
    FULL = "full"  # any segment of the whole path starts with "."
    LEGACY = "legacy"  # path starts with "." or contains "/."


class ErrorPolicy(str, Enum):
    """What the directory walk does after a per-file error."""

    ABORT = "abort"
    SKIP = "skip"


def flag_enabled(value: Union[str, bool, None]) -> bool:
    """
    Interpret a string-valued boolean flag.

    Only the exact value "true" enables a flag; anything else (including an
    empty string or "True") leaves it off. Real booleans from a YAML file are
    passed through.

    Example:
        >>> flag_enabled("true")
        True
        >>> flag_enabled("yes")
        False
    """
    if isinstance(value, bool):
        return value
    return value == TRUE_FLAG_VALUE


def predefined_acl_for(make_public: bool) -> str:
    """Return the predefined ACL name for the public option."""
    return ACL_PUBLIC_READ if make_public else ACL_PRIVATE


@dataclass(frozen=True)
class UploadOptions:
    """
    Immutable options for one gcloud-st run.

    Attributes:
        bucket_name: Destination bucket (without gs:// prefix)
        project_id: Cloud project the bucket is created under if missing
        file_path: Single file to upload (exclusive with dir_path)
        dir_path: Directory tree to upload (exclusive with file_path)
        make_public: Apply the publicRead predefined ACL
        gzip_encode: Gzip the body and set Content-Encoding: gzip
        verbose: Report progress (directories, created objects)
        allow_hidden: Upload entries with a segment starting with "."
        hidden_policy: Rule used to decide whether a path is hidden
        error_policy: Abort on first per-file error, or skip and continue
        timeout_seconds: Per-request timeout (None = client default)
    """

    bucket_name: str = ""
    project_id: str = ""
    file_path: Optional[str] = None
    dir_path: Optional[str] = None
    make_public: bool = False
    gzip_encode: bool = False
    verbose: bool = True
    allow_hidden: bool = False
    hidden_policy: HiddenPolicy = HiddenPolicy.RELATIVE
    error_policy: ErrorPolicy = ErrorPolicy.ABORT
    timeout_seconds: Optional[float] = None

    @property
    def predefined_acl(self) -> str:
        return predefined_acl_for(self.make_public)

    @property
    def log_level(self) -> str:
        return "INFO" if self.verbose else "WARNING"

    def validate(self) -> "UploadOptions":
        """
        Check that the options describe a runnable upload.

        Returns:
            self, so the call can be chained

        Raises:
            ConfigError: If bucket or project is missing, or not exactly one
                of file_path / dir_path is set
        """
        if not self.bucket_name:
            raise ConfigError("Bucket argument is required. See --help.")
        if not self.project_id:
            raise ConfigError("Project argument is required. See --help.")
        if not self.file_path and not self.dir_path:
            raise ConfigError("You need to add to file or dir argument. See --help.")
        if self.file_path and self.dir_path:
            raise ConfigError("Use either --file or --dir, not both.")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigError(
                f"Timeout must be positive (got: {self.timeout_seconds})"
            )
        return self

    def merged(self, **overrides: Any) -> "UploadOptions":
        """
        Return a copy with the non-None overrides applied.

        Enum fields accept their string values.
        """
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key == "hidden_policy":
                value = _enum_value(HiddenPolicy, key, value)
            elif key == "error_policy":
                value = _enum_value(ErrorPolicy, key, value)
            changes[key] = value
        return replace(self, **changes)

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "UploadOptions":
        """
        Build options from environment variables.

        Loads a .env file first (the given path, or ./.env if present).
        Recognised variables: GCS_BUCKET, GOOGLE_CLOUD_PROJECT,
        GCLOUD_ST_TIMEOUT_SECONDS.

        Raises:
            ConfigError: If GCLOUD_ST_TIMEOUT_SECONDS is not a number
        """
        env_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if env_path.is_file():
            load_dotenv(env_path)

        timeout = os.getenv("GCLOUD_ST_TIMEOUT_SECONDS")
        try:
            timeout_seconds = float(timeout) if timeout else None
        except ValueError as e:
            raise ConfigError(
                f"GCLOUD_ST_TIMEOUT_SECONDS must be a number (got: {timeout})",
                cause=e,
            ) from e

        return cls(
            bucket_name=os.getenv("GCS_BUCKET", ""),
            project_id=os.getenv("GOOGLE_CLOUD_PROJECT", ""),
            timeout_seconds=timeout_seconds,
        )


def _enum_value(enum_cls: Any, field_name: str, value: Any) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        valid = [member.value for member in enum_cls]
        raise ConfigError(
            f"Invalid {field_name} (valid: {valid}, got: {value})", cause=e
        ) from e
