"""
YAML options file loader and validator.

An options file supplies defaults for any command-line option, so recurring
deployments can be described once and run with `gcloud-st --config FILE`.
Flags given on the command line still win.

Example options file (deploy/site.yaml):
    ```yaml
    version: "1.0"
    upload:
      project: my-project
      bucket: www.example.com
      dir: site
      public: true
      gzip: true
      allow_hidden: false
      hidden_policy: relative
      on_error: abort
      timeout: 120
    ```

Usage:
    >>> from gcloud_st.utils.config_loader import load_config, validate_config
    >>> config = load_config("deploy/site.yaml")
    >>> issues = validate_config(config)
    >>> if not issues:
    ...     overrides = options_from_config(config)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from gcloud_st.utils.config import ErrorPolicy, HiddenPolicy
from gcloud_st.utils.logging import get_logger

logger = get_logger(__name__)


SUPPORTED_VERSIONS = ["1.0"]

# YAML key -> UploadOptions field
UPLOAD_KEYS = {
    "project": "project_id",
    "bucket": "bucket_name",
    "file": "file_path",
    "dir": "dir_path",
    "public": "make_public",
    "gzip": "gzip_encode",
    "quite": "verbose",
    "allow_hidden": "allow_hidden",
    "hidden_policy": "hidden_policy",
    "on_error": "error_policy",
    "timeout": "timeout_seconds",
}

_STRING_KEYS = ["project", "bucket", "file", "dir"]
_BOOL_KEYS = ["public", "gzip", "quite", "allow_hidden"]


@dataclass
class ConfigIssue:
    """Validation problem in an options file."""

    field: str
    message: str
    value: Optional[Any] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value})"
        return f"{self.field}: {self.message}"


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load an options file.

    Args:
        config_path: Path to YAML options file

    Returns:
        Dictionary containing the parsed file

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the path is not a file, or the file is empty or not a mapping
        yaml.YAMLError: If the YAML is malformed
    """
    path = Path(config_path)
    logger.info(f"Loading options from: {path}")

    if not path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")

    if not path.is_file():
        raise ValueError(f"Options path is not a file: {path}")

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise

    if config is None:
        raise ValueError("Options file is empty")
    if not isinstance(config, dict):
        raise ValueError(
            f"Options file must contain a mapping, not {type(config).__name__}"
        )

    return dict(config)


def validate_config(config: Dict[str, Any]) -> List[ConfigIssue]:
    """
    Validate a parsed options file.

    Args:
        config: Dictionary returned by load_config

    Returns:
        List of issues (empty if valid)

    Example:
        >>> issues = validate_config({"version": "1.0", "upload": {"gzip": "yes"}})
        >>> print(issues[0])
        upload.gzip: Must be a boolean (got: yes)
    """
    issues: List[ConfigIssue] = []

    if "version" not in config:
        issues.append(ConfigIssue("version", "Missing required field"))
    elif str(config["version"]) not in SUPPORTED_VERSIONS:
        issues.append(
            ConfigIssue(
                "version",
                f"Unsupported version (supported: {SUPPORTED_VERSIONS})",
                config["version"],
            )
        )

    upload = config.get("upload")
    if upload is None:
        issues.append(ConfigIssue("upload", "Missing required field"))
        return issues
    if not isinstance(upload, dict):
        issues.append(ConfigIssue("upload", "Must be a mapping", type(upload).__name__))
        return issues

    for key in upload:
        if key not in UPLOAD_KEYS:
            issues.append(
                ConfigIssue(f"upload.{key}", f"Unknown key (valid: {sorted(UPLOAD_KEYS)})")
            )

    for key in _STRING_KEYS:
        if key in upload and not isinstance(upload[key], str):
            issues.append(ConfigIssue(f"upload.{key}", "Must be a string", upload[key]))

    for key in _BOOL_KEYS:
        if key in upload and not isinstance(upload[key], bool):
            issues.append(ConfigIssue(f"upload.{key}", "Must be a boolean", upload[key]))

    if upload.get("file") and upload.get("dir"):
        issues.append(ConfigIssue("upload", "Use either file or dir, not both"))

    if "hidden_policy" in upload:
        valid = [p.value for p in HiddenPolicy]
        if upload["hidden_policy"] not in valid:
            issues.append(
                ConfigIssue(
                    "upload.hidden_policy",
                    f"Invalid policy (valid: {valid})",
                    upload["hidden_policy"],
                )
            )

    if "on_error" in upload:
        valid = [p.value for p in ErrorPolicy]
        if upload["on_error"] not in valid:
            issues.append(
                ConfigIssue(
                    "upload.on_error", f"Invalid policy (valid: {valid})", upload["on_error"]
                )
            )

    if "timeout" in upload:
        timeout = upload["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            issues.append(ConfigIssue("upload.timeout", "Must be a number", timeout))
        elif timeout <= 0:
            issues.append(ConfigIssue("upload.timeout", "Must be positive", timeout))

    if issues:
        logger.warning(f"Options file validation failed with {len(issues)} issue(s)")

    return issues


def options_from_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a validated options file into UploadOptions field overrides.

    `quite: true` becomes `verbose=False`.
    """
    overrides: Dict[str, Any] = {}
    for key, value in (config.get("upload") or {}).items():
        field_name = UPLOAD_KEYS[key]
        if key == "quite":
            value = not value
        overrides[field_name] = value
    return overrides


def get_config_example() -> str:
    """Return an example options file."""
    return """version: "1.0"
upload:
  project: my-project
  bucket: www.example.com
  dir: site
  public: true
  gzip: true
  allow_hidden: false
  hidden_policy: relative
  on_error: abort
"""
