"""
gcloud-st

Uploads a single file or a directory tree to a Google Cloud Storage bucket,
optionally creating the bucket, gzip-encoding content and making objects
publicly readable.

This package provides:
- uploader: content sniffing, object upload, directory walk, bucket provisioning
- utils: logging, errors, options, options files and metrics
- cli: the `gcloud-st` command

See DESIGN.md for how the pieces fit together.
"""

__version__ = "0.1.0"
