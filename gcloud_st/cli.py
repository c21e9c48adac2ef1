"""
Command-line interface for gcloud-st.

Uploads a file or a directory tree to a Google Cloud Storage bucket,
creating the bucket if it does not exist.

Usage:
    gcloud-st --project my-project --bucket www.example.com --dir site
    gcloud-st --project my-project --bucket assets --file build/app.js --gzip true
    gcloud-st --project my-project --bucket www.example.com --dir site --public true
    gcloud-st --config deploy/site.yaml --quite true
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

import yaml

from gcloud_st import __version__
from gcloud_st.uploader.workflow import RunSummary, run_upload
from gcloud_st.utils.config import ErrorPolicy, HiddenPolicy, UploadOptions, flag_enabled
from gcloud_st.utils.config_loader import (
    get_config_example,
    load_config,
    options_from_config,
    validate_config,
)
from gcloud_st.utils.errors import ConfigError, GcloudStError
from gcloud_st.utils.logging import (
    clear_run_id,
    get_logger,
    get_run_id,
    set_run_id,
    setup_logging,
)
from gcloud_st.utils.metrics import UploadMetrics

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gcloud-st",
        description="Upload a file or directory to a Google Cloud Storage bucket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Boolean options take the value "true"; any other value leaves them off.

Examples:
  # Upload a website, publicly readable
  %(prog)s --project my-project --bucket www.example.com --dir site --public true

  # Upload one gzip-encoded file
  %(prog)s --project my-project --bucket assets --file app.js --gzip true

  # Include dotfiles
  %(prog)s --project my-project --bucket backup --dir data --allowHidden true

  # Read defaults from an options file
  %(prog)s --print-config-example > deploy/site.yaml
  %(prog)s --config deploy/site.yaml
        """,
    )

    parser.add_argument("--project", help="Your cloud project ID")
    parser.add_argument(
        "--bucket", help="The bucket to upload to (created if it does not exist)"
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--file", help="The file to upload")
    source.add_argument("--dir", help="The dir to upload")

    parser.add_argument("--public", metavar="true", help="Make content public")
    parser.add_argument(
        "--gzip",
        metavar="true",
        help="Gzip the content and set the Content-Encoding metadata to gzip",
    )
    parser.add_argument(
        "--quite",
        "--quiet",
        dest="quite",
        metavar="true",
        help="Hide progress information",
    )
    parser.add_argument(
        "--allowHidden",
        dest="allow_hidden",
        metavar="true",
        help="Allow hidden files to be uploaded",
    )
    parser.add_argument(
        "--hidden-policy",
        choices=[p.value for p in HiddenPolicy],
        help="How hidden paths are detected (default: relative)",
    )
    parser.add_argument(
        "--on-error",
        choices=[p.value for p in ErrorPolicy],
        help="Abort on the first failed file, or skip it and continue (default: abort)",
    )
    parser.add_argument(
        "--timeout", type=float, help="Per-request timeout in seconds"
    )
    parser.add_argument("--config", help="YAML options file")
    parser.add_argument(
        "--metrics-file", help="Write Prometheus metrics for the run to this file"
    )
    parser.add_argument(
        "--run-id", help="Run ID attached to every log record (default: generated)"
    )
    parser.add_argument(
        "--print-config-example",
        action="store_true",
        help="Print an example options file and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the log level",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "project_id": args.project,
        "bucket_name": args.bucket,
        "hidden_policy": args.hidden_policy,
        "error_policy": args.on_error,
        "timeout_seconds": args.timeout,
    }
    # A source given on the command line replaces any source from the options file
    if args.file or args.dir:
        overrides["file_path"] = args.file or ""
        overrides["dir_path"] = args.dir or ""
    if args.public is not None:
        overrides["make_public"] = flag_enabled(args.public)
    if args.gzip is not None:
        overrides["gzip_encode"] = flag_enabled(args.gzip)
    if args.quite is not None:
        overrides["verbose"] = not flag_enabled(args.quite)
    if args.allow_hidden is not None:
        overrides["allow_hidden"] = flag_enabled(args.allow_hidden)
    return overrides


def build_options(args: argparse.Namespace) -> UploadOptions:
    """
    Build validated UploadOptions from parsed arguments.

    Precedence: command line, then options file, then environment.

    Raises:
        ConfigError: If the options file is invalid or required options are missing
    """
    options = UploadOptions.from_env()

    if args.config:
        try:
            config = load_config(args.config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError("Unable to load options file", args.config, e) from e
        issues = validate_config(config)
        if issues:
            details = "; ".join(str(issue) for issue in issues)
            raise ConfigError(f"Invalid options file: {details}", args.config)
        options = options.merged(**options_from_config(config))

    return options.merged(**_cli_overrides(args)).validate()


def _print_summary(summary: RunSummary) -> None:
    options = summary.options
    source = options.file_path or options.dir_path
    print(f"📤 Uploaded {len(summary.results)} object(s) from {source}")
    print(f"   Bucket: gs://{options.bucket_name}" + (" (created)" if summary.bucket_created else ""))
    print(f"   ACL: {options.predefined_acl}")
    if options.gzip_encode:
        print("   Encoding: gzip")
    print(f"   Bytes sent: {summary.bytes_sent:,}")
    print(f"   Run ID: {get_run_id()}")
    if options.dir_path:
        print(f"   Directories: {summary.directories}")
        print(f"   Hidden skipped: {summary.hidden_skipped}")
    if summary.failures:
        print(f"\n❌ Failed ({len(summary.failures)}):")
        for failure in summary.failures:
            print(f"  • {failure}")


def _run(args: argparse.Namespace) -> int:
    setup_logging(level=args.log_level or "INFO")

    try:
        options = build_options(args)
    except ConfigError as e:
        logger.critical(f"Dying with error:\n{e}")
        return EXIT_FAILURE

    setup_logging(level=args.log_level or options.log_level)
    logger.debug(f"Run {get_run_id()} options: {options}")

    metrics = UploadMetrics()
    try:
        summary = run_upload(options, metrics=metrics)
    except GcloudStError as e:
        logger.critical(f"Dying with error:\n[{e.stage}] {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Upload cancelled by user")
        return EXIT_INTERRUPTED
    finally:
        if args.metrics_file:
            metrics.write_textfile(args.metrics_file)

    if options.verbose:
        _print_summary(summary)

    return EXIT_OK if summary.success else EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the gcloud-st CLI."""
    args = parse_args(argv)

    if args.print_config_example:
        print(get_config_example())
        return EXIT_OK

    # Each invocation logs under its own run ID
    if args.run_id:
        set_run_id(args.run_id)
    else:
        clear_run_id()
    try:
        return _run(args)
    finally:
        clear_run_id()


if __name__ == "__main__":
    sys.exit(main())
