"""
Directory traversal and tree upload.

Walks a directory depth-first in pre-order (a directory is visited right
before its children, children in lexical name order) and uploads every
regular file. Hidden entries, meaning paths with a segment starting with
".", are skipped and not descended into unless allow_hidden is set.
Directories themselves only produce a log line, since object storage has
no directory objects. Symlinks, devices, sockets and FIFOs are skipped.

Child paths are joined with pathlib, which drops "." segments: walking "."
yields "index.html" and walking "./site" yields "site/img/logo.png". The
root itself is kept as given.

Each directory listing is opened and closed before its children are
visited, so at most one directory handle is open at a time.
"""

import os
import stat
from pathlib import Path, PurePath
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from google.cloud import storage

from gcloud_st.uploader.uploader import UploadResult, upload_file
from gcloud_st.utils.config import ErrorPolicy, HiddenPolicy, UploadOptions
from gcloud_st.utils.errors import FileStatError, GcloudStError
from gcloud_st.utils.logging import get_logger
from gcloud_st.utils.metrics import UploadMetrics

logger = get_logger(__name__)

_NAVIGATION_SEGMENTS = (".", "..")


@dataclass(frozen=True)
class TraversalEntry:
    """
    One filesystem entry seen by the walk.

    Attributes:
        path: Path as walked (root joined with the entry's relative path)
        is_directory: Entry is a real directory (not a symlink to one)
        is_regular: Entry is a regular file
        is_hidden: Entry is hidden under the active HiddenPolicy
    """

    path: str
    is_directory: bool
    is_regular: bool
    is_hidden: bool


@dataclass
class TreeReport:
    """Outcome of uploading one directory tree."""

    root: str
    results: List[UploadResult] = field(default_factory=list)
    failures: List[GcloudStError] = field(default_factory=list)
    directories: int = 0
    hidden_skipped: int = 0
    other_skipped: int = 0

    @property
    def uploaded(self) -> int:
        return len(self.results)


def is_hidden_path(
    path: str,
    root: str,
    policy: HiddenPolicy = HiddenPolicy.RELATIVE,
    allow_hidden: bool = False,
) -> bool:
    """
    Decide whether a walked path is hidden.

    Args:
        path: Path as produced by the walk
        root: Walk root the path was produced from
        policy: RELATIVE checks only segments below the root, FULL checks
            every segment of the path, LEGACY checks for a leading "." or
            a "/." anywhere in the path
        allow_hidden: Only read by LEGACY, where it waives the leading "."
            check but not the "/." one

    Example:
        >>> is_hidden_path("site/.git/config", "site")
        True
        >>> is_hidden_path("./site/index.html", "./site")
        False
        >>> is_hidden_path("./site", "./site", HiddenPolicy.LEGACY)
        True
    """
    if policy == HiddenPolicy.LEGACY:
        leading_dot = path.startswith(".") and not allow_hidden
        return leading_dot or "/." in PurePath(path).as_posix()

    if policy == HiddenPolicy.FULL:
        candidate = path
    else:
        if os.path.normpath(path) == os.path.normpath(root):
            return False
        candidate = os.path.relpath(path, root)

    return any(
        part.startswith(".")
        for part in PurePath(candidate).parts
        if part not in _NAVIGATION_SEGMENTS
    )


def _excluded(entry: TraversalEntry, allow_hidden: bool, policy: HiddenPolicy) -> bool:
    # LEGACY already folded allow_hidden into is_hidden
    return entry.is_hidden and (policy == HiddenPolicy.LEGACY or not allow_hidden)


def _lstat_mode(path: str) -> int:
    try:
        return os.lstat(path).st_mode
    except OSError as e:
        raise FileStatError("Something went wrong looping through dirs", path, e) from e


def walk_tree(
    root: str,
    allow_hidden: bool = False,
    policy: HiddenPolicy = HiddenPolicy.RELATIVE,
    onerror: Optional[Callable[[FileStatError], None]] = None,
) -> Iterator[TraversalEntry]:
    """
    Walk `root` depth-first, pre-order, children in lexical order.

    Every visited entry is yielded, including hidden ones (flagged with
    is_hidden). Hidden directories are only descended into when
    allow_hidden is set, except under LEGACY, which descends into every
    directory and judges each path on its own.

    Args:
        root: Directory to walk (yielded first)
        allow_hidden: Descend into hidden directories
        policy: Hidden-path rule
        onerror: Called with the FileStatError for an unreadable entry; the
            walk then continues with the next entry. Without it the error is
            raised.

    Raises:
        FileStatError: If an entry cannot be stat-ed or listed and no
            onerror callback is given
    """
    try:
        root_mode = _lstat_mode(root)
    except FileStatError as e:
        if onerror is None:
            raise
        onerror(e)
        return

    yield from _visit(root, root_mode, root, allow_hidden, policy, onerror)


def _visit(
    path: str,
    mode: int,
    root: str,
    allow_hidden: bool,
    policy: HiddenPolicy,
    onerror: Optional[Callable[[FileStatError], None]],
) -> Iterator[TraversalEntry]:
    entry = TraversalEntry(
        path=path,
        is_directory=stat.S_ISDIR(mode),
        is_regular=stat.S_ISREG(mode),
        is_hidden=is_hidden_path(path, root, policy, allow_hidden),
    )
    yield entry

    if not entry.is_directory:
        return
    # LEGACY never prunes: entries below a hidden directory are checked one by one
    if entry.is_hidden and not allow_hidden and policy != HiddenPolicy.LEGACY:
        return

    try:
        children = _list_directory(path)
    except FileStatError as e:
        if onerror is None:
            raise
        onerror(e)
        return

    for name, child_mode in children:
        yield from _visit(
            str(Path(path) / name), child_mode, root, allow_hidden, policy, onerror
        )


def _list_directory(path: str) -> List[Tuple[str, int]]:
    """Return (name, lstat mode) pairs sorted by name; the handle is closed on return."""
    children = []
    try:
        with os.scandir(path) as it:
            for dir_entry in it:
                children.append(
                    (dir_entry.name, dir_entry.stat(follow_symlinks=False).st_mode)
                )
    except OSError as e:
        raise FileStatError("Something went wrong looping through dirs", path, e) from e
    children.sort(key=lambda child: child[0])
    return children


def upload_tree(
    bucket: storage.Bucket,
    root: str,
    options: UploadOptions,
    metrics: Optional[UploadMetrics] = None,
) -> TreeReport:
    """
    Upload every regular, non-hidden file below `root`.

    Args:
        bucket: Destination bucket handle
        root: Directory to walk
        options: Run options (allow_hidden, hidden_policy, error_policy, ...)
        metrics: Metrics to record into (optional)

    Returns:
        TreeReport with the created objects and any skipped failures

    Raises:
        GcloudStError: The first per-entry error when error_policy is ABORT
    """
    report = TreeReport(root=root)
    skip_errors = options.error_policy == ErrorPolicy.SKIP

    def record_failure(error: GcloudStError) -> None:
        logger.error(f"Skipping after error: {error}")
        report.failures.append(error)
        if metrics is not None:
            metrics.record_skip("failed")

    onerror = record_failure if skip_errors else None

    for entry in walk_tree(root, options.allow_hidden, options.hidden_policy, onerror):
        if _excluded(entry, options.allow_hidden, options.hidden_policy):
            logger.info(f"Hidden files are not uploaded: {entry.path}")
            report.hidden_skipped += 1
            if metrics is not None:
                metrics.record_skip("hidden")
            continue

        if entry.is_directory:
            logger.info(f"directory: {entry.path}")
            report.directories += 1
        elif entry.is_regular:
            try:
                result = upload_file(bucket, entry.path, options, metrics=metrics)
            except GcloudStError as e:
                if not skip_errors:
                    raise
                record_failure(e)
                continue
            report.results.append(result)
        else:
            logger.debug(f"Skipping non-regular entry: {entry.path}")
            report.other_skipped += 1
            if metrics is not None:
                metrics.record_skip("other")

    logger.info(
        f"Walked {root}: {report.uploaded} uploaded, {report.directories} directories, "
        f"{report.hidden_skipped} hidden skipped, {len(report.failures)} failed"
    )
    return report
