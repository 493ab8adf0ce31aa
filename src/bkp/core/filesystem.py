from __future__ import annotations

import enum
import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List

from .config import COPY_CHUNK_SIZE
from .errors import (
    BackupError,
    CopyStreamError,
    DestinationAccessError,
    DestinationCreateError,
    DirectoryCreationError,
    SourceAccessError,
    SourceNotFoundError,
    SourceOpenError,
    StrPath,
    SyncError,
)
from .logging_utils import log_event
from .safe_paths import ensure_outside

logger = logging.getLogger("bkp.core.filesystem")

DIRECTORY_MODE = 0o755


class EntryKind(str, enum.Enum):
    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK_DIRECTORY = "symlink_directory"
    OTHER = "other"


@dataclass(frozen=True)
class TreeEntry:
    path: Path
    relative: Path
    kind: EntryKind


@dataclass
class CopySummary:
    source: Path
    destination: Path
    files_copied: int = 0
    directories_created: int = 0
    bytes_copied: int = 0
    skipped: List[Path] = field(default_factory=list)

    def merge(self, other: "CopySummary") -> None:
        self.files_copied += other.files_copied
        self.directories_created += other.directories_created
        self.bytes_copied += other.bytes_copied
        self.skipped.extend(other.skipped)


def _classify(entry: os.DirEntry) -> EntryKind:
    if entry.is_symlink():
        try:
            target = os.stat(entry.path)
        except OSError:
            return EntryKind.OTHER
        if stat.S_ISDIR(target.st_mode):
            return EntryKind.SYMLINK_DIRECTORY
        if stat.S_ISREG(target.st_mode):
            return EntryKind.FILE
        return EntryKind.OTHER
    if entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    if entry.is_file(follow_symlinks=False):
        return EntryKind.FILE
    return EntryKind.OTHER


def _make_dirs(path: Path) -> None:
    # mkdir(parents=True) only applies the mode to the leaf.
    try:
        for directory in [*reversed(path.parents), path]:
            directory.mkdir(mode=DIRECTORY_MODE, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreationError(
            "Failed to create destination directories", path=path
        ) from exc


def walk_tree(src: StrPath) -> Iterator[TreeEntry]:
    """Yield every entry under ``src``, parents before children.

    The root is yielded first with a relative path of ``.``. Entries of one
    directory come out in name order. Symlinked directories are reported but
    never descended into, so symlink cycles cannot loop the walk. A ``src``
    that is not a directory yields only its own root entry.

    Raises:
        SourceNotFoundError: If ``src`` does not exist
        SourceAccessError: If ``src`` or a directory below it cannot be listed
    """
    root = Path(src)
    try:
        root_stat = os.stat(root)
    except FileNotFoundError as exc:
        raise SourceNotFoundError("Source does not exist", path=root) from exc
    except OSError as exc:
        raise SourceAccessError("Unable to access source", path=root) from exc
    if not stat.S_ISDIR(root_stat.st_mode):
        kind = EntryKind.FILE if stat.S_ISREG(root_stat.st_mode) else EntryKind.OTHER
        yield TreeEntry(path=root, relative=Path(os.curdir), kind=kind)
        return

    yield TreeEntry(path=root, relative=Path(os.curdir), kind=EntryKind.DIRECTORY)

    stack: List[Path] = [Path()]
    while stack:
        rel_dir = stack.pop()
        current = root / rel_dir
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            raise SourceAccessError("Unable to read directory", path=current) from exc

        subdirs: List[Path] = []
        for entry in entries:
            relative = rel_dir / entry.name
            kind = _classify(entry)
            yield TreeEntry(path=root / relative, relative=relative, kind=kind)
            if kind is EntryKind.DIRECTORY:
                subdirs.append(relative)
        # Reversed so the stack pops subdirectories in name order.
        stack.extend(reversed(subdirs))


def _resolve_target(src: StrPath, dst: Path) -> Path:
    try:
        dst_stat = os.stat(dst)
    except FileNotFoundError:
        return dst
    except OSError as exc:
        raise DestinationAccessError("Failed to access destination", path=dst) from exc
    if stat.S_ISDIR(dst_stat.st_mode):
        target = dst / Path(src).name
        # Copying a file into its own directory would truncate it.
        ensure_outside(src, target)
        return target
    return dst


def copy_file(
    src: StrPath,
    dst: StrPath,
    *,
    chunk_size: int = COPY_CHUNK_SIZE,
) -> CopySummary:
    """Copy a single file from ``src`` to ``dst`` and fsync the result.

    If ``dst`` is an existing directory the file is copied into it under its
    own name. An existing destination file is overwritten. Missing parent
    directories are created. A failed copy may leave a partial file behind.

    Args:
        src: Source file path
        dst: Destination file path or existing directory
        chunk_size: Read/write buffer size in bytes

    Returns:
        A summary whose ``destination`` is the file actually written

    Raises:
        BackupError: A subclass naming the step that failed
    """
    ensure_outside(src, dst)
    target = _resolve_target(src, Path(dst))
    _make_dirs(target.parent)

    try:
        fsrc = open(src, "rb")
    except OSError as exc:
        raise SourceOpenError("Failed to open source file", path=src) from exc

    with fsrc:
        try:
            fdst = open(target, "wb")
        except OSError as exc:
            raise DestinationCreateError(
                "Failed to create destination file", path=target
            ) from exc
        with fdst:
            try:
                shutil.copyfileobj(fsrc, fdst, chunk_size)
                written = fdst.tell()
            except OSError as exc:
                raise CopyStreamError("Failed to copy file", path=target) from exc
            try:
                fdst.flush()
                os.fsync(fdst.fileno())
            except OSError as exc:
                raise SyncError("Failed to sync destination file", path=target) from exc

    log_event(
        logger,
        logging.DEBUG,
        "backup.file.copied",
        source=str(src),
        destination=str(target),
        bytes=written,
    )
    return CopySummary(
        source=Path(src),
        destination=target,
        files_copied=1,
        bytes_copied=written,
    )


def copy_directory(
    src: StrPath,
    dst: StrPath,
    *,
    chunk_size: int = COPY_CHUNK_SIZE,
) -> CopySummary:
    """Recursively copy the tree at ``src`` into ``dst``.

    Directory structure is recreated with mode 0755; existing directories and
    files under ``dst`` are reused and overwritten, so the operation can be
    re-run after a failure. The walk stops at the first error, which carries
    the failing entry in ``exc.entry``. Symlinked directories and special
    files are skipped and listed in ``CopySummary.skipped``.
    """
    ensure_outside(src, dst)

    root = Path(dst)
    summary = CopySummary(source=Path(src), destination=root)
    for entry in walk_tree(src):
        target = root / entry.relative
        try:
            if entry.kind is EntryKind.DIRECTORY:
                _make_dirs(target)
                summary.directories_created += 1
                log_event(
                    logger,
                    logging.DEBUG,
                    "backup.directory.created",
                    destination=str(target),
                )
            elif entry.kind is EntryKind.FILE:
                summary.merge(copy_file(entry.path, target, chunk_size=chunk_size))
            else:
                summary.skipped.append(entry.path)
                log_event(
                    logger,
                    logging.WARNING,
                    "backup.entry.skipped",
                    source=str(entry.path),
                    kind=entry.kind.value,
                )
        except BackupError as exc:
            if exc.entry is None:
                exc.entry = str(entry.path)
            raise
    return summary


def backup(
    src: StrPath,
    dst: StrPath,
    *,
    chunk_size: int = COPY_CHUNK_SIZE,
) -> CopySummary:
    """Copy ``src`` to ``dst``, dispatching on whether ``src`` is a directory."""
    try:
        src_stat = os.stat(src)
    except FileNotFoundError as exc:
        raise SourceNotFoundError("Unable to access source", path=src) from exc
    except OSError as exc:
        raise SourceAccessError("Unable to access source", path=src) from exc

    is_dir = stat.S_ISDIR(src_stat.st_mode)
    log_event(
        logger,
        logging.INFO,
        "backup.start",
        source=str(src),
        destination=str(dst),
        kind="directory" if is_dir else "file",
    )
    try:
        if is_dir:
            summary = copy_directory(src, dst, chunk_size=chunk_size)
        else:
            summary = copy_file(src, dst, chunk_size=chunk_size)
    except BackupError as exc:
        log_event(
            logger,
            logging.ERROR,
            "backup.failed",
            exc=exc,
            source=str(src),
            destination=str(dst),
            kind=exc.kind.value,
        )
        raise
    log_event(
        logger,
        logging.INFO,
        "backup.complete",
        source=str(src),
        destination=str(summary.destination),
        files=summary.files_copied,
        directories=summary.directories_created,
        bytes=summary.bytes_copied,
        skipped=len(summary.skipped),
    )
    return summary


__all__ = [
    "CopySummary",
    "DIRECTORY_MODE",
    "EntryKind",
    "TreeEntry",
    "backup",
    "copy_directory",
    "copy_file",
    "walk_tree",
]
