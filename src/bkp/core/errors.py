"""Error taxonomy for the copy engine.

Every failure raised by :mod:`bkp.core` is a :class:`BackupError`. Callers can
match either on the concrete subclass or on :attr:`BackupError.kind`; the
underlying ``OSError`` (when there is one) is chained as ``__cause__`` and is
also available as :attr:`BackupError.cause`.
"""

from __future__ import annotations

import enum
import os
from typing import Optional, Union

StrPath = Union[str, "os.PathLike[str]"]


class BackupErrorKind(str, enum.Enum):
    PATH_RESOLUTION = "path_resolution"
    NESTED_DESTINATION = "nested_destination"
    SOURCE_ACCESS = "source_access"
    SOURCE_NOT_FOUND = "source_not_found"
    DESTINATION_ACCESS = "destination_access"
    DIRECTORY_CREATION = "directory_creation"
    SOURCE_OPEN = "source_open"
    DESTINATION_CREATE = "destination_create"
    COPY_STREAM = "copy_stream"
    SYNC = "sync"


class BackupError(Exception):
    """Raised when a backup operation fails."""

    kind: BackupErrorKind

    def __init__(
        self,
        message: str,
        path: Optional[StrPath] = None,
        *,
        entry: Optional[StrPath] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = os.fspath(path) if path is not None else None
        self.entry = os.fspath(entry) if entry is not None else None

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__

    def __str__(self) -> str:
        text = self.message
        if self.path is not None:
            text = f"{text}: {self.path}"
        if self.entry is not None and self.entry != self.path:
            text = f"{text} (while copying {self.entry})"
        if self.__cause__ is not None:
            text = f"{text}: {self.__cause__}"
        return text


class PathResolutionError(BackupError):
    kind = BackupErrorKind.PATH_RESOLUTION


class NestedDestinationError(BackupError):
    kind = BackupErrorKind.NESTED_DESTINATION


class SourceAccessError(BackupError):
    kind = BackupErrorKind.SOURCE_ACCESS


class SourceNotFoundError(SourceAccessError):
    kind = BackupErrorKind.SOURCE_NOT_FOUND


class DestinationAccessError(BackupError):
    kind = BackupErrorKind.DESTINATION_ACCESS


class DirectoryCreationError(BackupError):
    kind = BackupErrorKind.DIRECTORY_CREATION


class SourceOpenError(BackupError):
    kind = BackupErrorKind.SOURCE_OPEN


class DestinationCreateError(BackupError):
    kind = BackupErrorKind.DESTINATION_CREATE


class CopyStreamError(BackupError):
    kind = BackupErrorKind.COPY_STREAM


class SyncError(BackupError):
    kind = BackupErrorKind.SYNC


__all__ = [
    "BackupError",
    "BackupErrorKind",
    "CopyStreamError",
    "DestinationAccessError",
    "DestinationCreateError",
    "DirectoryCreationError",
    "NestedDestinationError",
    "PathResolutionError",
    "SourceAccessError",
    "SourceNotFoundError",
    "SourceOpenError",
    "StrPath",
    "SyncError",
]
