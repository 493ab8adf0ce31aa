"""Copy engine: containment guard, file copier, directory walker, dispatcher."""

from .config import BkpConfig, BuildInfo, ConfigError, LogConfig, load_config
from .errors import (
    BackupError,
    BackupErrorKind,
    CopyStreamError,
    DestinationAccessError,
    DestinationCreateError,
    DirectoryCreationError,
    NestedDestinationError,
    PathResolutionError,
    SourceAccessError,
    SourceNotFoundError,
    SourceOpenError,
    SyncError,
)
from .filesystem import (
    CopySummary,
    EntryKind,
    TreeEntry,
    backup,
    copy_directory,
    copy_file,
    walk_tree,
)
from .safe_paths import ensure_outside

__all__ = [
    "BackupError",
    "BackupErrorKind",
    "BkpConfig",
    "BuildInfo",
    "ConfigError",
    "CopyStreamError",
    "CopySummary",
    "DestinationAccessError",
    "DestinationCreateError",
    "DirectoryCreationError",
    "EntryKind",
    "LogConfig",
    "NestedDestinationError",
    "PathResolutionError",
    "SourceAccessError",
    "SourceNotFoundError",
    "SourceOpenError",
    "SyncError",
    "TreeEntry",
    "backup",
    "copy_directory",
    "copy_file",
    "ensure_outside",
    "load_config",
    "walk_tree",
]
