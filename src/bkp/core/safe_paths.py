"""Containment checks between a backup source and its destination.

A backup must never write into the tree it is reading from: copying ``docs``
into ``docs/backup`` would keep discovering its own output. The helpers here
compare paths lexically after making them absolute; symlinks are not resolved.
"""

import os
from pathlib import PurePath

from .errors import NestedDestinationError, PathResolutionError, StrPath


def _absolute(raw: StrPath, role: str) -> str:
    try:
        return os.path.abspath(os.fspath(raw))
    except (OSError, ValueError) as exc:
        raise PathResolutionError(
            f"Failed to get absolute path of {role}", path=raw
        ) from exc


def ensure_outside(src: StrPath, dst: StrPath) -> None:
    """Validate that ``dst`` is neither ``src`` itself nor nested inside it.

    This function validates that:
    1. Both paths can be made absolute
    2. The relative path from ``src`` to ``dst`` is not ``.``
    3. The relative path from ``src`` to ``dst`` starts with a ``..`` step

    Args:
        src: Source file or directory path (relative or absolute)
        dst: Destination file or directory path (relative or absolute)

    Raises:
        PathResolutionError: If either path cannot be made absolute
        NestedDestinationError: If ``dst`` equals ``src`` or lies inside it

    Examples:
        >>> ensure_outside("/home/user/docs", "/home/user/backup")

        >>> ensure_outside("docs", "docs/backup")
        NestedDestinationError: Destination cannot be inside source directory
    """
    abs_src = _absolute(src, "source")
    abs_dst = _absolute(dst, "destination")

    try:
        rel = os.path.relpath(abs_dst, abs_src)
    except ValueError:
        # Different drives on Windows: no relative path exists, so dst
        # cannot be inside src.
        return

    # Compare the first component, not a string prefix: "..b" is a child
    # named "..b", not a parent step.
    parts = PurePath(rel).parts
    if rel == os.curdir or not parts or parts[0] != os.pardir:
        raise NestedDestinationError(
            "Destination cannot be inside source directory", path=dst
        )


__all__ = ["ensure_outside"]
