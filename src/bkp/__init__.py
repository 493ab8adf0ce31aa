"""bkp: back up a file or a directory tree to another location."""

from .core.filesystem import backup

__all__ = ["backup"]
