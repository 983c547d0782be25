"""Exception hierarchy shared by the archive reader, writer and document."""

from __future__ import annotations


class PakError(RuntimeError):
    """Base class for archive level failures."""


class FormatError(PakError):
    """Raised when a container header or directory cannot be parsed."""


class BoundsError(PakError):
    """Raised when a single record points outside of its backing buffer."""


class PathLengthError(PakError):
    """Raised when a path does not fit the 56-byte PAK directory name field."""

    def __init__(self, path: str, limit: int) -> None:
        super().__init__(
            f"path {path!r} is {len(path.encode('utf-8'))} bytes; PAK names are limited to {limit}"
        )
        self.path = path
        self.limit = limit


class NameCollisionError(PakError):
    """Raised when a rename would give two siblings the same name."""


class MoveIntoSelfError(PakError):
    """Raised when a cut folder would be pasted into itself or a descendant."""


class UnsafePathError(PakError):
    """Raised when an export target would land outside of its destination folder."""
