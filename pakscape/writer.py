"""Rebuild PAK archives from an entry tree.

The writer never patches an archive in place.  Edits change the number, size
and order of entries so every save lays out all file payloads contiguously
after the header and appends a fresh directory that points at them.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from .errors import PathLengthError
from .reader import PAK_DIRECTORY_ENTRY, PAK_HEADER, PAK_MAGIC
from .tree import MAX_PATH_BYTES, ArchiveEntry, EntryNode, iter_files

logger = logging.getLogger(__name__)

UINT32_MAX = 0xFFFFFFFF


@dataclass
class PakWriteResult:
    data: bytes
    entries: List[ArchiveEntry] = field(default_factory=list)
    node_entries: Dict[str, ArchiveEntry] = field(default_factory=dict)


def encode_path(path: str) -> bytes:
    """Return the UTF-8 form of *path* or raise :class:`PathLengthError`."""

    encoded = path.encode("utf-8")
    if len(encoded) > MAX_PATH_BYTES:
        raise PathLengthError(path, MAX_PATH_BYTES)
    return encoded


def validate_paths(root: EntryNode) -> List[Tuple[str, bytes, EntryNode]]:
    """Return ``(path, encoded_path, node)`` for every file, checking lengths first."""

    return [(path, encode_path(path), node) for path, node in iter_files(root)]


def write_pak(root: EntryNode) -> PakWriteResult:
    """Serialise *root* into a complete PAK archive."""

    files = validate_paths(root)

    output = bytearray(PAK_HEADER.size)
    entries: List[ArchiveEntry] = []
    node_entries: Dict[str, ArchiveEntry] = {}
    for path, _encoded, node in files:
        payload = node.resolve()
        offset = len(output)
        if offset + len(payload) > UINT32_MAX:
            raise OverflowError(f"{path!r} would start beyond the 32-bit offset range")
        output.extend(payload)
        entry = ArchiveEntry(name=path, offset=offset, length=len(payload))
        entries.append(entry)
        node_entries[node.node_id] = entry

    directory_offset = len(output)
    for (_path, encoded, _node), entry in zip(files, entries):
        output.extend(PAK_DIRECTORY_ENTRY.pack(encoded, entry.offset, entry.length))
    directory_length = len(output) - directory_offset
    if directory_offset > UINT32_MAX or directory_length > UINT32_MAX:
        raise OverflowError("PAK directory exceeds the 32-bit offset range")

    PAK_HEADER.pack_into(output, 0, PAK_MAGIC, directory_offset, directory_length)
    logger.debug("wrote %d entries, directory at %d", len(entries), directory_offset)
    return PakWriteResult(data=bytes(output), entries=entries, node_entries=node_entries)


def write_bytes_atomically(
    path: Path,
    data: bytes,
    *,
    chunk_size: int = 2 * 1024 * 1024,
    progress_callback: Callable[[int], None] | None = None,
) -> None:
    """Write *data* to *path* in chunks while reporting progress.

    The bytes go to a temporary file next to *path* which replaces it only
    once fully written and synced.  On failure the temporary file is removed
    and any existing file at *path* is left untouched.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    path = Path(path)
    mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o644
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    temp_path = Path(temp_name)
    total = len(data)
    written = 0
    try:
        with os.fdopen(fd, "wb") as handle:
            if total == 0 and progress_callback is not None:
                progress_callback(0)

            for start in range(0, total, chunk_size):
                chunk = data[start : start + chunk_size]
                handle.write(chunk)
                written += len(chunk)
                if progress_callback is not None:
                    progress_callback(written)

            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except BaseException:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        raise
    logger.debug("wrote %d bytes to %s", total, path)
