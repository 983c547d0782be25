"""Readers that turn PAK files, PK3 files and real folders into entry trees."""

from __future__ import annotations

import io
import logging
import mmap
import os
import struct
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

from .errors import BoundsError, FormatError
from .tree import ArchiveEntry, BackingBytes, EntryNode, available_name, sort_recursively

logger = logging.getLogger(__name__)

PAK_MAGIC = b"PACK"
PAK_HEADER = struct.Struct("<4sII")  # magic, directory offset, directory length
PAK_DIRECTORY_ENTRY = struct.Struct("<56sII")  # name, offset, length

ZIP_EXTENSIONS = {".pk3", ".zip"}

# Files above this size will be memory-mapped instead of fully loaded into RAM.
MEMORY_MAP_THRESHOLD = int(os.environ.get("PAKSCAPE_MEMORY_MAP_THRESHOLD", 256 * 1024 * 1024))


@dataclass
class PakFile:
    """An opened container: its name, backing bytes, tree and directory."""

    name: str
    backing: BackingBytes
    root: EntryNode
    entries: List[ArchiveEntry] = field(default_factory=list)

    def close(self) -> None:
        self.backing.close()


def normalize_relative_path(name: str) -> str:
    """Return a normalised relative path using forward slashes."""

    normalised = name.replace("\\", "/")
    return normalised.lstrip("/")


def _decode_name(raw: bytes) -> str:
    string_bytes = raw.split(b"\x00", 1)[0]
    try:
        return string_bytes.decode("utf-8")
    except UnicodeDecodeError:
        return string_bytes.decode("latin-1")


def _read_archive_bytes(path: Path) -> bytes | mmap.mmap:
    """Return the bytes for ``path`` using a memory map when appropriate."""

    size = path.stat().st_size
    if size and size >= max(0, MEMORY_MAP_THRESHOLD):
        flags = os.O_RDONLY
        # Windows requires the O_BINARY flag to avoid implicit newline conversion.
        flags |= getattr(os, "O_BINARY", 0)
        fd = os.open(path, flags)
        try:
            return mmap.mmap(fd, length=0, access=mmap.ACCESS_READ)
        finally:
            os.close(fd)

    return path.read_bytes()


def _read_header(data: bytes | mmap.mmap) -> tuple[int, int]:
    if len(data) < PAK_HEADER.size:
        raise FormatError("truncated PAK header")

    magic, directory_offset, directory_length = PAK_HEADER.unpack_from(data, 0)
    if magic != PAK_MAGIC:
        raise FormatError("file is not a PAK archive")
    if directory_offset + directory_length > len(data):
        raise FormatError("PAK directory lies outside of the file")
    return directory_offset, directory_length


def _parse_directory_record(data: bytes | mmap.mmap, record_offset: int) -> ArchiveEntry:
    raw_name, offset, length = PAK_DIRECTORY_ENTRY.unpack_from(data, record_offset)
    name = normalize_relative_path(_decode_name(raw_name))
    if not name:
        raise BoundsError(f"directory record at {record_offset} has an empty name")
    if offset + length > len(data):
        raise BoundsError(f"entry {name!r} points outside of archive bounds")
    return ArchiveEntry(name=name, offset=offset, length=length)


def parse_directory(data: bytes | mmap.mmap) -> List[ArchiveEntry]:
    """Return the directory records of a PAK buffer, skipping broken ones."""

    directory_offset, directory_length = _read_header(data)
    count = directory_length // PAK_DIRECTORY_ENTRY.size

    entries: List[ArchiveEntry] = []
    for index in range(count):
        record_offset = directory_offset + index * PAK_DIRECTORY_ENTRY.size
        try:
            entries.append(_parse_directory_record(data, record_offset))
        except BoundsError as exc:
            logger.warning("skipping PAK directory record %d: %s", index, exc)
    return entries


def _split_path(path: str) -> List[str]:
    return [part for part in path.split("/") if part]


def _is_unsafe(segments: Sequence[str]) -> bool:
    """Return True for paths that are empty or step through '.' or '..'."""

    return not segments or any(segment in (".", "..") for segment in segments)


def _ensure_folder(root: EntryNode, segments: Sequence[str]) -> EntryNode | None:
    folder = root
    for segment in segments:
        existing = folder.child_named(segment)
        if existing is None:
            existing = EntryNode.folder(segment)
            folder.children.append(existing)
        elif not existing.is_folder:
            return None
        folder = existing
    return folder


def build_tree(entries: Sequence[ArchiveEntry], backing: BackingBytes) -> EntryNode:
    """Split '/'-delimited entry names into nested folders ending in files."""

    root = EntryNode.folder("")
    for entry in entries:
        segments = _split_path(entry.name)
        if _is_unsafe(segments):
            logger.warning("skipping %r: relative path segments are not allowed", entry.name)
            continue
        folder = _ensure_folder(root, segments[:-1])
        if folder is None:
            logger.warning("skipping %r: a parent path is already a file", entry.name)
            continue
        existing = folder.child_named(segments[-1])
        if existing is not None:
            logger.warning("skipping duplicate entry %r", entry.name)
            continue
        folder.children.append(EntryNode.archived(segments[-1], backing, entry))

    sort_recursively(root)
    return root


def load_pak(data: bytes | mmap.mmap, name: str = "Untitled.pak") -> PakFile:
    """Parse a PAK buffer into a :class:`PakFile`."""

    entries = parse_directory(data)
    backing = BackingBytes(data)
    root = build_tree(entries, backing)
    logger.debug("loaded %s: %d entries", name, len(entries))
    return PakFile(name=name, backing=backing, root=root, entries=entries)


def load_zip(source: Path | bytes, name: str | None = None) -> PakFile:
    """Read a PK3 (ZIP) container into a tree of local file nodes."""

    if isinstance(source, (bytes, bytearray)):
        handle = io.BytesIO(source)
        display_name = name or "Untitled.pk3"
    else:
        handle = source
        display_name = name or Path(source).name

    root = EntryNode.folder("")
    try:
        with zipfile.ZipFile(handle, "r") as archive:
            for info in archive.infolist():
                path = normalize_relative_path(info.filename)
                segments = _split_path(path)
                if not segments:
                    continue
                if _is_unsafe(segments):
                    logger.warning("skipping %r: relative path segments are not allowed", path)
                    continue
                if info.is_dir():
                    if _ensure_folder(root, segments) is None:
                        logger.warning("skipping folder %r: path is already a file", path)
                    continue
                folder = _ensure_folder(root, segments[:-1])
                if folder is None or folder.child_named(segments[-1]) is not None:
                    logger.warning("skipping conflicting zip member %r", path)
                    continue
                folder.children.append(EntryNode.file(segments[-1], archive.read(info)))
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as exc:
        raise FormatError(f"failed to read PK3 archive: {exc}") from exc

    sort_recursively(root)
    return PakFile(name=display_name, backing=BackingBytes(b""), root=root, entries=[])


def _build_tree_from_directory(directory: Path, folder: EntryNode) -> None:
    # Case-sensitive filesystems may hold names that differ only in case.
    for child in sorted(directory.iterdir(), key=lambda item: (item.name.lower(), item.name)):
        name = available_name(child.name, folder)
        if child.is_dir():
            node = EntryNode.folder(name)
            _build_tree_from_directory(child, node)
        else:
            node = EntryNode.file(name, child.read_bytes())
        folder.children.append(node)


def load_directory_tree(directory: Path, into: EntryNode | None = None) -> EntryNode:
    """Build a tree from a real folder; file bytes are loaded eagerly."""

    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(str(directory))
    root = into if into is not None else EntryNode.folder(directory.name)
    if root.children is None:
        root.children = []
    _build_tree_from_directory(directory, root)
    sort_recursively(root)
    return root


def load_archive_file(path: Path) -> PakFile:
    """Open a PAK or PK3 file from disk, chosen by extension."""

    path = Path(path)
    if path.suffix.lower() in ZIP_EXTENSIONS:
        return load_zip(path, path.name)

    data = _read_archive_bytes(path)
    try:
        return load_pak(data, path.name)
    except FormatError:
        close = getattr(data, "close", None)
        if callable(close):
            close()
        raise
