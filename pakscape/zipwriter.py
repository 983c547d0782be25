"""PK3 (ZIP) serialisation and extension based saving."""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path

from .reader import ZIP_EXTENSIONS
from .tree import EntryNode, iter_files, iter_folders
from .writer import write_bytes_atomically, write_pak

logger = logging.getLogger(__name__)

# Earliest timestamp representable in a ZIP header; keeps output reproducible.
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def _zip_info(name: str, *, is_dir: bool) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
    info.compress_type = zipfile.ZIP_STORED
    if is_dir:
        info.external_attr = (0o40755 << 16) | 0x10
    else:
        info.external_attr = 0o644 << 16
    return info


def write_zip(root: EntryNode) -> bytes:
    """Return a PK3 archive holding every folder and file below *root*."""

    stream = io.BytesIO()
    with zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_STORED) as archive:
        for path, _folder in iter_folders(root):
            archive.writestr(_zip_info(f"{path}/", is_dir=True), b"")
        for path, node in iter_files(root):
            archive.writestr(_zip_info(path, is_dir=False), node.resolve())
    logger.debug("wrote PK3 with %d bytes", stream.tell())
    return stream.getvalue()


def is_zip_path(path: Path) -> bool:
    return Path(path).suffix.lower() in ZIP_EXTENSIONS


def serialize_archive(root: EntryNode, path: Path) -> bytes:
    """Return archive bytes for *root* in the format implied by *path*."""

    if is_zip_path(path):
        return write_zip(root)
    return write_pak(root).data


def save_archive(root: EntryNode, path: Path) -> bytes:
    """Serialise *root* and write it to *path*; returns the written bytes."""

    data = serialize_archive(root, path)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    write_bytes_atomically(Path(path), data)
    return data
