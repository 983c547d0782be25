"""Editing session over one opened archive.

:class:`PakDocument` owns the entry tree of a :class:`PakFile` and offers the
operations of the browser: creating folders, renaming, deleting, importing
files from disk, copy/cut/paste between documents and saving back as PAK or
PK3.  Copy and paste go through a :class:`Clipboard` passed in by the caller so
several documents can share one, and tests can use their own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from PIL import Image

from .decoders import preview_image
from .errors import MoveIntoSelfError, NameCollisionError
from .export import export_node
from .reader import PakFile, load_archive_file, load_directory_tree
from .tree import (
    MAX_PATH_BYTES,
    ArchiveEntry,
    ArchivedBytes,
    BackingBytes,
    EntryNode,
    LocalBytes,
    available_name,
    clone_node,
    find_node,
    find_parent,
    is_descendant,
    iter_files,
    path_of,
    remove_nodes,
    sort_folder,
)
from .writer import write_bytes_atomically, write_pak
from .zipwriter import is_zip_path, write_zip

logger = logging.getLogger(__name__)

NEW_FOLDER_NAME = "New Folder"


@dataclass
class ClipboardPayload:
    nodes: List[EntryNode]
    is_cut: bool = False
    original_ids: List[str] = field(default_factory=list)
    source: "PakDocument" | None = None


class Clipboard:
    """Holds the last copied or cut nodes; shared by the documents using it."""

    def __init__(self) -> None:
        self.payload: ClipboardPayload | None = None

    def clear(self) -> None:
        self.payload = None

    @property
    def is_empty(self) -> bool:
        return self.payload is None


class PakDocument:
    """An opened archive plus its unsaved edits."""

    def __init__(self, pak_file: PakFile, path: Path | None = None, clipboard: Clipboard | None = None) -> None:
        self.pak_file = pak_file
        self.path = Path(path) if path is not None else None
        self.clipboard = clipboard if clipboard is not None else Clipboard()
        self.has_unsaved_changes = False

    @classmethod
    def open(cls, path: Path, clipboard: Clipboard | None = None) -> "PakDocument":
        return cls(load_archive_file(Path(path)), Path(path), clipboard)

    @property
    def root(self) -> EntryNode:
        return self.pak_file.root

    def mark_dirty(self) -> None:
        self.has_unsaved_changes = True

    # ------------------------------------------------------------- lookup --
    def find(self, node_id: str) -> EntryNode | None:
        return find_node(self.root, node_id)

    def parent_of(self, node: EntryNode) -> EntryNode | None:
        return find_parent(self.root, node.node_id)

    def path_of(self, node: EntryNode) -> str | None:
        return path_of(self.root, node.node_id)

    def extract_data(self, node: EntryNode) -> bytes:
        return node.resolve()

    def preview(self, node: EntryNode) -> Image.Image | None:
        if node.is_folder:
            return None
        return preview_image(node.name, node.resolve())

    # ------------------------------------------------------------ editing --
    def add_folder(self, parent: EntryNode | None = None) -> EntryNode:
        target = parent or self.root
        candidate = NEW_FOLDER_NAME
        suffix = 1
        while target.child_named(candidate) is not None:
            suffix += 1
            candidate = f"{NEW_FOLDER_NAME} {suffix}"

        node = EntryNode.folder(candidate)
        target.children.append(node)
        sort_folder(target)
        self.mark_dirty()
        return node

    def add_file(self, parent: EntryNode | None, name: str, data: bytes) -> EntryNode:
        target = parent or self.root
        node = EntryNode.file(available_name(name, target), data)
        target.children.append(node)
        sort_folder(target)
        self.mark_dirty()
        return node

    def rename(self, node: EntryNode, new_name: str) -> str:
        """Rename *node*, truncating so the full path still fits a PAK record.

        Returns the name actually applied.
        """

        trimmed = new_name.strip().replace("/", "_")
        if not trimmed or trimmed == node.name:
            return node.name

        parent = self.parent_of(node)
        parent_path = path_of(self.root, parent.node_id) if parent is not None else ""
        prefix = f"{parent_path}/" if parent_path else ""
        max_name_bytes = MAX_PATH_BYTES - len(prefix.encode("utf-8"))

        encoded = trimmed.encode("utf-8")
        if len(encoded) > max_name_bytes:
            trimmed = encoded[: max(0, max_name_bytes)].decode("utf-8", errors="ignore")
        if not trimmed:
            return node.name

        if parent is not None:
            clash = parent.child_named(trimmed)
            if clash is not None and clash is not node:
                raise NameCollisionError(f"{trimmed!r} already exists in {parent_path or 'the archive root'}")

        node.name = trimmed
        entry = node.entry
        if entry is not None:
            node.payload = ArchivedBytes(
                node.payload.backing,
                ArchiveEntry(name=prefix + trimmed, offset=entry.offset, length=entry.length),
            )
        if parent is not None:
            sort_folder(parent)
        self.mark_dirty()
        return trimmed

    def delete(self, node_ids: Iterable[str]) -> List[EntryNode]:
        removed = remove_nodes(self.root, set(node_ids))
        if removed:
            self.mark_dirty()
        return removed

    def import_paths(self, paths: Sequence[Path], folder: EntryNode | None = None) -> None:
        """Copy files and folders from disk into *folder*, merging folders."""

        target = folder or self.root
        for path in paths:
            self._import_item(Path(path), target)
        sort_folder(target)
        self.mark_dirty()

    def _import_item(self, path: Path, folder: EntryNode) -> None:
        if path.is_dir():
            existing = folder.child_named(path.name)
            if existing is None or not existing.is_folder:
                existing = EntryNode.folder(available_name(path.name, folder))
                folder.children.append(existing)
            for child in sorted(path.iterdir(), key=lambda item: (item.name.lower(), item.name)):
                self._import_item(child, existing)
            sort_folder(existing)
            return

        data = path.read_bytes()
        existing = folder.child_named(path.name)
        if existing is not None and not existing.is_folder:
            existing.payload = LocalBytes(data)
        else:
            folder.children.append(EntryNode.file(available_name(path.name, folder), data))

    # ---------------------------------------------------------- clipboard --
    def copy(self, nodes: Sequence[EntryNode]) -> None:
        self._fill_clipboard(nodes, is_cut=False)

    def cut(self, nodes: Sequence[EntryNode]) -> None:
        self._fill_clipboard(nodes, is_cut=True)

    def _fill_clipboard(self, nodes: Sequence[EntryNode], *, is_cut: bool) -> None:
        if not nodes:
            return
        self.clipboard.payload = ClipboardPayload(
            nodes=[clone_node(node, materialize=True) for node in nodes],
            is_cut=is_cut,
            original_ids=[node.node_id for node in nodes] if is_cut else [],
            source=self if is_cut else None,
        )

    def paste(self, destination: EntryNode | None = None) -> List[EntryNode]:
        """Insert clipboard contents into *destination* (the root by default)."""

        payload = self.clipboard.payload
        if payload is None:
            return []
        destination = destination or self.root
        if not destination.is_folder:
            raise NotADirectoryError(f"{destination.name!r} is not a folder")

        if payload.is_cut and payload.source is not None:
            source = payload.source
            for node_id in payload.original_ids:
                original = source.find(node_id)
                if original is None:
                    continue
                if original.node_id == destination.node_id or is_descendant(destination.node_id, original):
                    raise MoveIntoSelfError("cannot move a folder into itself or one of its subfolders")
            source.delete(payload.original_ids)

        inserted: List[EntryNode] = []
        for template in payload.nodes:
            clone = clone_node(template)
            clone.name = available_name(clone.name, destination)
            destination.children.append(clone)
            inserted.append(clone)

        sort_folder(destination)
        self.mark_dirty()
        if payload.is_cut:
            self.clipboard.clear()
        return inserted

    # ------------------------------------------------------------- output --
    def export(self, node: EntryNode, directory: Path) -> Path:
        return export_node(node, Path(directory) / node.name, base=Path(directory))

    def save(self, path: Path | None = None) -> Path:
        """Write the archive to *path* (or where it was opened from)."""

        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError("no destination path for an archive that was never saved")

        if is_zip_path(target):
            data = write_zip(self.root)
            write_bytes_atomically(target, data)
        else:
            result = write_pak(self.root)
            write_bytes_atomically(target, result.data)
            self._rebind(result.data, result.node_entries, result.entries)

        self.path = target
        self.pak_file.name = target.name
        self.has_unsaved_changes = False
        logger.info("saved %s", target)
        return target

    def _rebind(self, data: bytes, node_entries: dict, entries: List[ArchiveEntry]) -> None:
        previous = self.pak_file.backing
        backing = BackingBytes(data)
        for _path, node in iter_files(self.root):
            entry = node_entries.get(node.node_id)
            if entry is not None:
                node.payload = ArchivedBytes(backing, entry)
        self.pak_file.backing = backing
        self.pak_file.entries = entries
        if previous is not backing:
            previous.close()

    def close(self) -> None:
        self.pak_file.close()


def new_document(clipboard: Clipboard | None = None) -> PakDocument:
    """Return an empty, unsaved document."""

    return PakDocument(PakFile(name="Untitled.pak", backing=BackingBytes(b""), root=EntryNode.folder("")), clipboard=clipboard)


def document_from_directory(directory: Path, clipboard: Clipboard | None = None) -> PakDocument:
    """Return an unsaved document holding the contents of a real folder."""

    root = load_directory_tree(Path(directory), EntryNode.folder(""))
    pak_file = PakFile(name=f"{Path(directory).name}.pak", backing=BackingBytes(b""), root=root)
    document = PakDocument(pak_file, clipboard=clipboard)
    document.mark_dirty()
    return document
