"""Entry tree shared by the readers, writers and the editing document.

A tree is made of :class:`EntryNode` objects.  Folders own an ordered list of
children; files own exactly one payload which is either bytes held in memory
(:class:`LocalBytes`) or a reference into the buffer of the archive the node
was read from (:class:`ArchivedBytes`).  Archived payloads are only copied
when something asks for their bytes, so saving an archive where a single file
changed never duplicates the untouched ones.
"""

from __future__ import annotations

import mmap
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Sequence, Tuple, Union

from .errors import BoundsError

MAX_PATH_BYTES = 55


@dataclass(frozen=True)
class ArchiveEntry:
    """One directory record: a full path and its range in a backing buffer."""

    name: str
    offset: int
    length: int


class BackingBytes:
    """Read-only view of the bytes of an opened container."""

    def __init__(self, buffer: bytes | mmap.mmap) -> None:
        self._buffer = buffer

    def __len__(self) -> int:
        return len(self._buffer)

    def slice(self, offset: int, length: int) -> bytes:
        """Return ``length`` bytes at ``offset`` or raise :class:`BoundsError`."""

        if offset < 0 or length < 0 or offset + length > len(self._buffer):
            raise BoundsError(
                f"range {offset}+{length} is outside of the {len(self._buffer)} byte archive"
            )
        return bytes(self._buffer[offset : offset + length])

    def close(self) -> None:
        """Release buffers that expose a ``close`` method (e.g. memory maps)."""

        close = getattr(self._buffer, "close", None)
        if callable(close):
            close()


@dataclass(frozen=True)
class LocalBytes:
    data: bytes

    def resolve(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class ArchivedBytes:
    backing: BackingBytes
    entry: ArchiveEntry

    def resolve(self) -> bytes:
        return self.backing.slice(self.entry.offset, self.entry.length)


Payload = Union[LocalBytes, ArchivedBytes]


@dataclass(eq=False)
class EntryNode:
    """A folder (``payload is None``) or a file inside an archive tree."""

    name: str
    children: List["EntryNode"] | None = None
    payload: Payload | None = None
    node_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def folder(cls, name: str, children: Sequence["EntryNode"] = ()) -> "EntryNode":
        return cls(name=name, children=list(children))

    @classmethod
    def file(cls, name: str, data: bytes) -> "EntryNode":
        return cls(name=name, payload=LocalBytes(bytes(data)))

    @classmethod
    def archived(cls, name: str, backing: BackingBytes, entry: ArchiveEntry) -> "EntryNode":
        return cls(name=name, payload=ArchivedBytes(backing, entry))

    @property
    def is_folder(self) -> bool:
        return self.children is not None

    @property
    def entry(self) -> ArchiveEntry | None:
        if isinstance(self.payload, ArchivedBytes):
            return self.payload.entry
        return None

    def resolve(self) -> bytes:
        """Return the file bytes of this node."""

        if self.payload is None:
            raise IsADirectoryError(f"{self.name!r} is a folder")
        return self.payload.resolve()

    def child_named(self, name: str) -> "EntryNode" | None:
        """Return the child whose name matches *name* case-insensitively."""

        lowered = name.lower()
        for child in self.children or []:
            if child.name.lower() == lowered:
                return child
        return None


def join_path(parent_path: str, name: str) -> str:
    return f"{parent_path}/{name}" if parent_path else name


def iter_files(root: EntryNode, prefix: str = "") -> Iterator[Tuple[str, EntryNode]]:
    """Yield ``(full_path, node)`` for every file below *root*, depth first."""

    for child in root.children or []:
        path = join_path(prefix, child.name)
        if child.is_folder:
            yield from iter_files(child, path)
        else:
            yield path, child


def iter_folders(root: EntryNode, prefix: str = "") -> Iterator[Tuple[str, EntryNode]]:
    """Yield ``(full_path, node)`` for every folder below *root*, depth first."""

    for child in root.children or []:
        if child.is_folder:
            path = join_path(prefix, child.name)
            yield path, child
            yield from iter_folders(child, path)


def find_node(root: EntryNode | None, node_id: str) -> EntryNode | None:
    if root is None:
        return None
    if root.node_id == node_id:
        return root
    for child in root.children or []:
        found = find_node(child, node_id)
        if found is not None:
            return found
    return None


def find_parent(root: EntryNode, node_id: str) -> EntryNode | None:
    """Return the folder that directly owns the node with *node_id*."""

    for child in root.children or []:
        if child.node_id == node_id:
            return root
        if child.is_folder:
            found = find_parent(child, node_id)
            if found is not None:
                return found
    return None


def path_of(root: EntryNode, node_id: str) -> str | None:
    """Return the '/'-joined path of a node relative to *root*."""

    if root.node_id == node_id:
        return ""
    for child in root.children or []:
        if child.node_id == node_id:
            return child.name
        if child.is_folder:
            nested = path_of(child, node_id)
            if nested is not None:
                return join_path(child.name, nested)
    return None


def is_descendant(node_id: str, ancestor: EntryNode) -> bool:
    """Return True when *node_id* lives somewhere below *ancestor*."""

    for child in ancestor.children or []:
        if child.node_id == node_id or is_descendant(node_id, child):
            return True
    return False


def remove_nodes(root: EntryNode, node_ids: set[str]) -> List[EntryNode]:
    """Detach every node whose id is in *node_ids*; return the removed nodes."""

    removed: List[EntryNode] = []
    if root.children is None:
        return removed
    kept: List[EntryNode] = []
    for child in root.children:
        if child.node_id in node_ids:
            removed.append(child)
        else:
            kept.append(child)
    root.children = kept
    for child in kept:
        if child.is_folder:
            removed.extend(remove_nodes(child, node_ids))
    return removed


def sort_key(node: EntryNode) -> Tuple[bool, str]:
    return (not node.is_folder, node.name.lower())


def sort_folder(folder: EntryNode) -> None:
    """Order children folders first, then by case-insensitive name."""

    if folder.children is not None:
        folder.children.sort(key=sort_key)


def sort_recursively(folder: EntryNode) -> None:
    sort_folder(folder)
    for child in folder.children or []:
        if child.is_folder:
            sort_recursively(child)


def available_name(name: str, folder: EntryNode) -> str:
    """Return *name*, or "name copy", "name copy 2"... if a sibling has it."""

    existing = {child.name.lower() for child in folder.children or []}
    if name.lower() not in existing:
        return name

    stem, dot, extension = name.rpartition(".")
    if not dot or not stem:
        stem, extension = name, ""

    attempt = 1
    while True:
        suffix = " copy" if attempt == 1 else f" copy {attempt}"
        candidate = f"{stem}{suffix}.{extension}" if extension else f"{stem}{suffix}"
        if candidate.lower() not in existing:
            return candidate
        attempt += 1


def clone_node(node: EntryNode, *, materialize: bool = False) -> EntryNode:
    """Deep copy *node* with fresh ids.

    With ``materialize`` every archived payload is resolved into local bytes so
    the clone no longer depends on the original archive buffer.
    """

    if node.is_folder:
        return EntryNode.folder(
            node.name, [clone_node(child, materialize=materialize) for child in node.children or []]
        )
    if materialize and not isinstance(node.payload, LocalBytes):
        return EntryNode.file(node.name, node.resolve())
    return EntryNode(name=node.name, payload=node.payload)


def collect_paths(root: EntryNode) -> Dict[str, bytes]:
    """Return ``{path: bytes}`` for every file below *root*."""

    return {path: node.resolve() for path, node in iter_files(root)}
