"""Write entry trees out as real files and folders."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import UnsafePathError
from .tree import EntryNode

logger = logging.getLogger(__name__)


def _is_inside(target: Path, base: Path) -> bool:
    try:
        relative = target.resolve().relative_to(base.resolve())
    except ValueError:
        return False
    return bool(relative.parts)


def export_node(node: EntryNode, destination: Path, *, base: Path | None = None) -> Path:
    """Write *node* to *destination*; folders are recreated recursively.

    Every written path must stay strictly inside *base* (the parent of
    *destination* by default), otherwise :class:`UnsafePathError` is raised.
    Name collisions at *destination* are the caller's problem: existing files
    are overwritten and existing folders are merged into.
    """

    destination = Path(destination)
    base = Path(base) if base is not None else destination.parent
    if not _is_inside(destination, base):
        raise UnsafePathError(f"{node.name!r} would be written outside of {base}")

    if node.is_folder:
        destination.mkdir(parents=True, exist_ok=True)
        for child in node.children or []:
            export_node(child, destination / child.name, base=base)
    else:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(node.resolve())
        logger.debug("exported %s", destination)
    return destination


def export_tree(root: EntryNode, destination: Path) -> Path:
    """Export the contents of *root* (not the root itself) into *destination*."""

    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    for child in root.children or []:
        export_node(child, destination / child.name, base=destination)
    return destination


def next_available_path(directory: Path, base_name: str, extension: str | None = None) -> Path:
    """Return ``directory/base_name[.ext]``, or "base_name 2", "base_name 3"..."""

    directory = Path(directory)
    candidate_name = base_name
    suffix = 1
    while True:
        filename = f"{candidate_name}.{extension}" if extension else candidate_name
        candidate = directory / filename
        if not candidate.exists():
            return candidate
        suffix += 1
        candidate_name = f"{base_name} {suffix}"
