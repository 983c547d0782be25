"""Command line front-end.

```
python -m pakscape list <archive>
python -m pakscape extract <archive> [output_dir]
python -m pakscape pack <folder> [output.pak]
python -m pakscape convert <source.pak|pk3> <destination.pak|pk3>
python -m pakscape preview <archive> <entry/path> <output.png>
```
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from .decoders import preview_image
from .errors import PakError
from .export import export_tree, next_available_path
from .reader import load_archive_file, load_directory_tree
from .tree import EntryNode, iter_files
from .zipwriter import save_archive


def _find_entry(root: EntryNode, entry_path: str) -> EntryNode | None:
    wanted = entry_path.replace("\\", "/").strip("/").lower()
    for path, node in iter_files(root):
        if path.lower() == wanted:
            return node
    return None


def list_archive(archive: Path) -> None:
    pak_file = load_archive_file(archive)
    try:
        for path, node in iter_files(pak_file.root):
            print(f"{len(node.resolve()):>10}  {path}")
    finally:
        pak_file.close()


def extract(archive: Path, output: Path | None) -> Path:
    pak_file = load_archive_file(archive)
    try:
        if output is None:
            output = next_available_path(archive.parent, archive.stem)
        return export_tree(pak_file.root, output)
    finally:
        pak_file.close()


def pack(folder: Path, output: Path | None) -> Path:
    root = load_directory_tree(folder, EntryNode.folder(""))
    if output is None:
        output = next_available_path(folder.parent, folder.name, "pak")
    save_archive(root, output)
    return output


def convert(source: Path, destination: Path) -> Path:
    pak_file = load_archive_file(source)
    try:
        save_archive(pak_file.root, destination)
    finally:
        pak_file.close()
    return destination


def preview(archive: Path, entry_path: str, output: Path) -> Path:
    pak_file = load_archive_file(archive)
    try:
        node = _find_entry(pak_file.root, entry_path)
        if node is None:
            raise PakError(f"{entry_path} is not in {archive.name}")
        image = preview_image(node.name, node.resolve())
    finally:
        pak_file.close()
    if image is None:
        raise PakError(f"{entry_path} cannot be previewed")
    image.save(output)
    return output


def build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Browse, extract and build Quake PAK/PK3 archives")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debugging information")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="list the files inside an archive")
    list_parser.add_argument("archive", type=Path, help="path to the .pak or .pk3 archive")

    extract_parser = subparsers.add_parser("extract", help="extract every file into a folder")
    extract_parser.add_argument("archive", type=Path, help="path to the .pak or .pk3 archive")
    extract_parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        help="directory that will receive the files (defaults to a folder next to the archive)",
    )

    pack_parser = subparsers.add_parser("pack", help="build an archive from a folder")
    pack_parser.add_argument("folder", type=Path, help="folder whose contents become the archive")
    pack_parser.add_argument("output", type=Path, nargs="?", help="archive to write (.pak or .pk3)")

    convert_parser = subparsers.add_parser("convert", help="rewrite an archive as PAK or PK3")
    convert_parser.add_argument("source", type=Path, help="archive to read")
    convert_parser.add_argument("destination", type=Path, help="archive to write; format follows the extension")

    preview_parser = subparsers.add_parser("preview", help="render an entry preview to an image file")
    preview_parser.add_argument("archive", type=Path, help="path to the .pak or .pk3 archive")
    preview_parser.add_argument("entry", help="path of the entry inside the archive")
    preview_parser.add_argument("output", type=Path, help="image file to write, e.g. preview.png")

    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_cli()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "list":
            list_archive(args.archive)
        elif args.command == "extract":
            destination = extract(args.archive, args.output)
            print(f"Extraction complete. Files written to {destination}")
        elif args.command == "pack":
            destination = pack(args.folder, args.output)
            print(f"Archive written to {destination}")
        elif args.command == "convert":
            destination = convert(args.source, args.destination)
            print(f"Converted archive written to {destination}")
        elif args.command == "preview":
            destination = preview(args.archive, args.entry, args.output)
            print(f"Preview written to {destination}")
        else:
            parser.error("unknown command")
    except (PakError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
