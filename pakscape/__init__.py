"""Read, edit and write Quake PAK/PK3 archives and preview their assets."""

from .decoders import AssetKind, DecodedBitmap, asset_kind_for, decode_asset, preview_image
from .document import Clipboard, PakDocument
from .errors import (
    BoundsError,
    FormatError,
    MoveIntoSelfError,
    NameCollisionError,
    PakError,
    PathLengthError,
    UnsafePathError,
)
from .export import export_node, export_tree
from .reader import PakFile, load_archive_file, load_directory_tree, load_pak, load_zip
from .tree import MAX_PATH_BYTES, ArchiveEntry, BackingBytes, EntryNode
from .writer import PakWriteResult, write_pak
from .zipwriter import save_archive, write_zip

__version__ = "1.0.0"
