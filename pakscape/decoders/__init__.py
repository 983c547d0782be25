"""Preview decoders for the binary asset formats found inside Quake archives.

Each decoder is a pure ``decode(data, file_name=None)`` function returning a
:class:`DecodedBitmap` or ``None``.  Decoders never raise on malformed input,
so callers may run them concurrently, one call per file, and substitute a
placeholder whenever ``None`` comes back.
"""

from __future__ import annotations

import enum
import io
from pathlib import PurePosixPath
from typing import Callable, Dict

from PIL import Image, UnidentifiedImageError

from . import lmp, mdl, miptex, spr, tga, wad
from .bitmap import DecodedBitmap

__all__ = [
    "AssetKind",
    "DecodedBitmap",
    "asset_kind_for",
    "decode_asset",
    "preview_image",
]


class AssetKind(enum.Enum):
    MODEL_SKIN = "mdl"
    SPRITE_FRAME = "spr"
    MAP_TEXTURE = "bsp"
    TEXTURE_BANK = "wad"
    TRUE_COLOR_IMAGE = "tga"
    GENERIC_LUMP = "lmp"


DECODERS: Dict[AssetKind, Callable[..., DecodedBitmap | None]] = {
    AssetKind.MODEL_SKIN: mdl.decode,
    AssetKind.SPRITE_FRAME: spr.decode,
    AssetKind.MAP_TEXTURE: miptex.decode,
    AssetKind.TEXTURE_BANK: wad.decode,
    AssetKind.TRUE_COLOR_IMAGE: tga.decode,
    AssetKind.GENERIC_LUMP: lmp.decode,
}

STANDARD_IMAGE_EXTENSIONS = {
    ".bmp",
    ".gif",
    ".jpg",
    ".jpeg",
    ".png",
    ".tif",
    ".tiff",
}


def _extension(file_name: str) -> str:
    return PurePosixPath(file_name.replace("\\", "/")).suffix.lower()


def asset_kind_for(file_name: str) -> AssetKind | None:
    """Return the decoder variant for *file_name*, or ``None``."""

    try:
        return AssetKind(_extension(file_name).lstrip("."))
    except ValueError:
        return None


def decode_asset(file_name: str, data: bytes) -> DecodedBitmap | None:
    """Decode *data* with the decoder selected by the extension of *file_name*."""

    kind = asset_kind_for(file_name)
    if kind is None or not data:
        return None
    return DECODERS[kind](data, file_name)


def preview_image(file_name: str, data: bytes) -> Image.Image | None:
    """Return a Pillow RGBA image for any previewable entry.

    Quake formats go through the decoders; standard image formats are handed
    to Pillow untouched.
    """

    bitmap = decode_asset(file_name, data)
    if bitmap is not None:
        return bitmap.to_image()
    if _extension(file_name) not in STANDARD_IMAGE_EXTENSIONS or not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError):
        return None
    return image.convert("RGBA")
