"""gfx.wad texture bank decoder: every picture of the bank on one sheet."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from typing import List, Sequence

from PIL import Image

from ..checked import checked_add, checked_mul, in_bounds, read_int32, slice_checked
from ..palette import TRANSPARENT_INDEX, palette_to_rgba
from .bitmap import DecodedBitmap
from .miptex import base_name, miptex_bitmap

BANK_NAME = "gfx.wad"

DIRECTORY_ENTRY = struct.Struct("<iiiBBH16s")  # offset, disk size, size, type, compression, pad, name

TYPE_PALETTE = ord("@")
TYPE_MIPTEX = ord("D")

TILE_SIZE = 64
COLUMNS = 4


@dataclass(frozen=True)
class WadEntry:
    offset: int
    disk_size: int
    size: int
    type: int
    name: str


def read_directory(data: bytes) -> List[WadEntry]:
    """Return the usable directory records of a WAD2 buffer."""

    count = read_int32(data, 4)
    directory_offset = read_int32(data, 8)
    if count is None or directory_offset is None or count <= 0 or directory_offset < 0:
        return []
    directory_end = checked_add(directory_offset, checked_mul(count, DIRECTORY_ENTRY.size))
    if directory_end is None or directory_end > len(data):
        return []

    entries: List[WadEntry] = []
    for index in range(count):
        record = directory_offset + index * DIRECTORY_ENTRY.size
        offset, disk_size, size, entry_type, _compression, _pad, raw_name = DIRECTORY_ENTRY.unpack_from(
            data, record
        )
        if size <= 0 or not in_bounds(len(data), offset, size):
            continue
        name = raw_name.split(b"\x00", 1)[0].decode("ascii", errors="replace")
        entries.append(WadEntry(offset, disk_size, size, entry_type, name))
    return entries


def _decode_picture(data: bytes, entry: WadEntry) -> DecodedBitmap | None:
    width = read_int32(data, entry.offset)
    height = read_int32(data, entry.offset + 4)
    if width is None or height is None or width <= 0 or height <= 0:
        return None

    pixel_count = checked_mul(width, height)
    pixel_start = entry.offset + 8
    pixel_end = checked_add(pixel_start, pixel_count)
    if pixel_end is None or pixel_end > entry.offset + entry.size:
        return None
    pixels = slice_checked(data, pixel_start, pixel_count)
    if pixels is None:
        return None

    rgba = palette_to_rgba(pixels, width, height, transparent_index=TRANSPARENT_INDEX)
    if rgba is None:
        return None
    return DecodedBitmap(width, height, rgba)


def decode_entry(data: bytes, entry: WadEntry) -> DecodedBitmap | None:
    if entry.type == TYPE_PALETTE:
        return None
    if entry.type == TYPE_MIPTEX:
        return miptex_bitmap(data, entry.offset, entry.offset + entry.size)
    return _decode_picture(data, entry)


def contact_sheet(
    bitmaps: Sequence[DecodedBitmap], *, tile_size: int = TILE_SIZE, columns: int = COLUMNS
) -> DecodedBitmap | None:
    """Scale each bitmap to a square tile and lay them out row-major."""

    if not bitmaps or tile_size <= 0 or columns <= 0:
        return None
    rows = math.ceil(len(bitmaps) / columns)
    sheet = Image.new("RGBA", (columns * tile_size, rows * tile_size), (0, 0, 0, 0))
    for index, bitmap in enumerate(bitmaps):
        column, row = index % columns, index // columns
        tile = bitmap.to_image().resize((tile_size, tile_size), Image.LANCZOS)
        sheet.paste(tile, (column * tile_size, row * tile_size))
    return DecodedBitmap.from_image(sheet)


def decode(
    data: bytes,
    file_name: str | None = None,
    *,
    tile_size: int = TILE_SIZE,
    columns: int = COLUMNS,
) -> DecodedBitmap | None:
    if base_name(file_name) != BANK_NAME or len(data) < 12:
        return None

    bitmaps = []
    for entry in read_directory(data):
        bitmap = decode_entry(data, entry)
        if bitmap is not None:
            bitmaps.append(bitmap)
    return contact_sheet(bitmaps, tile_size=tile_size, columns=columns)
