"""Map texture decoder for the item box BSP models, plus the miptex reader.

Only a handful of small BSP files shipped with Quake (ammo boxes, health
packs, the exploding box) contain a single texture worth previewing.  The
miptex reader is shared with the gfx.wad decoder.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from ..checked import checked_add, checked_mul, in_bounds, read_int32, slice_checked
from ..palette import TRANSPARENT_INDEX, palette_to_rgba
from .bitmap import DecodedBitmap

PREVIEWABLE_NAMES = frozenset(
    {
        "b_rock0.bsp",
        "b_rock1.bsp",
        "b_shell0.bsp",
        "b_shell1.bsp",
        "b_nail0.bsp",
        "b_nail1.bsp",
        "b_explob.bsp",
        "b_bh100.bsp",
        "b_bh25.bsp",
        "b_bh10.bsp",
        "b_batt0.bsp",
        "b_batt1.bsp",
    }
)

TEXTURES_LUMP = 2
LUMP_COUNT_BSP29 = 15
LUMP_COUNT_BSP23 = 14
BSP23_VERSION = 23

# name[16], width, height, offsets[4]
MIPTEX_HEADER_SIZE = 40
MIPTEX_WIDTH_OFFSET = 16
MIPTEX_HEIGHT_OFFSET = 20
MIPTEX_FIRST_MIP_OFFSET = 24


def base_name(file_name: str | None) -> str:
    if not file_name:
        return ""
    return PurePosixPath(file_name.replace("\\", "/")).name.lower()


def read_miptex(data: bytes, base: int, limit: int) -> tuple[bytes, int, int] | None:
    """Return ``(pixels, width, height)`` of the base mip level at *base*.

    Every byte read must lie before *limit* (the end of the enclosing lump).
    """

    header_end = checked_add(base, MIPTEX_HEADER_SIZE)
    if base < 0 or header_end is None or header_end > limit or header_end > len(data):
        return None

    width = read_int32(data, base + MIPTEX_WIDTH_OFFSET)
    height = read_int32(data, base + MIPTEX_HEIGHT_OFFSET)
    mip_offset = read_int32(data, base + MIPTEX_FIRST_MIP_OFFSET)
    if width is None or height is None or mip_offset is None:
        return None
    if width <= 0 or height <= 0 or mip_offset < 0:
        return None

    pixel_count = checked_mul(width, height)
    pixel_start = checked_add(base, mip_offset)
    pixel_end = checked_add(pixel_start, pixel_count)
    if pixel_end is None or pixel_end > limit:
        return None

    pixels = slice_checked(data, pixel_start, pixel_count)
    if pixels is None:
        return None
    return pixels, width, height


def miptex_bitmap(data: bytes, base: int, limit: int) -> DecodedBitmap | None:
    texture = read_miptex(data, base, limit)
    if texture is None:
        return None
    pixels, width, height = texture
    rgba = palette_to_rgba(pixels, width, height, transparent_index=TRANSPARENT_INDEX)
    if rgba is None:
        return None
    return DecodedBitmap(width, height, rgba)


def _texture_lump(data: bytes) -> tuple[int, int] | None:
    version = read_int32(data, 0)
    if version is None:
        return None
    lump_count = LUMP_COUNT_BSP23 if version == BSP23_VERSION else LUMP_COUNT_BSP29
    if len(data) < 4 + lump_count * 8:
        return None

    lump_entry = 4 + TEXTURES_LUMP * 8
    offset = read_int32(data, lump_entry)
    length = read_int32(data, lump_entry + 4)
    if offset is None or length is None or length <= 4 or not in_bounds(len(data), offset, length):
        return None
    return offset, length


def decode(data: bytes, file_name: str | None = None) -> DecodedBitmap | None:
    if base_name(file_name) not in PREVIEWABLE_NAMES:
        return None

    lump = _texture_lump(data)
    if lump is None:
        return None
    lump_start, lump_length = lump
    lump_end = lump_start + lump_length

    texture_count = read_int32(data, lump_start)
    if texture_count is None or texture_count <= 0:
        return None
    table_end = checked_add(lump_start, 4, checked_mul(texture_count, 4))
    if table_end is None or table_end > lump_end:
        return None

    first_offset = read_int32(data, lump_start + 4)
    if first_offset is None:
        return None
    return miptex_bitmap(data, lump_start + first_offset, lump_end)
