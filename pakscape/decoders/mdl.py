"""Quake model (MDL) skin decoder: renders the first skin of a model."""

from __future__ import annotations

from ..checked import checked_add, checked_mul, read_int32, slice_checked
from ..palette import TRANSPARENT_INDEX, palette_to_rgba
from .bitmap import DecodedBitmap

HEADER_SIZE = 84
SKIN_COUNT_OFFSET = 48
SKIN_WIDTH_OFFSET = 52
SKIN_HEIGHT_OFFSET = 56

SKIN_SINGLE = 0
SKIN_GROUP = 1
GROUP_TIME_SIZE = 4


def _first_skin_bytes(data: bytes, width: int, height: int) -> bytes | None:
    skin_size = checked_mul(width, height)
    if skin_size is None or skin_size <= 0:
        return None

    cursor = HEADER_SIZE
    group = read_int32(data, cursor)
    if group is None:
        return None
    cursor += 4

    # Some legacy or malformed files omit or garble the group flag.
    if group not in (SKIN_SINGLE, SKIN_GROUP):
        cursor -= 4
        group = SKIN_SINGLE

    if group == SKIN_GROUP:
        group_count = read_int32(data, cursor)
        if group_count is None or group_count <= 0:
            return None
        cursor = checked_add(cursor, 4, checked_mul(group_count, GROUP_TIME_SIZE))
        if cursor is None:
            return None

    return slice_checked(data, cursor, skin_size)


def decode(data: bytes, file_name: str | None = None) -> DecodedBitmap | None:
    if len(data) < HEADER_SIZE:
        return None

    skin_count = read_int32(data, SKIN_COUNT_OFFSET)
    width = read_int32(data, SKIN_WIDTH_OFFSET)
    height = read_int32(data, SKIN_HEIGHT_OFFSET)
    if not skin_count or skin_count <= 0 or not width or width <= 0 or not height or height <= 0:
        return None

    skin = _first_skin_bytes(data, width, height)
    if skin is None:
        return None

    rgba = palette_to_rgba(skin, width, height, transparent_index=TRANSPARENT_INDEX)
    if rgba is None:
        return None
    return DecodedBitmap(width, height, rgba)
