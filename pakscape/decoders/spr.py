"""Sprite (SPR) decoder: renders the first frame of a sprite.

Unlike model skins, sprite frames are not masked: palette index 255 is drawn
with its palette colour.
"""

from __future__ import annotations

from ..checked import checked_add, checked_mul, read_int32, slice_checked
from ..palette import palette_to_rgba
from .bitmap import DecodedBitmap

HEADER_SIZE = 36
WIDTH_OFFSET = 16
HEIGHT_OFFSET = 20
FRAME_COUNT_OFFSET = 24
FRAME_HEADER_SIZE = 16

SPRITE_SINGLE = 0
SPRITE_GROUP = 1
GROUP_INTERVAL_SIZE = 4


def _read_frame(data: bytes, cursor: int) -> tuple[bytes, int, int] | None:
    # origin x/y at +0/+4 are irrelevant for a preview
    width = read_int32(data, cursor + 8)
    height = read_int32(data, cursor + 12)
    if width is None or height is None or width <= 0 or height <= 0:
        return None

    pixel_count = checked_mul(width, height)
    pixels = slice_checked(data, checked_add(cursor, FRAME_HEADER_SIZE), pixel_count)
    if pixels is None:
        return None
    return pixels, width, height


def _first_frame(data: bytes) -> tuple[bytes, int, int] | None:
    cursor = HEADER_SIZE
    frame_type = read_int32(data, cursor)
    if frame_type is None:
        return None
    cursor += 4
    if frame_type not in (SPRITE_SINGLE, SPRITE_GROUP):
        frame_type = SPRITE_SINGLE
        cursor -= 4

    if frame_type == SPRITE_GROUP:
        group_count = read_int32(data, cursor)
        if group_count is None or group_count <= 0:
            return None
        cursor = checked_add(cursor, 4, checked_mul(group_count, GROUP_INTERVAL_SIZE))
        if cursor is None:
            return None

    return _read_frame(data, cursor)


def decode(data: bytes, file_name: str | None = None) -> DecodedBitmap | None:
    if len(data) < HEADER_SIZE:
        return None

    # Magic ("IDSP") and version are advisory; only the dimensions matter.
    width = read_int32(data, WIDTH_OFFSET)
    height = read_int32(data, HEIGHT_OFFSET)
    frames = read_int32(data, FRAME_COUNT_OFFSET)
    if not width or width <= 0 or not height or height <= 0 or not frames or frames <= 0:
        return None

    frame = _first_frame(data)
    if frame is None:
        return None
    pixels, frame_width, frame_height = frame

    rgba = palette_to_rgba(pixels, frame_width, frame_height)
    if rgba is None:
        return None
    return DecodedBitmap(frame_width, frame_height, rgba)
