"""Generic LMP image lumps, the console font, the colormap and palette swatches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from ..checked import checked_mul, read_int32, slice_checked
from ..palette import TRANSPARENT_INDEX, palette_to_rgba
from .bitmap import DecodedBitmap
from .miptex import base_name

PICTURE_HEADER_SIZE = 8
PALETTE_LUMP_SIZE = 768
SWATCH_SIZE = 16


@dataclass(frozen=True)
class SpecialCase:
    width: int
    height: int
    has_header: bool = False
    rgb: bool = False
    transparent_index: int | None = TRANSPARENT_INDEX


SPECIAL_CASES: Dict[str, SpecialCase] = {
    "conchars": SpecialCase(128, 128, transparent_index=0),
    "conchars.lmp": SpecialCase(128, 128, transparent_index=0),
    "pop.lmp": SpecialCase(16, 16),
    "colormap.lmp": SpecialCase(256, 64),
}

PALETTE_SWATCH = SpecialCase(SWATCH_SIZE, SWATCH_SIZE, rgb=True, transparent_index=None)
PICTURE = SpecialCase(0, 0, has_header=True)


def layout_for(file_name: str | None, data: bytes) -> SpecialCase:
    """Pick the pixel layout of a lump from its name, then from its size."""

    name = base_name(file_name)
    root_name = name.split(".", 1)[0]
    special = SPECIAL_CASES.get(name) or SPECIAL_CASES.get(root_name)
    if special is not None:
        return special
    if len(data) == PALETTE_LUMP_SIZE:
        # Palette files carry no header; show them as a 16x16 swatch.
        return PALETTE_SWATCH
    return PICTURE


def _rgb_to_rgba(pixels: bytes) -> bytes:
    rgba = bytearray(len(pixels) // 3 * 4)
    rgba[0::4] = pixels[0::3]
    rgba[1::4] = pixels[1::3]
    rgba[2::4] = pixels[2::3]
    rgba[3::4] = b"\xff" * (len(pixels) // 3)
    return bytes(rgba)


def decode(data: bytes, file_name: str | None = None) -> DecodedBitmap | None:
    layout = layout_for(file_name, data)
    width, height, offset = layout.width, layout.height, 0
    if layout.has_header:
        width = read_int32(data, 0)
        height = read_int32(data, 4)
        offset = PICTURE_HEADER_SIZE
        if width is None or height is None:
            return None
    if width <= 0 or height <= 0:
        return None

    pixel_count = checked_mul(width, height)
    pixels = slice_checked(data, offset, checked_mul(pixel_count, 3 if layout.rgb else 1))
    if pixels is None:
        return None

    if layout.rgb:
        return DecodedBitmap(width, height, _rgb_to_rgba(pixels))

    rgba = palette_to_rgba(pixels, width, height, transparent_index=layout.transparent_index)
    if rgba is None:
        return None
    return DecodedBitmap(width, height, rgba)
