"""Truevision TGA decoder for true-colour and grayscale images.

Supports image types 2 and 3 (uncompressed) and 10 and 11 (run-length
encoded) at 8/16 bits for grayscale and 16/24/32 bits for true colour.  Output
is always reoriented to a top-left origin.  Colour-mapped images are rejected.
"""

from __future__ import annotations

from typing import Callable, Tuple

from ..checked import checked_add, checked_mul, read_uint16
from .bitmap import DecodedBitmap

HEADER_SIZE = 18

TYPE_TRUE_COLOR = 2
TYPE_GRAYSCALE = 3
TYPE_RLE_TRUE_COLOR = 10
TYPE_RLE_GRAYSCALE = 11

DESCRIPTOR_RIGHT_ORIGIN = 0x10
DESCRIPTOR_TOP_ORIGIN = 0x20
DESCRIPTOR_ALPHA_BITS = 0x0F

RLE_REPEAT_FLAG = 0x80
RLE_COUNT_MASK = 0x7F

Pixel = Tuple[int, int, int, int]

_BYTES_PER_PIXEL = {
    (True, 8): 1,
    (True, 16): 2,
    (False, 16): 2,
    (False, 24): 3,
    (False, 32): 4,
}


def _expand5(value: int) -> int:
    return (value << 3) | (value >> 2)


def _pixel_reader(data: bytes, grayscale: bool, bytes_per_pixel: int, has_alpha_bits: bool) -> Callable[[int], Pixel | None]:
    size = len(data)

    def read(offset: int) -> Pixel | None:
        if offset < 0 or offset + bytes_per_pixel > size:
            return None
        if grayscale:
            value = data[offset]
            alpha = data[offset + 1] if bytes_per_pixel == 2 else 255
            return value, value, value, alpha
        if bytes_per_pixel == 2:
            raw = data[offset] | (data[offset + 1] << 8)
            alpha = 255 if not has_alpha_bits or raw & 0x8000 else 0
            return (
                _expand5((raw >> 10) & 0x1F),
                _expand5((raw >> 5) & 0x1F),
                _expand5(raw & 0x1F),
                alpha,
            )
        if bytes_per_pixel == 3:
            return data[offset + 2], data[offset + 1], data[offset], 255
        return data[offset + 2], data[offset + 1], data[offset], data[offset + 3]

    return read


def decode(data: bytes, file_name: str | None = None) -> DecodedBitmap | None:
    if len(data) < HEADER_SIZE:
        return None

    id_length = data[0]
    color_map_type = data[1]
    image_type = data[2]
    if color_map_type != 0:
        return None
    if image_type not in (TYPE_TRUE_COLOR, TYPE_GRAYSCALE, TYPE_RLE_TRUE_COLOR, TYPE_RLE_GRAYSCALE):
        return None

    color_map_length = read_uint16(data, 5)
    color_map_bytes = checked_mul(color_map_length, (data[7] + 7) // 8)
    pixel_data_offset = checked_add(HEADER_SIZE, id_length, color_map_bytes)
    if pixel_data_offset is None or pixel_data_offset > len(data):
        return None

    width = read_uint16(data, 12)
    height = read_uint16(data, 14)
    if not width or not height:
        return None

    grayscale = image_type in (TYPE_GRAYSCALE, TYPE_RLE_GRAYSCALE)
    rle = image_type in (TYPE_RLE_TRUE_COLOR, TYPE_RLE_GRAYSCALE)
    bytes_per_pixel = _BYTES_PER_PIXEL.get((grayscale, data[16]))
    if bytes_per_pixel is None:
        return None

    descriptor = data[17]
    origin_top = bool(descriptor & DESCRIPTOR_TOP_ORIGIN)
    origin_left = not descriptor & DESCRIPTOR_RIGHT_ORIGIN
    read_pixel = _pixel_reader(data, grayscale, bytes_per_pixel, bool(descriptor & DESCRIPTOR_ALPHA_BITS))

    pixel_count = checked_mul(width, height)
    rgba_size = checked_mul(pixel_count, 4)
    if rgba_size is None:
        return None

    # Size the input before allocating the output.
    if rle:
        # One packet is a header byte plus at least one pixel and covers at most 128 pixels.
        packets = (len(data) - pixel_data_offset) // (1 + bytes_per_pixel)
        if pixel_count > packets * (RLE_COUNT_MASK + 1):
            return None
    else:
        needed = checked_add(pixel_data_offset, checked_mul(pixel_count, bytes_per_pixel))
        if needed is None or needed > len(data):
            return None

    rgba = bytearray(rgba_size)

    def store(pixel: Pixel, index: int) -> bool:
        if index >= pixel_count:
            return False
        x, y = index % width, index // width
        target_x = x if origin_left else width - 1 - x
        target_y = y if origin_top else height - 1 - y
        start = (target_y * width + target_x) * 4
        rgba[start : start + 4] = bytes(pixel)
        return True

    source = pixel_data_offset
    written = 0

    while written < pixel_count:
        if rle:
            if source >= len(data):
                return None
            header = data[source]
            source += 1
            run = (header & RLE_COUNT_MASK) + 1
            if header & RLE_REPEAT_FLAG:
                pixel = read_pixel(source)
                if pixel is None:
                    return None
                source += bytes_per_pixel
                # Runs spilling past the last pixel are clipped.
                for _ in range(min(run, pixel_count - written)):
                    store(pixel, written)
                    written += 1
                continue
        else:
            run = pixel_count

        for _ in range(run):
            pixel = read_pixel(source)
            if pixel is None or not store(pixel, written):
                return None
            written += 1
            source += bytes_per_pixel

    if written != pixel_count:
        return None
    return DecodedBitmap(width, height, bytes(rgba))
