"""Overflow and bounds checked integer helpers.

Stored values are signed 32-bit little-endian integers.  Arithmetic on them is
done with Python integers but results outside of the signed 64-bit range are
rejected so a hostile header can never request an absurd allocation.  Every
helper returns ``None`` instead of raising so decoders can bail out with a
single ``if value is None`` check.
"""

from __future__ import annotations

import struct

INT64_MAX = (1 << 63) - 1
INT64_MIN = -(1 << 63)

_INT32 = struct.Struct("<i")
_UINT16 = struct.Struct("<H")


def _fits(value: int) -> int | None:
    if value > INT64_MAX or value < INT64_MIN:
        return None
    return value


def checked_add(*values: int | None) -> int | None:
    """Return the sum of *values* or ``None`` on overflow or a missing operand."""

    total = 0
    for value in values:
        if value is None:
            return None
        total = _fits(total + value)
        if total is None:
            return None
    return total


def checked_mul(*values: int | None) -> int | None:
    """Return the product of *values* or ``None`` on overflow or a missing operand."""

    product = 1
    for value in values:
        if value is None:
            return None
        product = _fits(product * value)
        if product is None:
            return None
    return product


def in_bounds(data_length: int, offset: int | None, length: int | None) -> bool:
    """Return True when ``[offset, offset + length)`` lies inside the buffer."""

    if offset is None or length is None or offset < 0 or length < 0:
        return False
    end = checked_add(offset, length)
    return end is not None and end <= data_length


def read_int32(data: bytes, offset: int) -> int | None:
    if not in_bounds(len(data), offset, 4):
        return None
    return _INT32.unpack_from(data, offset)[0]


def read_uint16(data: bytes, offset: int) -> int | None:
    if not in_bounds(len(data), offset, 2):
        return None
    return _UINT16.unpack_from(data, offset)[0]


def slice_checked(data: bytes, offset: int | None, length: int | None) -> bytes | None:
    """Return ``data[offset:offset + length]`` only when the range is valid."""

    if not in_bounds(len(data), offset, length):
        return None
    return bytes(data[offset : offset + length])
