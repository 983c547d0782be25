"""RGBA bitmap produced by every asset decoder."""

from __future__ import annotations

from dataclasses import dataclass

from PIL import Image


@dataclass(frozen=True)
class DecodedBitmap:
    """Row-major RGBA pixels with a top-left origin."""

    width: int
    height: int
    rgba: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("bitmap dimensions must be positive")
        if len(self.rgba) != self.width * self.height * 4:
            raise ValueError("RGBA buffer does not match the bitmap dimensions")

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        index = (y * self.width + x) * 4
        r, g, b, a = self.rgba[index : index + 4]
        return r, g, b, a

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.rgba)

    @classmethod
    def from_image(cls, image: Image.Image) -> "DecodedBitmap":
        rgba = image.convert("RGBA")
        return cls(rgba.width, rgba.height, rgba.tobytes())
