"""Text rasterization surface.

The effect engine only needs something with ``render(text, style, width,
height) -> PixelBuffer``. ``PillowRasterizer`` is the stock one; callers
with their own rendering surface (a browser canvas bridge, a GUI toolkit)
can pass any object with the same method.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, ImageColor, ImageDraw, ImageFont

from .effects import PixelBuffer
from .errors import RasterizationError

_BOLD_WEIGHTS = frozenset({"bold", "bolder", "600", "700", "800", "900"})


@dataclass(frozen=True, slots=True)
class TextStyle:
    """The subset of computed text style the rasterizer honours."""
    font_family: str = "DejaVuSans.ttf"
    font_size: int = 16
    font_weight: str = "normal"
    color: str = "#000000"


class Rasterizer(Protocol):
    def render(self, text: str, style: TextStyle, width: int, height: int) -> PixelBuffer: ...


class PillowRasterizer:
    """Draws text top-left aligned onto a transparent RGBA canvas."""

    __slots__ = ("_fonts",)

    def __init__(self) -> None:
        self._fonts: dict[tuple[str, int, str], ImageFont.ImageFont | ImageFont.FreeTypeFont] = {}

    def _font(self, style: TextStyle) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        key = (style.font_family, style.font_size, style.font_weight)
        font = self._fonts.get(key)
        if font is None:
            try:
                font = ImageFont.truetype(style.font_family, style.font_size)
            except OSError:
                # Family not installed; Pillow's bundled font still gives usable shapes
                font = ImageFont.load_default()
            self._fonts[key] = font
        return font

    def render(self, text: str, style: TextStyle, width: int, height: int) -> PixelBuffer:
        if width <= 0 or height <= 0:
            raise RasterizationError(f"cannot rasterize into {width}x{height}")
        try:
            fill = ImageColor.getrgb(style.color)
        except ValueError as exc:
            raise RasterizationError(f"unknown text color {style.color!r}") from exc
        if len(fill) == 3:
            fill = (*fill, 255)

        image = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(image)
        font = self._font(style)
        # Fake bold with a 1px stroke; bitmap fonts cannot stroke
        bold = style.font_weight in _BOLD_WEIGHTS and isinstance(font, ImageFont.FreeTypeFont)
        if bold:
            draw.text((0, 0), text, font=font, fill=fill, stroke_width=1, stroke_fill=fill)
        else:
            draw.text((0, 0), text, font=font, fill=fill)
        return PixelBuffer(width, height, image.tobytes())
