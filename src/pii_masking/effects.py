"""Masking effect engine: deterministic pixel transforms over RGBA buffers.

Four transforms, each returning a new buffer of the same size:

    mosaic    tile mean (all four channels)
    pixelate  tile top-left pixel
    blur      box blur, edge pixels replicated
    blackout  opaque black

Usage:
    engine = MaskingEffectEngine()
    masked = engine.apply(buffer, EffectKind.MOSAIC, EffectOptions(block_size=4))

    # or render text first (needs a rasterizer, Pillow by default)
    result = engine.mask_text("090-1234-5678", TextStyle(), 120, 20, EffectKind.BLUR)
    if not result.success:
        ...  # fall back to character masking
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import numpy as np

from .types import EffectKind, EffectOptions, MaskingResult

if TYPE_CHECKING:
    from .rasterize import Rasterizer, TextStyle

logger = logging.getLogger(__name__)

CHANNELS = 4

DEFAULT_MOSAIC_BLOCK = 8
DEFAULT_PIXELATE_BLOCK = 6
DEFAULT_BLUR_RADIUS = 3


@dataclass(frozen=True, slots=True)
class PixelBuffer:
    """Row-major RGBA8 pixels. ``len(data)`` is always ``width * height * 4``."""
    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"negative buffer size {self.width}x{self.height}")
        object.__setattr__(self, "data", bytes(self.data))
        expected = self.width * self.height * CHANNELS
        if len(self.data) != expected:
            raise ValueError(
                f"buffer of {self.width}x{self.height} needs {expected} bytes, got {len(self.data)}"
            )

    @classmethod
    def filled(cls, width: int, height: int, rgba: tuple[int, int, int, int]) -> PixelBuffer:
        return cls(width, height, bytes(rgba) * (width * height))

    @classmethod
    def from_array(cls, array: np.ndarray) -> PixelBuffer:
        """Build from an ``(height, width, 4)`` array; values are clipped to 0–255."""
        if array.ndim != 3 or array.shape[2] != CHANNELS:
            raise ValueError(f"expected (height, width, 4) array, got shape {array.shape}")
        height, width = array.shape[:2]
        pixels = np.clip(array, 0, 255).astype(np.uint8)
        return cls(width, height, pixels.tobytes())

    def to_array(self) -> np.ndarray:
        """Read-only ``(height, width, 4)`` uint8 view of the pixels."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, CHANNELS)

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        i = (y * self.width + x) * CHANNELS
        return tuple(self.data[i:i + CHANNELS])  # type: ignore[return-value]

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


def _round(values: np.ndarray) -> np.ndarray:
    # Half-to-even, then clamp into a byte
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def _tile_edges(size: int, block: int) -> tuple[np.ndarray, np.ndarray]:
    """Tile start offsets along one axis and the (clipped) extent of each tile."""
    starts = np.arange(0, size, block)
    extents = np.diff(np.append(starts, size))
    return starts, extents


def _expand(tiles: np.ndarray, row_extents: np.ndarray, col_extents: np.ndarray) -> np.ndarray:
    return np.repeat(np.repeat(tiles, row_extents, axis=0), col_extents, axis=1)


class MaskingEffectEngine:
    """Pixel transforms plus an optional rasterize-then-mask helper.

    The transforms are pure. The only state is the rasterizer surface,
    created on first use from ``rasterizer_factory`` and then reused.
    """

    def __init__(self, rasterizer_factory: Callable[[], Rasterizer] | None = None) -> None:
        if rasterizer_factory is None:
            from .rasterize import PillowRasterizer
            rasterizer_factory = PillowRasterizer
        self._rasterizer_factory = rasterizer_factory
        self._rasterizer: Rasterizer | None = None

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def mosaic(self, buffer: PixelBuffer, block_size: int = DEFAULT_MOSAIC_BLOCK) -> PixelBuffer:
        """Replace each tile with its per-channel mean."""
        if buffer.is_empty:
            return buffer
        block = max(1, int(block_size))
        pixels = buffer.to_array().astype(np.int64)
        row_starts, row_extents = _tile_edges(buffer.height, block)
        col_starts, col_extents = _tile_edges(buffer.width, block)
        sums = np.add.reduceat(np.add.reduceat(pixels, row_starts, axis=0), col_starts, axis=1)
        counts = np.outer(row_extents, col_extents)[..., np.newaxis]
        means = _round(sums / counts)
        return PixelBuffer.from_array(_expand(means, row_extents, col_extents))

    def pixelate(self, buffer: PixelBuffer, block_size: int = DEFAULT_PIXELATE_BLOCK) -> PixelBuffer:
        """Replace each tile with its top-left pixel."""
        if buffer.is_empty:
            return buffer
        block = max(1, int(block_size))
        pixels = buffer.to_array()
        _, row_extents = _tile_edges(buffer.height, block)
        _, col_extents = _tile_edges(buffer.width, block)
        corners = pixels[::block, ::block]
        return PixelBuffer.from_array(_expand(corners, row_extents, col_extents))

    def blur(self, buffer: PixelBuffer, radius: int = DEFAULT_BLUR_RADIUS) -> PixelBuffer:
        """Box blur over a (2r+1)² window with clamped coordinates."""
        if buffer.is_empty:
            return buffer
        r = max(0, int(radius))
        if r == 0:
            return PixelBuffer(buffer.width, buffer.height, buffer.data)
        k = 2 * r + 1
        padded = np.pad(buffer.to_array().astype(np.int64), ((r, r), (r, r), (0, 0)), mode="edge")
        # Summed-area table with a leading zero row and column
        table = np.zeros((padded.shape[0] + 1, padded.shape[1] + 1, CHANNELS), dtype=np.int64)
        table[1:, 1:] = padded.cumsum(axis=0).cumsum(axis=1)
        h, w = buffer.height, buffer.width
        window = table[k:k + h, k:k + w] - table[:h, k:k + w] - table[k:k + h, :w] + table[:h, :w]
        return PixelBuffer.from_array(_round(window / (k * k)))

    def blackout(self, buffer: PixelBuffer) -> PixelBuffer:
        """Opaque black everywhere, whatever the input."""
        return PixelBuffer.filled(buffer.width, buffer.height, (0, 0, 0, 255))

    def apply(
        self,
        buffer: PixelBuffer,
        effect: EffectKind,
        options: EffectOptions | None = None,
    ) -> PixelBuffer:
        """Dispatch to the transform for ``effect`` with option defaults."""
        options = options or EffectOptions()
        effect = EffectKind(effect)
        if effect is EffectKind.MOSAIC:
            return self.mosaic(buffer, options.block_size or DEFAULT_MOSAIC_BLOCK)
        if effect is EffectKind.PIXELATE:
            return self.pixelate(buffer, options.block_size or DEFAULT_PIXELATE_BLOCK)
        if effect is EffectKind.BLACKOUT:
            return self.blackout(buffer)
        radius = DEFAULT_BLUR_RADIUS if options.radius is None else options.radius
        return self.blur(buffer, radius)

    # ------------------------------------------------------------------
    # Rasterize then mask
    # ------------------------------------------------------------------

    def _surface(self) -> Rasterizer:
        if self._rasterizer is None:
            self._rasterizer = self._rasterizer_factory()
        return self._rasterizer

    def mask_text(
        self,
        text: str,
        style: TextStyle | None,
        width: int,
        height: int,
        effect: EffectKind,
        options: EffectOptions | None = None,
        *,
        original: Any = None,
    ) -> MaskingResult:
        """Render ``text`` into a ``width`` x ``height`` buffer and mask it.

        Never raises for rendering problems; the failure comes back as
        ``MaskingResult(success=False)`` with ``original`` untouched so
        the caller can fall back to something simpler.
        """
        if width <= 0 or height <= 0:
            return MaskingResult(
                success=False, original=original, error=f"invalid dimensions {width}x{height}",
            )
        try:
            effect = EffectKind(effect)
            if effect is EffectKind.BLACKOUT:
                source = PixelBuffer.filled(width, height, (0, 0, 0, 0))
            else:
                from .rasterize import TextStyle
                source = self._surface().render(text, style or TextStyle(), width, height)
            masked = self.apply(source, effect, options)
        except Exception as exc:  # surface and effect failures are reported, not raised
            logger.warning("Rasterized masking failed for %d char(s): %s", len(text), exc)
            return MaskingResult(success=False, original=original, error=str(exc))
        return MaskingResult(success=True, original=original, buffer=masked)
