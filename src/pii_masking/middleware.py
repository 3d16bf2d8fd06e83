"""Masking middleware: glue between detection and the effect engine.

Usage:

    mw = MaskingMiddleware.create()
    for outcome in mw.process(spans):
        if outcome.result.success:
            composite(outcome.span.ref, outcome.result.buffer)
        else:
            replace_text(outcome.span.ref, outcome.fallback_text)

One effect is chosen per span (the strongest among its matches). If the
span cannot be rasterized, the matched characters are masked instead.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .detector import Detector
from .effects import DEFAULT_MOSAIC_BLOCK, DEFAULT_PIXELATE_BLOCK, MaskingEffectEngine
from .types import EffectKind, EffectOptions, MaskingResult, Match, Settings, TextSpan

logger = logging.getLogger(__name__)

# Strongest first
EFFECT_STRENGTH: tuple[EffectKind, ...] = (
    EffectKind.BLACKOUT,
    EffectKind.PIXELATE,
    EffectKind.MOSAIC,
    EffectKind.BLUR,
)

MASK_CHARACTERS: dict[EffectKind, str] = {
    EffectKind.MOSAIC: "█",
    EffectKind.BLUR: "•",
    EffectKind.BLACKOUT: "█",
    EffectKind.PIXELATE: "▓",
}


def primary_effect(matches: Iterable[Match]) -> EffectKind:
    """Strongest effect requested by any of the matches (blur if none)."""
    requested = {m.effect for m in matches}
    for effect in EFFECT_STRENGTH:
        if effect in requested:
            return effect
    return EffectKind.BLUR


def mask_characters(text: str, matches: Sequence[Match]) -> str:
    """Overwrite each match with its effect's mask character."""
    out = text
    # Right-to-left so earlier offsets stay valid
    for m in sorted(matches, key=lambda m: m.start, reverse=True):
        char = MASK_CHARACTERS.get(m.effect, "*")
        out = out[:m.start] + char * len(m.text) + out[m.end:]
    return out


def effect_options(effect: EffectKind) -> EffectOptions:
    if effect is EffectKind.MOSAIC:
        return EffectOptions(block_size=DEFAULT_MOSAIC_BLOCK)
    if effect is EffectKind.PIXELATE:
        return EffectOptions(block_size=DEFAULT_PIXELATE_BLOCK)
    return EffectOptions()


@dataclass(slots=True)
class SpanMasking:
    """Outcome for one span that had at least one match."""
    span: TextSpan
    matches: list[Match]
    effect: EffectKind
    result: MaskingResult
    fallback_text: str | None = None      # set when the pixel path failed


@dataclass
class MaskingMiddleware:
    """Runs a detection pass and masks every span that matched."""

    detector: Detector
    engine: MaskingEffectEngine
    log: logging.Logger | logging.LoggerAdapter = field(default=logger, repr=False)
    _in_flight: bool = field(default=False, init=False, repr=False)
    _stats: dict[str, int] = field(
        default_factory=lambda: {"passes": 0, "masked_spans": 0, "fallbacks": 0},
        init=False, repr=False,
    )

    @classmethod
    def create(cls, *, settings: Settings | None = None) -> "MaskingMiddleware":
        """Factory: fresh detector and engine."""
        return cls(detector=Detector(settings), engine=MaskingEffectEngine())

    def update_settings(self, settings: Settings) -> None:
        self.detector.update_settings(settings)

    def process(self, spans: Iterable[TextSpan]) -> list[SpanMasking]:
        """Detect and mask. Returns an empty list when disabled or busy."""
        settings = self.detector.settings
        if not settings.enabled:
            self.log.debug("Masking disabled, skipping pass")
            return []
        if self._in_flight:
            self.log.debug("A pass is already running, skipping")
            return []

        self._in_flight = True
        try:
            groups = self.detector.detect_grouped(spans)
            outcomes = [self._mask_span(span, matches) for span, matches in groups]
        finally:
            self._in_flight = False

        self._stats["passes"] += 1
        self._stats["masked_spans"] += len(outcomes)
        self.log.info("Masked %d span(s) with %d match(es)",
                      len(outcomes), sum(len(o.matches) for o in outcomes))
        return outcomes

    def redact_text(self, text: str) -> str:
        """Character-mask a single string (convenience)."""
        return mask_characters(text, self.detector.detect_text(text))

    def _mask_span(self, span: TextSpan, matches: list[Match]) -> SpanMasking:
        effect = primary_effect(matches)
        result = self.engine.mask_text(
            span.text, span.style, span.width, span.height, effect,
            effect_options(effect), original=span.ref,
        )
        outcome = SpanMasking(span=span, matches=matches, effect=effect, result=result)
        if not result.success:
            self._stats["fallbacks"] += 1
            self.log.warning("Falling back to character masking: %s", result.error)
            outcome.fallback_text = mask_characters(span.text, matches)
        return outcome

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

