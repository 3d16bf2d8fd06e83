"""Tests for the masking middleware (detection + effects + fallback)."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from pii_masking import (
    Detector,
    MaskingEffectEngine,
    MaskingMiddleware,
    PixelBuffer,
    RasterizationError,
    Settings,
    TextSpan,
)
from pii_masking.middleware import mask_characters, primary_effect
from pii_masking.types import EffectKind, Match


class UniformRasterizer:
    def render(self, text, style, width, height):
        return PixelBuffer.filled(width, height, (255, 255, 255, 255))


class BrokenRasterizer:
    def render(self, text, style, width, height):
        raise RasterizationError("no canvas")


def _middleware(settings=None, rasterizer=UniformRasterizer):
    return MaskingMiddleware(
        detector=Detector(settings),
        engine=MaskingEffectEngine(rasterizer_factory=rasterizer),
    )


def _match(effect, start=0, end=1, text="x"):
    return Match(text=text, start=start, end=end, type="t", effect=effect)


# ── Helpers ──────────────────────────────────────────────────────────

def test_primary_effect_strongest_wins():
    assert primary_effect([_match(EffectKind.BLUR), _match(EffectKind.PIXELATE)]) is EffectKind.PIXELATE
    assert primary_effect([_match(EffectKind.MOSAIC), _match(EffectKind.BLACKOUT)]) is EffectKind.BLACKOUT
    assert primary_effect([]) is EffectKind.BLUR


def test_mask_characters():
    text = "Mail a@b.co or 090-1234-5678"
    matches = [
        Match("a@b.co", 5, 11, "email", EffectKind.BLUR),
        Match("090-1234-5678", 15, 28, "phone", EffectKind.PIXELATE),
    ]
    assert mask_characters(text, matches) == "Mail •••••• or ▓▓▓▓▓▓▓▓▓▓▓▓▓"


# ── process ──────────────────────────────────────────────────────────

def test_process_masks_matching_spans_only():
    mw = _middleware(Settings(per_type_effect={"email": EffectKind.MOSAIC}))
    spans = [
        TextSpan("nothing to see", ref="a", width=20, height=10),
        TextSpan("mail a@b.co", ref="b", width=20, height=10),
    ]
    outcomes = mw.process(spans)
    assert len(outcomes) == 1
    out = outcomes[0]
    assert out.span.ref == "b"
    assert out.effect is EffectKind.MOSAIC
    assert out.result.success
    assert out.result.original == "b"
    assert out.result.buffer.pixel(0, 0) == (255, 255, 255, 255)
    assert out.fallback_text is None


def test_process_picks_strongest_effect_per_span():
    settings = Settings(per_type_effect={"email": EffectKind.BLUR, "phone": EffectKind.BLACKOUT})
    mw = _middleware(settings)
    outcomes = mw.process([TextSpan("a@b.co 090-1234-5678", width=4, height=4)])
    assert outcomes[0].effect is EffectKind.BLACKOUT
    assert outcomes[0].result.buffer.pixel(3, 3) == (0, 0, 0, 255)


def test_process_falls_back_to_characters():
    mw = _middleware(rasterizer=BrokenRasterizer)
    outcomes = mw.process([TextSpan("mail a@b.co", ref="n", width=20, height=10)])
    out = outcomes[0]
    assert not out.result.success
    assert "no canvas" in out.result.error
    assert out.fallback_text == "mail ••••••"
    assert mw.stats["fallbacks"] == 1


def test_process_without_box_falls_back():
    mw = _middleware()
    outcomes = mw.process([TextSpan("mail a@b.co")])
    assert outcomes[0].fallback_text == "mail ••••••"


def test_process_disabled():
    mw = _middleware(Settings(enabled=False))
    assert mw.process([TextSpan("mail a@b.co", width=5, height=5)]) == []


def test_process_skips_reentrant_pass():
    mw = _middleware()
    mw._in_flight = True
    assert mw.process([TextSpan("mail a@b.co", width=5, height=5)]) == []
    mw._in_flight = False
    assert len(mw.process([TextSpan("mail a@b.co", width=5, height=5)])) == 1


def test_update_settings_forwards_to_detector():
    mw = _middleware()
    mw.update_settings(Settings(patterns_enabled={"email": False}))
    assert mw.process([TextSpan("mail a@b.co", width=5, height=5)]) == []


def test_redact_text_and_stats():
    mw = MaskingMiddleware.create()
    assert mw.redact_text("Contact: test@example.com") == "Contact: " + "•" * 16
    mw.process([TextSpan("call 090-1234-5678")])
    assert mw.stats["passes"] == 1
    assert mw.stats["masked_spans"] == 1
