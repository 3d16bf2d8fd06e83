"""Detector: the main API for finding PII in text spans.

Usage:
    from pii_masking import Detector, Settings, TextSpan

    detector = Detector(Settings())
    matches = detector.detect([TextSpan("Contact: test@example.com", ref="p1")])
    matches[0].type, matches[0].start, matches[0].end   # ("email", 9, 25)

Each raw regex hit goes through a structural validator and then the
confidence policy for the configured sensitivity. Overlapping survivors
within a span are collapsed to one match per cluster.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .patterns import (
    CompiledPattern,
    PatternRegistry,
    default_registry,
    digits_only,
    is_japanese_name_text,
    is_likely_pii,
)
from .types import DetectionContext, EffectKind, Match, Sensitivity, Settings, TextSpan

logger = logging.getLogger(__name__)

# Element kinds that are trusted at medium sensitivity without other evidence
HIGH_CONFIDENCE_ELEMENTS = frozenset({"input", "textarea", "span", "div"})

# Tie-break for equal-length overlaps; lower wins. Types not listed
# rank after every listed type.
TYPE_PRIORITY: dict[str, int] = {
    "creditCard": 0,
    "myNumber": 1,
    "email": 2,
    "phone": 3,
    "address": 4,
    "japaneseName": 5,
}
UNLISTED_PRIORITY = len(TYPE_PRIORITY)

DEFAULT_EFFECT = EffectKind.BLUR

_NEARBY_LIMIT = 2
_REPEATED_DIGIT = re.compile(r"^(\d)\1+$")


# ----------------------------------------------------------------------
# Structural validators
# ----------------------------------------------------------------------

def luhn_check(number: str) -> bool:
    """Luhn checksum over a string of decimal digits."""
    total = 0
    for i, ch in enumerate(reversed(number)):
        d = int(ch)
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def is_valid_email(text: str) -> bool:
    parts = text.split("@")
    if len(parts) != 2:
        return False
    local, domain = parts
    return bool(local) and bool(domain) and "." in domain


def is_valid_phone(text: str) -> bool:
    digits = digits_only(text)
    if not 10 <= len(digits) <= 11 or not digits.isdigit():
        return False
    return not digits.startswith("0000") and digits.strip("0") != ""


def is_valid_credit_card(text: str) -> bool:
    digits = digits_only(text)
    if not 13 <= len(digits) <= 19 or not digits.isascii() or not digits.isdigit():
        return False
    if _REPEATED_DIGIT.match(digits):
        return False
    return luhn_check(digits)


_VALIDATORS: dict[str, Callable[[str], bool]] = {
    "email": is_valid_email,
    "phone": is_valid_phone,
    "creditCard": is_valid_credit_card,
    "japaneseName": is_japanese_name_text,
}


def is_structurally_valid(text: str, pattern_type: str) -> bool:
    """Type-specific sanity check. Types without a validator always pass."""
    validator = _VALIDATORS.get(pattern_type)
    return validator is None or validator(text)


# ----------------------------------------------------------------------
# Context
# ----------------------------------------------------------------------

def build_context(span: TextSpan) -> DetectionContext:
    """Flatten a span's surroundings into lower-cased context strings."""
    before = list(span.preceding or ())[-_NEARBY_LIMIT:]
    after = list(span.following or ())[:_NEARBY_LIMIT]
    return DetectionContext(
        raw_text=span.text,
        element_kind=str(span.element_kind or "").lower(),
        form_field_hints=" ".join(str(h) for h in span.form_hints or () if h).lower(),
        nearby_text=" ".join(str(t) for t in before + after if t).lower(),
    )


def has_pii_context(context: DetectionContext) -> bool:
    """Keyword corroboration from form hints, or nearby text if there are none."""
    return is_likely_pii(context.form_field_hints or context.nearby_text)


def passes_confidence(context: DetectionContext, sensitivity: Sensitivity) -> bool:
    if sensitivity is Sensitivity.HIGH:
        return True
    if sensitivity is Sensitivity.LOW:
        return has_pii_context(context)
    return has_pii_context(context) or context.element_kind in HIGH_CONFIDENCE_ELEMENTS


# ----------------------------------------------------------------------
# Overlap resolution
# ----------------------------------------------------------------------

def type_rank(pattern_type: str) -> int:
    return TYPE_PRIORITY.get(pattern_type, UNLISTED_PRIORITY)


def resolve_overlaps(matches: Sequence[Match], order: dict[str, int] | None = None) -> list[Match]:
    """Keep one match per cluster of intersecting intervals.

    Longest text wins, then the type priority table, then the earliest
    start, then ``order`` (pattern registration order). Input must all
    belong to one span. Output is sorted by start.
    """
    if not matches:
        return []
    order = order or {}

    def preference(m: Match) -> tuple[int, int, int, int]:
        return (-len(m.text), type_rank(m.type), m.start, order.get(m.type, len(order)))

    ordered = sorted(matches, key=lambda m: (m.start, m.end))
    kept: list[Match] = []
    cluster: list[Match] = [ordered[0]]
    cluster_end = ordered[0].end
    for m in ordered[1:]:
        if m.start < cluster_end:
            cluster.append(m)
            cluster_end = max(cluster_end, m.end)
            continue
        kept.append(min(cluster, key=preference))
        cluster = [m]
        cluster_end = m.end
    kept.append(min(cluster, key=preference))
    return kept


# ----------------------------------------------------------------------
# Detector
# ----------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class _State:
    settings: Settings
    registry: PatternRegistry
    patterns: tuple[CompiledPattern, ...]
    order: dict[str, int]


class Detector:
    """Pattern-based PII detector.

    Holds a settings snapshot and the pattern list derived from it as a
    single immutable state object; ``update_settings`` swaps both at once.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: PatternRegistry | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._default_registry = registry
        self._log = log or logger
        self._state = self._build_state(settings or Settings())

    @property
    def settings(self) -> Settings:
        return self._state.settings

    @property
    def registry(self) -> PatternRegistry:
        """Registry the current patterns were drawn from."""
        return self._state.registry

    def update_settings(self, settings: Settings) -> None:
        """Replace settings and patterns; effective for the next ``detect``."""
        self._state = self._build_state(settings)

    def _registry_for(self, settings: Settings) -> PatternRegistry:
        if settings.patterns:
            return PatternRegistry(settings.patterns)
        if self._default_registry is not None:
            return self._default_registry
        return default_registry()

    def _build_state(self, settings: Settings) -> _State:
        registry = self._registry_for(settings)
        active = tuple(
            p for p in registry.compiled()
            if settings.patterns_enabled.get(p.name, p.descriptor.enabled)
        )
        order = {p.name: i for i, p in enumerate(registry.compiled())}
        self._log.debug("Active patterns: %s", [p.name for p in active])
        return _State(settings=settings, registry=registry, patterns=active, order=order)

    def detect(self, spans: Iterable[TextSpan]) -> list[Match]:
        """Find, validate, filter and de-overlap PII across spans.

        Results are grouped by span in input order, then sorted by start
        offset. Blank or non-text spans contribute nothing.
        """
        return [m for _, matches in self.detect_grouped(spans) for m in matches]

    def detect_grouped(self, spans: Iterable[TextSpan]) -> list[tuple[TextSpan, list[Match]]]:
        """Like ``detect`` but keeps each span paired with its own matches.

        Only spans with at least one match are returned.
        """
        state = self._state
        groups: list[tuple[TextSpan, list[Match]]] = []
        span_count = match_count = 0
        for index, span in enumerate(spans):
            span_count += 1
            if not isinstance(span, TextSpan):
                self._log.debug("Skipping span %d: not a TextSpan (%s)", index, type(span).__name__)
                continue
            text = span.text
            if not isinstance(text, str) or not text.strip():
                continue
            context = build_context(span)
            candidates = self._detect_in_span(span, context, state)
            resolved = resolve_overlaps(candidates, state.order)
            if resolved:
                self._log.debug("Span %d: %d match(es) after overlap resolution", index, len(resolved))
                groups.append((span, resolved))
                match_count += len(resolved)

        self._log.debug("Detection pass: %d span(s), %d match(es)", span_count, match_count)
        return groups

    def detect_text(self, text: str, *, element_kind: str = "") -> list[Match]:
        """Convenience for a single bare string."""
        return self.detect([TextSpan(text, element_kind=element_kind)])

    def _detect_in_span(self, span: TextSpan, context: DetectionContext, state: _State) -> list[Match]:
        settings = state.settings
        matches: list[Match] = []
        for pattern in state.patterns:
            for m in pattern.regex.finditer(context.raw_text):
                found = m.group()
                if not found:
                    continue
                if not is_structurally_valid(found, pattern.name):
                    self._log.debug("Rejected %s candidate %r: failed validation", pattern.name, found)
                    continue
                if not passes_confidence(context, settings.sensitivity):
                    self._log.debug("Rejected %s candidate %r: not enough context", pattern.name, found)
                    continue
                matches.append(Match(
                    text=found,
                    start=m.start(),
                    end=m.end(),
                    type=pattern.name,
                    effect=settings.per_type_effect.get(pattern.name, DEFAULT_EFFECT),
                    span_ref=span.ref,
                ))
        return matches
