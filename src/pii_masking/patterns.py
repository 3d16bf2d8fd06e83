"""Pattern registry: the shipped PII pattern set and its coarse filters.

Patterns are compiled once when registered. A source that does not
compile is a configuration error: it is recorded on the registry,
logged, and the pattern stays disabled for the rest of the session.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Sequence

from .errors import PatternConfigError
from .types import EffectKind, PatternDescriptor

logger = logging.getLogger(__name__)

# \b and \d follow ASCII rules so a boundary exists between kanji and digits.
PATTERN_FLAGS = re.ASCII

# Whitespace including the ideographic space; \s is ASCII-only under PATTERN_FLAGS
_WS = r"\t\n\v\f\r \u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"

DEFAULT_PATTERNS: tuple[PatternDescriptor, ...] = (
    PatternDescriptor(
        "email",
        r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
        EffectKind.BLUR,
    ),
    # Landline, mobile and toll-free numbers, with or without +81
    PatternDescriptor(
        "phone",
        r"(?:(?:\+81|0)[" + _WS + r"]?(?:\d{1,4}[-" + _WS + r"]?)?\d{1,4}[-" + _WS + r"]?\d{4}"
        r"|\d{3,4}[-" + _WS + r"]?\d{1,4}[-" + _WS + r"]?\d{4})",
        EffectKind.MOSAIC,
    ),
    # Visa, MasterCard, AmEx, Discover prefixes
    PatternDescriptor(
        "creditCard",
        r"\b(?:4\d{3}|5[1-5]\d{2}|3[47]\d{2}|6011)[" + _WS + r"-]?\d{4}[" + _WS + r"-]?\d{4}"
        r"[" + _WS + r"-]?\d{4}\b",
        EffectKind.PIXELATE,
    ),
    PatternDescriptor(
        "postalCode",
        r"\b\d{3}[-" + _WS + r"]?\d{4}\b",
        EffectKind.BLACKOUT,
    ),
    # Family name + given name, followed by an honorific, whitespace or end
    PatternDescriptor(
        "japaneseName",
        r"[一-龯々〇]{1,4}[" + _WS + r"]*[一-龯々〇]{1,4}(?=[さん|様|氏|君|ちゃん|くん]|$|[" + _WS + r"])",
        EffectKind.BLUR,
    ),
    # Prefecture, then municipality, then block number
    PatternDescriptor(
        "address",
        r"[都道府県].*?[市区町村郡][一-龯0-9一二三四五六七八九十百千]+(?:丁目|番地|号)?",
        EffectKind.BLACKOUT,
    ),
    PatternDescriptor(
        "myNumber",
        r"\b\d{4}[" + _WS + r"-]?\d{4}[" + _WS + r"-]?\d{4}\b",
        EffectKind.BLACKOUT,
    ),
    PatternDescriptor(
        "birthDate",
        r"(?:19|20)\d{2}[年/-](?:0?[1-9]|1[0-2])[月/-](?:0?[1-9]|[12]\d|3[01])[日]?",
        EffectKind.BLUR,
    ),
    PatternDescriptor(
        "ipAddress",
        r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
        r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b",
        EffectKind.BLUR,
        enabled=False,
    ),
    # Too many false positives to be on by default
    PatternDescriptor(
        "bankAccount",
        r"\b\d{7}\b",
        EffectKind.PIXELATE,
        enabled=False,
    ),
)

# Keywords that suggest nearby text is personal information
FORM_KEYWORDS: tuple[str, ...] = (
    "名前", "name", "email", "phone", "電話", "住所", "address", "birthday",
)
PII_KEYWORDS: tuple[str, ...] = (
    "個人情報", "氏名", "連絡先", "生年月日", "プロフィール",
)

_JAPANESE_NAME_CHARS = re.compile(r"^[一-龯々〇ぁ-ゖァ-ヺ]+$")
_SEPARATORS = re.compile(r"[-\s]")


def digits_only(text: str) -> str:
    """Strip hyphen and whitespace separators."""
    return _SEPARATORS.sub("", text)


def is_japanese_name_text(text: str) -> bool:
    """2–8 code points, all kanji, hiragana or katakana."""
    return 2 <= len(text) <= 8 and _JAPANESE_NAME_CHARS.match(text) is not None


def is_likely_pii(context: str) -> bool:
    """True when the context mentions a name/contact/address style keyword."""
    lowered = context.lower()
    return any(k in lowered for k in FORM_KEYWORDS) or any(k in lowered for k in PII_KEYWORDS)


def filter_false_positives(candidates: Iterable[str], pattern_type: str) -> list[str]:
    """Coarse per-type filter over raw candidate strings."""
    if pattern_type == "phone":
        return [c for c in candidates
                if 10 <= len(digits_only(c)) <= 11 and not digits_only(c).startswith("0000")]
    if pattern_type == "creditCard":
        return [c for c in candidates
                if len(digits_only(c)) == 16 and not digits_only(c).startswith("0000")]
    if pattern_type == "japaneseName":
        return [c for c in candidates if is_japanese_name_text(c)]
    return list(candidates)


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    descriptor: PatternDescriptor
    regex: re.Pattern

    @property
    def name(self) -> str:
        return self.descriptor.name


class PatternRegistry:
    """Ordered set of named patterns, compiled at registration.

    Insertion order is kept; it is the last tie-break when two matches
    are otherwise equal.
    """

    __slots__ = ("_descriptors", "_compiled", "_errors")

    def __init__(self, descriptors: Iterable[PatternDescriptor] | None = None) -> None:
        self._descriptors: list[PatternDescriptor] = []
        self._compiled: dict[str, CompiledPattern] = {}
        self._errors: list[PatternConfigError] = []
        for descriptor in DEFAULT_PATTERNS if descriptors is None else descriptors:
            self.register(descriptor)

    def register(self, descriptor: PatternDescriptor) -> CompiledPattern | None:
        """Compile and add a pattern. Returns None if it could not be used."""
        if self.by_name(descriptor.name) is not None:
            err = PatternConfigError(descriptor.name, descriptor.source, "duplicate pattern name")
            self._errors.append(err)
            logger.warning("Ignoring %s", err)
            return None

        self._descriptors.append(descriptor)
        try:
            regex = re.compile(descriptor.source, PATTERN_FLAGS)
        except re.error as exc:
            err = PatternConfigError(descriptor.name, descriptor.source, str(exc))
            self._errors.append(err)
            logger.warning("Disabling pattern for this session: %s", err)
            return None

        compiled = CompiledPattern(descriptor, regex)
        self._compiled[descriptor.name] = compiled
        return compiled

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def all(self) -> list[PatternDescriptor]:
        return list(self._descriptors)

    def enabled(self) -> list[PatternDescriptor]:
        """Descriptors flagged enabled whose source compiled."""
        return [d for d in self._descriptors if d.enabled and d.name in self._compiled]

    def by_name(self, name: str) -> PatternDescriptor | None:
        for d in self._descriptors:
            if d.name == name:
                return d
        return None

    def compiled(self) -> list[CompiledPattern]:
        """Every usable pattern in registry order, regardless of its enabled flag."""
        return [self._compiled[d.name] for d in self._descriptors if d.name in self._compiled]

    @property
    def errors(self) -> Sequence[PatternConfigError]:
        return tuple(self._errors)

    def __len__(self) -> int:
        return len(self._descriptors)


@lru_cache(maxsize=1)
def default_registry() -> PatternRegistry:
    """The shipped pattern set. Shared, so treat it as read-only."""
    return PatternRegistry()
