"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Hashable, Mapping

if TYPE_CHECKING:
    from .effects import PixelBuffer
    from .rasterize import TextStyle


class EffectKind(str, Enum):
    """Pixel transform used to obscure a region."""
    MOSAIC = "mosaic"
    BLUR = "blur"
    BLACKOUT = "blackout"
    PIXELATE = "pixelate"


class Sensitivity(str, Enum):
    """How much contextual corroboration a candidate needs."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class PatternDescriptor:
    """A named PII pattern as configured (uncompiled)."""
    name: str              # e.g. "email", "phone", "creditCard"
    source: str            # regular expression text
    default_effect: EffectKind = EffectKind.BLUR
    enabled: bool = True


@dataclass(frozen=True, slots=True)
class TextSpan:
    """A unit of text handed over by the orchestrator.

    ``ref`` is whatever the caller uses to find the rendered element
    again; the core never looks inside it.
    """
    text: str
    ref: Hashable = None
    element_kind: str = ""
    form_hints: tuple[str, ...] = ()     # labels, placeholders, name attrs
    preceding: tuple[str, ...] = ()      # sibling texts before, nearest last
    following: tuple[str, ...] = ()      # sibling texts after, nearest first
    style: TextStyle | None = None
    width: int = 0
    height: int = 0


@dataclass(frozen=True, slots=True)
class DetectionContext:
    raw_text: str
    element_kind: str
    form_field_hints: str
    nearby_text: str


@dataclass(frozen=True, slots=True)
class Match:
    """A single resolved PII match inside one span."""
    text: str
    start: int
    end: int               # exclusive
    type: str
    effect: EffectKind
    span_ref: Hashable = None

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Settings:
    """Immutable settings snapshot.

    Replace the whole object to change anything; the mappings are
    exposed as read-only views.
    """
    enabled: bool = True
    sensitivity: Sensitivity = Sensitivity.HIGH
    real_time_processing: bool = True
    per_type_effect: Mapping[str, EffectKind] = field(default_factory=dict)
    patterns: tuple[PatternDescriptor, ...] = ()     # empty = registry defaults
    patterns_enabled: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sensitivity", Sensitivity(self.sensitivity))
        object.__setattr__(self, "per_type_effect", MappingProxyType(
            {k: EffectKind(v) for k, v in self.per_type_effect.items()}
        ))
        object.__setattr__(self, "patterns_enabled", MappingProxyType(dict(self.patterns_enabled)))
        object.__setattr__(self, "patterns", tuple(self.patterns))


@dataclass(frozen=True, slots=True)
class EffectOptions:
    """Tuning knobs for a transform; ``None`` means the effect's default."""
    block_size: int | None = None
    radius: int | None = None


@dataclass(slots=True)
class MaskingResult:
    """Outcome of a rasterize-then-mask call."""
    success: bool
    original: Any = None                     # caller's element reference, untouched
    buffer: PixelBuffer | None = None
    error: str | None = None
