"""Exception hierarchy."""

from __future__ import annotations


class PiiMaskingError(Exception):
    """Base class for all errors raised by pii_masking."""


class ConfigError(PiiMaskingError):
    """A settings record or pattern definition is invalid."""


class PatternConfigError(ConfigError):
    """A pattern's source text does not compile."""

    def __init__(self, name: str, source: str, reason: str) -> None:
        super().__init__(f"pattern {name!r} failed to compile: {reason}")
        self.name = name
        self.source = source
        self.reason = reason


class RasterizationError(PiiMaskingError):
    """Text could not be rendered into a pixel buffer."""
