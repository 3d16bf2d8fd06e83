"""PII Masking: pattern-based PII detection and pixel masking effects."""

from .detector import Detector
from .effects import MaskingEffectEngine, PixelBuffer
from .errors import ConfigError, PatternConfigError, PiiMaskingError, RasterizationError
from .middleware import MaskingMiddleware, SpanMasking
from .patterns import PatternRegistry, default_registry, filter_false_positives
from .rasterize import PillowRasterizer, Rasterizer, TextStyle
from .config import create_middleware, load_config, load_from_yaml
from .types import (
    DetectionContext,
    EffectKind,
    EffectOptions,
    MaskingResult,
    Match,
    PatternDescriptor,
    Sensitivity,
    Settings,
    TextSpan,
)

__all__ = [
    "Detector",
    "MaskingEffectEngine", "PixelBuffer",
    "PillowRasterizer", "Rasterizer", "TextStyle",
    "MaskingMiddleware", "SpanMasking",
    "PatternRegistry", "default_registry", "filter_false_positives",
    "create_middleware", "load_config", "load_from_yaml",
    "PiiMaskingError", "ConfigError", "PatternConfigError", "RasterizationError",
    "DetectionContext", "EffectKind", "EffectOptions", "MaskingResult", "Match",
    "PatternDescriptor", "Sensitivity", "Settings", "TextSpan",
]
__version__ = "0.1.0"
