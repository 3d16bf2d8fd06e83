"""YAML/dict config loader for pii-masking.

Turns the persisted settings record into a validated, immutable
``Settings`` snapshot. The record may sit under a ``pii_masking`` key
(when embedded in a larger config) or be flat. Keys are accepted in the
persisted camelCase form or in snake_case.

Example YAML:

    pii_masking:
      enabled: true
      sensitivity: medium          # low | medium | high
      realTimeProcessing: true
      perTypeEffect:
        email: blur
        phone: mosaic
        creditCard: pixelate
      patternsEnabled:
        ipAddress: true
      patterns:                    # optional; replaces the shipped set
        - name: employeeId
          pattern: 'EMP-\\d{6}'
          maskingType: blackout
          enabled: true
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Mapping

from .detector import Detector
from .effects import MaskingEffectEngine
from .errors import ConfigError
from .middleware import MaskingMiddleware
from .types import EffectKind, PatternDescriptor, Sensitivity, Settings

DEFAULT_SETTINGS = Settings(
    enabled=True,
    sensitivity=Sensitivity.HIGH,
    real_time_processing=True,
    per_type_effect={
        "email": EffectKind.BLUR,
        "phone": EffectKind.MOSAIC,
        "address": EffectKind.BLACKOUT,
        "creditCard": EffectKind.PIXELATE,
        "name": EffectKind.BLUR,
    },
)


class _NoopMiddleware:
    """Pass-through middleware when masking is disabled."""
    def process(self, spans: Any) -> list:
        return []
    def redact_text(self, text: str) -> str:
        return text
    def update_settings(self, settings: Settings) -> None:
        pass
    @property
    def stats(self) -> dict:
        return {"passes": 0, "masked_spans": 0, "fallbacks": 0}


def _pick(data: Mapping[str, Any], camel: str, snake: str, default: Any) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _effect(value: Any, where: str) -> EffectKind:
    try:
        return EffectKind(value)
    except ValueError:
        allowed = ", ".join(e.value for e in EffectKind)
        raise ConfigError(f"{where}: unknown effect {value!r} (expected one of {allowed})") from None


def _sensitivity(value: Any) -> Sensitivity:
    try:
        return Sensitivity(str(value).lower())
    except ValueError:
        raise ConfigError(f"sensitivity: expected low, medium or high, got {value!r}") from None


def _pattern(entry: Any, index: int) -> PatternDescriptor:
    if not isinstance(entry, Mapping):
        raise ConfigError(f"patterns[{index}]: expected a mapping, got {type(entry).__name__}")
    name = entry.get("name")
    source = entry.get("pattern", entry.get("source"))
    if not isinstance(name, str) or not name:
        raise ConfigError(f"patterns[{index}]: missing name")
    if not isinstance(source, str) or not source:
        raise ConfigError(f"patterns[{index}] ({name}): missing pattern")
    effect = _pick(entry, "maskingType", "default_effect", entry.get("effect", EffectKind.BLUR.value))
    return PatternDescriptor(
        name=name,
        source=source,
        default_effect=_effect(effect, f"patterns[{index}] ({name})"),
        enabled=bool(entry.get("enabled", True)),
    )


def load_config(data: Mapping[str, Any]) -> Settings:
    """Validate a config dict (from YAML, JSON or inline) into ``Settings``.

    Raises ConfigError on unknown effects, sensitivities or malformed
    pattern entries. Patterns whose regex does not compile are *not*
    rejected here; the registry disables them when they are registered.
    """
    if not isinstance(data, Mapping):
        raise ConfigError(f"expected a mapping, got {type(data).__name__}")
    # Support nested under "pii_masking" key or flat
    if "pii_masking" in data:
        data = data["pii_masking"] or {}
        if not isinstance(data, Mapping):
            raise ConfigError(f"pii_masking: expected a mapping, got {type(data).__name__}")

    effects = _pick(data, "perTypeEffect", "per_type_effect", None)
    if effects is None:
        effects = dict(DEFAULT_SETTINGS.per_type_effect)
    if not isinstance(effects, Mapping):
        raise ConfigError("perTypeEffect: expected a mapping of type name to effect")

    toggles = _pick(data, "patternsEnabled", "patterns_enabled", {}) or {}
    if not isinstance(toggles, Mapping):
        raise ConfigError("patternsEnabled: expected a mapping of pattern name to bool")

    patterns = _pick(data, "patterns", "patterns", []) or []
    if not isinstance(patterns, list):
        raise ConfigError("patterns: expected a list")

    return Settings(
        enabled=bool(data.get("enabled", True)),
        sensitivity=_sensitivity(data.get("sensitivity", Sensitivity.HIGH.value)),
        real_time_processing=bool(_pick(data, "realTimeProcessing", "real_time_processing", True)),
        per_type_effect={
            str(k): _effect(v, f"perTypeEffect.{k}") for k, v in effects.items()
        },
        patterns=tuple(_pattern(p, i) for i, p in enumerate(patterns)),
        patterns_enabled={str(k): bool(v) for k, v in toggles.items()},
    )


def load_from_yaml(path: str | Path) -> Settings:
    """Load settings from a YAML file."""
    import yaml
    with open(path, encoding="utf-8") as f:
        return load_config(yaml.safe_load(f) or {})


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Inverse of ``load_config``: the persisted camelCase record."""
    return {
        "enabled": settings.enabled,
        "sensitivity": settings.sensitivity.value,
        "realTimeProcessing": settings.real_time_processing,
        "perTypeEffect": {k: v.value for k, v in settings.per_type_effect.items()},
        "patterns": [
            {
                "name": p.name,
                "pattern": p.source,
                "maskingType": p.default_effect.value,
                "enabled": p.enabled,
            }
            for p in settings.patterns
        ],
        "patternsEnabled": dict(settings.patterns_enabled),
    }


def create_middleware(config: Mapping[str, Any] | Settings) -> MaskingMiddleware | _NoopMiddleware:
    """Create a fully configured middleware from a config dict or snapshot."""
    settings = config if isinstance(config, Settings) else load_config(config)

    if not settings.enabled:
        # Return a pass-through middleware (no masking)
        return _NoopMiddleware()

    return MaskingMiddleware(detector=Detector(settings), engine=MaskingEffectEngine())
