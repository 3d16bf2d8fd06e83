"""Tests for the pattern registry and its coarse filters."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from pii_masking import PatternConfigError, PatternDescriptor, PatternRegistry, default_registry
from pii_masking.patterns import filter_false_positives, is_japanese_name_text, is_likely_pii
from pii_masking.types import EffectKind


# ── Default set ──────────────────────────────────────────────────────

def test_default_registry_order():
    names = [d.name for d in default_registry().all()]
    assert names == [
        "email", "phone", "creditCard", "postalCode", "japaneseName",
        "address", "myNumber", "birthDate", "ipAddress", "bankAccount",
    ]


def test_noisy_patterns_disabled_by_default():
    enabled = [d.name for d in default_registry().enabled()]
    assert "ipAddress" not in enabled
    assert "bankAccount" not in enabled
    assert len(enabled) == 8


def test_by_name():
    reg = default_registry()
    assert reg.by_name("creditCard").default_effect == EffectKind.PIXELATE
    assert reg.by_name("phone").default_effect == EffectKind.MOSAIC
    assert reg.by_name("nope") is None


def test_default_patterns_all_compile():
    reg = default_registry()
    assert reg.errors == ()
    assert len(reg.compiled()) == len(reg)


# ── Registration errors ──────────────────────────────────────────────

def test_broken_pattern_is_disabled_not_fatal():
    reg = PatternRegistry([
        PatternDescriptor("broken", "(unclosed"),
        PatternDescriptor("email", r"[a-z]+@[a-z]+\.[a-z]{2,}"),
    ])
    assert [d.name for d in reg.all()] == ["broken", "email"]
    assert [d.name for d in reg.enabled()] == ["email"]
    assert len(reg.errors) == 1
    err = reg.errors[0]
    assert isinstance(err, PatternConfigError)
    assert err.name == "broken"
    assert err.source == "(unclosed"


def test_duplicate_name_keeps_first():
    reg = PatternRegistry([
        PatternDescriptor("id", r"\d{3}"),
        PatternDescriptor("id", r"\d{5}"),
    ])
    assert len(reg) == 1
    assert reg.by_name("id").source == r"\d{3}"
    assert len(reg.errors) == 1


def test_empty_registry():
    reg = PatternRegistry([])
    assert reg.all() == []
    assert reg.enabled() == []


# ── False-positive filter ────────────────────────────────────────────

def test_filter_phone():
    kept = filter_false_positives(["090-1234-5678", "12:30", "0000123456", "03 1234 5678"], "phone")
    assert kept == ["090-1234-5678", "03 1234 5678"]


def test_filter_credit_card_needs_sixteen_digits():
    kept = filter_false_positives(
        ["4111 1111 1111 1111", "4111 1111 1111 111", "0000-1111-2222-3333"], "creditCard",
    )
    assert kept == ["4111 1111 1111 1111"]


def test_filter_japanese_name():
    kept = filter_false_positives(
        ["山田太郎", "山", "山田 太郎", "Yamada", "やまだ", "山田太郎山田太郎山"], "japaneseName",
    )
    assert kept == ["山田太郎", "やまだ"]


def test_filter_other_types_untouched():
    assert filter_false_positives(["123-4567", "x"], "postalCode") == ["123-4567", "x"]


def test_japanese_name_katakana():
    assert is_japanese_name_text("ヤマダ")
    assert not is_japanese_name_text("ヤ")


# ── Context keywords ─────────────────────────────────────────────────

def test_is_likely_pii():
    assert is_likely_pii("Your EMAIL address")
    assert is_likely_pii("お客様の氏名")
    assert is_likely_pii("お名前")
    assert not is_likely_pii("The weather is nice today")
    assert not is_likely_pii("")
