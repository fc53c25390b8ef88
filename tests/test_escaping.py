"""Tests for quoting strategies."""

from __future__ import annotations

import pytest

from psqlgate.escaping import ManualEscaper, NativeEscaper, quote_identifier, resolve_escaper

SAMPLES = [
    "plain",
    "O'Brien",
    "''",
    "back\\slash",
    "trailing\\",
    "\\'",
    'double"quote',
    "",
]


@pytest.fixture
def native() -> NativeEscaper:
    escaper = resolve_escaper()
    if not isinstance(escaper, NativeEscaper):
        pytest.skip("asyncpg does not expose its quoting helpers")
    return escaper


def test_manual_escaper_doubles_quotes() -> None:
    escaper = ManualEscaper()

    assert escaper.quote_literal("O'Brien") == "'O''Brien'"
    assert escaper.quote_literal("back\\slash") == "'back\\slash'"
    assert escaper.quote_identifier('odd"name') == '"odd""name"'
    assert escaper.escape_string("it's") == "it''s"


@pytest.mark.parametrize("value", SAMPLES)
def test_manual_fallback_matches_native(native: NativeEscaper, value: str) -> None:
    manual = ManualEscaper()

    assert manual.quote_literal(value) == native.quote_literal(value)
    assert manual.quote_identifier(value) == native.quote_identifier(value)
    assert manual.escape_string(value) == native.escape_string(value)


def test_resolve_escaper_is_flagged(native: NativeEscaper) -> None:
    assert native.native is True
    assert ManualEscaper.native is False


def test_quote_identifier_splits_on_separator() -> None:
    escaper = ManualEscaper()

    assert quote_identifier(escaper, "public.Page") == '"public"."Page"'
    assert quote_identifier(escaper, "public.Page", separator=None) == '"public.Page"'
    assert quote_identifier(escaper, "a|b", separator="|") == '"a"|"b"'
