"""Literal and identifier quoting strategies."""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

import asyncpg.utils


@runtime_checkable
class Escaper(Protocol):
    """Protocol implemented by quoting strategies."""

    native: bool

    def quote_literal(self, value: str) -> str:
        """Quote ``value`` as a string literal."""

    def quote_identifier(self, value: str) -> str:
        """Quote ``value`` as a single identifier."""

    def escape_string(self, value: str) -> str:
        """Escape ``value`` for embedding between single quotes."""


class ManualEscaper:
    """Doubles quote characters; valid with ``standard_conforming_strings`` on.

    Backslashes are left alone since they carry no meaning inside a standard
    ``'...'`` literal or a ``"..."`` identifier.
    """

    native = False

    def quote_literal(self, value: str) -> str:
        return f"'{self.escape_string(value)}'"

    def quote_identifier(self, value: str) -> str:
        return '"{}"'.format(value.replace('"', '""'))

    def escape_string(self, value: str) -> str:
        return value.replace("'", "''")


class NativeEscaper:
    """Delegates to the quoting helpers shipped with asyncpg."""

    native = True

    def __init__(
        self,
        quote_literal: Callable[[str], str],
        quote_ident: Callable[[str], str],
    ) -> None:
        self._quote_literal = quote_literal
        self._quote_ident = quote_ident

    def quote_literal(self, value: str) -> str:
        return self._quote_literal(value)

    def quote_identifier(self, value: str) -> str:
        return self._quote_ident(value)

    def escape_string(self, value: str) -> str:
        return self._quote_literal(value)[1:-1]


def resolve_escaper() -> Escaper:
    """Pick the native strategy when asyncpg exposes it, else the manual one."""

    quote_literal = getattr(asyncpg.utils, "_quote_literal", None)
    quote_ident = getattr(asyncpg.utils, "_quote_ident", None)
    if callable(quote_literal) and callable(quote_ident):
        return NativeEscaper(quote_literal, quote_ident)
    return ManualEscaper()


def quote_identifier(escaper: Escaper, value: str, separator: str | None = ".") -> str:
    """Quote a possibly qualified identifier, one part per ``separator`` split."""

    if not separator:
        return escaper.quote_identifier(value)
    return separator.join(escaper.quote_identifier(part) for part in value.split(separator))


MANUAL = ManualEscaper()


__all__ = [
    "Escaper",
    "MANUAL",
    "ManualEscaper",
    "NativeEscaper",
    "quote_identifier",
    "resolve_escaper",
]
