"""PostgreSQL-flavoured SQL expression builders used by the ORM layer."""

from __future__ import annotations

import logging
import re

from .escaping import MANUAL

LOG = logging.getLogger(__name__)

_DATETIME_LITERAL = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
_NOW = re.compile(r"^now$", re.IGNORECASE)
_SUPPORTED_SPECIFIERS = ("Y", "m", "d", "H", "i", "s", "U")
_FORMAT_TRANSLATION = (
    ("%Y", "YYYY"),
    ("%m", "MM"),
    ("%d", "DD"),
    ("%H", "HH24"),
    ("%i", "MI"),
    ("%s", "SS"),
)


def comparison_clause(
    field: str,
    value: str | None = None,
    *,
    exact: bool = False,
    negate: bool = False,
    case_sensitive: bool | None = None,
    parameterised: bool = False,
) -> str:
    """Build ``field <op> value``; inexact matches use (I)LIKE.

    ``value`` must be the raw, unescaped string: it is quoted here, so a value
    that was already escaped by the caller ends up escaped twice. ``field`` is
    inserted verbatim and should already be a quoted identifier.
    """

    if exact and case_sensitive is None:
        comparator = "!=" if negate else "="
    else:
        comparator = "LIKE" if case_sensitive is True else "ILIKE"
        if negate:
            comparator = f"NOT {comparator}"
    if parameterised:
        return f"{field} {comparator} ?"
    return f"{field} {comparator} {MANUAL.quote_literal(value or '')}"


def formatted_datetime_clause(date: str, fmt: str) -> str:
    """Render ``date`` with a ``%Y-%m-%d``-style format via ``to_char``.

    ``%U`` yields a unix timestamp and must be used on its own.
    """

    for specifier in re.findall(r"%(.)", fmt):
        if specifier not in _SUPPORTED_SPECIFIERS:
            LOG.warning(
                "formatted_datetime_clause(): unsupported format character",
                extra={"specifier": f"%{specifier}"},
            )
    expression = _datetime_expression(date)
    if fmt == "%U":
        return f"FLOOR(EXTRACT(epoch FROM {expression}))"
    for source, target in _FORMAT_TRANSLATION:
        fmt = fmt.replace(source, target)
    return f"to_char({expression}, TEXT {MANUAL.quote_literal(fmt)})"


def datetime_interval_clause(date: str, interval: str) -> str:
    """Add ``interval`` (e.g. ``+1 Day``) to ``date``, truncated to whole seconds."""

    expression = _datetime_expression(date)
    return (
        f"CAST(SUBSTRING(CAST({expression} + INTERVAL {MANUAL.quote_literal(interval)} AS VARCHAR) "
        "FROM 1 FOR 19) AS TIMESTAMP)"
    )


def datetime_difference_clause(date1: str, date2: str) -> str:
    """Seconds between ``date1`` and ``date2``."""

    return (
        f"(FLOOR(EXTRACT(epoch FROM {_datetime_expression(date1)})) - "
        f"FLOOR(EXTRACT(epoch FROM {_datetime_expression(date2)})))"
    )


def now() -> str:
    return "NOW()"


def random() -> str:
    return "RANDOM()"


def _datetime_expression(date: str) -> str:
    if _NOW.match(date):
        return "NOW()"
    if _DATETIME_LITERAL.match(date):
        return f"TIMESTAMP '{date}'"
    return date


__all__ = [
    "comparison_clause",
    "datetime_difference_clause",
    "datetime_interval_clause",
    "formatted_datetime_clause",
    "now",
    "random",
]
