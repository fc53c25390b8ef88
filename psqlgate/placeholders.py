"""Rewrite ``?`` placeholders into PostgreSQL's numbered ``$n`` parameters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

MARKER = "?"


@dataclass(frozen=True, slots=True)
class TypedParameter:
    """Bound value tagged with a type hint used for static SQL casts."""

    value: Any
    type_hint: str | None = None


def toggles_literal(fragment: str) -> bool:
    """Return True if ``fragment`` enters or leaves a single-quoted literal.

    Escaped backslashes are dropped first, then backslash-escaped quotes are
    subtracted from the quote count. Doubled quotes (``''``) are counted like
    any other pair and therefore cancel out.
    """

    fragment = fragment.replace("\\\\", "")
    total = fragment.count("'")
    escaped = fragment.count("\\'")
    return (total - escaped) % 2 != 0


def replace_placeholders(sql: str, marker: str = MARKER) -> tuple[str, int]:
    """Number every marker outside string literals.

    Returns the rewritten SQL and how many markers were numbered.
    """

    segments = sql.split(marker)
    last = len(segments) - 1
    parts: list[str] = []
    in_string = False
    counter = 0
    for index, segment in enumerate(segments):
        parts.append(segment)
        if index == last:
            break
        if toggles_literal(segment):
            in_string = not in_string
        if in_string:
            parts.append(marker)
        else:
            counter += 1
            parts.append(f"${counter}")
    return "".join(parts), counter


def prepare_parameters(parameters: Sequence[Any]) -> list[Any]:
    """Unwrap typed parameters into the plain values handed to the driver."""

    values: list[Any] = []
    for parameter in parameters:
        if isinstance(parameter, TypedParameter):
            values.append(parameter.value)
        elif isinstance(parameter, Mapping) and "value" in parameter:
            values.append(parameter["value"])
        else:
            values.append(parameter)
    return values


def translate(
    sql: str,
    parameters: Sequence[Any],
    marker: str = MARKER,
) -> tuple[str, list[Any]]:
    """Translate a ``?`` template and its parameters for asyncpg."""

    if marker not in sql:
        return sql, []
    rewritten, _ = replace_placeholders(sql, marker)
    return rewritten, prepare_parameters(parameters)


__all__ = [
    "MARKER",
    "TypedParameter",
    "prepare_parameters",
    "replace_placeholders",
    "translate",
    "toggles_literal",
]
