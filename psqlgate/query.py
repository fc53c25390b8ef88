"""Query result containers returned by the connector."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping


class ErrorLevel(Enum):
    """What to do when a statement fails."""

    SILENT = "silent"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized rows plus the command status reported by the backend."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    status: str
    elapsed_ms: int = 0

    def __iter__(self) -> Iterator[dict[str, object]]:
        for row in self.rows:
            yield dict(zip(self.columns, row))

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def affected_rows(self) -> int:
        """Rows touched by the statement, parsed from its command status."""

        return parse_affected_rows(self.status)

    def num_records(self) -> int:
        return len(self.rows)

    def first(self) -> dict[str, object] | None:
        """First row as a column mapping, or None for an empty result."""

        if not self.rows:
            return None
        return dict(zip(self.columns, self.rows[0]))

    def value(self) -> object | None:
        """First column of the first row."""

        if not self.rows or not self.rows[0]:
            return None
        return self.rows[0][0]

    def column(self, name: str | None = None) -> list[object]:
        """All values of one column (the first one by default)."""

        if not self.columns:
            return []
        index = self.columns.index(name) if name is not None else 0
        return [row[index] for row in self.rows]


def parse_affected_rows(status: str | None) -> int:
    """Extract the row count from a tag such as ``UPDATE 3`` or ``INSERT 0 1``."""

    if not status:
        return 0
    tail = status.rsplit(None, 1)[-1]
    return int(tail) if tail.isdigit() else 0


def records_to_result(
    records: Iterable[Mapping[str, Any]],
    status: str,
    elapsed_ms: int = 0,
) -> QueryResult:
    rows: list[tuple[object, ...]] = []
    columns: tuple[str, ...] = ()
    for record in records:
        if not columns:
            columns = tuple(str(key) for key in record.keys())
        if not columns:
            continue
        rows.append(tuple(record[key] for key in columns))
    return QueryResult(columns=columns, rows=tuple(rows), status=status, elapsed_ms=elapsed_ms)


__all__ = [
    "ErrorLevel",
    "QueryResult",
    "parse_affected_rows",
    "records_to_result",
]
