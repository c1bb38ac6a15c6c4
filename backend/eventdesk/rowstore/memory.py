"""
In-memory row store.
Used for local development and as the test double for every engine test.
"""

from typing import Optional, Sequence

from eventdesk.rowstore.interface import TABLES, Row, RowStore


class InMemoryRowStore(RowStore):

    def __init__(self, tables: Sequence[str] = TABLES):
        self._tables: dict[str, list[Row]] = {name: [] for name in tables}

    def _table(self, table: str) -> list[Row]:
        try:
            return self._tables[table]
        except KeyError:
            raise KeyError(f"Unknown table {table!r}") from None

    def _check_index(self, rows: list[Row], row_index: int) -> None:
        if not 0 <= row_index < len(rows):
            raise IndexError(f"Row {row_index} out of range ({len(rows)} rows)")

    async def read_range(self, table: str, start: int = 0, end: Optional[int] = None) -> list[Row]:
        rows = self._table(table)
        return [list(row) for row in rows[start:end]]

    async def append_row(self, table: str, row: Sequence[str]) -> int:
        rows = self._table(table)
        rows.append([str(cell) for cell in row])
        return len(rows) - 1

    async def append_rows(self, table: str, rows: Sequence[Sequence[str]]) -> None:
        self._table(table).extend([str(cell) for cell in row] for row in rows)

    async def update_range(self, table: str, row_index: int, values: Sequence[str], column: int = 0) -> None:
        rows = self._table(table)
        self._check_index(rows, row_index)
        row = rows[row_index]
        needed = column + len(values)
        if len(row) < needed:
            row.extend([""] * (needed - len(row)))
        row[column:needed] = [str(value) for value in values]

    async def delete_row(self, table: str, row_index: int) -> None:
        rows = self._table(table)
        self._check_index(rows, row_index)
        del rows[row_index]
