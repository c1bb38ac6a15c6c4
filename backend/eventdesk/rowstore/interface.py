"""
Row store interface.

The datastore is spreadsheet shaped: named tables of ordered rows, every cell
a string. There are no transactions and no row locks; callers that need
read-modify-write consistency serialize themselves (see services.locks).

Row indexes are 0-based over data rows. Deleting a row shifts every later
row up by one, as deleting a spreadsheet row does.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

Row = list[str]

EVENTS = "Events"
REGISTRATIONS = "Registrations"
USERS = "Users"
REMOVAL_HISTORY = "RemovalHistory"

TABLES = (EVENTS, REGISTRATIONS, USERS, REMOVAL_HISTORY)


class RowStore(ABC):
    """
    Interface for row store backends.

    Implementations:
    - InMemoryRowStore: lists in process memory (development, tests)
    - SqlRowStore: one SQL table holding every sheet row as a JSON array
    """

    @abstractmethod
    async def read_range(self, table: str, start: int = 0, end: Optional[int] = None) -> list[Row]:
        """Return rows [start, end) of `table`; `end=None` reads to the last row."""

    @abstractmethod
    async def append_row(self, table: str, row: Sequence[str]) -> int:
        """Append one row and return its index."""

    @abstractmethod
    async def append_rows(self, table: str, rows: Sequence[Sequence[str]]) -> None:
        pass

    @abstractmethod
    async def update_range(self, table: str, row_index: int, values: Sequence[str], column: int = 0) -> None:
        """
        Overwrite cells of one row starting at `column`.
        The row is padded with empty cells if it is shorter than needed.
        """

    @abstractmethod
    async def delete_row(self, table: str, row_index: int) -> None:
        pass

    async def close(self) -> None:
        """Release backend resources."""
