"""
SQL-backed row store.

Each call opens its own session and commits before returning, so the store
behaves like the spreadsheet API it replaces: every operation is durable on
its own and nothing spans calls. Multi-step sequences are serialized by the
callers' per-event locks, not by database transactions.

Row indexes stay contiguous from 0: appends (max + 1) and deletes (shift
later rows up) on one table run one at a time. This holds within one
process; several workers sharing a database need a shared lock instead.
"""

import asyncio
from collections import defaultdict
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from eventdesk.core.logging import get_logger
from eventdesk.db.base import Base
from eventdesk.models.sheet_row import SheetRow
from eventdesk.rowstore.interface import Row, RowStore

logger = get_logger(__name__)


class SqlRowStore(RowStore):

    def __init__(self, engine: AsyncEngine, sessionmaker: async_sessionmaker[AsyncSession]):
        self.engine = engine
        self.sessionmaker = sessionmaker
        # Appends and deletes renumber a table; they must not interleave
        self._index_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def create_schema(self) -> None:
        """Create the sheet_rows table if missing (alembic does this in deployed environments)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def read_range(self, table: str, start: int = 0, end: Optional[int] = None) -> list[Row]:
        query = (
            select(SheetRow.cells)
            .where(SheetRow.table_name == table, SheetRow.row_index >= start)
            .order_by(SheetRow.row_index.asc())
        )
        if end is not None:
            query = query.where(SheetRow.row_index < end)

        async with self.sessionmaker() as session:
            result = await session.execute(query)
            return [list(cells) for cells in result.scalars().all()]

    async def _next_index(self, session: AsyncSession, table: str) -> int:
        result = await session.execute(
            select(func.max(SheetRow.row_index)).where(SheetRow.table_name == table)
        )
        current = result.scalar()
        return 0 if current is None else current + 1

    async def append_row(self, table: str, row: Sequence[str]) -> int:
        async with self._index_locks[table], self.sessionmaker() as session:
            index = await self._next_index(session, table)
            session.add(SheetRow(table_name=table, row_index=index, cells=[str(c) for c in row]))
            await session.commit()
        return index

    async def append_rows(self, table: str, rows: Sequence[Sequence[str]]) -> None:
        async with self._index_locks[table], self.sessionmaker() as session:
            index = await self._next_index(session, table)
            session.add_all(
                SheetRow(table_name=table, row_index=index + offset, cells=[str(c) for c in row])
                for offset, row in enumerate(rows)
            )
            await session.commit()

    async def update_range(self, table: str, row_index: int, values: Sequence[str], column: int = 0) -> None:
        async with self.sessionmaker() as session:
            result = await session.execute(
                select(SheetRow).where(SheetRow.table_name == table, SheetRow.row_index == row_index)
            )
            sheet_row = result.scalar_one_or_none()
            if sheet_row is None:
                raise IndexError(f"Row {row_index} not found in {table}")

            cells = list(sheet_row.cells or [])
            needed = column + len(values)
            if len(cells) < needed:
                cells.extend([""] * (needed - len(cells)))
            cells[column:needed] = [str(v) for v in values]
            # Reassign so the JSON column is flagged dirty
            sheet_row.cells = cells
            await session.commit()

    async def delete_row(self, table: str, row_index: int) -> None:
        async with self._index_locks[table], self.sessionmaker() as session:
            result = await session.execute(
                delete(SheetRow).where(SheetRow.table_name == table, SheetRow.row_index == row_index)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise IndexError(f"Row {row_index} not found in {table}")

            # Shift later rows up, like deleting a spreadsheet row
            await session.execute(
                update(SheetRow)
                .where(SheetRow.table_name == table, SheetRow.row_index > row_index)
                .values(row_index=SheetRow.row_index - 1)
            )
            await session.commit()
        logger.debug("sheet_row_deleted", table=table, row_index=row_index)

    async def close(self) -> None:
        await self.engine.dispose()
