"""
One spreadsheet row stored in SQL.

Key design decisions:
- Every table of the sheet lives in the same SQL table, keyed by
  (table_name, row_index), so the row store keeps spreadsheet semantics
  (ordered rows, delete shifts later rows up) without a schema per sheet.
- Cells are a JSON array of strings; typing happens in the mapping layer.
- (table_name, row_index) is indexed but not unique: shifting indexes after a
  delete is a single UPDATE that would trip a non-deferred unique check.
"""

from sqlalchemy import JSON, Column, Index, Integer, String

from eventdesk.db.base import Base, TimestampMixin


class SheetRow(Base, TimestampMixin):
    __tablename__ = "sheet_rows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(64), nullable=False)
    row_index = Column(Integer, nullable=False)
    cells = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index("ix_sheet_rows_table_row", "table_name", "row_index"),
    )

    def __repr__(self) -> str:
        return f"<SheetRow(table={self.table_name}, row={self.row_index}, cells={len(self.cells or [])})>"
