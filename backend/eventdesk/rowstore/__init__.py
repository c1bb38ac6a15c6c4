"""
Row store layer - spreadsheet-shaped persistence.
Keeps positional rows out of the engine: everything above this package
works with typed records.
"""

from .interface import RowStore
from .memory import InMemoryRowStore
from .repository import SheetRepository

__all__ = ['RowStore', 'InMemoryRowStore', 'SheetRepository']
