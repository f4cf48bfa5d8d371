"""
Column bookkeeping for batch producers.

Batches are re-queried by primary key, so the primary key must be fetched with
every page even when it is not part of the ordering key.
"""

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.sql.selectable import Select

from ..models import ConfigurationError
from .sql import ColumnSpec, primary_key_columns, resolve_columns


class ColumnManager:
    """
    Manages the columns plucked for each page of a batch producer.

    ``pluck_columns`` is the ordering key followed by any primary key column
    the ordering key does not already contain.
    """

    def __init__(self, statement: Select, columns: Optional[Sequence[ColumnSpec]] = None):
        """
        Initialize the column manager.

        Args:
            statement: Statement being iterated
            columns: Ordering key; defaults to the primary key

        Raises:
            ConfigurationError: If the statement has no primary key or no columns
        """
        self.primary_key = primary_key_columns(statement)
        if not self.primary_key:
            raise ConfigurationError("Batch iteration requires a table with a primary key")

        self.columns = resolve_columns(statement, columns)
        self._initialize_pluck_columns_and_pkey_positions()

    def _initialize_pluck_columns_and_pkey_positions(self) -> None:
        self.pluck_columns: List[Any] = list(self.columns)

        # Position of each primary key column in pluck_columns
        self._primary_key_indices: Dict[int, int] = {}
        missing = []
        for pkey_position, pkey_column in enumerate(self.primary_key):
            index = self._index_of(pkey_column)
            if index is None:
                missing.append(pkey_position)
            else:
                self._primary_key_indices[pkey_position] = index

        for pkey_position in missing:
            self._primary_key_indices[pkey_position] = len(self.pluck_columns)
            self.pluck_columns.append(self.primary_key[pkey_position])
        self.missing_pkey_count = len(missing)

    def _index_of(self, pkey_column) -> Optional[int]:
        for index, column in enumerate(self.columns):
            if column is pkey_column or (
                getattr(column, 'table', None) is getattr(pkey_column, 'table', None)
                and getattr(column, 'key', None) == getattr(pkey_column, 'key', None)
            ):
                return index
        return None

    def pkey_values(self, rows) -> List[Any]:
        """
        Extract primary key values from plucked rows.

        Returns:
            One scalar per row for single-column keys, one tuple per row otherwise
        """
        positions = [self._primary_key_indices[i] for i in range(len(self.primary_key))]
        if len(positions) == 1:
            return [row[positions[0]] for row in rows]
        return [tuple(row[index] for index in positions) for row in rows]

    def remove_missing_pkey_values(self, values: Sequence[Any]) -> List[Any]:
        """Drop the trailing primary key values that are not part of the ordering key."""
        values = list(values)
        if self.missing_pkey_count:
            del values[-self.missing_pkey_count:]
        return values
