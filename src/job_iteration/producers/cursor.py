"""
Keyset pagination over SQLAlchemy select statements.

Instead of OFFSET, each page is fetched with a predicate selecting rows
strictly after the last seen key, e.g. for ``columns=[created_at, id]``::

    SELECT ... FROM products
    WHERE created_at > :last_created_at
       OR (created_at = :last_created_at AND id > :last_id)
    ORDER BY created_at, id
    LIMIT 100

Rows whose key columns change during iteration may be skipped (updated to a
smaller key) or yielded again (updated to a larger key).
"""

import functools
import logging
from collections import namedtuple
from typing import Any, List, Optional, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.sql.selectable import Select

from ..models import ConditionNotSupportedError, ConfigurationError, CursorError
from ..serialization import column_value
from .sql import (
    ColumnSpec,
    coerce_position_value,
    fetch_rows,
    has_order_or_limit,
    is_entity_select,
    resolve_columns,
)

logger = logging.getLogger(__name__)


@functools.total_ordering
class KeysetCursor:
    """
    Paginates an ordered statement from a resumption position.

    A cursor that reached the end sorts after any cursor that has not;
    otherwise cursors compare by position.
    """

    def __init__(self, bind, statement: Select, columns: Optional[Sequence[ColumnSpec]] = None,
                 position: Optional[Sequence[Any]] = None):
        """
        Initialize the paginator.

        Args:
            bind: Engine, Connection or Session used to fetch pages
            statement: Select without ORDER BY, LIMIT or OFFSET
            columns: Ordering key; defaults to the primary key
            position: Key values of the last processed row, possibly a prefix of the key

        Raises:
            ConditionNotSupportedError: If the statement is already ordered or limited
            ConfigurationError: If no ordering column can be resolved
        """
        if has_order_or_limit(statement):
            raise ConditionNotSupportedError()

        self.bind = bind
        self.columns = resolve_columns(statement, columns)
        self.entity_select = is_entity_select(statement)
        self.position = list(position or [])
        self.reached_end = False

        self._record_width = None
        self._record_type = None
        query, self._key_indices = self._with_key_columns(statement)
        self._base_statement = query.order_by(*self.columns)

    def _with_key_columns(self, statement: Select):
        """Make sure every ordering column is fetched and record where it lands in a row."""
        if self.entity_select:
            return statement.add_columns(*self.columns), list(range(1, len(self.columns) + 1))

        selected = list(statement.selected_columns)
        indices = []
        extra = []
        for column in self.columns:
            match = statement.selected_columns.corresponding_column(column)
            index = next((i for i, candidate in enumerate(selected) if candidate is match), None)
            if match is None or index is None:
                extra.append(column)
                index = len(selected) + len(extra) - 1
            indices.append(index)

        if extra:
            self._record_width = len(selected)
            statement = statement.add_columns(*extra)
        return statement, indices

    @property
    def position(self) -> List[Any]:
        return self._position

    @position.setter
    def position(self, position: List[Any]) -> None:
        if any(value is None for value in position):
            raise CursorError("Cursor position cannot contain None values", cursor=position)
        if len(position) > len(self.columns):
            raise ConfigurationError(
                f"Cursor has {len(position)} values but only {len(self.columns)} ordering columns"
            )
        self._position = list(position)

    @property
    def cursor_position(self) -> List[Any]:
        """Serializable form of the current position."""
        return [column_value(value) for value in self._position]

    def key_values(self, row) -> List[Any]:
        """Return the ordering key values of a fetched row."""
        return [row[index] for index in self._key_indices]

    def record(self, row):
        """Return the caller-facing record of a fetched row, without added key columns."""
        if self.entity_select:
            return row[0]
        if self._record_width is None:
            return row
        if self._record_type is None:
            self._record_type = namedtuple("Record", row._fields[:self._record_width], rename=True)
        return self._record_type(*row[:self._record_width])

    def update_from_row(self, row) -> None:
        self.position = self.key_values(row)

    def next_batch(self, batch_size: int) -> Optional[list]:
        """
        Fetch the next page strictly after the current position.

        Args:
            batch_size: Maximum number of rows in the page

        Returns:
            List of rows, or None when nothing is left. Once a page shorter than
            batch_size has been returned, no further query is issued.
        """
        if self.reached_end:
            return None

        query = self._base_statement.limit(batch_size)
        conditions = self.conditions()
        if conditions is not None:
            query = query.where(conditions)

        rows = fetch_rows(self.bind, query)
        logger.debug(f"Fetched {len(rows)} rows after position {self._position!r}")

        if rows:
            self.update_from_row(rows[-1])
        self.reached_end = len(rows) < batch_size

        return rows or None

    def conditions(self):
        """
        Build the keyset predicate for the current position.

        Built from the least significant column outwards. When the position is
        shorter than the key, the innermost comparison is inclusive.

        Returns:
            SQL expression, or None for the initial position
        """
        if not self._position:
            return None

        index = len(self._position) - 1
        column = self.columns[index]
        value = coerce_position_value(column, self._position[index])
        if len(self.columns) == len(self._position):
            clause = column > value
        else:
            clause = column >= value

        while index > 0:
            index -= 1
            column = self.columns[index]
            value = coerce_position_value(column, self._position[index])
            clause = or_(column > value, and_(column == value, clause))
        return clause

    def _sort_key(self):
        return (self.reached_end, self._position)

    def __eq__(self, other) -> bool:
        if not isinstance(other, KeysetCursor):
            return NotImplemented
        return self._sort_key() == other._sort_key()

    def __lt__(self, other) -> bool:
        if not isinstance(other, KeysetCursor):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    __hash__ = None
