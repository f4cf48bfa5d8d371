"""
Producers over relational data sources.

Each producer pages through a SQLAlchemy select with a KeysetCursor, so memory
holds at most one page of rows. Cursors are the ordering key values of the last
processed row: a scalar for a single column, a list otherwise.
"""

import logging
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, tuple_
from sqlalchemy.sql.selectable import Select

from ..models import ConditionNotSupportedError, ConfigurationError
from ..serialization import as_position, column_value, cursor_value
from .base import Producer
from .columns import ColumnManager
from .cursor import KeysetCursor
from .sql import (
    ColumnSpec,
    count_rows,
    execute_write,
    fetch_rows,
    has_order_or_limit,
    is_entity_select,
    primary_key_columns,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def _check_batch_size(batch_size: int) -> int:
    if type(batch_size) is not int or batch_size < 1:
        raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")
    return batch_size


def membership_predicate(primary_key: Sequence[Any], ids: Sequence[Any]):
    """
    Build a predicate matching rows by identifier.

    Args:
        primary_key: Primary key columns
        ids: Scalars for a single-column key, tuples for a composite key
    """
    if len(primary_key) == 1:
        return primary_key[0].in_(list(ids))
    return tuple_(*primary_key).in_([tuple(value) for value in ids])


class RecordProducer(Producer):
    """
    Yields one row (or ORM entity) at a time.

    Example: ``RecordProducer(engine, select(products), columns=["created_at", "id"])``
    yields ``(row, ["2024-01-01 10:00:00.000000", 3])`` for each product.
    """

    def __init__(self, bind, statement: Select, columns: Optional[Sequence[ColumnSpec]] = None,
                 batch_size: int = DEFAULT_BATCH_SIZE, cursor: Any = None):
        """
        Initialize the record producer.

        Args:
            bind: Engine, Connection or Session
            statement: Select without ORDER BY, LIMIT or OFFSET
            columns: Ordering key; defaults to the primary key
            batch_size: Rows fetched per query
            cursor: Cursor yielded by a previous iteration, or None to start over

        Raises:
            ConfigurationError: If the statement or columns cannot be paginated
        """
        self.bind = bind
        self.statement = statement
        self.batch_size = _check_batch_size(batch_size)
        self.cursor = cursor
        self._columns = columns
        # Validates the statement and columns before iteration starts
        self.columns = self._finder().columns

    def _finder(self) -> KeysetCursor:
        return KeysetCursor(self.bind, self.statement, self._columns, as_position(self.cursor))

    def pages(self) -> Iterator[Tuple[KeysetCursor, list]]:
        """Yield (paginator, rows) for each fetched page."""
        finder = self._finder()
        while True:
            rows = finder.next_batch(self.batch_size)
            if rows is None:
                return
            yield finder, rows

    def _cursor_of(self, finder: KeysetCursor, row) -> Any:
        return cursor_value([column_value(value) for value in finder.key_values(row)])

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        for finder, rows in self.pages():
            for row in rows:
                yield finder.record(row), self._cursor_of(finder, row)

    def size(self) -> int:
        """Raw row count of the statement; may be stale under concurrent writes."""
        return count_rows(self.bind, self.statement)


class RecordBatchProducer(RecordProducer):
    """Yields lists of up to batch_size rows, with the cursor of the last row."""

    def __iter__(self) -> Iterator[Tuple[List[Any], Any]]:
        for finder, rows in self.pages():
            records = [finder.record(row) for row in rows]
            yield records, self._cursor_of(finder, rows[-1])

    def size(self) -> int:
        """Number of batches, computed from the raw row count."""
        return -(-count_rows(self.bind, self.statement) // self.batch_size)


class Batch:
    """
    A page of rows identified by primary key, re-queried when iterated.

    Only the identifiers are fixed when the page is fetched; the rows read
    through the batch reflect any writes made since.
    """

    def __init__(self, bind, statement: Select, primary_key: Sequence[Any], ids: Sequence[Any],
                 order_by: Sequence[Any] = ()):
        self.bind = bind
        self.ids = list(ids)
        self.primary_key = list(primary_key)
        self.entity_select = is_entity_select(statement)
        self.statement = statement.where(membership_predicate(self.primary_key, self.ids))
        if order_by:
            self.statement = self.statement.order_by(*order_by)

    def __iter__(self) -> Iterator[Any]:
        for row in fetch_rows(self.bind, self.statement):
            yield row[0] if self.entity_select else row

    def __len__(self) -> int:
        return len(self.ids)

    def all(self) -> List[Any]:
        return list(self)

    def __repr__(self) -> str:
        return f"Batch(ids={self.ids!r})"


class StatementBatchProducer(Producer):
    """
    Yields Batch objects re-querying each page by primary key.

    The ordering key and the primary key are plucked for each page, and pages
    are ordered by both so rows sharing an ordering key value are never
    skipped. Primary key columns missing from the ordering key are stripped
    from the emitted cursor; resuming from such a cursor re-reads the rows
    sharing its last ordering key value.
    """

    def __init__(self, bind, statement: Select, columns: Optional[Sequence[ColumnSpec]] = None,
                 batch_size: int = DEFAULT_BATCH_SIZE, cursor: Any = None):
        """
        Initialize the batch producer.

        Args:
            bind: Engine, Connection or Session
            statement: Select without ORDER BY, LIMIT or OFFSET
            columns: Ordering key; defaults to the primary key
            batch_size: Rows per batch
            cursor: Cursor yielded by a previous iteration, or None to start over

        Raises:
            ConditionNotSupportedError: If the statement is already ordered or limited
            ConfigurationError: If the statement has no primary key
        """
        if has_order_or_limit(statement):
            raise ConditionNotSupportedError()

        self.bind = bind
        self.statement = statement
        self.batch_size = _check_batch_size(batch_size)
        self.column_manager = ColumnManager(statement, columns)
        self._pluck_statement = statement.with_only_columns(*self.column_manager.pluck_columns)
        self._initial_cursor = as_position(cursor)
        self.cursor = list(self._initial_cursor)

    def __iter__(self) -> Iterator[Tuple[Batch, Any]]:
        manager = self.column_manager
        finder = KeysetCursor(self.bind, self._pluck_statement, manager.pluck_columns, self._initial_cursor)
        while True:
            rows = finder.next_batch(self.batch_size)
            if rows is None:
                self.cursor = list(self._initial_cursor)
                return

            ids = manager.pkey_values(rows)
            position = manager.remove_missing_pkey_values(rows[-1])
            self.cursor = [column_value(value) for value in position]

            batch = Batch(self.bind, self.statement, manager.primary_key, ids, order_by=manager.pluck_columns)
            yield batch, cursor_value(self.cursor)

    def size(self) -> int:
        """Number of batches, computed from the raw row count."""
        return -(-count_rows(self.bind, self.statement) // self.batch_size)


class DeletingBatchProducer(Producer):
    """
    Yields lists of primary key values for rows the caller deletes.

    Every page is fetched from the start of the statement, so the caller must
    delete (or otherwise exclude) each batch before the next one is pulled.
    The cursor is always None.
    """

    def __init__(self, bind, statement: Select, batch_size: int = DEFAULT_BATCH_SIZE):
        if has_order_or_limit(statement):
            raise ConditionNotSupportedError()

        self.bind = bind
        self.statement = statement
        self.batch_size = _check_batch_size(batch_size)
        self.primary_key = primary_key_columns(statement)
        if not self.primary_key:
            raise ConfigurationError("Batch deletion requires a table with a primary key")

    def _next_ids(self) -> List[Any]:
        query = (
            self.statement.with_only_columns(*self.primary_key)
            .order_by(*self.primary_key)
            .limit(self.batch_size)
        )
        rows = fetch_rows(self.bind, query)
        if len(self.primary_key) == 1:
            return [row[0] for row in rows]
        return [tuple(row) for row in rows]

    def __iter__(self) -> Iterator[Tuple[List[Any], None]]:
        while True:
            ids = self._next_ids()
            if not ids:
                return
            yield ids, None


def delete_batch(bind, table, ids: Sequence[Any]) -> int:
    """
    Delete rows of a table by primary key.

    Args:
        bind: Engine, Connection or Session
        table: Table (or ORM class) to delete from
        ids: Identifiers as yielded by DeletingBatchProducer

    Returns:
        Number of deleted rows
    """
    if not ids:
        return 0
    table = getattr(table, '__table__', table)
    statement = delete(table).where(membership_predicate(list(table.primary_key.columns), ids))
    deleted = execute_write(bind, statement)
    logger.debug(f"Deleted {deleted} rows from {table.name}")
    return deleted
