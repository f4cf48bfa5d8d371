"""
Facade for building producers inside ``build_producer`` callbacks.
"""

from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union

from sqlalchemy.sql.selectable import Select

from ..config import IterationConfig
from ..models import ConfigurationError
from .base import ArrayProducer, Producer
from .csv import CsvProducer
from .database import (
    DeletingBatchProducer,
    RecordBatchProducer,
    RecordProducer,
    StatementBatchProducer,
)
from .nested import NestedProducer
from .sql import ColumnSpec
from .throttle import ThrottleProducer


class ProducerBuilder:
    """
    Builds producers bound to a database and a default batch size.

    Example::

        builder = ProducerBuilder(engine)

        def build_producer(cursor=None):
            return builder.throttle(
                builder.batches(select(accounts).where(accounts.c.active == False), cursor=cursor),
                throttle_on=database_is_unhealthy,
                backoff=30,
            )
    """

    def __init__(self, bind=None, default_batch_size: int = 100):
        """
        Initialize the builder.

        Args:
            bind: Engine, Connection or Session used by database producers
            default_batch_size: Page size used when a call does not pass one
        """
        self.bind = bind
        self.default_batch_size = default_batch_size

    @classmethod
    def from_config(cls, bind=None, config: Optional[IterationConfig] = None) -> 'ProducerBuilder':
        """Create a builder using the configured default batch size."""
        config = config or IterationConfig.load()
        return cls(bind, default_batch_size=config.default_batch_size)

    def _batch_size(self, batch_size: Optional[int]) -> int:
        return batch_size if batch_size is not None else self.default_batch_size

    def _bind(self, bind):
        bind = bind if bind is not None else self.bind
        if bind is None:
            raise ConfigurationError("A database bind is required for database producers")
        return bind

    def _check_statement(self, statement):
        if not isinstance(statement, Select):
            raise ConfigurationError(f"statement must be a SQLAlchemy Select, got {type(statement).__name__}")

    def once(self, cursor: Optional[int] = None) -> Producer:
        """Producer yielding a single (0, 0) pair."""
        return self.times(1, cursor=cursor)

    def times(self, number: int, cursor: Optional[int] = None) -> Producer:
        """Producer yielding (i, i) for i in range(number)."""
        if type(number) is not int:
            raise ConfigurationError("First argument must be an Integer")
        return ArrayProducer(list(range(number)), cursor=cursor)

    def array(self, items: List[Any], cursor: Optional[int] = None) -> Producer:
        return ArrayProducer(items, cursor=cursor)

    def records(self, statement: Select, cursor: Any = None, columns: Optional[Sequence[ColumnSpec]] = None,
                batch_size: Optional[int] = None, bind=None) -> Producer:
        """Producer yielding one row (or entity) at a time."""
        self._check_statement(statement)
        return RecordProducer(
            self._bind(bind), statement, columns=columns,
            batch_size=self._batch_size(batch_size), cursor=cursor,
        )

    def batches(self, statement: Select, cursor: Any = None, columns: Optional[Sequence[ColumnSpec]] = None,
                batch_size: Optional[int] = None, bind=None) -> Producer:
        """Producer yielding lists of rows (or entities)."""
        self._check_statement(statement)
        return RecordBatchProducer(
            self._bind(bind), statement, columns=columns,
            batch_size=self._batch_size(batch_size), cursor=cursor,
        )

    def batch_statements(self, statement: Select, cursor: Any = None,
                         columns: Optional[Sequence[ColumnSpec]] = None,
                         batch_size: Optional[int] = None, bind=None) -> Producer:
        """Producer yielding Batch objects re-queried by primary key."""
        self._check_statement(statement)
        return StatementBatchProducer(
            self._bind(bind), statement, columns=columns,
            batch_size=self._batch_size(batch_size), cursor=cursor,
        )

    def deleting_batches(self, statement: Select, batch_size: Optional[int] = None, bind=None) -> Producer:
        """Producer yielding primary key lists for the caller to delete."""
        self._check_statement(statement)
        return DeletingBatchProducer(self._bind(bind), statement, batch_size=self._batch_size(batch_size))

    def throttle(self, producer: Producer, throttle_on: Callable[[], bool],
                 backoff: Optional[float]) -> Producer:
        return ThrottleProducer(producer, throttle_on, backoff)

    def csv(self, path: Union[str, Path], cursor: Optional[int] = None, **options) -> Producer:
        return CsvProducer(path, **options).rows(cursor=cursor)

    def csv_batches(self, path: Union[str, Path], cursor: Optional[int] = None,
                    batch_size: Optional[int] = None, **options) -> Producer:
        return CsvProducer(path, **options).batches(self._batch_size(batch_size), cursor=cursor)

    def nested(self, factories: Sequence[Callable[..., Producer]], cursor: Optional[Sequence[Any]] = None) -> Producer:
        return NestedProducer(factories, cursor=cursor)
