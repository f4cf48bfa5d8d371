"""
Producers: lazy, resumable sequences of (value, cursor) pairs.
"""

from .base import ArrayProducer, IterableProducer, Producer
from .columns import ColumnManager
from .csv import CsvProducer
from .cursor import KeysetCursor
from .database import (
    Batch,
    DeletingBatchProducer,
    RecordBatchProducer,
    RecordProducer,
    StatementBatchProducer,
    delete_batch,
)
from .factory import ProducerBuilder
from .nested import NestedProducer
from .throttle import ThrottleProducer

__all__ = [
    'Producer',
    'IterableProducer',
    'ArrayProducer',
    'CsvProducer',
    'KeysetCursor',
    'ColumnManager',
    'RecordProducer',
    'RecordBatchProducer',
    'StatementBatchProducer',
    'Batch',
    'DeletingBatchProducer',
    'delete_batch',
    'NestedProducer',
    'ThrottleProducer',
    'ProducerBuilder',
]
