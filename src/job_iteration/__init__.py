"""
Resumable iteration jobs.

Long-running batch work is split into checkpointed steps: a producer yields
(value, cursor) pairs, the driver processes one value at a time, persists the
cursor, and re-enqueues the job when the worker has to stop.
"""

import logging

from .config import IterationConfig
from .iteration import IterationDriver, JobDefinition
from .models import (
    Abort,
    ConditionNotSupportedError,
    ConfigurationError,
    Continue,
    CursorError,
    DriverState,
    InvalidNestedProducerError,
    IterationError,
    IterationOutcome,
    IterationState,
    JobRecord,
    Retry,
)
from .producers import (
    ArrayProducer,
    Batch,
    CsvProducer,
    DeletingBatchProducer,
    IterableProducer,
    KeysetCursor,
    NestedProducer,
    Producer,
    ProducerBuilder,
    RecordBatchProducer,
    RecordProducer,
    StatementBatchProducer,
    ThrottleProducer,
    delete_batch,
)
from .scheduler import InlineScheduler, Scheduler

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'IterationConfig',
    'IterationDriver',
    'JobDefinition',
    'JobRecord',
    'IterationState',
    'DriverState',
    'IterationOutcome',
    'Continue',
    'Abort',
    'Retry',
    'IterationError',
    'ConfigurationError',
    'ConditionNotSupportedError',
    'InvalidNestedProducerError',
    'CursorError',
    'Producer',
    'IterableProducer',
    'ArrayProducer',
    'CsvProducer',
    'KeysetCursor',
    'RecordProducer',
    'RecordBatchProducer',
    'StatementBatchProducer',
    'Batch',
    'DeletingBatchProducer',
    'delete_batch',
    'NestedProducer',
    'ThrottleProducer',
    'ProducerBuilder',
    'Scheduler',
    'InlineScheduler',
]
