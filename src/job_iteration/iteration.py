"""
Iteration driver: runs an iteration job for one attempt and decides what happens next.

A job is described by a JobDefinition. Each attempt builds the producer from
the persisted cursor, processes values one at a time, and after every value
checks whether the worker should stop (runtime budget exceeded or shutdown
requested). A stopped job is re-enqueued with its cursor and resumes from the
next value.

Example::

    builder = ProducerBuilder(engine)

    job = JobDefinition(
        name="backfill_prices",
        build_producer=lambda shop_id, cursor=None: builder.records(
            select(products).where(products.c.shop_id == shop_id), cursor=cursor),
        each_iteration=lambda product, shop_id: update_price(product),
    )
    driver = IterationDriver(job, config=IterationConfig.load(), scheduler=InlineScheduler())
    driver.perform(JobRecord(job_name="backfill_prices", arguments=[42]))
"""

import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .config import IterationConfig
from .instrumentation import instrument, notify
from .interruption import InterruptionAdapter, lookup
from .models import (
    Abort,
    ConfigurationError,
    DriverState,
    IterationOutcome,
    JobRecord,
    Retry,
)
from .producers.base import Producer
from .scheduler import InlineScheduler, Scheduler
from .serialization import assert_valid_cursor

logger = logging.getLogger(__name__)

Callback = Callable[[JobRecord], None]


@dataclass(frozen=True)
class JobDefinition:
    """
    Everything the driver needs to know about an iteration job.

    ``build_producer(*arguments, cursor=...)`` returns a Producer, or None to
    skip the job. ``each_iteration(value, *arguments)`` processes one value and
    may return Abort or Retry to stop early. Lifecycle callbacks receive the
    job record.
    """
    name: str
    build_producer: Callable[..., Optional[Producer]]
    each_iteration: Callable[..., Any]
    on_start: Optional[Callback] = None
    on_shutdown: Optional[Callback] = None
    on_complete: Optional[Callback] = None
    max_job_runtime: Optional[float] = None
    enforce_serializable_cursors: Optional[bool] = None


def accepts_cursor_keyword(func: Callable[..., Any]) -> bool:
    """Check whether a callable can be called with a ``cursor`` keyword argument."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        logger.debug(f"Cannot inspect signature of {func!r}, assuming it accepts cursor")
        return True

    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_KEYWORD:
            return True
        if parameter.name == 'cursor' and parameter.kind in (
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
            inspect.Parameter.KEYWORD_ONLY,
        ):
            return True
    return False


class IterationDriver:
    """
    Runs attempts of a single iteration job.

    Attempt lifecycle: INIT -> BUILDING -> RUNNING -> one of INTERRUPTING,
    ABORTING or COMPLETING -> FINISHED, or BUILDING -> SKIPPED when the
    producer builder returns None.
    """

    def __init__(self, job: JobDefinition, config: Optional[IterationConfig] = None,
                 scheduler: Optional[Scheduler] = None,
                 interruption_adapter: Optional[InterruptionAdapter] = None):
        """
        Initialize the driver and validate the job definition.

        Args:
            job: Job definition
            config: Engine configuration (defaults to IterationConfig())
            scheduler: Scheduler receiving interrupted jobs (defaults to InlineScheduler())
            interruption_adapter: Shutdown probe; looked up by queue adapter name when omitted

        Raises:
            ConfigurationError: If the job definition violates its contract
        """
        self.job = job
        self.config = config or IterationConfig()
        self.scheduler = scheduler if scheduler is not None else InlineScheduler()
        self.interruption_adapter = interruption_adapter
        self.state = DriverState.INIT

        self._validate_job()
        self.max_job_runtime = self.config.resolve_max_job_runtime(job.max_job_runtime, job.name)
        if job.enforce_serializable_cursors is None:
            self.enforce_serializable_cursors = self.config.enforce_serializable_cursors
        else:
            self.enforce_serializable_cursors = job.enforce_serializable_cursors

    def _validate_job(self) -> None:
        job = self.job
        if not job.name:
            raise ConfigurationError("Iteration job must have a name")
        if not callable(job.each_iteration):
            raise ConfigurationError(f"Iteration job ({job.name}) must implement each_iteration")
        if not callable(job.build_producer):
            raise ConfigurationError(
                f"Iteration job ({job.name}) must implement build_producer to provide a collection to iterate"
            )
        if not accepts_cursor_keyword(job.build_producer):
            raise ConfigurationError(
                f"Iteration job ({job.name}) build_producer expects the keyword argument `cursor`"
            )
        for callback_name in ('on_start', 'on_shutdown', 'on_complete'):
            callback = getattr(job, callback_name)
            if callback is not None and not callable(callback):
                raise ConfigurationError(f"Iteration job ({job.name}) {callback_name} must be callable")

    def _transition(self, state: DriverState) -> None:
        logger.debug(f"{self.job.name}: {self.state.value} -> {state.value}")
        self.state = state

    def _tags(self, record: JobRecord, **extra: Any) -> Dict[str, Any]:
        tags = {
            'job_name': record.job_name,
            'job_id': record.job_id,
            'cursor_position': record.cursor_position,
        }
        tags.update(extra)
        return tags

    def _run_callback(self, callback: Optional[Callback], record: JobRecord) -> None:
        if callback is not None:
            callback(record)

    def perform(self, record: JobRecord) -> IterationOutcome:
        """
        Run one attempt of the job.

        Args:
            record: Job record to run; updated in place with the new iteration state

        Returns:
            How the attempt ended

        Raises:
            ConfigurationError: If the record belongs to another job or the builder
                returns something that is not a Producer
            CursorError: If a producer yields a non-serializable cursor in strict mode
        """
        if record.job_name != self.job.name:
            raise ConfigurationError(
                f"Record for job {record.job_name!r} cannot be performed by driver of {self.job.name!r}"
            )

        self.state = DriverState.INIT
        record.executions += 1
        state = record.state
        state.start_time = time.time()
        arguments = tuple(record.arguments)
        adapter = self._interruption_adapter(record)

        self._transition(DriverState.BUILDING)
        with instrument("build_producer", **self._tags(record)):
            producer = self.job.build_producer(*arguments, cursor=state.cursor_position)

        if producer is None:
            notify("nil_producer", **self._tags(record))
            self._transition(DriverState.SKIPPED)
            return IterationOutcome.SKIPPED

        if not isinstance(producer, Producer):
            raise ConfigurationError(
                f"build_producer of {self.job.name} returned {type(producer).__name__}, expected a Producer. "
                f"Example: builder.records(select(products), cursor=cursor)"
            )

        if record.executions == 1 and state.times_interrupted == 0:
            self._run_callback(self.job.on_start, record)
        else:
            notify(
                "resumed",
                **self._tags(record, times_interrupted=state.times_interrupted, total_time=state.total_time),
            )

        self._transition(DriverState.RUNNING)
        outcome, control = self._iterate(producer, record, arguments, adapter)

        self._run_callback(self.job.on_shutdown, record)

        if outcome is IterationOutcome.INTERRUPTED:
            self._transition(DriverState.INTERRUPTING)
            self._reenqueue(record, control.backoff)
        else:
            if outcome is IterationOutcome.ABORTED:
                self._transition(DriverState.ABORTING)
            if not (isinstance(control, Abort) and control.skip_complete_callbacks):
                self._transition(DriverState.COMPLETING)
                self._run_callback(self.job.on_complete, record)
                notify(
                    "completed",
                    **self._tags(record, times_interrupted=state.times_interrupted, total_time=state.total_time),
                )

        self._transition(DriverState.FINISHED)
        return outcome

    def _iterate(self, producer: Producer, record: JobRecord, arguments: Tuple[Any, ...],
                 adapter: InterruptionAdapter) -> Tuple[IterationOutcome, Any]:
        """
        Consume the producer until it ends or the job has to stop.

        Returns:
            The outcome and the control result that caused it (None on completion)
        """
        state = record.state
        found_record = False
        try:
            for item in producer:
                if isinstance(item, Retry):
                    return IterationOutcome.INTERRUPTED, item

                value, cursor = item
                assert_valid_cursor(cursor, enforce=self.enforce_serializable_cursors)
                found_record = True

                with instrument("each_iteration", **self._tags(record, next_cursor_position=cursor)):
                    result = self.job.each_iteration(value, *arguments)

                if isinstance(result, Abort):
                    return IterationOutcome.ABORTED, result
                if isinstance(result, Retry):
                    return IterationOutcome.INTERRUPTED, result

                state.cursor_position = cursor

                if self._should_exit(state, adapter):
                    return IterationOutcome.INTERRUPTED, Retry()

            if not found_record:
                notify("not_found", **self._tags(record, times_interrupted=state.times_interrupted))
            return IterationOutcome.COMPLETED, None
        finally:
            state.total_time += round(time.time() - state.start_time, 6)

    def _interruption_adapter(self, record: JobRecord) -> InterruptionAdapter:
        """Resolve the shutdown probe and install its handlers before any work starts."""
        adapter = self.interruption_adapter
        if adapter is None:
            adapter = lookup(record.queue_adapter or self.config.queue_adapter)
        install = getattr(adapter, 'install', None)
        if callable(install):
            install()
        return adapter

    def _should_exit(self, state, adapter: InterruptionAdapter) -> bool:
        if self.max_job_runtime is not None and state.start_time is not None:
            if time.time() - state.start_time > self.max_job_runtime:
                logger.debug(f"{self.job.name} exceeded max_job_runtime of {self.max_job_runtime}s")
                return True
        return bool(adapter())

    def _reenqueue(self, record: JobRecord, backoff: Optional[float]) -> None:
        notify("interrupted", **self._tags(record))

        if record.executions > 1:
            record.executions -= 1
        record.state.times_interrupted += 1

        delay = backoff if backoff is not None else self.config.default_retry_backoff
        self.scheduler.enqueue(record, delay=delay)
