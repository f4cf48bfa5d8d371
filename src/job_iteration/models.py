"""
Data models for resumable iteration: persisted job state, step results and errors.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any


class DriverState(str, Enum):
    """States of a single execution attempt."""
    INIT = "init"
    BUILDING = "building"
    RUNNING = "running"
    INTERRUPTING = "interrupting"
    ABORTING = "aborting"
    COMPLETING = "completing"
    SKIPPED = "skipped"
    FINISHED = "finished"


class IterationOutcome(str, Enum):
    """Why an attempt ended."""
    SKIPPED = "skipped"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Continue:
    """Per-item result: the item completed, advance the cursor."""


@dataclass(frozen=True)
class Abort:
    """Per-item result: stop the whole attempt without rescheduling."""
    skip_complete_callbacks: bool = False


@dataclass(frozen=True)
class Retry:
    """Control result: stop consuming and reschedule after `backoff` seconds."""
    backoff: Optional[float] = None


@dataclass
class IterationState:
    """Iteration progress carried between execution attempts."""
    cursor_position: Any = None
    times_interrupted: int = 0
    total_time: float = 0.0
    start_time: Optional[float] = None  # not persisted

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted representation."""
        result = {
            'cursor_position': self.cursor_position,
            'times_interrupted': self.times_interrupted,
            'total_time': self.total_time,
        }
        from .serialization import is_serializable, serialize_cursor
        if is_serializable(self.cursor_position):
            result['serialized_cursor_position'] = serialize_cursor(self.cursor_position)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IterationState':
        """Create IterationState from its persisted representation."""
        from .serialization import deserialize_cursor

        if data.get('serialized_cursor_position') is not None:
            cursor_position = deserialize_cursor(data['serialized_cursor_position'])
        else:
            cursor_position = data.get('cursor_position')

        times_interrupted = int(data.get('times_interrupted') or 0)
        total_time = float(data.get('total_time') or 0.0)
        if times_interrupted < 0:
            raise ValueError(f"times_interrupted must be non-negative, got {times_interrupted}")
        if total_time < 0:
            raise ValueError(f"total_time must be non-negative, got {total_time}")

        return cls(
            cursor_position=cursor_position,
            times_interrupted=times_interrupted,
            total_time=total_time,
        )


@dataclass
class JobRecord:
    """A unit of work as the host framework stores and re-runs it."""
    job_name: str
    arguments: List[Any] = field(default_factory=list)
    job_id: Optional[str] = None
    executions: int = 0
    queue_adapter: Optional[str] = None
    state: IterationState = field(default_factory=IterationState)

    @property
    def cursor_position(self) -> Any:
        return self.state.cursor_position

    @property
    def times_interrupted(self) -> int:
        return self.state.times_interrupted

    @property
    def total_time(self) -> float:
        return self.state.total_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        result = {
            'job_name': self.job_name,
            'job_id': self.job_id,
            'arguments': list(self.arguments),
            'executions': self.executions,
            'queue_adapter': self.queue_adapter,
        }
        result.update(self.state.to_dict())
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JobRecord':
        """Create JobRecord from its persisted representation."""
        return cls(
            job_name=data['job_name'],
            job_id=data.get('job_id'),
            arguments=list(data.get('arguments') or []),
            executions=int(data.get('executions') or 0),
            queue_adapter=data.get('queue_adapter'),
            state=IterationState.from_dict(data),
        )

    @classmethod
    def from_json(cls, payload: str) -> 'JobRecord':
        return cls.from_dict(json.loads(payload))


class IterationError(Exception):
    """Base class for errors raised by the iteration engine."""
    pass


class ConfigurationError(IterationError, ValueError):
    """Raised when a job, producer or config violates its contract. Never retried."""
    pass


class ConditionNotSupportedError(ConfigurationError):
    """Raised when a statement already carries ORDER BY, LIMIT or OFFSET."""

    def __init__(self):
        super().__init__(
            "The statement cannot use ORDER BY, LIMIT or OFFSET due to the way iteration with a cursor "
            "is designed. You can use other ways to limit the number of rows, e.g. a WHERE condition "
            "on the primary key column."
        )


class InvalidNestedProducerError(ConfigurationError):
    """Raised when a nested producer factory returns something that is not a Producer."""

    def __init__(self, value: Any, index: int):
        super().__init__(
            f"Expected a Producer object, but returned {type(value).__name__} at index {index}"
        )
        self.index = index


class CursorError(IterationError, ValueError):
    """Raised when a cursor position cannot round-trip through persistence."""

    def __init__(self, message: str, cursor: Any):
        super().__init__(message)
        self.cursor = cursor

    def __str__(self) -> str:
        try:
            inspected = repr(self.cursor)
        except Exception:
            inspected = object.__repr__(self.cursor)
        return f"{super().__str__()} ({inspected})"
