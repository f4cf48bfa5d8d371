"""
Instrumentation events for iteration jobs.

Events are delivered to subscribers and written to the log. Interruptions and
throttling are reported here only; they are never raised as errors.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Dict[str, Any]], None]

_subscribers: List[Subscriber] = []
_lock = threading.Lock()


def subscribe(callback: Subscriber) -> Subscriber:
    """
    Register a callback receiving (event_name, payload) for every event.

    Args:
        callback: Callable invoked synchronously after each event

    Returns:
        The callback, so it can be passed to unsubscribe later
    """
    with _lock:
        _subscribers.append(callback)
    return callback


def unsubscribe(callback: Subscriber) -> None:
    """Remove a previously registered callback."""
    with _lock:
        if callback in _subscribers:
            _subscribers.remove(callback)


def notify(event: str, **payload: Any) -> None:
    """Publish an event that has no duration."""
    _publish(event, payload)


@contextmanager
def instrument(event: str, **payload: Any) -> Iterator[Dict[str, Any]]:
    """
    Time a block and publish the event once it finishes.

    The payload dict is yielded so the block can add tags. The event is
    published even if the block raises; the exception then propagates.
    """
    started = time.perf_counter()
    try:
        yield payload
    finally:
        payload['duration_ms'] = (time.perf_counter() - started) * 1000.0
        _publish(event, payload)


def _publish(event: str, payload: Dict[str, Any]) -> None:
    with _lock:
        subscribers = list(_subscribers)
    for callback in subscribers:
        callback(event, payload)


class LogSubscriber:
    """Writes iteration events to the job_iteration logger."""

    PREFIX = "[JobIteration]"

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        handler = getattr(self, event, None)
        if handler is None:
            logger.debug(f"{self.PREFIX} {event} {payload}")
            return
        handler(payload)

    def nil_producer(self, payload: Dict[str, Any]) -> None:
        logger.info(f"{self.PREFIX} `build_producer` returned None. Skipping the job.")

    def not_found(self, payload: Dict[str, Any]) -> None:
        logger.info(
            f"{self.PREFIX} Producer found nothing to iterate! "
            f"times_interrupted={payload.get('times_interrupted')} "
            f"cursor_position={payload.get('cursor_position')}"
        )

    def interrupted(self, payload: Dict[str, Any]) -> None:
        logger.info(
            f"{self.PREFIX} Interrupting and re-enqueueing the job "
            f"cursor_position={payload.get('cursor_position')}"
        )

    def throttled(self, payload: Dict[str, Any]) -> None:
        logger.info(f"{self.PREFIX} Throttled, retrying in {payload.get('backoff')}s")

    def resumed(self, payload: Dict[str, Any]) -> None:
        logger.info(
            f"{self.PREFIX} Resuming job {payload.get('job_name')} "
            f"times_interrupted={payload.get('times_interrupted')} "
            f"cursor_position={payload.get('cursor_position')}"
        )

    def completed(self, payload: Dict[str, Any]) -> None:
        logger.info(
            f"{self.PREFIX} Completed iterating. "
            f"times_interrupted={payload.get('times_interrupted', 0):d} "
            f"total_time={payload.get('total_time', 0.0):.3f}"
        )


log_subscriber = subscribe(LogSubscriber())
