"""
Throttling of producers on an external health signal.
"""

from typing import Any, Callable, Iterator, Optional

from ..instrumentation import notify
from ..models import ConfigurationError, Retry
from .base import Producer


class ThrottleProducer(Producer):
    """
    Passes values through until ``throttle_on()`` returns true.

    The check runs before each value is handed out. Once it trips, a single
    Retry(backoff) is yielded and iteration stops; the driver reschedules the
    job after the backoff. The wrapped producer's cursors are passed through,
    so no value is lost.
    """

    def __init__(self, producer: Producer, throttle_on: Callable[[], bool], backoff: Optional[float]):
        if not isinstance(producer, Producer):
            raise ConfigurationError(f"Cannot throttle {type(producer).__name__}, expected a Producer")
        if not callable(throttle_on):
            raise ConfigurationError("throttle_on must be callable")
        if backoff is not None and backoff < 0:
            raise ConfigurationError(f"backoff must be non-negative, got {backoff}")

        self.producer = producer
        self.throttle_on = throttle_on
        self.backoff = backoff

    def __iter__(self) -> Iterator[Any]:
        for item in self.producer:
            if isinstance(item, Retry):
                yield item
                return

            if self.throttle_on():
                notify("throttled", backoff=self.backoff)
                yield Retry(backoff=self.backoff)
                return

            yield item

    def size(self) -> Optional[int]:
        return self.producer.size()
