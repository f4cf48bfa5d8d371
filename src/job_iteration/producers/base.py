"""
Base classes for producers.

A producer is a lazy sequence of ``(value, cursor)`` pairs. The cursor yielded
with a value marks that value as the last one processed: building the same
producer again from that cursor continues with the next value.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from ..models import ConfigurationError


class Producer(ABC):
    """
    Base class for everything an iteration job can iterate over.

    Subclasses yield ``(value, cursor)`` tuples. Wrappers may also yield a
    control result (see job_iteration.models.Retry) to ask the driver to stop.
    """

    @abstractmethod
    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        """Yield (value, cursor) pairs lazily."""
        pass

    def size(self) -> Optional[int]:
        """
        Estimate the number of values, for observability only.

        Returns:
            Estimated count, or None if unknown
        """
        return None


class IterableProducer(Producer):
    """Wraps any iterable of (value, cursor) pairs as a Producer."""

    def __init__(self, iterable: Iterable[Tuple[Any, Any]], size: Optional[Callable[[], Optional[int]]] = None):
        """
        Initialize the wrapper.

        Args:
            iterable: Iterable yielding (value, cursor) pairs
            size: Optional callable returning a size estimate
        """
        self._iterable = iterable
        self._size = size

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        for item in self._iterable:
            yield item

    def size(self) -> Optional[int]:
        if self._size is None:
            return None
        return self._size()


class ArrayProducer(Producer):
    """
    Produces the items of a list, using the item index as the cursor.

    A cursor of N means index N was processed; iteration resumes at N + 1.
    """

    def __init__(self, items: List[Any], cursor: Optional[int] = None):
        if not isinstance(items, (list, tuple)):
            raise ConfigurationError("items must be a list")
        if cursor is not None and (type(cursor) is not int or cursor < -1):
            raise ConfigurationError(f"Array cursor must be an index, got {cursor!r}")

        self._items = list(items)
        self._cursor = cursor

    def __iter__(self) -> Iterator[Tuple[Any, int]]:
        start = 0 if self._cursor is None else self._cursor + 1
        for index in range(start, len(self._items)):
            yield self._items[index], index

    def size(self) -> int:
        return len(self._items)
