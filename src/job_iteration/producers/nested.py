"""
Nested iteration over several producers, e.g. every comment of every product.

Each level is built by a factory receiving the values of all outer levels and
its own slot of the composite cursor::

    NestedProducer([
        lambda cursor: RecordProducer(engine, select(products), cursor=cursor),
        lambda product, cursor: RecordProducer(
            engine, select(comments).where(comments.c.product_id == product.id), cursor=cursor),
    ], cursor=cursor)

The composite cursor holds one slot per level. An outer slot is only advanced
once everything nested below it has been processed, so resuming re-opens the
unfinished outer value. Slots below a finished subtree are reset to None.
Deeper slots are not reset, so concurrent inserts or deletes between
resumptions may skip or repeat deeply nested values.
"""

from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from ..models import ConfigurationError, InvalidNestedProducerError, Retry
from .base import Producer


class NestedProducer(Producer):
    """Walks a tree of producers depth first, yielding innermost values."""

    def __init__(self, factories: Sequence[Callable[..., Producer]], cursor: Optional[Sequence[Any]] = None):
        """
        Initialize the nested producer.

        Args:
            factories: One callable per level, outermost first
            cursor: Composite cursor yielded earlier, or None to start over

        Raises:
            ConfigurationError: If a factory is not callable or the cursor does
                not have one slot per factory
        """
        factories = list(factories)
        if not factories:
            raise ConfigurationError("NestedProducer needs at least one factory")
        for index, factory in enumerate(factories):
            if not callable(factory):
                raise ConfigurationError(f"Nested producer factory at index {index} is not callable")

        if cursor is None:
            cursor = [None] * len(factories)
        if not isinstance(cursor, (list, tuple)) or len(cursor) != len(factories):
            raise ConfigurationError(
                f"The number of cursors must match the number of producers: "
                f"got {cursor!r} for {len(factories)} factories"
            )

        self._factories = factories
        self._cursor = list(cursor)

    def _open(self, index: int, outer_values: List[Any], cursor: Any) -> Iterator[Any]:
        producer = self._factories[index](*outer_values, cursor)
        if not isinstance(producer, Producer):
            raise InvalidNestedProducerError(producer, index)
        return iter(producer)

    def __iter__(self) -> Iterator[Tuple[Any, List[Any]]]:
        innermost = len(self._factories) - 1
        slots = list(self._cursor)
        pending: List[Any] = [None] * len(self._factories)
        outer_values: List[Any] = []
        stack = [self._open(0, outer_values, slots[0])]

        while stack:
            level = len(stack) - 1
            try:
                item = next(stack[level])
            except StopIteration:
                stack.pop()
                if stack:
                    parent = len(stack) - 1
                    slots[parent + 1] = None
                    slots[parent] = pending[parent]
                    outer_values.pop()
                continue

            if isinstance(item, Retry):
                yield item
                return

            value, cursor = item
            if level == innermost:
                slots[level] = cursor
                yield value, list(slots)
            else:
                pending[level] = cursor
                outer_values.append(value)
                stack.append(self._open(level + 1, outer_values, slots[level + 1]))
