"""
Tests for NestedProducer.
"""

import pytest
from sqlalchemy import select

from job_iteration.models import ConfigurationError, InvalidNestedProducerError, Retry
from job_iteration.producers.base import ArrayProducer, IterableProducer
from job_iteration.producers.database import RecordProducer
from job_iteration.producers.nested import NestedProducer

from conftest import comments, products


def product_comment_factories(engine):
    return [
        lambda cursor: RecordProducer(engine, select(products).where(products.c.id <= 3), cursor=cursor),
        lambda product, cursor: RecordProducer(
            engine, select(comments).where(comments.c.product_id == product.id), cursor=cursor
        ),
    ]


@pytest.mark.unit
class TestNestedProducer:
    """Tests for nested iteration over products and their comments."""

    def test_yields_innermost_values_with_composite_cursor(self, engine):
        """Test that the outer slot only advances after its children are done."""
        producer = NestedProducer(product_comment_factories(engine))

        pairs = list(producer)

        assert [comment.id for comment, _ in pairs] == [1, 2, 3, 4]
        assert [cursor for _, cursor in pairs] == [[None, 1], [1, 2], [1, 3], [2, 4]]

    def test_resume_from_composite_cursor(self, engine):
        """Test that resuming reopens the unfinished outer value."""
        producer = NestedProducer(product_comment_factories(engine), cursor=[1, 2])

        pairs = list(producer)

        assert [comment.id for comment, _ in pairs] == [3, 4]
        assert [cursor for _, cursor in pairs] == [[1, 3], [2, 4]]

    def test_resume_from_every_cursor(self, engine):
        """Test resumption idempotence across all emitted cursors."""
        pairs = list(NestedProducer(product_comment_factories(engine)))

        for index, (_, cursor) in enumerate(pairs):
            resumed = NestedProducer(product_comment_factories(engine), cursor=cursor)
            assert [comment.id for comment, _ in resumed] == [comment.id for comment, _ in pairs[index + 1:]]

    def test_outer_values_passed_to_inner_factories(self):
        """Test that every factory receives the values of all outer levels."""
        calls = []

        def innermost(first, second, cursor):
            calls.append((first, second, cursor))
            return ArrayProducer([f"{first}{second}"], cursor=cursor)

        producer = NestedProducer([
            lambda cursor: ArrayProducer(["a", "b"], cursor=cursor),
            lambda first, cursor: ArrayProducer([1, 2], cursor=cursor),
            innermost,
        ])

        values = [value for value, _ in producer]

        assert values == ["a1", "a2", "b1", "b2"]
        assert calls[0] == ("a", 1, None)

    def test_child_slot_reset_after_subtree(self):
        """Test that the child slot is reset to None when its subtree is exhausted."""
        producer = NestedProducer([
            lambda cursor: ArrayProducer(["x", "y"], cursor=cursor),
            lambda outer, cursor: ArrayProducer([10, 20], cursor=cursor),
        ])

        cursors = [cursor for _, cursor in producer]

        assert cursors == [[None, 0], [None, 1], [0, 0], [0, 1]]

    def test_retry_marker_passes_through(self):
        """Test that a control result from a level stops the walk."""
        producer = NestedProducer([
            lambda cursor: ArrayProducer([1, 2], cursor=cursor),
            lambda outer, cursor: IterableProducer([("v", 0), Retry(backoff=5), ("w", 1)]),
        ])

        items = list(producer)

        assert items == [("v", [None, 0]), Retry(backoff=5)]


@pytest.mark.unit
class TestNestedProducerErrors:
    """Tests for rejected nested configurations."""

    def test_non_callable_factory(self):
        """Test that every factory must be callable."""
        with pytest.raises(ConfigurationError, match="index 1"):
            NestedProducer([lambda cursor: ArrayProducer([], cursor=cursor), [1, 2]])

    def test_cursor_length_mismatch(self):
        """Test that the cursor needs one slot per factory."""
        with pytest.raises(ConfigurationError, match="number of cursors"):
            NestedProducer([lambda cursor: ArrayProducer([], cursor=cursor)], cursor=[None, None])

    def test_factory_returning_non_producer(self):
        """Test that a factory must return a Producer."""
        producer = NestedProducer([
            lambda cursor: ArrayProducer([1], cursor=cursor),
            lambda outer, cursor: [("a", 0)],
        ])

        with pytest.raises(InvalidNestedProducerError, match="Expected a Producer object, but returned list at index 1"):
            list(producer)
