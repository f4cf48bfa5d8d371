"""
Tests for array, iterable and CSV producers and the ProducerBuilder facade.
"""

import pytest
from sqlalchemy import select

from job_iteration.config import CONFIG_PATH_ENV, IterationConfig
from job_iteration.models import ConfigurationError
from job_iteration.producers import (
    ArrayProducer,
    CsvProducer,
    IterableProducer,
    NestedProducer,
    ProducerBuilder,
    RecordBatchProducer,
    RecordProducer,
    StatementBatchProducer,
    ThrottleProducer,
)

from conftest import products


@pytest.mark.unit
class TestArrayProducer:
    """Tests for ArrayProducer."""

    def test_yields_items_with_index(self):
        """Test that the cursor is the item index."""
        assert list(ArrayProducer([10, 20, 30])) == [(10, 0), (20, 1), (30, 2)]

    def test_resumes_after_cursor(self):
        """Test that cursor N resumes at index N + 1."""
        producer = ArrayProducer([10, 20, 30], cursor=1)

        assert list(producer) == [(30, 2)]
        assert producer.size() == 3

    def test_cursor_at_last_index_is_exhausted(self):
        """Test that the last index leaves nothing to produce."""
        assert list(ArrayProducer([10, 20, 30], cursor=2)) == []

    def test_rejects_non_list(self):
        """Test that only lists are accepted."""
        with pytest.raises(ConfigurationError):
            ArrayProducer({1, 2, 3})

    def test_rejects_non_index_cursor(self):
        """Test that the cursor must be an integer index."""
        with pytest.raises(ConfigurationError):
            ArrayProducer([1, 2], cursor="1")


@pytest.mark.unit
class TestIterableProducer:
    """Tests for IterableProducer."""

    def test_wraps_pairs(self):
        """Test that pairs pass through and size is optional."""
        producer = IterableProducer([("a", 1), ("b", 2)], size=lambda: 2)

        assert list(producer) == [("a", 1), ("b", 2)]
        assert producer.size() == 2
        assert IterableProducer([]).size() is None


@pytest.mark.unit
class TestCsvProducer:
    """Tests for CsvProducer."""

    def test_rows_with_headers(self, csv_file):
        """Test that header rows become dicts and cursors are row indices."""
        pairs = list(CsvProducer(csv_file).rows())

        assert pairs[0] == ({"id": "1", "name": "product-1"}, 0)
        assert [cursor for _, cursor in pairs] == [0, 1, 2, 3, 4]

    def test_rows_resume(self, csv_file):
        """Test resuming rows after a cursor."""
        pairs = list(CsvProducer(csv_file).rows(cursor=2))

        assert [row["id"] for row, _ in pairs] == ["4", "5"]

    def test_rows_without_headers(self, csv_file):
        """Test that rows are lists when headers are disabled."""
        pairs = list(CsvProducer(csv_file, headers=False).rows())

        assert pairs[0] == (["id", "name"], 0)
        assert len(pairs) == 6

    def test_batches(self, csv_file):
        """Test batches of rows with batch index cursors."""
        producer = CsvProducer(csv_file).batches(2, cursor=0)

        batches = list(producer)

        assert [[row["id"] for row in batch] for batch, _ in batches] == [["3", "4"], ["5"]]
        assert [cursor for _, cursor in batches] == [1, 2]
        assert producer.size() == 3

    def test_size_excludes_header(self, csv_file):
        """Test that the row count does not include the header."""
        assert CsvProducer(csv_file).rows().size() == 5

    def test_rejects_non_path(self):
        """Test that a path is required."""
        with pytest.raises(ConfigurationError):
            CsvProducer(["id", "name"])


@pytest.mark.unit
class TestProducerBuilder:
    """Tests for the ProducerBuilder facade."""

    def test_once_and_times(self):
        """Test the counting producers."""
        builder = ProducerBuilder()

        assert list(builder.once()) == [(0, 0)]
        assert list(builder.times(3, cursor=0)) == [(1, 1), (2, 2)]

    def test_times_requires_integer(self):
        """Test that times() rejects non-integers."""
        with pytest.raises(ConfigurationError):
            ProducerBuilder().times("3")

    def test_database_producers(self, engine):
        """Test that database producers use the builder's bind and batch size."""
        builder = ProducerBuilder(engine, default_batch_size=4)

        records = builder.records(select(products), cursor=8)
        batches = builder.batches(select(products))
        statements = builder.batch_statements(select(products))

        assert isinstance(records, RecordProducer)
        assert isinstance(batches, RecordBatchProducer)
        assert isinstance(statements, StatementBatchProducer)
        assert [cursor for _, cursor in records] == [9, 10]
        assert batches.batch_size == 4

    def test_zero_batch_size_rejected(self, engine):
        """Test that an explicit batch_size of 0 is not replaced by the default."""
        builder = ProducerBuilder(engine, default_batch_size=4)

        with pytest.raises(ConfigurationError, match="batch_size"):
            builder.records(select(products), batch_size=0)
        with pytest.raises(ConfigurationError, match="batch_size"):
            builder.deleting_batches(select(products), batch_size=0)

    def test_from_config_uses_default_batch_size(self, engine):
        """Test that the configured default_batch_size reaches the producers."""
        builder = ProducerBuilder.from_config(engine, IterationConfig(default_batch_size=7))

        assert builder.default_batch_size == 7
        assert builder.batch_statements(select(products)).batch_size == 7
        assert builder.records(select(products), batch_size=2).batch_size == 2

    def test_from_config_loads_environment(self, engine, tmp_path, monkeypatch):
        """Test that from_config falls back to the configuration file."""
        config_file = tmp_path / "iteration.yaml"
        config_file.write_text("iteration:\n  default_batch_size: 5\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(config_file))

        builder = ProducerBuilder.from_config(engine)

        assert builder.batches(select(products)).batch_size == 5

    def test_database_producer_requires_bind(self):
        """Test that a bind is required for database producers."""
        with pytest.raises(ConfigurationError, match="bind"):
            ProducerBuilder().records(select(products))

    def test_database_producer_requires_select(self, engine):
        """Test that only Select statements are accepted."""
        with pytest.raises(ConfigurationError):
            ProducerBuilder(engine).records(products)

    def test_composition(self, csv_file):
        """Test throttle, csv and nested helpers."""
        builder = ProducerBuilder()

        throttled = builder.throttle(builder.csv(csv_file), throttle_on=lambda: False, backoff=10)
        nested = builder.nested([
            lambda cursor: builder.array(["a"], cursor=cursor),
            lambda letter, cursor: builder.csv_batches(csv_file, cursor=cursor, batch_size=5),
        ])

        assert isinstance(throttled, ThrottleProducer)
        assert len(list(throttled)) == 5
        assert isinstance(nested, NestedProducer)
        assert [cursor for _, cursor in nested] == [[None, 0]]
