"""
Producers over CSV files.

The cursor is the index of the last processed row (or batch). Resuming skips
the rows already processed; the file is read again from the start.
"""

import csv
import itertools
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..models import ConfigurationError
from .base import Producer

logger = logging.getLogger(__name__)


class CsvProducer:
    """
    Builds row and batch producers over a CSV file.

    Example::

        def build_producer(path, cursor=None):
            return CsvProducer(path).rows(cursor=cursor)
    """

    def __init__(self, path: Union[str, Path], headers: bool = True, **reader_options):
        """
        Initialize the CSV source.

        Args:
            path: Path to the CSV file
            headers: Read the first line as field names and yield dict rows
            **reader_options: Passed to csv.reader / csv.DictReader
        """
        if not isinstance(path, (str, Path)):
            raise ConfigurationError("CsvProducer takes the path of a CSV file")
        self.path = Path(path)
        self.headers = headers
        self.reader_options = reader_options

    def _read(self) -> Iterator[Union[Dict[str, Any], List[str]]]:
        with open(self.path, newline='', encoding='utf-8') as f:
            if self.headers:
                reader = csv.DictReader(f, **self.reader_options)
            else:
                reader = csv.reader(f, **self.reader_options)
            for row in reader:
                yield row

    def count_rows(self) -> Optional[int]:
        """Count data rows in the file, or None if it cannot be read."""
        try:
            with open(self.path, newline='', encoding='utf-8') as f:
                count = sum(1 for _ in csv.reader(f, **self.reader_options))
        except OSError as e:
            logger.warning(f"Could not count rows in {self.path}: {e}")
            return None
        if self.headers and count:
            count -= 1
        return count

    def rows(self, cursor: Optional[int] = None) -> Producer:
        """Producer of (row, row_index) pairs."""
        skip = _processed_count(cursor)
        return _CsvIterable(
            lambda: itertools.islice(
                ((row, index) for index, row in enumerate(self._read())), skip, None
            ),
            self.count_rows,
        )

    def batches(self, batch_size: int, cursor: Optional[int] = None) -> Producer:
        """Producer of (list_of_rows, batch_index) pairs."""
        if type(batch_size) is not int or batch_size < 1:
            raise ConfigurationError(f"batch_size must be a positive integer, got {batch_size!r}")
        skip = _processed_count(cursor)

        def generate():
            rows = self._read()
            index = 0
            while True:
                batch = list(itertools.islice(rows, batch_size))
                if not batch:
                    return
                if index >= skip:
                    yield batch, index
                index += 1

        def size():
            count = self.count_rows()
            if count is None:
                return None
            return -(-count // batch_size)

        return _CsvIterable(generate, size)


class _CsvIterable(Producer):
    """Re-creates its generator on every iteration."""

    def __init__(self, generate, size):
        self._generate = generate
        self._size = size

    def __iter__(self) -> Iterator[Tuple[Any, int]]:
        return iter(self._generate())

    def size(self) -> Optional[int]:
        return self._size()


def _processed_count(cursor: Optional[int]) -> int:
    if cursor is None:
        return 0
    if type(cursor) is not int or cursor < -1:
        raise ConfigurationError(f"CSV cursor must be a row index, got {cursor!r}")
    return cursor + 1
