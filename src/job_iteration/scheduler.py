"""
Rescheduling of interrupted iteration jobs.

The host queue implements Scheduler.enqueue to put a job record back on the
queue. InlineScheduler keeps records in memory and runs them in-process.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Tuple, TYPE_CHECKING

from .models import ConfigurationError, IterationOutcome, JobRecord

if TYPE_CHECKING:
    from .iteration import IterationDriver

logger = logging.getLogger(__name__)


class Scheduler(ABC):
    """Puts a job record back on the host queue."""

    @abstractmethod
    def enqueue(self, record: JobRecord, delay: Optional[float] = None) -> None:
        """
        Schedule another attempt of a job.

        Args:
            record: Job record carrying the iteration state to resume from
            delay: Seconds to wait before the next attempt, or None for no delay
        """
        pass


class InlineScheduler(Scheduler):
    """
    In-memory scheduler running enqueued jobs in the calling process.

    Records are stored in their persisted form, so every attempt resumes from
    a freshly deserialized record. Delays are recorded but not waited for.
    """

    def __init__(self):
        self.jobs: List[Tuple[Dict[str, Any], Optional[float]]] = []

    def enqueue(self, record: JobRecord, delay: Optional[float] = None) -> None:
        self.jobs.append((record.to_dict(), delay))
        logger.info(
            f"Enqueued job {record.job_name} (times_interrupted={record.times_interrupted}, "
            f"delay={delay})"
        )

    def __len__(self) -> int:
        return len(self.jobs)

    def pop(self) -> Tuple[JobRecord, Optional[float]]:
        """Remove and return the oldest enqueued record and its delay."""
        data, delay = self.jobs.pop(0)
        return JobRecord.from_dict(data), delay

    def clear(self) -> None:
        self.jobs.clear()

    def perform_enqueued(self, drivers: Dict[str, 'IterationDriver'],
                         max_attempts: Optional[int] = None) -> List[IterationOutcome]:
        """
        Run enqueued jobs until the queue is empty.

        Jobs re-enqueued while running are picked up too.

        Args:
            drivers: Driver for each job name
            max_attempts: Stop after this many attempts, or None to drain the queue

        Returns:
            Outcome of every attempt in order

        Raises:
            ConfigurationError: If no driver is registered for an enqueued job
        """
        outcomes = []
        while self.jobs and (max_attempts is None or len(outcomes) < max_attempts):
            record, delay = self.pop()
            driver = drivers.get(record.job_name)
            if driver is None:
                raise ConfigurationError(f"No driver registered for job {record.job_name!r}")

            logger.debug(f"Performing {record.job_name} (scheduled delay={delay})")
            outcomes.append(driver.perform(record))
        return outcomes
