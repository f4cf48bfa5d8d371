"""
Registry of interruption adapters keyed by queue backend name.

An interruption adapter is a zero-argument callable returning True once the
worker running the job has been asked to shut down.
"""

import logging
import warnings
from typing import Callable, Dict

logger = logging.getLogger(__name__)

InterruptionAdapter = Callable[[], bool]

_registry: Dict[str, InterruptionAdapter] = {}


class NullAdapter:
    """Adapter that never interrupts."""

    def __call__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NullAdapter()"


NULL_ADAPTER = NullAdapter()


def register(name: str, adapter: InterruptionAdapter) -> None:
    """
    Register an interruption adapter for a queue backend.

    Args:
        name: Queue backend name, e.g. "signal"
        adapter: Zero-argument callable returning True when the worker is stopping

    Raises:
        ValueError: If the adapter is not callable
    """
    if not callable(adapter):
        raise ValueError("adapter must be callable")

    _registry[str(name)] = adapter
    logger.debug(f"Registered interruption adapter for {name!r}: {adapter!r}")


def unregister(name: str) -> None:
    """Remove the adapter registered for a queue backend, if any."""
    _registry.pop(str(name), None)


def lookup(name: str) -> InterruptionAdapter:
    """
    Return the adapter registered for a queue backend.

    Unregistered names fall back to the NullAdapter, which never interrupts,
    and emit a DeprecationWarning.

    Args:
        name: Queue backend name
    """
    adapter = _registry.get(str(name))
    if adapter is not None:
        return adapter

    message = (
        f"No interruption adapter is registered for {name!r}; falling back to NullAdapter, "
        "which never interrupts. Register one with job_iteration.interruption.register(). "
        "This will raise in a future release."
    )
    warnings.warn(message, DeprecationWarning, stacklevel=2)
    logger.warning(message)
    return NULL_ADAPTER


def registered_names():
    return sorted(_registry)


def _never_interrupts() -> bool:
    return False


register("inline", _never_interrupts)
register("async", _never_interrupts)
register("test", _never_interrupts)
