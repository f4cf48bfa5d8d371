"""
Interruption probes for iteration jobs.

Each queue backend registers a zero-argument callable that tells running jobs
when the worker is shutting down:

- inline, async, test: never interrupt
- signal: interrupts after SIGTERM or SIGINT

Unregistered backends fall back to NullAdapter with a DeprecationWarning.
"""

from .adapters import (
    NULL_ADAPTER,
    InterruptionAdapter,
    NullAdapter,
    lookup,
    register,
    registered_names,
    unregister,
)
from .signal_adapter import SignalAdapter, signal_adapter

register("signal", signal_adapter)

__all__ = [
    'InterruptionAdapter',
    'NullAdapter',
    'NULL_ADAPTER',
    'SignalAdapter',
    'signal_adapter',
    'lookup',
    'register',
    'registered_names',
    'unregister',
]
