"""
Interruption adapter driven by process signals.

Workers started by a process supervisor receive SIGTERM (or SIGINT from a
terminal) when they should stop. The adapter records the signal so running
iteration jobs checkpoint after the current item instead of being killed.
"""

import logging
import signal
import threading

logger = logging.getLogger(__name__)


class SignalAdapter:
    """
    Interruption adapter that reports True after a shutdown signal.

    IterationDriver installs the handlers when it resolves the adapter at the
    start of an attempt; calling the adapter installs them too. Handlers can
    only be installed from the main thread.
    """

    def __init__(self, signals=(signal.SIGTERM, signal.SIGINT)):
        """
        Initialize the adapter.

        Args:
            signals: Signals treated as a shutdown request
        """
        self.signals = tuple(signals)
        self.stopping = False
        self._installed = False
        self._previous_handlers = {}
        self._lock = threading.Lock()

    def __call__(self) -> bool:
        self.install()
        return self.stopping

    def install(self) -> bool:
        """
        Install the signal handlers.

        Returns:
            True if handlers are installed
        """
        with self._lock:
            if self._installed:
                return True
            if threading.current_thread() is not threading.main_thread():
                logger.debug("Signal handlers can only be installed from the main thread")
                return False

            for signum in self.signals:
                self._previous_handlers[signum] = signal.signal(signum, self._signal_handler)
            self._installed = True
            return True

    def uninstall(self) -> None:
        """Restore the handlers that were active before install()."""
        with self._lock:
            if not self._installed:
                return
            for signum, handler in self._previous_handlers.items():
                signal.signal(signum, handler)
            self._previous_handlers = {}
            self._installed = False

    def request_stop(self) -> None:
        """Mark the worker as stopping without a signal."""
        self.stopping = True

    def reset(self) -> None:
        self.stopping = False

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully."""
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name} signal; iteration jobs will checkpoint and stop")
        self.stopping = True


signal_adapter = SignalAdapter()
