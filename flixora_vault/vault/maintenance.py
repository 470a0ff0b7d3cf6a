"""
Vault maintenance task — periodic callback on a daemon thread.

The task is owned by a vault: started at construction, stopped once at
shutdown. ``stop()`` is idempotent and safe to call from the task itself.
"""
import logging
import threading
from typing import Callable

logger = logging.getLogger("flixora.vault")


class MaintenanceTask:
    """Run ``callback`` every ``interval`` seconds until stopped."""

    def __init__(
        self,
        callback: Callable[[], object],
        interval: float,
        name: str = "flixora-vault-maintenance",
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._name = name
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None or self._stopped.is_set():
            return
        self._thread = threading.Thread(
            target=self._run, name=self._name, daemon=True,
        )
        self._thread.start()
        logger.debug("Maintenance task started (interval=%ss)", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stopped.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.debug("Maintenance task stopped")

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception as err:
                logger.error("Vault maintenance pass failed: %s", err)
