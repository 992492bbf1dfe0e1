import logging
import threading
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class TickScheduler:
    """
    Run ``callback`` repeatedly on a background thread.

    - callback: the work for one firing
    - interval: returns the delay in seconds before the next firing; it is
      called again for every gap, so it may return a jittered value

    The wait between firings is an Event wait, so stop() interrupts it
    immediately instead of sleeping out the remaining delay.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        interval: Callable[[], float],
        name: str = "tick-scheduler",
    ) -> None:
        self.callback = callback
        self.interval = interval
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            if self._stop.is_set():
                logger.warning("%s: previous worker is still stopping; not restarted", self.name)
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._worker, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout)
        # Keep a worker that outlived the join so start() cannot spawn a second one.
        if not thread.is_alive():
            self._thread = None

    def _worker(self) -> None:
        while not self._stop.wait(self.interval()):
            try:
                self.callback()
            except Exception:
                # A bad tick is logged; the loop keeps going until stopped.
                logger.exception("%s: tick failed", self.name)
