import itertools
import logging
from threading import Lock
from typing import Callable, Dict, Optional

from models import Snapshot


logger = logging.getLogger(__name__)

Subscriber = Callable[[Snapshot], None]


class SubscriptionHub:
    """
    Registry of observers that receive every published snapshot.

    Delivery is synchronous and in no particular order. One observer
    raising does not stop delivery to the others; its failure is logged.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[int, Subscriber] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()
        self._latest: Optional[Snapshot] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            token = next(self._ids)
            self._subscribers[token] = callback
            latest = self._latest

        # Late subscribers get the current snapshot straight away.
        if latest is not None:
            self._deliver(token, callback, latest)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    def publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._latest = snapshot
            subscribers = list(self._subscribers.items())

        for token, callback in subscribers:
            self._deliver(token, callback, snapshot)

    def _deliver(self, token: int, callback: Subscriber, snapshot: Snapshot) -> None:
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Subscriber %d failed on tick %d", token, snapshot.tick)
