from collections import deque
from typing import Deque, Dict, Iterable, Optional, Tuple

from models import HistoryPoint, LiveState, Snapshot


class HistoryBuffer:
    """Fixed-length ring buffer; appending evicts the oldest point."""

    def __init__(self, capacity: int, seed_timestamp: float = 0.0) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self.capacity = capacity
        # Pre-filled so the length never changes.
        self._points: Deque[HistoryPoint] = deque(
            (HistoryPoint.empty(seed_timestamp) for _ in range(capacity)), maxlen=capacity
        )

    def append(self, point: HistoryPoint) -> None:
        self._points.append(point)

    def __len__(self) -> int:
        return len(self._points)

    def points(self) -> Tuple[HistoryPoint, ...]:
        return tuple(self._points)

    def latest(self) -> HistoryPoint:
        return self._points[-1]


class LiveStateStore:
    """
    Current live state per hospital plus the rolling history.

    Only the engine's tick handler writes here. Each commit builds a new
    immutable ``Snapshot`` and swaps it in, so readers always see a
    complete tick.
    """

    def __init__(self, history_size: int, seed_timestamp: float = 0.0) -> None:
        self.states: Dict[int, LiveState] = {}
        self.history = HistoryBuffer(history_size, seed_timestamp)
        self.tick = 0
        self._snapshot: Optional[Snapshot] = None

    def load(self, states: Iterable[LiveState]) -> None:
        self.states = {s.hospital_id: s for s in states}

    def get(self, hospital_id: int) -> Optional[LiveState]:
        return self.states.get(hospital_id)

    def commit(self, states: Iterable[LiveState], point: HistoryPoint) -> Snapshot:
        self.states = {s.hospital_id: s for s in states}
        self.history.append(point)
        self.tick += 1
        return self.freeze()

    def freeze(self) -> Snapshot:
        self._snapshot = Snapshot(
            state=tuple(self.states.values()),
            history=self.history.points(),
            tick=self.tick,
        )
        return self._snapshot

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot
