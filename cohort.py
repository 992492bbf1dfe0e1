import random
from typing import AbstractSet, FrozenSet, Iterable, Protocol

from catalog import HospitalCatalog


class CohortStrategy(Protocol):
    """Picks the hospitals biased toward a high occupancy target this tick."""

    def __call__(
        self, catalog: HospitalCatalog, rng: random.Random, tick: int
    ) -> AbstractSet[int]:
        ...


class NoCohort:
    def __call__(self, catalog: HospitalCatalog, rng: random.Random, tick: int) -> FrozenSet[int]:
        return frozenset()


class FixedCohort:
    """Always the same hospitals, e.g. a known list of strained state hospitals."""

    def __init__(self, hospital_ids: Iterable[int]) -> None:
        self.hospital_ids = frozenset(hospital_ids)

    def __call__(self, catalog: HospitalCatalog, rng: random.Random, tick: int) -> FrozenSet[int]:
        return frozenset(i for i in self.hospital_ids if i in catalog)


class RandomCohort:
    """
    Rotating surge sites: draw ``public_count`` government and
    ``private_count`` private hospitals, re-drawn every ``redraw_every``
    ticks. Anchor hospitals are never drawn.
    """

    def __init__(
        self,
        public_count: int = 6,
        private_count: int = 9,
        redraw_every: int = 1,
        exclude: Iterable[int] = (),
    ) -> None:
        if redraw_every < 1:
            raise ValueError("redraw_every must be at least 1")
        self.public_count = public_count
        self.private_count = private_count
        self.redraw_every = redraw_every
        self.exclude = frozenset(exclude)
        self._current: FrozenSet[int] = frozenset()

    def __call__(self, catalog: HospitalCatalog, rng: random.Random, tick: int) -> FrozenSet[int]:
        if tick % self.redraw_every == 0 or not self._current:
            public = [i for i in catalog.public_ids() if i not in self.exclude]
            private = [i for i in catalog.private_ids() if i not in self.exclude]
            chosen = rng.sample(public, min(self.public_count, len(public)))
            chosen += rng.sample(private, min(self.private_count, len(private)))
            self._current = frozenset(chosen)
        return self._current
