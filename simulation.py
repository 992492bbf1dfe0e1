import logging
import random
import time
from dataclasses import replace
from threading import Lock
from typing import Callable, Optional, Tuple

from aggregator import summarize
from catalog import HospitalCatalog
from cohort import CohortStrategy, RandomCohort
from config import STRATEGIC, EngineConfig
from hub import Subscriber, SubscriptionHub
from models import (
    Controls,
    HistoryPoint,
    IncidentState,
    LiveState,
    NodalOverride,
    Region,
    Snapshot,
)
from rules import advance, initial_state
from scheduler import TickScheduler
from state import LiveStateStore


logger = logging.getLogger(__name__)


class InvalidControlError(ValueError):
    """A control input was rejected; the engine state is unchanged."""


class SimulationEngine:
    """
    Owns the live state of every hospital and evolves it tick by tick.

    The tick handler is the only writer of the store. The two control
    inlets stage a new immutable ``Controls`` value that the next tick
    reads at its start, so they are safe to call from any thread.
    """

    def __init__(
        self,
        catalog: HospitalCatalog,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        cohort: Optional[CohortStrategy] = None,
        hub: Optional[SubscriptionHub] = None,
        interval_rng: Optional[random.Random] = None,
    ) -> None:
        self.catalog = catalog
        self.config = config if config is not None else STRATEGIC
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        if cohort is None:
            cohort = RandomCohort(
                public_count=self.config.high_strain_public,
                private_count=self.config.high_strain_private,
                redraw_every=self.config.cohort_redraw_every,
                exclude=self.config.anchors,
            )
        self.cohort = cohort
        self.hub = hub if hub is not None else SubscriptionHub()
        self.store = LiveStateStore(self.config.history_size)

        self._interval_rng = interval_rng if interval_rng is not None else random.Random()
        self._controls = Controls()
        self._control_lock = Lock()
        self._tick_lock = Lock()
        self._ready = False
        self._scheduler = TickScheduler(self.tick, self._next_interval, name="bed-capacity-tick")

    # ---------- Lifecycle ----------

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def initialize(self) -> Snapshot:
        """
        Build the initial state and run the bootstrap ticks so the first
        published snapshot already carries a full rolling history.
        """
        with self._tick_lock:
            if self._ready:
                return self.store.snapshot

            now = self.clock()
            spacing = self.config.bootstrap_spacing_seconds
            start = now - self.config.bootstrap_ticks * spacing

            self.store = LiveStateStore(self.config.history_size, seed_timestamp=start)
            self.store.load(initial_state(p, self.config, self.rng) for p in self.catalog)
            for i in range(self.config.bootstrap_ticks):
                self._step(timestamp=start + (i + 1) * spacing, now=now)

            snapshot = self.store.freeze()
            self._ready = True

        logger.info(
            "Simulation ready: %d hospitals, %d bootstrap ticks",
            len(self.catalog),
            self.config.bootstrap_ticks,
        )
        self.hub.publish(snapshot)
        return snapshot

    def start(self) -> None:
        self.initialize()
        self._scheduler.start()
        logger.info("Tick loop started")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._scheduler.stop(timeout)
        logger.info("Tick loop stopped")

    def _next_interval(self) -> float:
        low, high = self.config.tick_interval_range
        return self._interval_rng.uniform(low, high)

    # ---------- Ticking ----------

    def tick(self) -> Snapshot:
        if not self._ready:
            self.initialize()

        with self._tick_lock:
            now = self.clock()
            snapshot = self._step(timestamp=now, now=now)
            # Broadcast inside the tick so deliveries follow tick order.
            self.hub.publish(snapshot)
        return snapshot

    def _step(self, timestamp: float, now: float) -> Snapshot:
        controls = self.controls
        high_strain = self.cohort(self.catalog, self.rng, self.store.tick)

        states = []
        for profile in self.catalog:
            states.append(
                advance(
                    self.store.get(profile.id),
                    profile,
                    incident=controls.incident,
                    override=controls.override,
                    high_strain=profile.id in high_strain,
                    now=now,
                    rng=self.rng,
                    config=self.config,
                )
            )

        point = summarize(states, timestamp, self.config.critical_hospital_pct)
        snapshot = self.store.commit(states, point)
        logger.debug(
            "Tick %d: occupancy %.1f%%, %d critical",
            snapshot.tick,
            point.avg_occupancy_pct,
            point.critical_hospital_count,
        )
        return snapshot

    # ---------- Observers ----------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.hub.subscribe(callback)

    def snapshot(self) -> Optional[Snapshot]:
        return self.store.snapshot

    def current_state(self) -> Tuple[LiveState, ...]:
        snapshot = self.store.snapshot
        return snapshot.state if snapshot is not None else ()

    def history(self) -> Tuple[HistoryPoint, ...]:
        snapshot = self.store.snapshot
        return snapshot.history if snapshot is not None else ()

    def get_state(self, hospital_id: int) -> Optional[LiveState]:
        for live in self.current_state():
            if live.hospital_id == hospital_id:
                return live
        return None

    # ---------- Control inlets ----------

    @property
    def controls(self) -> Controls:
        with self._control_lock:
            return self._controls

    @property
    def incident_state(self) -> IncidentState:
        return self.controls.incident

    @property
    def nodal_override(self) -> Optional[NodalOverride]:
        return self.controls.override

    def set_incident_state(self, state: IncidentState) -> None:
        region = state.region
        if region is not None and not isinstance(region, Region):
            try:
                region = Region(region)
            except ValueError:
                self._reject(f"Unknown region {state.region!r}")
        if state.is_active and region is None:
            self._reject("An active incident needs a region")

        staged = IncidentState(is_active=state.is_active, region=region)
        with self._control_lock:
            self._controls = replace(self._controls, incident=staged)
        logger.info("Incident state set: active=%s region=%s", staged.is_active, staged.region)

    def set_nodal_override(self, override: Optional[NodalOverride]) -> None:
        if override is not None:
            self._validate_override(override)

        with self._control_lock:
            self._controls = replace(self._controls, override=override)
        if override is None:
            logger.info("Nodal override cleared")
        else:
            logger.info(
                "Nodal override for hospital %d until %.0f", override.hospital_id, override.active_until
            )

    def _validate_override(self, override: NodalOverride) -> None:
        if override.hospital_id not in self.catalog:
            self._reject(f"Unknown hospital id {override.hospital_id}")
        if override.total_beds <= 0:
            self._reject("Override total_beds must be positive")
        if override.total_icu < 0:
            self._reject("Override total_icu cannot be negative")
        if override.oxygen_supply_days < 0:
            self._reject("Override oxygen_supply_days cannot be negative")
        if override.active_until <= self.clock():
            self._reject("Override active_until is in the past")

    def _reject(self, reason: str) -> None:
        logger.warning("Rejected control input: %s", reason)
        raise InvalidControlError(reason)
