from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Tuple


# Tunable constants for the capacity simulation. None of these come from a
# clinical model; they are shaped so the dashboard series look plausible
# and stay inside the documented bounds.


@dataclass(frozen=True)
class AnchorTargets:
    """Fixed targets for a hospital pinned to a stable baseline."""

    occupancy_pct: float = 75.0
    icu_occupancy_pct: float = 74.0
    fatigue: float = 70.0
    satisfaction: float = 68.0
    fatigue_strain_gain: float = 1.8
    fatigue_recovery_rate: float = 0.1
    fatigue_noise: float = 1.0


@dataclass(frozen=True)
class EngineConfig:
    # ---------------------------------------------------------
    # 1. Bed flow
    # ---------------------------------------------------------
    admission_fraction: float = 0.24  # share of ED throughput admitted
    alos_jitter: float = 0.2  # total width of the per-tick ALOS wobble (days)
    noise_pct: float = 1.8  # flow noise width, % of capacity
    high_strain_noise_pct: float = 2.0
    incident_shock_pct: float = 1.0  # surge admissions per tick, % of capacity
    max_bed_change_pct: float = 3.0  # rate limit on the flow delta, % of capacity
    min_occupied_beds: float = 5.0

    # ---------------------------------------------------------
    # 2. Drift toward baseline occupancy
    # ---------------------------------------------------------
    public_resting_pct: float = 65.0
    public_high_strain_pct: float = 93.0
    private_resting_pct: float = 55.0
    private_high_strain_pct: float = 89.0
    initial_occupancy_jitter: float = 6.0  # total width around the resting baseline
    max_initial_occupancy_pct: float = 96.0
    drift_climb: float = 0.4
    drift_release: float = 0.12
    drift_recovery: float = 0.1
    max_drift_pct: float = 6.0  # cap on the drift step, % of capacity

    # ---------------------------------------------------------
    # 3. ICU coupling
    # ---------------------------------------------------------
    icu_drift: float = 0.1
    icu_target_bias: float = 0.0
    icu_target_noise: float = 10.0  # total width
    icu_jitter_probability: float = 0.12
    icu_incident_pressure: float = 1.5

    # ---------------------------------------------------------
    # 4. Staff fatigue and patient satisfaction
    # ---------------------------------------------------------
    fatigue_bounds: Tuple[float, float] = (10.0, 100.0)
    fatigue_reference_strain: float = 0.78
    fatigue_strain_gain: float = 6.0
    fatigue_recovery_target: float = 61.0
    fatigue_recovery_rate: float = 0.25
    fatigue_noise: float = 2.0
    max_fatigue_change: float = 1.5

    satisfaction_bounds: Tuple[float, float] = (30.0, 95.0)
    satisfaction_recovery_target: float = 71.0
    satisfaction_recovery_rate: float = 0.15
    satisfaction_fatigue_weight: float = 0.5
    satisfaction_wait_weight: float = 6.0
    satisfaction_noise: float = 2.5
    max_satisfaction_change: float = 2.0

    # ---------------------------------------------------------
    # 5. Wait time
    # ---------------------------------------------------------
    wait_bounds: Tuple[float, float] = (20.0, 300.0)
    wait_strain_threshold: float = 0.8
    wait_overcrowding_gain: float = 27.0
    wait_overcrowding_exponent: float = 1.5
    wait_fatigue_gain: float = 0.3

    # ---------------------------------------------------------
    # 6. Resources
    # ---------------------------------------------------------
    oxygen_icu_rate: float = 0.05  # days consumed per tick at full ICU
    oxygen_ward_rate: float = 0.01
    oxygen_resupply_threshold: float = 10.0
    oxygen_resupply_probability: float = 0.15
    oxygen_resupply_range: Tuple[float, float] = (5.0, 20.0)
    ppe_transition_probability: float = 0.05
    ppe_improve_probability: float = 0.3
    ppe_worsen_probability: float = 0.1
    alos_strain_gain: float = 2.5
    alos_fatigue_gain: float = 1.5
    min_alos_days: float = 1.0

    # ---------------------------------------------------------
    # 7. Status thresholds (bed occupancy %)
    # ---------------------------------------------------------
    high_occupancy_pct: float = 80.0
    critical_status_pct: float = 95.0
    at_capacity_pct: float = 99.5
    critical_hospital_pct: float = 85.0

    # ---------------------------------------------------------
    # 8. Cohort, history and scheduling
    # ---------------------------------------------------------
    high_strain_public: int = 6
    high_strain_private: int = 9
    cohort_redraw_every: int = 1  # ticks between cohort draws
    anchors: Mapping[int, AnchorTargets] = field(
        default_factory=lambda: {150: AnchorTargets()}
    )
    history_size: int = 30
    bootstrap_ticks: int = 30
    bootstrap_spacing_seconds: float = 60.0
    tick_interval_range: Tuple[float, float] = (2.0, 5.0)  # seconds

    # ---------------------------------------------------------
    # 9. Nearest-hospital recommendations
    # ---------------------------------------------------------
    travel_speed_kmph: float = 35.0
    traffic_factor: float = 1.5
    dispatch_minutes: float = 5.0
    recommend_base_score: float = 100.0
    eta_weight: float = 2.0  # points lost per minute of travel
    occupancy_weight: float = 0.5
    fatigue_weight: float = 0.3
    low_beds_threshold: float = 10.0
    low_icu_threshold: float = 2.0
    scarcity_penalty: float = 50.0
    incident_penalty: float = 300.0
    recommend_limit: int = 3

    def max_occupancy_step(self, capacity: float) -> float:
        """Largest change in occupied beds one tick can make at ``capacity``."""
        return (self.max_bed_change_pct + self.max_drift_pct) / 100 * capacity

    def with_overrides(self, **changes) -> "EngineConfig":
        return replace(self, **changes)


STRATEGIC = EngineConfig()

# The public portal ran a damped copy of the same recurrences.
PUBLIC = EngineConfig(
    noise_pct=1.2,
    high_strain_noise_pct=1.4,
    max_bed_change_pct=2.0,
    max_drift_pct=4.0,
    public_resting_pct=72.0,
    public_high_strain_pct=88.0,
    private_resting_pct=60.0,
    private_high_strain_pct=88.0,
    fatigue_strain_gain=2.5,
    fatigue_recovery_rate=0.1,
    fatigue_noise=0.4,
    max_fatigue_change=0.5,
    satisfaction_recovery_rate=0.08,
    satisfaction_noise=1.0,
    max_satisfaction_change=0.75,
    oxygen_icu_rate=0.015,
    oxygen_ward_rate=0.004,
)

PRESETS: Dict[str, EngineConfig] = {
    "strategic": STRATEGIC,
    "public": PUBLIC,
}


def get_config(name: str = "strategic") -> EngineConfig:
    try:
        return PRESETS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown preset {name!r}; expected one of {sorted(PRESETS)}"
        ) from None
