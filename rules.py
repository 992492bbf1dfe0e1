"""
Per-hospital update rule.

``advance`` computes the next ``LiveState`` of one hospital from the
previous one, its static profile and the ambient conditions of the tick
(incident, nodal override, high-strain membership). It is a pure function
of its arguments plus the draws it takes from ``rng``, so a seeded
``random.Random`` makes every tick reproducible. Every call takes the same
number of draws whatever the state, so a control input aimed at one
hospital never shifts the stream another hospital sees.

Order of the step:

1. resolve effective capacity (nominal, or an unexpired nodal override)
2. bed flow: discharges minus admissions plus noise, minus incident shock
3. rate-limit the flow delta
4. asymmetric drift toward the target baseline occupancy
5. ICU drift toward ward occupancy
6. fatigue and satisfaction recurrences
7. wait time
8. oxygen and PPE
9. percentages and bed status
"""

import random
from typing import NamedTuple, Optional

from config import AnchorTargets, EngineConfig
from models import (
    PPE_LEVELS,
    BedStatus,
    HospitalProfile,
    IncidentState,
    LiveState,
    NodalOverride,
    PPELevel,
)


class Capacity(NamedTuple):
    beds: float
    icu: float
    oxygen_days: Optional[float]  # None keeps the running supply
    overridden: bool


class BedFlow(NamedTuple):
    discharge: float
    admission: float
    noise: float
    shock: float
    raw: float
    applied: float  # after rate limiting


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _centered(rng: random.Random, width: float) -> float:
    # Uniform on [-width/2, width/2).
    return (rng.random() - 0.5) * width


def effective_capacity(
    profile: HospitalProfile, override: Optional[NodalOverride], now: float
) -> Capacity:
    if override is not None and override.hospital_id == profile.id and override.is_active(now):
        return Capacity(
            float(override.total_beds),
            float(override.total_icu),
            override.oxygen_supply_days,
            True,
        )
    return Capacity(float(profile.total_beds), float(profile.total_icu), None, False)


def bed_status_for(bed_occupancy_pct: float, config: EngineConfig) -> BedStatus:
    if bed_occupancy_pct >= config.at_capacity_pct:
        return BedStatus.AT_CAPACITY
    if bed_occupancy_pct > config.critical_status_pct:
        return BedStatus.CRITICAL
    if bed_occupancy_pct > config.high_occupancy_pct:
        return BedStatus.HIGH_OCCUPANCY
    return BedStatus.AVAILABLE


def target_occupancy(profile: HospitalProfile, high_strain: bool, config: EngineConfig) -> float:
    anchor = config.anchors.get(profile.id)
    if anchor is not None:
        return anchor.occupancy_pct
    if profile.is_public:
        return config.public_high_strain_pct if high_strain else config.public_resting_pct
    return config.private_high_strain_pct if high_strain else config.private_resting_pct


def drift_coefficient(
    current_pct: float, target_pct: float, high_strain: bool, config: EngineConfig
) -> float:
    """Surges snap quickly, releases are gentler and organic recovery slowest."""
    if high_strain:
        return config.drift_climb
    if current_pct > target_pct:
        return config.drift_release
    return config.drift_recovery


def bed_flow(
    prev: LiveState,
    profile: HospitalProfile,
    beds: float,
    *,
    incident: IncidentState,
    high_strain: bool,
    rng: random.Random,
    config: EngineConfig,
) -> BedFlow:
    """Net beds freed this tick; negative means occupancy rises."""
    alos = max(config.min_alos_days, prev.alos_days + _centered(rng, config.alos_jitter))
    discharge = prev.occupied_beds / alos / 24
    admission = profile.ed_throughput_per_day / 24 * config.admission_fraction

    noise_pct = config.high_strain_noise_pct if high_strain else config.noise_pct
    noise = _centered(rng, noise_pct / 100 * beds)

    shock = config.incident_shock_pct / 100 * beds if incident.affects(profile.region) else 0.0

    raw = discharge - admission + noise - shock
    limit = config.max_bed_change_pct / 100 * beds
    return BedFlow(discharge, admission, noise, shock, raw, _clamp(raw, -limit, limit))


def wait_minutes(
    profile: HospitalProfile, strain: float, fatigue: float, config: EngineConfig
) -> float:
    excess = strain - config.wait_strain_threshold
    occupancy_factor = 1.0
    if excess > 0:
        occupancy_factor += config.wait_overcrowding_gain * excess ** config.wait_overcrowding_exponent
    fatigue_factor = 1 + fatigue / 100 * config.wait_fatigue_gain
    return _clamp(profile.avg_wait_minutes * occupancy_factor * fatigue_factor, *config.wait_bounds)


def _next_ppe(prev: LiveState, rng: random.Random, config: EngineConfig) -> PPELevel:
    level = prev.ppe_stock_level
    # Both rolls are always taken so the draw count never depends on state.
    moves = rng.random() < config.ppe_transition_probability
    roll = rng.random()
    if not moves:
        return level

    index = PPE_LEVELS.index(level)
    improve = config.ppe_improve_probability
    if roll < improve:
        return PPE_LEVELS[index - 1] if index > 0 else level
    if roll < improve + config.ppe_worsen_probability and index < len(PPE_LEVELS) - 1:
        return PPE_LEVELS[index + 1]
    return level


def _build_state(
    profile: HospitalProfile,
    capacity: Capacity,
    *,
    occupied_beds: float,
    occupied_icu_beds: float,
    fatigue: float,
    satisfaction: float,
    wait: float,
    oxygen: float,
    ppe: PPELevel,
    alos: float,
    config: EngineConfig,
) -> LiveState:
    beds, icu = capacity.beds, capacity.icu
    bed_pct = _clamp(occupied_beds / beds * 100, 0.0, 100.0)
    icu_pct = _clamp(occupied_icu_beds / icu * 100, 0.0, 100.0) if icu > 0 else 0.0
    status = bed_status_for(bed_pct, config)

    # At capacity reads as full even if a fraction of a bed is left over.
    available = 0.0 if status is BedStatus.AT_CAPACITY else max(0.0, beds - occupied_beds)

    return LiveState(
        hospital_id=profile.id,
        name=profile.name,
        region=profile.region,
        ownership=profile.ownership,
        total_beds=beds,
        total_icu=icu,
        occupied_beds=occupied_beds,
        occupied_icu_beds=occupied_icu_beds,
        available_beds=available,
        available_icu_beds=max(0.0, icu - occupied_icu_beds),
        bed_occupancy_pct=bed_pct,
        icu_occupancy_pct=icu_pct,
        staff_fatigue_score=_clamp(fatigue, *config.fatigue_bounds),
        patient_satisfaction_pct=_clamp(satisfaction, *config.satisfaction_bounds),
        current_wait_minutes=_clamp(wait, *config.wait_bounds),
        oxygen_supply_days=max(0.0, oxygen),
        ppe_stock_level=ppe,
        bed_status=status,
        alos_days=alos,
        override_active=capacity.overridden,
    )


def initial_state(profile: HospitalProfile, config: EngineConfig, rng: random.Random) -> LiveState:
    anchor = config.anchors.get(profile.id)
    capacity = effective_capacity(profile, None, 0.0)
    beds, icu = capacity.beds, capacity.icu

    if anchor is not None:
        base_pct = anchor.occupancy_pct
    else:
        resting = config.public_resting_pct if profile.is_public else config.private_resting_pct
        base_pct = resting + _centered(rng, config.initial_occupancy_jitter)
    base_pct = min(base_pct, config.max_initial_occupancy_pct)

    occupied = _clamp(base_pct / 100 * beds, min(config.min_occupied_beds, beds), beds)
    bed_pct = occupied / beds * 100

    icu_noise = _centered(rng, config.icu_target_noise)
    icu_pct = anchor.icu_occupancy_pct if anchor is not None else bed_pct + icu_noise
    occupied_icu = _clamp(icu_pct / 100 * icu, 0.0, icu)

    fatigue_noise = _centered(rng, 5.0)
    satisfaction_noise = _centered(rng, 5.0)
    if anchor is not None:
        fatigue, satisfaction = anchor.fatigue, anchor.satisfaction
    else:
        fatigue = config.fatigue_recovery_target + fatigue_noise
        satisfaction = config.satisfaction_recovery_target + satisfaction_noise

    return _build_state(
        profile,
        capacity,
        occupied_beds=occupied,
        occupied_icu_beds=occupied_icu,
        fatigue=fatigue,
        satisfaction=satisfaction,
        wait=profile.avg_wait_minutes * (1 + (bed_pct - 75) / 100),
        oxygen=profile.oxygen_supply_days,
        ppe=profile.ppe_stock_level,
        alos=profile.alos_days,
        config=config,
    )


def advance(
    prev: LiveState,
    profile: HospitalProfile,
    *,
    incident: IncidentState,
    override: Optional[NodalOverride],
    high_strain: bool,
    now: float,
    rng: random.Random,
    config: EngineConfig,
) -> LiveState:
    anchor: Optional[AnchorTargets] = config.anchors.get(profile.id)
    capacity = effective_capacity(profile, override, now)
    beds, icu = capacity.beds, capacity.icu
    in_incident = incident.affects(profile.region)

    # Ward beds: rate-limited flow, then capped drift toward the baseline.
    flow = bed_flow(
        prev, profile, beds, incident=incident, high_strain=high_strain, rng=rng, config=config
    )
    floor = min(config.min_occupied_beds, beds)
    occupied = _clamp(prev.occupied_beds - flow.applied, floor, beds)

    current_pct = occupied / beds * 100
    target_pct = target_occupancy(profile, high_strain, config)
    drift_pct = (target_pct - current_pct) * drift_coefficient(current_pct, target_pct, high_strain, config)
    drift_pct = _clamp(drift_pct, -config.max_drift_pct, config.max_drift_pct)
    occupied = _clamp(occupied + drift_pct / 100 * beds, floor, beds)
    strain = occupied / beds

    # ICU follows the ward loosely. The draws are taken even without ICU beds
    # so every hospital consumes the same number of draws per tick.
    icu_noise = _centered(rng, config.icu_target_noise)
    pressure = config.icu_incident_pressure if in_incident else 1.0
    icu_up = rng.random() < config.icu_jitter_probability * pressure
    icu_down = rng.random() < config.icu_jitter_probability
    occupied_icu = 0.0
    if icu > 0:
        if anchor is not None:
            icu_target = anchor.icu_occupancy_pct
        else:
            icu_target = strain * 100 + config.icu_target_bias + icu_noise
        current_icu_pct = prev.occupied_icu_beds / icu * 100
        occupied_icu = prev.occupied_icu_beds + (icu_target - current_icu_pct) * config.icu_drift / 100 * icu

        if icu_up:
            occupied_icu += 1
        if icu_down:
            occupied_icu -= 1
        occupied_icu = _clamp(occupied_icu, 0.0, icu)

    # Staff fatigue.
    if anchor is not None:
        fatigue_target = anchor.fatigue
        fatigue_gain, fatigue_rate, fatigue_noise = (
            anchor.fatigue_strain_gain, anchor.fatigue_recovery_rate, anchor.fatigue_noise
        )
        satisfaction_target = anchor.satisfaction
    else:
        fatigue_target = config.fatigue_recovery_target
        fatigue_gain, fatigue_rate, fatigue_noise = (
            config.fatigue_strain_gain, config.fatigue_recovery_rate, config.fatigue_noise
        )
        satisfaction_target = config.satisfaction_recovery_target

    fatigue_change = (
        fatigue_gain * (strain - config.fatigue_reference_strain)
        + fatigue_rate * (fatigue_target - prev.staff_fatigue_score)
        + _centered(rng, fatigue_noise)
    )
    fatigue_change = _clamp(fatigue_change, -config.max_fatigue_change, config.max_fatigue_change)
    fatigue = _clamp(prev.staff_fatigue_score + fatigue_change, *config.fatigue_bounds)

    wait = wait_minutes(profile, strain, fatigue, config)

    # Satisfaction sags with fatigue and with waits above the resting wait.
    resting_wait = profile.avg_wait_minutes * (1 + fatigue_target / 100 * config.wait_fatigue_gain)
    satisfaction_change = (
        config.satisfaction_recovery_rate * (satisfaction_target - prev.patient_satisfaction_pct)
        - config.satisfaction_fatigue_weight * (fatigue - fatigue_target)
        - config.satisfaction_wait_weight * (wait / resting_wait - 1)
        + _centered(rng, config.satisfaction_noise)
    )
    satisfaction_change = _clamp(
        satisfaction_change, -config.max_satisfaction_change, config.max_satisfaction_change
    )
    satisfaction = _clamp(
        prev.patient_satisfaction_pct + satisfaction_change, *config.satisfaction_bounds
    )

    # Oxygen drains with ICU and ward load; low stock may get resupplied.
    oxygen = capacity.oxygen_days if capacity.oxygen_days is not None else prev.oxygen_supply_days
    icu_ratio = occupied_icu / icu if icu > 0 else 0.0
    oxygen = max(0.0, oxygen - (icu_ratio * config.oxygen_icu_rate + strain * config.oxygen_ward_rate))
    resupply_roll = rng.random()
    resupply = rng.uniform(*config.oxygen_resupply_range)
    if oxygen < config.oxygen_resupply_threshold and resupply_roll < config.oxygen_resupply_probability:
        oxygen += resupply

    ppe = _next_ppe(prev, rng, config)

    alos = max(
        config.min_alos_days,
        profile.alos_days
        + (strain - 0.75) * config.alos_strain_gain
        + (fatigue / 100 - 0.6) * config.alos_fatigue_gain,
    )

    return _build_state(
        profile,
        capacity,
        occupied_beds=occupied,
        occupied_icu_beds=occupied_icu,
        fatigue=fatigue,
        satisfaction=satisfaction,
        wait=wait,
        oxygen=oxygen,
        ppe=ppe,
        alos=alos,
        config=config,
    )
