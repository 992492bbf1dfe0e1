import random
from collections import Counter
from dataclasses import replace

import pytest

from catalog import load_catalog
from config import STRATEGIC, AnchorTargets
from models import BedStatus, IncidentState, NodalOverride, Ownership, PPE_LEVELS, PPELevel, Region
from rules import (
    advance,
    bed_flow,
    bed_status_for,
    drift_coefficient,
    effective_capacity,
    initial_state,
    target_occupancy,
    wait_minutes,
)


NO_INCIDENT = IncidentState()
NORTH_INCIDENT = IncidentState(is_active=True, region=Region.NORTH)


def _step(prev, profile, rng, *, config=STRATEGIC, incident=NO_INCIDENT, override=None,
          high_strain=False, now=0.0):
    return advance(
        prev,
        profile,
        incident=incident,
        override=override,
        high_strain=high_strain,
        now=now,
        rng=rng,
        config=config,
    )


def test_effective_capacity_uses_live_override(make_profile):
    profile = make_profile(1, total_beds=100, total_icu=10)
    override = NodalOverride(1, total_beds=140, total_icu=20, oxygen_supply_days=5.0, active_until=50.0)

    assert effective_capacity(profile, override, now=10.0) == (140.0, 20.0, 5.0, True)
    # Still honoured at the deadline itself, not after it.
    assert effective_capacity(profile, override, now=50.0).overridden
    assert effective_capacity(profile, override, now=50.1) == (100.0, 10.0, None, False)


def test_effective_capacity_ignores_other_hospitals(make_profile):
    profile = make_profile(1)
    override = NodalOverride(2, total_beds=10, total_icu=1, oxygen_supply_days=1.0, active_until=99.0)
    assert not effective_capacity(profile, override, now=0.0).overridden


@pytest.mark.parametrize(
    "pct, status",
    [
        (40.0, BedStatus.AVAILABLE),
        (80.0, BedStatus.AVAILABLE),
        (80.5, BedStatus.HIGH_OCCUPANCY),
        (96.0, BedStatus.CRITICAL),
        (99.5, BedStatus.AT_CAPACITY),
        (100.0, BedStatus.AT_CAPACITY),
    ],
)
def test_bed_status_thresholds(pct, status):
    assert bed_status_for(pct, STRATEGIC) is status


def test_at_capacity_forces_zero_available(make_profile, rng):
    config = STRATEGIC.with_overrides(at_capacity_pct=40.0)
    state = initial_state(make_profile(1, total_beds=100), config, rng)

    assert state.bed_status is BedStatus.AT_CAPACITY
    assert state.total_beds - state.occupied_beds > 1
    assert state.available_beds == 0


def test_targets_depend_on_ownership_and_strain(make_profile):
    public = make_profile(1)
    private = make_profile(2, ownership=Ownership.PRIVATE_MID)
    anchor = make_profile(150)

    assert target_occupancy(public, False, STRATEGIC) == STRATEGIC.public_resting_pct
    assert target_occupancy(public, True, STRATEGIC) == STRATEGIC.public_high_strain_pct
    assert target_occupancy(private, False, STRATEGIC) == STRATEGIC.private_resting_pct
    assert target_occupancy(private, True, STRATEGIC) == STRATEGIC.private_high_strain_pct
    assert target_occupancy(anchor, True, STRATEGIC) == 75.0


def test_drift_is_asymmetric():
    climb = drift_coefficient(60.0, 93.0, True, STRATEGIC)
    release = drift_coefficient(80.0, 65.0, False, STRATEGIC)
    recovery = drift_coefficient(50.0, 65.0, False, STRATEGIC)
    assert climb > release > recovery


def test_flow_is_rate_limited(make_profile, rng):
    profile = make_profile(1, total_beds=200)
    prev = initial_state(profile, STRATEGIC, rng)
    limit = STRATEGIC.max_bed_change_pct / 100 * 200

    for _ in range(200):
        flow = bed_flow(prev, profile, 200.0, incident=NORTH_INCIDENT, high_strain=True,
                        rng=rng, config=STRATEGIC)
        assert -limit <= flow.applied <= limit
        assert flow.raw == pytest.approx(flow.discharge - flow.admission + flow.noise - flow.shock)


def test_incident_shock_lowers_flow_in_region(make_profile):
    north = make_profile(1, region=Region.NORTH)
    south = make_profile(2, region=Region.SOUTH)
    prev = initial_state(north, STRATEGIC, random.Random(3))

    plain = bed_flow(prev, north, 100.0, incident=NO_INCIDENT, high_strain=False,
                     rng=random.Random(9), config=STRATEGIC)
    shocked = bed_flow(prev, north, 100.0, incident=NORTH_INCIDENT, high_strain=False,
                       rng=random.Random(9), config=STRATEGIC)
    elsewhere = bed_flow(prev, south, 100.0, incident=NORTH_INCIDENT, high_strain=False,
                         rng=random.Random(9), config=STRATEGIC)

    assert shocked.shock > 0
    assert shocked.raw < plain.raw
    assert shocked.applied <= plain.applied
    assert elsewhere.shock == 0


def test_incident_never_lowers_occupancy(make_profile):
    profile = make_profile(1, total_beds=300, region=Region.NORTH)
    prev = initial_state(profile, STRATEGIC, random.Random(5))

    for seed in range(50):
        plain = _step(prev, profile, random.Random(seed))
        shocked = _step(prev, profile, random.Random(seed), incident=NORTH_INCIDENT)
        assert shocked.occupied_beds >= plain.occupied_beds


def test_high_strain_climbs_toward_surge_target(make_profile, rng):
    profile = make_profile(1, total_beds=500)
    state = initial_state(profile, STRATEGIC, rng)
    for _ in range(40):
        state = _step(state, profile, rng, high_strain=True)
    assert state.bed_occupancy_pct > 85


def test_override_capacity_is_applied_and_bounded(make_profile, rng):
    profile = make_profile(1, total_beds=100, total_icu=10)
    state = initial_state(profile, STRATEGIC, rng)
    override = NodalOverride(1, total_beds=40, total_icu=4, oxygen_supply_days=3.0, active_until=10.0)

    nxt = _step(state, profile, rng, override=override, now=5.0)
    assert nxt.override_active
    assert nxt.total_beds == 40
    assert nxt.total_icu == 4
    assert nxt.occupied_beds <= 40
    assert nxt.occupied_icu_beds <= 4
    assert nxt.oxygen_supply_days <= 3.0 + STRATEGIC.oxygen_resupply_range[1]

    lapsed = _step(nxt, profile, rng, override=override, now=11.0)
    assert not lapsed.override_active
    assert lapsed.total_beds == 100


def test_anchor_holds_fixed_targets(make_profile):
    config = STRATEGIC.with_overrides(anchors={1: AnchorTargets(occupancy_pct=70.0, icu_occupancy_pct=60.0)})
    profile = make_profile(1, total_beds=400, total_icu=40)
    rng = random.Random(11)
    state = initial_state(profile, config, rng)
    assert state.bed_occupancy_pct == pytest.approx(70.0)

    for _ in range(60):
        state = _step(state, profile, rng, config=config)
    assert state.bed_occupancy_pct == pytest.approx(70.0, abs=8)


def test_wait_time_grows_superlinearly_above_threshold(make_profile):
    profile = make_profile(1)
    base = wait_minutes(profile, 0.5, 60.0, STRATEGIC)
    assert base == pytest.approx(60.0 * (1 + 0.6 * STRATEGIC.wait_fatigue_gain))
    assert wait_minutes(profile, 0.8, 60.0, STRATEGIC) == pytest.approx(base)

    w85 = wait_minutes(profile, 0.85, 60.0, STRATEGIC)
    w90 = wait_minutes(profile, 0.90, 60.0, STRATEGIC)
    w95 = wait_minutes(profile, 0.95, 60.0, STRATEGIC)
    assert base < w85 < w90 < w95
    assert (w95 - w90) > (w90 - w85)


def test_wait_time_grows_with_fatigue(make_profile):
    profile = make_profile(1)
    assert wait_minutes(profile, 0.5, 90.0, STRATEGIC) > wait_minutes(profile, 0.5, 30.0, STRATEGIC)


def test_oxygen_floors_at_zero_and_recovers_by_resupply(make_profile, rng):
    profile = make_profile(1, oxygen_supply_days=0.01)
    drained = STRATEGIC.with_overrides(oxygen_icu_rate=5.0, oxygen_resupply_probability=0.0)
    state = initial_state(profile, drained, rng)
    state = _step(state, profile, rng, config=drained)
    assert state.oxygen_supply_days == 0.0

    resupplied = STRATEGIC.with_overrides(oxygen_resupply_probability=1.0)
    state = _step(state, profile, rng, config=resupplied)
    assert state.oxygen_supply_days >= resupplied.oxygen_resupply_range[0] - 1


def test_ppe_moves_at_most_one_level(make_profile, rng):
    profile = make_profile(1)
    config = STRATEGIC.with_overrides(ppe_transition_probability=1.0)
    state = initial_state(profile, config, rng)
    for _ in range(200):
        nxt = _step(state, profile, rng, config=config)
        step = abs(PPE_LEVELS.index(nxt.ppe_stock_level) - PPE_LEVELS.index(state.ppe_stock_level))
        assert step <= 1
        state = nxt


@pytest.mark.parametrize(
    "start, expected",
    [
        (PPELevel.GOOD, {PPELevel.LOW: 0.1}),
        (PPELevel.STOCKOUT, {PPELevel.CRITICAL: 0.3}),
        (PPELevel.LOW, {PPELevel.GOOD: 0.3, PPELevel.CRITICAL: 0.1}),
    ],
)
def test_ppe_transition_rates_match_config(make_profile, start, expected):
    profile = make_profile(1)
    config = STRATEGIC.with_overrides(ppe_transition_probability=1.0)
    rng = random.Random(77)
    prev = replace(initial_state(profile, config, rng), ppe_stock_level=start)

    trials = 5000
    moves = Counter(_step(prev, profile, rng, config=config).ppe_stock_level for _ in range(trials))

    for level, rate in expected.items():
        assert moves[level] / trials == pytest.approx(rate, abs=0.03)
    assert sum(moves.values()) - moves[start] == sum(moves[level] for level in expected)


def test_bounds_hold_across_many_ticks():
    catalog = load_catalog()
    rng = random.Random(2024)
    states = {p.id: initial_state(p, STRATEGIC, rng) for p in catalog}

    for tick in range(150):
        incident = NORTH_INCIDENT if tick % 40 < 20 else NO_INCIDENT
        for profile in catalog:
            live = _step(states[profile.id], profile, rng, incident=incident,
                         high_strain=rng.random() < 0.3)
            assert 0 <= live.occupied_beds <= live.total_beds
            assert 0 <= live.occupied_icu_beds <= live.total_icu
            assert 0 <= live.bed_occupancy_pct <= 100
            assert 0 <= live.icu_occupancy_pct <= 100
            assert 10 <= live.staff_fatigue_score <= 100
            assert 30 <= live.patient_satisfaction_pct <= 95
            assert 20 <= live.current_wait_minutes <= 300
            assert live.oxygen_supply_days >= 0
            assert live.available_beds >= 0
            if live.bed_status is BedStatus.AT_CAPACITY:
                assert live.available_beds == 0
            states[profile.id] = live


def test_same_seed_same_result(make_profile):
    profile = make_profile(1)
    prev = initial_state(profile, STRATEGIC, random.Random(1))
    a = _step(prev, profile, random.Random(42), incident=NORTH_INCIDENT)
    b = _step(prev, profile, random.Random(42), incident=NORTH_INCIDENT)
    assert a == b
