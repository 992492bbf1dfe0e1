from types import MappingProxyType
from typing import Dict, List, Sequence

from models import HistoryPoint, LiveState, Region


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize(
    states: Sequence[LiveState], timestamp: float, critical_threshold: float = 85.0
) -> HistoryPoint:
    """
    Fold the live states into one history point.

    National and regional occupancy are capacity weighted (occupied beds
    over total beds), the other averages are plain means per hospital.
    """
    total_beds = sum(s.total_beds for s in states)
    occupied_beds = sum(s.occupied_beds for s in states)

    regional: Dict[Region, float] = {}
    for region in Region:
        in_region = [s for s in states if s.region == region]
        region_total = sum(s.total_beds for s in in_region)
        region_occupied = sum(s.occupied_beds for s in in_region)
        regional[region] = region_occupied / region_total * 100 if region_total > 0 else 0.0

    return HistoryPoint(
        timestamp=timestamp,
        avg_occupancy_pct=occupied_beds / total_beds * 100 if total_beds > 0 else 0.0,
        avg_staff_fatigue=_mean([s.staff_fatigue_score for s in states]),
        avg_satisfaction=_mean([s.patient_satisfaction_pct for s in states]),
        avg_wait_minutes=_mean([s.current_wait_minutes for s in states]),
        regional_occupancy=MappingProxyType(regional),
        critical_hospital_count=sum(1 for s in states if s.bed_occupancy_pct > critical_threshold),
    )


def critical_hospitals(states: Sequence[LiveState], threshold: float = 85.0) -> List[LiveState]:
    """Hospitals above ``threshold`` percent occupancy, fullest first."""
    return sorted(
        (s for s in states if s.bed_occupancy_pct > threshold),
        key=lambda s: s.bed_occupancy_pct,
        reverse=True,
    )
