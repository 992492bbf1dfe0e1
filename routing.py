import math
from typing import List, NamedTuple, Optional, Sequence

from catalog import HospitalCatalog
from config import STRATEGIC, EngineConfig
from models import IncidentState, LiveState


EARTH_RADIUS_KM = 6371.0


class Recommendation(NamedTuple):
    state: LiveState
    distance_km: float
    eta_minutes: float
    score: float


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def eta_minutes(distance: float, config: EngineConfig = STRATEGIC) -> float:
    travel = distance / config.travel_speed_kmph * 60 * config.traffic_factor
    return travel + config.dispatch_minutes


def score_hospital(
    state: LiveState, eta: float, incident: IncidentState, config: EngineConfig = STRATEGIC
) -> float:
    """
    Higher is better. Starts from a base score and loses points for:
    - travel time
    - bed occupancy and staff fatigue
    - almost no free beds or ICU beds
    - sitting inside the incident region
    """
    score = config.recommend_base_score
    if incident.affects(state.region):
        score -= config.incident_penalty
    score -= eta * config.eta_weight
    score -= state.bed_occupancy_pct * config.occupancy_weight
    score -= state.staff_fatigue_score * config.fatigue_weight
    if state.available_beds < config.low_beds_threshold:
        score -= config.scarcity_penalty
    if state.available_icu_beds < config.low_icu_threshold:
        score -= config.scarcity_penalty
    return score


def recommend(
    states: Sequence[LiveState],
    catalog: HospitalCatalog,
    lat: float,
    lon: float,
    incident: IncidentState,
    config: EngineConfig = STRATEGIC,
    limit: Optional[int] = None,
) -> List[Recommendation]:
    """Best hospitals for a caller at (lat, lon), highest score first."""
    if limit is None:
        limit = config.recommend_limit

    ranked = []
    for state in states:
        profile = catalog.get(state.hospital_id)
        if profile is None:
            continue
        distance = distance_km(lat, lon, *profile.coords)
        eta = eta_minutes(distance, config)
        ranked.append(Recommendation(state, distance, eta, score_hospital(state, eta, incident, config)))

    # Ties go to the nearer hospital.
    ranked.sort(key=lambda r: (-r.score, r.distance_km))
    return ranked[:limit]
