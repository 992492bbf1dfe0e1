import logging
import os
import random
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query

from aggregator import critical_hospitals
from catalog import load_catalog
from config import get_config
from models import (
    HistoryPointOut,
    IncidentIn,
    IncidentOut,
    IncidentState,
    LiveStateOut,
    NodalOverride,
    NodalOverrideIn,
    NodalOverrideOut,
    RecommendationOut,
    Region,
    StatusOut,
)
from routing import recommend
from simulation import InvalidControlError, SimulationEngine


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hospital Bed Capacity Simulator",
    description=(
        "Simulates live bed, ICU, staffing and supply state for a network of "
        "Indian hospitals, with rolling national and regional history, "
        "regional incident declaration and time-bounded nodal overrides."
    ),
)

engine: Optional[SimulationEngine] = None


def build_engine() -> SimulationEngine:
    preset = os.environ.get("BEDSIM_PRESET", "strategic")
    seed = os.environ.get("BEDSIM_SEED")
    rng = random.Random(int(seed)) if seed else None
    catalog = load_catalog(os.environ.get("BEDSIM_CATALOG") or None)
    logger.info("Building engine with preset %r", preset)
    return SimulationEngine(catalog, config=get_config(preset), rng=rng)


@app.on_event("startup")
def startup_event() -> None:
    global engine
    engine = build_engine()
    engine.start()


@app.on_event("shutdown")
def shutdown_event() -> None:
    if engine is not None:
        engine.stop()


def get_engine() -> SimulationEngine:
    if engine is None or not engine.is_ready:
        raise HTTPException(status_code=503, detail="Simulation not ready")
    return engine


@app.get("/hospitals", response_model=List[LiveStateOut])
def list_hospitals(region: Optional[Region] = None):
    states = get_engine().current_state()
    return [
        LiveStateOut.model_validate(s)
        for s in states
        if region is None or s.region == region
    ]


@app.get("/hospitals/critical", response_model=List[LiveStateOut])
def list_critical_hospitals():
    sim = get_engine()
    threshold = sim.config.critical_hospital_pct
    return [LiveStateOut.model_validate(s) for s in critical_hospitals(sim.current_state(), threshold)]


@app.get("/hospitals/recommended", response_model=List[RecommendationOut])
def recommended_hospitals(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    limit: Optional[int] = Query(None, ge=1),
):
    """Rank hospitals for a caller location by travel time and current load."""
    sim = get_engine()
    ranked = recommend(
        sim.current_state(), sim.catalog, lat, lon, sim.incident_state, sim.config, limit
    )
    return [
        RecommendationOut(
            hospital=LiveStateOut.model_validate(r.state),
            distance_km=r.distance_km,
            eta_minutes=r.eta_minutes,
            score=r.score,
        )
        for r in ranked
    ]


@app.get("/hospitals/{hospital_id}", response_model=LiveStateOut)
def get_hospital(hospital_id: int):
    live = get_engine().get_state(hospital_id)
    if live is None:
        raise HTTPException(status_code=404, detail="Unknown hospital")
    return LiveStateOut.model_validate(live)


@app.get("/history", response_model=List[HistoryPointOut])
def national_history():
    return [HistoryPointOut.model_validate(p) for p in get_engine().history()]


@app.get("/status", response_model=StatusOut)
def status():
    sim = get_engine()
    snapshot = sim.snapshot()
    override = sim.nodal_override
    return StatusOut(
        ready=sim.is_ready,
        tick=snapshot.tick if snapshot is not None else 0,
        hospitals=len(sim.catalog),
        incident=IncidentOut.model_validate(sim.incident_state),
        override=NodalOverrideOut.model_validate(override) if override is not None else None,
    )


@app.post("/incident", response_model=IncidentOut)
def declare_incident(incident_in: IncidentIn):
    sim = get_engine()
    try:
        sim.set_incident_state(IncidentState(is_active=incident_in.is_active, region=incident_in.region))
    except InvalidControlError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return IncidentOut.model_validate(sim.incident_state)


@app.post("/override", response_model=NodalOverrideOut)
def set_override(override_in: NodalOverrideIn):
    sim = get_engine()
    active_until = override_in.active_until
    if active_until is None:
        if override_in.duration_seconds is None:
            raise HTTPException(status_code=400, detail="Give active_until or duration_seconds")
        active_until = sim.clock() + override_in.duration_seconds

    override = NodalOverride(
        hospital_id=override_in.hospital_id,
        total_beds=override_in.total_beds,
        total_icu=override_in.total_icu,
        oxygen_supply_days=override_in.oxygen_supply_days,
        active_until=active_until,
    )
    try:
        sim.set_nodal_override(override)
    except InvalidControlError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return NodalOverrideOut.model_validate(override)


@app.delete("/override", status_code=204)
def clear_override() -> None:
    get_engine().set_nodal_override(None)
