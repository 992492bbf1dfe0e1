from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field


# ---------- Enumerations ----------

class Region(str, Enum):
    NORTH = "North"
    SOUTH = "South"
    EAST = "East"
    WEST = "West"
    CENTRAL = "Central"


class Ownership(str, Enum):
    CENTRAL_GOVERNMENT = "Government (Central)"
    STATE_GOVERNMENT = "Government (State)"
    UNION_TERRITORY = "Government (UT)"
    PRIVATE_LARGE = "Private (Large)"
    PRIVATE_MID = "Private (Mid-size)"
    PRIVATE_TRUST = "Private (Trust)"
    PRIVATE_SPECIALITY = "Private (Speciality)"

    @property
    def is_public(self) -> bool:
        return self in _PUBLIC_OWNERSHIP


_PUBLIC_OWNERSHIP = frozenset(
    {Ownership.CENTRAL_GOVERNMENT, Ownership.STATE_GOVERNMENT, Ownership.UNION_TERRITORY}
)


class PPELevel(str, Enum):
    # Order matters: index 0 is the best stock level.
    GOOD = "Good"
    LOW = "Low"
    CRITICAL = "Critical"
    STOCKOUT = "Stockout"


PPE_LEVELS: List[PPELevel] = list(PPELevel)


class BedStatus(str, Enum):
    AVAILABLE = "Available"
    HIGH_OCCUPANCY = "High Occupancy"
    CRITICAL = "Critical"
    AT_CAPACITY = "At Capacity"


# ---------- Domain models (in-memory) ----------

@dataclass(frozen=True)
class HospitalProfile:
    """Static attributes of one hospital, loaded once at startup."""

    id: int
    name: str
    state: str
    ownership: Ownership
    region: Region
    total_beds: int
    total_icu: int
    avg_wait_minutes: float
    alos_days: float  # average length of stay
    ed_throughput_per_day: float
    coords: Tuple[float, float]
    oxygen_supply_days: float = 30.0
    ppe_stock_level: PPELevel = PPELevel.GOOD

    @property
    def is_public(self) -> bool:
        return self.ownership.is_public


@dataclass(frozen=True)
class LiveState:
    """
    Operational record of one hospital after a tick.

    Instances are never mutated; the update rule returns a new one each
    tick so published snapshots stay consistent for every reader.
    """

    hospital_id: int
    name: str
    region: Region
    ownership: Ownership
    total_beds: float  # effective capacity (nominal unless overridden)
    total_icu: float
    occupied_beds: float
    occupied_icu_beds: float
    available_beds: float
    available_icu_beds: float
    bed_occupancy_pct: float
    icu_occupancy_pct: float
    staff_fatigue_score: float
    patient_satisfaction_pct: float
    current_wait_minutes: float
    oxygen_supply_days: float
    ppe_stock_level: PPELevel
    bed_status: BedStatus
    alos_days: float
    override_active: bool = False


@dataclass(frozen=True)
class NodalOverride:
    hospital_id: int
    total_beds: int
    total_icu: int
    oxygen_supply_days: float
    active_until: float  # epoch seconds, same clock as the engine

    def is_active(self, now: float) -> bool:
        return now <= self.active_until


@dataclass(frozen=True)
class IncidentState:
    is_active: bool = False
    region: Optional[Region] = None

    def affects(self, region: Region) -> bool:
        return self.is_active and self.region == region


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: float
    avg_occupancy_pct: float
    avg_staff_fatigue: float
    avg_satisfaction: float
    avg_wait_minutes: float
    # Read-only view; every snapshot shares the same point.
    regional_occupancy: Mapping[Region, float] = field(default_factory=lambda: MappingProxyType({}))
    critical_hospital_count: int = 0

    @classmethod
    def empty(cls, timestamp: float) -> "HistoryPoint":
        return cls(
            timestamp=timestamp,
            avg_occupancy_pct=0.0,
            avg_staff_fatigue=0.0,
            avg_satisfaction=0.0,
            avg_wait_minutes=0.0,
            regional_occupancy=MappingProxyType({region: 0.0 for region in Region}),
            critical_hospital_count=0,
        )


@dataclass(frozen=True)
class Controls:
    """The pending control inputs a tick reads at its start."""

    incident: IncidentState = field(default_factory=IncidentState)
    override: Optional[NodalOverride] = None


@dataclass(frozen=True)
class Snapshot:
    state: Tuple[LiveState, ...]
    history: Tuple[HistoryPoint, ...]
    tick: int = 0


# ---------- Pydantic models for API ----------

class LiveStateOut(BaseModel):
    hospital_id: int
    name: str
    region: Region
    ownership: Ownership
    total_beds: float
    total_icu: float
    occupied_beds: float
    occupied_icu_beds: float
    available_beds: float
    available_icu_beds: float
    bed_occupancy_pct: float
    icu_occupancy_pct: float
    staff_fatigue_score: float
    patient_satisfaction_pct: float
    current_wait_minutes: float
    oxygen_supply_days: float
    ppe_stock_level: PPELevel
    bed_status: BedStatus
    alos_days: float
    override_active: bool

    class Config:
        from_attributes = True


class HistoryPointOut(BaseModel):
    timestamp: float
    avg_occupancy_pct: float
    avg_staff_fatigue: float
    avg_satisfaction: float
    avg_wait_minutes: float
    regional_occupancy: Dict[Region, float]
    critical_hospital_count: int

    class Config:
        from_attributes = True


class IncidentIn(BaseModel):
    is_active: bool
    region: Optional[Region] = None


class IncidentOut(BaseModel):
    is_active: bool
    region: Optional[Region]

    class Config:
        from_attributes = True


class NodalOverrideIn(BaseModel):
    hospital_id: int
    total_beds: int = Field(..., gt=0)
    total_icu: int = Field(..., ge=0)
    oxygen_supply_days: float = Field(..., ge=0)
    # Either an absolute deadline or a duration from now.
    active_until: Optional[float] = None
    duration_seconds: Optional[float] = Field(None, gt=0)


class NodalOverrideOut(BaseModel):
    hospital_id: int
    total_beds: int
    total_icu: int
    oxygen_supply_days: float
    active_until: float

    class Config:
        from_attributes = True


class RecommendationOut(BaseModel):
    hospital: LiveStateOut
    distance_km: float
    eta_minutes: float
    score: float


class StatusOut(BaseModel):
    ready: bool
    tick: int
    hospitals: int
    incident: IncidentOut
    override: Optional[NodalOverrideOut]
