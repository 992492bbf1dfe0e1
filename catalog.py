import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from models import HospitalProfile, Ownership, PPELevel, Region


logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "data" / "hospitals.json"


class CatalogError(ValueError):
    """The hospital dataset is missing, empty or malformed."""


class HospitalRecord(BaseModel):
    """One row of the static dataset, keyed the way the dashboard ships it."""

    id: int
    name: str = Field(..., min_length=1)
    state: str = ""
    type: Ownership
    region: Region
    coords: Tuple[float, float]
    total_beds: int = Field(..., alias="totalBeds", gt=0)
    total_icu: int = Field(..., alias="totalICU", ge=0)
    avg_wait_minutes: float = Field(..., alias="avgWaitTime_mins", gt=0)
    alos_days: float = Field(..., alias="ALOS_days", gt=0)
    ed_throughput_per_day: float = Field(..., alias="EDThroughput_perDay", ge=0)
    oxygen_supply_days: float = Field(30.0, ge=0)
    ppe_stock_level: PPELevel = PPELevel.GOOD

    def to_profile(self) -> HospitalProfile:
        return HospitalProfile(
            id=self.id,
            name=self.name,
            state=self.state,
            ownership=self.type,
            region=self.region,
            total_beds=self.total_beds,
            total_icu=self.total_icu,
            avg_wait_minutes=self.avg_wait_minutes,
            alos_days=self.alos_days,
            ed_throughput_per_day=self.ed_throughput_per_day,
            coords=self.coords,
            oxygen_supply_days=self.oxygen_supply_days,
            ppe_stock_level=self.ppe_stock_level,
        )


class HospitalCatalog:
    """Read-only, ordered collection of hospital profiles."""

    def __init__(self, profiles: Iterable[HospitalProfile]) -> None:
        self._profiles: Dict[int, HospitalProfile] = {}
        for profile in profiles:
            if profile.id in self._profiles:
                raise CatalogError(f"Duplicate hospital id {profile.id}")
            self._profiles[profile.id] = profile
        if not self._profiles:
            raise CatalogError("Hospital catalog is empty")

    def __iter__(self) -> Iterator[HospitalProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, hospital_id: object) -> bool:
        return hospital_id in self._profiles

    def get(self, hospital_id: int) -> Optional[HospitalProfile]:
        return self._profiles.get(hospital_id)

    def ids(self) -> List[int]:
        return list(self._profiles)

    def public_ids(self) -> List[int]:
        return [p.id for p in self if p.is_public]

    def private_ids(self) -> List[int]:
        return [p.id for p in self if not p.is_public]


def parse_records(rows: object) -> HospitalCatalog:
    if not isinstance(rows, list):
        raise CatalogError("Hospital dataset must be a JSON list of records")

    profiles = []
    for index, row in enumerate(rows):
        try:
            profiles.append(HospitalRecord.model_validate(row).to_profile())
        except ValidationError as exc:
            raise CatalogError(f"Invalid hospital record at index {index}: {exc}") from exc
    return HospitalCatalog(profiles)


def load_catalog(path: Union[str, Path, None] = None) -> HospitalCatalog:
    source = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    try:
        rows = json.loads(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"Cannot read hospital dataset {source}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(f"Hospital dataset {source} is not valid JSON: {exc}") from exc

    catalog = parse_records(rows)
    logger.info("Loaded %d hospitals from %s", len(catalog), source)
    return catalog
