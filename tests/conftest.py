import random

import pytest

from catalog import HospitalCatalog
from config import STRATEGIC
from models import HospitalProfile, Ownership, PPELevel, Region


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _profile(
    hospital_id,
    total_beds=100,
    total_icu=10,
    region=Region.NORTH,
    ownership=Ownership.STATE_GOVERNMENT,
    **extra,
):
    fields = dict(
        id=hospital_id,
        name=f"Hospital {hospital_id}",
        state="Delhi",
        ownership=ownership,
        region=region,
        total_beds=total_beds,
        total_icu=total_icu,
        avg_wait_minutes=60.0,
        alos_days=5.0,
        ed_throughput_per_day=total_beds * 0.4,
        coords=(28.6, 77.2),
        oxygen_supply_days=20.0,
        ppe_stock_level=PPELevel.GOOD,
    )
    fields.update(extra)
    return HospitalProfile(**fields)


@pytest.fixture
def make_profile():
    return _profile


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def config():
    return STRATEGIC


@pytest.fixture
def three_hospitals():
    return HospitalCatalog(
        [
            _profile(1, total_beds=100, total_icu=12, region=Region.NORTH),
            _profile(2, total_beds=50, total_icu=6, region=Region.SOUTH, ownership=Ownership.PRIVATE_LARGE),
            _profile(3, total_beds=20, total_icu=2, region=Region.EAST, ownership=Ownership.PRIVATE_TRUST),
        ]
    )
