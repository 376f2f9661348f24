"""
Shared salon fixtures: a pinned clock, a change feed, and an
in-memory store seeded with a small nail/massage catalog.
"""

from datetime import datetime, timezone

import pytest

from core.events.feed import ChangeFeed
from core.primitives.catalog import Branch, Service, ServiceSet, ServiceSetItem
from core.store.memory import InMemorySalonStore
from core.time.clock import FixedClock

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)

CATALOG_SERVICES = (
    Service(service_id="svc-gel", title="Gel manicure", price=50000,
            duration_minutes=45, branch=Branch.NAILS),
    Service(service_id="svc-pedi", title="Pedicure", price=40000,
            duration_minutes=60, branch=Branch.NAILS),
    Service(service_id="svc-massage", title="Swedish massage", price=80000,
            duration_minutes=90, branch=Branch.MASSAGE),
    Service(service_id="svc-retired", title="Paraffin dip", price=10000,
            duration_minutes=15, branch=Branch.NAILS, is_active=False),
)

# Bundle price 100000; gel counts 30000 toward commission, pedicure its list price.
SPA_SET = ServiceSet(
    service_set_id="set-spa",
    title="Spa day",
    price=100000,
    items=(ServiceSetItem("svc-gel", adjusted_price=30000), ServiceSetItem("svc-pedi")),
)


def seed_catalog(store):
    for service in CATALOG_SERVICES:
        store.add_service(service)
    store.add_service_set(SPA_SET)
    return store


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def store(feed):
    return seed_catalog(InMemorySalonStore(change_feed=feed))


@pytest.fixture
def catalog_seeder():
    return seed_catalog
