from datetime import date

import pytest
from rest_framework.test import APIClient

from billing.clock import FixedClock
from billing.engine import BillingEngine, BillingSettings


@pytest.fixture
def clock():
    return FixedClock(date(2024, 1, 15))


@pytest.fixture
def engine(db, clock):
    return BillingEngine(clock=clock, config=BillingSettings())


@pytest.fixture
def api_client():
    return APIClient()
