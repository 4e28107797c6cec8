"""
StepLine — shared test fixtures
Run with: python3 -m pytest tests/
"""

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

TZ = ZoneInfo("Asia/Tokyo")
# 2026-10-21 (水) 15:30 JST。日曜始まりの週は 10/18〜10/24
NOW = datetime(2026, 10, 21, 15, 30, tzinfo=TZ)
SUNDAY = 6


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDoc:
    """Firestore DocumentReference の代わり"""

    def __init__(self, data=None):
        self.data = data
        self.writes = []

    def get(self):
        return FakeSnapshot(self.data)

    def set(self, payload, merge=False):
        self.writes.append(payload)
        if merge and self.data:
            self.data = {**self.data, **payload}
        else:
            self.data = dict(payload)


class FakeGateway:
    """HealthDataGateway のテスト用実装"""

    def __init__(self, authorized=True, daily=0, weekly=None):
        self.authorized = authorized
        self.authorize_error = None
        self.daily = daily
        self.daily_error = None
        self.weekly = weekly or {}
        self.weekly_error = None
        self.calls = []

    async def request_read_authorization(self):
        self.calls.append("auth")
        if self.authorize_error:
            raise self.authorize_error
        return self.authorized

    async def query_daily_sum(self, start, end):
        self.calls.append(("daily", start, end))
        if self.daily_error:
            raise self.daily_error
        return self.daily

    async def query_range_daily_sums(self, start, end):
        self.calls.append(("weekly", start, end))
        if self.weekly_error:
            raise self.weekly_error
        return dict(self.weekly)

    def count(self, kind):
        return sum(1 for c in self.calls if isinstance(c, tuple) and c[0] == kind)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_tracker(gateway, clock):
    from app.services.step_tracker import StepTracker

    def _make(gw=None, interval=60):
        return StepTracker(gw or gateway, refresh_interval=interval,
                           week_start=SUNDAY, tz=TZ, clock=clock)
    return _make
