import os

# Must be set before rumlab.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MAX_CONCURRENT_ANALYSES", "0")

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest

from rumlab.models import LongTaskSample
from rumlab.services.device_profiles import DESKTOP


class FakeSession:
    def __init__(self, profile):
        self.profile = profile
        self.url: Optional[str] = None
        self.long_tasks: List[float] = []


class FakeSessionManager:
    """Stands in for BrowserSessionManager and records every lifecycle call."""

    def __init__(self, acquire_error=None, navigate_error=None, navigate_delay=0.0):
        self.acquire_error = acquire_error
        self.navigate_error = navigate_error
        self.navigate_delay = navigate_delay
        self.calls: List[str] = []
        self.acquired = 0
        self.released = 0
        self.live = 0
        self.max_live = 0

    async def acquire(self, profile):
        self.calls.append("acquire")
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        return FakeSession(profile)

    async def navigate(self, session, url, timeout_ms):
        self.calls.append("navigate")
        if self.navigate_delay:
            await asyncio.sleep(self.navigate_delay)
        if self.navigate_error is not None:
            raise self.navigate_error
        session.url = url

    @asynccontextmanager
    async def open_session(self, profile):
        session = await self.acquire(profile)
        try:
            yield session
        finally:
            await self.release(session)

    async def release(self, session):
        self.calls.append("release")
        self.released += 1
        self.live -= 1


class FakeSignals:
    """install/simulate/extract doubles that read per-URL long tasks."""

    def __init__(self, tasks_by_url: Optional[Dict[str, List[float]]] = None, calls: Optional[List[str]] = None):
        self.tasks_by_url = tasks_by_url or {}
        self.calls = calls if calls is not None else []

    async def install(self, session):
        self.calls.append("install")

    async def simulate(self, session, budget_ms):
        self.calls.append("simulate")
        for duration in self.tasks_by_url.get(session.url, []):
            session.long_tasks.append(duration)
            # Yield so concurrent analyses interleave
            await asyncio.sleep(0)
        return {"iterations": 1}

    async def extract(self, session):
        self.calls.append("extract")
        return [LongTaskSample(duration_ms=d) for d in session.long_tasks]


@pytest.fixture
def profile():
    return DESKTOP
