import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from main import app
from routers.deps import (
    get_analytics_service,
    get_lead_service,
    get_sharing_service,
    get_store,
)
from services.analytics import AnalyticsService
from services.leads import LeadService
from services.video_sharing import VideoSharingService
from store import KeyValueStore, MemoryStore, StoreError


class UnavailableStore(KeyValueStore):
    """Store whose every call fails, as when the backend is down."""

    def __init__(self):
        self.writes = 0

    async def get(self, key):
        raise StoreError(f"store unavailable reading {key}")

    async def set(self, key, value):
        self.writes += 1
        raise StoreError(f"store unavailable writing {key}")

    async def delete(self, key):
        raise StoreError(f"store unavailable deleting {key}")

    async def ping(self):
        raise StoreError("store unavailable")


class YieldingStore(MemoryStore):
    """Memory store that suspends on every call so concurrent tasks interleave."""

    async def get(self, key):
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key, value):
        await asyncio.sleep(0)
        await super().set(key, value)


class ReadOnlyStore(MemoryStore):
    """Reads succeed, writes fail."""

    async def set(self, key, value):
        raise StoreError(f"store is read-only writing {key}")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def yielding_store():
    return YieldingStore()


@pytest.fixture
def unavailable_store():
    return UnavailableStore()


@pytest.fixture
def read_only_store(store):
    # Shares data with `store`, so records seeded there are readable here
    read_only = ReadOnlyStore()
    read_only.data = store.data
    return read_only


@pytest.fixture
def analytics_service(store):
    return AnalyticsService(store)


@pytest.fixture
def lead_service(store):
    return LeadService(store)


@pytest.fixture
def sharing_service(store):
    return VideoSharingService(store, base_url="https://converzio.test")


@pytest_asyncio.fixture
async def api_client(store, analytics_service, lead_service, sharing_service):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_analytics_service] = lambda: analytics_service
    app.dependency_overrides[get_lead_service] = lambda: lead_service
    app.dependency_overrides[get_sharing_service] = lambda: sharing_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
