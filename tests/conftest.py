"""Shared fixtures for the devscore test suite."""
from datetime import datetime, timezone
import pytest
from fakeredis import FakeAsyncRedis
from devscore.domain.models import RepositorySummary
from devscore.infrastructure.redis_cache import ResilientCache
from devscore.infrastructure.settings import Settings


NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_repo():
    """Factory for RepositorySummary entities with sensible defaults."""
    counter = {"id": 0}

    def factory(**overrides):
        counter["id"] += 1
        name = overrides.pop("name", f"repo-{counter['id']}")
        values = {
            "id": counter["id"],
            "name": name,
            "full_name": f"octocat/{name}",
            "owner": "octocat",
            "updated_at": NOW,
            "created_at": NOW,
        }
        values.update(overrides)
        return RepositorySummary(**values)

    return factory


@pytest.fixture
def settings():
    return Settings(cache_prefix="test", cache_default_ttl=60, cache_error_log_interval=30.0)


@pytest.fixture
async def cache(settings):
    """ResilientCache backed by an in-process fake Redis server."""
    client = FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    resilient = ResilientCache(settings, client=client)
    yield resilient
    await resilient.close()
