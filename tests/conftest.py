"""
Pytest configuration and shared fixtures for Sales Agent tests
"""
from functools import partial
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from salesagent.database.session import (
    create_engine_for,
    create_session_factory,
    init_db,
    session_scope,
)
from salesagent.services.conversation_cache import InMemoryConversationCache
from salesagent.services.conversation_service import ConversationService
from salesagent.services.conversation_store import InMemoryConversationStore


# ============================================================
# Clock
# ============================================================

class FakeClock:
    """Monotonic clock under test control (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================
# Collaborators
# ============================================================

@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def cache(clock) -> InMemoryConversationCache:
    return InMemoryConversationCache(cleanup_interval_seconds=1, clock=clock)


@pytest.fixture
def service(store, cache) -> ConversationService:
    """ConversationService over in-memory store and cache"""
    return ConversationService(store=store, cache=cache, session_ttl_seconds=1800)


# ============================================================
# SQL store (SQLite via aiosqlite)
# ============================================================

@pytest.fixture
async def sql_session_scope(tmp_path):
    """
    Session scope bound to a throwaway SQLite database.

    Usage:
        store = SqlConversationStore(session_scope=sql_session_scope)
    """
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'conversations.db'}")
    await init_db(engine)
    factory = create_session_factory(engine)

    yield partial(session_scope, factory)
    await engine.dispose()


# ============================================================
# FastAPI Test Client
# ============================================================

@pytest.fixture
async def test_client(service) -> AsyncGenerator[AsyncClient, None]:
    """
    FastAPI test client using httpx AsyncClient

    Usage:
        async def test_endpoint(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from salesagent.api.server import create_app

    app = create_app(service=service)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client
