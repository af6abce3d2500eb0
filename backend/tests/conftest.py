"""Pytest configuration and fixtures for the looms tests.

Every test gets its own in-memory SQLite database (aiosqlite, one shared
connection), so the suite runs without PostgreSQL.  The request-scoped
session dependency is overridden with one that commits or rolls back per
request, exactly like production.
"""

import os

# Must be set before looms.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"

from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from looms.database import Base, build_engine, get_db
from looms.main import app
from looms.models import *  # noqa: F401,F403 — register all tables on Base.metadata


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory database with all tables."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests; the test decides when to commit."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database dependency overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

async def create_quality(client: AsyncClient, name: str = "Standard", rate: float = 10) -> dict:
    resp = await client.post("/api/qualities/", json={"name": name, "rate_per_meter": rate})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def create_machine(client: AsyncClient, code: str = "M001", name: str = "Loom Alpha") -> dict:
    resp = await client.post("/api/machines/", json={"machine_code": code, "machine_name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def create_worker(client: AsyncClient, code: str = "W001", name: str = "Rajesh Kumar") -> dict:
    resp = await client.post("/api/workers/", json={"worker_code": code, "name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def create_taka(client: AsyncClient, number: str, machine_id: str, quality_id: str, **extra) -> dict:
    resp = await client.post("/api/takas/", json={
        "taka_number": number,
        "machine_id": machine_id,
        "quality_id": quality_id,
        "target_meters": 500,
        **extra,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def record(
    client: AsyncClient,
    floor: dict,
    meters: float,
    shift: str = "Day",
    worker_id: str | None = None,
    taka_id: str | None = None,
    **extra,
):
    """POST a production entry against the floor's lot; returns the raw response."""
    return await client.post("/api/productions/", json={
        "machine_id": floor["machine"]["id"],
        "worker_id": worker_id or floor["worker"]["id"],
        "taka_id": taka_id or floor["taka"]["id"],
        "shift": shift,
        "meters_produced": meters,
        **extra,
    })


async def get_taka(client: AsyncClient, taka_id: str) -> dict:
    resp = await client.get(f"/api/takas/{taka_id}")
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


@pytest_asyncio.fixture
async def floor(client: AsyncClient) -> dict:
    """One grade at ₹10/m, one machine, two workers and lot T001 on that machine."""
    quality = await create_quality(client, "Standard", 10)
    machine = await create_machine(client, "M001", "Loom Alpha")
    worker = await create_worker(client, "W001", "Rajesh Kumar")
    night_worker = await create_worker(client, "W002", "Amit Sharma")
    taka = await create_taka(client, "T001", machine["id"], quality["id"])
    return {
        "quality": quality,
        "machine": machine,
        "worker": worker,
        "night_worker": night_worker,
        "taka": taka,
    }
