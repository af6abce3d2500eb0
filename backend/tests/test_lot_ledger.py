"""Lot ledger tests.

Every production entry write must move its lot's total_meters and
total_earnings in the same transaction, and lot status may only move
Active → Completed / Cancelled.
"""

import asyncio
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conftest import create_machine, create_quality, create_taka, create_worker, get_taka, record
from looms.database import Base, get_db
from looms.main import app


@pytest.mark.api
@pytest.mark.asyncio
class TestLedgerDeltas:

    async def test_worked_example(self, client: AsyncClient, floor):
        """Create, edit and delete entries; the lot tracks every step."""
        taka_id = floor["taka"]["id"]

        resp = await record(client, floor, 50, shift="Day")
        assert resp.status_code == 201
        entry_a = resp.json()["data"]
        assert entry_a["earnings"] == 500.0
        assert entry_a["rate_per_meter"] == 10.0
        lot = await get_taka(client, taka_id)
        assert (lot["total_meters"], lot["total_earnings"]) == (50.0, 500.0)

        resp = await record(client, floor, 30, shift="Night", worker_id=floor["night_worker"]["id"])
        entry_b = resp.json()["data"]
        lot = await get_taka(client, taka_id)
        assert (lot["total_meters"], lot["total_earnings"]) == (80.0, 800.0)

        resp = await client.put(f"/api/productions/{entry_a['id']}", json={"meters_produced": 40})
        assert resp.status_code == 200
        assert resp.json()["data"]["earnings"] == 400.0
        lot = await get_taka(client, taka_id)
        assert (lot["total_meters"], lot["total_earnings"]) == (70.0, 700.0)

        resp = await client.delete(f"/api/productions/{entry_b['id']}")
        assert resp.status_code == 200
        lot = await get_taka(client, taka_id)
        assert (lot["total_meters"], lot["total_earnings"]) == (40.0, 400.0)
        assert lot["production_count"] == 1

    async def test_create_then_delete_restores_totals(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        await record(client, floor, 12.5)
        before = await get_taka(client, taka_id)

        entry = (await record(client, floor, 7.25)).json()["data"]
        await client.delete(f"/api/productions/{entry['id']}")

        after = await get_taka(client, taka_id)
        assert after["total_meters"] == before["total_meters"] == 12.5
        assert after["total_earnings"] == before["total_earnings"] == 125.0

    async def test_update_applies_only_the_difference(self, client: AsyncClient, floor):
        """Editing one entry leaves the others' contribution untouched."""
        taka_id = floor["taka"]["id"]
        first = (await record(client, floor, 20)).json()["data"]
        await record(client, floor, 30)
        await record(client, floor, 10)

        await client.put(f"/api/productions/{first['id']}", json={"meters_produced": 25})

        lot = await get_taka(client, taka_id)
        assert lot["total_meters"] == 65.0
        assert lot["total_earnings"] == 650.0
        assert lot["remaining_meters"] == 435.0

    async def test_update_without_meters_leaves_ledger(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        entry = (await record(client, floor, 20)).json()["data"]

        resp = await client.put(
            f"/api/productions/{entry['id']}",
            json={"shift": "Night", "notes": "moved to night"},
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["shift"] == "Night"
        assert (await get_taka(client, taka_id))["total_meters"] == 20.0

    async def test_zero_meter_entry(self, client: AsyncClient, floor):
        """Idle shifts are recorded with zero meters."""
        resp = await record(client, floor, 0)
        assert resp.status_code == 201
        assert resp.json()["data"]["earnings"] == 0.0

        resp = await client.delete(f"/api/productions/{resp.json()['data']['id']}")
        assert resp.status_code == 200
        assert (await get_taka(client, floor["taka"]["id"]))["total_meters"] == 0.0

    async def test_earnings_round_half_up(self, client: AsyncClient):
        quality = await create_quality(client, "Fine", 12.5)
        machine = await create_machine(client, "M100", "Loom Fine")
        worker = (await client.post("/api/workers/", json={"worker_code": "w100", "name": "Kiran"})).json()["data"]
        taka = await create_taka(client, "t100", machine["id"], quality["id"])
        assert taka["taka_number"] == "T100"

        resp = await record(
            client,
            {"machine": machine, "worker": worker, "taka": taka},
            2.25,
        )
        # 2.25 × 12.5 = 28.125
        assert resp.json()["data"]["earnings"] == 28.13


@pytest.mark.api
@pytest.mark.asyncio
class TestRateSnapshot:

    async def test_client_rate_is_ignored(self, client: AsyncClient, floor):
        resp = await record(client, floor, 10, rate_per_meter=99)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["rate_per_meter"] == 10.0
        assert data["earnings"] == 100.0

    async def test_grade_rate_change_does_not_reprice_lot(self, client: AsyncClient, floor):
        await client.put(f"/api/qualities/{floor['quality']['id']}", json={"rate_per_meter": 25})

        resp = await record(client, floor, 10)
        assert resp.json()["data"]["rate_per_meter"] == 10.0
        lot = await get_taka(client, floor["taka"]["id"])
        assert lot["rate_per_meter"] == 10.0
        assert lot["total_earnings"] == 100.0

    async def test_new_lot_takes_current_grade_rate(self, client: AsyncClient, floor):
        await client.put(f"/api/qualities/{floor['quality']['id']}", json={"rate_per_meter": 25})
        taka = await create_taka(client, "T002", floor["machine"]["id"], floor["quality"]["id"])
        assert taka["rate_per_meter"] == 25.0

    async def test_lot_rate_is_not_editable(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        resp = await client.put(f"/api/takas/{taka_id}", json={"rate_per_meter": 50, "notes": "x"})
        assert resp.status_code == 200
        assert resp.json()["data"]["rate_per_meter"] == 10.0


@pytest.mark.api
@pytest.mark.asyncio
class TestEntryValidation:

    async def test_negative_meters_rejected(self, client: AsyncClient, floor):
        resp = await record(client, floor, -5)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        assert (await get_taka(client, floor["taka"]["id"]))["total_meters"] == 0.0

    async def test_invalid_shift_rejected(self, client: AsyncClient, floor):
        resp = await record(client, floor, 5, shift="Evening")
        assert resp.status_code == 400

    async def test_unknown_lot(self, client: AsyncClient, floor):
        resp = await record(client, floor, 5, taka_id="no-such-lot")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_unknown_worker(self, client: AsyncClient, floor):
        resp = await record(client, floor, 5, worker_id="no-such-worker")
        assert resp.status_code == 404
        assert (await get_taka(client, floor["taka"]["id"]))["total_meters"] == 0.0

    async def test_soft_deleted_worker_is_not_found(self, client: AsyncClient, floor):
        await client.delete(f"/api/workers/{floor['worker']['id']}")
        resp = await record(client, floor, 5)
        assert resp.status_code == 404

    async def test_quality_mismatch(self, client: AsyncClient, floor):
        other = await create_quality(client, "Premium", 15)
        resp = await record(client, floor, 5, quality_id=other["id"])
        assert resp.status_code == 400
        assert (await get_taka(client, floor["taka"]["id"]))["total_meters"] == 0.0

    async def test_entry_not_found(self, client: AsyncClient, floor):
        assert (await client.get("/api/productions/missing")).status_code == 404
        assert (await client.put("/api/productions/missing", json={"meters_produced": 1})).status_code == 404
        assert (await client.delete("/api/productions/missing")).status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestLotLifecycle:

    async def test_open_lot(self, client: AsyncClient, floor):
        taka = floor["taka"]
        assert taka["status"] == "Active"
        assert taka["total_meters"] == 0.0
        assert taka["total_earnings"] == 0.0
        assert taka["end_date"] is None

        machine = (await client.get(f"/api/machines/{floor['machine']['id']}")).json()["data"]
        assert machine["current_taka_id"] == taka["id"]

    async def test_duplicate_lot_number(self, client: AsyncClient, floor):
        resp = await client.post("/api/takas/", json={
            "taka_number": "t001",
            "machine_id": floor["machine"]["id"],
            "quality_id": floor["quality"]["id"],
        })
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DUPLICATE_RECORD"

    async def test_complete(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        await record(client, floor, 40)

        resp = await client.put(f"/api/takas/{taka_id}/complete")
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "Completed"
        assert data["end_date"] is not None
        assert data["total_meters"] == 40.0

        machine = (await client.get(f"/api/machines/{floor['machine']['id']}")).json()["data"]
        assert machine["current_taka_id"] is None

    async def test_complete_twice(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        await client.put(f"/api/takas/{taka_id}/complete")

        resp = await client.put(f"/api/takas/{taka_id}/complete")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATE"

    async def test_cancelled_lot_cannot_complete(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        resp = await client.put(f"/api/takas/{taka_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "Cancelled"
        assert resp.json()["data"]["end_date"] is None

        resp = await client.put(f"/api/takas/{taka_id}/complete")
        assert resp.status_code == 409

    async def test_status_change_through_update(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        resp = await client.put(f"/api/takas/{taka_id}", json={"status": "Completed"})
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "Completed"

        resp = await client.put(f"/api/takas/{taka_id}", json={"status": "Active"})
        assert resp.status_code == 409

    async def test_missing_lot(self, client: AsyncClient, floor):
        assert (await client.put("/api/takas/missing/complete")).status_code == 404
        assert (await client.put("/api/takas/missing/cancel")).status_code == 404
        assert (await client.get("/api/takas/missing")).status_code == 404

    async def test_closed_lot_refuses_production(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        entry = (await record(client, floor, 10)).json()["data"]
        await client.put(f"/api/takas/{taka_id}/complete")

        resp = await record(client, floor, 5)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "INVALID_STATE"

        resp = await client.put(f"/api/productions/{entry['id']}", json={"meters_produced": 20})
        assert resp.status_code == 409
        assert (await get_taka(client, taka_id))["total_meters"] == 10.0

    async def test_closed_lot_entry_can_still_be_deleted(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        entry = (await record(client, floor, 10)).json()["data"]
        await client.put(f"/api/takas/{taka_id}/complete")

        resp = await client.delete(f"/api/productions/{entry['id']}")
        assert resp.status_code == 200
        assert (await get_taka(client, taka_id))["total_meters"] == 0.0

    async def test_move_lot_to_another_machine(self, client: AsyncClient, floor):
        other = await create_machine(client, "M002", "Loom Beta")
        taka_id = floor["taka"]["id"]

        resp = await client.put(f"/api/takas/{taka_id}", json={"machine_id": other["id"]})
        assert resp.status_code == 200
        assert resp.json()["data"]["machine_id"] == other["id"]

        old = (await client.get(f"/api/machines/{floor['machine']['id']}")).json()["data"]
        new = (await client.get(f"/api/machines/{other['id']}")).json()["data"]
        assert old["current_taka_id"] is None
        assert new["current_taka_id"] == taka_id

    async def test_list_filters_by_status(self, client: AsyncClient, floor):
        second = await create_taka(client, "T002", floor["machine"]["id"], floor["quality"]["id"])
        await client.put(f"/api/takas/{second['id']}/cancel")

        resp = await client.get("/api/takas/", params={"status": "Active"})
        assert [t["taka_number"] for t in resp.json()["data"]] == ["T001"]

        resp = await client.get("/api/takas/", params={"status": "all", "sort_by": "taka_number", "order": "asc"})
        assert [t["taka_number"] for t in resp.json()["data"]] == ["T001", "T002"]


@pytest.mark.api
@pytest.mark.asyncio
class TestLotDelete:

    async def test_delete_empty_lot(self, client: AsyncClient, floor):
        taka_id = floor["taka"]["id"]
        resp = await client.delete(f"/api/takas/{taka_id}")
        assert resp.status_code == 200
        assert (await client.get(f"/api/takas/{taka_id}")).status_code == 404

        machine = (await client.get(f"/api/machines/{floor['machine']['id']}")).json()["data"]
        assert machine["current_taka_id"] is None

    async def test_delete_lot_with_entries(self, client: AsyncClient, floor):
        await record(client, floor, 10)
        resp = await client.delete(f"/api/takas/{floor['taka']['id']}")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "LOT_HAS_ENTRIES"

    async def test_entry_delete_with_lot_gone(self, client: AsyncClient, floor, db_session):
        """An orphaned entry is still deletable; the ledger step is skipped."""
        entry = (await record(client, floor, 10)).json()["data"]
        await db_session.execute(text("DELETE FROM takas WHERE id = :id"), {"id": floor["taka"]["id"]})
        await db_session.commit()

        resp = await client.delete(f"/api/productions/{entry['id']}")
        assert resp.status_code == 200
        assert (await client.get(f"/api/productions/{entry['id']}")).status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestConsistencyFailure:

    async def test_negative_total_rolls_back_entry(self, client: AsyncClient, floor, db_session):
        """A delta the lot cannot absorb fails the whole request."""
        taka_id = floor["taka"]["id"]
        entry = (await record(client, floor, 50)).json()["data"]

        # Corrupt the stored total behind the ledger's back
        await db_session.execute(
            text("UPDATE takas SET total_meters = 5, total_earnings = 50 WHERE id = :id"),
            {"id": taka_id},
        )
        await db_session.commit()

        resp = await client.put(f"/api/productions/{entry['id']}", json={"meters_produced": 10})
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "LEDGER_CONSISTENCY_ERROR"

        unchanged = (await client.get(f"/api/productions/{entry['id']}")).json()["data"]
        assert unchanged["meters_produced"] == 50.0
        assert unchanged["earnings"] == 500.0
        assert (await get_taka(client, taka_id))["total_meters"] == 5.0


# ── Concurrent writers ───────────────────────────────────────

@pytest_asyncio.fixture
async def pooled_client(tmp_path) -> AsyncGenerator[AsyncClient, None]:
    """Client on a file database where every request gets its own connection.

    Transactions open with BEGIN IMMEDIATE, SQLite's write lock, so
    concurrent requests queue on the database the way they queue on the
    lot row lock under PostgreSQL.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'looms.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
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
    await engine.dispose()


@pytest.mark.api
@pytest.mark.asyncio
class TestConcurrentWrites:

    async def test_mixed_writes_on_one_lot(self, pooled_client: AsyncClient):
        """Creates, edits and deletes racing on one lot leave no drift."""
        client = pooled_client
        quality = await create_quality(client, "Standard", 10)
        machine = await create_machine(client, "M001", "Loom Alpha")
        worker = await create_worker(client, "W001", "Rajesh Kumar")
        taka = await create_taka(client, "T001", machine["id"], quality["id"])
        floor = {"machine": machine, "worker": worker, "taka": taka}

        seeded = []
        for meters in (10, 20, 30, 40):
            resp = await record(client, floor, meters)
            assert resp.status_code == 201
            seeded.append(resp.json()["data"])

        responses = await asyncio.gather(
            record(client, floor, 5),
            client.put(f"/api/productions/{seeded[0]['id']}", json={"meters_produced": 15}),
            client.delete(f"/api/productions/{seeded[2]['id']}"),
            record(client, floor, 6),
            client.put(f"/api/productions/{seeded[1]['id']}", json={"meters_produced": 25}),
            client.delete(f"/api/productions/{seeded[3]['id']}"),
            record(client, floor, 7),
        )
        assert [r.status_code for r in responses] == [201, 200, 200, 201, 200, 200, 201]

        drift = (await client.get("/api/takas/ledger-check")).json()
        assert drift["count"] == 0

        entries = (await client.get("/api/productions/", params={"taka_id": taka["id"]})).json()["data"]
        assert sorted(e["meters_produced"] for e in entries) == [5.0, 6.0, 7.0, 15.0, 25.0]

        lot = await get_taka(client, taka["id"])
        assert lot["total_meters"] == sum(e["meters_produced"] for e in entries) == 58.0
        assert lot["total_earnings"] == 580.0
        assert lot["production_count"] == 5
