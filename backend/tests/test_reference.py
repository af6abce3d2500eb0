"""Reference entity tests — quality grades, machines, workers, health."""

import pytest
from httpx import AsyncClient

from conftest import create_machine, create_quality, create_worker, record


@pytest.mark.api
@pytest.mark.asyncio
class TestQualities:

    async def test_create_and_get(self, client: AsyncClient):
        created = await create_quality(client, " Standard ", 10)
        assert created["name"] == "Standard"
        assert created["rate_per_meter"] == 10.0
        assert created["is_active"] is True

        resp = await client.get(f"/api/qualities/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["data"]["name"] == "Standard"

    async def test_duplicate_name_is_case_insensitive(self, client: AsyncClient):
        await create_quality(client, "Standard", 10)
        resp = await client.post("/api/qualities/", json={"name": "STANDARD", "rate_per_meter": 12})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "DUPLICATE_RECORD"

    async def test_negative_rate_rejected(self, client: AsyncClient):
        resp = await client.post("/api/qualities/", json={"name": "Bad", "rate_per_meter": -1})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    async def test_soft_delete_hides_from_list(self, client: AsyncClient):
        keep = await create_quality(client, "Standard", 10)
        gone = await create_quality(client, "Economy", 7)

        resp = await client.delete(f"/api/qualities/{gone['id']}")
        assert resp.status_code == 200

        names = [q["name"] for q in (await client.get("/api/qualities/")).json()["data"]]
        assert names == ["Standard"]
        # Still readable by id, flagged inactive
        assert (await client.get(f"/api/qualities/{gone['id']}")).json()["data"]["is_active"] is False
        assert keep["is_active"] is True

    async def test_list_carries_production_counts(self, client: AsyncClient, floor):
        await record(client, floor, 20)
        data = (await client.get("/api/qualities/")).json()["data"]
        assert data[0]["total_productions"] == 1
        assert data[0]["today_stats"]["total_meters"] == 20.0

    async def test_list_sort_by_rate(self, client: AsyncClient):
        for name, rate in (("Standard", 10), ("Premium", 15), ("Economy", 7)):
            await create_quality(client, name, rate)
        resp = await client.get("/api/qualities/", params={"sort_by": "rate_per_meter", "order": "desc"})
        assert [q["name"] for q in resp.json()["data"]] == ["Premium", "Standard", "Economy"]

    async def test_stats(self, client: AsyncClient, floor):
        await create_quality(client, "Premium", 15)
        await record(client, floor, 20)
        data = (await client.get("/api/qualities/stats")).json()["data"]
        assert data["total_qualities"] == 2
        assert data["avg_rate"] == 12.5
        assert (data["highest_rate"], data["lowest_rate"]) == (15.0, 10.0)
        assert data["productions"]["today"] == 1
        assert data["productions"]["all_time"] == 1

    async def test_not_found(self, client: AsyncClient):
        assert (await client.get("/api/qualities/missing")).status_code == 404
        assert (await client.put("/api/qualities/missing", json={"name": "x"})).status_code == 404
        assert (await client.delete("/api/qualities/missing")).status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestMachines:

    async def test_create_normalizes_code(self, client: AsyncClient):
        machine = await create_machine(client, " m010 ", "Loom Ten")
        assert machine["machine_code"] == "M010"
        assert machine["status"] == "Active"
        assert machine["current_taka_id"] is None

    async def test_duplicate_code(self, client: AsyncClient):
        await create_machine(client, "M001")
        resp = await client.post("/api/machines/", json={"machine_code": "m001", "machine_name": "Other"})
        assert resp.status_code == 409

    async def test_unknown_shift_worker(self, client: AsyncClient):
        resp = await client.post("/api/machines/", json={
            "machine_code": "M001",
            "machine_name": "Loom Alpha",
            "day_shift_worker_id": "missing",
        })
        assert resp.status_code == 404

    async def test_invalid_status(self, client: AsyncClient):
        resp = await client.post("/api/machines/", json={
            "machine_code": "M001", "machine_name": "Loom Alpha", "status": "Exploded",
        })
        assert resp.status_code == 400

    async def test_update(self, client: AsyncClient):
        machine = await create_machine(client, "M001")
        resp = await client.put(f"/api/machines/{machine['id']}", json={"status": "Maintenance", "location": "Floor 2"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert (data["status"], data["location"]) == ("Maintenance", "Floor 2")

    async def test_assign_and_clear_worker(self, client: AsyncClient):
        machine = await create_machine(client, "M001")
        worker = await create_worker(client, "W001")

        resp = await client.put(
            f"/api/machines/{machine['id']}/assign-worker",
            json={"worker_id": worker["id"], "shift": "Night"},
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["night_shift_worker_id"] == worker["id"]
        assert data["night_shift_worker"]["worker_code"] == "W001"
        assert data["day_shift_worker_id"] is None

        resp = await client.put(
            f"/api/machines/{machine['id']}/assign-worker",
            json={"worker_id": None, "shift": "Night"},
        )
        assert resp.json()["data"]["night_shift_worker_id"] is None

    async def test_assign_unknown_worker(self, client: AsyncClient):
        machine = await create_machine(client, "M001")
        resp = await client.put(
            f"/api/machines/{machine['id']}/assign-worker",
            json={"worker_id": "missing", "shift": "Day"},
        )
        assert resp.status_code == 404

    async def test_list_filters(self, client: AsyncClient):
        await create_machine(client, "M001", "Loom Alpha")
        beta = await create_machine(client, "M002", "Loom Beta")
        await client.put(f"/api/machines/{beta['id']}", json={"status": "Broken"})

        active = (await client.get("/api/machines/", params={"status": "Active"})).json()
        assert [m["machine_code"] for m in active["data"]] == ["M001"]

        everything = (await client.get("/api/machines/", params={"status": "all"})).json()
        assert everything["count"] == 2

        found = (await client.get("/api/machines/", params={"search": "beta"})).json()
        assert [m["machine_code"] for m in found["data"]] == ["M002"]

    async def test_list_shows_current_lot(self, client: AsyncClient, floor):
        await record(client, floor, 20)
        data = (await client.get("/api/machines/")).json()["data"]
        assert data[0]["current_taka"]["taka_number"] == "T001"
        assert data[0]["today_production"]["total_meters"] == 20.0
        assert data[0]["total_productions"] == 1

    async def test_bulk_delete(self, client: AsyncClient):
        a = await create_machine(client, "M001")
        b = await create_machine(client, "M002")
        await create_machine(client, "M003")

        resp = await client.post("/api/machines/bulk-delete", json={"ids": [a["id"], b["id"]]})
        assert resp.status_code == 200
        assert resp.json()["success"] is True

        remaining = (await client.get("/api/machines/")).json()["data"]
        assert [m["machine_code"] for m in remaining] == ["M003"]

    async def test_deleted_machine_cannot_open_lot(self, client: AsyncClient):
        machine = await create_machine(client, "M001")
        quality = await create_quality(client, "Standard", 10)
        await client.delete(f"/api/machines/{machine['id']}")

        resp = await client.post("/api/takas/", json={
            "taka_number": "T001", "machine_id": machine["id"], "quality_id": quality["id"],
        })
        assert resp.status_code == 404

    async def test_not_found(self, client: AsyncClient):
        assert (await client.get("/api/machines/missing")).status_code == 404
        assert (await client.get("/api/machines/missing/stats")).status_code == 404
        assert (await client.get("/api/machines/missing/production")).status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestWorkers:

    async def test_create_defaults(self, client: AsyncClient):
        worker = await create_worker(client, "w001", "Rajesh Kumar")
        assert worker["worker_code"] == "W001"
        assert worker["worker_type"] == "Permanent"
        assert worker["shift"] == "None"
        assert worker["joining_date"] is not None

    async def test_emergency_contact_round_trip(self, client: AsyncClient):
        resp = await client.post("/api/workers/", json={
            "worker_code": "W001",
            "name": "Rajesh Kumar",
            "emergency_contact": {"name": "Meena", "phone": "9876500000", "relation": "Wife"},
        })
        assert resp.status_code == 201
        assert resp.json()["data"]["emergency_contact"]["relation"] == "Wife"

    async def test_duplicate_code(self, client: AsyncClient):
        await create_worker(client, "W001")
        resp = await client.post("/api/workers/", json={"worker_code": "W001", "name": "Someone"})
        assert resp.status_code == 409

    async def test_code_reusable_after_delete(self, client: AsyncClient):
        first = await create_worker(client, "W001")
        await client.delete(f"/api/workers/{first['id']}")
        resp = await client.post("/api/workers/", json={"worker_code": "W001", "name": "Replacement"})
        assert resp.status_code == 201

    async def test_update(self, client: AsyncClient):
        worker = await create_worker(client, "W001")
        resp = await client.put(f"/api/workers/{worker['id']}", json={"shift": "Night", "worker_type": "Temporary"})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert (data["shift"], data["worker_type"]) == ("Night", "Temporary")

    async def test_list_filters(self, client: AsyncClient):
        await create_worker(client, "W001", "Rajesh Kumar")
        amit = await create_worker(client, "W002", "Amit Sharma")
        await client.put(f"/api/workers/{amit['id']}", json={"shift": "Night"})

        night = (await client.get("/api/workers/", params={"shift": "Night"})).json()
        assert [w["worker_code"] for w in night["data"]] == ["W002"]

        found = (await client.get("/api/workers/", params={"search": "rajesh"})).json()
        assert [w["worker_code"] for w in found["data"]] == ["W001"]

        by_name = (await client.get("/api/workers/", params={"sort_by": "name"})).json()
        assert [w["name"] for w in by_name["data"]] == ["Amit Sharma", "Rajesh Kumar"]

    async def test_bulk_delete(self, client: AsyncClient):
        a = await create_worker(client, "W001")
        await create_worker(client, "W002")
        resp = await client.post("/api/workers/bulk-delete", json={"ids": [a["id"]]})
        assert resp.status_code == 200
        assert [w["worker_code"] for w in (await client.get("/api/workers/")).json()["data"]] == ["W002"]

    async def test_performance_empty_month(self, client: AsyncClient):
        worker = await create_worker(client, "W001")
        body = (await client.get(
            f"/api/workers/{worker['id']}/performance", params={"month": 1, "year": 2025},
        )).json()
        assert body["count"] == 0
        assert body["totals"]["meters"] == 0.0

    async def test_not_found(self, client: AsyncClient):
        assert (await client.get("/api/workers/missing")).status_code == 404
        assert (await client.get("/api/workers/missing/performance")).status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_readiness(self, client: AsyncClient):
        resp = await client.get("/health/ready")
        assert resp.status_code == 200
        assert resp.json()["checks"]["database"] == "ok"

    async def test_security_headers(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        resp = await client.get("/api/nowhere")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
