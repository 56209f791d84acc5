"""
Unit tests for the HTTP API.

Requests go through httpx's ASGI transport against the in-memory store.
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from power_telemetry.config import AppSettings
from power_telemetry.infrastructure.database.repositories import (
    EnergyRollupRepository,
    HourlyEnergyRepository,
)
from tests.factories import HourlyRecordFactory, WeeklyRecordFactory

API = "/api/v1"


async def add_hourly(session_scope, *timestamps, energy_kwh=0.5):
    async with session_scope() as session:
        repo = HourlyEnergyRepository(session)
        for ts in timestamps:
            await repo.insert(HourlyRecordFactory(timestamp=ts, energy_kwh=energy_kwh))


class TestTelemetryRoutes:

    @pytest.mark.asyncio
    async def test_ingest_firmware_payload(self, api_client):
        response = await api_client.post(f"{API}/telemetry/ingest", json={"tegangan": 220.5, "arus": 1.1})

        assert response.status_code == 202
        assert response.json() == {"accepted": True, "buffer_size": 1}

    @pytest.mark.asyncio
    async def test_ingest_without_measurements(self, api_client):
        response = await api_client.post(f"{API}/telemetry/ingest", json={"rssi": -60})

        assert response.status_code == 202
        assert response.json()["accepted"] is False

    @pytest.mark.asyncio
    async def test_ingest_rejects_power_factor_above_one(self, api_client):
        response = await api_client.post(f"{API}/telemetry/ingest", json={"power_factor": 1.5})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_flush_empty_buffer(self, api_client):
        response = await api_client.post(f"{API}/telemetry/flush")

        assert response.status_code == 200
        assert response.json()["flushed"] is False

    @pytest.mark.asyncio
    async def test_flush_writes_hourly_record(self, api_client):
        for payload in (
            {"voltage": 220.0, "current": 1.0, "power_factor": 0.95},
            {"voltage": 221.0, "current": 1.1, "power_factor": 0.94},
            {"voltage": 219.0, "current": 0.9, "power_factor": 0.96},
        ):
            await api_client.post(f"{API}/telemetry/ingest", json=payload)

        response = await api_client.post(f"{API}/telemetry/flush")

        body = response.json()
        assert body["flushed"] is True
        assert body["averaged"]["sample_count"] == 3
        assert body["averaged"]["power_watts"] == 208.91

        hourly = (await api_client.get(f"{API}/telemetry/hourly")).json()
        assert len(hourly) == 1
        assert hourly[0]["voltage"] == 220.0
        assert hourly[0]["energy_kwh"] == 0.0035

    @pytest.mark.asyncio
    async def test_buffer_status(self, api_client):
        await api_client.post(f"{API}/telemetry/ingest", json={"voltage": 230.0})

        response = await api_client.get(f"{API}/telemetry/buffer", params={"include_samples": True})

        body = response.json()
        assert body["size"] == 1
        assert body["mqtt_connected"] is False
        assert body["latest_sample"]["voltage"] == 230.0
        assert len(body["samples"]) == 1


class TestRollupRoutes:

    @pytest.mark.asyncio
    async def test_daily_for_date(self, api_client, session_scope):
        # Noon in Jakarta on 2024-03-05
        await add_hourly(session_scope, datetime(2024, 3, 5, 5, tzinfo=timezone.utc))

        response = await api_client.post(f"{API}/rollups/daily", params={"date": "2024-03-05"})

        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "daily"
        assert body["success"] is True
        assert body["periods"] == ["2024-03-05"]

        daily = (await api_client.get(f"{API}/energy/daily")).json()
        assert daily[0]["date"] == "2024-03-05"
        assert daily[0]["total_energy"] == 0.5

    @pytest.mark.asyncio
    async def test_partial_failure_returns_207(self, api_client, session_scope):
        await add_hourly(session_scope, datetime(2024, 3, 5, 5, tzinfo=timezone.utc))

        with patch.object(
            EnergyRollupRepository, "upsert_daily",
            AsyncMock(side_effect=RuntimeError("disk full")),
        ):
            response = await api_client.post(f"{API}/rollups/daily", params={"date": "2024-03-05"})

        assert response.status_code == 207
        assert response.json()["success"] is False
        assert response.json()["failed_periods"] == ["2024-03-05"]

    @pytest.mark.asyncio
    async def test_store_unreachable_returns_503(self, api_client):
        with patch.object(
            HourlyEnergyRepository, "get_range",
            AsyncMock(side_effect=RuntimeError("connection refused")),
        ):
            response = await api_client.post(f"{API}/rollups/daily", params={"date": "2024-03-05"})

        assert response.status_code == 503
        assert response.json()["error"] == "TRANSIENT_IO_ERROR"

    @pytest.mark.asyncio
    async def test_invalid_week_returns_422(self, api_client):
        response = await api_client.post(f"{API}/rollups/weekly", params={"year": 2021, "week": 53})

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_week_without_year_returns_422(self, api_client):
        response = await api_client.post(f"{API}/rollups/weekly", params={"week": 10})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_monthly_from_weekly(self, api_client, session_scope):
        async with session_scope() as session:
            repo = EnergyRollupRepository(session)
            for week in (5, 6, 7, 8):
                await repo.upsert_weekly(WeeklyRecordFactory(year=2021, week=week))

        response = await api_client.post(
            f"{API}/rollups/monthly", params={"from_weekly": True, "year": 2021, "month": 2}
        )

        assert response.json()["periods"] == ["2021-02"]
        monthly = (await api_client.get(f"{API}/energy/monthly")).json()
        assert monthly[0]["source"] == "weekly"
        assert monthly[0]["total_energy"] == 280.0

    @pytest.mark.asyncio
    async def test_run_all(self, api_client):
        response = await api_client.post(f"{API}/rollups/run-all")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [r["tier"] for r in body["results"]] == ["daily", "weekly", "monthly"]

    @pytest.mark.asyncio
    async def test_pending_and_weekly_all(self, api_client, session_scope):
        await add_hourly(
            session_scope,
            datetime(2024, 3, 4, 5, tzinfo=timezone.utc),
            datetime(2024, 3, 5, 5, tzinfo=timezone.utc),
        )

        pending = (await api_client.post(f"{API}/rollups/daily/pending")).json()
        weekly = (await api_client.post(f"{API}/rollups/weekly/all")).json()

        assert pending["periods"] == ["2024-03-04", "2024-03-05"]
        assert weekly["periods"] == ["2024-W10"]


class TestEnergyRoutes:

    @pytest.mark.asyncio
    async def test_stats(self, api_client, session_scope):
        await add_hourly(
            session_scope,
            datetime(2024, 3, 5, 5, tzinfo=timezone.utc),
            datetime(2024, 3, 5, 6, tzinfo=timezone.utc),
        )

        body = (await api_client.get(f"{API}/energy/stats")).json()

        assert body["hourly_count"] == 2
        assert body["daily_count"] == 0
        assert body["oldest_hourly"].startswith("2024-03-05T05:00:00")

    @pytest.mark.asyncio
    async def test_clear_tier(self, api_client, session_scope):
        await add_hourly(session_scope, datetime(2024, 3, 5, 5, tzinfo=timezone.utc))

        response = await api_client.delete(f"{API}/energy/hourly")

        assert response.json() == {"tier": "hourly", "deleted": 1}

    @pytest.mark.asyncio
    async def test_clear_unknown_tier(self, api_client):
        response = await api_client.delete(f"{API}/energy/yearly")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_clear_disabled_in_production(self, api_client):
        with patch(
            "power_telemetry.api.dependencies.get_settings",
            return_value=AppSettings(environment="production"),
        ):
            response = await api_client.delete(f"{API}/energy/daily")

        assert response.status_code == 403


class TestAlertRoutes:

    @pytest.mark.asyncio
    async def test_no_data(self, api_client):
        response = await api_client.get(f"{API}/alerts")
        assert response.json() == {"total": 0, "alerts": []}

    @pytest.mark.asyncio
    async def test_alerts_and_summary(self, api_client, session_scope):
        async with session_scope() as session:
            repo = EnergyRollupRepository(session)
            for week, total in ((10, 50.0), (11, 50.0), (12, 200.0)):
                await repo.upsert_weekly(WeeklyRecordFactory(
                    year=2024, week=week, total_energy=total, avg_daily_energy=round(total / 7, 2),
                ))

        alerts = (await api_client.get(f"{API}/alerts")).json()
        summary = (await api_client.get(f"{API}/alerts/summary")).json()

        high = [a for a in alerts["alerts"] if a["type"] == "high_consumption"]
        assert high[0]["period"] == "2024-W12"
        assert high[0]["severity"] == "warning"
        assert summary["total"] == alerts["total"]
        assert summary["warning"] == 1


class TestDeviceRoutes:

    @pytest.mark.asyncio
    async def test_power_without_mqtt(self, api_client):
        response = await api_client.post(f"{API}/device/power", json={"status": "on"})

        assert response.status_code == 503
        assert response.json()["error"] == "TRANSPORT_NOT_CONNECTED"

    @pytest.mark.asyncio
    async def test_power_invalid_status(self, api_client):
        response = await api_client.post(f"{API}/device/power", json={"status": "toggle"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reboot_published(self, api_client, worker_manager):
        transport = MagicMock()
        worker_manager.ingestion.transport = transport

        response = await api_client.post(f"{API}/device/reboot")

        assert response.status_code == 200
        assert response.json()["success"] is True
        transport.publish_reboot.assert_called_once()


class TestServiceRoutes:

    @pytest.mark.asyncio
    async def test_root(self, api_client):
        response = await api_client.get("/")
        assert response.json()["name"] == "Power Telemetry"

    @pytest.mark.asyncio
    async def test_stats(self, api_client):
        body = (await api_client.get(f"{API}/stats")).json()
        assert body["mqtt"] == {"enabled": False}
        assert body["buffer"]["size"] == 0
