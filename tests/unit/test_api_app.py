"""Unit tests for propwatch.api.app application factory and routes.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_app.py

"""

from __future__ import annotations

import datetime as dt
import typing as typ

import falcon
import falcon.asgi
import falcon.testing
import pytest

from propwatch.api.app import AppDependencies, create_app
from propwatch.batch.config import BatchConfig
from propwatch.batch.factory import build_sweep_service
from propwatch.reports.persister import SqlAlchemyReportPersister
from propwatch.schedule.service import RuleService
from propwatch.schedule.store import SqlAlchemyRuleStore
from propwatch.synthesis.mock import MockNarrativeService
from tests.helpers.builders import (
    CREATED_AT,
    TENANT,
    SweepingRuleStore,
    seed_property,
)

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

RULES = f"/tenants/{TENANT}/rules"
RULE_BODY: dict[str, object] = {
    "employee_id": "employee-1",
    "property_id": "property-1",
    "start_date": "2024-12-01",
    "period": "one_week",
    "target_weekday": 0,
    "execution_time": "09:00",
}


def _instant(raw: str) -> dt.datetime:
    return dt.datetime.fromisoformat(raw)


@pytest.fixture
def health_client() -> falcon.testing.TestClient:
    """Build a test client for health-only mode."""
    return falcon.testing.TestClient(create_app())


@pytest.fixture
def full_app(session_factory: async_sessionmaker[AsyncSession]) -> falcon.asgi.App:
    """Build an app on the test database with a fixed rule clock."""
    deps = AppDependencies(
        session_factory=session_factory,
        rule_service=RuleService(
            SqlAlchemyRuleStore(session_factory), clock=lambda: CREATED_AT
        ),
        sweep_service=build_sweep_service(
            session_factory, BatchConfig(), MockNarrativeService()
        ),
        report_persister=SqlAlchemyReportPersister(session_factory),
    )
    return create_app(deps)


async def _create_rule(
    conductor: falcon.testing.ASGIConductor, **overrides: object
) -> dict[str, typ.Any]:
    result = await conductor.simulate_post(RULES, json=RULE_BODY | overrides)
    assert result.status == falcon.HTTP_201, f"expected HTTP 201, got {result.text}"
    return result.json


class TestCreateAppHealthOnly:
    """Tests for create_app() without domain dependencies."""

    def test_returns_falcon_app(self) -> None:
        """Create_app() returns a Falcon ASGI App."""
        assert isinstance(create_app(), falcon.asgi.App), "expected Falcon ASGI App"

    def test_has_health_route(self, health_client: falcon.testing.TestClient) -> None:
        """Health-only app responds to /health."""
        result = health_client.simulate_get("/health")
        assert result.status == falcon.HTTP_200, "expected HTTP 200 from /health"
        assert result.json == {"status": "ok"}, "wrong /health body"

    def test_has_ready_route(self, health_client: falcon.testing.TestClient) -> None:
        """Health-only app is ready without a database."""
        result = health_client.simulate_get("/ready")
        assert result.status == falcon.HTTP_200, "expected HTTP 200 from /ready"
        assert result.json == {"status": "ready"}, "wrong /ready body"

    def test_domain_routes_not_registered(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Without deps, rule routes return 404."""
        result = health_client.simulate_get(RULES)
        assert result.status == falcon.HTTP_404, "expected HTTP 404"


class TestRuleRoutes:
    """Tests for rule administration over HTTP."""

    @pytest.mark.asyncio
    async def test_create_and_list_rule(self, full_app: falcon.asgi.App) -> None:
        """A created rule is returned with its first due instant."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            created = await _create_rule(conductor)
            listed = await conductor.simulate_get(RULES)

        assert _instant(created["created_at"]) == CREATED_AT
        assert _instant(created["next_execution_at"]) == dt.datetime(
            2024, 12, 1, 9, 0, tzinfo=dt.UTC
        )
        assert created["execution_time"] == "09:00", "time-of-day stays HH:MM"
        assert created["status"] == "active"
        assert created["execution_count"] == 0
        assert [rule["property_id"] for rule in listed.json["rules"]] == [
            "property-1"
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            pytest.param({"period": "monthly"}, "period", id="period"),
            pytest.param({"target_weekday": 7}, "target_weekday", id="weekday"),
            pytest.param({"execution_time": "9am"}, "execution_time", id="time"),
            pytest.param({"property_id": None}, "property_id", id="property"),
            pytest.param({"employee_id": ""}, "employee_id", id="employee"),
        ],
    )
    async def test_invalid_settings_return_400(
        self,
        full_app: falcon.asgi.App,
        overrides: dict[str, object],
        field: str,
    ) -> None:
        """Validation failures name the offending field."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_post(RULES, json=RULE_BODY | overrides)

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["title"] == "Invalid input"
        assert result.json["field"] == field

    @pytest.mark.asyncio
    async def test_malformed_body_returns_400(self, full_app: falcon.asgi.App) -> None:
        """A body that is not JSON is rejected."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_post(
                RULES, body="{", content_type=falcon.MEDIA_JSON
            )
        assert result.status == falcon.HTTP_400, "expected HTTP 400"

    @pytest.mark.asyncio
    async def test_unknown_rule_returns_404(self, full_app: falcon.asgi.App) -> None:
        """Missing rules map to 404."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_get(f"{RULES}/2020-01-01T00:00:00Z")
        assert result.status == falcon.HTTP_404, "expected HTTP 404"
        assert result.json["title"] == "Rule not found"

    @pytest.mark.asyncio
    async def test_naive_rule_identity_returns_400(
        self, full_app: falcon.asgi.App
    ) -> None:
        """Rule identities must carry an offset."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_get(f"{RULES}/2024-11-20T08:30:00")
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["field"] == "created_at"

    @pytest.mark.asyncio
    async def test_update_pause_and_delete(self, full_app: falcon.asgi.App) -> None:
        """A rule can be edited, paused, and removed."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            created = await _create_rule(conductor)
            path = f"{RULES}/{created['created_at']}"

            updated = await conductor.simulate_put(
                path, json=RULE_BODY | {"period": "two_weeks", "target_weekday": 3}
            )
            paused = await conductor.simulate_post(f"{path}/pause")
            unknown = await conductor.simulate_post(f"{path}/explode")
            deleted = await conductor.simulate_delete(path)
            missing = await conductor.simulate_get(path)

        assert updated.status == falcon.HTTP_200, updated.text
        assert updated.json["period"] == "two_weeks"
        assert _instant(updated.json["next_execution_at"]) == dt.datetime(
            2024, 12, 4, 9, 0, tzinfo=dt.UTC
        ), "Changed schedule recomputes the first Wednesday"
        assert paused.json["status"] == "paused"
        assert unknown.status == falcon.HTTP_404, "expected HTTP 404 for action"
        assert deleted.status == falcon.HTTP_204, "expected HTTP 204"
        assert missing.status == falcon.HTTP_404, "expected HTTP 404 after delete"

    @pytest.mark.asyncio
    async def test_pause_racing_a_sweep_returns_409(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """A rule advanced between read and write is reported as a conflict."""
        store = SweepingRuleStore(session_factory)
        app = create_app(
            AppDependencies(
                session_factory=session_factory,
                rule_service=RuleService(store, clock=lambda: CREATED_AT),
                sweep_service=build_sweep_service(
                    session_factory, BatchConfig(), MockNarrativeService()
                ),
                report_persister=SqlAlchemyReportPersister(session_factory),
            )
        )
        async with falcon.testing.ASGIConductor(app) as conductor:
            created = await _create_rule(conductor)
            path = f"{RULES}/{created['created_at']}"
            store.sweep_on_next_read = True

            conflict = await conductor.simulate_post(f"{path}/pause")
            current = await conductor.simulate_get(path)

        assert conflict.status == falcon.HTTP_409, conflict.text
        assert conflict.json["title"] == "Rule changed concurrently"
        assert current.json["status"] == "active", "pause was not applied"
        assert current.json["execution_count"] == 1, "advancement survives"
        assert _instant(current.json["next_execution_at"]) == dt.datetime(
            2024, 12, 8, 9, 0, tzinfo=dt.UTC
        ), "next occurrence is the advanced one"


class TestSweepAndReportRoutes:
    """Tests for on-demand sweeps and report lookups."""

    @pytest.mark.asyncio
    async def test_sweep_then_read_reports(
        self,
        full_app: falcon.asgi.App,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """An on-demand sweep stores a report that can be fetched."""
        await seed_property(session_factory)
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            await _create_rule(conductor)
            swept = await conductor.simulate_post(
                f"/tenants/{TENANT}/sweeps", json={"as_of": "2024-12-01T09:05:00Z"}
            )
            listed = await conductor.simulate_get(
                f"/tenants/{TENANT}/properties/property-1/reports",
                params={"limit": "5"},
            )
            report_id = listed.json["reports"][0]["id"]
            fetched = await conductor.simulate_get(
                f"/tenants/{TENANT}/reports/{report_id}"
            )
            other_tenant = await conductor.simulate_get(
                f"/tenants/tenant-2/reports/{report_id}"
            )

        assert swept.status == falcon.HTTP_200, swept.text
        assert swept.json["completed"] == 1
        assert swept.json["failed"] == 0
        assert swept.json["outcomes"][0]["status"] == "completed"
        assert len(listed.json["reports"]) == 1
        assert fetched.json["property_name"] == "Harbour View 3B"
        assert fetched.json["synthesizer"] == "mock"
        assert other_tenant.status == falcon.HTTP_404, "reports are tenant-scoped"
        assert other_tenant.json["title"] == "Report not found"

    @pytest.mark.asyncio
    async def test_sweep_rejects_naive_as_of(self, full_app: falcon.asgi.App) -> None:
        """The cut-off must carry an offset."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_post(
                f"/tenants/{TENANT}/sweeps", json={"as_of": "2024-12-01T09:05:00"}
            )
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["field"] == "as_of"

    @pytest.mark.asyncio
    async def test_report_limit_is_bounded(self, full_app: falcon.asgi.App) -> None:
        """Limits outside 1..100 are rejected."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_get(
                f"/tenants/{TENANT}/properties/property-1/reports",
                params={"limit": "500"},
            )
        assert result.status == falcon.HTTP_400, "expected HTTP 400"

    @pytest.mark.asyncio
    async def test_ready_checks_database(self, full_app: falcon.asgi.App) -> None:
        """Readiness runs a query against the configured database."""
        async with falcon.testing.ASGIConductor(full_app) as conductor:
            result = await conductor.simulate_get("/ready")
        assert result.json == {"status": "ready"}, "wrong /ready body"
