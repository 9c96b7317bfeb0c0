"""Unit tests for the propwatch-sweep command."""

from __future__ import annotations

import asyncio
import json
import typing as typ

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from propwatch import cli
from propwatch.batch.config import BatchConfig
from propwatch.batch.factory import build_sweep_service
from propwatch.common.storage import init_storage
from propwatch.schedule.store import SqlAlchemyRuleStore
from propwatch.synthesis.config import NarrativeServiceConfig
from propwatch.synthesis.http_client import HttpNarrativeService
from tests.helpers.builders import TENANT, make_rule, seed_property
from tests.helpers.narrative_fakes import ScriptedNarrativeService, http_failure

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncSession

    from propwatch.batch.service import BatchSweepService

AS_OF = "2024-12-01T09:05:00Z"


async def _seed(database_url: str) -> None:
    engine = create_async_engine(database_url)
    try:
        await init_storage(engine)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        await seed_property(session_factory)
        await SqlAlchemyRuleStore(session_factory).create(make_rule())
    finally:
        await engine.dispose()


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip global logging setup and use the mock narrative backend."""
    monkeypatch.setattr(cli, "configure_logging", lambda _level: ("INFO", False))
    monkeypatch.setenv("PROPWATCH_NARRATIVE_BACKEND", "mock")
    monkeypatch.delenv("PROPWATCH_DATABASE_URL", raising=False)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Return the URL of a seeded sqlite database."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    asyncio.run(_seed(url))
    return url


def _printed(capsys: pytest.CaptureFixture[str]) -> list[dict[str, typ.Any]]:
    return [json.loads(line) for line in capsys.readouterr().out.splitlines()]


class TestSweepCommand:
    """Tests for ``propwatch-sweep``."""

    def test_tenant_sweep_prints_summary(
        self, database_url: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """One JSON summary is printed and the exit code is 0."""
        exit_code = cli.main(
            ["--tenant", TENANT, "--as-of", AS_OF, "--database-url", database_url]
        )

        assert exit_code == 0
        (summary,) = _printed(capsys)
        assert summary["tenant_id"] == TENANT
        assert summary["outcomes"][0]["status"] == "completed"

    def test_all_tenants_reads_url_from_environment(
        self,
        database_url: str,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """``--all`` sweeps every tenant with due rules."""
        monkeypatch.setenv("PROPWATCH_DATABASE_URL", database_url)

        assert cli.main(["--all", "--as-of", AS_OF]) == 0
        assert [summary["tenant_id"] for summary in _printed(capsys)] == [TENANT]

    def test_failed_rule_sets_exit_code(
        self,
        database_url: str,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """A failed rule is reported and exits with 1."""

        def failing_service(
            session_factory: async_sessionmaker[AsyncSession],
            *,
            narrative_service: object,
        ) -> BatchSweepService:
            return build_sweep_service(
                session_factory,
                BatchConfig(),
                ScriptedNarrativeService(fail_narrative=http_failure()),
            )

        monkeypatch.setattr(cli, "build_sweep_service", failing_service)

        exit_code = cli.main(
            ["--tenant", TENANT, "--as-of", AS_OF, "--database-url", database_url]
        )

        assert exit_code == 1
        (summary,) = _printed(capsys)
        assert summary["outcomes"][0]["status"] == "failed"

    def test_http_backend_client_is_closed(
        self, database_url: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The narrative service's own HTTP client is closed after the sweep."""
        narrative = HttpNarrativeService(
            NarrativeServiceConfig(base_url="https://narrative.example")
        )
        monkeypatch.setattr(cli, "create_narrative_service", lambda: narrative)

        exit_code = cli.main(
            [
                "--tenant",
                "tenant-without-rules",
                "--as-of",
                AS_OF,
                "--database-url",
                database_url,
            ]
        )

        assert exit_code == 0, "empty sweep succeeds"
        assert narrative._client.is_closed, "owned HTTP client must be closed"

    def test_init_db_creates_tables(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """``--init-db`` prepares an empty database before sweeping."""
        url = f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}"

        exit_code = cli.main(["--tenant", TENANT, "--database-url", url, "--init-db"])

        assert exit_code == 0
        (summary,) = _printed(capsys)
        assert summary["outcomes"] == []

    def test_naive_as_of_is_a_usage_error(
        self, database_url: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Cut-offs without an offset exit with 2."""
        exit_code = cli.main(
            [
                "--tenant",
                TENANT,
                "--as-of",
                "2024-12-01T09:05:00",
                "--database-url",
                database_url,
            ]
        )

        assert exit_code == 2
        assert "timezone information" in capsys.readouterr().out

    def test_missing_database_url_exits(self) -> None:
        """The database URL is required."""
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["--tenant", TENANT])
        assert excinfo.value.code == 2

    def test_scope_is_required(self) -> None:
        """Either ``--tenant`` or ``--all`` must be given."""
        with pytest.raises(SystemExit):
            cli.main(["--database-url", "sqlite+aiosqlite://"])
