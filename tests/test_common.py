"""Tests for common utilities — pagination, problem details, auth dependencies."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.auth.dependencies import CurrentUser, _parse_roles
from hr_leave.common.constants import UserRole
from hr_leave.common.exceptions import (
    BadRequestException,
    ConflictError,
    NotFoundException,
    register_exception_handlers,
)
from hr_leave.common.pagination import PaginationParams, paginate
from hr_leave.config import Settings
from hr_leave.holidays.models import Holiday
from tests.conftest import TENANT_ID, seed_holidays


# ═════════════════════════════════════════════════════════════════════
# PAGINATION
# ═════════════════════════════════════════════════════════════════════


class TestPagination:

    async def _seed(self, db: AsyncSession, count: int) -> None:
        await seed_holidays(db, [date(2026, 1, 1 + i) for i in range(count)])

    async def test_first_page(self, db: AsyncSession):
        await self._seed(db, 5)
        query = select(Holiday).order_by(Holiday.date)
        result = await paginate(db, query, PaginationParams(page=1, page_size=3))
        assert len(result.data) == 3
        assert result.meta.total == 5
        assert result.meta.total_pages == 2
        assert result.meta.has_next is True
        assert result.meta.has_prev is False

    async def test_page_2(self, db: AsyncSession):
        await self._seed(db, 5)
        query = select(Holiday).order_by(Holiday.date)
        result = await paginate(db, query, PaginationParams(page=2, page_size=3))
        assert [h.date for h in result.data] == [date(2026, 1, 4), date(2026, 1, 5)]
        assert result.meta.has_prev is True
        assert result.meta.has_next is False

    async def test_transform(self, db: AsyncSession):
        await self._seed(db, 2)
        query = select(Holiday).order_by(Holiday.date)
        result = await paginate(
            db, query, PaginationParams(page=1, page_size=10),
            transform=lambda h: h.date.isoformat(),
        )
        assert result.data == ["2026-01-01", "2026-01-02"]

    async def test_empty_result(self, db: AsyncSession):
        query = select(Holiday).where(Holiday.tenant_id == uuid.uuid4()).order_by(Holiday.date)
        result = await paginate(db, query, PaginationParams(page=1, page_size=10))
        assert len(result.data) == 0
        assert result.meta.total == 0
        assert result.meta.total_pages == 0

    def test_offset(self):
        assert PaginationParams(page=3, page_size=20).offset == 40


# ═════════════════════════════════════════════════════════════════════
# RFC 7807 PROBLEM DETAILS
# ═════════════════════════════════════════════════════════════════════


class TestProblemDetails:

    @pytest.fixture
    async def problem_client(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/missing")
        async def missing():
            raise NotFoundException("LeaveRequest", "abc")

        @app.get("/conflict")
        async def conflict():
            raise ConflictError("code", "EL")

        @app.get("/bad")
        async def bad():
            raise BadRequestException("Leave request is not pending.", field="status")

        @app.get("/typed")
        async def typed(year: int):
            return {"year": year}

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac

    async def test_not_found(self, problem_client):
        resp = await problem_client.get("/missing")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["status"] == 404
        assert "abc" in body["detail"]
        assert body["instance"] == "/missing"

    async def test_conflict(self, problem_client):
        resp = await problem_client.get("/conflict")
        assert resp.status_code == 409
        assert "EL" in resp.json()["detail"]

    async def test_bad_request(self, problem_client):
        resp = await problem_client.get("/bad")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Leave request is not pending."

    async def test_validation_error(self, problem_client):
        resp = await problem_client.get("/typed", params={"year": "soon"})
        assert resp.status_code == 422
        body = resp.json()
        assert body["title"] == "Validation Error"
        assert "year" in body["errors"]


# ═════════════════════════════════════════════════════════════════════
# AUTH CONTEXT
# ═════════════════════════════════════════════════════════════════════


class TestRoles:

    def test_unknown_roles_ignored(self):
        assert _parse_roles(["manager", "agent"]) == frozenset({UserRole.manager})

    def test_single_role_string(self):
        assert _parse_roles("hr_admin") == frozenset({UserRole.hr_admin})

    def test_defaults_to_employee(self):
        assert _parse_roles(None) == frozenset({UserRole.employee})

    @pytest.mark.parametrize("raw", [5, 2.5, {"role": "manager"}, True])
    def test_malformed_claim_defaults_to_employee(self, raw):
        assert _parse_roles(raw) == frozenset({UserRole.employee})

    def test_tuple_of_roles(self):
        assert _parse_roles(("manager", 7)) == frozenset({UserRole.manager})

    def test_hierarchy(self):
        user = CurrentUser(
            tenant_id=TENANT_ID, user_id=uuid.uuid4(), roles=frozenset({UserRole.hr_admin}),
        )
        assert UserRole.manager in user.effective_roles
        assert UserRole.system_admin not in user.effective_roles


# ═════════════════════════════════════════════════════════════════════
# SETTINGS
# ═════════════════════════════════════════════════════════════════════


class TestSettings:

    def test_env_file_config(self):
        assert Settings.model_config["env_file"] == ".env"
        assert Settings.model_config["case_sensitive"] is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_APPLY", "5/minute")
        monkeypatch.setenv("CORS_ORIGINS", '["https://hr.example.com"]')
        loaded = Settings()
        assert loaded.RATE_LIMIT_APPLY == "5/minute"
        assert loaded.cors_origins_list == ["https://hr.example.com"]

    def test_env_names_are_case_sensitive(self, monkeypatch):
        monkeypatch.setenv("rate_limit_apply", "5/minute")
        assert Settings().RATE_LIMIT_APPLY != "5/minute"
