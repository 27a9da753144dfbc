"""Holiday calendar tests — CRUD, per-tenant date uniqueness, lookups."""

from __future__ import annotations

import uuid
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.constants import HolidayType
from hr_leave.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hr_leave.holidays.schemas import HolidayCreate
from hr_leave.holidays.service import HolidayService
from tests.conftest import OTHER_TENANT_ID, TENANT_ID, seed_holidays


def _holiday(name: str, on: date, type: HolidayType = HolidayType.public, **kwargs):
    return HolidayCreate(name=name, date=on, type=type, **kwargs)


class TestHolidaySchema:

    def test_optional_type_defaults_to_optional_flag(self):
        assert _holiday("Diwali", date(2026, 11, 8), HolidayType.optional).is_optional is True

    def test_public_type_defaults_to_closed(self):
        assert _holiday("Republic Day", date(2026, 1, 26)).is_optional is False

    def test_explicit_flag_wins(self):
        h = _holiday("Founders Day", date(2026, 6, 1), HolidayType.restricted, is_optional=True)
        assert h.is_optional is True


class TestHolidayCrud:

    async def test_create(self, db: AsyncSession):
        out = await HolidayService.create_holiday(
            db, TENANT_ID, _holiday("Holi", date(2026, 3, 4), description="Festival of colours"),
        )
        assert out.tenant_id == TENANT_ID
        assert out.date == date(2026, 3, 4)
        assert out.description == "Festival of colours"

    async def test_duplicate_date_conflicts(self, db: AsyncSession):
        await HolidayService.create_holiday(db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)))
        with pytest.raises(ConflictError):
            await HolidayService.create_holiday(
                db, TENANT_ID, _holiday("Also Holi", date(2026, 3, 4)),
            )

    async def test_date_constraint_race_conflicts(self, db: AsyncSession):
        await HolidayService.create_holiday(db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)))
        await db.commit()

        # Both creators passed the lookup; the unique constraint decides
        with patch.object(
            HolidayService, "_date_taken", new_callable=AsyncMock, return_value=False,
        ):
            with pytest.raises(ConflictError) as exc_info:
                await HolidayService.create_holiday(
                    db, TENANT_ID, _holiday("Also Holi", date(2026, 3, 4)),
                )
        assert exc_info.value.errors == {"date": ["'2026-03-04' is already in use."]}
        assert len(await HolidayService.list_by_year(db, TENANT_ID, 2026)) == 1

    async def test_same_date_in_other_tenant(self, db: AsyncSession):
        await seed_holidays(db, [date(2026, 3, 4)], tenant_id=OTHER_TENANT_ID)
        out = await HolidayService.create_holiday(db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)))
        assert out.tenant_id == TENANT_ID

    async def test_update(self, db: AsyncSession):
        created = await HolidayService.create_holiday(
            db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)),
        )
        out = await HolidayService.update_holiday(
            db, TENANT_ID, created.id, _holiday("Holi", date(2026, 3, 5), HolidayType.optional),
        )
        assert out.date == date(2026, 3, 5)
        assert out.is_optional is True

    async def test_update_constraint_race_conflicts(self, db: AsyncSession):
        await seed_holidays(db, [date(2026, 3, 5)])
        created = await HolidayService.create_holiday(
            db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)),
        )
        await db.commit()

        with patch.object(
            HolidayService, "_date_taken", new_callable=AsyncMock, return_value=False,
        ):
            with pytest.raises(ConflictError):
                await HolidayService.update_holiday(
                    db, TENANT_ID, created.id, _holiday("Holi", date(2026, 3, 5)),
                )
        days = [h.date for h in await HolidayService.list_by_year(db, TENANT_ID, 2026)]
        assert days == [date(2026, 3, 4), date(2026, 3, 5)]

    async def test_update_onto_taken_date_conflicts(self, db: AsyncSession):
        await seed_holidays(db, [date(2026, 3, 5)])
        created = await HolidayService.create_holiday(
            db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)),
        )
        with pytest.raises(ConflictError):
            await HolidayService.update_holiday(
                db, TENANT_ID, created.id, _holiday("Holi", date(2026, 3, 5)),
            )

    async def test_update_keeping_date(self, db: AsyncSession):
        created = await HolidayService.create_holiday(
            db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)),
        )
        out = await HolidayService.update_holiday(
            db, TENANT_ID, created.id, _holiday("Holika Dahan", date(2026, 3, 4)),
        )
        assert out.name == "Holika Dahan"

    async def test_delete(self, db: AsyncSession):
        created = await HolidayService.create_holiday(
            db, TENANT_ID, _holiday("Holi", date(2026, 3, 4)),
        )
        await HolidayService.delete_holiday(db, TENANT_ID, created.id)
        assert await HolidayService.list_by_year(db, TENANT_ID, 2026) == []

    async def test_delete_unknown(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await HolidayService.delete_holiday(db, TENANT_ID, uuid.uuid4())

    async def test_cannot_touch_other_tenants_holiday(self, db: AsyncSession):
        (foreign,) = await seed_holidays(db, [date(2026, 3, 4)], tenant_id=OTHER_TENANT_ID)
        with pytest.raises(NotFoundException):
            await HolidayService.delete_holiday(db, TENANT_ID, foreign.id)


class TestHolidayQueries:

    async def test_list_by_year_ordered(self, db: AsyncSession):
        await seed_holidays(db, [date(2026, 8, 15), date(2026, 1, 26), date(2025, 12, 25)])
        holidays = await HolidayService.list_by_year(db, TENANT_ID, 2026)
        assert [h.date for h in holidays] == [date(2026, 1, 26), date(2026, 8, 15)]

    async def test_list_between_inclusive(self, db: AsyncSession):
        await seed_holidays(db, [date(2026, 3, 1), date(2026, 3, 15), date(2026, 3, 31)])
        holidays = await HolidayService.list_between(
            db, TENANT_ID, date(2026, 3, 1), date(2026, 3, 15),
        )
        assert [h.date for h in holidays] == [date(2026, 3, 1), date(2026, 3, 15)]

    async def test_list_between_invalid_range(self, db: AsyncSession):
        with pytest.raises(BadRequestException):
            await HolidayService.list_between(db, TENANT_ID, date(2026, 3, 15), date(2026, 3, 1))

    async def test_closed_dates_skip_optional(self, db: AsyncSession):
        await seed_holidays(db, [date(2026, 3, 4)])
        await seed_holidays(db, [date(2026, 3, 5)], type=HolidayType.optional)
        await seed_holidays(db, [date(2026, 3, 6)], type=HolidayType.restricted)

        closed = await HolidayService.get_closed_dates(
            db, TENANT_ID, date(2026, 3, 1), date(2026, 3, 31),
        )
        assert closed == {date(2026, 3, 4), date(2026, 3, 6)}
