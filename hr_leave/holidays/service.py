"""Holiday calendar service — tenant-scoped CRUD and the non-working-date lookup."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import extract, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.common.audit import create_audit_entry
from hr_leave.common.exceptions import BadRequestException, ConflictError, NotFoundException
from hr_leave.holidays.models import Holiday
from hr_leave.holidays.schemas import HolidayCreate, HolidayOut

logger = logging.getLogger(__name__)


class HolidayService:
    """Async holiday operations."""

    @staticmethod
    async def _get(db: AsyncSession, tenant_id: uuid.UUID, holiday_id: uuid.UUID) -> Holiday:
        result = await db.execute(
            select(Holiday).where(Holiday.id == holiday_id, Holiday.tenant_id == tenant_id)
        )
        holiday = result.scalars().first()
        if holiday is None:
            raise NotFoundException("Holiday", str(holiday_id))
        return holiday

    @staticmethod
    async def _date_taken(db: AsyncSession, tenant_id: uuid.UUID, on: date) -> bool:
        result = await db.execute(
            select(Holiday.id).where(Holiday.tenant_id == tenant_id, Holiday.date == on)
        )
        return result.first() is not None

    @staticmethod
    async def _flush_date(db: AsyncSession, on: date) -> None:
        """Flush, mapping a lost race on the per-tenant date constraint to 409."""
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            err = str(exc.orig)
            if "uq_holiday_tenant_date" in err or "holidays.date" in err:
                raise ConflictError("date", on.isoformat())
            raise

    @staticmethod
    async def create_holiday(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayOut:
        """Add a holiday. At most one holiday per date per tenant."""
        logger.info("Creating holiday %s on %s for tenant %s", data.name, data.date, tenant_id)

        if await HolidayService._date_taken(db, tenant_id, data.date):
            raise ConflictError("date", data.date.isoformat())

        holiday = Holiday(
            tenant_id=tenant_id,
            name=data.name,
            date=data.date,
            type=data.type,
            description=data.description,
            is_optional=data.is_optional,
        )
        db.add(holiday)
        await HolidayService._flush_date(db, data.date)

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="create",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values={"name": holiday.name, "date": holiday.date.isoformat()},
        )
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def update_holiday(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        holiday_id: uuid.UUID,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayOut:
        """Replace a holiday's fields; moving it onto an occupied date conflicts."""
        holiday = await HolidayService._get(db, tenant_id, holiday_id)

        if holiday.date != data.date and await HolidayService._date_taken(
            db, tenant_id, data.date,
        ):
            raise ConflictError("date", data.date.isoformat())

        old_values = {"name": holiday.name, "date": holiday.date.isoformat()}
        holiday.name = data.name
        holiday.date = data.date
        holiday.type = data.type
        holiday.description = data.description
        holiday.is_optional = data.is_optional
        holiday.updated_at = datetime.now(timezone.utc)
        await HolidayService._flush_date(db, data.date)

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="update",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={"name": holiday.name, "date": holiday.date.isoformat()},
        )
        logger.info("Holiday %s updated", holiday_id)
        return HolidayOut.model_validate(holiday)

    @staticmethod
    async def delete_holiday(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        holiday_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        holiday = await HolidayService._get(db, tenant_id, holiday_id)
        old_values = {"name": holiday.name, "date": holiday.date.isoformat()}
        await db.delete(holiday)
        await db.flush()

        await create_audit_entry(
            db,
            tenant_id=tenant_id,
            action="delete",
            entity_type="holiday",
            entity_id=holiday_id,
            actor_id=actor_id,
            old_values=old_values,
        )
        logger.info("Holiday %s deleted", holiday_id)

    @staticmethod
    async def list_by_year(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[HolidayOut]:
        target_year = year or datetime.now(timezone.utc).year
        result = await db.execute(
            select(Holiday)
            .where(
                Holiday.tenant_id == tenant_id,
                extract("year", Holiday.date) == target_year,
            )
            .order_by(Holiday.date)
        )
        return [HolidayOut.model_validate(h) for h in result.scalars().all()]

    @staticmethod
    async def list_between(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        start: date,
        end: date,
    ) -> list[HolidayOut]:
        if end < start:
            raise BadRequestException("end_date cannot be before start_date.", field="end_date")
        result = await db.execute(
            select(Holiday)
            .where(
                Holiday.tenant_id == tenant_id,
                Holiday.date >= start,
                Holiday.date <= end,
            )
            .order_by(Holiday.date)
        )
        return [HolidayOut.model_validate(h) for h in result.scalars().all()]

    @staticmethod
    async def get_closed_dates(
        db: AsyncSession,
        tenant_id: uuid.UUID,
        start: date,
        end: date,
    ) -> set[date]:
        """Non-optional holiday dates in ``[start, end]`` — the ones that
        reduce a leave's day count."""
        result = await db.execute(
            select(Holiday.date).where(
                Holiday.tenant_id == tenant_id,
                Holiday.date >= start,
                Holiday.date <= end,
                Holiday.is_optional.is_(False),
            )
        )
        return {row[0] for row in result.all()}
