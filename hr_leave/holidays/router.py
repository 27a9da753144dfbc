"""Holiday calendar router. Reads for everyone, writes for HR admins."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hr_leave.auth.dependencies import CurrentUser, get_current_user, require_role
from hr_leave.common.constants import UserRole
from hr_leave.database import get_db
from hr_leave.holidays.schemas import HolidayCreate, HolidayOut
from hr_leave.holidays.service import HolidayService

router = APIRouter(prefix="", tags=["holidays"])

_hr_admin = require_role(UserRole.hr_admin)


@router.get("", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Holidays of a year (default: current), ordered by date."""
    return await HolidayService.list_by_year(db, user.tenant_id, year)


@router.get("/range", response_model=list[HolidayOut])
async def list_holidays_between(
    start_date: date = Query(...),
    end_date: date = Query(...),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.list_between(db, user.tenant_id, start_date, end_date)


@router.post("", response_model=HolidayOut, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    user: CurrentUser = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.create_holiday(
        db, user.tenant_id, body, actor_id=user.user_id,
    )


@router.put("/{holiday_id}", response_model=HolidayOut)
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayCreate,
    user: CurrentUser = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.update_holiday(
        db, user.tenant_id, holiday_id, body, actor_id=user.user_id,
    )


@router.delete("/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    user: CurrentUser = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete_holiday(
        db, user.tenant_id, holiday_id, actor_id=user.user_id,
    )
    return Response(status_code=204)
